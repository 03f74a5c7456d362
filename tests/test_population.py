"""
Tests for population construction, validation and chronic tiers.
"""

import dataclasses

import pytest
import numpy as np
import pandas as pd

from triagesim import (
    ChronicTier,
    ChronicThresholds,
    CohortSampler,
    InvalidInput,
    Patient,
    Population,
    SimulationConfig,
    generate_synthetic_population,
)


def make_table(n=10):
    return pd.DataFrame({
        'age': np.arange(n) * 5.0 + 20,
        'race': ['white'] * n,
        'sofa': np.arange(n, dtype=float),
        'survived': [1, 0] * (n // 2),
        'burden': np.arange(n, dtype=float),
    })


class TestChronicThresholds:
    """Tests for percentile-based chronic disease tiers."""

    def test_quantile_cut_points(self):
        """Thresholds are the 75th and 90th percentiles of burden."""
        thresholds = ChronicThresholds.from_scores(np.arange(10.0))
        assert thresholds.major == pytest.approx(6.75)
        assert thresholds.severe == pytest.approx(8.1)

    def test_classify(self):
        """Scores above each cut move up one tier."""
        thresholds = ChronicThresholds.from_scores(np.arange(10.0))
        tiers = thresholds.classify(np.arange(10.0))
        expected = [ChronicTier.NONE] * 7 + [ChronicTier.MAJOR] * 2 + [ChronicTier.SEVERE]
        assert list(tiers) == [int(t) for t in expected]

    def test_missing_scores_map_to_none(self):
        """NaN burden scores are ignored for thresholds and classed as NONE."""
        burden = np.array([np.nan, 0, 1, 2, 3, 4, 5, 6, 7, 8, 9, np.nan])
        thresholds = ChronicThresholds.from_scores(burden)
        assert thresholds.major == pytest.approx(6.75)

        tiers = thresholds.classify(burden)
        assert tiers[0] == ChronicTier.NONE
        assert tiers[-1] == ChronicTier.NONE

    def test_all_missing(self):
        """No burden data at all gives every patient tier NONE."""
        pop = Population(age=[30, 40], sofa=[5, 6], survived=[1, 0])
        assert np.isnan(pop.thresholds.major)
        assert list(pop.chronic_tier) == [0, 0]

    def test_custom_quantiles(self):
        """Quantiles are configurable."""
        pop = Population(
            age=[30] * 10, sofa=[5] * 10, survived=[1] * 10,
            burden=np.arange(10.0), chronic_quantiles=(0.5, 0.8)
        )
        assert pop.thresholds.major == pytest.approx(4.5)
        assert pop.thresholds.severe == pytest.approx(7.2)


class TestPopulationValidation:
    """Tests for input validation."""

    def test_empty_population(self):
        with pytest.raises(InvalidInput):
            Population(age=[], sofa=[], survived=[])

    def test_negative_age(self):
        with pytest.raises(InvalidInput):
            Population(age=[-1, 30], sofa=[5, 6], survived=[1, 0])

    def test_non_finite_sofa(self):
        with pytest.raises(InvalidInput):
            Population(age=[20, 30], sofa=[np.nan, 6], survived=[1, 0])
        with pytest.raises(InvalidInput):
            Population(age=[20, 30], sofa=[np.inf, 6], survived=[1, 0])

    def test_missing_age(self):
        with pytest.raises(InvalidInput):
            Population(age=[None, 30], sofa=[5, 6], survived=[1, 0])

    def test_bad_survival_flag(self):
        with pytest.raises(InvalidInput):
            Population(age=[20, 30], sofa=[5, 6], survived=[1, 2])

    def test_infinite_burden(self):
        with pytest.raises(InvalidInput):
            Population(age=[20, 30], sofa=[5, 6], survived=[1, 0], burden=[np.inf, 1])

    def test_length_mismatch(self):
        with pytest.raises(InvalidInput):
            Population(age=[20, 30], sofa=[5], survived=[1, 0])

    def test_non_numeric_column(self):
        with pytest.raises(InvalidInput):
            Population(age=['old', 30], sofa=[5, 6], survived=[1, 0])

    def test_arrays_are_read_only(self):
        """Population columns cannot be modified after construction."""
        pop = Population(age=[20, 30], sofa=[5, 6], survived=[1, 0])
        with pytest.raises(ValueError):
            pop.sofa[0] = 10


class TestPopulationConstruction:
    """Tests for building populations from tables and records."""

    def test_from_dataframe(self):
        pop = Population.from_dataframe(make_table())
        assert len(pop) == 10
        assert pop.survived.dtype == bool
        assert pop.race[0] == 'white'

    def test_from_dataframe_column_mapping(self):
        """Non-canonical column names can be mapped."""
        df = make_table().rename(columns={'sofa': 'sofa_score', 'burden': 'elixhauser'})
        pop = Population.from_dataframe(df, columns={'sofa': 'sofa_score', 'burden': 'elixhauser'})
        assert list(pop.sofa) == list(range(10))
        assert pop.chronic_tier[-1] == ChronicTier.SEVERE

    def test_from_dataframe_missing_required(self):
        df = make_table().drop(columns=['sofa'])
        with pytest.raises(InvalidInput):
            Population.from_dataframe(df)

    def test_from_dataframe_optional_columns(self):
        """Race and burden columns may be absent."""
        df = make_table().drop(columns=['race', 'burden'])
        pop = Population.from_dataframe(df)
        assert pop.race[0] is None
        assert np.all(pop.chronic_tier == ChronicTier.NONE)

    def test_from_dataframe_nullable_burden(self):
        """Missing burden values in a table are accepted."""
        df = make_table()
        df['burden'] = df['burden'].astype(object)
        df.loc[0, 'burden'] = None
        pop = Population.from_dataframe(df)
        assert np.isnan(pop.burden[0])
        assert pop.patient(0).burden is None

    def test_unknown_column_key(self):
        with pytest.raises(InvalidInput):
            Population.from_dataframe(make_table(), columns={'weight': 'kg'})

    def test_patients_round_trip(self):
        """Patient records rebuild an equivalent population."""
        pop = Population.from_dataframe(make_table())
        rebuilt = Population.from_patients(pop.patients())

        assert np.array_equal(rebuilt.sofa, pop.sofa)
        assert np.array_equal(rebuilt.chronic_tier, pop.chronic_tier)

    def test_patient_record(self):
        pop = Population.from_dataframe(make_table())
        patient = pop.patient(9)

        assert isinstance(patient, Patient)
        assert patient.sofa == 9.0
        assert patient.chronic_tier is ChronicTier.SEVERE
        with pytest.raises(dataclasses.FrozenInstanceError):
            patient.age = 1.0

    def test_to_dataframe(self):
        df = Population.from_dataframe(make_table()).to_dataframe()
        assert list(df.columns) == ['age', 'race', 'sofa', 'survived', 'burden', 'chronic_tier']
        assert df['chronic_tier'].iloc[-1] == 'severe'


class TestTiersCarryToCohorts:
    """Chronic tiers are fixed on the base population."""

    def test_cohort_tiers_match_base(self):
        """A resampled patient keeps the tier computed on the base population."""
        pop = generate_synthetic_population(200, seed=3)
        sampler = CohortSampler(pop, n_replicates=5, seed=1)

        for cohort in sampler:
            assert np.array_equal(cohort.chronic_tier, pop.chronic_tier[cohort.indices])

    def test_thresholds_unchanged_by_sampling(self):
        pop = generate_synthetic_population(200, seed=3)
        before = pop.thresholds
        list(CohortSampler(pop, n_replicates=3, seed=1))
        assert pop.thresholds == before


class TestSyntheticPopulation:
    """Tests for synthetic population generation."""

    def test_size_and_reproducibility(self):
        a = generate_synthetic_population(100, seed=42)
        b = generate_synthetic_population(100, seed=42)

        assert len(a) == 100
        assert np.array_equal(a.age, b.age)
        assert np.array_equal(a.survived, b.survived)

    def test_has_all_tiers(self):
        pop = generate_synthetic_population(500, seed=42)
        assert set(np.unique(pop.chronic_tier)) == {0, 1, 2}

    def test_sicker_patients_survive_less(self):
        """Survival falls with SOFA score."""
        pop = generate_synthetic_population(2000, seed=42)
        low = pop.survived[pop.sofa < 5].mean()
        high = pop.survived[pop.sofa >= 10].mean()
        assert low > high


class TestConfig:
    """Tests for SimulationConfig."""

    def test_defaults(self):
        config = SimulationConfig()
        assert config.n_replicates == 10000
        assert config.scarcity == 0.5
        assert config.chronic_quantiles == (0.75, 0.90)

    def test_capacity_floors(self):
        config = SimulationConfig(scarcity=0.5)
        assert config.capacity(4) == 2
        assert config.capacity(5) == 2
        assert SimulationConfig(scarcity=1.0).capacity(7) == 7
        assert SimulationConfig(scarcity=0.0).capacity(7) == 0

    def test_frozen(self):
        config = SimulationConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.seed = 1

    @pytest.mark.parametrize('kwargs', [
        {'scarcity': 1.5},
        {'scarcity': -0.1},
        {'n_replicates': 0},
        {'n_replicates': 1},
        {'chronic_quantiles': (0.9, 0.75)},
        {'chronic_quantiles': (0.0, 0.5)},
        {'batch_size': 0},
        {'n_jobs': 0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidInput):
            SimulationConfig(**kwargs)
