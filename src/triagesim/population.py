"""
Base patient population for triage simulations.

The Population holds one row per patient as column arrays:
- age, race, SOFA severity score, survived-to-discharge flag
- chronic-disease burden score (may be missing)
- chronic-disease tier, fixed once from the burden score percentiles

Cohorts index into these arrays; nothing here is modified after construction.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from .errors import InvalidInput


class ChronicTier(IntEnum):
    """Chronic-disease burden category."""
    NONE = 0
    MAJOR = 1
    SEVERE = 2


# Canonical column names used by Population.to_dataframe()
COLUMNS = ('age', 'race', 'sofa', 'survived', 'burden')


@dataclass(frozen=True)
class Patient:
    """
    A single patient record.

    Attributes:
        age: Age in years
        race: Race category (informational, never used for allocation)
        sofa: SOFA severity score, higher = more organ failure
        survived: Survived to discharge
        burden: Chronic-disease burden score, None if unknown
        chronic_tier: Tier derived from the base population's burden percentiles
    """
    age: float
    race: Any
    sofa: float
    survived: bool
    burden: Optional[float] = None
    chronic_tier: ChronicTier = ChronicTier.NONE


@dataclass(frozen=True)
class ChronicThresholds:
    """Burden score cut points; scores strictly above a cut move up a tier."""
    major: float
    severe: float

    @classmethod
    def from_scores(
        cls,
        burden: np.ndarray,
        quantiles: Sequence[float] = (0.75, 0.90)
    ) -> 'ChronicThresholds':
        """
        Compute thresholds from the non-missing burden scores.

        If every score is missing both thresholds are NaN and every
        patient maps to ChronicTier.NONE.
        """
        scores = np.asarray(burden, dtype=float)
        scores = scores[~np.isnan(scores)]
        if scores.size == 0:
            return cls(major=float('nan'), severe=float('nan'))
        major, severe = np.quantile(scores, list(quantiles))
        return cls(major=float(major), severe=float(severe))

    def classify(self, burden: np.ndarray) -> np.ndarray:
        """Map burden scores to ChronicTier codes (missing -> NONE)."""
        scores = np.asarray(burden, dtype=float)
        tiers = np.full(scores.shape, int(ChronicTier.NONE), dtype=np.int8)
        # NaN comparisons are False, so missing scores stay at NONE
        with np.errstate(invalid='ignore'):
            tiers[scores > self.major] = int(ChronicTier.MAJOR)
            tiers[scores > self.severe] = int(ChronicTier.SEVERE)
        return tiers


class Population:
    """
    Immutable base population.

    Chronic tiers are computed here, once, from this population's own
    burden scores. Resampled cohorts carry each patient's tier unchanged.
    """

    def __init__(
        self,
        age: Iterable[float],
        sofa: Iterable[float],
        survived: Iterable[Any],
        burden: Optional[Iterable[Optional[float]]] = None,
        race: Optional[Iterable[Any]] = None,
        chronic_quantiles: Sequence[float] = (0.75, 0.90)
    ):
        """
        Args:
            age: Patient ages (non-negative)
            sofa: SOFA scores
            survived: Survival flags (bool or 0/1)
            burden: Chronic burden scores, None/NaN for missing (default: all missing)
            race: Race categories (default: all None)
            chronic_quantiles: (major, severe) percentiles for tier thresholds
        """
        self.age = _as_float_array(age, 'age')
        n = self.age.size
        if n == 0:
            raise InvalidInput("Population is empty")

        self.sofa = _as_float_array(sofa, 'sofa')
        self.survived = _as_flag_array(survived)

        if burden is None:
            self.burden = np.full(n, np.nan)
        else:
            self.burden = _as_float_array(burden, 'burden', allow_missing=True)

        if race is None:
            self.race = np.full(n, None, dtype=object)
        else:
            self.race = np.asarray(list(race), dtype=object)

        for name in ('sofa', 'survived', 'burden', 'race'):
            size = getattr(self, name).size
            if size != n:
                raise InvalidInput(
                    f"Column '{name}' has {size} values, expected {n}"
                )

        if not np.all(np.isfinite(self.age)):
            raise InvalidInput("age contains non-finite values")
        if np.any(self.age < 0):
            raise InvalidInput("age contains negative values")
        if not np.all(np.isfinite(self.sofa)):
            raise InvalidInput("sofa contains non-finite values")
        if np.any(np.isinf(self.burden)):
            raise InvalidInput("burden contains infinite values")

        self.thresholds = ChronicThresholds.from_scores(self.burden, chronic_quantiles)
        self.chronic_tier = self.thresholds.classify(self.burden)

        for arr in (self.age, self.sofa, self.survived, self.burden,
                    self.race, self.chronic_tier):
            arr.setflags(write=False)

    def __len__(self) -> int:
        return self.age.size

    def __repr__(self) -> str:
        return (
            f"Population(n={len(self)}, survived={int(self.survived.sum())}, "
            f"thresholds=({self.thresholds.major:.3g}, {self.thresholds.severe:.3g}))"
        )

    def patient(self, i: int) -> Patient:
        """Return row i as a Patient."""
        burden = self.burden[i]
        return Patient(
            age=float(self.age[i]),
            race=self.race[i],
            sofa=float(self.sofa[i]),
            survived=bool(self.survived[i]),
            burden=None if np.isnan(burden) else float(burden),
            chronic_tier=ChronicTier(int(self.chronic_tier[i]))
        )

    def patients(self) -> List[Patient]:
        return [self.patient(i) for i in range(len(self))]

    def to_dataframe(self) -> pd.DataFrame:
        """Population as a DataFrame with canonical column names plus chronic_tier."""
        return pd.DataFrame({
            'age': self.age,
            'race': self.race,
            'sofa': self.sofa,
            'survived': self.survived,
            'burden': self.burden,
            'chronic_tier': [ChronicTier(int(t)).name.lower() for t in self.chronic_tier],
        })

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        columns: Optional[Dict[str, str]] = None,
        chronic_quantiles: Sequence[float] = (0.75, 0.90)
    ) -> 'Population':
        """
        Build a Population from a table.

        Args:
            df: One row per patient
            columns: Mapping of canonical name -> df column name, for any
                columns not named age/race/sofa/survived/burden
            chronic_quantiles: (major, severe) percentiles for tier thresholds

        Race and burden columns are optional; age, sofa and survived are required.
        """
        mapping = {name: name for name in COLUMNS}
        if columns:
            unknown = set(columns) - set(COLUMNS)
            if unknown:
                raise InvalidInput(f"Unknown column keys: {sorted(unknown)}")
            mapping.update(columns)

        missing = [
            mapping[name] for name in ('age', 'sofa', 'survived')
            if mapping[name] not in df.columns
        ]
        if missing:
            raise InvalidInput(f"Missing required columns: {missing}")

        race_col = mapping['race']
        burden_col = mapping['burden']
        return cls(
            age=df[mapping['age']].to_numpy(),
            sofa=df[mapping['sofa']].to_numpy(),
            survived=df[mapping['survived']].to_numpy(),
            burden=df[burden_col].to_numpy() if burden_col in df.columns else None,
            race=df[race_col].to_numpy() if race_col in df.columns else None,
            chronic_quantiles=chronic_quantiles,
        )

    @classmethod
    def from_patients(
        cls,
        patients: Sequence[Patient],
        chronic_quantiles: Sequence[float] = (0.75, 0.90)
    ) -> 'Population':
        """
        Build a Population from Patient records.

        Any chronic_tier already set on the records is ignored; tiers are
        recomputed from this population's burden scores.
        """
        return cls(
            age=[p.age for p in patients],
            sofa=[p.sofa for p in patients],
            survived=[p.survived for p in patients],
            burden=[p.burden for p in patients],
            race=[p.race for p in patients],
            chronic_quantiles=chronic_quantiles,
        )


# -----------------------------------------------------------------------------
# Column coercion
# -----------------------------------------------------------------------------

def _as_float_array(values: Iterable[Any], name: str, allow_missing: bool = False) -> np.ndarray:
    if isinstance(values, np.ndarray):
        raw = values.ravel()
    else:
        raw = list(values)
    try:
        if allow_missing:
            # None and pandas NA both become NaN
            arr = np.array([np.nan if pd.isna(v) else v for v in raw], dtype=float)
        else:
            arr = np.array(raw, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Column '{name}' is not numeric: {e}") from e
    return arr


def _as_flag_array(values: Iterable[Any]) -> np.ndarray:
    raw = values.ravel() if isinstance(values, np.ndarray) else np.array(list(values), dtype=object)
    try:
        numeric = np.array(raw, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Column 'survived' is not boolean: {e}") from e
    if not np.all(np.isin(numeric, (0.0, 1.0))):
        raise InvalidInput("Column 'survived' must contain only 0/1 or booleans")
    return numeric.astype(bool)


# -----------------------------------------------------------------------------
# Synthetic populations
# -----------------------------------------------------------------------------

def generate_synthetic_population(
    n: int,
    seed: Optional[int] = None,
    burden_missing_rate: float = 0.1,
    chronic_quantiles: Sequence[float] = (0.75, 0.90)
) -> Population:
    """
    Generate a plausible ICU population.

    Survival probability falls with SOFA score and age, so the
    policies produce visibly different outcomes.

    Args:
        n: Number of patients
        seed: Random seed
        burden_missing_rate: Fraction of burden scores left missing
        chronic_quantiles: (major, severe) percentiles for tier thresholds

    Returns:
        Population
    """
    rng = np.random.default_rng(seed)

    age = np.clip(rng.normal(62.0, 16.0, size=n), 18.0, 100.0).round()
    sofa = np.clip(rng.poisson(7.0, size=n), 0, 24).astype(float)
    burden = rng.gamma(shape=1.5, scale=3.0, size=n).round(1)
    burden[rng.random(n) < burden_missing_rate] = np.nan
    race = rng.choice(['white', 'black', 'asian', 'other'], size=n, p=[0.6, 0.2, 0.1, 0.1])

    logit = 3.0 - 0.25 * sofa - 0.03 * (age - 60.0) - 0.05 * np.nan_to_num(burden)
    p_survive = 1.0 / (1.0 + np.exp(-logit))
    survived = rng.random(n) < p_survive

    return Population(
        age=age,
        sofa=sofa,
        survived=survived,
        burden=burden,
        race=race,
        chronic_quantiles=chronic_quantiles,
    )
