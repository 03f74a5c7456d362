"""
Reduce allocated cohorts to outcome counts.
"""

from dataclasses import dataclass
from typing import Dict, List

import numpy as np
import pandas as pd

from .errors import InvalidInput
from .policy import Decision
from .sampler import Cohort


def count_survivors(decisions: np.ndarray) -> int:
    """Number of resource recipients who survived (0 for an empty cohort)."""
    return int(np.count_nonzero(np.asarray(decisions) == Decision.SURVIVED_IN_CARE))


def decision_counts(decisions: np.ndarray) -> Dict[str, int]:
    """Count of each Decision, keyed by lower-case decision name."""
    decisions = np.asarray(decisions)
    return {
        d.name.lower(): int(np.count_nonzero(decisions == d))
        for d in Decision
    }


def allocation_frame(cohort: Cohort, decisions: np.ndarray) -> pd.DataFrame:
    """
    Per-patient view of one allocation.

    Returns DataFrame with columns:
    - patient: row index in the base population
    - age, sofa, chronic_tier, survived
    - decision: Decision name
    """
    return pd.DataFrame({
        'patient': cohort.indices,
        'age': cohort.age,
        'sofa': cohort.sofa,
        'chronic_tier': cohort.chronic_tier,
        'survived': cohort.survived,
        'decision': [Decision(int(d)).name for d in decisions],
    })


@dataclass
class OutcomeMatrix:
    """
    Survivor counts for every (replicate, policy) pair.

    Attributes:
        counts: Array of shape (n_replicates, n_policies)
        policy_names: Column labels, in policy order
        cohort_size: Patients per cohort (base population size)
        capacity: Resource units per cohort
    """
    counts: np.ndarray
    policy_names: List[str]
    cohort_size: int
    capacity: int

    def __post_init__(self):
        self.counts = np.asarray(self.counts, dtype=np.int64)
        self.policy_names = list(self.policy_names)
        if self.counts.ndim != 2 or self.counts.shape[1] != len(self.policy_names):
            raise InvalidInput(
                f"counts shape {self.counts.shape} does not match "
                f"{len(self.policy_names)} policies"
            )
        if len(set(self.policy_names)) != len(self.policy_names):
            raise InvalidInput(f"Duplicate policy names: {self.policy_names}")

    @property
    def n_replicates(self) -> int:
        return self.counts.shape[0]

    def column(self, policy_name: str) -> np.ndarray:
        """Counts for one policy across replicates."""
        try:
            j = self.policy_names.index(policy_name)
        except ValueError:
            raise KeyError(f"Policy '{policy_name}' not in outcome matrix") from None
        return self.counts[:, j]

    def percentages(self) -> np.ndarray:
        """Lives saved as a percentage of cohort size."""
        return 100.0 * self.counts / self.cohort_size

    def to_dataframe(self) -> pd.DataFrame:
        """Wide table: one row per replicate, one column per policy."""
        df = pd.DataFrame(self.counts, columns=list(self.policy_names))
        df.index.name = 'replicate'
        return df

    def to_long_dataframe(self) -> pd.DataFrame:
        """
        Long table for plotting and export.

        Columns: replicate, policy, lives_saved, lives_saved_pct
        """
        df = self.to_dataframe().reset_index().melt(
            id_vars='replicate', var_name='policy', value_name='lives_saved'
        )
        df['lives_saved_pct'] = 100.0 * df['lives_saved'] / self.cohort_size
        return df
