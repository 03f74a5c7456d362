"""
Allocation policies for a scarce critical-care resource.

Every policy follows the same pattern:
1. Build sort keys for each patient in the cohort
2. Order patients ascending by those keys (stable, cohort order breaks ties)
3. Give the resource to the first `capacity` patients

Policies differ only in the keys. Composite keys are kept as separate
fields (tier, bucket, random tiebreak) rather than summed, so a tiebreak
can never push a patient across a tier boundary.
"""

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Dict, List, Optional, Sequence

import numpy as np

from .errors import InvalidInput
from .population import ChronicTier
from .sampler import Cohort


class Decision(IntEnum):
    """Per-patient allocation outcome."""
    NO_CRITICAL_CARE = 0  # did not receive the resource
    DIED_IN_CARE = 1      # received the resource, died
    SURVIVED_IN_CARE = 2  # received the resource, survived


# -----------------------------------------------------------------------------
# Tier and bucket helpers
# -----------------------------------------------------------------------------

def bucket(values: np.ndarray, edges: Sequence[float], start: int = 1) -> np.ndarray:
    """
    Assign values to ordered buckets.

    Bucket k (counting from `start`) holds values in [edges[k-1], edges[k]),
    so with edges (9, 12, 15): <9 -> 1, <12 -> 2, <15 -> 3, else 4.
    """
    return start + np.digitize(np.asarray(values, dtype=float), edges)


def new_york_tier(sofa: np.ndarray) -> np.ndarray:
    """0 = highest priority (<8), 1 = intermediate (<12), 2 = no critical care."""
    return bucket(sofa, (8, 12), start=0)


def maryland_score(sofa: np.ndarray, chronic_tier: np.ndarray) -> np.ndarray:
    """SOFA tier 1-4 plus 3 for severe chronic disease."""
    return bucket(sofa, (9, 12, 15)) + 3 * (chronic_tier == ChronicTier.SEVERE)


def maryland_age_bucket(age: np.ndarray) -> np.ndarray:
    return bucket(age, (50, 70, 85))


def pennsylvania_score(sofa: np.ndarray, chronic_tier: np.ndarray) -> np.ndarray:
    """SOFA tier 1-4 plus 2 for major, 4 for severe chronic disease."""
    chronic_points = np.select(
        [chronic_tier == ChronicTier.MAJOR, chronic_tier == ChronicTier.SEVERE],
        [2, 4],
        default=0,
    )
    return bucket(sofa, (6, 9, 12)) + chronic_points


def pennsylvania_age_bucket(age: np.ndarray) -> np.ndarray:
    return bucket(age, (41, 61, 76))


# -----------------------------------------------------------------------------
# Policies
# -----------------------------------------------------------------------------

class Policy(ABC):
    """
    Abstract base class for allocation policies.

    Subclasses implement sort_keys(); ranking and the capacity cutoff
    are shared.
    """

    name: str = ''
    uses_randomness: bool = True

    @abstractmethod
    def sort_keys(
        self,
        cohort: Cohort,
        rng: Optional[np.random.Generator] = None
    ) -> List[np.ndarray]:
        """
        Sort keys for the cohort, most significant first.

        Args:
            cohort: Cohort to rank
            rng: Generator for random tiebreaks (unused by deterministic policies)

        Returns:
            List of arrays, each of length len(cohort)
        """
        pass

    def rank(
        self,
        cohort: Cohort,
        rng: Optional[np.random.Generator] = None
    ) -> np.ndarray:
        """Cohort positions in allocation order (first = highest priority)."""
        if self.uses_randomness and rng is None:
            raise InvalidInput(f"Policy '{self.name}' needs a random generator")
        keys = self.sort_keys(cohort, rng)
        # lexsort treats the last key as primary and is stable
        return np.lexsort(keys[::-1])

    def allocate(
        self,
        cohort: Cohort,
        capacity: int,
        rng: Optional[np.random.Generator] = None
    ) -> np.ndarray:
        """
        Allocate the resource to the top `capacity` patients.

        Args:
            cohort: Cohort to allocate over
            capacity: Number of resource units
            rng: Generator for this (replicate, policy) pair

        Returns:
            Array of Decision codes, one per cohort slot
        """
        n = len(cohort)
        if capacity < 0:
            raise InvalidInput(f"capacity must be >= 0, got {capacity}")
        if capacity > n:
            raise InvalidInput(f"capacity {capacity} exceeds cohort size {n}")

        decisions = np.full(n, int(Decision.NO_CRITICAL_CARE), dtype=np.int8)
        if n == 0:
            return decisions

        chosen = self.rank(cohort, rng)[:capacity]
        decisions[chosen] = np.where(
            cohort.survived[chosen],
            int(Decision.SURVIVED_IN_CARE),
            int(Decision.DIED_IN_CARE),
        )
        return decisions

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class LotteryPolicy(Policy):
    """Pure lottery: one uniform draw per patient, no clinical information."""

    name = 'Lottery'

    def sort_keys(self, cohort, rng=None):
        return [rng.random(len(cohort))]


class SickestFirstPolicy(Policy):
    """Highest SOFA first, cohort order breaks ties."""

    name = 'Sickest first'
    uses_randomness = False

    def sort_keys(self, cohort, rng=None):
        return [-cohort.sofa]


class YoungestFirstPolicy(Policy):
    """Youngest first, cohort order breaks ties."""

    name = 'Youngest first'
    uses_randomness = False

    def sort_keys(self, cohort, rng=None):
        return [cohort.age]


class NewYorkPolicy(Policy):
    """
    New York ventilator guideline.

    Three SOFA tiers (<8, <12, >=12) with a lottery within each tier.
    Tier 2 ("no critical care") sorts after every tier 0/1 patient and
    is only reached when capacity exceeds the tier 0/1 count.
    """

    name = 'New York'

    def sort_keys(self, cohort, rng=None):
        return [new_york_tier(cohort.sofa), rng.random(len(cohort))]


class MarylandPolicy(Policy):
    """
    Maryland framework.

    Ascending by (SOFA tier + 3 if severe chronic disease, age bucket, lottery).
    """

    name = 'Maryland'

    def sort_keys(self, cohort, rng=None):
        return [
            maryland_score(cohort.sofa, cohort.chronic_tier),
            maryland_age_bucket(cohort.age),
            rng.random(len(cohort)),
        ]


class PennsylvaniaPolicy(Policy):
    """
    Pennsylvania framework.

    Ascending by (SOFA tier + 2 major / 4 severe chronic disease, age bucket, lottery).
    """

    name = 'Pennsylvania'

    def sort_keys(self, cohort, rng=None):
        return [
            pennsylvania_score(cohort.sofa, cohort.chronic_tier),
            pennsylvania_age_bucket(cohort.age),
            rng.random(len(cohort)),
        ]


POLICY_CLASSES = (
    LotteryPolicy,
    SickestFirstPolicy,
    YoungestFirstPolicy,
    NewYorkPolicy,
    MarylandPolicy,
    PennsylvaniaPolicy,
)


def default_policies() -> List[Policy]:
    """The six policies in reporting order."""
    return [cls() for cls in POLICY_CLASSES]


def get_policy(name: str) -> Policy:
    """Look up a policy by display name (case-insensitive)."""
    lookup: Dict[str, type] = {cls.name.lower(): cls for cls in POLICY_CLASSES}
    try:
        return lookup[name.lower()]()
    except KeyError:
        raise InvalidInput(
            f"Unknown policy '{name}'. Known: {[cls.name for cls in POLICY_CLASSES]}"
        ) from None
