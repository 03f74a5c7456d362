"""
Process-wide simulation settings.

One SimulationConfig is built at startup and handed to every component.
It is frozen so nothing can change the seed, scarcity or thresholds
part way through a study.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import InvalidInput


DEFAULT_SEED = 2020
DEFAULT_REPLICATES = 10000
DEFAULT_SCARCITY = 0.5
DEFAULT_CHRONIC_QUANTILES = (0.75, 0.90)


@dataclass(frozen=True)
class SimulationConfig:
    """
    Settings shared by sampler, runner and statistics.

    Attributes:
        seed: Root seed for all random streams (None = fresh entropy)
        n_replicates: Number of bootstrap cohorts
        scarcity: Fraction of the population that can receive the resource
        chronic_quantiles: (major, severe) percentile cut points on burden score
        n_jobs: Parallel workers for the replicate grid (1 = sequential)
        batch_size: Replicates handled per parallel task
        verbose: Print progress lines
    """
    seed: Optional[int] = DEFAULT_SEED
    n_replicates: int = DEFAULT_REPLICATES
    scarcity: float = DEFAULT_SCARCITY
    chronic_quantiles: Tuple[float, float] = DEFAULT_CHRONIC_QUANTILES
    n_jobs: int = 1
    batch_size: int = 250
    verbose: bool = False

    def __post_init__(self):
        # paired comparisons need at least two replicates
        if self.n_replicates < 2:
            raise InvalidInput(f"n_replicates must be >= 2, got {self.n_replicates}")
        if not (0.0 <= self.scarcity <= 1.0) or math.isnan(self.scarcity):
            raise InvalidInput(f"scarcity must be in [0, 1], got {self.scarcity}")
        if len(self.chronic_quantiles) != 2:
            raise InvalidInput(
                f"chronic_quantiles needs two values, got {self.chronic_quantiles}"
            )
        low, high = self.chronic_quantiles
        if not (0.0 < low < high < 1.0):
            raise InvalidInput(
                f"chronic_quantiles must satisfy 0 < major < severe < 1, "
                f"got {self.chronic_quantiles}"
            )
        if self.batch_size < 1:
            raise InvalidInput(f"batch_size must be >= 1, got {self.batch_size}")
        if self.n_jobs == 0:
            raise InvalidInput("n_jobs cannot be 0")

    def capacity(self, population_size: int) -> int:
        """Resource units per cohort: floor(size * scarcity)."""
        if population_size < 0:
            raise InvalidInput(f"population size must be >= 0, got {population_size}")
        return int(math.floor(population_size * self.scarcity))
