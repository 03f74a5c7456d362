"""
Bootstrap cohort sampling.

Each replicate draws a cohort the size of the base population, uniformly
with replacement. Random streams come from a SeedSequence tree:

    root (config seed)
    └── replicate r
        ├── stream 0: cohort draw
        └── stream 1..P: one per policy

Child r is derived from (root entropy, r) alone, so any subset of
replicates can be generated in any order, in any process, and still
match a sequential run bit for bit.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional

import numpy as np

from .errors import InvalidInput
from .population import Population


@dataclass
class Cohort:
    """
    One bootstrap replicate of the base population.

    Attributes:
        replicate: Replicate id (-1 for the unpermuted base population)
        indices: Row index into the base population for each cohort slot
        population: The base population the indices refer to
    """
    replicate: int
    indices: np.ndarray
    population: Population
    age: np.ndarray = field(init=False, repr=False)
    sofa: np.ndarray = field(init=False, repr=False)
    survived: np.ndarray = field(init=False, repr=False)
    chronic_tier: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        idx = self.indices
        self.age = self.population.age[idx]
        self.sofa = self.population.sofa[idx]
        self.survived = self.population.survived[idx]
        self.chronic_tier = self.population.chronic_tier[idx]

    def __len__(self) -> int:
        return self.indices.size


@dataclass
class ReplicateStreams:
    """Independent generators for one replicate."""
    cohort: np.random.Generator
    policies: List[np.random.Generator]


class CohortSampler:
    """
    Draws reproducible bootstrap cohorts from a base population.
    """

    def __init__(
        self,
        population: Population,
        n_replicates: int,
        seed: Optional[int] = None,
        n_policies: int = 6
    ):
        """
        Args:
            population: Base population (Population rejects M = 0)
            n_replicates: Number of cohorts N
            seed: Root seed (None = fresh entropy, fixed for this sampler)
            n_policies: Number of policy streams to derive per replicate
        """
        if n_replicates < 1:
            raise InvalidInput(f"n_replicates must be >= 1, got {n_replicates}")
        if n_policies < 0:
            raise InvalidInput(f"n_policies must be >= 0, got {n_policies}")

        self.population = population
        self.n_replicates = n_replicates
        self.n_policies = n_policies
        # Keep the entropy so unseeded samplers stay reproducible within themselves
        self.entropy = np.random.SeedSequence(seed).entropy

    def replicate_seed(self, replicate: int) -> np.random.SeedSequence:
        """SeedSequence for a replicate; same as the r-th child of root.spawn()."""
        if not 0 <= replicate < self.n_replicates:
            raise IndexError(
                f"replicate {replicate} out of range [0, {self.n_replicates})"
            )
        return np.random.SeedSequence(self.entropy, spawn_key=(replicate,))

    def replicate_streams(self, replicate: int) -> ReplicateStreams:
        """Fresh cohort and per-policy generators for a replicate."""
        children = self.replicate_seed(replicate).spawn(1 + self.n_policies)
        return ReplicateStreams(
            cohort=np.random.default_rng(children[0]),
            policies=[np.random.default_rng(c) for c in children[1:]],
        )

    def draw(self, replicate: int, rng: np.random.Generator) -> Cohort:
        """Draw a cohort for `replicate` from the given generator."""
        m = len(self.population)
        indices = rng.integers(0, m, size=m)
        return Cohort(replicate=replicate, indices=indices, population=self.population)

    def sample(self, replicate: int) -> Cohort:
        """Cohort for a replicate, using that replicate's cohort stream."""
        return self.draw(replicate, self.replicate_streams(replicate).cohort)

    def identity_cohort(self) -> Cohort:
        """The base population in its original order, as a cohort."""
        return identity_cohort(self.population)

    def __iter__(self) -> Iterator[Cohort]:
        for r in range(self.n_replicates):
            yield self.sample(r)

    def __len__(self) -> int:
        return self.n_replicates


def identity_cohort(population: Population) -> Cohort:
    """Unpermuted cohort over the whole population."""
    return Cohort(
        replicate=-1,
        indices=np.arange(len(population)),
        population=population,
    )
