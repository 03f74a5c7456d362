"""
Replicate runner: the N x P grid of cohorts and policies.

For each replicate:
- draw a bootstrap cohort from the replicate's cohort stream
- apply every policy with its own fresh stream
- count surviving resource recipients

Replicates share nothing mutable, so they are split into batches and
optionally run in parallel with joblib. Results are identical for any
n_jobs or batch_size.
"""

import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .config import SimulationConfig
from .errors import InvalidInput
from .outcome import OutcomeMatrix, count_survivors
from .policy import Policy, default_policies
from .population import Population
from .sampler import CohortSampler
from .statistics import (
    PairedTestResult,
    pairwise_comparison,
    pairwise_p_values,
    pairwise_tests,
    summarise_outcomes,
)


def run_replicate(
    sampler: CohortSampler,
    replicate: int,
    policies: Sequence[Policy],
    capacity: int
) -> np.ndarray:
    """
    Run every policy on one replicate cohort.

    Returns:
        Survivor count per policy, in policy order
    """
    streams = sampler.replicate_streams(replicate)
    cohort = sampler.draw(replicate, streams.cohort)
    counts = np.empty(len(policies), dtype=np.int64)
    for j, policy in enumerate(policies):
        decisions = policy.allocate(cohort, capacity, streams.policies[j])
        counts[j] = count_survivors(decisions)
    return counts


def _run_batch(
    sampler: CohortSampler,
    start: int,
    stop: int,
    policies: Sequence[Policy],
    capacity: int
) -> Tuple[int, np.ndarray]:
    block = np.empty((stop - start, len(policies)), dtype=np.int64)
    for k, replicate in enumerate(range(start, stop)):
        block[k] = run_replicate(sampler, replicate, policies, capacity)
    return start, block


def _batches(n: int, size: int) -> List[Tuple[int, int]]:
    return [(start, min(start + size, n)) for start in range(0, n, size)]


def run_replicates(
    population: Population,
    config: Optional[SimulationConfig] = None,
    policies: Optional[Sequence[Policy]] = None
) -> OutcomeMatrix:
    """
    Build the outcome matrix for a population.

    Args:
        population: Base population
        config: Simulation settings (default SimulationConfig())
        policies: Policies to compare (default: the six standard policies)

    Returns:
        OutcomeMatrix of shape (config.n_replicates, len(policies))
    """
    config = config or SimulationConfig()
    policies = list(policies) if policies is not None else default_policies()
    if not policies:
        raise InvalidInput("At least one policy is required")

    n = len(population)
    capacity = config.capacity(n)

    sampler = CohortSampler(
        population,
        n_replicates=config.n_replicates,
        seed=config.seed,
        n_policies=len(policies),
    )
    batches = _batches(config.n_replicates, config.batch_size)

    if config.verbose:
        print(f"Running {config.n_replicates} replicates x {len(policies)} policies")
        print(f"  Population: {n}, capacity: {capacity}, n_jobs: {config.n_jobs}")

    t0 = time.time()
    if config.n_jobs == 1:
        results = []
        for i, (start, stop) in enumerate(batches):
            results.append(_run_batch(sampler, start, stop, policies, capacity))
            if config.verbose:
                print(f"  Batch {i + 1}/{len(batches)} done ({stop} replicates)")
    else:
        with Parallel(n_jobs=config.n_jobs, verbose=10 if config.verbose else 0) as parallel:
            results = parallel(
                delayed(_run_batch)(sampler, start, stop, policies, capacity)
                for start, stop in batches
            )

    counts = np.empty((config.n_replicates, len(policies)), dtype=np.int64)
    for start, block in results:
        counts[start:start + block.shape[0]] = block

    if config.verbose:
        print(f"Done in {time.time() - t0:.1f}s")

    return OutcomeMatrix(
        counts=counts,
        policy_names=[p.name for p in policies],
        cohort_size=n,
        capacity=capacity,
    )


@dataclass
class StudyResult:
    """Outcome matrix plus the summary and pairwise comparison tables."""
    outcomes: OutcomeMatrix
    summary: pd.DataFrame
    comparison: pd.DataFrame  # formatted p-value strings
    p_values: pd.DataFrame    # raw p-values
    tests: Dict[Tuple[str, str], PairedTestResult]


def run_study(
    population: Union[Population, pd.DataFrame],
    config: Optional[SimulationConfig] = None,
    policies: Optional[Sequence[Policy]] = None
) -> StudyResult:
    """
    Full pipeline: resample, allocate, aggregate, compare.

    A DataFrame population is converted with the config's chronic
    percentiles; a Population keeps the thresholds it was built with.
    """
    config = config or SimulationConfig()
    if isinstance(population, pd.DataFrame):
        population = Population.from_dataframe(
            population, chronic_quantiles=config.chronic_quantiles
        )

    outcomes = run_replicates(population, config, policies)
    tests = pairwise_tests(outcomes)

    return StudyResult(
        outcomes=outcomes,
        summary=summarise_outcomes(outcomes),
        comparison=pairwise_comparison(outcomes, tests),
        p_values=pairwise_p_values(outcomes, tests),
        tests=tests,
    )
