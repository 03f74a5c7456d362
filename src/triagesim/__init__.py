"""
triagesim - Monte Carlo comparison of scarce-resource triage policies.
"""

from .errors import (
    InvalidInput,
    NumericDegeneracy,
    NumericDegeneracyWarning,
)

from .config import SimulationConfig

from .population import (
    ChronicTier,
    ChronicThresholds,
    Patient,
    Population,
    generate_synthetic_population,
)

from .sampler import (
    Cohort,
    CohortSampler,
    identity_cohort,
)

from .policy import (
    Decision,
    Policy,
    LotteryPolicy,
    SickestFirstPolicy,
    YoungestFirstPolicy,
    NewYorkPolicy,
    MarylandPolicy,
    PennsylvaniaPolicy,
    default_policies,
    get_policy,
)

from .outcome import (
    OutcomeMatrix,
    count_survivors,
    decision_counts,
    allocation_frame,
)

from .statistics import (
    PolicySummary,
    PairedTestResult,
    summarise_policy,
    summarise_outcomes,
    paired_test,
    pairwise_tests,
    pairwise_p_values,
    pairwise_comparison,
    significant_pairs,
    format_p_value,
    format_interval,
)

from .runner import (
    StudyResult,
    run_replicate,
    run_replicates,
    run_study,
)

__all__ = [
    # Errors
    "InvalidInput",
    "NumericDegeneracy",
    "NumericDegeneracyWarning",
    # Config
    "SimulationConfig",
    # Population
    "ChronicTier",
    "ChronicThresholds",
    "Patient",
    "Population",
    "generate_synthetic_population",
    # Sampling
    "Cohort",
    "CohortSampler",
    "identity_cohort",
    # Policies
    "Decision",
    "Policy",
    "LotteryPolicy",
    "SickestFirstPolicy",
    "YoungestFirstPolicy",
    "NewYorkPolicy",
    "MarylandPolicy",
    "PennsylvaniaPolicy",
    "default_policies",
    "get_policy",
    # Outcomes
    "OutcomeMatrix",
    "count_survivors",
    "decision_counts",
    "allocation_frame",
    # Statistics
    "PolicySummary",
    "PairedTestResult",
    "summarise_policy",
    "summarise_outcomes",
    "paired_test",
    "pairwise_tests",
    "pairwise_p_values",
    "pairwise_comparison",
    "significant_pairs",
    "format_p_value",
    "format_interval",
    # Runner
    "StudyResult",
    "run_replicate",
    "run_replicates",
    "run_study",
]
