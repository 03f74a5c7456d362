"""
Summary statistics and paired comparisons across policies.

All policies are evaluated on the same bootstrap cohorts, so their
outcome vectors are correlated. The paired test subtracts the sample
covariance from the pooled variance:

    z = |mean(a - b)| / sqrt(var(a) + var(b) - 2 cov(a, b))

and reads a two-sided p-value from a t distribution with
(population size - 1) degrees of freedom.
"""

import math
import warnings
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from .errors import InvalidInput, NumericDegeneracy, NumericDegeneracyWarning
from .outcome import OutcomeMatrix


Z_95 = 1.96
P_FLOOR = 0.001


# =============================================================================
# Formatting
# =============================================================================

def format_interval(low: float, high: float) -> str:
    """'low-high' with one decimal place."""
    return f"{low:.1f}-{high:.1f}"


def format_p_value(p: float) -> str:
    """
    Report a p-value as '<0.001' or '=x' with one significant figure.

    NaN (undefined comparison) is reported as 'NaN'.
    """
    if p is None or math.isnan(p):
        return "NaN"
    if p < P_FLOOR:
        return f"<{P_FLOOR}"
    return f"={p:.1g}"


# =============================================================================
# Per-policy summaries
# =============================================================================

@dataclass
class PolicySummary:
    """Lives-saved percentage summary for one policy."""
    policy: str
    mean_pct: float
    std_pct: float
    credible_interval: Tuple[float, float]    # 2.5 / 97.5 percentiles
    confidence_interval: Tuple[float, float]  # mean +/- 1.96 sd

    def as_row(self) -> Dict[str, object]:
        return {
            'policy': self.policy,
            'mean_pct': self.mean_pct,
            'std_pct': self.std_pct,
            'credible_low': self.credible_interval[0],
            'credible_high': self.credible_interval[1],
            'confidence_low': self.confidence_interval[0],
            'confidence_high': self.confidence_interval[1],
            'lives_saved': f"{self.mean_pct:.1f}",
            'credible_interval': format_interval(*self.credible_interval),
            'confidence_interval': format_interval(*self.confidence_interval),
        }


def summarise_policy(
    counts: np.ndarray,
    cohort_size: int,
    policy: str = ''
) -> PolicySummary:
    """
    Summarise one policy's outcome distribution.

    Args:
        counts: Survivor counts, one per replicate
        cohort_size: Patients per cohort
        policy: Policy name for labelling

    Returns:
        PolicySummary in percentage units
    """
    counts = np.asarray(counts, dtype=float)
    if counts.size == 0:
        raise InvalidInput("No replicates to summarise")
    if cohort_size <= 0:
        raise InvalidInput(f"cohort_size must be > 0, got {cohort_size}")

    pct = 100.0 * counts / cohort_size
    mean = float(np.mean(pct))
    std = float(np.std(pct, ddof=1)) if pct.size > 1 else 0.0
    low, high = np.percentile(pct, [2.5, 97.5])

    return PolicySummary(
        policy=policy,
        mean_pct=mean,
        std_pct=std,
        credible_interval=(float(low), float(high)),
        confidence_interval=(mean - Z_95 * std, mean + Z_95 * std),
    )


def summarise_outcomes(outcomes: OutcomeMatrix) -> pd.DataFrame:
    """
    Summary table, one row per policy (indexed by policy name).

    Columns include numeric interval bounds and the formatted
    'lives_saved', 'credible_interval' and 'confidence_interval' strings.
    """
    rows = [
        summarise_policy(outcomes.counts[:, j], outcomes.cohort_size, name).as_row()
        for j, name in enumerate(outcomes.policy_names)
    ]
    return pd.DataFrame(rows).set_index('policy')


# =============================================================================
# Paired covariance-adjusted test
# =============================================================================

@dataclass
class PairedTestResult:
    """Result of comparing two paired outcome vectors."""
    mean_difference: float  # |mean(a - b)|
    var_a: float
    var_b: float
    covariance: float
    z: float
    p_value: float
    degenerate: bool = False

    @property
    def formatted(self) -> str:
        return format_p_value(self.p_value)


def paired_test(
    a: np.ndarray,
    b: np.ndarray,
    dof: int,
    strict: bool = False,
    same_policy: bool = False
) -> PairedTestResult:
    """
    Covariance-adjusted paired test between two outcome vectors.

    Args:
        a, b: Outcomes for two policies over the same replicates
        dof: Degrees of freedom for the t distribution (population size - 1)
        strict: Raise NumericDegeneracy instead of returning a NaN result
        same_policy: a and b are the same policy's outcomes

    Returns:
        PairedTestResult. A policy compared with itself gives p = 1, as do
        two policies with identical non-constant outcomes. Two constant
        vectors, or a nonzero constant difference, have no defined
        statistic and give p = NaN with degenerate=True (and a
        NumericDegeneracyWarning).
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.shape != b.shape or a.ndim != 1:
        raise InvalidInput(f"Paired vectors must be 1-D and equal length, got {a.shape} and {b.shape}")
    if a.size < 2:
        raise InvalidInput("Paired test needs at least 2 replicates")
    if dof < 1:
        raise InvalidInput(f"Degrees of freedom must be >= 1, got {dof}")

    cov = np.cov(a, b, ddof=1)
    var_a, var_b, covariance = float(cov[0, 0]), float(cov[1, 1]), float(cov[0, 1])

    diff = a - b
    mean_difference = abs(float(np.mean(diff)))

    both_constant = var_a == 0 and var_b == 0
    if same_policy or (np.all(diff == 0) and not both_constant):
        return PairedTestResult(
            mean_difference=0.0, var_a=var_a, var_b=var_b,
            covariance=covariance, z=0.0, p_value=1.0,
        )

    pooled = var_a + var_b - 2.0 * covariance
    if both_constant or np.all(diff == diff[0]) or pooled <= 0:
        message = (
            f"Paired differences have zero variance (var_a={var_a:.4g}, "
            f"var_b={var_b:.4g}, mean difference {mean_difference:.4g}); "
            f"comparison is undefined"
        )
        if strict:
            raise NumericDegeneracy(message)
        warnings.warn(message, NumericDegeneracyWarning, stacklevel=2)
        return PairedTestResult(
            mean_difference=mean_difference, var_a=var_a, var_b=var_b,
            covariance=covariance, z=float('nan'), p_value=float('nan'),
            degenerate=True,
        )

    z = mean_difference / math.sqrt(pooled)
    p = min(1.0, 2.0 * float(stats.t.cdf(-z, df=dof)))

    return PairedTestResult(
        mean_difference=mean_difference, var_a=var_a, var_b=var_b,
        covariance=covariance, z=z, p_value=p,
    )


def pairwise_tests(
    outcomes: OutcomeMatrix,
    strict: bool = False
) -> Dict[Tuple[str, str], PairedTestResult]:
    """
    Paired tests for every ordered pair of policies, self-pairs included.

    Each unordered pair is tested once and shared by both orderings,
    so the result is symmetric.
    """
    names = outcomes.policy_names
    dof = outcomes.cohort_size - 1
    results: Dict[Tuple[str, str], PairedTestResult] = {}
    for i, name_i in enumerate(names):
        for j in range(i, len(names)):
            name_j = names[j]
            result = paired_test(
                outcomes.counts[:, i], outcomes.counts[:, j], dof,
                strict=strict, same_policy=(i == j),
            )
            results[(name_i, name_j)] = result
            results[(name_j, name_i)] = result
    return results


def pairwise_p_values(
    outcomes: OutcomeMatrix,
    tests: Optional[Dict[Tuple[str, str], PairedTestResult]] = None
) -> pd.DataFrame:
    """Square DataFrame of raw p-values (NaN where undefined)."""
    if tests is None:
        tests = pairwise_tests(outcomes)
    names = outcomes.policy_names
    values = [[tests[(r, c)].p_value for c in names] for r in names]
    return pd.DataFrame(values, index=list(names), columns=list(names))


def pairwise_comparison(
    outcomes: OutcomeMatrix,
    tests: Optional[Dict[Tuple[str, str], PairedTestResult]] = None
) -> pd.DataFrame:
    """Square DataFrame of formatted p-values ('<0.001', '=0.04', 'NaN')."""
    return pairwise_p_values(outcomes, tests).apply(
        lambda col: col.map(format_p_value)
    )


def significant_pairs(
    outcomes: OutcomeMatrix,
    alpha: float = 0.05,
    tests: Optional[Dict[Tuple[str, str], PairedTestResult]] = None
) -> List[Tuple[str, str]]:
    """Unordered policy pairs whose p-value is below alpha."""
    if tests is None:
        tests = pairwise_tests(outcomes)
    names = outcomes.policy_names
    pairs = []
    for i, name_i in enumerate(names):
        for name_j in names[i + 1:]:
            p = tests[(name_i, name_j)].p_value
            if not math.isnan(p) and p < alpha:
                pairs.append((name_i, name_j))
    return pairs
