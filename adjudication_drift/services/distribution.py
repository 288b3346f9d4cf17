"""
Distribution Calculator Service

Turns a cohort into a frequency table: counts and percentages per taxonomy
code, per severity and per prong, in a single pass over the members.

Every percentage in the engine goes through ``safe_ratio``, so an empty
cohort yields 0 everywhere instead of a division error or NaN.
"""

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from threading import Event
from typing import Dict, Iterable, List, Optional, Sequence

from adjudication_drift.core.errors import AnalysisCancelled
from adjudication_drift.models import (
    SEVERITY_WEIGHTS,
    CodeShare,
    Cohort,
    CohortStats,
    CohortSummary,
    Distribution,
    IssueRecord,
    Prong,
    Severity,
    Share,
    TopCode,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Number of codes listed per cohort in summaries
TOP_CODES_LIMIT: int = 5

# Severity score multiplier: all-critical cohort (weight 4) scores 100
SEVERITY_SCORE_SCALE: int = 25


# =============================================================================
# Helpers
# =============================================================================


def safe_ratio(numerator: float, denominator: float) -> float:
    """Return numerator / denominator, or 0.0 when the denominator is not positive."""
    if denominator <= 0:
        return 0.0
    return numerator / denominator


def _percentage(count: int, total: int) -> float:
    return safe_ratio(count, total) * 100


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves away from zero."""
    if value >= 0:
        return int(value + 0.5)
    return -int(-value + 0.5)


# =============================================================================
# Distribution
# =============================================================================


def distribution_from_records(cohort_key: str, records: Sequence[IssueRecord]) -> Distribution:
    """
    Compute the distribution of an arbitrary record list.

    Args:
        cohort_key: Key reported on the distribution.
        records: Issue records to count.

    Returns:
        Distribution with every severity and prong present.
    """
    total = len(records)
    code_counts: Counter = Counter()
    code_severity: Dict[str, Counter] = {}
    code_prong: Dict[str, Counter] = {}
    severity_counts: Counter = Counter()
    prong_counts: Counter = Counter()

    for record in records:
        code = record.taxonomy_code
        code_counts[code] += 1
        code_severity.setdefault(code, Counter())[record.severity] += 1
        severity_counts[record.severity] += 1
        if record.prong_affected is not None:
            code_prong.setdefault(code, Counter())[record.prong_affected] += 1
            prong_counts[record.prong_affected] += 1

    by_code = {
        code: CodeShare(
            count=count,
            percentage=_percentage(count, total),
            severity_breakdown=dict(code_severity.get(code, {})),
            prong_breakdown=dict(code_prong.get(code, {})),
        )
        for code, count in sorted(code_counts.items())
    }

    by_severity = {
        severity: Share(count=severity_counts[severity], percentage=_percentage(severity_counts[severity], total))
        for severity in Severity
    }
    by_prong = {
        prong: Share(count=prong_counts[prong], percentage=_percentage(prong_counts[prong], total))
        for prong in Prong
    }

    return Distribution(
        cohort_key=cohort_key,
        total=total,
        by_code=by_code,
        by_severity=by_severity,
        by_prong=by_prong,
    )


def compute_distribution(cohort: Cohort) -> Distribution:
    """Compute the distribution of a cohort's members."""
    return distribution_from_records(cohort.key, cohort.members)


def _raise_if_cancelled(cancel_event: Optional[Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise AnalysisCancelled("Distribution computation abandoned")


def compute_distributions(
    cohorts: Iterable[Cohort],
    max_workers: Optional[int] = None,
    cancel_event: Optional[Event] = None,
) -> Dict[str, Distribution]:
    """
    Compute the distributions of many cohorts.

    With ``max_workers > 1`` the cohorts are processed in a thread pool. The
    result is keyed and ordered by cohort key whatever the completion order.

    Args:
        cohorts: Cohorts to process.
        max_workers: Thread pool size; None or 1 computes sequentially.
        cancel_event: Checked before each cohort; once set, the remaining
            cohorts are skipped.

    Returns:
        Dict of cohort key -> Distribution, ordered by key.

    Raises:
        AnalysisCancelled: If ``cancel_event`` is set before all cohorts are done.
    """
    cohort_list: List[Cohort] = list(cohorts)

    def _compute(cohort: Cohort) -> Distribution:
        _raise_if_cancelled(cancel_event)
        return compute_distribution(cohort)

    if max_workers is not None and max_workers > 1 and len(cohort_list) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(_compute, cohort_list))
    else:
        results = [_compute(cohort) for cohort in cohort_list]

    by_key = {distribution.cohort_key: distribution for distribution in results}
    return {key: by_key[key] for key in sorted(by_key)}


# =============================================================================
# Cohort Summary
# =============================================================================


def severity_score(by_severity: Dict[Severity, int], total: int) -> int:
    """
    Weighted severity of a cohort on a 0-100 scale.

    critical=4, high=3, medium=2, low=1, averaged and scaled by 25, so a
    cohort of only critical issues scores 100 and only low issues 25.
    """
    weighted = sum(SEVERITY_WEIGHTS[severity] * by_severity.get(severity, 0) for severity in Severity)
    return round_half_up(safe_ratio(weighted, total) * SEVERITY_SCORE_SCALE)


def top_codes(distribution: Distribution, limit: int = TOP_CODES_LIMIT) -> List[TopCode]:
    """Most frequent codes, count descending then code ascending."""
    ranked = sorted(distribution.by_code.items(), key=lambda item: (-item[1].count, item[0]))
    return [
        TopCode(code=code, count=share.count, percentage=round_half_up(share.percentage))
        for code, share in ranked[:limit]
    ]


def summarize_cohort(cohort: Cohort, distribution: Distribution) -> CohortSummary:
    """Attach count statistics and the severity score to a cohort."""
    by_severity = {severity: share.count for severity, share in distribution.by_severity.items()}
    by_prong = {prong: share.count for prong, share in distribution.by_prong.items()}

    stats = CohortStats(
        total=distribution.total,
        by_severity=by_severity,
        by_prong=by_prong,
        top_codes=top_codes(distribution),
        severity_score=severity_score(by_severity, distribution.total),
    )

    return CohortSummary(
        key=cohort.key,
        label=cohort.label,
        short_label=cohort.short_label,
        period_kind=cohort.period_kind,
        year=cohort.year,
        month=cohort.month,
        quarter=cohort.quarter,
        stats=stats,
    )
