"""
Comparison & Insight Generator Service

Walks a chronologically ordered timeline of cohorts and compares each cohort
with the one before it:
- count-based total change and direction
- severity score change
- count-based change per prong
- a full drift report (previous cohort as baseline)

Insight rules are evaluated independently for every consecutive pair and all
matching rules fire:
- total change >= +50% with a non-empty previous cohort -> significant_increase
- total change <= -30% -> reduction
- 2 or more new codes -> new_patterns
- a prong's count grew more than 30% -> prong_scrutiny (one per prong)
- critical count grew by 5 or more -> critical_increase
- current cohort empty while the previous was not -> no_data
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from adjudication_drift.models import (
    INSIGHT_ACTIONS,
    TREND_LABELS,
    Cohort,
    CohortOverview,
    CohortPeak,
    CohortSummary,
    Distribution,
    Insight,
    InsightType,
    PairwiseComparison,
    PeriodInfo,
    Prong,
    ProngChange,
    Severity,
    Trend,
    prong_label,
)
from adjudication_drift.services.alerts import with_alerts
from adjudication_drift.services.distribution import round_half_up, safe_ratio, severity_score
from adjudication_drift.services.drift_detector import (
    DEFAULT_ABSOLUTE_PT_FLOOR,
    DEFAULT_MIN_NEW_CODE_COUNT,
    DEFAULT_THRESHOLD_PCT,
    detect_drift,
    direction_of,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

SIGNIFICANT_INCREASE_PCT: int = 50
REDUCTION_PCT: int = -30
NEW_PATTERN_MIN_CODES: int = 2
NEW_PATTERN_EXAMPLES: int = 2
PRONG_SCRUTINY_PCT: int = 30
CRITICAL_INCREASE_COUNT: int = 5

# Last comparison's total change beyond which the overview reports a trend
TREND_CHANGE_PCT: int = 20

NOT_ENOUGH_DATA_MESSAGE: str = "Not enough data for analysis"

TimelineEntry = Tuple[Cohort, Distribution]


# =============================================================================
# Helpers
# =============================================================================


def count_change_pct(previous: int, current: int) -> int:
    """Rounded relative change of a count; 100 when it grew from zero."""
    if previous > 0:
        return round_half_up(safe_ratio(current - previous, previous) * 100)
    return 100 if current > 0 else 0


def _severity_counts(distribution: Distribution) -> Dict[Severity, int]:
    return {severity: share.count for severity, share in distribution.by_severity.items()}


def _period(cohort: Cohort) -> PeriodInfo:
    return PeriodInfo(key=cohort.key, label=cohort.label)


def _insight(insight_type: InsightType, title: str, text: str, cohort_key: str) -> Insight:
    return Insight(
        type=insight_type,
        title=title,
        text=text,
        action=INSIGHT_ACTIONS[insight_type],
        cohort_key=cohort_key,
    )


# =============================================================================
# Pairwise Comparison
# =============================================================================


def compare_pair(
    previous: TimelineEntry,
    current: TimelineEntry,
    threshold_pct: float = DEFAULT_THRESHOLD_PCT,
    absolute_pt_floor: float = DEFAULT_ABSOLUTE_PT_FLOOR,
    min_new_code_count: int = DEFAULT_MIN_NEW_CODE_COUNT,
) -> PairwiseComparison:
    """Compare one cohort with the cohort before it."""
    prev_cohort, prev_dist = previous
    cur_cohort, cur_dist = current

    total_change = count_change_pct(prev_dist.total, cur_dist.total)
    severity_change = (
        severity_score(_severity_counts(cur_dist), cur_dist.total)
        - severity_score(_severity_counts(prev_dist), prev_dist.total)
    )

    prong_changes = {}
    for prong in Prong:
        prev_count = prev_dist.by_prong[prong].count
        cur_count = cur_dist.by_prong[prong].count
        change = count_change_pct(prev_count, cur_count)
        prong_changes[prong] = ProngChange(
            previous=prev_count,
            current=cur_count,
            change_pct=change,
            direction=direction_of(change),
        )

    drift = detect_drift(
        prev_dist,
        cur_dist,
        threshold_pct=threshold_pct,
        absolute_pt_floor=absolute_pt_floor,
        baseline_period=_period(prev_cohort),
        recent_period=_period(cur_cohort),
        min_new_code_count=min_new_code_count,
    )

    return PairwiseComparison(
        from_key=prev_cohort.key,
        to_key=cur_cohort.key,
        from_label=prev_cohort.short_label,
        to_label=cur_cohort.short_label,
        total_change_pct=total_change,
        total_direction=direction_of(total_change),
        severity_score_change=severity_change,
        severity_direction=direction_of(severity_change),
        prong_changes=prong_changes,
        drift=with_alerts(drift),
    )


def insights_for(
    comparison: PairwiseComparison,
    previous: Distribution,
    current: Distribution,
) -> List[Insight]:
    """Evaluate every insight rule against one comparison."""
    insights: List[Insight] = []
    key = comparison.to_key
    span = f"{comparison.from_label} to {comparison.to_label}"

    if comparison.total_change_pct >= SIGNIFICANT_INCREASE_PCT and previous.total > 0:
        insights.append(_insight(
            InsightType.SIGNIFICANT_INCREASE,
            "Significant increase in issues",
            f"Issues rose {comparison.total_change_pct}% from {span} "
            f"({previous.total} to {current.total}).",
            key,
        ))

    if comparison.total_change_pct <= REDUCTION_PCT:
        insights.append(_insight(
            InsightType.REDUCTION,
            "Reduction in issues",
            f"Issues fell {abs(comparison.total_change_pct)}% from {span} "
            f"({previous.total} to {current.total}).",
            key,
        ))

    new_codes = comparison.drift.new_codes
    if len(new_codes) >= NEW_PATTERN_MIN_CODES:
        examples = ", ".join(item.code for item in new_codes[:NEW_PATTERN_EXAMPLES])
        insights.append(_insight(
            InsightType.NEW_PATTERNS,
            "New issue patterns",
            f"{len(new_codes)} issue types appeared in {comparison.to_label} "
            f"that did not occur in {comparison.from_label}, e.g. {examples}.",
            key,
        ))

    for prong, change in comparison.prong_changes.items():
        if change.change_pct > PRONG_SCRUTINY_PCT:
            insights.append(_insight(
                InsightType.PRONG_SCRUTINY,
                f"Increased scrutiny on {prong.value}",
                f"{prong_label(prong)} issues grew {change.change_pct}% "
                f"({change.previous} to {change.current}).",
                key,
            ))

    prev_critical = previous.by_severity[Severity.CRITICAL].count
    cur_critical = current.by_severity[Severity.CRITICAL].count
    if cur_critical - prev_critical >= CRITICAL_INCREASE_COUNT:
        insights.append(_insight(
            InsightType.CRITICAL_INCREASE,
            "Critical issues increasing",
            f"Critical issues went from {prev_critical} to {cur_critical} ({span}).",
            key,
        ))

    if current.total == 0 and previous.total > 0:
        insights.append(_insight(
            InsightType.NO_DATA,
            "No data for the period",
            f"No issues were recorded for {comparison.to_label}; "
            f"{comparison.from_label} had {previous.total}.",
            key,
        ))

    return insights


def compare_timeline(
    timeline: Sequence[TimelineEntry],
    threshold_pct: float = DEFAULT_THRESHOLD_PCT,
    absolute_pt_floor: float = DEFAULT_ABSOLUTE_PT_FLOOR,
    min_new_code_count: int = DEFAULT_MIN_NEW_CODE_COUNT,
) -> Tuple[List[PairwiseComparison], List[Insight]]:
    """
    Compare every consecutive pair of a chronological timeline.

    Args:
        timeline: (Cohort, Distribution) pairs in chronological order.
        threshold_pct: Significance threshold for the pairwise drift reports.
        absolute_pt_floor: Absolute-change floor for the pairwise drift reports.
        min_new_code_count: Recent count at which a new code is material.

    Returns:
        Tuple of (comparisons, insights). Both are empty for fewer than two
        cohorts.
    """
    comparisons: List[PairwiseComparison] = []
    insights: List[Insight] = []

    for previous, current in zip(timeline, timeline[1:]):
        comparison = compare_pair(previous, current, threshold_pct, absolute_pt_floor, min_new_code_count)
        comparisons.append(comparison)
        insights.extend(insights_for(comparison, previous[1], current[1]))

    logger.debug(f"Compared {len(comparisons)} cohort pairs, {len(insights)} insights")
    return comparisons, insights


# =============================================================================
# Overview
# =============================================================================


def summarize_cohorts(
    summaries: Sequence[CohortSummary],
    comparisons: Optional[Sequence[PairwiseComparison]] = None,
) -> CohortOverview:
    """
    Headline numbers across all cohorts.

    The trend follows the last comparison only: increasing above +20%,
    decreasing below -20%, stable otherwise.
    """
    if not summaries:
        return CohortOverview(message=NOT_ENOUGH_DATA_MESSAGE)

    total = sum(summary.stats.total for summary in summaries)

    peak = summaries[0]
    worst = summaries[0]
    for summary in summaries[1:]:
        if summary.stats.total > peak.stats.total:
            peak = summary
        if summary.stats.severity_score > worst.stats.severity_score:
            worst = summary

    trend = Trend.STABLE
    if comparisons:
        last_change = comparisons[-1].total_change_pct
        if last_change > TREND_CHANGE_PCT:
            trend = Trend.INCREASING
        elif last_change < -TREND_CHANGE_PCT:
            trend = Trend.DECREASING

    return CohortOverview(
        total_issues=total,
        avg_per_cohort=round_half_up(total / len(summaries)),
        cohorts_analyzed=len(summaries),
        peak_cohort=CohortPeak(label=peak.label, value=peak.stats.total),
        highest_severity=CohortPeak(label=worst.label, value=worst.stats.severity_score),
        trend=trend,
        trend_label=TREND_LABELS[trend],
    )
