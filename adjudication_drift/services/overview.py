"""
Trends Overview Service

Filtered snapshot of the issue stream for a reporting period: the most
frequent codes with their severity, prong, outcome and service center
breakdowns, monthly volume by severity, prong and severity distributions,
documents per outcome, the busiest service centers, and the filter values
available in the period.

Periods end at ``as_of`` and are either a named lookback (3months, 6months,
1year, all) or an explicit date range.
"""

import logging
from collections import Counter
from datetime import datetime
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

import pandas as pd

from adjudication_drift.core.errors import InvalidConfiguration
from adjudication_drift.models import (
    PRONG_LABELS,
    SEVERITY_LABELS,
    FilterOptions,
    IssueFilter,
    IssueRecord,
    MonthlySeverityCount,
    OutcomeType,
    ProngShare,
    ServiceCenterShare,
    Severity,
    SeverityShare,
    TopIssue,
    TrendsOverview,
)
from adjudication_drift.services.distribution import distribution_from_records, round_half_up

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Named lookback periods in calendar months; None means unbounded
PERIOD_MONTHS: Mapping[str, Optional[int]] = MappingProxyType({
    "3months": 3,
    "6months": 6,
    "1year": 12,
    "all": None,
})

DEFAULT_PERIOD: str = "6months"

TOP_ISSUES_LIMIT: int = 15
SERVICE_CENTER_LIMIT: int = 5

# Bucket for issues whose document names no service center
UNSPECIFIED_SERVICE_CENTER: str = "Unspecified"


# =============================================================================
# Parameter Resolution
# =============================================================================


def resolve_period(
    period: str,
    as_of: datetime,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> Tuple[Optional[datetime], datetime]:
    """
    Resolve the ``[start, end)`` range of an overview.

    An explicit ``date_from`` or ``date_to`` overrides the named period;
    a missing ``date_to`` defaults to ``as_of``. Named periods step back in
    calendar months from ``as_of``.

    Raises:
        InvalidConfiguration: If the period name is unknown or the range is empty.
    """
    if period not in PERIOD_MONTHS:
        valid = ", ".join(PERIOD_MONTHS)
        raise InvalidConfiguration(
            f"Unknown period '{period}'. Expected one of: {valid}", field="period"
        )

    end = date_to or as_of
    if date_from is not None or date_to is not None:
        start = date_from
    else:
        months = PERIOD_MONTHS[period]
        start = None if months is None else (pd.Timestamp(end) - pd.DateOffset(months=months)).to_pydatetime()

    if start is not None and start >= end:
        raise InvalidConfiguration(
            f"date_from ({start.isoformat()}) must be before date_to ({end.isoformat()})",
            field="date_from",
        )
    return start, end


def resolve_outcome_type(value: Union[str, OutcomeType, None]) -> Optional[OutcomeType]:
    """
    Match an outcome type case-insensitively.

    Raises:
        InvalidConfiguration: If the value names no outcome type.
    """
    if value is None or isinstance(value, OutcomeType):
        return value
    normalized = value.strip().upper()
    for outcome in OutcomeType:
        if outcome.value.upper() == normalized:
            return outcome
    valid = ", ".join(outcome.value for outcome in OutcomeType)
    raise InvalidConfiguration(
        f"Unknown outcome type '{value}'. Expected one of: {valid}", field="outcome_type"
    )


# =============================================================================
# Overview
# =============================================================================


def _month_key(record: IssueRecord) -> str:
    return f"{record.occurred_at.year:04d}-{record.occurred_at.month:02d}"


def _issues_by_month(records: Sequence[IssueRecord]) -> List[MonthlySeverityCount]:
    months: Dict[str, Counter] = {}
    for record in records:
        months.setdefault(_month_key(record), Counter())[record.severity] += 1

    return [
        MonthlySeverityCount(
            month=month,
            total=sum(counts.values()),
            by_severity={severity: counts[severity] for severity in Severity},
        )
        for month, counts in sorted(months.items())
    ]


def _documents_by_outcome(records: Sequence[IssueRecord]) -> Dict[OutcomeType, int]:
    documents: Dict[OutcomeType, Set[str]] = {outcome: set() for outcome in OutcomeType}
    for record in records:
        if record.outcome_type is not None and record.source_document_id is not None:
            documents[record.outcome_type].add(record.source_document_id)
    return {outcome: len(ids) for outcome, ids in documents.items()}


def _service_centers(records: Sequence[IssueRecord]) -> List[ServiceCenterShare]:
    counts = Counter(record.service_center or UNSPECIFIED_SERVICE_CENTER for record in records)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [
        ServiceCenterShare(service_center=center, count=count)
        for center, count in ranked[:SERVICE_CENTER_LIMIT]
    ]


def _top_issues(records: Sequence[IssueRecord], distribution) -> List[TopIssue]:
    outcomes: Dict[str, Counter] = {}
    centers: Dict[str, Counter] = {}
    for record in records:
        if record.outcome_type is not None:
            outcomes.setdefault(record.taxonomy_code, Counter())[record.outcome_type] += 1
        if record.service_center is not None:
            centers.setdefault(record.taxonomy_code, Counter())[record.service_center] += 1

    ranked = sorted(distribution.by_code.items(), key=lambda item: (-item[1].count, item[0]))
    return [
        TopIssue(
            code=code,
            count=share.count,
            percentage=round_half_up(share.percentage),
            severity_breakdown=share.severity_breakdown,
            prong_breakdown=share.prong_breakdown,
            outcome_breakdown=dict(outcomes.get(code, {})),
            service_center_breakdown=dict(centers.get(code, {})),
        )
        for code, share in ranked[:TOP_ISSUES_LIMIT]
    ]


def summarize_overview(
    records: Sequence[IssueRecord],
    issue_filter: IssueFilter,
    period: str = DEFAULT_PERIOD,
    rejected_count: int = 0,
) -> TrendsOverview:
    """
    Build the trends overview of a snapshot.

    Args:
        records: Snapshot covering the reporting range; undated records are
            rejected and counted.
        issue_filter: Date range and attribute filters of the overview.
        period: Named period reported back to the caller.
        rejected_count: Rows the source already rejected while loading.

    Returns:
        TrendsOverview
    """
    dated = [record for record in records if record.occurred_at is not None]
    undated = len(records) - len(dated)
    if undated:
        logger.warning(f"Rejected {undated} issues with no date from the trends overview")

    filter_options = FilterOptions(
        visa_categories=sorted({r.visa_category for r in dated if r.visa_category is not None}),
        service_centers=sorted({r.service_center for r in dated if r.service_center is not None}),
    )

    selected = [record for record in dated if issue_filter.matches(record)]
    distribution = distribution_from_records("overview", selected)

    prong_distribution = sorted(
        (
            ProngShare(
                prong=prong,
                label=PRONG_LABELS[prong],
                count=share.count,
                percentage=round_half_up(share.percentage),
            )
            for prong, share in distribution.by_prong.items()
            if share.count > 0
        ),
        key=lambda item: -item.count,
    )
    severity_distribution = [
        SeverityShare(
            severity=severity,
            label=SEVERITY_LABELS[severity],
            count=share.count,
            percentage=round_half_up(share.percentage),
        )
        for severity, share in distribution.by_severity.items()
        if share.count > 0
    ]

    return TrendsOverview(
        period=period,
        date_from=issue_filter.date_from,
        date_to=issue_filter.date_to,
        filters=issue_filter,
        total_issues=distribution.total,
        total_documents=len({r.source_document_id for r in selected if r.source_document_id is not None}),
        rejected_count=rejected_count + undated,
        top_issues=_top_issues(selected, distribution),
        issues_by_month=_issues_by_month(selected),
        prong_distribution=prong_distribution,
        severity_distribution=severity_distribution,
        documents_by_outcome=_documents_by_outcome(selected),
        service_center_distribution=_service_centers(selected),
        filter_options=filter_options,
    )
