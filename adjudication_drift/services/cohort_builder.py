"""
Cohort Builder Service

Partitions issue records into named cohorts by calendar period or category.

Grouping modes:
- month: ``YYYY-MM`` keys, labels like "March 2025"
- quarter: ``YYYY-Qn`` keys, labels like "Q1 2025 (Jan-Mar)"
- year: ``YYYY`` keys
- category: one cohort per category value (e.g. industry)

When a year is selected for month or quarter grouping, all 12 (or 4) cohorts
are created up front so that empty periods still show up in the timeline.
Otherwise cohorts are created as records are seen.

Records whose grouping field is null (no timestamp for calendar grouping, no
category for category grouping) are dropped and counted in
``rejected_count``. Records outside the selected year or category are out of
scope and are not counted.

Calendar fields are taken from ``occurred_at`` in UTC.
"""

import logging
from typing import Dict, Iterable, List, Optional, Union

from adjudication_drift.core.errors import InvalidConfiguration
from adjudication_drift.models import (
    MONTH_NAMES,
    QUARTER_MONTHS,
    Cohort,
    CohortBuildResult,
    IssueRecord,
    PeriodKind,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Accepted spellings for grouping modes besides the enum values
_GROUPING_ALIASES: Dict[str, PeriodKind] = {
    "industry": PeriodKind.CATEGORY,
}

# Maximum length of a category cohort's short label
CATEGORY_SHORT_LABEL_LENGTH: int = 15


# =============================================================================
# Cohort Constructors
# =============================================================================


def resolve_group_by(group_by: Union[str, PeriodKind]) -> PeriodKind:
    """
    Resolve a grouping mode.

    Raises:
        InvalidConfiguration: If the grouping mode is unknown.
    """
    if isinstance(group_by, PeriodKind):
        return group_by
    normalized = str(group_by).strip().lower()
    if normalized in _GROUPING_ALIASES:
        return _GROUPING_ALIASES[normalized]
    try:
        return PeriodKind(normalized)
    except ValueError:
        valid = ", ".join(kind.value for kind in PeriodKind)
        raise InvalidConfiguration(
            f"Unknown grouping mode '{group_by}'. Expected one of: {valid}",
            field="group_by",
        ) from None


def month_cohort(year: int, month: int, include_year_in_short_label: bool = False) -> Cohort:
    name = MONTH_NAMES[month - 1]
    short = name[:3]
    return Cohort(
        key=f"{year}-{month:02d}",
        label=f"{name} {year}",
        short_label=f"{short} {year}" if include_year_in_short_label else short,
        period_kind=PeriodKind.MONTH,
        year=year,
        month=month,
    )


def quarter_cohort(year: int, quarter: int, include_year_in_short_label: bool = False) -> Cohort:
    return Cohort(
        key=f"{year}-Q{quarter}",
        label=f"Q{quarter} {year} ({QUARTER_MONTHS[quarter]})",
        short_label=f"Q{quarter} {year}" if include_year_in_short_label else f"Q{quarter}",
        period_kind=PeriodKind.QUARTER,
        year=year,
        quarter=quarter,
    )


def year_cohort(year: int) -> Cohort:
    return Cohort(
        key=str(year),
        label=str(year),
        short_label=str(year),
        period_kind=PeriodKind.YEAR,
        year=year,
    )


def category_cohort(category: str) -> Cohort:
    return Cohort(
        key=category,
        label=category,
        short_label=category[:CATEGORY_SHORT_LABEL_LENGTH],
        period_kind=PeriodKind.CATEGORY,
    )


def _cohort_for(record: IssueRecord, kind: PeriodKind, year_selected: bool) -> Cohort:
    """Build the (empty) cohort a record belongs to."""
    if kind is PeriodKind.CATEGORY:
        return category_cohort(record.category)

    occurred = record.occurred_at
    if kind is PeriodKind.MONTH:
        return month_cohort(occurred.year, occurred.month, not year_selected)
    if kind is PeriodKind.QUARTER:
        return quarter_cohort(occurred.year, (occurred.month - 1) // 3 + 1, not year_selected)
    return year_cohort(occurred.year)


# =============================================================================
# Builder
# =============================================================================


def build_cohorts(
    records: Iterable[IssueRecord],
    group_by: Union[str, PeriodKind],
    year: Optional[int] = None,
    category: Optional[str] = None,
) -> CohortBuildResult:
    """
    Partition records into cohorts.

    Args:
        records: Issue records to partition.
        group_by: Grouping mode (month, quarter, year, category).
        year: Optional year; restricts every mode to records of that year and
            pre-creates all periods for month/quarter grouping.
        category: Optional category; keeps only records with that category.

    Returns:
        CohortBuildResult with cohorts ordered by key and the rejected tally.

    Raises:
        InvalidConfiguration: If the grouping mode is unknown.
    """
    kind = resolve_group_by(group_by)
    cohorts: Dict[str, Cohort] = {}

    if year is not None and kind is PeriodKind.MONTH:
        for month in range(1, 13):
            cohort = month_cohort(year, month)
            cohorts[cohort.key] = cohort
    elif year is not None and kind is PeriodKind.QUARTER:
        for quarter in range(1, 5):
            cohort = quarter_cohort(year, quarter)
            cohorts[cohort.key] = cohort

    rejected = 0
    for record in records:
        if category is not None and record.category != category:
            continue

        if kind.is_calendar:
            if record.occurred_at is None:
                rejected += 1
                logger.debug(f"Issue {record.id} has no timestamp; skipped for {kind.value} grouping")
                continue
            if year is not None and record.occurred_at.year != year:
                continue
        else:
            if record.category is None:
                rejected += 1
                logger.debug(f"Issue {record.id} has no category; skipped for category grouping")
                continue
            if year is not None and (record.occurred_at is None or record.occurred_at.year != year):
                continue

        cohort = _cohort_for(record, kind, year is not None)
        if cohort.key not in cohorts:
            cohorts[cohort.key] = cohort
        cohorts[cohort.key].members.append(record)

    if rejected:
        logger.warning(f"Rejected {rejected} issues with no {kind.value} grouping value")

    ordered = {key: cohorts[key] for key in sorted(cohorts)}
    return CohortBuildResult(cohorts=ordered, rejected_count=rejected)


# =============================================================================
# Filter Helpers
# =============================================================================


def available_years(records: Iterable[IssueRecord]) -> List[int]:
    """Years with at least one dated issue, most recent first."""
    years = {record.occurred_at.year for record in records if record.occurred_at is not None}
    return sorted(years, reverse=True)


def available_categories(records: Iterable[IssueRecord]) -> List[str]:
    """Distinct non-null categories, sorted."""
    return sorted({record.category for record in records if record.category is not None})
