"""
Tests for the cohort builder.

Covers every grouping mode, the pre-created calendar periods for a selected
year, year/category filters, and the rejected tally for records with no
grouping value.
"""

from datetime import datetime, timedelta, timezone

import pytest

from adjudication_drift.core.errors import InvalidConfiguration
from adjudication_drift.models import IssueFilter, PeriodKind
from adjudication_drift.services.cohort_builder import (
    available_categories,
    available_years,
    build_cohorts,
    resolve_group_by,
)
from adjudication_drift.tests.conftest import make_issue


def _at(year: int, month: int, day: int = 10) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


class TestMonthGrouping:
    """Month cohorts keyed YYYY-MM."""

    def test_empty_records_with_year_returns_twelve_empty_cohorts(self) -> None:
        result = build_cohorts([], "month", year=2025)

        assert len(result.cohorts) == 12
        assert list(result.cohorts) == [f"2025-{m:02d}" for m in range(1, 13)]
        assert all(len(cohort.members) == 0 for cohort in result.cohorts.values())
        assert result.rejected_count == 0

    def test_labels_for_preselected_year(self) -> None:
        result = build_cohorts([], PeriodKind.MONTH, year=2025)
        march = result.cohorts["2025-03"]

        assert march.label == "March 2025"
        assert march.short_label == "Mar"
        assert march.year == 2025
        assert march.month == 3
        assert march.period_kind is PeriodKind.MONTH

    def test_records_land_in_their_month(self) -> None:
        records = [
            make_issue(occurred_at=_at(2025, 1, 5)),
            make_issue(occurred_at=_at(2025, 1, 31)),
            make_issue(occurred_at=_at(2025, 4, 1)),
        ]

        result = build_cohorts(records, "month", year=2025)

        assert len(result.cohorts["2025-01"].members) == 2
        assert len(result.cohorts["2025-04"].members) == 1
        assert len(result.cohorts["2025-02"].members) == 0

    def test_other_years_are_out_of_scope_not_rejected(self) -> None:
        records = [make_issue(occurred_at=_at(2024, 12)), make_issue(occurred_at=_at(2025, 1))]

        result = build_cohorts(records, "month", year=2025)

        assert sum(len(c.members) for c in result.cohorts.values()) == 1
        assert result.rejected_count == 0

    def test_without_year_cohorts_are_created_lazily_and_sorted(self) -> None:
        records = [
            make_issue(occurred_at=_at(2025, 2)),
            make_issue(occurred_at=_at(2024, 11)),
            make_issue(occurred_at=_at(2025, 2)),
        ]

        result = build_cohorts(records, "month")

        assert list(result.cohorts) == ["2024-11", "2025-02"]
        assert result.cohorts["2024-11"].short_label == "Nov 2024"

    def test_missing_timestamp_is_rejected_and_counted(self) -> None:
        records = [make_issue(occurred_at=None), make_issue(occurred_at=None), make_issue(occurred_at=_at(2025, 5))]

        result = build_cohorts(records, "month", year=2025)

        assert result.rejected_count == 2
        assert len(result.cohorts["2025-05"].members) == 1

    def test_offset_timestamp_groups_by_its_utc_month(self) -> None:
        # 01:00 at UTC+5 on New Year is still December in UTC
        local = datetime(2025, 1, 1, 1, 0, tzinfo=timezone(timedelta(hours=5)))
        record = make_issue(occurred_at=local)

        result = build_cohorts([record], "month")

        assert record.occurred_at == datetime(2024, 12, 31, 20, 0, tzinfo=timezone.utc)
        assert record.occurred_at.utcoffset() == timedelta(0)
        assert list(result.cohorts) == ["2024-12"]

    def test_filter_bounds_are_converted_to_utc(self) -> None:
        bound = datetime(2025, 1, 1, 1, 0, tzinfo=timezone(timedelta(hours=5)))

        issue_filter = IssueFilter(date_from=bound)

        assert issue_filter.date_from.utcoffset() == timedelta(0)
        assert issue_filter.matches(make_issue(occurred_at=datetime(2024, 12, 31, 20, 0, tzinfo=timezone.utc)))
        assert not issue_filter.matches(make_issue(occurred_at=datetime(2024, 12, 31, 19, 59, tzinfo=timezone.utc)))


class TestQuarterAndYearGrouping:
    """Quarter (YYYY-Qn) and year (YYYY) cohorts."""

    def test_quarters_are_precreated_for_year(self) -> None:
        result = build_cohorts([], "quarter", year=2025)

        assert list(result.cohorts) == ["2025-Q1", "2025-Q2", "2025-Q3", "2025-Q4"]
        assert result.cohorts["2025-Q1"].label == "Q1 2025 (Jan-Mar)"
        assert result.cohorts["2025-Q4"].short_label == "Q4"

    @pytest.mark.parametrize("month,expected", [(1, "2025-Q1"), (3, "2025-Q1"), (4, "2025-Q2"), (9, "2025-Q3"), (12, "2025-Q4")])
    def test_month_maps_to_quarter(self, month: int, expected: str) -> None:
        result = build_cohorts([make_issue(occurred_at=_at(2025, month))], "quarter", year=2025)

        assert len(result.cohorts[expected].members) == 1

    def test_year_grouping_is_lazy(self) -> None:
        records = [make_issue(occurred_at=_at(2023, 6)), make_issue(occurred_at=_at(2025, 6))]

        result = build_cohorts(records, "year")

        assert list(result.cohorts) == ["2023", "2025"]
        assert result.cohorts["2025"].label == "2025"

    def test_year_filter_applies_to_year_grouping(self) -> None:
        records = [make_issue(occurred_at=_at(2023, 6)), make_issue(occurred_at=_at(2025, 6))]

        result = build_cohorts(records, "year", year=2025)

        assert list(result.cohorts) == ["2025"]


class TestCategoryGrouping:
    """One cohort per category value."""

    def test_groups_by_category_value(self) -> None:
        records = [
            make_issue(category="Technology"),
            make_issue(category="Biotechnology"),
            make_issue(category="Technology"),
        ]

        result = build_cohorts(records, "category")

        assert list(result.cohorts) == ["Biotechnology", "Technology"]
        assert len(result.cohorts["Technology"].members) == 2
        assert result.cohorts["Technology"].period_kind is PeriodKind.CATEGORY

    def test_missing_category_is_rejected(self) -> None:
        result = build_cohorts([make_issue(category=None), make_issue(category="Energy")], "category")

        assert result.rejected_count == 1
        assert list(result.cohorts) == ["Energy"]

    def test_short_label_is_truncated(self) -> None:
        result = build_cohorts([make_issue(category="Advanced Manufacturing Systems")], "category")

        assert result.cohorts["Advanced Manufacturing Systems"].short_label == "Advanced Manufa"

    def test_industry_alias(self) -> None:
        assert resolve_group_by("industry") is PeriodKind.CATEGORY

    def test_category_filter_applies_to_time_grouping(self) -> None:
        records = [make_issue(category="Energy"), make_issue(category="Technology")]

        result = build_cohorts(records, "month", year=2025, category="Energy")

        assert sum(len(c.members) for c in result.cohorts.values()) == 1


class TestValidationAndHelpers:

    def test_unknown_grouping_mode_raises(self) -> None:
        with pytest.raises(InvalidConfiguration) as exc_info:
            build_cohorts([], "fortnight")

        assert exc_info.value.field == "group_by"

    def test_available_years_descending(self) -> None:
        records = [
            make_issue(occurred_at=_at(2023, 1)),
            make_issue(occurred_at=_at(2025, 1)),
            make_issue(occurred_at=None),
            make_issue(occurred_at=_at(2023, 8)),
        ]

        assert available_years(records) == [2025, 2023]

    def test_available_categories_sorted_without_none(self) -> None:
        records = [make_issue(category="b"), make_issue(category=None), make_issue(category="a")]

        assert available_categories(records) == ["a", "b"]
