"""
Tests for the trends overview service.

Expected values are computed by hand from the ``overview_records`` fixture.
"""

from datetime import datetime, timezone
from typing import List

import pytest

from adjudication_drift.core.errors import InvalidConfiguration
from adjudication_drift.models import IssueFilter, IssueRecord, OutcomeType, Prong, Severity
from adjudication_drift.services.overview import (
    resolve_outcome_type,
    resolve_period,
    summarize_overview,
)
from adjudication_drift.tests.conftest import issues_for_counts, make_issue

UTC = timezone.utc
AS_OF = datetime(2025, 7, 1, tzinfo=UTC)
PERIOD_FILTER = IssueFilter(date_from=datetime(2025, 1, 1, tzinfo=UTC), date_to=AS_OF)


@pytest.fixture
def overview_records() -> List[IssueRecord]:
    """
    Six dated issues in the first half of 2025 plus one undated issue.

    X: 3 high/P1 RFE at TSC in May (doc d1), 1 low/P2 Denial at NSC in June (doc d2)
    Y: 2 medium/P2 RFE with no service center in June (doc d3)
    """
    return [
        *issues_for_counts(
            {"X": 3},
            severity=Severity.HIGH,
            prong=Prong.P1,
            occurred_at=datetime(2025, 5, 10, tzinfo=UTC),
            outcome_type=OutcomeType.RFE,
            source_document_id="d1",
            service_center="TSC",
            visa_category="EB-2",
        ),
        make_issue(
            code="X",
            severity=Severity.LOW,
            prong=Prong.P2,
            occurred_at=datetime(2025, 6, 5, tzinfo=UTC),
            outcome_type=OutcomeType.DENIAL,
            source_document_id="d2",
            service_center="NSC",
            visa_category="EB-2",
        ),
        *issues_for_counts(
            {"Y": 2},
            severity=Severity.MEDIUM,
            prong=Prong.P2,
            occurred_at=datetime(2025, 6, 20, tzinfo=UTC),
            outcome_type=OutcomeType.RFE,
            source_document_id="d3",
            visa_category="EB-1",
        ),
        make_issue(code="Z", occurred_at=None),
    ]


# =============================================================================
# Period Resolution
# =============================================================================


class TestResolvePeriod:

    @pytest.mark.parametrize("period,start", [
        ("3months", datetime(2025, 4, 1, tzinfo=UTC)),
        ("6months", datetime(2025, 1, 1, tzinfo=UTC)),
        ("1year", datetime(2024, 7, 1, tzinfo=UTC)),
        ("all", None),
    ])
    def test_named_periods(self, period: str, start) -> None:
        assert resolve_period(period, AS_OF) == (start, AS_OF)

    def test_calendar_month_clamps_to_month_end(self) -> None:
        start, _ = resolve_period("6months", datetime(2025, 8, 31, tzinfo=UTC))

        assert start == datetime(2025, 2, 28, tzinfo=UTC)

    def test_custom_range_overrides_period(self) -> None:
        date_from = datetime(2025, 6, 1, tzinfo=UTC)

        assert resolve_period("1year", AS_OF, date_from=date_from) == (date_from, AS_OF)

    def test_unknown_period(self) -> None:
        with pytest.raises(InvalidConfiguration) as exc_info:
            resolve_period("2weeks", AS_OF)

        assert exc_info.value.field == "period"

    def test_empty_range(self) -> None:
        with pytest.raises(InvalidConfiguration) as exc_info:
            resolve_period("all", AS_OF, date_from=AS_OF, date_to=AS_OF)

        assert exc_info.value.field == "date_from"


class TestResolveOutcomeType:

    @pytest.mark.parametrize("value,expected", [
        ("rfe", OutcomeType.RFE),
        ("DENIAL", OutcomeType.DENIAL),
        (" NOID ", OutcomeType.NOID),
        (None, None),
    ])
    def test_case_insensitive(self, value, expected) -> None:
        assert resolve_outcome_type(value) is expected

    def test_unknown_outcome(self) -> None:
        with pytest.raises(InvalidConfiguration) as exc_info:
            resolve_outcome_type("approval")

        assert exc_info.value.field == "outcome_type"


# =============================================================================
# Overview
# =============================================================================


class TestSummarizeOverview:

    def test_totals_and_rejections(self, overview_records: List[IssueRecord]) -> None:
        overview = summarize_overview(overview_records, PERIOD_FILTER, rejected_count=2)

        assert overview.total_issues == 6
        assert overview.total_documents == 3
        # One undated issue on top of the two the source rejected
        assert overview.rejected_count == 3
        assert overview.period == "6months"
        assert overview.date_to == AS_OF

    def test_top_issues_with_breakdowns(self, overview_records: List[IssueRecord]) -> None:
        top = summarize_overview(overview_records, PERIOD_FILTER).top_issues

        assert [(issue.code, issue.count, issue.percentage) for issue in top] == [("X", 4, 67), ("Y", 2, 33)]
        assert top[0].severity_breakdown == {Severity.HIGH: 3, Severity.LOW: 1}
        assert top[0].prong_breakdown == {Prong.P1: 3, Prong.P2: 1}
        assert top[0].outcome_breakdown == {OutcomeType.RFE: 3, OutcomeType.DENIAL: 1}
        assert top[0].service_center_breakdown == {"TSC": 3, "NSC": 1}
        assert top[1].service_center_breakdown == {}

    def test_issues_by_month(self, overview_records: List[IssueRecord]) -> None:
        months = summarize_overview(overview_records, PERIOD_FILTER).issues_by_month

        assert [(month.month, month.total) for month in months] == [("2025-05", 3), ("2025-06", 3)]
        assert months[0].by_severity[Severity.HIGH] == 3
        assert months[0].by_severity[Severity.CRITICAL] == 0
        assert months[1].by_severity[Severity.MEDIUM] == 2
        assert months[1].by_severity[Severity.LOW] == 1

    def test_distributions(self, overview_records: List[IssueRecord]) -> None:
        overview = summarize_overview(overview_records, PERIOD_FILTER)

        assert [(share.prong, share.percentage) for share in overview.prong_distribution] == [
            (Prong.P1, 50),
            (Prong.P2, 50),
        ]
        assert [(share.severity, share.count, share.percentage) for share in overview.severity_distribution] == [
            (Severity.HIGH, 3, 50),
            (Severity.MEDIUM, 2, 33),
            (Severity.LOW, 1, 17),
        ]
        assert overview.documents_by_outcome == {
            OutcomeType.RFE: 2,
            OutcomeType.NOID: 0,
            OutcomeType.DENIAL: 1,
        }
        assert [(share.service_center, share.count) for share in overview.service_center_distribution] == [
            ("TSC", 3),
            ("Unspecified", 2),
            ("NSC", 1),
        ]

    def test_filters_keep_full_filter_options(self, overview_records: List[IssueRecord]) -> None:
        issue_filter = PERIOD_FILTER.model_copy(update={"service_center": "TSC"})

        overview = summarize_overview(overview_records, issue_filter)

        assert overview.total_issues == 3
        assert [issue.code for issue in overview.top_issues] == ["X"]
        assert overview.filters.service_center == "TSC"
        assert overview.filter_options.visa_categories == ["EB-1", "EB-2"]
        assert overview.filter_options.service_centers == ["NSC", "TSC"]
        assert overview.filter_options.outcome_types == list(OutcomeType)

    def test_outcome_filter(self, overview_records: List[IssueRecord]) -> None:
        issue_filter = PERIOD_FILTER.model_copy(update={"outcome_type": OutcomeType.DENIAL})

        overview = summarize_overview(overview_records, issue_filter)

        assert overview.total_issues == 1
        assert overview.documents_by_outcome[OutcomeType.DENIAL] == 1
        assert overview.issues_by_month[0].month == "2025-06"

    def test_empty_snapshot(self) -> None:
        overview = summarize_overview([], PERIOD_FILTER)

        assert overview.total_issues == 0
        assert overview.top_issues == []
        assert overview.issues_by_month == []
        assert overview.prong_distribution == []
        assert overview.severity_distribution == []
        assert overview.service_center_distribution == []
