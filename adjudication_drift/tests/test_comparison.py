"""
Tests for consecutive cohort comparisons, insight rules and the overview.
"""

from datetime import datetime, timezone
from typing import List

import pytest

from adjudication_drift.models import (
    INSIGHT_ACTIONS,
    Direction,
    InsightType,
    IssueRecord,
    Prong,
    Severity,
    Trend,
)
from adjudication_drift.services.cohort_builder import build_cohorts
from adjudication_drift.services.comparison import (
    NOT_ENOUGH_DATA_MESSAGE,
    compare_timeline,
    count_change_pct,
    summarize_cohorts,
)
from adjudication_drift.services.distribution import compute_distributions, summarize_cohort
from adjudication_drift.tests.conftest import make_issue

JAN = datetime(2025, 1, 15, tzinfo=timezone.utc)
FEB = datetime(2025, 2, 15, tzinfo=timezone.utc)


def _issues(n: int, month: datetime, **fields) -> List[IssueRecord]:
    fields.setdefault("prong", None)
    return [make_issue(occurred_at=month, **fields) for _ in range(n)]


def _timeline(records: List[IssueRecord], months: int = 2):
    cohorts = build_cohorts(records, "month", year=2025).ordered()[:months]
    distributions = compute_distributions(cohorts)
    return [(cohort, distributions[cohort.key]) for cohort in cohorts]


def _insight_types(insights) -> List[InsightType]:
    return [insight.type for insight in insights]


class TestCountChange:

    @pytest.mark.parametrize("previous,current,expected", [
        (4, 2, -50),
        (2, 5, 150),
        (0, 5, 100),
        (0, 0, 0),
        (3, 4, 33),
    ])
    def test_count_change_pct(self, previous: int, current: int, expected: int) -> None:
        assert count_change_pct(previous, current) == expected


class TestPairwiseComparison:

    def test_one_comparison_per_consecutive_pair(self) -> None:
        comparisons, _ = compare_timeline(_timeline([], months=12))

        assert len(comparisons) == 11
        assert comparisons[0].from_key == "2025-01"
        assert comparisons[0].to_key == "2025-02"
        assert comparisons[0].from_label == "Jan"

    def test_fields(self) -> None:
        records = (
            _issues(2, JAN, severity=Severity.LOW, prong=Prong.P1)
            + _issues(3, FEB, severity=Severity.CRITICAL, prong=Prong.P1)
        )

        comparisons, _ = compare_timeline(_timeline(records))
        comparison = comparisons[0]

        assert comparison.total_change_pct == 50
        assert comparison.total_direction is Direction.UP
        # low only (25) -> critical only (100)
        assert comparison.severity_score_change == 75
        assert comparison.severity_direction is Direction.UP
        assert comparison.prong_changes[Prong.P1].previous == 2
        assert comparison.prong_changes[Prong.P1].current == 3
        assert comparison.prong_changes[Prong.P1].change_pct == 50
        assert comparison.prong_changes[Prong.P2].direction is Direction.STABLE
        assert comparison.drift.baseline_period.key == "2025-01"
        assert comparison.drift.recent_period.label == "February 2025"

    def test_fewer_than_two_cohorts_yield_nothing(self) -> None:
        assert compare_timeline(_timeline(_issues(3, JAN), months=1)) == ([], [])


class TestInsightRules:

    def test_significant_increase(self) -> None:
        _, insights = compare_timeline(_timeline(_issues(2, JAN) + _issues(4, FEB)))

        assert _insight_types(insights) == [InsightType.SIGNIFICANT_INCREASE]
        assert insights[0].cohort_key == "2025-02"
        assert insights[0].action == INSIGHT_ACTIONS[InsightType.SIGNIFICANT_INCREASE]
        assert "100%" in insights[0].text

    def test_growth_from_empty_is_not_significant_increase(self) -> None:
        _, insights = compare_timeline(_timeline(_issues(4, FEB)))

        assert InsightType.SIGNIFICANT_INCREASE not in _insight_types(insights)

    def test_reduction(self) -> None:
        _, insights = compare_timeline(_timeline(_issues(10, JAN) + _issues(6, FEB)))

        assert _insight_types(insights) == [InsightType.REDUCTION]

    def test_empty_current_cohort_reports_no_data(self) -> None:
        _, insights = compare_timeline(_timeline(_issues(3, JAN)))

        assert _insight_types(insights) == [InsightType.REDUCTION, InsightType.NO_DATA]

    def test_new_patterns_lists_two_examples(self) -> None:
        records = (
            _issues(4, JAN, code="A")
            + _issues(4, FEB, code="A")
            + _issues(2, FEB, code="N1")
            + _issues(1, FEB, code="N2")
            + _issues(1, FEB, code="N3")
        )

        _, insights = compare_timeline(_timeline(records))
        new_patterns = [i for i in insights if i.type is InsightType.NEW_PATTERNS]

        assert len(new_patterns) == 1
        assert "e.g. N1, N2." in new_patterns[0].text

    def test_prong_scrutiny_names_prong(self) -> None:
        records = _issues(3, JAN, prong=Prong.P2) + _issues(4, FEB, prong=Prong.P2)

        _, insights = compare_timeline(_timeline(records))

        assert _insight_types(insights) == [InsightType.PRONG_SCRUTINY]
        assert insights[0].title == "Increased scrutiny on P2"

    def test_prong_growth_of_exactly_thirty_percent_does_not_fire(self) -> None:
        records = _issues(10, JAN, prong=Prong.P3) + _issues(13, FEB, prong=Prong.P3)

        _, insights = compare_timeline(_timeline(records))

        assert InsightType.PRONG_SCRUTINY not in _insight_types(insights)

    def test_critical_increase(self) -> None:
        records = (
            _issues(10, JAN, severity=Severity.LOW)
            + _issues(5, FEB, severity=Severity.LOW)
            + _issues(5, FEB, severity=Severity.CRITICAL)
        )

        _, insights = compare_timeline(_timeline(records))

        assert _insight_types(insights) == [InsightType.CRITICAL_INCREASE]

    def test_rules_fire_independently(self) -> None:
        records = (
            _issues(2, JAN, code="A", prong=Prong.P1)
            + _issues(2, FEB, code="A", prong=Prong.P1)
            + _issues(5, FEB, code="N1", prong=Prong.P1, severity=Severity.CRITICAL)
            + _issues(1, FEB, code="N2", prong=Prong.P1)
        )

        _, insights = compare_timeline(_timeline(records))

        assert set(_insight_types(insights)) == {
            InsightType.SIGNIFICANT_INCREASE,
            InsightType.NEW_PATTERNS,
            InsightType.PRONG_SCRUTINY,
            InsightType.CRITICAL_INCREASE,
        }


class TestOverview:

    def _summaries(self, records):
        cohorts = build_cohorts(records, "month", year=2025).ordered()[:3]
        distributions = compute_distributions(cohorts)
        timeline = [(c, distributions[c.key]) for c in cohorts]
        comparisons, _ = compare_timeline(timeline)
        return [summarize_cohort(c, d) for c, d in timeline], comparisons

    def test_no_cohorts(self) -> None:
        overview = summarize_cohorts([], [])

        assert overview.message == NOT_ENOUGH_DATA_MESSAGE
        assert overview.cohorts_analyzed == 0

    def test_peak_severity_and_trend(self) -> None:
        mar = datetime(2025, 3, 15, tzinfo=timezone.utc)
        records = (
            _issues(4, JAN, severity=Severity.LOW)
            + _issues(6, FEB, severity=Severity.LOW)
            + _issues(2, mar, severity=Severity.CRITICAL)
        )

        summaries, comparisons = self._summaries(records)
        overview = summarize_cohorts(summaries, comparisons)

        assert overview.total_issues == 12
        assert overview.avg_per_cohort == 4
        assert overview.cohorts_analyzed == 3
        assert overview.peak_cohort.label == "February 2025"
        assert overview.peak_cohort.value == 6
        assert overview.highest_severity.label == "March 2025"
        assert overview.highest_severity.value == 100
        # Feb -> Mar is -67%
        assert overview.trend is Trend.DECREASING
        assert overview.trend_label == "Decreasing"

    def test_stable_without_comparisons(self) -> None:
        summaries, _ = self._summaries(_issues(3, JAN))

        overview = summarize_cohorts(summaries[:1], [])

        assert overview.trend is Trend.STABLE
