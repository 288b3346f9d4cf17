"""
Tests for the distribution calculator and cohort statistics.
"""

from threading import Event

import pytest

from adjudication_drift.core.errors import AnalysisCancelled
from adjudication_drift.models import Cohort, PeriodKind, Prong, Severity
from adjudication_drift.services.cohort_builder import build_cohorts
from adjudication_drift.services.distribution import (
    compute_distribution,
    compute_distributions,
    distribution_from_records,
    safe_ratio,
    severity_score,
    summarize_cohort,
    top_codes,
)
from adjudication_drift.tests.conftest import issues_for_counts, make_issue


class TestSafeRatio:

    def test_regular_division(self) -> None:
        assert safe_ratio(1, 4) == 0.25

    @pytest.mark.parametrize("denominator", [0, -3])
    def test_non_positive_denominator_returns_zero(self, denominator: int) -> None:
        assert safe_ratio(5, denominator) == 0.0


class TestDistribution:
    """Count and percentage invariants."""

    def test_counts_sum_to_total(self) -> None:
        records = issues_for_counts({"A": 3, "B": 5, "C": 1})

        dist = distribution_from_records("k", records)

        assert dist.total == 9
        assert sum(share.count for share in dist.by_code.values()) == dist.total

    def test_percentages_sum_to_one_hundred(self) -> None:
        records = issues_for_counts({"A": 1, "B": 1, "C": 1})

        dist = distribution_from_records("k", records)

        assert sum(share.percentage for share in dist.by_code.values()) == pytest.approx(100.0, abs=0.5)

    def test_empty_distribution_is_all_zero(self) -> None:
        dist = distribution_from_records("k", [])

        assert dist.total == 0
        assert dist.by_code == {}
        assert set(dist.by_severity) == set(Severity)
        assert set(dist.by_prong) == set(Prong)
        assert all(share.count == 0 and share.percentage == 0 for share in dist.by_severity.values())
        assert all(share.count == 0 and share.percentage == 0 for share in dist.by_prong.values())

    def test_breakdowns_per_code(self) -> None:
        records = [
            make_issue(code="A", severity=Severity.HIGH, prong=Prong.P2),
            make_issue(code="A", severity=Severity.LOW, prong=Prong.P2),
            make_issue(code="A", severity=Severity.HIGH, prong=None),
        ]

        share = distribution_from_records("k", records).by_code["A"]

        assert share.severity_breakdown == {Severity.HIGH: 2, Severity.LOW: 1}
        assert share.prong_breakdown == {Prong.P2: 2}

    def test_issues_without_prong_count_towards_total_only(self) -> None:
        records = [make_issue(prong=None), make_issue(prong=Prong.P3)]

        dist = distribution_from_records("k", records)

        assert dist.by_prong[Prong.P3].count == 1
        assert dist.by_prong[Prong.P3].percentage == pytest.approx(50.0)
        assert sum(share.count for share in dist.by_prong.values()) == 1

    def test_compute_distribution_uses_cohort_key(self) -> None:
        cohort = Cohort(key="2025-01", label="January 2025", short_label="Jan", period_kind=PeriodKind.MONTH)
        cohort.members.extend(issues_for_counts({"A": 2}))

        dist = compute_distribution(cohort)

        assert dist.cohort_key == "2025-01"
        assert dist.total == 2


class TestComputeDistributions:
    """Fan-out over cohorts must not change the result."""

    def test_parallel_matches_sequential(self) -> None:
        records = [
            make_issue(code=code, occurred_at=make_issue().occurred_at.replace(month=month))
            for month in range(1, 13)
            for code in ("A", "B", "C")[: month % 3 + 1]
        ]
        cohorts = build_cohorts(records, "month", year=2025).ordered()

        sequential = compute_distributions(cohorts)
        parallel = compute_distributions(cohorts, max_workers=4)

        assert list(parallel) == list(sequential)
        assert parallel == sequential

    @pytest.mark.parametrize("max_workers", [None, 4])
    def test_cancelled_computation_stops(self, max_workers) -> None:
        cohorts = build_cohorts(issues_for_counts({"A": 2}), "month", year=2025).ordered()
        cancel_event = Event()
        cancel_event.set()

        with pytest.raises(AnalysisCancelled):
            compute_distributions(cohorts, max_workers=max_workers, cancel_event=cancel_event)

    def test_unset_cancel_event_is_ignored(self) -> None:
        cohorts = build_cohorts(issues_for_counts({"A": 2}), "month", year=2025).ordered()

        distributions = compute_distributions(cohorts, cancel_event=Event())

        assert len(distributions) == 12
        assert distributions["2025-03"].total == 2


class TestCohortSummary:

    def test_severity_score_weights(self) -> None:
        assert severity_score({Severity.CRITICAL: 2}, 2) == 100
        assert severity_score({Severity.LOW: 4}, 4) == 25
        # (4 + 1) / 2 * 25 = 62.5 -> 63
        assert severity_score({Severity.CRITICAL: 1, Severity.LOW: 1}, 2) == 63

    def test_severity_score_empty_cohort(self) -> None:
        assert severity_score({}, 0) == 0

    def test_top_codes_limited_and_ordered(self) -> None:
        dist = distribution_from_records(
            "k", issues_for_counts({"A": 1, "B": 4, "C": 4, "D": 2, "E": 3, "F": 1})
        )

        codes = top_codes(dist)

        assert [c.code for c in codes] == ["B", "C", "E", "D", "A"]
        assert codes[0].percentage == 27  # 4 / 15

    def test_summarize_cohort(self) -> None:
        cohort = Cohort(key="2025", label="2025", short_label="2025", period_kind=PeriodKind.YEAR, year=2025)
        cohort.members.extend([
            make_issue(severity=Severity.CRITICAL, prong=Prong.EVIDENCE),
            make_issue(severity=Severity.HIGH, prong=Prong.EVIDENCE),
        ])

        summary = summarize_cohort(cohort, compute_distribution(cohort))

        assert summary.key == "2025"
        assert summary.stats.total == 2
        assert summary.stats.by_severity[Severity.CRITICAL] == 1
        assert summary.stats.by_prong[Prong.EVIDENCE] == 2
        assert summary.stats.severity_score == 88  # (4 + 3) / 2 * 25 = 87.5
