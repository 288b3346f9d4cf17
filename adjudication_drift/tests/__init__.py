'''
Adjudication Drift Test Suite

Test Modules:
-------------
- test_cohort_builder.py: grouping modes, pre-created periods, rejected tally
- test_distribution.py: count/percentage invariants, cohort statistics
- test_drift_detector.py: drift formulas, ordering, score bounds, no_data
- test_alerts.py: alert rules and ranking
- test_comparison.py: consecutive comparisons, insight rules, overview
- test_overview.py: trends overview periods, breakdowns and filters
- test_sources.py: raw row parsing, in-memory, PostgreSQL and pandas sources
- test_analysis.py: orchestration, validation, caching, timeouts, cancellation
- test_api.py: HTTP routes and error mapping

Running Tests:
--------------
    pip install -e ".[test]"
    pytest adjudication_drift/tests -v
'''

__all__ = []
