"""
Adjudication Drift: cohort and drift analysis of adjudication issue events.

Packages:
- core: settings, database pool, errors, FastAPI dependencies
- models: enums, label tables, Pydantic schemas
- sources: issue record sources (in-memory, PostgreSQL, pandas)
- services: the analysis engine and its orchestration
- api: FastAPI routers
"""

__version__ = "1.0.0"
