"""
API routers for the Adjudication Drift service.

Routers:
- trends_router: /trends cohort and drift endpoints
"""

from adjudication_drift.api.trends import router as trends_router

__all__ = ["trends_router"]
