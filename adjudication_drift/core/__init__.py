"""
Core infrastructure package for the Adjudication Drift service.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg
- The engine's exception taxonomy

FastAPI dependencies live in ``adjudication_drift.core.dependencies`` and are
imported from there directly, since they depend on the services layer.

Usage Examples:
    from adjudication_drift.core import get_settings, init_db, close_db

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_db()
        yield
        await close_db()
"""

# =============================================================================
# Re-exports from adjudication_drift.core.config
# =============================================================================
from adjudication_drift.core.config import Settings, get_settings

# =============================================================================
# Re-exports from adjudication_drift.core.database
# =============================================================================
from adjudication_drift.core.database import init_db, close_db, get_db_pool

# =============================================================================
# Re-exports from adjudication_drift.core.errors
# =============================================================================
from adjudication_drift.core.errors import (
    AnalysisCancelled,
    AnalysisTimedOut,
    DriftAnalysisError,
    InvalidConfiguration,
    MalformedRecord,
    SourceUnavailable,
)

__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Database pool lifecycle (from database.py)
    'init_db',
    'close_db',
    'get_db_pool',
    # Errors (from errors.py)
    'AnalysisCancelled',
    'AnalysisTimedOut',
    'DriftAnalysisError',
    'InvalidConfiguration',
    'MalformedRecord',
    'SourceUnavailable',
]
