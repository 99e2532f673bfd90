"""
Infrastructure module: Database, Redis, correlation IDs, background tasks.
"""

from incident_shared.infrastructure.db import (
    engine,
    SessionLocal,
    build_engine,
    get_db,
    get_db_context,
    safe_commit,
)
from incident_shared.infrastructure.correlation import (
    CorrelationIdMiddleware,
    CorrelationIdFilter,
    get_request_id,
)
from incident_shared.infrastructure.tasks import BackgroundTaskGroup

__all__ = [
    # db
    "engine",
    "SessionLocal",
    "build_engine",
    "get_db",
    "get_db_context",
    "safe_commit",
    # correlation
    "CorrelationIdMiddleware",
    "CorrelationIdFilter",
    "get_request_id",
    # tasks
    "BackgroundTaskGroup",
]
