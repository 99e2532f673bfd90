"""
Shared module for the incident alert backend.

STRUCTURE:
- incident_shared.security: Authentication, token revocation, passwords
  - auth.py: AuthGate (issue/verify/revoke), bearer dependencies
  - revocation.py: Revocation stores (in-memory default, Redis optional)
  - password.py: Bcrypt hashing
  - rate_limit.py: Login rate limiting (slowapi)

- incident_shared.infrastructure: Database, Redis, request plumbing
  - db.py: SQLAlchemy engine/sessions, safe_commit()
  - redis_pool.py: Sync Redis client for the Redis revocation store
  - correlation.py: X-Request-ID middleware and logging filter
  - tasks.py: BackgroundTaskGroup for fire-and-forget fan-out

- incident_shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
  - constants.py: Report status, topics, push message constants

- incident_shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - schemas.py: Shared Pydantic request/response schemas

IMPORT EXAMPLES:
    from incident_shared.security.auth import AuthGate, Principal
    from incident_shared.infrastructure.db import get_db, safe_commit
    from incident_shared.config.settings import settings
    from incident_shared.config.constants import ReportStatus, Topics
    from incident_shared.utils.exceptions import NotFoundError, AuthorizationError
"""
