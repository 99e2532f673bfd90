"""
Incident API main application.
Entry point for the FastAPI server.
"""

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from incident_shared.config.settings import settings
from incident_shared.infrastructure.correlation import CorrelationIdMiddleware
from incident_shared.security.rate_limit import limiter, rate_limit_exceeded_handler
from incident_api.core import configure_cors, lifespan, register_middlewares
from incident_api.routers import (
    admin_push_router,
    admin_session_router,
    auth_router,
    health_router,
    live_router,
    reports_router,
)


# Create FastAPI application
app = FastAPI(
    title="Incident Alerts API",
    description="Incident reports with live broadcast and administrator push alerts",
    version="1.0.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Middlewares run in reverse order of registration: correlation ID is outermost
register_middlewares(app)
configure_cors(app)
app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(auth_router)
app.include_router(reports_router)
app.include_router(admin_push_router)
app.include_router(admin_session_router)
app.include_router(live_router)


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "incident_api.main:app",
        host="0.0.0.0",
        port=settings.api_port,
        reload=settings.debug,
    )
