"""
Application lifespan handler.
Manages startup and shutdown events for the FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from incident_shared.config.settings import settings
from incident_shared.config.logging import setup_logging, api_logger as logger
from incident_shared.infrastructure.db import engine
from incident_shared.infrastructure.redis_pool import close_redis_sync_pool
from incident_api.core.dependencies import get_services
from incident_api.models import Base


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    # Initialize logging
    setup_logging()

    # Validate production secrets before startup
    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )
        else:
            logger.warning("Running with insecure defaults (acceptable for development only)")

    # Startup
    logger.info("Starting incident API", port=settings.api_port, env=settings.environment)

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    services = get_services()
    logger.info(
        "Alert services ready",
        sender=type(services.sender).__name__,
        revocation_backend=settings.revocation_backend,
        token_expiry_minutes=settings.jwt_expire_minutes,
    )

    yield

    # Shutdown
    logger.info("Shutting down incident API")

    # Let in-flight fan-outs finish before the sender goes away
    await services.tasks.close(timeout=settings.task_drain_timeout)
    logger.info("Background tasks drained")

    await services.hub.close_all()

    services.sender.close()
    logger.info("Push sender closed")

    close_redis_sync_pool()
