"""
Health check router.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from incident_shared.utils.schemas import HealthOutput


router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthOutput)
def health_check() -> HealthOutput:
    """Liveness check; touches no dependency."""
    return HealthOutput(status="OK", timestamp=datetime.now(timezone.utc))
