"""
API routers.
"""

from .auth import router as auth_router
from .reports import router as reports_router
from .admin_push import router as admin_push_router
from .admin_session import router as admin_session_router
from .live import router as live_router
from .health import router as health_router

__all__ = [
    "auth_router",
    "reports_router",
    "admin_push_router",
    "admin_session_router",
    "live_router",
    "health_router",
]
