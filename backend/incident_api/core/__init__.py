"""
Application core: lifespan, CORS, middlewares and service wiring.
"""

from .cors import configure_cors
from .middlewares import register_middlewares
from .lifespan import lifespan

__all__ = [
    "configure_cors",
    "register_middlewares",
    "lifespan",
]
