"""HTTP routes."""

from .health import register_health_route
from .schedule_api import api_bp

__all__ = ["api_bp", "register_health_route"]
