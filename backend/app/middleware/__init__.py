"""
Middleware package for request monitoring and authentication
"""

from .auth import get_current_viewer, require_admin
from .monitoring import MonitoringMiddleware

__all__ = [
    "get_current_viewer",
    "require_admin",
    "MonitoringMiddleware"
]
