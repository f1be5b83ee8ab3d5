"""Reports domain - Cached booking analytics for the dashboard"""

from .router import router

__all__ = ["router"]
