"""Calendar domain - Bookings and time-offs projected onto the visible calendar"""

from .router import router

__all__ = ["router"]
