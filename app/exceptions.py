"""
Dashboard error taxonomy

Every core operation either returns a value or raises one of these.
Routers translate them into the {success, message} envelope in main.py.
"""

from typing import Optional


class DashboardError(Exception):
    """Base class for all dashboard core errors"""

    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DashboardError):
    """Raised before any network call when input is rejected"""

    default_message = "Invalid input"


class InvalidLocalTime(ValidationError):
    """Raised when a local date/time does not exist in the zone (DST gap)"""

    default_message = "This time does not exist in the selected timezone"

    def __init__(self, date_str: str, time_str: str, zone: str, message: Optional[str] = None):
        self.date = date_str
        self.time = time_str
        self.zone = zone
        super().__init__(
            message
            or f"{date_str} {time_str} does not exist in {zone} (clocks move forward). Please pick another time."
        )


class RecordNotFound(ValidationError):
    """Raised when a mutation targets a record that is not in the visible set"""

    default_message = "Record not found"


class RemoteRequestFailed(DashboardError):
    """Raised when the booking service reports a failure or cannot be reached"""

    default_message = "Request failed. Please try again."

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ReportUnavailable(DashboardError):
    """Raised when either report window could not be fetched"""

    default_message = "Report data is unavailable right now"
