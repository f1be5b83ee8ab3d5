from pydantic import BaseModel
from typing import Optional, Any

from .exceptions import RemoteRequestFailed


class ApiResponse(BaseModel):
    """
    {success, data, message} envelope used by the booking service and by
    this API's own responses.
    """

    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    status_code: Optional[int] = None

    class Config:
        extra = "ignore"

    def unwrap(self, fallback: str) -> Any:
        """Return data on success, otherwise raise with the server message or the fallback"""
        if not self.success:
            raise RemoteRequestFailed(self.message or fallback, status_code=self.status_code)
        return self.data


def envelope(data: Any = None, message: Optional[str] = None) -> dict:
    """Successful response body for the rendering layer"""
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body
