"""
Company settings context
Owns the active company timezone. Set at startup, updated when company
settings change, reset on logout. Everything else reads it through
`timezone` and passes it explicitly to the converters.
"""

import logging
from typing import Optional

from ..exceptions import ValidationError
from ..shared.validators import validate_timezone
from .booking_api import BookingApiClient

logger = logging.getLogger(__name__)


class CompanySettings:
    """Holds the company timezone for the current session"""

    def __init__(self, default_timezone: str = "UTC"):
        self.default_timezone = self._validated(default_timezone)
        self._timezone = self.default_timezone
        self.company_id: Optional[str] = None

    @staticmethod
    def _validated(zone: Optional[str]) -> str:
        try:
            return validate_timezone(zone)
        except ValueError as e:
            raise ValidationError(str(e))

    @property
    def timezone(self) -> str:
        return self._timezone

    def set_timezone(self, zone: str) -> str:
        """Switch the active zone. Raises ValidationError for unknown zones."""
        zone = self._validated(zone)
        if zone != self._timezone:
            logger.info(f"🌍 Company timezone changed: {self._timezone} → {zone}")
        self._timezone = zone
        return zone

    def reset(self) -> None:
        """Back to the default zone (logout)"""
        self._timezone = self.default_timezone
        self.company_id = None

    async def load(self, api: BookingApiClient, company_id: str) -> str:
        """
        Fetch company settings and apply their timezone.

        Keeps the current zone when the company has none configured or the
        configured one is unknown. Raises RemoteRequestFailed if the fetch fails.
        """
        response = await api.get_company(company_id)
        company = response.unwrap("Failed to fetch company settings") or {}
        self.company_id = company_id

        zone = company.get("timezone") if isinstance(company, dict) else None
        if not zone:
            logger.warning(f"⚠️ Company {company_id} has no timezone, keeping {self._timezone}")
            return self._timezone

        try:
            return self.set_timezone(zone)
        except ValidationError:
            logger.warning(f"⚠️ Company {company_id} has unknown timezone {zone}, keeping {self._timezone}")
            return self._timezone
