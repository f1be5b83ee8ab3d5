"""Company settings endpoints - active timezone for the dashboard"""

import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from ..schemas import envelope
from ..services.company_settings import CompanySettings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["Settings"])


class TimezoneUpdate(BaseModel):
    timezone: str


def get_company_settings(request: Request) -> CompanySettings:
    return request.app.state.company_settings


@router.get("/timezone")
async def get_timezone(settings: CompanySettings = Depends(get_company_settings)):
    return envelope({"timezone": settings.timezone})


@router.put("/timezone")
async def update_timezone(
    data: TimezoneUpdate,
    request: Request,
    settings: CompanySettings = Depends(get_company_settings),
):
    """
    Switch the company timezone. Cached reports are bucketed by local day,
    so they are dropped when the zone actually changes.
    """
    previous = settings.timezone
    zone = settings.set_timezone(data.timezone)
    if zone != previous:
        request.app.state.report_service.clear()
    return envelope({"timezone": zone}, "Timezone updated")
