"""Report router - FastAPI endpoints for dashboard analytics"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ...exceptions import ReportUnavailable
from ...schemas import envelope
from .service import ReportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


def get_report_service(request: Request) -> ReportService:
    """Dependency injection for ReportService"""
    return request.app.state.report_service


def _state_body(service: ReportService) -> dict:
    state = service.state
    return {
        "report": state.report.model_dump() if state.report else None,
        "is_loading": state.is_loading,
        "is_stale": state.is_stale,
        "error": state.error,
    }


@router.get("/state")
async def report_state(service: ReportService = Depends(get_report_service)):
    """Report currently on the dashboard, with loading/staleness flags"""
    return envelope(_state_body(service))


@router.delete("/cache")
async def clear_report_cache(service: ReportService = Depends(get_report_service)):
    service.clear()
    return envelope(None, "Report cache cleared")


@router.get("/{period}")
async def get_report(
    period: str,
    start_date: Optional[str] = Query(None, description="Custom range start (YYYY-MM-DD)"),
    end_date: Optional[str] = Query(None, description="Custom range end (YYYY-MM-DD)"),
    service: ReportService = Depends(get_report_service),
):
    """
    Report for a period. If it cannot be generated but an older report is
    on screen, that one is returned flagged as stale.
    """
    try:
        await service.get_report(period, start_date, end_date)
    except ReportUnavailable:
        if not service.has_stale_report(period, start_date, end_date):
            raise
        logger.warning(f"⚠️ Serving stale report for {period}")
    return envelope(_state_body(service))


@router.post("/{period}/refresh")
async def refresh_report(
    period: str,
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    service: ReportService = Depends(get_report_service),
):
    try:
        await service.refresh(period, start_date, end_date)
    except ReportUnavailable:
        if not service.has_stale_report(period, start_date, end_date):
            raise
        logger.warning(f"⚠️ Refresh failed, serving stale report for {period}")
    return envelope(_state_body(service))
