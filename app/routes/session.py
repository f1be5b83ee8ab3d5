"""Session endpoints"""

import logging

from fastapi import APIRouter, Request

from ..schemas import envelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["Session"])


@router.post("/logout")
async def logout(request: Request):
    """Drop all session state so nothing leaks to the next user"""
    state = request.app.state
    state.reconciler.reset()
    state.report_service.clear()
    state.company_settings.reset()
    logger.info("👋 Session state cleared")
    return envelope(None, "Logged out")
