import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .domain.calendar.reconciler import CalendarReconciler
from .domain.calendar.router import router as calendar_router
from .domain.reports.cache import ReportCache
from .domain.reports.router import router as reports_router
from .domain.reports.service import ReportService
from .exceptions import (
    DashboardError,
    InvalidLocalTime,
    RecordNotFound,
    RemoteRequestFailed,
    ReportUnavailable,
    ValidationError,
)
from .routes.session import router as session_router
from .routes.settings import router as settings_router
from .services.booking_api import BookingApiClient
from .services.company_settings import CompanySettings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

ALLOWED_ORIGINS = [config.FRONTEND_URL]

# Most specific first: InvalidLocalTime and RecordNotFound are ValidationErrors
ERROR_STATUS_CODES = (
    (InvalidLocalTime, 422),
    (RecordNotFound, 404),
    (ValidationError, 400),
    (RemoteRequestFailed, 502),
    (ReportUnavailable, 503),
)


def status_code_for(exc: DashboardError) -> int:
    for exc_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 500


def create_app(api: Optional[BookingApiClient] = None, report_cache: Optional[ReportCache] = None) -> FastAPI:
    """
    Build the dashboard API.

    `api` and `report_cache` default to instances configured from the
    environment; tests pass their own.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting up...")
        booking_api = api if api is not None else BookingApiClient(
            config.BOOKING_API_URL,
            token=config.BOOKING_API_TOKEN,
            timeout=config.BOOKING_API_TIMEOUT,
        )
        company_settings = CompanySettings(config.DEFAULT_TIMEZONE)

        if config.COMPANY_ID:
            try:
                await company_settings.load(booking_api, config.COMPANY_ID)
                logger.info(f"✅ Company timezone: {company_settings.timezone}")
            except RemoteRequestFailed as e:
                logger.warning(
                    f"⚠️ Company settings unavailable, using {company_settings.timezone}: {e.message}"
                )

        app.state.booking_api = booking_api
        app.state.company_settings = company_settings
        app.state.reconciler = CalendarReconciler(booking_api, company_settings)
        if report_cache is None:
            cache = ReportCache(ttl=config.REPORT_CACHE_TTL_SECONDS)
        else:
            cache = report_cache
        app.state.report_service = ReportService(booking_api, company_settings, cache=cache)
        yield
        logger.info("Application shutting down...")

    app = FastAPI(title="Salon Dashboard API", version="1.0.0", lifespan=lifespan)

    @app.exception_handler(DashboardError)
    async def dashboard_error_handler(request: Request, exc: DashboardError):
        """Domain errors become {success: false, message} with a matching status"""
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(f"❌ {request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.warning(f"⚠️ {request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=status_code, content={"success": False, "message": exc.message})

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
    )

    # Routes
    app.include_router(calendar_router)
    app.include_router(reports_router)
    app.include_router(settings_router)
    app.include_router(session_router)

    @app.get("/")
    def root():
        return {"message": "Salon Dashboard API is running"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


app = create_app()
