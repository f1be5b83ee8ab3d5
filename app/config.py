import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Booking service (source of truth for bookings, time-offs, customers, companies)
BOOKING_API_URL = os.getenv("BOOKING_API_URL", "http://localhost:8000")
BOOKING_API_TOKEN = os.getenv("BOOKING_API_TOKEN")
BOOKING_API_TIMEOUT = float(os.getenv("BOOKING_API_TIMEOUT", "15"))

# Company whose settings (timezone) are loaded at startup. Optional.
COMPANY_ID = os.getenv("COMPANY_ID")

# IANA zone used until company settings say otherwise
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC")

# Dashboard reports are cached for 5 minutes by default
REPORT_CACHE_TTL_SECONDS = int(os.getenv("REPORT_CACHE_TTL_SECONDS", "300"))

# Frontend base URL (CORS origin for the rendering layer)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
