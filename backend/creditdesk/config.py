# backend/creditdesk/config.py
from __future__ import annotations
import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///creditdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # East Africa Time: fixed UTC+3, no DST
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "Africa/Nairobi")

    # Receipt numbering: {PREFIX}-{STATION}-{YYYYMMDD}-{NNNN}
    RECEIPT_NUMBER_PREFIX = os.environ.get("RECEIPT_NUMBER_PREFIX", "KSH-CR")
    RECEIPT_NUMBER_MAX_ATTEMPTS = _env_int("RECEIPT_NUMBER_MAX_ATTEMPTS", 5)
    DEFAULT_STATION_CODE = os.environ.get("DEFAULT_STATION_CODE", "JUB")
    DEFAULT_ISSUER_NAME = os.environ.get("DEFAULT_ISSUER_NAME", "Staff")
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "USD")

    RECEIPT_VERIFY_URL = os.environ.get(
        "RECEIPT_VERIFY_URL",
        "https://receipts.kushair.net/verify/{receipt_number}",
    )

    STALE_PENDING_DAYS = _env_int("STALE_PENDING_DAYS", 3)

    SESSION_ABSOLUTE_TIMEOUT_HOURS = _env_int("SESSION_ABSOLUTE_TIMEOUT_HOURS", 12)
    SESSION_IDLE_TIMEOUT_HOURS = _env_int("SESSION_IDLE_TIMEOUT_HOURS", 2)

    DEFAULT_PAGE_SIZE = _env_int("DEFAULT_PAGE_SIZE", 20)
    MAX_PAGE_SIZE = _env_int("MAX_PAGE_SIZE", 200)

    # Printed on PDF receipts
    COMPANY_NAME = os.environ.get("COMPANY_NAME", "KUSH AIR")
    COMPANY_TAGLINE = os.environ.get("COMPANY_TAGLINE", "Credit Management")
    COMPANY_ADDRESS = os.environ.get(
        "COMPANY_ADDRESS", "Juba International Airport, Juba, South Sudan"
    )
    COMPANY_CONTACTS = os.environ.get(
        "COMPANY_CONTACTS", "finance@kushair.net | +211 920 000 000"
    )
    COMPANY_IATA_CODE = os.environ.get("COMPANY_IATA_CODE", "K9")

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]
