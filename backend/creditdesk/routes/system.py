# Overview: Flask API routes for system health; database connectivity and version info.

import os
import time

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..responses import error, success
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "error": "Database error"}


@system_bp.get("/health")
def health():
    database = check_database_health()
    body = {
        "service": "creditdesk",
        "version": os.environ.get("APP_VERSION", "dev"),
        "time": to_utc_z(utcnow()),
        "database": database,
    }
    if database["status"] != "healthy":
        return error("Database unavailable", 503)
    return success(body)
