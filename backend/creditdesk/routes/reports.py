# Overview: Flask API routes for analytics and dashboard stats; read-only views over receipts.

from flask import Blueprint, current_app

from ..decorators import require_auth
from ..extensions import db
from ..responses import success
from ..services import reporting_service
from ..validation import query_bool, query_date_range

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/v1/analytics")
stats_bp = Blueprint("stats", __name__, url_prefix="/api/v1/stats")


def _tz() -> str:
    return current_app.config["BUSINESS_TIMEZONE"]


@analytics_bp.get("")
@require_auth
def analytics():
    date_from, date_to = query_date_range()
    report = reporting_service.revenue_analytics(
        db.session,
        date_from=date_from,
        date_to=date_to,
        include_void=query_bool("include_void"),
        tz_name=_tz(),
    )
    return success(report)


@stats_bp.get("/dashboard")
@require_auth
def dashboard():
    summary = reporting_service.dashboard_summary(
        db.session,
        tz_name=_tz(),
        stale_days=current_app.config["STALE_PENDING_DAYS"],
    )
    return success(summary)


@stats_bp.get("/today")
@require_auth
def today():
    return success(reporting_service.today_stats(db.session, tz_name=_tz()))


@stats_bp.get("/pending")
@require_auth
def pending():
    return success(reporting_service.pending_summary(db.session, tz_name=_tz()))
