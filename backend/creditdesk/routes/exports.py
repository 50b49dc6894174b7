# Overview: Flask API routes for CSV exports.

from flask import Blueprint, Response, current_app, request

from ..decorators import require_auth
from ..extensions import db
from ..services import export_service
from ..services.receipt_service import ReceiptFilters
from ..time_utils import business_today
from ..validation import query_date_range

exports_bp = Blueprint("exports", __name__, url_prefix="/api/v1/export")


def _csv_response(body: str, kind: str) -> Response:
    filename = export_service.export_filename(
        kind, business_today(current_app.config["BUSINESS_TIMEZONE"])
    )
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@exports_bp.get("/receipts")
@require_auth
def export_receipts():
    date_from, date_to = query_date_range()
    filters = ReceiptFilters(
        status=request.args.get("status") or None,
        agency_code=(request.args.get("agency_id") or "").strip() or None,
        date_from=date_from,
        date_to=date_to,
    )
    return _csv_response(export_service.receipts_csv(db.session, filters), "receipts")


@exports_bp.get("/summary")
@require_auth
def export_summary():
    return _csv_response(export_service.agency_summary_csv(db.session), "summary")
