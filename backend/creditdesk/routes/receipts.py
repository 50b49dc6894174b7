# Overview: Flask API routes for receipts; issue, list, mark paid, void, PDF and public verification.

from io import BytesIO

from flask import Blueprint, current_app, g, request, send_file

from ..decorators import require_auth
from ..errors import ValidationError
from ..extensions import db
from ..models.receipts import STATUS_PAID
from ..responses import success
from ..services.export_service import receipt_snapshot
from ..services.pdf_service import render_receipt_pdf
from ..services.receipt_service import LedgerSettings, ReceiptFilters, ReceiptLedger
from ..validation import (
    json_body,
    parse_datetime_field,
    query_bool,
    query_date_range,
    query_int,
)

receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/v1/receipts")
verify_bp = Blueprint("verify", __name__, url_prefix="/api/v1/verify")


def _ledger() -> ReceiptLedger:
    return ReceiptLedger(
        db.session,
        qr_generator=current_app.extensions.get("creditdesk.qr"),
        settings=LedgerSettings.from_config(current_app.config),
    )


@receipts_bp.post("")
@require_auth
def create_receipt():
    data = json_body()
    created = _ledger().create(
        agency_ref=data.get("agency_id"),
        amount=data.get("amount"),
        currency=data.get("currency"),
        payment_method=data.get("payment_method"),
        status=data.get("status"),
        due_date=data.get("due_date"),
        remarks=data.get("remarks"),
        acting_user=g.current_user,
    )
    receipt = created.receipt
    current_app.logger.info(
        "Receipt %s issued by %s", receipt.receipt_number, receipt.issued_by_name
    )
    return success(
        {
            "receipt": receipt.to_dict(with_agency_contacts=True),
            "qr_code": created.qr_code,
        },
        201,
        message="Receipt created",
    )


@receipts_bp.get("")
@require_auth
def list_receipts():
    date_from, date_to = query_date_range()
    filters = ReceiptFilters(
        status=request.args.get("status") or None,
        agency_code=(request.args.get("agency_id") or "").strip() or None,
        date_from=date_from,
        date_to=date_to,
        include_void=query_bool("include_void"),
        overdue=query_bool("overdue"),
    )
    page = _ledger().list(
        filters,
        page=query_int("page", 1),
        page_size=query_int("page_size"),
    )
    return success(page.to_dict(lambda r: r.to_dict()))


@receipts_bp.get("/<receipt_id>")
@require_auth
def get_receipt(receipt_id: str):
    receipt = _ledger().get(receipt_id)
    return success({"receipt": receipt.to_dict(with_agency_contacts=True)})


@receipts_bp.put("/<receipt_id>")
@require_auth
def update_receipt(receipt_id: str):
    """Only PENDING -> PAID is exposed here; voiding goes through DELETE."""
    data = json_body()
    status = str(data.get("status") or "").strip().upper()
    if status != STATUS_PAID:
        raise ValidationError("status must be PAID")

    receipt = _ledger().mark_paid(
        receipt_id,
        payment_date=parse_datetime_field(data.get("payment_date"), "payment_date"),
    )
    return success({"receipt": receipt.to_dict()}, message="Receipt marked as paid")


@receipts_bp.delete("/<receipt_id>")
@require_auth
def void_receipt(receipt_id: str):
    data = json_body()
    reason = data.get("reason") or request.args.get("reason")
    outcome = _ledger().void(receipt_id, reason)
    return success(outcome.to_dict(), message="Receipt voided")


@receipts_bp.get("/<receipt_id>/pdf")
@require_auth
def receipt_pdf(receipt_id: str):
    receipt = _ledger().get(receipt_id)
    qr = current_app.extensions.get("creditdesk.qr")
    qr_png = qr.png_bytes(receipt.receipt_number) if qr is not None else None

    pdf = render_receipt_pdf(receipt_snapshot(receipt, current_app.config), qr_png)
    return send_file(
        BytesIO(pdf),
        mimetype="application/pdf",
        as_attachment=request.args.get("download", "false").lower() == "true",
        download_name=f"{receipt.receipt_number}.pdf",
    )


@verify_bp.get("/<receipt_number>")
def verify_receipt(receipt_number: str):
    """Public: what a scanned QR code resolves to. No contact details."""
    receipt = _ledger().get_by_number(receipt_number)
    return success({
        "receipt_number": receipt.receipt_number,
        "agency_name": receipt.agency.agency_name if receipt.agency else None,
        "amount": float(receipt.amount),
        "currency": receipt.currency,
        "status": receipt.status,
        "issue_date": receipt.issue_date.isoformat(),
        "is_void": receipt.is_void,
    })
