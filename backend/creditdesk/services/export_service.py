# Overview: Service-layer operations for exports; flat CSV files and PDF receipt snapshots.

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session, joinedload

from ..errors import NotFoundError
from ..models import Agency, Receipt
from ..models.receipts import RECEIPT_STATUSES, STATUS_PAID, STATUS_PENDING, STATUS_VOID
from ..time_utils import DEFAULT_BUSINESS_TIMEZONE, to_business, to_utc_z
from .receipt_service import ReceiptFilters, parse_status

RECEIPT_COLUMNS = [
    "Receipt Number",
    "Issue Date",
    "Issue Time",
    "Agency ID",
    "Agency Name",
    "Amount",
    "Currency",
    "Payment Method",
    "Status",
    "Payment Date",
    "Station",
    "Issued By",
    "Remarks",
]

SUMMARY_COLUMNS = [
    "Agency ID",
    "Agency Name",
    "Total Receipts",
    "Paid Count",
    "Paid Amount",
    "Pending Count",
    "Pending Amount",
    "Grand Total",
]

_CENT = Decimal("0.01")


def _money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(_CENT)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _writer(buf: io.StringIO):
    # Text fields are quoted, embedded quotes doubled; amounts and counts are bare
    return csv.writer(buf, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")


def export_filename(kind: str, today: date) -> str:
    return f"{kind}-export-{today.isoformat()}.csv"


# =============================================================================
# RECEIPTS CSV
# =============================================================================

def receipts_csv(session: Session, filters: ReceiptFilters | None = None) -> str:
    """
    Render receipts matching the filters, newest issue date first. VOID rows
    are left out unless include_void is set or the status filter asks for them.

    Raises:
        NotFoundError: nothing matched
    """
    filters = filters or ReceiptFilters()
    query = (
        session.query(Receipt)
        .join(Agency, Receipt.agency_id == Agency.id)
        .options(joinedload(Receipt.agency))
    )
    status = None
    if filters.status:
        status = parse_status(filters.status, allowed=RECEIPT_STATUSES)
        query = query.filter(Receipt.status_key == status)
    if not filters.include_void and status != STATUS_VOID:
        query = query.filter(Receipt.status_key != STATUS_VOID)
    if filters.agency_code:
        query = query.filter(Agency.agency_id == filters.agency_code)
    if filters.date_from:
        query = query.filter(Receipt.issue_date >= filters.date_from)
    if filters.date_to:
        query = query.filter(Receipt.issue_date <= filters.date_to)

    receipts = query.order_by(Receipt.issue_date.desc(), Receipt.created_at.desc()).all()
    if not receipts:
        raise NotFoundError("No receipts found to export.")

    buf = io.StringIO()
    writer = _writer(buf)
    writer.writerow(RECEIPT_COLUMNS)
    for r in receipts:
        writer.writerow([
            r.receipt_number,
            r.issue_date.isoformat(),
            r.issue_time.strftime("%H:%M:%S") if r.issue_time else "",
            r.agency.agency_id,
            r.agency.agency_name,
            _money(r.amount),
            r.currency,
            r.payment_method,
            r.status,
            _text(to_utc_z(r.payment_date)),
            r.station_code,
            r.issued_by_name,
            _text(r.remarks),
        ])
    return buf.getvalue()


# =============================================================================
# AGENCY SUMMARY CSV
# =============================================================================

def agency_summary_csv(session: Session) -> str:
    """One row per active agency (including those with no receipts), VOID excluded."""
    is_paid = Receipt.status_key == STATUS_PAID
    is_pending = Receipt.status_key == STATUS_PENDING
    grand_total = func.coalesce(func.sum(Receipt.amount), 0)

    rows = (
        session.query(
            Agency.agency_id,
            Agency.agency_name,
            func.count(Receipt.id).label("total_receipts"),
            func.count(case((is_paid, 1))).label("paid_count"),
            func.coalesce(func.sum(case((is_paid, Receipt.amount), else_=0)), 0).label("paid_total"),
            func.count(case((is_pending, 1))).label("pending_count"),
            func.coalesce(func.sum(case((is_pending, Receipt.amount), else_=0)), 0).label("pending_total"),
            grand_total.label("grand_total"),
        )
        .outerjoin(
            Receipt,
            and_(Receipt.agency_id == Agency.id, Receipt.status_key != STATUS_VOID),
        )
        .filter(Agency.is_active.is_(True))
        .group_by(Agency.id, Agency.agency_id, Agency.agency_name)
        .order_by(grand_total.desc(), Agency.agency_name.asc())
        .all()
    )

    buf = io.StringIO()
    writer = _writer(buf)
    writer.writerow(SUMMARY_COLUMNS)
    for row in rows:
        writer.writerow([
            row.agency_id,
            row.agency_name,
            int(row.total_receipts or 0),
            int(row.paid_count or 0),
            _money(row.paid_total),
            int(row.pending_count or 0),
            _money(row.pending_total),
            _money(row.grand_total),
        ])
    return buf.getvalue()


# =============================================================================
# PDF SNAPSHOT
# =============================================================================

@dataclass(frozen=True)
class ReceiptSnapshot:
    """Everything the PDF renderer needs, detached from the ORM session."""

    receipt_number: str
    issue_date: date
    issue_time: str
    agency_name: str
    agency_code: str
    amount: Decimal
    currency: str
    payment_method: str
    status: str
    payment_date: datetime | None
    station: str
    issued_by: str
    remarks: str | None
    void_reason: str | None
    company_name: str
    company_tagline: str
    company_address: str
    company_contacts: str
    company_iata_code: str
    tz_name: str = DEFAULT_BUSINESS_TIMEZONE

    @property
    def local_payment_date(self) -> datetime | None:
        if self.payment_date is None:
            return None
        return to_business(self.payment_date, self.tz_name)


def receipt_snapshot(receipt: Receipt, company: Mapping[str, Any]) -> ReceiptSnapshot:
    agency = receipt.agency
    return ReceiptSnapshot(
        receipt_number=receipt.receipt_number,
        issue_date=receipt.issue_date,
        issue_time=receipt.issue_time.strftime("%H:%M") if receipt.issue_time else "",
        agency_name=agency.agency_name if agency else "Unknown",
        agency_code=agency.agency_id if agency else "",
        amount=_money(receipt.amount),
        currency=receipt.currency,
        payment_method=receipt.payment_method,
        status=receipt.status,
        payment_date=receipt.payment_date,
        station=receipt.station_code,
        issued_by=receipt.issued_by_name,
        remarks=receipt.remarks,
        void_reason=receipt.void_reason,
        company_name=company.get("COMPANY_NAME", ""),
        company_tagline=company.get("COMPANY_TAGLINE", ""),
        company_address=company.get("COMPANY_ADDRESS", ""),
        company_contacts=company.get("COMPANY_CONTACTS", ""),
        company_iata_code=company.get("COMPANY_IATA_CODE", ""),
        tz_name=company.get("BUSINESS_TIMEZONE", DEFAULT_BUSINESS_TIMEZONE),
    )
