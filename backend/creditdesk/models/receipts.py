from __future__ import annotations

import uuid

from sqlalchemy.ext.hybrid import hybrid_property

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


# Receipt lifecycle: PENDING -> PAID, PENDING|PAID -> VOID (terminal)
STATUS_PENDING = "PENDING"
STATUS_PAID = "PAID"
STATUS_VOID = "VOID"

RECEIPT_STATUSES = (STATUS_PENDING, STATUS_PAID, STATUS_VOID)
CREATABLE_STATUSES = (STATUS_PENDING, STATUS_PAID)

METHOD_CASH = "CASH"
METHOD_BANK_TRANSFER = "BANK_TRANSFER"

PAYMENT_METHODS = (METHOD_CASH, METHOD_BANK_TRANSFER)


def _new_uuid() -> str:
    return str(uuid.uuid4())


class Receipt(db.Model):
    """
    Credit deposit receipt.

    WHY: The single source of truth for every deposit an agency makes.
    Dashboards, analytics and exports are all derived from these rows.

    INVARIANTS:
    - receipt_number is unique and never reassigned
    - amount > 0
    - payment_date is set whenever status is PAID
    - VOID is terminal; void_reason/void_date are written once

    station_code and issued_by_name are a snapshot of the issuing user at
    creation time, not a live reference.
    """
    __tablename__ = "receipts"
    __table_args__ = (
        db.UniqueConstraint("receipt_number", name="uq_receipts_receipt_number"),
        db.CheckConstraint("amount > 0", name="ck_receipts_amount_positive"),
        db.Index("ix_receipts_status_issue_date", "status", "issue_date"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_uuid)
    receipt_number = db.Column(db.String(64), nullable=False)

    agency_id = db.Column(db.String(36), db.ForeignKey("agencies.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="USD")
    payment_method = db.Column(db.String(32), nullable=False, default=METHOD_CASH)

    status = db.Column(db.String(16), nullable=False, index=True)

    # Business-timezone wall clock at creation
    issue_date = db.Column(db.Date, nullable=False, index=True)
    issue_time = db.Column(db.Time, nullable=False)

    payment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    due_date = db.Column(db.Date, nullable=True)

    void_reason = db.Column(db.String(500), nullable=True)
    void_date = db.Column(db.DateTime(timezone=True), nullable=True)

    station_code = db.Column(db.String(16), nullable=False)
    issued_by_name = db.Column(db.String(255), nullable=False)
    remarks = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    agency = db.relationship("Agency", backref=db.backref("receipts", lazy=True))
    issued_by = db.relationship("User", backref=db.backref("receipts_issued", lazy=True))

    # Rows loaded by imports or by hand may carry lowercase statuses; every
    # filter and aggregate compares against this instead of the raw column.
    @hybrid_property
    def status_key(self) -> str:
        return (self.status or "").upper()

    @status_key.expression
    def status_key(cls):
        return db.func.upper(cls.status)

    @hybrid_property
    def is_void(self) -> bool:
        return self.status_key == STATUS_VOID

    @is_void.expression
    def is_void(cls):
        return cls.status_key == STATUS_VOID

    def __repr__(self) -> str:
        return f"<Receipt {self.receipt_number} {self.status}>"

    def to_dict(self, with_agency_contacts: bool = False) -> dict:
        return {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "agency": self.agency.to_ref_dict(with_contacts=with_agency_contacts) if self.agency else None,
            "amount": float(self.amount),
            "currency": self.currency,
            "status": self.status,
            "payment_method": self.payment_method,
            "issue_date": self.issue_date.isoformat() if self.issue_date else None,
            "issue_time": self.issue_time.strftime("%H:%M:%S") if self.issue_time else None,
            "payment_date": to_utc_z(self.payment_date),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "station": self.station_code,
            "issued_by": self.issued_by_name,
            "remarks": self.remarks,
            "is_void": self.is_void,
            "void_reason": self.void_reason,
            "void_date": to_utc_z(self.void_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
