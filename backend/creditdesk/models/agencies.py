from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


def _new_uuid() -> str:
    return str(uuid.uuid4())


class Agency(db.Model):
    """
    Travel agency partner that deposits credit and receives receipts.

    WHY two identifiers: `id` is the internal surrogate (UUID) that receipts
    reference; `agency_id` is the externally visible account code printed on
    receipts and used for imports. Upserts are keyed by the code.

    Agencies are never deleted. Deactivation is a flag flip, and inactive
    agencies cannot receive new receipts.
    """
    __tablename__ = "agencies"
    __table_args__ = (
        db.UniqueConstraint("agency_id", name="uq_agencies_agency_id"),
        db.Index("ix_agencies_active_name", "is_active", "agency_name"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_uuid)

    # Natural key (account code), e.g. "789456"
    agency_id = db.Column(db.String(64), nullable=False)
    agency_name = db.Column(db.String(255), nullable=False)

    contact_email = db.Column(db.String(255), nullable=True)
    contact_phone = db.Column(db.String(64), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    country = db.Column(db.String(120), nullable=True)

    # Stored for reference only; no business rule enforces it
    credit_limit = db.Column(db.Numeric(12, 2), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Agency {self.agency_id} {self.agency_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "agency_id": self.agency_id,
            "agency_name": self.agency_name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "city": self.city,
            "country": self.country,
            "credit_limit": float(self.credit_limit) if self.credit_limit is not None else None,
            "is_active": bool(self.is_active),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_ref_dict(self, with_contacts: bool = False) -> dict:
        data = {
            "id": self.id,
            "agency_id": self.agency_id,
            "agency_name": self.agency_name,
        }
        if with_contacts:
            data["contact_phone"] = self.contact_phone
            data["contact_email"] = self.contact_email
        return data
