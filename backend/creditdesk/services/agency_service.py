# Overview: Service-layer operations for the agency directory; lookups and upserts by account code.

"""
Agency Directory

WHY: Receipts may only be issued to agencies that are active in the
directory. Finance staff maintain the directory by hand or by importing a
CSV export from the reservations system; both paths upsert by account code.

DESIGN:
- Upsert keyed by `agency_id` (the account code): resubmitting a row
  overwrites name/email/active flag, so imports are idempotent.
- Bulk upsert is lenient: rows missing a name or code are skipped and
  counted separately, so one bad line does not abort a whole import.
- Callers pass a parsed AgencyRef (surrogate id or code); the string-shape
  detection happens once, at the API boundary, in parse_agency_ref().
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Union

from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models import Agency


_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


# =============================================================================
# AGENCY REFERENCES
# =============================================================================

@dataclass(frozen=True)
class BySurrogateId:
    id: str


@dataclass(frozen=True)
class ByCode:
    code: str


AgencyRef = Union[BySurrogateId, ByCode]


def parse_agency_ref(raw: Any) -> AgencyRef:
    """
    Decide which form of agency reference a client sent.

    A canonical UUID is the internal surrogate id; any other non-blank value
    (numbers included) is treated as the account code.
    """
    if raw is None:
        raise ValidationError("agency_id is required")
    value = str(raw).strip()
    if not value:
        raise ValidationError("agency_id is required")
    if _UUID_RE.match(value):
        return BySurrogateId(value.lower())
    return ByCode(value)


# =============================================================================
# UPSERT RESULTS
# =============================================================================

@dataclass
class BulkUpsertResult:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0

    @property
    def processed(self) -> int:
        return self.inserted + self.updated

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
        }


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if not text:
        return default
    return text in {"1", "true", "yes", "y", "active"}


class AgencyDirectory:
    """Directory of agencies eligible to receive receipts."""

    def __init__(self, session: Session):
        self.session = session

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_active(self) -> list[Agency]:
        return (
            self.session.query(Agency)
            .filter(Agency.is_active.is_(True))
            .order_by(Agency.agency_name.asc())
            .all()
        )

    def list_all(self) -> list[Agency]:
        return self.session.query(Agency).order_by(Agency.agency_name.asc()).all()

    def get_by_code(self, code: str) -> Agency | None:
        return self.session.query(Agency).filter(Agency.agency_id == code).first()

    def resolve(self, ref: AgencyRef) -> Agency:
        """
        Resolve a reference to an ACTIVE agency.

        Raises:
            NotFoundError: no active agency matches the reference
        """
        query = self.session.query(Agency).filter(Agency.is_active.is_(True))
        if isinstance(ref, BySurrogateId):
            query = query.filter(Agency.id == ref.id)
        elif isinstance(ref, ByCode):
            query = query.filter(Agency.agency_id == ref.code)
        else:
            raise TypeError(f"Unsupported agency reference: {ref!r}")

        agency = query.first()
        if agency is None:
            raise NotFoundError("Agency not found.")
        return agency

    # -------------------------------------------------------------------------
    # Upserts
    # -------------------------------------------------------------------------

    def upsert_one(
        self,
        name: Any,
        code: Any,
        email: Any = None,
        active: Any = True,
        phone: Any = None,
    ) -> Agency:
        """
        Insert or update an agency keyed by its account code, then commit.

        Raises:
            ValidationError: name or code is blank
        """
        name_s = _clean(name)
        code_s = _clean(code)
        if not name_s or not code_s:
            raise ValidationError("agency_name and agency_id are required.")

        agency, _ = self._upsert(name_s, code_s, _clean(email), _as_bool(active), _clean(phone))
        self.session.commit()
        return agency

    def upsert_bulk(self, rows: Iterable[Mapping[str, Any]]) -> BulkUpsertResult:
        """
        Upsert many agencies in one transaction.

        Rows missing a name or a code are skipped, not rejected.
        """
        result = BulkUpsertResult()
        for row in rows:
            name = _clean(row.get("agency_name", row.get("name")))
            code = _clean(row.get("agency_id", row.get("code")))
            if not name or not code:
                result.skipped += 1
                continue

            email = _clean(row.get("contact_email", row.get("email")))
            phone = _clean(row.get("contact_phone", row.get("phone")))
            active = _as_bool(row.get("is_active", row.get("active")))

            _, created = self._upsert(name, code, email, active, phone)
            if created:
                result.inserted += 1
            else:
                result.updated += 1

        self.session.commit()
        return result

    def _upsert(
        self,
        name: str,
        code: str,
        email: str | None,
        active: bool,
        phone: str | None,
    ) -> tuple[Agency, bool]:
        agency = self.get_by_code(code)
        if agency is not None:
            self._apply(agency, name, email, active, phone)
            return agency, False

        agency = Agency(agency_id=code)
        self._apply(agency, name, email, active, phone)
        self.session.add(agency)
        self.session.flush()
        return agency, True

    @staticmethod
    def _apply(agency: Agency, name: str, email: str | None, active: bool, phone: str | None) -> None:
        agency.agency_name = name
        agency.contact_email = email
        agency.is_active = active
        if phone is not None:
            agency.contact_phone = phone
