# Overview: Service-layer operations for the receipt ledger; numbering, lifecycle transitions and listing.

"""
Receipt Ledger

WHY: Receipts are the single source of truth for agency deposits. Every
dashboard, analytics view and export is derived from these rows, so the
invariants live here and nowhere else.

LIFECYCLE:
- Created as PENDING or PAID (caller decides; there is no implicit default)
- PENDING -> PAID via mark_paid()
- PENDING|PAID -> VOID via void(); VOID is terminal

DESIGN:
- Receipt numbers are {PREFIX}-{STATION}-{YYYYMMDD}-{NNNN} in the business
  timezone. The random suffix can collide; the unique constraint is the
  arbiter and a collision regenerates the number a bounded number of times.
- Transitions are single conditional UPDATEs so two concurrent requests
  cannot both pass a "not yet void" check.
- QR generation is best-effort: a failure is logged and the receipt is
  still returned, with qr_code = None.
"""

from __future__ import annotations

import math
import re
import secrets
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..errors import (
    ConflictError,
    NotFoundError,
    RetryableConflict,
    StorageError,
    ValidationError,
)
from ..models import Agency, Receipt
from ..models.receipts import (
    CREATABLE_STATUSES,
    METHOD_CASH,
    PAYMENT_METHODS,
    RECEIPT_STATUSES,
    STATUS_PAID,
    STATUS_PENDING,
    STATUS_VOID,
)
from ..time_utils import (
    DEFAULT_BUSINESS_TIMEZONE,
    business_today,
    parse_iso_date,
    split_issue_stamp,
    to_business,
    to_utc_z,
    utcnow,
)
from .agency_service import AgencyDirectory, AgencyRef, ByCode, BySurrogateId, parse_agency_ref
from .concurrency import run_with_retry
from .overdue_rules import DEFAULT_STALE_DAYS, stale_pending_clause
from .qr_service import QRGenerator


_CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")
_CENT = Decimal("0.01")
_MAX_AMOUNT = Decimal("10000000000")  # Numeric(12, 2)


# =============================================================================
# SETTINGS
# =============================================================================

@dataclass(frozen=True)
class LedgerSettings:
    number_prefix: str = "KSH-CR"
    default_station: str = "JUB"
    default_issuer: str = "Staff"
    default_currency: str = "USD"
    max_number_attempts: int = 5
    tz_name: str = DEFAULT_BUSINESS_TIMEZONE
    stale_days: int = DEFAULT_STALE_DAYS
    default_page_size: int = 20
    max_page_size: int = 200

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "LedgerSettings":
        return cls(
            number_prefix=config.get("RECEIPT_NUMBER_PREFIX", cls.number_prefix),
            default_station=config.get("DEFAULT_STATION_CODE", cls.default_station),
            default_issuer=config.get("DEFAULT_ISSUER_NAME", cls.default_issuer),
            default_currency=config.get("DEFAULT_CURRENCY", cls.default_currency),
            max_number_attempts=int(config.get("RECEIPT_NUMBER_MAX_ATTEMPTS", cls.max_number_attempts)),
            tz_name=config.get("BUSINESS_TIMEZONE", cls.tz_name),
            stale_days=int(config.get("STALE_PENDING_DAYS", cls.stale_days)),
            default_page_size=int(config.get("DEFAULT_PAGE_SIZE", cls.default_page_size)),
            max_page_size=int(config.get("MAX_PAGE_SIZE", cls.max_page_size)),
        )


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class CreatedReceipt:
    receipt: Receipt
    qr_code: str | None = None


@dataclass
class ReceiptFilters:
    status: str | None = None
    agency_code: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    include_void: bool = False
    overdue: bool = False


@dataclass
class Page:
    items: list
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    def to_dict(self, serialize: Callable[[Any], Any]) -> dict:
        return {
            "items": [serialize(item) for item in self.items],
            "pagination": {
                "total": self.total,
                "page": self.page,
                "page_size": self.page_size,
                "total_pages": self.total_pages,
            },
        }


@dataclass
class VoidOutcome:
    receipt_number: str
    void_reason: str
    void_date: datetime

    def to_dict(self) -> dict:
        return {
            "receipt_number": self.receipt_number,
            "void_reason": self.void_reason,
            "void_date": to_utc_z(self.void_date),
        }


# =============================================================================
# INPUT PARSING
# =============================================================================

def parse_amount(value: Any) -> Decimal:
    """
    Parse a monetary amount without going through binary floating point.

    Accepts Decimal, int, float or numeric strings; must be > 0 with at most
    two decimal places.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("amount is required")
    if isinstance(value, str) and not value.strip():
        raise ValidationError("amount is required")

    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError("amount must be a number")

    if not amount.is_finite():
        raise ValidationError("amount must be a number")
    if amount <= 0:
        raise ValidationError("amount must be greater than zero")
    if amount != amount.quantize(_CENT):
        raise ValidationError("amount must have at most two decimal places")
    if amount >= _MAX_AMOUNT:
        raise ValidationError("amount is too large")
    return amount.quantize(_CENT)


def parse_status(value: Any, allowed: tuple[str, ...] = CREATABLE_STATUSES) -> str:
    if value is None or not str(value).strip():
        raise ValidationError("status is required")
    status = str(value).strip().upper()
    if status not in allowed:
        raise ValidationError(f"status must be one of: {', '.join(allowed)}")
    return status


def parse_payment_method(value: Any) -> str:
    if value is None or not str(value).strip():
        return METHOD_CASH
    method = str(value).strip().upper().replace(" ", "_")
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    return method


def parse_currency(value: Any, default: str) -> str:
    if value is None or not str(value).strip():
        return default
    currency = str(value).strip()
    if not _CURRENCY_RE.match(currency):
        raise ValidationError("currency must be a 3-letter code")
    return currency.upper()


def _parse_due_date(value: Any) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError("due_date must be YYYY-MM-DD")


def _to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


# =============================================================================
# NUMBERING
# =============================================================================

def random_suffix() -> int:
    """4-digit suffix in 1000..9999."""
    return 1000 + secrets.randbelow(9000)


def generate_receipt_number(prefix: str, station: str, local_date: date, suffix: int) -> str:
    return f"{prefix}-{station}-{local_date:%Y%m%d}-{suffix:04d}"


def _is_number_collision(exc: IntegrityError) -> bool:
    return "receipt_number" in str(getattr(exc, "orig", exc)).lower()


# =============================================================================
# LEDGER
# =============================================================================

class ReceiptLedger:
    """
    Authoritative collection of receipts and the operations that create
    and transition them.

    The session, QR generator and settings are injected; nothing here reads
    module-level state.
    """

    def __init__(
        self,
        session: Session,
        qr_generator: QRGenerator | None = None,
        settings: LedgerSettings | None = None,
        suffix_source: Callable[[], int] = random_suffix,
    ):
        self.session = session
        self.qr_generator = qr_generator
        self.settings = settings or LedgerSettings()
        self.suffix_source = suffix_source
        self.agencies = AgencyDirectory(session)

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create(
        self,
        agency_ref: AgencyRef | str,
        amount: Any,
        currency: Any = None,
        payment_method: Any = None,
        status: Any = None,
        due_date: Any = None,
        remarks: Any = None,
        acting_user: Any = None,
        now: datetime | None = None,
    ) -> CreatedReceipt:
        """
        Issue a new receipt.

        Raises:
            ValidationError: missing/invalid agency ref, amount, status, method, currency
            NotFoundError: no ACTIVE agency matches the reference
            StorageError: a unique receipt number could not be allocated
        """
        if isinstance(agency_ref, (BySurrogateId, ByCode)):
            ref = agency_ref
        else:
            ref = parse_agency_ref(agency_ref)
        parsed_amount = parse_amount(amount)
        parsed_status = parse_status(status)
        method = parse_payment_method(payment_method)
        parsed_currency = parse_currency(currency, self.settings.default_currency)
        parsed_due = _parse_due_date(due_date)
        remarks_s = str(remarks).strip() if remarks is not None else None

        agency = self.agencies.resolve(ref)
        agency_pk = agency.id

        station = (getattr(acting_user, "station_code", None) or "").strip() or self.settings.default_station
        issuer = (getattr(acting_user, "name", None) or "").strip() or self.settings.default_issuer
        user_id = getattr(acting_user, "id", None)

        created_at = _to_naive_utc(now) if now is not None else utcnow()
        issue_date, issue_time = split_issue_stamp(to_business(created_at, self.settings.tz_name))

        def _op() -> Receipt:
            number = generate_receipt_number(
                self.settings.number_prefix,
                station.upper(),
                issue_date,
                self.suffix_source(),
            )
            receipt = Receipt(
                receipt_number=number,
                agency_id=agency_pk,
                user_id=user_id,
                amount=parsed_amount,
                currency=parsed_currency,
                payment_method=method,
                status=parsed_status,
                issue_date=issue_date,
                issue_time=issue_time,
                payment_date=created_at if parsed_status == STATUS_PAID else None,
                due_date=parsed_due,
                station_code=station.upper(),
                issued_by_name=issuer,
                remarks=remarks_s or None,
                created_at=created_at,
                updated_at=created_at,
            )
            self.session.add(receipt)
            try:
                self.session.flush()
            except IntegrityError as exc:
                if _is_number_collision(exc):
                    raise RetryableConflict(f"Receipt number {number} already exists") from exc
                self.session.rollback()
                raise StorageError("Failed to insert receipt") from exc
            self.session.commit()
            return receipt

        def _on_retry(attempt: int, exc: BaseException) -> None:
            current_app.logger.warning(
                "Receipt number collision (attempt %s/%s): %s",
                attempt,
                self.settings.max_number_attempts,
                exc,
            )

        try:
            receipt = run_with_retry(
                _op,
                session=self.session,
                attempts=self.settings.max_number_attempts,
                backoff_base=0,
                retry_on=(RetryableConflict,),
                on_retry=_on_retry,
            )
        except RetryableConflict as exc:
            raise StorageError("Could not allocate a unique receipt number") from exc

        qr_code = None
        if self.qr_generator is not None:
            try:
                qr_code = self.qr_generator.generate(receipt.receipt_number)
            except Exception:
                current_app.logger.exception(
                    "QR generation failed for receipt %s", receipt.receipt_number
                )

        return CreatedReceipt(receipt=receipt, qr_code=qr_code)

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def list(
        self,
        filters: ReceiptFilters | None = None,
        page: int = 1,
        page_size: int | None = None,
        now: datetime | None = None,
    ) -> Page:
        """
        Newest-first page of receipts. VOID rows are hidden unless
        include_void is set or the caller filters on status=VOID.
        """
        filters = filters or ReceiptFilters()
        if page is None or page < 1:
            raise ValidationError("page must be >= 1")
        if page_size is None:
            page_size = self.settings.default_page_size
        if page_size < 1:
            raise ValidationError("page_size must be >= 1")
        page_size = min(page_size, self.settings.max_page_size)

        query = self.session.query(Receipt).options(joinedload(Receipt.agency))

        status = None
        if filters.status:
            status = parse_status(filters.status, allowed=RECEIPT_STATUSES)
            query = query.filter(Receipt.status_key == status)
        if not filters.include_void and status != STATUS_VOID:
            query = query.filter(Receipt.status_key != STATUS_VOID)

        if filters.agency_code:
            query = query.join(Agency, Receipt.agency_id == Agency.id).filter(
                Agency.agency_id == filters.agency_code
            )
        if filters.date_from:
            query = query.filter(Receipt.issue_date >= filters.date_from)
        if filters.date_to:
            # issue_date is a DATE, so <= covers the whole day
            query = query.filter(Receipt.issue_date <= filters.date_to)
        if filters.overdue:
            today = business_today(self.settings.tz_name, now)
            query = query.filter(stale_pending_clause(today, self.settings.stale_days))

        total = query.order_by(None).count()
        items = (
            query.order_by(Receipt.created_at.desc(), Receipt.receipt_number.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return Page(items=items, total=total, page=page, page_size=page_size)

    def get(self, receipt_id: str) -> Receipt:
        receipt = (
            self.session.query(Receipt)
            .options(joinedload(Receipt.agency))
            .filter(Receipt.id == receipt_id)
            .first()
        )
        if receipt is None:
            raise NotFoundError("Receipt not found.")
        return receipt

    def get_by_number(self, receipt_number: str) -> Receipt:
        receipt = (
            self.session.query(Receipt)
            .options(joinedload(Receipt.agency))
            .filter(Receipt.receipt_number == (receipt_number or "").strip())
            .first()
        )
        if receipt is None:
            raise NotFoundError("Receipt not found.")
        return receipt

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def mark_paid(self, receipt_id: str, payment_date: datetime | None = None) -> Receipt:
        """
        PENDING -> PAID.

        PAID -> PAID is a no-op success that keeps the original payment_date.

        Raises:
            NotFoundError: receipt does not exist
            ConflictError: receipt is VOID
        """
        paid_at = _to_naive_utc(payment_date) if payment_date is not None else utcnow()

        updated = (
            self.session.query(Receipt)
            .filter(Receipt.id == receipt_id, Receipt.status_key == STATUS_PENDING)
            .update(
                {
                    Receipt.status: STATUS_PAID,
                    Receipt.payment_date: paid_at,
                    Receipt.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
        )

        if updated == 0:
            receipt = self.session.get(Receipt, receipt_id, populate_existing=True)
            if receipt is None:
                self.session.rollback()
                raise NotFoundError("Receipt not found.")
            if receipt.is_void:
                self.session.rollback()
                raise ConflictError("Cannot mark a void receipt as paid.")
            self.session.rollback()
            return self.get(receipt_id)

        self.session.commit()
        receipt = self.get(receipt_id)
        current_app.logger.info("Receipt %s marked PAID", receipt.receipt_number)
        return receipt

    def void(self, receipt_id: str, reason: Any, now: datetime | None = None) -> VoidOutcome:
        """
        PENDING|PAID -> VOID.

        Raises:
            ValidationError: blank reason
            NotFoundError: receipt does not exist
            ConflictError: receipt is already VOID (first void is left untouched)
        """
        reason_s = str(reason).strip() if reason is not None else ""
        if not reason_s:
            raise ValidationError("Void reason is required.")

        voided_at = _to_naive_utc(now) if now is not None else utcnow()

        updated = (
            self.session.query(Receipt)
            .filter(Receipt.id == receipt_id, Receipt.status_key != STATUS_VOID)
            .update(
                {
                    Receipt.status: STATUS_VOID,
                    Receipt.void_reason: reason_s,
                    Receipt.void_date: voided_at,
                    Receipt.updated_at: voided_at,
                },
                synchronize_session=False,
            )
        )

        if updated == 0:
            exists = self.session.query(Receipt.id).filter(Receipt.id == receipt_id).first()
            self.session.rollback()
            if exists is None:
                raise NotFoundError("Receipt not found.")
            raise ConflictError("Receipt is already void.")

        self.session.commit()
        receipt = self.get(receipt_id)
        current_app.logger.info("Receipt %s voided: %s", receipt.receipt_number, reason_s)
        return VoidOutcome(
            receipt_number=receipt.receipt_number,
            void_reason=receipt.void_reason,
            void_date=receipt.void_date,
        )
