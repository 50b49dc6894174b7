# Overview: Service-layer operations for reporting; revenue analytics and dashboard summaries over receipts.

"""
Reporting (read side)

Everything here is computed fresh from the receipts table on each call;
nothing is cached or written.

Analytics pulls one grouped query, (issue_date, UPPER(status)) -> count/sum,
and derives every view from those rows, so totals, monthly series and
month x status counts can never disagree with each other. Top agencies are
a second grouped query joined to the directory for display names.

VOID receipts are excluded unless include_void=True; the VOID bucket is
then populated but still reported separately.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models import Agency, Receipt
from ..models.receipts import RECEIPT_STATUSES, STATUS_PAID, STATUS_PENDING, STATUS_VOID
from ..time_utils import DEFAULT_BUSINESS_TIMEZONE, business_today, month_key, previous_month_key
from .overdue_rules import DEFAULT_STALE_DAYS, past_due_date_clause, stale_pending_clause

STATUS_UNKNOWN = "UNKNOWN"
TOP_AGENCIES_LIMIT = 10
DASHBOARD_TOP_AGENCIES = 5

_ZERO = Decimal("0")
_CENT = Decimal("0.01")


def _dec(value) -> Decimal:
    if value is None:
        return _ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _money(value) -> float:
    return float(_dec(value).quantize(_CENT))


def normalize_status(value: str | None) -> str:
    status = (value or "").strip().upper()
    return status if status in RECEIPT_STATUSES else STATUS_UNKNOWN


# =============================================================================
# GROUPED ROWS
# =============================================================================

@dataclass(frozen=True)
class DayStatusRow:
    issue_date: date
    status: str
    count: int
    revenue: Decimal


def _not_void():
    return or_(Receipt.status.is_(None), Receipt.status_key != STATUS_VOID)


def _apply_range(query, date_from: date | None, date_to: date | None):
    if date_from:
        query = query.filter(Receipt.issue_date >= date_from)
    if date_to:
        query = query.filter(Receipt.issue_date <= date_to)
    return query


def fetch_day_status_rows(
    session: Session,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    include_void: bool = False,
) -> list[DayStatusRow]:
    status_expr = Receipt.status_key
    query = session.query(
        Receipt.issue_date,
        status_expr.label("status"),
        func.count(Receipt.id).label("count"),
        func.coalesce(func.sum(Receipt.amount), 0).label("revenue"),
    )
    query = _apply_range(query, date_from, date_to)
    if not include_void:
        query = query.filter(_not_void())

    rows = query.group_by(Receipt.issue_date, status_expr).all()
    return [
        DayStatusRow(
            issue_date=row.issue_date,
            status=normalize_status(row.status),
            count=int(row.count or 0),
            revenue=_dec(row.revenue),
        )
        for row in rows
    ]


# =============================================================================
# BUILDING BLOCKS
# =============================================================================

def totals_by_status(rows: Iterable[DayStatusRow]) -> dict[str, dict]:
    """
    Revenue and count per status bucket, plus grand totals under "ALL".

    UNKNOWN rows count toward ALL but not toward any named bucket.
    """
    buckets = {
        status: {"revenue": _ZERO, "count": 0}
        for status in (STATUS_PAID, STATUS_PENDING, STATUS_VOID, STATUS_UNKNOWN, "ALL")
    }
    for row in rows:
        for key in (row.status, "ALL"):
            buckets[key]["revenue"] += row.revenue
            buckets[key]["count"] += row.count
    return buckets


def revenue_by_month(rows: Iterable[DayStatusRow]) -> list[dict]:
    """Chronological [{month, revenue, count}]; revenue stays Decimal."""
    months: dict[str, dict] = {}
    for row in rows:
        key = month_key(row.issue_date)
        bucket = months.setdefault(key, {"month": key, "revenue": _ZERO, "count": 0})
        bucket["revenue"] += row.revenue
        bucket["count"] += row.count
    return [months[key] for key in sorted(months)]


def counts_by_month_status(rows: Iterable[DayStatusRow]) -> "OrderedDict[str, dict]":
    months: dict[str, dict] = {}
    for row in rows:
        key = month_key(row.issue_date)
        cell = months.setdefault(key, {STATUS_PAID: 0, STATUS_PENDING: 0, STATUS_VOID: 0})
        cell[row.status] = cell.get(row.status, 0) + row.count
    return OrderedDict((key, months[key]) for key in sorted(months))


def top_agencies(
    session: Session,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    include_void: bool = False,
    limit: int = TOP_AGENCIES_LIMIT,
) -> list[dict]:
    """
    Agencies ranked by revenue, highest first.

    Display name falls back from the directory name to the account code and
    finally to "Unknown" for receipts whose agency row cannot be found.
    """
    query = session.query(
        Agency.agency_name,
        Agency.agency_id,
        func.count(Receipt.id).label("count"),
        func.coalesce(func.sum(Receipt.amount), 0).label("revenue"),
    ).select_from(Receipt).outerjoin(Agency, Agency.id == Receipt.agency_id)
    query = _apply_range(query, date_from, date_to)
    if not include_void:
        query = query.filter(_not_void())
    rows = query.group_by(Receipt.agency_id, Agency.agency_name, Agency.agency_id).all()

    merged: dict[str, dict] = {}
    for row in rows:
        name = (row.agency_name or "").strip() or (row.agency_id or "").strip() or "Unknown"
        bucket = merged.setdefault(
            name, {"name": name, "agency_id": row.agency_id, "count": 0, "revenue": _ZERO}
        )
        bucket["count"] += int(row.count or 0)
        bucket["revenue"] += _dec(row.revenue)

    ranked = sorted(merged.values(), key=lambda b: (-b["revenue"], b["name"]))
    return ranked[:limit]


def average_receipt_value(total_revenue: Decimal, total_receipts: int) -> Decimal:
    if not total_receipts:
        return _ZERO
    return (_dec(total_revenue) / total_receipts).quantize(_CENT)


def growth_rate(this_month: Decimal, last_month: Decimal) -> float:
    """Month-over-month percentage; 0 when last month had no revenue."""
    last = _dec(last_month)
    if last <= 0:
        return 0.0
    return round(float((_dec(this_month) - last) / last * 100), 2)


def month_window(today: date) -> tuple[str, str]:
    """(this month key, previous month key) for the given business date."""
    return month_key(today), previous_month_key(today)


# =============================================================================
# ANALYTICS
# =============================================================================

def revenue_analytics(
    session: Session,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    include_void: bool = False,
    now: datetime | None = None,
    tz_name: str = DEFAULT_BUSINESS_TIMEZONE,
) -> dict:
    if date_from and date_to and date_from > date_to:
        raise ValidationError("date_from must be on or before date_to")

    rows = fetch_day_status_rows(
        session, date_from=date_from, date_to=date_to, include_void=include_void
    )
    totals = totals_by_status(rows)
    months = revenue_by_month(rows)
    this_key, last_key = month_window(business_today(tz_name, now))

    this_month = next((m for m in months if m["month"] == this_key), None)
    last_month = next((m for m in months if m["month"] == last_key), None)
    this_revenue = this_month["revenue"] if this_month else _ZERO
    last_revenue = last_month["revenue"] if last_month else _ZERO

    grand = totals["ALL"]
    agencies = top_agencies(
        session, date_from=date_from, date_to=date_to, include_void=include_void
    )

    return {
        "totalRevenue": _money(grand["revenue"]),
        "totalReceipts": grand["count"],
        "paidRevenue": _money(totals[STATUS_PAID]["revenue"]),
        "paidReceipts": totals[STATUS_PAID]["count"],
        "pendingRevenue": _money(totals[STATUS_PENDING]["revenue"]),
        "pendingReceipts": totals[STATUS_PENDING]["count"],
        "voidRevenue": _money(totals[STATUS_VOID]["revenue"]),
        "voidReceipts": totals[STATUS_VOID]["count"],
        "byStatus": {
            STATUS_PAID: _money(totals[STATUS_PAID]["revenue"]),
            STATUS_PENDING: _money(totals[STATUS_PENDING]["revenue"]),
            STATUS_VOID: _money(totals[STATUS_VOID]["revenue"]),
        },
        "byMonth": [
            {"month": m["month"], "revenue": _money(m["revenue"]), "count": m["count"]}
            for m in months
        ],
        "byMonthStatus": counts_by_month_status(rows),
        "topAgenciesList": [
            {"name": a["name"], "count": a["count"], "revenue": _money(a["revenue"])}
            for a in agencies
        ],
        "thisMonthRevenue": _money(this_revenue),
        "thisMonthReceipts": this_month["count"] if this_month else 0,
        "lastMonthRevenue": _money(last_revenue),
        "lastMonthReceipts": last_month["count"] if last_month else 0,
        "averageReceiptValue": _money(average_receipt_value(grand["revenue"], grand["count"])),
        "growthRate": growth_rate(this_revenue, last_revenue),
        "includeVoid": include_void,
    }


# =============================================================================
# DASHBOARD
# =============================================================================

def _sum_and_count(session: Session, *criteria) -> tuple[Decimal, int]:
    row = session.query(
        func.coalesce(func.sum(Receipt.amount), 0),
        func.count(Receipt.id),
    ).filter(Receipt.status_key != STATUS_VOID, *criteria).one()
    return _dec(row[0]), int(row[1] or 0)


def today_stats(
    session: Session,
    *,
    now: datetime | None = None,
    tz_name: str = DEFAULT_BUSINESS_TIMEZONE,
) -> dict:
    today = business_today(tz_name, now)
    row = session.query(
        func.count(Receipt.id),
        func.coalesce(func.sum(Receipt.amount), 0),
        func.count(case((Receipt.status_key == STATUS_PAID, 1))),
        func.coalesce(func.sum(case((Receipt.status_key == STATUS_PAID, Receipt.amount), else_=0)), 0),
        func.count(case((Receipt.status_key == STATUS_PENDING, 1))),
        func.coalesce(func.sum(case((Receipt.status_key == STATUS_PENDING, Receipt.amount), else_=0)), 0),
    ).filter(Receipt.issue_date == today, Receipt.status_key != STATUS_VOID).one()

    return {
        "date": today.isoformat(),
        "total_receipts": int(row[0] or 0),
        "total_amount": _money(row[1]),
        "paid": {"count": int(row[2] or 0), "amount": _money(row[3])},
        "pending": {"count": int(row[4] or 0), "amount": _money(row[5])},
    }


def pending_summary(
    session: Session,
    *,
    now: datetime | None = None,
    tz_name: str = DEFAULT_BUSINESS_TIMEZONE,
) -> dict:
    """
    PENDING receipts split by explicit due date: overdue (due before today)
    vs upcoming (due today or later). Receipts with no due date are in
    neither split but count toward the totals.
    """
    today = business_today(tz_name, now)
    total_amount, total_count = _sum_and_count(session, Receipt.status_key == STATUS_PENDING)
    overdue_amount, overdue_count = _sum_and_count(session, past_due_date_clause(today))
    upcoming_amount, upcoming_count = _sum_and_count(
        session, Receipt.status_key == STATUS_PENDING, Receipt.due_date >= today
    )
    return {
        "total_pending": total_count,
        "total_amount": _money(total_amount),
        "overdue": {"count": overdue_count, "amount": _money(overdue_amount)},
        "upcoming": {"count": upcoming_count, "amount": _money(upcoming_amount)},
    }


def dashboard_summary(
    session: Session,
    *,
    now: datetime | None = None,
    tz_name: str = DEFAULT_BUSINESS_TIMEZONE,
    stale_days: int = DEFAULT_STALE_DAYS,
) -> dict:
    today = business_today(tz_name, now)
    today_block = today_stats(session, now=now, tz_name=tz_name)

    paid_total, paid_count = _sum_and_count(session, Receipt.status_key == STATUS_PAID)
    pending_total, pending_count = _sum_and_count(session, Receipt.status_key == STATUS_PENDING)
    _, overdue_count = _sum_and_count(session, past_due_date_clause(today))
    _, stale_count = _sum_and_count(session, stale_pending_clause(today, stale_days))
    month_total, month_count = _sum_and_count(session, Receipt.issue_date >= today.replace(day=1))

    agencies = session.query(
        Agency.agency_name,
        Agency.agency_id,
        func.count(Receipt.id).label("receipt_count"),
        func.coalesce(func.sum(Receipt.amount), 0).label("total_amount"),
    ).join(Receipt, Receipt.agency_id == Agency.id).filter(
        Receipt.status_key != STATUS_VOID,
    ).group_by(Agency.id, Agency.agency_name, Agency.agency_id).order_by(
        func.coalesce(func.sum(Receipt.amount), 0).desc(),
        Agency.agency_name.asc(),
    ).limit(DASHBOARD_TOP_AGENCIES).all()

    return {
        "today": {
            "total_amount": today_block["total_amount"],
            "receipt_count": today_block["total_receipts"],
            "paid_count": today_block["paid"]["count"],
            "pending_count": today_block["pending"]["count"],
        },
        "paid": {"total": _money(paid_total), "count": paid_count},
        "pending": {
            "total": _money(pending_total),
            "count": pending_count,
            "overdue_count": overdue_count,
            "stale_count": stale_count,
        },
        "month_to_date": {"total": _money(month_total), "count": month_count},
        "top_agencies": [
            {
                "agency_name": row.agency_name,
                "agency_id": row.agency_id,
                "receipt_count": int(row.receipt_count or 0),
                "total_amount": _money(row.total_amount),
            }
            for row in agencies
        ],
    }
