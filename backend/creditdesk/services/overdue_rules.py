# Overview: The two independent "overdue" rules for PENDING receipts.

"""
Overdue predicates.

Two rules exist and are used at different call sites; they are deliberately
kept separate:

- past due date: PENDING and an explicit due_date earlier than today
  (pending summaries, dashboard overdue_count)
- stale pending: PENDING and more than `threshold_days` whole days elapsed
  since issue_date (receipt list "overdue" filter, dashboard stale_count)

Each rule has a Python predicate for a loaded receipt and a SQL expression
for filtering/counting in queries; both agree for the same `today`.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from sqlalchemy import and_

from ..models import Receipt
from ..models.receipts import STATUS_PENDING
from ..time_utils import DEFAULT_BUSINESS_TIMEZONE, business_today

DEFAULT_STALE_DAYS = 3


def _is_pending(receipt) -> bool:
    return (receipt.status or "").upper() == STATUS_PENDING


def is_past_due_date(receipt, today: date) -> bool:
    if not _is_pending(receipt):
        return False
    return receipt.due_date is not None and receipt.due_date < today


def is_stale_pending(
    receipt,
    now: datetime | None = None,
    threshold_days: int = DEFAULT_STALE_DAYS,
    tz_name: str = DEFAULT_BUSINESS_TIMEZONE,
) -> bool:
    """
    Whole days are counted from midnight of issue_date in the business
    timezone, so a receipt issued on the 1st becomes stale on the 5th
    with the default threshold of 3.
    """
    if not _is_pending(receipt) or receipt.issue_date is None:
        return False
    today = business_today(tz_name, now)
    return (today - receipt.issue_date).days > threshold_days


def past_due_date_clause(today: date):
    return and_(
        Receipt.status_key == STATUS_PENDING,
        Receipt.due_date.isnot(None),
        Receipt.due_date < today,
    )


def stale_pending_clause(today: date, threshold_days: int = DEFAULT_STALE_DAYS):
    return and_(
        Receipt.status_key == STATUS_PENDING,
        Receipt.issue_date < today - timedelta(days=threshold_days),
    )
