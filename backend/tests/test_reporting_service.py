"""
Reporting tests.

Verifies:
- Status totals reconcile with the grand total (UNKNOWN only in the grand total)
- VOID receipts are excluded by default
- Average and growth rate are finite on empty or zero baselines
- Monthly series, month x status counts and top agencies
- Dashboard overdue (due date) and stale (3-day) counts stay independent
- Lowercase statuses land in the same buckets in every view
"""

from datetime import date, datetime, time
from decimal import Decimal

import pytest

from creditdesk.errors import ConflictError
from creditdesk.models import Agency, Receipt
from creditdesk.services import reporting_service
from creditdesk.services.export_service import receipts_csv
from creditdesk.services.receipt_service import ReceiptFilters
from creditdesk.services.reporting_service import (
    average_receipt_value,
    growth_rate,
    month_window,
    revenue_analytics,
)

# 2025-10-15 12:00 EAT
FIXED_NOW = datetime(2025, 10, 15, 9, 0, 0)


def _raw_receipt(db_session, agency, number, amount, status, issue_date, due_date=None):
    receipt = Receipt(
        receipt_number=number,
        agency_id=agency.id,
        amount=Decimal(amount),
        currency="USD",
        payment_method="CASH",
        status=status,
        issue_date=issue_date,
        issue_time=time(10, 0),
        due_date=due_date,
        station_code="JUB",
        issued_by_name="Staff",
        payment_date=datetime(2025, 10, 1) if status.upper() == "PAID" else None,
    )
    db_session.add(receipt)
    db_session.commit()
    return receipt


@pytest.fixture
def second_agency(db_session):
    agency = Agency(agency_id="555000", agency_name="Nile Holidays", is_active=True)
    db_session.add(agency)
    db_session.commit()
    return agency


class TestRevenueAnalytics:
    def test_void_excluded_by_default(self, ledger, agency, db_session):
        ledger.create(agency.agency_id, "100.00", status="PAID", now=FIXED_NOW)
        ledger.create(agency.agency_id, "200.50", status="PENDING", now=FIXED_NOW)
        voided = ledger.create(agency.agency_id, "50.00", status="PENDING", now=FIXED_NOW).receipt
        ledger.void(voided.id, "Duplicate")

        report = revenue_analytics(db_session, now=FIXED_NOW)
        assert report["totalRevenue"] == pytest.approx(300.50)
        assert report["totalReceipts"] == 2
        assert report["paidReceipts"] == 1
        assert report["pendingReceipts"] == 1
        assert report["voidReceipts"] == 0

        with_void = revenue_analytics(db_session, include_void=True, now=FIXED_NOW)
        assert with_void["totalRevenue"] == pytest.approx(350.50)
        assert with_void["voidReceipts"] == 1
        assert with_void["byStatus"]["VOID"] == pytest.approx(50.00)

    def test_status_buckets_reconcile_with_total(self, db_session, agency):
        _raw_receipt(db_session, agency, "R-1", "10.00", "paid", date(2025, 10, 2))
        _raw_receipt(db_session, agency, "R-2", "20.00", "PENDING", date(2025, 10, 2))
        _raw_receipt(db_session, agency, "R-3", "5.25", "LEGACY", date(2025, 10, 3))

        report = revenue_analytics(db_session, include_void=True, now=FIXED_NOW)
        named = sum(report["byStatus"].values())
        assert report["paidRevenue"] == pytest.approx(10.00)
        assert named == pytest.approx(30.00)
        assert report["totalRevenue"] == pytest.approx(35.25)
        assert named <= report["totalRevenue"]
        assert report["totalReceipts"] == 3

    def test_empty_ledger_has_finite_scalars(self, db_session):
        report = revenue_analytics(db_session, now=FIXED_NOW)
        assert report["totalRevenue"] == 0
        assert report["averageReceiptValue"] == 0
        assert report["growthRate"] == 0
        assert report["byMonth"] == []
        assert report["topAgenciesList"] == []

    def test_monthly_series_and_growth(self, db_session, agency):
        _raw_receipt(db_session, agency, "R-1", "100.00", "PAID", date(2025, 8, 20))
        _raw_receipt(db_session, agency, "R-2", "200.00", "PAID", date(2025, 9, 5))
        _raw_receipt(db_session, agency, "R-3", "100.00", "PENDING", date(2025, 9, 25))
        _raw_receipt(db_session, agency, "R-4", "450.00", "PENDING", date(2025, 10, 1))

        report = revenue_analytics(db_session, now=FIXED_NOW)

        assert [m["month"] for m in report["byMonth"]] == ["2025-08", "2025-09", "2025-10"]
        assert report["byMonth"][1] == {"month": "2025-09", "revenue": 300.0, "count": 2}
        assert report["byMonthStatus"]["2025-09"] == {"PAID": 1, "PENDING": 1, "VOID": 0}
        assert report["thisMonthRevenue"] == pytest.approx(450.0)
        assert report["lastMonthRevenue"] == pytest.approx(300.0)
        assert report["thisMonthReceipts"] == 1
        assert report["lastMonthReceipts"] == 2
        assert report["growthRate"] == pytest.approx(50.0)
        assert report["averageReceiptValue"] == pytest.approx(212.5)

    def test_date_range_is_inclusive(self, db_session, agency):
        _raw_receipt(db_session, agency, "R-1", "1.00", "PAID", date(2025, 9, 30))
        _raw_receipt(db_session, agency, "R-2", "2.00", "PAID", date(2025, 10, 1))
        _raw_receipt(db_session, agency, "R-3", "4.00", "PAID", date(2025, 10, 2))

        report = revenue_analytics(
            db_session, date_from=date(2025, 10, 1), date_to=date(2025, 10, 2), now=FIXED_NOW
        )
        assert report["totalRevenue"] == pytest.approx(6.0)

    def test_top_agencies_ranked_by_revenue(self, db_session, agency, second_agency):
        _raw_receipt(db_session, agency, "R-1", "100.00", "PAID", date(2025, 10, 1))
        _raw_receipt(db_session, second_agency, "R-2", "300.00", "PAID", date(2025, 10, 1))
        _raw_receipt(db_session, agency, "R-3", "150.00", "PENDING", date(2025, 10, 2))

        top = revenue_analytics(db_session, now=FIXED_NOW)["topAgenciesList"]
        assert top == [
            {"name": "Nile Holidays", "count": 1, "revenue": 300.0},
            {"name": "Equatoria Travel", "count": 2, "revenue": 250.0},
        ]

    def test_top_agencies_name_falls_back_to_code(self, db_session):
        nameless = Agency(agency_id="999001", agency_name="", is_active=True)
        db_session.add(nameless)
        db_session.commit()
        _raw_receipt(db_session, nameless, "R-1", "10.00", "PAID", date(2025, 10, 1))

        top = reporting_service.top_agencies(db_session)
        assert top[0]["name"] == "999001"


class TestScalars:
    def test_average_receipt_value(self):
        assert average_receipt_value(Decimal("0"), 0) == 0
        assert average_receipt_value(Decimal("100.00"), 3) == Decimal("33.33")

    def test_growth_rate_zero_baseline(self):
        assert growth_rate(Decimal("500"), Decimal("0")) == 0
        assert growth_rate(Decimal("0"), Decimal("0")) == 0
        assert growth_rate(Decimal("50"), Decimal("100")) == -50.0

    def test_month_window_wraps_year(self):
        assert month_window(date(2026, 1, 10)) == ("2026-01", "2025-12")


class TestDashboard:
    def test_overdue_and_stale_counts_are_independent(self, db_session, agency):
        today = date(2025, 10, 15)
        # past due AND stale
        _raw_receipt(db_session, agency, "R-1", "10.00", "PENDING", date(2025, 10, 1), due_date=date(2025, 10, 10))
        # stale only (no due date)
        _raw_receipt(db_session, agency, "R-2", "20.00", "PENDING", date(2025, 10, 2))
        # past due only (issued yesterday, due yesterday)
        _raw_receipt(db_session, agency, "R-3", "30.00", "PENDING", date(2025, 10, 14), due_date=date(2025, 10, 14))
        # upcoming
        _raw_receipt(db_session, agency, "R-4", "40.00", "PENDING", today, due_date=date(2025, 10, 30))
        # paid today
        _raw_receipt(db_session, agency, "R-5", "100.00", "PAID", today)
        # void, ignored everywhere
        _raw_receipt(db_session, agency, "R-6", "999.00", "VOID", today, due_date=date(2025, 10, 1))

        summary = reporting_service.dashboard_summary(db_session, now=FIXED_NOW)

        assert summary["pending"]["count"] == 4
        assert summary["pending"]["total"] == pytest.approx(100.0)
        assert summary["pending"]["overdue_count"] == 2
        assert summary["pending"]["stale_count"] == 2
        assert summary["paid"] == {"total": 100.0, "count": 1}
        assert summary["today"]["receipt_count"] == 2
        assert summary["today"]["paid_count"] == 1
        assert summary["today"]["pending_count"] == 1
        assert summary["month_to_date"]["count"] == 5
        assert summary["top_agencies"][0]["agency_id"] == "789456"
        assert summary["top_agencies"][0]["total_amount"] == pytest.approx(200.0)

    def test_pending_summary_splits_by_due_date(self, db_session, agency):
        _raw_receipt(db_session, agency, "R-1", "10.00", "PENDING", date(2025, 10, 1), due_date=date(2025, 10, 14))
        _raw_receipt(db_session, agency, "R-2", "20.00", "PENDING", date(2025, 10, 1), due_date=date(2025, 10, 15))
        _raw_receipt(db_session, agency, "R-3", "40.00", "PENDING", date(2025, 10, 1))

        summary = reporting_service.pending_summary(db_session, now=FIXED_NOW)
        assert summary["total_pending"] == 3
        assert summary["total_amount"] == pytest.approx(70.0)
        assert summary["overdue"] == {"count": 1, "amount": 10.0}
        assert summary["upcoming"] == {"count": 1, "amount": 20.0}

    def test_today_stats(self, ledger, agency, db_session):
        ledger.create(agency.agency_id, "25.00", status="PAID", now=FIXED_NOW)
        ledger.create(agency.agency_id, "75.00", status="PENDING", now=FIXED_NOW)

        stats = reporting_service.today_stats(db_session, now=FIXED_NOW)
        assert stats["date"] == "2025-10-15"
        assert stats["total_receipts"] == 2
        assert stats["total_amount"] == pytest.approx(100.0)
        assert stats["paid"] == {"count": 1, "amount": 25.0}
        assert stats["pending"] == {"count": 1, "amount": 75.0}


class TestLowercaseStatuses:
    """Rows written outside the ledger may carry lowercase statuses."""

    @pytest.fixture
    def seeded(self, db_session, agency):
        today = date(2025, 10, 15)
        return {
            "paid": _raw_receipt(db_session, agency, "R-PAID", "100.00", "paid", today),
            "void": _raw_receipt(db_session, agency, "R-VOID", "50.00", "void", today),
            "pending": _raw_receipt(
                db_session, agency, "R-PEND", "30.00", "pending", date(2025, 10, 1),
                due_date=date(2025, 10, 5),
            ),
        }

    def test_analytics_and_dashboard_agree(self, db_session, seeded):
        report = revenue_analytics(db_session, now=FIXED_NOW)
        summary = reporting_service.dashboard_summary(db_session, now=FIXED_NOW)

        assert report["paidRevenue"] == pytest.approx(100.0)
        assert summary["paid"] == {"total": 100.0, "count": 1}
        assert report["pendingReceipts"] == summary["pending"]["count"] == 1
        assert summary["pending"]["overdue_count"] == 1
        assert report["voidReceipts"] == 0
        assert report["totalRevenue"] == pytest.approx(130.0)
        assert summary["today"]["receipt_count"] == 1
        assert summary["top_agencies"][0]["total_amount"] == pytest.approx(130.0)

    def test_list_and_export_hide_lowercase_void(self, ledger, db_session, seeded):
        listed = [r.receipt_number for r in ledger.list().items]
        assert sorted(listed) == ["R-PAID", "R-PEND"]

        body = receipts_csv(db_session)
        assert "R-VOID" not in body
        assert "R-PAID" in body

        only_void = ledger.list(ReceiptFilters(status="VOID"))
        assert [r.receipt_number for r in only_void.items] == ["R-VOID"]

    def test_transitions_respect_lowercase_rows(self, ledger, seeded):
        paid = ledger.mark_paid(seeded["pending"].id, payment_date=FIXED_NOW)
        assert paid.status == "PAID"
        assert paid.payment_date == FIXED_NOW

        with pytest.raises(ConflictError):
            ledger.void(seeded["void"].id, "Again")
        with pytest.raises(ConflictError):
            ledger.mark_paid(seeded["void"].id)
