"""
Export tests: CSV layout, VOID exclusion, agency summary, PDF rendering.
"""

import csv
import io
from datetime import datetime
from decimal import Decimal

import pytest

from creditdesk.errors import NotFoundError
from creditdesk.models import Agency
from creditdesk.services.export_service import (
    RECEIPT_COLUMNS,
    SUMMARY_COLUMNS,
    agency_summary_csv,
    export_filename,
    receipt_snapshot,
    receipts_csv,
)
from creditdesk.services.pdf_service import format_amount, render_receipt_pdf
from creditdesk.services.receipt_service import ReceiptFilters

NOW = datetime(2025, 10, 15, 9, 0, 0)


def _rows(body):
    return list(csv.reader(io.StringIO(body)))


class TestReceiptsCsv:
    def test_header_and_row_layout(self, ledger, agency, db_session):
        created = ledger.create(
            agency.agency_id, "1250.50", status="PAID", remarks='Deposit "Q4"', now=NOW
        ).receipt

        rows = _rows(receipts_csv(db_session))
        assert rows[0] == RECEIPT_COLUMNS
        assert len(rows) == 2
        record = dict(zip(rows[0], rows[1]))
        assert record["Receipt Number"] == created.receipt_number
        assert record["Issue Date"] == "2025-10-15"
        assert record["Agency ID"] == "789456"
        assert record["Agency Name"] == "Equatoria Travel"
        assert record["Amount"] == "1250.50"
        assert record["Status"] == "PAID"
        assert record["Remarks"] == 'Deposit "Q4"'

    def test_void_receipts_are_excluded(self, ledger, agency, db_session):
        kept = ledger.create(agency.agency_id, "10.00", status="PENDING", now=NOW).receipt
        dropped = ledger.create(agency.agency_id, "20.00", status="PENDING", now=NOW).receipt
        ledger.void(dropped.id, "Duplicate")

        numbers = [row[0] for row in _rows(receipts_csv(db_session))[1:]]
        assert numbers == [kept.receipt_number]

    def test_void_status_filter_returns_void_rows(self, ledger, agency, db_session):
        ledger.create(agency.agency_id, "10.00", status="PAID", now=NOW)
        dropped = ledger.create(agency.agency_id, "20.00", status="PENDING", now=NOW).receipt
        ledger.void(dropped.id, "Duplicate")

        rows = _rows(receipts_csv(db_session, ReceiptFilters(status="void")))[1:]
        assert [row[0] for row in rows] == [dropped.receipt_number]
        assert rows[0][8] == "VOID"

    def test_include_void_adds_void_rows(self, ledger, agency, db_session):
        ledger.create(agency.agency_id, "10.00", status="PAID", now=NOW)
        dropped = ledger.create(agency.agency_id, "20.00", status="PENDING", now=NOW).receipt
        ledger.void(dropped.id, "Duplicate")

        rows = _rows(receipts_csv(db_session, ReceiptFilters(include_void=True)))[1:]
        assert len(rows) == 2

    def test_filters_narrow_rows(self, ledger, agency, db_session):
        ledger.create(agency.agency_id, "10.00", status="PAID", now=NOW)
        ledger.create(agency.agency_id, "20.00", status="PENDING", now=NOW)

        body = receipts_csv(db_session, ReceiptFilters(status="pending"))
        rows = _rows(body)[1:]
        assert len(rows) == 1
        assert rows[0][8] == "PENDING"

    def test_nothing_to_export(self, db_session, agency):
        with pytest.raises(NotFoundError):
            receipts_csv(db_session)

    def test_filename(self):
        assert export_filename("receipts", datetime(2025, 10, 15).date()) == "receipts-export-2025-10-15.csv"


class TestAgencySummaryCsv:
    def test_rows_per_active_agency(self, ledger, agency, inactive_agency, db_session):
        idle = Agency(agency_id="333444", agency_name="Idle Travel", is_active=True)
        db_session.add(idle)
        db_session.commit()

        ledger.create(agency.agency_id, "100.00", status="PAID", now=NOW)
        ledger.create(agency.agency_id, "50.00", status="PENDING", now=NOW)
        voided = ledger.create(agency.agency_id, "999.00", status="PENDING", now=NOW).receipt
        ledger.void(voided.id, "Keyed twice")

        rows = _rows(agency_summary_csv(db_session))
        assert rows[0] == SUMMARY_COLUMNS
        by_code = {row[0]: dict(zip(rows[0], row)) for row in rows[1:]}

        assert set(by_code) == {"789456", "333444"}
        busy = by_code["789456"]
        assert busy["Total Receipts"] == "2"
        assert busy["Paid Count"] == "1"
        assert busy["Paid Amount"] == "100.00"
        assert busy["Pending Count"] == "1"
        assert busy["Grand Total"] == "150.00"
        assert by_code["333444"]["Total Receipts"] == "0"
        # highest grand total first
        assert rows[1][0] == "789456"


class TestPdf:
    def test_renders_pdf_document(self, app, ledger, agency):
        receipt = ledger.create(agency.agency_id, "75.00", status="PAID", now=NOW).receipt
        snapshot = receipt_snapshot(receipt, app.config)

        assert snapshot.agency_name == "Equatoria Travel"
        assert snapshot.local_payment_date.hour == 12

        pdf = render_receipt_pdf(snapshot)
        assert pdf.startswith(b"%PDF")

    def test_void_receipt_still_renders(self, app, ledger, agency):
        receipt = ledger.create(agency.agency_id, "75.00", status="PENDING", now=NOW).receipt
        ledger.void(receipt.id, "Cancelled by agency")
        receipt = ledger.get(receipt.id)

        pdf = render_receipt_pdf(receipt_snapshot(receipt, app.config))
        assert pdf.startswith(b"%PDF")

    def test_format_amount(self):
        assert format_amount(Decimal("1234.5"), "USD") == "USD 1,234.50"
