# Overview: PDF rendering for single receipts (reportlab canvas).

"""
Receipt PDF

A pure function of a ReceiptSnapshot plus an optional QR PNG. Rendering
errors propagate to the caller; nothing here touches the database.
"""

from __future__ import annotations

from io import BytesIO

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .export_service import ReceiptSnapshot

BRAND_BLUE = HexColor("#0B4F9C")
TEXT_DARK = HexColor("#1A202C")
TEXT_GRAY = HexColor("#64748B")
RULE_GRAY = HexColor("#E2E8F0")
VOID_RED = HexColor("#B91C1C")

W, H = A4
MARGIN = 50


def format_amount(amount, currency: str) -> str:
    return f"{currency} {amount:,.2f}"


def _label_value(c: canvas.Canvas, x: float, y: float, label: str, value: str, width: float = 60) -> None:
    c.setFont("Helvetica", 9)
    c.setFillColor(TEXT_GRAY)
    c.drawString(x, y, f"{label}:")
    c.setFont("Helvetica-Bold", 9)
    c.setFillColor(TEXT_DARK)
    c.drawString(x + width, y, value or "-")


def render_receipt_pdf(snapshot: ReceiptSnapshot, qr_png: bytes | None = None) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle(f"Receipt {snapshot.receipt_number}")
    c.setAuthor(snapshot.company_name)

    # Header band
    c.setFillColor(BRAND_BLUE)
    c.rect(0, H - 100, W, 100, fill=1, stroke=0)
    c.setFillColor(HexColor("#FFFFFF"))
    c.setFont("Helvetica-Bold", 22)
    c.drawString(MARGIN, H - 50, snapshot.company_name)
    c.setFont("Helvetica-Oblique", 10)
    c.drawString(MARGIN, H - 70, snapshot.company_tagline)
    c.setFont("Helvetica-Bold", 12)
    c.drawRightString(W - MARGIN, H - 45, "CREDIT DEPOSIT RECEIPT")
    c.setFont("Helvetica", 10)
    c.drawRightString(W - MARGIN, H - 62, snapshot.receipt_number)

    y = H - 120
    c.setFont("Helvetica", 9)
    c.setFillColor(TEXT_GRAY)
    c.drawString(MARGIN, y, "OFFICIAL PAYMENT RECEIPT")
    c.drawRightString(
        W - MARGIN, y, f"Issued: {snapshot.issue_date.isoformat()} {snapshot.issue_time} EAT"
    )

    # Agency block
    y -= 35
    c.setFont("Helvetica-Bold", 10)
    c.setFillColor(TEXT_DARK)
    c.drawString(MARGIN, y, "AGENCY INFORMATION")
    _label_value(c, MARGIN, y - 20, "Agency", snapshot.agency_name)
    _label_value(c, MARGIN, y - 35, "Account ID", snapshot.agency_code)

    # Transaction block
    col2 = W / 2 + 10
    c.setFont("Helvetica-Bold", 10)
    c.setFillColor(TEXT_DARK)
    c.drawString(col2, y, "TRANSACTION DETAILS")
    local_paid = snapshot.local_payment_date
    details = [
        ("Method", snapshot.payment_method.replace("_", " ").title()),
        ("Status", snapshot.status),
        ("Station", snapshot.station),
        ("Paid", local_paid.strftime("%Y-%m-%d %H:%M") if local_paid else ""),
    ]
    for i, (label, value) in enumerate(details):
        _label_value(c, col2, y - 20 - 15 * i, label, value)

    # Amount box
    y -= 120
    c.setStrokeColor(RULE_GRAY)
    c.setFillColor(HexColor("#F8FAFC"))
    c.roundRect(MARGIN, y - 20, W - 2 * MARGIN, 70, 6, fill=1, stroke=1)
    c.setFont("Helvetica-Bold", 10)
    c.setFillColor(TEXT_GRAY)
    c.drawString(MARGIN + 20, y + 30, "CREDIT DEPOSIT AMOUNT")
    c.setFont("Helvetica-Bold", 28)
    c.setFillColor(BRAND_BLUE)
    c.drawString(MARGIN + 20, y - 5, format_amount(snapshot.amount, snapshot.currency))

    if snapshot.status == "VOID":
        c.saveState()
        c.setFont("Helvetica-Bold", 60)
        c.setFillColor(VOID_RED)
        c.translate(W / 2, H / 2)
        c.rotate(30)
        c.drawCentredString(0, 0, "VOID")
        c.restoreState()

    # Verification block
    y -= 60
    c.setFont("Helvetica-Bold", 10)
    c.setFillColor(TEXT_DARK)
    c.drawString(MARGIN, y, "VERIFICATION & AUTHORIZATION")
    if qr_png:
        c.drawImage(ImageReader(BytesIO(qr_png)), MARGIN, y - 100, width=90, height=90)
        c.setFont("Helvetica", 8)
        c.setFillColor(TEXT_GRAY)
        c.drawCentredString(MARGIN + 45, y - 112, "Scan to verify receipt")

    c.setFont("Helvetica", 8)
    c.setFillColor(TEXT_GRAY)
    c.drawString(MARGIN + 120, y - 20, f"Ref: {snapshot.receipt_number}")
    c.drawString(MARGIN + 120, y - 34, f"Payment status: {snapshot.status}")
    if snapshot.void_reason:
        c.drawString(MARGIN + 120, y - 48, f"Void reason: {snapshot.void_reason}")
    if snapshot.remarks:
        c.drawString(MARGIN + 120, y - 62, f"Remarks: {snapshot.remarks[:90]}")

    c.setFont("Helvetica", 9)
    c.drawString(MARGIN + 120, y - 90, "Authorized Signature")
    c.setFont("Helvetica-BoldOblique", 16)
    c.setFillColor(TEXT_DARK)
    c.drawString(MARGIN + 120, y - 110, snapshot.issued_by)

    # Footer
    c.setStrokeColor(RULE_GRAY)
    c.line(MARGIN, 90, W - MARGIN, 90)
    c.setFont("Helvetica", 8)
    c.setFillColor(TEXT_GRAY)
    c.drawString(MARGIN, 75, snapshot.company_address)
    c.drawString(
        MARGIN, 62, f"IATA Code: {snapshot.company_iata_code}  |  Contact: {snapshot.company_contacts}"
    )
    c.drawString(MARGIN, 49, "Receipts are immutable once issued; verify via the QR code above.")

    c.showPage()
    c.save()
    return buf.getvalue()
