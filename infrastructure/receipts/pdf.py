"""ReportLab receipt document plus the matching HTML email body."""
from __future__ import annotations

from html import escape
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from domain.payment.receipt import Receipt, ReceiptAudience


_MUTED = colors.HexColor("#6b7280")
_BORDER = colors.HexColor("#e5e7eb")


def _heading(audience: ReceiptAudience) -> str:
    if audience is ReceiptAudience.PAYER:
        return "PAYMENT RECEIPT"
    return "PAYMENT RECEIPT (service provider copy)"


def _rows(receipt: Receipt) -> list[tuple[str, str]]:
    b = receipt.breakdown
    return [
        ("Service amount", receipt.money(b.original)),
        (f"Platform commission ({b.rate_label})", receipt.money(b.commission)),
        ("Total charged", receipt.money(b.total)),
    ]


class ReportLabReceiptRenderer:
    content_type = "application/pdf"
    extension = "pdf"

    def __init__(self, brand_name: str = "Marketplace") -> None:
        self.brand_name = brand_name

    def render(self, receipt: Receipt, audience: ReceiptAudience) -> bytes:
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=18 * mm,
            rightMargin=18 * mm,
            topMargin=16 * mm,
            bottomMargin=16 * mm,
            title=f"Receipt {receipt.receipt_number}",
            author=self.brand_name,
        )
        styles = getSampleStyleSheet()
        styles.add(ParagraphStyle(name="TitleBrand", parent=styles["Heading1"], fontName="Helvetica-Bold", fontSize=18, textColor=colors.black, spaceAfter=6))
        styles.add(ParagraphStyle(name="Muted", parent=styles["Normal"], fontName="Helvetica", fontSize=9, textColor=_MUTED))
        styles.add(ParagraphStyle(name="Strong", parent=styles["Normal"], fontName="Helvetica-Bold", fontSize=10))
        styles.add(ParagraphStyle(name="NormalSmall", parent=styles["Normal"], fontName="Helvetica", fontSize=10))

        story = []
        story.append(Paragraph(escape(self.brand_name), styles["Muted"]))
        story.append(Paragraph(_heading(audience), styles["TitleBrand"]))
        story.append(Spacer(1, 6))

        info = [
            ("Receipt number", receipt.receipt_number),
            ("Payment date", receipt.display_date),
            ("Payment method", receipt.payment_method.title()),
            ("Service", receipt.service_description),
            ("Service provider", receipt.provider_email),
        ]
        if receipt.payer_email:
            info.append(("Paid by", receipt.payer_email))
        info_tbl = Table(
            [[Paragraph(k, styles["Muted"]), Paragraph(escape(v), styles["NormalSmall"])] for k, v in info],
            colWidths=[doc.width * 0.35, doc.width * 0.65],
        )
        info_tbl.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP"), ("BOX", (0, 0), (-1, -1), 0.25, _BORDER), ("INNERGRID", (0, 0), (-1, -1), 0.25, _BORDER)]))
        story.append(info_tbl)
        story.append(Spacer(1, 8))

        rows = [[Paragraph("Description", styles["Strong"]), Paragraph("Amount", styles["Strong"])]]
        lines = _rows(receipt)
        for label, value in lines[:-1]:
            rows.append([Paragraph(escape(label), styles["NormalSmall"]), Paragraph(value, styles["NormalSmall"])])
        label, value = lines[-1]
        rows.append([Paragraph(label.upper(), styles["Strong"]), Paragraph(value, styles["Strong"])])
        tbl = Table(rows, colWidths=[doc.width * 0.65, doc.width * 0.35])
        tbl.setStyle(TableStyle([("BOX", (0, 0), (-1, -1), 0.25, _BORDER), ("INNERGRID", (0, 0), (-1, -1), 0.25, _BORDER)]))
        story.append(tbl)
        story.append(Spacer(1, 10))

        story.append(Paragraph("This receipt was issued automatically after the payment succeeded.", styles["Muted"]))

        doc.build(story)
        buffer.seek(0)
        return buffer.read()

    def render_html(self, receipt: Receipt, audience: ReceiptAudience) -> str:
        if audience is ReceiptAudience.PAYER:
            intro = "Thank you for your payment. Your receipt is attached."
        else:
            intro = "A payment for your service has been completed. The receipt is attached."
        rows = "".join(
            f"<tr><td style=\"padding:6px 12px;border:1px solid #e5e7eb\">{escape(k)}</td>"
            f"<td style=\"padding:6px 12px;border:1px solid #e5e7eb;text-align:right\">{escape(v)}</td></tr>"
            for k, v in _rows(receipt)
        )
        return (
            "<div style=\"font-family:Helvetica,Arial,sans-serif;color:#111827\">"
            f"<h2>{escape(self.brand_name)} payment receipt</h2>"
            f"<p>{intro}</p>"
            f"<p><strong>Receipt number:</strong> {escape(receipt.receipt_number)}<br>"
            f"<strong>Date:</strong> {escape(receipt.display_date)}<br>"
            f"<strong>Service:</strong> {escape(receipt.service_description)}</p>"
            f"<table style=\"border-collapse:collapse\">{rows}</table>"
            "</div>"
        )
