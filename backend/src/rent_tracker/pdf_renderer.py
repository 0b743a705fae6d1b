from __future__ import annotations

import calendar
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .models import PaymentRecord, Tenant
from .templates import format_rent_amount

PAYEE_NAME = "RentPay Portal Management"


def _format_paid_at(payment: PaymentRecord) -> str:
    return payment.date.strftime("%m-%d-%Y %I:%M %p")


def rent_period_label(payment: PaymentRecord) -> str:
    return f"Rent for {calendar.month_name[payment.month]} {payment.year}"


def render_payment_receipt_pdf(tenant: Tenant, payment: PaymentRecord) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=LETTER,
        leftMargin=0.75 * inch,
        rightMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
        title=f"Receipt {payment.id}",
        author=PAYEE_NAME,
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "receipt_title",
        parent=styles["Heading1"],
        fontName="Helvetica-Bold",
        fontSize=22,
        leading=26,
        textColor=colors.HexColor("#0f172a"),
    )
    label_style = ParagraphStyle(
        "receipt_label",
        parent=styles["BodyText"],
        fontName="Helvetica",
        fontSize=9,
        leading=12,
        textColor=colors.HexColor("#64748b"),
    )
    body_style = ParagraphStyle(
        "receipt_body",
        parent=styles["BodyText"],
        fontName="Helvetica-Bold",
        fontSize=11,
        leading=14,
        textColor=colors.HexColor("#1e293b"),
    )
    detail_style = ParagraphStyle(
        "receipt_detail",
        parent=body_style,
        fontName="Helvetica",
        fontSize=10,
    )

    story: list = []
    story.append(Paragraph("Payment Receipt", title_style))
    story.append(Paragraph(f"Transaction ID: {escape(payment.id)}", label_style))
    story.append(Spacer(1, 0.25 * inch))

    story.append(Paragraph("Paid To", label_style))
    story.append(Paragraph(PAYEE_NAME, body_style))
    story.append(Spacer(1, 0.12 * inch))

    story.append(Paragraph("Paid By", label_style))
    story.append(Paragraph(escape(tenant.name), body_style))
    if tenant.address:
        story.append(Paragraph(escape(tenant.address), detail_style))
    story.append(Spacer(1, 0.12 * inch))

    story.append(Paragraph("Payment Date", label_style))
    story.append(Paragraph(_format_paid_at(payment), body_style))
    story.append(Spacer(1, 0.25 * inch))

    amount = format_rent_amount(payment.amount)
    total_table = Table(
        [
            [rent_period_label(payment), amount],
            ["Total Paid", amount],
        ],
        colWidths=[5.25 * inch, 1.75 * inch],
        hAlign="LEFT",
    )
    total_table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica"),
                ("FONTNAME", (0, 1), (-1, 1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, 0), 10),
                ("FONTSIZE", (0, 1), (-1, 1), 13),
                ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ("TEXTCOLOR", (0, 0), (-1, -1), colors.HexColor("#1e293b")),
                ("TEXTCOLOR", (1, 1), (1, 1), colors.HexColor("#4f46e5")),
                ("LINEABOVE", (0, 1), (-1, 1), 0.8, colors.HexColor("#cbd5e1")),
                ("TOPPADDING", (0, 0), (-1, -1), 6),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
            ]
        )
    )
    story.append(total_table)

    doc.build(story)
    return buffer.getvalue()
