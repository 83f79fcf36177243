"""PDF rendering for payment receipts"""

import io
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from rental_engine.domain.receipts import Receipt
from rental_engine.utils.money import format_money


def _styles():
    styles = getSampleStyleSheet()
    styles.add(
        ParagraphStyle(
            name="SectionTitle",
            parent=styles["Heading3"],
            spaceBefore=12,
            spaceAfter=6,
        )
    )
    styles.add(
        ParagraphStyle(
            name="SmallText",
            parent=styles["Normal"],
            fontSize=9,
            leading=12,
        )
    )
    return styles


def _party_block(title: str, party) -> str:
    lines = [f"<b>{title}</b>", f"Name: {escape(party.name)}", f"ID: {escape(party.user_id)}"]
    if party.email:
        lines.append(f"Email: {escape(party.email)}")
    return "<br/>".join(lines)


def render_receipt_pdf(receipt: Receipt) -> bytes:
    """
    Render a receipt as PDF bytes.

    Output depends only on `receipt`: reportlab runs in invariant mode so
    the creation date and document id embedded in the file are fixed, and
    no timestamp other than `receipt.issued_at` is printed.
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=20 * mm,
        leftMargin=20 * mm,
        topMargin=18 * mm,
        bottomMargin=18 * mm,
        title=f"Receipt {receipt.receipt_id}",
        author=receipt.owner.name,
        invariant=1,
    )
    styles = _styles()
    money = lambda value: format_money(value, receipt.currency)  # noqa: E731

    elements: list = []
    elements.append(Paragraph("<b>PAYMENT RECEIPT</b>", styles["Title"]))
    elements.append(Paragraph(escape(receipt.receipt_id), styles["Heading2"]))
    elements.append(Spacer(1, 8))

    header_rows = [
        ["Issued at", receipt.issued_at],
        ["Payment", receipt.payment_id],
        ["Rental request", receipt.rental_request_id],
        ["Method", receipt.method],
    ]
    header_table = Table(header_rows, colWidths=[40 * mm, 120 * mm])
    header_table.setStyle(
        TableStyle(
            [
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
            ]
        )
    )
    elements.append(header_table)
    elements.append(Spacer(1, 10))

    parties = Table(
        [
            [
                Paragraph(_party_block("Owner", receipt.owner), styles["Normal"]),
                Paragraph(_party_block("Customer", receipt.customer), styles["Normal"]),
            ]
        ],
        colWidths=[80 * mm, 80 * mm],
    )
    parties.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
    elements.append(parties)

    rental_rows = [
        ["Vehicle", f"{receipt.vehicle_name} ({receipt.vehicle_id})"],
        ["Store", receipt.store_id],
        ["Pick-up", receipt.start_date],
        ["Return", receipt.end_date],
        ["Days", str(receipt.days)],
    ]
    rental_table = Table(rental_rows, colWidths=[40 * mm, 120 * mm])
    rental_table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.whitesmoke),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ]
        )
    )
    elements.append(Paragraph("Rental", styles["SectionTitle"]))
    elements.append(rental_table)
    elements.append(Spacer(1, 12))

    lines_data = [["Description", "Qty", "Unit price", "Amount"]]
    for line in receipt.lines:
        lines_data.append(
            [line.description, str(line.quantity), money(line.unit_price), money(line.amount)]
        )
    lines_data.append(["Total", "", "", money(receipt.total)])

    lines_table = Table(lines_data, colWidths=[80 * mm, 18 * mm, 35 * mm, 35 * mm])
    lines_table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("ALIGN", (1, 1), (-1, -1), "RIGHT"),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ]
        )
    )
    elements.append(Paragraph("Charges", styles["SectionTitle"]))
    elements.append(lines_table)
    elements.append(Spacer(1, 18))

    elements.append(
        Paragraph(
            "This receipt confirms payment in full for the rental period shown above.",
            styles["SmallText"],
        )
    )

    doc.build(elements)
    return buffer.getvalue()
