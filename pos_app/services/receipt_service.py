"""Receipt service - printable PDF for a committed sale."""
from io import BytesIO
from typing import Any, Dict

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from pos_app.models import Sale
from pos_app.utils.formatters import datetime_short, money, num


def render_receipt_pdf(sale: Sale, business_info: Dict[str, Any]) -> BytesIO:
    """
    Render a sale as a one-page PDF invoice.

    Args:
        sale: Committed sale with its sold items loaded
        business_info: name/address/phone/email for the header

    Returns:
        BytesIO positioned at the start of the document
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75*inch,
        leftMargin=0.75*inch,
        topMargin=0.75*inch,
        bottomMargin=0.75*inch,
        title=f"Invoice {sale.invoice_number}"
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'ReceiptTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor('#0F172A'),
        spaceAfter=10,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )

    header_style = ParagraphStyle(
        'ReceiptHeader',
        parent=styles['Normal'],
        fontSize=9,
        textColor=colors.HexColor('#64748B'),
        alignment=TA_CENTER,
        spaceAfter=4
    )

    # 1. Business header
    elements.append(Paragraph(business_info.get('name') or 'POS Stock', title_style))

    if business_info.get('address'):
        elements.append(Paragraph(business_info['address'], header_style))

    contact_parts = [business_info[key] for key in ('email', 'phone') if business_info.get(key)]
    if contact_parts:
        elements.append(Paragraph(" · ".join(contact_parts), header_style))

    elements.append(Spacer(1, 0.2*inch))

    # 2. Invoice number and date
    info_table = Table([
        ['Invoice #', sale.invoice_number],
        ['Date', datetime_short(sale.date)],
    ], colWidths=[1.5*inch, 3*inch])
    info_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.25*inch))

    # 3. Items
    table_data = [['Code', 'Item', 'Qty', 'Price', 'Total']]
    for item in sale.sold_items:
        table_data.append([
            item.product_code,
            item.name,
            num(item.quantity),
            f"${money(item.price)}",
            f"${money(item.line_total)}"
        ])

    items_table = Table(table_data, colWidths=[1.1*inch, 2.8*inch, 0.6*inch, 1*inch, 1.1*inch])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#0F172A')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('ALIGN', (2, 1), (-1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#CBD5E1')),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    # 4. Totals
    totals_table = Table([
        ['Subtotal', f"${money(sale.subtotal)}"],
        ['Tax', f"${money(sale.tax)}"],
        ['TOTAL', f"${money(sale.total_amount)}"],
    ], colWidths=[5.5*inch, 1.1*inch])
    totals_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTNAME', (0, 2), (-1, 2), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 2), (-1, 2), 13),
        ('LINEABOVE', (0, 2), (-1, 2), 1, colors.HexColor('#0F172A')),
    ]))
    elements.append(totals_table)
    elements.append(Spacer(1, 0.4*inch))

    footer_style = ParagraphStyle('Footer', parent=styles['Normal'], fontSize=9,
                                  textColor=colors.HexColor('#94A3B8'), alignment=TA_CENTER)
    elements.append(Paragraph("Thank you for your purchase.", footer_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer
