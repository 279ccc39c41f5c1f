"""Generate commission statement PDFs for generated commission reports."""
import io
from datetime import datetime

from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib import colors
from reportlab.lib.units import inch
from reportlab.platypus import (
    SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, HRFlowable,
)
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_RIGHT

from app.core.config import settings


def _fmt(n) -> str:
    return f"RM {float(n or 0):,.2f}"


def generate_commission_pdf(statement: dict) -> bytes:
    """Render a statement dict (see ``CommissionReportService.statement_data``) to PDF bytes."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        rightMargin=0.5 * inch,
        leftMargin=0.5 * inch,
        topMargin=0.5 * inch,
        bottomMargin=0.5 * inch,
    )

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        name='CompanyName',
        parent=styles['Heading1'],
        fontSize=18,
        textColor=colors.HexColor('#1e3a8a'),
        spaceAfter=2,
    ))
    styles.add(ParagraphStyle(
        name='SheetTitle',
        parent=styles['Heading2'],
        fontSize=14,
        textColor=colors.HexColor('#334155'),
        spaceAfter=4,
    ))
    styles.add(ParagraphStyle(
        name='SectionHeader',
        parent=styles['Heading3'],
        fontSize=11,
        textColor=colors.HexColor('#1e293b'),
        spaceBefore=8,
        spaceAfter=4,
    ))
    styles.add(ParagraphStyle(
        name='SmallRight',
        parent=styles['Normal'],
        fontSize=8,
        alignment=TA_RIGHT,
        textColor=colors.HexColor('#64748b'),
    ))
    styles.add(ParagraphStyle(name='TableCell', parent=styles['Normal'], fontSize=7.5, leading=9))
    styles.add(ParagraphStyle(
        name='TableCellRight', parent=styles['Normal'], fontSize=7.5, leading=9, alignment=TA_RIGHT,
    ))

    story = []

    # ── Header ────────────────────────────────────────────────────
    story.append(Paragraph(settings.APP_NAME, styles['CompanyName']))
    story.append(Paragraph(f"Commission Statement - {statement['period_display']}", styles['SheetTitle']))
    story.append(HRFlowable(width="100%", thickness=1, color=colors.HexColor('#1e3a8a')))
    story.append(Spacer(1, 8))

    paid_status = "Unpaid"
    if statement["is_paid"]:
        paid_on = statement["paid_at"].strftime("%d %b %Y") if statement.get("paid_at") else ""
        paid_status = f"Paid {paid_on} by {statement.get('paid_by') or '-'}"
    info_data = [
        ["Agent:", statement["agent_name"], "Period:", statement["period_display"]],
        ["Type:", (statement.get("agent_type") or "unset").title(), "Status:", paid_status],
        ["Invoices:", str(statement["invoices_count"]), "Tier schedule:", statement.get("tier_schedule_version") or "-"],
    ]
    info_table = Table(info_data, colWidths=[0.9 * inch, 2.5 * inch, 1.1 * inch, 3 * inch])
    info_table.setStyle(TableStyle([
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTNAME', (2, 0), (2, -1), 'Helvetica-Bold'),
        ('TEXTCOLOR', (0, 0), (0, -1), colors.HexColor('#475569')),
        ('TEXTCOLOR', (2, 0), (2, -1), colors.HexColor('#475569')),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
        ('TOPPADDING', (0, 0), (-1, -1), 3),
    ]))
    story.append(info_table)
    story.append(Spacer(1, 12))

    # ── Summary ───────────────────────────────────────────────────
    story.append(Paragraph("Summary", styles['SectionHeader']))
    sum_rows = [
        ["Basic Commission", _fmt(statement["total_basic_commission"])],
        ["Bonus Commission", _fmt(statement["total_bonus_commission"])],
        ["Adjustments", _fmt(statement["total_adjustments"])],
        ["Final Total Commission", _fmt(statement["final_total_commission"])],
    ]
    sum_table = Table(sum_rows, colWidths=[2.5 * inch, 1.6 * inch])
    sum_table.setStyle(TableStyle([
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#e2e8f0')),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('TEXTCOLOR', (1, -1), (1, -1), colors.HexColor('#15803d')),
        ('LINEBELOW', (0, -1), (-1, -1), 1, colors.HexColor('#1e3a8a')),
    ]))
    story.append(sum_table)
    story.append(Spacer(1, 14))

    # ── Invoice detail ────────────────────────────────────────────
    story.append(Paragraph(f"Invoices ({len(statement['invoices'])})", styles['SectionHeader']))
    header = [
        Paragraph("<b>Invoice #</b>", styles['TableCell']),
        Paragraph("<b>Customer</b>", styles['TableCell']),
        Paragraph("<b>Full Payment</b>", styles['TableCell']),
        Paragraph("<b>Amount</b>", styles['TableCellRight']),
        Paragraph("<b>Eligible</b>", styles['TableCellRight']),
        Paragraph("<b>Monthly ANP</b>", styles['TableCellRight']),
    ]
    table_data = [header]
    for item in statement["invoices"]:
        paid_date = item["full_payment_date"].strftime("%d %b %Y") if item.get("full_payment_date") else "-"
        table_data.append([
            Paragraph(str(item.get("invoice_number") or item["id"])[:15], styles['TableCell']),
            Paragraph(str(item.get("customer_name") or "-")[:30], styles['TableCell']),
            Paragraph(paid_date, styles['TableCell']),
            Paragraph(_fmt(item.get("amount")), styles['TableCellRight']),
            Paragraph(_fmt(item.get("amount_eligible_for_comm")), styles['TableCellRight']),
            Paragraph(_fmt(item.get("achieved_monthly_anp")), styles['TableCellRight']),
        ])
    detail_table = Table(
        table_data,
        colWidths=[1.1 * inch, 2.8 * inch, 1.2 * inch, 1.3 * inch, 1.3 * inch, 1.3 * inch],
        repeatRows=1,
    )
    detail_table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('TOPPADDING', (0, 0), (-1, -1), 3),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
        ('LINEBELOW', (0, 0), (-1, 0), 1, colors.HexColor('#334155')),
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f1f5f9')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#fafafa')]),
    ]))
    story.append(detail_table)

    # ── Adjustments ───────────────────────────────────────────────
    if statement["adjustments"]:
        story.append(Paragraph("Adjustments", styles['SectionHeader']))
        adj_rows = [["Description", "Amount", "Entered By"]]
        for adj in statement["adjustments"]:
            adj_rows.append([str(adj["description"])[:80], _fmt(adj["amount"]), adj["created_by"]])
        adj_table = Table(adj_rows, colWidths=[5 * inch, 1.4 * inch, 1.6 * inch])
        adj_style = [
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f1f5f9')),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#e2e8f0')),
        ]
        # Deductions in red
        for i, adj in enumerate(statement["adjustments"], start=1):
            if float(adj["amount"]) < 0:
                adj_style.append(('TEXTCOLOR', (1, i), (1, i), colors.HexColor('#dc2626')))
        adj_table.setStyle(TableStyle(adj_style))
        story.append(adj_table)

    # Footer
    story.append(Spacer(1, 16))
    story.append(HRFlowable(width="100%", thickness=0.5, color=colors.HexColor('#cbd5e1')))
    story.append(Spacer(1, 4))
    story.append(Paragraph(
        f"Generated on {datetime.utcnow().strftime('%B %d, %Y at %I:%M %p UTC')}",
        styles['SmallRight']
    ))

    doc.build(story)
    return buffer.getvalue()
