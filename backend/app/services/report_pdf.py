"""Render the commission report as a PDF statement."""
import io
from datetime import datetime, timezone

from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, HRFlowable

from app.core.config import settings

NAVY = colors.HexColor('#0b3d91')
SLATE = colors.HexColor('#475569')
RULE_GREY = colors.HexColor('#d4d4d8')
STRIPE = colors.HexColor('#f4f6fb')


def _money(amount) -> str:
    return f"INR {amount:,.2f}"


def _report_styles() -> dict:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("CommissionTitle", parent=base["Title"], fontSize=16, textColor=NAVY,
                                alignment=0, spaceAfter=0),
        "period": ParagraphStyle("CommissionPeriod", parent=base["Normal"], fontSize=10, textColor=SLATE,
                                 spaceAfter=6),
        "section": ParagraphStyle("CommissionSection", parent=base["Heading4"], textColor=NAVY,
                                  spaceBefore=10, spaceAfter=3),
        "footnote": ParagraphStyle("CommissionFootnote", parent=base["Italic"], fontSize=7,
                                   textColor=SLATE, alignment=TA_RIGHT),
    }


def _grid(rows, widths, header=True) -> Table:
    """Two-column table, amounts right-aligned, optional shaded header row."""
    table = Table(rows, colWidths=widths, repeatRows=1 if header else 0)
    commands = [
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('ALIGN', (-1, 0), (-1, -1), 'RIGHT'),
        ('LINEBELOW', (0, 0), (-1, -1), 0.25, RULE_GREY),
        ('TOPPADDING', (0, 0), (-1, -1), 3),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
    ]
    if header:
        commands += [
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('BACKGROUND', (0, 0), (-1, 0), NAVY),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, STRIPE]),
        ]
    else:
        commands.append(('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'))
    table.setStyle(TableStyle(commands))
    return table


def generate_commission_report_pdf(report: dict) -> bytes:
    """PDF for the dict returned by ``CommissionReportService.get_commission_report``."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        leftMargin=1.5 * cm,
        rightMargin=1.5 * cm,
        topMargin=1.2 * cm,
        bottomMargin=1.2 * cm,
        title=f"Commission report {report['period']}",
    )
    styles = _report_styles()
    label_width, value_width = 9 * cm, 6 * cm

    story = [
        Paragraph(f"{settings.APP_NAME}: commission report", styles["title"]),
        Paragraph(
            f"Tenant {report['tenant_id']} | {report['period']} "
            f"({report['period_start']} to {report['period_end']})",
            styles["period"],
        ),
        HRFlowable(width="100%", thickness=1.5, color=NAVY, spaceAfter=8),
    ]

    story.append(_grid([
        ["Settled transactions", str(report.get('transaction_count', 0))],
        ["Premium", _money(report.get('total_premium', 0))],
        ["Commission", _money(report['total_commission'])],
    ], [label_width, value_width], header=False))

    story.append(Paragraph("By line of business", styles["section"]))
    lob_rows = [["Line of business", "Commission"]]
    lob_rows += [[name, _money(amount)] for name, amount in report['by_lob'].items()]
    if len(lob_rows) == 1:
        lob_rows.append(["No settled commission in this period", ""])
    story.append(_grid(lob_rows, [label_width, value_width]))

    story.append(Paragraph("Share by rule type", styles["section"]))
    type_rows = [["Rule type", "% of commission"]]
    type_rows += [[rule_type, f"{pct:.2f}%"] for rule_type, pct in report['by_rule_type'].items()]
    if len(type_rows) == 1:
        type_rows.append(["-", ""])
    story.append(_grid(type_rows, [label_width, value_width]))

    generated = datetime.now(timezone.utc).strftime('%d %b %Y %H:%M UTC')
    story += [Spacer(1, 14), Paragraph(f"Generated {generated}", styles["footnote"])]

    doc.build(story)
    return buffer.getvalue()
