"""
PDF analytics report for a loan tape.

Takes an AnalysisResult and returns the rendered document as bytes:
- Title block (tape name, institution, report date)
- Executive summary with key-metric table
- Detailed analysis: credit quality, performance, yield, concentration,
  with an embedded product-mix / ageing chart
- Forensic findings table
- Rule-based recommendations

Each section can be switched off through ReportOptions.
"""

import io
from dataclasses import dataclass
from datetime import date
from pathlib import PurePath
from typing import List, Optional

from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    HRFlowable, Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle,
)

from loantape.analytics import AnalysisResult, ForensicFlag, recommendations_for
from loantape.charts import chart_portfolio_overview


# ---------------------------------------------------------------------------
# Colour palette
# ---------------------------------------------------------------------------
NAVY = HexColor("#1E40AF")
SLATE = HexColor("#374151")
MID_GREY = HexColor("#666666")
ALERT_RED = HexColor("#DC2626")
TABLE_HEADER_BG = HexColor("#1B2A4A")
TABLE_ALT_ROW = HexColor("#F0F4F8")
GRID_GREY = colors.Color(0.85, 0.85, 0.85)

SEVERITY_COLOURS = {
    "critical": HexColor("#991B1B"),
    "high": ALERT_RED,
    "medium": HexColor("#EA580C"),
    "low": HexColor("#CA8A04"),
}


@dataclass
class ReportOptions:
    include_executive_summary: bool = True
    include_detailed_analysis: bool = True
    include_forensic_findings: bool = True
    include_recommendations: bool = True
    include_charts: bool = True
    company_name: Optional[str] = None
    report_date: Optional[date] = None


# ---------------------------------------------------------------------------
# Shared styles and formatters
# ---------------------------------------------------------------------------

def get_styles():
    styles = getSampleStyleSheet()

    styles.add(ParagraphStyle(
        "ReportTitle", parent=styles["Title"],
        fontSize=22, leading=28, textColor=NAVY, spaceAfter=10))
    styles.add(ParagraphStyle(
        "ReportSubtitle", parent=styles["Normal"],
        fontSize=13, leading=17, textColor=MID_GREY, alignment=TA_CENTER, spaceAfter=6))
    styles.add(ParagraphStyle(
        "SectionHeading", parent=styles["Heading1"],
        fontSize=15, leading=19, textColor=NAVY, spaceBefore=18, spaceAfter=8))
    styles.add(ParagraphStyle(
        "AlertHeading", parent=styles["Heading1"],
        fontSize=15, leading=19, textColor=ALERT_RED, spaceBefore=18, spaceAfter=8))
    styles.add(ParagraphStyle(
        "SubHeading", parent=styles["Heading2"],
        fontSize=11, leading=14, textColor=SLATE, spaceBefore=12, spaceAfter=6))
    styles.add(ParagraphStyle(
        "BodyJustified", parent=styles["Normal"],
        fontSize=10, leading=14, textColor=SLATE, alignment=TA_JUSTIFY, spaceAfter=8))
    styles.add(ParagraphStyle(
        "BulletItem", parent=styles["Normal"],
        fontSize=10, leading=14, textColor=SLATE, leftIndent=12, spaceAfter=5))

    return styles


def fmt_money_mm(amount: float) -> str:
    return f"INR {amount / 1_000_000:,.1f}M"


def fmt_pct(val: float) -> str:
    return f"{val:.2f}%"


def _table(rows, col_widths, header_bg=TABLE_HEADER_BG):
    t = Table(rows, colWidths=col_widths)
    style_cmds = [
        ("BACKGROUND", (0, 0), (-1, 0), header_bg),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -1), 0.5, GRID_GREY),
        ("TOPPADDING", (0, 0), (-1, -1), 5),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
        ("LEFTPADDING", (0, 0), (-1, -1), 8),
        ("RIGHTPADDING", (0, 0), (-1, -1), 8),
    ]
    for i in range(2, len(rows), 2):
        style_cmds.append(("BACKGROUND", (0, i), (-1, i), TABLE_ALT_ROW))
    t.setStyle(TableStyle(style_cmds))
    return t


def report_filename(analysis: AnalysisResult, report_date: date) -> str:
    stem = PurePath(analysis.file_name).stem
    return f"Loan_Tape_Analysis_{stem}_{report_date.isoformat()}.pdf"


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def _title_block(analysis, options, styles, report_date) -> list:
    return [
        Spacer(1, 1.2 * inch),
        Paragraph("LOAN TAPE ANALYTICS REPORT", styles["ReportTitle"]),
        HRFlowable(width="60%", thickness=2, color=NAVY, spaceAfter=12),
        Paragraph(f"<i>Analysis of {analysis.file_name}</i>", styles["ReportSubtitle"]),
        Paragraph(options.company_name or "Financial Institution", styles["ReportSubtitle"]),
        Paragraph(f"Report Date: {report_date.strftime('%d %b %Y')}", styles["ReportSubtitle"]),
        Spacer(1, 0.5 * inch),
    ]


def _executive_summary(analysis, styles) -> list:
    story = [Paragraph("EXECUTIVE SUMMARY", styles["SectionHeading"])]
    story.append(Paragraph(
        f'This report presents a comprehensive analysis of the loan tape file '
        f'"{analysis.file_name}" containing {analysis.total_loans:,} loans with a total '
        f'portfolio value of {fmt_money_mm(analysis.total_amount)}. The analysis covers '
        f'credit quality, performance metrics, yield analysis, compliance review, and '
        f'forensic red flag detection.',
        styles["BodyJustified"]))
    rows = [
        ["Metric", "Value"],
        ["Total Loans", f"{analysis.total_loans:,}"],
        ["Portfolio Value", fmt_money_mm(analysis.total_amount)],
        ["Average Loan Size", f"INR {analysis.avg_loan_size:,.0f}"],
        ["Current Delinquency Rate", fmt_pct(analysis.performance_metrics.current_delinquency_rate)],
        ["Average Credit Score", f"{analysis.credit_quality.avg_credit_score:.0f}"],
    ]
    story.append(_table(rows, [3.0 * inch, 2.5 * inch]))
    return story


def _dscr_reading(avg_dscr: float) -> str:
    if avg_dscr > 1.25:
        return "strong"
    if avg_dscr > 1.0:
        return "adequate"
    return "weak"


def _concentration_reading(share: float) -> str:
    if share > 25:
        return "high concentration risk"
    if share > 15:
        return "moderate concentration risk"
    return "well-diversified exposure"


def _detailed_analysis(analysis, styles, include_charts: bool) -> list:
    cq = analysis.credit_quality
    perf = analysis.performance_metrics
    yld = analysis.yield_metrics
    conc = analysis.concentration_risk

    story = [Paragraph("DETAILED ANALYSIS", styles["SectionHeading"])]

    story.append(Paragraph("Credit Quality Assessment", styles["SubHeading"]))
    story.append(Paragraph(
        f"The portfolio demonstrates {cq.underwriting_quality} underwriting quality with an "
        f"average credit score of {cq.avg_credit_score:.0f}. The average Debt Service Coverage "
        f"Ratio (DSCR) stands at {cq.avg_dscr:.2f}, indicating {_dscr_reading(cq.avg_dscr)} "
        f"borrower capacity to service debt obligations. Secured loans carry an average LTV "
        f"of {cq.avg_ltv:.1f}%.",
        styles["BodyJustified"]))

    story.append(Paragraph("Performance Metrics", styles["SubHeading"]))
    prepay_note = ("may impact yield projections" if perf.prepayment_rate > 15
                   else "is within acceptable ranges")
    story.append(Paragraph(
        f"Current portfolio delinquency rate is {fmt_pct(perf.current_delinquency_rate)}, with a "
        f"cumulative default rate of {fmt_pct(perf.cumulative_default_rate)}. The net loss rate "
        f"stands at {fmt_pct(perf.net_loss_rate)}, while the recovery rate is "
        f"{fmt_pct(perf.recovery_rate)}. Prepayment rate is {fmt_pct(perf.prepayment_rate)}, "
        f"which {prepay_note}.",
        styles["BodyJustified"]))

    if include_charts and analysis.total_loans:
        png = chart_portfolio_overview(analysis)
        story.append(Image(io.BytesIO(png), width=6.5 * inch, height=2.35 * inch))

    story.append(Paragraph("Yield and Profitability Analysis", styles["SubHeading"]))
    story.append(Paragraph(
        f"The portfolio exhibits an average contractual yield of "
        f"{fmt_pct(yld.avg_contractual_yield)} with an effective yield of "
        f"{fmt_pct(yld.effective_yield)}. Net Interest Margin (NIM) is "
        f"{fmt_pct(yld.net_interest_margin)}, and the cost-to-income ratio is "
        f"{fmt_pct(yld.cost_to_income_ratio)}. Fee income contributes "
        f"{fmt_pct(yld.fee_income)} to overall profitability.",
        styles["BodyJustified"]))

    story.append(Paragraph("Concentration Risk Analysis", styles["SubHeading"]))
    breadth = "adequate" if len(conc.geography_concentration) > 5 else "limited"
    story.append(Paragraph(
        f"The top 10 borrowers represent {fmt_pct(conc.top10_borrowers_share)} of the total "
        f"portfolio, indicating {_concentration_reading(conc.top10_borrowers_share)}. "
        f"Geographic and industry diversification metrics suggest {breadth} "
        f"diversification across regions.",
        styles["BodyJustified"]))
    return story


def _flag_label(flag: ForensicFlag) -> str:
    return flag.type.replace("_", " ").upper()


def _forensic_findings(flags: List[ForensicFlag], styles) -> list:
    story = [Paragraph("FORENSIC FINDINGS &amp; RED FLAGS", styles["AlertHeading"])]
    story.append(Paragraph(
        f"The forensic analysis has identified {len(flags)} red flags requiring attention. "
        f"These findings are categorized by severity and potential impact on portfolio quality.",
        styles["BodyJustified"]))
    rows = [["Flag Type", "Severity", "Affected Loans", "Risk Amount"]]
    for flag in flags:
        rows.append([_flag_label(flag), flag.severity.upper(),
                     f"{flag.affected_loans:,}", f"INR {flag.risk_amount:,.0f}"])
    t = _table(rows, [2.0 * inch, 1.1 * inch, 1.3 * inch, 1.6 * inch], header_bg=ALERT_RED)
    for i, flag in enumerate(flags, start=1):
        t.setStyle(TableStyle([
            ("TEXTCOLOR", (1, i), (1, i), SEVERITY_COLOURS.get(flag.severity, SLATE)),
            ("FONTNAME", (1, i), (1, i), "Helvetica-Bold"),
        ]))
    story.append(t)
    story.append(Spacer(1, 0.15 * inch))
    for flag in flags:
        story.append(Paragraph(
            f"&bull; <b>{_flag_label(flag)}</b>: {flag.description}. {flag.recommendation}.",
            styles["BulletItem"]))
    return story


def _recommendations(analysis, styles) -> list:
    story = [Paragraph("RECOMMENDATIONS", styles["SectionHeading"])]
    story.append(Paragraph(
        "Based on the comprehensive analysis, the following recommendations are provided:",
        styles["BodyJustified"]))
    for rec in recommendations_for(analysis):
        story.append(Paragraph(f"&bull; {rec}", styles["BulletItem"]))
    return story


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def render_report(analysis: AnalysisResult, options: Optional[ReportOptions] = None) -> bytes:
    """Render the analytics report to PDF bytes."""
    options = options or ReportOptions()
    styles = get_styles()
    report_date = options.report_date or date.today()

    story = _title_block(analysis, options, styles, report_date)
    if options.include_executive_summary:
        story += _executive_summary(analysis, styles)
    if options.include_detailed_analysis:
        story += _detailed_analysis(analysis, styles, options.include_charts)
    if options.include_forensic_findings and analysis.forensic_flags:
        story += _forensic_findings(analysis.forensic_flags, styles)
    if options.include_recommendations:
        story += _recommendations(analysis, styles)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A4,
        title=f"Loan Tape Analysis - {analysis.file_name}",
        topMargin=0.9 * inch, bottomMargin=0.9 * inch,
        leftMargin=0.9 * inch, rightMargin=0.9 * inch)
    doc.build(story)
    return buffer.getvalue()
