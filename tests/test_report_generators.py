"""
PDF analytics report rendering.

pytest tests/test_report_generators.py -v
"""

from datetime import date, datetime

import pytest

from loantape.analytics import analyze_portfolio
from loantape.charts import chart_portfolio_overview
from loantape.report_generators import ReportOptions, render_report, report_filename


@pytest.fixture(scope="module")
def analysis(xlarge_tape):
    return analyze_portfolio(xlarge_tape, "GreaterthanCrNBFC1_LoanTape_Sample1.xlsx",
                             now=datetime(2025, 1, 15))


def test_renders_pdf(analysis):
    pdf = render_report(analysis, ReportOptions(company_name="Test NBFC",
                                                report_date=date(2025, 1, 15)))
    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 5_000


def test_sections_can_be_switched_off(analysis):
    full = render_report(analysis, ReportOptions(report_date=date(2025, 1, 15)))
    bare = render_report(analysis, ReportOptions(
        include_executive_summary=False,
        include_detailed_analysis=False,
        include_forensic_findings=False,
        include_recommendations=False,
        report_date=date(2025, 1, 15)))
    assert bare.startswith(b"%PDF")
    assert len(bare) < len(full)


def test_empty_analysis_still_renders():
    empty = analyze_portfolio([], "empty.xlsx", now=datetime(2025, 1, 15))
    assert render_report(empty).startswith(b"%PDF")


def test_chart_is_png(analysis):
    assert chart_portfolio_overview(analysis).startswith(b"\x89PNG")


def test_report_filename(analysis):
    assert report_filename(analysis, date(2025, 1, 15)) == \
        "Loan_Tape_Analysis_GreaterthanCrNBFC1_LoanTape_Sample1_2025-01-15.pdf"
