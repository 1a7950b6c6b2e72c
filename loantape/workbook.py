"""
Spreadsheet packaging for synthetic loan tapes.

Each institution's tape is one OOXML workbook with two sheets:
- "Loan Tape": one row per LoanRecord, fixed column order, auto-sized widths
- "Summary":   key/value profile facts followed by the product-mix breakdown

Generation and packaging are separate steps: build_workbook() only serialises
records it is handed, so a writer fault (AssemblyError) can be retried without
re-synthesising the loans.
"""

import io
from dataclasses import dataclass
from typing import List, Optional, Sequence

import pandas as pd
from openpyxl.utils import get_column_letter

from loantape.errors import AssemblyError
from loantape.profiles import PortfolioProfile
from loantape.randomness import RandomSource
from loantape.synthesis import (
    LoanRecord,
    RECORD_FIELDS,
    generate,
    institution_code_for,
    record_to_row,
)


XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

LOAN_TAPE_SHEET = "Loan Tape"
SUMMARY_SHEET = "Summary"

# Tape column headers, keyed by LoanRecord field (order follows RECORD_FIELDS)
COLUMN_HEADERS = {
    "loan_id": "Loan ID",
    "borrower_name": "Borrower Name",
    "pan_number": "PAN",
    "product_type": "Product Type",
    "loan_category": "Loan Type",
    "principal_amount": "Loan Amount",
    "interest_rate_percent": "Interest Rate (%)",
    "tenure_months": "Tenure (Months)",
    "installment_amount": "EMI Amount",
    "origination_date": "Origination Date",
    "maturity_date": "Maturity Date",
    "loan_status": "Loan Status",
    "delinquency_bucket": "Delinquency Status",
    "days_past_due": "Days Past Due",
    "credit_score_at_origination": "Credit Score at Origination",
    "current_credit_score": "Current Credit Score",
    "loan_to_value_percent": "LTV (%)",
    "debt_service_coverage_ratio": "DSCR",
    "borrower_age": "Borrower Age",
    "annual_income": "Annual Income",
    "employment_type": "Employment Type",
    "state": "State",
    "city": "City",
    "origination_channel": "Origination Channel",
    "collateral_type": "Collateral Type",
    "collateral_value": "Collateral Value",
    "outstanding_principal": "Outstanding Principal",
    "total_interest_paid": "Total Interest Paid",
    "processing_fee": "Processing Fee",
    "late_payment_fee": "Late Payment Fee",
    "prepayment_flag": "Prepayment",
    "restructured_flag": "Restructured",
    "first_payment_default_flag": "First Payment Default",
    "kyc_status": "KYC Status",
    "manual_override_flag": "Manual Override",
    "risk_rating_letter": "Risk Rating",
    "recovery_amount": "Recovery Amount",
    "write_off_amount": "Write-off Amount",
}

MIN_COLUMN_WIDTH = 10
MAX_COLUMN_WIDTH = 30
COLUMN_PADDING = 2
SUMMARY_COLUMN_WIDTHS = (25, 30)


@dataclass(frozen=True)
class GeneratedFile:
    """A finished workbook paired with the name it should be saved under."""
    content: bytes
    filename: str
    institution_label: str = ""
    record_count: int = 0

    @property
    def size_bytes(self) -> int:
        return len(self.content)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------

def fmt_inr(amount: float) -> str:
    """Indian digit grouping: 62500000000 -> '62,50,00,00,000'."""
    sign = "-" if amount < 0 else ""
    digits = str(int(round(abs(amount))))
    if len(digits) <= 3:
        return sign + digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return sign + ",".join(groups + [tail])


def fmt_mix_pct(weight: float) -> str:
    return f"{weight * 100:.1f}%"


def sample_filename(institution_label: str, sample_number: int) -> str:
    return f"{institution_label}_LoanTape_Sample{sample_number}.xlsx"


def _cell_value(value):
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


# ---------------------------------------------------------------------------
# Sheet builders
# ---------------------------------------------------------------------------

def loan_tape_frame(records: Sequence[LoanRecord]) -> pd.DataFrame:
    """Display-ready tape: header labels, Yes/No flags, ISO dates, blanks for None."""
    rows = [
        {COLUMN_HEADERS[name]: _cell_value(value) for name, value in record_to_row(r).items()}
        for r in records
    ]
    columns = [COLUMN_HEADERS[name] for name in RECORD_FIELDS]
    return pd.DataFrame(rows, columns=columns)


def summary_rows(profile: PortfolioProfile, institution_label: str, record_count: int) -> List[list]:
    rows = [
        ["NBFC Name", institution_label],
        ["AUM Bucket", profile.size_bucket_label],
        ["Total Loans", record_count],
        ["Portfolio Value (₹)", fmt_inr(profile.total_portfolio_value)],
        ["Average Loan Size (₹)", fmt_inr(profile.avg_loan_size)],
        ["Risk Profile", profile.risk_tier],
        ["Geographic Focus", ", ".join(profile.geographic_scope)],
        [None, None],
        ["Product Mix", None],
    ]
    rows.extend([product, fmt_mix_pct(weight)] for product, weight in profile.product_mix)
    return rows


def column_widths(frame: pd.DataFrame) -> List[int]:
    """Width per column: longest non-empty cell (header included), +2, capped at 30."""
    widths = []
    for column in frame.columns:
        longest = MIN_COLUMN_WIDTH
        for value in [column, *frame[column].tolist()]:
            if value is None or value == "" or value == 0 or pd.isna(value):
                continue
            longest = max(longest, len(str(value)))
        widths.append(min(longest + COLUMN_PADDING, MAX_COLUMN_WIDTH))
    return widths


def _apply_widths(worksheet, widths: Sequence[int]) -> None:
    for idx, width in enumerate(widths, start=1):
        worksheet.column_dimensions[get_column_letter(idx)].width = width


def build_workbook(
    profile: PortfolioProfile,
    institution_label: str,
    records: Sequence[LoanRecord],
) -> bytes:
    """Serialise records + summary into xlsx bytes. Writer faults raise AssemblyError."""
    try:
        tape = loan_tape_frame(records)
        summary = pd.DataFrame(summary_rows(profile, institution_label, len(records)))

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            tape.to_excel(writer, sheet_name=LOAN_TAPE_SHEET, index=False)
            summary.to_excel(writer, sheet_name=SUMMARY_SHEET, index=False, header=False)
            _apply_widths(writer.sheets[LOAN_TAPE_SHEET], column_widths(tape))
            _apply_widths(writer.sheets[SUMMARY_SHEET], SUMMARY_COLUMN_WIDTHS)
        return buffer.getvalue()
    except Exception as exc:
        raise AssemblyError(
            f"failed to build workbook for {institution_label}: {exc}") from exc


def assemble(
    profile: PortfolioProfile,
    institution_label: str,
    record_count: int,
    sample_number: int = 1,
    rng: Optional[RandomSource] = None,
) -> GeneratedFile:
    """Generate an institution's tape and package it as a named xlsx file."""
    records = generate(profile, record_count, institution_code_for(institution_label), rng=rng)
    content = build_workbook(profile, institution_label, records)
    return GeneratedFile(
        content=content,
        filename=sample_filename(institution_label, sample_number),
        institution_label=institution_label,
        record_count=len(records),
    )
