"""
Loan-level synthesis for one synthetic NBFC.

For a given PortfolioProfile, generates N loan records whose derived fields are
internally consistent:
- product drawn from the profile's ordered product mix (cumulative-weight walk)
- principal scaled off the profile's average loan size per product
- EMI from rate/tenure, maturity = origination + tenure months
- DPD drives delinquency bucket, status, late fees, recoveries and write-offs
- LTV/collateral only for secured retail products, DSCR only for business loans
- credit score and rating letter from the profile's risk tier

All randomness flows through the RandomSource passed in, so a seeded source
reproduces the same tape.
"""

import string
from dataclasses import dataclass, fields
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from loantape.finance import (
    add_months,
    compute_installment,
    current_score_for,
    delinquency_bucket,
    loan_status_for,
    rating_letter_for,
    score_for,
)
from loantape.profiles import DEFAULT_GEOGRAPHY, GeographyCatalog, PortfolioProfile
from loantape.randomness import RandomSource


# ---------------------------------------------------------------------------
# Output dataclass
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LoanRecord:
    # Identity
    loan_id: str
    borrower_name: str
    pan_number: str
    # Classification
    product_type: str
    loan_category: str               # "Business" or "Retail"
    # Commercial terms
    principal_amount: int
    interest_rate_percent: float
    tenure_months: int
    installment_amount: int
    origination_date: date
    maturity_date: date
    # Status
    loan_status: str
    delinquency_bucket: str
    days_past_due: int
    # Credit
    credit_score_at_origination: int
    current_credit_score: int
    # Collateral / ratios
    loan_to_value_percent: float
    debt_service_coverage_ratio: Optional[float]
    # Demographics
    borrower_age: int
    annual_income: int
    employment_type: str
    state: str
    city: str
    # Operational
    origination_channel: str
    collateral_type: str
    collateral_value: Optional[int]
    # Monetary outcomes
    outstanding_principal: int
    total_interest_paid: int
    processing_fee: int
    late_payment_fee: int
    # Flags
    prepayment_flag: bool
    restructured_flag: bool
    first_payment_default_flag: bool
    kyc_status: str
    manual_override_flag: bool
    risk_rating_letter: str
    recovery_amount: int
    write_off_amount: int


RECORD_FIELDS: Tuple[str, ...] = tuple(f.name for f in fields(LoanRecord))


# ---------------------------------------------------------------------------
# Generation parameters
# ---------------------------------------------------------------------------

# Principal range as multiples of the profile's average loan size
AMOUNT_MULTIPLES = {
    "Personal Loan":  (0.3, 1.5),
    "Business Loan":  (0.8, 3.0),
    "Vehicle Loan":   (0.5, 2.0),
    "Home Loan":      (2.0, 8.0),
    "Gold Loan":      (0.1, 0.8),
    "Corporate Loan": (5.0, 20.0),
}

# Secured retail products carry an LTV; everything else is 0
LTV_RANGES = {
    "Home Loan":    (60.0, 90.0),
    "Vehicle Loan": (70.0, 95.0),
    "Gold Loan":    (60.0, 80.0),
}

BUSINESS_MARKERS = ("Business", "Corporate")
DSCR_RANGE = (1.1, 2.5)

INTEREST_RATE_RANGE = (8.5, 24.0)
TENURE_RANGE = (12, 84)
ORIGINATION_WINDOW = (date(2020, 1, 1), date(2024, 12, 31))

CURRENT_PROBABILITY = 0.85
DPD_RANGE = (1, 120)

FLAG_PROBABILITIES = {
    "prepayment": 0.15,
    "restructured": 0.08,
    "first_payment_default": 0.03,
    "manual_override": 0.05,
    "kyc_pending": 0.02,
}

OUTSTANDING_FRACTION = (0.30, 0.95)
RECOVERY_FRACTION = (0.10, 0.60)
WRITE_OFF_FRACTION = (0.40, 0.90)
PROCESSING_FEE_FRACTION = (0.01, 0.03)
LATE_FEE_RANGE = (500, 2000)
INTEREST_PAID_FACTOR = 0.4

BORROWER_AGE_RANGE = (21, 65)
ANNUAL_INCOME_RANGE = (300_000, 2_000_000)

EMPLOYMENT_TYPES = ("Salaried", "Self-Employed", "Business Owner", "Professional", "Retired")
CHANNELS = ("Digital", "Branch", "DSA", "Telecalling", "Co-lending", "Partner")
COLLATERAL_TYPES = ("Property", "Vehicle", "Gold", "FD", "Shares", "None")
UNSECURED_PRODUCTS = ("Personal Loan",)

PAN_LETTERS = string.ascii_uppercase
PAN_DIGITS = string.digits


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------

def pick_weighted(weights: Sequence[Tuple[str, float]], u: float) -> str:
    """
    Walk (label, weight) pairs in order, returning the first label whose
    cumulative weight reaches u. An exact tie at a cumulative boundary goes to
    the earlier label. Float shortfall (u above the final cumulative sum) falls
    back to the first label, the profile's lead product.
    """
    cumulative = 0.0
    for label, weight in weights:
        cumulative += weight
        if u <= cumulative:
            return label
    return weights[0][0]


def loan_category_for(product_type: str) -> str:
    if any(marker in product_type for marker in BUSINESS_MARKERS):
        return "Business"
    return "Retail"


def principal_for(product_type: str, avg_loan_size: float, rng: RandomSource) -> int:
    multiples = AMOUNT_MULTIPLES.get(product_type)
    if multiples is None:
        return int(avg_loan_size)
    low, high = multiples
    return rng.uniform_int(avg_loan_size * low, avg_loan_size * high)


def ltv_for(product_type: str, rng: RandomSource) -> float:
    bounds = LTV_RANGES.get(product_type)
    if bounds is None:
        return 0.0
    return rng.uniform_float(*bounds)


def region_for(profile: PortfolioProfile, geography: GeographyCatalog, rng: RandomSource) -> str:
    if profile.is_nationwide:
        return rng.pick(geography.regions)
    return rng.pick(profile.geographic_scope)


def generate_loan_id(index: int, institution_code: str) -> str:
    return f"{institution_code}{index:06d}"


def generate_pan(rng: RandomSource) -> str:
    """Synthetic PAN: 5 letters, 4 digits, 1 letter."""
    return (
        "".join(rng.pick(PAN_LETTERS) for _ in range(5))
        + "".join(rng.pick(PAN_DIGITS) for _ in range(4))
        + rng.pick(PAN_LETTERS)
    )


def institution_code_for(institution_name: str) -> str:
    return institution_name[:3].upper()


# ---------------------------------------------------------------------------
# Main generation function
# ---------------------------------------------------------------------------

def _generate_record(
    index: int,
    profile: PortfolioProfile,
    institution_code: str,
    product_mix: Sequence[Tuple[str, float]],
    geography: GeographyCatalog,
    rng: RandomSource,
) -> LoanRecord:
    # --- Product and terms ---
    product_type = pick_weighted(product_mix, rng.random())
    category = loan_category_for(product_type)
    principal = principal_for(product_type, profile.avg_loan_size, rng)

    interest_rate = rng.uniform_float(*INTEREST_RATE_RANGE)
    tenure = rng.uniform_int(*TENURE_RANGE)
    installment = compute_installment(principal, interest_rate, tenure)

    origination = rng.uniform_date(*ORIGINATION_WINDOW)
    maturity = add_months(origination, tenure)

    # --- Geography ---
    state = region_for(profile, geography, rng)
    city = rng.pick(geography.cities_for(state))

    # --- Credit and ageing ---
    score = score_for(profile.risk_tier, rng)
    dpd = 0 if rng.chance(CURRENT_PROBABILITY) else rng.uniform_int(*DPD_RANGE)
    status = loan_status_for(dpd)
    defaulted = status == "Default"

    # --- Ratios ---
    ltv = ltv_for(product_type, rng)
    dscr = rng.uniform_float(*DSCR_RANGE) if category == "Business" else None

    # --- Demographics and channel ---
    current_score = current_score_for(score, rng)
    age = rng.uniform_int(*BORROWER_AGE_RANGE)
    income = rng.uniform_int(*ANNUAL_INCOME_RANGE)
    employment = rng.pick(EMPLOYMENT_TYPES)
    channel = rng.pick(CHANNELS)
    if product_type in UNSECURED_PRODUCTS:
        collateral_type = "None"
    else:
        collateral_type = rng.pick(COLLATERAL_TYPES)
    collateral_value = round(principal / (ltv / 100)) if ltv > 0 else None

    # --- Monetary outcomes ---
    if defaulted:
        outstanding = 0
    else:
        outstanding = round(principal * rng.uniform_float(*OUTSTANDING_FRACTION))
    interest_paid = round(installment * rng.uniform_int(1, tenure) * INTEREST_PAID_FACTOR)
    processing_fee = round(principal * rng.uniform_float(*PROCESSING_FEE_FRACTION))
    late_fee = rng.uniform_int(*LATE_FEE_RANGE) if dpd > 0 else 0

    # --- Flags ---
    prepayment = rng.chance(FLAG_PROBABILITIES["prepayment"])
    restructured = rng.chance(FLAG_PROBABILITIES["restructured"])
    fpd = rng.chance(FLAG_PROBABILITIES["first_payment_default"])
    kyc_status = "Pending" if rng.chance(FLAG_PROBABILITIES["kyc_pending"]) else "Complete"
    manual_override = rng.chance(FLAG_PROBABILITIES["manual_override"])
    rating = rating_letter_for(profile.risk_tier, rng)

    if defaulted:
        recovery = round(principal * rng.uniform_float(*RECOVERY_FRACTION))
        write_off = round(principal * rng.uniform_float(*WRITE_OFF_FRACTION))
    else:
        recovery = 0
        write_off = 0

    return LoanRecord(
        loan_id=generate_loan_id(index, institution_code),
        borrower_name=f"Borrower {index}",
        pan_number=generate_pan(rng),
        product_type=product_type,
        loan_category=category,
        principal_amount=principal,
        interest_rate_percent=interest_rate,
        tenure_months=tenure,
        installment_amount=installment,
        origination_date=origination,
        maturity_date=maturity,
        loan_status=status,
        delinquency_bucket=delinquency_bucket(dpd),
        days_past_due=dpd,
        credit_score_at_origination=score,
        current_credit_score=current_score,
        loan_to_value_percent=ltv,
        debt_service_coverage_ratio=dscr,
        borrower_age=age,
        annual_income=income,
        employment_type=employment,
        state=state,
        city=city,
        origination_channel=channel,
        collateral_type=collateral_type,
        collateral_value=collateral_value,
        outstanding_principal=outstanding,
        total_interest_paid=interest_paid,
        processing_fee=processing_fee,
        late_payment_fee=late_fee,
        prepayment_flag=prepayment,
        restructured_flag=restructured,
        first_payment_default_flag=fpd,
        kyc_status=kyc_status,
        manual_override_flag=manual_override,
        risk_rating_letter=rating,
        recovery_amount=recovery,
        write_off_amount=write_off,
    )


def generate(
    profile: PortfolioProfile,
    record_count: int,
    institution_code: str,
    rng: Optional[RandomSource] = None,
    geography: Optional[GeographyCatalog] = None,
) -> List[LoanRecord]:
    """
    Generate exactly record_count loans for one institution.

    loan_id is institution_code + a 6-digit sequence starting at 000001.
    A non-positive record_count yields an empty tape.
    """
    if record_count <= 0:
        return []
    rng = rng if rng is not None else RandomSource()
    geography = geography if geography is not None else DEFAULT_GEOGRAPHY
    product_mix = profile.product_mix

    return [
        _generate_record(i, profile, institution_code, product_mix, geography, rng)
        for i in range(1, record_count + 1)
    ]


def record_to_row(record: LoanRecord) -> Dict[str, object]:
    """Plain dict of a record, field name -> value, in tape column order."""
    return {name: getattr(record, name) for name in RECORD_FIELDS}
