"""
Financial derivations and the tier-based credit model.

EMI uses the standard amortised-payment formula; delinquency buckets and loan
status are total functions of days past due. Credit scores and rating letters
are drawn from tier-specific ranges.
"""

from datetime import date

from dateutil.relativedelta import relativedelta

from loantape.randomness import RandomSource


# ---------------------------------------------------------------------------
# Credit risk model
# ---------------------------------------------------------------------------

CREDIT_SCORE_RANGES = {
    "Conservative": (720, 850),
    "Moderate":     (650, 750),
    "Aggressive":   (580, 720),
}

RATING_LETTERS = {
    "Conservative": ("A", "B"),
    "Moderate":     ("B", "C"),
    "Aggressive":   ("C", "D"),
}

DEFAULT_TIER = "Moderate"
CREDIT_SCORE_FLOOR = 300


def score_for(tier: str, rng: RandomSource) -> int:
    """Credit score at origination; unknown tiers score like Moderate."""
    low, high = CREDIT_SCORE_RANGES.get(tier, CREDIT_SCORE_RANGES[DEFAULT_TIER])
    return rng.uniform_int(low, high)


def rating_letter_for(tier: str, rng: RandomSource) -> str:
    return rng.pick(RATING_LETTERS.get(tier, RATING_LETTERS[DEFAULT_TIER]))


def current_score_for(origination_score: int, rng: RandomSource) -> int:
    """Score drift since origination: down by 0-50 points, floored at 300."""
    return max(origination_score - rng.uniform_int(0, 50), CREDIT_SCORE_FLOOR)


# ---------------------------------------------------------------------------
# Installment and ageing
# ---------------------------------------------------------------------------

def compute_installment(principal: float, annual_rate_percent: float, tenure_months: int) -> int:
    """
    Equated monthly installment, rounded to the nearest rupee.

    r = annual_rate / 12 / 100
    EMI = P * r * (1 + r)^n / ((1 + r)^n - 1)

    A zero rate degenerates to straight-line repayment (P / n).
    """
    if tenure_months <= 0:
        raise ValueError(f"tenure must be positive, got {tenure_months}")
    monthly_rate = annual_rate_percent / 12 / 100
    if monthly_rate == 0:
        return round(principal / tenure_months)
    growth = (1 + monthly_rate) ** tenure_months
    return round(principal * monthly_rate * growth / (growth - 1))


DELINQUENCY_BUCKETS = (
    # (upper bound inclusive, label)
    (0, "Current"),
    (30, "1-30 DPD"),
    (60, "31-60 DPD"),
    (90, "61-90 DPD"),
)
SEVERE_BUCKET = "90+ DPD"


def delinquency_bucket(days_past_due: int) -> str:
    for upper, label in DELINQUENCY_BUCKETS:
        if days_past_due <= upper:
            return label
    return SEVERE_BUCKET


def loan_status_for(days_past_due: int) -> str:
    if days_past_due > 90:
        return "Default"
    if days_past_due > 0:
        return "Delinquent"
    return "Active"


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic; day-of-month clamps to the target month's end."""
    return start + relativedelta(months=months)
