"""
Portfolio analytics over a loan tape.

Computes the AnalysisResult consumed by the report renderer: portfolio,
credit, performance, yield, compliance, macro and concentration metrics,
plus forensic red flags raised by threshold rules.

All rates are percentages (0-100) rounded to 2 decimals. Distributions are
percentage shares rounded to 1 decimal.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from pathlib import PurePath
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from loantape.finance import DELINQUENCY_BUCKETS, SEVERE_BUCKET
from loantape.synthesis import LoanRecord, RECORD_FIELDS, record_to_row


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class PortfolioMetrics:
    total_loans: int
    total_amount: float
    avg_loan_size: float
    median_loan_size: float
    avg_tenure: float
    loan_type_distribution: Dict[str, float] = field(default_factory=dict)
    channel_distribution: Dict[str, float] = field(default_factory=dict)
    geography_distribution: Dict[str, float] = field(default_factory=dict)


@dataclass
class CreditQuality:
    avg_credit_score: float
    avg_dscr: float
    avg_ltv: float
    underwriting_quality: str
    credit_score_distribution: Dict[str, float] = field(default_factory=dict)
    risk_rating_distribution: Dict[str, float] = field(default_factory=dict)


@dataclass
class PerformanceMetrics:
    current_delinquency_rate: float
    cumulative_default_rate: float
    net_loss_rate: float
    prepayment_rate: float
    recovery_rate: float
    dpd_distribution: Dict[str, float] = field(default_factory=dict)
    roll_rates: Dict[str, float] = field(default_factory=dict)
    vintage_analysis: Dict[str, float] = field(default_factory=dict)


@dataclass
class YieldMetrics:
    avg_contractual_yield: float
    effective_yield: float
    net_interest_margin: float
    fee_income: float
    cost_to_income_ratio: float


@dataclass
class ComplianceMetrics:
    kyc_completion_rate: float
    manual_override_rate: float
    restructuring_rate: float
    fpd: float
    avg_underwriting_tat: Optional[float] = None   # not observable on a tape


@dataclass
class MacroMetrics:
    avg_pd: float
    avg_lgd: float
    expected_credit_loss: float
    interest_rate_sensitivity: float
    stress_test_results: Dict[str, float] = field(default_factory=dict)


@dataclass
class ConcentrationRisk:
    top10_borrowers_share: float
    industry_concentration: Dict[str, float] = field(default_factory=dict)
    geography_concentration: Dict[str, float] = field(default_factory=dict)
    channel_concentration: Dict[str, float] = field(default_factory=dict)
    vintage_concentration: Dict[str, float] = field(default_factory=dict)


FLAG_TYPES = ("zero_emi", "backdated_disbursal", "evergreening",
              "round_tripping", "high_fpd", "manual_override")
SEVERITIES = ("low", "medium", "high", "critical")


@dataclass
class ForensicFlag:
    id: str
    type: str              # one of FLAG_TYPES
    severity: str          # one of SEVERITIES
    description: str
    affected_loans: int
    risk_amount: float
    recommendation: str


@dataclass
class AnalysisResult:
    id: str
    file_name: str
    file_type: str
    upload_date: str
    total_loans: int
    total_amount: float
    avg_loan_size: float
    portfolio_metrics: PortfolioMetrics
    credit_quality: CreditQuality
    performance_metrics: PerformanceMetrics
    yield_metrics: YieldMetrics
    compliance_metrics: ComplianceMetrics
    macro_metrics: MacroMetrics
    concentration_risk: ConcentrationRisk
    forensic_flags: List[ForensicFlag] = field(default_factory=list)
    created_at: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------

CREDIT_SCORE_BANDS = (
    # (lower bound inclusive, label)
    (750, "750+"),
    (700, "700-749"),
    (650, "650-699"),
)
LOWEST_SCORE_BAND = "<650"

UNDERWRITING_GRADES = (
    (750, "Excellent"),
    (700, "Good"),
    (650, "Fair"),
)
LOWEST_GRADE = "Weak"

# Funding and running cost assumptions for yield metrics (annual %, of assets)
COST_OF_FUNDS_PCT = 9.0
OPERATING_COST_PCT = 3.5

STRESS_MULTIPLIERS = {
    "Base Case": 1.0,
    "Adverse": 1.5,
    "Severely Adverse": 2.4,
}

# Forensic thresholds (% of loans)
FPD_THRESHOLDS = {"medium": 2.0, "high": 3.0, "critical": 5.0}
OVERRIDE_THRESHOLDS = {"medium": 3.0, "high": 8.0, "critical": 15.0}
EVERGREENING_HIGH_PCT = 2.0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def records_frame(records: Sequence[LoanRecord]) -> pd.DataFrame:
    return pd.DataFrame([record_to_row(r) for r in records], columns=list(RECORD_FIELDS))


def _pct(part: float, whole: float, decimals: int = 2) -> float:
    if not whole:
        return 0.0
    return round(float(part) / float(whole) * 100.0, decimals)


def _share(series: pd.Series, order: Optional[Sequence[str]] = None) -> Dict[str, float]:
    """Percentage share of each value; fixed order when given, else most common first."""
    if series.empty:
        return {}
    shares = series.value_counts(normalize=True) * 100.0
    if order is not None:
        return {label: round(float(shares.get(label, 0.0)), 1) for label in order}
    return {str(label): round(float(value), 1) for label, value in shares.items()}


def _amount_share(df: pd.DataFrame, column: str) -> Dict[str, float]:
    total = df["principal_amount"].sum()
    if not total:
        return {}
    grouped = df.groupby(column)["principal_amount"].sum().sort_values(ascending=False)
    return {str(label): round(float(v) / float(total) * 100.0, 1) for label, v in grouped.items()}


def score_band(score: float) -> str:
    for lower, label in CREDIT_SCORE_BANDS:
        if score >= lower:
            return label
    return LOWEST_SCORE_BAND


def underwriting_grade(avg_score: float) -> str:
    for lower, label in UNDERWRITING_GRADES:
        if avg_score >= lower:
            return label
    return LOWEST_GRADE


def _severity(rate: float, thresholds: Dict[str, float]) -> Optional[str]:
    for level in ("critical", "high", "medium"):
        if rate > thresholds[level]:
            return level
    return None


def _mean(series: pd.Series) -> float:
    clean = series.dropna()
    return round(float(clean.mean()), 2) if not clean.empty else 0.0


# ---------------------------------------------------------------------------
# Metric sections
# ---------------------------------------------------------------------------

def _portfolio_metrics(df: pd.DataFrame) -> PortfolioMetrics:
    return PortfolioMetrics(
        total_loans=len(df),
        total_amount=float(df["principal_amount"].sum()),
        avg_loan_size=round(float(df["principal_amount"].mean()), 2),
        median_loan_size=round(float(df["principal_amount"].median()), 2),
        avg_tenure=round(float(df["tenure_months"].mean()), 1),
        loan_type_distribution=_share(df["product_type"]),
        channel_distribution=_share(df["origination_channel"]),
        geography_distribution=_share(df["state"]),
    )


def _credit_quality(df: pd.DataFrame) -> CreditQuality:
    avg_score = round(float(df["credit_score_at_origination"].mean()), 1)
    ltv = df.loc[df["loan_to_value_percent"] > 0, "loan_to_value_percent"]
    bands = df["credit_score_at_origination"].map(score_band)
    band_order = [label for _, label in CREDIT_SCORE_BANDS] + [LOWEST_SCORE_BAND]
    return CreditQuality(
        avg_credit_score=avg_score,
        avg_dscr=_mean(df["debt_service_coverage_ratio"].astype(float)),
        avg_ltv=_mean(ltv),
        underwriting_quality=underwriting_grade(avg_score),
        credit_score_distribution=_share(bands, band_order),
        risk_rating_distribution=_share(df["risk_rating_letter"], sorted(df["risk_rating_letter"].unique())),
    )


def _roll_rates(dpd: pd.Series) -> Dict[str, float]:
    """Share of loans at or past one bucket that have rolled into the next."""
    past_30 = (dpd > 30).sum()
    past_60 = (dpd > 60).sum()
    past_90 = (dpd > 90).sum()
    return {
        "30to60": _pct(past_30, (dpd > 0).sum()),
        "60to90": _pct(past_60, past_30),
        "90toLoss": _pct(past_90, past_60),
    }


def _performance_metrics(df: pd.DataFrame) -> PerformanceMetrics:
    n = len(df)
    total_amount = df["principal_amount"].sum()
    defaulted = df["loan_status"] == "Default"
    written_off = df["write_off_amount"].sum()
    recovered = df["recovery_amount"].sum()

    bucket_order = [label for _, label in DELINQUENCY_BUCKETS] + [SEVERE_BUCKET]
    vintage = df.assign(year=pd.to_datetime(df["origination_date"]).dt.year.astype(str))
    vintage_default = vintage.groupby("year")["loan_status"].apply(
        lambda s: _pct((s == "Default").sum(), len(s)))

    return PerformanceMetrics(
        current_delinquency_rate=_pct((df["days_past_due"] > 0).sum(), n),
        cumulative_default_rate=_pct(defaulted.sum(), n),
        net_loss_rate=_pct(max(written_off - recovered, 0), total_amount),
        prepayment_rate=_pct(df["prepayment_flag"].sum(), n),
        recovery_rate=_pct(recovered, written_off),
        dpd_distribution=_share(df["delinquency_bucket"], bucket_order),
        roll_rates=_roll_rates(df["days_past_due"]),
        vintage_analysis={year: float(v) for year, v in vintage_default.sort_index(ascending=False).items()},
    )


def _yield_metrics(df: pd.DataFrame) -> YieldMetrics:
    principal = df["principal_amount"].astype(float)
    rates = df["interest_rate_percent"].astype(float)
    effective = float(np.average(rates, weights=principal)) if principal.sum() > 0 else 0.0
    fees = df["processing_fee"].sum() + df["late_payment_fee"].sum()
    fee_income = _pct(fees, principal.sum())
    nim = effective - COST_OF_FUNDS_PCT
    income = nim + fee_income
    return YieldMetrics(
        avg_contractual_yield=round(float(rates.mean()), 2),
        effective_yield=round(effective, 2),
        net_interest_margin=round(nim, 2),
        fee_income=fee_income,
        cost_to_income_ratio=_pct(OPERATING_COST_PCT, income) if income > 0 else 0.0,
    )


def _compliance_metrics(df: pd.DataFrame) -> ComplianceMetrics:
    n = len(df)
    return ComplianceMetrics(
        kyc_completion_rate=_pct((df["kyc_status"] == "Complete").sum(), n),
        manual_override_rate=_pct(df["manual_override_flag"].sum(), n),
        restructuring_rate=_pct(df["restructured_flag"].sum(), n),
        fpd=_pct(df["first_payment_default_flag"].sum(), n),
    )


def _macro_metrics(df: pd.DataFrame) -> MacroMetrics:
    pd_pct = _pct((df["loan_status"] == "Default").sum(), len(df))
    written_off = df["write_off_amount"].sum()
    recovered = df["recovery_amount"].sum()
    lgd_pct = round(max(1.0 - recovered / written_off, 0.0) * 100.0, 2) if written_off else 0.0
    ecl = round(pd_pct * lgd_pct / 100.0, 2)

    # Amortising loans: average life is roughly half the contractual tenure
    principal = df["principal_amount"].astype(float)
    avg_life_years = float(np.average(df["tenure_months"], weights=principal)) / 12.0 / 2.0

    return MacroMetrics(
        avg_pd=pd_pct,
        avg_lgd=lgd_pct,
        expected_credit_loss=ecl,
        interest_rate_sensitivity=round(avg_life_years, 2),
        stress_test_results={name: round(ecl * m, 2) for name, m in STRESS_MULTIPLIERS.items()},
    )


def _concentration_risk(df: pd.DataFrame) -> ConcentrationRisk:
    principal = np.sort(df["principal_amount"].to_numpy(dtype=float))[::-1]
    vintage = df.assign(vintage=pd.to_datetime(df["origination_date"]).dt.year.astype(str))
    return ConcentrationRisk(
        top10_borrowers_share=_pct(principal[:10].sum(), principal.sum()),
        industry_concentration=_amount_share(df, "employment_type"),
        geography_concentration=_amount_share(df, "state"),
        channel_concentration=_amount_share(df, "origination_channel"),
        vintage_concentration=_amount_share(vintage, "vintage"),
    )


# ---------------------------------------------------------------------------
# Forensic flags
# ---------------------------------------------------------------------------

def detect_forensic_flags(df: pd.DataFrame, as_of: date) -> List[ForensicFlag]:
    """Threshold rules over the tape; each rule adds at most one flag."""
    flags: List[ForensicFlag] = []
    n = len(df)
    if n == 0:
        return flags

    def add(flag_type, severity, description, mask, recommendation):
        flags.append(ForensicFlag(
            id=str(len(flags) + 1),
            type=flag_type,
            severity=severity,
            description=description,
            affected_loans=int(mask.sum()),
            risk_amount=float(df.loc[mask, "principal_amount"].sum()),
            recommendation=recommendation,
        ))

    zero_emi = df["installment_amount"] <= 0
    if zero_emi.any():
        add("zero_emi", "critical",
            "Loans with zero or negative EMI on an amortising schedule",
            zero_emi,
            "Reconcile repayment schedules against the loan management system")

    backdated = pd.to_datetime(df["origination_date"]) > pd.Timestamp(as_of)
    if backdated.any():
        add("backdated_disbursal", "high",
            "Disbursal dates fall after the tape cut-off date",
            backdated,
            "Verify disbursal dates against bank statements and sanction letters")

    evergreen = df["restructured_flag"] & (df["days_past_due"] > 0)
    if evergreen.any():
        severity = "high" if _pct(evergreen.sum(), n) > EVERGREENING_HIGH_PCT else "medium"
        add("evergreening", severity,
            "Restructured loans that are delinquent again",
            evergreen,
            "Review restructuring approvals and fresh-sanction patterns for related borrowers")

    fpd = df["first_payment_default_flag"]
    severity = _severity(_pct(fpd.sum(), n), FPD_THRESHOLDS)
    if severity:
        add("high_fpd", severity,
            "First Payment Default rate exceeds industry benchmarks",
            fpd,
            "Review underwriting criteria and borrower verification processes")

    override = df["manual_override_flag"]
    severity = _severity(_pct(override.sum(), n), OVERRIDE_THRESHOLDS)
    if severity:
        add("manual_override", severity,
            "High frequency of manual underwriting overrides detected",
            override,
            "Implement stricter approval workflows and documentation requirements")

    return flags


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def _empty_result(file_name: str, file_type: str, stamp: str) -> AnalysisResult:
    return AnalysisResult(
        id=f"analysis_{stamp}",
        file_name=file_name,
        file_type=file_type,
        upload_date=stamp,
        total_loans=0,
        total_amount=0.0,
        avg_loan_size=0.0,
        portfolio_metrics=PortfolioMetrics(0, 0.0, 0.0, 0.0, 0.0),
        credit_quality=CreditQuality(0.0, 0.0, 0.0, LOWEST_GRADE),
        performance_metrics=PerformanceMetrics(0.0, 0.0, 0.0, 0.0, 0.0),
        yield_metrics=YieldMetrics(0.0, 0.0, 0.0, 0.0, 0.0),
        compliance_metrics=ComplianceMetrics(0.0, 0.0, 0.0, 0.0),
        macro_metrics=MacroMetrics(0.0, 0.0, 0.0, 0.0),
        concentration_risk=ConcentrationRisk(0.0),
        created_at=stamp,
    )


def analyze_portfolio(
    records: Sequence[LoanRecord],
    file_name: str,
    as_of: Optional[date] = None,
    now: Optional[datetime] = None,
) -> AnalysisResult:
    """Build the full AnalysisResult for a tape of records."""
    now = now or datetime.now()
    as_of = as_of or now.date()
    stamp = now.isoformat(timespec="seconds")
    file_type = PurePath(file_name).suffix.lstrip(".") or "unknown"

    if not records:
        return _empty_result(file_name, file_type, stamp)

    df = records_frame(records)
    portfolio = _portfolio_metrics(df)
    return AnalysisResult(
        id=f"analysis_{stamp}",
        file_name=file_name,
        file_type=file_type,
        upload_date=stamp,
        total_loans=portfolio.total_loans,
        total_amount=portfolio.total_amount,
        avg_loan_size=portfolio.avg_loan_size,
        portfolio_metrics=portfolio,
        credit_quality=_credit_quality(df),
        performance_metrics=_performance_metrics(df),
        yield_metrics=_yield_metrics(df),
        compliance_metrics=_compliance_metrics(df),
        macro_metrics=_macro_metrics(df),
        concentration_risk=_concentration_risk(df),
        forensic_flags=detect_forensic_flags(df, as_of),
        created_at=stamp,
    )


def recommendations_for(analysis: AnalysisResult) -> List[str]:
    """Rule-based recommendations; falls back to standing advice when nothing trips."""
    recs = []
    if analysis.credit_quality.avg_credit_score < 650:
        recs.append("Consider tightening credit score requirements to improve portfolio quality")
    if analysis.performance_metrics.current_delinquency_rate > 5:
        recs.append("Implement enhanced collection strategies to reduce delinquency rates")
    if analysis.concentration_risk.top10_borrowers_share > 20:
        recs.append("Diversify borrower base to reduce concentration risk")
    if any(flag.severity == "critical" for flag in analysis.forensic_flags):
        recs.append("Immediately investigate critical forensic flags and implement corrective measures")
    if analysis.yield_metrics.net_interest_margin < 3:
        recs.append("Review pricing strategy to improve net interest margins")
    if analysis.compliance_metrics.kyc_completion_rate < 95:
        recs.append("Strengthen KYC processes to ensure regulatory compliance")

    if not recs:
        recs = [
            "Continue monitoring portfolio performance and maintain current risk management practices",
            "Consider implementing stress testing scenarios for better risk assessment",
            "Regular review of underwriting criteria based on portfolio performance",
        ]
    return recs
