"""
Portfolio analytics over synthetic tapes.

pytest tests/test_analytics.py -v
"""

from dataclasses import replace
from datetime import date, datetime

import pytest

from loantape.analytics import (
    FLAG_TYPES,
    SEVERITIES,
    AnalysisResult,
    analyze_portfolio,
    recommendations_for,
    score_band,
    underwriting_grade,
)

NOW = datetime(2025, 6, 30, 12, 0, 0)


@pytest.fixture(scope="module")
def analysis(small_tape):
    return analyze_portfolio(small_tape, "Lessthan1000CrNBFC1_LoanTape_Sample1.xlsx", now=NOW)


class TestPortfolioMetrics:

    def test_totals(self, analysis, small_tape):
        total = sum(r.principal_amount for r in small_tape)
        assert analysis.total_loans == 2500
        assert analysis.total_amount == total
        assert analysis.avg_loan_size == pytest.approx(total / 2500, abs=0.01)
        assert analysis.portfolio_metrics.total_loans == 2500

    def test_file_metadata(self, analysis):
        assert analysis.file_type == "xlsx"
        assert analysis.id == "analysis_2025-06-30T12:00:00"
        assert analysis.created_at == "2025-06-30T12:00:00"

    def test_distributions_sum_to_100(self, analysis):
        for dist in (analysis.portfolio_metrics.loan_type_distribution,
                     analysis.portfolio_metrics.channel_distribution,
                     analysis.credit_quality.credit_score_distribution,
                     analysis.performance_metrics.dpd_distribution):
            assert sum(dist.values()) == pytest.approx(100.0, abs=0.5)

    def test_geography_limited_to_scope(self, analysis):
        assert set(analysis.portfolio_metrics.geography_distribution) <= {
            "Maharashtra", "Gujarat", "Karnataka"}

    def test_dpd_buckets_in_ageing_order(self, analysis):
        assert list(analysis.performance_metrics.dpd_distribution) == [
            "Current", "1-30 DPD", "31-60 DPD", "61-90 DPD", "90+ DPD"]


class TestCreditAndPerformance:

    def test_conservative_credit(self, analysis):
        cq = analysis.credit_quality
        assert 720 <= cq.avg_credit_score <= 850
        assert cq.underwriting_quality in ("Excellent", "Good")
        assert set(cq.risk_rating_distribution) == {"A", "B"}
        assert 1.1 <= cq.avg_dscr <= 2.5
        assert 60 <= cq.avg_ltv <= 95

    def test_rates_match_records(self, analysis, small_tape):
        n = len(small_tape)
        delinquent = sum(1 for r in small_tape if r.days_past_due > 0)
        defaulted = sum(1 for r in small_tape if r.loan_status == "Default")
        perf = analysis.performance_metrics
        assert perf.current_delinquency_rate == round(delinquent / n * 100, 2)
        assert perf.cumulative_default_rate == round(defaulted / n * 100, 2)
        assert analysis.macro_metrics.avg_pd == perf.cumulative_default_rate

    def test_recovery_rate(self, analysis, small_tape):
        recovered = sum(r.recovery_amount for r in small_tape)
        written_off = sum(r.write_off_amount for r in small_tape)
        assert analysis.performance_metrics.recovery_rate == round(recovered / written_off * 100, 2)

    def test_yield_bounds(self, analysis):
        y = analysis.yield_metrics
        assert 8.5 <= y.avg_contractual_yield <= 24.0
        assert 8.5 <= y.effective_yield <= 24.0
        assert y.fee_income > 0

    def test_stress_ordering(self, analysis):
        stress = analysis.macro_metrics.stress_test_results
        assert stress["Base Case"] <= stress["Adverse"] <= stress["Severely Adverse"]

    def test_compliance_rates(self, analysis):
        c = analysis.compliance_metrics
        assert 95 <= c.kyc_completion_rate <= 100
        assert 0 <= c.manual_override_rate <= 10
        assert c.avg_underwriting_tat is None

    def test_top10_share(self, analysis, small_tape):
        top = sorted((r.principal_amount for r in small_tape), reverse=True)[:10]
        expected = round(sum(top) / analysis.total_amount * 100, 2)
        assert analysis.concentration_risk.top10_borrowers_share == expected


class TestForensicFlags:

    def test_flag_vocabulary(self, analysis):
        for flag in analysis.forensic_flags:
            assert flag.type in FLAG_TYPES
            assert flag.severity in SEVERITIES
            assert flag.affected_loans > 0
            assert flag.risk_amount > 0

    def test_ids_are_sequential(self, analysis):
        assert [f.id for f in analysis.forensic_flags] == [
            str(i) for i in range(1, len(analysis.forensic_flags) + 1)]

    def test_backdated_disbursal(self, small_tape):
        as_of = date(2022, 1, 1)
        result = analyze_portfolio(small_tape, "tape.xlsx", as_of=as_of, now=NOW)
        flags = {f.type: f for f in result.forensic_flags}
        expected = sum(1 for r in small_tape if r.origination_date > as_of)
        assert flags["backdated_disbursal"].affected_loans == expected

    def test_zero_emi_is_critical(self, small_tape):
        tape = [replace(small_tape[0], installment_amount=0)] + list(small_tape[1:50])
        result = analyze_portfolio(tape, "tape.xlsx", now=NOW)
        zero = [f for f in result.forensic_flags if f.type == "zero_emi"]
        assert len(zero) == 1
        assert zero[0].severity == "critical"
        assert zero[0].affected_loans == 1

    def test_evergreening(self, small_tape):
        expected = sum(1 for r in small_tape if r.restructured_flag and r.days_past_due > 0)
        result = analyze_portfolio(small_tape, "tape.xlsx", as_of=date(2030, 1, 1), now=NOW)
        flags = {f.type: f for f in result.forensic_flags}
        if expected:
            assert flags["evergreening"].affected_loans == expected
        else:
            assert "evergreening" not in flags


class TestEmptyAndRecommendations:

    def test_empty_tape(self):
        result = analyze_portfolio([], "empty.csv", now=NOW)
        assert isinstance(result, AnalysisResult)
        assert result.total_loans == 0
        assert result.forensic_flags == []
        assert result.file_type == "csv"

    def test_to_dict_round_trips_shape(self, analysis):
        payload = analysis.to_dict()
        for section in ("portfolio_metrics", "credit_quality", "performance_metrics",
                        "yield_metrics", "compliance_metrics", "macro_metrics",
                        "concentration_risk", "forensic_flags"):
            assert section in payload

    def test_fallback_recommendations(self, analysis):
        healthy = replace(
            analysis,
            forensic_flags=[],
            performance_metrics=replace(analysis.performance_metrics, current_delinquency_rate=1.0),
            yield_metrics=replace(analysis.yield_metrics, net_interest_margin=6.0),
            compliance_metrics=replace(analysis.compliance_metrics, kyc_completion_rate=99.0),
            concentration_risk=replace(analysis.concentration_risk, top10_borrowers_share=5.0),
            credit_quality=replace(analysis.credit_quality, avg_credit_score=780.0),
        )
        recs = recommendations_for(healthy)
        assert len(recs) == 3
        assert recs[0].startswith("Continue monitoring")

    def test_triggered_recommendations(self, analysis):
        weak = replace(
            analysis,
            credit_quality=replace(analysis.credit_quality, avg_credit_score=600.0),
            compliance_metrics=replace(analysis.compliance_metrics, kyc_completion_rate=90.0),
        )
        recs = recommendations_for(weak)
        assert any("credit score" in r for r in recs)
        assert any("KYC" in r for r in recs)


@pytest.mark.parametrize("score, band", [(800, "750+"), (750, "750+"), (749, "700-749"),
                                         (650, "650-699"), (649, "<650")])
def test_score_band(score, band):
    assert score_band(score) == band


@pytest.mark.parametrize("avg, grade", [(760, "Excellent"), (710, "Good"), (655, "Fair"), (600, "Weak")])
def test_underwriting_grade(avg, grade):
    assert underwriting_grade(avg) == grade
