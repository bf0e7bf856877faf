"""
Tests for generated recommendations and insights.

Covers collection recommendations (rules and model fallback), disclaimer
framing, cross-system correlation rules and the unified health assessment.
"""

import json
import pytest
from unittest.mock import AsyncMock, patch

from simplegrowth.config import settings
from simplegrowth.cashflow.recommendations import (
    PaymentHistorySummary,
    RecommendationInput,
    generate_ai_recommendations,
    generate_rule_based_recommendations,
    top_priority_rank,
    validate_ai_recommendations,
)
from simplegrowth.insights.cross_system import (
    CashFlowData,
    CrossSystemData,
    EmployeePerformance,
    PayrollData,
    POSData,
    ReviewData,
    generate_cross_system_insights,
    get_insight_priority_summary,
    group_insights_by_category,
    sort_insights_by_priority,
)
from simplegrowth.insights.disclaimers import (
    get_confidence_info,
    get_disclaimer,
    is_directive,
    soften_language,
)
from simplegrowth.insights.unified import (
    AI_INSIGHT_CONFIDENCE,
    calculate_business_profile,
    calculate_operational_efficiency,
    generate_health_assessment,
    generate_unified_ai_insights,
    get_integration_status,
)


# =============================================================================
# Fixtures
# =============================================================================

def make_input(**overrides) -> RecommendationInput:
    history = overrides.pop("history", None) or PaymentHistorySummary(
        avg_days_to_payment=30, late_payment_rate=0.1, total_paid=500000,
    )
    fields = dict(
        client_name="Acme Plumbing",
        client_score=70,
        invoice_amount=250000,
        days_past_due=0,
        total_outstanding=250000,
        payment_history=history,
    )
    fields.update(overrides)
    return RecommendationInput(**fields)


@pytest.fixture
def ai_enabled():
    with patch.object(settings, "OPENAI_API_KEY", "sk-test"):
        yield


@pytest.fixture
def ai_disabled():
    with patch.object(settings, "OPENAI_API_KEY", ""):
        yield


@pytest.fixture
def full_business():
    """Every system connected with numbers that trip most rules."""
    return CrossSystemData(
        cash_flow=CashFlowData(
            monthly_revenue=3_000_000,
            overdue_receivables=1_200_000,
            health_score=65,
            avg_days_to_payment=38,
        ),
        pos=POSData(daily_sales=100_000, transaction_count=120, avg_ticket=2500, growth_rate=0.2),
        payroll=PayrollData(total_payroll=1_500_000, employee_count=5, overtime_hours=50, payroll_growth=0.02),
        reviews=ReviewData(avg_rating=4.5, review_count=210, recent_trend="improving"),
        employees=[
            EmployeePerformance(id="emp_1", name="Dana", performance_score=85, department="Kitchen"),
            EmployeePerformance(id="emp_2", name="Lee", performance_score=62, department="Front"),
        ],
    )


# =============================================================================
# Unit Tests - Rule-based Recommendations
# =============================================================================

class TestRuleBasedRecommendations:
    """Tests for deterministic collection recommendations."""

    def test_nothing_to_flag(self):
        assert generate_rule_based_recommendations(make_input()) == []

    @pytest.mark.parametrize("days,priority,title", [
        (5, "medium", "Consider a friendly payment reminder"),
        (20, "high", "Consider escalating collection efforts"),
        (45, "critical", "Final notice and escalation review"),
    ])
    def test_collection_step_by_days_past_due(self, days, priority, title):
        recs = generate_rule_based_recommendations(make_input(days_past_due=days))

        assert len(recs) == 1
        assert recs[0].type == "collection_strategy"
        assert recs[0].priority == priority
        assert recs[0].title == title

    def test_high_risk_client(self):
        history = PaymentHistorySummary(avg_days_to_payment=30, late_payment_rate=0.5, total_paid=0)
        recs = generate_rule_based_recommendations(make_input(client_score=30, history=history))

        assert [r.type for r in recs] == ["client_risk"]
        assert recs[0].reasoning == "Client has 50% late payment rate"

    def test_slow_payer_gets_payment_terms(self):
        history = PaymentHistorySummary(avg_days_to_payment=50, late_payment_rate=0.2, total_paid=0)
        recs = generate_rule_based_recommendations(make_input(history=history))

        assert recs[0].type == "payment_terms"
        assert "50 days" in recs[0].description

    def test_concentration_risk(self):
        recs = generate_rule_based_recommendations(make_input(total_outstanding=6_000_000))

        assert recs[0].type == "cash_flow"
        assert "$60,000.00" in recs[0].description

    def test_recommendations_are_hedged(self):
        history = PaymentHistorySummary(avg_days_to_payment=60, late_payment_rate=0.8, total_paid=0)
        recs = generate_rule_based_recommendations(
            make_input(days_past_due=40, client_score=20, total_outstanding=9_000_000, history=history)
        )

        assert len(recs) == 4
        for rec in recs:
            assert not is_directive(rec.title)
            assert not is_directive(rec.description)
            assert rec.disclaimer == get_disclaimer("recommendation")
            assert rec.is_educational is True


class TestTopPriorityRank:
    """Tests for client ordering by first recommendation."""

    def test_rank_by_first_recommendation(self):
        critical = generate_rule_based_recommendations(make_input(days_past_due=45))
        medium = generate_rule_based_recommendations(make_input(days_past_due=3))

        assert top_priority_rank(critical) < top_priority_rank(medium)

    def test_empty_list_sorts_last(self):
        assert top_priority_rank([]) == 4


# =============================================================================
# Unit Tests - Model Recommendations
# =============================================================================

class TestValidateAIRecommendations:
    """Tests for validation of model output."""

    def test_coerces_and_caps(self):
        items = [{
            "type": "mystery",
            "title": "T" * 300,
            "description": "You could call them",
            "priority": "urgent",
            "actions": ["a" * 250, 7, "b"] + ["c"] * 12,
            "reasoning": "because",
            "confidence": 1.4,
        }]

        [rec] = validate_ai_recommendations(items)

        assert rec.type == "collection_strategy"
        assert rec.priority == "medium"
        assert len(rec.title) == 200
        assert len(rec.actions) == 10
        assert len(rec.actions[0]) == 200
        assert rec.confidence == 1.0

    def test_drops_malformed_items(self):
        items = [
            "not a dict",
            {"type": "cash_flow", "title": "x"},
            {
                "type": "cash_flow", "title": "x", "description": "y", "priority": "low",
                "actions": [], "reasoning": "z", "confidence": True,
            },
        ]

        assert validate_ai_recommendations(items) == []


class TestGenerateAIRecommendations:
    """Tests for the model path and its fallbacks."""

    @pytest.mark.asyncio
    async def test_without_key_uses_rules(self, ai_disabled):
        with patch("simplegrowth.llm.complete", new=AsyncMock()) as complete:
            recs = await generate_ai_recommendations(make_input(days_past_due=5))

        complete.assert_not_called()
        assert recs[0].title == "Consider a friendly payment reminder"

    @pytest.mark.asyncio
    async def test_model_error_falls_back(self, ai_enabled):
        with patch("simplegrowth.llm.complete", new=AsyncMock(side_effect=RuntimeError("boom"))):
            recs = await generate_ai_recommendations(make_input(days_past_due=20))

        assert recs[0].priority == "high"

    @pytest.mark.asyncio
    async def test_reply_without_json_falls_back(self, ai_enabled):
        with patch("simplegrowth.llm.complete", new=AsyncMock(return_value="I cannot help with that.")):
            recs = await generate_ai_recommendations(make_input(days_past_due=45))

        assert recs[0].priority == "critical"

    @pytest.mark.asyncio
    async def test_valid_reply_is_used(self, ai_enabled):
        reply = "Here you go:\n" + json.dumps({
            "recommendations": [{
                "type": "payment_terms",
                "title": "Consider Net 15 terms",
                "description": "You could shorten terms for this client.",
                "priority": "low",
                "actions": ["Update the next invoice"],
                "reasoning": "Pays late on Net 30",
                "confidence": 0.66,
            }]
        })
        with patch("simplegrowth.llm.complete", new=AsyncMock(return_value=reply)):
            recs = await generate_ai_recommendations(make_input(days_past_due=45))

        assert len(recs) == 1
        assert recs[0].title == "Consider Net 15 terms"
        assert recs[0].disclaimer == get_disclaimer("recommendation")


# =============================================================================
# Unit Tests - Disclaimers
# =============================================================================

class TestDisclaimers:
    """Tests for disclaimer text and suggestive framing."""

    def test_lengths(self):
        assert get_disclaimer("insight") == "This insight shows what you could do, not what you should do."
        assert get_disclaimer("forecast", "full").startswith("Cash flow forecasts are projections")

    def test_soften_sentence_starts_only(self):
        text = "Review the invoice. Then plan a review of terms. Send a reminder today."

        assert soften_language(text) == (
            "Consider reviewing the invoice. Then plan a review of terms. "
            "Consider sending a reminder today."
        )

    def test_soften_directive_opening(self):
        assert soften_language("You should call the client.") == "You could consider call the client."

    def test_is_directive(self):
        assert is_directive("You must pay this")
        assert is_directive("Owners NEED TO act")
        assert not is_directive("You could consider a reminder")

    @pytest.mark.parametrize("score,level,percentage", [
        (0.85, "high", 85),
        (0.5, "medium", 50),
        (0.49, "low", 49),
    ])
    def test_confidence_info(self, score, level, percentage):
        info = get_confidence_info(score)

        assert info["level"] == level
        assert info["percentage"] == percentage


# =============================================================================
# Unit Tests - Cross-system Insights
# =============================================================================

class TestCrossSystemInsights:
    """Tests for the correlation rules."""

    def test_full_business_rules_in_order(self, full_business):
        insights = generate_cross_system_insights(full_business)

        assert [i.title for i in insights] == [
            "Sales Growth Outpacing Payroll",
            "Cash Flow Pattern Observation",
            "Overtime Capacity Analysis",
            "Positive Momentum Observed",
            "High-Performer Impact Analysis",
            "Receivables to Revenue Ratio",
            "Labor Cost Observation",
        ]
        assert [i.id for i in insights][:2] == ["cross-0", "cross-1"]
        assert all(i.disclaimer == get_disclaimer("insight") for i in insights)

    def test_percentages_in_descriptions(self, full_business):
        insights = {i.title: i for i in generate_cross_system_insights(full_business)}

        assert "approximately 20%" in insights["Sales Growth Outpacing Payroll"].description
        assert "approximately 40%" in insights["Receivables to Revenue Ratio"].description
        assert "approximately 50%" in insights["Labor Cost Observation"].description

    def test_rules_need_their_systems(self):
        data = CrossSystemData(
            cash_flow=CashFlowData(monthly_revenue=0, overdue_receivables=0, health_score=50, avg_days_to_payment=40),
            payroll=PayrollData(total_payroll=100_000, employee_count=2, overtime_hours=90, payroll_growth=0),
        )

        insights = generate_cross_system_insights(data)

        assert [i.title for i in insights] == ["Cash Flow Pattern Observation"]

    def test_zero_sales_skips_ratios(self):
        data = CrossSystemData(
            cash_flow=CashFlowData(monthly_revenue=0, overdue_receivables=500, health_score=90, avg_days_to_payment=10),
            pos=POSData(daily_sales=0, transaction_count=0, avg_ticket=0, growth_rate=0),
            payroll=PayrollData(total_payroll=100_000, employee_count=2, overtime_hours=0, payroll_growth=0),
        )

        assert generate_cross_system_insights(data) == []

    def test_no_data(self):
        assert generate_cross_system_insights(CrossSystemData()) == []

    def test_summary_grouping_and_sort(self, full_business):
        insights = generate_cross_system_insights(full_business)

        assert get_insight_priority_summary(insights) == {"high": 0, "medium": 5, "low": 2}
        assert len(group_insights_by_category(insights)["staffing"]) == 2

        ordered = sort_insights_by_priority(insights)
        assert ordered[0].priority == "medium"
        assert ordered[0].title == "Receivables to Revenue Ratio"
        assert ordered[-1].priority == "low"


# =============================================================================
# Unit Tests - Unified Analysis
# =============================================================================

class TestUnifiedAnalysis:
    """Tests for the business profile and health assessment."""

    def test_operational_efficiency(self, full_business):
        # Labor ratio 0.5 costs 10 points; overtime and health are neutral
        assert calculate_operational_efficiency(full_business) == 60

    def test_profile_defaults_without_systems(self):
        profile = calculate_business_profile(CrossSystemData())

        assert profile.monthly_revenue == 0
        assert profile.cash_flow_health == 70
        assert profile.customer_satisfaction == 4.0
        assert profile.staffing_strain == 0.0

    def test_profile_prefers_pos_revenue(self, full_business):
        profile = calculate_business_profile(full_business)

        assert profile.monthly_revenue == 3_000_000
        assert profile.staffing_strain == pytest.approx(1.0)

    def test_health_assessment(self, full_business):
        assessment = generate_health_assessment(full_business)

        # 65 x 0.3 + 90 x 0.25 + 60 x 0.25 + 90 x 0.2
        assert assessment.overall_score == 75
        assert assessment.summary.startswith("Your business shows solid fundamentals")
        assert assessment.top_priorities[0].startswith("Consider reviewing operations")
        assert assessment.top_priorities[1].startswith("Consider reviewing cash flow")
        assert assessment.disclaimer == get_disclaimer("general", "full")

    def test_health_assessment_without_data(self):
        assessment = generate_health_assessment(CrossSystemData())

        assert [c.category for c in assessment.score_breakdown] == [
            "Cash Flow", "Customer Satisfaction", "Operations", "Growth",
        ]
        assert len(assessment.top_priorities) == 1
        assert "growth" in assessment.top_priorities[0]

    @pytest.mark.parametrize("connected,label", [
        ([], "Connect more systems"),
        (["square", "gusto"], "Partially connected"),
        (["square", "gusto", "xero", "yelp"], "Well connected"),
        (["square", "gusto", "xero", "yelp", "toast", "clover"], "Fully integrated"),
    ])
    def test_integration_status(self, connected, label):
        status = get_integration_status(connected)

        assert status["label"] == label
        assert status["total"] == 8


class TestUnifiedAIInsights:
    """Tests for model-written unified insights and the rule fallback."""

    @pytest.mark.asyncio
    async def test_falls_back_to_converted_rules(self, full_business, ai_disabled):
        insights = await generate_unified_ai_insights(full_business)

        assert insights[0].category == "growth"
        assert insights[1].category == "risk"
        assert all(i.timeframe == "short_term" for i in insights)

    @pytest.mark.asyncio
    async def test_model_reply_parsed(self, full_business, ai_enabled):
        reply = json.dumps({"insights": [
            {
                "category": "unknown",
                "title": "Potential staffing squeeze",
                "description": "Overtime could be rising with sales.",
                "impact": "high",
                "actionItems": ["Consider reviewing shifts"],
                "timeframe": "someday",
            },
            {"title": 42},
        ]})
        with patch("simplegrowth.llm.complete", new=AsyncMock(return_value=reply)):
            insights = await generate_unified_ai_insights(full_business)

        assert len(insights) == 1
        assert insights[0].id == "unified-ai-0"
        assert insights[0].category == "opportunity"
        assert insights[0].timeframe == "short_term"
        assert insights[0].action_items == ["Consider reviewing shifts"]
        assert insights[0].data_sources == ["Multiple Systems"]
        assert insights[0].confidence == AI_INSIGHT_CONFIDENCE
