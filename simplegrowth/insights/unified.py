"""
Unified business analysis across every connected system.

Builds a business profile and a weighted health assessment from
``CrossSystemData``, and produces "sidekick" insights either from the model
or, when it is unavailable, from the cross-system rules.
"""
import logging
from dataclasses import dataclass, field, asdict
from typing import Iterable, List, Literal

from simplegrowth import llm
from simplegrowth.cashflow.forecast import round_half_up
from simplegrowth.config import settings
from simplegrowth.insights.cross_system import (
    CrossSystemData,
    CrossSystemInsight,
    generate_cross_system_insights,
)
from simplegrowth.insights.disclaimers import get_disclaimer

logger = logging.getLogger(__name__)


UnifiedCategory = Literal["growth", "efficiency", "risk", "opportunity", "health"]
Impact = Literal["high", "medium", "low"]
Timeframe = Literal["immediate", "short_term", "long_term"]

VALID_CATEGORIES = ("growth", "efficiency", "risk", "opportunity", "health")
VALID_IMPACTS = ("high", "medium", "low")
VALID_TIMEFRAMES = ("immediate", "short_term", "long_term")

CATEGORY_MAPPING = {
    "revenue": "growth",
    "operations": "efficiency",
    "staffing": "opportunity",
    "customer": "health",
    "cash_flow": "risk",
}

AI_INSIGHT_CONFIDENCE = 0.75

SUPPORTED_SYSTEMS = (
    "quickbooks",
    "xero",
    "square",
    "clover",
    "toast",
    "google_business",
    "yelp",
    "gusto",
)


@dataclass
class UnifiedBusinessProfile:
    monthly_revenue: float
    monthly_expenses: float
    employee_count: int
    industry: str
    cash_flow_health: float
    customer_satisfaction: float
    operational_efficiency: int
    revenue_growth: float
    customer_growth: float
    overdue_receivables: float
    staffing_strain: float


@dataclass
class ScoreComponent:
    category: str
    score: float
    weight: float
    insight: str


@dataclass
class BusinessHealthAssessment:
    overall_score: int
    score_breakdown: List[ScoreComponent]
    summary: str
    top_priorities: List[str]
    disclaimer: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class UnifiedInsight:
    id: str
    category: UnifiedCategory
    title: str
    description: str
    impact: Impact
    action_items: List[str]
    data_sources: List[str]
    confidence: float
    timeframe: Timeframe = "short_term"
    disclaimer: str = field(default_factory=lambda: get_disclaimer("insight"))

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# Profile and scoring
# =============================================================================

def calculate_operational_efficiency(data: CrossSystemData) -> int:
    """Start at 70 and adjust for labor cost, overtime and cash flow health; clipped to 0-100."""
    score = 70

    if data.pos and data.payroll and data.pos.daily_sales > 0:
        labor_ratio = data.payroll.total_payroll / (data.pos.daily_sales * 30)
        if labor_ratio < 0.3:
            score += 10
        elif labor_ratio > 0.45:
            score -= 10

    if data.payroll and data.payroll.employee_count > 0:
        overtime_ratio = data.payroll.overtime_hours / (data.payroll.employee_count * 20)
        if overtime_ratio > 0.5:
            score -= 15
        elif overtime_ratio < 0.1:
            score += 5

    if data.cash_flow:
        if data.cash_flow.health_score >= 80:
            score += 10
        elif data.cash_flow.health_score < 50:
            score -= 10

    return max(0, min(100, score))


def calculate_business_profile(data: CrossSystemData) -> UnifiedBusinessProfile:
    if data.pos:
        monthly_revenue = data.pos.daily_sales * 30
    else:
        monthly_revenue = data.cash_flow.monthly_revenue if data.cash_flow else 0

    staffing_strain = 0.0
    if data.payroll and data.payroll.employee_count > 0:
        staffing_strain = data.payroll.overtime_hours / (data.payroll.employee_count * 10)

    return UnifiedBusinessProfile(
        monthly_revenue=monthly_revenue,
        monthly_expenses=data.payroll.total_payroll if data.payroll else 0,
        employee_count=data.payroll.employee_count if data.payroll else 0,
        industry="general",
        cash_flow_health=(data.cash_flow.health_score if data.cash_flow else 0) or 70,
        customer_satisfaction=(data.reviews.avg_rating if data.reviews else 0) or 4.0,
        operational_efficiency=calculate_operational_efficiency(data),
        revenue_growth=data.pos.growth_rate if data.pos else 0,
        customer_growth=0,
        overdue_receivables=data.cash_flow.overdue_receivables if data.cash_flow else 0,
        staffing_strain=staffing_strain,
    )


def generate_health_assessment(data: CrossSystemData) -> BusinessHealthAssessment:
    """
    Overall 0-100 score from four weighted components.

    Weights: cash flow 0.3, customer satisfaction 0.25, operations 0.25,
    growth 0.2. Systems that are not connected contribute a neutral default.
    """
    cash_flow_score = (data.cash_flow.health_score if data.cash_flow else 0) or 70
    customer_score = data.reviews.avg_rating / 5 * 100 if data.reviews else 80
    efficiency_score = calculate_operational_efficiency(data)
    growth_score = min(100, 50 + data.pos.growth_rate * 200) if data.pos else 60

    breakdown = [
        ScoreComponent(
            category="Cash Flow",
            score=cash_flow_score,
            weight=0.3,
            insight="Cash flow appears healthy" if cash_flow_score >= 70
            else "Cash flow could use attention",
        ),
        ScoreComponent(
            category="Customer Satisfaction",
            score=customer_score,
            weight=0.25,
            insight="Customer feedback appears positive" if customer_score >= 80
            else "Customer experience could be an area for improvement",
        ),
        ScoreComponent(
            category="Operations",
            score=efficiency_score,
            weight=0.25,
            insight="Operations appear to be running efficiently" if efficiency_score >= 70
            else "There could be opportunities to improve operational efficiency",
        ),
        ScoreComponent(
            category="Growth",
            score=growth_score,
            weight=0.2,
            insight="Business appears to be growing" if growth_score >= 60
            else "Growth could benefit from strategic focus",
        ),
    ]

    overall = round_half_up(sum(c.score * c.weight for c in breakdown))

    if overall >= 80:
        summary = (
            "Your business appears to be performing well across key metrics. You could consider "
            "maintaining current practices while exploring strategic growth opportunities."
        )
    elif overall >= 60:
        summary = (
            "Your business shows solid fundamentals with some areas that could benefit from "
            "attention. The insights below highlight potential opportunities."
        )
    else:
        summary = (
            "There could be some areas requiring attention in your business. The insights below "
            "suggest areas you might want to explore with qualified professionals."
        )

    top_priorities = [
        f"Consider reviewing {c.category.lower()} - {c.insight}"
        for c in sorted(breakdown, key=lambda c: c.score)[:2]
        if c.score < 70
    ]
    if not top_priorities:
        top_priorities = [
            "Continue monitoring key metrics and maintaining current practices",
            "Consider exploring growth opportunities when strategically appropriate",
        ]

    return BusinessHealthAssessment(
        overall_score=overall,
        score_breakdown=breakdown,
        summary=summary,
        top_priorities=top_priorities,
        disclaimer=get_disclaimer("general", "full"),
    )


# =============================================================================
# Unified insights
# =============================================================================

def map_to_unified_category(category: str) -> str:
    return CATEGORY_MAPPING.get(category, "opportunity")


def convert_to_unified_insights(insights: Iterable[CrossSystemInsight]) -> List[UnifiedInsight]:
    return [
        UnifiedInsight(
            id=insight.id,
            category=map_to_unified_category(insight.category),
            title=insight.title,
            description=insight.description,
            impact=insight.priority,
            action_items=insight.action_items,
            data_sources=insight.data_sources,
            confidence=insight.confidence,
            timeframe="short_term",
            disclaimer=insight.disclaimer,
        )
        for insight in insights
    ]


def _dollars(cents: float) -> str:
    return f"${cents / 100:,.0f}"


def build_unified_prompt(profile: UnifiedBusinessProfile) -> str:
    return f"""You are an educational business analysis assistant serving as an "ultimate business sidekick." Your role is to provide holistic insights by correlating data across multiple business systems.

CRITICAL LANGUAGE REQUIREMENTS:
- ALWAYS use "could", "might", "consider", "potential" instead of directive wording
- Frame all suggestions as possibilities: "You could consider..."
- Use hedging language: "Based on the data, one approach could be..."
- Never give directive business, financial, or legal advice
- Always remind users to consult appropriate professionals

Business Profile:
- Industry: {profile.industry}
- Monthly Revenue: {_dollars(profile.monthly_revenue)}
- Monthly Payroll: {_dollars(profile.monthly_expenses)}
- Employees: {profile.employee_count}
- Revenue Growth: {profile.revenue_growth * 100:.1f}%

Health Indicators:
- Cash Flow Health: {profile.cash_flow_health}/100
- Customer Satisfaction: {profile.customer_satisfaction:.1f}/5 stars
- Operational Efficiency: {profile.operational_efficiency}/100

Risk Indicators:
- Overdue Receivables: {_dollars(profile.overdue_receivables)}
- Staffing Strain: {profile.staffing_strain * 100:.1f}% overtime ratio

Based on this holistic view, provide 3-4 insights that connect patterns across different aspects of the business. Format as JSON:
{{
  "insights": [
    {{
      "category": "growth" | "efficiency" | "risk" | "opportunity" | "health",
      "title": "Brief title using 'could' or 'potential' framing",
      "description": "Description using suggestive language. Connect multiple data points.",
      "impact": "high" | "medium" | "low",
      "action_items": ["Consider action 1", "You could action 2", "Optionally action 3"],
      "data_sources": ["Source 1", "Source 2"],
      "timeframe": "immediate" | "short_term" | "long_term"
    }}
  ]
}}

Return ONLY valid JSON, no other text."""


def _parse_ai_insights(items: list) -> List[UnifiedInsight]:
    parsed = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        description = item.get("description")
        if not isinstance(title, str) or not isinstance(description, str):
            continue

        action_items = item.get("action_items") or item.get("actionItems")
        data_sources = item.get("data_sources") or item.get("dataSources")
        category = item.get("category")
        impact = item.get("impact")
        timeframe = item.get("timeframe")

        parsed.append(UnifiedInsight(
            id=f"unified-ai-{len(parsed)}",
            category=category if category in VALID_CATEGORIES else "opportunity",
            title=title,
            description=description,
            impact=impact if impact in VALID_IMPACTS else "medium",
            action_items=[a for a in action_items if isinstance(a, str)] if isinstance(action_items, list)
            else ["Consider reviewing this insight with your team"],
            data_sources=[s for s in data_sources if isinstance(s, str)] if isinstance(data_sources, list)
            else ["Multiple Systems"],
            confidence=AI_INSIGHT_CONFIDENCE,
            timeframe=timeframe if timeframe in VALID_TIMEFRAMES else "short_term",
        ))
    return parsed


async def generate_unified_ai_insights(data: CrossSystemData) -> List[UnifiedInsight]:
    """
    Model-written insights across all systems, or the cross-system rules
    converted to the unified format when the model is unavailable.
    """
    rule_based = convert_to_unified_insights(generate_cross_system_insights(data))

    if not settings.OPENAI_API_KEY:
        return rule_based

    profile = calculate_business_profile(data)
    try:
        reply = await llm.complete(
            [{"role": "user", "content": build_unified_prompt(profile)}],
            max_tokens=1500,
        )
    except Exception as e:
        logger.error(f"Error generating unified insights: {e}")
        return rule_based

    parsed = llm.extract_json_object(reply)
    if parsed is None or not isinstance(parsed.get("insights"), list):
        logger.warning("Unified insights reply had no insights array")
        return rule_based

    insights = _parse_ai_insights(parsed["insights"])
    return insights or rule_based


def get_integration_status(connected_systems: List[str]) -> dict:
    """How many of the supported systems are connected, with a short label."""
    total = len(SUPPORTED_SYSTEMS)
    connected = len(connected_systems)
    percentage = round_half_up(connected / total * 100)

    if percentage >= 75:
        label = "Fully integrated"
    elif percentage >= 50:
        label = "Well connected"
    elif percentage >= 25:
        label = "Partially connected"
    else:
        label = "Connect more systems"

    return {"connected": connected, "total": total, "percentage": percentage, "label": label}
