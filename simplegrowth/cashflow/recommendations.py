"""
Collection recommendations for clients with open invoices.

Rule-based recommendations are always available. When an OpenAI key is
configured the model is asked for recommendations instead, and its reply is
validated field by field; any failure falls back to the rules.
"""
import logging
from dataclasses import dataclass, field, asdict
from typing import List, Literal, Optional

from simplegrowth.cashflow.forecast import round_half_up
from simplegrowth.config import settings
from simplegrowth.insights.disclaimers import get_disclaimer
from simplegrowth import llm

logger = logging.getLogger(__name__)


RecommendationType = Literal["collection_strategy", "payment_terms", "client_risk", "cash_flow"]
Priority = Literal["low", "medium", "high", "critical"]

VALID_TYPES = ("collection_strategy", "payment_terms", "client_risk", "cash_flow")
VALID_PRIORITIES = ("low", "medium", "high", "critical")
PRIORITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}

CONCENTRATION_THRESHOLD_CENTS = 50_000 * 100

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000
MAX_ACTIONS = 10
MAX_ACTION_LENGTH = 200
MAX_REASONING_LENGTH = 500


@dataclass
class PaymentHistorySummary:
    avg_days_to_payment: float
    late_payment_rate: float
    total_paid: int


@dataclass
class RecommendationInput:
    """Everything the engine knows about one client. Amounts in cents."""
    client_name: str
    client_score: float
    invoice_amount: int
    days_past_due: int
    total_outstanding: int
    payment_history: PaymentHistorySummary


@dataclass
class Recommendation:
    type: RecommendationType
    title: str
    description: str
    priority: Priority
    actions: List[str]
    reasoning: str
    confidence: float
    disclaimer: str = field(default_factory=lambda: get_disclaimer("recommendation"))
    is_educational: bool = True

    def to_dict(self) -> dict:
        return asdict(self)


def _format_dollars(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def generate_rule_based_recommendations(data: RecommendationInput) -> List[Recommendation]:
    """
    Deterministic recommendations from the client's numbers.

    Produces at most one collection step (by days past due) plus independent
    client-risk, payment-terms and concentration-risk entries.
    """
    recommendations: List[Recommendation] = []
    name = data.client_name

    if data.days_past_due > 0:
        if data.days_past_due <= 7:
            recommendations.append(Recommendation(
                type="collection_strategy",
                title="Consider a friendly payment reminder",
                description=(
                    f"Invoice for {name} is {data.days_past_due} days past due. "
                    "A friendly reminder typically resolves early-stage overdue invoices."
                ),
                priority="medium",
                actions=[
                    "Send automated email reminder",
                    "Offer online payment link",
                    "Confirm invoice receipt",
                ],
                reasoning="Early reminders have highest conversion rates",
                confidence=0.85,
            ))
        elif data.days_past_due <= 30:
            recommendations.append(Recommendation(
                type="collection_strategy",
                title="Consider escalating collection efforts",
                description=(
                    f"Invoice for {name} is {data.days_past_due} days overdue. "
                    "A phone follow-up could help at this stage."
                ),
                priority="high",
                actions=[
                    "Make phone call to accounts payable",
                    "Send formal collection notice",
                    "Offer payment plan if needed",
                ],
                reasoning="Phone calls increase collection rates by 50% for 2-4 week overdue invoices",
                confidence=0.8,
            ))
        else:
            recommendations.append(Recommendation(
                type="collection_strategy",
                title="Final notice and escalation review",
                description=(
                    f"Invoice for {name} is significantly overdue ({data.days_past_due} days). "
                    "You could review it for escalation."
                ),
                priority="critical",
                actions=[
                    "Send final notice letter",
                    "Review for collection agency referral",
                    "Consider legal options",
                    "Document all communication attempts",
                ],
                reasoning="Long-overdue invoices typically call for formal escalation procedures",
                confidence=0.75,
            ))

    if data.client_score < 40:
        late_pct = round_half_up(data.payment_history.late_payment_rate * 100)
        recommendations.append(Recommendation(
            type="client_risk",
            title="Review payment terms for high-risk client",
            description=(
                f"{name} has a low payment score ({data.client_score}). "
                "You could consider requiring upfront payment or shorter terms."
            ),
            priority="high",
            actions=[
                "Require deposit for new work",
                "Shorten payment terms to Net 15",
                "Consider credit limit",
                "Document risk assessment",
            ],
            reasoning=f"Client has {late_pct}% late payment rate",
            confidence=0.82,
        ))

    if data.payment_history.avg_days_to_payment > 45:
        avg_days = round_half_up(data.payment_history.avg_days_to_payment)
        recommendations.append(Recommendation(
            type="payment_terms",
            title="Consider early payment incentives",
            description=(
                f"{name} typically pays after {avg_days} days. "
                "An early payment incentive could improve cash flow."
            ),
            priority="medium",
            actions=[
                "Offer 2% discount for payment within 10 days",
                "Add early payment terms to next invoice",
                "Communicate discount opportunity",
            ],
            reasoning="Early payment discounts can reduce DSO by 15-20 days",
            confidence=0.7,
        ))

    if data.total_outstanding > CONCENTRATION_THRESHOLD_CENTS:
        recommendations.append(Recommendation(
            type="cash_flow",
            title="Address concentration risk",
            description=(
                f"{name} has significant outstanding balance "
                f"({_format_dollars(data.total_outstanding)}). You could monitor it closely."
            ),
            priority="high",
            actions=[
                "Set up payment milestone plan",
                "Increase collection frequency",
                "Review client credit limit",
                "Consider invoice factoring",
            ],
            reasoning="Large outstanding balances create cash flow risk",
            confidence=0.78,
        ))

    return recommendations


def build_prompt(data: RecommendationInput) -> str:
    history = data.payment_history
    return f"""You are a cash flow management AI assistant. Analyze this client situation and provide actionable recommendations.

Client: {data.client_name}
Payment Score: {data.client_score}/100
Current Invoice: {_format_dollars(data.invoice_amount)} ({data.days_past_due} days past due)
Total Outstanding: {_format_dollars(data.total_outstanding)}
Average Days to Payment: {round_half_up(history.avg_days_to_payment)}
Late Payment Rate: {round_half_up(history.late_payment_rate * 100)}%
Total Paid Historically: {_format_dollars(history.total_paid)}

Based on this data, provide 2-3 specific, actionable recommendations in JSON format:
{{
  "recommendations": [
    {{
      "type": "collection_strategy" | "payment_terms" | "client_risk" | "cash_flow",
      "title": "Brief title",
      "description": "Detailed description",
      "priority": "low" | "medium" | "high" | "critical",
      "actions": ["Action 1", "Action 2", "Action 3"],
      "reasoning": "Why this recommendation",
      "confidence": 0.0-1.0
    }}
  ]
}}

Focus on practical, business-appropriate advice. Phrase suggestions as options the owner could consider. Be specific about timing and amounts where relevant."""


def _is_well_formed(item) -> bool:
    if not isinstance(item, dict):
        return False
    return (
        isinstance(item.get("type"), str)
        and isinstance(item.get("title"), str)
        and isinstance(item.get("description"), str)
        and isinstance(item.get("priority"), str)
        and isinstance(item.get("actions"), list)
        and isinstance(item.get("reasoning"), str)
        # bool is an int subclass; JSON true is not a confidence
        and isinstance(item.get("confidence"), (int, float))
        and not isinstance(item.get("confidence"), bool)
    )


def validate_ai_recommendations(items) -> List[Recommendation]:
    """Keep well-formed items, coercing enums and capping lengths."""
    validated = []
    for item in items:
        if not _is_well_formed(item):
            continue
        actions = [a[:MAX_ACTION_LENGTH] for a in item["actions"] if isinstance(a, str)][:MAX_ACTIONS]
        validated.append(Recommendation(
            type=item["type"] if item["type"] in VALID_TYPES else "collection_strategy",
            title=item["title"][:MAX_TITLE_LENGTH],
            description=item["description"][:MAX_DESCRIPTION_LENGTH],
            priority=item["priority"] if item["priority"] in VALID_PRIORITIES else "medium",
            actions=actions,
            reasoning=item["reasoning"][:MAX_REASONING_LENGTH],
            confidence=min(max(float(item["confidence"]), 0.0), 1.0),
        ))
    return validated


async def generate_ai_recommendations(data: RecommendationInput) -> List[Recommendation]:
    """
    Model-generated recommendations, or the rule-based ones when the model is
    unavailable or its reply is unusable.
    """
    if not settings.OPENAI_API_KEY:
        return generate_rule_based_recommendations(data)

    try:
        reply = await llm.complete(
            [{"role": "user", "content": build_prompt(data)}],
            max_tokens=1024,
        )
    except Exception as e:
        logger.error(f"Error generating AI recommendations: {e}")
        return generate_rule_based_recommendations(data)

    parsed = llm.extract_json_object(reply)
    if parsed is None:
        logger.warning("Failed to extract JSON from AI recommendation response")
        return generate_rule_based_recommendations(data)

    items = parsed.get("recommendations")
    if not isinstance(items, list):
        logger.warning("Invalid AI response structure - missing recommendations array")
        return generate_rule_based_recommendations(data)

    validated = validate_ai_recommendations(items)
    if not validated:
        logger.warning("No valid recommendations after validation")
        return generate_rule_based_recommendations(data)

    return validated


def top_priority_rank(recommendations: List[Recommendation]) -> int:
    """Sort key for a client's list: rank of its first recommendation."""
    if not recommendations:
        return len(PRIORITY_ORDER)
    return PRIORITY_ORDER.get(recommendations[0].priority, len(PRIORITY_ORDER))
