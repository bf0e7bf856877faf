"""
Cross-system insights.

Correlates numbers from Cash Flow AI, point-of-sale, payroll, reviews and
employee records into observations phrased as options ("you could ...").
Each rule only fires when every system it needs is present.
"""
from collections import defaultdict
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Literal, Optional

from simplegrowth.cashflow.forecast import round_half_up
from simplegrowth.insights.disclaimers import get_disclaimer


InsightCategory = Literal["revenue", "operations", "staffing", "customer", "cash_flow"]
InsightPriority = Literal["low", "medium", "high"]
ReviewTrend = Literal["improving", "stable", "declining"]

PRIORITY_WEIGHT = {"high": 3, "medium": 2, "low": 1}


@dataclass
class CashFlowData:
    monthly_revenue: float
    overdue_receivables: float
    health_score: int
    avg_days_to_payment: float


@dataclass
class POSData:
    daily_sales: float
    transaction_count: int
    avg_ticket: float
    growth_rate: float


@dataclass
class PayrollData:
    total_payroll: float
    employee_count: int
    overtime_hours: float
    payroll_growth: float


@dataclass
class ReviewData:
    avg_rating: float
    review_count: int
    recent_trend: ReviewTrend


@dataclass
class EmployeePerformance:
    id: str
    name: str
    performance_score: float
    department: str


@dataclass
class CrossSystemData:
    """Whatever each connected system can tell us; missing systems are None."""
    cash_flow: Optional[CashFlowData] = None
    pos: Optional[POSData] = None
    payroll: Optional[PayrollData] = None
    reviews: Optional[ReviewData] = None
    employees: List[EmployeePerformance] = field(default_factory=list)


@dataclass
class CrossSystemInsight:
    id: str
    title: str
    description: str
    category: InsightCategory
    data_sources: List[str]
    priority: InsightPriority
    confidence: float
    action_items: List[str]
    disclaimer: str = field(default_factory=lambda: get_disclaimer("insight"))

    def to_dict(self) -> dict:
        return asdict(self)


def _pct(ratio: float) -> int:
    return round_half_up(ratio * 100)


def generate_cross_system_insights(data: CrossSystemData) -> List[CrossSystemInsight]:
    """
    Run every correlation rule and return the insights that fire, in rule order.

    Ids are ``cross-0``, ``cross-1``, ... in the order the insights are produced.
    Ratios against monthly sales are skipped when there are no sales to compare to.
    """
    found: List[dict] = []
    monthly_sales = data.pos.daily_sales * 30 if data.pos else 0

    # Sales growth outpacing payroll
    if data.pos and data.payroll:
        if data.pos.growth_rate > 0.15 and data.payroll.payroll_growth < 0.05:
            found.append(dict(
                title="Sales Growth Outpacing Payroll",
                description=(
                    f"Your sales appear to have grown approximately {_pct(data.pos.growth_rate)}% "
                    "while payroll has remained relatively flat. This could indicate an opportunity "
                    "to explore profit-sharing or reinvestment options."
                ),
                category="revenue",
                data_sources=["POS", "Payroll"],
                priority="medium",
                confidence=0.72,
                action_items=[
                    "You could consider reviewing profit margins",
                    "Optionally explore employee incentive programs",
                    "Consider consulting with a financial advisor about reinvestment",
                ],
            ))

    # Cash flow dips around payroll
    if data.cash_flow and data.payroll:
        if data.cash_flow.health_score < 70 and data.payroll.total_payroll > 0:
            found.append(dict(
                title="Cash Flow Pattern Observation",
                description=(
                    f"Your cash flow health score of {data.cash_flow.health_score} could be affected "
                    "by payroll timing. You might consider reviewing the relationship between payment "
                    "collections and payroll dates."
                ),
                category="cash_flow",
                data_sources=["Cash Flow AI", "Payroll"],
                priority="medium",
                confidence=0.65,
                action_items=[
                    "Consider reviewing payment collection timing",
                    "You could explore adjusting invoice due dates",
                    "Optionally discuss cash flow timing with a financial advisor",
                ],
            ))

    # Overtime capacity
    if data.pos and data.payroll and data.payroll.overtime_hours > 40:
        hours = data.payroll.overtime_hours
        found.append(dict(
            title="Overtime Capacity Analysis",
            description=(
                f"Your team logged approximately {hours:g} overtime hours. You might want to analyze "
                "whether this overtime is generating proportional revenue or if additional hiring "
                "could be more cost-effective."
            ),
            category="staffing",
            data_sources=["POS", "Payroll"],
            priority="high" if hours > 80 else "medium",
            confidence=0.68,
            action_items=[
                "Consider tracking which shifts generate the most overtime",
                "You could analyze revenue per labor hour",
                "Optionally consult with HR about staffing options",
            ],
        ))

    # Reviews moving with sales
    if data.reviews and data.pos:
        if data.reviews.recent_trend == "improving" and data.pos.growth_rate > 0.1:
            found.append(dict(
                title="Positive Momentum Observed",
                description=(
                    "Your reviews appear to be trending upward while sales have grown approximately "
                    f"{_pct(data.pos.growth_rate)}%. This positive correlation could indicate customer "
                    "satisfaction driving business growth."
                ),
                category="customer",
                data_sources=["Reviews", "POS"],
                priority="low",
                confidence=0.7,
                action_items=[
                    "Consider maintaining current service quality practices",
                    "You could encourage satisfied customers to leave reviews",
                    "Optionally document what's working well for your team",
                ],
            ))
        elif data.reviews.recent_trend == "declining" and data.pos.growth_rate < 0:
            found.append(dict(
                title="Customer Experience Attention Area",
                description=(
                    "Your review trend appears to be declining alongside sales. You might want to "
                    "investigate potential service or product quality issues."
                ),
                category="customer",
                data_sources=["Reviews", "POS"],
                priority="high",
                confidence=0.75,
                action_items=[
                    "Consider reviewing recent negative feedback",
                    "You could survey regular customers for feedback",
                    "Optionally audit service delivery processes",
                ],
            ))

    # High performers and ratings
    if data.reviews and data.employees:
        high_performers = [e for e in data.employees if e.performance_score >= 80]
        if high_performers and data.reviews.avg_rating >= 4.5:
            found.append(dict(
                title="High-Performer Impact Analysis",
                description=(
                    f"Your {len(high_performers)} high-performing team members could be contributing "
                    f"to your strong {data.reviews.avg_rating:.1f}-star average rating. You might "
                    "consider documenting their practices for training purposes."
                ),
                category="staffing",
                data_sources=["Reviews", "Payroll", "Performance"],
                priority="low",
                confidence=0.6,
                action_items=[
                    "Consider identifying what makes top performers effective",
                    "You could create training materials based on best practices",
                    "Optionally recognize and reward top performers",
                ],
            ))

    # Overdue receivables against monthly sales
    if data.cash_flow and data.pos and monthly_sales > 0:
        receivables_ratio = data.cash_flow.overdue_receivables / monthly_sales
        if receivables_ratio > 0.3:
            found.append(dict(
                title="Receivables to Revenue Ratio",
                description=(
                    f"Your overdue receivables represent approximately {_pct(receivables_ratio)}% of "
                    "monthly sales. This could affect cash flow. You might want to review collection "
                    "processes."
                ),
                category="cash_flow",
                data_sources=["Cash Flow AI", "POS"],
                priority="high" if receivables_ratio > 0.5 else "medium",
                confidence=0.78,
                action_items=[
                    "Consider reviewing overdue invoice follow-up processes",
                    "You could adjust payment terms for new clients",
                    "Optionally consult with a collections specialist",
                ],
            ))

    # Payroll as a share of revenue
    if data.pos and data.payroll and monthly_sales > 0:
        payroll_ratio = data.payroll.total_payroll / monthly_sales
        if payroll_ratio > 0.4:
            found.append(dict(
                title="Labor Cost Observation",
                description=(
                    f"Your payroll appears to be approximately {_pct(payroll_ratio)}% of revenue. You "
                    "might want to compare this to industry benchmarks for your sector."
                ),
                category="operations",
                data_sources=["POS", "Payroll"],
                priority="high" if payroll_ratio > 0.5 else "medium",
                confidence=0.7,
                action_items=[
                    "Consider reviewing scheduling efficiency",
                    "You could analyze revenue per labor hour by shift",
                    "Optionally consult industry benchmarks for your region",
                ],
            ))
        elif payroll_ratio < 0.2:
            found.append(dict(
                title="Staffing Capacity Observation",
                description=(
                    f"Your payroll is approximately {_pct(payroll_ratio)}% of revenue, which could be "
                    "below typical for many businesses. This might indicate capacity for strategic hiring."
                ),
                category="staffing",
                data_sources=["POS", "Payroll"],
                priority="low",
                confidence=0.65,
                action_items=[
                    "Consider whether current staff can maintain quality",
                    "You could assess if hiring would support growth",
                    "Optionally review customer wait times and service quality",
                ],
            ))

    return [CrossSystemInsight(id=f"cross-{i}", **fields) for i, fields in enumerate(found)]


def group_insights_by_category(insights: List[CrossSystemInsight]) -> Dict[str, List[CrossSystemInsight]]:
    grouped: Dict[str, List[CrossSystemInsight]] = defaultdict(list)
    for insight in insights:
        grouped[insight.category].append(insight)
    return dict(grouped)


def get_insight_priority_summary(insights: List[CrossSystemInsight]) -> Dict[str, int]:
    summary = {"high": 0, "medium": 0, "low": 0}
    for insight in insights:
        summary[insight.priority] += 1
    return summary


def sort_insights_by_priority(insights: List[CrossSystemInsight]) -> List[CrossSystemInsight]:
    """High before medium before low; higher confidence first within a priority."""
    return sorted(
        insights,
        key=lambda i: (PRIORITY_WEIGHT[i.priority], i.confidence),
        reverse=True,
    )
