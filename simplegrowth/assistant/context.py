"""
Business context for the chat assistant.

Pulls one organization's cash flow and operations data into a single
structure, and renders it as the markdown summary sent to the model.
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.cashflow import service as cashflow_service
from simplegrowth.chauffeur import service as chauffeur_service
from simplegrowth.models import (
    AIRecommendation,
    BusinessInsight,
    BusinessMetric,
    Client,
    Invoice,
    Organization,
    PayrollSnapshot,
    Subscription,
    utcnow,
)

TOP_OVERDUE_CLIENTS = 5
PENDING_RECOMMENDATIONS = 5
RECENT_INSIGHTS = 5

PLATFORM_LABELS = {
    "cashflow_ai": "CashFlow AI",
    "chauffeur": "Business Chauffeur",
    "website_management": "Website Management",
    "cybersecurity": "Cybersecurity",
}


@dataclass
class OverdueClient:
    id: str
    name: str
    amount_overdue: int
    days_overdue: int


@dataclass
class PendingRecommendation:
    type: str
    title: str
    priority: str


@dataclass
class CashFlowContext:
    total_receivables: int
    overdue_receivables: int
    collected_this_month: int
    projected_inflow_30d: int
    health_score: int
    overdue_invoices: int
    total_clients: int
    top_overdue_clients: List[OverdueClient] = field(default_factory=list)
    pending_recommendations: List[PendingRecommendation] = field(default_factory=list)


@dataclass
class PayrollContext:
    total_gross_pay: int
    employee_count: int
    pay_date: str


@dataclass
class ChauffeurContext:
    revenue_this_month: int
    revenue_this_week: int
    reviews_this_month: int
    avg_rating: Optional[float]
    connected_integrations: List[str]
    payroll: Optional[PayrollContext] = None
    recent_insights: List[str] = field(default_factory=list)


@dataclass
class DataQuality:
    has_invoices: bool
    has_metrics: bool
    has_payroll: bool
    integrations_connected: int
    completeness: int  # percent of the four data sources present


@dataclass
class UnifiedContext:
    organization_id: str
    organization_name: str
    industry: Optional[str]
    active_platforms: List[str]
    cash_flow: Optional[CashFlowContext]
    chauffeur: Optional[ChauffeurContext]
    data_quality: DataQuality

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


async def _count(db: AsyncSession, column, *criteria) -> int:
    result = await db.execute(select(func.count(column)).where(*criteria))
    return result.scalar() or 0


async def _top_overdue_clients(db: AsyncSession, organization_id: str) -> List[OverdueClient]:
    now = utcnow()
    invoices = await cashflow_service.get_open_invoices(db, organization_id)

    per_client: Dict[str, OverdueClient] = {}
    for invoice in invoices:
        if not invoice.client_id:
            continue
        days = cashflow_service.days_past_due(invoice.due_date, now)
        if days <= 0:
            continue
        entry = per_client.get(invoice.client_id)
        if entry is None:
            entry = per_client[invoice.client_id] = OverdueClient(
                id=invoice.client_id, name="", amount_overdue=0, days_overdue=0
            )
        entry.amount_overdue += invoice.outstanding
        entry.days_overdue = max(entry.days_overdue, days)

    if per_client:
        result = await db.execute(select(Client.id, Client.name).where(Client.id.in_(list(per_client))))
        for client_id, name in result.all():
            per_client[client_id].name = name

    ranked = sorted(per_client.values(), key=lambda c: c.amount_overdue, reverse=True)
    return ranked[:TOP_OVERDUE_CLIENTS]


async def _cash_flow_context(db: AsyncSession, organization_id: str) -> Optional[CashFlowContext]:
    if not await _count(db, Invoice.id, Invoice.organization_id == organization_id):
        return None

    stats = await cashflow_service.calculate_stats(db, organization_id)

    recs = await db.execute(
        select(AIRecommendation)
        .where(
            AIRecommendation.organization_id == organization_id,
            AIRecommendation.status == "pending",
        )
        .order_by(AIRecommendation.created_at.desc())
        .limit(PENDING_RECOMMENDATIONS)
    )

    return CashFlowContext(
        total_receivables=stats.total_receivables,
        overdue_receivables=stats.overdue_receivables,
        collected_this_month=stats.collected_this_month,
        projected_inflow_30d=stats.projected_inflow_30d,
        health_score=stats.health_score,
        overdue_invoices=stats.overdue_invoices,
        total_clients=stats.total_clients,
        top_overdue_clients=await _top_overdue_clients(db, organization_id),
        pending_recommendations=[
            PendingRecommendation(type=r.type, title=r.title, priority=r.priority)
            for r in recs.scalars().all()
        ],
    )


async def _chauffeur_context(
    db: AsyncSession,
    organization_id: str,
    has_metrics: bool,
    has_payroll: bool,
) -> Optional[ChauffeurContext]:
    providers = await chauffeur_service.get_connected_providers(db, organization_id)

    insights = await db.execute(
        select(BusinessInsight.title)
        .where(BusinessInsight.organization_id == organization_id)
        .order_by(BusinessInsight.created_at.desc())
        .limit(RECENT_INSIGHTS)
    )
    insight_titles = list(insights.scalars().all())

    if not (has_metrics or has_payroll or providers or insight_titles):
        return None

    stats = await chauffeur_service.calculate_stats(db, organization_id)

    payroll = None
    if has_payroll:
        latest = await db.execute(
            select(PayrollSnapshot)
            .where(PayrollSnapshot.organization_id == organization_id)
            .order_by(PayrollSnapshot.pay_date.desc())
            .limit(1)
        )
        snapshot = latest.scalar_one()
        payroll = PayrollContext(
            total_gross_pay=snapshot.total_gross_pay,
            employee_count=snapshot.employee_count,
            pay_date=snapshot.pay_date.date().isoformat(),
        )

    return ChauffeurContext(
        revenue_this_month=stats.revenue_this_month,
        revenue_this_week=stats.revenue_this_week,
        reviews_this_month=stats.reviews_this_month,
        avg_rating=stats.avg_rating,
        connected_integrations=providers,
        payroll=payroll,
        recent_insights=insight_titles,
    )


async def build_unified_context(db: AsyncSession, organization_id: str) -> Optional[UnifiedContext]:
    """Everything the assistant knows about one organization; None if it does not exist."""
    organization = await db.get(Organization, organization_id)
    if organization is None:
        return None

    subscriptions = await db.execute(
        select(Subscription.plan).where(
            Subscription.organization_id == organization_id,
            Subscription.status.in_(("active", "trialing")),
        )
    )
    plans = set(subscriptions.scalars().all())

    has_invoices = bool(await _count(db, Invoice.id, Invoice.organization_id == organization_id))
    has_metrics = bool(await _count(db, BusinessMetric.id, BusinessMetric.organization_id == organization_id))
    has_payroll = bool(await _count(db, PayrollSnapshot.id, PayrollSnapshot.organization_id == organization_id))

    cash_flow = await _cash_flow_context(db, organization_id) if has_invoices else None
    chauffeur = await _chauffeur_context(db, organization_id, has_metrics, has_payroll)

    if cash_flow:
        plans.add("cashflow_ai")
    if chauffeur:
        plans.add("chauffeur")

    integrations = len(chauffeur.connected_integrations) if chauffeur else 0
    present = [has_invoices, has_metrics, has_payroll, integrations > 0]

    return UnifiedContext(
        organization_id=organization.id,
        organization_name=organization.name,
        industry=organization.industry,
        active_platforms=sorted(plans),
        cash_flow=cash_flow,
        chauffeur=chauffeur,
        data_quality=DataQuality(
            has_invoices=has_invoices,
            has_metrics=has_metrics,
            has_payroll=has_payroll,
            integrations_connected=integrations,
            completeness=sum(present) * 25,
        ),
    )


def _money(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def format_context_for_ai(context: UnifiedContext) -> str:
    """Markdown summary of the context with amounts in dollars."""
    lines = [f"# {context.organization_name}"]
    if context.industry:
        lines.append(f"Industry: {context.industry}")

    platforms = [PLATFORM_LABELS.get(p, p) for p in context.active_platforms]
    lines.append(f"Active platforms: {', '.join(platforms) if platforms else 'None'}")

    cf = context.cash_flow
    if cf:
        lines += [
            "",
            "## CashFlow AI",
            f"- Total receivables: **{_money(cf.total_receivables)}**",
            f"- Overdue receivables: **{_money(cf.overdue_receivables)}** ({cf.overdue_invoices} invoices)",
            f"- Collected this month: {_money(cf.collected_this_month)}",
            f"- Projected inflow (30 days): {_money(cf.projected_inflow_30d)}",
            f"- Health score: **{cf.health_score}/100**",
            f"- Clients: {cf.total_clients}",
        ]
        if cf.top_overdue_clients:
            lines.append("")
            lines.append("Top overdue clients:")
            for client in cf.top_overdue_clients:
                lines.append(
                    f"- {client.name}: {_money(client.amount_overdue)} ({client.days_overdue} days overdue)"
                )
        if cf.pending_recommendations:
            lines.append("")
            lines.append("Pending recommendations:")
            for rec in cf.pending_recommendations:
                lines.append(f"- [{rec.priority}] {rec.title}")

    bc = context.chauffeur
    if bc:
        lines += [
            "",
            "## Business Chauffeur",
            f"- Revenue this month: **{_money(bc.revenue_this_month)}**",
            f"- Revenue this week: {_money(bc.revenue_this_week)}",
            f"- Reviews this month: {bc.reviews_this_month}",
        ]
        if bc.avg_rating is not None:
            lines.append(f"- Average rating: {bc.avg_rating:.1f}/5")
        lines.append(
            f"- Connected integrations: {', '.join(bc.connected_integrations) if bc.connected_integrations else 'None'}"
        )
        if bc.payroll:
            lines.append(
                f"- Latest payroll: {_money(bc.payroll.total_gross_pay)} for "
                f"{bc.payroll.employee_count} employees (paid {bc.payroll.pay_date})"
            )
        if bc.recent_insights:
            lines.append("")
            lines.append("Recent insights:")
            lines += [f"- {title}" for title in bc.recent_insights]

    dq = context.data_quality
    lines += ["", f"Data completeness: {dq.completeness}%"]
    if not cf and not bc:
        lines.append("No invoices, metrics or payroll have been added yet.")

    return "\n".join(lines)
