"""
Receivables analyzer: risk, recovery odds, expected payment date, urgency and
next collection steps for every open invoice.

Running the analysis rescores clients that have paid history and writes the
results back onto each invoice, so invoice lists and the assistant read them
without recomputing.

Collection ladder by days overdue:
- due within 3 days: friendly email
- 1-7 days: email with a one-click payment link
- 8-21 days: 5% early-pay discount for 7 days, SMS two days later
- 22-45 days: three-month payment plan, personal call
- over 45 days: priority call, 10% final discount for 5 days
"""
import logging
import math
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from simplegrowth.billing.stripe_client import calculate_success_fee
from simplegrowth.cashflow.forecast import round_half_up
from simplegrowth.cashflow.scoring import (
    NEUTRAL_SCORE,
    RiskLevel,
    build_payment_history,
    calculate_payment_score,
    calculate_recovery_likelihood,
    get_risk_level,
    predict_payment_date,
)
from simplegrowth.cashflow.service import DEFAULT_AVG_DAYS_TO_PAYMENT, OPEN_STATUSES
from simplegrowth.models import AuditLog, Client, Invoice, utcnow, as_utc

logger = logging.getLogger(__name__)


ActionType = Literal["email", "sms", "call", "payment_link", "discount_offer", "payment_plan"]

MIN_DAYS_BETWEEN_CONTACTS = 3
MAX_DISCOUNT_PERCENT = 10
PAYMENT_PLAN_MONTHS = 3

# Urgency bumps for large balances, in cents
URGENT_AMOUNT_CENTS = 5_000 * 100
VERY_URGENT_AMOUNT_CENTS = 10_000 * 100


@dataclass
class IncentiveOffer:
    type: Literal["early_pay_discount", "payment_plan"]
    expires_at: datetime
    reason: str
    discount_percent: Optional[int] = None
    discount_amount: Optional[int] = None
    payment_plan_months: Optional[int] = None
    payment_plan_amount: Optional[int] = None


@dataclass
class RecommendedAction:
    type: ActionType
    priority: int  # 1-10, higher first
    scheduled_for: datetime
    message: str
    reasoning: str
    expected_response_rate: float
    incentive: Optional[IncentiveOffer] = None


@dataclass
class InvoiceAnalysis:
    """Analysis of one open invoice. Amounts in cents."""
    invoice_id: str
    invoice_number: str
    client_id: Optional[str]
    client_name: str
    amount_due: int
    due_date: datetime
    days_overdue: int
    days_to_due: int
    client_payment_score: int
    risk_level: RiskLevel
    recovery_likelihood: float
    predicted_payment_date: datetime
    urgency_score: int
    recommended_actions: List[RecommendedAction] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AnalysisSummary:
    total_invoices: int
    total_at_risk: int
    projected_recovery: int
    projected_fee: int
    clients_rescored: int


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def calculate_urgency_score(days_overdue: int, days_to_due: int, amount_due: int, risk_level: RiskLevel) -> int:
    """0-100. Overdue invoices start at 40 and climb 2 a day; invoices due within a week score up to 30."""
    if days_overdue > 0:
        score = min(100, 40 + days_overdue * 2)
    elif days_to_due <= 7:
        score = 30 - days_to_due * 4
    else:
        score = 0

    if amount_due > URGENT_AMOUNT_CENTS:
        score = min(100, score + 20)
    if amount_due > VERY_URGENT_AMOUNT_CENTS:
        score = min(100, score + 10)

    if risk_level == "high":
        score = min(100, score + 15)
    elif risk_level == "critical":
        score = min(100, score + 25)

    return score


def next_contact_date(now: datetime, last_contact: Optional[datetime]) -> datetime:
    """Now, unless the client was contacted within the minimum gap."""
    if last_contact is None:
        return now
    last_contact = as_utc(last_contact)
    days_since = math.floor((now - last_contact).total_seconds() / 86400)
    if days_since < MIN_DAYS_BETWEEN_CONTACTS:
        return last_contact + timedelta(days=MIN_DAYS_BETWEEN_CONTACTS)
    return now


def recommend_actions(
    days_overdue: int,
    days_to_due: int,
    amount_due: int,
    client_email: Optional[str],
    client_phone: Optional[str],
    now: datetime,
    last_contact: Optional[datetime] = None,
) -> List[RecommendedAction]:
    """Collection steps for one invoice, highest priority first."""
    contact_at = next_contact_date(now, last_contact)
    actions: List[RecommendedAction] = []

    if days_overdue == 0 and days_to_due <= 3:
        if client_email:
            actions.append(RecommendedAction(
                type="email",
                priority=6,
                scheduled_for=contact_at,
                message="Friendly reminder that payment is approaching",
                reasoning="A reminder before the due date raises on-time payment",
                expected_response_rate=0.25,
            ))

    elif 0 < days_overdue <= 7:
        if client_email:
            actions.append(RecommendedAction(
                type="email",
                priority=7,
                scheduled_for=contact_at,
                message="Friendly reminder with easy payment link",
                reasoning="Invoices that are just overdue respond well to convenience",
                expected_response_rate=0.35,
            ))
            actions.append(RecommendedAction(
                type="payment_link",
                priority=8,
                scheduled_for=contact_at,
                message="Include one-click payment link",
                reasoning="Customers can pay immediately",
                expected_response_rate=0.40,
            ))

    elif 7 < days_overdue <= 21:
        percent = min(5, MAX_DISCOUNT_PERCENT)
        if client_email:
            actions.append(RecommendedAction(
                type="discount_offer",
                priority=8,
                scheduled_for=contact_at,
                message=f"Offer {percent}% discount for payment within 7 days",
                reasoning="Discounts work on invoices two to three weeks overdue",
                expected_response_rate=0.30,
                incentive=IncentiveOffer(
                    type="early_pay_discount",
                    discount_percent=percent,
                    discount_amount=round_half_up(amount_due * percent / 100),
                    expires_at=now + timedelta(days=7),
                    reason="Encourage quick payment on a moderately overdue invoice",
                ),
            ))
        if client_phone:
            actions.append(RecommendedAction(
                type="sms",
                priority=7,
                scheduled_for=contact_at + timedelta(days=2),
                message="SMS follow-up with payment link",
                reasoning="SMS is opened more often than a second email",
                expected_response_rate=0.45,
            ))

    elif 21 < days_overdue <= 45:
        if client_email:
            actions.append(RecommendedAction(
                type="payment_plan",
                priority=9,
                scheduled_for=contact_at,
                message="Offer flexible payment plan option",
                reasoning="Payment plans recover more of long-overdue balances",
                expected_response_rate=0.25,
                incentive=IncentiveOffer(
                    type="payment_plan",
                    payment_plan_months=PAYMENT_PLAN_MONTHS,
                    payment_plan_amount=round_half_up(amount_due / PAYMENT_PLAN_MONTHS),
                    expires_at=now + timedelta(days=14),
                    reason="Payment plan for a significantly overdue invoice",
                ),
            ))
        actions.append(RecommendedAction(
            type="call",
            priority=8,
            scheduled_for=contact_at,
            message="Personal call to discuss payment options",
            reasoning="A call shows commitment and builds rapport",
            expected_response_rate=0.35,
        ))

    elif days_overdue > 45:
        actions.append(RecommendedAction(
            type="call",
            priority=10,
            scheduled_for=contact_at,
            message="Priority call to resolve outstanding balance",
            reasoning="Direct contact is essential this far past due",
            expected_response_rate=0.20,
        ))
        percent = min(10, MAX_DISCOUNT_PERCENT)
        if client_email:
            actions.append(RecommendedAction(
                type="discount_offer",
                priority=9,
                scheduled_for=contact_at,
                message=f"Final offer: {percent}% discount for payment within 5 days",
                reasoning="A larger discount can prompt action on very overdue invoices",
                expected_response_rate=0.15,
                incentive=IncentiveOffer(
                    type="early_pay_discount",
                    discount_percent=percent,
                    discount_amount=round_half_up(amount_due * percent / 100),
                    expires_at=now + timedelta(days=5),
                    reason="Final opportunity discount for immediate payment",
                ),
            ))

    return sorted(actions, key=lambda a: a.priority, reverse=True)


def analyze_invoice(invoice: Invoice, now: datetime, last_contact: Optional[datetime] = None) -> InvoiceAnalysis:
    """Analyze one open invoice. ``invoice.client`` must be loaded."""
    client = invoice.client
    due = as_utc(invoice.due_date)
    days_diff = math.floor((due - _start_of_day(now)).total_seconds() / 86400)
    days_overdue = -days_diff if days_diff < 0 else 0
    amount_due = invoice.outstanding

    score = client.payment_score if client and client.payment_score is not None else NEUTRAL_SCORE
    avg_days = client.avg_days_to_payment if client and client.avg_days_to_payment else DEFAULT_AVG_DAYS_TO_PAYMENT
    risk_level = get_risk_level(score)

    return InvoiceAnalysis(
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        client_id=client.id if client else None,
        client_name=client.name if client else "Unknown",
        amount_due=amount_due,
        due_date=due,
        days_overdue=days_overdue,
        days_to_due=days_diff,
        client_payment_score=score,
        risk_level=risk_level,
        recovery_likelihood=calculate_recovery_likelihood(amount_due, days_overdue, score),
        predicted_payment_date=predict_payment_date(due, avg_days, score),
        urgency_score=calculate_urgency_score(days_overdue, days_diff, amount_due, risk_level),
        recommended_actions=recommend_actions(
            days_overdue,
            days_diff,
            amount_due,
            client.email if client else None,
            client.phone if client else None,
            now,
            last_contact,
        ),
    )


def summarize(analyses: Sequence[InvoiceAnalysis], clients_rescored: int = 0) -> AnalysisSummary:
    total_at_risk = sum(a.amount_due for a in analyses)
    projected_recovery = round_half_up(sum(a.amount_due * a.recovery_likelihood for a in analyses))
    return AnalysisSummary(
        total_invoices=len(analyses),
        total_at_risk=total_at_risk,
        projected_recovery=projected_recovery,
        projected_fee=calculate_success_fee(projected_recovery),
        clients_rescored=clients_rescored,
    )


def rescore_client(client: Client, invoices: Sequence[Invoice]) -> bool:
    """Recompute a client's score and risk from paid invoices. Returns False when there is no paid history."""
    history = build_payment_history([inv for inv in invoices if inv.paid_at is not None])
    if not history:
        return False
    client.payment_score = calculate_payment_score(history)
    client.risk_level = get_risk_level(client.payment_score)
    return True


async def _last_contacts(db: AsyncSession, invoice_ids: List[str]) -> Dict[str, datetime]:
    if not invoice_ids:
        return {}
    result = await db.execute(
        select(AuditLog.entity_id, func.max(AuditLog.created_at))
        .where(
            AuditLog.entity_type == "invoice",
            AuditLog.action == "reminder_sent",
            AuditLog.entity_id.in_(invoice_ids),
        )
        .group_by(AuditLog.entity_id)
    )
    return {entity_id: as_utc(sent_at) for entity_id, sent_at in result.all()}


async def analyze_receivables(
    db: AsyncSession,
    organization_id: str,
    now: Optional[datetime] = None,
) -> Tuple[AnalysisSummary, List[InvoiceAnalysis]]:
    """
    Analyze every open invoice of the organization and store the results.

    Returns ``(summary, analyses)`` with analyses ordered most urgent first,
    earliest due date breaking ties. The caller commits.
    """
    now = now or utcnow()

    result = await db.execute(
        select(Client)
        .where(Client.organization_id == organization_id)
        .options(selectinload(Client.invoices))
    )
    clients_rescored = sum(1 for client in result.scalars().all() if rescore_client(client, client.invoices))

    result = await db.execute(
        select(Invoice)
        .where(Invoice.organization_id == organization_id, Invoice.status.in_(OPEN_STATUSES))
        .options(selectinload(Invoice.client))
    )
    invoices = result.scalars().all()
    last_contacts = await _last_contacts(db, [inv.id for inv in invoices])

    analyses = []
    for invoice in invoices:
        analysis = analyze_invoice(invoice, now, last_contacts.get(invoice.id))
        invoice.risk_level = analysis.risk_level
        invoice.recovery_likelihood = analysis.recovery_likelihood
        invoice.predicted_payment_date = analysis.predicted_payment_date
        invoice.urgency_score = analysis.urgency_score
        invoice.analyzed_at = now
        analyses.append(analysis)

    await db.flush()

    analyses.sort(key=lambda a: (-a.urgency_score, a.due_date))
    summary = summarize(analyses, clients_rescored)
    logger.info(
        f"Analyzed {summary.total_invoices} open invoices for {organization_id}: "
        f"{summary.total_at_risk} cents outstanding, {summary.projected_recovery} projected"
    )
    return summary, analyses
