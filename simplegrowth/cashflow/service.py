"""
Cash flow queries behind the dashboard endpoints.

Each function takes the session and the caller's organization id and returns
plain values or ORM rows; the route layer shapes the response.
"""
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from simplegrowth.cashflow.forecast import (
    CLOSED_STATUSES,
    InvoiceSnapshot,
    calculate_health_score,
    forecast_inflow,
    generate_forecast,
    round_half_up,
)
from simplegrowth.cashflow.recommendations import (
    PaymentHistorySummary,
    RecommendationInput,
    generate_ai_recommendations,
    top_priority_rank,
)
from simplegrowth.cashflow.schemas import CashflowStats
from simplegrowth.models import Client, Invoice, Payment, AIRecommendation, utcnow, as_utc


OPEN_STATUSES = ("sent", "viewed", "partial", "overdue")

DEFAULT_CLIENT_SCORE = 50
DEFAULT_AVG_DAYS_TO_PAYMENT = 30
PAYMENT_HISTORY_WINDOW = 20
MAX_PAGE_SIZE = 100


def days_past_due(due_date: datetime, now: datetime) -> int:
    """Whole days since the due date; 0 for invoices not yet due."""
    elapsed = (now - as_utc(due_date)).total_seconds() / 86400
    return max(0, math.floor(elapsed))


def _start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


# =============================================================================
# Stats
# =============================================================================

async def get_open_invoices(db: AsyncSession, organization_id: str) -> Sequence[Invoice]:
    result = await db.execute(
        select(Invoice).where(
            Invoice.organization_id == organization_id,
            Invoice.status.notin_(CLOSED_STATUSES),
        )
    )
    return result.scalars().all()


async def calculate_stats(
    db: AsyncSession,
    organization_id: str,
    now: Optional[datetime] = None,
) -> CashflowStats:
    """
    Receivables, collections, 30-day projection and health score for one tenant.

    Overdue means the due date has passed; the days-outstanding average counts
    not-yet-due invoices as 0 days.
    """
    now = now or utcnow()

    invoices = await get_open_invoices(db, organization_id)

    payments_total = await db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0))
        .join(Invoice, Payment.invoice_id == Invoice.id)
        .where(
            Invoice.organization_id == organization_id,
            Payment.paid_at >= _start_of_month(now),
        )
    )
    client_count = await db.execute(
        select(func.count(Client.id)).where(Client.organization_id == organization_id)
    )
    pending_count = await db.execute(
        select(func.count(AIRecommendation.id)).where(
            AIRecommendation.organization_id == organization_id,
            AIRecommendation.status == "pending",
        )
    )

    total_receivables = sum(inv.outstanding for inv in invoices)
    overdue = [inv for inv in invoices if as_utc(inv.due_date) < now]
    overdue_receivables = sum(inv.outstanding for inv in overdue)

    forecast = forecast_inflow([InvoiceSnapshot.from_model(inv) for inv in invoices], 30, now=now)

    day_counts = [days_past_due(inv.due_date, now) for inv in invoices]
    avg_days_outstanding = sum(day_counts) / len(day_counts) if day_counts else 0

    health_score = calculate_health_score(
        total_receivables,
        overdue_receivables,
        avg_days_outstanding,
        forecast.total,
    )

    return CashflowStats(
        total_receivables=total_receivables,
        overdue_receivables=overdue_receivables,
        collected_this_month=int(payments_total.scalar() or 0),
        projected_inflow_30d=round_half_up(forecast.total),
        health_score=health_score,
        overdue_invoices=len(overdue),
        total_clients=client_count.scalar() or 0,
        pending_recommendations=pending_count.scalar() or 0,
    )


# =============================================================================
# Cursor pagination
# =============================================================================

async def _paginate(
    db: AsyncSession,
    model,
    organization_id: str,
    cursor: Optional[str],
    take: int,
    options: Sequence[Any] = (),
) -> Tuple[List[Any], bool, Optional[str]]:
    """
    Newest-first page of an organization's rows.

    The cursor is the id of the last row of the previous page; the page starts
    strictly after it. Returns (rows, has_more, next_cursor).
    """
    take = max(1, min(take, MAX_PAGE_SIZE))

    query = select(model).where(model.organization_id == organization_id)

    if cursor:
        anchor = await db.execute(
            select(model.created_at, model.id).where(
                model.id == cursor,
                model.organization_id == organization_id,
            )
        )
        anchor_row = anchor.first()
        if anchor_row is not None:
            anchor_created, anchor_id = anchor_row
            query = query.where(
                or_(
                    model.created_at < anchor_created,
                    and_(model.created_at == anchor_created, model.id < anchor_id),
                )
            )

    query = query.order_by(model.created_at.desc(), model.id.desc()).limit(take + 1)
    for option in options:
        query = query.options(option)

    result = await db.execute(query)
    rows = list(result.scalars().all())

    has_more = len(rows) > take
    data = rows[:take]
    next_cursor = data[-1].id if has_more else None
    return data, has_more, next_cursor


async def list_invoices(db: AsyncSession, organization_id: str, cursor: Optional[str], take: int):
    return await _paginate(
        db, Invoice, organization_id, cursor, take,
        options=[selectinload(Invoice.client)],
    )


async def list_clients(db: AsyncSession, organization_id: str, cursor: Optional[str], take: int):
    """Client page plus a {client_id: invoice_count} map."""
    clients, has_more, next_cursor = await _paginate(db, Client, organization_id, cursor, take)

    counts: Dict[str, int] = {}
    if clients:
        result = await db.execute(
            select(Invoice.client_id, func.count(Invoice.id))
            .where(Invoice.client_id.in_([c.id for c in clients]))
            .group_by(Invoice.client_id)
        )
        counts = {client_id: count for client_id, count in result.all()}

    return clients, counts, has_more, next_cursor


# =============================================================================
# Activity feed
# =============================================================================

async def get_activity(db: AsyncSession, organization_id: str, limit: int) -> List[Dict[str, Any]]:
    """Latest payments, invoices and recommendations merged newest first."""
    payments = await db.execute(
        select(Payment)
        .join(Invoice, Payment.invoice_id == Invoice.id)
        .where(Invoice.organization_id == organization_id)
        .options(selectinload(Payment.invoice).selectinload(Invoice.client))
        .order_by(Payment.paid_at.desc())
        .limit(limit)
    )
    invoices = await db.execute(
        select(Invoice)
        .where(Invoice.organization_id == organization_id)
        .options(selectinload(Invoice.client))
        .order_by(Invoice.created_at.desc())
        .limit(limit)
    )
    recommendations = await db.execute(
        select(AIRecommendation)
        .where(AIRecommendation.organization_id == organization_id)
        .order_by(AIRecommendation.created_at.desc())
        .limit(limit)
    )

    activity: List[Dict[str, Any]] = []

    for payment in payments.scalars().all():
        client = payment.invoice.client if payment.invoice else None
        activity.append({
            "id": payment.id,
            "type": "payment",
            "title": f"Payment from {client.name if client else 'Unknown Client'}",
            "amount": payment.amount,
            "timestamp": as_utc(payment.paid_at),
        })

    for invoice in invoices.scalars().all():
        client_name = invoice.client.name if invoice.client else "Unknown Client"
        activity.append({
            "id": invoice.id,
            "type": "invoice",
            "title": f"Invoice {invoice.invoice_number} to {client_name}",
            "amount": invoice.amount,
            "timestamp": as_utc(invoice.created_at),
        })

    for rec in recommendations.scalars().all():
        activity.append({
            "id": rec.id,
            "type": "recommendation",
            "title": rec.title,
            "amount": None,
            "timestamp": as_utc(rec.created_at),
        })

    activity.sort(key=lambda item: item["timestamp"], reverse=True)
    return activity[:limit]


# =============================================================================
# Recommendations
# =============================================================================

async def build_recommendation_input(
    db: AsyncSession,
    client: Client,
    open_invoices: Sequence[Invoice],
    now: datetime,
) -> RecommendationInput:
    """Collect the numbers the recommendation engine needs for one client."""
    total_outstanding = sum(inv.outstanding for inv in open_invoices)

    # Ties go to the earliest due date
    by_due_date = sorted(open_invoices, key=lambda inv: (as_utc(inv.due_date), inv.id))
    most_overdue = max(by_due_date, key=lambda inv: days_past_due(inv.due_date, now))

    recent_payments = await db.execute(
        select(Payment.amount)
        .join(Invoice, Payment.invoice_id == Invoice.id)
        .where(Invoice.client_id == client.id)
        .order_by(Payment.paid_at.desc())
        .limit(PAYMENT_HISTORY_WINDOW)
    )
    total_paid = sum(recent_payments.scalars().all())

    paid = await db.execute(
        select(Invoice.paid_at, Invoice.due_date).where(
            Invoice.client_id == client.id,
            Invoice.status == "paid",
        )
    )
    paid_rows = paid.all()
    late = [
        row for row in paid_rows
        if row.paid_at is not None and as_utc(row.paid_at) > as_utc(row.due_date)
    ]
    late_payment_rate = len(late) / len(paid_rows) if paid_rows else 0

    return RecommendationInput(
        client_name=client.name,
        client_score=client.payment_score or DEFAULT_CLIENT_SCORE,
        invoice_amount=most_overdue.outstanding,
        days_past_due=days_past_due(most_overdue.due_date, now),
        total_outstanding=total_outstanding,
        payment_history=PaymentHistorySummary(
            avg_days_to_payment=client.avg_days_to_payment or DEFAULT_AVG_DAYS_TO_PAYMENT,
            late_payment_rate=late_payment_rate,
            total_paid=total_paid,
        ),
    )


async def get_client_recommendations(
    db: AsyncSession,
    organization_id: str,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Recommendations for every client with open invoices.

    Clients without recommendations are left out; the rest are ordered by the
    priority of their first recommendation, most urgent first.
    """
    now = now or utcnow()

    result = await db.execute(
        select(Client)
        .where(Client.organization_id == organization_id)
        .options(selectinload(Client.invoices))
    )
    clients = result.scalars().all()

    grouped = []
    for client in clients:
        open_invoices = [inv for inv in client.invoices if inv.status in OPEN_STATUSES]
        if not open_invoices:
            continue

        data = await build_recommendation_input(db, client, open_invoices, now)
        recommendations = await generate_ai_recommendations(data)
        if recommendations:
            grouped.append({
                "client_id": client.id,
                "client_name": client.name,
                "recommendations": recommendations,
            })

    grouped.sort(key=lambda entry: top_priority_rank(entry["recommendations"]))
    return grouped


# =============================================================================
# Forecast
# =============================================================================

async def get_forecast(db: AsyncSession, organization_id: str, period: str, now: Optional[datetime] = None):
    invoices = await get_open_invoices(db, organization_id)
    return generate_forecast([InvoiceSnapshot.from_model(inv) for inv in invoices], period, now=now)
