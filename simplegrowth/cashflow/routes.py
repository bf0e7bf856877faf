"""Cash flow API routes: dashboard stats, receivables lists, activity, recommendations and invoice analysis."""
import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from simplegrowth.audit import AuditService
from simplegrowth.auth.dependencies import get_current_user, require_organization
from simplegrowth.cashflow import analyzer, service
from simplegrowth.cashflow.schemas import (
    ActivityItem,
    ActivityResponse,
    AnalysisResponse,
    AnalysisSummaryOut,
    CashflowStats,
    ClientListResponse,
    ClientRecommendations,
    ClientResponse,
    ForecastBreakdownOut,
    ForecastResponse,
    InvoiceAnalysisOut,
    InvoiceListResponse,
    InvoiceResponse,
    Pagination,
    RecommendationOut,
    RecommendationsResponse,
    ReminderResponse,
    StatsResponse,
    StoredAnalysisResponse,
)
from simplegrowth.database import get_db
from simplegrowth.insights.disclaimers import get_disclaimer
from simplegrowth.middleware.rate_limit import limiter, LIMITS
from simplegrowth.models import Invoice, User, as_utc, utcnow
from simplegrowth.notifications import EmailService, get_email_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Dashboard statistics for the caller's organization.

    Users without an organization get zeroed stats with a neutral health score of 50.
    """
    if not current_user.organization_id:
        return StatsResponse(stats=CashflowStats())

    try:
        stats = await service.calculate_stats(db, current_user.organization_id)
    except Exception:
        logger.exception("Failed to calculate cash flow stats")
        raise HTTPException(status_code=500, detail="Failed to fetch stats")
    return StatsResponse(stats=stats)


@router.get("/invoices", response_model=InvoiceListResponse)
async def list_invoices(
    cursor: Optional[str] = Query(None, description="Id of the last invoice on the previous page"),
    take: int = Query(20, ge=1, description="Page size (capped at 100)"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Invoices newest first, each with its client's id and name."""
    if not current_user.organization_id:
        return InvoiceListResponse(data=[], pagination=Pagination())

    invoices, has_more, next_cursor = await service.list_invoices(
        db, current_user.organization_id, cursor, take
    )
    return InvoiceListResponse(
        data=[InvoiceResponse.model_validate(inv) for inv in invoices],
        pagination=Pagination(has_more=has_more, next_cursor=next_cursor),
    )


@router.get("/clients", response_model=ClientListResponse)
async def list_clients(
    cursor: Optional[str] = Query(None, description="Id of the last client on the previous page"),
    take: int = Query(20, ge=1, description="Page size (capped at 100)"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Clients newest first, each with its invoice count."""
    if not current_user.organization_id:
        return ClientListResponse(data=[], pagination=Pagination())

    clients, counts, has_more, next_cursor = await service.list_clients(
        db, current_user.organization_id, cursor, take
    )
    data = []
    for client in clients:
        item = ClientResponse.model_validate(client)
        item.invoice_count = counts.get(client.id, 0)
        data.append(item)

    return ClientListResponse(
        data=data,
        pagination=Pagination(has_more=has_more, next_cursor=next_cursor),
    )


@router.get("/activity", response_model=ActivityResponse)
async def get_activity(
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Recent payments, invoices and recommendations, newest first."""
    if not current_user.organization_id:
        return ActivityResponse(activity=[])

    try:
        items = await service.get_activity(db, current_user.organization_id, limit)
    except Exception:
        logger.exception("Failed to fetch cash flow activity")
        raise HTTPException(status_code=500, detail="Failed to fetch activity")
    return ActivityResponse(activity=[ActivityItem(**item) for item in items])


@router.get("/recommendations", response_model=RecommendationsResponse)
@limiter.limit(LIMITS["ai"])
async def get_recommendations(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Collection recommendations for every client with open invoices.

    Uses the AI engine when configured, otherwise the rule-based engine.
    Clients are ordered by the priority of their top recommendation.
    Users without an organization get an empty list.
    """
    if not current_user.organization_id:
        return RecommendationsResponse(recommendations=[], total_clients=0, total_recommendations=0)

    try:
        grouped = await service.get_client_recommendations(db, current_user.organization_id)
    except Exception:
        logger.exception("Failed to generate recommendations")
        raise HTTPException(status_code=500, detail="Failed to generate recommendations")

    entries = [
        ClientRecommendations(
            client_id=entry["client_id"],
            client_name=entry["client_name"],
            recommendations=[RecommendationOut(**rec.to_dict()) for rec in entry["recommendations"]],
        )
        for entry in grouped
    ]
    return RecommendationsResponse(
        recommendations=entries,
        total_clients=len(entries),
        total_recommendations=sum(len(entry.recommendations) for entry in entries),
    )


@router.get("/forecast", response_model=ForecastResponse)
async def get_forecast(
    period: str = Query("30d", pattern="^(30d|60d|90d)$"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Projected receivables inflow over the next 30, 60 or 90 days. Zero for users without an organization."""
    if not current_user.organization_id:
        return ForecastResponse(
            period=period,
            projected_inflow=0,
            projected_outflow=0,
            net_cash_flow=0,
            confidence=0.0,
            breakdown=ForecastBreakdownOut(high_confidence=0, medium_confidence=0, low_confidence=0),
            disclaimer=get_disclaimer("forecast"),
        )

    forecast = await service.get_forecast(db, current_user.organization_id, period)
    return ForecastResponse(**forecast.to_dict(), disclaimer=get_disclaimer("forecast"))


@router.post("/analyze", response_model=AnalysisResponse)
async def run_receivables_analysis(
    current_user: User = Depends(get_current_user),
    organization_id: str = Depends(require_organization),
    db: AsyncSession = Depends(get_db),
):
    """
    Analyze every open invoice and store risk, recovery likelihood,
    predicted payment date and urgency on it.

    Clients with paid history are rescored first. Invoices come back most
    urgent first with their recommended collection steps.
    """
    try:
        summary, analyses = await analyzer.analyze_receivables(db, organization_id)
        audit = AuditService(db, user_id=current_user.id, organization_id=organization_id)
        await audit.log(
            "organization", organization_id, "receivables_analyzed",
            extra_data=asdict(summary),
        )
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception(f"Receivables analysis failed for {organization_id}")
        raise HTTPException(status_code=500, detail="Failed to analyze invoices")

    return AnalysisResponse(
        summary=AnalysisSummaryOut(**asdict(summary)),
        invoices=[InvoiceAnalysisOut(**analysis.to_dict()) for analysis in analyses],
    )


@router.get("/analyze", response_model=StoredAnalysisResponse)
async def get_receivables_analysis(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Open invoices with their stored analysis, most urgent first. Invoices never analyzed come last."""
    if not current_user.organization_id:
        return StoredAnalysisResponse(invoices=[])

    result = await db.execute(
        select(Invoice)
        .where(
            Invoice.organization_id == current_user.organization_id,
            Invoice.status.in_(service.OPEN_STATUSES),
        )
        .options(selectinload(Invoice.client))
    )
    invoices = sorted(
        result.scalars().all(),
        key=lambda inv: (inv.urgency_score is None, -(inv.urgency_score or 0), as_utc(inv.due_date)),
    )
    analyzed = [as_utc(inv.analyzed_at) for inv in invoices if inv.analyzed_at is not None]
    return StoredAnalysisResponse(
        analyzed_at=max(analyzed) if analyzed else None,
        invoices=[InvoiceResponse.model_validate(inv) for inv in invoices],
    )


@router.post("/invoices/{invoice_id}/remind", response_model=ReminderResponse)
async def send_invoice_reminder(
    invoice_id: str,
    current_user: User = Depends(get_current_user),
    organization_id: str = Depends(require_organization),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    """Email the client a payment reminder for one open invoice."""
    result = await db.execute(
        select(Invoice)
        .where(Invoice.id == invoice_id, Invoice.organization_id == organization_id)
        .options(selectinload(Invoice.client))
    )
    invoice = result.scalar_one_or_none()
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")

    if invoice.status not in service.OPEN_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invoice is not open")

    if not invoice.client or not invoice.client.email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Client has no email address")

    days_overdue = service.days_past_due(invoice.due_date, utcnow())
    sent = await email_service.send_invoice_reminder_email(
        invoice.client.email,
        invoice.client.name,
        invoice.invoice_number,
        invoice.outstanding,
        invoice.due_date.strftime("%B %d, %Y"),
        days_overdue,
    )

    audit = AuditService(db, user_id=current_user.id, organization_id=organization_id)
    await audit.log(
        "invoice",
        invoice.id,
        "reminder_sent" if sent.success else "reminder_failed",
        extra_data={"days_overdue": days_overdue, "to": invoice.client.email},
    )
    await db.commit()

    if not sent.success:
        return ReminderResponse(success=False, message="Reminder could not be delivered", days_overdue=days_overdue)
    return ReminderResponse(success=True, message="Reminder sent", days_overdue=days_overdue)
