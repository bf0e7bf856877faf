"""Business Chauffeur API routes: stored insights, dashboard stats and the unified view."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.audit import AuditService
from simplegrowth.auth.dependencies import get_current_user, require_organization
from simplegrowth.chauffeur import service
from simplegrowth.chauffeur.schemas import (
    ChauffeurStats,
    InsightListResponse,
    InsightResponse,
    InsightUpdate,
    IntegrationStatus,
    StatsResponse,
    UnifiedResponse,
)
from simplegrowth.database import get_db
from simplegrowth.insights.unified import (
    SUPPORTED_SYSTEMS,
    generate_health_assessment,
    generate_unified_ai_insights,
    get_integration_status,
)
from simplegrowth.middleware.rate_limit import limiter, LIMITS
from simplegrowth.models import BusinessInsight, User

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_INSIGHTS = 50


def _display_name(provider: str) -> str:
    return provider.replace("_", " ").title()


@router.get("/insights", response_model=InsightListResponse)
async def list_insights(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Latest 50 insights, ones needing action first."""
    if not current_user.organization_id:
        return InsightListResponse(insights=[])

    result = await db.execute(
        select(BusinessInsight)
        .where(BusinessInsight.organization_id == current_user.organization_id)
        .order_by(BusinessInsight.action_required.desc(), BusinessInsight.created_at.desc())
        .limit(MAX_INSIGHTS)
    )
    return InsightListResponse(
        insights=[InsightResponse.model_validate(i) for i in result.scalars().all()]
    )


@router.patch("/insights/{insight_id}", response_model=InsightResponse)
async def update_insight(
    insight_id: str,
    data: InsightUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark an insight as actioned and record what was done."""
    if not current_user.organization_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No organization found")

    result = await db.execute(
        select(BusinessInsight).where(
            BusinessInsight.id == insight_id,
            BusinessInsight.organization_id == current_user.organization_id,
        )
    )
    insight = result.scalar_one_or_none()
    if not insight:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Insight not found")

    changes = {}
    if data.action_taken is not None and data.action_taken != insight.action_taken:
        changes["action_taken"] = (insight.action_taken, data.action_taken)
        insight.action_taken = data.action_taken
    if data.action_details:
        changes["action_details"] = (insight.action_details, data.action_details)
        insight.action_details = data.action_details

    if changes:
        audit = AuditService(db, user_id=current_user.id, organization_id=current_user.organization_id)
        await audit.log_update("insight", insight.id, changes)

    await db.commit()
    await db.refresh(insight)
    return InsightResponse.model_validate(insight)


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Revenue, transactions, reviews and connected integrations for the dashboard."""
    if not current_user.organization_id:
        return StatsResponse(stats=ChauffeurStats())

    try:
        stats = await service.calculate_stats(db, current_user.organization_id)
    except Exception:
        logger.exception("Failed to fetch chauffeur stats")
        raise HTTPException(status_code=500, detail="Failed to fetch stats")
    return StatsResponse(stats=stats)


@router.get("/unified", response_model=UnifiedResponse)
@limiter.limit(LIMITS["ai"])
async def get_unified_view(
    request: Request,
    organization_id: str = Depends(require_organization),
    db: AsyncSession = Depends(get_db),
):
    """
    Health assessment, cross-system insights and integration coverage.

    Insights come from the model when configured, otherwise from the
    cross-system rules.
    """
    try:
        data = await service.build_cross_system_data(db, organization_id)
        assessment = generate_health_assessment(data)
        insights = await generate_unified_ai_insights(data)
        providers = await service.get_connected_providers(db, organization_id)
    except Exception:
        logger.exception("Failed to build unified view")
        raise HTTPException(status_code=500, detail="Failed to build unified view")

    connected = [p for p in providers if p in SUPPORTED_SYSTEMS]
    coverage = get_integration_status(connected)

    return UnifiedResponse(
        health_assessment=assessment.to_dict(),
        insights=[insight.to_dict() for insight in insights],
        integration_status=IntegrationStatus(
            **coverage,
            connected_services=[_display_name(p) for p in connected],
            available_services=[_display_name(p) for p in SUPPORTED_SYSTEMS if p not in connected],
        ),
    )
