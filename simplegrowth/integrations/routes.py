"""Integration list and manual sync trigger."""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.audit import AuditService
from simplegrowth.auth.dependencies import get_current_user
from simplegrowth.database import get_db
from simplegrowth.models import Integration, User, utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


class IntegrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    provider: str
    category: Optional[str] = None
    status: str
    last_sync_at: Optional[datetime] = None
    last_sync_status: Optional[str] = None
    sync_error: Optional[str] = None


class IntegrationListResponse(BaseModel):
    integrations: List[IntegrationResponse]


class SyncResponse(BaseModel):
    message: str
    integration: IntegrationResponse


@router.get("", response_model=IntegrationListResponse)
async def list_integrations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Integrations configured for the caller's organization."""
    if not current_user.organization_id:
        return IntegrationListResponse(integrations=[])

    result = await db.execute(
        select(Integration)
        .where(Integration.organization_id == current_user.organization_id)
        .order_by(Integration.provider)
    )
    return IntegrationListResponse(
        integrations=[IntegrationResponse.model_validate(i) for i in result.scalars().all()]
    )


@router.post("/{integration_id}/sync", response_model=SyncResponse)
async def sync_integration(
    integration_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Mark a connected integration as freshly synced.

    Provider data pulls run through their own endpoints (Gusto under
    /payroll/gusto/sync); this records the sync time and clears old errors.
    """
    if not current_user.organization_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No organization found")

    result = await db.execute(
        select(Integration).where(
            Integration.id == integration_id,
            Integration.organization_id == current_user.organization_id,
        )
    )
    integration = result.scalar_one_or_none()
    if not integration:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Integration not found")

    if integration.status != "connected":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Integration is not connected")

    integration.last_sync_at = utcnow()
    integration.last_sync_status = "success"
    integration.sync_error = None

    audit = AuditService(db, user_id=current_user.id, organization_id=current_user.organization_id)
    await audit.log("integration", integration.id, "integration_synced", new_value={"provider": integration.provider})
    await db.commit()

    return SyncResponse(
        message="Sync completed successfully",
        integration=IntegrationResponse.model_validate(integration),
    )
