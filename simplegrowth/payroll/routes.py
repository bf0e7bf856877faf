"""Payroll API routes.

Endpoints:
- POST /payroll - Record a manually entered pay period
- GET /payroll - Payroll overview and recent periods
- GET /payroll/gusto/connect - Start the Gusto OAuth flow
- GET /payroll/gusto/callback - OAuth callback
- POST /payroll/gusto/sync - Pull employees and processed payrolls from Gusto
"""
from datetime import timedelta
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.audit import AuditService
from simplegrowth.auth.dependencies import get_current_user, require_organization
from simplegrowth.config import settings
from simplegrowth.database import get_db
from simplegrowth.models import Integration, OAuthState, User, as_utc, utcnow
from simplegrowth.payroll import gusto, service
from simplegrowth.payroll.schemas import (
    GustoConnectResponse,
    GustoSyncResponse,
    PayrollCreate,
    PayrollCreateResponse,
    PayrollOverview,
    SnapshotSummary,
    SyncResultOut,
)

logger = logging.getLogger(__name__)

router = APIRouter()

OAUTH_STATE_EXPIRY_MINUTES = 10


@router.post("", response_model=PayrollCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_payroll(
    data: PayrollCreate,
    current_user: User = Depends(get_current_user),
    organization_id: str = Depends(require_organization),
    db: AsyncSession = Depends(get_db),
):
    """Record a pay period entered by hand."""
    try:
        snapshot = await service.create_manual_snapshot(db, organization_id, data)
        audit = AuditService(db, user_id=current_user.id, organization_id=organization_id)
        await audit.log(
            "payroll", snapshot.id, "payroll_recorded",
            new_value={"total_gross_pay": snapshot.total_gross_pay, "employee_count": snapshot.employee_count},
        )
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception(f"Failed to record payroll for {organization_id}")
        raise HTTPException(status_code=500, detail="Failed to create payroll entry")

    return PayrollCreateResponse(snapshot=SnapshotSummary.model_validate(snapshot))


@router.get("", response_model=PayrollOverview)
async def get_payroll(
    organization_id: str = Depends(require_organization),
    db: AsyncSession = Depends(get_db),
):
    """Current period totals, trends against the previous period and the last 12 periods."""
    try:
        return await service.get_overview(db, organization_id)
    except Exception:
        logger.exception(f"Failed to load payroll for {organization_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch payroll data")


# ============================================================================
# GUSTO
# ============================================================================

async def _get_gusto_integration(db: AsyncSession, organization_id: str):
    result = await db.execute(
        select(Integration).where(
            Integration.organization_id == organization_id,
            Integration.provider == "gusto",
        )
    )
    return result.scalars().first()


async def cleanup_expired_oauth_states(db: AsyncSession) -> None:
    """Remove expired OAuth states. Runs inside the caller's transaction."""
    await db.execute(delete(OAuthState).where(OAuthState.expires_at < utcnow()))


@router.get("/gusto/connect", response_model=GustoConnectResponse)
async def connect_gusto(
    organization_id: str = Depends(require_organization),
    db: AsyncSession = Depends(get_db),
):
    """Return the Gusto authorization URL to redirect the user to."""
    if not gusto.is_configured():
        raise HTTPException(
            status_code=500,
            detail="Gusto credentials not configured. Please set GUSTO_CLIENT_ID and GUSTO_CLIENT_SECRET.",
        )

    await cleanup_expired_oauth_states(db)

    state = gusto.generate_state()
    db.add(OAuthState(
        state=state,
        organization_id=organization_id,
        provider="gusto",
        expires_at=utcnow() + timedelta(minutes=OAUTH_STATE_EXPIRY_MINUTES),
    ))
    await db.commit()

    return GustoConnectResponse(authorization_url=gusto.get_authorization_url(state))


@router.get("/gusto/callback")
async def gusto_callback(
    code: str = Query(...),
    state: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """
    Exchange the authorization code and store the connection.

    Called by Gusto, so there is no bearer token; the one-time state row
    identifies the organization.
    """
    result = await db.execute(
        select(OAuthState).where(OAuthState.state == state, OAuthState.provider == "gusto")
    )
    state_record = result.scalar_one_or_none()
    if state_record is None:
        logger.warning(f"Gusto callback with unknown state: {state[:20]}...")
        raise HTTPException(status_code=400, detail="Invalid or expired state parameter")

    organization_id = state_record.organization_id
    expired = as_utc(state_record.expires_at) < utcnow()

    # One-time use
    await db.delete(state_record)
    await db.commit()

    if expired:
        logger.warning(f"Gusto callback with expired state for {organization_id}")
        raise HTTPException(status_code=400, detail="OAuth state has expired. Please try connecting again.")

    try:
        tokens = await gusto.exchange_code_for_tokens(code)
        company_id = await gusto.GustoClient(tokens.access_token).get_company_id()
    except Exception:
        logger.exception(f"Gusto authorization failed for {organization_id}")
        return RedirectResponse(url=f"{settings.FRONTEND_URL}/dashboard/payroll?gusto=error")

    integration = await _get_gusto_integration(db, organization_id)
    if integration is None:
        integration = Integration(organization_id=organization_id, provider="gusto", category="payroll")
        db.add(integration)

    integration.status = "connected"
    integration.external_id = company_id
    integration.access_token = tokens.access_token
    integration.refresh_token = tokens.refresh_token
    integration.token_expires_at = tokens.expires_at
    integration.sync_error = None
    await db.flush()

    audit = AuditService(db, organization_id=organization_id, source="gusto_sync")
    await audit.log("integration", integration.id, "integration_connected", new_value={"provider": "gusto"})
    await db.commit()

    return RedirectResponse(url=f"{settings.FRONTEND_URL}/dashboard/payroll?gusto=connected")


@router.post("/gusto/sync", response_model=GustoSyncResponse)
async def sync_gusto(
    organization_id: str = Depends(require_organization),
    db: AsyncSession = Depends(get_db),
):
    """Pull employees then processed payrolls. Partial failures are reported, not raised."""
    integration = await _get_gusto_integration(db, organization_id)
    if not integration or integration.status != "connected" or not integration.external_id:
        raise HTTPException(status_code=400, detail="Gusto is not connected")

    if gusto.token_needs_refresh(integration.token_expires_at):
        try:
            tokens = await gusto.refresh_access_token(integration.refresh_token)
        except Exception as e:
            logger.warning(f"Gusto token refresh failed for {organization_id}: {e}")
            integration.status = "error"
            integration.sync_error = f"Token refresh failed: {e}"
            await db.commit()
            raise HTTPException(status_code=400, detail="Gusto authorization expired. Please reconnect.")
        integration.access_token = tokens.access_token
        integration.refresh_token = tokens.refresh_token
        integration.token_expires_at = tokens.expires_at

    client = gusto.GustoClient(integration.access_token)
    employees = await gusto.sync_employees_from_gusto(db, client, integration.external_id, organization_id)
    payrolls = await gusto.sync_payrolls_from_gusto(db, client, integration.external_id, organization_id)

    errors = employees.errors + payrolls.errors
    integration.last_sync_at = utcnow()
    integration.last_sync_status = "partial" if errors else "success"
    integration.sync_error = "; ".join(errors) if errors else None
    await db.commit()

    logger.info(
        f"Gusto sync for {organization_id}: {employees.synced} employees, {payrolls.synced} payrolls, "
        f"{len(errors)} errors"
    )
    return GustoSyncResponse(
        employees=SyncResultOut(
            synced=employees.synced,
            created=employees.created,
            updated=employees.updated,
            errors=employees.errors,
        ),
        payrolls=SyncResultOut(synced=payrolls.synced, created=payrolls.created, errors=payrolls.errors),
    )
