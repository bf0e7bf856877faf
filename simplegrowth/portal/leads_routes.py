"""Lead capture routes: the public questionnaire and URL analyzer, plus the admin lead inbox."""
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.audit import AuditService
from simplegrowth.auth.dependencies import require_admin
from simplegrowth.database import get_db
from simplegrowth.models import Lead, User
from simplegrowth.portal.schemas import (
    LeadCreate,
    LeadListResponse,
    LeadResponse,
    LeadUpdate,
    QuickLeadCreate,
    SingleLeadResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

URL_ANALYZER_SOURCE = "url-analyzer"
DEFAULT_QUICK_BUSINESS_NAME = "Website Analysis Lead"
DEFAULT_QUICK_CONTACT_NAME = "Website Visitor"


def is_quick_capture(body: Dict[str, Any]) -> bool:
    """URL analyzer submissions carry only an email and the analysis summary."""
    return body.get("source") == URL_ANALYZER_SOURCE or (
        not body.get("business_name") and bool(body.get("email"))
    )


def business_name_from_url(website_url: Optional[str]) -> str:
    """Hostname without a leading www, or a placeholder when the URL is unusable."""
    if not website_url:
        return DEFAULT_QUICK_BUSINESS_NAME
    candidate = website_url if website_url.startswith("http") else f"https://{website_url}"
    try:
        hostname = urlparse(candidate).hostname
    except ValueError:
        return DEFAULT_QUICK_BUSINESS_NAME
    if not hostname:
        return DEFAULT_QUICK_BUSINESS_NAME
    return hostname.replace("www.", "", 1)


def build_quick_challenges(data: QuickLeadCreate) -> str:
    challenges = f"Source: {data.source or URL_ANALYZER_SOURCE}"
    if data.analysis_data:
        if data.analysis_data.score is not None:
            score = data.analysis_data.score
            challenges += f" | Website Score: {int(score) if float(score).is_integer() else score}/100"
        if data.analysis_data.improvements is not None:
            challenges += f" | {data.analysis_data.improvements} improvements identified"
    return challenges


def _validate(model, body: Dict[str, Any]):
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))


@router.post("", response_model=SingleLeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    body: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
):
    """
    Capture a lead. Public.

    Accepts either the full questionnaire or a quick capture from the URL
    analyzer, which only needs an email.
    """
    if is_quick_capture(body):
        quick = _validate(QuickLeadCreate, body)
        lead = Lead(
            business_name=business_name_from_url(quick.website_url),
            contact_name=quick.name or DEFAULT_QUICK_CONTACT_NAME,
            email=quick.email,
            phone=None,
            has_website=bool(quick.website_url),
            website_url=quick.website_url or None,
            industry=None,
            challenges=build_quick_challenges(quick),
        )
    else:
        full = _validate(LeadCreate, body)
        lead = Lead(
            business_name=full.business_name,
            contact_name=full.contact_name,
            email=full.email,
            phone=full.phone or None,
            has_website=full.has_website == "yes",
            website_url=str(full.website_url) if full.website_url else None,
            industry=full.industry or None,
            challenges=full.challenges or None,
        )

    db.add(lead)
    await db.flush()

    audit = AuditService(db)
    await audit.log("lead", lead.id, "lead_created", new_value={"email": lead.email, "business_name": lead.business_name})

    await db.commit()
    await db.refresh(lead)

    logger.info(f"Captured lead {lead.id} ({lead.business_name})")
    return SingleLeadResponse(lead=LeadResponse.model_validate(lead))


@router.get("", response_model=LeadListResponse)
async def list_leads(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All leads, newest first."""
    result = await db.execute(select(Lead).order_by(Lead.created_at.desc()))
    return LeadListResponse(leads=[LeadResponse.model_validate(lead) for lead in result.scalars().all()])


async def _get_lead(db: AsyncSession, lead_id: str) -> Lead:
    result = await db.execute(select(Lead).where(Lead.id == lead_id))
    lead = result.scalar_one_or_none()
    if not lead:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
    return lead


@router.get("/{lead_id}", response_model=SingleLeadResponse)
async def get_lead(
    lead_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    lead = await _get_lead(db, lead_id)
    return SingleLeadResponse(lead=LeadResponse.model_validate(lead))


@router.patch("/{lead_id}", response_model=SingleLeadResponse)
async def update_lead(
    lead_id: str,
    data: LeadUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Update follow-up status, notes or the stored website analysis."""
    lead = await _get_lead(db, lead_id)

    changes = {}
    for field, value in data.model_dump(exclude_unset=True).items():
        old = getattr(lead, field)
        if old != value:
            changes[field] = (old, value)
        setattr(lead, field, value)

    if changes:
        audit = AuditService(db, user_id=current_user.id, source="admin")
        await audit.log_update("lead", lead.id, changes)

    await db.commit()
    await db.refresh(lead)
    return SingleLeadResponse(lead=LeadResponse.model_validate(lead))
