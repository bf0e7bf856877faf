"""Staff-only portal routes: project queue, internal notes and change request triage."""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from simplegrowth.audit import AuditService
from simplegrowth.auth.dependencies import require_admin
from simplegrowth.database import get_db
from simplegrowth.models import ChangeRequest, ProjectNote, User, WebsiteProject
from simplegrowth.portal.schemas import (
    AdminProjectListResponse,
    AdminProjectSummary,
    ChangeRequestResponse,
    ChangeRequestUpdate,
    NoteCreate,
    NoteResponse,
    SingleChangeRequestResponse,
    SingleNoteResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/projects", response_model=AdminProjectListResponse)
async def list_all_projects(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Every project across organizations, highest priority first."""
    result = await db.execute(
        select(WebsiteProject)
        .options(
            selectinload(WebsiteProject.organization),
            selectinload(WebsiteProject.change_requests),
        )
        .order_by(WebsiteProject.priority.desc(), WebsiteProject.created_at.desc())
    )
    return AdminProjectListResponse(
        projects=[AdminProjectSummary.model_validate(p) for p in result.scalars().all()]
    )


@router.post(
    "/projects/{project_id}/notes",
    response_model=SingleNoteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_project_note(
    project_id: str,
    data: NoteCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Attach a note to a project. Notes are internal unless stated otherwise."""
    result = await db.execute(select(WebsiteProject).where(WebsiteProject.id == project_id))
    project = result.scalar_one_or_none()
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    note = ProjectNote(
        project_id=project.id,
        author_id=current_user.id,
        content=data.content,
        is_internal=data.is_internal,
    )
    db.add(note)
    await db.commit()
    await db.refresh(note)

    return SingleNoteResponse(note=NoteResponse.model_validate(note))


@router.patch("/change-requests/{change_request_id}", response_model=SingleChangeRequestResponse)
async def update_change_request(
    change_request_id: str,
    data: ChangeRequestUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Move a change request through its workflow, optionally recording a resolution."""
    result = await db.execute(
        select(ChangeRequest)
        .where(ChangeRequest.id == change_request_id)
        .options(selectinload(ChangeRequest.project))
    )
    change_request = result.scalar_one_or_none()
    if not change_request:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Change request not found")

    changes = {}
    if change_request.status != data.status:
        changes["status"] = (change_request.status, data.status)
    change_request.status = data.status
    if data.resolution is not None:
        changes["resolution"] = (change_request.resolution, data.resolution)
        change_request.resolution = data.resolution

    if changes:
        audit = AuditService(
            db,
            user_id=current_user.id,
            organization_id=change_request.project.organization_id,
            source="admin",
        )
        await audit.log_update("change_request", change_request.id, changes)

    await db.commit()
    await db.refresh(change_request)

    logger.info(f"Change request {change_request.id} set to {data.status}")
    return SingleChangeRequestResponse(change_request=ChangeRequestResponse.model_validate(change_request))
