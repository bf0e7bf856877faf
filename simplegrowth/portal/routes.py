"""Client portal routes: website projects and change requests."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from simplegrowth.audit import AuditService
from simplegrowth.auth.dependencies import get_current_user, require_admin
from simplegrowth.database import get_db
from simplegrowth.models import ChangeRequest, Organization, ProjectNote, User, WebsiteProject, utcnow
from simplegrowth.portal.schemas import (
    ChangeRequestCreate,
    ChangeRequestListResponse,
    ChangeRequestResponse,
    ChangeRequestWithProject,
    NoteResponse,
    ProjectCreate,
    ProjectDetail,
    ProjectDetailResponse,
    ProjectListResponse,
    ProjectResponse,
    ProjectSummary,
    ProjectUpdate,
    SingleChangeRequestResponse,
    SingleProjectResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_accessible_project(
    db: AsyncSession,
    project_id: str,
    user: User,
    with_details: bool = False,
) -> WebsiteProject:
    """
    Load a project the user may see.

    Admins see every project; everyone else only their organization's.
    Raises 404 when missing and 403 for another organization's project.
    """
    query = select(WebsiteProject).where(WebsiteProject.id == project_id)
    if with_details:
        query = query.options(
            selectinload(WebsiteProject.notes),
            selectinload(WebsiteProject.change_requests),
        )
    result = await db.execute(query)
    project = result.scalar_one_or_none()

    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    if not user.is_admin and project.organization_id != user.organization_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    return project


# =============================================================================
# Projects
# =============================================================================

@router.get("/projects", response_model=ProjectListResponse)
async def list_projects(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's organization projects, newest first, with change request statuses."""
    if not current_user.organization_id:
        return ProjectListResponse(projects=[])

    result = await db.execute(
        select(WebsiteProject)
        .where(WebsiteProject.organization_id == current_user.organization_id)
        .options(selectinload(WebsiteProject.change_requests))
        .order_by(WebsiteProject.created_at.desc())
    )
    return ProjectListResponse(
        projects=[ProjectSummary.model_validate(p) for p in result.scalars().all()]
    )


@router.post("/projects", response_model=SingleProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Submit a new website project.

    A user without an organization gets one named after the project, so the
    first submission creates exactly one organization and one project.
    Additional notes become a note visible to the client.
    """
    organization_id = current_user.organization_id
    audit = AuditService(db, user_id=current_user.id)

    if not organization_id:
        organization = Organization(name=f"{data.project_name} Organization")
        db.add(organization)
        await db.flush()
        current_user.organization_id = organization.id
        organization_id = organization.id
        await audit.log(
            "organization", organization.id, "organization_created",
            new_value={"name": organization.name},
        )

    audit.organization_id = organization_id

    project = WebsiteProject(
        organization_id=organization_id,
        project_name=data.project_name,
        project_type=data.project_type,
        existing_url=str(data.existing_url) if data.existing_url else None,
        target_audience=data.target_audience,
        desired_features=data.desired_features,
        design_preferences=data.design_preferences.model_dump() if data.design_preferences else None,
        status="submitted",
    )
    db.add(project)
    await db.flush()

    if data.additional_notes:
        db.add(ProjectNote(
            project_id=project.id,
            author_id=current_user.id,
            content=data.additional_notes,
            is_internal=False,
        ))

    await audit.log(
        "project", project.id, "project_created",
        new_value={"project_name": project.project_name, "project_type": project.project_type},
    )
    await db.commit()
    await db.refresh(project)

    logger.info(f"Project {project.id} submitted by user {current_user.id}")
    return SingleProjectResponse(project=ProjectResponse.model_validate(project))


@router.get("/projects/{project_id}", response_model=ProjectDetailResponse)
async def get_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Project with its notes and change requests. Internal notes are admin-only."""
    project = await get_accessible_project(db, project_id, current_user, with_details=True)

    notes = sorted(project.notes, key=lambda n: n.created_at, reverse=True)
    if not current_user.is_admin:
        notes = [n for n in notes if not n.is_internal]
    change_requests = sorted(project.change_requests, key=lambda c: c.created_at, reverse=True)

    base = ProjectResponse.model_validate(project)
    detail = ProjectDetail(
        **base.model_dump(),
        notes=[NoteResponse.model_validate(n) for n in notes],
        change_requests=[ChangeRequestResponse.model_validate(c) for c in change_requests],
    )
    return ProjectDetailResponse(project=detail)


@router.patch("/projects/{project_id}", response_model=SingleProjectResponse)
async def update_project(
    project_id: str,
    data: ProjectUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Update delivery fields of a project (admin only). Completing it stamps actual_completion."""
    project = await get_accessible_project(db, project_id, current_user)

    updates = data.model_dump(exclude_unset=True)
    changes = {}
    for field, value in updates.items():
        old = getattr(project, field)
        if old != value:
            changes[field] = (
                old.isoformat() if hasattr(old, "isoformat") else old,
                value.isoformat() if hasattr(value, "isoformat") else value,
            )
        setattr(project, field, value)

    if updates.get("status") == "completed":
        project.actual_completion = utcnow()

    if changes:
        audit = AuditService(db, user_id=current_user.id, organization_id=project.organization_id, source="admin")
        await audit.log_update("project", project.id, changes)

    await db.commit()
    await db.refresh(project)
    return SingleProjectResponse(project=ProjectResponse.model_validate(project))


# =============================================================================
# Change requests
# =============================================================================

@router.post(
    "/projects/{project_id}/change-requests",
    response_model=SingleChangeRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_change_request(
    project_id: str,
    data: ChangeRequestCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Ask for a change on a project the caller can access."""
    project = await get_accessible_project(db, project_id, current_user)

    change_request = ChangeRequest(
        project_id=project.id,
        requester_id=current_user.id,
        title=data.title,
        description=data.description,
        type=data.type,
        priority=data.priority,
        status="pending",
    )
    db.add(change_request)
    await db.flush()

    audit = AuditService(db, user_id=current_user.id, organization_id=project.organization_id)
    await audit.log(
        "change_request", change_request.id, "change_request_created",
        new_value={"title": data.title, "type": data.type, "priority": data.priority},
    )
    await db.commit()
    await db.refresh(change_request)

    return SingleChangeRequestResponse(change_request=ChangeRequestResponse.model_validate(change_request))


@router.get("/change-requests", response_model=ChangeRequestListResponse)
async def list_change_requests(
    limit: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Recent change requests: all of them for admins, the caller's organization otherwise."""
    query = (
        select(ChangeRequest)
        .options(selectinload(ChangeRequest.project))
        .order_by(ChangeRequest.created_at.desc())
        .limit(limit)
    )

    if not current_user.is_admin:
        if not current_user.organization_id:
            return ChangeRequestListResponse(change_requests=[])
        query = query.join(WebsiteProject, ChangeRequest.project_id == WebsiteProject.id).where(
            WebsiteProject.organization_id == current_user.organization_id
        )

    result = await db.execute(query)
    return ChangeRequestListResponse(
        change_requests=[ChangeRequestWithProject.model_validate(c) for c in result.scalars().all()]
    )
