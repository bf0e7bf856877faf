"""Pydantic schemas for the client portal: projects, change requests, onboarding and leads."""
from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl, field_validator


ProjectType = Literal["new_build", "redesign", "migration"]
ProjectStatus = Literal["submitted", "in_review", "in_progress", "review", "completed", "on_hold"]
ChangeRequestType = Literal["feature", "bug", "content", "design"]
ChangeRequestPriority = Literal["low", "normal", "high", "urgent"]
ChangeRequestStatus = Literal["pending", "approved", "in_progress", "completed", "rejected"]
ProductPlan = Literal["website_management", "cashflow_ai", "cybersecurity", "chauffeur"]


# =============================================================================
# Projects
# =============================================================================

class DesignPreferences(BaseModel):
    style: Optional[str] = None
    colors: Optional[str] = None
    references: Optional[str] = None


class ProjectCreate(BaseModel):
    project_name: str = Field(..., min_length=2)
    project_type: ProjectType
    existing_url: Union[HttpUrl, Literal[""], None] = None
    target_audience: Optional[str] = None
    desired_features: List[str] = Field(default_factory=list)
    design_preferences: Optional[DesignPreferences] = None
    additional_notes: Optional[str] = None


class ProjectUpdate(BaseModel):
    status: Optional[ProjectStatus] = None
    priority: Optional[int] = None
    deployed_url: Optional[str] = None
    repository_url: Optional[str] = None
    deployment_platform: Optional[str] = None
    estimated_completion: Optional[datetime] = None


class ChangeRequestRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: str


class NoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    content: str
    is_internal: bool
    author_id: Optional[str] = None
    created_at: datetime


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    project_name: str
    project_type: str
    existing_url: Optional[str] = None
    target_audience: Optional[str] = None
    desired_features: Optional[List[str]] = None
    design_preferences: Optional[DesignPreferences] = None
    status: str
    priority: int
    deployed_url: Optional[str] = None
    repository_url: Optional[str] = None
    deployment_platform: Optional[str] = None
    estimated_completion: Optional[datetime] = None
    actual_completion: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ProjectSummary(ProjectResponse):
    change_requests: List[ChangeRequestRef] = Field(default_factory=list)


class ProjectListResponse(BaseModel):
    projects: List[ProjectSummary]


class OrganizationRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class ChangeRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    requester_id: Optional[str] = None
    title: str
    description: str
    type: str
    priority: str
    status: str
    resolution: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProjectDetail(ProjectResponse):
    notes: List[NoteResponse] = Field(default_factory=list)
    change_requests: List[ChangeRequestResponse] = Field(default_factory=list)


class ProjectDetailResponse(BaseModel):
    project: ProjectDetail


class SingleProjectResponse(BaseModel):
    project: ProjectResponse


class AdminProjectSummary(ProjectSummary):
    organization: OrganizationRef


class AdminProjectListResponse(BaseModel):
    projects: List[AdminProjectSummary]


# =============================================================================
# Change requests
# =============================================================================

class ChangeRequestCreate(BaseModel):
    title: str = Field(..., min_length=5)
    description: str = Field(..., min_length=20)
    type: ChangeRequestType
    priority: ChangeRequestPriority = "normal"


class ChangeRequestUpdate(BaseModel):
    status: ChangeRequestStatus
    resolution: Optional[str] = None


class ProjectRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_name: str


class ChangeRequestWithProject(ChangeRequestResponse):
    project: ProjectRef


class ChangeRequestListResponse(BaseModel):
    change_requests: List[ChangeRequestWithProject]


class SingleChangeRequestResponse(BaseModel):
    change_request: ChangeRequestResponse


class NoteCreate(BaseModel):
    content: str = Field(..., min_length=1)
    is_internal: bool = True


class SingleNoteResponse(BaseModel):
    note: NoteResponse


# =============================================================================
# Onboarding
# =============================================================================

class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    industry: Optional[str] = None


class OrganizationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    industry: Optional[str] = None
    subscription_tier: str
    subscription_status: str


class SingleOrganizationResponse(BaseModel):
    organization: OrganizationResponse


class ProductSelection(BaseModel):
    products: List[ProductPlan] = Field(default_factory=list)


class ProductSubscription(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    plan: str
    status: str
    trial_end_date: Optional[datetime] = None


class ProductSelectionResponse(BaseModel):
    subscriptions: List[ProductSubscription]


# =============================================================================
# Leads
# =============================================================================

class LeadCreate(BaseModel):
    """Full questionnaire submission."""
    business_name: str = Field(..., min_length=1)
    contact_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    has_website: Literal["yes", "no"]
    website_url: Union[HttpUrl, Literal[""], None] = None
    industry: Optional[str] = None
    challenges: Optional[str] = None


class AnalysisSummary(BaseModel):
    score: Optional[float] = None
    improvements: Optional[int] = None


class QuickLeadCreate(BaseModel):
    """Email-only capture from the URL analyzer."""
    email: EmailStr
    name: Optional[str] = None
    source: Optional[str] = None
    website_url: Optional[str] = None
    analysis_data: Optional[AnalysisSummary] = None


class LeadUpdate(BaseModel):
    status: Optional[str] = None
    notes: Optional[str] = None
    analysis_score: Optional[int] = None
    analysis_data: Optional[str] = None

    @field_validator("status")
    @classmethod
    def status_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("status cannot be blank")
        return v


class LeadResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    business_name: str
    contact_name: str
    email: str
    phone: Optional[str] = None
    has_website: bool
    website_url: Optional[str] = None
    industry: Optional[str] = None
    challenges: Optional[str] = None
    status: str
    notes: Optional[str] = None
    analysis_score: Optional[int] = None
    analysis_data: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SingleLeadResponse(BaseModel):
    lead: LeadResponse


class LeadListResponse(BaseModel):
    leads: List[LeadResponse]
