"""Pydantic schemas for the Business Chauffeur API."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class InsightResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category: str
    type: str
    title: str
    description: str
    confidence: Optional[float] = None
    action_required: bool
    action_taken: bool
    action_details: Optional[str] = None
    created_at: datetime


class InsightListResponse(BaseModel):
    insights: List[InsightResponse]


class InsightUpdate(BaseModel):
    action_taken: Optional[bool] = None
    action_details: Optional[str] = Field(None, max_length=2000)


class ChauffeurStats(BaseModel):
    """Dashboard totals; revenue and avg_ticket are cents."""
    revenue_today: int = 0
    revenue_this_week: int = 0
    revenue_this_month: int = 0
    transactions_today: int = 0
    avg_ticket: int = 0
    reviews_this_month: int = 0
    avg_rating: Optional[float] = None
    integrations_connected: int = 0


class StatsResponse(BaseModel):
    stats: ChauffeurStats


class IntegrationStatus(BaseModel):
    connected: int
    total: int
    percentage: int
    label: str
    connected_services: List[str]
    available_services: List[str]


class UnifiedResponse(BaseModel):
    health_assessment: Dict[str, Any]
    insights: List[Dict[str, Any]]
    integration_status: IntegrationStatus
