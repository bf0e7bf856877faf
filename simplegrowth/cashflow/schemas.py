"""Pydantic schemas for the cash flow API. Money fields are integer cents."""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict


# =============================================================================
# Dashboard stats
# =============================================================================

class CashflowStats(BaseModel):
    total_receivables: int = 0
    overdue_receivables: int = 0
    collected_this_month: int = 0
    projected_inflow_30d: int = 0
    health_score: int = 50
    overdue_invoices: int = 0
    total_clients: int = 0
    pending_recommendations: int = 0


class StatsResponse(BaseModel):
    stats: CashflowStats


# =============================================================================
# Lists
# =============================================================================

class Pagination(BaseModel):
    has_more: bool = False
    next_cursor: Optional[str] = None


class ClientRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: Optional[str] = None
    invoice_number: str
    amount: int
    amount_paid: int
    issue_date: Optional[datetime] = None
    due_date: datetime
    paid_at: Optional[datetime] = None
    status: str
    recovery_likelihood: Optional[float] = None
    predicted_payment_date: Optional[datetime] = None
    risk_level: Optional[str] = None
    urgency_score: Optional[int] = None
    analyzed_at: Optional[datetime] = None
    source: str
    created_at: datetime
    client: Optional[ClientRef] = None


class InvoiceListResponse(BaseModel):
    data: List[InvoiceResponse]
    pagination: Pagination


class ClientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    industry: Optional[str] = None
    payment_score: Optional[int] = None
    avg_days_to_payment: Optional[float] = None
    risk_level: Optional[str] = None
    total_invoiced: int
    total_paid: int
    total_outstanding: int
    created_at: datetime
    invoice_count: int = 0


class ClientListResponse(BaseModel):
    data: List[ClientResponse]
    pagination: Pagination


# =============================================================================
# Activity feed
# =============================================================================

class ActivityItem(BaseModel):
    id: str
    type: Literal["payment", "invoice", "recommendation"]
    title: str
    amount: Optional[int] = None
    timestamp: datetime


class ActivityResponse(BaseModel):
    activity: List[ActivityItem]


# =============================================================================
# Recommendations
# =============================================================================

class RecommendationOut(BaseModel):
    type: str
    title: str
    description: str
    priority: str
    actions: List[str]
    reasoning: str
    confidence: float
    disclaimer: str
    is_educational: bool


class ClientRecommendations(BaseModel):
    client_id: str
    client_name: str
    recommendations: List[RecommendationOut]


class RecommendationsResponse(BaseModel):
    recommendations: List[ClientRecommendations]
    total_clients: int
    total_recommendations: int


# =============================================================================
# Forecast
# =============================================================================

class ForecastBreakdownOut(BaseModel):
    high_confidence: int
    medium_confidence: int
    low_confidence: int


class ForecastResponse(BaseModel):
    period: str
    projected_inflow: int
    projected_outflow: int
    net_cash_flow: int
    confidence: float
    breakdown: ForecastBreakdownOut
    disclaimer: str


class ReminderResponse(BaseModel):
    success: bool
    message: str
    days_overdue: int


# =============================================================================
# Receivables analysis
# =============================================================================

class IncentiveOut(BaseModel):
    type: str
    expires_at: datetime
    reason: str
    discount_percent: Optional[int] = None
    discount_amount: Optional[int] = None
    payment_plan_months: Optional[int] = None
    payment_plan_amount: Optional[int] = None


class RecommendedActionOut(BaseModel):
    type: str
    priority: int
    scheduled_for: datetime
    message: str
    reasoning: str
    expected_response_rate: float
    incentive: Optional[IncentiveOut] = None


class InvoiceAnalysisOut(BaseModel):
    invoice_id: str
    invoice_number: str
    client_id: Optional[str] = None
    client_name: str
    amount_due: int
    due_date: datetime
    days_overdue: int
    days_to_due: int
    client_payment_score: int
    risk_level: str
    recovery_likelihood: float
    predicted_payment_date: datetime
    urgency_score: int
    recommended_actions: List[RecommendedActionOut]


class AnalysisSummaryOut(BaseModel):
    total_invoices: int = 0
    total_at_risk: int = 0
    projected_recovery: int = 0
    projected_fee: int = 0
    clients_rescored: int = 0


class AnalysisResponse(BaseModel):
    summary: AnalysisSummaryOut
    invoices: List[InvoiceAnalysisOut]


class StoredAnalysisResponse(BaseModel):
    """Results of the last analysis as stored on each open invoice, most urgent first."""
    analyzed_at: Optional[datetime] = None
    invoices: List[InvoiceResponse]
