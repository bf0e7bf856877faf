"""Pydantic schemas for payroll. Money fields are cents."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from simplegrowth.models.base import as_utc


class PayrollEntryInput(BaseModel):
    employee_name: str = Field(..., min_length=1)
    gross_pay: int = Field(..., ge=0)
    department: Optional[str] = None
    role: Optional[str] = None
    hours_worked: Optional[float] = Field(None, gt=0)


class PayrollCreate(BaseModel):
    period_start: datetime
    period_end: datetime
    pay_date: datetime
    entries: List[PayrollEntryInput]

    @field_validator("period_start", "period_end", "pay_date")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def period_in_order(self) -> "PayrollCreate":
        if self.period_end < self.period_start:
            raise ValueError("period_end must not be before period_start")
        return self


class SnapshotSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    period_start: datetime
    period_end: datetime
    pay_date: datetime
    total_gross_pay: int
    employee_count: int


class PayrollCreateResponse(BaseModel):
    snapshot: SnapshotSummary


class DepartmentCost(BaseModel):
    name: str
    cost: int
    employees: int


class CurrentPeriod(BaseModel):
    total_gross_pay: int
    total_net_pay: int
    employee_count: int
    total_benefits_cost: int
    total_overtime_cost: int
    payroll_as_percent_of_revenue: float
    department_breakdown: List[DepartmentCost]


class PayrollTrends(BaseModel):
    payroll_growth: float = 0.0
    headcount_change: int = 0


class PayrollOverview(BaseModel):
    current_period: Optional[CurrentPeriod] = None
    trends: PayrollTrends
    snapshots: List[SnapshotSummary]
    employee_count: int


class GustoConnectResponse(BaseModel):
    authorization_url: str


class SyncResultOut(BaseModel):
    synced: int
    created: int
    updated: int = 0
    errors: List[str] = Field(default_factory=list)


class GustoSyncResponse(BaseModel):
    employees: SyncResultOut
    payrolls: SyncResultOut
