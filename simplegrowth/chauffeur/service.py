"""
Business Chauffeur queries.

Aggregates stored business metrics, payroll snapshots and integrations into
dashboard stats and into the ``CrossSystemData`` the insight engines consume.
"""
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from simplegrowth.cashflow import service as cashflow_service
from simplegrowth.cashflow.forecast import round_half_up
from simplegrowth.chauffeur.schemas import ChauffeurStats
from simplegrowth.insights.cross_system import (
    CashFlowData,
    CrossSystemData,
    EmployeePerformance,
    PayrollData,
    POSData,
    ReviewData,
)
from simplegrowth.models import (
    BusinessMetric,
    Client,
    Employee,
    Integration,
    Invoice,
    PayrollSnapshot,
    utcnow,
)

RATING_TREND_THRESHOLD = 0.1
DEFAULT_AVG_DAYS_TO_PAYMENT = 30


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _start_of_week(now: datetime) -> datetime:
    """Most recent Sunday at midnight."""
    day = _start_of_day(now)
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _start_of_month(now: datetime) -> datetime:
    return _start_of_day(now).replace(day=1)


async def _metrics_since(
    db: AsyncSession,
    organization_id: str,
    start: datetime,
    end: Optional[datetime] = None,
) -> Sequence[BusinessMetric]:
    query = select(BusinessMetric).where(
        BusinessMetric.organization_id == organization_id,
        BusinessMetric.metric_date >= start,
    )
    if end is not None:
        query = query.where(BusinessMetric.metric_date < end)
    result = await db.execute(query)
    return result.scalars().all()


def _sum_metrics(metrics: Sequence[BusinessMetric]) -> dict:
    rated = [m.avg_rating for m in metrics if m.avg_rating]
    return {
        "revenue": sum(m.revenue or 0 for m in metrics),
        "transactions": sum(m.transactions or 0 for m in metrics),
        "review_count": sum(m.review_count or 0 for m in metrics),
        "avg_rating": sum(rated) / len(rated) if rated else None,
    }


async def count_connected_integrations(db: AsyncSession, organization_id: str) -> int:
    result = await db.execute(
        select(func.count(Integration.id)).where(
            Integration.organization_id == organization_id,
            Integration.status == "connected",
        )
    )
    return result.scalar() or 0


async def calculate_stats(
    db: AsyncSession,
    organization_id: str,
    now: Optional[datetime] = None,
) -> ChauffeurStats:
    """Revenue for today, this week (from Sunday) and this month, plus review totals."""
    now = now or utcnow()

    today = _sum_metrics(await _metrics_since(db, organization_id, _start_of_day(now)))
    week = _sum_metrics(await _metrics_since(db, organization_id, _start_of_week(now)))
    month = _sum_metrics(await _metrics_since(db, organization_id, _start_of_month(now)))

    avg_ticket = (
        round_half_up(today["revenue"] / today["transactions"]) if today["transactions"] > 0 else 0
    )

    return ChauffeurStats(
        revenue_today=today["revenue"],
        revenue_this_week=week["revenue"],
        revenue_this_month=month["revenue"],
        transactions_today=today["transactions"],
        avg_ticket=avg_ticket,
        reviews_this_month=month["review_count"],
        avg_rating=month["avg_rating"],
        integrations_connected=await count_connected_integrations(db, organization_id),
    )


# =============================================================================
# Cross-system data
# =============================================================================

def _growth(current: float, previous: float) -> float:
    return (current - previous) / previous if previous > 0 else 0.0


async def _cash_flow_data(db: AsyncSession, organization_id: str, now: datetime) -> Optional[CashFlowData]:
    invoice_count = await db.execute(
        select(func.count(Invoice.id)).where(Invoice.organization_id == organization_id)
    )
    if not invoice_count.scalar():
        return None

    stats = await cashflow_service.calculate_stats(db, organization_id, now=now)
    avg_days = await db.execute(
        select(func.avg(Client.avg_days_to_payment)).where(
            Client.organization_id == organization_id,
            Client.avg_days_to_payment.isnot(None),
        )
    )
    return CashFlowData(
        monthly_revenue=stats.collected_this_month,
        overdue_receivables=stats.overdue_receivables,
        health_score=stats.health_score,
        avg_days_to_payment=avg_days.scalar() or DEFAULT_AVG_DAYS_TO_PAYMENT,
    )


def _pos_data(current: dict, previous: dict) -> Optional[POSData]:
    if not current["revenue"] and not current["transactions"]:
        return None
    transactions = current["transactions"]
    return POSData(
        daily_sales=current["revenue"] / 30,
        transaction_count=transactions,
        avg_ticket=current["revenue"] / transactions if transactions else 0,
        growth_rate=_growth(current["revenue"], previous["revenue"]),
    )


def _review_data(current: dict, previous: dict) -> Optional[ReviewData]:
    if current["avg_rating"] is None:
        return None
    trend = "stable"
    if previous["avg_rating"] is not None:
        delta = current["avg_rating"] - previous["avg_rating"]
        if delta > RATING_TREND_THRESHOLD:
            trend = "improving"
        elif delta < -RATING_TREND_THRESHOLD:
            trend = "declining"
    return ReviewData(
        avg_rating=current["avg_rating"],
        review_count=current["review_count"],
        recent_trend=trend,
    )


async def _payroll_data(db: AsyncSession, organization_id: str) -> Optional[PayrollData]:
    result = await db.execute(
        select(PayrollSnapshot)
        .where(PayrollSnapshot.organization_id == organization_id)
        .options(selectinload(PayrollSnapshot.entries))
        .order_by(PayrollSnapshot.pay_date.desc())
        .limit(2)
    )
    snapshots = result.scalars().all()
    if not snapshots:
        return None

    latest = snapshots[0]
    previous_total = snapshots[1].total_gross_pay if len(snapshots) > 1 else 0
    return PayrollData(
        total_payroll=latest.total_gross_pay,
        employee_count=latest.employee_count,
        overtime_hours=sum(entry.overtime_hours or 0 for entry in latest.entries),
        payroll_growth=_growth(latest.total_gross_pay, previous_total),
    )


async def _employee_data(db: AsyncSession, organization_id: str) -> List[EmployeePerformance]:
    result = await db.execute(
        select(Employee).where(
            Employee.organization_id == organization_id,
            Employee.status == "active",
            Employee.performance_score.isnot(None),
        )
    )
    return [
        EmployeePerformance(
            id=employee.id,
            name=employee.name,
            performance_score=employee.performance_score,
            department=employee.department,
        )
        for employee in result.scalars().all()
    ]


async def build_cross_system_data(
    db: AsyncSession,
    organization_id: str,
    now: Optional[datetime] = None,
) -> CrossSystemData:
    """
    Assemble every system's view of the business.

    POS and review figures compare the last 30 days with the 30 days before.
    """
    now = now or utcnow()
    window_start = now - timedelta(days=30)
    previous_start = now - timedelta(days=60)

    current = _sum_metrics(await _metrics_since(db, organization_id, window_start))
    previous = _sum_metrics(await _metrics_since(db, organization_id, previous_start, window_start))

    return CrossSystemData(
        cash_flow=await _cash_flow_data(db, organization_id, now),
        pos=_pos_data(current, previous),
        payroll=await _payroll_data(db, organization_id),
        reviews=_review_data(current, previous),
        employees=await _employee_data(db, organization_id),
    )


async def get_connected_providers(db: AsyncSession, organization_id: str) -> List[str]:
    result = await db.execute(
        select(Integration.provider).where(
            Integration.organization_id == organization_id,
            Integration.status == "connected",
        )
    )
    return sorted(set(result.scalars().all()))
