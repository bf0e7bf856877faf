"""
Payroll snapshots.

Manual entry records a pay period with estimated withholdings; the overview
compares the latest two periods and relates payroll to revenue.
"""
from math import ceil
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.cashflow.forecast import round_half_up
from simplegrowth.models import BusinessMetric, Employee, PayrollEntry, PayrollSnapshot, utcnow
from simplegrowth.payroll.schemas import (
    CurrentPeriod,
    DepartmentCost,
    PayrollCreate,
    PayrollOverview,
    PayrollTrends,
    SnapshotSummary,
)

ESTIMATED_TAX_RATE = 0.25
HOURS_PER_WEEK = 40
DEFAULT_PERIOD_HOURS = 80
DEFAULT_PAYROLL_TO_REVENUE = 0.32
SNAPSHOT_HISTORY = 12


def department_breakdown(entries) -> List[Dict[str, int]]:
    """Cost and headcount per department, in first-seen order."""
    departments: Dict[str, Dict[str, int]] = {}
    for entry in entries:
        name = entry.department or "General"
        bucket = departments.setdefault(name, {"cost": 0, "employees": 0})
        bucket["cost"] += entry.gross_pay
        bucket["employees"] += 1
    return [{"name": name, **data} for name, data in departments.items()]


def implied_hourly_rate(gross_pay: int, period_days: int) -> Optional[float]:
    """Dollars per hour assuming 40-hour weeks across the period."""
    hours = (period_days / 7) * HOURS_PER_WEEK
    if hours <= 0:
        return None
    return gross_pay / 100 / hours


async def _find_or_create_employee(
    db: AsyncSession,
    organization_id: str,
    name: str,
    department: Optional[str],
    role: Optional[str],
) -> Employee:
    result = await db.execute(
        select(Employee).where(Employee.organization_id == organization_id, Employee.name == name)
    )
    employee = result.scalars().first()
    if employee is None:
        employee = Employee(
            organization_id=organization_id,
            name=name,
            role=role or "Staff",
            department=department or "General",
            hire_date=utcnow(),
        )
        db.add(employee)
        await db.flush()
    return employee


async def create_manual_snapshot(
    db: AsyncSession,
    organization_id: str,
    data: PayrollCreate,
) -> PayrollSnapshot:
    """
    Record a manually entered pay period.

    Taxes are estimated at 25% of gross. Employees are matched by name and
    created when unknown; each one's hourly rate is re-derived from this pay.
    """
    total_gross = sum(e.gross_pay for e in data.entries)
    total_tax = round_half_up(total_gross * ESTIMATED_TAX_RATE)
    period_days = ceil((data.period_end - data.period_start).total_seconds() / 86400)

    snapshot = PayrollSnapshot(
        organization_id=organization_id,
        period_start=data.period_start,
        period_end=data.period_end,
        pay_date=data.pay_date,
        total_gross_pay=total_gross,
        total_net_pay=total_gross - total_tax,
        total_tax_withholdings=total_tax,
        employee_count=len(data.entries),
        department_breakdown=department_breakdown(data.entries),
        source="manual",
    )
    db.add(snapshot)
    await db.flush()

    for entry in data.entries:
        employee = await _find_or_create_employee(
            db, organization_id, entry.employee_name, entry.department, entry.role
        )
        rate = implied_hourly_rate(entry.gross_pay, period_days)
        if rate is not None:
            employee.hourly_rate = rate

        tax = round_half_up(entry.gross_pay * ESTIMATED_TAX_RATE)
        db.add(PayrollEntry(
            snapshot_id=snapshot.id,
            employee_id=employee.id,
            gross_pay=entry.gross_pay,
            net_pay=entry.gross_pay - tax,
            tax_withholdings=tax,
            regular_hours=entry.hours_worked or DEFAULT_PERIOD_HOURS,
            department=entry.department or "General",
        ))

    await db.flush()
    return snapshot


async def _revenue_between(db: AsyncSession, organization_id: str, start, end) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(BusinessMetric.revenue), 0)).where(
            BusinessMetric.organization_id == organization_id,
            BusinessMetric.metric_date >= start,
            BusinessMetric.metric_date <= end,
        )
    )
    return int(result.scalar() or 0)


def payroll_trends(
    current: Optional[PayrollSnapshot],
    previous: Optional[PayrollSnapshot],
) -> PayrollTrends:
    if not current or not previous:
        return PayrollTrends()
    growth = 0.0
    if previous.total_gross_pay > 0:
        growth = (current.total_gross_pay - previous.total_gross_pay) / previous.total_gross_pay
    return PayrollTrends(
        payroll_growth=growth,
        headcount_change=current.employee_count - previous.employee_count,
    )


async def get_overview(db: AsyncSession, organization_id: str) -> PayrollOverview:
    """Last 12 periods, period-over-period trends and active headcount."""
    result = await db.execute(
        select(PayrollSnapshot)
        .where(PayrollSnapshot.organization_id == organization_id)
        .order_by(PayrollSnapshot.pay_date.desc())
        .limit(SNAPSHOT_HISTORY)
    )
    snapshots = list(result.scalars().all())

    count_result = await db.execute(
        select(func.count(Employee.id)).where(
            Employee.organization_id == organization_id,
            Employee.status == "active",
        )
    )
    employee_count = count_result.scalar() or 0

    current = snapshots[0] if snapshots else None
    previous = snapshots[1] if len(snapshots) > 1 else None

    current_period = None
    if current:
        ratio = DEFAULT_PAYROLL_TO_REVENUE
        revenue = await _revenue_between(db, organization_id, current.period_start, current.period_end)
        if revenue > 0:
            ratio = round(current.total_gross_pay / revenue, 4)

        current_period = CurrentPeriod(
            total_gross_pay=current.total_gross_pay,
            total_net_pay=current.total_net_pay,
            employee_count=current.employee_count,
            total_benefits_cost=current.total_benefits_cost,
            total_overtime_cost=current.total_overtime_cost,
            payroll_as_percent_of_revenue=ratio,
            department_breakdown=[DepartmentCost(**d) for d in current.department_breakdown or []],
        )

    return PayrollOverview(
        current_period=current_period,
        trends=payroll_trends(current, previous),
        snapshots=[SnapshotSummary.model_validate(s) for s in snapshots],
        employee_count=employee_count,
    )
