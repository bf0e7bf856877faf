"""Gusto payroll API client.

Read-only OAuth integration: authorization URL, token exchange and refresh,
a small REST client, and sync helpers that mirror Gusto employees and
processed payrolls into local rows. Gusto reports money as dollar strings;
everything stored locally is cents.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
import logging
import secrets
import urllib.parse

import httpx
from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.cashflow.forecast import round_half_up
from simplegrowth.config import settings
from simplegrowth.models import Employee, PayrollEntry, PayrollSnapshot, as_utc, utcnow

logger = logging.getLogger(__name__)


# ============================================================================
# OAUTH2 CONFIGURATION
# ============================================================================

GUSTO_API_BASE_PRODUCTION = "https://api.gusto.com"
GUSTO_API_BASE_SANDBOX = "https://api.gusto-demo.com"

# Gusto bills roughly 80 regular hours per biweekly period
REGULAR_HOURS_PER_PERIOD = 80

# Default payroll history pulled when no start date is given
SYNC_HISTORY_MONTHS = 12


class GustoAPIError(Exception):
    """Non-success response from Gusto."""


def get_api_base_url() -> str:
    """Get the appropriate API base URL based on environment."""
    if settings.GUSTO_SANDBOX:
        return GUSTO_API_BASE_SANDBOX
    return GUSTO_API_BASE_PRODUCTION


def is_configured() -> bool:
    return bool(settings.GUSTO_CLIENT_ID and settings.GUSTO_CLIENT_SECRET)


def generate_state() -> str:
    """Generate a secure random state for OAuth."""
    return secrets.token_urlsafe(32)


def get_authorization_url(state: str) -> str:
    """Generate the Gusto OAuth2 authorization URL."""
    params = {
        "client_id": settings.GUSTO_CLIENT_ID,
        "redirect_uri": settings.GUSTO_REDIRECT_URI,
        "response_type": "code",
        "state": state,
    }
    return f"{get_api_base_url()}/oauth/authorize?{urllib.parse.urlencode(params)}"


# ============================================================================
# TOKEN MANAGEMENT
# ============================================================================

@dataclass
class GustoTokens:
    access_token: str
    refresh_token: str
    expires_at: datetime


async def _request_tokens(body: Dict[str, str], failure: str) -> GustoTokens:
    async with httpx.AsyncClient() as client:
        response = await client.post(
            f"{get_api_base_url()}/oauth/token",
            json={
                "client_id": settings.GUSTO_CLIENT_ID,
                "client_secret": settings.GUSTO_CLIENT_SECRET,
                **body,
            },
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    if response.status_code != 200:
        raise GustoAPIError(f"{failure}: {response.text}")

    data = response.json()
    return GustoTokens(
        access_token=data["access_token"],
        refresh_token=data["refresh_token"],
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=data.get("expires_in", 7200)),
    )


async def exchange_code_for_tokens(code: str) -> GustoTokens:
    """Exchange authorization code for access and refresh tokens."""
    return await _request_tokens(
        {
            "code": code,
            "redirect_uri": settings.GUSTO_REDIRECT_URI,
            "grant_type": "authorization_code",
        },
        "Failed to exchange code",
    )


async def refresh_access_token(refresh_token: str) -> GustoTokens:
    """Refresh the access token using the refresh token."""
    return await _request_tokens(
        {"refresh_token": refresh_token, "grant_type": "refresh_token"},
        "Failed to refresh token",
    )


# ============================================================================
# GUSTO API CLIENT CLASS
# ============================================================================

class GustoClient:
    """Thin async wrapper over the Gusto v1 REST API."""

    def __init__(self, access_token: str):
        self.access_token = access_token
        self.base_url = get_api_base_url()

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Make a GET request to the Gusto API."""
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{self.base_url}{endpoint}",
                headers=self._get_headers(),
                params=params,
            )

        if response.status_code != 200:
            raise GustoAPIError(f"Gusto API error: {response.status_code} - {response.text}")
        return response.json()

    async def get_current_user(self) -> Dict[str, Any]:
        return await self._get("/v1/me")

    async def get_company_id(self) -> Optional[str]:
        """First company the authorizing payroll admin manages."""
        me = await self.get_current_user()
        companies = ((me.get("roles") or {}).get("payroll_admin") or {}).get("companies") or []
        if not companies:
            return None
        company = companies[0]
        return str(company.get("uuid") or company.get("id"))

    async def get_company(self, company_id: str) -> Dict[str, Any]:
        return await self._get(f"/v1/companies/{company_id}")

    async def get_employees(self, company_id: str) -> List[Dict[str, Any]]:
        return await self._get(f"/v1/companies/{company_id}/employees")

    async def get_employee(self, employee_id: str) -> Dict[str, Any]:
        return await self._get(f"/v1/employees/{employee_id}")

    async def get_payrolls(
        self,
        company_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        processed: Optional[bool] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if start_date:
            params["start_date"] = start_date
        if end_date:
            params["end_date"] = end_date
        if processed is not None:
            params["processed"] = str(processed).lower()
        return await self._get(f"/v1/companies/{company_id}/payrolls", params=params or None)

    async def get_payroll(self, company_id: str, payroll_id: str) -> Dict[str, Any]:
        return await self._get(f"/v1/companies/{company_id}/payrolls/{payroll_id}")

    async def get_pay_periods(self, company_id: str, start_date: str, end_date: str) -> List[Dict[str, Any]]:
        return await self._get(
            f"/v1/companies/{company_id}/pay_periods",
            params={"start_date": start_date, "end_date": end_date},
        )


# ============================================================================
# SYNC
# ============================================================================

@dataclass
class EmployeeSyncResult:
    synced: int = 0
    created: int = 0
    updated: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class PayrollSyncResult:
    synced: int = 0
    created: int = 0
    errors: List[str] = field(default_factory=list)


def to_cents(value: Any) -> int:
    """Gusto dollar amount (string or number) to integer cents."""
    if value in (None, ""):
        return 0
    return round_half_up(float(value) * 100)


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = date.fromisoformat(value[:10])
    return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)


def _employee_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    jobs = data.get("jobs") or []
    job = jobs[0] if jobs else {}
    terminated = bool(data.get("terminated")) or data.get("status") == "terminated"
    return {
        "name": f"{data.get('first_name', '')} {data.get('last_name', '')}".strip(),
        "email": data.get("email"),
        "role": data.get("job_title") or job.get("title") or "Team Member",
        "department": data.get("department") or "General",
        "status": "terminated" if terminated else "active",
    }


async def sync_employees_from_gusto(
    db: AsyncSession,
    client: GustoClient,
    company_id: str,
    organization_id: str,
) -> EmployeeSyncResult:
    """Upsert Gusto employees by their Gusto id. Per-employee failures are collected, not raised."""
    result = EmployeeSyncResult()

    try:
        employees = await client.get_employees(company_id)
    except (GustoAPIError, httpx.HTTPError) as e:
        result.errors.append(f"Failed to fetch employees: {e}")
        return result

    for data in employees:
        external_id = str(data.get("uuid") or data.get("id"))
        try:
            existing = await db.execute(
                select(Employee).where(
                    Employee.organization_id == organization_id,
                    Employee.external_id == external_id,
                )
            )
            employee = existing.scalar_one_or_none()
            fields = _employee_fields(data)

            if employee is None:
                hire_date = data.get("hire_date") or ((data.get("jobs") or [{}])[0].get("hire_date"))
                employee = Employee(
                    organization_id=organization_id,
                    external_id=external_id,
                    hire_date=_parse_date(hire_date),
                    **fields,
                )
                db.add(employee)
                result.created += 1
            else:
                for key, value in fields.items():
                    setattr(employee, key, value)
                result.updated += 1

            await db.flush()
            result.synced += 1
        except (KeyError, TypeError, ValueError) as e:
            result.errors.append(f"Failed to sync employee {external_id}: {e}")

    return result


def _overtime_hours(compensation: Dict[str, Any]) -> float:
    return sum(
        float(item.get("hours") or 0)
        for item in compensation.get("hourly_compensations") or []
        if "overtime" in str(item.get("name", "")).lower()
    )


def _regular_hours(compensation: Dict[str, Any]) -> float:
    hours = sum(
        float(item.get("hours") or 0)
        for item in compensation.get("hourly_compensations") or []
        if "overtime" not in str(item.get("name", "")).lower()
    )
    return hours or REGULAR_HOURS_PER_PERIOD


@dataclass
class ParsedEntry:
    employee_external_id: str
    gross_pay: int
    net_pay: int
    tax_withholdings: int
    regular_hours: float
    overtime_hours: float


@dataclass
class ParsedPayroll:
    period_start: datetime
    period_end: datetime
    pay_date: datetime
    gross_pay: int
    net_pay: int
    benefits: int
    tax_withholdings: int
    overtime_cost: int
    entries: List[ParsedEntry]


def _parse_payroll(payroll: Dict[str, Any]) -> ParsedPayroll:
    """Convert one Gusto payroll to cents and hours. Raises on any malformed amount or date."""
    period = payroll.get("pay_period") or {}
    period_start = _parse_date(period.get("start_date"))
    period_end = _parse_date(period.get("end_date"))
    if period_start is None or period_end is None:
        raise ValueError("missing pay period")

    entries = []
    overtime_cost = 0
    for comp in payroll.get("employee_compensations") or []:
        gross = to_cents(comp.get("gross_pay"))
        overtime_hours = _overtime_hours(comp)
        overtime_cost += round_half_up(overtime_hours * gross / REGULAR_HOURS_PER_PERIOD)
        entries.append(ParsedEntry(
            employee_external_id=str(comp.get("employee_uuid") or comp.get("employee_id")),
            gross_pay=gross,
            net_pay=to_cents(comp.get("net_pay")),
            tax_withholdings=sum(to_cents(t.get("amount")) for t in comp.get("taxes") or []),
            regular_hours=_regular_hours(comp),
            overtime_hours=overtime_hours,
        ))

    totals = payroll.get("totals") or {}
    return ParsedPayroll(
        period_start=period_start,
        period_end=period_end,
        pay_date=_parse_date(payroll.get("check_date")) or period_end,
        gross_pay=to_cents(totals.get("gross_pay")),
        net_pay=to_cents(totals.get("net_pay")),
        benefits=to_cents(totals.get("benefits")),
        tax_withholdings=sum(e.tax_withholdings for e in entries),
        overtime_cost=overtime_cost,
        entries=entries,
    )


async def sync_payrolls_from_gusto(
    db: AsyncSession,
    client: GustoClient,
    company_id: str,
    organization_id: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> PayrollSyncResult:
    """
    Upsert processed Gusto payrolls as snapshots keyed by pay period.

    Entries are written for employees already synced locally. Overtime cost
    is estimated from each employee's gross pay over 80 regular hours.
    """
    result = PayrollSyncResult()
    if start_date is None:
        start_date = (utcnow() - relativedelta(months=SYNC_HISTORY_MONTHS)).date().isoformat()

    try:
        payrolls = await client.get_payrolls(company_id, start_date=start_date, end_date=end_date, processed=True)
    except (GustoAPIError, httpx.HTTPError) as e:
        result.errors.append(f"Failed to fetch payrolls: {e}")
        return result

    employee_rows = await db.execute(
        select(Employee).where(
            Employee.organization_id == organization_id,
            Employee.external_id.is_not(None),
        )
    )
    employees = {e.external_id: e for e in employee_rows.scalars().all()}

    for payroll in payrolls:
        payroll_id = str(payroll.get("payroll_uuid") or payroll.get("uuid") or payroll.get("id"))
        try:
            parsed = _parse_payroll(payroll)
        except (KeyError, TypeError, ValueError) as e:
            result.errors.append(f"Failed to sync payroll {payroll_id}: {e}")
            continue

        existing = await db.execute(
            select(PayrollSnapshot).where(
                PayrollSnapshot.organization_id == organization_id,
                PayrollSnapshot.period_start == parsed.period_start,
                PayrollSnapshot.period_end == parsed.period_end,
            )
        )
        snapshot = existing.scalars().first()
        if snapshot is None:
            snapshot = PayrollSnapshot(
                organization_id=organization_id,
                period_start=parsed.period_start,
                period_end=parsed.period_end,
            )
            db.add(snapshot)
            result.created += 1

        snapshot.pay_date = parsed.pay_date
        snapshot.total_gross_pay = parsed.gross_pay
        snapshot.total_net_pay = parsed.net_pay
        snapshot.total_tax_withholdings = parsed.tax_withholdings
        snapshot.total_benefits_cost = parsed.benefits
        snapshot.total_overtime_cost = parsed.overtime_cost
        snapshot.employee_count = len(parsed.entries)
        snapshot.source = "gusto"
        snapshot.external_id = payroll_id
        await db.flush()

        await db.execute(
            PayrollEntry.__table__.delete().where(PayrollEntry.snapshot_id == snapshot.id)
        )
        for entry in parsed.entries:
            employee = employees.get(entry.employee_external_id)
            if employee is None:
                continue
            db.add(PayrollEntry(
                snapshot_id=snapshot.id,
                employee_id=employee.id,
                gross_pay=entry.gross_pay,
                net_pay=entry.net_pay,
                tax_withholdings=entry.tax_withholdings,
                regular_hours=entry.regular_hours,
                overtime_hours=entry.overtime_hours,
                department=employee.department,
            ))
        await db.flush()
        result.synced += 1

    return result


def token_needs_refresh(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when the access token expires within five minutes."""
    if expires_at is None:
        return False
    now = now or utcnow()
    return as_utc(expires_at) < now + timedelta(minutes=5)
