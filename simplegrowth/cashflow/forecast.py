"""
Cash Flow Forecast - receivables inflow projection and health scoring.

Pure functions over plain invoice snapshots. Amounts are integer cents;
projected values are expected amounts (outstanding x recovery likelihood).

Health score weighting:
- Overdue ratio: 40%
- Average days outstanding: 30%
- 30-day cash flow trend: 30%
"""
import math
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Iterable, Literal, Optional

from simplegrowth.models.base import utcnow, as_utc


ForecastPeriod = Literal["30d", "60d", "90d"]

PERIOD_DAYS = {"30d": 30, "60d": 60, "90d": 90}

CLOSED_STATUSES = ("paid", "written_off")
DEFAULT_RECOVERY_LIKELIHOOD = 0.5

HIGH_CONFIDENCE_THRESHOLD = 0.8
MEDIUM_CONFIDENCE_THRESHOLD = 0.5


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


@dataclass
class InvoiceSnapshot:
    """The fields the forecast needs from an invoice."""
    id: str
    amount: int
    amount_paid: int
    due_date: datetime
    status: str
    recovery_likelihood: Optional[float] = None

    @classmethod
    def from_model(cls, invoice) -> "InvoiceSnapshot":
        return cls(
            id=invoice.id,
            amount=invoice.amount or 0,
            amount_paid=invoice.amount_paid or 0,
            due_date=as_utc(invoice.due_date),
            status=invoice.status,
            recovery_likelihood=invoice.recovery_likelihood,
        )

    @property
    def outstanding(self) -> int:
        return self.amount - self.amount_paid


@dataclass
class InflowForecast:
    """Expected inflow split by recovery-likelihood bucket."""
    total: float
    high_confidence: float
    medium_confidence: float
    low_confidence: float


@dataclass
class ForecastBreakdown:
    high_confidence: int
    medium_confidence: int
    low_confidence: int


@dataclass
class ForecastResult:
    period: str
    projected_inflow: int
    projected_outflow: int
    net_cash_flow: int
    confidence: float
    breakdown: ForecastBreakdown

    def to_dict(self) -> dict:
        return asdict(self)


def forecast_inflow(
    invoices: Iterable[InvoiceSnapshot],
    days_ahead: int,
    now: Optional[datetime] = None,
) -> InflowForecast:
    """
    Project cash expected from open invoices due within ``days_ahead`` days.

    Invoices already past due are included (they are due before the end date).
    A missing or zero recovery likelihood is treated as 0.5.
    """
    end_date = (now or utcnow()) + timedelta(days=days_ahead)

    high = 0.0
    medium = 0.0
    low = 0.0

    for invoice in invoices:
        if invoice.status in CLOSED_STATUSES:
            continue
        if as_utc(invoice.due_date) > end_date:
            continue

        likelihood = invoice.recovery_likelihood or DEFAULT_RECOVERY_LIKELIHOOD
        expected = invoice.outstanding * likelihood

        if likelihood >= HIGH_CONFIDENCE_THRESHOLD:
            high += expected
        elif likelihood >= MEDIUM_CONFIDENCE_THRESHOLD:
            medium += expected
        else:
            low += expected

    return InflowForecast(
        total=high + medium + low,
        high_confidence=high,
        medium_confidence=medium,
        low_confidence=low,
    )


def generate_forecast(
    invoices: Iterable[InvoiceSnapshot],
    period: ForecastPeriod = "30d",
    now: Optional[datetime] = None,
) -> ForecastResult:
    """
    Build a full forecast for a 30/60/90 day window.

    Outflow is always 0 until payables data is available. Confidence is the
    bucket-weighted average (high 0.9, medium 0.6, low 0.3), 2 decimal places.
    """
    if period not in PERIOD_DAYS:
        raise ValueError(f"Unknown forecast period: {period}")

    inflow = forecast_inflow(invoices, PERIOD_DAYS[period], now=now)
    projected_outflow = 0

    if inflow.total > 0:
        weighted = (
            inflow.high_confidence * 0.9
            + inflow.medium_confidence * 0.6
            + inflow.low_confidence * 0.3
        ) / inflow.total
    else:
        weighted = 0.0

    return ForecastResult(
        period=period,
        projected_inflow=round_half_up(inflow.total),
        projected_outflow=projected_outflow,
        net_cash_flow=round_half_up(inflow.total - projected_outflow),
        confidence=round_half_up(weighted * 100) / 100,
        breakdown=ForecastBreakdown(
            high_confidence=round_half_up(inflow.high_confidence),
            medium_confidence=round_half_up(inflow.medium_confidence),
            low_confidence=round_half_up(inflow.low_confidence),
        ),
    )


def _days_outstanding_score(avg_days_outstanding: float) -> float:
    if avg_days_outstanding <= 30:
        return 100
    if avg_days_outstanding <= 45:
        return 80
    if avg_days_outstanding <= 60:
        return 60
    if avg_days_outstanding <= 90:
        return 40
    return 20


def calculate_health_score(
    total_receivables: float,
    overdue_receivables: float,
    avg_days_outstanding: float,
    net_cash_flow_30d: float,
) -> int:
    """
    Summarize receivables risk as a 0-100 score (higher is healthier).

    Non-increasing in the overdue ratio when the other inputs are held fixed.
    """
    overdue_ratio = overdue_receivables / total_receivables if total_receivables > 0 else 0
    overdue_score = max(0, 100 - overdue_ratio * 200)

    days_score = _days_outstanding_score(avg_days_outstanding)

    if net_cash_flow_30d > 0:
        trend_score = min(100, 60 + net_cash_flow_30d / 100000)
    else:
        trend_score = max(0, 60 + net_cash_flow_30d / 50000)

    score = overdue_score * 0.4 + days_score * 0.3 + trend_score * 0.3
    return round_half_up(max(0, min(100, score)))


def calculate_runway(cash_on_hand: float, avg_monthly_burn: float) -> Optional[int]:
    """Days of runway at the current burn; None when the business is not burning cash."""
    if avg_monthly_burn <= 0:
        return None
    if cash_on_hand <= 0:
        return 0
    daily_burn = avg_monthly_burn / 30
    return round_half_up(cash_on_hand / daily_burn)
