"""
Client payment behaviour scoring.

Payment score (0-100) weights:
- On-time rate: 40
- Days late (late payments only): 30
- Recent behaviour (last 3 payments): 20
- Consistency (std-dev of days to pay): 10
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Literal, Optional, Sequence

from simplegrowth.cashflow.forecast import round_half_up
from simplegrowth.models.base import as_utc


RiskLevel = Literal["low", "medium", "high", "critical"]

NEUTRAL_SCORE = 50

# Amount thresholds in cents
LARGE_INVOICE_CENTS = 10_000 * 100
VERY_LARGE_INVOICE_CENTS = 50_000 * 100


@dataclass
class PaymentRecord:
    """One invoice in a client's payment history."""
    invoice_id: str
    amount: int
    due_date: datetime
    paid_date: Optional[datetime]
    days_late: float


def calculate_payment_score(history: Sequence[PaymentRecord]) -> int:
    """Score a client's payment behaviour. New clients with no history score 50."""
    if not history:
        return NEUTRAL_SCORE

    paid = [h for h in history if h.paid_date is not None]

    on_time = [h for h in paid if h.days_late <= 0]
    on_time_rate = len(on_time) / len(paid) * 100 if paid else 0

    late = [h for h in paid if h.days_late > 0]
    avg_days_late = sum(h.days_late for h in late) / len(late) if late else 0

    recent = sorted(paid, key=lambda h: as_utc(h.paid_date), reverse=True)[:3]
    if recent:
        recent_score = len([h for h in recent if h.days_late <= 0]) / len(recent) * 100
    else:
        recent_score = 50

    days_to_payment = [
        math.floor((as_utc(h.paid_date) - as_utc(h.due_date)).total_seconds() / 86400)
        for h in paid
    ]
    if days_to_payment:
        mean = sum(days_to_payment) / len(days_to_payment)
        variance = sum((d - mean) ** 2 for d in days_to_payment) / len(days_to_payment)
    else:
        variance = 0
    consistency_score = max(0, 100 - math.sqrt(variance) * 5)

    days_late_score = max(0, 100 - avg_days_late * 2)

    weighted = (
        on_time_rate * 40
        + days_late_score * 30
        + recent_score * 20
        + consistency_score * 10
    ) / 100

    return round_half_up(max(0, min(100, weighted)))


def get_risk_level(score: float) -> RiskLevel:
    if score >= 80:
        return "low"
    if score >= 60:
        return "medium"
    if score >= 40:
        return "high"
    return "critical"


def calculate_recovery_likelihood(amount: int, days_past_due: int, client_score: float) -> float:
    """
    Probability (0.05-0.99) that an invoice will be collected.

    Starts from the client score, decays exponentially with days past due, and
    is discounted for invoices above $10k and again above $50k.
    """
    likelihood = client_score / 100

    if days_past_due > 0:
        likelihood *= math.exp(-0.02 * days_past_due)

    if amount > LARGE_INVOICE_CENTS:
        likelihood *= 0.9
    if amount > VERY_LARGE_INVOICE_CENTS:
        likelihood *= 0.85

    return max(0.05, min(0.99, likelihood))


def predict_payment_date(due_date: datetime, avg_days_to_payment: float, client_score: float) -> datetime:
    """Expected payment date, padded for riskier clients."""
    if client_score >= 80:
        predicted_days = min(avg_days_to_payment, 5)
    elif client_score >= 60:
        predicted_days = avg_days_to_payment
    elif client_score >= 40:
        predicted_days = avg_days_to_payment * 1.3
    else:
        predicted_days = avg_days_to_payment * 1.5 + 14

    return due_date + timedelta(days=round_half_up(predicted_days))


def build_payment_history(invoices) -> List[PaymentRecord]:
    """Payment records from invoice rows (paid ones carry their lateness)."""
    records = []
    for invoice in invoices:
        due = as_utc(invoice.due_date)
        paid_at = as_utc(invoice.paid_at)
        days_late = (paid_at - due).total_seconds() / 86400 if paid_at else 0
        records.append(
            PaymentRecord(
                invoice_id=invoice.id,
                amount=invoice.amount,
                due_date=due,
                paid_date=paid_at,
                days_late=days_late,
            )
        )
    return records
