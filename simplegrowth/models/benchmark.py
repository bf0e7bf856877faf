"""Industry payment benchmarks (system reference data)."""
from sqlalchemy import Column, String, DateTime, Integer, Float
from sqlalchemy.sql import func

from simplegrowth.database import Base
from simplegrowth.models.base import generate_id


class IndustryBenchmark(Base):
    """Typical days-to-pay distribution for an industry."""

    __tablename__ = "industry_benchmarks"

    id = Column(String, primary_key=True, default=lambda: generate_id("bench"))
    industry = Column(String, unique=True, nullable=False)

    avg_days_to_pay = Column(Float, nullable=False)
    median_days_to_pay = Column(Float, nullable=False)
    std_dev_days_to_pay = Column(Float, nullable=False)
    pct_pay_on_time = Column(Float, nullable=False)
    pct_pay_30_days = Column(Float, nullable=False)
    pct_pay_60_days = Column(Float, nullable=False)
    pct_pay_90_plus = Column(Float, nullable=False)
    economic_sensitivity = Column(Float, nullable=False, default=1.0)
    sample_size = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
