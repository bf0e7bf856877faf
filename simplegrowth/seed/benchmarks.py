"""
Industry payment benchmarks seed.

System-level reference data used by Cash Flow AI, not tenant data. Rows are
upserted by industry so the seed can be re-run safely.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.models import IndustryBenchmark

logger = logging.getLogger(__name__)

BENCHMARK_FIELDS = (
    "avg_days_to_pay",
    "median_days_to_pay",
    "std_dev_days_to_pay",
    "pct_pay_on_time",
    "pct_pay_30_days",
    "pct_pay_60_days",
    "pct_pay_90_plus",
    "economic_sensitivity",
    "sample_size",
)

# industry: avg, median, std dev, % on time, % 30d, % 60d, % 90+, sensitivity, sample size
INDUSTRY_BENCHMARKS = {
    "technology": (32.5, 30.0, 12.5, 65.0, 25.0, 7.0, 3.0, 1.2, 5000),
    "healthcare": (45.0, 42.0, 18.0, 45.0, 35.0, 15.0, 5.0, 0.8, 8000),
    "retail": (28.0, 25.0, 10.0, 70.0, 22.0, 5.0, 3.0, 1.5, 12000),
    "manufacturing": (42.0, 40.0, 15.0, 50.0, 32.0, 12.0, 6.0, 1.3, 6000),
    "construction": (55.0, 50.0, 22.0, 35.0, 38.0, 18.0, 9.0, 1.4, 4500),
    "professional_services": (35.0, 32.0, 14.0, 60.0, 28.0, 8.0, 4.0, 1.0, 7500),
    "food_service": (22.0, 18.0, 8.0, 78.0, 17.0, 3.0, 2.0, 1.6, 10000),
    "hospitality": (25.0, 22.0, 9.0, 72.0, 20.0, 5.0, 3.0, 1.7, 8500),
    "real_estate": (38.0, 35.0, 14.0, 55.0, 30.0, 10.0, 5.0, 1.4, 5500),
    "education": (40.0, 38.0, 12.0, 58.0, 30.0, 8.0, 4.0, 0.6, 4000),
    "non_profit": (48.0, 45.0, 16.0, 42.0, 35.0, 15.0, 8.0, 0.9, 3500),
    "transportation": (35.0, 32.0, 13.0, 58.0, 28.0, 10.0, 4.0, 1.3, 6500),
}


async def seed_industry_benchmarks(db: AsyncSession) -> dict:
    """Insert or refresh every industry benchmark. Returns created/updated counts."""
    result = await db.execute(select(IndustryBenchmark))
    existing = {b.industry: b for b in result.scalars().all()}

    created = 0
    updated = 0
    for industry, values in INDUSTRY_BENCHMARKS.items():
        fields = dict(zip(BENCHMARK_FIELDS, values))
        benchmark = existing.get(industry)
        if benchmark is None:
            db.add(IndustryBenchmark(industry=industry, **fields))
            created += 1
        else:
            for key, value in fields.items():
                setattr(benchmark, key, value)
            updated += 1

    await db.commit()
    logger.info(f"Seeded {len(INDUSTRY_BENCHMARKS)} industry benchmarks ({created} created, {updated} updated)")
    return {"status": "seeded", "created": created, "updated": updated}
