"""Seed data routes for reference data."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from simplegrowth.auth.dependencies import require_admin
from simplegrowth.database import get_db
from simplegrowth.models import User
from simplegrowth.seed.benchmarks import seed_industry_benchmarks

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/seed/benchmarks")
async def seed_benchmarks(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Seed industry payment benchmarks.

    Safe to repeat: existing industries are updated in place.
    """
    try:
        return await seed_industry_benchmarks(db)
    except Exception:
        logger.exception("Failed to seed industry benchmarks")
        raise HTTPException(status_code=500, detail="Failed to seed benchmarks")
