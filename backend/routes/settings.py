"""
Settings routes — academic period count and period weights.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from core.calculator import distribute_period_weights
from core.models import AcademicSettings
from core.store import RecordStore
from routes.deps import get_settings, get_store

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_PERIODS = 12


@router.get("")
async def read_settings(settings: AcademicSettings = Depends(get_settings)):
    return settings


@router.put("")
async def update_settings(settings: AcademicSettings, store: RecordStore = Depends(get_store)):
    """Replace the academic settings. Weights must cover every period and sum to 100."""
    store.save_academic_settings(settings.validate_weights())
    logger.info("Academic settings updated: %d periods %s", settings.period_count, settings.period_weights)
    return settings


@router.get("/distribute/{period_count}")
async def distribute(period_count: int):
    """Suggested equal weights for a new period count."""
    if not 1 <= period_count <= MAX_PERIODS:
        raise HTTPException(422, f"Period count must be between 1 and {MAX_PERIODS}.")
    return {"period_count": period_count, "period_weights": distribute_period_weights(period_count)}
