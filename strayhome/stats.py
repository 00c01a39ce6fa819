"""Public impact statistics routes for the StrayHome API."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from . import schemas, statistics
from .database import get_db

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=schemas.StatsOut)
def platform_stats(db: Session = Depends(get_db)):
    """
    Overview counters and chart data for the impact page.

    Returns:
        StatsOut: ``overview`` counters and ``charts`` series.
    """
    return statistics.platform_stats(db)


@router.get("/map", response_model=schemas.MapOut)
def map_animals(
    status: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Listings reduced to what the map needs, optionally filtered."""
    return {"animals": statistics.map_view(db, status=status, type=type)}
