"""
PenguinWatch Backend - Dashboard Route Handlers
=================================================

What:  GET /api/stats (totals) and GET /api/location-metrics (per-site rows).
Who:   Called by the dashboard screen.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from penguinwatch.database import get_db_session
from penguinwatch.dependencies import get_stats_service
from penguinwatch.schemas.observation import ErrorResponse, LocationMetric, StatsResponse
from penguinwatch.services.stats_service import StatsService

router = APIRouter(prefix="/api", tags=["Dashboard"])


@router.get(
    "/stats",
    response_model=StatsResponse,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="Totals across all observations",
)
async def get_stats(
    db: AsyncSession = Depends(get_db_session),
    service: StatsService = Depends(get_stats_service),
) -> StatsResponse:
    return await service.get_stats(db)


@router.get(
    "/location-metrics",
    response_model=List[LocationMetric],
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="Per-location aggregates, largest population first",
)
async def get_location_metrics(
    db: AsyncSession = Depends(get_db_session),
    service: StatsService = Depends(get_stats_service),
) -> List[LocationMetric]:
    return await service.get_location_metrics(db)
