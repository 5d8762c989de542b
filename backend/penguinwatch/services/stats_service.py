"""
PenguinWatch Backend - Aggregation Service
============================================

What:  Dashboard totals and per-location metrics over all observations.
How:   Grouped SQL aggregates; no state is kept between calls.

Query plans:
    totals:   SELECT sum(adult_count), sum(chick_count), count(DISTINCT location)
              FROM observations
    thumb:    SELECT image_url FROM observations WHERE image_url IS NOT NULL
              ORDER BY random() LIMIT 1
    metrics:  SELECT location, sum(...), count(*), max(created_at),
                     sum(adult_count + chick_count) / count(*)
              FROM observations GROUP BY location
              ORDER BY sum(adult_count + chick_count) DESC
"""

import logging
from typing import List

from sqlalchemy import Float, cast, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from penguinwatch.exceptions import DatabaseError
from penguinwatch.models.observation import Observation
from penguinwatch.schemas.observation import LocationMetric, StatsResponse

logger = logging.getLogger(__name__)


class StatsService:
    """Read-only aggregate queries."""

    async def get_stats(self, db: AsyncSession) -> StatsResponse:
        """
        Totals across all observations plus one random thumbnail URL.

        Sums over an empty table come back as NULL and are reported as 0.
        """
        try:
            totals = (
                await db.execute(
                    select(
                        func.sum(Observation.adult_count).label("total_adults"),
                        func.sum(Observation.chick_count).label("total_chicks"),
                        func.count(distinct(Observation.location)).label("location_count"),
                    )
                )
            ).one()

            random_image = (
                await db.execute(
                    select(Observation.image_url)
                    .where(Observation.image_url.is_not(None))
                    .order_by(func.random())
                    .limit(1)
                )
            ).scalar_one_or_none()
        except Exception as e:
            logger.error("Database error computing stats: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not compute statistics. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return StatsResponse(
            total_adults=int(totals.total_adults or 0),
            total_chicks=int(totals.total_chicks or 0),
            location_count=int(totals.location_count or 0),
            random_image=random_image,
        )

    async def get_location_metrics(self, db: AsyncSession) -> List[LocationMetric]:
        """
        One row per location, largest total population first.

        growth_rate = total_population / observation_count, computed as a
        float so integer division never truncates it.
        """
        total_population = func.sum(Observation.adult_count + Observation.chick_count)
        observation_count = func.count(Observation.id)

        query = (
            select(
                Observation.location.label("location"),
                func.sum(Observation.adult_count).label("total_adults"),
                func.sum(Observation.chick_count).label("total_chicks"),
                total_population.label("total_population"),
                observation_count.label("observation_count"),
                func.max(Observation.created_at).label("latest_observation"),
                (cast(total_population, Float) / observation_count).label("growth_rate"),
            )
            .group_by(Observation.location)
            .order_by(total_population.desc(), Observation.location)
        )

        try:
            rows = (await db.execute(query)).all()
        except Exception as e:
            logger.error("Database error computing location metrics: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not compute location metrics. Please try again.",
                context={"error_type": type(e).__name__},
            )

        return [LocationMetric(**row._asdict()) for row in rows]
