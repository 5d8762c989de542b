"""
FastAPI dependency providers for the per-application service instances.

create_app() builds the services once and stores them on app.state; these
providers hand them to route handlers, so tests can swap them through
app.dependency_overrides without touching module globals.
"""

from fastapi import Request

from penguinwatch.services.image_service import ImageService
from penguinwatch.services.observation_service import ObservationService
from penguinwatch.services.stats_service import StatsService


def get_image_service(request: Request) -> ImageService:
    return request.app.state.image_service


def get_observation_service(request: Request) -> ObservationService:
    return request.app.state.observation_service


def get_stats_service(request: Request) -> StatsService:
    return request.app.state.stats_service
