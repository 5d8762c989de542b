"""
PenguinWatch Backend - Observation Route Handlers
===================================================

What:  CRUD endpoints for observation records under /api/observations.
How:   Collects multipart form fields into a plain mapping, runs the explicit
       validation step (validate_observation), reads the optional `image`
       part, and delegates to ObservationService.
Who:   Called by the data-entry and review screens of the frontend.

Request Flow (POST / PUT):
    1. Form fields → validate_observation() → 400 on any field error
    2. Optional image part read into memory (empty filename = no image)
    3. ObservationService: [image pipeline] → write record → commit
    4. 201 (POST) / 200 (PUT) with the stored record
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from penguinwatch.database import get_db_session
from penguinwatch.dependencies import get_observation_service
from penguinwatch.schemas.observation import (
    DeleteResponse,
    ErrorResponse,
    ObservationResponse,
    ValidationErrorResponse,
    validate_observation,
)
from penguinwatch.services.observation_service import ImageUpload, ObservationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Observations"])


async def read_image_part(image: Optional[UploadFile]) -> Optional[ImageUpload]:
    """Turn the optional `image` form part into an ImageUpload, or None when absent."""
    if image is None or not image.filename:
        return None
    try:
        content = await image.read()
    finally:
        await image.close()

    logger.info(
        "Received image upload: filename=%s, content_type=%s, size=%d bytes",
        image.filename,
        image.content_type,
        len(content),
    )
    return ImageUpload(
        filename=image.filename,
        content_type=image.content_type,
        content=content,
    )


@router.get(
    "/observations",
    response_model=List[ObservationResponse],
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List all observations, newest first",
)
async def list_observations(
    db: AsyncSession = Depends(get_db_session),
    service: ObservationService = Depends(get_observation_service),
) -> List[ObservationResponse]:
    return await service.list_observations(db)


@router.post(
    "/observations",
    status_code=201,
    response_model=ObservationResponse,
    responses={
        201: {"description": "Observation created", "model": ObservationResponse},
        400: {"description": "Invalid fields or image", "model": ValidationErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Create an observation",
    description=(
        "Multipart form with location, species, adult_count, chick_count, notes "
        "and an optional `image` (JPEG or PNG, max 5MB)."
    ),
)
async def create_observation(
    location: Optional[str] = Form(default=None),
    species: Optional[str] = Form(default=None),
    adult_count: Optional[str] = Form(default=None),
    chick_count: Optional[str] = Form(default=None),
    notes: Optional[str] = Form(default=None),
    image: Optional[UploadFile] = File(default=None, description="Optional photo"),
    db: AsyncSession = Depends(get_db_session),
    service: ObservationService = Depends(get_observation_service),
) -> ObservationResponse:
    payload = validate_observation({
        "location": location,
        "species": species,
        "adult_count": adult_count,
        "chick_count": chick_count,
        "notes": notes,
    })
    upload = await read_image_part(image)
    return await service.create_observation(db, payload, upload)


@router.get(
    "/observations/{observation_id}",
    response_model=ObservationResponse,
    responses={
        404: {"description": "Observation not found", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Get a single observation by id",
)
async def get_observation(
    observation_id: int,
    db: AsyncSession = Depends(get_db_session),
    service: ObservationService = Depends(get_observation_service),
) -> ObservationResponse:
    return await service.get_observation(db, observation_id)


@router.put(
    "/observations/{observation_id}",
    response_model=ObservationResponse,
    responses={
        400: {"description": "Invalid fields or image", "model": ValidationErrorResponse},
        404: {"description": "Observation not found", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Replace an observation",
    description=(
        "Replaces every validated field. A new `image` replaces the stored photo; "
        "without one the current photo is kept."
    ),
)
async def update_observation(
    observation_id: int,
    location: Optional[str] = Form(default=None),
    species: Optional[str] = Form(default=None),
    adult_count: Optional[str] = Form(default=None),
    chick_count: Optional[str] = Form(default=None),
    notes: Optional[str] = Form(default=None),
    image: Optional[UploadFile] = File(default=None, description="Optional replacement photo"),
    db: AsyncSession = Depends(get_db_session),
    service: ObservationService = Depends(get_observation_service),
) -> ObservationResponse:
    payload = validate_observation(
        {
            "location": location,
            "species": species,
            "adult_count": adult_count,
            "chick_count": chick_count,
            "notes": notes,
        },
        update_id=observation_id,
    )
    upload = await read_image_part(image)
    return await service.update_observation(db, payload, upload)


@router.delete(
    "/observations/{observation_id}",
    response_model=DeleteResponse,
    responses={
        404: {"description": "Observation not found", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Delete an observation and its photo",
)
async def delete_observation(
    observation_id: int,
    db: AsyncSession = Depends(get_db_session),
    service: ObservationService = Depends(get_observation_service),
) -> DeleteResponse:
    return await service.delete_observation(db, observation_id)
