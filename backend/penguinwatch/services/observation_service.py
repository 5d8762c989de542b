"""
PenguinWatch Backend - Observation Service (Record Lifecycle)
===============================================================

What:  Insert, list, fetch, replace and delete observation records, keeping
       attached photo files consistent with the rows that reference them.
How:   Receives an explicit AsyncSession per call and an ImageService at
       construction; commits its own writes so file cleanup can follow a
       committed change inside the same request.
Who:   Called by the observation route handlers.

Write workflows:
    create:  [process image] → insert → commit
             failure after the image was stored → stored file removed
    update:  lookup (404 before any file is written) → [process new image]
             → replace fields → commit → remove previous file
    delete:  lookup (remember image_url) → delete → commit → remove file
             a failed file removal is logged; the deletion still succeeds

No transaction spans the file write and the row write. A crash between the
two can leave an orphaned file in the upload directory.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from penguinwatch.exceptions import DatabaseError, NotFoundError, PenguinWatchError
from penguinwatch.models.observation import Observation
from penguinwatch.schemas.observation import (
    DeleteResponse,
    ImageMetadata,
    ObservationCreate,
    ObservationResponse,
    ObservationUpdate,
)
from penguinwatch.services.image_service import ImageService

logger = logging.getLogger(__name__)

# Validated fields replaced wholesale on create and update
MUTABLE_FIELDS = ("location", "species", "adult_count", "chick_count", "notes")


@dataclass
class ImageUpload:
    """An uploaded image as received from the request."""

    filename: Optional[str]
    content_type: Optional[str]
    content: bytes


class ObservationService:
    """
    Business logic for observation records.

    Error Handling Strategy:
        NotFoundError and ValidationError propagate unchanged. Anything else
        raised while talking to the database is logged with context and
        wrapped in DatabaseError (generic 500 message).
    """

    def __init__(self, image_service: ImageService):
        self.image_service = image_service

    async def _process_image(
        self, image: Optional[ImageUpload]
    ) -> Tuple[Optional[ImageMetadata], Optional[Path]]:
        if image is None:
            return None, None
        return await self.image_service.process_upload(
            filename=image.filename,
            content_type=image.content_type,
            content=image.content,
        )

    async def _load(self, db: AsyncSession, observation_id: int) -> Observation:
        try:
            result = await db.execute(
                select(Observation).where(Observation.id == observation_id)
            )
            observation = result.scalar_one_or_none()
        except Exception as e:
            logger.error("Database error fetching observation %s: %s", observation_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the observation. Please try again.",
                context={"observation_id": observation_id},
            )

        if observation is None:
            raise NotFoundError(resource="observation", resource_id=observation_id)
        return observation

    # ── Reads ─────────────────────────────────────────────────────────────

    async def list_observations(self, db: AsyncSession) -> List[ObservationResponse]:
        """All observations, newest first (id breaks ties between equal timestamps)."""
        try:
            result = await db.execute(
                select(Observation).order_by(desc(Observation.created_at), desc(Observation.id))
            )
            observations = result.scalars().all()
        except Exception as e:
            logger.error("Database error listing observations: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve observations. Please try again.",
                context={"error_type": type(e).__name__},
            )
        return [ObservationResponse.model_validate(obs) for obs in observations]

    async def get_observation(self, db: AsyncSession, observation_id: int) -> ObservationResponse:
        """
        Retrieve a single observation.

        Raises:
            NotFoundError: no observation with this id (→ 404)
            DatabaseError: query execution failed (→ 500)
        """
        observation = await self._load(db, observation_id)
        return ObservationResponse.model_validate(observation)

    # ── Writes ────────────────────────────────────────────────────────────

    async def create_observation(
        self,
        db: AsyncSession,
        payload: ObservationCreate,
        image: Optional[ImageUpload] = None,
    ) -> ObservationResponse:
        """
        Store a new observation, with its photo when one was uploaded.

        Args:
            db: Async database session
            payload: Validated observation fields
            image: Optional uploaded photo

        Raises:
            ValidationError: image rejected (nothing stored)
            DatabaseError: insert failed (uploaded file removed)
        """
        metadata, stored_path = await self._process_image(image)

        try:
            observation = Observation(
                **{field: getattr(payload, field) for field in MUTABLE_FIELDS}
            )
            observation.attach_image(metadata)
            db.add(observation)
            await db.commit()
        except Exception as e:
            if stored_path is not None:
                await self.image_service.remove(stored_path)
            if isinstance(e, PenguinWatchError):
                raise
            logger.error("Unexpected error creating observation: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the observation. Please try again.",
                context={"original_error": type(e).__name__},
            )

        logger.info(
            "Observation %s created at %s (image=%s)",
            observation.id,
            observation.location,
            observation.has_image,
        )
        return ObservationResponse.model_validate(observation)

    async def update_observation(
        self,
        db: AsyncSession,
        payload: ObservationUpdate,
        image: Optional[ImageUpload] = None,
    ) -> ObservationResponse:
        """
        Replace the validated fields of an existing observation.

        The photo is replaced only when a new image is supplied; otherwise the
        current attachment is kept. The previous file is removed only after
        the new metadata was computed and the update committed.

        Raises:
            NotFoundError: unknown id (checked before any file is written)
            ValidationError: new image rejected (record and old image untouched)
            DatabaseError: update failed (new file removed, old file kept)
        """
        observation = await self._load(db, payload.id)
        metadata, stored_path = await self._process_image(image)
        previous_url = observation.image_url if metadata is not None else None

        try:
            for field in MUTABLE_FIELDS:
                setattr(observation, field, getattr(payload, field))
            if metadata is not None:
                observation.attach_image(metadata)
            await db.commit()
        except Exception as e:
            if stored_path is not None:
                await self.image_service.remove(stored_path)
            if isinstance(e, PenguinWatchError):
                raise
            logger.error(
                "Unexpected error updating observation %s: %s", payload.id, str(e), exc_info=True
            )
            raise DatabaseError(
                message="Could not update the observation. Please try again.",
                context={"observation_id": payload.id, "original_error": type(e).__name__},
            )

        if previous_url:
            await self.image_service.remove_by_url(previous_url)

        logger.info("Observation %s updated (new image=%s)", observation.id, metadata is not None)
        return ObservationResponse.model_validate(observation)

    async def delete_observation(self, db: AsyncSession, observation_id: int) -> DeleteResponse:
        """
        Delete an observation, then its photo file.

        Raises:
            NotFoundError: unknown id (nothing removed)
            DatabaseError: delete failed
        """
        observation = await self._load(db, observation_id)
        image_url = observation.image_url

        try:
            await db.delete(observation)
            await db.commit()
        except Exception as e:
            logger.error(
                "Unexpected error deleting observation %s: %s", observation_id, str(e), exc_info=True
            )
            raise DatabaseError(
                message="Could not delete the observation. Please try again.",
                context={"observation_id": observation_id, "original_error": type(e).__name__},
            )

        if image_url and not await self.image_service.remove_by_url(image_url):
            logger.error(
                "Observation %s deleted but its image %s could not be removed",
                observation_id,
                image_url,
            )

        logger.info("Observation %s deleted", observation_id)
        return DeleteResponse(success=True)
