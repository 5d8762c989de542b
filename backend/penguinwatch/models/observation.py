"""
PenguinWatch Backend - Observation SQLAlchemy Model
=====================================================

What:  ORM model representing the `observations` table.
How:   Inherits from the shared DeclarativeBase; Alembic reads this for migrations.
Who:   Used by ObservationService / StatsService for CRUD and aggregate queries.

Table Design:
    - Integer identity primary key, generated by the database
    - location / species / notes: free text, validated before persistence
    - adult_count / chick_count: non-negative (CHECK constraints back the
      validation layer)
    - image_*: optional photo metadata, written together by attach_image()
    - created_at: UTC with timezone, set once at insert

    Index on created_at DESC serves the newest-first listing.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from penguinwatch.database import Base

if TYPE_CHECKING:
    from penguinwatch.schemas.observation import ImageMetadata


# Columns that make up one image attachment; always written as a unit
IMAGE_FIELDS = (
    "image_url",
    "image_original_name",
    "image_size",
    "image_mime_type",
    "image_width",
    "image_height",
    "image_uploaded_at",
)


class Observation(Base):
    """
    One logged sighting at a named location.

    Lifecycle:
        1. Created from a validated form submission (with or without photo)
        2. Updated only wholesale: validated fields replaced, photo replaced
           only when a new one is uploaded
        3. Deleted explicitly; the attached photo file is removed afterwards
    """

    __tablename__ = "observations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    location: Mapped[str] = mapped_column(Text, nullable=False)
    species: Mapped[str] = mapped_column(Text, nullable=False)
    adult_count: Mapped[int] = mapped_column(Integer, nullable=False)
    chick_count: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False)

    # ── Image Attachment ──────────────────────────────────────────────────
    # image_url is the public path (/uploads/<stored name>), not a filesystem path
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_original_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    image_mime_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    image_height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    image_uploaded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint("adult_count >= 0", name="ck_observations_adult_count"),
        CheckConstraint("chick_count >= 0", name="ck_observations_chick_count"),
    )

    def attach_image(self, metadata: Optional["ImageMetadata"]) -> None:
        """Set all image fields from `metadata`, or clear them all when None."""
        for field in IMAGE_FIELDS:
            setattr(self, field, getattr(metadata, field) if metadata is not None else None)

    @property
    def has_image(self) -> bool:
        return self.image_url is not None

    def __repr__(self) -> str:
        return (
            f"<Observation(id={self.id}, location='{self.location}', "
            f"adults={self.adult_count}, chicks={self.chick_count})>"
        )


# Listing is always newest first
Index("idx_observations_created_at", Observation.created_at.desc())
