"""Create observations table

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

What:  Creates the `observations` table: one row per colony visit, with
       head counts, free-text notes and optional photo metadata.
How:   Portable column types (INTEGER identity, TEXT, TIMESTAMP WITH TIME ZONE)
       so the same revision runs on PostgreSQL and SQLite.

Rollback: downgrade() drops the table and every observation in it.
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the observations table, its count constraints and the recency index."""
    op.create_table(
        "observations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("location", sa.Text(), nullable=False, comment="One of the named survey sites"),
        sa.Column("species", sa.Text(), nullable=False),
        sa.Column("adult_count", sa.Integer(), nullable=False),
        sa.Column("chick_count", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),

        # Photo metadata: all set together or all NULL
        sa.Column("image_url", sa.Text(), nullable=True, comment="Public path, /uploads/<name>"),
        sa.Column("image_original_name", sa.Text(), nullable=True),
        sa.Column("image_size", sa.Integer(), nullable=True),
        sa.Column("image_mime_type", sa.Text(), nullable=True, comment="Detected, not declared"),
        sa.Column("image_width", sa.Integer(), nullable=True),
        sa.Column("image_height", sa.Integer(), nullable=True),
        sa.Column("image_uploaded_at", sa.TIMESTAMP(timezone=True), nullable=True),

        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="Insertion time (UTC); never changed by updates",
        ),

        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("adult_count >= 0", name="ck_observations_adult_count"),
        sa.CheckConstraint("chick_count >= 0", name="ck_observations_chick_count"),
    )

    # Listing is always newest first
    op.create_index(
        "idx_observations_created_at",
        "observations",
        [sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_observations_created_at", table_name="observations")
    op.drop_table("observations")
