"""
PenguinWatch Backend - Pydantic Request/Response Schemas
==========================================================

What:  Pydantic models defining the API contract and the validation layer.
How:   Multipart form fields are collected into a plain mapping and passed to
       validate_observation(), the explicit schema-validation step. It returns
       a typed DTO or raises ValidationError with a field-error list. Response
       models serialize ORM rows and aggregate rows.
Who:   Route handlers (input + response_model) and services (typed payloads).

Schemas are separate from the SQLAlchemy model: the API contract (string form
fields, error shapes, aggregate rows) changes independently of table layout.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator
from pydantic_core import PydanticCustomError

from penguinwatch.exceptions import ValidationError

# Counts are stored in 32-bit INTEGER columns
MAX_COUNT = 2_147_483_647


# ══════════════════════════════════════════════════════════════════════════
# Fixed Location Set
# ══════════════════════════════════════════════════════════════════════════

VALID_LOCATIONS = (
    "Antarctic Peninsula",
    "South Shetland Islands",
    "Port Lockroy",
    "Deception Island",
    "Half Moon Island",
    "Paradise Harbor",
    "Neko Harbor",
    "Petermann Island",
    "Lemaire Channel",
    "South Georgia Island",
    "Elephant Island",
    "Paulet Island",
    "Brown Bluff",
    "Cuverville Island",
    "Booth Island",
    "Torgersen Island",
)


# ══════════════════════════════════════════════════════════════════════════
# Request Models - validated observation payloads
# ══════════════════════════════════════════════════════════════════════════


class ObservationCreate(BaseModel):
    """
    Validated payload for a new observation.

    Form fields arrive as strings; pydantic's lax mode parses the counts
    ("5" → 5). Business rules are enforced by the validators below with
    the messages shown to data-entry users.
    """

    location: str = Field(description="One of the fixed named sites")
    species: str = Field(description="Species observed")
    adult_count: int = Field(description="Adults counted (>= 0)")
    chick_count: int = Field(description="Chicks counted (>= 0)")
    notes: str = Field(description="Free-text field notes")

    model_config = {"extra": "ignore"}

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: str) -> str:
        if v not in VALID_LOCATIONS:
            raise PydanticCustomError(
                "invalid_enum_value",
                "Please select a valid location",
                {"options": list(VALID_LOCATIONS)},
            )
        return v

    @field_validator("species")
    @classmethod
    def validate_species(cls, v: str) -> str:
        if not v:
            raise PydanticCustomError("too_small", "Species is required")
        return v

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: str) -> str:
        if not v:
            raise PydanticCustomError("too_small", "Notes are required")
        return v

    @field_validator("adult_count")
    @classmethod
    def validate_adult_count(cls, v: int) -> int:
        if v < 0:
            raise PydanticCustomError("too_small", "Adult count must be 0 or greater")
        if v > MAX_COUNT:
            raise PydanticCustomError("too_big", "Adult count is too large")
        return v

    @field_validator("chick_count")
    @classmethod
    def validate_chick_count(cls, v: int) -> int:
        if v < 0:
            raise PydanticCustomError("too_small", "Chick count must be 0 or greater")
        if v > MAX_COUNT:
            raise PydanticCustomError("too_big", "Chick count is too large")
        return v


class ObservationUpdate(ObservationCreate):
    """Full-record replacement payload; additionally requires a positive id."""

    id: int = Field(description="Identifier of the record being replaced")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: int) -> int:
        if v <= 0:
            raise PydanticCustomError("too_small", "Observation id must be a positive integer")
        return v


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Convert pydantic error dicts into the API's field-error items."""
    return [
        {
            "path": [part for part in err.get("loc", ())],
            "message": err.get("msg", "Invalid value"),
            "code": err.get("type", "custom"),
        }
        for err in errors
    ]


def validate_observation(
    data: Mapping[str, Any],
    update_id: Optional[int] = None,
) -> Union[ObservationCreate, ObservationUpdate]:
    """
    Validate untyped input into an observation payload.

    Args:
        data: Raw field values (strings from a form, or numbers from JSON).
              Keys with a None value are treated as missing.
        update_id: When given, validate as a full-record update for that id.

    Returns:
        ObservationCreate, or ObservationUpdate when update_id is given.

    Raises:
        ValidationError carrying one field-error item per failed rule.
    """
    payload = {key: value for key, value in data.items() if value is not None}
    try:
        if update_id is None:
            return ObservationCreate.model_validate(payload)
        payload["id"] = update_id
        return ObservationUpdate.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(
            message="Invalid observation data",
            errors=format_validation_errors(e.errors(include_url=False, include_context=False)),
        )


# ══════════════════════════════════════════════════════════════════════════
# Image Metadata - built by ImageService, written as one unit
# ══════════════════════════════════════════════════════════════════════════


class ImageMetadata(BaseModel):
    """Everything recorded about an attached photo."""

    image_url: str = Field(description="Public URL path, /uploads/<stored name>")
    image_original_name: str = Field(description="Filename supplied by the client")
    image_size: int = Field(description="Size in bytes")
    image_mime_type: str = Field(description="Detected MIME type")
    image_width: int = Field(description="Width in pixels")
    image_height: int = Field(description="Height in pixels")
    image_uploaded_at: datetime = Field(description="When the photo was processed (UTC)")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ObservationResponse(BaseModel):
    """Full representation of a stored observation."""

    id: int
    location: str
    species: str
    adult_count: int
    chick_count: int
    notes: str
    image_url: Optional[str] = None
    image_original_name: Optional[str] = None
    image_size: Optional[int] = None
    image_mime_type: Optional[str] = None
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    image_uploaded_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class DeleteResponse(BaseModel):
    success: bool = True


class StatsResponse(BaseModel):
    """
    Dashboard totals across all observations.

    Sums over an empty table are reported as 0, never null. random_image is
    one randomly chosen non-null image_url, used as a thumbnail.
    """

    total_adults: int = 0
    total_chicks: int = 0
    location_count: int = 0
    random_image: Optional[str] = None


class LocationMetric(BaseModel):
    """
    Aggregates for one location.

    growth_rate is total_population / observation_count: the mean population
    counted per observation at this site. It is not a trend over time.
    """

    location: str
    total_adults: int
    total_chicks: int
    total_population: int
    observation_count: int
    latest_observation: datetime
    growth_rate: float


# ══════════════════════════════════════════════════════════════════════════
# Error & Health Models
# ══════════════════════════════════════════════════════════════════════════


class FieldError(BaseModel):
    path: List[Union[str, int]]
    message: str
    code: str


class ValidationErrorResponse(BaseModel):
    """400 body: {"error": [field errors]}."""

    error: List[FieldError]


class ErrorBody(BaseModel):
    message: str
    status: int
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Body for every non-validation error: {"error": {message, status, timestamp}}."""

    error: ErrorBody


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    uptime_seconds: float
