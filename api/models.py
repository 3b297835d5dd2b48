"""
API request and response models for ParkSpot REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
records/models.py, which own the internal domain representation. Route
handlers map between the two.

Request models carry no owner fields. Unknown keys such as author_id or
customer_id in a request body are ignored by Pydantic's default extra="ignore"
and the owner always comes from the session.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from records.models import HistoryEntry, Post

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class ReservationCreate(BaseModel):
    """Request body for POST /api/v1/reservations.

    Structured counterpart to the HTML form's comma-delimited "park" field.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    place: str = Field(min_length=1, max_length=200)
    parking_spot: int
    spots_left: int
    rating: int


class PostCreate(BaseModel):
    """Request body for POST /api/v1/posts. Markup is stripped before storage."""

    title: str = Field(min_length=1, max_length=500)
    body: str = Field(min_length=1, max_length=20000)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str
    expires_in: int
    username: str


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    created_at: str


class HistoryEntryResponse(BaseModel):
    """One reservation row. customer_id is omitted -- it is always the caller."""

    model_config = ConfigDict(frozen=True)

    id: int
    visited_date: str
    place: str
    parking_spot: int
    spots_left: int
    rating: int

    @classmethod
    def from_entry(cls, entry: HistoryEntry) -> "HistoryEntryResponse":
        return cls(
            id=entry.id,
            visited_date=entry.visited_date,
            place=entry.place,
            parking_spot=entry.parking_spot,
            spots_left=entry.spots_left,
            rating=entry.rating,
        )


class PostResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    created_at: str
    title: str
    body: str
    author_id: int

    @classmethod
    def from_post(cls, post: Post) -> "PostResponse":
        return cls(
            id=post.id,
            created_at=post.created_at,
            title=post.title,
            body=post.body,
            author_id=post.author_id,
        )


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
