"""
Ranking request/response schemas.
"""
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MovieSummary(BaseModel):
    """
    Display fields of a movie that is not (or no longer) in the ranked list.

    Used as the insertion candidate and as the comparison prompt.
    """

    tmdb_id: int = Field(..., gt=0)
    title: str
    poster_path: str | None = None
    overview: str | None = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        cleaned = " ".join(v.split())
        if not cleaned:
            raise ValueError("Title cannot be blank")
        return cleaned


class StartInsertionRequest(MovieSummary):
    """Payload for POST /rankings."""


class SubmitPreferenceRequest(BaseModel):
    """Payload for POST /rankings/compare."""

    preferred_tmdb_id: int = Field(..., gt=0)
    # Echo of the session_id from the last compare response. Optional; when
    # present, answers aimed at a replaced session are rejected.
    session_id: UUID | None = None


class RankedMovieItem(BaseModel):
    """Single entry of the ranked list."""

    id: UUID
    tmdb_id: int
    title: str
    poster_path: str | None
    overview: str | None
    rank: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InsertionResponse(BaseModel):
    """
    Response of every step that can place a movie.

    status="added"   → item is the persisted entry.
    status="compare" → prompt is the movie to compare the candidate against.
    """

    status: Literal["added", "compare"]
    item: RankedMovieItem | None = None
    prompt: MovieSummary | None = None
    session_id: UUID | None = None
