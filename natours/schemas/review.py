"""Pydantic schemas for review endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field

from natours.schemas.common import RequestModel


class ReviewCreate(RequestModel):
    review: str = Field(min_length=3, max_length=400)
    rating: float = Field(ge=1, le=5)
    tour: int | None = None


class ReviewUpdate(RequestModel):
    review: str | None = Field(default=None, min_length=3, max_length=400)
    rating: float | None = Field(default=None, ge=1, le=5)


class ReviewAuthor(BaseModel):
    id: int
    name: str
    photo: str | None

    model_config = {"from_attributes": True}


class ReviewResponse(BaseModel):
    id: int
    review: str
    rating: float
    tour_id: int
    user_id: int
    created_at: datetime
    user: ReviewAuthor | None = None

    model_config = {"from_attributes": True}
