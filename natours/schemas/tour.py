"""Pydantic schemas for tour endpoints."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, computed_field, model_validator

from natours.schemas.common import RequestModel
from natours.schemas.review import ReviewResponse

Difficulty = Literal["easy", "medium", "difficult"]


def _check_discount(price: float | None, price_discount: float | None) -> None:
    if price is not None and price_discount is not None and price_discount >= price:
        raise ValueError(f"Discount price ({price_discount}) should be below regular price")


class TourCreate(RequestModel):
    name: str = Field(min_length=5, max_length=40)
    duration: int = Field(gt=0)
    max_group_size: int = Field(gt=0)
    difficulty: Difficulty
    price: float = Field(gt=0)
    price_discount: float | None = Field(default=None, ge=0)
    summary: str = Field(min_length=1)
    description: str | None = None
    image_cover: str = Field(min_length=1)
    images: list[str] = []
    start_dates: list[datetime] = []
    secret_tour: bool = False
    guides: list[int] = []

    @model_validator(mode="after")
    def _discount_below_price(self):
        _check_discount(self.price, self.price_discount)
        return self


class TourUpdate(RequestModel):
    name: str | None = Field(default=None, min_length=5, max_length=40)
    duration: int | None = Field(default=None, gt=0)
    max_group_size: int | None = Field(default=None, gt=0)
    difficulty: Difficulty | None = None
    price: float | None = Field(default=None, gt=0)
    price_discount: float | None = Field(default=None, ge=0)
    summary: str | None = Field(default=None, min_length=1)
    description: str | None = None
    image_cover: str | None = Field(default=None, min_length=1)
    images: list[str] | None = None
    start_dates: list[datetime] | None = None
    secret_tour: bool | None = None
    guides: list[int] | None = None

    @model_validator(mode="after")
    def _discount_below_price(self):
        _check_discount(self.price, self.price_discount)
        return self


class GuideResponse(BaseModel):
    id: int
    name: str
    email: str
    photo: str | None
    role: str

    model_config = {"from_attributes": True}


class TourResponse(BaseModel):
    id: int
    name: str
    slug: str
    duration: int
    max_group_size: int
    difficulty: str
    ratings_average: float
    ratings_quantity: int
    price: float
    price_discount: float | None
    summary: str
    description: str | None
    image_cover: str
    images: list[str]
    start_dates: list[datetime]
    created_at: datetime
    guides: list[GuideResponse] = []

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def duration_weeks(self) -> float:
        return self.duration / 7


class TourDetailResponse(TourResponse):
    reviews: list[ReviewResponse] = []


class TourStat(BaseModel):
    difficulty: str
    num_tours: int
    num_ratings: int
    avg_rating: float
    avg_price: float
    min_price: float
    max_price: float


class MonthlyPlanEntry(BaseModel):
    month: int
    num_starts: int
    tours: list[str]
