"""Tour service for CRUD, statistics and rating aggregates."""

import math
import re
from collections import defaultdict
from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from natours.database import commit_or_conflict
from natours.errors import NotFoundError, ValidationError
from natours.models.review import Review
from natours.models.tour import Tour
from natours.models.user import User

DUPLICATE_NAME = "A tour with that name already exists"
STATS_MIN_RATING = 4.5
NULLABLE_FIELDS = frozenset({"price_discount", "description"})

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    return _NON_ALNUM.sub("-", text.lower()).strip("-")


def round_rating(value: float) -> float:
    """Round half up to one decimal (4.25 -> 4.3)."""
    return math.floor(value * 10 + 0.5) / 10


def _parse_start_date(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class TourService:
    """Handles tour persistence and the aggregates derived from tours and reviews."""

    def base_query(self, db: Session) -> Query:
        """Every tour read goes through here; secret tours are never returned."""
        return db.query(Tour).filter(Tour.secret_tour.is_(False))

    def get_tour(self, db: Session, tour_id: int) -> Tour:
        tour = self.base_query(db).filter(Tour.id == tour_id).first()
        if not tour:
            raise NotFoundError("No tour found with that ID")
        return tour

    def get_tour_reviews(self, db: Session, tour_id: int) -> list[Review]:
        return db.query(Review).filter(Review.tour_id == tour_id).order_by(Review.created_at.desc()).all()

    def _resolve_guides(self, db: Session, guide_ids: list[int]) -> list[User]:
        if not guide_ids:
            return []
        unique_ids = set(guide_ids)
        guides = db.query(User).filter(User.id.in_(unique_ids), User.active.is_(True)).all()
        missing = unique_ids - {g.id for g in guides}
        if missing:
            raise ValidationError(f"Unknown guide id(s): {', '.join(str(i) for i in sorted(missing))}")
        return guides

    def create_tour(self, db: Session, data: dict[str, Any]) -> Tour:
        data = dict(data)
        guide_ids = data.pop("guides", None) or []
        start_dates = data.pop("start_dates", None) or []

        tour = Tour(**data)
        tour.slug = slugify(tour.name)
        tour.start_dates = [d.isoformat() for d in start_dates]
        tour.guides = self._resolve_guides(db, guide_ids)
        db.add(tour)
        commit_or_conflict(db, DUPLICATE_NAME)
        db.refresh(tour)
        return tour

    def update_tour(self, db: Session, tour: Tour, changes: dict[str, Any]) -> Tour:
        """Apply a partial update. Explicit nulls only clear the optional columns."""
        changes = {k: v for k, v in changes.items() if v is not None or k in NULLABLE_FIELDS}
        price = changes.get("price", tour.price)
        discount = changes.get("price_discount", tour.price_discount)
        if discount is not None and discount >= price:
            raise ValidationError(f"Discount price ({discount}) should be below regular price")

        if "guides" in changes:
            tour.guides = self._resolve_guides(db, changes.pop("guides") or [])
        if "start_dates" in changes:
            tour.start_dates = [d.isoformat() for d in changes.pop("start_dates") or []]

        for field, value in changes.items():
            setattr(tour, field, value)
        if "name" in changes:
            tour.slug = slugify(tour.name)

        commit_or_conflict(db, DUPLICATE_NAME)
        db.refresh(tour)
        return tour

    def delete_tour(self, db: Session, tour: Tour) -> None:
        """Delete a tour together with its reviews."""
        db.query(Review).filter(Review.tour_id == tour.id).delete(synchronize_session=False)
        db.delete(tour)
        db.commit()

    def recalculate_ratings(self, db: Session, tour_id: int) -> None:
        """Recompute ratings_quantity and ratings_average from the tour's reviews."""
        count, average = (
            db.query(func.count(Review.id), func.avg(Review.rating)).filter(Review.tour_id == tour_id).one()
        )
        tour = db.get(Tour, tour_id)
        if tour is None:
            return
        if count:
            tour.ratings_quantity = count
            tour.ratings_average = round_rating(float(average))
        else:
            tour.ratings_quantity = 0
            tour.ratings_average = 0
        db.commit()

    def get_tour_stats(self, db: Session) -> list[dict[str, Any]]:
        """Aggregate well-rated tours per difficulty level."""
        difficulty = func.upper(Tour.difficulty)
        num_tours = func.count(Tour.id)
        rows = (
            self.base_query(db)
            .filter(Tour.ratings_average >= STATS_MIN_RATING)
            .with_entities(
                difficulty.label("difficulty"),
                num_tours.label("num_tours"),
                func.sum(Tour.ratings_quantity).label("num_ratings"),
                func.avg(Tour.ratings_average).label("avg_rating"),
                func.avg(Tour.price).label("avg_price"),
                func.min(Tour.price).label("min_price"),
                func.max(Tour.price).label("max_price"),
            )
            .group_by(difficulty)
            .order_by(num_tours.desc())
            .all()
        )
        return [dict(row._mapping) for row in rows]

    def get_monthly_plan(self, db: Session, year: int) -> list[dict[str, Any]]:
        """Count tour starts per month of ``year``, busiest month first, at most 12 rows."""
        months: dict[int, list[str]] = defaultdict(list)
        for tour in self.base_query(db).all():
            for raw in tour.start_dates or []:
                start = _parse_start_date(raw)
                if start.year == year:
                    months[start.month].append(tour.name)

        plan = [{"month": month, "num_starts": len(names), "tours": names} for month, names in months.items()]
        plan.sort(key=lambda entry: (-entry["num_starts"], entry["month"]))
        return plan[:12]


_tour_service: TourService | None = None


def get_tour_service() -> TourService:
    """Get singleton tour service instance."""
    global _tour_service
    if _tour_service is None:
        _tour_service = TourService()
    return _tour_service
