"""Review service. Every write refreshes the reviewed tour's rating aggregate."""

from typing import Any

from sqlalchemy.orm import Query, Session

from natours.database import commit_or_conflict
from natours.errors import AuthorizationError, NotFoundError
from natours.models.review import Review
from natours.models.user import Role, User
from natours.services.tours import get_tour_service

DUPLICATE_REVIEW = "You have already reviewed this tour"


class ReviewService:
    """Handles review CRUD and author checks."""

    def base_query(self, db: Session, tour_id: int | None = None) -> Query:
        query = db.query(Review)
        if tour_id is not None:
            query = query.filter(Review.tour_id == tour_id)
        return query

    def get_review(self, db: Session, review_id: int) -> Review:
        review = db.query(Review).filter(Review.id == review_id).first()
        if not review:
            raise NotFoundError("No review found with that ID")
        return review

    def ensure_can_modify(self, review: Review, user: User) -> None:
        """Plain users may only change their own reviews; admins may change any."""
        if user.role == Role.USER.value and review.user_id != user.id:
            raise AuthorizationError(
                "You are not the author of this review and do not have permission to perform this action"
            )

    def create_review(self, db: Session, user: User, tour_id: int, review: str, rating: float) -> Review:
        tour_service = get_tour_service()
        tour_service.get_tour(db, tour_id)

        item = Review(review=review, rating=rating, tour_id=tour_id, user_id=user.id)
        db.add(item)
        commit_or_conflict(db, DUPLICATE_REVIEW)
        db.refresh(item)

        tour_service.recalculate_ratings(db, tour_id)
        return item

    def update_review(self, db: Session, review: Review, changes: dict[str, Any]) -> Review:
        for field, value in changes.items():
            setattr(review, field, value)
        db.commit()
        db.refresh(review)

        get_tour_service().recalculate_ratings(db, review.tour_id)
        return review

    def delete_review(self, db: Session, review: Review) -> None:
        tour_id = review.tour_id
        db.delete(review)
        db.commit()

        get_tour_service().recalculate_ratings(db, tour_id)


_review_service: ReviewService | None = None


def get_review_service() -> ReviewService:
    """Get singleton review service instance."""
    global _review_service
    if _review_service is None:
        _review_service = ReviewService()
    return _review_service
