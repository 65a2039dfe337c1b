"""Review API endpoints, top-level and nested under a tour."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from natours.database import get_db
from natours.dependencies import REVIEW_EDITORS, REVIEWERS, get_current_user, require_roles
from natours.errors import ValidationError
from natours.models.review import Review
from natours.models.user import User
from natours.schemas.common import DocumentEnvelope, ListEnvelope, document, documents
from natours.schemas.review import ReviewAuthor, ReviewCreate, ReviewResponse, ReviewUpdate
from natours.services.query import QueryFeatures
from natours.services.reviews import get_review_service

router = APIRouter(prefix="/reviews", tags=["Reviews"], dependencies=[Depends(get_current_user)])
tour_reviews_router = APIRouter(
    prefix="/tours/{tour_id}/reviews", tags=["Reviews"], dependencies=[Depends(get_current_user)]
)


def _list_reviews(request: Request, db: Session, tour_id: int | None) -> dict:
    features = QueryFeatures(get_review_service().base_query(db, tour_id), Review, request.query_params.multi_items())
    author = {"user": lambda review: ReviewAuthor.model_validate(review.user).model_dump()}
    return documents(features.filter().sort().project().paginate().all(populate=author))


def _create_review(db: Session, user: User, body: ReviewCreate, tour_id: int | None) -> dict:
    tour_id = body.tour if body.tour is not None else tour_id
    if tour_id is None:
        raise ValidationError("Review must belong to a tour!")
    review = get_review_service().create_review(db, user, tour_id, body.review, body.rating)
    return document(ReviewResponse.model_validate(review))


@router.get("", response_model=ListEnvelope)
def list_reviews(request: Request, db: Session = Depends(get_db)) -> dict:
    return _list_reviews(request, db, None)


@router.post("", response_model=DocumentEnvelope[ReviewResponse], status_code=201)
def create_review(
    body: ReviewCreate,
    user: User = Depends(require_roles(REVIEWERS)),
    db: Session = Depends(get_db),
) -> dict:
    return _create_review(db, user, body, None)


@router.get("/{review_id}", response_model=DocumentEnvelope[ReviewResponse])
def get_review(review_id: int, db: Session = Depends(get_db)) -> dict:
    return document(ReviewResponse.model_validate(get_review_service().get_review(db, review_id)))


@router.patch("/{review_id}", response_model=DocumentEnvelope[ReviewResponse])
def update_review(
    review_id: int,
    body: ReviewUpdate,
    user: User = Depends(require_roles(REVIEW_EDITORS)),
    db: Session = Depends(get_db),
) -> dict:
    """Update a review. Plain users may only edit their own."""
    service = get_review_service()
    review = service.get_review(db, review_id)
    service.ensure_can_modify(review, user)

    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    review = service.update_review(db, review, changes)
    return document(ReviewResponse.model_validate(review))


@router.delete("/{review_id}", status_code=204)
def delete_review(
    review_id: int,
    user: User = Depends(require_roles(REVIEW_EDITORS)),
    db: Session = Depends(get_db),
) -> Response:
    service = get_review_service()
    review = service.get_review(db, review_id)
    service.ensure_can_modify(review, user)
    service.delete_review(db, review)
    return Response(status_code=204)


# --- Nested under /tours/{tour_id} ---


@tour_reviews_router.get("", response_model=ListEnvelope)
def list_tour_reviews(tour_id: int, request: Request, db: Session = Depends(get_db)) -> dict:
    return _list_reviews(request, db, tour_id)


@tour_reviews_router.post("", response_model=DocumentEnvelope[ReviewResponse], status_code=201)
def create_tour_review(
    tour_id: int,
    body: ReviewCreate,
    user: User = Depends(require_roles(REVIEWERS)),
    db: Session = Depends(get_db),
) -> dict:
    return _create_review(db, user, body, tour_id)
