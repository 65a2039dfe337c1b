"""Tour API endpoints."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from natours.database import get_db
from natours.dependencies import TOUR_MANAGERS, TOUR_STAFF, require_roles
from natours.models.tour import Tour
from natours.schemas.common import DocumentEnvelope, ListEnvelope, document, documents
from natours.schemas.review import ReviewResponse
from natours.schemas.tour import MonthlyPlanEntry, TourCreate, TourDetailResponse, TourResponse, TourStat, TourUpdate
from natours.services.query import QueryFeatures
from natours.services.tours import get_tour_service

router = APIRouter(prefix="/tours", tags=["Tours"])

# Preset query for the cheapest of the best-rated tours
TOP_TOURS_PARAMS = (
    ("sort", "-ratings_average,price"),
    ("fields", "name,price,ratings_average,summary,difficulty"),
    ("limit", "5"),
)


def _list_tours(db: Session, params: list[tuple[str, str]]) -> dict:
    features = QueryFeatures(get_tour_service().base_query(db), Tour, params)
    return documents(features.filter().sort().project().paginate().all())


@router.get("", response_model=ListEnvelope)
def list_tours(request: Request, db: Session = Depends(get_db)) -> dict:
    """List tours with filtering, sorting, field selection and pagination."""
    return _list_tours(db, request.query_params.multi_items())


@router.get("/top5tours", response_model=ListEnvelope)
def top_tours(request: Request, db: Session = Depends(get_db)) -> dict:
    """Five best-rated tours, cheapest first on ties. Other filters still apply."""
    preset = {key for key, _ in TOP_TOURS_PARAMS}
    params = [(k, v) for k, v in request.query_params.multi_items() if k not in preset]
    return _list_tours(db, params + list(TOP_TOURS_PARAMS))


@router.get("/tour-stats")
def tour_stats(db: Session = Depends(get_db)) -> dict:
    stats = [TourStat(**row) for row in get_tour_service().get_tour_stats(db)]
    return {"status": "success", "results": len(stats), "data": {"stats": stats}}


@router.get("/monthly-plan/{year}", dependencies=[Depends(require_roles(TOUR_STAFF))])
def monthly_plan(year: int, db: Session = Depends(get_db)) -> dict:
    plan = [MonthlyPlanEntry(**row) for row in get_tour_service().get_monthly_plan(db, year)]
    return {"status": "success", "results": len(plan), "data": {"plan": plan}}


@router.post(
    "",
    response_model=DocumentEnvelope[TourResponse],
    status_code=201,
    dependencies=[Depends(require_roles(TOUR_MANAGERS))],
)
def create_tour(body: TourCreate, db: Session = Depends(get_db)) -> dict:
    tour = get_tour_service().create_tour(db, body.model_dump())
    return document(TourResponse.model_validate(tour))


@router.get("/{tour_id}", response_model=DocumentEnvelope[TourDetailResponse])
def get_tour(tour_id: int, db: Session = Depends(get_db)) -> dict:
    """Get a tour with its guides and reviews."""
    service = get_tour_service()
    tour = service.get_tour(db, tour_id)
    detail = TourDetailResponse.model_validate(tour)
    detail.reviews = [ReviewResponse.model_validate(r) for r in service.get_tour_reviews(db, tour.id)]
    return document(detail)


@router.patch(
    "/{tour_id}",
    response_model=DocumentEnvelope[TourResponse],
    dependencies=[Depends(require_roles(TOUR_MANAGERS))],
)
def update_tour(tour_id: int, body: TourUpdate, db: Session = Depends(get_db)) -> dict:
    service = get_tour_service()
    tour = service.update_tour(db, service.get_tour(db, tour_id), body.model_dump(exclude_unset=True))
    return document(TourResponse.model_validate(tour))


@router.delete("/{tour_id}", status_code=204, dependencies=[Depends(require_roles(TOUR_MANAGERS))])
def delete_tour(tour_id: int, db: Session = Depends(get_db)) -> Response:
    service = get_tour_service()
    service.delete_tour(db, service.get_tour(db, tour_id))
    return Response(status_code=204)
