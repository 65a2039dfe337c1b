"""API routers."""

from natours.routers.reviews import router as reviews_router
from natours.routers.reviews import tour_reviews_router
from natours.routers.tours import router as tours_router
from natours.routers.users import router as users_router

__all__ = ["users_router", "tours_router", "tour_reviews_router", "reviews_router"]
