"""Review model."""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from natours.database import Base, utcnow


class Review(Base):
    """A user's review of a tour. One review per user per tour."""

    __tablename__ = "review"
    __table_args__ = (UniqueConstraint("tour_id", "user_id", name="uq_review_tour_user"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    review = Column(String(400), nullable=False)
    rating = Column(Float, nullable=False)
    tour_id = Column(Integer, ForeignKey("tour.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", lazy="joined")
