"""Tour model and the tour/guide association table."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from natours.database import Base, utcnow

tour_guide = Table(
    "tour_guide",
    Base.metadata,
    Column("tour_id", Integer, ForeignKey("tour.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
)


class Tour(Base):
    """Bookable tour."""

    __tablename__ = "tour"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(40), unique=True, nullable=False)
    slug = Column(String(64), nullable=False, index=True)
    duration = Column(Integer, nullable=False)
    max_group_size = Column(Integer, nullable=False)
    difficulty = Column(String(16), nullable=False)  # easy, medium, difficult
    ratings_average = Column(Float, nullable=False, default=0)
    ratings_quantity = Column(Integer, nullable=False, default=0)
    price = Column(Float, nullable=False, index=True)
    price_discount = Column(Float, nullable=True)
    summary = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    image_cover = Column(String(256), nullable=False)
    images = Column(JSON, nullable=False, default=list)
    start_dates = Column(JSON, nullable=False, default=list)  # ISO-8601 strings
    secret_tour = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    guides = relationship("User", secondary=tour_guide, lazy="selectin")
