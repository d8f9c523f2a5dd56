"""
Natours Backend — Review SQLAlchemy Model
===========================================

What:  ORM model for the `reviews` table.
Why:   Reviews belong to one tour and one user; their ratings feed the
       tour's ratings_average / ratings_quantity.
How:   (tour_id, user_id) is unique — one review per user per tour.
       The author is eager-loaded because every review document embeds
       the author's name and photo.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from natours.database import Base
from natours.models.tour import Tour
from natours.models.user import User, utcnow


class Review(Base):
    """A user's rating and comment on a tour."""

    __tablename__ = "reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    review: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    tour_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    tour: Mapped[Tour] = relationship(Tour, back_populates="reviews", lazy="raise")
    user: Mapped[User] = relationship(User, lazy="selectin")

    __table_args__ = (
        UniqueConstraint("tour_id", "user_id", name="uq_reviews_tour_user"),
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, tour_id={self.tour_id}, rating={self.rating})>"
