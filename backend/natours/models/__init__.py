"""
Natours Backend — ORM Models
==============================

Importing this package registers every mapped class with `Base.metadata`,
which relationship() string references and Alembic autogenerate rely on.
"""

from natours.models.user import User
from natours.models.tour import Tour, TourStartDate, tour_guides
from natours.models.review import Review

__all__ = ["User", "Tour", "TourStartDate", "tour_guides", "Review"]
