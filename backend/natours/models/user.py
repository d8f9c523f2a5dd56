"""
Natours Backend — User SQLAlchemy Model
=========================================

What:  ORM model for the `users` table.
Why:   Users author reviews and are referenced as tour guides.
How:   Portable column types (Uuid, DateTime) so the same model runs on
       PostgreSQL and SQLite.

Soft delete:
    `active=False` hides a user from every read (see natours.resources),
    which mirrors deactivating an account rather than destroying it.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from natours.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """A registered user, guide or admin."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Unique: a second signup with the same address is a duplicate-key error (400)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    photo: Mapped[str] = mapped_column(String(255), nullable=False, default="default.jpg")

    # One of: user, guide, lead-guide, admin
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    # Internal document version, bumped on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
