"""
Natours Backend — Application Package Initializer
==================================================

What: Marks the `natours` directory as a Python package.
Why:  Enables module imports like `from natours.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend is a small layered REST API:

    ┌─────────────────────────────────────┐
    │      Routes (tours/users/reviews)   │  ← URL wiring only
    ├─────────────────────────────────────┤
    │  Handler Factory │ Tour Aggregations│  ← uniform CRUD + read-only rollups
    ├─────────────────────────────────────┤
    │         Query Translator            │  ← query string → SELECT
    ├─────────────────────────────────────┤
    │  Resources, Models & Schemas        │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Every failure, wherever it is raised, ends up in `natours.error_handlers`,
    which renders the one JSON envelope the API speaks.
"""

__version__ = "1.0.0"
