# Routes package init
"""
Natours Backend — API Routes Package
======================================

What:  HTTP route registrations for every resource.
How:   Each module owns one APIRouter; natours.main includes them all.

Route Inventory:
    - tours.py:    /api/v1/tours                      (CRUD + top-5-cheap, tour-stats,
                                                       monthly-plan, tours-within, distances)
    - users.py:    /api/v1/users                      (CRUD)
    - reviews.py:  /api/v1/reviews                    (CRUD)
                   /api/v1/tours/{tour_id}/reviews    (nested list / create)
    - health.py:   /health                            (service health check)

Design Principle:
    Routes stay THIN: CRUD endpoints are produced by the handler factory and
    analytics endpoints delegate to services. Business logic lives in services.
"""
