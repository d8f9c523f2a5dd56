# Services package init
"""
Natours Backend — Services Layer
==================================

What:  Request-independent logic sitting between routes (HTTP) and the database.
Why:   Routes handle HTTP, services handle query building and data rules, so
       each can be tested without the other.

Service Inventory:
    - query_translator: query string → QueryDescriptor → lazy SELECT
    - handler_factory:  generic CRUD endpoints for any Resource, catch_async
    - tour_aggregations: tour statistics, monthly plan, geo queries
    - sanitizer:        request body scrubbing
"""
