"""
Natours Backend — Pydantic Schemas
====================================

API contracts per resource (create / update / response) plus the shared
envelope and GeoJSON building blocks in `common`.
"""
