"""Pydantic Schemas: request/response validation for API endpoints.

Invariants:
    - Schemas validate at the system boundary (transport input, API responses)
    - Domain enums from core/ are used for enum fields

Design Decisions:
    - Separate from models: schemas are API contracts, models are persistence
"""
