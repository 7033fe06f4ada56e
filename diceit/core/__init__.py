"""Core Layer: pure domain logic for rounds and settlement, no IO, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Settlement math and admission checks are pure and deterministic

Design Decisions:
    - Functional core separated from imperative shell; IO only behind repository_protocols
"""
