"""Infrastructure Layer: database access and adapters implementing the core's ports.

Invariants:
    - Adapters implement core/repository_protocols.py; the core never imports them
    - SQLAlchemy errors never escape an adapter unmapped
"""
