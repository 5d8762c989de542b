"""
PenguinWatch Backend - Application Package
============================================

REST backend for penguin colony observation records: validated data entry,
photo attachments, and dashboard aggregates.

Layers:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← record lifecycle, images, aggregates
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← explicit async Database handle
    └─────────────────────────────────────┘

client.ObservationClient talks to the same API from Python.
"""

__version__ = "1.0.0"
