"""
Music Journal Backend — Application Package Initializer
========================================================

What: Marks the `musicjournal` directory as a Python package.
Why:  Enables module imports like `from musicjournal.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend follows the same layered shape as the rest of the project:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns, auth resolution
    ├─────────────────────────────────────┤
    │   Services (Store, Identity, Auth)  │  ← Ownership scoping, reconciliation
    ├─────────────────────────────────────┤
    │     Crypto Envelope (crypto.py)     │  ← Field-level encryption at rest
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Owned async engine handle
    └─────────────────────────────────────┘

    The JournalStore is the only component that touches storage. Routes
    never build SQL; they hand the authenticated user id to the store.
"""

__version__ = "1.0.0"
