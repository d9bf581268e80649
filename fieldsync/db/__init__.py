"""Database access for fieldsync: engine construction and SQL migrations.

Queries are raw SQL through SQLAlchemy Core in the repository modules under
`fieldsync/logic/`; no ORM models are defined.
"""

from fieldsync.db.base import create_store_engine, get_engine
from fieldsync.db.migrations_runner import apply_migrations

__all__ = [
    "create_store_engine",
    "get_engine",
    "apply_migrations",
]
