"""
Shared infrastructure (NOT business logic).

Usage:
    from stravasync.shared import Store, SqlAlchemyStore, BaseRepository
"""
from .store import (
    Store,
    Query,
    QueryResult,
    StoreError,
    DuplicateKeyError,
    RecordNotFoundError,
)
from .sql_store import SqlAlchemyStore
from .repository import BaseRepository

__all__ = [
    "Store",
    "Query",
    "QueryResult",
    "StoreError",
    "DuplicateKeyError",
    "RecordNotFoundError",
    "SqlAlchemyStore",
    "BaseRepository",
]
