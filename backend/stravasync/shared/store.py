"""
Store contract.

Persistence is consumed through a small document-style interface:

    record = await store.get("strava_credentials", "user-1")
    record = await store.insert("strava_credentials", {...})
    record = await store.update("strava_credentials", {...})  # must carry the key
    result = await store.query("strava_activities").eq("user_id", "user-1").find()
    result.items  # list of dicts

Records are plain dicts. Implementations decide how collections and keys
map onto physical storage.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class StoreError(Exception):
    """Persistence failure."""


class DuplicateKeyError(StoreError):
    """Insert collided with an existing primary key."""


class RecordNotFoundError(StoreError):
    """Update targeted a record that does not exist."""


@dataclass
class QueryResult:
    items: list[dict] = field(default_factory=list)


class Query:
    """Equality-filter query builder bound to one collection."""

    def __init__(self, store: "Store", collection: str):
        self._store = store
        self.collection = collection
        self.filters: list[tuple[str, Any]] = []

    def eq(self, field_name: str, value: Any) -> "Query":
        self.filters.append((field_name, value))
        return self

    async def find(self) -> QueryResult:
        items = await self._store.find(self.collection, self.filters)
        return QueryResult(items=items)


class Store(ABC):
    """Abstract persistence collaborator."""

    @abstractmethod
    async def get(self, collection: str, key: Any) -> dict | None:
        """Get a record by primary key (a tuple for composite keys)."""

    @abstractmethod
    async def insert(self, collection: str, record: dict) -> dict:
        """Insert a new record. Raises DuplicateKeyError on key collision."""

    @abstractmethod
    async def update(self, collection: str, record: dict) -> dict:
        """Overwrite the fields of an existing record identified by its key."""

    @abstractmethod
    async def find(self, collection: str, filters: list[tuple[str, Any]]) -> list[dict]:
        """Return all records matching every (field, value) filter."""

    def query(self, collection: str) -> Query:
        return Query(self, collection)
