"""
Base repository with common CRUD operations.

Provides generic record access for all feature repositories on top of
the Store contract. Records are validated into Pydantic models on the
way out and dumped to dicts on the way in.

Usage:
    class CredentialRepository(BaseRepository[CredentialRecord]):
        def __init__(self, store: Store):
            super().__init__(store, "strava_credentials", CredentialRecord)

        async def find_by_athlete_id(self, athlete_id: str) -> CredentialRecord | None:
            return await self.get_by(athlete_id=athlete_id)
"""

from typing import Any, Generic, Type, TypeVar

from pydantic import BaseModel

from .store import Store

T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """
    Base repository for store operations.

    All methods are async; the underlying Store decides how records
    are persisted.
    """

    def __init__(self, store: Store, collection: str, schema: Type[T]):
        """
        Initialize repository.

        Args:
            store: Store implementation
            collection: Collection name within the store
            schema: Pydantic model for records in this collection
        """
        self.store = store
        self.collection = collection
        self.schema = schema

    def _load(self, data: dict | None) -> T | None:
        if data is None:
            return None
        return self.schema.model_validate(data)

    async def get_by_key(self, key: Any) -> T | None:
        """
        Get record by primary key.

        Args:
            key: Primary key value (tuple for composite keys)

        Returns:
            Record if found, None otherwise
        """
        return self._load(await self.store.get(self.collection, key))

    async def get_all(self, **kwargs) -> list[T]:
        """
        Get all records matching criteria.

        Args:
            **kwargs: Field name-value pairs to filter by

        Returns:
            List of matching records
        """
        query = self.store.query(self.collection)
        for key, value in kwargs.items():
            query = query.eq(key, value)
        result = await query.find()
        return [self.schema.model_validate(item) for item in result.items]

    async def get_by(self, **kwargs) -> T | None:
        """
        Get single record by arbitrary field values.

        Returns:
            First matching record or None
        """
        items = await self.get_all(**kwargs)
        return items[0] if items else None

    async def create(self, record: T) -> T:
        """Insert a new record."""
        return self._load(await self.store.insert(self.collection, record.model_dump()))

    async def update(self, record: T) -> T:
        """Overwrite an existing record (identified by its key fields)."""
        return self._load(await self.store.update(self.collection, record.model_dump()))
