"""
SQLAlchemy-backed Store.

Maps each collection name to a declarative model. Every operation opens
its own AsyncSession and commits it, so independent writes may run
concurrently without sharing a session.

Usage:
    store = SqlAlchemyStore(AsyncSessionLocal, {
        "strava_credentials": StravaCredential,
        "strava_activities": StravaActivity,
    })
"""

import logging
from typing import Any, Type

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .store import Store, StoreError, DuplicateKeyError, RecordNotFoundError

logger = logging.getLogger(__name__)


class SqlAlchemyStore(Store):
    """Store implementation over SQLAlchemy async sessions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        models: dict[str, Type],
    ):
        self._session_factory = session_factory
        self._models = dict(models)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _model(self, collection: str) -> Type:
        try:
            return self._models[collection]
        except KeyError:
            raise StoreError(f"Unknown collection: {collection}") from None

    @staticmethod
    def _to_dict(entity) -> dict:
        return {
            column.name: getattr(entity, column.name)
            for column in entity.__table__.columns
        }

    @staticmethod
    def _key_of(model: Type, record: dict) -> Any:
        columns = list(model.__table__.primary_key.columns)
        try:
            values = tuple(record[column.name] for column in columns)
        except KeyError as exc:
            raise StoreError(f"Record is missing key field {exc.args[0]}") from None
        return values[0] if len(values) == 1 else values

    # -------------------------------------------------------------------------
    # Store contract
    # -------------------------------------------------------------------------

    async def get(self, collection: str, key: Any) -> dict | None:
        model = self._model(collection)
        try:
            async with self._session_factory() as session:
                entity = await session.get(model, key)
                return self._to_dict(entity) if entity is not None else None
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read {collection}: {exc}") from exc

    async def insert(self, collection: str, record: dict) -> dict:
        model = self._model(collection)
        try:
            async with self._session_factory() as session:
                entity = model(**record)
                session.add(entity)
                await session.commit()
                await session.refresh(entity)
                return self._to_dict(entity)
        except IntegrityError as exc:
            raise DuplicateKeyError(
                f"Duplicate key in {collection}: {self._key_of(model, record)}"
            ) from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to insert into {collection}: {exc}") from exc

    async def update(self, collection: str, record: dict) -> dict:
        model = self._model(collection)
        key = self._key_of(model, record)
        try:
            async with self._session_factory() as session:
                entity = await session.get(model, key)
                if entity is None:
                    raise RecordNotFoundError(f"No {collection} record with key {key}")
                for name, value in record.items():
                    setattr(entity, name, value)
                await session.commit()
                await session.refresh(entity)
                return self._to_dict(entity)
        except IntegrityError as exc:
            raise DuplicateKeyError(f"Update of {collection} {key} violates a unique key") from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to update {collection}: {exc}") from exc

    async def find(self, collection: str, filters: list[tuple[str, Any]]) -> list[dict]:
        model = self._model(collection)
        query = select(model)
        for name, value in filters:
            query = query.where(getattr(model, name) == value)
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return [self._to_dict(entity) for entity in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to query {collection}: {exc}") from exc
