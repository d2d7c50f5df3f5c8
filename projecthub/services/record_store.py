"""Persistence adapter used by the mutation router and the audit diff builder.

Rows cross this boundary as plain dictionaries so handlers and the audit
builder never hold ORM instances.  Every ``SQLAlchemyError`` is re-raised as
``PersistenceError``; transaction boundaries stay with the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

from sqlalchemy import delete, func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from projecthub.services.mutation_errors import PersistenceError, RecordNotFoundError

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class RecordStore(Protocol):
    def get(self, model: type, record_id: int) -> Optional[Row]: ...

    def fetch_many(self, model: type, project_id: int, ids: Iterable[int]) -> list[Row]: ...

    def fetch_all(self, model: type, project_id: int) -> list[Row]: ...

    def find_first(self, model: type, project_id: int, criteria: Mapping[str, Any]) -> Optional[Row]: ...

    def delete_many(self, model: type, project_id: int, ids: Sequence[int]) -> int: ...

    def update(self, model: type, project_id: int, record_id: int, values: Mapping[str, Any]) -> Row: ...

    def create(self, model: type, project_id: int, values: Mapping[str, Any]) -> Row: ...

    def lookup_id(self, model: type, name_column: str, name: str) -> Optional[int]: ...

    def lookup_name(self, model: type, name_column: str, record_id: int) -> Optional[str]: ...

    def max_instance(
        self, model: type, project_id: int, instance_column: str, group: Mapping[str, Any]
    ) -> int: ...


def row_to_dict(instance: Any) -> Row:
    mapper = inspect(instance).mapper
    return {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}


def column_names(model: type) -> list[str]:
    return [attr.key for attr in inspect(model).column_attrs]


class SqlAlchemyRecordStore:
    """RecordStore backed by a SQLAlchemy session."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, model: type, record_id: int) -> Optional[Row]:
        try:
            instance = self._db.get(model, record_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read {model.__tablename__} #{record_id}") from exc
        return row_to_dict(instance) if instance is not None else None

    def fetch_many(self, model: type, project_id: int, ids: Iterable[int]) -> list[Row]:
        ids = list(ids)
        if not ids:
            return []
        statement = select(model).where(model.id.in_(ids), model.project_id == project_id)
        return self._scalars(statement, model)

    def fetch_all(self, model: type, project_id: int) -> list[Row]:
        statement = select(model).where(model.project_id == project_id).order_by(model.id.asc())
        return self._scalars(statement, model)

    def find_first(self, model: type, project_id: int, criteria: Mapping[str, Any]) -> Optional[Row]:
        statement = select(model).where(model.project_id == project_id)
        for column, value in criteria.items():
            statement = statement.where(getattr(model, column) == value)
        rows = self._scalars(statement.order_by(model.id.asc()).limit(1), model)
        return rows[0] if rows else None

    def delete_many(self, model: type, project_id: int, ids: Sequence[int]) -> int:
        if not ids:
            return 0
        statement = delete(model).where(model.id.in_(list(ids)), model.project_id == project_id)
        try:
            result = self._db.execute(statement)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to delete {model.__tablename__} records") from exc
        logger.debug("Deleted %s %s rows for project %s", result.rowcount, model.__tablename__, project_id)
        return result.rowcount or 0

    def update(self, model: type, project_id: int, record_id: int, values: Mapping[str, Any]) -> Row:
        try:
            instance = self._db.execute(
                select(model).where(model.id == record_id, model.project_id == project_id)
            ).scalar_one_or_none()
            if instance is None:
                raise RecordNotFoundError(f"{model.__tablename__} record {record_id} not found for project {project_id}")
            for column, value in values.items():
                setattr(instance, column, value)
            self._db.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to update {model.__tablename__} #{record_id}") from exc
        return row_to_dict(instance)

    def create(self, model: type, project_id: int, values: Mapping[str, Any]) -> Row:
        instance = model(**{**values, "project_id": project_id})
        try:
            self._db.add(instance)
            self._db.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to create {model.__tablename__} record") from exc
        return row_to_dict(instance)

    def lookup_id(self, model: type, name_column: str, name: str) -> Optional[int]:
        statement = select(model.id).where(getattr(model, name_column) == name).limit(1)
        try:
            return self._db.execute(statement).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to look up {model.__tablename__} '{name}'") from exc

    def lookup_name(self, model: type, name_column: str, record_id: int) -> Optional[str]:
        statement = select(getattr(model, name_column)).where(model.id == record_id)
        try:
            return self._db.execute(statement).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to look up {model.__tablename__} #{record_id}") from exc

    def max_instance(
        self, model: type, project_id: int, instance_column: str, group: Mapping[str, Any]
    ) -> int:
        statement = select(func.max(getattr(model, instance_column))).where(model.project_id == project_id)
        for column, value in group.items():
            statement = statement.where(getattr(model, column) == value)
        try:
            current = self._db.execute(statement).scalar()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read {instance_column} for {model.__tablename__}") from exc
        return int(current or 0)

    def _scalars(self, statement, model: type) -> list[Row]:
        try:
            return [row_to_dict(instance) for instance in self._db.execute(statement).scalars()]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read {model.__tablename__} records") from exc


__all__ = [
    "RecordStore",
    "Row",
    "SqlAlchemyRecordStore",
    "column_names",
    "row_to_dict",
]
