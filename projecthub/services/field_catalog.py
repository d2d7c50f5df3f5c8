"""Field metadata catalog: labels, data types and dropdown choices per entity."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from projecthub.database import SessionFactory
from projecthub.models.entities import DropdownOption, FieldMetadata
from projecthub.services.parallel_reads import read_blocks
from projecthub.services.value_coercion import DataType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldDescriptor:
    entity_name: str
    field_key: str
    display_label: str
    data_type: DataType

    @property
    def is_dropdown(self) -> bool:
        return self.data_type is DataType.DROPDOWN


@dataclass(frozen=True)
class DropdownChoice:
    entity_name: str
    field_key: str
    option_value: str
    id: Optional[int] = None


@dataclass
class EditorMetadata:
    entity_name: str
    fields: list[FieldDescriptor]
    dropdown_options: dict[str, list[DropdownChoice]] = field(default_factory=dict)


def _to_descriptor(entity_name: str, row: FieldMetadata) -> FieldDescriptor:
    return FieldDescriptor(
        entity_name=entity_name,
        field_key=row.field_key,
        display_label=row.display_label,
        data_type=DataType.parse(row.data_type),
    )


def _query_fields(db: Session, entity_name: str) -> list[FieldDescriptor]:
    statement = (
        select(FieldMetadata)
        .where(
            or_(
                FieldMetadata.table_name == entity_name,
                FieldMetadata.module_name == entity_name,
                FieldMetadata.parent_module == entity_name,
            )
        )
        .order_by(FieldMetadata.id.asc())
    )
    descriptors: list[FieldDescriptor] = []
    seen: set[str] = set()
    for row in db.execute(statement).scalars():
        if row.field_key in seen:
            logger.warning("Duplicate field key %s for %s ignored", row.field_key, entity_name)
            continue
        seen.add(row.field_key)
        descriptors.append(_to_descriptor(entity_name, row))
    return descriptors


def _query_options(db: Session, entity_name: str, field_key: str) -> list[DropdownChoice]:
    statement = (
        select(DropdownOption)
        .where(DropdownOption.table_name == entity_name, DropdownOption.field_name == field_key)
        .order_by(DropdownOption.option_value.asc())
    )
    return [
        DropdownChoice(
            entity_name=entity_name,
            field_key=field_key,
            option_value=row.option_value,
            id=row.id,
        )
        for row in db.execute(statement).scalars()
    ]


class FieldCatalog:
    """Read-only view over the field metadata tables.

    Descriptors are cached per catalog instance; one instance is meant to live
    for a single request or editing session.
    """

    def __init__(
        self,
        db: Session,
        *,
        session_factory: Optional[SessionFactory] = None,
        max_workers: int = 1,
    ) -> None:
        self._db = db
        self._session_factory = session_factory
        self._max_workers = max(1, max_workers)
        self._fields: dict[str, list[FieldDescriptor]] = {}

    def get_fields(self, entity_name: str) -> list[FieldDescriptor]:
        if entity_name not in self._fields:
            self._fields[entity_name] = _query_fields(self._db, entity_name)
        return list(self._fields[entity_name])

    def get_field(self, entity_name: str, field_key: str) -> Optional[FieldDescriptor]:
        for descriptor in self.get_fields(entity_name):
            if descriptor.field_key == field_key:
                return descriptor
        return None

    def label_for(self, entity_name: str, field_key: str) -> Optional[str]:
        descriptor = self.get_field(entity_name, field_key)
        return descriptor.display_label if descriptor else None

    def get_dropdown_options(self, entity_name: str, field_key: str) -> list[DropdownChoice]:
        """Return the legal values of a dropdown field.

        Fields that are unknown or not dropdown-typed yield an empty list so
        callers can treat "no options" as non-fatal.
        """
        descriptor = self.get_field(entity_name, field_key)
        if descriptor is None or not descriptor.is_dropdown:
            logger.debug("No dropdown options for %s.%s (not a dropdown field)", entity_name, field_key)
            return []
        return _query_options(self._db, entity_name, field_key)

    def load_editor_metadata(self, entity_name: str) -> EditorMetadata:
        """Load descriptors and every dropdown field's options for an editor.

        Option reads have no dependency on each other so they are issued
        together; the call returns once every read has settled.  A failed read
        degrades to an empty option list.
        """
        fields = self.get_fields(entity_name)
        dropdown_keys = [descriptor.field_key for descriptor in fields if descriptor.is_dropdown]
        metadata = EditorMetadata(entity_name=entity_name, fields=fields)
        if not dropdown_keys:
            return metadata

        reads = {
            field_key: (lambda db, field_key=field_key: self._safe_options(db, entity_name, field_key))
            for field_key in dropdown_keys
        }
        metadata.dropdown_options.update(
            read_blocks(reads, db=self._db, session_factory=self._session_factory, max_workers=self._max_workers)
        )
        return metadata

    @staticmethod
    def _safe_options(db: Session, entity_name: str, field_key: str) -> list[DropdownChoice]:
        try:
            return _query_options(db, entity_name, field_key)
        except SQLAlchemyError:
            logger.exception("Failed to load dropdown options for %s.%s", entity_name, field_key)
            return []


def field_keys(fields: Sequence[FieldDescriptor]) -> list[str]:
    return [descriptor.field_key for descriptor in fields]


__all__ = [
    "DropdownChoice",
    "EditorMetadata",
    "FieldCatalog",
    "FieldDescriptor",
    "field_keys",
]
