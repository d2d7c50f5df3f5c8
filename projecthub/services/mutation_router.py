"""Routes finance submodule mutation bundles to persistence calls.

Each submodule registers a handler that knows its table, its writable
fields, its natural-key references and the legacy payload shapes it still
accepts.  The router applies a bundle in a fixed order: deletes, then
updates, then creates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Iterable, Mapping, Optional

from projecthub.constants.audit_fields import AUDIT_SKIPPED_KEYS
from projecthub.services.mutation_errors import (
    PayloadValidationError,
    ReferenceNotFoundError,
    UnsupportedEntityError,
)
from projecthub.services.provisional_records import is_provisional_identifier
from projecthub.services.record_store import RecordStore, Row, column_names
from projecthub.services.value_coercion import (
    CoercionError,
    DataType,
    data_type_for_column,
    is_blank,
    to_storage,
)

logger = logging.getLogger(__name__)

DELETE_KEYS = ("deletedIds", "deleteIds", "deleted_ids")
_SYSTEM_COLUMNS = frozenset({"id", "project_id", "created_at", "updated_at"})


@dataclass
class MutationBundle:
    updates: list[dict[str, Any]] = field(default_factory=list)
    creates: list[dict[str, Any]] = field(default_factory=list)
    deleted_ids: list[Any] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "MutationBundle":
        """Build a bundle from the wire form, accepting the legacy ``deleteIds`` key."""
        if not isinstance(payload, Mapping):
            raise PayloadValidationError("Mutation payload must be an object")
        deleted: list[Any] = []
        for key in DELETE_KEYS:
            if payload.get(key):
                deleted.extend(_as_list(payload[key], key))
        return cls(
            updates=[dict(item) if isinstance(item, Mapping) else item for item in _as_list(payload.get("updates"), "updates")],
            creates=[dict(item) if isinstance(item, Mapping) else item for item in _as_list(payload.get("creates"), "creates")],
            deleted_ids=deleted,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.updates:
            payload["updates"] = [dict(item) for item in self.updates]
        if self.creates:
            payload["creates"] = [dict(item) for item in self.creates]
        if self.deleted_ids:
            payload["deletedIds"] = list(self.deleted_ids)
        return payload

    def is_empty(self) -> bool:
        return not (self.updates or self.creates or self.deleted_ids)


def _as_list(value: Any, key: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise PayloadValidationError(f"'{key}' must be a list")
    return list(value)


class Variant(str, Enum):
    BY_ID = "by_id"
    NATURAL_KEY = "natural_key"
    PROVISIONAL = "provisional"


@dataclass(frozen=True)
class Reference:
    """A foreign key that payloads may address by name or by id."""

    key: str
    column: str
    model: type
    name_column: str
    label: str
    name_keys: tuple[str, ...]
    id_keys: tuple[str, ...] = ()

    def input_from(self, item: Mapping[str, Any]) -> Optional[tuple[str, Any]]:
        for id_key in (self.column, *self.id_keys):
            if not is_blank(item.get(id_key)):
                return ("id", item[id_key])
        for name_key in self.name_keys:
            if not is_blank(item.get(name_key)):
                return ("name", item[name_key])
        return None


@dataclass
class Operation:
    variant: Variant
    source: str
    index: int
    values: dict[str, Any]
    record_id: Optional[int] = None
    provisional_id: Optional[str] = None
    reference_inputs: dict[str, tuple[str, Any]] = field(default_factory=dict)
    instance: Optional[int] = None


@dataclass
class ValidatedBundle:
    deleted_ids: list[int]
    updates: list[Operation]
    creates: list[Operation]


class WriteKind(str, Enum):
    UPDATE = "update"
    CREATE = "create"


@dataclass
class Write:
    kind: WriteKind
    values: dict[str, Any]
    record_id: Optional[int] = None


@dataclass
class SkippedRecord:
    source: str
    index: int
    reason: str
    provisional_id: Optional[str] = None


@dataclass
class DispatchResult:
    entity_name: str
    records: list[Row] = field(default_factory=list)
    skipped: list[SkippedRecord] = field(default_factory=list)
    reconciled: dict[str, int] = field(default_factory=dict)
    deleted: list[int] = field(default_factory=list)
    created_ops: set[tuple[str, int]] = field(default_factory=set)

    def skipped_keys(self) -> set[tuple[str, int]]:
        return {(record.source, record.index) for record in self.skipped}


def coerce_record_id(value: Any, label: str = "id") -> int:
    if isinstance(value, bool):
        raise PayloadValidationError(f"Invalid {label}: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise PayloadValidationError(f"Invalid {label}: {value!r}")


class SubmoduleHandler:
    """Base handler: subclasses declare their table and payload conventions."""

    name: ClassVar[str]
    model: ClassVar[type]
    field_types: ClassVar[dict[str, DataType]] = {}
    field_aliases: ClassVar[dict[str, str]] = {}
    references: ClassVar[tuple[Reference, ...]] = ()
    natural_key: ClassVar[tuple[str, ...]] = ()
    instance_column: ClassVar[Optional[str]] = None
    instance_group: ClassVar[tuple[str, ...]] = ()
    update_may_create: ClassVar[bool] = False
    derived_columns: ClassVar[frozenset[str]] = frozenset()
    context_reference: ClassVar[Optional[str]] = None

    # ------------------------------------------------------------------
    # field model
    # ------------------------------------------------------------------

    @classmethod
    def writable_fields(cls) -> dict[str, DataType]:
        excluded = set(_SYSTEM_COLUMNS) | set(cls.derived_columns) | {reference.column for reference in cls.references}
        if cls.instance_column:
            excluded.add(cls.instance_column)
        table = cls.model.__table__
        fields: dict[str, DataType] = {}
        for name in column_names(cls.model):
            if name in excluded:
                continue
            fields[name] = cls.field_types.get(name) or data_type_for_column(table.columns[name])
        return fields

    def normalize_keys(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {self.field_aliases.get(key, key): value for key, value in item.items()}

    def storage_values(self, item: Mapping[str, Any], *, label: str) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for key, data_type in self.writable_fields().items():
            if key not in item:
                continue
            try:
                values[key] = to_storage(item[key], data_type)
            except CoercionError as exc:
                raise PayloadValidationError(f"{label}: {key}: {exc}") from exc
        return values

    # ------------------------------------------------------------------
    # validate
    # ------------------------------------------------------------------

    def validate(self, bundle: MutationBundle) -> ValidatedBundle:
        """Classify every item once; any unrecognised shape rejects the whole bundle."""
        deleted_ids = [coerce_record_id(value, "deleted id") for value in bundle.deleted_ids]
        updates: list[Operation] = []
        creates: list[Operation] = []
        for index, item in enumerate(bundle.updates):
            operation = self.classify_update(item, index)
            (creates if operation.variant is Variant.PROVISIONAL else updates).append(operation)
        for index, item in enumerate(bundle.creates):
            creates.append(self.classify_create(item, index))
        return ValidatedBundle(deleted_ids=deleted_ids, updates=updates, creates=creates)

    def classify_update(self, item: Any, index: int) -> Operation:
        label = f"{self.name} update #{index}"
        item = self._mapping(item, label)
        raw_id = item.get("id")
        if not is_blank(raw_id) and not is_provisional_identifier(raw_id):
            return Operation(
                variant=Variant.BY_ID,
                source="updates",
                index=index,
                record_id=coerce_record_id(raw_id),
                values=self.storage_values(item, label=label),
            )
        inputs = self.reference_inputs(item)
        if self.natural_key and all(key in inputs for key in self.natural_key):
            return Operation(
                variant=Variant.NATURAL_KEY,
                source="updates",
                index=index,
                values=self.storage_values(item, label=label),
                reference_inputs=inputs,
            )
        if self.update_may_create:
            return self._provisional(item, "updates", index, label)
        raise PayloadValidationError(f"{label} has no id")

    def classify_create(self, item: Any, index: int) -> Operation:
        label = f"{self.name} create #{index}"
        item = self._mapping(item, label)
        raw_id = item.get("id")
        if not is_blank(raw_id) and not is_provisional_identifier(raw_id):
            raise PayloadValidationError(f"{label} carries persisted id {raw_id}")
        return self._provisional(item, "creates", index, label)

    def _provisional(self, item: dict[str, Any], source: str, index: int, label: str) -> Operation:
        inputs = self.reference_inputs(item)
        missing = [reference.label for reference in self.references if reference.key not in inputs]
        if missing:
            raise PayloadValidationError(f"{label} is missing {', '.join(missing)}")
        provisional_id = item.get("provisional_id")
        if is_blank(provisional_id) and is_provisional_identifier(item.get("id")):
            provisional_id = item["id"]
        instance = None
        if self.instance_column and not is_blank(item.get(self.instance_column)):
            instance = coerce_record_id(item[self.instance_column], self.instance_column)
        return Operation(
            variant=Variant.PROVISIONAL,
            source=source,
            index=index,
            values=self.storage_values(item, label=label),
            provisional_id=None if is_blank(provisional_id) else str(provisional_id),
            reference_inputs=inputs,
            instance=instance,
        )

    def _mapping(self, item: Any, label: str) -> dict[str, Any]:
        if not isinstance(item, Mapping):
            raise PayloadValidationError(f"{label} must be an object")
        return self.normalize_keys(item)

    def reference_inputs(self, item: Mapping[str, Any]) -> dict[str, tuple[str, Any]]:
        inputs: dict[str, tuple[str, Any]] = {}
        for reference in self.references:
            found = reference.input_from(item)
            if found is not None:
                inputs[reference.key] = found
        return inputs

    # ------------------------------------------------------------------
    # resolve / write
    # ------------------------------------------------------------------

    def resolve_references(self, store: RecordStore, operation: Operation) -> dict[str, int]:
        """Turn name-or-id inputs into foreign key values; a miss raises ``ReferenceNotFoundError``."""
        resolved: dict[str, int] = {}
        for reference in self.references:
            found = operation.reference_inputs.get(reference.key)
            if found is None:
                continue
            kind, value = found
            if kind == "id":
                record_id = coerce_record_id(value, reference.column)
                if store.lookup_name(reference.model, reference.name_column, record_id) is None:
                    raise ReferenceNotFoundError(reference.label, record_id)
            else:
                record_id = store.lookup_id(reference.model, reference.name_column, str(value).strip())
                if record_id is None:
                    raise ReferenceNotFoundError(reference.label, value)
            resolved[reference.column] = record_id
        return resolved

    def create_defaults(self, store: RecordStore, resolved: Mapping[str, int]) -> dict[str, Any]:
        """Extra column values a handler derives for new rows."""
        return {}

    def to_writes(
        self,
        store: RecordStore,
        project_id: int,
        operation: Operation,
        resolved: Mapping[str, int],
    ) -> list[Write]:
        if operation.variant is Variant.BY_ID:
            return [Write(WriteKind.UPDATE, dict(operation.values), record_id=operation.record_id)]
        if operation.variant is Variant.NATURAL_KEY:
            existing = store.find_first(self.model, project_id, resolved)
            if existing is not None:
                return [Write(WriteKind.UPDATE, dict(operation.values), record_id=existing["id"])]
        values = {**self.create_defaults(store, resolved), **resolved, **operation.values}
        if self.instance_column and operation.instance is not None:
            values[self.instance_column] = operation.instance
        return [Write(WriteKind.CREATE, values)]

    def instance_group_key(self, values: Mapping[str, Any]) -> dict[str, Any]:
        return {column: values.get(column) for column in self.instance_group}

    @classmethod
    def audited_fields(cls) -> list[str]:
        return [key for key in cls.writable_fields() if key not in AUDIT_SKIPPED_KEYS]


class MutationRouter:
    """Registry of submodule handlers plus the ordered dispatch loop."""

    def __init__(self, handlers: Iterable[SubmoduleHandler] = ()) -> None:
        self._handlers: dict[str, SubmoduleHandler] = {}
        for handler in handlers:
            self.register(handler)

    def register(self, handler: SubmoduleHandler) -> None:
        self._handlers[handler.name] = handler

    @property
    def names(self) -> list[str]:
        return sorted(self._handlers)

    def handler_for(self, entity_name: str) -> SubmoduleHandler:
        try:
            return self._handlers[entity_name]
        except KeyError:
            raise UnsupportedEntityError(entity_name, self._handlers, kind="finance submodule") from None

    def dispatch(
        self,
        entity_name: str,
        project_id: int,
        bundle: MutationBundle,
        store: RecordStore,
    ) -> DispatchResult:
        """Apply a bundle: deletes, then updates, then creates.

        Validation happens before any write.  A create whose reference does
        not resolve is skipped and reported; persistence errors propagate so
        the caller can roll back.
        """
        handler = self.handler_for(entity_name)
        validated = handler.validate(bundle)
        result = DispatchResult(entity_name=entity_name)

        if validated.deleted_ids:
            store.delete_many(handler.model, project_id, validated.deleted_ids)
            result.deleted = list(validated.deleted_ids)

        instances: dict[tuple, int] = {}
        for operation in [*validated.updates, *validated.creates]:
            try:
                resolved = handler.resolve_references(store, operation)
            except ReferenceNotFoundError as exc:
                logger.warning("Skipping %s %s #%s: %s", entity_name, operation.source, operation.index, exc)
                result.skipped.append(
                    SkippedRecord(
                        source=operation.source,
                        index=operation.index,
                        reason=str(exc),
                        provisional_id=operation.provisional_id,
                    )
                )
                continue

            for write in handler.to_writes(store, project_id, operation, resolved):
                if write.kind is WriteKind.UPDATE:
                    row = store.update(handler.model, project_id, write.record_id, write.values)
                else:
                    self._assign_instance(handler, store, project_id, operation, write, instances)
                    row = store.create(handler.model, project_id, write.values)
                    result.created_ops.add((operation.source, operation.index))
                    if operation.provisional_id and operation.provisional_id not in result.reconciled:
                        result.reconciled[operation.provisional_id] = row["id"]
                result.records.append(row)

        logger.info(
            "Applied %s mutation for project %s: %s written, %s deleted, %s skipped",
            entity_name,
            project_id,
            len(result.records),
            len(result.deleted),
            len(result.skipped),
        )
        return result

    @staticmethod
    def _assign_instance(
        handler: SubmoduleHandler,
        store: RecordStore,
        project_id: int,
        operation: Operation,
        write: Write,
        instances: dict[tuple, int],
    ) -> None:
        column = handler.instance_column
        if not column or write.values.get(column) is not None:
            return
        group = handler.instance_group_key(write.values)
        cache_key = (operation.provisional_id, tuple(sorted(group.items())))
        if operation.provisional_id and cache_key in instances:
            write.values[column] = instances[cache_key]
            return
        instance = store.max_instance(handler.model, project_id, column, group) + 1
        write.values[column] = instance
        if operation.provisional_id:
            instances[cache_key] = instance


def summarize_result(result: DispatchResult) -> str:
    parts = []
    if result.deleted:
        parts.append(f"{len(result.deleted)} deleted")
    written = len(result.records)
    if written:
        parts.append(f"{written} saved")
    if result.skipped:
        parts.append(f"{len(result.skipped)} skipped")
    return ", ".join(parts) or "no changes"


__all__ = [
    "DispatchResult",
    "MutationBundle",
    "MutationRouter",
    "Operation",
    "Reference",
    "SkippedRecord",
    "SubmoduleHandler",
    "ValidatedBundle",
    "Variant",
    "Write",
    "WriteKind",
    "coerce_record_id",
    "summarize_result",
]
