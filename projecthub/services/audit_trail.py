"""Before/after diffing of submodule mutations into audit entries.

The builder runs in two steps around a save: ``capture_before`` reads the
rows a bundle is about to touch, and ``build_change_log`` compares them with
what the bundle wrote.  Only fields whose normalized values differ produce an
entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from projecthub.constants.audit_fields import AUDIT_SKIPPED_KEYS, FINANCE_MODULE_NAME
from projecthub.services.field_catalog import FieldCatalog
from projecthub.services.mutation_errors import MutationError, PersistenceError, ReferenceNotFoundError
from projecthub.services.mutation_router import (
    DispatchResult,
    MutationBundle,
    MutationRouter,
    Operation,
    SubmoduleHandler,
    Variant,
)
from projecthub.services.record_store import RecordStore, Row
from projecthub.services.value_coercion import normalize_for_comparison, values_differ

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AuditEntry:
    project_id: Optional[int]
    module_name: str
    sub_module: Optional[str]
    field_name: str
    old_value: Optional[str]
    new_value: Optional[str]
    action_type: AuditAction
    user_name: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if self.action_type is AuditAction.CREATE and self.old_value is not None:
            raise ValueError("CREATE audit entries carry no old value")
        if self.action_type is AuditAction.DELETE and self.new_value is not None:
            raise ValueError("DELETE audit entries carry no new value")


@dataclass
class OldValueSnapshot:
    """Rows read before a save, keyed the way ``build_change_log`` looks them up."""

    rows: dict[int, Row] = field(default_factory=dict)
    natural_rows: dict[int, Row] = field(default_factory=dict)
    context: dict[int, dict[str, str]] = field(default_factory=dict)
    reference_names: dict[tuple[str, int], str] = field(default_factory=dict)


def _title_words(text: str, separator: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in text.split(separator))


def format_field_name(
    key: str,
    parameter_name: Optional[str] = None,
    qualifier: Optional[str] = None,
) -> str:
    """Human label for a field, using parameter/loan type naming where present.

    >>> format_field_name("interest_rate")
    'Interest Rate'
    >>> format_field_name("value", "Payment Frequency", "Term Loan")
    'Payment Frequency - Term Loan'
    """
    if parameter_name and qualifier:
        return f"{parameter_name} - {qualifier}"
    if key == "value" and parameter_name:
        return parameter_name
    if key not in ("value", "as_of_date") and parameter_name:
        return f"{parameter_name} - {_title_words(key, '_')}"
    return _title_words(key, "_")


def format_submodule_name(submodule_name: str) -> str:
    return _title_words(submodule_name, "-")


def derive_action_type(bundle: MutationBundle) -> AuditAction:
    if bundle.deleted_ids:
        return AuditAction.DELETE
    if bundle.creates:
        return AuditAction.CREATE
    return AuditAction.UPDATE


class AuditDiffBuilder:
    def __init__(
        self,
        router: MutationRouter,
        catalog: Optional[FieldCatalog] = None,
        *,
        module_name: str = FINANCE_MODULE_NAME,
    ) -> None:
        self._router = router
        self._catalog = catalog
        self._module_name = module_name

    # ------------------------------------------------------------------
    # before
    # ------------------------------------------------------------------

    def capture_before(
        self,
        entity_name: str,
        project_id: int,
        bundle: MutationBundle,
        store: RecordStore,
    ) -> OldValueSnapshot:
        """Read every row the bundle will update, upsert or delete.

        Capture is best effort: a read failure is logged and yields a partial
        snapshot, and a malformed bundle yields an empty one because dispatch
        will reject it anyway.
        """
        snapshot = OldValueSnapshot()
        handler = self._router.handler_for(entity_name)
        try:
            validated = handler.validate(bundle)
        except MutationError:
            return snapshot

        try:
            ids = [op.record_id for op in validated.updates if op.variant is Variant.BY_ID]
            ids.extend(validated.deleted_ids)
            for row in store.fetch_many(handler.model, project_id, ids):
                snapshot.rows[row["id"]] = row

            for operation in validated.updates:
                if operation.variant is not Variant.NATURAL_KEY:
                    continue
                try:
                    resolved = handler.resolve_references(store, operation)
                except ReferenceNotFoundError:
                    continue
                existing = store.find_first(handler.model, project_id, resolved)
                if existing is not None:
                    snapshot.natural_rows[operation.index] = existing

            for row in [*snapshot.rows.values(), *snapshot.natural_rows.values()]:
                snapshot.context[row["id"]] = self._row_context(handler, store, row, snapshot)

            for operation in [*validated.updates, *validated.creates]:
                self._remember_reference_names(handler, store, operation, snapshot)
        except PersistenceError:
            logger.exception("Failed to capture old values for %s (project %s)", entity_name, project_id)
        return snapshot

    def _lookup_reference_name(
        self, store: RecordStore, reference, record_id: Any, snapshot: OldValueSnapshot
    ) -> Optional[str]:
        if record_id is None:
            return None
        cache_key = (reference.key, record_id)
        if cache_key not in snapshot.reference_names:
            name = store.lookup_name(reference.model, reference.name_column, record_id)
            if name is None:
                return None
            snapshot.reference_names[cache_key] = name
        return snapshot.reference_names[cache_key]

    def _row_context(
        self, handler: SubmoduleHandler, store: RecordStore, row: Row, snapshot: OldValueSnapshot
    ) -> dict[str, str]:
        context: dict[str, str] = {}
        for reference in handler.references:
            name = self._lookup_reference_name(store, reference, row.get(reference.column), snapshot)
            if name is None:
                continue
            if reference.key == "parameter":
                context["parameter_name"] = name
            elif reference.key == handler.context_reference:
                context["qualifier"] = name
        return context

    def _remember_reference_names(
        self, handler: SubmoduleHandler, store: RecordStore, operation: Operation, snapshot: OldValueSnapshot
    ) -> None:
        for reference in handler.references:
            found = operation.reference_inputs.get(reference.key)
            if found is None or found[0] != "id":
                continue
            try:
                record_id = int(found[1])
            except (TypeError, ValueError):
                continue
            self._lookup_reference_name(store, reference, record_id, snapshot)

    # ------------------------------------------------------------------
    # after
    # ------------------------------------------------------------------

    def build_change_log(
        self,
        entity_name: str,
        bundle: MutationBundle,
        snapshot: OldValueSnapshot,
        project_id: int,
        result: Optional[DispatchResult] = None,
    ) -> list[AuditEntry]:
        """Compare the snapshot with what the bundle wrote.

        Deleted rows produce DELETE entries for each non-blank old value,
        updates produce UPDATE entries for each changed field and new rows
        produce CREATE entries for each non-blank value.  Records skipped by
        dispatch are left out.
        """
        handler = self._router.handler_for(entity_name)
        validated = handler.validate(bundle)
        sub_module = format_submodule_name(entity_name)
        skipped = result.skipped_keys() if result is not None else set()
        audited = handler.audited_fields()
        entries: list[AuditEntry] = []

        def add(key: str, old: Any, new: Any, action: AuditAction, context: Mapping[str, str]) -> None:
            entries.append(
                AuditEntry(
                    project_id=project_id,
                    module_name=self._module_name,
                    sub_module=sub_module,
                    field_name=self._label(handler, key, context),
                    old_value=normalize_for_comparison(old),
                    new_value=normalize_for_comparison(new),
                    action_type=action,
                )
            )

        for record_id in validated.deleted_ids:
            row = snapshot.rows.get(record_id)
            if row is None:
                continue
            context = snapshot.context.get(record_id, {})
            for key in audited:
                if normalize_for_comparison(row.get(key)) is not None:
                    add(key, row.get(key), None, AuditAction.DELETE, context)

        for operation in validated.updates:
            if (operation.source, operation.index) in skipped:
                continue
            if operation.variant is Variant.BY_ID:
                row = snapshot.rows.get(operation.record_id)
            else:
                row = snapshot.natural_rows.get(operation.index)
            if row is None:
                if operation.variant is Variant.NATURAL_KEY and (
                    result is None or (operation.source, operation.index) in result.created_ops
                ):
                    self._create_entries(handler, operation, snapshot, add)
                continue
            context = snapshot.context.get(row["id"], {})
            for key, new_value in operation.values.items():
                if key in AUDIT_SKIPPED_KEYS:
                    continue
                if values_differ(row.get(key), new_value):
                    add(key, row.get(key), new_value, AuditAction.UPDATE, context)

        for operation in validated.creates:
            if (operation.source, operation.index) in skipped:
                continue
            self._create_entries(handler, operation, snapshot, add)

        return entries

    def _create_entries(self, handler: SubmoduleHandler, operation: Operation, snapshot: OldValueSnapshot, add) -> None:
        context: dict[str, str] = {}
        for reference in handler.references:
            found = operation.reference_inputs.get(reference.key)
            if found is None:
                continue
            kind, value = found
            if kind == "name":
                name = str(value).strip()
            else:
                try:
                    name = snapshot.reference_names.get((reference.key, int(value)))
                except (TypeError, ValueError):
                    name = None
            if not name:
                continue
            add(reference.key, None, name, AuditAction.CREATE, {})
            if reference.key == "parameter":
                context["parameter_name"] = name
        for key, value in operation.values.items():
            if key in AUDIT_SKIPPED_KEYS or normalize_for_comparison(value) is None:
                continue
            add(key, None, value, AuditAction.CREATE, context)

    def _label(self, handler: SubmoduleHandler, key: str, context: Mapping[str, str]) -> str:
        parameter_name = context.get("parameter_name")
        if parameter_name:
            return format_field_name(key, parameter_name, context.get("qualifier"))
        if self._catalog is not None:
            try:
                label = self._catalog.label_for(handler.model.__tablename__, key)
            except SQLAlchemyError:
                logger.exception("Failed to read field label for %s.%s", handler.name, key)
                label = None
            if label:
                return label
        return format_field_name(key)


__all__ = [
    "AuditAction",
    "AuditDiffBuilder",
    "AuditEntry",
    "OldValueSnapshot",
    "derive_action_type",
    "format_field_name",
    "format_submodule_name",
]
