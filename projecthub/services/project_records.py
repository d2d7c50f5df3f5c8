"""Single-record saves for the project module tables (overview, milestones, ...)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from projecthub.constants.audit_fields import AUDIT_SKIPPED_KEYS, PROJECT_MODULE_LABELS
from projecthub.database import SessionFactory
from projecthub.models.entities import (
    EquipmentModule,
    Interconnection,
    MilestoneFinance,
    MilestoneInterconnect,
    MilestoneOfftake,
    OfftakeContractDetails,
    Overview,
)
from projecthub.services.actor import Actor
from projecthub.services.audit_trail import AuditAction, AuditEntry, format_field_name
from projecthub.services.audit_writer import AuditWriter
from projecthub.services.field_catalog import FieldCatalog
from projecthub.services.milestones import normalize_confidence_fields, paired_date_keys
from projecthub.services.mutation_errors import (
    PayloadValidationError,
    PersistenceError,
    ProjectScopeError,
    RecordNotFoundError,
    UnsupportedEntityError,
)
from projecthub.services.mutation_router import coerce_record_id
from projecthub.services.parallel_reads import read_blocks
from projecthub.services.provisional_records import is_provisional_identifier
from projecthub.services.record_store import Row, SqlAlchemyRecordStore, column_names
from projecthub.services.value_coercion import (
    CoercionError,
    DataType,
    data_type_for_column,
    is_blank,
    normalize_for_comparison,
    to_storage,
    values_differ,
)

logger = logging.getLogger(__name__)

PROJECT_TABLES: dict[str, type] = {
    "overview": Overview,
    "interconnection": Interconnection,
    "offtake_contract_details": OfftakeContractDetails,
    "milestone_finance": MilestoneFinance,
    "milestone_offtake": MilestoneOfftake,
    "milestone_interconnect": MilestoneInterconnect,
    "equipments_modules": EquipmentModule,
}

# Module tabs and the tables whose rows each tab shows, keyed by block name.
PROJECT_MODULES: dict[str, dict[str, type]] = {
    "overview": {"overview": Overview},
    "interconnection": {"interconnection": Interconnection},
    "offtake": {"contract_details": OfftakeContractDetails},
    "milestones": {
        "finance": MilestoneFinance,
        "offtake": MilestoneOfftake,
        "interconnect": MilestoneInterconnect,
    },
    "equipments": {"modules": EquipmentModule},
}

_IGNORED_KEYS = frozenset({"id", "project_id", "created_at", "updated_at"})


@dataclass
class ProjectRecordResult:
    table_name: str
    record: Row
    created: bool
    entries: list[AuditEntry] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"{self.table_name} {'created' if self.created else 'updated'} successfully"


def module_label(table_name: str) -> str:
    return PROJECT_MODULE_LABELS.get(table_name) or format_field_name(table_name)


def resolve_project_table(table_name: str) -> type:
    model = PROJECT_TABLES.get(table_name.lower())
    if model is None:
        raise UnsupportedEntityError(table_name, PROJECT_TABLES, kind="table name")
    return model


def resolve_project_module(module_name: str) -> dict[str, type]:
    """Blocks of a module tab; a bare table name resolves to a single block."""
    key = module_name.lower()
    if key in PROJECT_MODULES:
        return PROJECT_MODULES[key]
    if key in PROJECT_TABLES:
        return {key: PROJECT_TABLES[key]}
    raise UnsupportedEntityError(module_name, set(PROJECT_MODULES) | set(PROJECT_TABLES), kind="module")


def load_project_module(
    db: Session,
    module_name: str,
    project_id: int,
    *,
    session_factory: Optional[SessionFactory] = None,
    max_workers: int = 1,
) -> dict[str, list[Row]]:
    blocks = resolve_project_module(module_name)
    reads = {
        block: (lambda session, model=model: SqlAlchemyRecordStore(session).fetch_all(model, project_id))
        for block, model in blocks.items()
    }
    data = read_blocks(reads, db=db, session_factory=session_factory, max_workers=max_workers)
    logger.debug("Fetched %s module (%s blocks) for project %s", module_name, len(data), project_id)
    return data


def writable_columns(model: type) -> dict[str, DataType]:
    table = model.__table__
    return {
        name: data_type_for_column(table.columns[name])
        for name in column_names(model)
        if name not in _IGNORED_KEYS
    }


def _storage_values(table_name: str, model: type, body: Mapping[str, Any]) -> dict[str, Any]:
    columns = writable_columns(model)
    payload = {key: value for key, value in body.items() if key not in _IGNORED_KEYS}
    unknown = sorted(set(payload) - set(columns))
    if unknown:
        raise PayloadValidationError(f"Unknown fields for {table_name}: {', '.join(unknown)}")
    try:
        values = {key: to_storage(value, columns[key]) for key, value in payload.items()}
        return normalize_confidence_fields(values, paired_date_keys(columns))
    except CoercionError as exc:
        raise PayloadValidationError(f"{table_name}: {exc}") from exc


def save_project_record(
    db: Session,
    table_name: str,
    project_id: int,
    body: Mapping[str, Any],
    actor: Optional[Actor],
    writer: AuditWriter,
    *,
    catalog: Optional[FieldCatalog] = None,
) -> ProjectRecordResult:
    """Create or update one record of a project module table.

    A missing or ``temp_`` id creates the record; any other id must exist and
    belong to ``project_id``.
    """
    model = resolve_project_table(table_name)
    table_name = model.__tablename__
    if not isinstance(body, Mapping):
        raise PayloadValidationError("Request body must be an object")
    values = _storage_values(table_name, model, body)
    store = SqlAlchemyRecordStore(db)
    raw_id = body.get("id")

    def label(key: str) -> str:
        if catalog is not None:
            descriptor_label = catalog.label_for(table_name, key)
            if descriptor_label:
                return descriptor_label
        return format_field_name(key)

    def entry(key: str, old: Any, new: Any, action: AuditAction) -> AuditEntry:
        return AuditEntry(
            project_id=project_id,
            module_name=module_label(table_name),
            sub_module=None,
            field_name=label(key),
            old_value=normalize_for_comparison(old),
            new_value=normalize_for_comparison(new),
            action_type=action,
        )

    try:
        if is_blank(raw_id) or is_provisional_identifier(raw_id):
            logger.info("Creating %s record for project %s", table_name, project_id)
            row = store.create(model, project_id, values)
            db.commit()
            entries = [
                entry(key, None, value, AuditAction.CREATE)
                for key, value in values.items()
                if key not in AUDIT_SKIPPED_KEYS and normalize_for_comparison(value) is not None
            ]
            created = True
        else:
            record_id = coerce_record_id(raw_id)
            existing = store.get(model, record_id)
            if existing is None:
                raise RecordNotFoundError(f"Record with id {record_id} not found")
            if existing["project_id"] != project_id:
                raise ProjectScopeError(f"Record does not belong to project {project_id}")
            row = store.update(model, project_id, record_id, values)
            db.commit()
            entries = [
                entry(key, existing.get(key), value, AuditAction.UPDATE)
                for key, value in values.items()
                if key not in AUDIT_SKIPPED_KEYS and values_differ(existing.get(key), value)
            ]
            created = False
    except PersistenceError:
        db.rollback()
        raise

    writer.submit(entries, actor)
    return ProjectRecordResult(table_name=table_name, record=row, created=created, entries=entries)


__all__ = [
    "PROJECT_MODULES",
    "PROJECT_TABLES",
    "ProjectRecordResult",
    "load_project_module",
    "module_label",
    "resolve_project_module",
    "resolve_project_table",
    "save_project_record",
    "writable_columns",
]
