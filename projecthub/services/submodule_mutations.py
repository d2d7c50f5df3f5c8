"""Save pipeline for finance submodules: snapshot, dispatch, commit, audit."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from projecthub.database import SessionFactory
from projecthub.services.actor import Actor
from projecthub.services.audit_trail import AuditAction, AuditDiffBuilder, AuditEntry, derive_action_type
from projecthub.services.audit_writer import AuditWriter
from projecthub.services.field_catalog import FieldCatalog
from projecthub.services.finance_submodules import finance_router
from projecthub.services.mutation_errors import MutationError
from projecthub.services.mutation_router import (
    DispatchResult,
    MutationBundle,
    MutationRouter,
    summarize_result,
)
from projecthub.services.parallel_reads import read_blocks
from projecthub.services.record_store import Row, SqlAlchemyRecordStore

logger = logging.getLogger(__name__)


@dataclass
class SubmoduleSaveResult:
    submodule: str
    dispatch: DispatchResult
    action_type: AuditAction
    entries: list[AuditEntry] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"{self.submodule} updated successfully"


def save_submodule(
    db: Session,
    submodule: str,
    project_id: int,
    payload: Mapping[str, Any],
    actor: Optional[Actor],
    writer: AuditWriter,
    *,
    router: MutationRouter = finance_router,
    catalog: Optional[FieldCatalog] = None,
) -> SubmoduleSaveResult:
    """Apply one mutation bundle inside a single transaction.

    Old values are captured before dispatch; the change log is built and
    handed to the audit writer only after the commit succeeded.  Any
    ``MutationError`` rolls the transaction back and propagates.
    """
    router.handler_for(submodule)
    bundle = MutationBundle.from_payload(payload)
    store = SqlAlchemyRecordStore(db)
    builder = AuditDiffBuilder(router, catalog)

    snapshot = builder.capture_before(submodule, project_id, bundle, store)
    try:
        result = router.dispatch(submodule, project_id, bundle, store)
        db.commit()
    except MutationError:
        db.rollback()
        raise
    logger.debug("Saved %s for project %s: %s", submodule, project_id, summarize_result(result))

    entries: list[AuditEntry] = []
    try:
        entries = builder.build_change_log(submodule, bundle, snapshot, project_id, result)
    except MutationError:
        logger.exception("Failed to build audit change log for %s (project %s)", submodule, project_id)
    writer.submit(entries, actor)

    return SubmoduleSaveResult(
        submodule=submodule,
        dispatch=result,
        action_type=derive_action_type(bundle),
        entries=entries,
    )


def list_submodule_rows(
    db: Session,
    submodule: str,
    project_id: int,
    *,
    router: MutationRouter = finance_router,
) -> list[Row]:
    """Rows of one submodule with ``<reference>_name`` columns filled in."""
    handler = router.handler_for(submodule)
    store = SqlAlchemyRecordStore(db)
    rows = store.fetch_all(handler.model, project_id)
    names: dict[tuple[str, int], Optional[str]] = {}
    for row in rows:
        for reference in handler.references:
            record_id = row.get(reference.column)
            if record_id is None:
                continue
            cache_key = (reference.key, record_id)
            if cache_key not in names:
                names[cache_key] = store.lookup_name(reference.model, reference.name_column, record_id)
            row[f"{reference.key}_name"] = names[cache_key]
    return rows


def load_finance_data(
    db: Session,
    project_id: int,
    *,
    router: MutationRouter = finance_router,
    session_factory: Optional[SessionFactory] = None,
    max_workers: int = 1,
) -> dict[str, list[Row]]:
    """Rows of every registered submodule, keyed by submodule name."""
    reads = {
        name: (lambda session, name=name: list_submodule_rows(session, name, project_id, router=router))
        for name in router.names
    }
    return read_blocks(reads, db=db, session_factory=session_factory, max_workers=max_workers)


__all__ = ["SubmoduleSaveResult", "list_submodule_rows", "load_finance_data", "save_submodule"]
