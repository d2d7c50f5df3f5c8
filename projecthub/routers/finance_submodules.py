import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from projecthub.config import get_settings
from projecthub.database import SessionFactory, get_db, get_session_factory
from projecthub.models import Project
from projecthub.schemas import FinanceDataResponse, MutationResponse, SkippedRecordRead, SubmoduleRowsResponse
from projecthub.services.actor import Actor, get_actor
from projecthub.services.audit_writer import AuditWriter, get_audit_writer
from projecthub.services.field_catalog import FieldCatalog
from projecthub.services.mutation_errors import (
    PayloadValidationError,
    PersistenceError,
    RecordNotFoundError,
    UnsupportedEntityError,
)
from projecthub.services.submodule_mutations import list_submodule_rows, load_finance_data, save_submodule

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/finance-submodules", tags=["Finance"])


def _error(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


def _require_project(db: Session, project_id: int) -> Project:
    project = db.get(Project, project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


@router.get("/{project_id}", response_model=FinanceDataResponse)
def get_finance_data(
    project_id: int,
    db: Session = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    _require_project(db, project_id)
    try:
        data = load_finance_data(
            db,
            project_id,
            session_factory=session_factory,
            max_workers=get_settings().metadata_fetch_max_workers,
        )
    except PersistenceError as exc:
        logger.exception("Failed to fetch finance data for project %s", project_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch finance data", str(exc))
    return FinanceDataResponse(project_id=project_id, data=data)


@router.get("/{submodule}/{project_id}", response_model=SubmoduleRowsResponse)
def get_submodule_rows(submodule: str, project_id: int, db: Session = Depends(get_db)):
    _require_project(db, project_id)
    try:
        rows = list_submodule_rows(db, submodule, project_id)
    except UnsupportedEntityError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except PersistenceError as exc:
        logger.exception("Failed to fetch %s for project %s", submodule, project_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Failed to fetch {submodule}", str(exc))
    return SubmoduleRowsResponse(data=rows)


@router.put("/{submodule}/{project_id}", response_model=MutationResponse)
def update_submodule(
    submodule: str,
    project_id: int,
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    actor: Optional[Actor] = Depends(get_actor),
    writer: AuditWriter = Depends(get_audit_writer),
):
    _require_project(db, project_id)
    logger.info("Updating %s for project %s", submodule, project_id)
    try:
        result = save_submodule(
            db,
            submodule,
            project_id,
            payload,
            actor,
            writer,
            catalog=FieldCatalog(db),
        )
    except UnsupportedEntityError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except PayloadValidationError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, f"Invalid data for {submodule}", str(exc))
    except RecordNotFoundError as exc:
        return _error(status.HTTP_404_NOT_FOUND, f"Record not found in {submodule}", str(exc))
    except PersistenceError as exc:
        logger.exception("Error updating %s for project %s", submodule, project_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Failed to update {submodule}", str(exc))

    dispatch = result.dispatch
    return MutationResponse(
        message=result.message,
        action_type=result.action_type.value,
        data=dispatch.records,
        skipped=[SkippedRecordRead.model_validate(record, from_attributes=True) for record in dispatch.skipped],
        reconciled=dispatch.reconciled,
        deleted=dispatch.deleted,
    )
