import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from projecthub.config import get_settings
from projecthub.database import SessionFactory, get_db, get_session_factory
from projecthub.models import Project
from projecthub.schemas import ModuleDataResponse, ProjectRecordResponse
from projecthub.services.actor import Actor, get_actor
from projecthub.services.audit_writer import AuditWriter, get_audit_writer
from projecthub.services.field_catalog import FieldCatalog
from projecthub.services.mutation_errors import (
    PayloadValidationError,
    PersistenceError,
    ProjectScopeError,
    RecordNotFoundError,
    UnsupportedEntityError,
)
from projecthub.services.project_records import load_project_module, save_project_record

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/project-data", tags=["Project Data"])


def _error(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


@router.get("/{module_name}/{project_id}", response_model=ModuleDataResponse)
def get_project_module(
    module_name: str,
    project_id: int,
    db: Session = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
):
    if not db.get(Project, project_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    try:
        data = load_project_module(
            db,
            module_name,
            project_id,
            session_factory=session_factory,
            max_workers=get_settings().metadata_fetch_max_workers,
        )
    except UnsupportedEntityError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except PersistenceError as exc:
        logger.exception("Error fetching %s module for project %s", module_name, project_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch module", str(exc))
    return ModuleDataResponse(module_name=module_name, data=data)


@router.put("/{table_name}/{project_id}", response_model=ProjectRecordResponse)
def update_project_data(
    table_name: str,
    project_id: int,
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    actor: Optional[Actor] = Depends(get_actor),
    writer: AuditWriter = Depends(get_audit_writer),
):
    if not db.get(Project, project_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    try:
        result = save_project_record(
            db,
            table_name,
            project_id,
            payload,
            actor,
            writer,
            catalog=FieldCatalog(db),
        )
    except UnsupportedEntityError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except PayloadValidationError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid data", str(exc))
    except RecordNotFoundError as exc:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))
    except ProjectScopeError as exc:
        return _error(status.HTTP_403_FORBIDDEN, str(exc))
    except PersistenceError as exc:
        logger.exception("Error updating %s for project %s", table_name, project_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to update data", str(exc))

    return ProjectRecordResponse(message=result.message, data=result.record)
