import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from projecthub.config import get_settings
from projecthub.database import get_db
from projecthub.schemas import AuditLogRead
from projecthub.services.audit_query import (
    AuditLogFilter,
    export_csv,
    export_filename,
    query_audit_log,
    resolve_timezone,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


def get_audit_filter(
    project_name: Optional[str] = Query(default=None, alias="projectName"),
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
) -> AuditLogFilter:
    return AuditLogFilter(project_name=project_name, start_date=start_date, end_date=end_date)


@router.get("", response_model=list[AuditLogRead])
def list_audit_logs(
    filters: AuditLogFilter = Depends(get_audit_filter),
    db: Session = Depends(get_db),
):
    try:
        entries = query_audit_log(db, filters)
    except SQLAlchemyError as exc:
        logger.exception("Error fetching audit logs")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to fetch audit logs", "details": str(exc)},
        )
    logger.debug("Found %s audit logs", len(entries))
    return entries


@router.get("/export")
def export_audit_logs(
    filters: AuditLogFilter = Depends(get_audit_filter),
    db: Session = Depends(get_db),
):
    try:
        entries = query_audit_log(db, filters)
    except SQLAlchemyError as exc:
        logger.exception("Error exporting audit logs")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to export audit logs", "details": str(exc)},
        )

    content = export_csv(entries, resolve_timezone(get_settings().audit_display_timezone))
    headers = {
        "Content-Disposition": f"attachment; filename={export_filename()}",
        "Cache-Control": "no-store",
    }
    return StreamingResponse(iter([content]), media_type="text/csv", headers=headers)
