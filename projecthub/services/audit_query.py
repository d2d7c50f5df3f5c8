"""Reading and exporting the audit log."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from io import StringIO
from typing import Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.orm import Session

from projecthub.config import get_settings
from projecthub.constants.audit_fields import CSV_EXPORT_COLUMNS
from projecthub.models.entities import AuditLog
from projecthub.services.value_coercion import DISPLAY_PLACEHOLDER

logger = logging.getLogger(__name__)

ALL_PROJECTS = "all"
CSV_TIMESTAMP_FORMAT = "%m/%d/%Y, %I:%M:%S %p"


@dataclass(frozen=True)
class AuditLogFilter:
    project_name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


def query_audit_log(db: Session, filters: AuditLogFilter, *, limit: Optional[int] = None) -> list[AuditLog]:
    """Newest entries first; the end date includes its whole day."""
    limit = limit or get_settings().audit_log_query_limit
    statement = select(AuditLog)
    if filters.project_name and filters.project_name != ALL_PROJECTS:
        statement = statement.where(AuditLog.project_name == filters.project_name)
    if filters.start_date:
        statement = statement.where(
            AuditLog.timestamp >= datetime.combine(filters.start_date, time.min, tzinfo=timezone.utc)
        )
    if filters.end_date:
        statement = statement.where(
            AuditLog.timestamp <= datetime.combine(filters.end_date, time.max, tzinfo=timezone.utc)
        )
    statement = statement.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit)
    return list(db.execute(statement).scalars())


def resolve_timezone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown audit display time zone %r; using UTC", name)
        return ZoneInfo("UTC")


def format_timestamp(value: Optional[datetime], tz: ZoneInfo) -> str:
    if value is None:
        return DISPLAY_PLACEHOLDER
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz).strftime(CSV_TIMESTAMP_FORMAT)


def export_csv(entries: Iterable[AuditLog], tz: ZoneInfo) -> str:
    buffer = StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_EXPORT_COLUMNS)
    for entry in entries:
        writer.writerow(
            [
                format_timestamp(entry.timestamp, tz),
                entry.project_name,
                entry.user_name,
                entry.module_name,
                entry.sub_module or DISPLAY_PLACEHOLDER,
                entry.field_name,
                entry.old_value or DISPLAY_PLACEHOLDER,
                entry.new_value or DISPLAY_PLACEHOLDER,
                entry.action_type,
            ]
        )
    return buffer.getvalue()


def export_filename(today: Optional[date] = None) -> str:
    return f"audit_logs_{(today or date.today()).isoformat()}.csv"


__all__ = [
    "ALL_PROJECTS",
    "AuditLogFilter",
    "export_csv",
    "export_filename",
    "format_timestamp",
    "query_audit_log",
    "resolve_timezone",
]
