"""Background writer for audit log rows."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from projecthub.config import get_settings
from projecthub.database import SessionFactory, get_session_factory
from projecthub.models.entities import AuditLog, Project, User
from projecthub.services.actor import Actor
from projecthub.services.audit_trail import AuditEntry
from projecthub.services.mutation_errors import AuditWriteError
from projecthub.services.value_coercion import values_differ

logger = logging.getLogger(__name__)


class AuditWriter:
    """Inserts audit entries off the request path.

    Failures are logged and never surface to the save that produced the
    entries.
    """

    def __init__(
        self,
        *,
        session_factory: Optional[SessionFactory] = None,
        max_workers: int = 1,
        synchronous: bool = False,
    ) -> None:
        self._session_factory = session_factory or get_session_factory()
        self._synchronous = synchronous
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="audit-writer")
        self._lock = Lock()
        self._shutdown = False

    def submit(
        self,
        entries: Iterable[AuditEntry],
        actor: Optional[Actor],
        *,
        wait: bool = False,
    ) -> Optional[Future]:
        """Queue entries for insertion, optionally writing synchronously."""

        entries = [entry for entry in entries if values_differ(entry.old_value, entry.new_value)]
        if not entries:
            logger.debug("No actual changes detected, skipping audit log")
            return None
        if actor is None:
            logger.warning("No user found in authToken; skipping %s audit entries", len(entries))
            return None
        with self._lock:
            if self._shutdown:
                logger.debug("Audit writer shutting down; dropping %s entries", len(entries))
                return None

        if wait or self._synchronous:
            self._write(entries, actor)
            return None
        return self._executor.submit(self._write, entries, actor)

    def shutdown(self, *, wait: bool = False) -> None:
        with self._lock:
            self._shutdown = True
        self._executor.shutdown(wait=wait)

    def _write(self, entries: list[AuditEntry], actor: Actor) -> int:
        try:
            return self._persist(entries, actor)
        except AuditWriteError:
            logger.exception("Audit logging failed for %s entries", len(entries))
        except Exception:  # pragma: no cover
            logger.exception("Unexpected audit logging error")
        return 0

    def _persist(self, entries: list[AuditEntry], actor: Actor) -> int:
        session = self._session_factory()
        try:
            user_name = self._resolve_user_name(session, actor)
            project_names: dict[Optional[int], str] = {}
            rows = []
            for entry in entries:
                if entry.project_id not in project_names:
                    project_names[entry.project_id] = self._resolve_project_name(session, entry.project_id)
                rows.append(
                    AuditLog(
                        project_id=entry.project_id,
                        project_name=project_names[entry.project_id],
                        user_name=entry.user_name or user_name,
                        module_name=entry.module_name,
                        sub_module=entry.sub_module,
                        field_name=entry.field_name,
                        old_value=entry.old_value,
                        new_value=entry.new_value,
                        action_type=entry.action_type.value,
                        timestamp=entry.timestamp,
                    )
                )
            session.add_all(rows)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise AuditWriteError("Failed to insert audit entries") from exc
        finally:
            session.close()

        first = entries[0]
        target = f"{first.module_name} > {first.sub_module}" if first.sub_module else first.module_name
        logger.info("Logged %s audit entries for %s", len(rows), target)
        return len(rows)

    @staticmethod
    def _resolve_user_name(session: Session, actor: Actor) -> str:
        try:
            user = session.get(User, actor.user_id)
        except SQLAlchemyError as exc:
            logger.warning("Could not fetch user %s, using token data: %s", actor.user_id, exc)
            session.rollback()
            return actor.fallback_name
        if user is None:
            return actor.email or actor.fallback_name
        return user.name or user.email or actor.email

    @staticmethod
    def _resolve_project_name(session: Session, project_id: Optional[int]) -> str:
        fallback = f"Project {project_id}"
        if project_id is None:
            return fallback
        try:
            project = session.get(Project, project_id)
        except SQLAlchemyError as exc:
            logger.warning("Could not fetch project name for %s: %s", project_id, exc)
            session.rollback()
            return fallback
        return project.project_name if project and project.project_name else fallback


audit_writer = AuditWriter(max_workers=get_settings().audit_writer_max_workers)


def get_audit_writer() -> AuditWriter:
    return audit_writer


__all__ = ["AuditWriter", "audit_writer", "get_audit_writer"]
