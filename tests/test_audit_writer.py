from __future__ import annotations

import logging

import pytest
from sqlalchemy.orm import Session

from projecthub.models import AuditLog
from projecthub.services.actor import Actor
from projecthub.services.audit_trail import AuditAction, AuditEntry
from projecthub.services.audit_writer import AuditWriter


def _entry(old: object = "1.30", new: object = "1.45", project_id: int = 1) -> AuditEntry:
    return AuditEntry(
        project_id=project_id,
        module_name="Finance",
        sub_module="Dscr",
        field_name="Min DSCR",
        old_value=old,
        new_value=new,
        action_type=AuditAction.UPDATE,
    )


def test_writes_entries_with_resolved_names(db_session: Session, audit_writer: AuditWriter) -> None:
    audit_writer.submit([_entry()], Actor(user_id=1, email="dana.reyes@example.com"))

    rows = db_session.query(AuditLog).all()
    assert len(rows) == 1
    row = rows[0]
    assert row.user_name == "Dana Reyes"
    assert row.project_name == "Solar Alpha"
    assert (row.old_value, row.new_value, row.action_type) == ("1.30", "1.45", "UPDATE")


def test_unknown_user_falls_back_to_token_email(db_session: Session, audit_writer: AuditWriter) -> None:
    audit_writer.submit([_entry(project_id=42)], Actor(user_id=99, email="someone@example.com"))

    row = db_session.query(AuditLog).one()
    assert row.user_name == "someone@example.com"
    assert row.project_name == "Project 42"


def test_missing_actor_skips_logging(db_session: Session, audit_writer: AuditWriter) -> None:
    assert audit_writer.submit([_entry()], None) is None
    assert db_session.query(AuditLog).count() == 0


def test_no_op_entries_are_dropped(db_session: Session, audit_writer: AuditWriter) -> None:
    audit_writer.submit([_entry(old="12", new="12")], Actor(user_id=1, email="dana.reyes@example.com"))
    assert db_session.query(AuditLog).count() == 0


def test_background_submit_returns_future(db_session: Session) -> None:
    writer = AuditWriter(session_factory=lambda: db_session)
    future = writer.submit([_entry()], Actor(user_id=1, email="dana.reyes@example.com"))

    assert future is not None
    assert future.result(timeout=5) == 1
    writer.shutdown(wait=True)
    assert db_session.query(AuditLog).count() == 1


def test_submit_after_shutdown_is_dropped(db_session: Session) -> None:
    writer = AuditWriter(session_factory=lambda: db_session)
    writer.shutdown(wait=True)

    assert writer.submit([_entry()], Actor(user_id=1, email="dana.reyes@example.com")) is None
    assert db_session.query(AuditLog).count() == 0


def test_failed_insert_is_logged_and_not_raised(
    db_session: Session, failing_audit_writer: AuditWriter, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.ERROR, logger="projecthub.services.audit_writer"):
        result = failing_audit_writer.submit([_entry()], Actor(user_id=1, email="dana.reyes@example.com"))

    assert result is None
    assert "Audit logging failed for 1 entries" in caplog.text
    assert db_session.query(AuditLog).count() == 0


def test_failed_background_insert_settles_without_error(
    failing_session_factory, caplog: pytest.LogCaptureFixture
) -> None:
    writer = AuditWriter(session_factory=failing_session_factory)
    with caplog.at_level(logging.ERROR, logger="projecthub.services.audit_writer"):
        future = writer.submit([_entry()], Actor(user_id=1, email="dana.reyes@example.com"))
        assert future is not None
        assert future.result(timeout=5) == 0
    writer.shutdown(wait=True)

    assert "Audit logging failed" in caplog.text
