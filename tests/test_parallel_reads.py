from __future__ import annotations

import threading
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from projecthub.database import Base
from projecthub.models import MilestoneFinance, MilestoneInterconnect, Project
from projecthub.services.mutation_errors import PersistenceError
from projecthub.services.parallel_reads import read_blocks
from projecthub.services.project_records import load_project_module


class RecordingSession:
    def __init__(self, name: str) -> None:
        self.name = name
        self.closed = False

    def close(self) -> None:
        self.closed = True


class RecordingFactory:
    def __init__(self) -> None:
        self.sessions: list[RecordingSession] = []
        self._lock = threading.Lock()

    def __call__(self) -> RecordingSession:
        with self._lock:
            session = RecordingSession(f"session-{len(self.sessions)}")
            self.sessions.append(session)
        return session


def test_each_read_gets_its_own_session() -> None:
    factory = RecordingFactory()
    reads = {key: (lambda session, key=key: (key, session.name)) for key in ("a", "b", "c")}

    results = read_blocks(reads, db=RecordingSession("request"), session_factory=factory, max_workers=3)

    assert list(results) == ["a", "b", "c"]
    assert len({name for _, name in results.values()}) == 3
    assert len(factory.sessions) == 3
    assert all(session.closed for session in factory.sessions)


def test_single_worker_reads_inline_on_request_session() -> None:
    factory = RecordingFactory()
    request_session = RecordingSession("request")

    results = read_blocks(
        {"a": lambda session: session.name, "b": lambda session: session.name},
        db=request_session,
        session_factory=factory,
        max_workers=1,
    )

    assert results == {"a": "request", "b": "request"}
    assert factory.sessions == []
    assert not request_session.closed


def test_failed_read_is_raised_after_every_read_settles() -> None:
    factory = RecordingFactory()
    finished: list[str] = []

    def failing(session) -> None:
        raise PersistenceError("Failed to read milestone_offtake records")

    def slow(session) -> str:
        finished.append(session.name)
        return "ok"

    with pytest.raises(PersistenceError):
        read_blocks(
            {"broken": failing, "fine": slow},
            db=RecordingSession("request"),
            session_factory=factory,
            max_workers=2,
        )

    assert len(finished) == 1
    assert all(session.closed for session in factory.sessions)


def test_empty_reads_return_empty_result() -> None:
    assert read_blocks({}, db=RecordingSession("request")) == {}


@pytest.fixture()
def module_sessionmaker(tmp_path: Path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'modules.db'}",
        connect_args={"check_same_thread": False},
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
    with factory() as session:
        session.add(Project(id=1, project_name="Solar Alpha", status="development"))
        session.add(Project(id=2, project_name="Wind Beta", status="development"))
        session.add_all(
            [
                MilestoneFinance(project_id=1, milestone_name="Financial Close", target_date=date(2024, 6, 30)),
                MilestoneFinance(project_id=2, milestone_name="Other Project Close"),
                MilestoneInterconnect(project_id=1, milestone_name="IA Executed"),
            ]
        )
        session.commit()
    yield factory
    engine.dispose()


def test_module_blocks_are_read_in_parallel_sessions(module_sessionmaker) -> None:
    opened: list[object] = []

    def factory():
        session = module_sessionmaker()
        opened.append(session)
        return session

    with module_sessionmaker() as session:
        data = load_project_module(session, "milestones", 1, session_factory=factory, max_workers=4)

    assert len(opened) == 3
    assert [row["milestone_name"] for row in data["finance"]] == ["Financial Close"]
    assert [row["milestone_name"] for row in data["interconnect"]] == ["IA Executed"]
    assert data["offtake"] == []
