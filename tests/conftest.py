import os
import sys
from pathlib import Path

from collections.abc import Generator
from typing import Any, Iterable, Mapping, Optional, Sequence

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import Session, sessionmaker

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

TEST_DATABASE_URL = "sqlite://"
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("METADATA_FETCH_MAX_WORKERS", "1")

from projecthub.database import Base, get_db, get_session_factory  # noqa: E402
from projecthub.main import app  # noqa: E402
from projecthub.models import (  # noqa: E402
    FinancingParameter,
    FinancingTermsSection,
    LcType,
    LoanType,
    Project,
    User,
)
from projecthub.services.actor import AUTH_COOKIE_NAME, encode_auth_token  # noqa: E402
from projecthub.services.audit_writer import AuditWriter, get_audit_writer  # noqa: E402


def _create_testing_engine():
    return create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )


def _create_test_sessionmaker(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture(scope="session")
def engine():
    engine = _create_testing_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Session, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    connection = engine.connect()

    TestingSessionLocal = _create_test_sessionmaker(connection)
    session = TestingSessionLocal()

    # Every API flow needs a project to scope records to and a user to attribute audit entries to.
    session.add(Project(id=1, project_name="Solar Alpha", status="development"))
    session.add(User(id=1, name="Dana Reyes", email="dana.reyes@example.com", status="active"))
    session.commit()

    try:
        yield session
    finally:
        session.close()
        connection.close()


@pytest.fixture()
def project_id() -> int:
    return 1


@pytest.fixture()
def finance_reference(db_session: Session) -> dict[str, int]:
    section = FinancingTermsSection(section_name="Loan Terms")
    db_session.add(section)
    db_session.flush()
    rows = {
        "term_loan": LoanType(loan_name="Term Loan"),
        "construction_loan": LoanType(loan_name="Construction Loan"),
        "ppa_lc": LcType(lc_name="PPA LC"),
        "min_dscr": FinancingParameter(parameter_name="Min DSCR"),
        "margin": FinancingParameter(parameter_name="Margin", section_id=section.id),
        "tenor": FinancingParameter(parameter_name="Tenor", section_id=section.id),
    }
    db_session.add_all(rows.values())
    db_session.commit()
    ids = {key: row.id for key, row in rows.items()}
    ids["section"] = section.id
    return ids


@pytest.fixture()
def audit_writer(db_session: Session) -> Generator[AuditWriter, None, None]:
    writer = AuditWriter(session_factory=lambda: db_session, synchronous=True)
    try:
        yield writer
    finally:
        writer.shutdown(wait=True)


class CommitFailingSession:
    """Wraps a session so every commit fails like a lost database connection."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def commit(self) -> None:
        raise OperationalError("INSERT INTO audit_logs", {}, Exception("disk I/O error"))

    def __getattr__(self, name: str) -> Any:
        return getattr(self._session, name)


@pytest.fixture()
def failing_session_factory(db_session: Session):
    return lambda: CommitFailingSession(db_session)


@pytest.fixture()
def failing_audit_writer(failing_session_factory) -> Generator[AuditWriter, None, None]:
    writer = AuditWriter(session_factory=failing_session_factory, synchronous=True)
    try:
        yield writer
    finally:
        writer.shutdown(wait=True)


@pytest.fixture()
def auth_cookie() -> dict[str, str]:
    return {AUTH_COOKIE_NAME: encode_auth_token(1, "dana.reyes@example.com", issued_at=1700000000000)}


class FakeStore:
    """In-memory RecordStore that records the order of write calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.tables: dict[type, dict[int, dict[str, Any]]] = {}
        self.names: dict[tuple[type, str], dict[str, int]] = {}
        self._next_id = 100

    def add(self, model: type, row: dict[str, Any]) -> None:
        self.tables.setdefault(model, {})[row["id"]] = dict(row)

    def add_name(self, model: type, name_column: str, name: str, record_id: int) -> None:
        self.names.setdefault((model, name_column), {})[name] = record_id

    def get(self, model: type, record_id: int) -> Optional[dict[str, Any]]:
        row = self.tables.get(model, {}).get(record_id)
        return dict(row) if row else None

    def fetch_many(self, model: type, project_id: int, ids: Iterable[int]) -> list[dict[str, Any]]:
        return [dict(self.tables[model][i]) for i in ids if i in self.tables.get(model, {})]

    def fetch_all(self, model: type, project_id: int) -> list[dict[str, Any]]:
        return [dict(row) for row in self.tables.get(model, {}).values()]

    def find_first(self, model: type, project_id: int, criteria: Mapping[str, Any]) -> Optional[dict[str, Any]]:
        for row in self.tables.get(model, {}).values():
            if row.get("project_id") == project_id and all(row.get(k) == v for k, v in criteria.items()):
                return dict(row)
        return None

    def delete_many(self, model: type, project_id: int, ids: Sequence[int]) -> int:
        self.calls.append(("delete", list(ids)))
        for record_id in ids:
            self.tables.get(model, {}).pop(record_id, None)
        return len(ids)

    def update(self, model: type, project_id: int, record_id: int, values: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append(("update", record_id))
        row = self.tables[model][record_id]
        row.update(values)
        return dict(row)

    def create(self, model: type, project_id: int, values: Mapping[str, Any]) -> dict[str, Any]:
        self._next_id += 1
        row = {**values, "id": self._next_id, "project_id": project_id}
        self.calls.append(("create", self._next_id))
        self.add(model, row)
        return dict(row)

    def lookup_id(self, model: type, name_column: str, name: str) -> Optional[int]:
        return self.names.get((model, name_column), {}).get(name)

    def lookup_name(self, model: type, name_column: str, record_id: int) -> Optional[str]:
        for name, known_id in self.names.get((model, name_column), {}).items():
            if known_id == record_id:
                return name
        return None

    def max_instance(self, model: type, project_id: int, instance_column: str, group: Mapping[str, Any]) -> int:
        values = [
            row.get(instance_column) or 0
            for row in self.tables.get(model, {}).values()
            if all(row.get(k) == v for k, v in group.items())
        ]
        return max(values, default=0)


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


class PrefixedTestClient(TestClient):
    api_prefix = "/api"

    def request(self, method: str, url: str, *args, **kwargs):  # type: ignore[override]
        if url.startswith("/"):
            url = f"{self.api_prefix}{url}"
        return super().request(method, url, *args, **kwargs)


@pytest.fixture()
def client(db_session: Session, audit_writer: AuditWriter) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: (lambda: db_session)
    app.dependency_overrides[get_audit_writer] = lambda: audit_writer

    client = PrefixedTestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.pop(get_db, None)
        app.dependency_overrides.pop(get_session_factory, None)
        app.dependency_overrides.pop(get_audit_writer, None)


@pytest.fixture()
def authed_client(client: TestClient, auth_cookie: dict[str, str]) -> TestClient:
    for name, value in auth_cookie.items():
        client.cookies.set(name, value)
    return client
