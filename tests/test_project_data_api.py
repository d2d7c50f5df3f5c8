from __future__ import annotations

from datetime import date

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from projecthub.models import AuditLog, FieldMetadata, MilestoneFinance, MilestoneOfftake, Overview, Project


def test_temp_id_creates_record(authed_client: TestClient, db_session: Session) -> None:
    response = authed_client.put(
        "/project-data/overview/1",
        json={"id": "temp_1712345678_1", "technology": "Solar PV", "capacity_mw_ac": "150", "county": ""},
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["message"] == "overview created successfully"
    assert isinstance(body["data"]["id"], int)
    overview = db_session.query(Overview).one()
    assert (overview.technology, overview.capacity_mw_ac, overview.county) == ("Solar PV", 150.0, None)

    logs = db_session.query(AuditLog).order_by(AuditLog.id).all()
    assert [(log.field_name, log.old_value, log.new_value, log.action_type) for log in logs] == [
        ("Technology", None, "Solar PV", "CREATE"),
        ("Capacity Mw Ac", None, "150", "CREATE"),
    ]
    assert {log.module_name for log in logs} == {"Overview"}


def test_update_audits_changed_fields_with_catalog_labels(authed_client: TestClient, db_session: Session) -> None:
    db_session.add(Overview(id=7, project_id=1, technology="Solar PV", capacity_mw_ac=150.0))
    db_session.add(
        FieldMetadata(table_name="overview", field_key="capacity_mw_ac", display_label="Capacity (MWac)", data_type="number")
    )
    db_session.commit()

    response = authed_client.put(
        "/project-data/overview/1",
        json={"id": 7, "technology": "Solar PV", "capacity_mw_ac": 175},
    )

    assert response.status_code == 200, response.text
    assert response.json()["message"] == "overview updated successfully"
    log = db_session.query(AuditLog).one()
    assert (log.field_name, log.old_value, log.new_value, log.action_type) == ("Capacity (MWac)", "150", "175", "UPDATE")


def test_unknown_record_returns_404(client: TestClient) -> None:
    response = client.put("/project-data/overview/1", json={"id": 999, "technology": "Wind"})

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Record with id 999 not found"}


def test_record_of_another_project_returns_403(client: TestClient, db_session: Session) -> None:
    db_session.add(Project(id=2, project_name="Wind Beta"))
    db_session.add(Overview(id=8, project_id=2, technology="Wind"))
    db_session.commit()

    response = client.put("/project-data/overview/1", json={"id": 8, "technology": "Solar PV"})

    assert response.status_code == 403
    assert response.json()["message"] == "Record does not belong to project 1"
    assert db_session.get(Overview, 8).technology == "Wind"


def test_unknown_table_returns_400(client: TestClient) -> None:
    response = client.put("/project-data/budgets/1", json={"amount": 1})

    assert response.status_code == 400
    assert response.json()["message"].startswith("Invalid table name: budgets. Available:")


def test_unknown_column_returns_400(client: TestClient) -> None:
    response = client.put("/project-data/overview/1", json={"megawatts": 1})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid data"


def test_milestone_date_type_is_normalized(client: TestClient, db_session: Session) -> None:
    response = client.put(
        "/project-data/milestone_finance/1",
        json={
            "milestone_name": "Financial Close",
            "target_date": "2024-06-30T00:00:00.000Z",
            "target_date_type": "Estimated",
            "completion_date": "",
            "completion_date_type": "",
        },
    )

    assert response.status_code == 200, response.text
    milestone = db_session.query(MilestoneFinance).one()
    assert milestone.target_date == date(2024, 6, 30)
    assert milestone.target_date_type == "estimated"
    assert milestone.completion_date is None
    assert milestone.completion_date_type is None


def test_invalid_milestone_date_type_is_rejected(client: TestClient, db_session: Session) -> None:
    response = client.put(
        "/project-data/milestone_finance/1",
        json={"target_date": "2024-06-30", "target_date_type": "tentative"},
    )

    assert response.status_code == 400
    assert "tentative" in response.json()["error"]
    assert db_session.query(MilestoneFinance).count() == 0


def test_missing_project_returns_404(client: TestClient) -> None:
    response = client.put("/project-data/overview/999", json={"technology": "Wind"})
    assert response.status_code == 404


def test_module_read_returns_every_block(client: TestClient, db_session: Session) -> None:
    db_session.add_all(
        [
            MilestoneFinance(project_id=1, milestone_name="Financial Close", target_date=date(2024, 6, 30)),
            MilestoneOfftake(project_id=1, milestone_name="PPA Signed", target_date_type="actual"),
        ]
    )
    db_session.commit()

    response = client.get("/project-data/Milestones/1")

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert set(data) == {"finance", "offtake", "interconnect"}
    assert data["finance"][0]["milestone_name"] == "Financial Close"
    assert data["finance"][0]["target_date"] == "2024-06-30"
    assert data["offtake"][0]["target_date_type"] == "actual"
    assert data["interconnect"] == []


def test_module_read_accepts_a_single_table(client: TestClient, db_session: Session) -> None:
    db_session.add(Overview(project_id=1, technology="Solar PV"))
    db_session.commit()

    response = client.get("/project-data/overview/1")

    assert response.status_code == 200
    assert response.json()["data"]["overview"][0]["technology"] == "Solar PV"


def test_module_read_rejects_unknown_module(client: TestClient) -> None:
    response = client.get("/project-data/weather/1")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"].startswith("Invalid module: weather. Available:")
    assert "milestones" in body["message"]


def test_module_read_for_missing_project_returns_404(client: TestClient) -> None:
    assert client.get("/project-data/milestones/999").status_code == 404
