from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import Session, SQLModel, col, create_engine, select

from hrms import main as app_main
from hrms.domain.models import EmploymentState, EmploymentStatus, User
from hrms.infra import audit, db, events, notifications
from hrms.infra.auth import create_access_token, hash_password
from hrms.services.employee_service import EmployeeService

DEV_PASSWORD = "dev-pass-1234"


@pytest.fixture()
def race_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "capacity_race_test.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    monkeypatch.setattr(audit, "engine", test_engine)
    monkeypatch.setattr(events, "engine", test_engine)
    monkeypatch.setattr(notifications, "engine", test_engine)
    client = TestClient(app_main.app)
    yield client
    client.close()


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _seed_user(email: str, *, super_admin: bool = False) -> str:
    with Session(db.get_engine(), expire_on_commit=False) as session:
        user = User(
            email=email,
            display_name=email.split("@")[0],
            is_super_admin=super_admin,
            password_hash=hash_password(DEV_PASSWORD),
        )
        session.add(user)
        session.commit()
        return user.id


def _platform_token(user_id: str) -> str:
    return create_access_token(user_id=user_id)


def _login(client: TestClient, user_id: str, organization_id: str | None = None) -> str:
    body: dict[str, Any] = {"user_id": user_id, "password": DEV_PASSWORD}
    if organization_id is not None:
        body["organization_id"] = organization_id
    response = client.post("/api/auth/dev-login", json=body)
    assert response.status_code == 200
    return response.json()["access_token"]


def _provision(client: TestClient) -> dict[str, Any]:
    admin_id = _seed_user("root@platform.test", super_admin=True)
    owner_id = _seed_user("owner@race.test")
    submitted = client.post(
        "/api/auth/organization-request",
        json={
            "organization_name": "Race Corp",
            "industry_type": "Software",
            "organization_type": "CORPORATE_IT",
            "company_size": "1-10",
        },
        headers=_auth_header(_login(client, owner_id)),
    )
    assert submitted.status_code == 201
    approved = client.post(
        f"/api/admin/organization-requests/{submitted.json()['id']}/approve",
        json={},
        headers=_auth_header(_platform_token(admin_id)),
    )
    assert approved.status_code == 200
    organization_id = approved.json()["organization"]["id"]
    return {
        "organization_id": organization_id,
        "owner_token": _login(client, owner_id, organization_id),
        "roles": {role["name"]: role for role in approved.json()["roles"]},
    }


def _live_holders(organization_id: str, role_id: str) -> list[EmploymentState]:
    with Session(db.get_engine()) as session:
        return list(
            session.exec(
                select(EmploymentState)
                .where(EmploymentState.organization_id == organization_id)
                .where(EmploymentState.role_id == role_id)
                .where(col(EmploymentState.status).in_([EmploymentStatus.ACTIVE, EmploymentStatus.SUSPENDED]))
            ).all()
        )


def test_concurrent_hire_into_last_role_seat_is_rejected(
    race_client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    org = _provision(race_client)
    headers = _auth_header(org["owner_token"])
    intern_role = org["roles"]["Intern"]
    limited = race_client.patch(
        f"/api/roles/{intern_role['id']}",
        json={"limits": {"max_users_per_role": 1}},
        headers=headers,
    )
    assert limited.status_code == 200

    competitor_id = _seed_user("competitor@race.test")
    contender_id = _seed_user("contender@race.test")
    real_count = EmployeeService._count_role_holders
    calls: list[int] = []

    def count_then_lose_race(
        self: EmployeeService,
        session: Session,
        organization_id: str,
        role_id: str,
    ) -> int:
        count = real_count(self, session, organization_id, role_id)
        calls.append(count)
        if len(calls) == 1:
            # Another request fills the seat between the check and the write.
            with Session(db.get_engine()) as other:
                other.add(
                    EmploymentState(
                        user_id=competitor_id,
                        organization_id=organization_id,
                        role_id=role_id,
                        status=EmploymentStatus.ACTIVE,
                    )
                )
                other.commit()
        return count

    monkeypatch.setattr(EmployeeService, "_count_role_holders", count_then_lose_race)

    response = race_client.post(
        "/api/organization/employees",
        json={"user_id": contender_id, "role_name": "Intern"},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Role 'Intern' reached max users limit (1)"
    assert calls[0] == 0
    holders = _live_holders(org["organization_id"], intern_role["id"])
    assert [row.user_id for row in holders] == [competitor_id]

    with Session(db.get_engine()) as session:
        contender = session.get(User, contender_id)
        assert contender is not None
        assert contender.current_organization_id is None


def test_concurrent_reassignment_to_full_manager_is_rejected(
    race_client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    org = _provision(race_client)
    headers = _auth_header(org["owner_token"])
    lead_role = org["roles"]["Team Lead"]
    employee_role = org["roles"]["Employee"]
    limited = race_client.patch(
        f"/api/roles/{lead_role['id']}",
        json={"limits": {"max_direct_reports": 1}},
        headers=headers,
    )
    assert limited.status_code == 200

    lead = race_client.post(
        "/api/organization/employees",
        json={"user_id": _seed_user("lead@race.test"), "role_name": "Team Lead"},
        headers=headers,
    )
    assert lead.status_code == 201
    lead_id = lead.json()["id"]
    mover = race_client.post(
        "/api/organization/employees",
        json={"user_id": _seed_user("mover@race.test"), "role_name": "Employee"},
        headers=headers,
    )
    assert mover.status_code == 201
    mover_id = mover.json()["id"]

    competitor_id = _seed_user("competitor@race.test")
    real_count = EmployeeService._count_direct_reports
    calls: list[int] = []

    def count_then_lose_race(
        self: EmployeeService,
        session: Session,
        organization_id: str,
        manager_employment_id: str,
    ) -> int:
        count = real_count(self, session, organization_id, manager_employment_id)
        calls.append(count)
        if len(calls) == 1:
            # Another request takes the last reporting slot first.
            with Session(db.get_engine()) as other:
                other.add(
                    EmploymentState(
                        user_id=competitor_id,
                        organization_id=organization_id,
                        role_id=employee_role["id"],
                        status=EmploymentStatus.ACTIVE,
                        reports_to_employment_id=manager_employment_id,
                    )
                )
                other.commit()
        return count

    monkeypatch.setattr(EmployeeService, "_count_direct_reports", count_then_lose_race)

    response = race_client.patch(
        f"/api/organization/employees/{mover_id}",
        json={"reports_to_employment_id": lead_id},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Manager 'Team Lead' reached max direct reports limit (1)"
    assert calls[0] == 0
    with Session(db.get_engine()) as session:
        reports = session.exec(
            select(EmploymentState)
            .where(EmploymentState.organization_id == org["organization_id"])
            .where(EmploymentState.reports_to_employment_id == lead_id)
        ).all()
        assert [row.user_id for row in reports] == [competitor_id]
        mover_row = session.get(EmploymentState, mover_id)
        assert mover_row is not None
        assert mover_row.reports_to_employment_id is None
