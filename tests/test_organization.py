from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine

from hrms import main as app_main
from hrms.domain.models import User
from hrms.infra import audit, db, events, notifications
from hrms.infra.auth import create_access_token, hash_password
from hrms.infra.tenant import TENANT_HEADER

DEV_PASSWORD = "dev-pass-1234"


@pytest.fixture()
def organization_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "organization_test.db"
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
    owner_id = _seed_user("owner@acme.test")
    submitted = client.post(
        "/api/auth/organization-request",
        json={
            "organization_name": "Acme Labs",
            "industry_type": "Software",
            "organization_type": "CORPORATE_IT",
            "company_size": "11-50",
        },
        headers=_auth_header(_login(client, owner_id)),
    )
    approved = client.post(
        f"/api/admin/organization-requests/{submitted.json()['id']}/approve",
        json={},
        headers=_auth_header(_platform_token(admin_id)),
    )
    assert approved.status_code == 200
    organization_id = approved.json()["organization"]["id"]
    return {
        "organization_id": organization_id,
        "admin_id": admin_id,
        "owner_token": _login(client, owner_id, organization_id),
        "owner_employment_id": approved.json()["owner_employment"]["id"],
    }


def test_get_organization(organization_client: TestClient) -> None:
    org = _provision(organization_client)
    response = organization_client.get("/api/organization", headers=_auth_header(org["owner_token"]))
    assert response.status_code == 200
    assert response.json()["id"] == org["organization_id"]
    assert "payroll" in response.json()["features"]


def test_hierarchy_config_updates(organization_client: TestClient) -> None:
    org = _provision(organization_client)
    headers = _auth_header(org["owner_token"])

    current = organization_client.get("/api/organization/hierarchy", headers=headers)
    assert current.status_code == 200
    assert current.json()["organization_type_locked"] is True
    assert current.json()["hierarchy_config"]["custom_levels"][0] == "Shareholders"

    updated = organization_client.patch(
        "/api/organization/hierarchy",
        json={"custom_levels": [" Board ", "", "Staff"], "matrix_reporting_enabled": True},
        headers=headers,
    )
    assert updated.status_code == 200
    config = updated.json()["hierarchy_config"]
    assert config["custom_levels"] == ["Board", "Staff"]
    assert config["matrix_reporting_enabled"] is True
    assert config["visibility_policy"] == "DOWNLINE_ONLY"

    empty = organization_client.patch("/api/organization/hierarchy", json={"custom_levels": [" "]}, headers=headers)
    assert empty.status_code == 400
    assert empty.json()["detail"] == "custom_levels must contain at least one level"

    locked = organization_client.patch(
        "/api/organization/hierarchy",
        json={"organization_type": "HOSPITAL"},
        headers=headers,
    )
    assert locked.status_code == 400
    assert locked.json()["detail"] == "Organization type is locked after approval"

    admin_headers = {
        **_auth_header(_platform_token(org["admin_id"])),
        TENANT_HEADER: org["organization_id"],
    }
    retyped = organization_client.patch(
        "/api/organization/hierarchy",
        json={"organization_type": "HOSPITAL"},
        headers=admin_headers,
    )
    assert retyped.status_code == 200
    assert retyped.json()["organization_type"] == "HOSPITAL"
    assert retyped.json()["hierarchy_config"]["active_template_type"] == "HOSPITAL"


def test_visibility_policy_does_not_widen_scope(organization_client: TestClient) -> None:
    org = _provision(organization_client)
    headers = _auth_header(org["owner_token"])
    organization_client.patch("/api/organization/hierarchy", json={"visibility_policy": "ALL"}, headers=headers)

    first = organization_client.post(
        "/api/organization/employees",
        json={"user_id": _seed_user("m1@acme.test"), "role_name": "Manager"},
        headers=headers,
    ).json()
    organization_client.post(
        "/api/organization/employees",
        json={"user_id": _seed_user("m2@acme.test"), "role_name": "Manager"},
        headers=headers,
    )

    peer_view = organization_client.get(
        "/api/organization/employees",
        headers=_auth_header(_login(organization_client, first["user_id"], org["organization_id"])),
    )
    assert peer_view.status_code == 200
    assert peer_view.json() == []


def test_branches(organization_client: TestClient) -> None:
    org = _provision(organization_client)
    headers = _auth_header(org["owner_token"])

    created = organization_client.post(
        "/api/organization/branches",
        json={"name": "Pune", "code": "PUN", "location": {"city": "Pune"}},
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["currency"] == "INR"

    duplicate = organization_client.post(
        "/api/organization/branches",
        json={"name": "Pune Two", "code": "PUN"},
        headers=headers,
    )
    assert duplicate.status_code == 409

    renamed = organization_client.patch(
        f"/api/organization/branches/{created.json()['id']}",
        json={"name": "Pune West", "is_active": False},
        headers=headers,
    )
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Pune West"
    assert renamed.json()["is_active"] is False

    listed = organization_client.get("/api/organization/branches", headers=headers)
    assert [item["name"] for item in listed.json()] == ["Head Office", "Pune West"]

    missing = organization_client.patch("/api/organization/branches/nope", json={"name": "x"}, headers=headers)
    assert missing.status_code == 404


def test_departments_reject_cycles_and_foreign_refs(organization_client: TestClient) -> None:
    org = _provision(organization_client)
    headers = _auth_header(org["owner_token"])

    parent = organization_client.post(
        "/api/organization/departments",
        json={"name": "Platform", "code": "PLT", "head_employment_id": org["owner_employment_id"]},
        headers=headers,
    )
    assert parent.status_code == 201
    child = organization_client.post(
        "/api/organization/departments",
        json={"name": "Platform Infra", "code": "PLT-INF", "parent_department_id": parent.json()["id"]},
        headers=headers,
    )
    assert child.status_code == 201
    grandchild = organization_client.post(
        "/api/organization/departments",
        json={"name": "Platform Infra SRE", "parent_department_id": child.json()["id"]},
        headers=headers,
    )
    assert grandchild.status_code == 201

    cycle = organization_client.patch(
        f"/api/organization/departments/{parent.json()['id']}",
        json={"parent_department_id": grandchild.json()["id"]},
        headers=headers,
    )
    assert cycle.status_code == 400
    assert cycle.json()["detail"] == "department cannot be its own ancestor"

    own_parent = organization_client.patch(
        f"/api/organization/departments/{parent.json()['id']}",
        json={"parent_department_id": parent.json()["id"]},
        headers=headers,
    )
    assert own_parent.status_code == 400

    unknown_branch = organization_client.post(
        "/api/organization/departments",
        json={"name": "Ghost", "branch_id": "no-branch"},
        headers=headers,
    )
    assert unknown_branch.status_code == 404

    unknown_head = organization_client.post(
        "/api/organization/departments",
        json={"name": "Ghost", "head_employment_id": "no-employee"},
        headers=headers,
    )
    assert unknown_head.status_code == 404

    duplicate = organization_client.post(
        "/api/organization/departments",
        json={"name": "Platform"},
        headers=headers,
    )
    assert duplicate.status_code == 409

    listed = organization_client.get("/api/organization/departments", headers=headers)
    assert len(listed.json()) == 10


def test_organization_endpoints_require_owner(organization_client: TestClient) -> None:
    org = _provision(organization_client)
    hired = organization_client.post(
        "/api/organization/employees",
        json={"user_id": _seed_user("e@acme.test"), "role_name": "Employee"},
        headers=_auth_header(org["owner_token"]),
    ).json()
    headers = _auth_header(_login(organization_client, hired["user_id"], org["organization_id"]))

    assert organization_client.get("/api/organization", headers=headers).status_code == 403
    assert organization_client.get("/api/organization/branches", headers=headers).status_code == 403
    assert (
        organization_client.patch("/api/organization/hierarchy", json={}, headers=headers).status_code == 403
    )
