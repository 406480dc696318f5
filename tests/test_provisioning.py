from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlmodel import Session, SQLModel, col, create_engine, select

from hrms import main as app_main
from hrms.domain.models import (
    Branch,
    Department,
    EmploymentState,
    EventRecord,
    Organization,
    OrganizationApproveRequest,
    OrganizationRequest,
    ProvisioningResultRead,
    Role,
    User,
)
from hrms.infra import audit, db, events, notifications
from hrms.infra.auth import create_access_token, hash_password
from hrms.services.provisioning_service import ProvisioningService, to_slug

DEV_PASSWORD = "dev-pass-1234"


@pytest.fixture()
def provisioning_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Generator[TestClient, None, None]:
    db_path = tmp_path / "provisioning_test.db"
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


def _login(client: TestClient, user_id: str) -> str:
    response = client.post("/api/auth/dev-login", json={"user_id": user_id, "password": DEV_PASSWORD})
    assert response.status_code == 200
    return response.json()["access_token"]


def _submit(
    client: TestClient,
    token: str,
    name: str = "Acme Labs",
    organization_type: str = "CORPORATE_IT",
) -> dict[str, Any]:
    response = client.post(
        "/api/auth/organization-request",
        json={
            "organization_name": name,
            "industry_type": "Software",
            "organization_type": organization_type,
            "company_size": "11-50",
            "description": "  product studio  ",
        },
        headers=_auth_header(token),
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_approve_provisions_full_tenant(provisioning_client: TestClient) -> None:
    admin_token = _platform_token(_seed_user("root@platform.test", super_admin=True))
    owner_id = _seed_user("owner@acme.test")
    owner_token = _login(provisioning_client, owner_id)

    state = provisioning_client.get("/api/auth/organization-request/me", headers=_auth_header(owner_token))
    assert state.json()["state"] == "NO_REQUEST"

    request = _submit(provisioning_client, owner_token)
    assert request["status"] == "PENDING"
    assert request["revision"] == 1
    assert request["description"] == "product studio"

    response = provisioning_client.post(
        f"/api/admin/organization-requests/{request['id']}/approve",
        json={"approval_note": " welcome "},
        headers=_auth_header(admin_token),
    )
    assert response.status_code == 200
    result = response.json()

    organization = result["organization"]
    assert organization["slug"] == "acme-labs"
    assert organization["platform_status"] == "APPROVED"
    assert organization["organization_type_locked"] is True
    assert organization["subscription_plan"] == "PRO"
    assert organization["employee_limit"] == 50
    assert organization["hierarchy_config"]["visibility_policy"] == "DOWNLINE_ONLY"

    ladder = [(role["name"], role["level"]) for role in result["roles"]]
    assert ladder == [
        ("Owner", 1),
        ("CEO", 2),
        ("Department Head", 3),
        ("Manager", 4),
        ("Team Lead", 5),
        ("Employee", 6),
        ("Intern", 7),
    ]
    for parent, child in zip(result["roles"], result["roles"][1:], strict=False):
        assert child["parent_role_id"] == parent["id"]
    assert all(role["is_system"] for role in result["roles"])
    assert result["roles"][0]["permissions"] == ["*"]

    assert result["request"]["status"] == "APPROVED"
    assert result["request"]["linked_organization_id"] == organization["id"]
    assert result["request"]["decision_reason"] == "welcome"
    assert result["owner_employment"]["role_id"] == result["roles"][0]["id"]
    assert result["owner_employment"]["reports_to_employment_id"] is None
    assert result["owner_employment"]["department"] == "Engineering"

    with Session(db.get_engine()) as session:
        branches = session.exec(select(Branch).where(Branch.organization_id == organization["id"])).all()
        assert [(item.name, item.code, item.is_head_office) for item in branches] == [("Head Office", "HQ", True)]
        departments = session.exec(
            select(Department).where(Department.organization_id == organization["id"]).order_by(col(Department.code))
        ).all()
        assert [item.code for item in departments] == [f"DPT{index:02d}" for index in range(1, 8)]
        assert departments[0].name == "Engineering"
        owner = session.get(User, owner_id)
        assert owner is not None
        assert owner.current_organization_id == organization["id"]
        provisioned = session.exec(
            select(EventRecord).where(EventRecord.event_type == "organization.provisioned")
        ).all()
        assert [item.organization_id for item in provisioned] == [organization["id"]]

    state = provisioning_client.get("/api/auth/organization-request/me", headers=_auth_header(owner_token))
    assert state.json()["state"] == "APPROVED"
    assert state.json()["modules_unlocked"] is True
    assert state.json()["role"] == "Owner"
    assert state.json()["organization"]["slug"] == "acme-labs"

    again = provisioning_client.post(
        f"/api/admin/organization-requests/{request['id']}/approve",
        json={},
        headers=_auth_header(admin_token),
    )
    assert again.status_code == 409
    assert again.json()["detail"] == "Only pending request can be approved"


def test_failed_step_rolls_back_everything(
    provisioning_client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    admin_token = _platform_token(_seed_user("root@platform.test", super_admin=True))
    owner_id = _seed_user("owner@acme.test")
    request = _submit(provisioning_client, _login(provisioning_client, owner_id))

    real_ladder = ProvisioningService._create_role_ladder

    def broken_ladder(self: ProvisioningService, *args: Any, **kwargs: Any) -> list[Role]:
        raise RuntimeError("disk full")

    monkeypatch.setattr(ProvisioningService, "_create_role_ladder", broken_ladder)
    failed = provisioning_client.post(
        f"/api/admin/organization-requests/{request['id']}/approve",
        json={},
        headers=_auth_header(admin_token),
    )
    assert failed.status_code == 500
    assert failed.json()["detail"] == "organization provisioning failed"

    with Session(db.get_engine()) as session:
        assert session.exec(select(Organization)).all() == []
        assert session.exec(select(Branch)).all() == []
        assert session.exec(select(Department)).all() == []
        assert session.exec(select(Role)).all() == []
        assert session.exec(select(EmploymentState)).all() == []
        stored = session.get(OrganizationRequest, request["id"])
        assert stored is not None
        assert stored.status == "PENDING"
        assert stored.linked_organization_id is None
        owner = session.get(User, owner_id)
        assert owner is not None
        assert owner.current_organization_id is None

    monkeypatch.setattr(ProvisioningService, "_create_role_ladder", real_ladder)
    retried = provisioning_client.post(
        f"/api/admin/organization-requests/{request['id']}/approve",
        json={},
        headers=_auth_header(admin_token),
    )
    assert retried.status_code == 200


def test_concurrent_approval_provisions_once(
    provisioning_client: TestClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    admin_id = _seed_user("root@platform.test", super_admin=True)
    owner_id = _seed_user("owner@acme.test")
    request = _submit(provisioning_client, _login(provisioning_client, owner_id))

    real_unique_slug = ProvisioningService._unique_slug
    slug_calls: list[str] = []
    competing: list[ProvisioningResultRead] = []

    def slug_after_competing_approval(self: ProvisioningService, session: Session, base: str) -> str:
        slug_calls.append(base)
        if len(slug_calls) == 1:
            competing.append(ProvisioningService().approve(request["id"], admin_id, OrganizationApproveRequest()))
        return real_unique_slug(self, session, base)

    monkeypatch.setattr(ProvisioningService, "_unique_slug", slug_after_competing_approval)
    response = provisioning_client.post(
        f"/api/admin/organization-requests/{request['id']}/approve",
        json={},
        headers=_auth_header(_platform_token(admin_id)),
    )
    assert response.status_code == 409
    assert response.json()["detail"] == "Only pending request can be approved"

    assert len(competing) == 1
    winner = competing[0].organization.id
    with Session(db.get_engine()) as session:
        organizations = session.exec(select(Organization)).all()
        assert [organization.id for organization in organizations] == [winner]
        employments = session.exec(select(EmploymentState)).all()
        assert [employment.organization_id for employment in employments] == [winner]
        assert {role.organization_id for role in session.exec(select(Role)).all()} == {winner}
        stored = session.get(OrganizationRequest, request["id"])
        assert stored is not None
        assert stored.status == "APPROVED"
        assert stored.linked_organization_id == winner
        owner = session.get(User, owner_id)
        assert owner is not None
        assert owner.current_organization_id == winner


def test_slug_collision_gets_numeric_suffix(provisioning_client: TestClient) -> None:
    admin_token = _platform_token(_seed_user("root@platform.test", super_admin=True))
    slugs: list[str] = []
    for email in ("first@acme.test", "second@acme.test", "third@acme.test"):
        request = _submit(provisioning_client, _login(provisioning_client, _seed_user(email)), name="Acme  Labs!")
        approved = provisioning_client.post(
            f"/api/admin/organization-requests/{request['id']}/approve",
            json={},
            headers=_auth_header(admin_token),
        )
        assert approved.status_code == 200
        slugs.append(approved.json()["organization"]["slug"])

    assert slugs == ["acme-labs", "acme-labs-1", "acme-labs-2"]


def test_approval_can_override_name_and_type(provisioning_client: TestClient) -> None:
    admin_token = _platform_token(_seed_user("root@platform.test", super_admin=True))
    request = _submit(provisioning_client, _login(provisioning_client, _seed_user("dean@campus.test")))

    response = provisioning_client.post(
        f"/api/admin/organization-requests/{request['id']}/approve",
        json={"organization_name": "North Campus", "organization_type": "SCHOOL_COLLEGE"},
        headers=_auth_header(admin_token),
    )
    assert response.status_code == 200
    result = response.json()
    assert result["organization"]["name"] == "North Campus"
    assert result["organization"]["organization_type"] == "SCHOOL_COLLEGE"
    assert [role["name"] for role in result["roles"]][:3] == ["Owner", "Chairman", "Principal"]
    assert result["request"]["organization_type"] == "SCHOOL_COLLEGE"


def test_reject_then_resubmit_bumps_revision(provisioning_client: TestClient) -> None:
    admin_token = _platform_token(_seed_user("root@platform.test", super_admin=True))
    owner_token = _login(provisioning_client, _seed_user("owner@acme.test"))
    first = _submit(provisioning_client, owner_token)

    duplicate = provisioning_client.post(
        "/api/auth/organization-request",
        json={
            "organization_name": "Acme Again",
            "industry_type": "Software",
            "organization_type": "CORPORATE_IT",
            "company_size": "11-50",
        },
        headers=_auth_header(owner_token),
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "You already have a pending organization request"

    rejected = provisioning_client.post(
        f"/api/admin/organization-requests/{first['id']}/reject",
        json={"reason": "Incomplete details"},
        headers=_auth_header(admin_token),
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "REJECTED"
    assert rejected.json()["decision_reason"] == "Incomplete details"

    state = provisioning_client.get("/api/auth/organization-request/me", headers=_auth_header(owner_token))
    assert state.json()["state"] == "REJECTED"
    assert state.json()["modules_unlocked"] is False

    reject_again = provisioning_client.post(
        f"/api/admin/organization-requests/{first['id']}/reject",
        json={},
        headers=_auth_header(admin_token),
    )
    assert reject_again.status_code == 409
    approve_rejected = provisioning_client.post(
        f"/api/admin/organization-requests/{first['id']}/approve",
        json={},
        headers=_auth_header(admin_token),
    )
    assert approve_rejected.status_code == 409

    second = _submit(provisioning_client, owner_token, name="Acme Labs Pvt")
    assert second["revision"] == 2

    mine = provisioning_client.get("/api/auth/organization-requests/me", headers=_auth_header(owner_token))
    assert {item["revision"] for item in mine.json()} == {1, 2}

    pending = provisioning_client.get(
        "/api/admin/organization-requests",
        params={"status": "PENDING"},
        headers=_auth_header(admin_token),
    )
    assert pending.status_code == 200
    assert [item["id"] for item in pending.json()] == [second["id"]]


def test_review_endpoints_require_super_admin(provisioning_client: TestClient) -> None:
    owner_token = _login(provisioning_client, _seed_user("owner@acme.test"))
    request = _submit(provisioning_client, owner_token)

    listed = provisioning_client.get("/api/admin/organization-requests", headers=_auth_header(owner_token))
    assert listed.status_code == 403
    approve = provisioning_client.post(
        f"/api/admin/organization-requests/{request['id']}/approve",
        json={},
        headers=_auth_header(owner_token),
    )
    assert approve.status_code == 403
    assert approve.json()["detail"] == "Super admin access required"

    admin_token = _platform_token(_seed_user("root@platform.test", super_admin=True))
    missing = provisioning_client.post(
        "/api/admin/organization-requests/does-not-exist/approve",
        json={},
        headers=_auth_header(admin_token),
    )
    assert missing.status_code == 404


def test_organization_types_are_listed_once_per_name(provisioning_client: TestClient) -> None:
    response = provisioning_client.get("/api/auth/organization-types")
    assert response.status_code == 200
    names = [item["name"] for item in response.json()]
    assert len(names) == len(set(names))
    assert "Corporate / IT Company" in names


def test_to_slug() -> None:
    assert to_slug("  Acme & Sons, Ltd. ") == "acme-sons-ltd"
    assert to_slug(None) == ""
    assert len(to_slug("x" * 100)) == 48
