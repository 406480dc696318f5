"""Turn an approved organization request into a live tenant.

Everything from the organization row to the owner's employment is written
in one session with a single commit. A failure at any step rolls the whole
attempt back and the request stays PENDING so the approval can be retried.
"""

from __future__ import annotations

import re
import time

from sqlalchemy import update
from sqlmodel import Session, col, select

from hrms.domain.models import (
    Branch,
    Department,
    EmploymentRead,
    EmploymentState,
    EmploymentStatus,
    NotificationPayload,
    Organization,
    OrganizationApproveRequest,
    OrganizationRead,
    OrganizationRejectRequest,
    OrganizationRequest,
    OrganizationRequestRead,
    OrganizationRequestStatus,
    OrganizationType,
    PlatformStatus,
    ProvisioningResultRead,
    Role,
    RoleRead,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
    UserEmploymentStatus,
    now_utc,
)
from hrms.domain.state_machine import can_transition_request
from hrms.domain.templates import (
    PROMOTIONAL_SUBSCRIPTION,
    default_hierarchy_config,
    default_role_access,
    default_role_limits,
    default_role_permissions,
    get_organization_template,
    get_role_ladder,
    resolve_organization_type,
)
from hrms.infra.db import get_engine
from hrms.infra.events import event_bus
from hrms.infra.logging import get_logger
from hrms.infra.notifications import NotificationService, Notifier, notify_safely
from hrms.services.errors import ConflictError, NotFoundError, TransactionError

logger = get_logger(__name__)

SLUG_MAX_LENGTH = 48
HEAD_OFFICE_NAME = "Head Office"
HEAD_OFFICE_CODE = "HQ"
DEFAULT_DEPARTMENT = "General"

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def to_slug(value: str | None) -> str:
    slug = _SLUG_INVALID.sub("-", (value or "").lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH]


class ProvisioningService:
    def __init__(self, notifier: Notifier | None = None) -> None:
        self.notifier: Notifier = notifier or NotificationService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _unique_slug(self, session: Session, base: str) -> str:
        seed = base or f"org-{_to_base36(int(time.time() * 1000))}"
        candidate = seed
        index = 0
        while session.exec(select(Organization.id).where(Organization.slug == candidate)).first() is not None:
            index += 1
            candidate = f"{seed}-{index}"
        return candidate

    def _create_organization(
        self,
        session: Session,
        request: OrganizationRequest,
        name: str,
        organization_type: OrganizationType,
    ) -> Organization:
        organization = Organization(
            name=name,
            slug=self._unique_slug(session, to_slug(name)),
            owner_id=request.requested_by_user_id,
            organization_type=organization_type,
            organization_type_locked=True,
            platform_status=PlatformStatus.APPROVED,
            subscription_plan=SubscriptionPlan(PROMOTIONAL_SUBSCRIPTION["plan"]),
            subscription_status=SubscriptionStatus(PROMOTIONAL_SUBSCRIPTION["status"]),
            employee_limit=int(PROMOTIONAL_SUBSCRIPTION["employee_limit"]),
            features=list(PROMOTIONAL_SUBSCRIPTION["features"]),
            settings={"branding": {}, "modules_enabled": {"payroll": True, "recruitment": True}},
            hierarchy_config=default_hierarchy_config(organization_type),
        )
        session.add(organization)
        session.flush()
        return organization

    def _create_head_office(self, session: Session, organization: Organization) -> Branch:
        branch = Branch(
            organization_id=organization.id,
            name=HEAD_OFFICE_NAME,
            code=HEAD_OFFICE_CODE,
            is_head_office=True,
            is_active=True,
        )
        session.add(branch)
        session.flush()
        return branch

    def _create_departments(
        self,
        session: Session,
        organization: Organization,
        names: list[str],
    ) -> list[Department]:
        departments = [
            Department(organization_id=organization.id, name=name, code=f"DPT{index:02d}", is_active=True)
            for index, name in enumerate(names, start=1)
        ]
        session.add_all(departments)
        session.flush()
        return departments

    def _create_role_ladder(
        self,
        session: Session,
        organization: Organization,
        organization_type: OrganizationType,
    ) -> list[Role]:
        created: list[Role] = []
        for index, role_name in enumerate(get_role_ladder(organization_type)):
            parent = created[-1] if created else None
            role = Role(
                organization_id=organization.id,
                name=role_name,
                level=index + 1,
                parent_role_id=parent.id if parent is not None else None,
                permissions=default_role_permissions(role_name),
                access=default_role_access(role_name),
                is_system=True,
                description=f"Reports to {parent.name}" if parent is not None else "Top level role",
                **default_role_limits(role_name),
            )
            session.add(role)
            session.flush()
            created.append(role)
        return created

    def _create_owner_employment(
        self,
        session: Session,
        request: OrganizationRequest,
        organization: Organization,
        owner_role: Role,
        department: str,
    ) -> EmploymentState:
        employment = EmploymentState(
            user_id=request.requested_by_user_id,
            organization_id=organization.id,
            role_id=owner_role.id,
            status=EmploymentStatus.ACTIVE,
            designation=owner_role.name,
            department=department,
        )
        session.add(employment)
        user = session.get(User, request.requested_by_user_id)
        if user is None:
            raise NotFoundError("requesting user not found")
        user.current_organization_id = organization.id
        user.employment_status = UserEmploymentStatus.ACTIVE
        user.updated_at = now_utc()
        session.add(user)
        session.flush()
        return employment

    def approve(
        self,
        request_id: str,
        reviewer_id: str | None,
        payload: OrganizationApproveRequest,
    ) -> ProvisioningResultRead:
        with self._session() as session:
            request = session.exec(
                select(OrganizationRequest).where(OrganizationRequest.id == request_id).with_for_update()
            ).first()
            if request is None:
                raise NotFoundError("organization request not found")
            if request.linked_organization_id or not can_transition_request(
                request.status, OrganizationRequestStatus.APPROVED
            ):
                raise ConflictError("Only pending request can be approved")

            organization_type = resolve_organization_type(payload.organization_type or request.organization_type)
            name = (payload.organization_name or "").strip() or request.organization_name
            template = get_organization_template(organization_type)
            logger.info("provisioning organization %r (%s) from request %s", name, organization_type, request_id)
            try:
                organization = self._create_organization(session, request, name, organization_type)
                self._create_head_office(session, organization)
                self._create_departments(session, organization, list(template["departments"]))
                roles = self._create_role_ladder(session, organization, organization_type)
                departments = list(template["departments"])
                employment = self._create_owner_employment(
                    session,
                    request,
                    organization,
                    roles[0],
                    departments[0] if departments else DEFAULT_DEPARTMENT,
                )

                # Only a still-pending, unlinked request may be claimed.
                claimed = session.execute(
                    update(OrganizationRequest)
                    .where(OrganizationRequest.id == request_id)
                    .where(OrganizationRequest.status == OrganizationRequestStatus.PENDING)
                    .where(col(OrganizationRequest.linked_organization_id).is_(None))
                    .values(
                        status=OrganizationRequestStatus.APPROVED,
                        linked_organization_id=organization.id,
                        organization_type=organization_type,
                        organization_name=name,
                        reviewed_by=reviewer_id,
                        reviewed_at=now_utc(),
                        decision_reason=payload.approval_note.strip(),
                        updated_at=now_utc(),
                    )
                    .execution_options(synchronize_session=False)
                )
                if claimed.rowcount != 1:
                    raise ConflictError("Only pending request can be approved")
                session.commit()
                session.refresh(request)
            except ConflictError:
                session.rollback()
                logger.warning("request %s was approved concurrently; discarding this attempt", request_id)
                raise
            except Exception as exc:
                session.rollback()
                logger.exception("provisioning failed for request %s", request_id)
                raise TransactionError("organization provisioning failed") from exc

            result = ProvisioningResultRead(
                organization=OrganizationRead.model_validate(organization),
                roles=[RoleRead.model_validate(role) for role in roles],
                request=OrganizationRequestRead.model_validate(request),
                owner_employment=EmploymentRead.model_validate(employment),
            )

        logger.info("organization %s provisioned with %d roles", result.organization.id, len(result.roles))
        event_bus.publish_dict(
            "organization.provisioned",
            result.organization.id,
            {
                "request_id": result.request.id,
                "organization_type": str(result.organization.organization_type),
                "owner_id": result.organization.owner_id,
            },
            actor_id=reviewer_id,
        )
        notify_safely(
            self.notifier,
            result.organization.owner_id,
            NotificationPayload(
                title="Organization approved",
                message=f"{result.organization.name} is ready. You are its owner.",
                type="SUCCESS",
                organization_id=result.organization.id,
            ),
        )
        return result

    def reject(
        self,
        request_id: str,
        reviewer_id: str | None,
        payload: OrganizationRejectRequest,
    ) -> OrganizationRequest:
        with self._session() as session:
            request = session.get(OrganizationRequest, request_id)
            if request is None:
                raise NotFoundError("organization request not found")
            if not can_transition_request(request.status, OrganizationRequestStatus.REJECTED):
                raise ConflictError("Only pending request can be rejected")
            request.status = OrganizationRequestStatus.REJECTED
            request.reviewed_by = reviewer_id
            request.reviewed_at = now_utc()
            request.decision_reason = payload.reason.strip()
            request.updated_at = now_utc()
            session.add(request)
            session.commit()
            session.refresh(request)

        event_bus.publish_dict(
            "organization_request.rejected",
            request.linked_organization_id or "platform",
            {"request_id": request.id, "requested_by_user_id": request.requested_by_user_id},
            actor_id=reviewer_id,
        )
        notify_safely(
            self.notifier,
            request.requested_by_user_id,
            NotificationPayload(
                title="Organization request rejected",
                message=request.decision_reason or "Your organization request was rejected.",
                type="WARNING",
            ),
        )
        return request
