from __future__ import annotations

from typing import Any

from sqlmodel import Session, col, select

from hrms.domain.models import (
    EmploymentState,
    EmploymentStatus,
    NotificationPayload,
    Organization,
    OrganizationRequest,
    OrganizationRequestCreate,
    OrganizationRequestRead,
    OrganizationRequestState,
    OrganizationRequestStatus,
    OrganizationSummary,
    Role,
    User,
)
from hrms.domain.templates import list_organization_templates
from hrms.infra.db import get_engine
from hrms.infra.events import event_bus
from hrms.infra.notifications import NotificationService, Notifier, notify_safely
from hrms.services.errors import ConflictError, NotFoundError

MY_REQUESTS_LIMIT = 20
PLATFORM_SCOPE = "platform"


class OrganizationRequestService:
    def __init__(self, notifier: Notifier | None = None) -> None:
        self.notifier: Notifier = notifier or NotificationService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _latest_request(self, session: Session, user_id: str) -> OrganizationRequest | None:
        statement = (
            select(OrganizationRequest)
            .where(OrganizationRequest.requested_by_user_id == user_id)
            .order_by(col(OrganizationRequest.revision).desc(), col(OrganizationRequest.created_at).desc())
        )
        return session.exec(statement).first()

    def list_templates(self) -> list[dict[str, Any]]:
        # GOVERNMENT and GOVERNMENT_PSU share a display name; expose it once.
        seen: set[str] = set()
        templates: list[dict[str, Any]] = []
        for template in list_organization_templates():
            if template["name"] in seen:
                continue
            seen.add(template["name"])
            templates.append(template)
        return templates

    def submit(self, user_id: str, payload: OrganizationRequestCreate) -> OrganizationRequest:
        with self._session() as session:
            if session.get(User, user_id) is None:
                raise NotFoundError("user not found")
            pending = session.exec(
                select(OrganizationRequest.id)
                .where(OrganizationRequest.requested_by_user_id == user_id)
                .where(OrganizationRequest.status == OrganizationRequestStatus.PENDING)
            ).first()
            if pending is not None:
                raise ConflictError("You already have a pending organization request")
            latest = self._latest_request(session, user_id)
            request = OrganizationRequest(
                requested_by_user_id=user_id,
                organization_name=payload.organization_name.strip(),
                industry_type=payload.industry_type.strip(),
                organization_type=payload.organization_type,
                company_size=payload.company_size.strip(),
                description=payload.description.strip(),
                revision=latest.revision + 1 if latest is not None else 1,
            )
            session.add(request)
            session.commit()
            session.refresh(request)
            super_admin_ids = list(session.exec(select(User.id).where(col(User.is_super_admin).is_(True))).all())

        event_bus.publish_dict(
            "organization_request.submitted",
            PLATFORM_SCOPE,
            {"request_id": request.id, "revision": request.revision},
            actor_id=user_id,
        )
        for admin_id in super_admin_ids:
            notify_safely(
                self.notifier,
                admin_id,
                NotificationPayload(
                    title="New organization request",
                    message=f"{request.organization_name} is waiting for approval.",
                ),
            )
        return request

    def list_mine(self, user_id: str) -> list[OrganizationRequest]:
        with self._session() as session:
            statement = (
                select(OrganizationRequest)
                .where(OrganizationRequest.requested_by_user_id == user_id)
                .order_by(col(OrganizationRequest.created_at).desc())
                .limit(MY_REQUESTS_LIMIT)
            )
            return list(session.exec(statement).all())

    def list_for_review(self, status: OrganizationRequestStatus | None = None) -> list[OrganizationRequest]:
        with self._session() as session:
            statement = select(OrganizationRequest)
            if status is not None:
                statement = statement.where(OrganizationRequest.status == status)
            statement = statement.order_by(col(OrganizationRequest.created_at).desc())
            return list(session.exec(statement).all())

    def state_for(self, user_id: str) -> OrganizationRequestState:
        with self._session() as session:
            employment = session.exec(
                select(EmploymentState)
                .where(EmploymentState.user_id == user_id)
                .where(EmploymentState.status == EmploymentStatus.ACTIVE)
                .order_by(col(EmploymentState.joined_at))
            ).first()
            organization = session.get(Organization, employment.organization_id) if employment is not None else None
            if employment is not None and organization is not None:
                role = session.get(Role, employment.role_id)
                return OrganizationRequestState(
                    state="APPROVED",
                    modules_unlocked=True,
                    organization=OrganizationSummary(
                        id=organization.id,
                        name=organization.name,
                        slug=organization.slug,
                        platform_status=organization.platform_status,
                        organization_type=organization.organization_type,
                        organization_type_locked=organization.organization_type_locked,
                    ),
                    role=role.name if role is not None else None,
                )

            latest = self._latest_request(session, user_id)
            if latest is None:
                return OrganizationRequestState(state="NO_REQUEST", modules_unlocked=False)
            return OrganizationRequestState(
                state=str(latest.status),
                modules_unlocked=False,
                request=OrganizationRequestRead.model_validate(latest),
            )
