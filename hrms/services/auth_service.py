from __future__ import annotations

from sqlmodel import Session, col, select

from hrms.domain.models import (
    EmploymentState,
    EmploymentStatus,
    MembershipRead,
    NotificationPayload,
    Organization,
    Role,
    TokenResponse,
    User,
    UserEmploymentStatus,
    now_utc,
)
from hrms.infra.audit import record_audit_entry
from hrms.infra.auth import create_access_token, hash_password
from hrms.infra.db import get_engine
from hrms.infra.notifications import NotificationService, Notifier, notify_safely
from hrms.services.errors import AuthenticationError, AuthorizationError, NotFoundError, ValidationError

SUPER_ADMIN_ROLE = "SuperAdmin"
MEMBERSHIP_STATUSES = (EmploymentStatus.ACTIVE, EmploymentStatus.INVITED)


class AuthService:
    """Development identity surface; credential and OTP flows live elsewhere."""

    def __init__(self, notifier: Notifier | None = None) -> None:
        self.notifier: Notifier = notifier or NotificationService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _active_role_name(self, session: Session, user: User, organization_id: str) -> str:
        employment = session.exec(
            select(EmploymentState)
            .where(EmploymentState.user_id == user.id)
            .where(EmploymentState.organization_id == organization_id)
            .where(EmploymentState.status == EmploymentStatus.ACTIVE)
        ).first()
        if employment is not None:
            role = session.get(Role, employment.role_id)
            return role.name if role is not None else ""
        if user.is_super_admin:
            return SUPER_ADMIN_ROLE
        raise AuthorizationError("You do not have active access to this organization")

    def dev_login(self, user_id: str, password: str, organization_id: str | None = None) -> TokenResponse:
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None or user.password_hash is None:
                raise AuthenticationError("invalid credentials")
            if user.password_hash != hash_password(password):
                raise AuthenticationError("invalid credentials")
            # Platform tokens come from the real identity provider only.
            if user.is_super_admin:
                raise AuthorizationError("dev login is not available for platform administrators")
            role_name = self._active_role_name(session, user, organization_id) if organization_id else None
        record_audit_entry(
            organization_id=organization_id or "platform",
            actor_id=user_id,
            action="DEV_LOGIN",
            resource="User",
            method="POST",
            status_code=200,
            detail={"role": role_name},
        )
        token = create_access_token(user_id=user_id, organization_id=organization_id, role=role_name)
        return TokenResponse(access_token=token, organization_id=organization_id, role=role_name)

    def list_memberships(self, user_id: str) -> list[MembershipRead]:
        with self._session() as session:
            rows = session.exec(
                select(EmploymentState)
                .where(EmploymentState.user_id == user_id)
                .where(col(EmploymentState.status).in_(list(MEMBERSHIP_STATUSES)))
                .order_by(col(EmploymentState.joined_at).desc())
            ).all()
            memberships: list[MembershipRead] = []
            for row in rows:
                organization = session.get(Organization, row.organization_id)
                role = session.get(Role, row.role_id)
                memberships.append(
                    MembershipRead(
                        employment_id=row.id,
                        organization_id=row.organization_id,
                        organization_name=organization.name if organization is not None else None,
                        organization_slug=organization.slug if organization is not None else None,
                        platform_status=organization.platform_status if organization is not None else None,
                        organization_type=organization.organization_type if organization is not None else None,
                        role=role.name if role is not None else None,
                        status=row.status,
                    )
                )
            return memberships

    def switch_organization(
        self,
        user_id: str,
        organization_id: str,
        *,
        client_ip: str | None = None,
    ) -> TokenResponse:
        if not organization_id:
            raise ValidationError("organization_id is required")
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise AuthenticationError("user not found")
            if session.get(Organization, organization_id) is None:
                raise NotFoundError("organization not found")
            role_name = self._active_role_name(session, user, organization_id)
            user.current_organization_id = organization_id
            user.employment_status = UserEmploymentStatus.ACTIVE
            user.updated_at = now_utc()
            session.add(user)
            session.commit()

        record_audit_entry(
            organization_id=organization_id,
            actor_id=user_id,
            action="SWITCH_ORGANIZATION",
            resource="Organization",
            method="POST",
            status_code=200,
            detail={"resource_id": organization_id, "role_name": role_name, "client_ip": client_ip},
        )
        notify_safely(
            self.notifier,
            user_id,
            NotificationPayload(
                title="Organization switched",
                message=f"You are now working as {role_name or 'USER'}.",
                organization_id=organization_id,
            ),
        )
        token = create_access_token(user_id=user_id, organization_id=organization_id, role=role_name)
        return TokenResponse(access_token=token, organization_id=organization_id, role=role_name)

    def is_super_admin(self, user_id: str) -> bool:
        with self._session() as session:
            user = session.get(User, user_id)
            return user is not None and user.is_super_admin

    def get_user(self, user_id: str) -> User:
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise AuthenticationError("user not found")
            return user
