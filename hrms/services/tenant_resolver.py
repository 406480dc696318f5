"""Resolve which organization a request acts on.

An organization claim inside the access token wins. Without one, the tenant
header is honoured only for platform super-admins and for users holding a
live employment in that organization.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlmodel import Session, col, select

from hrms.domain.hierarchy import LIVE_STATUSES
from hrms.domain.models import EmploymentState, Organization, Role, User
from hrms.infra.db import get_engine
from hrms.infra.logging import get_logger
from hrms.services.errors import AuthenticationError, AuthorizationError, NotFoundError

logger = get_logger(__name__)

OWNER_ROLE_KEY = "owner"


@dataclass(frozen=True)
class TenantContext:
    organization_id: str
    user_id: str
    role_name: str | None = None
    is_super_admin: bool = False
    employment_id: str | None = None

    @property
    def is_owner(self) -> bool:
        if self.is_super_admin:
            return True
        return (self.role_name or "").strip().lower() == OWNER_ROLE_KEY


class TenantResolver:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _live_employment(self, session: Session, organization_id: str, user_id: str) -> EmploymentState | None:
        statement = (
            select(EmploymentState)
            .where(EmploymentState.organization_id == organization_id)
            .where(EmploymentState.user_id == user_id)
            .where(col(EmploymentState.status).in_(list(LIVE_STATUSES)))
        )
        return session.exec(statement).first()

    def resolve(self, claims: dict[str, Any], header_value: str | None) -> TenantContext:
        user_id = claims.get("sub")
        if not user_id:
            raise AuthenticationError("token subject missing")
        token_organization_id = claims.get("organization_id")
        organization_id = token_organization_id or (header_value or "").strip() or None
        if organization_id is None:
            raise AuthorizationError("Organization context required. Select an organization first.")

        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise AuthenticationError("user not found")
            if session.get(Organization, organization_id) is None:
                raise NotFoundError("organization not found")

            employment = self._live_employment(session, organization_id, user_id)
            if token_organization_id is None and employment is None and not user.is_super_admin:
                logger.info("tenant header rejected for user %s on organization %s", user_id, organization_id)
                raise AuthorizationError("No active access to selected organization.")

            role_name = claims.get("role") if token_organization_id else None
            if employment is not None:
                role = session.get(Role, employment.role_id)
                role_name = role.name if role is not None else role_name
            elif user.is_super_admin and not role_name:
                role_name = "SuperAdmin"

            return TenantContext(
                organization_id=organization_id,
                user_id=user_id,
                role_name=role_name,
                is_super_admin=user.is_super_admin,
                employment_id=employment.id if employment is not None else None,
            )
