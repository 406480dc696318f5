from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from hrms.domain.hierarchy import LIVE_STATUSES
from hrms.domain.models import (
    AccessRule,
    EmploymentState,
    EmploymentStatus,
    Organization,
    Role,
    RoleCreate,
    RoleLimits,
    RoleUpdate,
    now_utc,
)
from hrms.domain.permissions import ACCESS_ACTIONS, ROLE_LIMIT_NAMES, ROLE_MODULE_CATALOG
from hrms.domain.templates import get_role_ladder
from hrms.infra.db import get_engine
from hrms.services.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from hrms.services.tenant_resolver import TenantContext

RESERVED_ROLE_NAMES = frozenset({"owner", "admin", "superadmin"})
FALLBACK_ROLE_LEVELS: dict[str, int] = {
    "owner": 1,
    "ceo": 2,
    "chairman": 2,
    "principal": 3,
    "admin": 3,
    "manager": 4,
    "team lead": 5,
    "employee": 6,
    "intern": 7,
}
# Roles without a usable level rank below everything else. See DESIGN.md
# before changing it.
UNKNOWN_ROLE_LEVEL = 100
SUPER_ADMIN_ACTOR_LEVEL = 0
UNKNOWN_ACTOR_LEVEL = 999


def normalize_role_name(value: str | None) -> str:
    return (value or "").strip().lower()


def is_reserved_role_name(value: str | None) -> bool:
    return normalize_role_name(value) in RESERVED_ROLE_NAMES


def resolve_level(role: Role | None) -> int:
    if role is None:
        return UNKNOWN_ROLE_LEVEL
    if role.level is not None:
        return int(role.level)
    return FALLBACK_ROLE_LEVELS.get(normalize_role_name(role.name), UNKNOWN_ROLE_LEVEL)


def normalize_access_matrix(access: list[AccessRule] | None) -> list[dict[str, Any]]:
    if not access:
        return []
    seen: set[str] = set()
    normalized: list[dict[str, Any]] = []
    for rule in access:
        module = rule.module.strip().lower()
        if not module or module in seen:
            continue
        seen.add(module)
        normalized.append(
            {
                "module": module,
                "read": bool(rule.read),
                "write": bool(rule.write),
                "approve": bool(rule.approve),
            }
        )
    return normalized


def normalize_limits(limits: RoleLimits | None) -> dict[str, int | float | None]:
    raw = limits.model_dump() if limits is not None else {}
    normalized: dict[str, int | float | None] = {}
    for name in ROLE_LIMIT_NAMES:
        value = raw.get(name)
        if value is None or value < 0:
            normalized[name] = None
        elif name == "max_payroll_approval_amount":
            normalized[name] = float(value)
        else:
            normalized[name] = int(value)
    return normalized


def positive_limit(value: int | float | None) -> int | float | None:
    """Return the limit only when it is enforceable; zero and null mean unlimited."""
    if value is None or value <= 0:
        return None
    return value


class RoleService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_role(self, session: Session, organization_id: str, role_id: str) -> Role | None:
        statement = select(Role).where(Role.organization_id == organization_id).where(Role.id == role_id)
        return session.exec(statement).first()

    def get_role_by_name(self, session: Session, organization_id: str, name: str) -> Role | None:
        statement = select(Role).where(Role.organization_id == organization_id).where(Role.name == name.strip())
        return session.exec(statement).first()

    def actor_level(self, session: Session, context: TenantContext) -> int:
        if context.is_super_admin:
            return SUPER_ADMIN_ACTOR_LEVEL
        if context.employment_id is not None:
            employment = session.get(EmploymentState, context.employment_id)
            if employment is not None:
                return resolve_level(session.get(Role, employment.role_id))
        if not context.role_name:
            return UNKNOWN_ACTOR_LEVEL
        role = self.get_role_by_name(session, context.organization_id, context.role_name)
        if role is not None:
            return resolve_level(role)
        return FALLBACK_ROLE_LEVELS.get(normalize_role_name(context.role_name), UNKNOWN_ACTOR_LEVEL)

    def _enforce_org_type_whitelist(self, session: Session, context: TenantContext, role_name: str) -> None:
        organization = session.get(Organization, context.organization_id)
        if organization is None:
            raise NotFoundError("organization not found")
        if not organization.organization_type_locked or context.is_super_admin:
            return
        allowed = {normalize_role_name(item) for item in get_role_ladder(organization.organization_type)}
        allowed.add("owner")
        if normalize_role_name(role_name) not in allowed:
            raise ValidationError(f"Role '{role_name}' is outside selected organization type structure")

    def _validate_parent(
        self,
        session: Session,
        organization_id: str,
        parent_role_id: str | None,
        level: int,
    ) -> Role | None:
        if not parent_role_id:
            return None
        parent = self._get_scoped_role(session, organization_id, parent_role_id)
        if parent is None:
            raise ValidationError("Invalid parent_role_id")
        if resolve_level(parent) >= level:
            raise ValidationError("Role parent must be higher in hierarchy (lower level number)")
        return parent

    def validate_create(self, session: Session, context: TenantContext, payload: RoleCreate) -> Role | None:
        name = payload.name.strip()
        if not name:
            raise ValidationError("Role name required")
        if is_reserved_role_name(name):
            raise ValidationError(f"Role '{name}' is reserved and cannot be created manually")
        if payload.level is None or payload.level < 2:
            raise ValidationError("level must be a number >= 2")
        self._enforce_org_type_whitelist(session, context, name)
        if payload.level < self.actor_level(session, context):
            raise AuthorizationError("Lower level cannot create higher level role")
        return self._validate_parent(session, context.organization_id, payload.parent_role_id, payload.level)

    def permission_catalog(self) -> dict[str, list[str]]:
        return {
            "modules": list(ROLE_MODULE_CATALOG),
            "actions": list(ACCESS_ACTIONS),
            "limits": list(ROLE_LIMIT_NAMES),
        }

    def list_roles(self, organization_id: str) -> list[Role]:
        with self._session() as session:
            statement = (
                select(Role)
                .where(Role.organization_id == organization_id)
                .order_by(col(Role.level), col(Role.name))
            )
            return list(session.exec(statement).all())

    def get_role(self, organization_id: str, role_id: str) -> Role:
        with self._session() as session:
            role = self._get_scoped_role(session, organization_id, role_id)
            if role is None:
                raise NotFoundError("role not found")
            return role

    def create_role(self, context: TenantContext, payload: RoleCreate) -> Role:
        with self._session() as session:
            parent = self.validate_create(session, context, payload)
            role = Role(
                organization_id=context.organization_id,
                name=payload.name.strip(),
                level=payload.level,
                parent_role_id=parent.id if parent is not None else None,
                permissions=list(payload.permissions),
                access=normalize_access_matrix(payload.access),
                description=payload.description,
                is_system=False,
                **normalize_limits(payload.limits),
            )
            session.add(role)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("Role with same name already exists") from exc
            session.refresh(role)
            return role

    def update_role(self, context: TenantContext, role_id: str, payload: RoleUpdate) -> Role:
        fields = payload.model_fields_set
        with self._session() as session:
            role = self._get_scoped_role(session, context.organization_id, role_id)
            if role is None:
                raise NotFoundError("role not found")

            if "name" in fields:
                next_name = (payload.name or "").strip()
                if not next_name:
                    raise ValidationError("Role name required")
                if next_name != role.name:
                    if role.is_system:
                        raise ValidationError("System role name cannot be changed")
                    if is_reserved_role_name(next_name):
                        raise ValidationError(f"Role '{next_name}' is reserved")
                    self._enforce_org_type_whitelist(session, context, next_name)
                    role.name = next_name

            if "level" in fields:
                if payload.level is None or payload.level < 1:
                    raise ValidationError("Invalid level")
                if payload.level < self.actor_level(session, context) and not context.is_super_admin:
                    raise AuthorizationError("Lower level cannot move role above your hierarchy")
                parent_id = payload.parent_role_id if "parent_role_id" in fields else role.parent_role_id
                parent = self._validate_parent(session, context.organization_id, parent_id, payload.level)
                role.level = payload.level
                role.parent_role_id = parent.id if parent is not None else None
            elif "parent_role_id" in fields:
                parent = self._validate_parent(
                    session,
                    context.organization_id,
                    payload.parent_role_id,
                    resolve_level(role),
                )
                role.parent_role_id = parent.id if parent is not None else None

            if "permissions" in fields:
                role.permissions = list(payload.permissions or [])
            if "access" in fields:
                role.access = normalize_access_matrix(payload.access)
            if "limits" in fields:
                for name, value in normalize_limits(payload.limits).items():
                    setattr(role, name, value)
            if "description" in fields:
                role.description = payload.description or ""

            role.updated_at = now_utc()
            session.add(role)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("Role with same name already exists") from exc
            session.refresh(role)
            return role

    def delete_role(self, organization_id: str, role_id: str) -> None:
        with self._session() as session:
            role = self._get_scoped_role(session, organization_id, role_id)
            if role is None:
                raise NotFoundError("role not found")
            if role.is_system:
                raise ValidationError("Cannot delete system role")
            child = session.exec(
                select(Role.id)
                .where(Role.organization_id == organization_id)
                .where(Role.parent_role_id == role.id)
            ).first()
            if child is not None:
                raise ValidationError("Cannot delete role with dependent child roles")
            holder = session.exec(
                select(EmploymentState.id)
                .where(EmploymentState.organization_id == organization_id)
                .where(EmploymentState.role_id == role.id)
                .where(col(EmploymentState.status).in_(list(LIVE_STATUSES)))
            ).first()
            if holder is not None:
                raise ValidationError("Cannot delete role assigned to employees")
            historical = session.exec(
                select(EmploymentState.id)
                .where(EmploymentState.organization_id == organization_id)
                .where(EmploymentState.role_id == role.id)
                .where(EmploymentState.status == EmploymentStatus.TERMINATED)
            ).first()
            if historical is not None:
                raise ConflictError("Role is referenced by terminated employments")
            session.delete(role)
            session.commit()
