from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from hrms.domain.models import (
    Branch,
    BranchCreate,
    BranchUpdate,
    Department,
    DepartmentCreate,
    DepartmentUpdate,
    EmploymentState,
    HierarchyConfig,
    HierarchyConfigRead,
    HierarchyConfigUpdate,
    Organization,
    now_utc,
)
from hrms.domain.templates import get_organization_template
from hrms.infra.db import get_engine
from hrms.services.errors import ConflictError, NotFoundError, ValidationError
from hrms.services.tenant_resolver import TenantContext


class OrganizationService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_organization(self, session: Session, organization_id: str) -> Organization:
        organization = session.get(Organization, organization_id)
        if organization is None:
            raise NotFoundError("organization not found")
        return organization

    def _get_scoped_branch(self, session: Session, organization_id: str, branch_id: str) -> Branch | None:
        statement = select(Branch).where(Branch.organization_id == organization_id).where(Branch.id == branch_id)
        return session.exec(statement).first()

    def _get_scoped_department(
        self,
        session: Session,
        organization_id: str,
        department_id: str,
    ) -> Department | None:
        statement = (
            select(Department)
            .where(Department.organization_id == organization_id)
            .where(Department.id == department_id)
        )
        return session.exec(statement).first()

    def _check_department_refs(
        self,
        session: Session,
        organization_id: str,
        *,
        branch_id: str | None,
        parent_department_id: str | None,
        head_employment_id: str | None,
        department_id: str | None = None,
    ) -> None:
        if branch_id and self._get_scoped_branch(session, organization_id, branch_id) is None:
            raise NotFoundError("branch not found")
        if head_employment_id:
            head = session.exec(
                select(EmploymentState.id)
                .where(EmploymentState.organization_id == organization_id)
                .where(EmploymentState.id == head_employment_id)
            ).first()
            if head is None:
                raise NotFoundError("employee not found")
        if not parent_department_id:
            return
        if parent_department_id == department_id:
            raise ValidationError("department cannot be its own ancestor")
        parent = self._get_scoped_department(session, organization_id, parent_department_id)
        if parent is None:
            raise NotFoundError("parent department not found")
        if department_id is None:
            return
        seen: set[str] = set()
        current: Department | None = parent
        while current is not None and current.parent_department_id and current.id not in seen:
            seen.add(current.id)
            if current.parent_department_id == department_id:
                raise ValidationError("department cannot be its own ancestor")
            current = self._get_scoped_department(session, organization_id, current.parent_department_id)

    def get_organization(self, organization_id: str) -> Organization:
        with self._session() as session:
            return self._get_organization(session, organization_id)

    def get_hierarchy_config(self, organization_id: str) -> HierarchyConfigRead:
        with self._session() as session:
            organization = self._get_organization(session, organization_id)
            return HierarchyConfigRead(
                organization_type=organization.organization_type,
                organization_type_locked=organization.organization_type_locked,
                hierarchy_config=HierarchyConfig.model_validate(organization.hierarchy_config),
            )

    def update_hierarchy_config(self, context: TenantContext, payload: HierarchyConfigUpdate) -> HierarchyConfigRead:
        fields = payload.model_fields_set
        with self._session() as session:
            organization = self._get_organization(session, context.organization_id)
            config = HierarchyConfig.model_validate(organization.hierarchy_config)

            if (
                "organization_type" in fields
                and payload.organization_type is not None
                and payload.organization_type != organization.organization_type
            ):
                if organization.organization_type_locked and not context.is_super_admin:
                    raise ValidationError("Organization type is locked after approval")
                organization.organization_type = payload.organization_type
                config.active_template_type = payload.organization_type
                config.custom_levels = list(get_organization_template(payload.organization_type)["levels"])
            if "active_template_type" in fields and payload.active_template_type is not None:
                config.active_template_type = payload.active_template_type
            if "custom_levels" in fields and payload.custom_levels is not None:
                levels = [item.strip() for item in payload.custom_levels if item.strip()]
                if not levels:
                    raise ValidationError("custom_levels must contain at least one level")
                config.custom_levels = levels
            if "matrix_reporting_enabled" in fields and payload.matrix_reporting_enabled is not None:
                config.matrix_reporting_enabled = payload.matrix_reporting_enabled
            if "visibility_policy" in fields and payload.visibility_policy is not None:
                config.visibility_policy = payload.visibility_policy
            if "block_upward_visibility" in fields and payload.block_upward_visibility is not None:
                config.block_upward_visibility = payload.block_upward_visibility

            organization.hierarchy_config = config.model_dump(mode="json")
            organization.updated_at = now_utc()
            session.add(organization)
            session.commit()
            session.refresh(organization)
            return HierarchyConfigRead(
                organization_type=organization.organization_type,
                organization_type_locked=organization.organization_type_locked,
                hierarchy_config=config,
            )

    def list_branches(self, organization_id: str) -> list[Branch]:
        with self._session() as session:
            statement = (
                select(Branch)
                .where(Branch.organization_id == organization_id)
                .order_by(col(Branch.is_head_office).desc(), col(Branch.name))
            )
            return list(session.exec(statement).all())

    def create_branch(self, organization_id: str, payload: BranchCreate) -> Branch:
        with self._session() as session:
            self._get_organization(session, organization_id)
            branch = Branch(organization_id=organization_id, **payload.model_dump())
            session.add(branch)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("branch name or code already exists") from exc
            session.refresh(branch)
            return branch

    def update_branch(self, organization_id: str, branch_id: str, payload: BranchUpdate) -> Branch:
        with self._session() as session:
            branch = self._get_scoped_branch(session, organization_id, branch_id)
            if branch is None:
                raise NotFoundError("branch not found")
            for name in payload.model_fields_set:
                value = getattr(payload, name)
                if value is None and name != "code":
                    continue
                setattr(branch, name, value)
            branch.updated_at = now_utc()
            session.add(branch)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("branch name or code already exists") from exc
            session.refresh(branch)
            return branch

    def list_departments(self, organization_id: str) -> list[Department]:
        with self._session() as session:
            statement = (
                select(Department)
                .where(Department.organization_id == organization_id)
                .order_by(col(Department.code), col(Department.name))
            )
            return list(session.exec(statement).all())

    def create_department(self, organization_id: str, payload: DepartmentCreate) -> Department:
        with self._session() as session:
            self._get_organization(session, organization_id)
            self._check_department_refs(
                session,
                organization_id,
                branch_id=payload.branch_id,
                parent_department_id=payload.parent_department_id,
                head_employment_id=payload.head_employment_id,
            )
            department = Department(organization_id=organization_id, **payload.model_dump())
            session.add(department)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("department name or code already exists") from exc
            session.refresh(department)
            return department

    def update_department(
        self,
        organization_id: str,
        department_id: str,
        payload: DepartmentUpdate,
    ) -> Department:
        fields = payload.model_fields_set
        with self._session() as session:
            department = self._get_scoped_department(session, organization_id, department_id)
            if department is None:
                raise NotFoundError("department not found")
            self._check_department_refs(
                session,
                organization_id,
                branch_id=payload.branch_id if "branch_id" in fields else None,
                parent_department_id=payload.parent_department_id if "parent_department_id" in fields else None,
                head_employment_id=payload.head_employment_id if "head_employment_id" in fields else None,
                department_id=department.id,
            )
            for name in fields:
                value = getattr(payload, name)
                if value is None and name in {"name", "is_active"}:
                    continue
                setattr(department, name, value)
            department.updated_at = now_utc()
            session.add(department)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("department name or code already exists") from exc
            session.refresh(department)
            return department
