from __future__ import annotations

from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from hrms.domain.hierarchy import LIVE_STATUSES
from hrms.domain.models import (
    EmployeeHireRequest,
    EmployeeRead,
    EmployeeUpdateRequest,
    EmploymentRead,
    EmploymentState,
    EmploymentStatus,
    NotificationPayload,
    Role,
    TerminationRead,
    User,
    UserEmploymentStatus,
    WorkHistory,
    WorkHistoryRead,
    now_utc,
)
from hrms.infra.db import get_engine
from hrms.infra.events import event_bus
from hrms.infra.logging import get_logger
from hrms.infra.notifications import NotificationService, Notifier, notify_safely
from hrms.services.assignment_validator import (
    AssignmentValidator,
    direct_report_capacity_message,
    manager_over_capacity,
    role_capacity_message,
    role_over_capacity,
)
from hrms.services.errors import ConflictError, NotFoundError, ValidationError
from hrms.services.role_service import resolve_level
from hrms.services.tenant_resolver import TenantContext
from hrms.services.user_directory import UserDirectory
from hrms.services.visibility_service import VisibilityScoper

logger = get_logger(__name__)


class EmployeeService:
    def __init__(
        self,
        notifier: Notifier | None = None,
        directory: UserDirectory | None = None,
        scoper: VisibilityScoper | None = None,
    ) -> None:
        self.notifier: Notifier = notifier or NotificationService()
        self.directory = directory or UserDirectory()
        self.scoper = scoper or VisibilityScoper()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def _get_scoped_employment(
        self,
        session: Session,
        organization_id: str,
        employment_id: str,
    ) -> EmploymentState | None:
        statement = (
            select(EmploymentState)
            .where(EmploymentState.organization_id == organization_id)
            .where(EmploymentState.id == employment_id)
        )
        return session.exec(statement).first()

    def _lock_role(self, session: Session, organization_id: str, role_name: str) -> Role | None:
        statement = (
            select(Role)
            .where(Role.organization_id == organization_id)
            .where(Role.name == role_name.strip())
            .with_for_update()
        )
        return session.exec(statement).first()

    def _lock_manager(
        self,
        session: Session,
        organization_id: str,
        manager_employment_id: str,
    ) -> tuple[EmploymentState, Role]:
        statement = (
            select(EmploymentState)
            .where(EmploymentState.organization_id == organization_id)
            .where(EmploymentState.id == manager_employment_id)
            .where(col(EmploymentState.status).in_(list(LIVE_STATUSES)))
            .with_for_update()
        )
        manager = session.exec(statement).first()
        if manager is None:
            raise ValidationError("Invalid reporting manager for this organization.")
        manager_role = session.exec(select(Role).where(Role.id == manager.role_id).with_for_update()).first()
        if manager_role is None:
            raise ValidationError("Invalid reporting manager for this organization.")
        return manager, manager_role

    def _count_role_holders(self, session: Session, organization_id: str, role_id: str) -> int:
        statement = (
            select(func.count())
            .select_from(EmploymentState)
            .where(EmploymentState.organization_id == organization_id)
            .where(EmploymentState.role_id == role_id)
            .where(col(EmploymentState.status).in_(list(LIVE_STATUSES)))
        )
        return int(session.exec(statement).one())

    def _count_direct_reports(self, session: Session, organization_id: str, manager_employment_id: str) -> int:
        statement = (
            select(func.count())
            .select_from(EmploymentState)
            .where(EmploymentState.organization_id == organization_id)
            .where(EmploymentState.reports_to_employment_id == manager_employment_id)
            .where(col(EmploymentState.status).in_(list(LIVE_STATUSES)))
        )
        return int(session.exec(statement).one())

    def _recheck_capacity(
        self,
        session: Session,
        organization_id: str,
        *,
        role: Role | None = None,
        manager_employment_id: str | None = None,
        manager_role: Role | None = None,
    ) -> None:
        """Re-count after the pending write is flushed; a concurrent writer may have won the race."""
        if role is not None and role_over_capacity(
            role, self._count_role_holders(session, organization_id, role.id)
        ):
            message = role_capacity_message(role)
            session.rollback()
            logger.warning("capacity race detected on role %s in organization %s", role.id, organization_id)
            raise ValidationError(message)
        if (
            manager_employment_id is not None
            and manager_role is not None
            and manager_over_capacity(
                manager_role,
                self._count_direct_reports(session, organization_id, manager_employment_id),
            )
        ):
            message = direct_report_capacity_message(manager_role)
            session.rollback()
            logger.warning(
                "capacity race detected on manager %s in organization %s",
                manager_employment_id,
                organization_id,
            )
            raise ValidationError(message)

    def _to_reads(self, session: Session, rows: list[EmploymentState]) -> list[EmployeeRead]:
        role_ids = {row.role_id for row in rows}
        user_ids = {row.user_id for row in rows}
        roles = (
            {role.id: role for role in session.exec(select(Role).where(col(Role.id).in_(role_ids))).all()}
            if role_ids
            else {}
        )
        users = (
            {user.id: user for user in session.exec(select(User).where(col(User.id).in_(user_ids))).all()}
            if user_ids
            else {}
        )
        reads: list[EmployeeRead] = []
        for row in rows:
            role = roles.get(row.role_id)
            user = users.get(row.user_id)
            reads.append(
                EmployeeRead.model_validate(row).model_copy(
                    update={
                        "role_name": role.name if role is not None else None,
                        "role_level": resolve_level(role) if role is not None else None,
                        "user_email": user.email if user is not None else None,
                        "user_display_name": user.display_name if user is not None else None,
                    }
                )
            )
        return reads

    def _validator(self, session: Session, context: TenantContext) -> AssignmentValidator:
        graph = self.scoper.build_graph(session, context.organization_id)
        return AssignmentValidator(graph, self.scoper.scope_for(context, graph))

    def list_employees(self, context: TenantContext) -> list[EmployeeRead]:
        with self._session() as session:
            rows = self.scoper.visible_rows(session, context)
            rows.sort(key=lambda row: row.joined_at, reverse=True)
            return self._to_reads(session, rows)

    def get_employee(self, context: TenantContext, employment_id: str) -> EmployeeRead:
        with self._session() as session:
            employment = self._get_scoped_employment(session, context.organization_id, employment_id)
            if employment is None or not self.scoper.can_view(session, context, employment):
                raise NotFoundError("employee not found")
            return self._to_reads(session, [employment])[0]

    def eligible_users(self, context: TenantContext, query: str | None) -> list[User]:
        with self._session() as session:
            employed = session.exec(
                select(EmploymentState.user_id).where(EmploymentState.organization_id == context.organization_id)
            ).all()
            return self.directory.search(session, query, exclude_ids=set(employed))

    def hire(self, context: TenantContext, payload: EmployeeHireRequest) -> EmployeeRead:
        organization_id = context.organization_id
        with self._session() as session:
            validator = self._validator(session, context)

            role = self._lock_role(session, organization_id, payload.role_name)
            if role is None:
                raise NotFoundError("role not found")
            validator.check_assignable_role(role)
            validator.check_role_capacity(role, self._count_role_holders(session, organization_id, role.id))

            if not payload.user_id:
                raise ValidationError("user_id is required. Hire only registered users.")
            user = self.directory.find_by_id(session, payload.user_id)
            if user is None or user.is_super_admin:
                raise NotFoundError("Registered user not found")
            existing = session.exec(
                select(EmploymentState.id)
                .where(EmploymentState.organization_id == organization_id)
                .where(EmploymentState.user_id == user.id)
            ).first()
            if existing is not None:
                raise ConflictError("User is already an employee here.")

            manager_id = payload.reports_to_employment_id or None
            if manager_id is None and not validator.scope.is_owner:
                manager_id = validator.scope.employment_id
            manager_role: Role | None = None
            if manager_id is not None:
                manager, manager_role = self._lock_manager(session, organization_id, manager_id)
                validator.check_manager_level(resolve_level(manager_role), resolve_level(role))
                validator.check_direct_report_capacity(
                    manager_role,
                    self._count_direct_reports(session, organization_id, manager.id),
                )
            validator.check_delegation(manager_id)

            employment = EmploymentState(
                user_id=user.id,
                organization_id=organization_id,
                role_id=role.id,
                reports_to_employment_id=manager_id,
                status=EmploymentStatus.ACTIVE,
                designation=payload.designation,
                department=payload.department,
            )
            session.add(employment)
            user.current_organization_id = organization_id
            user.employment_status = UserEmploymentStatus.ACTIVE
            user.updated_at = now_utc()
            session.add(user)
            try:
                session.flush()
            except IntegrityError as exc:
                session.rollback()
                raise ConflictError("User is already an employee here.") from exc
            self._recheck_capacity(
                session,
                organization_id,
                role=role,
                manager_employment_id=manager_id,
                manager_role=manager_role,
            )
            session.commit()
            session.refresh(employment)
            read = self._to_reads(session, [employment])[0]

        event_bus.publish_dict(
            "employee.hired",
            organization_id,
            {
                "employment_id": read.id,
                "user_id": read.user_id,
                "role_id": read.role_id,
                "reports_to_employment_id": read.reports_to_employment_id,
            },
            actor_id=context.user_id,
        )
        notify_safely(
            self.notifier,
            read.user_id,
            NotificationPayload(
                title="Welcome aboard",
                message=f"You have been added as {read.role_name}.",
                type="SUCCESS",
                organization_id=organization_id,
            ),
        )
        return read

    def update_employee(
        self,
        context: TenantContext,
        employment_id: str,
        payload: EmployeeUpdateRequest,
    ) -> EmployeeRead:
        organization_id = context.organization_id
        fields = payload.model_fields_set
        changes: dict[str, Any] = {}
        with self._session() as session:
            validator = self._validator(session, context)
            validator.check_manage_target(employment_id, action="update")

            target = self._get_scoped_employment(session, organization_id, employment_id)
            if target is None:
                raise NotFoundError("employee not found")
            if target.status == EmploymentStatus.TERMINATED:
                raise ConflictError("terminated employment cannot be updated")

            next_role = session.get(Role, target.role_id)
            role_changed = False
            if "role_name" in fields and payload.role_name:
                role = self._lock_role(session, organization_id, payload.role_name)
                if role is None:
                    raise NotFoundError("role not found")
                validator.check_assignable_role(role)
                already_holds = role.id == target.role_id
                validator.check_role_capacity(
                    role,
                    self._count_role_holders(session, organization_id, role.id),
                    already_holds=already_holds,
                )
                next_role = role
                role_changed = not already_holds
            next_level = resolve_level(next_role)

            manager_changed = False
            manager_role: Role | None = None
            if "reports_to_employment_id" in fields:
                new_manager_id = payload.reports_to_employment_id or None
                if new_manager_id is None:
                    validator.check_delegation(None)
                else:
                    validator.check_not_self(target.id, new_manager_id)
                    manager, manager_role = self._lock_manager(session, organization_id, new_manager_id)
                    validator.check_no_cycle(target.id, manager.id)
                    validator.check_manager_level(resolve_level(manager_role), next_level)
                    already_reports = target.reports_to_employment_id == manager.id
                    validator.check_direct_report_capacity(
                        manager_role,
                        self._count_direct_reports(session, organization_id, manager.id),
                        already_reports=already_reports,
                    )
                    validator.check_delegation(manager.id)
                if new_manager_id != target.reports_to_employment_id:
                    manager_changed = True
                    target.reports_to_employment_id = new_manager_id
                    changes["reports_to_employment_id"] = new_manager_id
            elif role_changed and target.reports_to_employment_id:
                current_manager = session.get(EmploymentState, target.reports_to_employment_id)
                if current_manager is not None:
                    validator.check_manager_level(
                        resolve_level(session.get(Role, current_manager.role_id)),
                        next_level,
                    )

            if role_changed and next_role is not None:
                report_levels: list[int] = []
                for child_id in validator.graph.children_of(target.id):
                    child = session.get(EmploymentState, child_id)
                    if child is not None:
                        report_levels.append(resolve_level(session.get(Role, child.role_id)))
                validator.check_direct_reports_below(next_level, report_levels)
                target.role_id = next_role.id
                changes["role_id"] = next_role.id

            if "status" in fields and payload.status is not None and payload.status != target.status:
                validator.check_status_transition(target, payload.status)
                target.status = payload.status
                changes["status"] = str(payload.status)
            if "designation" in fields:
                target.designation = payload.designation
                changes["designation"] = payload.designation
            if "department" in fields:
                target.department = payload.department
                changes["department"] = payload.department

            target.updated_at = now_utc()
            session.add(target)
            session.flush()
            self._recheck_capacity(
                session,
                organization_id,
                role=next_role if role_changed else None,
                manager_employment_id=target.reports_to_employment_id if manager_changed else None,
                manager_role=manager_role,
            )
            session.commit()
            session.refresh(target)
            read = self._to_reads(session, [target])[0]

        event_bus.publish_dict(
            "employee.updated",
            organization_id,
            {"employment_id": read.id, "changes": changes},
            actor_id=context.user_id,
        )
        return read

    def terminate(self, context: TenantContext, employment_id: str) -> TerminationRead:
        organization_id = context.organization_id
        with self._session() as session:
            validator = self._validator(session, context)
            validator.check_manage_target(employment_id, action="terminate")

            employment = self._get_scoped_employment(session, organization_id, employment_id)
            if employment is None:
                raise NotFoundError("employee not found")
            validator.check_terminable(employment)

            now = now_utc()
            employment.status = EmploymentStatus.TERMINATED
            employment.terminated_at = now
            employment.updated_at = now
            session.add(employment)

            still_active_elsewhere = session.exec(
                select(EmploymentState.id)
                .where(EmploymentState.user_id == employment.user_id)
                .where(EmploymentState.status == EmploymentStatus.ACTIVE)
                .where(EmploymentState.id != employment.id)
            ).first()
            if still_active_elsewhere is None:
                user = session.get(User, employment.user_id)
                if user is not None:
                    user.current_organization_id = None
                    user.employment_status = UserEmploymentStatus.INACTIVE
                    user.updated_at = now
                    session.add(user)

            history = session.exec(
                select(WorkHistory).where(WorkHistory.source_employment_id == employment.id)
            ).first()
            if history is None:
                history = WorkHistory(
                    user_id=employment.user_id,
                    organization_id=organization_id,
                    source_employment_id=employment.id,
                )
            history.designation = employment.designation or ""
            history.department = employment.department or ""
            history.joined_at = employment.joined_at
            history.left_at = employment.terminated_at
            history.verified = True
            history.updated_at = now
            session.add(history)
            session.commit()
            session.refresh(employment)
            session.refresh(history)
            result = TerminationRead(
                employment=EmploymentRead.model_validate(employment),
                work_history=WorkHistoryRead.model_validate(history),
            )

        event_bus.publish_dict(
            "employee.terminated",
            organization_id,
            {"employment_id": result.employment.id, "user_id": result.employment.user_id},
            actor_id=context.user_id,
        )
        notify_safely(
            self.notifier,
            result.employment.user_id,
            NotificationPayload(
                title="Employment ended",
                message="Your employment with this organization has been terminated.",
                type="WARNING",
                organization_id=organization_id,
            ),
        )
        return result
