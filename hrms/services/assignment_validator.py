"""Rules guarding hire, manager changes, role changes and termination.

The validator holds no session. Callers load the rows, resolve levels and
counts, and ask the validator whether the mutation is allowed; each check
raises ``ValidationError`` or ``AuthorizationError`` on the first violation.
"""

from __future__ import annotations

from hrms.domain.hierarchy import HierarchyGraph
from hrms.domain.models import EmploymentState, EmploymentStatus, Role
from hrms.domain.state_machine import can_terminate, can_transition_employment
from hrms.services.errors import AuthorizationError, ConflictError, ValidationError
from hrms.services.role_service import is_reserved_role_name, positive_limit
from hrms.services.visibility_service import ActorScope

LEVEL_ORDER_MESSAGE = "Employee cannot report to same or lower level role"


def role_capacity_message(role: Role) -> str:
    return f"Role '{role.name}' reached max users limit ({role.max_users_per_role})"


def direct_report_capacity_message(manager_role: Role) -> str:
    return f"Manager '{manager_role.name}' reached max direct reports limit ({manager_role.max_direct_reports})"


def role_over_capacity(role: Role, holder_count: int) -> bool:
    limit = positive_limit(role.max_users_per_role)
    return limit is not None and holder_count > limit


def manager_over_capacity(manager_role: Role, report_count: int) -> bool:
    limit = positive_limit(manager_role.max_direct_reports)
    return limit is not None and report_count > limit


class AssignmentValidator:
    def __init__(self, graph: HierarchyGraph, scope: ActorScope) -> None:
        self.graph = graph
        self.scope = scope

    def check_manage_target(self, employment_id: str, *, action: str = "update") -> None:
        if not self.scope.can_manage(employment_id):
            raise AuthorizationError(f"You can only {action} employees in your downline hierarchy")

    def check_delegation(self, manager_employment_id: str | None) -> None:
        if manager_employment_id is None:
            if not self.scope.is_owner:
                raise AuthorizationError("You can assign reporting only inside your downline hierarchy")
            return
        if not self.scope.can_delegate_to(manager_employment_id):
            raise AuthorizationError("You can assign reporting only inside your downline hierarchy")

    def check_assignable_role(self, role: Role) -> None:
        if is_reserved_role_name(role.name):
            raise ValidationError(f"Role '{role.name}' cannot be assigned through employee management")

    def check_role_capacity(self, role: Role, holder_count: int, *, already_holds: bool = False) -> None:
        # Holding the role already means the change does not add a holder.
        effective = holder_count if already_holds else holder_count + 1
        if role_over_capacity(role, effective):
            raise ValidationError(role_capacity_message(role))

    def check_manager_level(self, manager_level: int, target_level: int) -> None:
        if manager_level >= target_level:
            raise ValidationError(LEVEL_ORDER_MESSAGE)

    def check_direct_report_capacity(
        self,
        manager_role: Role,
        report_count: int,
        *,
        already_reports: bool = False,
    ) -> None:
        effective = report_count if already_reports else report_count + 1
        if manager_over_capacity(manager_role, effective):
            raise ValidationError(direct_report_capacity_message(manager_role))

    def check_not_self(self, employment_id: str, manager_employment_id: str) -> None:
        if employment_id == manager_employment_id:
            raise ValidationError("Employee cannot report to themselves")

    def check_no_cycle(self, employment_id: str, manager_employment_id: str) -> None:
        if self.graph.would_create_cycle(employment_id, manager_employment_id):
            raise ValidationError("Circular reporting is not allowed")

    def check_direct_reports_below(self, new_level: int, report_levels: list[int]) -> None:
        if any(level <= new_level for level in report_levels):
            raise ValidationError("Role change would place employee at or below a direct report's level")

    def check_status_transition(self, employment: EmploymentState, target: EmploymentStatus) -> None:
        if target == EmploymentStatus.TERMINATED:
            raise ValidationError("Use the terminate operation to end an employment")
        if not can_transition_employment(employment.status, target):
            raise ValidationError(f"invalid status transition: {employment.status} -> {target}")

    def check_terminable(self, employment: EmploymentState) -> None:
        if not can_terminate(employment.status):
            raise ConflictError("employee already terminated")
