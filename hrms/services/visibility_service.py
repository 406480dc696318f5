from __future__ import annotations

from dataclasses import dataclass

from sqlmodel import Session, col, select

from hrms.domain.hierarchy import LIVE_STATUSES, HierarchyGraph
from hrms.domain.models import EmploymentState
from hrms.services.errors import AuthorizationError
from hrms.services.tenant_resolver import TenantContext

NO_EMPLOYMENT_MESSAGE = "Active employment not found for this organization"


@dataclass(frozen=True)
class ActorScope:
    """What one caller may see and manage inside a single organization."""

    is_owner: bool
    employment_id: str | None
    downline: frozenset[str]

    def can_manage(self, employment_id: str) -> bool:
        return self.is_owner or employment_id in self.downline

    def can_delegate_to(self, manager_employment_id: str) -> bool:
        if self.is_owner:
            return True
        return manager_employment_id == self.employment_id or manager_employment_id in self.downline


class VisibilityScoper:
    def load_live_rows(self, session: Session, organization_id: str) -> list[EmploymentState]:
        statement = (
            select(EmploymentState)
            .where(EmploymentState.organization_id == organization_id)
            .where(col(EmploymentState.status).in_(list(LIVE_STATUSES)))
        )
        return list(session.exec(statement).all())

    def build_graph(self, session: Session, organization_id: str) -> HierarchyGraph:
        return HierarchyGraph.from_employments(self.load_live_rows(session, organization_id))

    def scope_for(self, context: TenantContext, graph: HierarchyGraph) -> ActorScope:
        if context.is_owner:
            return ActorScope(is_owner=True, employment_id=context.employment_id, downline=frozenset())
        if context.employment_id is None:
            raise AuthorizationError(NO_EMPLOYMENT_MESSAGE)
        return ActorScope(
            is_owner=False,
            employment_id=context.employment_id,
            downline=graph.descendants_of(context.employment_id),
        )

    def visible_rows(self, session: Session, context: TenantContext) -> list[EmploymentState]:
        """Owners see every live row; everyone else sees exactly their downline, possibly nothing."""
        rows = self.load_live_rows(session, context.organization_id)
        scope = self.scope_for(context, HierarchyGraph.from_employments(rows))
        if scope.is_owner:
            return rows
        return [row for row in rows if row.id in scope.downline]

    def can_view(self, session: Session, context: TenantContext, employment: EmploymentState) -> bool:
        if context.is_owner:
            return True
        scope = self.scope_for(context, self.build_graph(session, context.organization_id))
        return employment.id in scope.downline
