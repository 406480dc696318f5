"""In-memory reporting graph for one organization.

The graph is rebuilt from the organization's live employment rows on every
request that needs it and is never cached across requests. All traversals
are iterative and track visited nodes, so rows that already form a cycle
(possible with data written before the reporting checks existed) cannot make
a traversal loop forever.
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Iterable
from dataclasses import dataclass

from hrms.domain.models import EmploymentState, EmploymentStatus

LIVE_STATUSES: frozenset[EmploymentStatus] = frozenset(
    {EmploymentStatus.ACTIVE, EmploymentStatus.SUSPENDED, EmploymentStatus.INVITED}
)


@dataclass(frozen=True)
class ReportingEdge:
    employment_id: str
    reports_to_employment_id: str | None


class HierarchyGraph:
    def __init__(self, edges: Iterable[ReportingEdge]) -> None:
        children: dict[str, list[str]] = defaultdict(list)
        managers: dict[str, str | None] = {}
        for edge in edges:
            managers[edge.employment_id] = edge.reports_to_employment_id
            if edge.reports_to_employment_id:
                children[edge.reports_to_employment_id].append(edge.employment_id)
        # Sorted child lists make traversal order independent of row order.
        self._children: dict[str, tuple[str, ...]] = {
            parent_id: tuple(sorted(set(child_ids))) for parent_id, child_ids in children.items()
        }
        self._managers = managers

    @classmethod
    def from_employments(cls, rows: Iterable[EmploymentState]) -> HierarchyGraph:
        return cls(
            ReportingEdge(row.id, row.reports_to_employment_id)
            for row in rows
            if row.status in LIVE_STATUSES
        )

    def __contains__(self, employment_id: object) -> bool:
        return employment_id in self._managers

    def __len__(self) -> int:
        return len(self._managers)

    def node_ids(self) -> frozenset[str]:
        return frozenset(self._managers)

    def manager_of(self, employment_id: str) -> str | None:
        return self._managers.get(employment_id)

    def children_of(self, employment_id: str) -> tuple[str, ...]:
        return self._children.get(employment_id, ())

    def direct_report_count(self, employment_id: str) -> int:
        return len(self.children_of(employment_id))

    def descendants_of(self, root_employment_id: str) -> frozenset[str]:
        """Return every employment transitively reporting to the root.

        Breadth-first from the root's direct children; the root itself is
        never part of the result, even when malformed rows loop back to it.
        """
        visited: set[str] = {root_employment_id}
        queue: deque[str] = deque(self.children_of(root_employment_id))
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            queue.extend(child for child in self.children_of(current) if child not in visited)
        visited.discard(root_employment_id)
        return frozenset(visited)

    def is_descendant(self, root_employment_id: str, candidate_id: str) -> bool:
        return candidate_id in self.descendants_of(root_employment_id)

    def chain_of_command(self, employment_id: str) -> list[str]:
        """Managers above the employment, nearest first; stops at a repeat."""
        chain: list[str] = []
        seen: set[str] = {employment_id}
        current = self._managers.get(employment_id)
        while current and current not in seen:
            chain.append(current)
            seen.add(current)
            current = self._managers.get(current)
        return chain

    def would_create_cycle(self, employment_id: str, new_manager_id: str | None) -> bool:
        if new_manager_id is None:
            return False
        if new_manager_id == employment_id:
            return True
        return self.is_descendant(employment_id, new_manager_id)

    def roots(self) -> list[str]:
        return sorted(
            node_id
            for node_id, manager_id in self._managers.items()
            if manager_id is None or manager_id not in self._managers
        )
