from __future__ import annotations

from hrms.domain.models import EmploymentStatus, OrganizationRequestStatus

# TERMINATED is reached only through the terminate operation.
EMPLOYMENT_TRANSITIONS: dict[EmploymentStatus, set[EmploymentStatus]] = {
    EmploymentStatus.INVITED: {EmploymentStatus.ACTIVE, EmploymentStatus.SUSPENDED},
    EmploymentStatus.ACTIVE: {EmploymentStatus.SUSPENDED},
    EmploymentStatus.SUSPENDED: {EmploymentStatus.ACTIVE},
    EmploymentStatus.TERMINATED: set(),
}

TERMINABLE_STATUSES: frozenset[EmploymentStatus] = frozenset(
    {EmploymentStatus.ACTIVE, EmploymentStatus.INVITED, EmploymentStatus.SUSPENDED}
)

ORGANIZATION_REQUEST_TRANSITIONS: dict[OrganizationRequestStatus, set[OrganizationRequestStatus]] = {
    OrganizationRequestStatus.PENDING: {
        OrganizationRequestStatus.APPROVED,
        OrganizationRequestStatus.REJECTED,
    },
    OrganizationRequestStatus.APPROVED: set(),
    OrganizationRequestStatus.REJECTED: set(),
}


def can_transition_employment(source: EmploymentStatus, target: EmploymentStatus) -> bool:
    if source == target:
        return source != EmploymentStatus.TERMINATED
    return target in EMPLOYMENT_TRANSITIONS.get(source, set())


def can_terminate(source: EmploymentStatus) -> bool:
    return source in TERMINABLE_STATUSES


def can_transition_request(source: OrganizationRequestStatus, target: OrganizationRequestStatus) -> bool:
    return target in ORGANIZATION_REQUEST_TRANSITIONS.get(source, set())
