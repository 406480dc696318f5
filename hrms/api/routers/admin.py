from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from hrms.api.deps import require_super_admin
from hrms.domain.models import (
    OrganizationApproveRequest,
    OrganizationRejectRequest,
    OrganizationRequestRead,
    OrganizationRequestStatus,
    ProvisioningResultRead,
)
from hrms.services.errors import ConflictError, NotFoundError, TransactionError
from hrms.services.organization_request_service import OrganizationRequestService
from hrms.services.provisioning_service import ProvisioningService

router = APIRouter()


def get_provisioning_service() -> ProvisioningService:
    return ProvisioningService()


def get_organization_request_service() -> OrganizationRequestService:
    return OrganizationRequestService()


SuperAdmin = Annotated[dict[str, Any], Depends(require_super_admin)]
Service = Annotated[ProvisioningService, Depends(get_provisioning_service)]
RequestService = Annotated[OrganizationRequestService, Depends(get_organization_request_service)]


def _handle_provisioning_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, TransactionError):
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    raise exc


@router.get(
    "/organization-requests",
    response_model=list[OrganizationRequestRead],
    dependencies=[Depends(require_super_admin)],
)
def list_organization_requests(
    service: RequestService,
    status_filter: Annotated[OrganizationRequestStatus | None, Query(alias="status")] = None,
) -> list[OrganizationRequestRead]:
    return [OrganizationRequestRead.model_validate(item) for item in service.list_for_review(status_filter)]


@router.post("/organization-requests/{request_id}/approve", response_model=ProvisioningResultRead)
def approve_organization_request(
    request_id: str,
    payload: OrganizationApproveRequest,
    claims: SuperAdmin,
    service: Service,
) -> ProvisioningResultRead:
    try:
        return service.approve(request_id, claims["sub"], payload)
    except (NotFoundError, ConflictError, TransactionError) as exc:
        _handle_provisioning_error(exc)
        raise


@router.post("/organization-requests/{request_id}/reject", response_model=OrganizationRequestRead)
def reject_organization_request(
    request_id: str,
    payload: OrganizationRejectRequest,
    claims: SuperAdmin,
    service: Service,
) -> OrganizationRequestRead:
    try:
        request = service.reject(request_id, claims["sub"], payload)
        return OrganizationRequestRead.model_validate(request)
    except (NotFoundError, ConflictError) as exc:
        _handle_provisioning_error(exc)
        raise
