from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from hrms.api.deps import get_tenant_context, require_owner
from hrms.domain.models import (
    EligibleUserRead,
    EmployeeHireRequest,
    EmployeeRead,
    EmployeeUpdateRequest,
    TerminationRead,
)
from hrms.services.employee_service import EmployeeService
from hrms.services.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from hrms.services.tenant_resolver import TenantContext

router = APIRouter()


def get_employee_service() -> EmployeeService:
    return EmployeeService()


Context = Annotated[TenantContext, Depends(get_tenant_context)]
OwnerContext = Annotated[TenantContext, Depends(require_owner)]
Service = Annotated[EmployeeService, Depends(get_employee_service)]


def _handle_employee_error(exc: Exception) -> None:
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, AuthorizationError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise exc


@router.get("", response_model=list[EmployeeRead])
def list_employees(context: Context, service: Service) -> list[EmployeeRead]:
    try:
        return service.list_employees(context)
    except (AuthorizationError, NotFoundError) as exc:
        _handle_employee_error(exc)
        raise


@router.get("/eligible-users", response_model=list[EligibleUserRead])
def list_eligible_users(
    context: OwnerContext,
    service: Service,
    q: Annotated[str | None, Query(max_length=120)] = None,
) -> list[EligibleUserRead]:
    users = service.eligible_users(context, q)
    return [EligibleUserRead.model_validate(item) for item in users]


@router.get("/{employment_id}", response_model=EmployeeRead)
def get_employee(employment_id: str, context: Context, service: Service) -> EmployeeRead:
    try:
        return service.get_employee(context, employment_id)
    except (AuthorizationError, NotFoundError) as exc:
        _handle_employee_error(exc)
        raise


@router.post("", response_model=EmployeeRead, status_code=status.HTTP_201_CREATED)
def hire_employee(payload: EmployeeHireRequest, context: Context, service: Service) -> EmployeeRead:
    try:
        return service.hire(context, payload)
    except (ValidationError, AuthorizationError, NotFoundError, ConflictError) as exc:
        _handle_employee_error(exc)
        raise


@router.patch("/{employment_id}", response_model=EmployeeRead)
def update_employee(
    employment_id: str,
    payload: EmployeeUpdateRequest,
    context: Context,
    service: Service,
) -> EmployeeRead:
    try:
        return service.update_employee(context, employment_id, payload)
    except (ValidationError, AuthorizationError, NotFoundError, ConflictError) as exc:
        _handle_employee_error(exc)
        raise


@router.patch("/{employment_id}/terminate", response_model=TerminationRead)
def terminate_employee(employment_id: str, context: Context, service: Service) -> TerminationRead:
    try:
        return service.terminate(context, employment_id)
    except (ValidationError, AuthorizationError, NotFoundError, ConflictError) as exc:
        _handle_employee_error(exc)
        raise
