from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from hrms.api.deps import require_owner
from hrms.domain.models import (
    BranchCreate,
    BranchRead,
    BranchUpdate,
    DepartmentCreate,
    DepartmentRead,
    DepartmentUpdate,
    HierarchyConfigRead,
    HierarchyConfigUpdate,
    OrganizationRead,
)
from hrms.services.errors import ConflictError, NotFoundError, ValidationError
from hrms.services.organization_service import OrganizationService
from hrms.services.tenant_resolver import TenantContext

router = APIRouter()


def get_organization_service() -> OrganizationService:
    return OrganizationService()


OwnerContext = Annotated[TenantContext, Depends(require_owner)]
Service = Annotated[OrganizationService, Depends(get_organization_service)]


def _handle_organization_error(exc: Exception) -> None:
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise exc


@router.get("", response_model=OrganizationRead)
def get_organization(context: OwnerContext, service: Service) -> OrganizationRead:
    try:
        organization = service.get_organization(context.organization_id)
        return OrganizationRead.model_validate(organization)
    except NotFoundError as exc:
        _handle_organization_error(exc)
        raise


@router.get("/hierarchy", response_model=HierarchyConfigRead)
def get_hierarchy_config(context: OwnerContext, service: Service) -> HierarchyConfigRead:
    try:
        return service.get_hierarchy_config(context.organization_id)
    except NotFoundError as exc:
        _handle_organization_error(exc)
        raise


@router.patch("/hierarchy", response_model=HierarchyConfigRead)
def update_hierarchy_config(
    payload: HierarchyConfigUpdate,
    context: OwnerContext,
    service: Service,
) -> HierarchyConfigRead:
    try:
        return service.update_hierarchy_config(context, payload)
    except (ValidationError, NotFoundError) as exc:
        _handle_organization_error(exc)
        raise


@router.get("/branches", response_model=list[BranchRead])
def list_branches(context: OwnerContext, service: Service) -> list[BranchRead]:
    branches = service.list_branches(context.organization_id)
    return [BranchRead.model_validate(item) for item in branches]


@router.post("/branches", response_model=BranchRead, status_code=status.HTTP_201_CREATED)
def create_branch(payload: BranchCreate, context: OwnerContext, service: Service) -> BranchRead:
    try:
        branch = service.create_branch(context.organization_id, payload)
        return BranchRead.model_validate(branch)
    except (NotFoundError, ConflictError) as exc:
        _handle_organization_error(exc)
        raise


@router.patch("/branches/{branch_id}", response_model=BranchRead)
def update_branch(
    branch_id: str,
    payload: BranchUpdate,
    context: OwnerContext,
    service: Service,
) -> BranchRead:
    try:
        branch = service.update_branch(context.organization_id, branch_id, payload)
        return BranchRead.model_validate(branch)
    except (NotFoundError, ConflictError) as exc:
        _handle_organization_error(exc)
        raise


@router.get("/departments", response_model=list[DepartmentRead])
def list_departments(context: OwnerContext, service: Service) -> list[DepartmentRead]:
    departments = service.list_departments(context.organization_id)
    return [DepartmentRead.model_validate(item) for item in departments]


@router.post("/departments", response_model=DepartmentRead, status_code=status.HTTP_201_CREATED)
def create_department(payload: DepartmentCreate, context: OwnerContext, service: Service) -> DepartmentRead:
    try:
        department = service.create_department(context.organization_id, payload)
        return DepartmentRead.model_validate(department)
    except (ValidationError, NotFoundError, ConflictError) as exc:
        _handle_organization_error(exc)
        raise


@router.patch("/departments/{department_id}", response_model=DepartmentRead)
def update_department(
    department_id: str,
    payload: DepartmentUpdate,
    context: OwnerContext,
    service: Service,
) -> DepartmentRead:
    try:
        department = service.update_department(context.organization_id, department_id, payload)
        return DepartmentRead.model_validate(department)
    except (ValidationError, NotFoundError, ConflictError) as exc:
        _handle_organization_error(exc)
        raise
