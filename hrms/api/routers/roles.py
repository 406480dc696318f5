from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status

from hrms.api.deps import require_owner
from hrms.domain.models import PermissionCatalogRead, RoleCreate, RoleRead, RoleUpdate
from hrms.services.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from hrms.services.role_service import RoleService
from hrms.services.tenant_resolver import TenantContext

router = APIRouter()


def get_role_service() -> RoleService:
    return RoleService()


OwnerContext = Annotated[TenantContext, Depends(require_owner)]
Service = Annotated[RoleService, Depends(get_role_service)]


def _handle_role_error(exc: Exception) -> None:
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, AuthorizationError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise exc


@router.get(
    "/permission-catalog",
    response_model=PermissionCatalogRead,
    dependencies=[Depends(require_owner)],
)
def get_permission_catalog(service: Service) -> PermissionCatalogRead:
    return PermissionCatalogRead(**service.permission_catalog())


@router.get("", response_model=list[RoleRead])
def list_roles(context: OwnerContext, service: Service) -> list[RoleRead]:
    roles = service.list_roles(context.organization_id)
    return [RoleRead.model_validate(item) for item in roles]


@router.get("/{role_id}", response_model=RoleRead)
def get_role(role_id: str, context: OwnerContext, service: Service) -> RoleRead:
    try:
        role = service.get_role(context.organization_id, role_id)
        return RoleRead.model_validate(role)
    except NotFoundError as exc:
        _handle_role_error(exc)
        raise


@router.post("", response_model=RoleRead, status_code=status.HTTP_201_CREATED)
def create_role(payload: RoleCreate, context: OwnerContext, service: Service) -> RoleRead:
    try:
        role = service.create_role(context, payload)
        return RoleRead.model_validate(role)
    except (ValidationError, AuthorizationError, NotFoundError, ConflictError) as exc:
        _handle_role_error(exc)
        raise


@router.patch("/{role_id}", response_model=RoleRead)
def update_role(role_id: str, payload: RoleUpdate, context: OwnerContext, service: Service) -> RoleRead:
    try:
        role = service.update_role(context, role_id, payload)
        return RoleRead.model_validate(role)
    except (ValidationError, AuthorizationError, NotFoundError, ConflictError) as exc:
        _handle_role_error(exc)
        raise


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(role_id: str, context: OwnerContext, service: Service) -> Response:
    try:
        service.delete_role(context.organization_id, role_id)
    except (ValidationError, NotFoundError, ConflictError) as exc:
        _handle_role_error(exc)
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)
