from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from hrms.api.deps import get_current_claims
from hrms.domain.models import (
    DevLoginRequest,
    MembershipRead,
    OrganizationRequestCreate,
    OrganizationRequestRead,
    OrganizationRequestState,
    OrganizationTemplateRead,
    SwitchOrganizationRequest,
    TokenResponse,
    UserRead,
)
from hrms.infra.audit import annotate_audit
from hrms.services.auth_service import AuthService
from hrms.services.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from hrms.services.organization_request_service import OrganizationRequestService

router = APIRouter()


def get_auth_service() -> AuthService:
    return AuthService()


def get_organization_request_service() -> OrganizationRequestService:
    return OrganizationRequestService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[AuthService, Depends(get_auth_service)]
RequestService = Annotated[OrganizationRequestService, Depends(get_organization_request_service)]


def _handle_auth_error(exc: Exception) -> None:
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, AuthenticationError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    if isinstance(exc, AuthorizationError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise exc


@router.post("/dev-login", response_model=TokenResponse)
def dev_login(payload: DevLoginRequest, service: Service) -> TokenResponse:
    try:
        return service.dev_login(payload.user_id, payload.password, payload.organization_id)
    except (AuthenticationError, AuthorizationError) as exc:
        _handle_auth_error(exc)
        raise


@router.get("/me", response_model=UserRead)
def get_me(claims: Claims, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.get_user(claims["sub"]))
    except AuthenticationError as exc:
        _handle_auth_error(exc)
        raise


@router.get("/organizations", response_model=list[MembershipRead])
def list_my_organizations(claims: Claims, service: Service) -> list[MembershipRead]:
    return service.list_memberships(claims["sub"])


@router.post("/switch-organization", response_model=TokenResponse)
def switch_organization(
    payload: SwitchOrganizationRequest,
    request: Request,
    claims: Claims,
    service: Service,
) -> TokenResponse:
    annotate_audit(
        request,
        action="SWITCH_ORGANIZATION_REQUEST",
        target={"organization_id": payload.organization_id},
    )
    try:
        return service.switch_organization(
            claims["sub"],
            payload.organization_id,
            client_ip=request.client.host if request.client is not None else None,
        )
    except (ValidationError, AuthenticationError, AuthorizationError, NotFoundError) as exc:
        _handle_auth_error(exc)
        raise


@router.get("/organization-types", response_model=list[OrganizationTemplateRead])
def list_organization_types(service: RequestService) -> list[OrganizationTemplateRead]:
    return [OrganizationTemplateRead(**item) for item in service.list_templates()]


@router.get("/organization-request/me", response_model=OrganizationRequestState)
def get_my_organization_request_state(claims: Claims, service: RequestService) -> OrganizationRequestState:
    return service.state_for(claims["sub"])


@router.post(
    "/organization-request",
    response_model=OrganizationRequestRead,
    status_code=status.HTTP_201_CREATED,
)
def submit_organization_request(
    payload: OrganizationRequestCreate,
    claims: Claims,
    service: RequestService,
) -> OrganizationRequestRead:
    try:
        request = service.submit(claims["sub"], payload)
        return OrganizationRequestRead.model_validate(request)
    except (NotFoundError, ConflictError) as exc:
        _handle_auth_error(exc)
        raise


@router.get("/organization-requests/me", response_model=list[OrganizationRequestRead])
def list_my_organization_requests(claims: Claims, service: RequestService) -> list[OrganizationRequestRead]:
    return [OrganizationRequestRead.model_validate(item) for item in service.list_mine(claims["sub"])]
