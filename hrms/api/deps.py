from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from hrms.infra.auth import decode_access_token
from hrms.infra.tenant import TENANT_HEADER
from hrms.services.auth_service import AuthService
from hrms.services.errors import AuthenticationError, AuthorizationError, NotFoundError
from hrms.services.tenant_resolver import TenantContext, TenantResolver

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/dev-login")


def get_current_claims(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> dict[str, Any]:
    try:
        claims = decode_access_token(token)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    request.state.claims = claims
    return claims


def get_tenant_resolver() -> TenantResolver:
    return TenantResolver()


def get_tenant_context(
    request: Request,
    claims: Annotated[dict[str, Any], Depends(get_current_claims)],
    resolver: Annotated[TenantResolver, Depends(get_tenant_resolver)],
    tenant_header: Annotated[str | None, Header(alias=TENANT_HEADER)] = None,
) -> TenantContext:
    try:
        context = resolver.resolve(claims, tenant_header)
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except AuthorizationError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    request.state.tenant_context = context
    return context


def require_owner(
    context: Annotated[TenantContext, Depends(get_tenant_context)],
) -> TenantContext:
    if not context.is_owner:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Owner access required",
        )
    return context


def require_super_admin(
    claims: Annotated[dict[str, Any], Depends(get_current_claims)],
) -> dict[str, Any]:
    if not AuthService().is_super_admin(claims["sub"]):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin access required",
        )
    return claims
