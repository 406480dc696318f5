from __future__ import annotations

from typing import Any

from sqlmodel import Session
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from hrms.domain.models import AuditLog, now_utc
from hrms.infra.db import engine
from hrms.infra.logging import get_logger

logger = get_logger(__name__)

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
UNAUDITED_PATHS = {"/healthz", "/readyz"}
AUDIT_NOTE_STATE_KEY = "audit_note"
PLATFORM_SCOPE = "platform"


def write_audit_log(
    *,
    organization_id: str,
    actor_id: str | None,
    action: str,
    resource: str,
    method: str,
    status_code: int,
    detail: dict[str, Any] | None = None,
) -> None:
    log = AuditLog(
        organization_id=organization_id,
        actor_id=actor_id,
        action=action,
        resource=resource,
        method=method,
        status_code=status_code,
        detail=detail or {},
    )
    with Session(engine) as session:
        session.add(log)
        session.commit()


def record_audit_entry(**kwargs: Any) -> None:
    """Best-effort variant of ``write_audit_log`` for sensitive actions."""
    try:
        write_audit_log(**kwargs)
    except Exception:
        logger.warning("audit entry %s could not be written", kwargs.get("action"), exc_info=True)


def annotate_audit(request: Request, *, action: str, target: dict[str, Any] | None = None) -> None:
    """Name the audited action for this request and record what it targets."""
    setattr(request.state, AUDIT_NOTE_STATE_KEY, {"action": action, "target": target or {}})


def outcome_for(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code in {401, 403, 404}:
        return "denied"
    if status_code >= 400:
        return "rejected"
    return "success"


def _request_scope(request: Request) -> tuple[str, str | None]:
    claims = getattr(request.state, "claims", {}) or {}
    tenant_context = getattr(request.state, "tenant_context", None)
    organization_id = getattr(tenant_context, "organization_id", None) or claims.get(
        "organization_id", PLATFORM_SCOPE
    )
    return organization_id, claims.get("sub")


class AuditMiddleware(BaseHTTPMiddleware):
    """Writes one who/when/where/what/result entry per write request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        path = request.url.path
        note = getattr(request.state, AUDIT_NOTE_STATE_KEY, None)
        if path in UNAUDITED_PATHS or (request.method not in WRITE_METHODS and note is None):
            return response

        organization_id, actor_id = _request_scope(request)
        action = note["action"] if note else f"{request.method}:{path}"
        route = request.scope.get("route")
        detail: dict[str, Any] = {
            "who": {"organization_id": organization_id, "actor_id": actor_id},
            "when": {"request_ts": now_utc().isoformat()},
            "where": {
                "path": path,
                "route": getattr(route, "path", path),
                "client_ip": request.client.host if request.client is not None else None,
            },
            "what": {
                "action": action,
                "method": request.method,
                "target": note["target"] if note else {},
            },
            "result": {
                "status_code": response.status_code,
                "outcome": outcome_for(response.status_code),
            },
        }
        record_audit_entry(
            organization_id=organization_id,
            actor_id=actor_id,
            action=action,
            resource=path,
            method=request.method,
            status_code=response.status_code,
            detail=detail,
        )
        return response
