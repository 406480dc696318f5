from __future__ import annotations

from fastapi import FastAPI, HTTPException

from hrms.api.routers import admin, auth, employees, organization, roles
from hrms.infra.audit import AuditMiddleware
from hrms.infra.db import check_db_ready
from hrms.infra.logging import configure_logging

configure_logging()

app = FastAPI(
    title="hrms-hierarchy",
    description="Multi-tenant organization hierarchy and role-scoped access service.",
    version="0.1.0",
)

app.add_middleware(AuditMiddleware)

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
app.include_router(employees.router, prefix="/api/organization/employees", tags=["employees"])
app.include_router(organization.router, prefix="/api/organization", tags=["organization"])
app.include_router(roles.router, prefix="/api/roles", tags=["roles"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
