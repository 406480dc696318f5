from __future__ import annotations

PERM_WILDCARD = "*"
PERM_DASHBOARD_VIEW = "dashboard:view"
PERM_ORGANIZATION_VIEW = "organization:view"
PERM_EMPLOYEES_VIEW = "employees:view"
PERM_EMPLOYEES_WRITE = "employees:write"
PERM_EMPLOYEES_APPROVE = "employees:approve"
PERM_PAYROLL_VIEW = "payroll:view"
PERM_RECRUITMENT_VIEW = "recruitment:view"
PERM_ATTENDANCE_VIEW = "attendance:view"
PERM_LEAVE_APPROVE = "leave:approve"
PERM_POLICIES_VIEW = "policies:view"
PERM_POLICIES_WRITE = "policies:write"
PERM_REPORTS_VIEW = "reports:view"
PERM_SELF_VIEW = "self:view"
PERM_SELF_WRITE = "self:write"

ROLE_MODULE_CATALOG: tuple[str, ...] = (
    "dashboard",
    "organization",
    "employees",
    "roles",
    "payroll",
    "recruitment",
    "org_chart",
    "performance",
    "feed",
    "network",
    "chat",
    "settings",
)
ACCESS_ACTIONS: tuple[str, ...] = ("read", "write", "approve")
ROLE_LIMIT_NAMES: tuple[str, ...] = (
    "max_users_per_role",
    "max_direct_reports",
    "max_monthly_approvals",
    "max_payroll_approval_amount",
)
