from __future__ import annotations

from typing import Any

from hrms.domain.models import OrganizationType
from hrms.domain.permissions import (
    PERM_ATTENDANCE_VIEW,
    PERM_DASHBOARD_VIEW,
    PERM_EMPLOYEES_APPROVE,
    PERM_EMPLOYEES_VIEW,
    PERM_EMPLOYEES_WRITE,
    PERM_LEAVE_APPROVE,
    PERM_ORGANIZATION_VIEW,
    PERM_PAYROLL_VIEW,
    PERM_POLICIES_VIEW,
    PERM_POLICIES_WRITE,
    PERM_RECRUITMENT_VIEW,
    PERM_REPORTS_VIEW,
    PERM_SELF_VIEW,
    PERM_SELF_WRITE,
    PERM_WILDCARD,
)

OWNER_ROLE_NAME = "Owner"

ORGANIZATION_TEMPLATES: dict[OrganizationType, dict[str, Any]] = {
    OrganizationType.CORPORATE_IT: {
        "name": "Corporate / IT Company",
        "levels": [
            "Shareholders",
            "Board of Directors",
            "CEO",
            "C-Level Executives",
            "Department Heads",
            "Managers",
            "Team Leads",
            "Employees",
            "Interns",
        ],
        "reporting_example": [
            "Board of Directors",
            "CEO",
            "CTO",
            "Engineering Head",
            "Manager",
            "Team Lead",
            "Software Engineer",
        ],
        "departments": ["Engineering", "Product", "HR", "Finance", "Sales", "IT Operations", "Legal"],
        "role_behavior": "KPI and competency driven with optional matrix reporting.",
    },
    OrganizationType.SCHOOL_COLLEGE: {
        "name": "School / College",
        "levels": [
            "Trust / Chairman",
            "Principal",
            "Vice Principal",
            "HOD",
            "Teachers",
            "Assistant Teachers",
            "Non-Teaching Staff",
        ],
        "reporting_example": ["Chairman", "Principal", "Vice Principal", "HOD", "Teacher", "Assistant Teacher"],
        "departments": ["Academics", "Administration", "Examination", "Accounts", "Library", "Transport"],
        "role_behavior": "Academic calendar and compliance driven.",
    },
    OrganizationType.HOSPITAL: {
        "name": "Hospital",
        "levels": [
            "Owner / Board",
            "Medical Director",
            "Department Head",
            "Senior Doctors",
            "Junior Doctors",
            "Nurses",
            "Ward / Support Staff",
        ],
        "reporting_example": [
            "Owner / Board",
            "Medical Director",
            "Department Head",
            "Senior Doctor",
            "Junior Doctor",
            "Nurse",
        ],
        "departments": ["Clinical", "Emergency", "OPD", "IPD", "Pharmacy", "Lab", "Administration", "Billing"],
        "role_behavior": "Dual hierarchy supported: clinical + administrative.",
    },
    OrganizationType.MANUFACTURING_FACTORY: {
        "name": "Manufacturing / Factory",
        "levels": [
            "Owner / Board",
            "Plant Head",
            "Production Manager",
            "Shift Supervisor",
            "Line Incharge",
            "Skilled Workers",
            "Contract / Helper Staff",
        ],
        "reporting_example": [
            "Owner / Board",
            "Plant Head",
            "Production Manager",
            "Shift Supervisor",
            "Line Incharge",
            "Worker",
        ],
        "departments": ["Production", "Quality", "Maintenance", "EHS", "Warehouse", "HR"],
        "role_behavior": "Shift, safety, and line productivity driven.",
    },
    OrganizationType.GOVERNMENT_PSU: {
        "name": "Government / PSU",
        "levels": ["Ministry / Authority", "Secretary", "Director", "Officer", "Clerk", "Field Staff"],
        "reporting_example": ["Ministry / Authority", "Secretary", "Director", "Officer", "Clerk", "Field Staff"],
        "departments": ["Establishment", "Accounts", "Operations", "Administration", "Vigilance"],
        "role_behavior": "Promotion and progression are mostly grade/seniority based.",
    },
    OrganizationType.GOVERNMENT: {
        "name": "Government / PSU",
        "levels": ["Ministry / Authority", "Secretary", "Director", "Officer", "Clerk", "Field Staff"],
        "reporting_example": ["Ministry / Authority", "Secretary", "Director", "Officer", "Clerk", "Field Staff"],
        "departments": ["Establishment", "Accounts", "Operations", "Administration", "Vigilance"],
        "role_behavior": "Promotion and progression are mostly grade/seniority based.",
    },
    OrganizationType.RETAIL_CHAIN: {
        "name": "Retail / Chain Business",
        "levels": [
            "Corporate Office",
            "Regional Manager",
            "Area Manager",
            "Store Manager",
            "Assistant Manager",
            "Sales Staff",
            "Helper / Inventory Staff",
        ],
        "reporting_example": ["Corporate Office", "Regional Manager", "Area Manager", "Store Manager", "Sales Staff"],
        "departments": ["Store Operations", "Inventory", "Merchandising", "Finance", "HR"],
        "role_behavior": "Branch target and store performance driven.",
    },
}

UNIVERSAL_LEVELS: tuple[str, ...] = (
    "Strategic Level (Decision Makers)",
    "Managerial Level (Control & Supervision)",
    "Operational Level (Execution)",
)

# Ordered most senior first; position + 1 becomes the role level.
ROLE_LADDERS: dict[OrganizationType, tuple[str, ...]] = {
    OrganizationType.CORPORATE_IT: (
        OWNER_ROLE_NAME,
        "CEO",
        "Department Head",
        "Manager",
        "Team Lead",
        "Employee",
        "Intern",
    ),
    OrganizationType.SCHOOL_COLLEGE: (
        OWNER_ROLE_NAME,
        "Chairman",
        "Principal",
        "HOD",
        "Teacher",
        "Assistant Teacher",
        "Staff",
    ),
    OrganizationType.HOSPITAL: (OWNER_ROLE_NAME, "Medical Director", "HOD", "Doctor", "Nurse", "Support Staff"),
    OrganizationType.MANUFACTURING_FACTORY: (
        OWNER_ROLE_NAME,
        "Plant Head",
        "Production Manager",
        "Supervisor",
        "Worker",
        "Helper",
    ),
    OrganizationType.GOVERNMENT: (OWNER_ROLE_NAME, "Secretary", "Director", "Officer", "Clerk", "Field Staff"),
    OrganizationType.GOVERNMENT_PSU: (OWNER_ROLE_NAME, "Secretary", "Director", "Officer", "Clerk", "Field Staff"),
    OrganizationType.RETAIL_CHAIN: (
        OWNER_ROLE_NAME,
        "Corporate Head",
        "Regional Manager",
        "Area Manager",
        "Store Manager",
        "Sales Staff",
        "Helper",
    ),
}

BASE_PERMISSIONS: tuple[str, ...] = (PERM_DASHBOARD_VIEW, PERM_ORGANIZATION_VIEW)

ROLE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    OWNER_ROLE_NAME: (PERM_WILDCARD,),
    "CEO": (
        PERM_DASHBOARD_VIEW,
        PERM_EMPLOYEES_VIEW,
        PERM_EMPLOYEES_WRITE,
        PERM_EMPLOYEES_APPROVE,
        PERM_PAYROLL_VIEW,
        PERM_RECRUITMENT_VIEW,
    ),
    "Chairman": (PERM_DASHBOARD_VIEW, PERM_EMPLOYEES_VIEW, PERM_EMPLOYEES_APPROVE, PERM_POLICIES_WRITE),
    "Principal": (PERM_DASHBOARD_VIEW, PERM_EMPLOYEES_VIEW, PERM_EMPLOYEES_WRITE, PERM_EMPLOYEES_APPROVE),
    "Medical Director": (PERM_DASHBOARD_VIEW, PERM_EMPLOYEES_VIEW, PERM_EMPLOYEES_APPROVE, PERM_ATTENDANCE_VIEW),
    "Plant Head": (PERM_DASHBOARD_VIEW, PERM_EMPLOYEES_VIEW, PERM_EMPLOYEES_APPROVE, PERM_PAYROLL_VIEW),
    "Secretary": (PERM_DASHBOARD_VIEW, PERM_EMPLOYEES_VIEW, PERM_EMPLOYEES_APPROVE, PERM_POLICIES_VIEW),
    "Corporate Head": (PERM_DASHBOARD_VIEW, PERM_EMPLOYEES_VIEW, PERM_EMPLOYEES_APPROVE, PERM_REPORTS_VIEW),
    "Department Head": (PERM_EMPLOYEES_VIEW, PERM_EMPLOYEES_WRITE, PERM_ATTENDANCE_VIEW),
    "Manager": (PERM_EMPLOYEES_VIEW, PERM_EMPLOYEES_WRITE, PERM_LEAVE_APPROVE),
    "Team Lead": (PERM_EMPLOYEES_VIEW, PERM_ATTENDANCE_VIEW, PERM_LEAVE_APPROVE),
    "Employee": (PERM_SELF_VIEW, PERM_SELF_WRITE),
    "Intern": (PERM_SELF_VIEW,),
    "HOD": (PERM_EMPLOYEES_VIEW, PERM_EMPLOYEES_WRITE, PERM_LEAVE_APPROVE),
    "Teacher": (PERM_SELF_VIEW, PERM_ATTENDANCE_VIEW),
    "Assistant Teacher": (PERM_SELF_VIEW, PERM_ATTENDANCE_VIEW),
    "Staff": (PERM_SELF_VIEW,),
    "Doctor": (PERM_SELF_VIEW, PERM_ATTENDANCE_VIEW),
    "Nurse": (PERM_SELF_VIEW, PERM_ATTENDANCE_VIEW),
    "Support Staff": (PERM_SELF_VIEW,),
    "Supervisor": (PERM_EMPLOYEES_VIEW, PERM_ATTENDANCE_VIEW),
    "Worker": (PERM_SELF_VIEW,),
    "Helper": (PERM_SELF_VIEW,),
    "Director": (PERM_EMPLOYEES_VIEW, PERM_EMPLOYEES_APPROVE),
    "Officer": (PERM_EMPLOYEES_VIEW, PERM_LEAVE_APPROVE),
    "Clerk": (PERM_SELF_VIEW,),
    "Field Staff": (PERM_SELF_VIEW,),
    "Regional Manager": (PERM_EMPLOYEES_VIEW, PERM_EMPLOYEES_APPROVE),
    "Area Manager": (PERM_EMPLOYEES_VIEW, PERM_EMPLOYEES_WRITE),
    "Store Manager": (PERM_EMPLOYEES_VIEW, PERM_EMPLOYEES_WRITE, PERM_LEAVE_APPROVE),
    "Sales Staff": (PERM_SELF_VIEW,),
}


def _access(module: str, *, read: bool = False, write: bool = False, approve: bool = False) -> dict[str, Any]:
    return {"module": module, "read": read, "write": write, "approve": approve}


ROLE_ACCESS_DEFAULTS: dict[str, tuple[dict[str, Any], ...]] = {
    OWNER_ROLE_NAME: tuple(
        _access(module, read=True, write=True, approve=True)
        for module in ("dashboard", "organization", "employees", "roles", "payroll", "recruitment")
    ),
    "Manager": (
        _access("dashboard", read=True),
        _access("employees", read=True, write=True),
        _access("recruitment", read=True),
    ),
    "Team Lead": (
        _access("dashboard", read=True),
        _access("employees", read=True),
    ),
}

ROLE_LIMIT_DEFAULTS: dict[str, dict[str, int | float | None]] = {
    "Manager": {
        "max_users_per_role": None,
        "max_direct_reports": 12,
        "max_monthly_approvals": 50,
        "max_payroll_approval_amount": None,
    },
    "Team Lead": {
        "max_users_per_role": None,
        "max_direct_reports": 8,
        "max_monthly_approvals": 25,
        "max_payroll_approval_amount": None,
    },
}

PROMOTIONAL_SUBSCRIPTION: dict[str, Any] = {
    "plan": "PRO",
    "status": "ACTIVE",
    "employee_limit": 50,
    "features": ["core_hrms", "payroll", "recruitment", "reputation"],
}


def resolve_organization_type(value: OrganizationType | str | None) -> OrganizationType:
    try:
        return OrganizationType(value) if value is not None else OrganizationType.CORPORATE_IT
    except ValueError:
        return OrganizationType.CORPORATE_IT


def get_organization_template(organization_type: OrganizationType | str | None) -> dict[str, Any]:
    key = resolve_organization_type(organization_type)
    template = ORGANIZATION_TEMPLATES[key]
    return {
        "type": key,
        "name": str(template["name"]),
        "levels": list(template["levels"]),
        "reporting_example": list(template["reporting_example"]),
        "departments": list(template["departments"]),
        "role_behavior": str(template["role_behavior"]),
    }


def list_organization_templates() -> list[dict[str, Any]]:
    return [get_organization_template(item) for item in ORGANIZATION_TEMPLATES]


def get_role_ladder(organization_type: OrganizationType | str | None) -> list[str]:
    return list(ROLE_LADDERS[resolve_organization_type(organization_type)])


def default_role_permissions(role_name: str) -> list[str]:
    return list(ROLE_PERMISSIONS.get(role_name, BASE_PERMISSIONS))


def default_role_access(role_name: str) -> list[dict[str, Any]]:
    return [dict(item) for item in ROLE_ACCESS_DEFAULTS.get(role_name, ())]


def default_role_limits(role_name: str) -> dict[str, int | float | None]:
    return dict(
        ROLE_LIMIT_DEFAULTS.get(
            role_name,
            {
                "max_users_per_role": None,
                "max_direct_reports": None,
                "max_monthly_approvals": None,
                "max_payroll_approval_amount": None,
            },
        )
    )


def default_hierarchy_config(organization_type: OrganizationType | str | None) -> dict[str, Any]:
    template = get_organization_template(organization_type)
    return {
        "active_template_type": str(template["type"]),
        "custom_levels": list(template["levels"]),
        "universal_levels": list(UNIVERSAL_LEVELS),
        "matrix_reporting_enabled": False,
        "visibility_policy": "DOWNLINE_ONLY",
        "block_upward_visibility": True,
    }
