from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, ForeignKeyConstraint, Index, UniqueConstraint
from sqlmodel import Field, SQLModel


def now_utc() -> datetime:
    return datetime.now(UTC)


class OrganizationType(StrEnum):
    CORPORATE_IT = "CORPORATE_IT"
    SCHOOL_COLLEGE = "SCHOOL_COLLEGE"
    HOSPITAL = "HOSPITAL"
    MANUFACTURING_FACTORY = "MANUFACTURING_FACTORY"
    GOVERNMENT = "GOVERNMENT"
    GOVERNMENT_PSU = "GOVERNMENT_PSU"
    RETAIL_CHAIN = "RETAIL_CHAIN"


class PlatformStatus(StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    SUSPENDED = "SUSPENDED"
    REJECTED = "REJECTED"


class SubscriptionPlan(StrEnum):
    FREE = "FREE"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"


class SubscriptionStatus(StrEnum):
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"
    SUSPENDED = "SUSPENDED"


class VisibilityPolicy(StrEnum):
    DOWNLINE_ONLY = "DOWNLINE_ONLY"
    ALL = "ALL"


class EmploymentStatus(StrEnum):
    ACTIVE = "ACTIVE"
    INVITED = "INVITED"
    SUSPENDED = "SUSPENDED"
    TERMINATED = "TERMINATED"


class UserEmploymentStatus(StrEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class OrganizationRequestStatus(StrEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    organization_id: str = Field(index=True)
    ts: datetime = Field(default_factory=now_utc, index=True)
    actor_id: str | None = Field(default=None, index=True)
    correlation_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str = Field(index=True)
    actor_id: str | None = Field(default=None, index=True)
    action: str
    resource: str
    method: str
    status_code: int
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(index=True)
    organization_id: str | None = Field(default=None, index=True)
    type: str = Field(default="INFO")
    title: str
    message: str
    action_link: str | None = None
    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=now_utc, index=True)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    email: str = Field(index=True, unique=True)
    display_name: str = Field(default="")
    password_hash: str | None = Field(default=None)
    is_super_admin: bool = Field(default=False)
    current_organization_id: str | None = Field(default=None, index=True)
    employment_status: UserEmploymentStatus = Field(default=UserEmploymentStatus.INACTIVE)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class Organization(SQLModel, table=True):
    __tablename__ = "organizations"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True)
    slug: str = Field(index=True, unique=True)
    owner_id: str = Field(foreign_key="users.id", index=True)
    organization_type: OrganizationType = Field(default=OrganizationType.CORPORATE_IT, index=True)
    organization_type_locked: bool = Field(default=False)
    platform_status: PlatformStatus = Field(default=PlatformStatus.PENDING, index=True)
    subscription_plan: SubscriptionPlan = Field(default=SubscriptionPlan.FREE)
    subscription_status: SubscriptionStatus = Field(default=SubscriptionStatus.ACTIVE)
    employee_limit: int = Field(default=5)
    features: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    settings: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    hierarchy_config: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class Role(SQLModel, table=True):
    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_roles_org_name"),
        UniqueConstraint("organization_id", "id", name="uq_roles_org_id_id"),
        ForeignKeyConstraint(
            ["organization_id", "parent_role_id"],
            ["roles.organization_id", "roles.id"],
        ),
        Index("ix_roles_org_level", "organization_id", "level"),
        Index("ix_roles_org_parent", "organization_id", "parent_role_id"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str | None = Field(default=None, foreign_key="organizations.id", index=True)
    name: str = Field(index=True)
    level: int | None = Field(default=None)
    parent_role_id: str | None = Field(default=None)
    permissions: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    access: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    max_users_per_role: int | None = None
    max_direct_reports: int | None = None
    max_monthly_approvals: int | None = None
    max_payroll_approval_amount: float | None = None
    is_system: bool = Field(default=False)
    description: str | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class EmploymentState(SQLModel, table=True):
    __tablename__ = "employment_states"
    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_employment_org_user"),
        UniqueConstraint("organization_id", "id", name="uq_employment_org_id_id"),
        ForeignKeyConstraint(
            ["organization_id", "role_id"],
            ["roles.organization_id", "roles.id"],
        ),
        ForeignKeyConstraint(
            ["organization_id", "reports_to_employment_id"],
            ["employment_states.organization_id", "employment_states.id"],
        ),
        Index("ix_employment_org_status", "organization_id", "status"),
        Index("ix_employment_org_manager", "organization_id", "reports_to_employment_id"),
        Index("ix_employment_org_role", "organization_id", "role_id"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    role_id: str
    reports_to_employment_id: str | None = Field(default=None)
    status: EmploymentStatus = Field(default=EmploymentStatus.ACTIVE)
    designation: str | None = None
    department: str | None = None
    joined_at: datetime = Field(default_factory=now_utc, index=True)
    terminated_at: datetime | None = None
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class WorkHistory(SQLModel, table=True):
    __tablename__ = "work_history"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    source_employment_id: str = Field(index=True, unique=True)
    designation: str = Field(default="")
    department: str = Field(default="")
    joined_at: datetime | None = None
    left_at: datetime | None = None
    verified: bool = Field(default=False)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class Branch(SQLModel, table=True):
    __tablename__ = "branches"
    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_branches_org_name"),
        UniqueConstraint("organization_id", "code", name="uq_branches_org_code"),
        UniqueConstraint("organization_id", "id", name="uq_branches_org_id_id"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    name: str
    code: str | None = None
    location: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    timezone: str = Field(default="Asia/Kolkata")
    currency: str = Field(default="INR")
    is_head_office: bool = Field(default=False)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class Department(SQLModel, table=True):
    __tablename__ = "departments"
    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_departments_org_name"),
        UniqueConstraint("organization_id", "code", name="uq_departments_org_code"),
        UniqueConstraint("organization_id", "id", name="uq_departments_org_id_id"),
        ForeignKeyConstraint(
            ["organization_id", "branch_id"],
            ["branches.organization_id", "branches.id"],
        ),
        ForeignKeyConstraint(
            ["organization_id", "parent_department_id"],
            ["departments.organization_id", "departments.id"],
        ),
        Index("ix_departments_org_branch_active", "organization_id", "branch_id", "is_active"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    organization_id: str = Field(foreign_key="organizations.id", index=True)
    branch_id: str | None = None
    parent_department_id: str | None = None
    head_employment_id: str | None = None
    name: str
    code: str | None = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class OrganizationRequest(SQLModel, table=True):
    __tablename__ = "organization_requests"
    __table_args__ = (
        Index("ix_org_requests_user_status", "requested_by_user_id", "status", "created_at"),
        Index("ix_org_requests_status_created", "status", "created_at"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    requested_by_user_id: str = Field(foreign_key="users.id", index=True)
    organization_name: str
    industry_type: str
    organization_type: OrganizationType
    company_size: str
    description: str = Field(default="")
    status: OrganizationRequestStatus = Field(default=OrganizationRequestStatus.PENDING)
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    decision_reason: str = Field(default="")
    linked_organization_id: str | None = Field(default=None, foreign_key="organizations.id", index=True)
    revision: int = Field(default=1)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc, index=True)


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    organization_id: str
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: str | None = None
    correlation_id: str | None = None
    payload: dict[str, Any] = PydanticField(default_factory=dict)


class NotificationPayload(BaseModel):
    title: str
    message: str
    type: str = "INFO"
    organization_id: str | None = None
    action_link: str | None = None


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserRead(ORMReadModel):
    id: str
    email: str
    display_name: str
    is_super_admin: bool
    current_organization_id: str | None = None
    employment_status: UserEmploymentStatus


class EligibleUserRead(ORMReadModel):
    id: str
    email: str
    display_name: str


class AccessRule(BaseModel):
    module: str
    read: bool = False
    write: bool = False
    approve: bool = False


class RoleLimits(BaseModel):
    max_users_per_role: float | None = None
    max_direct_reports: float | None = None
    max_monthly_approvals: float | None = None
    max_payroll_approval_amount: float | None = None


class RoleCreate(BaseModel):
    name: str
    level: int | None = None
    parent_role_id: str | None = None
    permissions: list[str] = PydanticField(default_factory=list)
    access: list[AccessRule] = PydanticField(default_factory=list)
    limits: RoleLimits | None = None
    description: str | None = None


class RoleUpdate(BaseModel):
    name: str | None = None
    level: int | None = None
    parent_role_id: str | None = None
    permissions: list[str] | None = None
    access: list[AccessRule] | None = None
    limits: RoleLimits | None = None
    description: str | None = None


class RoleRead(ORMReadModel):
    id: str
    organization_id: str | None
    name: str
    level: int | None
    parent_role_id: str | None
    permissions: list[str]
    access: list[AccessRule]
    max_users_per_role: int | None
    max_direct_reports: int | None
    max_monthly_approvals: int | None
    max_payroll_approval_amount: float | None
    is_system: bool
    description: str | None = None
    created_at: datetime


class PermissionCatalogRead(BaseModel):
    modules: list[str]
    actions: list[str]
    limits: list[str]


class EmployeeHireRequest(BaseModel):
    user_id: str | None = None
    role_name: str
    designation: str | None = None
    department: str | None = None
    reports_to_employment_id: str | None = None


class EmployeeUpdateRequest(BaseModel):
    role_name: str | None = None
    designation: str | None = None
    department: str | None = None
    status: EmploymentStatus | None = None
    reports_to_employment_id: str | None = None


class EmploymentRead(ORMReadModel):
    id: str
    user_id: str
    organization_id: str
    role_id: str
    reports_to_employment_id: str | None
    status: EmploymentStatus
    designation: str | None = None
    department: str | None = None
    joined_at: datetime
    terminated_at: datetime | None = None


class EmployeeRead(EmploymentRead):
    role_name: str | None = None
    role_level: int | None = None
    user_email: str | None = None
    user_display_name: str | None = None


class WorkHistoryRead(ORMReadModel):
    id: str
    user_id: str
    organization_id: str
    source_employment_id: str
    designation: str
    department: str
    joined_at: datetime | None
    left_at: datetime | None
    verified: bool


class TerminationRead(BaseModel):
    employment: EmploymentRead
    work_history: WorkHistoryRead


class HierarchyConfig(BaseModel):
    active_template_type: OrganizationType = OrganizationType.CORPORATE_IT
    custom_levels: list[str] = PydanticField(default_factory=list)
    universal_levels: list[str] = PydanticField(default_factory=list)
    matrix_reporting_enabled: bool = False
    visibility_policy: VisibilityPolicy = VisibilityPolicy.DOWNLINE_ONLY
    block_upward_visibility: bool = True


class HierarchyConfigUpdate(BaseModel):
    organization_type: OrganizationType | None = None
    active_template_type: OrganizationType | None = None
    custom_levels: list[str] | None = None
    matrix_reporting_enabled: bool | None = None
    visibility_policy: VisibilityPolicy | None = None
    block_upward_visibility: bool | None = None


class HierarchyConfigRead(BaseModel):
    organization_type: OrganizationType
    organization_type_locked: bool
    hierarchy_config: HierarchyConfig


class OrganizationRead(ORMReadModel):
    id: str
    name: str
    slug: str
    owner_id: str
    organization_type: OrganizationType
    organization_type_locked: bool
    platform_status: PlatformStatus
    subscription_plan: SubscriptionPlan
    subscription_status: SubscriptionStatus
    employee_limit: int
    features: list[str]
    hierarchy_config: HierarchyConfig
    created_at: datetime


class BranchCreate(BaseModel):
    name: str
    code: str | None = None
    location: dict[str, Any] = PydanticField(default_factory=dict)
    timezone: str = "Asia/Kolkata"
    currency: str = "INR"
    is_head_office: bool = False
    is_active: bool = True


class BranchUpdate(BaseModel):
    name: str | None = None
    code: str | None = None
    location: dict[str, Any] | None = None
    timezone: str | None = None
    currency: str | None = None
    is_head_office: bool | None = None
    is_active: bool | None = None


class BranchRead(ORMReadModel):
    id: str
    organization_id: str
    name: str
    code: str | None
    location: dict[str, Any]
    timezone: str
    currency: str
    is_head_office: bool
    is_active: bool


class DepartmentCreate(BaseModel):
    name: str
    code: str | None = None
    branch_id: str | None = None
    parent_department_id: str | None = None
    head_employment_id: str | None = None
    is_active: bool = True


class DepartmentUpdate(BaseModel):
    name: str | None = None
    code: str | None = None
    branch_id: str | None = None
    parent_department_id: str | None = None
    head_employment_id: str | None = None
    is_active: bool | None = None


class DepartmentRead(ORMReadModel):
    id: str
    organization_id: str
    name: str
    code: str | None
    branch_id: str | None
    parent_department_id: str | None
    head_employment_id: str | None
    is_active: bool


class OrganizationRequestCreate(BaseModel):
    organization_name: str = PydanticField(min_length=2, max_length=120)
    industry_type: str = PydanticField(min_length=1)
    organization_type: OrganizationType
    company_size: str = PydanticField(min_length=1)
    description: str = ""


class OrganizationRequestRead(ORMReadModel):
    id: str
    requested_by_user_id: str
    organization_name: str
    industry_type: str
    organization_type: OrganizationType
    company_size: str
    description: str
    status: OrganizationRequestStatus
    reviewed_by: str | None
    reviewed_at: datetime | None
    decision_reason: str
    linked_organization_id: str | None
    revision: int
    created_at: datetime


class OrganizationSummary(BaseModel):
    id: str
    name: str
    slug: str
    platform_status: PlatformStatus
    organization_type: OrganizationType
    organization_type_locked: bool


class OrganizationRequestState(BaseModel):
    state: str
    modules_unlocked: bool
    organization: OrganizationSummary | None = None
    role: str | None = None
    request: OrganizationRequestRead | None = None


class OrganizationApproveRequest(BaseModel):
    organization_name: str | None = None
    organization_type: OrganizationType | None = None
    approval_note: str = ""


class OrganizationRejectRequest(BaseModel):
    reason: str = ""


class ProvisioningResultRead(BaseModel):
    organization: OrganizationRead
    roles: list[RoleRead]
    request: OrganizationRequestRead
    owner_employment: EmploymentRead


class OrganizationTemplateRead(BaseModel):
    type: OrganizationType
    name: str
    levels: list[str]
    reporting_example: list[str]
    departments: list[str]
    role_behavior: str


class MembershipRead(BaseModel):
    employment_id: str
    organization_id: str
    organization_name: str | None
    organization_slug: str | None
    platform_status: PlatformStatus | None
    organization_type: OrganizationType | None
    role: str | None
    status: EmploymentStatus


class SwitchOrganizationRequest(BaseModel):
    organization_id: str


class DevLoginRequest(BaseModel):
    user_id: str
    password: str
    organization_id: str | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    organization_id: str | None = None
    role: str | None = None
