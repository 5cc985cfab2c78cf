"""Pydantic response schemas for resource status snapshots.

The four leaf quota shapes (CountQuota, UsageMetric, AllocationQuota,
AllocatedResource) are built by quotahub.services.quota_primitives; the
status shapes compose them into Automation / Workspace / Billing pools.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

# ── Quota primitives ───────────────────────────────────────────────────────────


class CountQuota(BaseModel):
    used: int
    limit: float | None
    percentage: int
    is_unlimited: bool


class UsageMetric(BaseModel):
    current: float
    limit: float | None
    period: str
    resets_at: datetime | None = None
    percentage: int
    is_unlimited: bool


class AllocationQuota(BaseModel):
    allocated: float
    limit: float | None
    unit: str
    percentage: int
    is_unlimited: bool


class AllocatedResource(BaseModel):
    allocated: float | None
    used: float
    parent_limit: float | None = None
    percentage: int
    is_unlimited: bool


# ── Automation pool ────────────────────────────────────────────────────────────


class GatewayResources(BaseModel):
    count: CountQuota
    requests: UsageMetric


class PluginResources(BaseModel):
    count: CountQuota
    executions: UsageMetric


class WorkflowResources(BaseModel):
    count: CountQuota
    runs: UsageMetric
    steps: UsageMetric


class AutomationPool(BaseModel):
    gateways: GatewayResources
    plugins: PluginResources
    workflows: WorkflowResources


# ── Workspace pool ─────────────────────────────────────────────────────────────


class WorkspacePool(BaseModel):
    ram: AllocationQuota
    cpu: AllocationQuota
    storage: AllocationQuota


# ── Billing pool ───────────────────────────────────────────────────────────────


class CreditUsageBreakdown(BaseModel):
    ai: UsageMetric
    marketplace: UsageMetric
    total: UsageMetric


class CreditsStatus(BaseModel):
    balance: float
    monthly_budget: float | None
    usage: CreditUsageBreakdown
    resets_at: datetime | None = None


class PlanFeatures(BaseModel):
    sso: bool = False
    custom_branding: bool = False
    priority_support: bool = False
    audit_logs: bool = False
    api_access: bool = False
    dedicated_database: bool = False


class SubscriptionStatus(BaseModel):
    seats: CountQuota
    departments: CountQuota
    plan: str
    plan_type: Literal["personal", "organization"]
    features: PlanFeatures


class BillingPool(BaseModel):
    credits: CreditsStatus
    subscription: SubscriptionStatus


# ── Allocation summaries ───────────────────────────────────────────────────────


class ResourceAmounts(BaseModel):
    gateways: float | None = None
    plugins: float | None = None
    workflows: float | None = None
    credit_budget: float | None = None
    ram_mb: float | None = None
    cpu_cores: float | None = None
    storage_mb: float | None = None


class OrgAllocationSummary(BaseModel):
    allocated: ResourceAmounts
    unallocated: ResourceAmounts
    department_count: int
    member_count: int


class DeptAllocationSummary(BaseModel):
    allocated: ResourceAmounts
    unallocated: ResourceAmounts
    member_count: int


# ── Status shapes ──────────────────────────────────────────────────────────────


class PersonalResourceStatus(BaseModel):
    context: Literal["personal"] = "personal"
    user_id: str
    plan: str
    execution_mode: str
    automation: AutomationPool
    workspace: WorkspacePool | None
    billing: BillingPool
    history_days: int


class OrgResourceStatus(BaseModel):
    context: Literal["organization"] = "organization"
    organization_id: str
    plan: str
    execution_mode: str
    automation: AutomationPool
    workspace: WorkspacePool | None
    billing: BillingPool
    allocations: OrgAllocationSummary
    history_days: int


class AllocatedAutomation(BaseModel):
    gateways: AllocatedResource
    plugins: AllocatedResource | None = None
    workflows: AllocatedResource


class AllocatedWorkspace(BaseModel):
    ram: AllocatedResource
    cpu: AllocatedResource
    storage: AllocatedResource


class AllocatedBudget(BaseModel):
    credits: AllocatedResource


class DeptResourceStatus(BaseModel):
    context: Literal["department"] = "department"
    organization_id: str
    department_id: str
    department_name: str
    is_active: bool
    automation: AllocatedAutomation
    workspace: AllocatedWorkspace | None
    budget: AllocatedBudget
    usage: dict[str, UsageMetric]
    member_allocations: DeptAllocationSummary


class MemberResourceStatus(BaseModel):
    context: Literal["member"] = "member"
    organization_id: str
    department_id: str
    user_id: str
    member_name: str
    role: str
    automation: AllocatedAutomation
    workspace: AllocatedWorkspace | None
    budget: AllocatedBudget
    usage: dict[str, UsageMetric]


ResourceStatus = (
    PersonalResourceStatus | OrgResourceStatus | DeptResourceStatus | MemberResourceStatus
)
