"""Resource status aggregator — read-only snapshots of counts, usage and ceilings.

One of four shapes is produced depending on the caller's level:
personal, organization, department, member. Nothing here writes.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from quotahub.auth.permissions import ORG_VIEW, ServiceContext
from quotahub.errors import ForbiddenError, NotFoundError
from quotahub.models.allocation import DeptAllocation, MemberAllocation
from quotahub.models.org import Department
from quotahub.plans import PlanCatalog
from quotahub.repositories.allocation_repo import (
    DEPT_LIMIT_COLUMNS,
    MEMBER_LIMIT_COLUMNS,
    AllocationRepository,
)
from quotahub.repositories.resource_repo import AutomationCounts, OwnerFilter, ResourceRepository
from quotahub.schemas.resource import (
    AllocatedAutomation,
    AllocatedBudget,
    AllocatedResource,
    AllocatedWorkspace,
    AutomationPool,
    BillingPool,
    CreditsStatus,
    CreditUsageBreakdown,
    DeptAllocationSummary,
    DeptResourceStatus,
    GatewayResources,
    MemberResourceStatus,
    OrgAllocationSummary,
    OrgResourceStatus,
    PersonalResourceStatus,
    PlanFeatures,
    PluginResources,
    ResourceAmounts,
    ResourceStatus,
    SubscriptionStatus,
    UsageMetric,
    WorkflowResources,
    WorkspacePool,
)
from quotahub.schemas.usage import RealTimeUsage, UsageMetricName
from quotahub.services.allocation_service import org_pool_limits
from quotahub.services.quota_primitives import (
    Limit,
    allocated_resource,
    allocation_quota,
    count_quota,
    usage_metric,
)
from quotahub.services.usage_tracker import UsageTracker, next_month_start, owner_key

logger = logging.getLogger(__name__)

# allocation column -> ResourceAmounts field
_AMOUNT_FIELDS: dict[str, str] = {
    "max_gateways": "gateways",
    "max_plugins": "plugins",
    "max_workflows": "workflows",
    "credit_budget": "credit_budget",
    "max_ram_mb": "ram_mb",
    "max_cpu_cores": "cpu_cores",
    "max_storage_mb": "storage_mb",
}


def _amounts(values: dict[str, float | None], columns: tuple[str, ...]) -> ResourceAmounts:
    return ResourceAmounts(**{_AMOUNT_FIELDS[col]: values.get(col) for col in columns})


def _unallocated(
    allocated: dict[str, float], pool: dict[str, Limit], columns: tuple[str, ...]
) -> dict[str, float | None]:
    return {col: pool[col].remaining(allocated.get(col, 0)) for col in columns}


def _column(row: DeptAllocation | MemberAllocation | None, col: str) -> float | None:
    return getattr(row, col) if row is not None else None


class ResourceService:
    def __init__(self, session: AsyncSession, tracker: UsageTracker, plans: PlanCatalog) -> None:
        self.allocations = AllocationRepository(session)
        self.repo = ResourceRepository(session)
        self.tracker = tracker
        self.plans = plans

    async def get_resource_status(self, ctx: ServiceContext) -> ResourceStatus:
        """Snapshot for the caller's current context."""
        logger.debug(
            "Resource status for %s (org=%s, dept=%s)", ctx.user_id, ctx.organization_id, ctx.department_id
        )
        if ctx.is_personal_context():
            return await self.get_personal_status(ctx)
        if ctx.department_id:
            return await self.get_dept_status(ctx, ctx.organization_id, ctx.department_id)
        return await self.get_org_status(ctx, ctx.organization_id)

    # ── Shared builders ────────────────────────────────────────────────────────

    def _resets_at(self) -> datetime:
        return next_month_start(self.tracker.clock())

    def _automation(
        self,
        counts: AutomationCounts,
        usage: RealTimeUsage,
        gateways: Limit,
        plugins: Limit,
        workflows: Limit,
        runs: Limit,
    ) -> AutomationPool:
        resets_at = self._resets_at()
        return AutomationPool(
            gateways=GatewayResources(
                count=count_quota(counts.gateways, gateways),
                requests=usage_metric(usage.gateway_requests, None, resets_at=resets_at),
            ),
            plugins=PluginResources(
                count=count_quota(counts.plugins, plugins),
                executions=usage_metric(usage.plugin_executions, None, resets_at=resets_at),
            ),
            workflows=WorkflowResources(
                count=count_quota(counts.workflows, workflows),
                runs=usage_metric(usage.workflow_runs, runs, resets_at=resets_at),
                steps=usage_metric(usage.workflow_steps, None, resets_at=resets_at),
            ),
        )

    async def _credits(
        self, owner: str, usage: RealTimeUsage, balance: float, budget: Limit
    ) -> CreditsStatus:
        resets_at = self._resets_at()
        ai = await self.tracker.get_usage(owner, UsageMetricName.CREDITS_AI)
        marketplace = await self.tracker.get_usage(owner, UsageMetricName.CREDITS_MARKETPLACE)
        return CreditsStatus(
            balance=balance,
            monthly_budget=budget.as_optional(),
            usage=CreditUsageBreakdown(
                ai=usage_metric(ai, None, resets_at=resets_at),
                marketplace=usage_metric(marketplace, None, resets_at=resets_at),
                total=usage_metric(usage.credits_used, budget, resets_at=resets_at),
            ),
            resets_at=resets_at,
        )

    def _usage_metrics(self, usage: RealTimeUsage, *names: str) -> dict[str, UsageMetric]:
        resets_at = self._resets_at()
        return {name: usage_metric(getattr(usage, name), None, resets_at=resets_at) for name in names}

    async def _scoped_department(self, ctx: ServiceContext, org_id: str, dept_id: str) -> Department:
        if not ctx.can_act_on_org(ORG_VIEW, org_id):
            raise ForbiddenError("Organization membership required to view resource status")
        dept = await self.allocations.get_department(dept_id)
        if dept.organization_id != org_id:
            raise NotFoundError(f"Department '{dept_id}' not found")
        return dept

    # ── Personal ───────────────────────────────────────────────────────────────

    async def get_personal_status(self, ctx: ServiceContext) -> PersonalResourceStatus:
        user = await self.allocations.get_user(ctx.user_id)
        plan = self.plans.personal_plan(user.plan or ctx.plan)
        owner = owner_key(user_id=ctx.user_id)

        counts = await self.repo.count_automation(OwnerFilter.personal(ctx.user_id))
        usage = await self.tracker.get_real_time_usage(owner)
        balance = await self.repo.get_wallet_balance(user_id=ctx.user_id)

        workspace = None
        if plan.workspace is not None:
            # No running-container accounting yet, so nothing is allocated from the tier.
            workspace = WorkspacePool(
                ram=allocation_quota(0, plan.workspace.ram_mb, "MB"),
                cpu=allocation_quota(0, plan.workspace.cpu_cores, "cores"),
                storage=allocation_quota(0, plan.workspace.storage_mb, "MB"),
            )

        return PersonalResourceStatus(
            user_id=ctx.user_id,
            plan=plan.name,
            execution_mode=plan.execution_mode,
            automation=self._automation(
                counts, usage, plan.gateways, plan.plugins, plan.workflows,
                plan.workflow_runs_per_month,
            ),
            workspace=workspace,
            billing=BillingPool(
                credits=await self._credits(owner, usage, balance, plan.credits_per_month),
                subscription=SubscriptionStatus(
                    seats=count_quota(1, 1),
                    departments=count_quota(0, 0),
                    plan=plan.name,
                    plan_type="personal",
                    features=PlanFeatures(**plan.features),
                ),
            ),
            history_days=plan.history_days,
        )

    # ── Organization ───────────────────────────────────────────────────────────

    async def get_org_status(self, ctx: ServiceContext, org_id: str) -> OrgResourceStatus:
        if not ctx.can_act_on_org(ORG_VIEW, org_id):
            raise ForbiddenError("Organization membership required to view resource status")

        org = await self.allocations.get_organization(org_id)
        plan = self.plans.org_plan(org.plan)
        pool = org_pool_limits(org, plan)
        owner = owner_key(organization_id=org_id)

        counts = await self.repo.count_automation(OwnerFilter.organization(org_id))
        usage = await self.tracker.get_real_time_usage(owner)
        balance = await self.repo.get_wallet_balance(organization_id=org_id)
        allocated = await self.allocations.sum_dept_allocations(org_id)
        member_count = await self.repo.count_org_members(org_id)
        dept_count = await self.repo.count_departments(org_id)

        has_workspace = plan.workspace is not None or any(
            v is not None for v in (org.pool_ram_mb, org.pool_cpu_cores, org.pool_storage_mb)
        )
        workspace = None
        if has_workspace:
            workspace = WorkspacePool(
                ram=allocation_quota(allocated["max_ram_mb"], pool["max_ram_mb"], "MB"),
                cpu=allocation_quota(allocated["max_cpu_cores"], pool["max_cpu_cores"], "cores"),
                storage=allocation_quota(allocated["max_storage_mb"], pool["max_storage_mb"], "MB"),
            )

        seats = Limit.finite(org.max_seats) if org.max_seats is not None else plan.seats

        return OrgResourceStatus(
            organization_id=org_id,
            plan=plan.name,
            execution_mode=plan.execution_mode,
            automation=self._automation(
                counts, usage, plan.shared_gateways, plan.shared_plugins, plan.shared_workflows,
                plan.workflow_runs_per_month,
            ),
            workspace=workspace,
            billing=BillingPool(
                credits=await self._credits(owner, usage, balance, plan.shared_credits_per_month),
                subscription=SubscriptionStatus(
                    seats=count_quota(member_count, seats),
                    departments=count_quota(dept_count, plan.departments),
                    plan=plan.name,
                    plan_type="organization",
                    features=PlanFeatures(**plan.features),
                ),
            ),
            allocations=OrgAllocationSummary(
                allocated=_amounts(allocated, DEPT_LIMIT_COLUMNS),
                unallocated=_amounts(_unallocated(allocated, pool, DEPT_LIMIT_COLUMNS), DEPT_LIMIT_COLUMNS),
                department_count=dept_count,
                member_count=member_count,
            ),
            history_days=plan.history_days,
        )

    # ── Department ─────────────────────────────────────────────────────────────

    async def get_dept_status(
        self, ctx: ServiceContext, org_id: str, dept_id: str
    ) -> DeptResourceStatus:
        dept = await self._scoped_department(ctx, org_id, dept_id)
        org = await self.allocations.get_organization(org_id)
        org_pool = org_pool_limits(org, self.plans.org_plan(org.plan))
        alloc = await self.allocations.get_dept_allocation(dept_id)

        counts = await self.repo.count_automation(OwnerFilter.department(dept_id))
        usage = await self.tracker.get_real_time_usage(owner_key(department_id=dept_id))
        member_allocated = await self.allocations.sum_member_allocations(dept_id)
        member_count = await self.repo.count_department_members(dept_id)

        def _resource(col: str, used: float) -> AllocatedResource:
            return allocated_resource(_column(alloc, col), used, org_pool[col].as_optional())

        workspace = None
        if alloc is not None:
            workspace = AllocatedWorkspace(
                ram=_resource("max_ram_mb", 0),
                cpu=_resource("max_cpu_cores", 0),
                storage=_resource("max_storage_mb", 0),
            )

        dept_pool = {col: Limit.from_column(_column(alloc, col)) for col in MEMBER_LIMIT_COLUMNS}

        return DeptResourceStatus(
            organization_id=org_id,
            department_id=dept_id,
            department_name=dept.name,
            is_active=dept.is_active,
            automation=AllocatedAutomation(
                gateways=_resource("max_gateways", counts.gateways),
                plugins=_resource("max_plugins", counts.plugins),
                workflows=_resource("max_workflows", counts.workflows),
            ),
            workspace=workspace,
            budget=AllocatedBudget(
                credits=_resource("credit_budget", alloc.credit_used if alloc is not None else 0)
            ),
            usage=self._usage_metrics(
                usage, "workflow_runs", "plugin_executions", "gateway_requests"
            ),
            member_allocations=DeptAllocationSummary(
                allocated=_amounts(member_allocated, MEMBER_LIMIT_COLUMNS),
                unallocated=_amounts(
                    _unallocated(member_allocated, dept_pool, MEMBER_LIMIT_COLUMNS),
                    MEMBER_LIMIT_COLUMNS,
                ),
                member_count=member_count,
            ),
        )

    # ── Member ─────────────────────────────────────────────────────────────────

    async def get_member_status(
        self, ctx: ServiceContext, org_id: str, dept_id: str, user_id: str
    ) -> MemberResourceStatus:
        await self._scoped_department(ctx, org_id, dept_id)
        if not await self.allocations.is_department_member(user_id, dept_id):
            raise NotFoundError(f"User '{user_id}' is not a member of department '{dept_id}'")

        user = await self.allocations.get_user(user_id)
        role = await self.repo.get_membership_role(user_id, org_id)
        dept_alloc = await self.allocations.get_dept_allocation(dept_id)
        alloc = await self.allocations.get_member_allocation(user_id, dept_id)

        counts = await self.repo.count_automation(OwnerFilter.member(dept_id, user_id))
        usage = await self.tracker.get_real_time_usage(
            owner_key(user_id=user_id, department_id=dept_id)
        )

        def _resource(col: str, used: float) -> AllocatedResource:
            return allocated_resource(_column(alloc, col), used, _column(dept_alloc, col))

        workspace = None
        if alloc is not None:
            workspace = AllocatedWorkspace(
                ram=_resource("max_ram_mb", 0),
                cpu=_resource("max_cpu_cores", 0),
                storage=_resource("max_storage_mb", 0),
            )

        return MemberResourceStatus(
            organization_id=org_id,
            department_id=dept_id,
            user_id=user_id,
            member_name=user.name or user.email,
            role=role or "ORG_MEMBER",
            automation=AllocatedAutomation(
                gateways=_resource("max_gateways", counts.gateways),
                workflows=_resource("max_workflows", counts.workflows),
            ),
            workspace=workspace,
            budget=AllocatedBudget(
                credits=_resource("credit_budget", alloc.credit_used if alloc is not None else 0)
            ),
            usage=self._usage_metrics(usage, "workflow_runs", "gateway_requests"),
        )
