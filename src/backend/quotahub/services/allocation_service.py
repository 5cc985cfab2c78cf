"""Allocation service — subdivides an organization's shared pools among departments and members.

RBAC and the pool invariant are enforced here. Repositories only do DB access.

Invariant: for every resource with a finite parent pool,
  sum(other children's maxima) + requested <= pool
A NULL child maximum counts as 0 in the sum and means "no explicit cap".

The parent row is read FOR UPDATE before the sibling sum, so concurrent
writes under the same parent are serialized.
"""

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from quotahub.auth.permissions import ORG_MANAGE, ORG_VIEW, PLATFORM_MANAGE, ServiceContext
from quotahub.errors import ForbiddenError, NotFoundError, PoolExceededError, ValidationError
from quotahub.models.allocation import AllocationMode, DeptAllocation, MemberAllocation
from quotahub.models.org import Department, Organization
from quotahub.plans import OrgPlanLimits, PlanCatalog
from quotahub.repositories.allocation_repo import (
    DEPT_LIMIT_COLUMNS,
    MEMBER_LIMIT_COLUMNS,
    AllocationRepository,
)
from quotahub.schemas.allocation import (
    CreditBudgetCheck,
    CreditResetResult,
    CreditStatus,
    DeptAllocationResponse,
    MemberAllocationResponse,
    SetDeptAllocationRequest,
    SetMemberAllocationRequest,
)
from quotahub.services.quota_primitives import Limit, percentage

logger = logging.getLogger(__name__)

RESOURCE_LABELS: dict[str, str] = {
    "max_gateways": "gateways",
    "max_plugins": "plugins",
    "max_workflows": "workflows",
    "credit_budget": "credits",
    "max_ram_mb": "ram_mb",
    "max_cpu_cores": "cpu_cores",
    "max_storage_mb": "storage_mb",
}


def org_pool_limits(org: Organization, plan: OrgPlanLimits) -> dict[str, Limit]:
    """Pool an organization divides among its departments, keyed by allocation column.

    Workspace pools come from the organization's own override columns when set,
    otherwise from the plan. A plan without a workspace leaves those resources
    unconstrained at the department level.
    """
    workspace = plan.workspace

    def _workspace(override: float | None, attr: str) -> Limit:
        if override is not None:
            return Limit.finite(override)
        if workspace is None:
            return Limit.unlimited()
        return getattr(workspace, attr)

    return {
        "max_gateways": plan.shared_gateways,
        "max_plugins": plan.shared_plugins,
        "max_workflows": plan.shared_workflows,
        "credit_budget": plan.shared_credits_per_month,
        "max_ram_mb": _workspace(org.pool_ram_mb, "ram_mb"),
        "max_cpu_cores": _workspace(org.pool_cpu_cores, "cpu_cores"),
        "max_storage_mb": _workspace(org.pool_storage_mb, "storage_mb"),
    }


def dept_pool_limits(allocation: DeptAllocation | None) -> dict[str, Limit]:
    """Pool a department divides among its members. No row means no constraint."""
    return {
        col: Limit.from_column(getattr(allocation, col) if allocation is not None else None)
        for col in MEMBER_LIMIT_COLUMNS
    }


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def find_pool_violations(
    requested: dict[str, float | None],
    others: dict[str, float],
    pool: dict[str, Limit],
    scope: str,
) -> list[str]:
    violations: list[str] = []
    for col, limit in pool.items():
        value = requested.get(col)
        if value is None or limit.is_unlimited:
            continue
        allocated = others.get(col, 0)
        if allocated + value > limit.value:
            violations.append(
                f"{RESOURCE_LABELS[col]}: requested {_fmt(value)} with {_fmt(allocated)} "
                f"already allocated exceeds the {scope} pool of {_fmt(limit.value)} "
                f"(available: {_fmt(max(0, limit.value - allocated))})"
            )
    return violations


@dataclass(frozen=True)
class _CreditRow:
    budget: int | None
    used: float
    mode: AllocationMode
    reset_at: datetime | None = None


class AllocationService:
    def __init__(self, session: AsyncSession, plans: PlanCatalog) -> None:
        self.repo = AllocationRepository(session)
        self.session = session
        self.plans = plans

    # ── Scoping helpers ────────────────────────────────────────────────────────

    @staticmethod
    def _require(ctx: ServiceContext, capability: str, message: str) -> None:
        if not ctx.can_do(capability):
            raise ForbiddenError(message)

    @staticmethod
    def _require_org(ctx: ServiceContext, capability: str, org_id: str, message: str) -> None:
        if not ctx.can_act_on_org(capability, org_id):
            raise ForbiddenError(message)

    async def _scoped_department(
        self,
        ctx: ServiceContext,
        dept_id: str,
        org_id: str | None = None,
        for_update: bool = False,
    ) -> Department:
        """Load a department the caller may see; anything outside their org is a 404."""
        dept = await self.repo.get_department(dept_id, for_update=for_update)
        expected_org = org_id if org_id is not None else ctx.organization_id
        if not ctx.is_super_admin() and dept.organization_id != ctx.organization_id:
            raise NotFoundError(f"Department '{dept_id}' not found")
        if expected_org is not None and dept.organization_id != expected_org:
            raise NotFoundError(f"Department '{dept_id}' not found")
        return dept

    # ── Department allocations ─────────────────────────────────────────────────

    async def set_dept_allocation(
        self,
        ctx: ServiceContext,
        dept_id: str,
        request: SetDeptAllocationRequest,
        org_id: str | None = None,
    ) -> DeptAllocationResponse:
        self._require(ctx, ORG_MANAGE, "Only organization owners and admins can set department allocations")

        requested = {col: getattr(request, col) for col in DEPT_LIMIT_COLUMNS}

        async with self.session.begin():
            dept = await self._scoped_department(ctx, dept_id, org_id)
            org = await self.repo.get_organization(dept.organization_id, for_update=True)
            pool = org_pool_limits(org, self.plans.org_plan(org.plan))
            others = await self.repo.sum_dept_allocations(org.id, exclude_dept_id=dept_id)

            violations = find_pool_violations(requested, others, pool, scope="organization")
            if violations:
                raise PoolExceededError(
                    f"Department allocation for '{dept.name}' exceeds the organization pool",
                    violations=violations,
                )

            allocation = await self.repo.upsert_dept_allocation(
                dept_id, requested, mode=request.mode, set_by=ctx.user_id
            )

        logger.info("Department allocation set for %s by %s", dept_id, ctx.user_id)
        return DeptAllocationResponse.model_validate(allocation)

    async def get_dept_allocation(
        self, ctx: ServiceContext, dept_id: str, org_id: str | None = None
    ) -> DeptAllocationResponse:
        self._require(ctx, ORG_VIEW, "Organization membership required to view allocations")
        await self._scoped_department(ctx, dept_id, org_id)
        allocation = await self.repo.get_dept_allocation(dept_id)
        if allocation is None:
            raise NotFoundError(f"No allocation set for department '{dept_id}'")
        return DeptAllocationResponse.model_validate(allocation)

    async def list_org_dept_allocations(
        self, ctx: ServiceContext, org_id: str
    ) -> list[DeptAllocationResponse]:
        self._require_org(ctx, ORG_VIEW, org_id, "Organization membership required to view allocations")
        rows = await self.repo.list_org_dept_allocations(org_id)
        return [DeptAllocationResponse.model_validate(r) for r in rows]

    async def remove_dept_allocation(
        self, ctx: ServiceContext, dept_id: str, org_id: str | None = None
    ) -> None:
        self._require(ctx, ORG_MANAGE, "Only organization owners and admins can remove department allocations")

        async with self.session.begin():
            await self._scoped_department(ctx, dept_id, org_id)
            removed = await self.repo.delete_dept_allocation(dept_id)

        if removed:
            logger.info("Department allocation removed for %s by %s", dept_id, ctx.user_id)

    # ── Member allocations ─────────────────────────────────────────────────────

    async def set_member_allocation(
        self,
        ctx: ServiceContext,
        dept_id: str,
        user_id: str,
        request: SetMemberAllocationRequest,
        org_id: str | None = None,
    ) -> MemberAllocationResponse:
        self._require(ctx, ORG_MANAGE, "Only organization owners and admins can set member allocations")

        requested = {col: getattr(request, col) for col in MEMBER_LIMIT_COLUMNS}

        async with self.session.begin():
            dept = await self._scoped_department(ctx, dept_id, org_id, for_update=True)
            if not await self.repo.is_department_member(user_id, dept_id):
                raise NotFoundError(f"User '{user_id}' is not a member of department '{dept_id}'")

            pool = dept_pool_limits(await self.repo.get_dept_allocation(dept_id))
            others = await self.repo.sum_member_allocations(dept_id, exclude_user_id=user_id)

            violations = find_pool_violations(requested, others, pool, scope="department")
            if violations:
                raise PoolExceededError(
                    f"Member allocation exceeds the allocation of department '{dept.name}'",
                    violations=violations,
                )

            allocation = await self.repo.upsert_member_allocation(
                user_id, dept_id, requested, mode=request.mode, set_by=ctx.user_id
            )

        logger.info("Member allocation set for %s in %s by %s", user_id, dept_id, ctx.user_id)
        return MemberAllocationResponse.model_validate(allocation)

    async def get_member_allocation(
        self, ctx: ServiceContext, dept_id: str, user_id: str, org_id: str | None = None
    ) -> MemberAllocationResponse:
        self._require(ctx, ORG_VIEW, "Organization membership required to view allocations")
        await self._scoped_department(ctx, dept_id, org_id)
        allocation = await self.repo.get_member_allocation(user_id, dept_id)
        if allocation is None:
            raise NotFoundError(
                f"No allocation set for user '{user_id}' in department '{dept_id}'"
            )
        return MemberAllocationResponse.model_validate(allocation)

    async def list_dept_member_allocations(
        self, ctx: ServiceContext, dept_id: str, org_id: str | None = None
    ) -> list[MemberAllocationResponse]:
        self._require(ctx, ORG_VIEW, "Organization membership required to view allocations")
        await self._scoped_department(ctx, dept_id, org_id)
        rows = await self.repo.list_dept_member_allocations(dept_id)
        return [MemberAllocationResponse.model_validate(r) for r in rows]

    async def remove_member_allocation(
        self, ctx: ServiceContext, dept_id: str, user_id: str, org_id: str | None = None
    ) -> None:
        self._require(ctx, ORG_MANAGE, "Only organization owners and admins can remove member allocations")

        async with self.session.begin():
            await self._scoped_department(ctx, dept_id, org_id)
            removed = await self.repo.delete_member_allocation(user_id, dept_id)

        if removed:
            logger.info("Member allocation removed for %s in %s by %s", user_id, dept_id, ctx.user_id)

    # ── Credit budgets ─────────────────────────────────────────────────────────

    @staticmethod
    def _credit_row(allocation: DeptAllocation | MemberAllocation | None) -> _CreditRow:
        if allocation is None:
            return _CreditRow(budget=None, used=0, mode=AllocationMode.SOFT_CAP)
        if allocation.credit_budget is None:
            return _CreditRow(
                budget=None,
                used=allocation.credit_used,
                mode=AllocationMode.SOFT_CAP,
                reset_at=allocation.credit_reset_at,
            )
        return _CreditRow(
            budget=allocation.credit_budget,
            used=allocation.credit_used,
            mode=allocation.alloc_mode,
            reset_at=allocation.credit_reset_at,
        )

    @staticmethod
    def _check(row: _CreditRow, required: float) -> CreditBudgetCheck:
        if row.budget is None:
            return CreditBudgetCheck(
                allowed=True, available=math.inf, budget=None, used=row.used, mode=AllocationMode.SOFT_CAP
            )
        remaining = row.budget - row.used
        return CreditBudgetCheck(
            allowed=row.mode != AllocationMode.HARD_CAP or remaining >= required,
            available=max(0, remaining),
            budget=row.budget,
            used=row.used,
            mode=row.mode,
        )

    @staticmethod
    def _status(row: _CreditRow) -> CreditStatus:
        return CreditStatus(
            budget=row.budget,
            used=row.used,
            available=None if row.budget is None else max(0, row.budget - row.used),
            percentage=percentage(row.used, Limit.from_column(row.budget)),
            reset_at=row.reset_at,
        )

    async def check_dept_credit_budget(self, dept_id: str, required: float) -> CreditBudgetCheck:
        """Would spending `required` credits stay within the department budget?

        Only HARD_CAP refuses; SOFT_CAP and RESERVED always allow.
        """
        allocation = await self.repo.get_dept_allocation(dept_id)
        return self._check(self._credit_row(allocation), required)

    async def check_member_credit_budget(
        self, user_id: str, dept_id: str, required: float
    ) -> CreditBudgetCheck:
        allocation = await self.repo.get_member_allocation(user_id, dept_id)
        return self._check(self._credit_row(allocation), required)

    async def record_dept_credit_usage(self, dept_id: str, amount: float) -> float:
        if amount < 0:
            raise ValidationError("Credit usage amount must be >= 0")
        async with self.session.begin():
            used = await self.repo.increment_dept_credit_used(dept_id, amount)
            if used is None:
                raise NotFoundError(f"No allocation set for department '{dept_id}'")
        logger.debug("Recorded %s credits for department %s (used=%s)", amount, dept_id, used)
        return used

    async def record_member_credit_usage(
        self, user_id: str, dept_id: str, amount: float
    ) -> float:
        if amount < 0:
            raise ValidationError("Credit usage amount must be >= 0")
        async with self.session.begin():
            used = await self.repo.increment_member_credit_used(user_id, dept_id, amount)
            if used is None:
                raise NotFoundError(
                    f"No allocation set for user '{user_id}' in department '{dept_id}'"
                )
        logger.debug(
            "Recorded %s credits for member %s in %s (used=%s)", amount, user_id, dept_id, used
        )
        return used

    async def get_dept_credit_status(
        self, ctx: ServiceContext, dept_id: str, org_id: str | None = None
    ) -> CreditStatus:
        self._require(ctx, ORG_VIEW, "Organization membership required to view credit budgets")
        await self._scoped_department(ctx, dept_id, org_id)
        return self._status(self._credit_row(await self.repo.get_dept_allocation(dept_id)))

    async def get_member_credit_status(
        self, ctx: ServiceContext, dept_id: str, user_id: str, org_id: str | None = None
    ) -> CreditStatus:
        self._require(ctx, ORG_VIEW, "Organization membership required to view credit budgets")
        await self._scoped_department(ctx, dept_id, org_id)
        allocation = await self.repo.get_member_allocation(user_id, dept_id)
        return self._status(self._credit_row(allocation))

    # ── Resets ─────────────────────────────────────────────────────────────────

    async def reset_all_credit_usage(
        self, ctx: ServiceContext, stale_before: datetime | None = None
    ) -> CreditResetResult:
        """Zero credit usage on every allocation row, or only those last reset before stale_before."""
        self._require(ctx, PLATFORM_MANAGE, "Only platform administrators can reset all credit usage")
        async with self.session.begin():
            depts, members = await self.repo.reset_credit_usage(
                datetime.now(UTC), stale_before=stale_before
            )
        logger.info("Reset credit usage: %d departments, %d members", depts, members)
        return CreditResetResult(dept_count=depts, member_count=members)

    async def reset_org_credit_usage(self, ctx: ServiceContext, org_id: str) -> CreditResetResult:
        self._require_org(ctx, ORG_MANAGE, org_id, "Only organization owners and admins can reset credit usage")
        async with self.session.begin():
            await self.repo.get_organization(org_id)
            depts, members = await self.repo.reset_credit_usage(datetime.now(UTC), org_id=org_id)
        logger.info(
            "Reset credit usage for org %s: %d departments, %d members", org_id, depts, members
        )
        return CreditResetResult(dept_count=depts, member_count=members)
