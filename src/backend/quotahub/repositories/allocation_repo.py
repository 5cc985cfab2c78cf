"""Repository for dept_allocations / member_allocations and the org rows they hang off.

Parent rows (organization for department writes, department for member
writes) are read with .with_for_update() so concurrent sibling writes are
serialized and each one re-validates against the latest sums.

credit_used only changes through increment_*_credit_used (a single
UPDATE ... SET credit_used = credit_used + :amount) or reset_credit_usage.
New rows are stamped with credit_reset_at = now(), so the monthly reset only
picks them up once the month they were created in is over.
"""

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from quotahub.errors import NotFoundError
from quotahub.models.allocation import AllocationMode, DeptAllocation, MemberAllocation
from quotahub.models.org import Department, DepartmentMember, Organization, User

DEPT_LIMIT_COLUMNS: tuple[str, ...] = (
    "max_gateways",
    "max_plugins",
    "max_workflows",
    "credit_budget",
    "max_ram_mb",
    "max_cpu_cores",
    "max_storage_mb",
)

MEMBER_LIMIT_COLUMNS: tuple[str, ...] = tuple(c for c in DEPT_LIMIT_COLUMNS if c != "max_plugins")


class AllocationRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ── Org navigation ─────────────────────────────────────────────────────────

    async def get_organization(self, org_id: str, for_update: bool = False) -> Organization:
        stmt = select(Organization).where(Organization.id == org_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"Organization '{org_id}' not found")
        return row

    async def get_department(self, dept_id: str, for_update: bool = False) -> Department:
        stmt = select(Department).where(Department.id == dept_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"Department '{dept_id}' not found")
        return row

    async def get_user(self, user_id: str) -> User:
        result = await self.session.execute(select(User).where(User.id == user_id))
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"User '{user_id}' not found")
        return row

    async def is_department_member(self, user_id: str, dept_id: str) -> bool:
        result = await self.session.execute(
            select(func.count())
            .select_from(DepartmentMember)
            .where(DepartmentMember.user_id == user_id, DepartmentMember.department_id == dept_id)
        )
        return result.scalar_one() > 0

    # ── Department allocations ─────────────────────────────────────────────────

    async def get_dept_allocation(self, dept_id: str) -> DeptAllocation | None:
        result = await self.session.execute(
            select(DeptAllocation).where(DeptAllocation.department_id == dept_id)
        )
        return result.scalar_one_or_none()

    async def list_org_dept_allocations(self, org_id: str) -> list[DeptAllocation]:
        result = await self.session.execute(
            select(DeptAllocation)
            .join(Department, Department.id == DeptAllocation.department_id)
            .where(Department.organization_id == org_id)
        )
        return list(result.scalars().all())

    async def sum_dept_allocations(
        self, org_id: str, exclude_dept_id: str | None = None
    ) -> dict[str, float]:
        """Per-column sum of the org's department maxima (NULL counts as 0), optionally minus one."""
        stmt = (
            select(
                *(
                    func.coalesce(func.sum(getattr(DeptAllocation, col)), 0)
                    for col in DEPT_LIMIT_COLUMNS
                )
            )
            .join(Department, Department.id == DeptAllocation.department_id)
            .where(Department.organization_id == org_id)
        )
        if exclude_dept_id is not None:
            stmt = stmt.where(DeptAllocation.department_id != exclude_dept_id)
        result = await self.session.execute(stmt)
        row = result.one()
        return {col: float(row[i]) for i, col in enumerate(DEPT_LIMIT_COLUMNS)}

    async def upsert_dept_allocation(
        self,
        dept_id: str,
        limits: dict[str, float | None],
        mode: AllocationMode,
        set_by: str,
    ) -> DeptAllocation:
        values = {col: limits.get(col) for col in DEPT_LIMIT_COLUMNS}
        stmt = (
            pg_insert(DeptAllocation)
            .values(
                department_id=dept_id,
                alloc_mode=mode,
                set_by=set_by,
                credit_reset_at=func.now(),
                **values,
            )
            .on_conflict_do_update(
                index_elements=["department_id"],
                set_={**values, "alloc_mode": mode, "set_by": set_by, "updated_at": sa.text("now()")},
            )
            .returning(DeptAllocation)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one()
        await self.session.flush()
        return row

    async def delete_dept_allocation(self, dept_id: str) -> bool:
        result = await self.session.execute(
            delete(DeptAllocation).where(DeptAllocation.department_id == dept_id)
        )
        return result.rowcount > 0

    async def increment_dept_credit_used(self, dept_id: str, amount: float) -> float | None:
        """Return the new credit_used, or None when the department has no allocation row."""
        result = await self.session.execute(
            update(DeptAllocation)
            .where(DeptAllocation.department_id == dept_id)
            .values(credit_used=DeptAllocation.credit_used + amount)
            .returning(DeptAllocation.credit_used)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    # ── Member allocations ─────────────────────────────────────────────────────

    async def get_member_allocation(self, user_id: str, dept_id: str) -> MemberAllocation | None:
        result = await self.session.execute(
            select(MemberAllocation).where(
                MemberAllocation.user_id == user_id,
                MemberAllocation.department_id == dept_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_dept_member_allocations(self, dept_id: str) -> list[MemberAllocation]:
        result = await self.session.execute(
            select(MemberAllocation).where(MemberAllocation.department_id == dept_id)
        )
        return list(result.scalars().all())

    async def sum_member_allocations(
        self, dept_id: str, exclude_user_id: str | None = None
    ) -> dict[str, float]:
        stmt = select(
            *(
                func.coalesce(func.sum(getattr(MemberAllocation, col)), 0)
                for col in MEMBER_LIMIT_COLUMNS
            )
        ).where(MemberAllocation.department_id == dept_id)
        if exclude_user_id is not None:
            stmt = stmt.where(MemberAllocation.user_id != exclude_user_id)
        result = await self.session.execute(stmt)
        row = result.one()
        return {col: float(row[i]) for i, col in enumerate(MEMBER_LIMIT_COLUMNS)}

    async def upsert_member_allocation(
        self,
        user_id: str,
        dept_id: str,
        limits: dict[str, float | None],
        mode: AllocationMode,
        set_by: str,
    ) -> MemberAllocation:
        values = {col: limits.get(col) for col in MEMBER_LIMIT_COLUMNS}
        stmt = (
            pg_insert(MemberAllocation)
            .values(
                user_id=user_id,
                department_id=dept_id,
                alloc_mode=mode,
                set_by=set_by,
                credit_reset_at=func.now(),
                **values,
            )
            .on_conflict_do_update(
                index_elements=["user_id", "department_id"],
                set_={**values, "alloc_mode": mode, "set_by": set_by, "updated_at": sa.text("now()")},
            )
            .returning(MemberAllocation)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one()
        await self.session.flush()
        return row

    async def delete_member_allocation(self, user_id: str, dept_id: str) -> bool:
        result = await self.session.execute(
            delete(MemberAllocation).where(
                MemberAllocation.user_id == user_id,
                MemberAllocation.department_id == dept_id,
            )
        )
        return result.rowcount > 0

    async def increment_member_credit_used(
        self, user_id: str, dept_id: str, amount: float
    ) -> float | None:
        result = await self.session.execute(
            update(MemberAllocation)
            .where(
                MemberAllocation.user_id == user_id,
                MemberAllocation.department_id == dept_id,
            )
            .values(credit_used=MemberAllocation.credit_used + amount)
            .returning(MemberAllocation.credit_used)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    # ── Credit resets ──────────────────────────────────────────────────────────

    async def reset_credit_usage(
        self,
        now: datetime,
        org_id: str | None = None,
        stale_before: datetime | None = None,
    ) -> tuple[int, int]:
        """Zero credit_used and stamp credit_reset_at on matching rows. Returns (depts, members).

        stale_before limits the reset to rows last reset before that moment,
        which is what makes the monthly job safe to repeat.
        """
        counts: list[int] = []
        for model in (DeptAllocation, MemberAllocation):
            stmt = (
                update(model)
                .where(*credit_reset_filter(model, org_id=org_id, stale_before=stale_before))
                .values(credit_used=0, credit_reset_at=now)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            counts.append(result.rowcount)
        return counts[0], counts[1]

    async def count_stale_credit_rows(self, stale_before: datetime) -> int:
        """Rows, across both tables, the monthly reset starting at stale_before would touch."""
        total = 0
        for model in (DeptAllocation, MemberAllocation):
            result = await self.session.execute(
                select(func.count())
                .select_from(model)
                .where(*credit_reset_filter(model, stale_before=stale_before))
            )
            total += result.scalar_one()
        return total


def credit_reset_filter(
    model: type[DeptAllocation] | type[MemberAllocation],
    org_id: str | None = None,
    stale_before: datetime | None = None,
) -> list:
    """WHERE clauses shared by reset_credit_usage and count_stale_credit_rows."""
    clauses = []
    if org_id is not None:
        clauses.append(
            model.department_id.in_(
                select(Department.id).where(Department.organization_id == org_id)
            )
        )
    if stale_before is not None:
        clauses.append(
            sa.or_(model.credit_reset_at.is_(None), model.credit_reset_at < stale_before)
        )
    return clauses
