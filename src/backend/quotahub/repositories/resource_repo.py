"""Read-only queries behind resource status snapshots: entity counts, wallets, memberships."""

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from quotahub.models.automation import Gateway, UserPlugin, Workflow
from quotahub.models.org import CreditWallet, Department, DepartmentMember, Membership


@dataclass(frozen=True)
class OwnerFilter:
    """Which automation entities count toward an owner.

    personal   -> user_id set, organization_id None
    org        -> organization_id set
    department -> department_id set
    member     -> department_id and user_id set
    """

    user_id: str | None = None
    organization_id: str | None = None
    department_id: str | None = None

    @classmethod
    def personal(cls, user_id: str) -> "OwnerFilter":
        return cls(user_id=user_id)

    @classmethod
    def organization(cls, org_id: str) -> "OwnerFilter":
        return cls(organization_id=org_id)

    @classmethod
    def department(cls, dept_id: str) -> "OwnerFilter":
        return cls(department_id=dept_id)

    @classmethod
    def member(cls, dept_id: str, user_id: str) -> "OwnerFilter":
        return cls(user_id=user_id, department_id=dept_id)

    def clauses(self, model) -> list:
        if self.department_id is not None:
            clauses = [model.department_id == self.department_id]
            if self.user_id is not None:
                clauses.append(model.user_id == self.user_id)
            return clauses
        if self.organization_id is not None:
            return [model.organization_id == self.organization_id]
        return [model.user_id == self.user_id, model.organization_id.is_(None)]


@dataclass(frozen=True)
class AutomationCounts:
    gateways: int = 0
    plugins: int = 0
    workflows: int = 0


class ResourceRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _count(self, model, owner: OwnerFilter) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(model).where(*owner.clauses(model))
        )
        return int(result.scalar_one())

    async def count_automation(self, owner: OwnerFilter) -> AutomationCounts:
        return AutomationCounts(
            gateways=await self._count(Gateway, owner),
            plugins=await self._count(UserPlugin, owner),
            workflows=await self._count(Workflow, owner),
        )

    async def get_wallet_balance(
        self, user_id: str | None = None, organization_id: str | None = None
    ) -> float:
        """Balance of the user's or the organization's wallet; 0 when none exists."""
        stmt = select(CreditWallet.balance)
        if organization_id is not None:
            stmt = stmt.where(CreditWallet.organization_id == organization_id)
        else:
            stmt = stmt.where(CreditWallet.user_id == user_id)
        result = await self.session.execute(stmt)
        balance = result.scalar_one_or_none()
        return float(balance) if balance is not None else 0.0

    async def count_org_members(self, org_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(Membership).where(Membership.organization_id == org_id)
        )
        return int(result.scalar_one())

    async def count_departments(self, org_id: str, active_only: bool = True) -> int:
        stmt = select(func.count()).select_from(Department).where(Department.organization_id == org_id)
        if active_only:
            stmt = stmt.where(Department.is_active.is_(True))
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def count_department_members(self, dept_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(DepartmentMember)
            .where(DepartmentMember.department_id == dept_id)
        )
        return int(result.scalar_one())

    async def get_membership_role(self, user_id: str, org_id: str) -> str | None:
        result = await self.session.execute(
            select(Membership.role).where(
                Membership.user_id == user_id, Membership.organization_id == org_id
            )
        )
        return result.scalar_one_or_none()
