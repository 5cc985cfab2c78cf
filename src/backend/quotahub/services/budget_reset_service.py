"""Monthly credit budget reset.

run_monthly_reset() is scheduled by APScheduler on the first of the month
(see main.py). catch_up_missed_reset() runs once at startup and resets only
when some allocation row was last reset before the current month, so a reset
missed while the service was down is applied late.

Both reset only rows whose credit_reset_at is NULL or before the start of the
current UTC month; a second run in the same month finds nothing to do.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from quotahub.auth.permissions import ServiceContext
from quotahub.plans import PlanCatalog
from quotahub.repositories.allocation_repo import AllocationRepository
from quotahub.schemas.allocation import CreditResetResult
from quotahub.services.allocation_service import AllocationService

logger = logging.getLogger(__name__)


def month_start(now: datetime) -> datetime:
    current = now.astimezone(UTC)
    return datetime(current.year, current.month, 1, tzinfo=UTC)


class BudgetResetService:
    def __init__(self, session: AsyncSession, plans: PlanCatalog | None = None) -> None:
        self.repo = AllocationRepository(session)
        self.allocations = AllocationService(session, plans or PlanCatalog.default())
        self.session = session

    async def has_pending_resets(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        return await self.repo.count_stale_credit_rows(month_start(now)) > 0

    async def run_monthly_reset(self, now: datetime | None = None) -> CreditResetResult:
        """Reset every department and member row not yet reset this month."""
        now = now or datetime.now(UTC)
        result = await self.allocations.reset_all_credit_usage(
            ServiceContext.system(), stale_before=month_start(now)
        )
        logger.info(
            "Monthly credit reset complete: %d departments, %d members",
            result.dept_count,
            result.member_count,
        )
        return result

    async def catch_up_missed_reset(self, now: datetime | None = None) -> CreditResetResult | None:
        if not await self.has_pending_resets(now):
            logger.info("Monthly credit reset: nothing pending")
            return None
        # has_pending_resets autobegins a read transaction; close it before the write.
        await self.session.commit()
        logger.warning("Applying a missed monthly credit reset")
        return await self.run_monthly_reset(now)
