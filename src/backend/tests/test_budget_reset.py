"""Tests for the monthly credit reset job."""

from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

from quotahub.services.budget_reset_service import BudgetResetService, month_start

MARCH = datetime(2026, 3, 1, tzinfo=UTC)


def _make_service() -> tuple[BudgetResetService, MagicMock, MagicMock]:
    """Return (service, read_repo, write_repo)."""
    session = MagicMock()
    session.commit = AsyncMock()
    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=None)
    ctx.__aexit__ = AsyncMock(return_value=False)
    session.begin = MagicMock(return_value=ctx)

    svc = BudgetResetService(session)
    svc.repo = AsyncMock()
    svc.allocations.repo = AsyncMock()
    return svc, svc.repo, svc.allocations.repo


class TestMonthStart:
    def test_mid_month(self):
        assert month_start(datetime(2026, 3, 15, 10, 30, tzinfo=UTC)) == MARCH

    def test_first_instant_of_month(self):
        assert month_start(MARCH) == MARCH

    def test_converts_to_utc_first(self):
        # 2026-03-01 01:00 at UTC+2 is still February in UTC.
        local = datetime(2026, 3, 1, 1, 0, tzinfo=timezone(timedelta(hours=2)))
        assert month_start(local) == datetime(2026, 2, 1, tzinfo=UTC)


class TestPendingResets:
    async def test_counts_rows_last_reset_before_month_start(self):
        svc, read_repo, _ = _make_service()
        read_repo.count_stale_credit_rows = AsyncMock(return_value=2)

        assert await svc.has_pending_resets(datetime(2026, 3, 15, tzinfo=UTC))
        read_repo.count_stale_credit_rows.assert_called_once_with(MARCH)

    async def test_no_stale_rows(self):
        svc, read_repo, _ = _make_service()
        read_repo.count_stale_credit_rows = AsyncMock(return_value=0)

        assert not await svc.has_pending_resets(datetime(2026, 3, 15, tzinfo=UTC))


class TestRunMonthlyReset:
    async def test_resets_rows_older_than_month_start(self):
        svc, read_repo, write_repo = _make_service()
        write_repo.reset_credit_usage = AsyncMock(return_value=(3, 7))

        result = await svc.run_monthly_reset(datetime(2026, 3, 1, 0, 5, tzinfo=UTC))

        assert result.dept_count == 3
        assert result.member_count == 7
        assert write_repo.reset_credit_usage.call_args.kwargs["stale_before"] == MARCH
        read_repo.count_stale_credit_rows.assert_not_called()

    async def test_mid_month_run_only_targets_stale_rows(self):
        # Rows created or reset this month carry credit_reset_at >= MARCH and are left alone.
        svc, _, write_repo = _make_service()
        write_repo.reset_credit_usage = AsyncMock(return_value=(0, 0))

        result = await svc.run_monthly_reset(datetime(2026, 3, 20, tzinfo=UTC))

        assert result.dept_count == 0
        assert write_repo.reset_credit_usage.call_args.kwargs["stale_before"] == MARCH
        assert "org_id" not in write_repo.reset_credit_usage.call_args.kwargs

    async def test_repeated_runs_use_the_same_window(self):
        svc, _, write_repo = _make_service()
        write_repo.reset_credit_usage = AsyncMock(side_effect=[(2, 5), (0, 0)])

        now = datetime(2026, 4, 1, 0, 5, tzinfo=UTC)
        first = await svc.run_monthly_reset(now)
        second = await svc.run_monthly_reset(now)

        assert (first.dept_count, first.member_count) == (2, 5)
        assert (second.dept_count, second.member_count) == (0, 0)
        windows = [c.kwargs["stale_before"] for c in write_repo.reset_credit_usage.call_args_list]
        assert windows == [datetime(2026, 4, 1, tzinfo=UTC)] * 2


class TestCatchUpMissedReset:
    async def test_nothing_pending_skips_write(self):
        svc, read_repo, write_repo = _make_service()
        read_repo.count_stale_credit_rows = AsyncMock(return_value=0)

        assert await svc.catch_up_missed_reset(datetime(2026, 3, 15, tzinfo=UTC)) is None
        read_repo.count_stale_credit_rows.assert_called_once_with(MARCH)
        write_repo.reset_credit_usage.assert_not_called()
        svc.session.commit.assert_not_called()

    async def test_stale_member_rows_trigger_reset(self):
        # Only member rows are stale; the count covers both tables so the reset still runs.
        svc, read_repo, write_repo = _make_service()
        read_repo.count_stale_credit_rows = AsyncMock(return_value=4)
        write_repo.reset_credit_usage = AsyncMock(return_value=(0, 4))

        result = await svc.catch_up_missed_reset(datetime(2026, 3, 15, tzinfo=UTC))

        assert result.member_count == 4
        svc.session.commit.assert_called_once()
        assert write_repo.reset_credit_usage.call_args.kwargs["stale_before"] == MARCH
