"""Tests for the usage tracker.

Covers:
- counter key format usage:{metric}:{owner}:{yyyy-mm} with a TTL on every write
- an owner with no activity reads all zeros without pre-existing keys
- track_* swallows store failures; reads propagate them
- credit usage bumps the category and the total
- history buckets: count, order, key formats, missing and malformed buckets
- owner keys per context level
"""

import json
from datetime import UTC, datetime

import pytest
from conftest import FakeCounterStore

from quotahub.errors import StoreUnavailableError, ValidationError
from quotahub.schemas.usage import CreditCategory, PeriodType, UsageMetricName
from quotahub.services.usage_tracker import (
    UsageTracker,
    next_month_start,
    owner_key,
    period_key,
    periods_between,
)


def _tracker(store, now: datetime) -> UsageTracker:
    return UsageTracker(store, ttl_days=32, clock=lambda: now)


class TestOwnerKey:
    def test_levels(self):
        assert owner_key(user_id="u1") == "u1"
        assert owner_key(organization_id="o1") == "o1"
        assert owner_key(organization_id="o1", department_id="d1") == "d1"
        assert owner_key(user_id="u1", department_id="d1") == "d1:u1"

    def test_empty_owner_rejected(self):
        with pytest.raises(ValidationError):
            owner_key()


class TestTracking:
    async def test_counter_key_and_ttl(self, store, fixed_now):
        tracker = _tracker(store, fixed_now)
        await tracker.track_gateway_request("org-1", "gw-1")
        key = "usage:gateway_requests:org-1:2026-03"
        assert store.values[key] == "1"
        assert store.ttls[key] == 32 * 86400

    async def test_workflow_run_with_steps(self, store, fixed_now):
        tracker = _tracker(store, fixed_now)
        await tracker.track_workflow_run("u1", "wf-1", steps=4)
        await tracker.track_workflow_run("u1", "wf-1", steps=3)
        assert await tracker.get_usage("u1", UsageMetricName.WORKFLOW_RUNS) == 2
        assert await tracker.get_usage("u1", UsageMetricName.WORKFLOW_STEPS) == 7

    async def test_credit_usage_bumps_category_and_total(self, store, fixed_now):
        tracker = _tracker(store, fixed_now)
        await tracker.track_credit_usage("u1", 2.5, CreditCategory.AI)
        await tracker.track_credit_usage("u1", 1.5, "marketplace")
        assert await tracker.get_usage("u1", UsageMetricName.CREDITS_AI) == 2.5
        assert await tracker.get_usage("u1", UsageMetricName.CREDITS_MARKETPLACE) == 1.5
        assert await tracker.get_usage("u1", UsageMetricName.CREDITS_TOTAL) == 4.0

    async def test_errors_are_tracked_per_type(self, store, fixed_now):
        tracker = _tracker(store, fixed_now)
        await tracker.track_error("u1", "timeout")
        assert await tracker.get_usage("u1", "errors:timeout") == 1

    async def test_store_failure_is_swallowed_on_write(self, fixed_now):
        tracker = _tracker(FakeCounterStore(fail=True), fixed_now)
        await tracker.track_api_call("u1")
        await tracker.track_plugin_execution("u1", "p-1")
        await tracker.track_credit_usage("u1", 3, CreditCategory.AI)

    async def test_store_failure_propagates_on_read(self, fixed_now):
        tracker = _tracker(FakeCounterStore(fail=True), fixed_now)
        with pytest.raises(StoreUnavailableError):
            await tracker.get_real_time_usage("u1")

    async def test_counters_roll_over_by_month(self, store):
        march = _tracker(store, datetime(2026, 3, 31, 23, 59, tzinfo=UTC))
        april = _tracker(store, datetime(2026, 4, 1, 0, 1, tzinfo=UTC))
        await march.track_api_call("u1")
        assert await april.get_usage("u1", UsageMetricName.API_CALLS) == 0


class TestRealTimeUsage:
    async def test_no_activity_reads_all_zeros(self, store, fixed_now):
        usage = await _tracker(store, fixed_now).get_real_time_usage("fresh-owner")
        assert usage.workflow_runs == 0
        assert usage.workflow_steps == 0
        assert usage.gateway_requests == 0
        assert usage.plugin_executions == 0
        assert usage.credits_used == 0
        assert store.values == {}

    async def test_reflects_tracked_counters(self, store, fixed_now):
        tracker = _tracker(store, fixed_now)
        await tracker.track_gateway_request("o1", "gw")
        await tracker.track_gateway_request("o1", "gw")
        await tracker.track_credit_usage("o1", 10, CreditCategory.AI)
        usage = await tracker.get_real_time_usage("o1")
        assert usage.gateway_requests == 2
        assert usage.credits_used == 10


class TestHistory:
    @pytest.mark.parametrize(
        "period_type,expected",
        [
            (PeriodType.HOURLY, "2026-03-15-10"),
            (PeriodType.DAILY, "2026-03-15"),
            (PeriodType.WEEKLY, "2026-W11"),
            (PeriodType.MONTHLY, "2026-03"),
        ],
    )
    def test_period_key_formats(self, fixed_now, period_type, expected):
        assert period_key(fixed_now, period_type) == expected

    def test_weekly_key_uses_iso_year(self):
        assert period_key(datetime(2027, 1, 1, tzinfo=UTC), PeriodType.WEEKLY) == "2026-W53"

    async def test_missing_buckets_are_zero_and_ordered(self, store, fixed_now):
        records = await _tracker(store, fixed_now).get_usage_history("u1", PeriodType.DAILY, 3)
        assert [r.period_key for r in records] == ["2026-03-13", "2026-03-14", "2026-03-15"]
        assert all(r.workflow_runs == 0 for r in records)

    async def test_monthly_buckets_cross_year(self, store, fixed_now):
        records = await _tracker(store, fixed_now).get_usage_history("u1", PeriodType.MONTHLY, 4)
        assert [r.period_key for r in records] == ["2025-12", "2026-01", "2026-02", "2026-03"]

    async def test_stored_bucket_is_read(self, store, fixed_now):
        store.values["usage:history:u1:DAILY:2026-03-15"] = json.dumps(
            {"workflow_runs": 5, "credits_used": 1.5, "ignored": 9}
        )
        records = await _tracker(store, fixed_now).get_usage_history("u1", PeriodType.DAILY, 1)
        assert records[0].workflow_runs == 5
        assert records[0].credits_used == 1.5

    async def test_malformed_bucket_reads_as_zero(self, store, fixed_now):
        store.values["usage:history:u1:DAILY:2026-03-15"] = "{not json"
        records = await _tracker(store, fixed_now).get_usage_history("u1", PeriodType.DAILY, 1)
        assert records[0].workflow_runs == 0

    async def test_zero_periods_returns_empty(self, store, fixed_now):
        assert await _tracker(store, fixed_now).get_usage_history("u1", PeriodType.DAILY, 0) == []

    async def test_date_range_history(self, store, fixed_now):
        start = datetime(2026, 3, 8, tzinfo=UTC)
        end = datetime(2026, 3, 15, tzinfo=UTC)
        records = await _tracker(store, fixed_now).get_history("u1", PeriodType.DAILY, start, end)
        assert len(records) == 7

    def test_periods_between_is_capped(self):
        start = datetime(2020, 1, 1, tzinfo=UTC)
        end = datetime(2026, 1, 1, tzinfo=UTC)
        assert periods_between(start, end, PeriodType.DAILY) == 365
        assert periods_between(end, start, PeriodType.DAILY) == 0

    def test_next_month_start(self):
        assert next_month_start(datetime(2026, 12, 20, tzinfo=UTC)) == datetime(2027, 1, 1, tzinfo=UTC)
