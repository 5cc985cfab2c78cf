"""Usage tracker: time-windowed consumption counters in the counter store.

Counter keys: usage:{metric}:{owner_id}:{yyyy-mm}, each expiring after
USAGE_COUNTER_TTL_DAYS so one billing month plus a buffer survives.

track_*() never raise: a counter-store failure is logged and dropped so the
operation being measured is never blocked. Reads propagate
StoreUnavailableError.

History buckets are read from usage:history:{owner_id}:{period}:{key}.
Missing buckets come back as all-zero records; evicted history is lost.
"""

import json
import logging
import math
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from pydantic import ValidationError as PydanticValidationError

from quotahub.errors import StoreUnavailableError, ValidationError
from quotahub.schemas.usage import (
    CreditCategory,
    PeriodType,
    RealTimeUsage,
    UsageMetricName,
    UsageRecord,
)
from quotahub.usage.counter_store import CounterStore

logger = logging.getLogger(__name__)

_PREFIX = "usage"
_SECONDS_PER_DAY = 86400
DEFAULT_TTL_DAYS = 32
MAX_HISTORY_PERIODS = 365

_REAL_TIME_METRICS: tuple[tuple[str, UsageMetricName], ...] = (
    ("workflow_runs", UsageMetricName.WORKFLOW_RUNS),
    ("workflow_steps", UsageMetricName.WORKFLOW_STEPS),
    ("gateway_requests", UsageMetricName.GATEWAY_REQUESTS),
    ("plugin_executions", UsageMetricName.PLUGIN_EXECUTIONS),
    ("credits_used", UsageMetricName.CREDITS_TOTAL),
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def owner_key(
    user_id: str | None = None,
    organization_id: str | None = None,
    department_id: str | None = None,
) -> str:
    """Owner id used in counter keys for each context level."""
    if department_id and user_id:
        return f"{department_id}:{user_id}"
    if department_id:
        return department_id
    if organization_id:
        return organization_id
    if user_id:
        return user_id
    raise ValidationError("An owner key needs at least one of user, organization or department")


def month_key(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


def next_month_start(moment: datetime) -> datetime:
    if moment.month == 12:
        return datetime(moment.year + 1, 1, 1, tzinfo=UTC)
    return datetime(moment.year, moment.month + 1, 1, tzinfo=UTC)


def period_start(now: datetime, period_type: PeriodType, offset: int) -> datetime:
    """Start of the bucket `offset` periods before the one containing `now`."""
    if period_type is PeriodType.HOURLY:
        top = now.replace(minute=0, second=0, microsecond=0)
        return top - timedelta(hours=offset)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period_type is PeriodType.DAILY:
        return midnight - timedelta(days=offset)
    if period_type is PeriodType.WEEKLY:
        return midnight - timedelta(days=7 * offset)
    months = now.year * 12 + (now.month - 1) - offset
    return midnight.replace(year=months // 12, month=months % 12 + 1, day=1)


def period_key(moment: datetime, period_type: PeriodType) -> str:
    if period_type is PeriodType.HOURLY:
        return moment.strftime("%Y-%m-%d-%H")
    if period_type is PeriodType.DAILY:
        return moment.strftime("%Y-%m-%d")
    if period_type is PeriodType.WEEKLY:
        iso = moment.isocalendar()
        return f"{iso.year:04d}-W{iso.week:02d}"
    return month_key(moment)


def periods_between(start: datetime, end: datetime, period_type: PeriodType) -> int:
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0
    days = seconds / _SECONDS_PER_DAY
    if period_type is PeriodType.HOURLY:
        count = math.ceil(seconds / 3600)
    elif period_type is PeriodType.DAILY:
        count = math.ceil(days)
    elif period_type is PeriodType.WEEKLY:
        count = math.ceil(days / 7)
    else:
        count = math.ceil(days / 30)
    return min(count, MAX_HISTORY_PERIODS)


class UsageTracker:
    def __init__(
        self,
        store: CounterStore,
        ttl_days: int = DEFAULT_TTL_DAYS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_days * _SECONDS_PER_DAY
        self.clock = clock

    def counter_key(self, owner_id: str, metric: str) -> str:
        return f"{_PREFIX}:{metric}:{owner_id}:{month_key(self.clock())}"

    async def _bump(self, owner_id: str, metric: str, amount: float = 1) -> None:
        key = self.counter_key(owner_id, metric)
        try:
            if isinstance(amount, float):
                await self.store.increment_by_float(key, amount)
            elif amount == 1:
                await self.store.increment(key)
            else:
                await self.store.increment_by(key, amount)
            await self.store.expire(key, self.ttl_seconds)
        except StoreUnavailableError as exc:
            logger.warning("Dropped usage increment %s for owner %s: %s", metric, owner_id, exc)

    # ── Tracking ───────────────────────────────────────────────────────────────

    async def track_workflow_run(self, owner_id: str, workflow_id: str, steps: int = 0) -> None:
        await self._bump(owner_id, UsageMetricName.WORKFLOW_RUNS.value)
        if steps:
            await self._bump(owner_id, UsageMetricName.WORKFLOW_STEPS.value, steps)
        logger.debug("Tracked workflow run %s (%d steps)", workflow_id, steps)

    async def track_gateway_request(self, owner_id: str, gateway_id: str) -> None:
        await self._bump(owner_id, UsageMetricName.GATEWAY_REQUESTS.value)
        logger.debug("Tracked gateway request %s", gateway_id)

    async def track_plugin_execution(self, owner_id: str, plugin_id: str) -> None:
        await self._bump(owner_id, UsageMetricName.PLUGIN_EXECUTIONS.value)
        logger.debug("Tracked plugin execution %s", plugin_id)

    async def track_api_call(self, owner_id: str) -> None:
        await self._bump(owner_id, UsageMetricName.API_CALLS.value)

    async def track_error(self, owner_id: str, error_type: str) -> None:
        await self._bump(owner_id, f"{UsageMetricName.ERRORS.value}:{error_type}")

    async def track_credit_usage(
        self, owner_id: str, amount: float, category: CreditCategory
    ) -> None:
        category = CreditCategory(category)
        await self._bump(owner_id, f"credits_{category.value}", float(amount))
        await self._bump(owner_id, UsageMetricName.CREDITS_TOTAL.value, float(amount))
        logger.debug("Tracked %s credits (%s) for owner %s", amount, category.value, owner_id)

    # ── Reading ────────────────────────────────────────────────────────────────

    async def get_usage(self, owner_id: str, metric: UsageMetricName | str) -> float:
        name = metric.value if isinstance(metric, UsageMetricName) else metric
        value = await self.store.get(self.counter_key(owner_id, name))
        return float(value) if value else 0.0

    async def get_real_time_usage(self, owner_id: str) -> RealTimeUsage:
        keys = [self.counter_key(owner_id, metric.value) for _, metric in _REAL_TIME_METRICS]
        values = await self.store.get_many(keys)
        return RealTimeUsage(
            **{
                field: float(value) if value else 0.0
                for (field, _), value in zip(_REAL_TIME_METRICS, values)
            }
        )

    async def get_usage_history(
        self, owner_id: str, period_type: PeriodType, periods: int = 30
    ) -> list[UsageRecord]:
        """Return `periods` buckets ending now, oldest first."""
        period_type = PeriodType(period_type)
        if periods <= 0:
            return []
        periods = min(periods, MAX_HISTORY_PERIODS)
        now = self.clock()
        starts = [period_start(now, period_type, offset) for offset in range(periods)]
        starts.reverse()
        keys = [period_key(start, period_type) for start in starts]
        raw_values = await self.store.get_many(
            [f"{_PREFIX}:history:{owner_id}:{period_type.value}:{key}" for key in keys]
        )
        return [
            self._parse_bucket(start, key, period_type, raw)
            for start, key, raw in zip(starts, keys, raw_values)
        ]

    async def get_history(
        self, owner_id: str, period_type: PeriodType, start: datetime, end: datetime
    ) -> list[UsageRecord]:
        return await self.get_usage_history(
            owner_id, period_type, periods_between(start, end, PeriodType(period_type))
        )

    def _parse_bucket(
        self, start: datetime, key: str, period_type: PeriodType, raw: str | None
    ) -> UsageRecord:
        empty = UsageRecord(period_start=start, period_type=period_type, period_key=key)
        if not raw:
            return empty
        try:
            data = json.loads(raw)
            return empty.model_copy(
                update={k: float(v) for k, v in data.items() if k in _COUNTER_FIELDS}
            )
        except (ValueError, TypeError, AttributeError, PydanticValidationError) as exc:
            logger.warning("Ignoring malformed usage bucket %s: %s", key, exc)
            return empty


_COUNTER_FIELDS = frozenset(
    {
        "workflow_runs",
        "workflow_steps",
        "gateway_requests",
        "plugin_executions",
        "credits_used",
        "errors",
    }
)
