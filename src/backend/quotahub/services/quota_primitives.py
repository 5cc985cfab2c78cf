"""Quota primitives -- stateless, no DB access.

Limit is the single internal representation of a ceiling. Plan tables use -1
for "no ceiling" and allocation rows use NULL; both become Limit.unlimited()
at the boundary where they are loaded, so no arithmetic ever sees -1.

Percentage rule:
  percentage = clamp(round_half_up(100 * used / limit), 0, 100)
  0 when the limit is unlimited or 0.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from quotahub.schemas.resource import (
    AllocatedResource,
    AllocationQuota,
    CountQuota,
    UsageMetric,
)

UNLIMITED_SENTINEL = -1


@dataclass(frozen=True)
class Limit:
    value: float | None = None

    @classmethod
    def finite(cls, value: float) -> "Limit":
        if value < 0:
            raise ValueError(f"Finite limit must be >= 0, got {value}")
        return cls(value=value)

    @classmethod
    def unlimited(cls) -> "Limit":
        return cls(value=None)

    @classmethod
    def from_plan(cls, raw: float | None) -> "Limit":
        """Translate a plan-table value (-1 or None = no ceiling)."""
        if raw is None or raw == UNLIMITED_SENTINEL:
            return cls.unlimited()
        return cls.finite(raw)

    @classmethod
    def from_column(cls, raw: float | None) -> "Limit":
        """Translate an allocation column (NULL = no explicit cap)."""
        return cls.unlimited() if raw is None else cls.finite(raw)

    @property
    def is_unlimited(self) -> bool:
        return self.value is None

    def as_optional(self) -> float | None:
        return self.value

    def remaining(self, allocated: float) -> float | None:
        """Unallocated remainder, floored at 0. None for an unlimited pool."""
        if self.value is None:
            return None
        return max(0, self.value - allocated)


def _as_limit(limit: "Limit | float | None") -> Limit:
    if isinstance(limit, Limit):
        return limit
    return Limit.from_plan(limit)


def percentage(used: float, limit: "Limit | float | None") -> int:
    lim = _as_limit(limit)
    if lim.is_unlimited or not lim.value:
        return 0
    ratio = Decimal(str(used)) * 100 / Decimal(str(lim.value))
    rounded = int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return max(0, min(100, rounded))


def count_quota(used: int, limit: "Limit | float | None") -> CountQuota:
    lim = _as_limit(limit)
    return CountQuota(
        used=used,
        limit=lim.as_optional(),
        percentage=percentage(used, lim),
        is_unlimited=lim.is_unlimited,
    )


def usage_metric(
    current: float,
    limit: "Limit | float | None",
    period: str = "monthly",
    resets_at: datetime | None = None,
) -> UsageMetric:
    lim = _as_limit(limit)
    return UsageMetric(
        current=current,
        limit=lim.as_optional(),
        period=period,
        resets_at=resets_at,
        percentage=percentage(current, lim),
        is_unlimited=lim.is_unlimited,
    )


def allocation_quota(allocated: float, limit: "Limit | float | None", unit: str) -> AllocationQuota:
    lim = _as_limit(limit)
    return AllocationQuota(
        allocated=allocated,
        limit=lim.as_optional(),
        unit=unit,
        percentage=percentage(allocated, lim),
        is_unlimited=lim.is_unlimited,
    )


def allocated_resource(
    allocated: float | None, used: float, parent_limit: float | None = None
) -> AllocatedResource:
    """A child's share of a parent pool. allocated=None means no explicit cap."""
    lim = Limit.from_column(allocated)
    return AllocatedResource(
        allocated=allocated,
        used=used,
        parent_limit=parent_limit,
        percentage=percentage(used, lim),
        is_unlimited=lim.is_unlimited,
    )
