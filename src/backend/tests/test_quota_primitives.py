"""Tests for quota primitives: Limit normalization and the percentage rule.

Covers:
- -1 / None from plan tables become unlimited; NULL columns become unlimited
- percentage rounds half-up and clamps to 0..100
- percentage is 0 for unlimited and zero limits
- the four leaf shapes carry limit/is_unlimited consistently
"""

from datetime import UTC, datetime

import pytest

from quotahub.services.quota_primitives import (
    Limit,
    allocated_resource,
    allocation_quota,
    count_quota,
    percentage,
    usage_metric,
)


class TestLimit:
    def test_plan_sentinel_is_unlimited(self):
        assert Limit.from_plan(-1).is_unlimited
        assert Limit.from_plan(None).is_unlimited

    def test_plan_value_is_finite(self):
        lim = Limit.from_plan(5)
        assert not lim.is_unlimited
        assert lim.as_optional() == 5

    def test_null_column_is_unlimited(self):
        assert Limit.from_column(None).is_unlimited
        assert Limit.from_column(0).as_optional() == 0

    def test_negative_finite_limit_rejected(self):
        with pytest.raises(ValueError):
            Limit.finite(-3)

    def test_remaining_floors_at_zero(self):
        assert Limit.finite(5).remaining(7) == 0
        assert Limit.finite(5).remaining(2) == 3
        assert Limit.unlimited().remaining(100) is None


class TestPercentage:
    @pytest.mark.parametrize(
        "used,limit,expected",
        [
            (1, 3, 33),
            (2, 3, 67),
            (1, 8, 13),  # 12.5 rounds half-up
            (5, 200, 3),  # 2.5 rounds half-up
            (150, 100, 100),
            (0, 10, 0),
        ],
    )
    def test_round_half_up_and_clamp(self, used, limit, expected):
        assert percentage(used, limit) == expected

    def test_unlimited_is_zero(self):
        assert percentage(500, -1) == 0
        assert percentage(500, Limit.unlimited()) == 0

    def test_zero_limit_is_zero(self):
        assert percentage(3, 0) == 0


class TestShapes:
    def test_count_quota_unlimited(self):
        q = count_quota(7, -1)
        assert q.limit is None
        assert q.is_unlimited is True
        assert q.percentage == 0

    def test_count_quota_finite(self):
        q = count_quota(3, 5)
        assert q.used == 3
        assert q.limit == 5
        assert q.percentage == 60
        assert q.is_unlimited is False

    def test_usage_metric_carries_period_and_reset(self):
        resets = datetime(2026, 4, 1, tzinfo=UTC)
        m = usage_metric(250, 1000, resets_at=resets)
        assert m.period == "monthly"
        assert m.resets_at == resets
        assert m.percentage == 25

    def test_allocation_quota_unit(self):
        q = allocation_quota(2048, 4096, "MB")
        assert q.unit == "MB"
        assert q.percentage == 50

    def test_allocated_resource_without_cap(self):
        r = allocated_resource(None, 12, parent_limit=50)
        assert r.allocated is None
        assert r.is_unlimited is True
        assert r.percentage == 0
        assert r.parent_limit == 50

    def test_allocated_resource_with_cap(self):
        r = allocated_resource(10, 4)
        assert r.percentage == 40
        assert r.is_unlimited is False

    def test_unlimited_iff_percentage_zero_for_nonzero_usage(self):
        for limit in (-1, None, 10, 100):
            q = count_quota(5, limit)
            assert q.is_unlimited == (limit in (-1, None))
            if q.is_unlimited:
                assert q.percentage == 0
