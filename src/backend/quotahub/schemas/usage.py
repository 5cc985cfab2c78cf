"""Pydantic schemas for usage counters and usage history."""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, Field


class PeriodType(str, enum.Enum):
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class CreditCategory(str, enum.Enum):
    AI = "ai"
    MARKETPLACE = "marketplace"


class UsageMetricName(str, enum.Enum):
    WORKFLOW_RUNS = "workflow_runs"
    WORKFLOW_STEPS = "workflow_steps"
    GATEWAY_REQUESTS = "gateway_requests"
    PLUGIN_EXECUTIONS = "plugin_executions"
    API_CALLS = "api_calls"
    ERRORS = "errors"
    CREDITS_TOTAL = "credits_total"
    CREDITS_AI = "credits_ai"
    CREDITS_MARKETPLACE = "credits_marketplace"


class RealTimeUsage(BaseModel):
    workflow_runs: float = 0
    workflow_steps: float = 0
    gateway_requests: float = 0
    plugin_executions: float = 0
    credits_used: float = 0


class UsageRecord(BaseModel):
    period_start: datetime
    period_type: PeriodType
    period_key: str
    workflow_runs: float = 0
    workflow_steps: float = 0
    gateway_requests: float = 0
    plugin_executions: float = 0
    credits_used: float = 0
    errors: float = 0


class UsageHistoryQuery(BaseModel):
    period_type: PeriodType = PeriodType.DAILY
    periods: int = Field(default=30, ge=1, le=365)
    start_date: datetime | None = None
    end_date: datetime | None = None


class UsageHistoryResponse(BaseModel):
    owner_id: str
    period_type: PeriodType
    records: list[UsageRecord]
