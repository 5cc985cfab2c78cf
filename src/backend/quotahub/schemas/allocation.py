"""Pydantic request/response schemas for the allocation API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from quotahub.models.allocation import AllocationMode

# ── Request schemas ────────────────────────────────────────────────────────────


class SetDeptAllocationRequest(BaseModel):
    """Omitted (null) fields mean "no explicit cap" for that resource."""

    max_gateways: int | None = Field(default=None, ge=0)
    max_plugins: int | None = Field(default=None, ge=0)
    max_workflows: int | None = Field(default=None, ge=0)
    credit_budget: int | None = Field(default=None, ge=0)
    max_ram_mb: int | None = Field(default=None, ge=0)
    max_cpu_cores: float | None = Field(default=None, ge=0)
    max_storage_mb: int | None = Field(default=None, ge=0)
    mode: AllocationMode = AllocationMode.SOFT_CAP


class SetMemberAllocationRequest(BaseModel):
    max_gateways: int | None = Field(default=None, ge=0)
    max_workflows: int | None = Field(default=None, ge=0)
    credit_budget: int | None = Field(default=None, ge=0)
    max_ram_mb: int | None = Field(default=None, ge=0)
    max_cpu_cores: float | None = Field(default=None, ge=0)
    max_storage_mb: int | None = Field(default=None, ge=0)
    mode: AllocationMode = AllocationMode.SOFT_CAP


# ── Response schemas ───────────────────────────────────────────────────────────


class DeptAllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    department_id: str
    max_gateways: int | None
    max_plugins: int | None
    max_workflows: int | None
    max_ram_mb: int | None
    max_cpu_cores: float | None
    max_storage_mb: int | None
    credit_budget: int | None
    credit_used: float
    credit_reset_at: datetime | None
    alloc_mode: AllocationMode
    set_by: str
    created_at: datetime | None
    updated_at: datetime | None


class MemberAllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    department_id: str
    max_gateways: int | None
    max_workflows: int | None
    max_ram_mb: int | None
    max_cpu_cores: float | None
    max_storage_mb: int | None
    credit_budget: int | None
    credit_used: float
    credit_reset_at: datetime | None
    alloc_mode: AllocationMode
    set_by: str
    created_at: datetime | None
    updated_at: datetime | None


# ── Credit budget ──────────────────────────────────────────────────────────────


class CreditBudgetCheck(BaseModel):
    # available is math.inf when there is no budget; rendered as null in JSON.
    model_config = ConfigDict(ser_json_inf_nan="null")

    allowed: bool
    available: float
    budget: int | None
    used: float
    mode: AllocationMode


class CreditStatus(BaseModel):
    budget: int | None
    used: float
    available: float | None
    percentage: int
    reset_at: datetime | None


class CreditResetResult(BaseModel):
    dept_count: int
    member_count: int
