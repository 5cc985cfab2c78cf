"""Plan limit tables for personal and organization subscriptions.

Raw tables use the -1 sentinel for "unlimited" (and null for workspace
values negotiated per customer). PlanCatalog.from_raw() translates every
value into a Limit exactly once; the rest of the code only sees Limit.

The built-in tables can be replaced by pointing PLAN_LIMITS_FILE at a JSON
document with the same shape: {"personal": {...}, "organization": {...}}.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from quotahub.errors import ValidationError
from quotahub.services.quota_primitives import Limit

logger = logging.getLogger(__name__)

DEFAULT_PERSONAL_PLAN = "FREE"
DEFAULT_ORG_PLAN = "ORG_FREE"

_FEATURE_KEYS = (
    "sso",
    "custom_branding",
    "priority_support",
    "audit_logs",
    "api_access",
    "dedicated_database",
)

# Org workspace pool tiers: (ram_mb, cpu_cores, storage_mb). None = no pool / negotiated.
_ORG_POOLS: dict[str, tuple[Any, Any, Any] | None] = {
    "NONE": None,
    "TEAM": (4096, 2, 20480),
    "GROWTH": (8192, 4, 51200),
    "PRO": (16384, 8, 102400),
    "BUSINESS": (32768, 16, 256000),
    "CUSTOM": (-1, -1, -1),
}


def _features(*enabled: str) -> dict[str, bool]:
    return {key: key in enabled for key in _FEATURE_KEYS}


RAW_PERSONAL_PLANS: dict[str, dict[str, Any]] = {
    "FREE": {
        "execution_mode": "SERVERLESS",
        "workflow_runs_per_month": 500,
        "workspace": None,
        "gateways": 1,
        "plugins": 3,
        "workflows": 3,
        "credits_per_month": 100,
        "history_days": 7,
        "features": _features(),
    },
    "STARTER": {
        "execution_mode": "SERVERLESS",
        "workflow_runs_per_month": 5000,
        "workspace": None,
        "gateways": 3,
        "plugins": 10,
        "workflows": 10,
        "credits_per_month": 1000,
        "history_days": 30,
        "features": _features("priority_support", "audit_logs", "api_access"),
    },
    "PRO": {
        "execution_mode": "WORKSPACE",
        "workflow_runs_per_month": -1,
        "workspace": (512, 0.5, 2048),
        "gateways": 10,
        "plugins": 25,
        "workflows": 50,
        "credits_per_month": 5000,
        "history_days": 90,
        "features": _features("priority_support", "audit_logs", "api_access"),
    },
    "BUSINESS": {
        "execution_mode": "WORKSPACE",
        "workflow_runs_per_month": -1,
        "workspace": (2048, 2, 10240),
        "gateways": 25,
        "plugins": 100,
        "workflows": 200,
        "credits_per_month": 20000,
        "history_days": 365,
        "features": _features("priority_support", "audit_logs", "api_access"),
    },
    "ENTERPRISE": {
        "execution_mode": "WORKSPACE",
        "workflow_runs_per_month": -1,
        "workspace": (-1, -1, -1),
        "gateways": -1,
        "plugins": -1,
        "workflows": -1,
        "credits_per_month": -1,
        "history_days": 365,
        "features": _features(
            "custom_branding", "priority_support", "audit_logs", "api_access", "dedicated_database"
        ),
    },
}

RAW_ORG_PLANS: dict[str, dict[str, Any]] = {
    "ORG_FREE": {
        "execution_mode": "SERVERLESS",
        "workflow_runs_per_month": 1000,
        "shared_gateways": 2,
        "shared_plugins": 5,
        "shared_workflows": 5,
        "shared_credits_per_month": 500,
        "seats": 3,
        "departments": 1,
        "workspace": _ORG_POOLS["NONE"],
        "history_days": 7,
        "features": _features(),
    },
    "ORG_STARTER": {
        "execution_mode": "WORKSPACE",
        "workflow_runs_per_month": -1,
        "shared_gateways": 5,
        "shared_plugins": 20,
        "shared_workflows": 25,
        "shared_credits_per_month": 5000,
        "seats": 5,
        "departments": 3,
        "workspace": _ORG_POOLS["TEAM"],
        "history_days": 30,
        "features": _features("audit_logs", "api_access"),
    },
    "ORG_GROWTH": {
        "execution_mode": "WORKSPACE",
        "workflow_runs_per_month": -1,
        "shared_gateways": 15,
        "shared_plugins": 50,
        "shared_workflows": 75,
        "shared_credits_per_month": 20000,
        "seats": 15,
        "departments": 10,
        "workspace": _ORG_POOLS["GROWTH"],
        "history_days": 90,
        "features": _features("custom_branding", "audit_logs", "api_access"),
    },
    "ORG_PRO": {
        "execution_mode": "WORKSPACE",
        "workflow_runs_per_month": -1,
        "shared_gateways": 50,
        "shared_plugins": 150,
        "shared_workflows": 250,
        "shared_credits_per_month": 100000,
        "seats": 40,
        "departments": 25,
        "workspace": _ORG_POOLS["PRO"],
        "history_days": 180,
        "features": _features(
            "sso", "custom_branding", "priority_support", "audit_logs", "api_access"
        ),
    },
    "ORG_BUSINESS": {
        "execution_mode": "WORKSPACE",
        "workflow_runs_per_month": -1,
        "shared_gateways": 150,
        "shared_plugins": 500,
        "shared_workflows": 1000,
        "shared_credits_per_month": 500000,
        "seats": 100,
        "departments": -1,
        "workspace": _ORG_POOLS["BUSINESS"],
        "history_days": 365,
        "features": _features(*_FEATURE_KEYS),
    },
    "ORG_ENTERPRISE": {
        "execution_mode": "WORKSPACE",
        "workflow_runs_per_month": -1,
        "shared_gateways": -1,
        "shared_plugins": -1,
        "shared_workflows": -1,
        "shared_credits_per_month": -1,
        "seats": -1,
        "departments": -1,
        "workspace": _ORG_POOLS["CUSTOM"],
        "history_days": 365,
        "features": _features(*_FEATURE_KEYS),
    },
}


@dataclass(frozen=True)
class WorkspaceLimits:
    ram_mb: Limit
    cpu_cores: Limit
    storage_mb: Limit

    @classmethod
    def from_raw(cls, raw: Any) -> "WorkspaceLimits | None":
        if raw is None:
            return None
        ram, cpu, storage = raw
        return cls(Limit.from_plan(ram), Limit.from_plan(cpu), Limit.from_plan(storage))


@dataclass(frozen=True)
class PersonalPlanLimits:
    name: str
    execution_mode: str
    workflow_runs_per_month: Limit
    gateways: Limit
    plugins: Limit
    workflows: Limit
    credits_per_month: Limit
    workspace: WorkspaceLimits | None
    history_days: int
    features: dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class OrgPlanLimits:
    """Shared pools an organization subdivides among its departments."""

    name: str
    execution_mode: str
    workflow_runs_per_month: Limit
    shared_gateways: Limit
    shared_plugins: Limit
    shared_workflows: Limit
    shared_credits_per_month: Limit
    seats: Limit
    departments: Limit
    workspace: WorkspaceLimits | None
    history_days: int
    features: dict[str, bool] = field(default_factory=dict)


def _personal_from_raw(name: str, raw: dict[str, Any]) -> PersonalPlanLimits:
    return PersonalPlanLimits(
        name=name,
        execution_mode=raw["execution_mode"],
        workflow_runs_per_month=Limit.from_plan(raw.get("workflow_runs_per_month")),
        gateways=Limit.from_plan(raw["gateways"]),
        plugins=Limit.from_plan(raw["plugins"]),
        workflows=Limit.from_plan(raw["workflows"]),
        credits_per_month=Limit.from_plan(raw["credits_per_month"]),
        workspace=WorkspaceLimits.from_raw(raw.get("workspace")),
        history_days=int(raw.get("history_days", 30)),
        features=dict(raw.get("features", {})),
    )


def _org_from_raw(name: str, raw: dict[str, Any]) -> OrgPlanLimits:
    return OrgPlanLimits(
        name=name,
        execution_mode=raw["execution_mode"],
        workflow_runs_per_month=Limit.from_plan(raw.get("workflow_runs_per_month")),
        shared_gateways=Limit.from_plan(raw["shared_gateways"]),
        shared_plugins=Limit.from_plan(raw["shared_plugins"]),
        shared_workflows=Limit.from_plan(raw["shared_workflows"]),
        shared_credits_per_month=Limit.from_plan(raw["shared_credits_per_month"]),
        seats=Limit.from_plan(raw["seats"]),
        departments=Limit.from_plan(raw["departments"]),
        workspace=WorkspaceLimits.from_raw(raw.get("workspace")),
        history_days=int(raw.get("history_days", 30)),
        features=dict(raw.get("features", {})),
    )


class PlanCatalog:
    def __init__(
        self,
        personal: dict[str, PersonalPlanLimits],
        organization: dict[str, OrgPlanLimits],
    ) -> None:
        self.personal = personal
        self.organization = organization

    @classmethod
    def from_raw(
        cls, personal: dict[str, dict[str, Any]], organization: dict[str, dict[str, Any]]
    ) -> "PlanCatalog":
        try:
            return cls(
                personal={name: _personal_from_raw(name, raw) for name, raw in personal.items()},
                organization={name: _org_from_raw(name, raw) for name, raw in organization.items()},
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid plan limit table: {exc}") from exc

    @classmethod
    def default(cls) -> "PlanCatalog":
        return cls.from_raw(RAW_PERSONAL_PLANS, RAW_ORG_PLANS)

    @classmethod
    def from_file(cls, path: str | Path) -> "PlanCatalog":
        data = json.loads(Path(path).read_text())
        return cls.from_raw(data.get("personal", {}), data.get("organization", {}))

    def personal_plan(self, plan: str | None) -> PersonalPlanLimits:
        """Unknown plans fall back to the free tier."""
        if plan in self.personal:
            return self.personal[plan]
        return self.personal[DEFAULT_PERSONAL_PLAN]

    def org_plan(self, plan: str | None) -> OrgPlanLimits:
        if plan in self.organization:
            return self.organization[plan]
        return self.organization[DEFAULT_ORG_PLAN]


def load_plan_catalog(path: str = "") -> PlanCatalog:
    if not path:
        return PlanCatalog.default()
    logger.info("Loading plan limits from %s", path)
    return PlanCatalog.from_file(path)
