"""FastAPI dependencies for process-wide objects held on app.state.

The lifespan in main.py creates the counter store and the plan catalog once;
services are built per request around them.
"""

from fastapi import Request

from quotahub.config import settings
from quotahub.errors import StoreUnavailableError
from quotahub.plans import PlanCatalog
from quotahub.services.usage_tracker import UsageTracker
from quotahub.usage.counter_store import CounterStore


def get_plans(request: Request) -> PlanCatalog:
    plans = getattr(request.app.state, "plans", None)
    return plans if plans is not None else PlanCatalog.default()


def get_counter_store(request: Request) -> CounterStore:
    store = getattr(request.app.state, "counter_store", None)
    if store is None:
        raise StoreUnavailableError("Counter store is not configured")
    return store


def get_usage_tracker(request: Request) -> UsageTracker:
    return UsageTracker(get_counter_store(request), ttl_days=settings.USAGE_COUNTER_TTL_DAYS)
