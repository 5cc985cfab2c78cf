"""QuotaHub FastAPI application factory.

Entry point: uvicorn quotahub.main:app
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from quotahub.config import settings
from quotahub.database import AsyncSessionLocal, async_engine
from quotahub.errors import PoolExceededError, QuotaHubError
from quotahub.middleware import RequestIDMiddleware, configure_logging, get_request_id
from quotahub.plans import PlanCatalog, load_plan_catalog
from quotahub.routers import allocations, health, resources
from quotahub.services.budget_reset_service import BudgetResetService
from quotahub.usage.counter_store import RedisCounterStore


async def _scheduled_credit_reset(plans: PlanCatalog) -> None:
    async with AsyncSessionLocal() as session:
        await BudgetResetService(session, plans).run_monthly_reset()


async def _startup_credit_reset(plans: PlanCatalog) -> None:
    async with AsyncSessionLocal() as session:
        await BudgetResetService(session, plans).catch_up_missed_reset()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging(settings.LOG_LEVEL)
    app.state.plans = load_plan_catalog(settings.PLAN_LIMITS_FILE)
    app.state.counter_store = RedisCounterStore(settings.REDIS_URL)

    scheduler = AsyncIOScheduler(timezone="UTC")
    if settings.CREDIT_RESET_ENABLED:
        scheduler.add_job(
            _scheduled_credit_reset,
            "cron",
            day=settings.CREDIT_RESET_DAY,
            hour=settings.CREDIT_RESET_HOUR,
            minute=settings.CREDIT_RESET_MINUTE,
            args=[app.state.plans],
            id="monthly_credit_reset",
        )
        # Catch up on a reset missed while the service was down.
        scheduler.add_job(
            _startup_credit_reset,
            "date",
            run_date=datetime.now(UTC),
            args=[app.state.plans],
            id="startup_credit_reset",
        )
    scheduler.start()

    yield

    scheduler.shutdown(wait=False)
    await app.state.counter_store.close()
    await async_engine.dispose()


app = FastAPI(title="QuotaHub", lifespan=lifespan)

app.add_middleware(RequestIDMiddleware)


@app.exception_handler(QuotaHubError)
async def quotahub_error_handler(request: Request, exc: QuotaHubError) -> JSONResponse:
    error = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if isinstance(exc, PoolExceededError):
        error["violations"] = exc.violations
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": error},
        headers={"X-Request-ID": get_request_id()},
    )


app.include_router(health.router)
app.include_router(allocations.router)
app.include_router(resources.router)
