"""Health check endpoints for QuotaHub.

Both endpoints are unauthenticated and mounted at root (no /api/v1 prefix).
Used by Kubernetes liveness and readiness probes.
"""

import importlib.metadata
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from quotahub.database import AsyncSessionLocal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: returns 200 if the application process is running."""
    version = importlib.metadata.version("quotahub")
    return {"status": "ok", "version": version}


@router.get("/health/ready")
async def health_ready(request: Request) -> JSONResponse:
    """Readiness probe: 200 if the DB is reachable, 503 otherwise.

    The counter store is reported but does not fail readiness; usage tracking
    degrades to dropped increments while it is down.
    """
    store = getattr(request.app.state, "counter_store", None)
    counter_store = "ok"
    if store is not None and not await store.ping():
        counter_store = "unavailable"

    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Readiness check failed: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "detail": str(exc), "counter_store": counter_store},
        )
    return JSONResponse(status_code=200, content={"status": "ok", "counter_store": counter_store})
