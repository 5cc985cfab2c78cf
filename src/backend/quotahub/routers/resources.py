"""Resource status and usage endpoints.

GET /api/v1/resources/status                                                — caller's current context
GET /api/v1/resources/orgs/{org_id}                                         — organization snapshot
GET /api/v1/resources/orgs/{org_id}/departments/{dept_id}                   — department snapshot
GET /api/v1/resources/orgs/{org_id}/departments/{dept_id}/members/{user_id} — member snapshot
GET /api/v1/usage                                                           — current-month counters
GET /api/v1/usage/history                                                   — bucketed usage history
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from quotahub.auth.dependencies import get_service_context
from quotahub.auth.permissions import ServiceContext
from quotahub.database import get_db
from quotahub.dependencies import get_plans, get_usage_tracker
from quotahub.schemas.resource import (
    DeptResourceStatus,
    MemberResourceStatus,
    OrgResourceStatus,
    ResourceStatus,
)
from quotahub.schemas.usage import RealTimeUsage, UsageHistoryQuery, UsageHistoryResponse
from quotahub.services.resource_service import ResourceService
from quotahub.services.usage_tracker import UsageTracker, owner_key

router = APIRouter(prefix="/api/v1", tags=["resources"])


def _service(
    session=Depends(get_db),
    tracker: UsageTracker = Depends(get_usage_tracker),
    plans=Depends(get_plans),
) -> ResourceService:
    return ResourceService(session, tracker, plans)


def _context_owner(ctx: ServiceContext) -> str:
    if ctx.is_org_context():
        return owner_key(organization_id=ctx.organization_id)
    return owner_key(user_id=ctx.user_id)


@router.get("/resources/status", response_model=ResourceStatus)
async def get_resource_status(
    ctx: ServiceContext = Depends(get_service_context),
    svc: ResourceService = Depends(_service),
) -> ResourceStatus:
    return await svc.get_resource_status(ctx)


@router.get("/resources/orgs/{org_id}", response_model=OrgResourceStatus)
async def get_org_status(
    org_id: str,
    ctx: ServiceContext = Depends(get_service_context),
    svc: ResourceService = Depends(_service),
) -> OrgResourceStatus:
    return await svc.get_org_status(ctx, org_id)


@router.get(
    "/resources/orgs/{org_id}/departments/{dept_id}",
    response_model=DeptResourceStatus,
)
async def get_dept_status(
    org_id: str,
    dept_id: str,
    ctx: ServiceContext = Depends(get_service_context),
    svc: ResourceService = Depends(_service),
) -> DeptResourceStatus:
    return await svc.get_dept_status(ctx, org_id, dept_id)


@router.get(
    "/resources/orgs/{org_id}/departments/{dept_id}/members/{user_id}",
    response_model=MemberResourceStatus,
)
async def get_member_status(
    org_id: str,
    dept_id: str,
    user_id: str,
    ctx: ServiceContext = Depends(get_service_context),
    svc: ResourceService = Depends(_service),
) -> MemberResourceStatus:
    return await svc.get_member_status(ctx, org_id, dept_id, user_id)


# ── Usage ──────────────────────────────────────────────────────────────────────

@router.get("/usage", response_model=RealTimeUsage)
async def get_usage(
    ctx: ServiceContext = Depends(get_service_context),
    tracker: UsageTracker = Depends(get_usage_tracker),
) -> RealTimeUsage:
    return await tracker.get_real_time_usage(_context_owner(ctx))


@router.get("/usage/history", response_model=UsageHistoryResponse)
async def get_usage_history(
    query: Annotated[UsageHistoryQuery, Query()],
    ctx: ServiceContext = Depends(get_service_context),
    tracker: UsageTracker = Depends(get_usage_tracker),
) -> UsageHistoryResponse:
    owner = _context_owner(ctx)
    if query.start_date is not None and query.end_date is not None:
        records = await tracker.get_history(
            owner, query.period_type, query.start_date, query.end_date
        )
    else:
        records = await tracker.get_usage_history(owner, query.period_type, query.periods)
    return UsageHistoryResponse(owner_id=owner, period_type=query.period_type, records=records)
