"""Allocation API endpoints.

GET    /api/v1/orgs/{org_id}/allocations                                        — all department allocations
GET    /api/v1/orgs/{org_id}/departments/{dept_id}/allocation                   — department allocation
PUT    /api/v1/orgs/{org_id}/departments/{dept_id}/allocation                   — set department allocation
DELETE /api/v1/orgs/{org_id}/departments/{dept_id}/allocation                   — remove department allocation
GET    /api/v1/orgs/{org_id}/departments/{dept_id}/members/allocations          — member allocations
GET    /api/v1/orgs/{org_id}/departments/{dept_id}/members/{user_id}/allocation — member allocation
PUT    /api/v1/orgs/{org_id}/departments/{dept_id}/members/{user_id}/allocation — set member allocation
DELETE /api/v1/orgs/{org_id}/departments/{dept_id}/members/{user_id}/allocation — remove member allocation
GET    /api/v1/orgs/{org_id}/departments/{dept_id}/credits                      — department credit status
GET    /api/v1/orgs/{org_id}/departments/{dept_id}/members/{user_id}/credits    — member credit status
POST   /api/v1/orgs/{org_id}/credits/reset                                      — reset org credit usage
POST   /api/v1/admin/credits/reset                                              — reset all credit usage
"""

from fastapi import APIRouter, Depends, status

from quotahub.auth.dependencies import get_service_context
from quotahub.auth.permissions import ServiceContext
from quotahub.database import get_db
from quotahub.dependencies import get_plans
from quotahub.schemas.allocation import (
    CreditResetResult,
    CreditStatus,
    DeptAllocationResponse,
    MemberAllocationResponse,
    SetDeptAllocationRequest,
    SetMemberAllocationRequest,
)
from quotahub.services.allocation_service import AllocationService

router = APIRouter(prefix="/api/v1", tags=["allocations"])


def _service(session=Depends(get_db), plans=Depends(get_plans)) -> AllocationService:
    return AllocationService(session, plans)


# ── Department allocations ─────────────────────────────────────────────────────

@router.get("/orgs/{org_id}/allocations", response_model=list[DeptAllocationResponse])
async def list_org_allocations(
    org_id: str,
    ctx: ServiceContext = Depends(get_service_context),
    svc: AllocationService = Depends(_service),
) -> list[DeptAllocationResponse]:
    return await svc.list_org_dept_allocations(ctx, org_id)


@router.get(
    "/orgs/{org_id}/departments/{dept_id}/allocation",
    response_model=DeptAllocationResponse,
)
async def get_dept_allocation(
    org_id: str,
    dept_id: str,
    ctx: ServiceContext = Depends(get_service_context),
    svc: AllocationService = Depends(_service),
) -> DeptAllocationResponse:
    return await svc.get_dept_allocation(ctx, dept_id, org_id=org_id)


@router.put(
    "/orgs/{org_id}/departments/{dept_id}/allocation",
    response_model=DeptAllocationResponse,
)
async def set_dept_allocation(
    org_id: str,
    dept_id: str,
    body: SetDeptAllocationRequest,
    ctx: ServiceContext = Depends(get_service_context),
    svc: AllocationService = Depends(_service),
) -> DeptAllocationResponse:
    return await svc.set_dept_allocation(ctx, dept_id, body, org_id=org_id)


@router.delete(
    "/orgs/{org_id}/departments/{dept_id}/allocation",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_dept_allocation(
    org_id: str,
    dept_id: str,
    ctx: ServiceContext = Depends(get_service_context),
    svc: AllocationService = Depends(_service),
) -> None:
    await svc.remove_dept_allocation(ctx, dept_id, org_id=org_id)


@router.get(
    "/orgs/{org_id}/departments/{dept_id}/credits",
    response_model=CreditStatus,
)
async def get_dept_credit_status(
    org_id: str,
    dept_id: str,
    ctx: ServiceContext = Depends(get_service_context),
    svc: AllocationService = Depends(_service),
) -> CreditStatus:
    return await svc.get_dept_credit_status(ctx, dept_id, org_id=org_id)


# ── Member allocations ─────────────────────────────────────────────────────────

@router.get(
    "/orgs/{org_id}/departments/{dept_id}/members/allocations",
    response_model=list[MemberAllocationResponse],
)
async def list_member_allocations(
    org_id: str,
    dept_id: str,
    ctx: ServiceContext = Depends(get_service_context),
    svc: AllocationService = Depends(_service),
) -> list[MemberAllocationResponse]:
    return await svc.list_dept_member_allocations(ctx, dept_id, org_id=org_id)


@router.get(
    "/orgs/{org_id}/departments/{dept_id}/members/{user_id}/allocation",
    response_model=MemberAllocationResponse,
)
async def get_member_allocation(
    org_id: str,
    dept_id: str,
    user_id: str,
    ctx: ServiceContext = Depends(get_service_context),
    svc: AllocationService = Depends(_service),
) -> MemberAllocationResponse:
    return await svc.get_member_allocation(ctx, dept_id, user_id, org_id=org_id)


@router.put(
    "/orgs/{org_id}/departments/{dept_id}/members/{user_id}/allocation",
    response_model=MemberAllocationResponse,
)
async def set_member_allocation(
    org_id: str,
    dept_id: str,
    user_id: str,
    body: SetMemberAllocationRequest,
    ctx: ServiceContext = Depends(get_service_context),
    svc: AllocationService = Depends(_service),
) -> MemberAllocationResponse:
    return await svc.set_member_allocation(ctx, dept_id, user_id, body, org_id=org_id)


@router.delete(
    "/orgs/{org_id}/departments/{dept_id}/members/{user_id}/allocation",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_member_allocation(
    org_id: str,
    dept_id: str,
    user_id: str,
    ctx: ServiceContext = Depends(get_service_context),
    svc: AllocationService = Depends(_service),
) -> None:
    await svc.remove_member_allocation(ctx, dept_id, user_id, org_id=org_id)


@router.get(
    "/orgs/{org_id}/departments/{dept_id}/members/{user_id}/credits",
    response_model=CreditStatus,
)
async def get_member_credit_status(
    org_id: str,
    dept_id: str,
    user_id: str,
    ctx: ServiceContext = Depends(get_service_context),
    svc: AllocationService = Depends(_service),
) -> CreditStatus:
    return await svc.get_member_credit_status(ctx, dept_id, user_id, org_id=org_id)


# ── Credit resets ──────────────────────────────────────────────────────────────

@router.post("/orgs/{org_id}/credits/reset", response_model=CreditResetResult)
async def reset_org_credit_usage(
    org_id: str,
    ctx: ServiceContext = Depends(get_service_context),
    svc: AllocationService = Depends(_service),
) -> CreditResetResult:
    return await svc.reset_org_credit_usage(ctx, org_id)


@router.post("/admin/credits/reset", response_model=CreditResetResult)
async def reset_all_credit_usage(
    ctx: ServiceContext = Depends(get_service_context),
    svc: AllocationService = Depends(_service),
) -> CreditResetResult:
    return await svc.reset_all_credit_usage(ctx)
