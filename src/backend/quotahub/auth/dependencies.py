"""FastAPI dependencies for authentication on protected routes.

Usage:
    @router.get("/protected")
    async def endpoint(ctx: ServiceContext = Depends(get_service_context)):
        ...
"""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from quotahub.auth.jwt import Claims, verify_token
from quotahub.auth.permissions import ServiceContext
from quotahub.errors import UnauthorizedError
from quotahub.middleware import get_request_id

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Claims:
    if credentials is None:
        raise UnauthorizedError("Missing Bearer token")
    return verify_token(credentials.credentials)


async def get_service_context(claims: Claims = Depends(get_current_user)) -> ServiceContext:
    return ServiceContext.from_claims(claims, request_id=get_request_id())
