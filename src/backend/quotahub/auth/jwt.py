"""JWT issuance and verification for QuotaHub.

Uses python-jose with HS256. Tokens expire in 15 minutes (900 seconds).
Claims is a plain dataclass: no ORM, no database dependency.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from jose import ExpiredSignatureError, JWTError, jwt

from quotahub.config import settings
from quotahub.errors import UnauthorizedError

_ALGORITHM = "HS256"
_EXPIRY_SECONDS = 900  # 15 minutes


@dataclass
class Claims:
    sub: str
    role: str
    plan: str
    exp: int
    organization_id: str | None = None
    org_role: str | None = None
    department_id: str | None = None


def create_token(claims: Claims) -> str:
    payload = {
        "sub": claims.sub,
        "role": claims.role,
        "plan": claims.plan,
        "exp": claims.exp,
        "organization_id": claims.organization_id,
        "org_role": claims.org_role,
        "department_id": claims.department_id,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM)


def build_claims(
    sub: str,
    role: str = "USER",
    plan: str = "FREE",
    organization_id: str | None = None,
    org_role: str | None = None,
    department_id: str | None = None,
) -> Claims:
    exp = int(datetime.now(UTC).timestamp()) + _EXPIRY_SECONDS
    return Claims(
        sub=sub,
        role=role,
        plan=plan,
        exp=exp,
        organization_id=organization_id,
        org_role=org_role,
        department_id=department_id,
    )


def verify_token(token: str) -> Claims:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise UnauthorizedError("Token has expired") from exc
    except JWTError as exc:
        raise UnauthorizedError("Invalid token") from exc

    try:
        return Claims(
            sub=payload["sub"],
            role=payload.get("role", "USER"),
            plan=payload.get("plan", "FREE"),
            exp=payload["exp"],
            organization_id=payload.get("organization_id"),
            org_role=payload.get("org_role"),
            department_id=payload.get("department_id"),
        )
    except KeyError as exc:
        raise UnauthorizedError(f"Token is missing claim {exc}") from exc
