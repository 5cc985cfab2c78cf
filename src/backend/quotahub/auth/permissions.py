"""Capability checks for the caller of a service operation.

ServiceContext is built once per request from verified Claims. Services ask
ctx.can_do("org:manage") instead of inspecting roles themselves.

SUPER_ADMIN and the system context can do everything.
"""

from dataclasses import dataclass

from quotahub.auth.jwt import Claims

SUPER_ADMIN_ROLES: frozenset[str] = frozenset({"SUPER_ADMIN"})

ORG_MANAGE = "org:manage"
ORG_VIEW = "org:view"
PLATFORM_MANAGE = "platform:manage"

_CAPABILITIES: dict[str, frozenset[str]] = {
    ORG_MANAGE: frozenset({"ORG_OWNER", "ORG_ADMIN"}),
    ORG_VIEW: frozenset({"ORG_OWNER", "ORG_ADMIN", "DEPT_MANAGER", "ORG_MEMBER"}),
    PLATFORM_MANAGE: frozenset(),
}


@dataclass(frozen=True)
class ServiceContext:
    user_id: str
    user_role: str = "USER"
    plan: str = "FREE"
    organization_id: str | None = None
    org_role: str | None = None
    department_id: str | None = None
    request_id: str | None = None

    @classmethod
    def from_claims(cls, claims: Claims, request_id: str | None = None) -> "ServiceContext":
        return cls(
            user_id=claims.sub,
            user_role=claims.role,
            plan=claims.plan,
            organization_id=claims.organization_id,
            org_role=claims.org_role,
            department_id=claims.department_id,
            request_id=request_id,
        )

    @classmethod
    def system(cls, request_id: str | None = None) -> "ServiceContext":
        """Context for background jobs; full permissions."""
        return cls(user_id="system", user_role="SUPER_ADMIN", plan="ENTERPRISE", request_id=request_id)

    def is_super_admin(self) -> bool:
        return self.user_role in SUPER_ADMIN_ROLES

    def is_org_context(self) -> bool:
        return self.organization_id is not None

    def is_personal_context(self) -> bool:
        return self.organization_id is None

    def can_do(self, capability: str) -> bool:
        if self.is_super_admin():
            return True
        roles = _CAPABILITIES.get(capability)
        if roles is None or self.org_role is None:
            return False
        return self.org_role in roles

    def can_act_on_org(self, capability: str, organization_id: str) -> bool:
        """can_do() restricted to the organization the caller belongs to."""
        if self.is_super_admin():
            return True
        return self.organization_id == organization_id and self.can_do(capability)
