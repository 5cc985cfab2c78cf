"""QuotaHub domain error hierarchy.

All service-layer errors inherit from QuotaHubError. The global exception
handler in main.py converts these to structured JSON responses with the
correct HTTP status code and a request_id for traceability.
"""


class QuotaHubError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(QuotaHubError):
    status_code = 404
    code = "NOT_FOUND"


class UnauthorizedError(QuotaHubError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(QuotaHubError):
    status_code = 403
    code = "FORBIDDEN"


class PoolExceededError(QuotaHubError):
    """An allocation write would push siblings past their parent pool.

    Carries one message per violated resource so a client can flag every
    offending field from a single response.
    """

    status_code = 409
    code = "POOL_EXCEEDED"

    def __init__(self, message: str = "", violations: list[str] | None = None) -> None:
        self.violations = list(violations or [])
        if self.violations:
            message = f"{message}:\n" + "\n".join(self.violations)
        super().__init__(message)


class ValidationError(QuotaHubError):
    status_code = 422
    code = "VALIDATION_ERROR"


class StoreUnavailableError(QuotaHubError):
    status_code = 503
    code = "STORE_UNAVAILABLE"
