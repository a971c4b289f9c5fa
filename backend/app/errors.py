"""
errors.py — AppError base class and error code registry.

Every error returned by the TripSplit API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - 401 means we do not know who the caller is; 403 means we know and refuse.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error taxonomy ─────────────────────────────────────────────────────────
# Each kind has a fixed HTTP status. Callers pick the code; the class picks
# the status. Unique-key conflicts have no class: they are recovered by
# re-querying inside the service and never reach the caller.

class NotFoundError(AppError):
    """A referenced entity does not exist."""

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 404, field)


class UnauthorizedError(AppError):
    """Membership or join-secret check failed."""

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 403, field)


class InvalidInputError(AppError):
    """Malformed numeric field or unknown enum value."""

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 400, field)


class BusinessRuleError(AppError):
    """Well-formed request that breaks a domain rule (e.g. wrong bill type)."""

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 422, field)


class StorageError(AppError):
    """Opaque persistence-layer failure. Not retried by the service."""

    def __init__(self, message: str = "The data store is unavailable. Please try again later.") -> None:
        super().__init__(ErrorCode.STORAGE_ERROR, message, 503)


# ── Error Code Registry ────────────────────────────────────────────────────
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT             = "INVALID_AMOUNT"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    INVALID_QUANTITY           = "INVALID_QUANTITY"
    INVALID_BILL_TYPE          = "INVALID_BILL_TYPE"
    INVALID_WEBHOOK            = "INVALID_WEBHOOK"        # bad or missing svix signature

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    TRIP_NOT_FOUND             = "TRIP_NOT_FOUND"
    BILL_NOT_FOUND             = "BILL_NOT_FOUND"
    ITEM_NOT_FOUND             = "ITEM_NOT_FOUND"

    # ── Business Rule Violations (422) ────────────────────────────────────
    BILL_TYPE_MISMATCH         = "BILL_TYPE_MISMATCH"

    # ── Auth Errors ────────────────────────────────────────────────────────
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403 — not a trip member / not creator
    INVALID_JOIN_SECRET        = "INVALID_JOIN_SECRET"    # 403

    # ── System Errors ──────────────────────────────────────────────────────
    STORAGE_ERROR              = "STORAGE_ERROR"          # 503
    WEBHOOK_NOT_CONFIGURED     = "WEBHOOK_NOT_CONFIGURED" # 503
    INTERNAL_ERROR             = "INTERNAL_ERROR"         # 500
