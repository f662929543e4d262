"""
errors.py — AppError base class and error code registry.

Every error the ledger engine reports must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Every code in ErrorCode except INTERNAL_ERROR is a caller mistake.
    Anything that is not an AppError is a system fault.
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

    @property
    def is_caller_error(self) -> bool:
        """True when the code is an enumerated caller mistake (4xx-equivalent)."""
        return self.code != ErrorCode.INTERNAL_ERROR and self.http_status < 500

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
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent to callers.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    INVALID_RANGE              = "INVALID_RANGE"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    INCENTIVE_NOT_FOUND        = "INCENTIVE_NOT_FOUND"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    ALREADY_MEMBER             = "ALREADY_MEMBER"
    GROUP_FULL                 = "GROUP_FULL"
    GROUP_LOCKED               = "GROUP_LOCKED"
    DUPLICATE_INCENTIVE        = "DUPLICATE_INCENTIVE"

    # ── Business Rule Violations (422) ────────────────────────────────────
    NOT_A_MEMBER               = "NOT_A_MEMBER"
    NO_ACTIVE_MEMBERS          = "NO_ACTIVE_MEMBERS"

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"
