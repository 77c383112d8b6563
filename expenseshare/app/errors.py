"""
errors.py — AppError hierarchy and error code registry.

Every error returned by the ExpenseShare API uses a code defined here.
Services raise one of the typed subclasses below and know nothing about HTTP;
the app factory (app/__init__.py) owns the mapping from error class to status
code in HTTP_STATUS_BY_ERROR.

Taxonomy:
  ValidationError    malformed or inconsistent input
  NotFoundError      referenced entity absent
  InvalidStateError  operation not permitted in the entity's current state
  ConflictError      uniqueness clash (e.g. email already registered)
  UnauthorizedError  credential or token failure
  ForbiddenError     authenticated caller not allowed to act on the target
Anything else is an internal error and surfaces as a generic 500.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code    = code
        self.message = message
        self.field   = field  # which request field caused the error

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
            f"message={self.message!r})"
        )


class ValidationError(AppError):
    """Input is malformed or references entities that do not resolve."""


class NotFoundError(AppError):
    """The entity addressed by the operation does not exist."""


class InvalidStateError(AppError):
    """The entity exists but its state forbids the operation."""


class ConflictError(AppError):
    """The write would violate a uniqueness rule."""


class UnauthorizedError(AppError):
    """Credentials or bearer token were missing or rejected."""


class ForbiddenError(AppError):
    """The caller is authenticated but may not perform the operation."""


# ── Error Code Registry ────────────────────────────────────────────────────
#
# These are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors ─────────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    GROUP_NOT_RESOLVED         = "GROUP_NOT_RESOLVED"
    PAYER_NOT_RESOLVED         = "PAYER_NOT_RESOLVED"
    PAYER_NOT_MEMBER           = "PAYER_NOT_MEMBER"
    MEMBER_EMAIL_NOT_FOUND     = "MEMBER_EMAIL_NOT_FOUND"

    # ── Conflict Errors ───────────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"

    # ── Not Found Errors ──────────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    EXPENSE_NOT_FOUND          = "EXPENSE_NOT_FOUND"

    # ── Invalid State Errors ──────────────────────────────────────────────
    EXPENSE_ALREADY_SETTLED    = "EXPENSE_ALREADY_SETTLED"
    NO_MEMBERS_TO_SETTLE       = "NO_MEMBERS_TO_SETTLE"
    USER_HAS_EXPENSES          = "USER_HAS_EXPENSES"

    # ── Auth Errors ───────────────────────────────────────────────────────
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"
    TOKEN_MISSING              = "TOKEN_MISSING"
    TOKEN_INVALID              = "TOKEN_INVALID"
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"

    # ── Authorization Errors ──────────────────────────────────────────────
    FORBIDDEN                  = "FORBIDDEN"

    # ── System Errors ─────────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"
