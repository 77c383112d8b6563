"""
schemas/expense_schema.py — Marshmallow schemas for expense payloads.

Validation responsibility:
  - This file: field types, lengths, decimal precision, non-blank description.
  - services/expense_service.py: whether group_id / paid_by_id resolve, and
    whether the payer belongs to the group (both need DB lookups).

The service layer loads these schemas itself (expense_service._load_details)
so that AddExpense / UpdateExpense reject malformed details no matter who
calls them.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the explanation.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate

from expenseshare.app.errors import ErrorCode


# ── Shared monetary amount validator ──────────────────────────────────────
#
# Amounts must be strictly positive with at most 2 decimal places, and fit
# the Numeric(12, 2) amount column.
# Extra precision is REJECTED with INVALID_AMOUNT_PRECISION, never rounded.
# ──────────────────────────────────────────────────────────────────────────

MAX_AMOUNT = Decimal("9999999999.99")


def _validate_monetary_amount(value: Decimal) -> None:
    """
    Validates a monetary Decimal value:
      - Must be strictly greater than zero.
      - Must not exceed MAX_AMOUNT.
      - Must have at most 2 decimal places.
    """
    if value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")
    if value > MAX_AMOUNT:
        raise ValidationError(f"Amount must not exceed {MAX_AMOUNT}.")

    # Decimal("10.123").as_tuple().exponent == -3  → 3 dp → reject
    # Decimal("10.12").as_tuple().exponent  == -2  → 2 dp → accept
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_non_empty_after_trim(value: str) -> None:
    """
    Raises ValidationError if the string is blank or contains only whitespace.
    Mirrors the DB CHECK(LENGTH(TRIM(...)) > 0) constraint.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class ExpenseDetailsSchema(Schema):
    """
    Create payload: POST /groups/:id/expenses

    The owning group comes from the URL; a group_id in the body is accepted
    and must then match (checked in expense_service.add_expense).
    `date` defaults to today when omitted.
    """

    description = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="Description must be between 1 and 255 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    amount = fields.Decimal(
        required=True,
        validate=_validate_monetary_amount,
    )

    paid_by_id = fields.Int(
        required=True,
        strict=True,  # reject floats like 1.0
        validate=validate.Range(min=1, error="paid_by_id must be a positive integer."),
    )

    group_id = fields.Int(
        load_default=None,
        strict=True,
        validate=validate.Range(min=1, error="group_id must be a positive integer."),
    )

    date = fields.Date(load_default=dt.date.today)


class UpdateExpenseSchema(ExpenseDetailsSchema):
    """
    Full-replace payload: PUT /expenses/:id

    Every mutable field is replaced, including the owning group, so group_id
    is required here.
    """

    group_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="group_id must be a positive integer."),
    )
