"""
schemas/group_schema.py — Marshmallow schemas for group endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim),
    at least one member email.
  - services/group_service.py: MEMBER_EMAIL_NOT_FOUND (every email must
    belong to a registered user — requires a DB lookup).

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

import datetime as dt

from marshmallow import Schema, ValidationError, fields, validate


# validate.Length(min=1) alone allows whitespace-only strings like "   ";
# this validator strips first, mirroring CHECK(LENGTH(TRIM(name)) > 0).

def _validate_non_empty_after_trim(value: str) -> None:
    """Raises ValidationError if the string is blank or contains only whitespace."""
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class CreateGroupSchema(Schema):
    """
    POST /groups

    member_emails are resolved to users by the service; unknown addresses
    fail the whole request and nothing is created.
    """

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Group name must be between 1 and 100 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    description = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=500),
    )

    created_date = fields.Date(load_default=dt.date.today)

    member_emails = fields.List(
        fields.Email(),
        required=True,
        validate=validate.Length(
            min=1,
            error="A group needs at least one member email.",
        ),
    )
