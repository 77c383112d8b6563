"""
schemas/auth_schema.py — Marshmallow schemas for authentication and user endpoints.

Validation responsibility:
  - This file: field types, lengths, formats.
  - services/auth_service.py and services/user_service.py: DUPLICATE_EMAIL
    (requires a DB lookup — not a schema concern).

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use ma.Schema — it requires an active Flask app context
           and breaks unit tests. See extensions.py.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates

from expenseshare.app.models.user import Role


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


_NAME_VALIDATORS = [
    validate.Length(
        min=1,
        max=100,
        error="Name must be between 1 and 100 characters.",
    ),
    _validate_non_empty_after_trim,
]


class RegisterSchema(Schema):
    """
    POST /auth/register

    Field rules:
      name     : 1–100 chars, not blank
      email    : valid email format
      password : min 8 chars, at least one letter and one digit
    """

    name = fields.Str(required=True, validate=_NAME_VALIDATORS)

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )

    password = fields.Str(required=True, load_only=True)

    @validates("password")
    def validate_password_strength(self, value: str, **kwargs) -> None:
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")
        if not any(c.isalpha() for c in value):
            raise ValidationError("Password must contain at least one letter.")
        if not any(c.isdigit() for c in value):
            raise ValidationError("Password must contain at least one digit.")


class LoginSchema(Schema):
    """
    POST /auth/login

    Credential correctness is checked in auth_service.py (INVALID_CREDENTIALS, 401).
    """

    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True)


class UpdateUserSchema(Schema):
    """PUT /users/:id — every field optional; only provided fields change."""

    name = fields.Str(validate=_NAME_VALIDATORS)
    email = fields.Email(validate=validate.Length(max=255))
    role = fields.Enum(Role, by_value=True)
