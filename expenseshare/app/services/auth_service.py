"""
services/auth_service.py — Authentication business logic.

Responsibilities:
  - User registration
  - Credential validation (bcrypt)
  - JWT access token issuance (HS256, PyJWT)

Layer rules:
  - No imports from routes or schemas.
  - No use of flask.request, flask.g, or HTTP status codes.
  - current_app.config is read ONLY for the JWT secret/expiry and the bcrypt
    cost factor, so secrets never bypass Flask config validation.

Password storage:
  - Hashed with bcrypt (cost factor from config BCRYPT_LOG_ROUNDS)
  - Raw password is never stored, never logged
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy.orm import Session

from expenseshare.app.errors import ConflictError, ErrorCode, UnauthorizedError
from expenseshare.app.models.user import Role, User
from expenseshare.app.services import user_service


# ── Private helpers ────────────────────────────────────────────────────────

def _hash_password(password: str) -> str:
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


# ── Public service functions ───────────────────────────────────────────────

def issue_token(user: User) -> str:
    """
    Creates a signed JWT access token for `user`.
    Payload: sub (user id as str), role, iat, exp, jti.
    """
    now = datetime.now(timezone.utc)
    expiry = now + current_app.config["JWT_ACCESS_TOKEN_EXPIRES"]
    payload = {
        "sub": str(user.id),
        "role": user.role.value,
        "iat": now,
        "exp": expiry,
        # Each issued token is unique even within the same second.
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def validate_credentials(email: str, password: str, session: Session) -> bool:
    """True when `email` belongs to a user whose password hash matches `password`."""
    user = user_service.get_by_email(email, session)
    if user is None:
        return False
    return bcrypt.checkpw(
        password.encode("utf-8"),
        user.password_hash.encode("utf-8"),
    )


def register_user(
        name: str,
        email: str,
        password: str,
        session: Session,
) -> dict:
    """
    Creates a user account and issues an access token.

    Raises:
      ConflictError(DUPLICATE_EMAIL) — email already registered.

    Returns: {"user": {...}, "token": "..."}
    """
    email = email.strip().lower()
    if user_service.get_by_email(email, session) is not None:
        raise ConflictError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            field="email",
        )

    user = User(
        name=name.strip(),
        email=email,
        password_hash=_hash_password(password),
        role=Role.USER,
    )
    session.add(user)
    session.flush()

    return {
        "user": user_service.serialize_user(user, session),
        "token": issue_token(user),
    }


def login(email: str, password: str, session: Session) -> dict:
    """
    Validates credentials and issues a new access token.

    Raises:
      UnauthorizedError(INVALID_CREDENTIALS) — unknown email or wrong password.
      The same error is used for both to avoid account enumeration.

    Returns: {"token": "...", "user": {...}}
    """
    if not validate_credentials(email, password, session):
        raise UnauthorizedError(
            ErrorCode.INVALID_CREDENTIALS,
            "The email or password is incorrect.",
        )

    user = user_service.get_by_email(email, session)
    return {
        "token": issue_token(user),
        "user": user_service.serialize_user(user, session),
    }
