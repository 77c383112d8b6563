"""
middleware/auth_middleware.py — JWT authentication decorator.

The @require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Decodes and verifies the JWT signature
  3. Checks token expiry
  4. Attaches user_id (int) and role (str) to flask.g for the request
  5. Raises UnauthorizedError if any step fails

This middleware only authenticates. Services receive user ids as plain
integers and know nothing about JWTs or headers.

Error codes (all UnauthorizedError → 401):
  TOKEN_MISSING — no Authorization header
  TOKEN_INVALID — malformed header, invalid signature, or bad payload
  TOKEN_EXPIRED — valid token but exp claim is in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from expenseshare.app.errors import ErrorCode, UnauthorizedError


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces JWT authentication.

    Usage:
        @groups_bp.route("/")
        @require_auth
        def get_all_groups():
            user_id = g.user_id  # always an int when this runs
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _authenticate_request() -> None:
    """
    Performs the full JWT authentication sequence and sets flask.g.user_id.

    Raises UnauthorizedError on any failure; the global error handler turns
    it into the JSON response.
    """
    auth_header = request.headers.get("Authorization", "")

    if not auth_header:
        raise UnauthorizedError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
        )

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthorizedError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
        )

    try:
        payload = jwt.decode(
            parts[1],
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Log in again to obtain a new one.",
        )
    except jwt.InvalidTokenError:
        # bad signature, malformed token, invalid claims, ...
        raise UnauthorizedError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
        )

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise UnauthorizedError(
            ErrorCode.TOKEN_INVALID,
            "The access token does not carry a valid 'sub' claim.",
        )

    g.user_id = user_id
    g.user_role = payload.get("role", "user")
