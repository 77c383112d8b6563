"""
routes/auth.py — Authentication route handlers.

Each handler:
  - Parses the request body
  - Validates it with the appropriate schema (marshmallow ValidationError → 400)
  - Calls exactly ONE service function
  - Commits the DB session
  - Returns the envelope: {"data": {...}, "warnings": []}

AppError propagates to the global error handler in app/__init__.py — routes
never catch it.

Endpoints (url_prefix=/api/v1/auth):
  POST   /auth/register  → 201
  POST   /auth/login     → 200
  GET    /auth/me        → 200
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from expenseshare.app.errors import ErrorCode, NotFoundError
from expenseshare.app.extensions import db
from expenseshare.app.middleware.auth_middleware import require_auth
from expenseshare.app.schemas.auth_schema import LoginSchema, RegisterSchema
from expenseshare.app.services import auth_service, user_service

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
def register():
    """POST /auth/register — Create account; return user and token. (No auth required.)"""
    data = RegisterSchema().load(request.get_json(force=True) or {})
    result = auth_service.register_user(
        name=data["name"],
        email=data["email"],
        password=data["password"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Authenticate; return token. (No auth required.)"""
    data = LoginSchema().load(request.get_json(force=True) or {})
    result = auth_service.login(
        email=data["email"],
        password=data["password"],
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /auth/me — Return the caller's profile, balance included."""
    result = user_service.get_by_id(g.user_id, session=db.session)
    if result is None:
        # user deleted after the token was issued
        raise NotFoundError(ErrorCode.USER_NOT_FOUND, f"User {g.user_id} not found.")
    return jsonify({"data": result, "warnings": []}), 200
