"""
routes/users.py — User route handlers.

Endpoints (url_prefix=/api/v1/users):
  GET    /users              → 200  all users (with balances)
  GET    /users/:id          → 200  one user, 404 if unknown
  GET    /users/:id/ledger   → 200  settlement history + balance
  PUT    /users/:id          → 204  partial profile update, 404 if unknown
  DELETE /users/:id          → 204  delete, 404 if unknown

PUT and DELETE answer 403 unless the caller is the user or an admin; only an
admin may change a role.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from expenseshare.app.errors import ErrorCode, NotFoundError
from expenseshare.app.extensions import db
from expenseshare.app.middleware.auth_middleware import require_auth
from expenseshare.app.schemas.auth_schema import UpdateUserSchema
from expenseshare.app.services import balance_service, user_service

users_bp = Blueprint("users", __name__)


def _user_not_found(user_id: int) -> NotFoundError:
    return NotFoundError(ErrorCode.USER_NOT_FOUND, f"User {user_id} not found.")


@users_bp.route("/", methods=["GET"])
@require_auth
def get_all_users():
    result = user_service.get_all(session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/<int:user_id>", methods=["GET"])
@require_auth
def get_user_by_id(user_id: int):
    result = user_service.get_by_id(user_id, session=db.session)
    if result is None:
        raise _user_not_found(user_id)
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/<int:user_id>/ledger", methods=["GET"])
@require_auth
def get_user_ledger(user_id: int):
    """GET /users/:id/ledger — every balance change settlement applied to the user."""
    if user_service.get_by_id(user_id, session=db.session) is None:
        raise _user_not_found(user_id)

    entries = balance_service.get_ledger_for_user(user_id, session=db.session)
    return jsonify({
        "data": {
            "user_id": user_id,
            "balance": balance_service.get_user_balance(user_id, session=db.session),
            "entries": [
                {
                    "id": e.id,
                    "expense_id": e.expense_id,
                    "group_id": e.group_id,
                    "delta": str(e.delta),
                    "created_at": e.created_at.isoformat() if e.created_at else None,
                }
                for e in entries
            ],
        },
        "warnings": [],
    }), 200


@users_bp.route("/<int:user_id>", methods=["PUT"])
@require_auth
def update_user(user_id: int):
    patch = UpdateUserSchema().load(request.get_json(force=True) or {})
    if not user_service.update(
        user_id, patch, actor_id=g.user_id, session=db.session
    ):
        raise _user_not_found(user_id)
    db.session.commit()
    return "", 204


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@require_auth
def delete_user(user_id: int):
    if not user_service.delete(user_id, actor_id=g.user_id, session=db.session):
        raise _user_not_found(user_id)
    db.session.commit()
    return "", 204
