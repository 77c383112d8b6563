"""
routes/groups.py — Group route handlers.

Parse, validate, call ONE service, commit, return envelope.
No business logic. No DB queries.

Endpoints (url_prefix=/api/v1/groups):
  GET    /groups                 → 200  all groups
  GET    /groups/:id             → 200  group + members, 404 if unknown
  GET    /groups/user/:user_id   → 200  groups the user belongs to
  POST   /groups                 → 201  create; Location header points at the group
  DELETE /groups/:id             → 200  delete group, memberships and expenses
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request, url_for

from expenseshare.app.errors import ErrorCode, NotFoundError
from expenseshare.app.extensions import db
from expenseshare.app.middleware.auth_middleware import require_auth
from expenseshare.app.models.group import Group
from expenseshare.app.schemas.group_schema import CreateGroupSchema
from expenseshare.app.services import group_service

groups_bp = Blueprint("groups", __name__)


def _serialize_group(group: Group) -> dict:
    """Converts a Group ORM object to a plain dict; members in membership order."""
    return {
        "id": group.id,
        "name": group.name,
        "description": group.description,
        "created_date": group.created_date.isoformat(),
        "members": [
            {
                "user_id": m.user_id,
                "name": m.user.name,
                "email": m.user.email,
            }
            for m in group.memberships
        ],
    }


@groups_bp.route("/", methods=["GET"])
@require_auth
def get_all_groups():
    groups = group_service.get_all_groups(session=db.session)
    return jsonify({"data": [_serialize_group(g) for g in groups], "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["GET"])
@require_auth
def get_group_by_id(group_id: int):
    group = group_service.get_group_by_id(group_id, session=db.session)
    if group is None:
        raise NotFoundError(ErrorCode.GROUP_NOT_FOUND, f"Group {group_id} does not exist.")
    return jsonify({"data": _serialize_group(group), "warnings": []}), 200


@groups_bp.route("/user/<int:user_id>", methods=["GET"])
@require_auth
def get_groups_by_user_id(user_id: int):
    groups = group_service.get_groups_by_user_id(user_id, session=db.session)
    return jsonify({"data": [_serialize_group(g) for g in groups], "warnings": []}), 200


@groups_bp.route("/", methods=["POST"])
@require_auth
def create_group():
    """POST /groups — Create a group from a name and the members' emails."""
    data = CreateGroupSchema().load(request.get_json(force=True) or {})
    group = group_service.create_group(data, session=db.session)
    db.session.commit()

    response = jsonify({"data": _serialize_group(group), "warnings": []})
    response.status_code = 201
    response.headers["Location"] = url_for("groups.get_group_by_id", group_id=group.id)
    return response


@groups_bp.route("/<int:group_id>", methods=["DELETE"])
@require_auth
def delete_group(group_id: int):
    group_service.delete_group(group_id, session=db.session)
    db.session.commit()
    return jsonify({
        "data": {
            "message": "Group and related expenses deleted successfully.",
            "group_id": group_id,
        },
        "warnings": [],
    }), 200
