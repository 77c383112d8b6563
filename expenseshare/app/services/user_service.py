"""
services/user_service.py — User lookup and maintenance.

get_by_id / update / delete report an unknown id with None / False rather
than raising; the route maps that to 404.

update and delete act only on the caller's own account unless the caller
is an admin, and only admins may change a role. The caller's role is read
from the database, so a demotion takes effect before their token expires.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from expenseshare.app.errors import (
    ConflictError,
    ErrorCode,
    ForbiddenError,
    InvalidStateError,
)
from expenseshare.app.models.expense import Expense
from expenseshare.app.models.user import Role, User
from expenseshare.app.services import balance_service


def serialize_user(user: User, session: Session, balance=None) -> dict:
    """Serialises a User to a plain dict, including the derived balance."""
    if balance is None:
        balance = balance_service.get_user_balance(user.id, session)
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "balance": balance,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def get_by_email(email: str, session: Session) -> User | None:
    return session.execute(
        select(User).where(User.email == email.strip().lower())
    ).scalar_one_or_none()


def get_all(session: Session) -> list[dict]:
    users = list(session.execute(select(User).order_by(User.id)).scalars().all())
    balances = balance_service.get_user_balances([u.id for u in users], session)
    return [serialize_user(u, session, balances[u.id]) for u in users]


def get_by_id(user_id: int, session: Session) -> dict | None:
    user = session.get(User, user_id)
    if user is None:
        return None
    return serialize_user(user, session)


def _is_admin(actor_id: int, session: Session) -> bool:
    actor = session.get(User, actor_id)
    return actor is not None and actor.role == Role.ADMIN


def _require_self_or_admin(user_id: int, actor_id: int, session: Session) -> None:
    if actor_id != user_id and not _is_admin(actor_id, session):
        raise ForbiddenError(
            ErrorCode.FORBIDDEN,
            f"You may not modify user {user_id}.",
        )


def update(user_id: int, patch: dict, actor_id: int, session: Session) -> bool:
    """
    Applies a validated UpdateUserSchema patch on behalf of actor_id.
    Returns False if the user does not exist.

    Raises:
        ForbiddenError(FORBIDDEN) — actor is neither the user nor an admin,
        or a non-admin tried to change a role.
        ConflictError(DUPLICATE_EMAIL) — new email belongs to another user.
    """
    user = session.get(User, user_id)
    if user is None:
        return False

    _require_self_or_admin(user_id, actor_id, session)
    if "role" in patch and not _is_admin(actor_id, session):
        raise ForbiddenError(
            ErrorCode.FORBIDDEN,
            "Only an admin may change a user's role.",
            field="role",
        )

    if "email" in patch:
        email = patch["email"].strip().lower()
        other = get_by_email(email, session)
        if other is not None and other.id != user.id:
            raise ConflictError(
                ErrorCode.DUPLICATE_EMAIL,
                f"The email address '{email}' is already registered.",
                field="email",
            )
        user.email = email

    if "name" in patch:
        user.name = patch["name"].strip()

    if "role" in patch:
        user.role = patch["role"]

    session.flush()
    return True


def delete(user_id: int, actor_id: int, session: Session) -> bool:
    """
    Deletes a user with their memberships and ledger entries on behalf of
    actor_id. Returns False if the user does not exist.

    Raises:
        ForbiddenError(FORBIDDEN) — actor is neither the user nor an admin.
        InvalidStateError(USER_HAS_EXPENSES) — the user paid for an expense
        that still exists.
    """
    user = session.get(User, user_id)
    if user is None:
        return False

    _require_self_or_admin(user_id, actor_id, session)

    has_expenses = session.execute(
        select(exists().where(Expense.paid_by_id == user_id))
    ).scalar()
    if has_expenses:
        raise InvalidStateError(
            ErrorCode.USER_HAS_EXPENSES,
            f"User {user_id} paid for existing expenses and cannot be deleted.",
        )

    session.delete(user)
    session.flush()
    return True
