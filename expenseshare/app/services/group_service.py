"""
services/group_service.py — Group and membership business logic.

Rules enforced here:
  - MEMBER_EMAIL_NOT_FOUND (ValidationError): every member email given at
    creation must belong to a registered user; otherwise nothing is created.
  - GROUP_NOT_FOUND (NotFoundError) on delete of an unknown group.
  - Deleting a group deletes its memberships and all of its expenses.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from expenseshare.app.errors import ErrorCode, NotFoundError, ValidationError
from expenseshare.app.models.group import Group
from expenseshare.app.models.membership import Membership
from expenseshare.app.models.user import User

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _resolve_member_emails(emails: list[str], session: Session) -> list[User]:
    """
    Maps emails (case-insensitive, duplicates collapsed) to users in the
    order given. Raises MEMBER_EMAIL_NOT_FOUND naming every unknown address.
    """
    wanted = list(dict.fromkeys(e.strip().lower() for e in emails))

    found = session.execute(
        select(User).where(User.email.in_(wanted))
    ).scalars().all()
    by_email = {u.email: u for u in found}

    missing = [e for e in wanted if e not in by_email]
    if missing:
        raise ValidationError(
            ErrorCode.MEMBER_EMAIL_NOT_FOUND,
            f"No registered user for: {', '.join(missing)}.",
            field="member_emails",
        )
    return [by_email[e] for e in wanted]


# ── Public service functions ───────────────────────────────────────────────

def create_group(data: dict, session: Session) -> Group:
    """
    Creates a group and one membership per member email.

    Args:
        data: Validated dict from CreateGroupSchema
              (name, description, created_date, member_emails).

    Raises:
        ValidationError(MEMBER_EMAIL_NOT_FOUND) — an email does not resolve.
    """
    members = _resolve_member_emails(data["member_emails"], session)

    group = Group(
        name=data["name"].strip(),
        description=data.get("description"),
        created_date=data["created_date"],
    )
    session.add(group)
    session.flush()  # populate group.id before creating memberships

    for user in members:
        session.add(Membership(user_id=user.id, group_id=group.id))
    session.flush()
    session.refresh(group)
    return group


def get_all_groups(session: Session) -> list[Group]:
    stmt = select(Group).order_by(Group.id)
    return list(session.execute(stmt).scalars().all())


def get_group_by_id(group_id: int, session: Session) -> Group | None:
    """Returns the group, or None when it does not exist (the route maps that to 404)."""
    return session.get(Group, group_id)


def get_groups_by_user_id(user_id: int, session: Session) -> list[Group]:
    """Returns every group in which the user holds a membership."""
    stmt = (
        select(Group)
        .join(Membership, Group.id == Membership.group_id)
        .where(Membership.user_id == user_id)
        .order_by(Group.id)
    )
    return list(session.execute(stmt).scalars().all())


def delete_group(group_id: int, session: Session) -> None:
    """
    Deletes a group together with its memberships and expenses.

    Ledger entries from expenses that were settled survive with
    group_id/expense_id set to NULL, so member balances are unchanged.

    Raises:
        NotFoundError(GROUP_NOT_FOUND) — unknown group id.
    """
    group = session.get(Group, group_id)
    if group is None:
        raise NotFoundError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
        )

    expense_count = len(group.expenses)
    session.delete(group)
    session.flush()

    logger.info("Deleted group %s and %d expenses", group_id, expense_count)
