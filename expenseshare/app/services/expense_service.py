"""
services/expense_service.py — Expense business logic.

Rules enforced here:
  - Details are validated with the expense schemas; malformed input raises
    ValidationError before anything is written.
  - group_id and paid_by_id must resolve (GROUP_NOT_RESOLVED /
    PAYER_NOT_RESOLVED) and the payer must be a member of the group
    (PAYER_NOT_MEMBER). All three are ValidationError.
  - Unknown expense ids raise NotFoundError (EXPENSE_NOT_FOUND).
  - Balances change only at settlement. Adding, updating and deleting an
    expense never writes ledger entries, and updating or deleting a settled
    expense does not reverse the entries its settlement wrote.

Settlement (settle_expense):
  1. Lock the expense row (SELECT ... FOR UPDATE where supported).
  2. Refuse if it is already settled (EXPENSE_ALREADY_SETTLED).
  3. Compute deltas over the group's current members (balance_service).
  4. Flip is_settled with UPDATE ... WHERE is_settled = false. Zero rows
     updated means a concurrent settlement won; refuse the same way.
  5. Append one ledger entry per member.
  Steps 4 and 5 share the request transaction, so they commit together or
  not at all.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Receives plain ints and dicts; returns ORM objects or raises AppError.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from marshmallow import ValidationError as SchemaValidationError
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from expenseshare.app.errors import (
    ErrorCode,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from expenseshare.app.models.expense import Expense
from expenseshare.app.models.group import Group
from expenseshare.app.models.ledger_entry import LedgerEntry
from expenseshare.app.models.user import User
from expenseshare.app.schemas.expense_schema import (
    ExpenseDetailsSchema,
    UpdateExpenseSchema,
)
from expenseshare.app.services import balance_service

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _load_details(schema_cls: type, details: dict | None) -> dict:
    """
    Validates an unvalidated details payload and returns the loaded dict.
    The first schema error becomes a domain ValidationError.
    """
    try:
        return schema_cls().load(details or {})
    except SchemaValidationError as err:
        field, message = _first_schema_error(err.messages)
        code = (
            message
            if message == ErrorCode.INVALID_AMOUNT_PRECISION
            else ErrorCode.INVALID_FIELD
        )
        if message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
        raise ValidationError(code, message, field=field) from err


def _first_schema_error(messages) -> tuple[str | None, str]:
    """Flattens marshmallow's messages dict to its first (field, message) pair."""
    if isinstance(messages, dict):
        for field_name, field_errors in messages.items():
            field = field_name if field_name != "_schema" else None
            if isinstance(field_errors, list) and field_errors:
                return field, str(field_errors[0])
            return field, str(field_errors)
    if isinstance(messages, list) and messages:
        return None, str(messages[0])
    return None, "Invalid expense details."


def _get_expense_or_404(expense_id: int, session: Session) -> Expense:
    """Returns the Expense or raises EXPENSE_NOT_FOUND."""
    expense = session.get(Expense, expense_id)
    if expense is None:
        raise NotFoundError(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not exist.",
        )
    return expense


def _validate_references(group_id: int, paid_by_id: int, session: Session) -> None:
    """
    Raises ValidationError unless the group and payer exist and the payer is
    one of the group's members.
    """
    if session.get(Group, group_id) is None:
        raise ValidationError(
            ErrorCode.GROUP_NOT_RESOLVED,
            f"Group {group_id} does not exist.",
            field="group_id",
        )

    if session.get(User, paid_by_id) is None:
        raise ValidationError(
            ErrorCode.PAYER_NOT_RESOLVED,
            f"User {paid_by_id} does not exist.",
            field="paid_by_id",
        )

    member_ids = balance_service.get_member_ids(group_id, session)
    if paid_by_id not in member_ids:
        raise ValidationError(
            ErrorCode.PAYER_NOT_MEMBER,
            f"User {paid_by_id} is not a member of group {group_id}.",
            field="paid_by_id",
        )


# ── Public service functions ───────────────────────────────────────────────

def add_expense(group_id: int, details: dict, session: Session) -> Expense:
    """
    Records a new, unsettled expense for a group.

    Args:
        group_id: The owning group (from the URL).
        details:  Raw payload: description, amount, paid_by_id, optional
                  group_id (must equal `group_id`) and date.

    Raises:
        ValidationError — malformed details, unknown group or payer, payer
                          not a member, or body/URL group mismatch.
    """
    data = _load_details(ExpenseDetailsSchema, details)

    if data["group_id"] is not None and data["group_id"] != group_id:
        raise ValidationError(
            ErrorCode.INVALID_FIELD,
            f"group_id {data['group_id']} does not match the group in the URL ({group_id}).",
            field="group_id",
        )

    _validate_references(group_id, data["paid_by_id"], session)

    expense = Expense(
        group_id=group_id,
        paid_by_id=data["paid_by_id"],
        description=data["description"],
        amount=data["amount"],
        date=data["date"],
        is_settled=False,
    )
    session.add(expense)
    session.flush()
    return expense


def get_all_expenses(session: Session) -> list[Expense]:
    """Returns every expense, oldest first."""
    stmt = select(Expense).order_by(Expense.id)
    return list(session.execute(stmt).scalars().all())


def get_expense_by_id(expense_id: int, session: Session) -> Expense:
    """Returns one expense or raises EXPENSE_NOT_FOUND."""
    return _get_expense_or_404(expense_id, session)


def get_all_expenses_of_group(group_id: int, session: Session) -> list[Expense]:
    """Returns the group's expenses, oldest first. Unknown groups yield []."""
    stmt = (
        select(Expense)
        .where(Expense.group_id == group_id)
        .order_by(Expense.id)
    )
    return list(session.execute(stmt).scalars().all())


def update_expense(expense_id: int, details: dict, session: Session) -> Expense:
    """
    Replaces description, amount, payer, group and date of an expense.

    The settled flag is untouched. If the expense was already settled its
    ledger entries stay as they were: balances are not recomputed.

    Raises:
        NotFoundError   — unknown expense id (checked first).
        ValidationError — malformed details or unresolvable references.
    """
    expense = _get_expense_or_404(expense_id, session)
    data = _load_details(UpdateExpenseSchema, details)

    _validate_references(data["group_id"], data["paid_by_id"], session)

    expense.description = data["description"]
    expense.amount = data["amount"]
    expense.paid_by_id = data["paid_by_id"]
    expense.group_id = data["group_id"]
    expense.date = data["date"]
    expense.updated_at = datetime.now(timezone.utc)
    session.flush()
    return expense


def delete_expense(expense_id: int, session: Session) -> None:
    """
    Removes an expense. Ledger entries written by an earlier settlement
    remain (their expense_id becomes NULL), so balances are unchanged.

    Raises:
        NotFoundError — unknown expense id.
    """
    expense = _get_expense_or_404(expense_id, session)
    session.delete(expense)
    session.flush()


def settle_expense(
        expense_id: int,
        session: Session,
) -> tuple[Expense, dict[int, Decimal]]:
    """
    Settles an expense among the current members of its group.

    Returns:
        (expense, deltas) where deltas maps user_id → signed Decimal.

    Raises:
        NotFoundError     — unknown expense id.
        InvalidStateError — already settled (including losing a concurrent
                            race), no members, or payer not a member.
    """
    expense = session.execute(
        select(Expense)
        .where(Expense.id == expense_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()

    if expense is None:
        raise NotFoundError(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not exist.",
        )

    if expense.is_settled:
        raise InvalidStateError(
            ErrorCode.EXPENSE_ALREADY_SETTLED,
            f"Expense {expense_id} has already been settled.",
        )

    member_ids = balance_service.get_member_ids(expense.group_id, session)
    deltas = balance_service.compute_settlement_deltas(
        expense.amount,
        member_ids,
        expense.paid_by_id,
    )

    now = datetime.now(timezone.utc)
    result = session.execute(
        update(Expense)
        .where(Expense.id == expense_id, Expense.is_settled.is_(False))
        .values(is_settled=True, settled_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidStateError(
            ErrorCode.EXPENSE_ALREADY_SETTLED,
            f"Expense {expense_id} has already been settled.",
        )

    for user_id, delta in deltas.items():
        session.add(LedgerEntry(
            user_id=user_id,
            expense_id=expense.id,
            group_id=expense.group_id,
            delta=delta,
        ))
    session.flush()
    session.refresh(expense)

    logger.info(
        "Settled expense %s (amount=%s) among %d members",
        expense_id,
        expense.amount,
        len(deltas),
    )
    return expense, deltas
