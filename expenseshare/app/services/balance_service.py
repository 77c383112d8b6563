"""
services/balance_service.py — Settlement arithmetic and balance reads.

This file is the SINGLE SOURCE OF TRUTH for how settling an expense moves
money between group members, and for how a balance is read back. Do not
reimplement either formula elsewhere.

Settlement rule (compute_settlement_deltas):
  - share = amount / n, quantized to cents with ROUND_DOWN.
  - Every member other than the payer is debited `share`.
  - The payer's own share absorbs the rounding remainder, so the payer is
    credited exactly share * (n - 1): the sum of everybody else's debits.
  - Member shares therefore sum to `amount` and the deltas sum to zero.

  300.00 among 3 → payer +200.00, others -100.00 each
  100.00 among 3 → payer  +66.66, others  -33.33 each (payer's share 33.34)

Balances:
  A user's balance is the sum of their ledger entries. Entries are only ever
  appended by expense_service.settle_expense, in the same transaction that
  marks the expense settled.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - compute_settlement_deltas is pure; the read helpers take a Session.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal, ROUND_DOWN

from sqlalchemy import select
from sqlalchemy.orm import Session

from expenseshare.app.errors import AppError, ErrorCode, InvalidStateError
from expenseshare.app.models.ledger_entry import LedgerEntry
from expenseshare.app.models.membership import Membership

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


# ── Pure computation ───────────────────────────────────────────────────────

def compute_settlement_deltas(
        amount: Decimal,
        member_ids: list[int],
        payer_id: int,
) -> dict[int, Decimal]:
    """
    Splits `amount` evenly among `member_ids` and returns the balance delta
    for each member, keyed by user id, in member order.

    Raises:
        InvalidStateError(NO_MEMBERS_TO_SETTLE) — member_ids is empty.
        InvalidStateError(PAYER_NOT_MEMBER)     — payer_id not in member_ids.
    """
    members = list(dict.fromkeys(member_ids))  # dedupe, keep order

    if not members:
        raise InvalidStateError(
            ErrorCode.NO_MEMBERS_TO_SETTLE,
            "There are no group members to settle this expense between.",
        )
    if payer_id not in members:
        raise InvalidStateError(
            ErrorCode.PAYER_NOT_MEMBER,
            f"Payer {payer_id} is not a member of the expense's group.",
        )

    n = len(members)
    share = (amount / Decimal(n)).quantize(CENT, rounding=ROUND_DOWN)

    deltas = {uid: ZERO - share for uid in members}
    deltas[payer_id] = share * (n - 1)

    # Must always hold; a failure here is a programming error.
    total = sum(deltas.values(), ZERO)
    if total != ZERO:
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Settlement of {amount} produced deltas summing to {total}.",
        )

    return deltas


# ── Data access helpers ────────────────────────────────────────────────────

def get_member_ids(group_id: int, session: Session) -> list[int]:
    """Returns the user_ids of the group's members in membership order."""
    stmt = (
        select(Membership.user_id)
        .where(Membership.group_id == group_id)
        .order_by(Membership.id)
    )
    return list(session.execute(stmt).scalars().all())


def get_user_balance(user_id: int, session: Session) -> Decimal:
    """Net amount owed to (+) or by (-) the user across every settlement."""
    stmt = select(LedgerEntry.delta).where(LedgerEntry.user_id == user_id)
    deltas = session.execute(stmt).scalars().all()
    return sum(deltas, ZERO).quantize(CENT)


def get_user_balances(user_ids: list[int], session: Session) -> dict[int, Decimal]:
    """Balances for many users in one query. Users without entries map to 0.00."""
    balances: dict[int, Decimal] = defaultdict(lambda: ZERO)
    if user_ids:
        stmt = (
            select(LedgerEntry.user_id, LedgerEntry.delta)
            .where(LedgerEntry.user_id.in_(user_ids))
        )
        for uid, delta in session.execute(stmt).all():
            balances[uid] += delta
    return {uid: balances[uid].quantize(CENT) for uid in user_ids}


def get_ledger_for_user(user_id: int, session: Session) -> list[LedgerEntry]:
    """All ledger entries of a user, oldest first."""
    stmt = (
        select(LedgerEntry)
        .where(LedgerEntry.user_id == user_id)
        .order_by(LedgerEntry.id)
    )
    return list(session.execute(stmt).scalars().all())


def get_ledger_for_expense(expense_id: int, session: Session) -> list[LedgerEntry]:
    """The entries written when the expense was settled (empty if unsettled)."""
    stmt = (
        select(LedgerEntry)
        .where(LedgerEntry.expense_id == expense_id)
        .order_by(LedgerEntry.id)
    )
    return list(session.execute(stmt).scalars().all())
