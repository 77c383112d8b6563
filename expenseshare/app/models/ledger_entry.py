"""
models/ledger_entry.py — LedgerEntry table definition.

One row per (settled expense, group member): the signed amount that settlement
moved onto that member's balance. Rows are append-only; a user's balance is
the sum of their rows (services/balance_service.py).

Key design points:
  - `delta` uses Numeric(12, 2), never Float. Positive = owed to the user.
  - expense_id and group_id are ON DELETE SET NULL: deleting an expense or a
    group never reverses a settlement that already happened.
  - user_id is ON DELETE CASCADE: the entries go with their user.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expenseshare.app.extensions import db


class LedgerEntry(db.Model):
    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    expense_id: Mapped[int | None] = mapped_column(
        ForeignKey("expenses.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    group_id: Mapped[int | None] = mapped_column(
        ForeignKey("groups.id", ondelete="SET NULL"),
        nullable=True,
    )

    delta: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="ledger_entries",
    )

    expense: Mapped["Expense | None"] = relationship(  # noqa: F821
        "Expense",
        back_populates="ledger_entries",
    )

    group: Mapped["Group | None"] = relationship(  # noqa: F821
        "Group",
        back_populates="ledger_entries",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<LedgerEntry id={self.id} "
            f"user_id={self.user_id} "
            f"expense_id={self.expense_id} "
            f"delta={self.delta}>"
        )
