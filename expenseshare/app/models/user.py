"""
models/user.py — User table definition.

No business logic. No imports from services or routes.

A user's balance is not a column: it is the sum of the user's ledger entries
(see models/ledger_entry.py and services/balance_service.py).
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expenseshare.app.extensions import db


class Role(str, enum.Enum):
    USER  = "user"
    ADMIN = "admin"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'admin'), not names ('ADMIN')."""
    return [member.value for member in enum_cls]


class User(db.Model):
    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_users_name_nonempty",
        ),
        CheckConstraint(
            "email LIKE '%@%'",
            name="ck_users_email_format",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Stored lower-case; lookups normalise before querying.
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Non-native enum: a VARCHAR + CHECK on every dialect, so no
    # CREATE TYPE has to exist before create_all().
    role: Mapped[Role] = mapped_column(
        Enum(
            Role,
            name="role_enum",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=Role.USER,
        server_default=Role.USER.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    memberships: Mapped[list["Membership"]] = relationship(  # noqa: F821
        "Membership",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    expenses_paid: Mapped[list["Expense"]] = relationship(  # noqa: F821
        "Expense",
        back_populates="payer",
        foreign_keys="[Expense.paid_by_id]",
    )

    ledger_entries: Mapped[list["LedgerEntry"]] = relationship(  # noqa: F821
        "LedgerEntry",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} email={self.email!r}>"
