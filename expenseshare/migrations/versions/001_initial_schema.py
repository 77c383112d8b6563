"""Initial schema: tables, constraints, and indexes.

Revision: 001_initial_schema
Created:  2026-10-17

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  users → groups → memberships → expenses → ledger_entries, then indexes.

ON DELETE policies:
  memberships.*               → CASCADE   (membership owned by user and group)
  expenses.group_id           → CASCADE   (deleting a group deletes its expenses)
  expenses.paid_by_id         → RESTRICT  (cannot delete a user who paid)
  ledger_entries.user_id      → CASCADE
  ledger_entries.expense_id   → SET NULL  (settled balances survive deletes)
  ledger_entries.group_id     → SET NULL
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:
    # ── users ──────────────────────────────────────────────────────────────
    # role is a VARCHAR + CHECK rather than a native enum type.

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("user", "admin", name="role_enum", native_enum=False),
            nullable=False,
            server_default="user",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_users_name_nonempty",
        ),
        sa.CheckConstraint(
            "email LIKE '%@%'",
            name="ck_users_email_format",
        ),
    )

    # ── groups ─────────────────────────────────────────────────────────────

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("created_date", sa.Date(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
    )

    # ── memberships ────────────────────────────────────────────────────────

    op.create_table(
        "memberships",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_memberships_user"),
            nullable=False,
        ),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_memberships_group"),
            nullable=False,
        ),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_memberships"),
        sa.UniqueConstraint("user_id", "group_id", name="uq_memberships_user_group"),
    )

    # ── expenses ───────────────────────────────────────────────────────────

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_expenses_group"),
            nullable=False,
        ),
        sa.Column(
            "paid_by_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_expenses_payer"),
            nullable=False,
        ),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "is_settled",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_expenses"),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        sa.CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_expenses_description_nonempty",
        ),
    )

    # ── ledger_entries ─────────────────────────────────────────────────────

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_ledger_entries_user"),
            nullable=False,
        ),
        sa.Column(
            "expense_id",
            sa.Integer(),
            sa.ForeignKey("expenses.id", ondelete="SET NULL", name="fk_ledger_entries_expense"),
            nullable=True,
        ),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="SET NULL", name="fk_ledger_entries_group"),
            nullable=True,
        ),
        sa.Column("delta", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_ledger_entries"),
    )

    # ── Indexes ────────────────────────────────────────────────────────────

    op.create_index("idx_memberships_user",      "memberships",    ["user_id"])
    op.create_index("idx_memberships_group",     "memberships",    ["group_id"])
    op.create_index("idx_expenses_group",        "expenses",       ["group_id"])
    op.create_index("idx_expenses_payer",        "expenses",       ["paid_by_id"])
    op.create_index("idx_ledger_entries_user",   "ledger_entries", ["user_id"])
    op.create_index("idx_ledger_entries_expense", "ledger_entries", ["expense_id"])


def downgrade() -> None:
    """Drop everything created in upgrade(), in reverse dependency order."""

    op.drop_index("idx_ledger_entries_expense", table_name="ledger_entries")
    op.drop_index("idx_ledger_entries_user",    table_name="ledger_entries")
    op.drop_index("idx_expenses_payer",         table_name="expenses")
    op.drop_index("idx_expenses_group",         table_name="expenses")
    op.drop_index("idx_memberships_group",      table_name="memberships")
    op.drop_index("idx_memberships_user",       table_name="memberships")

    op.drop_table("ledger_entries")
    op.drop_table("expenses")
    op.drop_table("memberships")
    op.drop_table("groups")
    op.drop_table("users")
