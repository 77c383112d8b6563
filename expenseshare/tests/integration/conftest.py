"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session using create_app("testing"), which
    points at an in-memory SQLite database unless TEST_DATABASE_URL is set.
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - register(client, ...)     → dict with user + token
  - login(client, ...)        → dict with user + token
  - promote_to_admin(app, id) → sets the stored role to admin
  - auth_headers(token)       → {"Authorization": "Bearer <token>"}
  - make_group(client, ...)   → group dict
  - add_expense(client, ...)  → HTTP response
  - settle(client, ...)       → HTTP response
  - balance_of(client, ...)   → Decimal

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import text

from expenseshare.app import create_app
from expenseshare.app.extensions import db as _db
from expenseshare.app.models.user import Role, User


@pytest.fixture(scope="session")
def app():
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def clean_tables(app):
    """Deletes all rows after every test, children before parents."""
    yield

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM ledger_entries"))
            conn.execute(text("DELETE FROM expenses"))
            conn.execute(text("DELETE FROM memberships"))
            conn.execute(text("DELETE FROM groups"))
            conn.execute(text("DELETE FROM users"))
            conn.commit()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_ctx(app):
    """An application context for tests that call services directly."""
    with app.app_context():
        yield _db.session


# ── Shared helper functions (not fixtures) ─────────────────────────────────

def register(
    client,
    name: str = "alice",
    email: str | None = None,
    password: str = "Password1",
) -> dict:
    """
    Registers a new user and returns the response data dict.
    Returns: {"user": {...}, "token": "..."}
    """
    if email is None:
        email = f"{name}@test.com"
    resp = client.post(
        "/api/v1/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert resp.status_code == 201, f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def login(client, email: str, password: str = "Password1") -> dict:
    resp = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]


def promote_to_admin(app, user_id: int) -> None:
    # No endpoint grants the admin role; authorization reads it from the row.
    with app.app_context():
        _db.session.get(User, user_id).role = Role.ADMIN
        _db.session.commit()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def make_group(
    client,
    token: str,
    member_emails: list[str],
    name: str = "Test Group",
) -> dict:
    """Creates a group with the given members and returns the group data dict."""
    resp = client.post(
        "/api/v1/groups/",
        json={"name": name, "member_emails": member_emails},
        headers=auth_headers(token),
    )
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def add_expense(
    client,
    token: str,
    group_id: int,
    paid_by_id: int,
    amount,
    description: str = "Test Expense",
):
    """Posts an expense to the group and returns the HTTP response."""
    return client.post(
        f"/api/v1/groups/{group_id}/expenses",
        json={
            "description": description,
            "amount": amount,
            "paid_by_id": paid_by_id,
        },
        headers=auth_headers(token),
    )


def settle(client, token: str, expense_id: int):
    return client.post(
        f"/api/v1/expenses/{expense_id}/settle",
        headers=auth_headers(token),
    )


def balance_of(client, token: str, user_id: int) -> Decimal:
    resp = client.get(f"/api/v1/users/{user_id}", headers=auth_headers(token))
    assert resp.status_code == 200, f"balance_of failed: {resp.get_json()}"
    return Decimal(resp.get_json()["data"]["balance"])


def three_member_group(client) -> tuple[dict, dict, dict, dict]:
    """Alice, Bob and Carol, all members of one group. Returns (a, b, c, group)."""
    alice = register(client, "alice")
    bob   = register(client, "bob")
    carol = register(client, "carol")
    group = make_group(
        client,
        alice["token"],
        ["alice@test.com", "bob@test.com", "carol@test.com"],
    )
    return alice, bob, carol, group
