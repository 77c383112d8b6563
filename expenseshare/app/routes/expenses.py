"""
routes/expenses.py — Expense route handlers.

Registered at url_prefix=/api/v1 (not /api/v1/expenses) because this blueprint
owns BOTH the group-scoped paths (/groups/:id/expenses) and the
expense-ID paths (/expenses/:id).

Expense details are passed to the service unvalidated: the service owns
validation of ExpenseDetails and raises the domain ValidationError.

Endpoints:
  POST   /groups/:id/expenses   → 200  add expense
  GET    /groups/:id/expenses   → 200  list the group's expenses
  GET    /expenses              → 200  list every expense
  GET    /expenses/:id          → 200  get one expense
  PUT    /expenses/:id          → 200  full replace
  DELETE /expenses/:id          → 200  delete
  POST   /expenses/:id/settle   → 200  settle among the group's members
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from expenseshare.app.extensions import db
from expenseshare.app.middleware.auth_middleware import require_auth
from expenseshare.app.models.expense import Expense
from expenseshare.app.services import expense_service

expenses_bp = Blueprint("expenses", __name__)


# Pure data-shaping: no DB access. Amounts as strings.

def _serialize_expense(expense: Expense) -> dict:
    return {
        "id": expense.id,
        "group_id": expense.group_id,
        "paid_by_id": expense.paid_by_id,
        "description": expense.description,
        "amount": str(expense.amount),
        "date": expense.date.isoformat(),
        "is_settled": expense.is_settled,
        "settled_at": expense.settled_at.isoformat() if expense.settled_at else None,
    }


def _details() -> dict:
    return request.get_json(force=True, silent=True) or {}


# ── Group-scoped expense routes ────────────────────────────────────────────

@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["POST"])
@require_auth
def add_expense(group_id: int):
    expense = expense_service.add_expense(group_id, _details(), session=db.session)
    db.session.commit()
    return jsonify({
        "data": {
            "message": "Expense added successfully.",
            "expense": _serialize_expense(expense),
        },
        "warnings": [],
    }), 200


@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["GET"])
@require_auth
def get_all_expenses_of_group(group_id: int):
    expenses = expense_service.get_all_expenses_of_group(group_id, session=db.session)
    return jsonify({
        "data": [_serialize_expense(e) for e in expenses],
        "warnings": [],
    }), 200


# ── Expense-ID routes ──────────────────────────────────────────────────────

@expenses_bp.route("/expenses", methods=["GET"])
@require_auth
def get_all_expenses():
    expenses = expense_service.get_all_expenses(session=db.session)
    return jsonify({
        "data": [_serialize_expense(e) for e in expenses],
        "warnings": [],
    }), 200


@expenses_bp.route("/expenses/<int:expense_id>", methods=["GET"])
@require_auth
def get_expense_by_id(expense_id: int):
    expense = expense_service.get_expense_by_id(expense_id, session=db.session)
    return jsonify({"data": _serialize_expense(expense), "warnings": []}), 200


@expenses_bp.route("/expenses/<int:expense_id>", methods=["PUT"])
@require_auth
def update_expense(expense_id: int):
    expense = expense_service.update_expense(expense_id, _details(), session=db.session)
    db.session.commit()
    return jsonify({
        "data": {
            "message": "Expense updated successfully.",
            "expense": _serialize_expense(expense),
        },
        "warnings": [],
    }), 200


@expenses_bp.route("/expenses/<int:expense_id>", methods=["DELETE"])
@require_auth
def delete_expense(expense_id: int):
    expense_service.delete_expense(expense_id, session=db.session)
    db.session.commit()
    return jsonify({
        "data": {
            "message": "Expense deleted successfully.",
            "expense_id": expense_id,
        },
        "warnings": [],
    }), 200


@expenses_bp.route("/expenses/<int:expense_id>/settle", methods=["POST"])
@require_auth
def settle_expense(expense_id: int):
    """
    POST /expenses/:id/settle — One-way transition. The response lists the
    balance delta applied to each member.
    """
    expense, deltas = expense_service.settle_expense(expense_id, session=db.session)
    db.session.commit()
    return jsonify({
        "data": {
            "message": "Expense settled successfully.",
            "expense": _serialize_expense(expense),
            "deltas": [
                {"user_id": user_id, "delta": str(delta)}
                for user_id, delta in deltas.items()
            ],
        },
        "warnings": [],
    }), 200
