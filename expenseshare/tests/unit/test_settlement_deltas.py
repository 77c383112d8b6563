"""
Unit tests for balance_service.compute_settlement_deltas.

Pure arithmetic: no Flask app and no database.

Properties checked:
  - The payer is credited share * (n - 1); everyone else is debited share.
  - share is rounded DOWN to cents and the deltas always sum to zero.
  - Empty member lists and payers outside the group are refused.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from expenseshare.app.errors import ErrorCode, InvalidStateError
from expenseshare.app.services.balance_service import compute_settlement_deltas


def test_even_split_among_three():
    deltas = compute_settlement_deltas(Decimal("300.00"), [1, 2, 3], payer_id=1)
    assert deltas == {1: Decimal("200.00"), 2: Decimal("-100.00"), 3: Decimal("-100.00")}


def test_uneven_split_rounds_share_down():
    deltas = compute_settlement_deltas(Decimal("100.00"), [1, 2, 3], payer_id=2)
    assert deltas == {1: Decimal("-33.33"), 2: Decimal("66.66"), 3: Decimal("-33.33")}


def test_payer_position_does_not_matter():
    first = compute_settlement_deltas(Decimal("10.00"), [7, 8, 9], payer_id=7)
    last = compute_settlement_deltas(Decimal("10.00"), [7, 8, 9], payer_id=9)
    assert first[7] == last[9] == Decimal("6.66")


def test_single_member_gets_zero():
    assert compute_settlement_deltas(Decimal("42.00"), [5], payer_id=5) == {5: Decimal("0.00")}


def test_tiny_amount_can_round_share_to_zero():
    deltas = compute_settlement_deltas(Decimal("0.01"), [1, 2], payer_id=1)
    assert deltas == {1: Decimal("0.00"), 2: Decimal("0.00")}


def test_zero_share_is_not_negative_zero():
    deltas = compute_settlement_deltas(Decimal("0.02"), [1, 2, 3], payer_id=1)
    assert [str(d) for d in deltas.values()] == ["0.00", "0.00", "0.00"]
    assert not any(d.is_signed() for d in deltas.values())


def test_deltas_keep_member_order():
    deltas = compute_settlement_deltas(Decimal("40.00"), [4, 2, 3, 1], payer_id=3)
    assert list(deltas) == [4, 2, 3, 1]


def test_duplicate_member_ids_count_once():
    deltas = compute_settlement_deltas(Decimal("300.00"), [1, 2, 2, 3], payer_id=1)
    assert deltas == {1: Decimal("200.00"), 2: Decimal("-100.00"), 3: Decimal("-100.00")}


@pytest.mark.parametrize("n", [1, 2, 3, 4, 6, 7, 9, 11, 13])
@pytest.mark.parametrize("amount", ["0.01", "1.00", "10.00", "99.99", "100.00", "1234.56"])
def test_deltas_sum_to_zero(amount, n):
    members = list(range(1, n + 1))
    deltas = compute_settlement_deltas(Decimal(amount), members, payer_id=members[-1])

    assert sum(deltas.values()) == Decimal("0.00")
    for uid, delta in deltas.items():
        assert delta == delta.quantize(Decimal("0.01"))
        if uid != members[-1]:
            assert delta <= 0


def test_empty_member_list_is_invalid_state():
    with pytest.raises(InvalidStateError) as exc_info:
        compute_settlement_deltas(Decimal("10.00"), [], payer_id=1)
    assert exc_info.value.code == ErrorCode.NO_MEMBERS_TO_SETTLE


def test_payer_outside_members_is_invalid_state():
    with pytest.raises(InvalidStateError) as exc_info:
        compute_settlement_deltas(Decimal("10.00"), [1, 2], payer_id=3)
    assert exc_info.value.code == ErrorCode.PAYER_NOT_MEMBER
