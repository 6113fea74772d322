import pytest

from core import ledger
from core.errors import InvariantViolation


def _pool(total=1000, available=None, used=0, damaged=0, deposit=0):
    return {
        "total_bottles": total,
        "available_bottles": total - used if available is None else available,
        "used_bottles": used,
        "damaged_bottles": damaged,
        "deposit_bottles": deposit,
    }


def _usage(**values):
    row = {f: 0 for f in ledger.USAGE_FIELDS}
    row.update(values)
    return row


def test_diff_negate_combine():
    change = ledger.diff({"a": 5, "b": 1}, {"a": 2, "b": 4}, ("a", "b", "c"))
    assert change == {"a": 3, "b": -3, "c": 0}
    assert ledger.negate(change) == {"a": -3, "b": 3, "c": 0}
    assert ledger.combine(change, ledger.negate(change)) == {"a": 0, "b": 0, "c": 0}
    assert ledger.is_zero(ledger.combine(change, ledger.negate(change)))


def test_diff_treats_missing_as_zero():
    assert ledger.diff({"filled_bottles": 3}, {}, ("filled_bottles", "payment")) == {
        "filled_bottles": 3,
        "payment": 0,
    }


def test_apply_delta_rejects_negative_and_names_the_field():
    with pytest.raises(InvariantViolation) as exc:
        ledger.apply_delta({"caps": 2}, {"caps": -3}, entity="BottleUsage")
    assert exc.value.status_code == 400
    assert exc.value.detail["field"] == "BottleUsage.caps"
    assert exc.value.detail["bound"] == ">= 0"


def test_apply_delta_allows_signed_fields_and_leaves_input_untouched():
    current = {"balance": 100, "bottles": 1}
    out = ledger.apply_delta(current, {"balance": -300}, entity="Customer", allow_negative=("balance",))
    assert out == {"balance": -200, "bottles": 1}
    assert current == {"balance": 100, "bottles": 1}


@pytest.mark.parametrize(
    "delta",
    [
        ledger.issue_delta(100),
        ledger.return_delta(40),
        ledger.damage_delta(3),
        ledger.deposit_delta(5),
        ledger.combine(ledger.issue_delta(20), ledger.damage_delta(2), ledger.return_delta(10)),
    ],
)
def test_every_pool_delta_conserves(delta):
    start = _pool(total=1000, used=100)
    assert ledger.is_conserved(start)
    assert ledger.is_conserved(ledger.apply_total_delta(start, delta))


def test_damage_delta_moves_bottles_out_of_the_pool():
    after = ledger.apply_total_delta(_pool(total=1000, damaged=5), ledger.damage_delta(3))
    assert after["total_bottles"] == 997
    assert after["available_bottles"] == 997
    assert after["damaged_bottles"] == 8


def test_check_total_bottles_rejects_available_above_total():
    with pytest.raises(InvariantViolation) as exc:
        ledger.check_total_bottles(_pool(total=10, available=11))
    assert exc.value.detail["field"] == "TotalBottles.available_bottles"


def test_require_available():
    ledger.require_available(_pool(total=900), 900)
    with pytest.raises(InvariantViolation) as exc:
        ledger.require_available(_pool(total=900), 1200)
    assert exc.value.detail["code"] == "INSUFFICIENT_BOTTLES"


@pytest.mark.parametrize(
    "empty, caps, requested, expected",
    [
        (0, 10, 5, 0),
        (20, 10, 15, 10),
        (20, 30, 15, 15),
        (5, 30, 15, 5),
        (5, 5, 0, 0),
    ],
)
def test_refill_amount(empty, caps, requested, expected):
    assert ledger.refill_amount(empty, caps, requested) == expected


def test_require_stock():
    ledger.require_stock(_usage(remaining_bottles=10), 10)
    with pytest.raises(InvariantViolation) as exc:
        ledger.require_stock(_usage(remaining_bottles=10), 11)
    assert exc.value.detail["code"] == "INSUFFICIENT_BOTTLES"


def test_check_usage_bounds_accepts_a_consistent_day():
    ledger.check_usage_bounds(
        _usage(
            filled_bottles=100,
            sales=30,
            empty_bottles=10,
            remaining_bottles=70,
            refilled_bottles=5,
            returned_bottles=10,
            empty_returned=10,
        )
    )


@pytest.mark.parametrize(
    "row, field",
    [
        (_usage(filled_bottles=10, sales=11, remaining_bottles=0), "BottleUsage.sales"),
        (_usage(filled_bottles=10, sales=2, empty_bottles=3), "BottleUsage.empty_bottles"),
        (_usage(filled_bottles=10, remaining_bottles=8, returned_bottles=3, remaining_returned=3),
         "BottleUsage.remaining_bottles"),
        (_usage(filled_bottles=10, sales=2, refilled_bottles=3), "BottleUsage.refilled_bottles"),
        (_usage(filled_bottles=10, returned_bottles=2, empty_returned=1), "BottleUsage.returned_bottles"),
        (_usage(caps=-1), "BottleUsage.caps"),
    ],
)
def test_check_usage_bounds_violations(row, field):
    with pytest.raises(InvariantViolation) as exc:
        ledger.check_usage_bounds(row)
    assert exc.value.detail["field"] == field


def test_delivery_usage_delta():
    change = {"filled_bottles": 30, "empty_bottles": 20, "foc": 0, "damaged_bottles": 1, "payment": 500}
    assert ledger.delivery_usage_delta(change) == {
        "sales": 30,
        "remaining_bottles": -30,
        "empty_bottles": 20,
        "damaged_bottles": 1,
        "revenue": 500,
    }


def test_expense_usage_delta_refills_with_caps():
    assert ledger.expense_usage_delta({"amount": 300, "refilled_bottles": 4}) == {
        "expense": 300,
        "empty_bottles": -4,
        "caps": -4,
        "refilled_bottles": 4,
        "remaining_bottles": 4,
    }


def test_customer_balance_and_bottles():
    assert ledger.customer_balance_delta(1000, 30, 0, 100) == -2000
    assert ledger.customer_balance_delta(0, 10, 4, 100) == -600
    assert ledger.customer_delta({"filled_bottles": 30, "empty_bottles": 20, "payment": 1000}, 100) == {
        "bottles": 10,
        "balance": -2000,
    }


def test_snapshot_and_write_back():
    class Row:
        total_bottles = 5
        available_bottles = None

    row = Row()
    assert ledger.snapshot(row, ("total_bottles", "available_bottles")) == {
        "total_bottles": 5,
        "available_bottles": 0,
    }
    ledger.write_back(row, {"available_bottles": 5})
    assert row.available_bottles == 5
