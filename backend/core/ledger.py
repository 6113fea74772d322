"""
Inventory invariant engine.

Pure arithmetic over plain `{counter_name: int}` mappings. Nothing here touches
the database: callers snapshot ORM rows, ask the engine for the new counters
and write them back inside one transaction.

TotalBottles identity kept by every delta builder below:

    total_bottles == available_bottles + used_bottles

Damaged and deposit bottles are tallies of bottles that have left the pool,
so marking a bottle damaged (or placing it on deposit) removes it from
`total_bottles` and `available_bottles` together.
"""

from typing import Any, Iterable, Mapping

from core.errors import InvariantViolation

Counters = Mapping[str, int]

TOTAL_FIELDS = (
    "total_bottles",
    "available_bottles",
    "used_bottles",
    "damaged_bottles",
    "deposit_bottles",
)

USAGE_FIELDS = (
    "filled_bottles",
    "sales",
    "empty_bottles",
    "remaining_bottles",
    "returned_bottles",
    "empty_returned",
    "remaining_returned",
    "damaged_bottles",
    "refilled_bottles",
    "caps",
    "revenue",
    "expense",
)

DELIVERY_FIELDS = ("filled_bottles", "empty_bottles", "foc", "damaged_bottles", "payment")
MISC_FIELDS = ("filled_bottles", "empty_bottles", "damaged_bottles", "payment")
EXPENSE_FIELDS = ("amount", "refilled_bottles")


# ---- generic delta primitive -------------------------------------------------


def diff(new: Mapping[str, Any], old: Mapping[str, Any], fields: Iterable[str]) -> dict[str, int]:
    """Signed per-field change `new - old`; missing values count as 0."""
    return {f: int(new.get(f) or 0) - int(old.get(f) or 0) for f in fields}


def negate(delta: Counters) -> dict[str, int]:
    return {k: -int(v) for k, v in delta.items()}


def combine(*deltas: Counters) -> dict[str, int]:
    out: dict[str, int] = {}
    for d in deltas:
        for k, v in d.items():
            out[k] = out.get(k, 0) + int(v)
    return out


def is_zero(delta: Counters) -> bool:
    return all(int(v) == 0 for v in delta.values())


def apply_delta(
    current: Counters,
    delta: Counters,
    *,
    entity: str,
    allow_negative: Iterable[str] = (),
) -> dict[str, int]:
    """
    Add `delta` to `current` and reject the result if any counter would drop
    below zero. Returns a new dict; `current` is left untouched.
    """
    signed = set(allow_negative)
    out = {k: int(v or 0) for k, v in current.items()}
    for field, change in delta.items():
        value = out.get(field, 0) + int(change)
        if value < 0 and field not in signed:
            raise InvariantViolation(
                f"{entity}.{field} cannot go below 0 (current {out.get(field, 0)}, change {int(change)})",
                field=f"{entity}.{field}",
                bound=">= 0",
            )
        out[field] = value
    return out


def snapshot(obj: Any, fields: Iterable[str]) -> dict[str, int]:
    return {f: int(getattr(obj, f) or 0) for f in fields}


def write_back(obj: Any, values: Mapping[str, Any]) -> None:
    for k, v in values.items():
        setattr(obj, k, v)


# ---- TotalBottles rules ------------------------------------------------------


def check_total_bottles(counters: Counters) -> None:
    for f in TOTAL_FIELDS:
        if int(counters.get(f, 0)) < 0:
            raise InvariantViolation(
                f"TotalBottles.{f} cannot be negative ({counters.get(f)})",
                field=f"TotalBottles.{f}",
                bound=">= 0",
            )
    if int(counters.get("available_bottles", 0)) > int(counters.get("total_bottles", 0)):
        raise InvariantViolation(
            "Available bottles cannot exceed total bottles "
            f"({counters.get('available_bottles')} > {counters.get('total_bottles')})",
            field="TotalBottles.available_bottles",
            bound="<= total_bottles",
        )


def apply_total_delta(current: Counters, delta: Counters) -> dict[str, int]:
    out = apply_delta(current, delta, entity="TotalBottles")
    check_total_bottles(out)
    return out


def require_available(total: Counters, amount: int) -> None:
    available = int(total.get("available_bottles", 0))
    if amount > available:
        raise InvariantViolation(
            f"Requested {amount} bottles but only {available} are available",
            code="INSUFFICIENT_BOTTLES",
            field="TotalBottles.available_bottles",
            bound=f">= {amount}",
        )


def issue_delta(n: int) -> dict[str, int]:
    """Bottles leave the warehouse with a moderator (or a customer)."""
    return {"available_bottles": -n, "used_bottles": n}


def return_delta(n: int) -> dict[str, int]:
    """Bottles handed back to the warehouse."""
    return {"available_bottles": n, "used_bottles": -n}


def damage_delta(n: int) -> dict[str, int]:
    return {"damaged_bottles": n, "available_bottles": -n, "total_bottles": -n}


def deposit_delta(n: int) -> dict[str, int]:
    return {"deposit_bottles": n, "available_bottles": -n, "total_bottles": -n}


def is_conserved(total: Counters) -> bool:
    return int(total.get("total_bottles", 0)) == int(total.get("available_bottles", 0)) + int(
        total.get("used_bottles", 0)
    )


# ---- BottleUsage rules -------------------------------------------------------


def refill_amount(empty_bottles: int, caps: int, requested: int) -> int:
    """
    How many empties can actually be refilled: one cap per bottle, and never
    more than requested.
    """
    refillable = min(int(empty_bottles), int(caps))
    return max(0, min(refillable, int(requested)))


def refill_delta(n: int) -> dict[str, int]:
    return {
        "empty_bottles": -n,
        "caps": -n,
        "refilled_bottles": n,
        "remaining_bottles": n,
    }


def require_stock(usage: Counters, filled: int) -> None:
    remaining = int(usage.get("remaining_bottles", 0))
    if filled > remaining:
        raise InvariantViolation(
            f"Insufficient bottles to sell: {filled} requested, {remaining} remaining",
            code="INSUFFICIENT_BOTTLES",
            field="BottleUsage.remaining_bottles",
            bound=f">= {filled}",
        )


def check_usage_bounds(usage: Counters) -> None:
    """Cross-field bounds that must hold on a BottleUsage row after any correction."""
    for f in USAGE_FIELDS:
        if int(usage.get(f, 0)) < 0:
            raise InvariantViolation(
                f"BottleUsage.{f} cannot be negative ({usage.get(f)})",
                field=f"BottleUsage.{f}",
                bound=">= 0",
            )

    filled = int(usage.get("filled_bottles", 0))
    sales = int(usage.get("sales", 0))
    empty = int(usage.get("empty_bottles", 0))
    remaining = int(usage.get("remaining_bottles", 0))
    refilled = int(usage.get("refilled_bottles", 0))
    empty_returned = int(usage.get("empty_returned", 0))
    remaining_returned = int(usage.get("remaining_returned", 0))
    returned = int(usage.get("returned_bottles", 0))

    checks = (
        (sales <= filled + refilled, "sales", "<= filled_bottles + refilled_bottles",
         "Sales cannot exceed filled + refilled bottles"),
        (empty <= sales, "empty_bottles", "<= sales",
         "Empty bottles cannot exceed sales"),
        (remaining <= filled - returned, "remaining_bottles", "<= filled_bottles - returned_bottles",
         "Remaining bottles cannot exceed filled - returned bottles"),
        (refilled <= sales, "refilled_bottles", "<= sales",
         "Refilled bottles cannot exceed sales"),
        (returned == empty_returned + remaining_returned, "returned_bottles",
         "== empty_returned + remaining_returned",
         "Returned bottles must equal empty returned + remaining returned"),
    )
    for ok, field, bound, message in checks:
        if not ok:
            raise InvariantViolation(message, field=f"BottleUsage.{field}", bound=bound)


# ---- transaction effects -----------------------------------------------------


def delivery_usage_delta(change: Counters) -> dict[str, int]:
    """Effect of a (signed) delivery change on the moderator's day row."""
    filled = int(change.get("filled_bottles", 0))
    return {
        "sales": filled,
        "remaining_bottles": -filled,
        "empty_bottles": int(change.get("empty_bottles", 0)),
        "damaged_bottles": int(change.get("damaged_bottles", 0)),
        "revenue": int(change.get("payment", 0)),
    }


def expense_usage_delta(change: Counters) -> dict[str, int]:
    refilled = int(change.get("refilled_bottles", 0))
    return combine({"expense": int(change.get("amount", 0))}, refill_delta(refilled))


def customer_balance_delta(payment_diff: int, filled_diff: int, foc_diff: int, bottle_price: int) -> int:
    """Payments add to the balance, billed bottles (filled net of FOC) take from it."""
    return int(payment_diff) - (int(filled_diff) - int(foc_diff)) * int(bottle_price)


def customer_delta(change: Counters, bottle_price: int) -> dict[str, int]:
    return {
        "bottles": int(change.get("filled_bottles", 0)) - int(change.get("empty_bottles", 0)),
        "balance": customer_balance_delta(
            change.get("payment", 0),
            change.get("filled_bottles", 0),
            change.get("foc", 0),
            bottle_price,
        ),
    }
