"""
Per-(moderator, day) usage lifecycle.

    UNINITIALIZED --issue--> OPEN --mark done--> DONE
                               ^                   |
                               +-----reopen--------+
    OPEN | DONE --delete--> DELETED

The state is derived from the BottleUsage row (or its absence); the guards
below are called by the routers before any counter changes.
"""

import enum
from typing import Optional

from core.errors import ConflictError, bottle_usage_not_found


class DayState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    OPEN = "open"
    DONE = "done"
    DELETED = "deleted"


def state_of(usage) -> DayState:
    if usage is None:
        return DayState.UNINITIALIZED
    return DayState.DONE if usage.done else DayState.OPEN


def require_row(usage, day=None):
    if usage is None:
        raise bottle_usage_not_found(day)
    return usage


def require_open(usage, day=None):
    """Moderator mutations are only allowed while the day is open."""
    require_row(usage, day)
    if state_of(usage) is DayState.DONE:
        raise ConflictError(
            "Bottle usage for this day is already marked as done",
            code="DAY_CLOSED",
        )
    return usage


def require_refillable(usage):
    if state_of(usage) is DayState.DONE:
        raise ConflictError(
            "Bottle usage for today is already marked as done",
            code="ALREADY_DONE",
        )
    return usage


def next_done_state(usage, done: bool, day=None) -> DayState:
    """Mark done / reopen; asking for the state the day is already in is a conflict."""
    require_row(usage, day)
    current = state_of(usage)
    target = DayState.DONE if done else DayState.OPEN
    if current is target:
        raise ConflictError(
            f"Bottle usage is already marked as {'done' if done else 'not done'}",
            code="ALREADY_IN_STATE",
        )
    return target


def can_delete(usage: Optional[object], day=None) -> DayState:
    require_row(usage, day)
    return DayState.DELETED
