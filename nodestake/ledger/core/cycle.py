# MIT License
# Copyright (c) 2025 Hashborn

from ...protocol.types.position import CycleState
from .safemath import checked_add, checked_sub, checked_mul, checked_div


def advance_cycle(cycle: CycleState, now: int) -> bool:
    """
    Catches cycle_start up to `now` in whole-cycle steps.

    Equivalent to `while now > start + length: start += length`, computed in
    one step. Returns True if cycle_start moved.
    """
    end = checked_add(cycle.cycle_start, cycle.cycle_length)
    if now <= end:
        return False

    # Number of whole cycles needed so that now <= start + length
    behind = checked_sub(now, end)
    steps = checked_div(checked_add(behind, cycle.cycle_length - 1), cycle.cycle_length)
    cycle.cycle_start = checked_add(cycle.cycle_start, checked_mul(steps, cycle.cycle_length))
    return True


def in_free_window(cycle: CycleState, now: int) -> bool:
    return cycle.cycle_start < now <= cycle.cycle_start + cycle.free_window_length


def is_lock_free(cycle: CycleState) -> bool:
    return cycle.free_window_length == cycle.cycle_length
