# MIT License
# Copyright (c) 2025 Hashborn

"""
Unstake request workflow.

Per account and cycle: NoRequest -> Requested -> {Allowed | Rejected}, with an
independent ban overlay. A decision only counts in the cycle it was taken;
re-filing a request within the same cycle keeps the decision.
"""

from ...protocol.types.common import (
    InvalidAmount, InsufficientStake, CycleLocked, RequestMissingOrStale,
    RequestImmature, RequestRejected, Banned, UnstakeDecision,
)
from ...protocol.types.position import CycleState, Position, UnstakeRequest
from .cycle import in_free_window, is_lock_free
from .safemath import checked_add, checked_mod


def check_amount(amount: int, piece_size: int) -> None:
    if amount <= 0 or checked_mod(amount, piece_size) != 0:
        raise InvalidAmount(f"Amount {amount} must be a positive multiple of {piece_size}")


def file_request(request: UnstakeRequest, position: Position, amount: int,
                 cycle: CycleState, piece_size: int, now: int) -> None:
    """Records (or overwrites) the account's request for the current cycle."""
    if not in_free_window(cycle, now):
        raise CycleLocked(
            f"Requests are accepted only in ({cycle.cycle_start}, "
            f"{cycle.cycle_start + cycle.free_window_length}], now={now}"
        )
    check_amount(amount, piece_size)
    if position.stake < amount:
        raise InsufficientStake(f"Stake {position.stake} < requested {amount}")

    request.requested_amount = amount
    request.request_time = now


def _require_current(request: UnstakeRequest, cycle: CycleState) -> None:
    if request.requested_amount == 0 or request.request_time <= cycle.cycle_start:
        raise RequestMissingOrStale("No unstake request in the current cycle")


def reject(request: UnstakeRequest, cycle: CycleState) -> None:
    _require_current(request, cycle)
    request.decision = UnstakeDecision.REJECTED
    request.decision_cycle = cycle.cycle_start


def allow(request: UnstakeRequest, cycle: CycleState) -> None:
    _require_current(request, cycle)
    request.decision = UnstakeDecision.ALLOWED
    request.decision_cycle = cycle.cycle_start


def check_unstake(position: Position, request: UnstakeRequest, banned: bool, amount: int,
                  cycle: CycleState, piece_size: int, maturity_interval: int, now: int) -> None:
    """Raises the first failing eligibility condition, in evaluation order."""
    check_amount(amount, piece_size)
    if position.stake < amount:
        raise InsufficientStake(f"Stake {position.stake} < {amount}")

    if is_lock_free(cycle):
        return

    if request.requested_amount < amount:
        raise RequestMissingOrStale(f"Requested {request.requested_amount} < {amount}")
    if request.request_time < cycle.cycle_start:
        raise RequestMissingOrStale("Unstake request belongs to an earlier cycle")

    allowed = request.decided_in(cycle.cycle_start, UnstakeDecision.ALLOWED)
    if now < checked_add(request.request_time, maturity_interval) and not allowed:
        raise RequestImmature(
            f"Request matures at {request.request_time + maturity_interval}, now={now}"
        )

    if banned:
        raise Banned(f"Account {position.address} is banned from unstaking")
    if request.decided_in(cycle.cycle_start, UnstakeDecision.REJECTED):
        raise RequestRejected("Unstake request was rejected in this cycle")


def consume(request: UnstakeRequest, amount: int) -> None:
    """Reduces the outstanding request after a withdrawal."""
    request.requested_amount = max(0, request.requested_amount - amount)
