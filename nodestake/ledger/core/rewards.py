# MIT License
# Copyright (c) 2025 Hashborn

"""
Reward accrual ledger.

A pool-wide reward-per-share accumulator plus a per-position debt snapshot
lets any position's pending reward be computed without iterating over all
positions:

    pending = stake * accumulator // SCALE - reward_debt
"""

from ...protocol.types.position import Position, RewardPoolState
from ...protocol.config.params import SCALE
from .safemath import checked_add, checked_sub, checked_mul, checked_div


def settle(pool: RewardPoolState, now: int) -> bool:
    """
    Brings the accumulator up to `now`.

    Returns True if the accumulator moved. With no stake or no reward rate
    only last_settled advances.
    """
    if now <= pool.last_settled:
        return False

    elapsed = now - pool.last_settled
    if pool.total_stake == 0 or pool.reward_rate == 0:
        pool.last_settled = now
        return False

    increment = checked_div(
        checked_mul(checked_mul(elapsed, pool.reward_rate), SCALE),
        pool.total_stake,
    )
    pool.accumulator = checked_add(pool.accumulator, increment)
    pool.last_settled = now
    return increment > 0


def accrued(pool: RewardPoolState, stake: int) -> int:
    """Reward owed to `stake` since accumulator zero (debt not subtracted)."""
    return checked_div(checked_mul(stake, pool.accumulator), SCALE)


def snapshot_debt(pool: RewardPoolState, position: Position) -> None:
    position.reward_debt = accrued(pool, position.stake)


def realize(pool: RewardPoolState, position: Position, now: int) -> int:
    """
    Settles the pool and moves the position's newly accrued reward into
    reward_balance. Returns the realized amount.
    """
    settle(pool, now)
    reward = accrued(pool, position.stake)
    realized = 0
    if reward > position.reward_debt:
        realized = reward - position.reward_debt
        position.reward_balance = checked_add(position.reward_balance, realized)
    position.reward_debt = reward
    return realized


def pending(pool: RewardPoolState, position: Position, now: int) -> int:
    """Read-only view of realized plus unrealized reward at `now`."""
    accumulator = pool.accumulator
    if now > pool.last_settled and pool.total_stake > 0 and pool.reward_rate > 0:
        elapsed = now - pool.last_settled
        accumulator = checked_add(
            accumulator,
            checked_div(checked_mul(checked_mul(elapsed, pool.reward_rate), SCALE), pool.total_stake),
        )
    reward = checked_div(checked_mul(position.stake, accumulator), SCALE)
    unrealized = reward - position.reward_debt if reward > position.reward_debt else 0
    return checked_add(position.reward_balance, unrealized)


def add_stake(pool: RewardPoolState, position: Position, amount: int, now: int) -> int:
    """Realizes pending reward, then grows the position and the pool total."""
    realized = realize(pool, position, now)
    position.stake = checked_add(position.stake, amount)
    pool.total_stake = checked_add(pool.total_stake, amount)
    snapshot_debt(pool, position)
    return realized


def sub_stake(pool: RewardPoolState, position: Position, amount: int, now: int) -> int:
    """Realizes pending reward, then shrinks the position and the pool total."""
    realized = realize(pool, position, now)
    position.stake = checked_sub(position.stake, amount)
    pool.total_stake = checked_sub(pool.total_stake, amount)
    snapshot_debt(pool, position)
    return realized
