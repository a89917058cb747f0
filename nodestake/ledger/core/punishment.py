# MIT License
# Copyright (c) 2025 Hashborn

"""
Punishment ledger.

Punishment accrues per position and is settled in two places:
1. right after reward realization, against reward_balance;
2. on full withdrawal, against the withdrawn principal (capped at it).
"""

from typing import Optional, Tuple
from ...protocol.types.common import InvalidAmount, InsufficientStake
from ...protocol.types.position import Position
from .safemath import checked_add, checked_sub, checked_mul

EXHAUSTED_PUNISHMENT = "punishment"
EXHAUSTED_REWARD = "reward"


def accrue_punishment(position: Position, offline_units: int, punish_rate: int) -> int:
    """Adds offline_units * punish_rate to the position; returns the added amount."""
    if punish_rate <= 0:
        raise InvalidAmount("Punish rate is not configured")
    if offline_units <= 0:
        raise InvalidAmount(f"Offline units must be positive, got {offline_units}")
    if position.stake <= 0:
        raise InsufficientStake(f"Account {position.address} has no stake to punish")

    amount = checked_mul(offline_units, punish_rate)
    position.punishment = checked_add(position.punishment, amount)
    return amount


def settle_from_reward(position: Position) -> Optional[Tuple[int, str]]:
    """
    Offsets punishment against reward_balance.

    Returns (amount, exhausted) where exhausted names the side that reached
    zero, or None if there was nothing to offset.
    """
    if position.punishment == 0 or position.reward_balance == 0:
        return None

    if position.reward_balance >= position.punishment:
        amount = position.punishment
        position.reward_balance = checked_sub(position.reward_balance, amount)
        position.punishment = 0
        return amount, EXHAUSTED_PUNISHMENT

    amount = position.reward_balance
    position.punishment = checked_sub(position.punishment, amount)
    position.reward_balance = 0
    return amount, EXHAUSTED_REWARD


def settle_from_stake(position: Position, withdrawn: int) -> int:
    """Withholds remaining punishment from a withdrawal; returns the withheld amount."""
    if position.punishment == 0:
        return 0
    withheld = min(position.punishment, withdrawn)
    position.punishment = checked_sub(position.punishment, withheld)
    return withheld
