# MIT License
# Copyright (c) 2025 Hashborn

"""
Asset transfer collaborator.

Pools never hold balances themselves; every value movement (deposits,
withdrawals, reward payouts, tier migrations) goes through an AssetLedger.
"""

from typing import Dict, Tuple
import logging
from ...protocol.types.common import AssetTransferError

logger = logging.getLogger(__name__)


class AssetLedger:
    """Interface of a standard fungible-asset contract."""

    def balance_of(self, address: str) -> int:
        raise NotImplementedError

    def allowance(self, owner: str, spender: str) -> int:
        raise NotImplementedError

    def approve(self, owner: str, spender: str, amount: int) -> None:
        raise NotImplementedError

    def transfer(self, sender: str, to: str, amount: int) -> None:
        raise NotImplementedError

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        raise NotImplementedError


class InMemoryAsset(AssetLedger):
    """Dictionary-backed asset with ERC20-style allowances."""

    def __init__(self, symbol: str = "NST"):
        self.symbol = symbol
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}
        self.total_supply = 0

    def mint(self, to: str, amount: int) -> None:
        if amount <= 0:
            raise AssetTransferError(f"Mint amount must be positive, got {amount}")
        self.balances[to] = self.balances.get(to, 0) + amount
        self.total_supply += amount

    def balance_of(self, address: str) -> int:
        return self.balances.get(address, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise AssetTransferError("Allowance must be non-negative")
        self.allowances[(owner, spender)] = amount

    def transfer(self, sender: str, to: str, amount: int) -> None:
        self._move(sender, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise AssetTransferError(
                f"Insufficient allowance: {spender} may move {allowed} of {owner}'s {self.symbol}, needs {amount}"
            )
        self._move(owner, to, amount)
        self.allowances[(owner, spender)] = allowed - amount

    def _move(self, sender: str, to: str, amount: int) -> None:
        if amount < 0:
            raise AssetTransferError(f"Transfer amount must be non-negative, got {amount}")
        have = self.balance_of(sender)
        if have < amount:
            raise AssetTransferError(f"Insufficient balance: {sender} has {have}, needs {amount}")
        self.balances[sender] = have - amount
        self.balances[to] = self.balance_of(to) + amount
        logger.debug(f"{self.symbol} transfer {sender} -> {to}: {amount}")
