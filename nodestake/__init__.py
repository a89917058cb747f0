# MIT License
# Copyright (c) 2025 Hashborn

"""
NodeStake staking ledger.

Pools that hold staked collateral, accrue rewards per share, settle
punishments and gate withdrawals through a cycle-bound request workflow.
"""

from .ledger.core.pool import StakePool
from .ledger.core.router import NodeStake
from .ledger.core.tiers import TierPool
from .ledger.core.asset import AssetLedger, InMemoryAsset
from .ledger.core.clock import Clock, ManualClock, SystemClock
from .ledger.core.events import EventBus, event_bus
from .protocol.config.params import StakingParams, NETWORKS, CURRENT_NETWORK

__all__ = [
    "StakePool", "NodeStake", "TierPool",
    "AssetLedger", "InMemoryAsset",
    "Clock", "ManualClock", "SystemClock",
    "EventBus", "event_bus",
    "StakingParams", "NETWORKS", "CURRENT_NETWORK",
]
