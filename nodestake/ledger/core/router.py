# MIT License
# Copyright (c) 2025 Hashborn

"""
NodeStake: one staking pool whose reward accounting is routed to a fixed set
of per-classification reward pools.

Custody, the unstake workflow, punishment and the node registry are shared;
only `stake`, `reward_debt` and the accumulator math are tracked against the
reward pool of the account's current NodeType.
"""

from typing import Dict, Optional
import logging

from ...protocol.types.common import EventType, NodeType, InvalidConfig
from ...protocol.types.position import Position, RewardPoolState
from ...protocol.config.params import StakingParams
from .auth import require_manager
from .pool import StakePool
from . import rewards

logger = logging.getLogger(__name__)


class NodeStake(StakePool):

    def __init__(self, *args, reward_rates: Optional[Dict[NodeType, int]] = None, **kwargs):
        self._initial_rates = reward_rates or {}
        super().__init__(*args, **kwargs)

    def _initial_reward_pools(self, params: StakingParams, now: int) -> Dict[str, RewardPoolState]:
        return {
            node_type.value: RewardPoolState(
                name=node_type.value,
                reward_rate=self._initial_rates.get(node_type, params.reward_rate),
                last_settled=now,
            )
            for node_type in NodeType
        }

    def reward_pool_for(self, position: Position) -> RewardPoolState:
        return self.state.reward_pools[position.node_type.value]

    def node_type_of(self, account: str) -> NodeType:
        position = self.state.find_position(account)
        return position.node_type if position else NodeType.LIGHT

    def stake_by_type(self) -> Dict[NodeType, int]:
        return {t: self.state.reward_pools[t.value].total_stake for t in NodeType}

    def set_reward_rate(self, caller: str, rate: int, reward_pool="default") -> None:
        """Sets the rate of one classification's reward pool ("default" means LIGHT)."""
        if isinstance(reward_pool, NodeType):
            reward_pool = reward_pool.value
        elif reward_pool == "default":
            reward_pool = NodeType.LIGHT.value
        super().set_reward_rate(caller, rate, reward_pool)

    def set_node_type(self, caller: str, account: str, node_type: NodeType) -> None:
        """
        Reclassifies an account. Staked accounts have their pending reward
        flushed from the old reward pool and their stake moved to the new one.
        """
        require_manager(self.state.manager, caller)
        if not isinstance(node_type, NodeType):
            raise InvalidConfig(f"Unknown node type {node_type!r}")

        with self.atomic():
            now = self._sync()
            position = self.state.get_position(account)
            previous = position.node_type
            if previous == node_type:
                return

            if position.stake > 0:
                amount = position.stake
                self._farm(position, now)
                rewards.sub_stake(self.reward_pool_for(position), position, amount, now)
                position.node_type = node_type
                rewards.add_stake(self.reward_pool_for(position), position, amount, now)
            else:
                position.node_type = node_type

            self._emit(EventType.SET_NODE_TYPE, account=account, node_type=node_type.value,
                       previous=previous.value, amount=position.stake)
        logger.info(f"[{self.name}] {account} reclassified {previous.value} -> {node_type.value}")
