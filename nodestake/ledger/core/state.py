# MIT License
# Copyright (c) 2025 Hashborn

from typing import Dict, Optional, Set
import json
import logging
from ...protocol.types.position import (
    Position, NodeRecord, UnstakeRequest, CycleState, RewardPoolState,
)
from ...protocol.config.params import StakingParams
from ..storage.db import StorageDB

logger = logging.getLogger(__name__)


class LedgerState:
    """
    Everything one pool owns: positions, node records, unstake requests,
    bans, the cycle clock, its reward pools, parameters and roles.
    """

    def __init__(self, params: StakingParams, admin: str, manager: Optional[str] = None,
                 reward_pools: Dict[str, RewardPoolState] = None, start_time: int = 0):
        self.params = params
        self.admin = admin
        self.manager = manager
        self.positions: Dict[str, Position] = {}
        self.nodes: Dict[str, NodeRecord] = {}
        self.requests: Dict[str, UnstakeRequest] = {}
        self.banned: Set[str] = set()
        self.cycle = CycleState(
            cycle_start=start_time,
            cycle_length=params.cycle_length,
            free_window_length=params.free_window_length,
        )
        if reward_pools is None:
            reward_pools = {"default": RewardPoolState(reward_rate=params.reward_rate, last_settled=start_time)}
        self.reward_pools: Dict[str, RewardPoolState] = reward_pools

    def clone(self) -> 'LedgerState':
        """Creates a deep copy of the state (rollback point for an operation)."""
        cloned = LedgerState.__new__(LedgerState)
        cloned.params = self.params.model_copy()
        cloned.admin = self.admin
        cloned.manager = self.manager
        cloned.positions = {k: v.model_copy() for k, v in self.positions.items()}
        cloned.nodes = {k: v.model_copy() for k, v in self.nodes.items()}
        cloned.requests = {k: v.model_copy() for k, v in self.requests.items()}
        cloned.banned = set(self.banned)
        cloned.cycle = self.cycle.model_copy()
        cloned.reward_pools = {k: v.model_copy() for k, v in self.reward_pools.items()}
        return cloned

    def get_position(self, address: str) -> Position:
        """Returns the live position, creating an empty one on first touch."""
        position = self.positions.get(address)
        if position is None:
            position = Position(address=address)
            self.positions[address] = position
        return position

    def find_position(self, address: str) -> Optional[Position]:
        return self.positions.get(address)

    def get_request(self, address: str) -> UnstakeRequest:
        request = self.requests.get(address)
        if request is None:
            request = UnstakeRequest()
            self.requests[address] = request
        return request

    def persist(self, db: StorageDB, namespace: str):
        """Writes the full state under `namespace:` keys, replacing what was there."""
        prefix = f"{namespace}:"
        items = {
            f"{prefix}params": self.params.model_dump_json(),
            f"{prefix}roles": json.dumps({"admin": self.admin, "manager": self.manager}),
            f"{prefix}cycle": self.cycle.model_dump_json(),
            f"{prefix}banned": json.dumps(sorted(self.banned)),
        }
        for addr, pos in self.positions.items():
            items[f"{prefix}pos:{addr}"] = pos.model_dump_json()
        for node_id, rec in self.nodes.items():
            items[f"{prefix}node:{node_id}"] = rec.model_dump_json()
        for addr, req in self.requests.items():
            items[f"{prefix}req:{addr}"] = req.model_dump_json()
        for name, reward_pool in self.reward_pools.items():
            items[f"{prefix}reward:{name}"] = reward_pool.model_dump_json()

        db.replace_prefix(prefix, items)
        logger.info(f"Persisted pool '{namespace}': {len(self.positions)} positions, {len(self.nodes)} nodes")

    @classmethod
    def load(cls, db: StorageDB, namespace: str) -> Optional['LedgerState']:
        prefix = f"{namespace}:"
        raw_params = db.get_state(f"{prefix}params")
        if raw_params is None:
            return None

        state = cls.__new__(cls)
        state.params = StakingParams.model_validate_json(raw_params)
        roles = json.loads(db.get_state(f"{prefix}roles"))
        state.admin = roles["admin"]
        state.manager = roles["manager"]
        state.cycle = CycleState.model_validate_json(db.get_state(f"{prefix}cycle"))
        state.banned = set(json.loads(db.get_state(f"{prefix}banned") or "[]"))
        state.positions = {
            k[len(prefix) + 4:]: Position.model_validate_json(v)
            for k, v in db.get_state_by_prefix(f"{prefix}pos:").items()
        }
        state.nodes = {
            k[len(prefix) + 5:]: NodeRecord.model_validate_json(v)
            for k, v in db.get_state_by_prefix(f"{prefix}node:").items()
        }
        state.requests = {
            k[len(prefix) + 4:]: UnstakeRequest.model_validate_json(v)
            for k, v in db.get_state_by_prefix(f"{prefix}req:").items()
        }
        state.reward_pools = {
            k[len(prefix) + 7:]: RewardPoolState.model_validate_json(v)
            for k, v in db.get_state_by_prefix(f"{prefix}reward:").items()
        }
        return state
