# MIT License
# Copyright (c) 2025 Hashborn

from pydantic import BaseModel, Field, model_validator
from typing import Optional
from .common import NodeStatus, NodeType, UnstakeDecision


class Position(BaseModel):
    """A staker's ledger position inside one pool."""
    address: str
    stake: int = 0
    reward_debt: int = 0         # stake * accumulator // SCALE at last settlement
    reward_balance: int = 0      # Realized, not yet paid out
    punishment: int = 0          # Owed, settled against reward first, then principal
    node_id: Optional[str] = None
    node_type: NodeType = NodeType.LIGHT  # Only meaningful for the tier router

    def is_empty(self) -> bool:
        return self.stake == 0 and self.node_id is None


class NodeRecord(BaseModel):
    node_id: str
    owner: str
    registered_at: int
    status: NodeStatus = NodeStatus.LIVE

    @property
    def is_live(self) -> bool:
        return self.status == NodeStatus.LIVE


class UnstakeRequest(BaseModel):
    requested_amount: int = 0
    request_time: int = 0
    decision: UnstakeDecision = UnstakeDecision.NONE
    decision_cycle: int = 0      # Cycle start at which the decision was taken

    def decided_in(self, cycle_start: int, decision: UnstakeDecision) -> bool:
        return self.decision == decision and self.decision_cycle == cycle_start


class CycleState(BaseModel):
    cycle_start: int = 0
    cycle_length: int
    free_window_length: int

    @model_validator(mode="after")
    def _check_window(self) -> "CycleState":
        if self.cycle_length <= 0:
            raise ValueError("cycle_length must be positive")
        if self.free_window_length <= 0 or self.free_window_length > self.cycle_length:
            raise ValueError("free_window_length must be in (0, cycle_length]")
        return self


class RewardPoolState(BaseModel):
    """Pool-wide accrual state (one per reward pool)."""
    name: str = "default"
    total_stake: int = 0
    reward_rate: int = 0         # Reward units per time unit
    last_settled: int = 0
    accumulator: int = 0         # Reward per share, scaled by SCALE


class PositionSnapshot(BaseModel):
    """Exported view of a position travelling between two linked tiers."""
    address: str
    stake: int
    punishment: int
    node_id: str
    source_pool: str
    exported_at: int = Field(default=0)
