# MIT License
# Copyright (c) 2025 Hashborn

import json
import os
from typing import Dict
from pydantic import BaseModel, model_validator

# Global Constants
DECIMALS = 18
SCALE = 10**12          # Fixed-point scale of the reward-per-share accumulator
DAY = 24 * 60 * 60


class StakingParams(BaseModel):
    network_id: str
    cycle_length: int                 # Seconds (or heights) per staking cycle
    free_window_length: int           # Leading part of a cycle where requests are accepted
    maturity_interval: int            # Wait between request and withdrawal
    piece_size: int                   # Granularity of stake / unstake amounts
    reward_rate: int = 0              # Reward units per time unit for the whole pool
    punish_rate: int = 0              # Punishment per offline unit
    max_node_id_length: int = 64
    bech32_prefix_pool: str = "nstpool"

    @model_validator(mode="after")
    def _check(self) -> "StakingParams":
        if self.cycle_length <= 0:
            raise ValueError("cycle_length must be positive")
        if not 0 < self.free_window_length <= self.cycle_length:
            raise ValueError("free_window_length must be in (0, cycle_length]")
        if self.piece_size <= 0:
            raise ValueError("piece_size must be positive")
        if self.maturity_interval < 0 or self.reward_rate < 0 or self.punish_rate < 0:
            raise ValueError("maturity_interval, reward_rate and punish_rate must be non-negative")
        if self.max_node_id_length <= 0:
            raise ValueError("max_node_id_length must be positive")
        return self

    @classmethod
    def from_json_file(cls, path: str, base: str = "devnet") -> "StakingParams":
        """Loads a preset and overlays the keys found in a JSON file."""
        with open(path, "r") as f:
            overrides = json.load(f)
        data = NETWORKS[overrides.pop("base", base)].model_dump()
        data.update(overrides)
        return cls(**data)


NETWORKS: Dict[str, StakingParams] = {
    "devnet": StakingParams(
        network_id="devnet",
        cycle_length=30 * DAY,
        free_window_length=7 * DAY,
        maturity_interval=3 * DAY,
        piece_size=1000,
        reward_rate=100,
        punish_rate=10,
    ),
    "testnet": StakingParams(
        network_id="testnet",
        cycle_length=30 * DAY,
        free_window_length=7 * DAY,
        maturity_interval=3 * DAY,
        piece_size=1000 * 10**DECIMALS,
        reward_rate=10**DECIMALS,
        punish_rate=10**DECIMALS,
    ),
    "mainnet": StakingParams(
        network_id="mainnet",
        cycle_length=90 * DAY,
        free_window_length=7 * DAY,
        maturity_interval=7 * DAY,
        piece_size=10_000 * 10**DECIMALS,
        reward_rate=0,                  # Set by governance after launch
        punish_rate=10 * 10**DECIMALS,
    ),
}

# Default to devnet unless overridden by the environment
CURRENT_NETWORK = NETWORKS[os.environ.get("NODESTAKE_NETWORK", "devnet")]
