# MIT License
# Copyright (c) 2025 Hashborn

import pytest

from nodestake.ledger.core.asset import InMemoryAsset
from nodestake.ledger.core.clock import ManualClock
from nodestake.ledger.core.events import EventBus
from nodestake.ledger.core.pool import StakePool
from nodestake.protocol.config.params import StakingParams, DAY

ADMIN = "admin"
MANAGER = "manager"
ALICE = "alice"
BOB = "bob"

FUNDS = 1_000_000


def make_params(**overrides) -> StakingParams:
    data = dict(
        network_id="test",
        cycle_length=30 * DAY,
        free_window_length=7 * DAY,
        maturity_interval=3 * DAY,
        piece_size=1000,
        reward_rate=0,
        punish_rate=10,
    )
    data.update(overrides)
    return StakingParams(**data)


def fund(asset: InMemoryAsset, pool, *accounts: str) -> None:
    """Mints FUNDS to each account and lets the pool pull them."""
    for account in accounts:
        asset.mint(account, FUNDS)
        asset.approve(account, pool.address, FUNDS)


def events_of(bus: EventBus, event_type: str):
    return [e for e in bus.history if e["event_type"] == event_type]


@pytest.fixture
def clock():
    return ManualClock(start=0)


@pytest.fixture
def asset():
    return InMemoryAsset()


@pytest.fixture
def bus():
    bus = EventBus()
    bus.keep_history = True
    yield bus
    bus.clear()


@pytest.fixture
def pool(asset, clock, bus):
    """Single pool, zero reward rate, 30-day cycles with a 7-day free window."""
    pool = StakePool("main", asset, ADMIN, clock, params=make_params(), manager=MANAGER, bus=bus)
    fund(asset, pool, ALICE, BOB, ADMIN)
    return pool
