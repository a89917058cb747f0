# MIT License
# Copyright (c) 2025 Hashborn

"""
Unstake workflow tests.

Request -> (allow | reject) -> withdraw, gated by the cycle's free window,
the maturity interval and the ban overlay.
"""

import pytest

from nodestake.ledger.core.pool import StakePool
from nodestake.protocol.config.params import DAY
from nodestake.protocol.types.common import (
    InvalidAmount, InsufficientStake, CycleLocked, RequestMissingOrStale,
    RequestImmature, RequestRejected, Banned, Unauthorized,
)

from conftest import ADMIN, ALICE, BOB, MANAGER, FUNDS, make_params, fund, events_of


@pytest.fixture
def staked(pool):
    pool.stake(ALICE, 1000)
    return pool


# ═══════════════════════════════════════════════════════════════════
# ROUND TRIPS
# ═══════════════════════════════════════════════════════════════════

def test_lock_free_round_trip(asset, clock, bus):
    params = make_params(free_window_length=30 * DAY)
    pool = StakePool("free", asset, ADMIN, clock, params=params, manager=MANAGER, bus=bus)
    fund(asset, pool, ALICE)

    pool.stake(ALICE, 3000)
    paid = pool.unstake(ALICE, 3000)

    assert paid == 3000
    assert pool.stake_of(ALICE) == 0
    assert pool.total_stake() == 0
    assert asset.balance_of(ALICE) == FUNDS
    pool.check_invariants()


def test_request_then_withdraw_after_maturity(staked, clock, bus, asset):
    clock.set(2 * DAY)
    staked.request_unstake(ALICE, 1000)

    clock.set(3 * DAY)
    with pytest.raises(RequestImmature):
        staked.unstake(ALICE, 1000)
    assert staked.stake_of(ALICE) == 1000

    clock.set(5 * DAY)
    assert staked.unstake(ALICE, 1000) == 1000

    unstakes = events_of(bus, "Unstake")
    assert len(unstakes) == 1
    assert unstakes[0]["account"] == ALICE
    assert unstakes[0]["amount"] == 1000
    assert asset.balance_of(ALICE) == FUNDS
    assert staked.request_of(ALICE) is None


def test_partial_withdrawal_consumes_request(staked, clock):
    staked.stake(ALICE, 2000)
    clock.set(1 * DAY)
    staked.request_unstake(ALICE, 2000)
    clock.set(4 * DAY)

    staked.unstake(ALICE, 1000)

    assert staked.stake_of(ALICE) == 2000
    assert staked.request_of(ALICE).requested_amount == 1000
    assert staked.can_unstake(ALICE, 1000)
    assert not staked.can_unstake(ALICE, 2000)


# ═══════════════════════════════════════════════════════════════════
# REQUESTS
# ═══════════════════════════════════════════════════════════════════

def test_request_outside_free_window_is_locked(staked, clock):
    clock.set(10 * DAY)
    with pytest.raises(CycleLocked):
        staked.request_unstake(ALICE, 1000)


def test_request_at_cycle_start_is_locked(staked):
    # The free window is (cycle_start, cycle_start + free_window]
    with pytest.raises(CycleLocked):
        staked.request_unstake(ALICE, 1000)


def test_request_amount_rules(staked, clock):
    clock.set(1 * DAY)
    with pytest.raises(InvalidAmount):
        staked.request_unstake(ALICE, 0)
    with pytest.raises(InvalidAmount):
        staked.request_unstake(ALICE, 1500)
    with pytest.raises(InsufficientStake):
        staked.request_unstake(ALICE, 2000)


def test_request_is_overwritten(staked, clock):
    staked.stake(ALICE, 1000)
    clock.set(1 * DAY)
    staked.request_unstake(ALICE, 2000)
    clock.set(2 * DAY)
    staked.request_unstake(ALICE, 1000)

    request = staked.request_of(ALICE)
    assert request.requested_amount == 1000
    assert request.request_time == 2 * DAY


def test_request_from_previous_cycle_is_stale(staked, clock):
    clock.set(1 * DAY)
    staked.request_unstake(ALICE, 1000)

    clock.set(32 * DAY)
    with pytest.raises(RequestMissingOrStale):
        staked.unstake(ALICE, 1000)


def test_request_in_next_cycle_window(staked, clock):
    clock.set(31 * DAY)
    staked.request_unstake(ALICE, 1000)
    assert staked.cycle.cycle_start == 30 * DAY

    clock.set(34 * DAY)
    assert staked.unstake(ALICE, 1000) == 1000


def test_unstake_without_request(staked):
    with pytest.raises(RequestMissingOrStale):
        staked.unstake(ALICE, 1000)


# ═══════════════════════════════════════════════════════════════════
# MANAGER DECISIONS
# ═══════════════════════════════════════════════════════════════════

def test_allow_bypasses_maturity(staked, clock, bus):
    clock.set(2 * DAY)
    staked.request_unstake(ALICE, 1000)
    staked.allow_unstake(MANAGER, ALICE)

    assert staked.unstake(ALICE, 1000) == 1000
    assert len(events_of(bus, "AllowUnstake")) == 1


def test_reject_blocks_withdrawal_in_cycle(staked, clock):
    clock.set(2 * DAY)
    staked.request_unstake(ALICE, 1000)
    staked.reject_unstake(MANAGER, ALICE)

    clock.set(6 * DAY)
    with pytest.raises(RequestRejected):
        staked.unstake(ALICE, 1000)

    # Re-filing within the same cycle keeps the rejection
    staked.request_unstake(ALICE, 1000)
    clock.set(10 * DAY)
    with pytest.raises(RequestRejected):
        staked.unstake(ALICE, 1000)


def test_rejection_expires_with_cycle(staked, clock):
    clock.set(2 * DAY)
    staked.request_unstake(ALICE, 1000)
    staked.reject_unstake(MANAGER, ALICE)

    clock.set(31 * DAY)
    staked.request_unstake(ALICE, 1000)
    clock.set(34 * DAY)
    assert staked.unstake(ALICE, 1000) == 1000


def test_decisions_need_current_request(staked, clock):
    clock.set(2 * DAY)
    with pytest.raises(RequestMissingOrStale):
        staked.reject_unstake(MANAGER, ALICE)
    with pytest.raises(RequestMissingOrStale):
        staked.allow_unstake(MANAGER, ALICE)
    assert staked.request_of(ALICE) is None


def test_ban_vetoes_even_allowed_requests(staked, clock, bus):
    clock.set(2 * DAY)
    staked.request_unstake(ALICE, 1000)
    staked.allow_unstake(MANAGER, ALICE)
    staked.ban_unstake(MANAGER, ALICE, True)

    with pytest.raises(Banned):
        staked.unstake(ALICE, 1000)

    staked.ban_unstake(MANAGER, ALICE, False)
    assert staked.unstake(ALICE, 1000) == 1000
    assert [e["banned"] for e in events_of(bus, "BanUnstake")] == [True, False]


def test_workflow_actions_need_manager(staked, clock):
    clock.set(2 * DAY)
    staked.request_unstake(ALICE, 1000)
    for action in (staked.reject_unstake, staked.allow_unstake, staked.ban_unstake):
        with pytest.raises(Unauthorized):
            action(BOB, ALICE)
    with pytest.raises(Unauthorized):
        staked.reject_unstake(ADMIN, ALICE)


def test_failed_unstake_leaves_no_trace(staked, clock, bus):
    clock.set(2 * DAY)
    staked.request_unstake(ALICE, 1000)
    before = staked.position(ALICE).model_copy()
    emitted = len(bus.history)

    clock.set(3 * DAY)
    with pytest.raises(RequestImmature):
        staked.unstake(ALICE, 1000)

    assert staked.position(ALICE) == before
    assert len(bus.history) == emitted


def test_allow_after_reject_in_same_cycle(staked, clock, bus):
    clock.set(2 * DAY)
    staked.request_unstake(ALICE, 1000)
    staked.reject_unstake(MANAGER, ALICE)
    staked.allow_unstake(MANAGER, ALICE)

    # The later decision wins and still bypasses maturity
    assert staked.can_unstake(ALICE, 1000)
    assert staked.unstake(ALICE, 1000) == 1000
    assert len(events_of(bus, "RejectUnstake")) == 1
    assert len(events_of(bus, "AllowUnstake")) == 1


def test_lock_free_mode_ignores_ban(asset, clock, bus):
    params = make_params(free_window_length=30 * DAY)
    pool = StakePool("free", asset, ADMIN, clock, params=params, manager=MANAGER, bus=bus)
    fund(asset, pool, ALICE)
    pool.stake(ALICE, 2000)
    pool.ban_unstake(MANAGER, ALICE)

    assert pool.is_banned(ALICE)
    assert pool.unstake(ALICE, 1000) == 1000
    assert pool.stake_of(ALICE) == 1000
