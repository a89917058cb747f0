# MIT License
# Copyright (c) 2025 Hashborn

import pytest

from nodestake.ledger.core.router import NodeStake
from nodestake.protocol.config.params import DAY
from nodestake.protocol.types.common import NodeType, Unauthorized, InvalidConfig

from conftest import ADMIN, ALICE, BOB, MANAGER, make_params, fund, events_of


@pytest.fixture
def router(asset, clock, bus):
    node_stake = NodeStake(
        "router", asset, ADMIN, clock,
        params=make_params(free_window_length=30 * DAY), manager=MANAGER, bus=bus,
        reward_rates={NodeType.LIGHT: 1, NodeType.FULL: 0, NodeType.SUPER: 10},
    )
    fund(asset, node_stake, ALICE, BOB, ADMIN)
    return node_stake


def test_one_reward_pool_per_type(router):
    assert set(router.state.reward_pools) == {t.value for t in NodeType}
    assert router.state.reward_pools["SUPER"].reward_rate == 10
    assert router.node_type_of(ALICE) == NodeType.LIGHT


def test_stake_is_routed_by_type(router):
    router.stake(ALICE, 1000)
    router.set_node_type(MANAGER, BOB, NodeType.SUPER)
    router.stake(BOB, 2000)

    assert router.stake_by_type() == {NodeType.LIGHT: 1000, NodeType.FULL: 0, NodeType.SUPER: 2000}
    assert router.total_stake() == 3000
    router.check_invariants()


def test_reclassification_flushes_and_moves_stake(router, clock, bus):
    router.stake(ALICE, 1000)
    clock.set(100)

    router.set_node_type(MANAGER, ALICE, NodeType.SUPER)

    position = router.position(ALICE)
    assert position.reward_balance == 100
    assert router.stake_by_type()[NodeType.LIGHT] == 0
    assert router.stake_by_type()[NodeType.SUPER] == 1000

    clock.set(200)
    assert router.pending_reward(ALICE) == 100 + 1000

    event = events_of(bus, "SetNodeType")[0]
    assert (event["previous"], event["node_type"], event["amount"]) == ("LIGHT", "SUPER", 1000)
    router.check_invariants()


def test_reclassifying_empty_account_only_relabels(router):
    router.set_node_type(MANAGER, BOB, NodeType.FULL)
    assert router.node_type_of(BOB) == NodeType.FULL
    assert router.total_stake() == 0


def test_reclassification_does_not_disturb_others(router, clock):
    router.stake(ALICE, 1000)
    router.stake(BOB, 1000)
    clock.set(100)
    router.set_node_type(MANAGER, ALICE, NodeType.SUPER)
    clock.set(200)

    # BOB shared LIGHT with ALICE for 100s, then had it alone
    assert router.pending_reward(BOB) == 50 + 100
    assert router.pending_reward(ALICE) == 50 + 1000


def test_full_exit_after_reclassification(router, asset):
    router.set_node_type(MANAGER, ALICE, NodeType.SUPER)
    router.stake(ALICE, 1000)
    assert router.unstake(ALICE, 1000) == 1000
    assert router.stake_by_type()[NodeType.SUPER] == 0
    router.check_invariants()


def test_type_specific_rates(router, clock):
    router.set_reward_rate(ADMIN, 5, NodeType.FULL)
    assert router.state.reward_pools["FULL"].reward_rate == 5
    router.set_reward_rate(ADMIN, 2)
    assert router.state.reward_pools["LIGHT"].reward_rate == 2


def test_reclassification_guards(router):
    with pytest.raises(Unauthorized):
        router.set_node_type(ADMIN, ALICE, NodeType.SUPER)
    with pytest.raises(InvalidConfig):
        router.set_node_type(MANAGER, ALICE, "GIANT")
