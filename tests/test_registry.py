# MIT License
# Copyright (c) 2025 Hashborn

import pytest

from nodestake.protocol.types.common import (
    AlreadyRegistered, NotRegistered, InvalidNodeId, InsufficientStake, NodeStatus,
)

from conftest import ALICE, BOB, events_of


def test_register_requires_stake(pool):
    with pytest.raises(InsufficientStake):
        pool.register_node(ALICE, "node-a")
    assert pool.registry().get("node-a") is None


def test_register_and_lookup(pool, bus):
    pool.stake(ALICE, 1000)
    pool.register_node(ALICE, "node-a")

    assert pool.node_owner("node-a") == ALICE
    assert pool.node_of(ALICE) == "node-a"
    assert pool.registry().get("node-a").status == NodeStatus.LIVE
    assert events_of(bus, "RegisterNode")[0]["node_id"] == "node-a"


def test_new_registration_releases_old_id(pool):
    pool.stake(ALICE, 1000)
    pool.register_node(ALICE, "node-a")
    pool.register_node(ALICE, "node-b")

    assert pool.node_of(ALICE) == "node-b"
    with pytest.raises(NotRegistered):
        pool.node_owner("node-a")

    # Released ids are free again
    pool.stake(BOB, 1000)
    pool.register_node(BOB, "node-a")
    assert pool.node_owner("node-a") == BOB
    pool.check_invariants()


def test_ids_are_unique(pool):
    pool.stake(ALICE, 1000)
    pool.stake(BOB, 1000)
    pool.register_node(ALICE, "node-a")

    with pytest.raises(AlreadyRegistered):
        pool.register_node(BOB, "node-a")
    with pytest.raises(AlreadyRegistered):
        pool.register_node(ALICE, "node-a")
    assert pool.node_of(BOB) is None
    assert pool.node_of(ALICE) == "node-a"


def test_id_format(pool):
    pool.stake(ALICE, 1000)
    with pytest.raises(InvalidNodeId):
        pool.register_node(ALICE, "")
    with pytest.raises(InvalidNodeId, match="too long"):
        pool.register_node(ALICE, "x" * 65)
    pool.register_node(ALICE, "x" * 64)
