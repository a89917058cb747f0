# MIT License
# Copyright (c) 2025 Hashborn

"""
Tier migration protocol.

TierPools form a doubly linked chain (lower <-> upper). Upgrading or
downgrading a node moves its owner's whole position to the adjacent tier in
two phases:

1. the source farms the position and exports a PositionSnapshot;
2. the destination validates the snapshot (target account empty, node id not
   live there) and imports it;
3. the source zeroes its copy, tombstones the node record and sends the staked
   asset to the destination's custody address.

Both pools run inside their own rollback scope for the whole migration, so a
failure on either side leaves both untouched. The two locks are taken in a
fixed order so opposite migrations between the same tiers cannot deadlock.
"""

from typing import List, Optional
import logging

from ...protocol.types.common import (
    EventType, Direction, AlreadyRegistered, LinkInvalid,
)
from ...protocol.types.position import PositionSnapshot
from .auth import require_admin, require_manager, require_linked
from .pool import StakePool, lock_pools
from .safemath import checked_add, checked_sub
from . import rewards

logger = logging.getLogger(__name__)


class TierPool(StakePool):

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.upper: Optional['TierPool'] = None
        self.lower: Optional['TierPool'] = None

    # --- Links ---

    def link_upper(self, caller: str, pool: Optional['TierPool']) -> None:
        require_admin(self.state.admin, caller)
        if pool is self:
            raise LinkInvalid("A pool cannot link to itself")
        self.upper = pool
        logger.info(f"[{self.name}] Upper tier set to {pool.name if pool else None}")

    def link_lower(self, caller: str, pool: Optional['TierPool']) -> None:
        require_admin(self.state.admin, caller)
        if pool is self:
            raise LinkInvalid("A pool cannot link to itself")
        self.lower = pool
        logger.info(f"[{self.name}] Lower tier set to {pool.name if pool else None}")

    def linked(self, direction: Direction) -> Optional['TierPool']:
        """The adjacent pool in `direction`, only if the link is mutual."""
        if direction == Direction.UPPER:
            target = self.upper
            back = target.lower if target is not None else None
        else:
            target = self.lower
            back = target.upper if target is not None else None
        return target if target is not None and back is self else None

    def is_linked(self, direction: Direction) -> bool:
        return self.linked(direction) is not None

    def chain(self) -> List['TierPool']:
        """All mutually linked tiers, lowest first."""
        bottom = self
        seen = {id(self)}
        while bottom.is_linked(Direction.LOWER) and id(bottom.lower) not in seen:
            bottom = bottom.lower
            seen.add(id(bottom))

        pools = [bottom]
        seen = {id(bottom)}
        current = bottom
        while current.is_linked(Direction.UPPER) and id(current.upper) not in seen:
            current = current.upper
            seen.add(id(current))
            pools.append(current)
        return pools

    def _check_node_available(self, node_id: str) -> None:
        for pool in self.chain():
            if pool is not self and pool.registry().is_live(node_id):
                raise AlreadyRegistered(f"Node '{node_id}' is live in tier '{pool.name}'")

    # --- Destination side ---

    def validate_import(self, caller_pool: 'TierPool', snapshot: PositionSnapshot) -> None:
        """Phase one at the destination: checks only, no mutation."""
        require_linked(self, caller_pool)
        target = self.state.find_position(snapshot.address)
        if target is not None and not target.is_empty():
            raise LinkInvalid(f"{snapshot.address} already holds a position in tier '{self.name}'")
        if self.registry().is_live(snapshot.node_id):
            raise AlreadyRegistered(f"Node '{snapshot.node_id}' is already live in tier '{self.name}'")
        if snapshot.stake <= 0:
            raise LinkInvalid("Nothing to import")

    def import_stake(self, caller_pool: 'TierPool', snapshot: PositionSnapshot) -> None:
        with self.atomic():
            now = self._sync()
            self.validate_import(caller_pool, snapshot)

            position = self.state.get_position(snapshot.address)
            rp = self.reward_pool_for(position)
            rewards.realize(rp, position, now)
            position.stake = snapshot.stake
            position.punishment = checked_add(position.punishment, snapshot.punishment)
            position.node_id = snapshot.node_id
            rp.total_stake = checked_add(rp.total_stake, snapshot.stake)
            rewards.snapshot_debt(rp, position)
            self.registry().bind_imported(snapshot.node_id, snapshot.address, now)

            self._emit(EventType.IMPORT_STAKE, account=snapshot.address, amount=snapshot.stake,
                       node_id=snapshot.node_id, source=snapshot.source_pool)
        logger.info(f"[{self.name}] Imported {snapshot.stake} for node '{snapshot.node_id}' from '{snapshot.source_pool}'")

    # --- Source side ---

    def upgrade_node(self, caller: str, node_id: str) -> None:
        self._migrate(caller, node_id, Direction.UPPER)

    def downgrade_node(self, caller: str, node_id: str) -> None:
        self._migrate(caller, node_id, Direction.LOWER)

    def export_position(self, node_id: str) -> PositionSnapshot:
        """Snapshot of the live node owner's position (call after farming)."""
        record = self.registry().require_live(node_id)
        position = self.state.get_position(record.owner)
        return PositionSnapshot(
            address=position.address,
            stake=position.stake,
            punishment=position.punishment,
            node_id=node_id,
            source_pool=self.name,
            exported_at=self.clock.now(),
        )

    def _migrate(self, caller: str, node_id: str, direction: Direction) -> None:
        require_manager(self.state.manager, caller)
        target = self.linked(direction)
        if target is None:
            raise LinkInvalid(f"Tier '{self.name}' has no mutual {direction.value} link")

        with lock_pools(self, target), self.atomic(), target.atomic():
            now = self._sync()
            record = self.registry().require_live(node_id)
            position = self.state.get_position(record.owner)
            self._farm(position, now)

            snapshot = self.export_position(node_id)
            target.validate_import(self, snapshot)
            target.import_stake(self, snapshot)

            rp = self.reward_pool_for(position)
            rp.total_stake = checked_sub(rp.total_stake, position.stake)
            position.stake = 0
            position.punishment = 0
            position.reward_debt = 0
            position.node_id = None
            # Every source tier keeps a tombstone, not only the topmost one
            self.registry().tombstone(node_id)
            self.state.requests.pop(position.address, None)

            event = EventType.UPGRADE_NODE if direction == Direction.UPPER else EventType.DOWNGRADE_NODE
            self._emit(event, account=position.address, node_id=node_id, amount=snapshot.stake,
                       target=target.name)
            self.asset.transfer(self.address, target.address, snapshot.stake)
        logger.info(f"[{self.name}] Moved node '{node_id}' ({snapshot.stake}) {direction.value} to '{target.name}'")
