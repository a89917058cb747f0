# MIT License
# Copyright (c) 2025 Hashborn

from typing import Dict, Optional
import logging
from ...protocol.types.common import AlreadyRegistered, NotRegistered, InvalidNodeId, NodeStatus
from ...protocol.types.position import NodeRecord, Position

logger = logging.getLogger(__name__)


class NodeRegistry:
    """
    node_id -> NodeRecord directory of one pool.

    A missing key means "never registered or released"; a MIGRATED record is
    a tombstone left behind when the node moved to another tier.
    """

    def __init__(self, nodes: Dict[str, NodeRecord], max_id_length: int = 64):
        self.nodes = nodes
        self.max_id_length = max_id_length

    def get(self, node_id: str) -> Optional[NodeRecord]:
        return self.nodes.get(node_id)

    def is_live(self, node_id: str) -> bool:
        record = self.nodes.get(node_id)
        return record is not None and record.is_live

    def require_live(self, node_id: str) -> NodeRecord:
        record = self.nodes.get(node_id)
        if record is None:
            raise NotRegistered(f"Node '{node_id}' is not registered")
        if not record.is_live:
            raise NotRegistered(f"Node '{node_id}' has migrated to another tier")
        return record

    def validate_id(self, node_id: str) -> None:
        if not node_id:
            raise InvalidNodeId("Node id must not be empty")
        if len(node_id) > self.max_id_length:
            raise InvalidNodeId(f"Node id too long (max {self.max_id_length} chars)")

    def register(self, position: Position, node_id: str, now: int) -> Optional[str]:
        """
        Binds node_id to the position's owner, releasing its previous id.

        Returns the released id, if any.
        """
        self.validate_id(node_id)
        if node_id in self.nodes:
            raise AlreadyRegistered(f"Node '{node_id}' is already registered")

        released = position.node_id
        if released is not None:
            self.release(released)

        self.nodes[node_id] = NodeRecord(node_id=node_id, owner=position.address, registered_at=now)
        position.node_id = node_id
        return released

    def release(self, node_id: str) -> None:
        self.nodes.pop(node_id, None)

    def tombstone(self, node_id: str) -> None:
        record = self.require_live(node_id)
        record.status = NodeStatus.MIGRATED

    def bind_imported(self, node_id: str, owner: str, now: int) -> None:
        """Binds a node arriving from another tier; a tombstone is overwritten."""
        record = self.nodes.get(node_id)
        if record is not None and record.is_live:
            raise AlreadyRegistered(f"Node '{node_id}' is live in this pool")
        if record is not None:
            logger.warning(f"Re-importing node '{node_id}' over its tombstone (previous owner {record.owner})")
        self.nodes[node_id] = NodeRecord(node_id=node_id, owner=owner, registered_at=now)
