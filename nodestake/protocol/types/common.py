# MIT License
# Copyright (c) 2025 Hashborn

from enum import Enum


class EventType(str, Enum):
    STAKE = "Stake"
    UNSTAKE = "Unstake"
    REQUEST_UNSTAKE = "RequestUnstake"
    REJECT_UNSTAKE = "RejectUnstake"
    ALLOW_UNSTAKE = "AllowUnstake"
    BAN_UNSTAKE = "BanUnstake"
    TAKE_REWARD = "TakeReward"
    ADD_PUNISH = "AddPunish"
    PUNISH_FROM_REWARD = "PunishFromReward"
    PUNISH_FROM_STAKE = "PunishFromStake"
    REGISTER_NODE = "RegisterNode"
    SET_NODE_TYPE = "SetNodeType"
    UPGRADE_NODE = "UpgradeNode"
    DOWNGRADE_NODE = "DowngradeNode"
    IMPORT_STAKE = "ImportStake"
    SET_MANAGER = "SetManager"


class NodeType(str, Enum):
    """Node classifications served by the tier router (one reward pool each)."""
    LIGHT = "LIGHT"
    FULL = "FULL"
    SUPER = "SUPER"


class NodeStatus(str, Enum):
    LIVE = "LIVE"
    MIGRATED = "MIGRATED"   # Tombstone: moved to another tier, re-importable


class UnstakeDecision(str, Enum):
    NONE = "NONE"
    ALLOWED = "ALLOWED"
    REJECTED = "REJECTED"


class Direction(str, Enum):
    UPPER = "upper"
    LOWER = "lower"


class ProtocolError(Exception):
    pass


class StakingError(ProtocolError):
    """Base class for every rejected ledger operation."""
    pass


class InvalidAmount(StakingError):
    pass


class InsufficientStake(StakingError):
    pass


class CycleLocked(StakingError):
    pass


class RequestMissingOrStale(StakingError):
    pass


class RequestImmature(StakingError):
    pass


class RequestRejected(StakingError):
    pass


class InvalidNodeId(StakingError):
    pass


class Banned(StakingError):
    pass


class AlreadyRegistered(StakingError):
    pass


class NotRegistered(StakingError):
    pass


class Unauthorized(StakingError):
    pass


class LinkInvalid(StakingError):
    pass


class InvalidConfig(StakingError):
    pass


class ArithmeticFault(StakingError):
    pass


class AssetTransferError(StakingError):
    pass
