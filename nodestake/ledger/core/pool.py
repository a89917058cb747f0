# MIT License
# Copyright (c) 2025 Hashborn

from contextlib import contextmanager, ExitStack
from typing import Optional, List, Tuple, Dict, Any
import logging
import threading

from ...protocol.types.common import (
    EventType, InvalidAmount, InsufficientStake, InvalidConfig, ProtocolError, StakingError,
    AssetTransferError,
)
from ...protocol.types.position import Position, RewardPoolState, UnstakeRequest, CycleState
from ...protocol.config.params import StakingParams, CURRENT_NETWORK
from ...protocol.crypto.addresses import pool_address
from ..storage.db import StorageDB
from ..observability.metrics import update_pool_metrics
from .asset import AssetLedger
from .auth import require_admin, require_manager
from .clock import Clock
from .cycle import advance_cycle
from .events import EventBus, event_bus
from .registry import NodeRegistry
from .state import LedgerState
from . import rewards
from . import punishment
from . import unstake

logger = logging.getLogger(__name__)


@contextmanager
def lock_pools(*pools: 'StakePool'):
    """Holds the locks of several pools, always acquired in the same order."""
    with ExitStack() as stack:
        for p in sorted(set(pools), key=id):
            stack.enter_context(p._lock)
        yield


class StakePool:
    """
    A staking pool with a single reward pool.

    Every public mutating operation runs inside `atomic()`: it either applies
    all of its state changes and publishes its events, or raises and leaves
    the pool untouched.
    """

    def __init__(self, name: str, asset: AssetLedger, admin: str, clock: Clock,
                 params: Optional[StakingParams] = None, manager: Optional[str] = None,
                 bus: Optional[EventBus] = None, state: Optional[LedgerState] = None):
        if ":" in name:
            raise InvalidConfig(f"Pool name '{name}' must not contain ':'")
        self.name = name
        self.asset = asset
        self.clock = clock
        self.bus = bus if bus is not None else event_bus
        if state is None:
            params = params if params is not None else CURRENT_NETWORK
            now = clock.now()
            state = LedgerState(params, admin, manager,
                                reward_pools=self._initial_reward_pools(params, now),
                                start_time=now)
        self.state = state
        self.address = pool_address(name, prefix=self.state.params.bech32_prefix_pool)

        self._lock = threading.RLock()
        self._depth = 0
        self._pending_events: List[Tuple[EventType, Dict[str, Any]]] = []

    def _initial_reward_pools(self, params: StakingParams, now: int) -> Dict[str, RewardPoolState]:
        return {"default": RewardPoolState(name="default", reward_rate=params.reward_rate, last_settled=now)}

    # --- Atomic execution ---

    @contextmanager
    def atomic(self):
        """
        Rollback scope. The outermost scope snapshots the state, restores it
        on any exception, and publishes buffered events only on success.
        """
        with self._lock:
            snapshot = None
            if self._depth == 0:
                snapshot = self.state.clone()
                self._pending_events = []
            self._depth += 1
            try:
                yield
            except BaseException as e:
                if snapshot is not None:
                    self.state = snapshot
                    discarded = len(self._pending_events)
                    self._pending_events = []
                    logger.debug(f"[{self.name}] Rolled back ({type(e).__name__}: {e}); dropped {discarded} event(s)")
                raise
            finally:
                self._depth -= 1
            if snapshot is not None:
                events, self._pending_events = self._pending_events, []
                for event_type, data in events:
                    self.bus.emit(event_type, **data)
                update_pool_metrics(self)

    def _emit(self, event_type: EventType, **data: Any) -> None:
        data.setdefault("timestamp", self.clock.now())
        self._pending_events.append((event_type, {"pool": self.name, **data}))

    def _sync(self) -> int:
        """Catches the cycle clock up to now and returns now."""
        now = self.clock.now()
        if advance_cycle(self.state.cycle, now):
            logger.debug(f"[{self.name}] Cycle advanced to {self.state.cycle.cycle_start}")
        return now

    # --- Views ---

    @property
    def params(self) -> StakingParams:
        return self.state.params

    @property
    def cycle(self) -> CycleState:
        return self.state.cycle

    def registry(self) -> NodeRegistry:
        return NodeRegistry(self.state.nodes, self.state.params.max_node_id_length)

    def reward_pool_for(self, position: Position) -> RewardPoolState:
        return self.state.reward_pools["default"]

    def position(self, account: str) -> Optional[Position]:
        return self.state.find_position(account)

    def stake_of(self, account: str) -> int:
        position = self.state.find_position(account)
        return position.stake if position else 0

    def total_stake(self) -> int:
        return sum(rp.total_stake for rp in self.state.reward_pools.values())

    def pending_reward(self, account: str) -> int:
        """Realized plus unrealized reward at the current time (read-only)."""
        position = self.state.find_position(account)
        if position is None:
            return 0
        return rewards.pending(self.reward_pool_for(position), position, self.clock.now())

    def request_of(self, account: str) -> Optional[UnstakeRequest]:
        return self.state.requests.get(account)

    def is_banned(self, account: str) -> bool:
        return account in self.state.banned

    def node_owner(self, node_id: str) -> str:
        return self.registry().require_live(node_id).owner

    def node_of(self, account: str) -> Optional[str]:
        position = self.state.find_position(account)
        return position.node_id if position else None

    def check_invariants(self) -> None:
        """Raises ProtocolError if the per-pool totals disagree with the positions."""
        totals: Dict[str, int] = {name: 0 for name in self.state.reward_pools}
        for position in self.state.positions.values():
            if position.stake:
                totals[self.reward_pool_for(position).name] += position.stake
        for name, rp in self.state.reward_pools.items():
            if rp.total_stake != totals[name]:
                raise ProtocolError(
                    f"[{self.name}] reward pool '{name}' total {rp.total_stake} != sum of stakes {totals[name]}"
                )
        for node_id, record in self.state.nodes.items():
            if record.is_live:
                owner = self.state.find_position(record.owner)
                if owner is None or owner.node_id != node_id:
                    raise ProtocolError(f"[{self.name}] live node '{node_id}' not bound to its owner")

    # --- Farming ---

    def _farm(self, position: Position, now: int) -> int:
        """Realizes pending reward, then settles punishment against it."""
        realized = rewards.realize(self.reward_pool_for(position), position, now)
        settled = punishment.settle_from_reward(position)
        if settled is not None:
            amount, exhausted = settled
            self._emit(EventType.PUNISH_FROM_REWARD, account=position.address, amount=amount, exhausted=exhausted)
        return realized

    def farm(self, account: str) -> int:
        """Realizes the account's reward; returns the amount realized."""
        with self.atomic():
            now = self._sync()
            position = self.state.find_position(account)
            if position is None:
                return 0
            return self._farm(position, now)

    # --- Staking ---

    def stake(self, account: str, amount: int) -> None:
        with self.atomic():
            now = self._sync()
            unstake.check_amount(amount, self.params.piece_size)
            position = self.state.get_position(account)
            self._farm(position, now)
            rewards.add_stake(self.reward_pool_for(position), position, amount, now)
            self._emit(EventType.STAKE, account=account, amount=amount)
            self.asset.transfer_from(self.address, account, self.address, amount)
        logger.info(f"[{self.name}] {account} staked {amount} (total {self.total_stake()})")

    def request_unstake(self, account: str, amount: int) -> None:
        with self.atomic():
            now = self._sync()
            position = self.state.find_position(account) or Position(address=account)
            request = self.state.get_request(account)
            unstake.file_request(request, position, amount, self.cycle, self.params.piece_size, now)
            self._emit(EventType.REQUEST_UNSTAKE, account=account, amount=amount)

    def reject_unstake(self, caller: str, account: str) -> None:
        require_manager(self.state.manager, caller)
        with self.atomic():
            self._sync()
            unstake.reject(self.state.get_request(account), self.cycle)
            self._emit(EventType.REJECT_UNSTAKE, account=account)

    def allow_unstake(self, caller: str, account: str) -> None:
        require_manager(self.state.manager, caller)
        with self.atomic():
            self._sync()
            unstake.allow(self.state.get_request(account), self.cycle)
            self._emit(EventType.ALLOW_UNSTAKE, account=account)

    def ban_unstake(self, caller: str, account: str, banned: bool = True) -> None:
        require_manager(self.state.manager, caller)
        with self.atomic():
            if banned:
                self.state.banned.add(account)
            else:
                self.state.banned.discard(account)
            self._emit(EventType.BAN_UNSTAKE, account=account, banned=banned)

    def check_unstake(self, account: str, amount: int) -> None:
        """Raises the first failing eligibility condition (read-only)."""
        cycle = self.cycle.model_copy()
        now = self.clock.now()
        advance_cycle(cycle, now)
        position = self.state.find_position(account) or Position(address=account)
        request = self.state.requests.get(account) or UnstakeRequest()
        unstake.check_unstake(position, request, account in self.state.banned, amount, cycle,
                              self.params.piece_size, self.params.maturity_interval, now)

    def can_unstake(self, account: str, amount: int) -> bool:
        try:
            self.check_unstake(account, amount)
        except StakingError as e:
            logger.debug(f"[{self.name}] {account} cannot unstake {amount}: {e}")
            return False
        return True

    def unstake(self, account: str, amount: int) -> int:
        """Withdraws `amount`; returns what was actually paid to the account."""
        with self.atomic():
            now = self._sync()
            self.check_unstake(account, amount)

            position = self.state.get_position(account)
            self._farm(position, now)
            rewards.sub_stake(self.reward_pool_for(position), position, amount, now)
            if account in self.state.requests:
                unstake.consume(self.state.requests[account], amount)

            withheld = 0
            if position.stake == 0:
                withheld = punishment.settle_from_stake(position, amount)
                if withheld:
                    self._emit(EventType.PUNISH_FROM_STAKE, account=account, amount=withheld)
                self._clear_position(position)
            paid = amount - withheld

            # Both transfers below must succeed or neither may run
            custody = self.asset.balance_of(self.address)
            if custody < amount:
                raise AssetTransferError(f"Pool custody {custody} cannot cover withdrawal of {amount}")

            self._emit(EventType.UNSTAKE, account=account, amount=amount, paid=paid)
            if paid:
                self.asset.transfer(self.address, account, paid)
            if withheld:
                self.asset.transfer(self.address, self.state.admin, withheld)
        logger.info(f"[{self.name}] {account} unstaked {amount} (paid {paid}, withheld {withheld})")
        return paid

    def _clear_position(self, position: Position) -> None:
        """Resets a position after a full exit; realized reward stays claimable."""
        if position.node_id is not None:
            self.registry().release(position.node_id)
        position.stake = 0
        position.reward_debt = 0
        position.punishment = 0
        position.node_id = None
        self.state.requests.pop(position.address, None)

    # --- Rewards & punishment ---

    def take_reward(self, account: str) -> int:
        with self.atomic():
            now = self._sync()
            position = self.state.find_position(account)
            if position is None:
                raise InvalidAmount(f"{account} has no position")
            self._farm(position, now)
            amount = position.reward_balance
            if amount == 0:
                raise InvalidAmount(f"{account} has no reward to take")
            position.reward_balance = 0
            rewards.snapshot_debt(self.reward_pool_for(position), position)
            self._emit(EventType.TAKE_REWARD, account=account, amount=amount)
            # Rewards are paid from the administrative authority's balance
            self.asset.transfer_from(self.address, self.state.admin, account, amount)
        logger.info(f"[{self.name}] {account} took reward {amount}")
        return amount

    def punish(self, caller: str, account: str, offline_units: int) -> int:
        require_manager(self.state.manager, caller)
        with self.atomic():
            position = self.state.find_position(account) or Position(address=account)
            amount = punishment.accrue_punishment(position, offline_units, self.params.punish_rate)
            self._emit(EventType.ADD_PUNISH, account=account, amount=amount, offline_units=offline_units)
        logger.info(f"[{self.name}] Punished {account} by {amount} ({offline_units} offline units)")
        return amount

    # --- Node registry ---

    def register_node(self, account: str, node_id: str) -> None:
        with self.atomic():
            now = self._sync()
            position = self.state.find_position(account)
            if position is None or position.stake == 0:
                raise InsufficientStake(f"{account} must stake before registering a node")
            self._check_node_available(node_id)
            released = self.registry().register(position, node_id, now)
            self._emit(EventType.REGISTER_NODE, account=account, node_id=node_id, released=released)
        logger.info(f"[{self.name}] {account} registered node '{node_id}'")

    def _check_node_available(self, node_id: str) -> None:
        """Hook for variants that share the id namespace with other pools."""
        pass

    # --- Administration ---

    def set_manager(self, caller: str, manager: str) -> None:
        require_admin(self.state.admin, caller)
        with self.atomic():
            previous = self.state.manager
            self.state.manager = manager
            self._emit(EventType.SET_MANAGER, account=manager, previous=previous)
        logger.info(f"[{self.name}] Manager set to {manager}")

    def set_reward_rate(self, caller: str, rate: int, reward_pool: str = "default") -> None:
        require_admin(self.state.admin, caller)
        if rate < 0:
            raise InvalidConfig("Reward rate must be non-negative")
        with self.atomic():
            if reward_pool not in self.state.reward_pools:
                raise InvalidConfig(f"Unknown reward pool '{reward_pool}'")
            rp = self.state.reward_pools[reward_pool]
            # Time elapsed so far accrues at the old rate
            rewards.settle(rp, self.clock.now())
            rp.reward_rate = rate
        logger.info(f"[{self.name}] Reward rate of '{reward_pool}' set to {rate}")

    def set_cycle(self, caller: str, cycle_length: int, free_window_length: int) -> None:
        require_admin(self.state.admin, caller)
        if cycle_length <= 0 or not 0 < free_window_length <= cycle_length:
            raise InvalidConfig(f"Invalid cycle {cycle_length} / free window {free_window_length}")
        with self.atomic():
            self._sync()
            self.state.cycle = CycleState(
                cycle_start=self.state.cycle.cycle_start,
                cycle_length=cycle_length,
                free_window_length=free_window_length,
            )
            self.state.params = self.params.model_copy(
                update={"cycle_length": cycle_length, "free_window_length": free_window_length}
            )
        logger.info(f"[{self.name}] Cycle set to {cycle_length} (free window {free_window_length})")

    def set_maturity_interval(self, caller: str, interval: int) -> None:
        require_admin(self.state.admin, caller)
        if interval < 0:
            raise InvalidConfig("Maturity interval must be non-negative")
        with self._lock:
            self.state.params = self.params.model_copy(update={"maturity_interval": interval})

    def set_piece_size(self, caller: str, piece_size: int) -> None:
        require_admin(self.state.admin, caller)
        if piece_size <= 0:
            raise InvalidConfig("Piece size must be positive")
        with self._lock:
            self.state.params = self.params.model_copy(update={"piece_size": piece_size})

    def set_punish_rate(self, caller: str, rate: int) -> None:
        require_admin(self.state.admin, caller)
        if rate < 0:
            raise InvalidConfig("Punish rate must be non-negative")
        with self._lock:
            self.state.params = self.params.model_copy(update={"punish_rate": rate})

    # --- Persistence ---

    def persist(self, db: StorageDB) -> None:
        with self._lock:
            self.state.persist(db, self.name)

    @classmethod
    def load(cls, db: StorageDB, name: str, asset: AssetLedger, clock: Clock,
             bus: Optional[EventBus] = None) -> 'StakePool':
        state = LedgerState.load(db, name)
        if state is None:
            raise ValueError(f"No persisted state for pool '{name}'")
        return cls(name, asset, state.admin, clock, bus=bus, state=state)
