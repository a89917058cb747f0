# MIT License
# Copyright (c) 2025 Hashborn

"""Privileged-call guards, evaluated before any state mutation."""

from typing import Optional
from ...protocol.types.common import Unauthorized


def require_admin(admin: str, caller: str) -> None:
    if caller != admin:
        raise Unauthorized(f"{caller} is not the administrative authority")


def require_manager(manager: Optional[str], caller: str) -> None:
    if manager is None or caller != manager:
        raise Unauthorized(f"{caller} is not the operational authority")


def require_linked(pool, caller_pool) -> None:
    """Only a pool that is mutually linked with `pool` may make cross-pool calls."""
    if caller_pool is None or not (pool.upper is caller_pool or pool.lower is caller_pool):
        raise Unauthorized("Cross-pool call from an unlinked pool")
    if pool.upper is caller_pool and caller_pool.lower is not pool:
        raise Unauthorized("Cross-pool call over a one-sided link")
    if pool.lower is caller_pool and caller_pool.upper is not pool:
        raise Unauthorized("Cross-pool call over a one-sided link")
