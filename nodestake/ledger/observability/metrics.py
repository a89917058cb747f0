# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics Exporter

Metrics:
- Ledger events by type
- Stake held per pool, live positions per pool
- Reward-per-share accumulator per reward pool
"""

from prometheus_client import Counter, Gauge, CollectorRegistry, generate_latest

# Create registry for metrics
metrics_registry = CollectorRegistry()

# ═══════════════════════════════════════════════════════════════════
# LEDGER METRICS
# ═══════════════════════════════════════════════════════════════════

events_total = Counter(
    'nodestake_events_total',
    'Total number of ledger events emitted',
    ['event'],
    registry=metrics_registry
)

pool_total_stake = Gauge(
    'nodestake_pool_total_stake',
    'Total stake held by a pool',
    ['pool'],
    registry=metrics_registry
)

pool_positions = Gauge(
    'nodestake_positions',
    'Number of positions with non-zero stake',
    ['pool'],
    registry=metrics_registry
)

reward_accumulator = Gauge(
    'nodestake_reward_accumulator',
    'Reward-per-share accumulator (scaled)',
    ['pool', 'reward_pool'],
    registry=metrics_registry
)


# ═══════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS
# ═══════════════════════════════════════════════════════════════════

def update_pool_metrics(pool):
    """
    Refresh gauges from a pool's committed state.

    Args:
        pool: StakePool instance
    """
    state = pool.state
    pool_total_stake.labels(pool=pool.name).set(pool.total_stake())
    pool_positions.labels(pool=pool.name).set(
        sum(1 for p in state.positions.values() if p.stake > 0)
    )
    for reward_pool in state.reward_pools.values():
        # Gauges are floats; precision loss on huge accumulators is acceptable here
        reward_accumulator.labels(pool=pool.name, reward_pool=reward_pool.name).set(reward_pool.accumulator)


def export_metrics() -> bytes:
    """Metrics in Prometheus text exposition format."""
    return generate_latest(metrics_registry)
