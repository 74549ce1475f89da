"""
Token Geyser Metrics

Prometheus metrics for staking, reward settlement and unlock schedules.
Recorded by the geyser only after an operation has committed, so rolled
back or preview operations never show up here.
"""

from __future__ import annotations

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge


class GeyserMetrics:
    """Metrics for geyser operations and pool balances."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or REGISTRY

        # Staking metrics
        self.stakes_total = Counter(
            'geyser_stakes_total',
            'Total number of committed stake operations',
            registry=self.registry
        )

        self.unstakes_total = Counter(
            'geyser_unstakes_total',
            'Total number of committed unstake operations',
            registry=self.registry
        )

        self.staked_volume = Counter(
            'geyser_staked_volume_total',
            'Total staking token amount deposited, in base units',
            registry=self.registry
        )

        self.unstaked_volume = Counter(
            'geyser_unstaked_volume_total',
            'Total staking token amount withdrawn, in base units',
            registry=self.registry
        )

        # Reward metrics
        self.rewards_paid = Counter(
            'geyser_rewards_paid_total',
            'Reward tokens paid out, in base units',
            ['recipient'],
            registry=self.registry
        )

        self.tokens_locked = Counter(
            'geyser_tokens_locked_total',
            'Reward tokens locked under unlock schedules',
            registry=self.registry
        )

        self.tokens_unlocked = Counter(
            'geyser_tokens_unlocked_total',
            'Reward tokens moved from the locked to the unlocked pool',
            registry=self.registry
        )

        self.rejected_operations = Counter(
            'geyser_rejected_operations_total',
            'Operations aborted and rolled back',
            ['operation', 'error'],
            registry=self.registry
        )

        # Pool gauges
        self.total_staked = Gauge(
            'geyser_total_staked',
            'Staking tokens held by the staking vault',
            registry=self.registry
        )

        self.total_locked = Gauge(
            'geyser_total_locked',
            'Reward tokens still locked',
            registry=self.registry
        )

        self.total_unlocked = Gauge(
            'geyser_total_unlocked',
            'Reward tokens unlocked and not yet claimed',
            registry=self.registry
        )

        self.active_schedules = Gauge(
            'geyser_active_unlock_schedules',
            'Unlock schedules that are not fully vested',
            registry=self.registry
        )

    def record_stake(self, amount: int) -> None:
        self.stakes_total.inc()
        self.staked_volume.inc(amount)

    def record_unstake(self, amount: int, user_reward: int, founder_reward: int) -> None:
        self.unstakes_total.inc()
        self.unstaked_volume.inc(amount)
        if user_reward:
            self.rewards_paid.labels(recipient="user").inc(user_reward)
        if founder_reward:
            self.rewards_paid.labels(recipient="founder").inc(founder_reward)

    def record_lock(self, amount: int) -> None:
        self.tokens_locked.inc(amount)

    def record_unlock(self, amount: int) -> None:
        if amount > 0:
            self.tokens_unlocked.inc(amount)

    def record_rejection(self, operation: str, error: Exception) -> None:
        self.rejected_operations.labels(operation=operation, error=type(error).__name__).inc()

    def update_pool_gauges(
        self, total_staked: int, total_locked: int, total_unlocked: int, active_schedules: int
    ) -> None:
        self.total_staked.set(total_staked)
        self.total_locked.set(total_locked)
        self.total_unlocked.set(total_unlocked)
        self.active_schedules.set(active_schedules)
