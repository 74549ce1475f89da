"""
Reward Distribution Engine

Advances the geyser's accounting epoch. Every operation starts by:
1. Re-reading the three vault balances so rebases are absorbed
2. Moving newly vested reward from the locked to the unlocked pool
3. Folding elapsed time into the global share-seconds accumulator

Rewards are paid from the unlocked pool in proportion to share-seconds,
scaled by a bonus that grows linearly from start_bonus to 100% over the
bonus period. All arithmetic is integer; the bonus is applied as an exact
weight over the common denominator 100 * bonus_period.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Iterable

from ..config import ONE_HUNDRED_PERCENT, GeyserConfig
from ..geyser_exceptions import StateError
from .share_accounting import ConsumedPortion
from .state import GeyserState
from .unlock_schedules import UnlockScheduleLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolBalances:
    """Token balances of the geyser's vaults at one instant."""

    staked: int
    locked: int
    unlocked: int


class RewardDistributionEngine:
    """Accounting refresh, bonus curve and reward ratios."""

    def __init__(self, state: GeyserState, config: GeyserConfig, ledger: UnlockScheduleLedger):
        self.state = state
        self.config = config
        self.ledger = ledger

    def refresh_accounting(self, now: int, balances: PoolBalances) -> int:
        """
        Bring global accounting up to `now`.

        Args:
            now: Current unix time, not earlier than the last refresh
            balances: Current vault balances

        Returns:
            Tokens released from the locked to the unlocked pool. The caller
            performs the matching vault transfer.
        """
        accounting = self.state.accounting
        if now < accounting.last_accounting_timestamp:
            raise StateError(
                "TokenGeyser: clock moved backwards",
                details={"now": now, "last_accounting_timestamp": accounting.last_accounting_timestamp},
            )

        accounting.total_staked_amount = balances.staked
        accounting.total_locked_amount = balances.locked
        accounting.total_unlocked_reward_pool = balances.unlocked

        vested_shares = self.ledger.advance_and_collect_vested(now)
        unlocked_tokens = 0
        if vested_shares > 0:
            unlocked_tokens = (
                vested_shares * accounting.total_locked_amount // accounting.total_locked_shares
            )
            accounting.total_locked_shares -= vested_shares
        if accounting.total_locked_shares == 0:
            # Rebase residue with no schedule left to claim it
            unlocked_tokens = accounting.total_locked_amount

        accounting.total_locked_amount -= unlocked_tokens
        accounting.total_unlocked_reward_pool += unlocked_tokens
        accounting.total_vested_collected += unlocked_tokens

        elapsed = now - accounting.last_accounting_timestamp
        accounting.global_staking_share_seconds += accounting.total_staking_shares * elapsed
        accounting.last_accounting_timestamp = now

        if unlocked_tokens:
            logger.debug(
                "Reward vested",
                extra={
                    "event": "geyser.reward_vested",
                    "vested_shares": vested_shares,
                    "unlocked_tokens": unlocked_tokens,
                    "timestamp": now,
                }
            )
        return unlocked_tokens

    # ==================== Bonus Curve ====================

    def bonus_weight(self, age_seconds: int) -> int:
        """Bonus for a stake of the given age, scaled by 100 * bonus_period."""
        period = self.config.bonus_period_seconds
        start_bonus = self.config.start_bonus
        held = min(max(age_seconds, 0), period)
        return start_bonus * period + (ONE_HUNDRED_PERCENT - start_bonus) * held

    def bonus(self, age_seconds: int) -> Fraction:
        """Reward multiplier in [start_bonus, 1] for a stake of the given age."""
        return Fraction(
            self.bonus_weight(age_seconds),
            ONE_HUNDRED_PERCENT * self.config.bonus_period_seconds,
        )

    def weighted_share_seconds(self, portions: Iterable[ConsumedPortion]) -> int:
        """Bonus-weighted share-seconds, scaled by 100 * bonus_period."""
        return sum(p.share_seconds * self.bonus_weight(p.age_seconds) for p in portions)

    # ==================== Reward Ratios ====================

    def reward_for_weighted(self, weighted_share_seconds: int) -> int:
        """Unlocked-pool tokens owed for an amount of bonus-weighted share-seconds."""
        accounting = self.state.accounting
        if accounting.global_staking_share_seconds <= 0:
            return 0
        denominator = (
            accounting.global_staking_share_seconds
            * ONE_HUNDRED_PERCENT
            * self.config.bonus_period_seconds
        )
        return accounting.total_unlocked_reward_pool * weighted_share_seconds // denominator

    def user_entitlement(self, user_share_seconds: int) -> int:
        """Unlocked-pool tokens proportional to raw share-seconds, no bonus applied."""
        accounting = self.state.accounting
        if accounting.global_staking_share_seconds <= 0:
            return 0
        return (
            accounting.total_unlocked_reward_pool
            * user_share_seconds
            // accounting.global_staking_share_seconds
        )
