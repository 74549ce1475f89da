"""
Share Accounting Engine

Staked tokens are represented internally by staking shares. A deposit mints
shares at the current pool rate; a participant's claim on the staking pool
is their fraction of all shares, so rebases of the staking token change
every participant's balance proportionally without touching the ledger.

Each participant keeps a queue of stakes in arrival order; withdrawals
consume it from the oldest entry unless the pool is configured to redeem the
newest stakes first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from ..config import GeyserConfig
from ..geyser_exceptions import InputValidationError, PrecisionError, StateError
from .state import GeyserState, ParticipantTotals, Stake
from .unlock_schedules import UnlockScheduleLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsumedPortion:
    """Part of a stake redeemed by a withdrawal."""

    staking_shares: int
    stake_timestamp: int
    age_seconds: int

    @property
    def share_seconds(self) -> int:
        return self.staking_shares * self.age_seconds


class ShareAccountingEngine:
    """Token/share conversion and per-participant stake queues."""

    def __init__(self, state: GeyserState, config: GeyserConfig, ledger: UnlockScheduleLedger):
        self.state = state
        self.config = config
        self.ledger = ledger

    @staticmethod
    def normalize(participant: str) -> str:
        if not isinstance(participant, str) or not participant:
            raise InputValidationError("TokenGeyser: participant address is required")
        return participant.lower()

    def shares_for_amount(self, amount: int) -> int:
        """Staking shares minted for `amount` tokens at the current pool rate."""
        accounting = self.state.accounting
        if accounting.total_staking_shares > 0:
            if accounting.total_staked_amount <= 0:
                raise StateError(
                    "TokenGeyser: Invalid state. Staking shares exist, but no staking tokens do"
                )
            return accounting.total_staking_shares * amount // accounting.total_staked_amount
        return amount * self.config.initial_shares_per_token

    def deposit(self, participant: str, amount: int, now: int) -> Stake:
        """
        Record a stake of `amount` tokens for `participant` at `now`.

        Accounting must already be refreshed to `now`. Moving the tokens into
        the staking vault is left to the caller, after this returns.

        Raises:
            StateError: Distribution not started or inconsistent pool state
            InputValidationError: Non-positive amount
            PrecisionError: The amount mints zero shares
        """
        owner = self.normalize(participant)
        if not self.ledger.has_started(now):
            raise StateError(
                "TokenGeyser: Distribution not started.",
                details={"now": now, "global_start_time": self.config.global_start_time},
            )
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InputValidationError("TokenGeyser: stake amount is zero")

        minted = self.shares_for_amount(amount)
        if minted <= 0:
            raise PrecisionError(
                "TokenGeyser: Stake amount is too small", details={"amount": amount}
            )

        stake = Stake(owner=owner, staking_shares=minted, timestamp=now)
        self.state.stakes.setdefault(owner, []).append(stake)

        totals = self.state.totals.setdefault(owner, ParticipantTotals())
        totals.total_staking_shares += minted
        totals.total_staked_amount += amount

        accounting = self.state.accounting
        accounting.total_staking_shares += minted
        accounting.total_staked_amount += amount

        logger.info(
            "Stake recorded",
            extra={
                "event": "geyser.stake_recorded",
                "participant": owner[:10],
                "amount": amount,
                "staking_shares": minted,
                "timestamp": now,
            }
        )
        return replace(stake)

    def consume(self, participant: str, shares_to_burn: int, now: int) -> list[ConsumedPortion]:
        """
        Remove `shares_to_burn` shares from the participant's queue.

        Entries are consumed from the head (oldest first), or from the tail
        when configured to redeem newest stakes first. A partially consumed
        entry keeps its original timestamp; emptied entries are dropped.
        Global share totals are left to the caller.

        Returns:
            The consumed portions in consumption order
        """
        owner = self.normalize(participant)
        queue = self.state.stakes.get(owner, [])
        totals = self.state.totals.get(owner)
        if totals is None or totals.total_staking_shares < shares_to_burn:
            raise InputValidationError(
                "TokenGeyser: unstake amount is greater than total user stakes"
            )

        newest_first = self.config.consume_newest_first
        portions: list[ConsumedPortion] = []
        remaining = shares_to_burn
        while remaining > 0:
            stake = queue[-1] if newest_first else queue[0]
            taken = min(remaining, stake.staking_shares)
            portions.append(
                ConsumedPortion(
                    staking_shares=taken,
                    stake_timestamp=stake.timestamp,
                    age_seconds=now - stake.timestamp,
                )
            )
            stake.staking_shares -= taken
            remaining -= taken
            if stake.staking_shares == 0:
                if newest_first:
                    queue.pop()
                else:
                    queue.pop(0)

        totals.total_staking_shares -= shares_to_burn
        if not queue:
            self.state.stakes.pop(owner, None)
            self.state.totals.pop(owner, None)
        return portions

    # ==================== Read Helpers ====================

    def total_staked_for(self, participant: str, total_staked: int) -> int:
        """Participant's claim on a staking pool holding `total_staked` tokens."""
        accounting = self.state.accounting
        if accounting.total_staking_shares <= 0:
            return 0
        totals = self.state.totals.get(self.normalize(participant))
        if totals is None:
            return 0
        return total_staked * totals.total_staking_shares // accounting.total_staking_shares

    def stakes_for(self, participant: str) -> list[Stake]:
        """Copy of the participant's stake queue, oldest first."""
        return [replace(s) for s in self.state.stakes.get(self.normalize(participant), [])]

    def totals_for(self, participant: str) -> ParticipantTotals:
        totals = self.state.totals.get(self.normalize(participant))
        return replace(totals) if totals is not None else ParticipantTotals()

    def share_seconds_for(self, participant: str, now: int) -> int:
        """Raw share-seconds accrued by the participant's live stakes at `now`."""
        return sum(
            s.staking_shares * (now - s.timestamp)
            for s in self.state.stakes.get(self.normalize(participant), [])
        )
