"""
Unstake Processor

Settles a withdrawal in a fixed sequence:
validate -> refresh accounting -> burn shares from the stake queue ->
compute the bonus-weighted reward -> update pools -> split the reward.

The processor only mutates ledger state. Token transfers and events are
left to the caller so they can run after the state is final, and a failure
at any step leaves nothing behind once the caller restores its snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from ..geyser_exceptions import InputValidationError, PrecisionError
from .founder_fee import FounderFeeSplitter, RewardSplit
from .reward_distribution import RewardDistributionEngine
from .share_accounting import ConsumedPortion, ShareAccountingEngine
from .state import GeyserState

logger = logging.getLogger(__name__)


@dataclass
class UnstakeResult:
    participant: str
    amount: int
    shares_burned: int
    raw_share_seconds: int
    split: RewardSplit
    remaining_staked: int
    portions: list[ConsumedPortion] = field(default_factory=list)
    unlocked: int = 0

    @property
    def total_reward(self) -> int:
        return self.split.total_reward

    @property
    def user_reward(self) -> int:
        return self.split.user_reward

    @property
    def founder_reward(self) -> int:
        return self.split.founder_reward


class UnstakeProcessor:
    """
    Withdrawal state machine.

    Args:
        state: Shared geyser state
        shares: Stake queues and share conversion
        rewards: Accounting refresh and reward ratios
        splitter: Founder fee split
        refresh: Refreshes accounting to a timestamp, including vault moves
        total_staked: Reads the live staking vault balance
    """

    def __init__(
        self,
        state: GeyserState,
        shares: ShareAccountingEngine,
        rewards: RewardDistributionEngine,
        splitter: FounderFeeSplitter,
        refresh: Callable[[int], int],
        total_staked: Callable[[], int],
    ):
        self.state = state
        self.shares = shares
        self.rewards = rewards
        self.splitter = splitter
        self.refresh = refresh
        self.total_staked = total_staked

    def validate(self, participant: str, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InputValidationError("TokenGeyser: unstake amount is zero")
        staked = self.shares.total_staked_for(participant, self.total_staked())
        if amount > staked:
            raise InputValidationError(
                "TokenGeyser: unstake amount is greater than total user stakes",
                details={"amount": amount, "total_staked_for": staked},
            )

    def process(self, participant: str, amount: int, now: int) -> UnstakeResult:
        """
        Withdraw `amount` staked tokens for `participant` and settle rewards.

        Raises:
            InputValidationError: Zero amount or more than the participant holds
            PrecisionError: The amount is worth zero shares
        """
        owner = self.shares.normalize(participant)
        self.validate(owner, amount)
        unlocked = self.refresh(now)

        accounting = self.state.accounting
        shares_to_burn = accounting.total_staking_shares * amount // accounting.total_staked_amount
        if shares_to_burn == 0:
            raise PrecisionError(
                "TokenGeyser: Unable to unstake amount this small", details={"amount": amount}
            )

        portions = self.shares.consume(owner, shares_to_burn, now)
        raw_share_seconds = sum(p.share_seconds for p in portions)
        reward = self.rewards.reward_for_weighted(self.rewards.weighted_share_seconds(portions))

        accounting.total_unlocked_reward_pool -= reward
        accounting.total_rewards_paid += reward
        accounting.global_staking_share_seconds -= raw_share_seconds
        accounting.total_staking_shares -= shares_to_burn
        accounting.total_staked_amount -= amount

        totals = self.state.totals.get(owner)
        if totals is not None:
            totals.total_staked_amount = max(0, totals.total_staked_amount - amount)

        split = self.splitter.split(reward)
        result = UnstakeResult(
            participant=owner,
            amount=amount,
            shares_burned=shares_to_burn,
            raw_share_seconds=raw_share_seconds,
            split=split,
            remaining_staked=self.shares.total_staked_for(owner, accounting.total_staked_amount),
            portions=portions,
            unlocked=unlocked,
        )

        logger.info(
            "Unstake settled",
            extra={
                "event": "geyser.unstake_settled",
                "participant": owner[:10],
                "amount": amount,
                "shares_burned": shares_to_burn,
                "stake_timestamps": [p.stake_timestamp for p in portions],
                "total_reward": split.total_reward,
                "user_reward": split.user_reward,
                "founder_reward": split.founder_reward,
            }
        )
        return result
