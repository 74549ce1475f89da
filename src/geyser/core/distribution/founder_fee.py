"""Founder fee split of settled rewards."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..geyser_exceptions import ConfigurationError, InputValidationError


@dataclass(frozen=True)
class RewardSplit:
    total_reward: int
    user_reward: int
    founder_reward: int


class FounderFeeSplitter:
    """
    Splits every reward between the participant and the founder.

    founder_reward = reward * founder_percentage // 100 and the participant
    receives the rest, so the remainder of the division goes to the
    participant and the two parts always sum to the reward.
    """

    def __init__(self, founder_percentage: int, founder: Optional[str] = None):
        if not isinstance(founder_percentage, int) or not 0 <= founder_percentage <= 100:
            raise ConfigurationError("TokenGeyser: founder percentage too high")
        if founder_percentage > 0 and not founder:
            raise ConfigurationError("TokenGeyser: founder address is required")
        self.founder_percentage = founder_percentage
        self.founder = founder.lower() if founder else None

    def split(self, reward: int) -> RewardSplit:
        if reward < 0:
            raise InputValidationError("TokenGeyser: reward cannot be negative")
        founder_reward = reward * self.founder_percentage // 100
        return RewardSplit(
            total_reward=reward,
            user_reward=reward - founder_reward,
            founder_reward=founder_reward,
        )
