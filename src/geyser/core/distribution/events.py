"""Geyser events, appended to TokenGeyser.events when an operation commits."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

STAKED = "Staked"
UNSTAKED = "Unstaked"
TOKENS_CLAIMED = "TokensClaimed"
TOKENS_LOCKED = "TokensLocked"
TOKENS_UNLOCKED = "TokensUnlocked"
STAKING_TOKEN_SET = "StakingTokenSet"


@dataclass
class GeyserEvent:
    event_type: str
    args: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"event_type": self.event_type, "args": dict(self.args), "timestamp": self.timestamp}
