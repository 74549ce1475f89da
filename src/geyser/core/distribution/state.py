"""
Geyser ledger state.

All mutable state of one geyser lives in a single GeyserState so that an
operation can snapshot it up front and restore it wholesale on failure.
Amounts, shares and share-seconds are integers in base units.
"""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class UnlockSchedule:
    """Linear vesting of a fixed number of locked shares."""

    schedule_id: int
    initial_locked_shares: int
    duration_seconds: int
    start_time: int
    unlocked_shares: int = 0

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration_seconds

    def unlocked_at(self, now: int) -> int:
        """Cumulative shares vested by `now`, capped at the initial allocation."""
        if now <= self.start_time:
            return 0
        vested = self.initial_locked_shares * (now - self.start_time) // self.duration_seconds
        return min(self.initial_locked_shares, vested)

    @property
    def fully_vested(self) -> bool:
        return self.unlocked_shares >= self.initial_locked_shares


@dataclass
class Stake:
    owner: str
    staking_shares: int
    timestamp: int


@dataclass
class ParticipantTotals:
    """
    Cached per-participant aggregates.

    total_staking_shares always equals the sum of the participant's live
    stake shares. total_staked_amount is the nominal amount deposited net of
    withdrawals; the live, rebase-aware amount is derived from shares.
    """

    total_staked_amount: int = 0
    total_staking_shares: int = 0


@dataclass
class GlobalAccounting:
    total_staking_shares: int = 0
    total_staked_amount: int = 0
    total_locked_shares: int = 0
    total_locked_amount: int = 0
    total_unlocked_reward_pool: int = 0
    global_staking_share_seconds: int = 0
    last_accounting_timestamp: int = 0
    # Set once any schedule has reached its start time; never cleared
    distribution_started: bool = False
    # Cumulative counters, used to audit conservation
    total_vested_collected: int = 0
    total_rewards_paid: int = 0


@dataclass
class GeyserState:
    accounting: GlobalAccounting = field(default_factory=GlobalAccounting)
    schedules: list[UnlockSchedule] = field(default_factory=list)
    next_schedule_id: int = 1
    stakes: dict[str, list[Stake]] = field(default_factory=dict)
    totals: dict[str, ParticipantTotals] = field(default_factory=dict)

    def snapshot(self) -> "GeyserState":
        return copy.deepcopy(self)

    def restore(self, snapshot: "GeyserState") -> None:
        """Put every field back to the values held by snapshot."""
        self.accounting = snapshot.accounting
        self.schedules = snapshot.schedules
        self.next_schedule_id = snapshot.next_schedule_id
        self.stakes = snapshot.stakes
        self.totals = snapshot.totals

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        return {
            "accounting": asdict(self.accounting),
            "schedules": [asdict(s) for s in self.schedules],
            "next_schedule_id": self.next_schedule_id,
            "stakes": {
                owner: [asdict(s) for s in queue] for owner, queue in self.stakes.items()
            },
            "totals": {owner: asdict(t) for owner, t in self.totals.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GeyserState":
        return cls(
            accounting=GlobalAccounting(**data.get("accounting", {})),
            schedules=[UnlockSchedule(**s) for s in data.get("schedules", [])],
            next_schedule_id=data.get("next_schedule_id", 1),
            stakes={
                owner: [Stake(**s) for s in queue]
                for owner, queue in data.get("stakes", {}).items()
            },
            totals={
                owner: ParticipantTotals(**t) for owner, t in data.get("totals", {}).items()
            },
        )
