"""
Geyser reward distribution.

This module provides:
- Unlock Schedules: linear vesting of locked reward shares
- Share Accounting: token/share conversion and per-participant stake queues
- Reward Distribution: accounting refresh, bonus curve, entitlement
- Unstake Processing: withdrawal settlement
- Founder Fee: reward split between participant and founder
- TokenGeyser: the transactional facade over all of the above
"""

from .events import GeyserEvent
from .founder_fee import FounderFeeSplitter, RewardSplit
from .reward_distribution import PoolBalances, RewardDistributionEngine
from .share_accounting import ConsumedPortion, ShareAccountingEngine
from .state import GeyserState, GlobalAccounting, ParticipantTotals, Stake, UnlockSchedule
from .token_geyser import AccountingSnapshot, TokenGeyser
from .transaction import PendingTransfer, Transaction
from .unlock_schedules import UnlockScheduleLedger
from .unstake_processor import UnstakeProcessor, UnstakeResult

__all__ = [
    "AccountingSnapshot",
    "ConsumedPortion",
    "FounderFeeSplitter",
    "GeyserEvent",
    "GeyserState",
    "GlobalAccounting",
    "ParticipantTotals",
    "PendingTransfer",
    "PoolBalances",
    "RewardDistributionEngine",
    "RewardSplit",
    "ShareAccountingEngine",
    "Stake",
    "TokenGeyser",
    "Transaction",
    "UnlockSchedule",
    "UnlockScheduleLedger",
    "UnstakeProcessor",
    "UnstakeResult",
]
