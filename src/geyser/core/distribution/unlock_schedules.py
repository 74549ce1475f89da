"""
Unlock Schedule Ledger

Reward tokens enter the geyser locked. Each lock creates a schedule that
releases a fixed number of "locked shares" linearly between its start time
and start time + duration. Shares, not token amounts, are tracked so that
rebases of the locked pool are shared pro-rata by every schedule.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from ..config import GeyserConfig
from ..geyser_exceptions import CapacityError, InputValidationError, PrecisionError, StateError
from .state import GeyserState, UnlockSchedule

logger = logging.getLogger(__name__)


class UnlockScheduleLedger:
    """Tracks active unlock schedules and their vesting progress."""

    def __init__(self, state: GeyserState, config: GeyserConfig):
        self.state = state
        self.config = config

    def has_started(self, now: int) -> bool:
        """
        Whether reward distribution is underway at `now`.

        Distribution has not started before the global start time, nor while
        every schedule ever created starts in the future. Retired schedules
        still count: once one has begun vesting, distribution stays started.
        A geyser with no schedules accepts stakes once the global start time
        has passed.
        """
        if now < self.config.global_start_time:
            return False
        if self.state.accounting.distribution_started or not self.state.schedules:
            return True
        return any(s.start_time <= now for s in self.state.schedules)

    def validate_lock(self, amount: int, duration_seconds: int, start_time: int, now: int) -> None:
        """
        Check lock parameters without touching state.

        Raises:
            InputValidationError: Non-positive amount or duration
            StateError: Start before the global start time or in the past
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InputValidationError("TokenGeyser: lock amount is zero")
        if (
            not isinstance(duration_seconds, int)
            or isinstance(duration_seconds, bool)
            or duration_seconds <= 0
        ):
            raise InputValidationError("TokenGeyser: lock duration is zero")
        if not isinstance(start_time, int) or isinstance(start_time, bool):
            raise InputValidationError("TokenGeyser: start time must be an integer")
        if start_time < self.config.global_start_time:
            raise StateError(
                "TokenGeyser: schedule cannot start before global start time",
                details={"start_time": start_time, "global_start_time": self.config.global_start_time},
            )
        if start_time < now:
            raise StateError(
                "TokenGeyser: schedule cannot start in the past",
                details={"start_time": start_time, "now": now},
            )

    def lock_tokens(
        self,
        amount: int,
        duration_seconds: int,
        start_time: int,
        now: int,
    ) -> UnlockSchedule:
        """
        Register a new unlock schedule for `amount` reward tokens.

        The caller must have refreshed accounting to `now` first so that the
        locked pool reflects every unlock up to this moment. The token pull
        into the locked vault is the caller's responsibility.

        Returns:
            The created schedule
        """
        self.validate_lock(amount, duration_seconds, start_time, now)
        if self.schedule_count() >= self.config.max_unlock_schedules:
            raise CapacityError(
                "TokenGeyser: reached maximum unlock schedules",
                details={"max_unlock_schedules": self.config.max_unlock_schedules},
            )

        accounting = self.state.accounting
        if accounting.total_locked_shares > 0:
            if accounting.total_locked_amount <= 0:
                raise StateError(
                    "TokenGeyser: Invalid state. Locked shares exist, but no locked tokens do"
                )
            minted = accounting.total_locked_shares * amount // accounting.total_locked_amount
        else:
            minted = amount * self.config.initial_shares_per_token
        if minted <= 0:
            raise PrecisionError("TokenGeyser: lock amount is too small")

        schedule = UnlockSchedule(
            schedule_id=self.state.next_schedule_id,
            initial_locked_shares=minted,
            duration_seconds=duration_seconds,
            start_time=start_time,
        )
        self.state.next_schedule_id += 1
        self.state.schedules.append(schedule)

        accounting.total_locked_shares += minted
        accounting.total_locked_amount += amount

        logger.info(
            "Unlock schedule created",
            extra={
                "event": "geyser.schedule_created",
                "schedule_id": schedule.schedule_id,
                "amount": amount,
                "locked_shares": minted,
                "duration_seconds": duration_seconds,
                "start_time": start_time,
            }
        )
        return schedule

    def advance_and_collect_vested(self, now: int) -> int:
        """
        Vest every schedule up to `now`.

        Moves each schedule's cursor forward and retires schedules that are
        fully vested. Calling twice with the same `now` returns 0 the second
        time.

        Returns:
            Total newly vested locked shares
        """
        unlocked_shares = 0
        for schedule in self.state.schedules:
            if schedule.start_time <= now:
                self.state.accounting.distribution_started = True
            delta = schedule.unlocked_at(now) - schedule.unlocked_shares
            if delta > 0:
                schedule.unlocked_shares += delta
                unlocked_shares += delta

        retired = [s.schedule_id for s in self.state.schedules if s.fully_vested]
        if retired:
            self.state.schedules = [s for s in self.state.schedules if not s.fully_vested]
            logger.debug(
                "Unlock schedules retired",
                extra={"event": "geyser.schedules_retired", "schedule_ids": retired},
            )
        return unlocked_shares

    # ==================== Read Helpers ====================

    def active_schedules(self) -> list[UnlockSchedule]:
        return [replace(s) for s in self.state.schedules]

    def schedule_count(self) -> int:
        return len(self.state.schedules)

    def get_schedule(self, schedule_id: int) -> Optional[UnlockSchedule]:
        for schedule in self.state.schedules:
            if schedule.schedule_id == schedule_id:
                return replace(schedule)
        return None
