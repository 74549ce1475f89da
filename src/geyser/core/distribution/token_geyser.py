"""
Token Geyser

Time-weighted, vesting-aware reward distribution for a staking pool.

A locker deposits reward tokens under linear unlock schedules. Participants
stake a (possibly elastic-supply) token and, on withdrawal, receive a share
of the vested reward proportional to their share-seconds, scaled by a bonus
for long holding and split with a founder.

Every public operation is atomic: the ledger is snapshotted, bookkeeping is
applied, token transfers are queued and only executed once all bookkeeping
succeeded. Any error restores the snapshot and nothing is transferred.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, Iterator, Optional

from ..config import GeyserConfig
from ..contracts.elastic_erc20 import ZERO_ADDRESS
from ..contracts.token_vault import TokenVault, derive_vault_address
from ..defi.access_control import GeyserAccessControl, Role
from ..geyser_exceptions import ConfigurationError, InputValidationError, StateError, get_error_context
from ..metrics import GeyserMetrics
from ..protocols import AccessController, FungibleToken
from .events import (
    STAKED,
    STAKING_TOKEN_SET,
    TOKENS_CLAIMED,
    TOKENS_LOCKED,
    TOKENS_UNLOCKED,
    UNSTAKED,
    GeyserEvent,
)
from .founder_fee import FounderFeeSplitter
from .reward_distribution import PoolBalances, RewardDistributionEngine
from .share_accounting import ShareAccountingEngine
from .state import GeyserState, GlobalAccounting, Stake, UnlockSchedule
from .transaction import Transaction
from .unlock_schedules import UnlockScheduleLedger
from .unstake_processor import UnstakeProcessor, UnstakeResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountingSnapshot:
    """Result of update_accounting / accounting_query for one participant."""

    total_locked: int
    total_unlocked: int
    user_share_seconds: int
    total_share_seconds: int
    total_user_rewards: int
    timestamp: int
    user_rewards: int
    founder_rewards: int
    total_staking_shares: int
    total_staked: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class TokenGeyser:
    """
    Staking pool that distributes vested rewards by share-seconds.

    Args:
        owner: Administrator; may set the staking token and lock rewards
        distribution_token: Token paid out as reward
        staking_token: Token participants stake; may be set later by the owner
        config: Pool parameters (defaults from the environment)
        founder: Beneficiary of the founder percentage of every reward
        access_control: Role store; an ownable one is created for `owner` if omitted
        time_provider: Returns the current unix time
        metrics: Optional Prometheus metrics sink
        address: The geyser's own address, used as spender for token pulls
    """

    def __init__(
        self,
        owner: str,
        distribution_token: FungibleToken,
        staking_token: Optional[FungibleToken] = None,
        config: Optional[GeyserConfig] = None,
        founder: Optional[str] = None,
        access_control: Optional[AccessController] = None,
        time_provider: Callable[[], int] | None = None,
        metrics: Optional[GeyserMetrics] = None,
        address: Optional[str] = None,
    ):
        if not isinstance(distribution_token, FungibleToken):
            raise ConfigurationError("TokenGeyser: distribution token is not a fungible token")
        self.config = (config or GeyserConfig.from_env()).validate()
        if access_control is not None and not isinstance(access_control, AccessController):
            raise ConfigurationError("TokenGeyser: access control does not implement AccessController")
        self.access_control = access_control or GeyserAccessControl(owner=owner)
        self.address = (address or derive_vault_address(owner, f"geyser:{secrets.token_hex(8)}")).lower()

        self.distribution_token = distribution_token
        self.locked_vault = TokenVault.create(distribution_token, self.address, "locked")
        self.unlocked_vault = TokenVault.create(distribution_token, self.address, "unlocked")
        self.staking_token: Optional[FungibleToken] = None
        self.staking_vault: Optional[TokenVault] = None

        self.state = GeyserState()
        self.events: list[GeyserEvent] = []
        self.metrics = metrics
        self._time_provider = time_provider or (lambda: int(time.time()))
        self._lock = threading.RLock()
        self._tx: Optional[Transaction] = None

        self.ledger = UnlockScheduleLedger(self.state, self.config)
        self.shares = ShareAccountingEngine(self.state, self.config, self.ledger)
        self.rewards = RewardDistributionEngine(self.state, self.config, self.ledger)
        self.splitter = FounderFeeSplitter(self.config.founder_percentage, founder)
        self.unstaker = UnstakeProcessor(
            self.state,
            self.shares,
            self.rewards,
            self.splitter,
            refresh=self._refresh,
            total_staked=self.total_staked,
        )

        if staking_token is not None:
            self._attach_staking_token(staking_token)

        logger.info(
            "TokenGeyser initialized",
            extra={
                "event": "geyser.initialized",
                "geyser": self.address[:10],
                "staking_token_set": staking_token is not None,
                **self.config.to_dict(),
            }
        )

    @property
    def owner(self) -> str:
        return self.access_control.owner

    # ==================== Time & Transactions ====================

    def _current_time(self, current_time: Optional[int] = None) -> int:
        timestamp = self._time_provider() if current_time is None else current_time
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise InputValidationError("TokenGeyser: timestamp must be an integer") from exc

    @contextmanager
    def _transaction(self, operation: str, now: int, dry_run: bool = False) -> Iterator[Transaction]:
        with self._lock:
            tx = Transaction(operation, self.state, now)
            self._tx = tx
            try:
                yield tx
                if dry_run:
                    tx.rollback()
                else:
                    self.events.extend(tx.commit())
            except Exception as exc:
                tx.rollback()
                logger.warning(
                    "Geyser operation rejected",
                    extra={"event": "geyser.operation_rejected", "operation": operation, **get_error_context(exc)},
                )
                if self.metrics is not None and not dry_run:
                    self.metrics.record_rejection(operation, exc)
                raise
            finally:
                self._tx = None

    def _pool_balances(self) -> PoolBalances:
        return PoolBalances(
            staked=self.total_staked(),
            locked=self.locked_vault.balance(),
            unlocked=self.unlocked_vault.balance(),
        )

    def _refresh(self, now: int) -> int:
        """Refresh accounting inside the current transaction and queue the vault move."""
        tx = self._tx
        unlocked = self.rewards.refresh_accounting(now, self._pool_balances())
        if unlocked > 0:
            tx.queue_vault_transfer(self.locked_vault, self.unlocked_vault.address, unlocked)
            tx.emit(TOKENS_UNLOCKED, amount=unlocked, total=self.state.accounting.total_locked_amount)
        return unlocked

    def _require_staking_token(self) -> FungibleToken:
        if self.staking_token is None:
            raise StateError("TokenGeyser: Staking token not set")
        return self.staking_token

    def _record_pool_metrics(self) -> None:
        if self.metrics is not None:
            self.metrics.update_pool_gauges(
                self.total_staked(),
                self.total_locked(),
                self.total_unlocked(),
                self.unlock_schedule_count(),
            )

    # ==================== Administration ====================

    def _attach_staking_token(self, token: FungibleToken) -> None:
        if not isinstance(token, FungibleToken):
            raise InputValidationError("TokenGeyser: staking token is not a fungible token")
        self.staking_token = token
        self.staking_vault = TokenVault.create(token, self.address, "staking")

    def set_staking_token(self, caller: str, token: FungibleToken, current_time: Optional[int] = None) -> bool:
        """
        Attach the staking token to a geyser created without one (owner only, once).

        Raises:
            AuthorizationError: Caller is not the owner
            StateError: The staking token is already set
        """
        now = self._current_time(current_time)
        with self._transaction("set_staking_token", now) as tx:
            self.access_control.require_owner(caller)
            if self.staking_token is not None:
                raise StateError("TokenGeyser: Staking token already set")
            self._attach_staking_token(token)
            tx.emit(STAKING_TOKEN_SET, token=token.address)
        logger.info(
            "Staking token set",
            extra={"event": "geyser.staking_token_set", "token": token.address[:10]},
        )
        return True

    def is_staking_token_set(self) -> bool:
        return self.staking_token is not None

    def get_staking_token(self) -> str:
        return self.staking_token.address if self.staking_token is not None else ZERO_ADDRESS

    def get_distribution_token(self) -> str:
        return self.distribution_token.address

    # ==================== Operations ====================

    def lock_tokens(
        self,
        caller: str,
        amount: int,
        duration_seconds: int,
        start_time: Optional[int] = None,
        current_time: Optional[int] = None,
    ) -> int:
        """
        Lock `amount` reward tokens, vesting linearly over `duration_seconds`.

        The tokens are pulled from `caller`, who must have approved the
        geyser's address. The schedule starts at `start_time`, or now.

        Returns:
            The new schedule id
        """
        now = self._current_time(current_time)
        start = now if start_time is None else start_time
        with self._transaction("lock_tokens", now) as tx:
            self.access_control.require_role(Role.LOCKER.value, caller)
            self._require_staking_token()
            self.ledger.validate_lock(amount, duration_seconds, start, now)
            unlocked = self._refresh(now)
            schedule = self.ledger.lock_tokens(amount, duration_seconds, start, now)
            tx.queue_pull(
                self.distribution_token, self.address, caller, self.locked_vault.address, amount
            )
            tx.emit(
                TOKENS_LOCKED,
                amount=amount,
                duration_seconds=duration_seconds,
                start_time=start,
                total=self.state.accounting.total_locked_amount,
            )

        if self.metrics is not None:
            self.metrics.record_lock(amount)
            self.metrics.record_unlock(unlocked)
        self._record_pool_metrics()
        return schedule.schedule_id

    def stake(self, participant: str, amount: int, current_time: Optional[int] = None) -> Stake:
        """
        Stake `amount` tokens pulled from `participant`.

        The participant must have approved the geyser's address for `amount`.

        Returns:
            The recorded stake
        """
        now = self._current_time(current_time)
        with self._transaction("stake", now) as tx:
            token = self._require_staking_token()
            owner = self.shares.normalize(participant)
            unlocked = self._refresh(now)
            stake = self.shares.deposit(owner, amount, now)
            tx.queue_pull(token, self.address, owner, self.staking_vault.address, amount)
            tx.emit(
                STAKED,
                user=owner,
                amount=amount,
                total=self.shares.total_staked_for(owner, self.state.accounting.total_staked_amount),
            )

        if self.metrics is not None:
            self.metrics.record_stake(amount)
            self.metrics.record_unlock(unlocked)
        self._record_pool_metrics()
        return stake

    def unstake(self, participant: str, amount: int, current_time: Optional[int] = None) -> UnstakeResult:
        """
        Withdraw `amount` staked tokens and claim the reward they earned.

        Returns:
            UnstakeResult with the reward split between participant and founder
        """
        now = self._current_time(current_time)
        with self._transaction("unstake", now) as tx:
            result = self._settle_unstake(tx, participant, amount, now)

        if self.metrics is not None:
            self.metrics.record_unstake(amount, result.user_reward, result.founder_reward)
            self.metrics.record_unlock(result.unlocked)
        self._record_pool_metrics()
        return result

    def unstake_query(
        self, participant: str, amount: int, current_time: Optional[int] = None
    ) -> dict[str, int]:
        """
        Reward an unstake of `amount` would pay right now, without changing anything.

        Raises the same errors as unstake().
        """
        now = self._current_time(current_time)
        with self._transaction("unstake_query", now, dry_run=True) as tx:
            result = self._settle_unstake(tx, participant, amount, now)
        return {
            "total_reward": result.total_reward,
            "user_reward": result.user_reward,
            "founder_reward": result.founder_reward,
        }

    def _settle_unstake(self, tx: Transaction, participant: str, amount: int, now: int) -> UnstakeResult:
        self._require_staking_token()
        result = self.unstaker.process(participant, amount, now)
        owner = result.participant

        tx.queue_vault_transfer(self.staking_vault, owner, amount)
        tx.queue_vault_transfer(self.unlocked_vault, owner, result.user_reward)
        if result.founder_reward > 0:
            tx.queue_vault_transfer(self.unlocked_vault, self.splitter.founder, result.founder_reward)

        tx.emit(UNSTAKED, user=owner, amount=amount, total=result.remaining_staked)
        tx.emit(
            TOKENS_CLAIMED,
            user=owner,
            amount=result.total_reward,
            user_reward=result.user_reward,
            founder_reward=result.founder_reward,
        )
        return result

    def update_accounting(self, caller: str, current_time: Optional[int] = None) -> AccountingSnapshot:
        """Refresh global accounting and report `caller`'s current entitlement."""
        now = self._current_time(current_time)
        with self._transaction("update_accounting", now):
            snapshot = self._accounting_snapshot(caller, now)
        self._record_pool_metrics()
        return snapshot

    def accounting_query(self, caller: str, current_time: Optional[int] = None) -> AccountingSnapshot:
        """Same as update_accounting, but nothing is committed."""
        now = self._current_time(current_time)
        with self._transaction("accounting_query", now, dry_run=True):
            snapshot = self._accounting_snapshot(caller, now)
        return snapshot

    def _accounting_snapshot(self, caller: str, now: int) -> AccountingSnapshot:
        self._refresh(now)
        accounting = self.state.accounting
        user_share_seconds = self.shares.share_seconds_for(caller, now)
        split = self.splitter.split(self.rewards.user_entitlement(user_share_seconds))
        return AccountingSnapshot(
            total_locked=accounting.total_locked_amount,
            total_unlocked=accounting.total_unlocked_reward_pool,
            user_share_seconds=user_share_seconds,
            total_share_seconds=accounting.global_staking_share_seconds,
            total_user_rewards=split.total_reward,
            timestamp=now,
            user_rewards=split.user_reward,
            founder_rewards=split.founder_reward,
            total_staking_shares=accounting.total_staking_shares,
            total_staked=accounting.total_staked_amount,
        )

    # ==================== Views ====================

    def total_staked(self) -> int:
        if self.staking_vault is None:
            return 0
        return self.staking_vault.balance()

    def total_staked_for(self, participant: str) -> int:
        with self._lock:
            return self.shares.total_staked_for(participant, self.total_staked())

    def total_locked(self) -> int:
        return self.locked_vault.balance()

    def total_unlocked(self) -> int:
        return self.unlocked_vault.balance()

    def unlock_schedule_count(self) -> int:
        return self.ledger.schedule_count()

    def unlock_schedules(self) -> list[UnlockSchedule]:
        with self._lock:
            return self.ledger.active_schedules()

    def get_unlock_schedule(self, schedule_id: int) -> Optional[UnlockSchedule]:
        with self._lock:
            return self.ledger.get_schedule(schedule_id)

    def stakes_for(self, participant: str) -> list[Stake]:
        with self._lock:
            return self.shares.stakes_for(participant)

    def accounting(self) -> GlobalAccounting:
        with self._lock:
            return replace(self.state.accounting)

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "address": self.address,
                "owner": self.owner,
                "founder": self.splitter.founder,
                "config": self.config.to_dict(),
                "distribution_token": self.distribution_token.address,
                "staking_token": self.staking_token.address if self.staking_token else None,
                "access_control": (
                    self.access_control.to_dict()
                    if isinstance(self.access_control, GeyserAccessControl)
                    else None
                ),
                "state": self.state.to_dict(),
                "events": [e.to_dict() for e in self.events],
            }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        distribution_token: FungibleToken,
        staking_token: Optional[FungibleToken] = None,
        access_control: Optional[AccessController] = None,
        time_provider: Callable[[], int] | None = None,
        metrics: Optional[GeyserMetrics] = None,
    ) -> "TokenGeyser":
        """
        Rebuild a geyser from to_dict() output.

        Tokens are live collaborators and must be passed in; their addresses
        must match the serialized ones. Role grants are restored from the
        serialized access control unless `access_control` is passed in.
        """
        if distribution_token.address.lower() != data["distribution_token"].lower():
            raise ConfigurationError("TokenGeyser: distribution token address mismatch")
        expected_staking = data.get("staking_token")
        if expected_staking is not None:
            if staking_token is None or staking_token.address.lower() != expected_staking.lower():
                raise ConfigurationError("TokenGeyser: staking token address mismatch")
        elif staking_token is not None:
            raise ConfigurationError("TokenGeyser: staking token was not set")

        if access_control is None and data.get("access_control"):
            access_control = GeyserAccessControl.from_dict(data["access_control"])

        geyser = cls(
            owner=data["owner"],
            distribution_token=distribution_token,
            staking_token=staking_token,
            config=GeyserConfig.from_dict(data["config"]),
            founder=data.get("founder"),
            access_control=access_control,
            time_provider=time_provider,
            metrics=metrics,
            address=data["address"],
        )
        restored = GeyserState.from_dict(data["state"])
        geyser.state.restore(restored)
        geyser.events = [GeyserEvent(**e) for e in data.get("events", [])]
        return geyser
