"""
Geyser transactions.

An operation snapshots the ledger state, applies its bookkeeping and queues
the token transfers and events it implies. Commit pre-flights every queued
transfer against current balances and allowances, then executes them in
order; rollback restores the snapshot and drops everything queued.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..contracts.token_vault import TokenVault
from ..geyser_exceptions import TokenError
from ..protocols import FungibleToken
from .events import GeyserEvent
from .state import GeyserState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingTransfer:
    """
    A transfer to run at commit.

    `spender` is set for allowance pulls, `vault` for payouts from a geyser vault.
    """

    token: FungibleToken
    sender: str
    recipient: str
    amount: int
    spender: Optional[str] = None
    vault: Optional[TokenVault] = None


class Transaction:
    def __init__(self, operation: str, state: GeyserState, timestamp: int):
        self.operation = operation
        self.state = state
        self.timestamp = timestamp
        self.snapshot = state.snapshot()
        self.transfers: list[PendingTransfer] = []
        self.events: list[GeyserEvent] = []

    def queue_vault_transfer(self, vault: TokenVault, recipient: str, amount: int) -> None:
        if amount > 0:
            self.transfers.append(
                PendingTransfer(vault.token, vault.address, recipient, amount, vault=vault)
            )

    def queue_pull(
        self, token: FungibleToken, spender: str, sender: str, recipient: str, amount: int
    ) -> None:
        if amount > 0:
            self.transfers.append(PendingTransfer(token, sender, recipient, amount, spender))

    def emit(self, event_type: str, **args: Any) -> None:
        self.events.append(GeyserEvent(event_type=event_type, args=args, timestamp=self.timestamp))

    def preflight(self) -> None:
        """
        Simulate the queued transfers in order.

        Raises:
            TokenError: A transfer would exceed the sender's balance or the
                spender's allowance at its point in the batch
        """
        balances: dict[tuple[int, str], int] = {}
        allowances: dict[tuple[int, str, str], int] = {}
        for transfer in self.transfers:
            token_key = id(transfer.token)
            sender = transfer.sender.lower()
            recipient = transfer.recipient.lower()

            if transfer.spender is not None:
                spender = transfer.spender.lower()
                allowance_key = (token_key, sender, spender)
                if allowance_key not in allowances:
                    allowances[allowance_key] = transfer.token.allowance(sender, spender)
                if allowances[allowance_key] < transfer.amount:
                    raise TokenError(
                        "TokenGeyser: transfer amount exceeds allowance",
                        details={"owner": sender, "spender": spender, "amount": transfer.amount},
                    )
                allowances[allowance_key] -= transfer.amount

            for key in ((token_key, sender), (token_key, recipient)):
                if key not in balances:
                    balances[key] = transfer.token.balance_of(key[1])
            if balances[(token_key, sender)] < transfer.amount:
                raise TokenError(
                    "TokenGeyser: transfer amount exceeds balance",
                    details={"sender": sender, "amount": transfer.amount},
                )
            balances[(token_key, sender)] -= transfer.amount
            balances[(token_key, recipient)] += transfer.amount

    def commit(self) -> list[GeyserEvent]:
        """Pre-flight and execute the queued transfers; returns the queued events."""
        self.preflight()
        for transfer in self.transfers:
            if transfer.spender is not None:
                transfer.token.transfer_from(
                    transfer.spender, transfer.sender, transfer.recipient, transfer.amount
                )
            else:
                transfer.vault.transfer(transfer.recipient, transfer.amount)
        logger.debug(
            "Geyser transaction committed",
            extra={
                "event": "geyser.transaction_committed",
                "operation": self.operation,
                "transfers": len(self.transfers),
                "events": len(self.events),
            }
        )
        return list(self.events)

    def rollback(self) -> None:
        self.state.restore(self.snapshot)
        self.transfers.clear()
        self.events.clear()
