"""
Elastic-supply ERC20 token (Ampleforth UFragments model).

Holders own a fixed number of "gons". A rebase changes only the exchange
rate between gons and tokens ("fragments"), so every balance grows or
shrinks by the same proportion without a single transfer. Allowances are
kept in fragments.

A geyser holding this token must re-read balances before every use: any
amount cached across a rebase is stale.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Dict

from ..geyser_exceptions import TokenError

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40

DECIMALS = 9
MAX_UINT256 = 2**256 - 1
MAX_SUPPLY = 2**128 - 1
INITIAL_FRAGMENTS_SUPPLY = 50 * 10**6 * 10**DECIMALS

# Multiple of INITIAL_FRAGMENTS_SUPPLY so the genesis rate is exact
TOTAL_GONS = MAX_UINT256 - (MAX_UINT256 % INITIAL_FRAGMENTS_SUPPLY)


@dataclass
class TokenEvent:
    event_type: str  # Transfer | Approval | Rebase
    from_address: str
    to_address: str
    value: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ElasticToken:
    """
    In-memory elastic-supply token.

    The owner is the monetary policy: the only account allowed to rebase.
    The genesis supply is minted to the owner.
    """

    name: str = "Ampleforth"
    symbol: str = "AMPL"
    decimals: int = DECIMALS
    address: str = ""
    owner: str = ""

    total_supply: int = INITIAL_FRAGMENTS_SUPPLY
    gons_per_fragment: int = 0
    gon_balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[str, dict[str, int]] = field(default_factory=dict)
    epoch: int = 0
    events: list[TokenEvent] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.address:
            seed = f"{self.symbol}:{self.owner}:{secrets.token_hex(16)}".encode()
            self.address = "0x" + hashlib.sha3_256(seed).hexdigest()[-40:]
        if self.gons_per_fragment:
            return
        if self.total_supply <= 0:
            raise TokenError("ElasticToken: initial supply must be positive")
        self.gons_per_fragment = TOTAL_GONS // self.total_supply
        if self.owner:
            self.owner = self.owner.lower()
            self.gon_balances[self.owner] = TOTAL_GONS
            self._log_event("Transfer", ZERO_ADDRESS, self.owner, self.total_supply)

    # ==================== Reads ====================

    def balance_of(self, account: str) -> int:
        """Fragment balance of `account` at the current supply."""
        return self.gon_balances.get(account.lower(), 0) // self.gons_per_fragment

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get(owner.lower(), {}).get(spender.lower(), 0)

    # ==================== Transfers ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Move `amount` fragments held by `sender`.

        Raises:
            TokenError: Zero-address recipient, malformed amount or
                insufficient balance
        """
        source, target = sender.lower(), self._checked_account(recipient, "recipient")
        self._check_amount(amount)
        self._move_gons(source, target, amount)
        logger.debug(
            "ElasticToken transfer",
            extra={
                "event": "token.transfer",
                "token": self.symbol,
                "from": source[:10],
                "to": target[:10],
                "amount": amount,
            }
        )
        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """Set (not add to) the allowance of `spender` over `owner`'s fragments."""
        holder, delegate = owner.lower(), self._checked_account(spender, "spender")
        self._check_amount(amount)
        self.allowances.setdefault(holder, {})[delegate] = amount
        self._log_event("Approval", holder, delegate, amount)
        return True

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        """
        Move `amount` of `from_addr`'s fragments on behalf of `spender`.

        An allowance of MAX_UINT256 is never decreased.
        """
        delegate, source = spender.lower(), from_addr.lower()
        target = self._checked_account(to_addr, "recipient")
        self._check_amount(amount)

        remaining = self.allowance(source, delegate)
        if remaining < amount:
            raise TokenError(f"ElasticToken: insufficient allowance ({remaining} < {amount})")
        self._move_gons(source, target, amount)
        if remaining != MAX_UINT256:
            self.allowances.setdefault(source, {})[delegate] = remaining - amount
        return True

    # ==================== Monetary Policy ====================

    def rebase(self, caller: str, supply_delta: int) -> int:
        """
        Change the total supply by `supply_delta` fragments (owner only).

        The new supply is capped at MAX_SUPPLY and must stay positive. A zero
        delta only logs a Rebase event.

        Returns:
            The new total supply
        """
        self._require_policy(caller)
        if supply_delta == 0:
            self._log_event("Rebase", ZERO_ADDRESS, ZERO_ADDRESS, self.total_supply)
            return self.total_supply

        new_supply = self.total_supply + supply_delta
        if new_supply <= 0:
            raise TokenError("ElasticToken: rebase would exhaust supply")

        self.total_supply = min(new_supply, MAX_SUPPLY)
        self.gons_per_fragment = TOTAL_GONS // self.total_supply
        self.epoch += 1
        self._log_event("Rebase", ZERO_ADDRESS, ZERO_ADDRESS, self.total_supply)

        logger.info(
            "ElasticToken rebase",
            extra={
                "event": "token.rebase",
                "token": self.symbol,
                "epoch": self.epoch,
                "supply_delta": supply_delta,
                "new_supply": self.total_supply,
            }
        )
        return self.total_supply

    def transfer_ownership(self, caller: str, new_owner: str) -> bool:
        self._require_policy(caller)
        self.owner = self._checked_account(new_owner, "new owner")
        return True

    # ==================== Internals ====================

    def _move_gons(self, source: str, target: str, amount: int) -> None:
        gons = amount * self.gons_per_fragment
        available = self.gon_balances.get(source, 0)
        if available < gons:
            raise TokenError(
                f"ElasticToken: transfer amount exceeds balance "
                f"({amount} > {available // self.gons_per_fragment})"
            )
        self.gon_balances[source] = available - gons
        self.gon_balances[target] = self.gon_balances.get(target, 0) + gons
        self._log_event("Transfer", source, target, amount)

    @staticmethod
    def _checked_account(address: str, role: str) -> str:
        account = address.lower() if address else ""
        if not account or account == ZERO_ADDRESS:
            raise TokenError(f"ElasticToken: {role} is zero address")
        return account

    @staticmethod
    def _check_amount(amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise TokenError("ElasticToken: amount must be an integer")
        if not 0 <= amount <= MAX_UINT256:
            raise TokenError(f"ElasticToken: amount out of range ({amount})")

    def _require_policy(self, caller: str) -> None:
        if not self.owner or caller.lower() != self.owner.lower():
            raise TokenError("ElasticToken: caller is not owner")

    def _log_event(self, event_type: str, source: str, target: str, value: int) -> None:
        self.events.append(TokenEvent(event_type, source, target, value))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "address": self.address,
            "owner": self.owner,
            "total_supply": self.total_supply,
            "gons_per_fragment": self.gons_per_fragment,
            "epoch": self.epoch,
            "gon_balances": dict(self.gon_balances),
            "allowances": {holder: dict(grants) for holder, grants in self.allowances.items()},
        }
