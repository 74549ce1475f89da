"""
Token vaults owned by a geyser.

A vault is a dedicated address on a token. The geyser keeps staked tokens,
locked rewards and unlocked rewards in three separate vaults so that each
pool's balance can be read directly from the token, rebases included.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

from ..protocols import FungibleToken

logger = logging.getLogger(__name__)


def derive_vault_address(owner_address: str, label: str) -> str:
    """Deterministic vault address for (owner, label)."""
    digest = hashlib.sha3_256(f"{owner_address.lower()}:{label}".encode()).digest()
    return f"0x{digest[-20:].hex()}"


@dataclass
class TokenVault:
    """An address holding one token on behalf of the geyser."""

    token: FungibleToken
    address: str
    label: str = ""

    @classmethod
    def create(cls, token: FungibleToken, owner_address: str, label: str) -> "TokenVault":
        return cls(token=token, address=derive_vault_address(owner_address, label), label=label)

    def balance(self) -> int:
        return self.token.balance_of(self.address)

    def transfer(self, to: str, amount: int) -> bool:
        result = self.token.transfer(self.address, to, amount)
        logger.debug(
            "Vault transfer",
            extra={
                "event": "geyser.vault_transfer",
                "vault": self.label,
                "to": to[:10],
                "amount": amount,
            }
        )
        return result
