"""
Geyser - Collaborator Protocol Interfaces

Protocol interfaces for the external components the geyser consumes.
Using Protocol (from typing) allows for structural subtyping, enabling:
- Better testability through mock implementations
- Dependency injection without class inheritance
- Clear API contracts for collaborators

The geyser never assumes a token's supply is constant: implementations may
rebase at any time between two geyser operations.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class FungibleToken(Protocol):
    """
    Protocol for the staking and reward tokens.

    Amounts are integers in the token's base units.
    """

    address: str

    def balance_of(self, account: str) -> int:
        """
        Current balance of an account.

        Args:
            account: Holder address

        Returns:
            Balance in base units; may change without a transfer (elastic supply)
        """
        ...

    def allowance(self, owner: str, spender: str) -> int:
        """Amount spender may still move on behalf of owner."""
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Move tokens held by sender.

        Raises:
            TokenError: If the sender's balance is insufficient
        """
        ...

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        """
        Move tokens held by from_addr using spender's allowance.

        Raises:
            TokenError: If allowance or balance is insufficient
        """
        ...


@runtime_checkable
class AccessController(Protocol):
    """Protocol for the authorization collaborator."""

    owner: str

    def has_role(self, role: str, address: str) -> bool:
        """Whether address currently holds role."""
        ...

    def require_role(self, role: str, caller: str) -> None:
        """
        Raise unless caller holds role.

        Raises:
            AuthorizationError: If caller lacks the role
        """
        ...

    def require_owner(self, caller: str) -> None:
        """Raise unless caller is the administrator."""
        ...
