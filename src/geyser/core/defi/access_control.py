"""
Ownable access control for geyser administration.

The host establishes caller identity (transaction sender, API auth); this
module only decides whether an identified caller holds a role.

Roles:
- OWNER: sets the staking token, manages roles, transfers ownership
- LOCKER: locks reward tokens under new unlock schedules

The owner implicitly holds every role, so a freshly deployed geyser behaves
like an ownable contract whose lockTokens is owner-only. Role changes are
kept in an audit trail.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Set

from ..geyser_exceptions import AuthorizationError, InputValidationError

logger = logging.getLogger(__name__)

OWNABLE_ERROR = "Ownable: caller is not the owner"


class Role(Enum):
    OWNER = "owner"
    LOCKER = "locker"


@dataclass
class GeyserAccessControl:
    """
    Owner plus explicitly granted role sets.

    Usage:
        acl = GeyserAccessControl(owner="0xabc...")
        acl.grant_role(owner, Role.LOCKER.value, treasury)
        acl.require_role(Role.LOCKER.value, treasury)
    """

    owner: str = ""
    grants: Dict[str, Set[str]] = field(default_factory=dict)
    role_changes: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.owner:
            raise InputValidationError("GeyserAccessControl: owner is required")
        self.owner = self.owner.lower()
        for role in Role:
            self.grants.setdefault(role.value, set())

    def has_role(self, role: str, address: str) -> bool:
        account = address.lower()
        return account == self.owner or account in self.grants.get(role, set())

    def require_role(self, role: str, caller: str) -> None:
        """
        Raise unless `caller` holds `role`.

        Raises:
            AuthorizationError: With the Ownable message, as every gated
                geyser operation is owner-only unless delegated
        """
        if self.has_role(role, caller):
            return
        logger.warning(
            "Geyser access denied",
            extra={"event": "geyser.access_denied", "caller": caller.lower()[:10], "required_role": role},
        )
        raise AuthorizationError(OWNABLE_ERROR, details={"caller": caller.lower(), "required_role": role})

    def require_owner(self, caller: str) -> None:
        self.require_role(Role.OWNER.value, caller)

    def grant_role(self, caller: str, role: str, address: str) -> bool:
        """Delegate `role` to `address` (owner only; ownership itself moves via transfer_ownership)."""
        self.require_owner(caller)
        if role == Role.OWNER.value:
            raise InputValidationError("GeyserAccessControl: use transfer_ownership to change owner")
        self.grants.setdefault(role, set()).add(address.lower())
        self._record("grant", role, address, caller)
        return True

    def revoke_role(self, caller: str, role: str, address: str) -> bool:
        self.require_owner(caller)
        self.grants.get(role, set()).discard(address.lower())
        self._record("revoke", role, address, caller)
        return True

    def transfer_ownership(self, caller: str, new_owner: str) -> bool:
        """Hand ownership, and with it every implicit role, to `new_owner`."""
        self.require_owner(caller)
        if not new_owner:
            raise InputValidationError("Ownable: new owner is the zero address")
        self.owner = new_owner.lower()
        self._record("transfer_ownership", Role.OWNER.value, new_owner, caller)
        return True

    def get_role_members(self, role: str) -> Set[str]:
        """Explicit grantees of `role`; the owner is implied and not listed."""
        return set(self.grants.get(role, set()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "grants": {role: sorted(members) for role, members in self.grants.items()},
            "role_changes": [dict(change) for change in self.role_changes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeyserAccessControl":
        return cls(
            owner=data["owner"],
            grants={role: set(members) for role, members in data.get("grants", {}).items()},
            role_changes=[dict(change) for change in data.get("role_changes", [])],
        )

    def _record(self, action: str, role: str, address: str, caller: str) -> None:
        change = {
            "action": action,
            "role": role,
            "address": address.lower(),
            "admin": caller.lower(),
            "timestamp": time.time(),
        }
        self.role_changes.append(change)
        logger.info(
            "Geyser role change",
            extra={
                "event": f"geyser.role_{action}",
                "role": role,
                "address": change["address"][:10],
                "admin": change["admin"][:10],
            }
        )
