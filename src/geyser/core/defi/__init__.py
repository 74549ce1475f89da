"""
Geyser administration.

- Access Control: ownable role store gating staking token setup and reward locks
"""

from .access_control import OWNABLE_ERROR, GeyserAccessControl, Role

__all__ = ["OWNABLE_ERROR", "GeyserAccessControl", "Role"]
