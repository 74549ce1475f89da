"""
Geyser - Time-weighted staking reward distribution

Main Components:
- Distribution: unlock schedules, share accounting, reward settlement
- Contracts: elastic-supply token and geyser vaults
- DeFi: ownable access control
- API: Flask blueprint for integrators

Usage:
    from geyser import TokenGeyser, GeyserConfig
"""

from geyser.core.config import GeyserConfig, load_config
from geyser.core.distribution.token_geyser import AccountingSnapshot, TokenGeyser

__version__ = "0.1.0"
__author__ = "Geyser Development Team"

__all__ = ["AccountingSnapshot", "GeyserConfig", "TokenGeyser", "load_config"]
