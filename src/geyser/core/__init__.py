"""
Geyser Core Module

Core functionality for the geyser including:
- Reward distribution engine and its ledger state
- Token and vault collaborators
- Access control, configuration, logging and metrics
"""

__all__ = []
