"""Token contracts used by the geyser: an elastic-supply ERC20 and token vaults."""

from .elastic_erc20 import ElasticToken, TokenEvent
from .token_vault import TokenVault, derive_vault_address

__all__ = ["ElasticToken", "TokenEvent", "TokenVault", "derive_vault_address"]
