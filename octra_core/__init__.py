"""
Octra wallet core - key management and encrypted vault.

Key features:
- BIP-39 mnemonic -> ed25519 wallet derivation ("Octra seed" master key)
- ``oct``-prefixed Base58 addresses
- Canonical-JSON transaction signing
- Client-side encrypted balances and private-transfer claim keys
- Password-protected multi-wallet vault over mirrored key/value storage
"""

__version__ = "0.4.0"
__all__ = [
    "address",
    "wallet",
    "transaction",
    "balance_cipher",
    "private_transfer",
    "password",
    "storage",
    "vault",
    "errors",
    "config",
    "logging_config",
]
