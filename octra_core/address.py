"""
Octra address encoding.

An address is ``"oct"`` followed by the Base58 (Bitcoin alphabet) encoding
of SHA-256 over the raw 32-byte ed25519 public key.  The digest's leading
zero bytes turn into leading ``'1'`` characters, so the output length is
not fixed; freshly generated wallets are held to 47 characters.
"""

from __future__ import annotations

import hashlib
import re

import base58

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
ADDRESS_PREFIX = "oct"
ADDRESS_LENGTH = 47

_ADDRESS_RE = re.compile(rf"^{ADDRESS_PREFIX}[{BASE58_ALPHABET}]{{44}}$")


def encode_address(public_key: bytes) -> str:
    """Derive the Octra address for a raw ed25519 public key."""
    digest = hashlib.sha256(public_key).digest()
    return ADDRESS_PREFIX + base58.b58encode(digest).decode("ascii")


def is_valid_address(address: str) -> bool:
    """Input validation: 47 chars, ``oct`` prefix, Base58 body.

    Says nothing about whether the address belongs to a known key.
    """
    if not isinstance(address, str):
        return False
    return _ADDRESS_RE.match(address) is not None
