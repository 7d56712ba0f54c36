"""
Shared pytest fixtures for the Octra wallet test suite.
"""

import pytest

from octra_core.storage import MemoryBackend
from octra_core.vault import Vault
from octra_core.wallet import import_from_private_key, mnemonic_to_wallet

GOLDEN_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)
GOLDEN_PRIVATE_KEY = "bWlR/4DBv+fuo5Blvc1COHvSXUJ30hv6e2+eI8jgnBA="
GOLDEN_PUBLIC_KEY = "f7801589b04dfccf79c16bb59684d8ed7574fcc77413fa7b23a0b57e38765a97"
GOLDEN_ADDRESS = "octCRus1yKzZbQoABuUhWQzcps8KhdqqQWxPzGciLgY698h"

# ed25519 seed of 32 x 0x07 and its public key
SEVENS_PRIVATE_KEY = "BwcHBwcHBwcHBwcHBwcHBwcHBwcHBwcHBwcHBwcHBwc="
SEVENS_PUBLIC_KEY_B64 = "6kpsY+KcUgq+9VB7Ey7F+ZVHdq6+vnuSQh7qaRRG0iw="


@pytest.fixture
def golden_wallet():
    """Wallet derived from the BIP-39 'abandon ... about' test vector."""
    return mnemonic_to_wallet(GOLDEN_MNEMONIC)


@pytest.fixture
def key_wallet():
    """Wallet imported from a fixed raw private key."""
    return import_from_private_key(SEVENS_PRIVATE_KEY)


@pytest.fixture
def memory_storage():
    return MemoryBackend()


@pytest.fixture
def vault(memory_storage):
    """Vault over a fresh in-memory store."""
    return Vault(memory_storage)
