"""
Wallet key derivation for Octra.

A wallet wraps an ed25519 key-pair and provides:
  - BIP-39 mnemonic generation, validation and seed derivation
  - Master-key derivation (HMAC-SHA512 keyed with ``"Octra seed"``)
  - Address derivation
  - Import from a raw base64 private key
  - JSON (de)serialisation in the extension's storage format
"""

from __future__ import annotations

import base64
import binascii
import enum
import hashlib
import hmac
from dataclasses import dataclass
from typing import Any

from mnemonic import Mnemonic
from nacl.signing import SigningKey

from octra_core.address import ADDRESS_LENGTH, encode_address
from octra_core.errors import (
    InvalidMnemonic,
    InvalidPrivateKeyLength,
    WalletGenerationFailed,
)

MASTER_KEY_HMAC_KEY = b"Octra seed"
MAX_GENERATION_ATTEMPTS = 100

_MNEMONIC = Mnemonic("english")


class WalletType(str, enum.Enum):
    GENERATED = "generated"
    IMPORTED_MNEMONIC = "imported-mnemonic"
    IMPORTED_PRIVATE_KEY = "imported-private-key"


# ===================================================================
#  BIP-39 helpers
# ===================================================================

def _normalise(mnemonic: str) -> str:
    return " ".join(mnemonic.split())


def generate_mnemonic(strength: int = 128) -> str:
    """Generate a new BIP-39 English mnemonic (128 bits -> 12 words)."""
    return _MNEMONIC.generate(strength=strength)


def validate_mnemonic(mnemonic: str) -> bool:
    """Full BIP-39 check: word count, wordlist membership and checksum."""
    return _MNEMONIC.check(_normalise(mnemonic))


def mnemonic_to_seed(mnemonic: str) -> bytes:
    """64-byte BIP-39 seed with an empty passphrase."""
    return Mnemonic.to_seed(_normalise(mnemonic), passphrase="")


def derive_master_key(seed: bytes) -> tuple[bytes, bytes]:
    """Return ``(master_private_key, master_chain_code)`` for *seed*.

    The chain code is not used further; it is returned so callers can
    build on the same derivation.
    """
    mac = hmac.new(MASTER_KEY_HMAC_KEY, seed, hashlib.sha512).digest()
    return mac[:32], mac[32:]


# ===================================================================
#  Wallet
# ===================================================================

@dataclass
class Wallet:
    """A decrypted wallet as held in the plaintext ``wallets`` list."""

    address: str
    private_key: str                 # base64 of the 32-byte ed25519 seed
    public_key: str                  # hex of the 32-byte ed25519 public key
    type: WalletType
    mnemonic: str | None = None

    # ---- key material ----

    @property
    def private_key_bytes(self) -> bytes:
        return base64.b64decode(self.private_key)

    @property
    def public_key_bytes(self) -> bytes:
        return bytes.fromhex(self.public_key)

    @property
    def signing_key(self) -> SigningKey:
        return SigningKey(self.private_key_bytes)

    # ---- serialisation ----

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "address": self.address,
            "privateKey": self.private_key,
        }
        if self.mnemonic:
            data["mnemonic"] = self.mnemonic
        data["publicKey"] = self.public_key
        data["type"] = self.type.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Wallet:
        """Load a stored wallet, backfilling fields older records lack.

        Missing ``type``: ``generated`` when a mnemonic is present, else
        ``imported-private-key``.  Missing ``publicKey``: re-derived from
        the private key.
        """
        mnemonic = data.get("mnemonic") or None
        raw_type = data.get("type")
        if raw_type:
            wallet_type = WalletType(raw_type)
        elif mnemonic:
            wallet_type = WalletType.GENERATED
        else:
            wallet_type = WalletType.IMPORTED_PRIVATE_KEY

        private_key = data["privateKey"]
        public_key = data.get("publicKey")
        if not public_key:
            sk = SigningKey(base64.b64decode(private_key))
            public_key = bytes(sk.verify_key).hex()

        return cls(
            address=data["address"],
            private_key=private_key,
            public_key=public_key,
            type=wallet_type,
            mnemonic=mnemonic,
        )

    def __repr__(self) -> str:
        return f"Wallet({self.address}, {self.type.value})"


def _wallet_from_seed(seed32: bytes, wallet_type: WalletType,
                      mnemonic: str | None = None) -> Wallet:
    sk = SigningKey(seed32)
    pub = bytes(sk.verify_key)
    return Wallet(
        address=encode_address(pub),
        private_key=base64.b64encode(bytes(sk)).decode("ascii"),
        public_key=pub.hex(),
        type=wallet_type,
        mnemonic=mnemonic,
    )


def mnemonic_to_wallet(mnemonic: str,
                       wallet_type: WalletType = WalletType.GENERATED) -> Wallet:
    """Deterministically derive a wallet from a BIP-39 mnemonic."""
    phrase = _normalise(mnemonic)
    if not validate_mnemonic(phrase):
        raise InvalidMnemonic("Invalid mnemonic phrase")
    seed = mnemonic_to_seed(phrase)
    master_private_key, _chain_code = derive_master_key(seed)
    return _wallet_from_seed(master_private_key, wallet_type, mnemonic=phrase)


def generate_wallet(max_attempts: int = MAX_GENERATION_ATTEMPTS,
                    strength: int = 128) -> Wallet:
    """Generate a fresh wallet whose address is exactly 47 characters.

    Shorter addresses (digest with leading zero bytes) are rejected and a
    new mnemonic is drawn, at most *max_attempts* times.  A valid address
    on the last attempt is still returned; the browser extension gave up
    one draw earlier and so never used its 100th wallet.
    """
    for _ in range(max_attempts):
        wallet = mnemonic_to_wallet(generate_mnemonic(strength))
        if len(wallet.address) == ADDRESS_LENGTH:
            return wallet
    raise WalletGenerationFailed(max_attempts)


def import_from_mnemonic(mnemonic: str) -> Wallet:
    """Import an existing 12- or 24-word mnemonic."""
    words = mnemonic.split()
    if len(words) not in (12, 24):
        raise InvalidMnemonic("Invalid mnemonic length. Must be 12 or 24 words.")
    return mnemonic_to_wallet(mnemonic, WalletType.IMPORTED_MNEMONIC)


def import_from_private_key(base64_key: str) -> Wallet:
    """Import a wallet from its base64-encoded 32-byte ed25519 seed."""
    try:
        key = base64.b64decode(base64_key.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidPrivateKeyLength("Invalid private key format") from exc
    if len(key) != 32:
        raise InvalidPrivateKeyLength(
            f"Invalid private key length: expected 32 bytes, got {len(key)}"
        )
    return _wallet_from_seed(key, WalletType.IMPORTED_PRIVATE_KEY)
