"""
Private-transfer claim keys.

The sender publishes a one-time (ephemeral) public key with each private
transfer.  Both sides derive the same 32-byte AES key by hashing the two
raw public keys in byte order::

    r1 = sha256(min(pk_a, pk_b) || max(pk_a, pk_b))
    key = sha256(r1 || b"OCTRA_SYMMETRIC_V1")

This is not a Diffie-Hellman exchange: no scalar multiplication is
involved, so anyone who knows both public keys can derive the key.  It is
kept exactly as-is because existing claimable transfers depend on it.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
from dataclasses import dataclass
from typing import Any

from nacl.signing import SigningKey

from octra_core.balance_cipher import decode_amount, open_v2, seal_v2

logger = logging.getLogger("octra_private_transfer")

SHARED_SECRET_SUFFIX = b"OCTRA_SYMMETRIC_V1"


@dataclass(frozen=True)
class PrivateTransferRecord:
    """A pending private transfer as reported by the network."""
    id: str
    sender: str
    recipient: str
    encrypted_data: str
    ephemeral_key: str
    epoch_id: int
    created_at: str

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PrivateTransferRecord:
        return cls(
            id=str(d["id"]),
            sender=d["sender"],
            recipient=d["recipient"],
            encrypted_data=d.get("encrypted_data", ""),
            ephemeral_key=d["ephemeral_key"],
            epoch_id=int(d.get("epoch_id", 0)),
            created_at=str(d.get("created_at", "")),
        )


def _b64decode_padded(value: str) -> bytes:
    return base64.b64decode(value + "=" * (-len(value) % 4))


def derive_shared_secret(my_private_key_b64: str,
                         ephemeral_public_key_b64: str) -> bytes:
    """Order-independent claim key for one (own key, ephemeral key) pair."""
    sk = SigningKey(_b64decode_padded(my_private_key_b64))
    my_pub = bytes(sk.verify_key)
    eph_pub = _b64decode_padded(ephemeral_public_key_b64)

    if eph_pub < my_pub:
        smaller, larger = eph_pub, my_pub
    else:
        smaller, larger = my_pub, eph_pub

    round1 = hashlib.sha256(smaller + larger).digest()
    round2 = hashlib.sha256(round1 + SHARED_SECRET_SUFFIX).digest()
    return round2[:32]


def encrypt_private_amount(amount: int, shared_secret: bytes) -> str:
    """Frame a micro-unit amount for a private transfer."""
    return seal_v2(shared_secret, str(int(amount)).encode("ascii"))


def decrypt_private_amount(encrypted_data: str, shared_secret: bytes) -> int | None:
    """Recover the transferred amount, or ``None`` if it cannot be read."""
    if not encrypted_data or not encrypted_data.startswith("v2|"):
        return None
    return decode_amount(open_v2(shared_secret, encrypted_data))


def claim_amount(record: PrivateTransferRecord, private_key_b64: str) -> int | None:
    """Decrypt the amount of *record* with the recipient's private key."""
    try:
        secret = derive_shared_secret(private_key_b64, record.ephemeral_key)
    except (binascii.Error, ValueError) as exc:
        logger.debug(f"cannot derive claim key for transfer {record.id}: {exc}")
        return None
    return decrypt_private_amount(record.encrypted_data, secret)
