"""
Octra transactions: construction, canonical signing payload, ed25519
signatures.

The signed bytes are the compact JSON of ``from, to_, amount, nonce, ou,
timestamp`` in exactly that order.  ``message`` travels with the
transaction but is never signed.
"""

from __future__ import annotations

import base64
import json
import math
import random
import time
from dataclasses import dataclass
from typing import Any

from nacl.bindings import crypto_sign
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

MU_FACTOR = 1_000_000

# Amounts at or above this many units use the higher fee tier.
OU_THRESHOLD = 1000
OU_LOW = "1"
OU_HIGH = "3"

SIGNED_FIELDS = ("from", "to_", "amount", "nonce", "ou", "timestamp")


def to_micro_units(amount: float) -> int:
    """Convert whole units to integer micro-units (floored)."""
    return math.floor(amount * MU_FACTOR)


def from_micro_units(micro: int) -> float:
    return micro / MU_FACTOR


def select_ou(amount: float) -> str:
    return OU_LOW if amount < OU_THRESHOLD else OU_HIGH


@dataclass
class Transaction:
    from_: str
    to_: str
    amount: str
    nonce: int
    ou: str
    timestamp: float
    message: str | None = None
    signature: str | None = None
    public_key: str | None = None

    def signing_fields(self) -> dict[str, Any]:
        return {
            "from": self.from_,
            "to_": self.to_,
            "amount": self.amount,
            "nonce": self.nonce,
            "ou": self.ou,
            "timestamp": self.timestamp,
        }

    def to_dict(self) -> dict[str, Any]:
        """Wire object sent to the network."""
        d = self.signing_fields()
        if self.message:
            d["message"] = self.message
        if self.signature is not None:
            d["signature"] = self.signature
        if self.public_key is not None:
            d["public_key"] = self.public_key
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Transaction:
        return cls(
            from_=d["from"],
            to_=d["to_"],
            amount=str(d["amount"]),
            nonce=int(d["nonce"]),
            ou=str(d["ou"]),
            timestamp=d["timestamp"],
            message=d.get("message"),
            signature=d.get("signature"),
            public_key=d.get("public_key"),
        )

    @property
    def is_signed(self) -> bool:
        return bool(self.signature and self.public_key)


def signing_payload(tx: Transaction) -> str:
    """Canonical JSON string covered by the signature."""
    return json.dumps(tx.signing_fields(), separators=(",", ":"))


def sign_transaction(tx: Transaction, private_key_b64: str,
                     public_key_hex: str) -> Transaction:
    """
    Sign *tx* in place and return it.

    The ed25519 secret key is the 64-byte ``seed || public_key``
    concatenation; ``signature`` and ``public_key`` are attached base64.
    """
    priv = base64.b64decode(private_key_b64)
    pub = bytes.fromhex(public_key_hex)
    secret = priv + pub
    signed = crypto_sign(signing_payload(tx).encode("utf-8"), secret)
    tx.signature = base64.b64encode(signed[:64]).decode("ascii")
    tx.public_key = base64.b64encode(pub).decode("ascii")
    return tx


def verify_transaction(tx: Transaction) -> bool:
    """Check the attached signature against the canonical payload."""
    if not tx.is_signed:
        return False
    try:
        vk = VerifyKey(base64.b64decode(tx.public_key))
        vk.verify(signing_payload(tx).encode("utf-8"),
                  base64.b64decode(tx.signature))
        return True
    except (BadSignatureError, ValueError, TypeError):
        return False


def _default_timestamp() -> float:
    # Millisecond precision with up to 10 ms of jitter.
    return math.floor((time.time() + random.random() * 0.01) * 1000) / 1000


def create_transaction(
    sender: str,
    recipient: str,
    amount: float,
    nonce: int,
    private_key_b64: str,
    public_key_hex: str,
    message: str | None = None,
    timestamp: float | None = None,
) -> Transaction:
    """
    Build and sign a transfer of *amount* whole units.

    Fee tier: ``ou="1"`` below 1000 units, ``"3"`` otherwise.
    """
    tx = Transaction(
        from_=sender,
        to_=recipient,
        amount=str(to_micro_units(amount)),
        nonce=nonce,
        ou=select_ou(amount),
        timestamp=_default_timestamp() if timestamp is None else timestamp,
        message=message or None,
    )
    return sign_transaction(tx, private_key_b64, public_key_hex)
