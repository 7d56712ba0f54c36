"""
Client-side encrypted balance ("v2" framing).

Payloads look like ``"v2|" + base64(nonce[12] || ciphertext || tag[16])``
with AES-256-GCM.  The balance key is a fast, deterministic per-wallet
key: ``sha256(b"octra_encrypted_balance_v2" || private_key)``.

Decryption never raises.  Anything unreadable decodes to ``0``, which is
what the balance display shows for an unknown encrypted balance.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import os

from Crypto.Cipher import AES

logger = logging.getLogger("octra_balance_cipher")

V2_PREFIX = "v2|"
BALANCE_KEY_SALT = b"octra_encrypted_balance_v2"
NONCE_SIZE = 12
TAG_SIZE = 16
MIN_RAW_SIZE = NONCE_SIZE + TAG_SIZE


# ---- v2 framing (shared with private transfers) ----

def seal_v2(key: bytes, plaintext: bytes) -> str:
    """AES-GCM encrypt *plaintext* under *key* into a ``v2|`` payload."""
    nonce = os.urandom(NONCE_SIZE)
    cipher = AES.new(key, AES.MODE_GCM, nonce=nonce)
    ciphertext, tag = cipher.encrypt_and_digest(plaintext)
    return V2_PREFIX + base64.b64encode(nonce + ciphertext + tag).decode("ascii")


def open_v2(key: bytes, payload: str) -> bytes | None:
    """Inverse of :func:`seal_v2`; ``None`` on any framing or tag failure."""
    if not payload or not payload.startswith(V2_PREFIX):
        return None
    try:
        raw = base64.b64decode(payload[len(V2_PREFIX):])
    except (binascii.Error, ValueError):
        logger.debug("v2 payload is not valid base64")
        return None
    if len(raw) < MIN_RAW_SIZE:
        return None
    nonce, body, tag = raw[:NONCE_SIZE], raw[NONCE_SIZE:-TAG_SIZE], raw[-TAG_SIZE:]
    try:
        cipher = AES.new(key, AES.MODE_GCM, nonce=nonce)
        return cipher.decrypt_and_verify(body, tag)
    except ValueError:
        logger.debug("v2 payload failed authentication")
        return None


def decode_amount(plaintext: bytes | None) -> int | None:
    if plaintext is None:
        return None
    try:
        return int(plaintext.decode("ascii"))
    except (UnicodeDecodeError, ValueError):
        logger.debug("v2 plaintext is not an integer")
        return None


# ---- balance ----

def derive_balance_key(private_key_b64: str) -> bytes:
    priv = base64.b64decode(private_key_b64)
    return hashlib.sha256(BALANCE_KEY_SALT + priv).digest()


def encrypt_client_balance(balance: int, private_key_b64: str) -> str:
    """Encrypt a raw (micro-unit) balance for the owner of *private_key_b64*."""
    key = derive_balance_key(private_key_b64)
    return seal_v2(key, str(int(balance)).encode("ascii"))


def decrypt_client_balance(payload: str, private_key_b64: str) -> int:
    """Decrypt a client balance payload; ``0`` for empty, legacy or bad data."""
    if not payload or payload == "0":
        return 0
    if not payload.startswith(V2_PREFIX):
        # v1 (legacy XOR framing) is no longer readable.
        return 0
    try:
        key = derive_balance_key(private_key_b64)
    except (binascii.Error, ValueError):
        logger.debug("balance key derivation failed: bad private key")
        return 0
    value = decode_amount(open_v2(key, payload))
    return 0 if value is None else value
