"""
Vault password hashing and per-wallet envelope encryption.

- Password hash: ``sha256(utf8(password) || salt)`` with a random 16-byte
  salt, both stored as hex.
- Envelope: AES-256-GCM keyed by ``sha256(utf8(password))`` with a random
  12-byte IV, stored as ``base64(iv || ciphertext || tag)``.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import os

from Crypto.Cipher import AES

SALT_SIZE = 16
IV_SIZE = 12
TAG_SIZE = 16


def hash_password(password: str, salt_hex: str | None = None) -> tuple[str, str]:
    """Return ``(hash_hex, salt_hex)``; a fresh salt is drawn when omitted."""
    salt = bytes.fromhex(salt_hex) if salt_hex is not None else os.urandom(SALT_SIZE)
    digest = hashlib.sha256(password.encode("utf-8") + salt).hexdigest()
    return digest, salt.hex()


def verify_password(password: str, hash_hex: str, salt_hex: str) -> bool:
    candidate, _ = hash_password(password, salt_hex)
    return hmac.compare_digest(candidate, hash_hex)


def _envelope_key(password: str) -> bytes:
    return hashlib.sha256(password.encode("utf-8")).digest()


def encrypt_wallet_data(data: str, password: str) -> str:
    """Seal a serialised wallet under the vault password."""
    iv = os.urandom(IV_SIZE)
    cipher = AES.new(_envelope_key(password), AES.MODE_GCM, nonce=iv)
    ciphertext, tag = cipher.encrypt_and_digest(data.encode("utf-8"))
    return base64.b64encode(iv + ciphertext + tag).decode("ascii")


def decrypt_wallet_data(envelope: str, password: str) -> str:
    """Open an envelope.  Raises ``ValueError`` on tamper, wrong key or bad framing."""
    raw = base64.b64decode(envelope)
    if len(raw) < IV_SIZE + TAG_SIZE:
        raise ValueError("Envelope too short")
    iv, body, tag = raw[:IV_SIZE], raw[IV_SIZE:-TAG_SIZE], raw[-TAG_SIZE:]
    cipher = AES.new(_envelope_key(password), AES.MODE_GCM, nonce=iv)
    return cipher.decrypt_and_verify(body, tag).decode("utf-8")
