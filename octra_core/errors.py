"""
Exception taxonomy for the Octra wallet core.

Hard errors surface only for bad key material, password verification and
total storage loss.  Per-record decryption failures are raised internally
and caught by the vault, which logs and skips the record.
"""

from __future__ import annotations


class OctraWalletError(Exception):
    """Base class for every error raised by ``octra_core``."""


class InvalidMnemonic(OctraWalletError, ValueError):
    """Mnemonic failed BIP-39 wordlist / checksum validation."""


class InvalidPrivateKeyLength(OctraWalletError, ValueError):
    """Imported private key is not 32 bytes of valid base64."""


class WalletGenerationFailed(OctraWalletError):
    """No 47-character address was produced within the attempt budget."""

    def __init__(self, attempts: int):
        super().__init__(
            f"Failed to generate wallet with 47-character address after {attempts} attempts"
        )
        self.attempts = attempts


class PasswordNotSet(OctraWalletError):
    """An operation needs vault credentials but none are stored."""


class VerificationFailed(OctraWalletError):
    """Supplied password does not match the stored hash."""


class RecordDecryptionFailed(OctraWalletError):
    """A single encrypted wallet record could not be opened."""

    def __init__(self, address: str, reason: str = ""):
        msg = f"Failed to decrypt wallet record {address[:8]}..."
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.address = address


class VaultCorrupted(OctraWalletError):
    """The encrypted wallet list itself is unreadable."""


class StorageUnavailable(OctraWalletError):
    """A storage backend (or every backend) failed to serve a request."""


class VaultLocked(OctraWalletError):
    """The operation needs the plaintext wallet list, but the vault is locked."""
