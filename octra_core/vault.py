"""
Password-protected multi-wallet vault.

States (derived from storage, never stored):
  - UNINITIALIZED – no password set; wallets live in plaintext only
  - UNLOCKED      – password set, plaintext ``wallets`` list present
  - LOCKED        – password set, only encrypted records remain

Every transition runs under one ``asyncio.Lock`` per ``Vault`` so two
callers sharing a storage handle cannot interleave a lock with an
unlock.  Separate processes sharing the same files are not serialised.

Usage:
    vault = Vault(storage)
    await vault.setup_password(wallets, "hunter2")
    await vault.lock()
    wallets = await vault.unlock("hunter2")
"""

from __future__ import annotations

import asyncio
import binascii
import enum
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, Union

from octra_core.errors import (
    PasswordNotSet,
    RecordDecryptionFailed,
    VaultCorrupted,
    VaultLocked,
    VerificationFailed,
)
from octra_core.password import (
    decrypt_wallet_data,
    encrypt_wallet_data,
    hash_password,
    verify_password,
)
from octra_core.storage import (
    KEY_ACTIVE_WALLET,
    KEY_ENCRYPTED_WALLETS,
    KEY_LOCKED,
    KEY_PASSWORD_HASH,
    KEY_PASSWORD_SALT,
    KEY_WALLETS,
    StorageBackend,
)
from octra_core.wallet import Wallet

logger = logging.getLogger("octra_vault")


def _dumps(obj: Any) -> str:
    return json.dumps(obj, separators=(",", ":"))


def _now_ms() -> int:
    return int(time.time() * 1000)


def _short(address: str) -> str:
    return address[:8] + "..."


class VaultState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    UNLOCKED = "unlocked"
    LOCKED = "locked"


@dataclass(frozen=True)
class VaultCredentials:
    password_hash: str
    salt: str


# ===================================================================
#  Wallet records
# ===================================================================

@dataclass(frozen=True)
class EncryptedRecord:
    """A wallet sealed under the vault password."""
    address: str
    envelope: str
    created_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "encryptedData": self.envelope,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class PendingRecord:
    """A wallet stored as plaintext JSON until a password is available."""
    address: str
    wallet_json: str
    created_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "encryptedData": self.wallet_json,
            "createdAt": self.created_at,
            "needsEncryption": True,
        }


WalletRecord = Union[EncryptedRecord, PendingRecord]


def record_from_dict(d: dict[str, Any]) -> WalletRecord:
    address = d["address"]
    data = d["encryptedData"]
    created_at = int(d.get("createdAt", 0))
    if d.get("needsEncryption"):
        return PendingRecord(address, data, created_at)
    return EncryptedRecord(address, data, created_at)


def open_record(record: WalletRecord, password: str) -> Wallet:
    """Recover the wallet held by *record*.  Raises ``RecordDecryptionFailed``."""
    if isinstance(record, PendingRecord):
        payload = record.wallet_json
    elif isinstance(record, EncryptedRecord):
        try:
            payload = decrypt_wallet_data(record.envelope, password)
        except (ValueError, binascii.Error) as exc:
            raise RecordDecryptionFailed(record.address, "bad envelope or key") from exc
    else:
        raise TypeError(f"Unknown wallet record type: {type(record).__name__}")

    try:
        return Wallet.from_dict(json.loads(payload))
    except (ValueError, KeyError, TypeError) as exc:
        raise RecordDecryptionFailed(record.address, "malformed wallet JSON") from exc


def seal_wallet(wallet: Wallet, password: str) -> EncryptedRecord:
    envelope = encrypt_wallet_data(_dumps(wallet.to_dict()), password)
    return EncryptedRecord(wallet.address, envelope, _now_ms())


# ===================================================================
#  Vault
# ===================================================================

class Vault:
    """Lock/unlock state machine over an injected storage backend."""

    def __init__(self, storage: StorageBackend):
        self.storage = storage
        self._lock = asyncio.Lock()

    # ── storage helpers ──────────────────────────────────────────

    async def _credentials(self) -> VaultCredentials | None:
        password_hash = await self.storage.get(KEY_PASSWORD_HASH)
        salt = await self.storage.get(KEY_PASSWORD_SALT)
        if not password_hash or not salt:
            return None
        return VaultCredentials(password_hash, salt)

    async def _verify(self, password: str) -> VaultCredentials:
        creds = await self._credentials()
        if creds is None:
            raise PasswordNotSet("No password set")
        if not verify_password(password, creds.password_hash, creds.salt):
            raise VerificationFailed("Invalid password")
        return creds

    async def _plain_wallets(self) -> list[Wallet] | None:
        """Plaintext wallet list, or ``None`` when absent (locked)."""
        raw = await self.storage.get(KEY_WALLETS)
        if raw is None:
            return None
        try:
            items = json.loads(raw)
        except json.JSONDecodeError:
            logger.error("Stored wallet list is not valid JSON; treating as empty")
            return []
        if not isinstance(items, list):
            logger.error("Stored wallet list is not a JSON array; treating as empty")
            return []
        wallets = []
        for item in items:
            try:
                wallets.append(Wallet.from_dict(item))
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning(f"Skipping unreadable plaintext wallet: {exc}")
        return wallets

    async def _raw_wallet_items(self) -> list[dict[str, Any]]:
        """Plaintext entries as stored, without parsing them into wallets."""
        raw = await self.storage.get(KEY_WALLETS)
        if raw is None:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise VaultCorrupted("Failed to parse plaintext wallet list") from exc
        if not isinstance(items, list):
            raise VaultCorrupted("Plaintext wallet list is not a list")
        for item in items:
            if not isinstance(item, dict) or not isinstance(item.get("address"), str):
                raise VaultCorrupted("Plaintext wallet entry has no address")
        return items

    async def _save_wallets(self, wallets: list[Wallet]) -> None:
        await self.storage.set(KEY_WALLETS, _dumps([w.to_dict() for w in wallets]))

    async def _records(self) -> list[WalletRecord] | None:
        """Encrypted records, or ``None`` when the key has never been written."""
        raw = await self.storage.get(KEY_ENCRYPTED_WALLETS)
        if raw is None:
            return None
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise VaultCorrupted("Failed to parse encrypted wallet data") from exc
        if not isinstance(items, list):
            raise VaultCorrupted("Encrypted wallet data is not a list")
        records = []
        for item in items:
            try:
                records.append(record_from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"Skipping malformed encrypted wallet record: {exc}")
        return records

    async def _save_records(self, records: list[WalletRecord]) -> None:
        await self.storage.set(KEY_ENCRYPTED_WALLETS, _dumps([r.to_dict() for r in records]))

    async def _resolve_active(self, wallets: list[Wallet]) -> str | None:
        """Keep the active pointer if it names a wallet, else use the first."""
        if not wallets:
            await self.storage.remove(KEY_ACTIVE_WALLET)
            return None
        current = await self.storage.get(KEY_ACTIVE_WALLET)
        if current and any(w.address == current for w in wallets):
            return current
        first = wallets[0].address
        await self.storage.set(KEY_ACTIVE_WALLET, first)
        if current:
            logger.info(f"Active wallet not found, switching to first wallet {_short(first)}")
        return first

    # ── queries ──────────────────────────────────────────────────

    async def is_password_set(self) -> bool:
        return bool(await self.storage.get(KEY_PASSWORD_HASH))

    async def is_locked(self) -> bool:
        """Locked unless explicitly unlocked; never locked without a password."""
        if not await self.is_password_set():
            return False
        return await self.storage.get(KEY_LOCKED) != "false"

    async def should_show_unlock_screen(self) -> bool:
        if not await self.is_password_set():
            return False
        locked_flag = await self.storage.get(KEY_LOCKED)
        has_wallets = await self.storage.get(KEY_WALLETS)
        return locked_flag != "false" or not has_wallets

    async def state(self) -> VaultState:
        if not await self.is_password_set():
            return VaultState.UNINITIALIZED
        if await self.storage.get(KEY_WALLETS) is None:
            return VaultState.LOCKED
        return VaultState.UNLOCKED

    async def load_wallets(self) -> list[Wallet]:
        return await self._plain_wallets() or []

    async def active_wallet(self) -> Wallet | None:
        address = await self.storage.get(KEY_ACTIVE_WALLET)
        if not address:
            return None
        for w in await self.load_wallets():
            if w.address == address:
                return w
        return None

    async def encrypted_wallet_count(self) -> int:
        return len(await self._records() or [])

    async def verify_all_wallets_encrypted(self, wallets: Iterable[Wallet]) -> bool:
        """True when every wallet has a record (always true without a password)."""
        if not await self.is_password_set():
            return True
        encrypted = {r.address for r in await self._records() or []}
        for w in wallets:
            if w.address not in encrypted:
                logger.warning(f"Wallet {_short(w.address)} is not encrypted")
                return False
        return True

    # ── transitions ──────────────────────────────────────────────

    async def setup_password(self, wallets: Iterable[Wallet], password: str) -> VaultCredentials:
        """
        Protect the vault with *password*.

        Every wallet passed in is sealed (records from any earlier setup
        are replaced) and also kept in plaintext, leaving the vault
        unlocked.  Raises ``VaultLocked`` when a password is already set
        and the vault is locked, since the records are then the only copy
        of the wallets.
        """
        async with self._lock:
            unique: dict[str, Wallet] = {}
            for w in wallets:
                unique.setdefault(w.address, w)
            plain = list(unique.values())

            if (await self._credentials() is not None
                    and await self.storage.get(KEY_WALLETS) is None):
                raise VaultLocked("Unlock the vault before changing the password")

            password_hash, salt = hash_password(password)
            records: list[WalletRecord] = [seal_wallet(w, password) for w in plain]

            await self.storage.set(KEY_PASSWORD_HASH, password_hash)
            await self.storage.set(KEY_PASSWORD_SALT, salt)
            await self.storage.set(KEY_LOCKED, "false")
            await self._save_records(records)
            await self._save_wallets(plain)
            await self._resolve_active(plain)
            logger.info(f"Password set; encrypted {len(records)} wallets")
            return VaultCredentials(password_hash, salt)

    async def lock(self) -> None:
        """
        Drop the plaintext wallet list.

        Wallets without a record are first written as pending records
        holding their plaintext JSON, so none is lost.  A plaintext list
        that cannot be keyed by address raises ``VaultCorrupted`` and
        nothing is changed.  The active-wallet pointer is kept.
        """
        async with self._lock:
            if await self._credentials() is None:
                raise PasswordNotSet("Cannot lock a vault without a password")

            items = await self._raw_wallet_items()
            records = await self._records() or []
            known = {r.address for r in records}
            added = 0
            for item in items:
                address = item["address"]
                if address in known:
                    continue
                # Verbatim, including entries Wallet.from_dict rejects.
                records.append(PendingRecord(address, _dumps(item), _now_ms()))
                known.add(address)
                added += 1
            if added:
                await self._save_records(records)
                logger.warning(f"Stored {added} wallets as pending records before locking")

            await self.storage.remove(KEY_WALLETS)
            await self.storage.set(KEY_LOCKED, "true")
            logger.info("Vault locked")

    async def unlock(self, password: str) -> list[Wallet]:
        """
        Verify *password*, decrypt every record and restore the plaintext list.

        Records that cannot be opened are logged and skipped.  An empty
        result is returned as-is.
        """
        async with self._lock:
            await self._verify(password)

            records = await self._records()
            wallets: list[Wallet] = []
            if records is None:
                # Wallets that predate encryption.
                wallets = await self._plain_wallets() or []
            else:
                for record in records:
                    try:
                        wallets.append(open_record(record, password))
                    except RecordDecryptionFailed as exc:
                        logger.warning(str(exc))

            unique: dict[str, Wallet] = {}
            for w in wallets:
                unique.setdefault(w.address, w)
            wallets = list(unique.values())
            if not wallets:
                logger.warning("No wallets found after unlock")

            await self._save_wallets(wallets)
            await self.storage.set(KEY_LOCKED, "false")
            await self._resolve_active(wallets)

            if records and any(isinstance(r, PendingRecord) for r in records):
                await self._reencrypt_pending(password, wallets)

            logger.info(f"Unlocked vault with {len(wallets)} wallets")
            return wallets

    async def reencrypt_pending(self, password: str) -> int:
        """Seal pending records under *password*; returns how many were upgraded."""
        async with self._lock:
            await self._verify(password)
            return await self._reencrypt_pending(password)

    async def _reencrypt_pending(self, password: str,
                                 known: list[Wallet] | None = None) -> int:
        records = await self._records() or []
        by_address = {w.address: w for w in known or []}
        upgraded = 0
        out: list[WalletRecord] = []
        for record in records:
            if isinstance(record, PendingRecord):
                try:
                    wallet = by_address.get(record.address) or open_record(record, password)
                except RecordDecryptionFailed as exc:
                    logger.warning(str(exc))
                    out.append(record)
                    continue
                out.append(seal_wallet(wallet, password))
                upgraded += 1
            else:
                out.append(record)
        if upgraded:
            await self._save_records(out)
            logger.info(f"Encrypted {upgraded} pending wallet records")
        return upgraded

    # ── wallet list management ───────────────────────────────────

    async def add_wallet(self, wallet: Wallet, password: str | None = None) -> Wallet:
        """
        Add *wallet* and make it active.

        If the address is already present the existing wallet becomes
        active instead.  With a password set, the wallet is sealed when
        *password* is given, otherwise stored as a pending record.
        """
        async with self._lock:
            creds = await self._credentials()
            plain = await self._plain_wallets()
            if plain is None:
                if creds is not None:
                    raise VaultLocked("Unlock the vault before adding wallets")
                plain = []

            for existing in plain:
                if existing.address == wallet.address:
                    await self.storage.set(KEY_ACTIVE_WALLET, existing.address)
                    logger.info(f"Wallet {_short(existing.address)} already exists, switched to it")
                    return existing

            if creds is not None and password is not None:
                if not verify_password(password, creds.password_hash, creds.salt):
                    raise VerificationFailed("Invalid password")

            plain.append(wallet)
            await self._save_wallets(plain)
            await self.storage.set(KEY_ACTIVE_WALLET, wallet.address)

            if creds is not None:
                records = await self._records() or []
                if not any(r.address == wallet.address for r in records):
                    if password is not None:
                        records.append(seal_wallet(wallet, password))
                    else:
                        records.append(PendingRecord(wallet.address,
                                                     _dumps(wallet.to_dict()), _now_ms()))
                    await self._save_records(records)

            logger.info(f"Added wallet {_short(wallet.address)}; total {len(plain)}")
            return wallet

    async def add_wallet_to_encrypted_storage(self, wallet: Wallet, password: str) -> bool:
        """Seal *wallet* into the record list; ``False`` if already present."""
        async with self._lock:
            await self._verify(password)
            records = await self._records() or []
            if any(r.address == wallet.address for r in records):
                logger.info(f"Wallet {_short(wallet.address)} already in encrypted storage")
                return False
            records.append(seal_wallet(wallet, password))
            await self._save_records(records)
            return True

    async def remove_wallet(self, address: str) -> bool:
        """Remove a wallet from both lists; ``False`` if it was in neither."""
        async with self._lock:
            removed = False
            plain = await self._plain_wallets()
            if plain is not None:
                remaining = [w for w in plain if w.address != address]
                if len(remaining) != len(plain):
                    removed = True
                    await self._save_wallets(remaining)
                    await self._resolve_active(remaining)

            records = await self._records()
            if records is not None:
                kept = [r for r in records if r.address != address]
                if len(kept) != len(records):
                    removed = True
                    await self._save_records(kept)
                    if plain is None:
                        pointer = await self.storage.get(KEY_ACTIVE_WALLET)
                        if pointer == address:
                            if kept:
                                await self.storage.set(KEY_ACTIVE_WALLET, kept[0].address)
                            else:
                                await self.storage.remove(KEY_ACTIVE_WALLET)

            if removed:
                logger.info(f"Removed wallet {_short(address)}")
            return removed

    async def switch_wallet(self, address: str) -> Wallet:
        async with self._lock:
            for w in await self._plain_wallets() or []:
                if w.address == address:
                    await self.storage.set(KEY_ACTIVE_WALLET, address)
                    return w
        raise KeyError(f"Wallet {address} not found")
