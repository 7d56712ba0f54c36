"""
Key/value persistence for the wallet vault.

All values are UTF-8 strings.  Backends expose an async ``get / set /
remove / clear`` contract and report failures as ``StorageUnavailable``.

``MirroredStorage`` keeps a primary and a mirror backend in step:
writes go to the primary first and then, best effort, to the mirror;
reads prefer the primary and fall back to the mirror when the primary
fails.  There is no transaction spanning both backends, so a crash
between the two writes can leave them briefly divergent.

Usage:
    storage = MirroredStorage(SQLiteBackend("data/octra_wallet.db"),
                              JSONFileBackend("data/octra_wallet.json"))
    await storage.init()
    await storage.set(KEY_ACTIVE_WALLET, "oct...")
"""

from __future__ import annotations

import abc
import json
import logging
import os
import sqlite3
import tempfile
from pathlib import Path

from octra_core.errors import StorageUnavailable

logger = logging.getLogger("octra_storage")

# ── storage keys ─────────────────────────────────────────────────

KEY_WALLETS = "wallets"
KEY_ACTIVE_WALLET = "activeWalletId"
KEY_LOCKED = "isWalletLocked"
KEY_PASSWORD_HASH = "walletPasswordHash"
KEY_PASSWORD_SALT = "walletPasswordSalt"
KEY_ENCRYPTED_WALLETS = "encryptedWallets"
KEY_MIGRATED = "_migrated"

# Copied from the mirror into the primary on first start.
MIGRATION_KEYS = (
    KEY_WALLETS,
    KEY_ACTIVE_WALLET,
    KEY_LOCKED,
    KEY_PASSWORD_HASH,
    KEY_PASSWORD_SALT,
    KEY_ENCRYPTED_WALLETS,
    "connectedDApps",
    "rpcProviders",
    "octra-wallet-theme",
)


class StorageBackend(abc.ABC):
    """Async string key/value store."""

    name = "backend"

    @abc.abstractmethod
    async def get(self, key: str) -> str | None: ...

    @abc.abstractmethod
    async def set(self, key: str, value: str) -> None: ...

    @abc.abstractmethod
    async def remove(self, key: str) -> None: ...

    @abc.abstractmethod
    async def clear(self) -> None: ...

    def close(self) -> None:
        """Release any held resources."""


class MemoryBackend(StorageBackend):
    """In-process dict; used for tests and throwaway sessions."""

    name = "memory"

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def clear(self) -> None:
        self._data.clear()

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class SQLiteBackend(StorageBackend):
    """Thin SQLite wrapper holding a single ``kv`` table."""

    name = "sqlite"

    CURRENT_SCHEMA_VERSION = 1

    def __init__(self, db_path: str = "data/octra_wallet.db"):
        self.db_path = db_path
        try:
            if db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(db_path)
            self._conn.row_factory = sqlite3.Row
            # Several processes may hold the file open at once.
            self._conn.execute("PRAGMA busy_timeout = 5000")
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._create_tables()
            self._ensure_schema_version()
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailable(f"Cannot open {db_path}: {exc}") from exc
        logger.info(f"Storage opened: {db_path}")

    # ── schema ───────────────────────────────────────────────────

    def _create_tables(self) -> None:
        c = self._conn
        c.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key   TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        c.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                id      INTEGER PRIMARY KEY CHECK (id = 1),
                version INTEGER NOT NULL
            )
        """)
        c.commit()

    def _ensure_schema_version(self) -> None:
        row = self._conn.execute(
            "SELECT version FROM schema_version WHERE id = 1"
        ).fetchone()
        if row is None:
            self._conn.execute(
                "INSERT INTO schema_version (id, version) VALUES (1, ?)",
                (self.CURRENT_SCHEMA_VERSION,),
            )
            self._conn.commit()
        elif row["version"] > self.CURRENT_SCHEMA_VERSION:
            raise StorageUnavailable(
                f"Storage schema v{row['version']} is newer than this software "
                f"(v{self.CURRENT_SCHEMA_VERSION})."
            )

    # ── kv ───────────────────────────────────────────────────────

    async def get(self, key: str) -> str | None:
        try:
            row = self._conn.execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"sqlite get {key!r} failed: {exc}") from exc
        return row["value"] if row else None

    async def set(self, key: str, value: str) -> None:
        try:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                (key, value),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"sqlite set {key!r} failed: {exc}") from exc

    async def remove(self, key: str) -> None:
        try:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"sqlite remove {key!r} failed: {exc}") from exc

    async def clear(self) -> None:
        try:
            self._conn.execute("DELETE FROM kv")
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StorageUnavailable(f"sqlite clear failed: {exc}") from exc

    def close(self) -> None:
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class JSONFileBackend(StorageBackend):
    """Whole-file JSON object; every write replaces the file atomically."""

    name = "jsonfile"

    def __init__(self, path: str = "data/octra_wallet.json"):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageUnavailable(f"Cannot read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageUnavailable(f"{self.path} does not hold a JSON object")
        return data

    def _store(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot write {self.path}: {exc}") from exc

    async def get(self, key: str) -> str | None:
        return self._load().get(key)

    async def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._store(data)

    async def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._store(data)

    async def clear(self) -> None:
        self._store({})


class MirroredStorage(StorageBackend):
    """Primary backend mirrored, best effort, into a second backend."""

    name = "mirrored"

    def __init__(self, primary: StorageBackend, mirror: StorageBackend):
        self.primary = primary
        self.mirror = mirror

    def close(self) -> None:
        self.primary.close()
        self.mirror.close()

    async def init(self) -> None:
        """Run the one-time mirror -> primary migration."""
        try:
            if await self.get(KEY_MIGRATED):
                return
            copied = await self._migrate_from_mirror()
            await self.set(KEY_MIGRATED, "true")
            logger.info(f"Migrated {copied} keys from {self.mirror.name} to {self.primary.name}")
        except StorageUnavailable as exc:
            # Sentinel stays unset, so the next init retries.
            logger.error(f"Failed to migrate storage: {exc}")

    async def _migrate_from_mirror(self) -> int:
        copied = 0
        for key in MIGRATION_KEYS:
            value = await self.mirror.get(key)
            if value is None:
                continue
            if await self.primary.get(key) is not None:
                continue
            await self.primary.set(key, value)
            copied += 1
        return copied

    async def get(self, key: str) -> str | None:
        try:
            return await self.primary.get(key)
        except StorageUnavailable as exc:
            logger.error(f"Failed to get {key!r} from {self.primary.name}: {exc}")
        try:
            return await self.mirror.get(key)
        except StorageUnavailable as exc:
            raise StorageUnavailable(f"All storage backends failed reading {key!r}") from exc

    async def set(self, key: str, value: str) -> None:
        await self._write("set", key, value)

    async def remove(self, key: str) -> None:
        await self._write("remove", key)

    async def clear(self) -> None:
        await self._write("clear")

    async def _write(self, op: str, *args: str) -> None:
        primary_ok = True
        try:
            await getattr(self.primary, op)(*args)
        except StorageUnavailable as exc:
            primary_ok = False
            logger.error(f"Failed to {op} in {self.primary.name}: {exc}")
        try:
            await getattr(self.mirror, op)(*args)
        except StorageUnavailable as exc:
            if not primary_ok:
                raise StorageUnavailable(f"All storage backends failed to {op}") from exc
            logger.warning(f"Mirror {self.mirror.name} {op} failed: {exc}")
