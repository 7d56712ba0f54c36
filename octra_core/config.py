"""
TOML-based configuration for the Octra wallet.

Loads settings from a TOML file and/or environment variables.
Environment variables take precedence over file values.

Usage:
    from octra_core.config import load_config
    cfg = load_config("octra_wallet.toml")
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[import,no-redef]


@dataclass
class StorageConfig:
    """Where the vault keeps its data.

    ``primary_path`` is the SQLite store; ``mirror_path`` the JSON file
    that mirrors every write and seeds the primary on first run.
    """
    primary_path: str = "data/octra_wallet.db"
    mirror_path: str = "data/octra_wallet.json"
    mirror_enabled: bool = True


@dataclass
class WalletConfig:
    """Key generation settings."""
    max_generation_attempts: int = 100
    mnemonic_strength: int = 128      # 128 -> 12 words, 256 -> 24 words


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    format: str = "human"   # "human" or "json"
    file: str | None = None


@dataclass
class OctraWalletConfig:
    """Top-level configuration container."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    wallet: WalletConfig = field(default_factory=WalletConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _merge(dc: Any, raw: dict[str, Any]) -> None:
    """Merge a raw dict into a dataclass instance (in-place)."""
    for key, value in raw.items():
        key_under = key.replace("-", "_")
        if hasattr(dc, key_under):
            setattr(dc, key_under, value)


def load_config(path: str | None = None) -> OctraWalletConfig:
    """
    Load configuration from a TOML file, then overlay environment variables.

    Env-var mapping:
        OCTRA_DB_PATH          -> storage.primary_path
        OCTRA_MIRROR_PATH      -> storage.mirror_path
        OCTRA_MIRROR_ENABLED   -> storage.mirror_enabled ("0"/"false" disables)
        OCTRA_MAX_GEN_ATTEMPTS -> wallet.max_generation_attempts
        OCTRA_LOG_LEVEL        -> logging.level
        OCTRA_LOG_FMT          -> logging.format
        OCTRA_LOG_FILE         -> logging.file
    """
    cfg = OctraWalletConfig()

    # ── TOML file ────────────────────────────────────────────────
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                data = tomllib.load(f)
            for section_name, section_dc in [
                ("storage", cfg.storage),
                ("wallet", cfg.wallet),
                ("logging", cfg.logging),
            ]:
                if section_name in data:
                    _merge(section_dc, data[section_name])

    # ── Environment variable overrides ───────────────────────────
    if v := os.environ.get("OCTRA_DB_PATH"):
        cfg.storage.primary_path = v
    if v := os.environ.get("OCTRA_MIRROR_PATH"):
        cfg.storage.mirror_path = v
    if v := os.environ.get("OCTRA_MIRROR_ENABLED"):
        cfg.storage.mirror_enabled = v.lower() not in ("0", "false", "no")
    if v := os.environ.get("OCTRA_MAX_GEN_ATTEMPTS"):
        cfg.wallet.max_generation_attempts = int(v)
    if v := os.environ.get("OCTRA_LOG_LEVEL"):
        cfg.logging.level = v.upper()
    if v := os.environ.get("OCTRA_LOG_FMT"):
        cfg.logging.format = v
    if v := os.environ.get("OCTRA_LOG_FILE"):
        cfg.logging.file = v

    return cfg
