#!/usr/bin/env python3
"""
Octra wallet runner — manage a local vault from the command line.

Usage:
    python run_wallet.py generate
    python run_wallet.py import-key <base64-private-key>
    python run_wallet.py import-mnemonic "word1 word2 ... word12"
    python run_wallet.py setup-password
    python run_wallet.py lock
    python run_wallet.py unlock
    python run_wallet.py status
    python run_wallet.py list

Environment variables (alternative to --config):
    OCTRA_DB_PATH, OCTRA_MIRROR_PATH, OCTRA_LOG_LEVEL, OCTRA_LOG_FMT
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import getpass
import logging
import os
import sys

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from octra_core.config import OctraWalletConfig, load_config  # noqa: E402
from octra_core.errors import OctraWalletError  # noqa: E402
from octra_core.logging_config import setup_logging  # noqa: E402
from octra_core.storage import (  # noqa: E402
    JSONFileBackend,
    MirroredStorage,
    SQLiteBackend,
    StorageBackend,
)
from octra_core.vault import Vault  # noqa: E402
from octra_core.wallet import (  # noqa: E402
    Wallet,
    generate_wallet,
    import_from_mnemonic,
    import_from_private_key,
)

logger = logging.getLogger("wallet")


async def open_storage(cfg: OctraWalletConfig) -> StorageBackend:
    primary = SQLiteBackend(cfg.storage.primary_path)
    if not cfg.storage.mirror_enabled:
        return primary
    storage = MirroredStorage(primary, JSONFileBackend(cfg.storage.mirror_path))
    await storage.init()
    return storage


def _password(args, prompt: str = "Password: ") -> str:
    if args.password is not None:
        return args.password
    return getpass.getpass(prompt)


def _print_wallet(w: Wallet, active: bool = False) -> None:
    marker = "*" if active else " "
    print(f" {marker} {w.address}  ({w.type.value})")


async def _add(vault: Vault, wallet: Wallet, args) -> None:
    password = None
    if await vault.is_password_set():
        password = _password(args)
    added = await vault.add_wallet(wallet, password)
    print(f"  Address: {added.address}")
    if added is wallet and wallet.mnemonic and args.command == "generate":
        print("  Mnemonic (write it down, it is shown only once):")
        print(f"    {wallet.mnemonic}")


async def run_command(args, cfg: OctraWalletConfig) -> int:
    storage = await open_storage(cfg)
    try:
        return await _dispatch(Vault(storage), args, cfg)
    finally:
        storage.close()


async def _dispatch(vault: Vault, args, cfg: OctraWalletConfig) -> int:
    if args.command == "generate":
        wallet = generate_wallet(
            max_attempts=cfg.wallet.max_generation_attempts,
            strength=cfg.wallet.mnemonic_strength,
        )
        await _add(vault, wallet, args)
    elif args.command == "import-key":
        await _add(vault, import_from_private_key(args.key), args)
    elif args.command == "import-mnemonic":
        await _add(vault, import_from_mnemonic(args.mnemonic), args)
    elif args.command == "setup-password":
        password = _password(args, "New password: ")
        if args.password is None and getpass.getpass("Confirm password: ") != password:
            print("  Passwords do not match.")
            return 1
        wallets = await vault.load_wallets()
        await vault.setup_password(wallets, password)
        print(f"  Vault protected; {len(wallets)} wallets encrypted.")
    elif args.command == "lock":
        await vault.lock()
        print("  Vault locked.")
    elif args.command == "unlock":
        wallets = await vault.unlock(_password(args))
        print(f"  Unlocked {len(wallets)} wallets.")
    elif args.command == "status":
        print(f"  State:             {(await vault.state()).value}")
        print(f"  Encrypted records: {await vault.encrypted_wallet_count()}")
        active = await vault.active_wallet()
        print(f"  Active wallet:     {active.address if active else '-'}")
    elif args.command == "list":
        active = await vault.active_wallet()
        wallets = await vault.load_wallets()
        if not wallets:
            print("  No wallets available (locked or empty).")
        for w in wallets:
            _print_wallet(w, active is not None and w.address == active.address)

    return 0


# ===================================================================
#  Main entry point
# ===================================================================

def parse_args(argv: list[str] | None = None):
    p = argparse.ArgumentParser(description="Octra wallet vault")
    p.add_argument("--config", default=None, help="Path to octra_wallet.toml config file")
    p.add_argument("--password", default=None,
                   help="Vault password (prompted for when omitted)")
    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("generate", help="Generate a new wallet")
    ik = sub.add_parser("import-key", help="Import a base64 private key")
    ik.add_argument("key")
    im = sub.add_parser("import-mnemonic", help="Import a 12/24-word mnemonic")
    im.add_argument("mnemonic")
    sub.add_parser("setup-password", help="Encrypt all wallets under a password")
    sub.add_parser("lock", help="Lock the vault")
    sub.add_parser("unlock", help="Unlock the vault")
    sub.add_parser("status", help="Show vault state")
    sub.add_parser("list", help="List unlocked wallets")
    return p.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    cfg = load_config(args.config)
    setup_logging(cfg.logging.level, cfg.logging.format, cfg.logging.file)
    try:
        return await run_command(args, cfg)
    except (OctraWalletError, KeyError) as e:
        logger.error(str(e))
        print(f"  Error: {e}")
        return 1


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        sys.exit(asyncio.run(main()))


def main_sync():
    """Synchronous entry point for console_scripts."""
    with contextlib.suppress(KeyboardInterrupt):
        sys.exit(asyncio.run(main()))
