"""
Tests for octra_core.balance_cipher — client-side encrypted balances.

Covers:
  - Balance key derivation
  - encrypt/decrypt round trip
  - v2 framing (prefix, nonce size, random nonce)
  - Soft failures: empty, "0", legacy, malformed base64, short, bad tag,
    wrong key, non-integer plaintext
"""

import base64
import hashlib

import pytest

from octra_core.balance_cipher import (
    V2_PREFIX,
    decrypt_client_balance,
    derive_balance_key,
    encrypt_client_balance,
    open_v2,
    seal_v2,
)

from conftest import GOLDEN_PRIVATE_KEY, SEVENS_PRIVATE_KEY

GOLDEN_BALANCE_KEY = "5f93a454e21437d4d0d2b2d463db4d9712f7ec9aa3f875558c89e4ee481ddc36"


class TestBalanceKey:

    def test_golden(self):
        assert derive_balance_key(GOLDEN_PRIVATE_KEY).hex() == GOLDEN_BALANCE_KEY

    def test_construction(self):
        priv = base64.b64decode(SEVENS_PRIVATE_KEY)
        expected = hashlib.sha256(b"octra_encrypted_balance_v2" + priv).digest()
        assert derive_balance_key(SEVENS_PRIVATE_KEY) == expected


class TestRoundTrip:

    @pytest.mark.parametrize("balance", [0, 1, 999_999, 1_000_000, 2**53, 2**63 - 1])
    def test_roundtrip(self, balance):
        payload = encrypt_client_balance(balance, GOLDEN_PRIVATE_KEY)
        assert decrypt_client_balance(payload, GOLDEN_PRIVATE_KEY) == balance

    def test_framing(self):
        payload = encrypt_client_balance(42, GOLDEN_PRIVATE_KEY)
        assert payload.startswith(V2_PREFIX)
        raw = base64.b64decode(payload[3:])
        # nonce + "42" + tag
        assert len(raw) == 12 + 2 + 16

    def test_random_nonce(self):
        a = encrypt_client_balance(42, GOLDEN_PRIVATE_KEY)
        b = encrypt_client_balance(42, GOLDEN_PRIVATE_KEY)
        assert a != b

    def test_seal_open(self):
        key = b"\x01" * 32
        assert open_v2(key, seal_v2(key, b"hello")) == b"hello"


class TestSoftFail:

    def test_empty(self):
        assert decrypt_client_balance("", GOLDEN_PRIVATE_KEY) == 0

    def test_zero_literal(self):
        assert decrypt_client_balance("0", GOLDEN_PRIVATE_KEY) == 0

    def test_legacy_v1(self):
        assert decrypt_client_balance("v1|AAAA", GOLDEN_PRIVATE_KEY) == 0

    def test_no_prefix(self):
        assert decrypt_client_balance("somethingelse", GOLDEN_PRIVATE_KEY) == 0

    def test_malformed_base64(self):
        assert decrypt_client_balance("v2|@@@not base64@@@", GOLDEN_PRIVATE_KEY) == 0

    def test_too_short(self):
        short = "v2|" + base64.b64encode(b"\x00" * 27).decode()
        assert decrypt_client_balance(short, GOLDEN_PRIVATE_KEY) == 0

    def test_wrong_key(self):
        payload = encrypt_client_balance(500, GOLDEN_PRIVATE_KEY)
        assert decrypt_client_balance(payload, SEVENS_PRIVATE_KEY) == 0

    def test_tampered_ciphertext(self):
        payload = encrypt_client_balance(500, GOLDEN_PRIVATE_KEY)
        raw = bytearray(base64.b64decode(payload[3:]))
        raw[13] ^= 0xFF
        tampered = "v2|" + base64.b64encode(bytes(raw)).decode()
        assert decrypt_client_balance(tampered, GOLDEN_PRIVATE_KEY) == 0

    def test_non_integer_plaintext(self):
        key = derive_balance_key(GOLDEN_PRIVATE_KEY)
        payload = seal_v2(key, b"not-a-number")
        assert decrypt_client_balance(payload, GOLDEN_PRIVATE_KEY) == 0

    def test_open_v2_none_on_bad_key_length(self):
        payload = seal_v2(b"\x02" * 32, b"1")
        assert open_v2(b"\x02" * 7, payload) is None
