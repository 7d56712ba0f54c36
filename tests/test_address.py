"""
Tests for octra_core.address — Base58 address encoding and validation.

Covers:
  - Prefix and length of derived addresses
  - Leading zero bytes in the digest become leading '1' characters
  - is_valid_address accepts 47-char Base58 addresses only
"""

import hashlib
import unittest
from unittest.mock import patch

from octra_core.address import (
    ADDRESS_LENGTH,
    ADDRESS_PREFIX,
    BASE58_ALPHABET,
    encode_address,
    is_valid_address,
)

from conftest import GOLDEN_ADDRESS, GOLDEN_PUBLIC_KEY


class TestEncodeAddress(unittest.TestCase):

    def test_golden_public_key(self):
        addr = encode_address(bytes.fromhex(GOLDEN_PUBLIC_KEY))
        self.assertEqual(addr, GOLDEN_ADDRESS)

    def test_prefix(self):
        addr = encode_address(b"\x01" * 32)
        self.assertTrue(addr.startswith(ADDRESS_PREFIX))

    def test_deterministic(self):
        pk = bytes(range(32))
        self.assertEqual(encode_address(pk), encode_address(pk))

    def test_body_uses_base58_alphabet(self):
        addr = encode_address(b"\xab" * 32)
        for ch in addr[len(ADDRESS_PREFIX):]:
            self.assertIn(ch, BASE58_ALPHABET)

    def test_leading_zero_bytes_become_ones(self):
        digest = b"\x00\x00" + b"\x01" * 30

        class _FakeHash:
            def digest(self):
                return digest

        with patch("octra_core.address.hashlib.sha256", return_value=_FakeHash()):
            addr = encode_address(b"\x00" * 32)
        self.assertEqual(addr, "oct11CfhVktJrWPkJZqSPY8Ty5km6mAzgQL9vC13S4QTS")
        self.assertEqual(len(addr), 45)

    def test_uses_sha256_of_public_key(self):
        pk = b"\x05" * 32
        digest = hashlib.sha256(pk).digest()
        self.assertEqual(len(digest), 32)
        self.assertNotEqual(encode_address(pk), encode_address(digest))


class TestIsValidAddress(unittest.TestCase):

    def test_golden_address_valid(self):
        self.assertTrue(is_valid_address(GOLDEN_ADDRESS))
        self.assertEqual(len(GOLDEN_ADDRESS), ADDRESS_LENGTH)

    def test_wrong_prefix(self):
        self.assertFalse(is_valid_address("abc" + GOLDEN_ADDRESS[3:]))

    def test_too_short(self):
        self.assertFalse(is_valid_address(GOLDEN_ADDRESS[:-1]))

    def test_too_long(self):
        self.assertFalse(is_valid_address(GOLDEN_ADDRESS + "a"))

    def test_excluded_characters(self):
        for bad in "0OIl":
            self.assertFalse(is_valid_address(GOLDEN_ADDRESS[:-1] + bad))

    def test_non_string(self):
        self.assertFalse(is_valid_address(None))
        self.assertFalse(is_valid_address(12345))

    def test_empty(self):
        self.assertFalse(is_valid_address(""))
