"""
Tests for octra_core.transaction — canonical payload and ed25519 signing.

Covers:
  - Canonical JSON field order and compact separators
  - message excluded from the signed payload
  - Golden signature (ed25519 is deterministic)
  - verify_transaction accepts valid and rejects tampered transactions
  - create_transaction fee tier, micro-unit conversion and timestamp
  - Wire dict layout
"""

import base64
import json
import unittest

from nacl.signing import VerifyKey

from octra_core.transaction import (
    MU_FACTOR,
    Transaction,
    create_transaction,
    from_micro_units,
    select_ou,
    sign_transaction,
    signing_payload,
    to_micro_units,
    verify_transaction,
)
from octra_core.wallet import mnemonic_to_wallet

from conftest import GOLDEN_MNEMONIC, GOLDEN_PUBLIC_KEY

GOLDEN_SIGNATURE = (
    "y6DEeb43XCkwOs3Rzum5Mt/Mk/vrBAMxmhRBWQYXQjvV72j7WDIvHGR2tMo1Dw5q4dqU43mXKmkR7HZN4HJKBw=="
)


def _tx(**overrides):
    fields = dict(from_="oct1", to_="oct2", amount="1000000", nonce=1, ou="1",
                  timestamp=1700000000.123)
    fields.update(overrides)
    return Transaction(**fields)


class TestSigningPayload(unittest.TestCase):

    def test_exact_bytes(self):
        self.assertEqual(
            signing_payload(_tx()),
            '{"from":"oct1","to_":"oct2","amount":"1000000","nonce":1,"ou":"1","timestamp":1700000000.123}',
        )

    def test_message_excluded(self):
        self.assertEqual(signing_payload(_tx(message="hi")), signing_payload(_tx()))

    def test_field_order(self):
        keys = list(json.loads(signing_payload(_tx())).keys())
        self.assertEqual(keys, ["from", "to_", "amount", "nonce", "ou", "timestamp"])


class TestSignTransaction(unittest.TestCase):

    def setUp(self):
        self.wallet = mnemonic_to_wallet(GOLDEN_MNEMONIC)

    def _sign(self, tx):
        return sign_transaction(tx, self.wallet.private_key, self.wallet.public_key)

    def test_golden_signature(self):
        tx = self._sign(_tx())
        self.assertEqual(tx.signature, GOLDEN_SIGNATURE)

    def test_public_key_is_base64_raw(self):
        tx = self._sign(_tx())
        self.assertEqual(base64.b64decode(tx.public_key).hex(), GOLDEN_PUBLIC_KEY)

    def test_signature_verifies_with_nacl(self):
        tx = self._sign(_tx(message="memo"))
        vk = VerifyKey(base64.b64decode(tx.public_key))
        vk.verify(signing_payload(tx).encode(), base64.b64decode(tx.signature))

    def test_signs_in_place(self):
        tx = _tx()
        self.assertIs(self._sign(tx), tx)

    def test_verify_valid(self):
        self.assertTrue(verify_transaction(self._sign(_tx())))

    def test_verify_unsigned(self):
        self.assertFalse(verify_transaction(_tx()))

    def test_verify_tampered_amount(self):
        tx = self._sign(_tx())
        tx.amount = "2000000"
        self.assertFalse(verify_transaction(tx))

    def test_verify_message_change_still_valid(self):
        tx = self._sign(_tx(message="a"))
        tx.message = "b"
        self.assertTrue(verify_transaction(tx))

    def test_verify_garbage_signature(self):
        tx = self._sign(_tx())
        tx.signature = "not-base64!!"
        self.assertFalse(verify_transaction(tx))

    def test_verify_wrong_key(self):
        other = mnemonic_to_wallet(
            "legal winner thank year wave sausage worth useful legal winner thank yellow"
        )
        tx = self._sign(_tx())
        tx.public_key = base64.b64encode(other.public_key_bytes).decode()
        self.assertFalse(verify_transaction(tx))


class TestCreateTransaction:

    def _create(self, amount, **kw):
        w = mnemonic_to_wallet(GOLDEN_MNEMONIC)
        return create_transaction(w.address, "oct" + "1" * 44, amount, 5,
                                  w.private_key, w.public_key, **kw)

    def test_micro_units(self):
        tx = self._create(1.5)
        assert tx.amount == "1500000"

    def test_micro_units_floor(self):
        assert to_micro_units(0.0000019) == 1
        assert from_micro_units(2_500_000) == 2.5
        assert MU_FACTOR == 1_000_000

    def test_ou_low_tier(self):
        assert self._create(999.99).ou == "1"

    def test_ou_high_tier(self):
        assert self._create(1000).ou == "3"
        assert select_ou(5000) == "3"

    def test_timestamp_millisecond_precision(self):
        tx = self._create(1)
        assert round(tx.timestamp, 3) == tx.timestamp
        assert tx.timestamp > 1_600_000_000

    def test_explicit_timestamp(self):
        assert self._create(1, timestamp=1700000000.5).timestamp == 1700000000.5

    def test_signed_and_verifies(self):
        tx = self._create(10, message="thanks")
        assert tx.message == "thanks"
        assert verify_transaction(tx)

    def test_empty_message_dropped(self):
        assert "message" not in self._create(1, message="").to_dict()


class TestWireFormat:

    def test_to_dict_order(self):
        tx = _tx(message="m", signature="s", public_key="p")
        assert list(tx.to_dict()) == [
            "from", "to_", "amount", "nonce", "ou", "timestamp",
            "message", "signature", "public_key",
        ]

    def test_from_dict_roundtrip(self):
        tx = _tx(message="m", signature="s", public_key="p")
        assert Transaction.from_dict(tx.to_dict()) == tx

    def test_to_json_compact(self):
        assert " " not in _tx().to_json()
