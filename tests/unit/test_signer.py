"""
Unit tests for settlement signing and nonces.
"""

from dataclasses import replace

import pytest

from conftest import QUOTE_TOKEN, RECIPIENT, TEST_PRIVATE_KEY, TEST_SIGNER_ADDRESS
from core.constants import ErrorCode
from core.exceptions import SettlementError, SigningError
from execution.signer import (
    NonceRegistry,
    SettlementSigner,
    settlement_hash,
    verify_settlement,
)

NONCE = "0x" + "ab" * 32


class TestNonceRegistry:
    """Single-use nonces."""

    def test_ten_thousand_nonces_unique(self):
        registry = NonceRegistry()
        nonces = {registry.issue() for _ in range(10_000)}

        assert len(nonces) == 10_000
        assert len(registry) == 10_000
        assert all(len(n) == 66 and n.startswith("0x") for n in nonces)

    def test_consume_once(self):
        registry = NonceRegistry()
        nonce = registry.issue()

        registry.consume(nonce)
        assert registry.is_consumed(nonce)

        with pytest.raises(SettlementError) as exc_info:
            registry.consume(nonce)
        assert exc_info.value.code == ErrorCode.NONCE_REUSED

    def test_unknown_nonce_refused(self):
        with pytest.raises(SettlementError) as exc_info:
            NonceRegistry().consume(NONCE)
        assert exc_info.value.code == ErrorCode.NONCE_REUSED


class TestSettlementHash:
    """Packed encoding."""

    def test_deterministic(self):
        assert settlement_hash(QUOTE_TOKEN, 1000, RECIPIENT, NONCE) == settlement_hash(
            QUOTE_TOKEN, 1000, RECIPIENT, NONCE
        )

    def test_every_field_changes_hash(self):
        base = settlement_hash(QUOTE_TOKEN, 1000, RECIPIENT, NONCE)

        assert settlement_hash(QUOTE_TOKEN, 1001, RECIPIENT, NONCE) != base
        assert settlement_hash(RECIPIENT, 1000, RECIPIENT, NONCE) != base
        assert settlement_hash(QUOTE_TOKEN, 1000, QUOTE_TOKEN, NONCE) != base
        assert settlement_hash(QUOTE_TOKEN, 1000, RECIPIENT, "0x" + "cd" * 32) != base

    def test_order_sensitive(self):
        assert settlement_hash(QUOTE_TOKEN, 1, RECIPIENT, NONCE) != settlement_hash(
            RECIPIENT, 1, QUOTE_TOKEN, NONCE
        )

    def test_case_insensitive_addresses(self):
        assert settlement_hash(QUOTE_TOKEN.lower(), 5, RECIPIENT, NONCE) == settlement_hash(
            QUOTE_TOKEN, 5, RECIPIENT, NONCE
        )

    @pytest.mark.parametrize("nonce", ["0x1234", "0x" + "zz" * 32])
    def test_bad_nonce(self, nonce):
        with pytest.raises(ValueError):
            settlement_hash(QUOTE_TOKEN, 1, RECIPIENT, nonce)

    def test_negative_amount(self):
        with pytest.raises(ValueError):
            settlement_hash(QUOTE_TOKEN, -1, RECIPIENT, NONCE)


class TestSettlementSigner:
    """Signing and recovery."""

    def test_signer_address(self):
        assert SettlementSigner(TEST_PRIVATE_KEY).address == TEST_SIGNER_ADDRESS

    @pytest.mark.parametrize("key", ["", "0x1234", "not-a-key"])
    def test_bad_key_is_signing_error(self, key):
        with pytest.raises(SigningError) as exc_info:
            SettlementSigner(key)
        assert exc_info.value.code == ErrorCode.SIGNING_FAILED
        if key:
            assert key not in str(exc_info.value)

    def test_sign_payload_is_pure(self, signer):
        one = signer.sign_payload(QUOTE_TOKEN, 1000, RECIPIENT, NONCE)
        two = signer.sign_payload(QUOTE_TOKEN, 1000, RECIPIENT, NONCE)

        assert one == two
        assert one.payload_hash == "0x" + settlement_hash(QUOTE_TOKEN, 1000, RECIPIENT, NONCE).hex()
        assert one.signer == TEST_SIGNER_ADDRESS

    def test_signature_recovers_signer(self, signer):
        payload = signer.sign(QUOTE_TOKEN, 123456, RECIPIENT)
        assert verify_settlement(payload)

    def test_sign_uses_fresh_nonce(self, signer):
        one = signer.sign(QUOTE_TOKEN, 1, RECIPIENT)
        two = signer.sign(QUOTE_TOKEN, 1, RECIPIENT)

        assert one.nonce != two.nonce
        assert one.signature != two.signature

    def test_tampered_payload_fails_verification(self, signer):
        payload = signer.sign(QUOTE_TOKEN, 1000, RECIPIENT)

        assert not verify_settlement(replace(payload, amount=1001))
        assert not verify_settlement(replace(payload, recipient=QUOTE_TOKEN))
        assert not verify_settlement(replace(payload, signer=RECIPIENT))
        assert not verify_settlement(replace(payload, signature="0xdead"))

    def test_invalid_inputs_raise_signing_error(self, signer):
        with pytest.raises(SigningError):
            signer.sign_payload("0xnot-an-address", 1, RECIPIENT, NONCE)
