# PATH: execution/signer.py
"""
Settlement signing for CROSSARB.

SETTLEMENT CONTRACT:
====================
payload_hash = keccak256(abi.encodePacked(
    address token, uint256 amount, address recipient, bytes32 nonce))
signature    = EIP-191 personal_sign over the 32-byte payload_hash

- Field order and encoding are fixed; the same inputs always give the
  same hash and (ECDSA is deterministic under RFC 6979) the same signature.
- Nonces are 32 random bytes from `secrets`, issued once by NonceRegistry
  and consumed at most once by a settlement submission.
- Any signing failure raises SigningError, which stops the process.
====================
"""

import secrets
from typing import Optional, Set

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from core.constants import NONCE_BYTES, ErrorCode
from core.exceptions import SettlementError, SigningError
from core.logging import get_logger
from core.models import SettlementPayload

logger = get_logger("crossarb.signer")

_PACKED_TYPES = ["address", "uint256", "address", "bytes32"]
_UINT256_MAX = 2**256 - 1


def _hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()


def _nonce_bytes(nonce: str) -> bytes:
    raw = bytes.fromhex(nonce[2:] if nonce.startswith("0x") else nonce)
    if len(raw) != NONCE_BYTES:
        raise ValueError(f"nonce must be {NONCE_BYTES} bytes, got {len(raw)}")
    return raw


def settlement_hash(token: str, amount: int, recipient: str, nonce: str) -> bytes:
    """
    keccak256 of the packed settlement fields.

    Raises:
        ValueError: malformed address, amount out of uint256 range, bad nonce
    """
    if not 0 <= amount <= _UINT256_MAX:
        raise ValueError(f"amount {amount} out of uint256 range")
    return bytes(Web3.solidity_keccak(
        _PACKED_TYPES,
        [
            Web3.to_checksum_address(token),
            amount,
            Web3.to_checksum_address(recipient),
            _nonce_bytes(nonce),
        ],
    ))


def verify_settlement(payload: SettlementPayload) -> bool:
    """True when the hash matches the fields and the signature recovers to the signer."""
    try:
        expected = settlement_hash(payload.token, payload.amount, payload.recipient, payload.nonce)
        if _hex(expected) != payload.payload_hash.lower():
            return False
        recovered = Account.recover_message(
            encode_defunct(primitive=expected),
            signature=bytes.fromhex(payload.signature[2:]),
        )
    except Exception:
        # Malformed hex, bad signature bytes, invalid recovery id
        return False
    return recovered.lower() == payload.signer.lower()


class NonceRegistry:
    """
    Issues single-use settlement nonces and refuses reuse.

    issue()   -> fresh 32-byte hex nonce, never handed out twice
    consume() -> marks an issued nonce as spent; second call raises
    """

    def __init__(self):
        self._issued: Set[str] = set()
        self._consumed: Set[str] = set()

    def __len__(self) -> int:
        return len(self._issued)

    def issue(self) -> str:
        while True:
            nonce = _hex(secrets.token_bytes(NONCE_BYTES))
            if nonce not in self._issued:
                self._issued.add(nonce)
                return nonce

    def is_consumed(self, nonce: str) -> bool:
        return nonce.lower() in self._consumed

    def consume(self, nonce: str) -> None:
        """
        Raises:
            SettlementError(NONCE_REUSED): nonce unknown or already spent
        """
        key = nonce.lower()
        if key not in self._issued:
            raise SettlementError(
                "Settlement nonce was never issued",
                code=ErrorCode.NONCE_REUSED,
                details={"nonce": nonce},
            )
        if key in self._consumed:
            raise SettlementError(
                "Settlement nonce already consumed",
                code=ErrorCode.NONCE_REUSED,
                details={"nonce": nonce},
            )
        self._consumed.add(key)


class SettlementSigner:
    """Signs settlement payloads with the agent key."""

    def __init__(self, private_key: str, nonces: Optional[NonceRegistry] = None):
        if not private_key:
            raise SigningError("No settlement signing key configured")
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            # Never echo key material
            raise SigningError(f"Invalid settlement signing key: {type(e).__name__}") from e
        self.nonces = nonces or NonceRegistry()

    @property
    def address(self) -> str:
        return self._account.address

    def sign_payload(self, token: str, amount: int, recipient: str, nonce: str) -> SettlementPayload:
        """Pure function of the fields and the key."""
        try:
            digest = settlement_hash(token, amount, recipient, nonce)
            signed = self._account.sign_message(encode_defunct(primitive=digest))
        except (ValueError, TypeError) as e:
            raise SigningError(
                f"Failed to sign settlement: {e}",
                details={"token": token, "amount": str(amount), "recipient": recipient, "nonce": nonce},
            ) from e

        return SettlementPayload(
            token=Web3.to_checksum_address(token),
            amount=amount,
            recipient=Web3.to_checksum_address(recipient),
            nonce=nonce,
            payload_hash=_hex(digest),
            signature=_hex(signed.signature),
            signer=self.address,
        )

    def sign(self, token: str, amount: int, recipient: str) -> SettlementPayload:
        """Sign with a freshly issued nonce."""
        payload = self.sign_payload(token, amount, recipient, self.nonces.issue())
        logger.info(
            "Settlement signed",
            extra={"context": {
                "token": payload.token,
                "amount": str(payload.amount),
                "recipient": payload.recipient,
                "nonce": payload.nonce,
                "payload_hash": payload.payload_hash,
                "signer": payload.signer,
            }},
        )
        return payload
