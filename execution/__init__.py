# PATH: execution/__init__.py
"""
CROSSARB execution layer.

- state_machine: Trade state machine with transitions
- signer: Settlement payload signing and single-use nonces
- coordinator: Trade + settlement submission, normalized results
"""

from execution.state_machine import (
    TradeState,
    TradeStateMachine,
    StateTransition,
    InvalidTransitionError,
    VALID_TRANSITIONS,
)
from execution.signer import (
    NonceRegistry,
    SettlementSigner,
    settlement_hash,
    verify_settlement,
)
from execution.coordinator import (
    ExecutionCoordinator,
    build_trade_request,
    validate_request,
)

__all__ = [
    # State machine
    "TradeState",
    "TradeStateMachine",
    "StateTransition",
    "InvalidTransitionError",
    "VALID_TRANSITIONS",
    # Signing
    "NonceRegistry",
    "SettlementSigner",
    "settlement_hash",
    "verify_settlement",
    # Coordinator
    "ExecutionCoordinator",
    "build_trade_request",
    "validate_request",
]
