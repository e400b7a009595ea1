# PATH: execution/state_machine.py
"""
Trade execution state machine.

EXECUTION STATE CONTRACT:
=========================

States (TradeState):
  BUILT      → trade request assembled, not yet validated or sent
  SUBMITTED  → transaction handed to the chain submitter
  CONFIRMED  → transaction confirmed on-chain
  FAILED     → refused before submission, reverted, or errored

Transitions:
  BUILT      → SUBMITTED  (submit)
  BUILT      → FAILED     (pre-submission validation failed)
  SUBMITTED  → CONFIRMED  (receipt confirmed)
  SUBMITTED  → FAILED     (receipt failed / submitter error)

CONFIRMED and FAILED are terminal; a FAILED trade is never retried.
Settlement happens after CONFIRMED and does not change the trade state.
=========================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class TradeState(str, Enum):
    """Trade execution states."""
    BUILT = "BUILT"
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


VALID_TRANSITIONS: Dict[TradeState, List[TradeState]] = {
    TradeState.BUILT: [TradeState.SUBMITTED, TradeState.FAILED],
    TradeState.SUBMITTED: [TradeState.CONFIRMED, TradeState.FAILED],
    TradeState.CONFIRMED: [],  # Terminal state
    TradeState.FAILED: [],  # Terminal state
}


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_state: TradeState
    to_state: TradeState
    timestamp: str = ""
    reason: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""
    pass


@dataclass
class TradeStateMachine:
    """
    State machine for one trade.

    Tracks current state and transition history.
    """
    trade_id: str
    state: TradeState = TradeState.BUILT
    history: List[StateTransition] = field(default_factory=list)
    created_at: str = ""

    def __post_init__(self):
        if not self.created_at:
            self.created_at = datetime.now(timezone.utc).isoformat()

    def can_transition_to(self, new_state: TradeState) -> bool:
        return new_state in VALID_TRANSITIONS.get(self.state, [])

    def transition_to(
        self,
        new_state: TradeState,
        reason: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StateTransition:
        """
        Transition to a new state.

        Raises InvalidTransitionError if transition is not valid.
        """
        if not self.can_transition_to(new_state):
            raise InvalidTransitionError(
                f"Cannot transition trade {self.trade_id} from {self.state.value} "
                f"to {new_state.value}. "
                f"Valid transitions: {[s.value for s in VALID_TRANSITIONS.get(self.state, [])]}"
            )

        transition = StateTransition(
            from_state=self.state,
            to_state=new_state,
            reason=reason,
            metadata=metadata or {},
        )
        self.history.append(transition)
        self.state = new_state
        return transition

    @property
    def is_terminal(self) -> bool:
        return len(VALID_TRANSITIONS.get(self.state, [])) == 0

    @property
    def was_submitted(self) -> bool:
        return any(t.to_state == TradeState.SUBMITTED for t in self.history)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "state": self.state.value,
            "is_terminal": self.is_terminal,
            "created_at": self.created_at,
            "history": [
                {
                    "from_state": t.from_state.value,
                    "to_state": t.to_state.value,
                    "timestamp": t.timestamp,
                    "reason": t.reason,
                    "metadata": t.metadata,
                }
                for t in self.history
            ],
        }
