# PATH: strategy/performance.py
"""
Performance tracking for CROSSARB.

Folds each terminal ExecutionResult into the RiskState. RiskState is
immutable: every method returns a new instance and never touches the
one it was given.

LEDGER CONTRACT:
================
total_trades   += 1 per terminal result (confirmed or failed)
win_count      += 1 iff profit > 0
total_profit   += profit
daily_loss     += min(0, profit)
exposure       += position_size when the trade confirmed
               -= position_size when its settlement confirmed
               (failed settlement keeps the position open until
               release_exposure)
exposure never goes below 0.
circuit_breaker_active latches once daily_loss < -allowance and stays on
until daily_reset().
================
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from core.constants import CycleOutcome, SettlementStatus
from core.exceptions import ExecutionError
from core.logging import get_logger
from core.models import ZERO, CycleReport, ExecutionResult, RiskState
from core.time import utc_day
from strategy.config import RiskLimits

logger = get_logger("crossarb.performance")


class PerformanceTracker:
    """Pure transitions over RiskState."""

    def __init__(self, limits: Optional[RiskLimits] = None):
        self.limits = limits or RiskLimits()

    def apply(self, state: RiskState, result: ExecutionResult) -> RiskState:
        """
        Fold one execution result into the ledger.

        Raises:
            ExecutionError: result is still pending
        """
        if not result.is_terminal:
            raise ExecutionError(
                f"Cannot account for non-terminal trade {result.trade_id}",
                details=result.to_dict(),
            )

        profit = result.profit
        exposure = state.current_exposure
        if result.is_confirmed:
            exposure += result.position_size
            if result.settlement_status == SettlementStatus.CONFIRMED:
                exposure -= result.position_size
        exposure = max(ZERO, exposure)

        daily_loss = state.daily_loss + min(ZERO, profit)
        tripped = daily_loss < -self.limits.max_daily_loss
        breaker = state.circuit_breaker_active or tripped

        new_state = state.evolve(
            current_exposure=exposure,
            daily_loss=daily_loss,
            total_trades=state.total_trades + 1,
            win_count=state.win_count + (1 if profit > 0 else 0),
            total_profit=state.total_profit + profit,
            circuit_breaker_active=breaker,
        )

        if breaker and not state.circuit_breaker_active:
            logger.warning(
                "Circuit breaker tripped",
                extra={"context": {
                    "trade_id": result.trade_id,
                    "daily_loss": str(daily_loss),
                    "allowance": str(self.limits.max_daily_loss),
                }},
            )
        if result.is_partial_failure:
            logger.warning(
                "Settlement failed; position stays open",
                extra={"context": {
                    "trade_id": result.trade_id,
                    "position_size": str(result.position_size),
                    "current_exposure": str(exposure),
                }},
            )

        return new_state

    def release_exposure(self, state: RiskState, amount: Decimal) -> RiskState:
        """Close (part of) an open position, e.g. after manual reconciliation."""
        return state.evolve(current_exposure=max(ZERO, state.current_exposure - amount))

    def daily_reset(self, state: RiskState, day: Optional[str] = None) -> RiskState:
        """Zero daily loss and clear the breaker. Totals and exposure are kept."""
        new_day = day or utc_day()
        logger.info(
            "Daily risk reset",
            extra={"context": {
                "previous_day": state.trading_day,
                "trading_day": new_day,
                "daily_loss": str(state.daily_loss),
                "circuit_breaker_was_active": state.circuit_breaker_active,
            }},
        )
        return state.evolve(
            daily_loss=ZERO,
            circuit_breaker_active=False,
            trading_day=new_day,
        )

    def roll_day(self, state: RiskState, day: Optional[str] = None) -> RiskState:
        """daily_reset() if the UTC day changed, otherwise the same state."""
        today = day or utc_day()
        if today != state.trading_day:
            return self.daily_reset(state, today)
        return state


@dataclass
class SessionStats:
    """Per-process counters of cycle outcomes. Not part of the risk ledger."""
    cycles: int = 0
    skipped: int = 0
    invalid_data: int = 0
    rejected: int = 0
    confirmed: int = 0
    failed: int = 0
    partial_settlements: int = 0

    def record(self, report: CycleReport) -> None:
        self.cycles += 1
        if report.outcome == CycleOutcome.SKIPPED:
            self.skipped += 1
            if report.invalid_data:
                self.invalid_data += 1
        elif report.outcome == CycleOutcome.REJECTED:
            self.rejected += 1
        elif report.outcome == CycleOutcome.FAILED:
            self.failed += 1
        elif report.outcome == CycleOutcome.CONFIRMED:
            self.confirmed += 1
            if report.execution is not None and report.execution.is_partial_failure:
                self.partial_settlements += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycles": self.cycles,
            "skipped": self.skipped,
            "invalid_data": self.invalid_data,
            "rejected": self.rejected,
            "confirmed": self.confirmed,
            "failed": self.failed,
            "partial_settlements": self.partial_settlements,
        }
