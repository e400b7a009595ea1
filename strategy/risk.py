# PATH: strategy/risk.py
"""
Pre-trade risk validation for CROSSARB.

RISK CONTRACT:
==============
0. Circuit breaker active      -> reject, score 100, nothing else checked
1. position_size > max          -> issue, +40
   otherwise                       +round(position_size / max * 20)
2. exposure + size > ceiling     -> issue, +30
   (ceiling = max_position_size * exposure_multiplier)
3. |daily_loss| > loss allowance -> issue, +30
   (allowance = max_position_size * max_daily_loss_percent / 100)
4. available funds < required    -> issue, +20
   allowance below required      -> warning (approval needed)
   (only when a balance source is configured)

Score is clamped to [0, 100]. Warnings never reject.
==============
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from core.constants import (
    RISK_BALANCE_PENALTY,
    RISK_DAILY_LOSS_PENALTY,
    RISK_EXPOSURE_PENALTY,
    RISK_OVERSIZE_PENALTY,
    RISK_PROPORTIONAL_WEIGHT,
    RISK_SCORE_MAX,
)
from core.logging import get_logger
from core.models import ZERO, FundsSnapshot, RiskAssessment, RiskState
from strategy.config import RiskLimits

logger = get_logger("crossarb.risk")

WARNING_EXPOSURE_FRACTION = Decimal("0.5")
WARNING_LOSS_REMAINING_FRACTION = Decimal("0.5")


def clamp_score(score: int) -> int:
    return max(0, min(RISK_SCORE_MAX, score))


class RiskValidator:
    """
    Evaluates a proposed trade against the current RiskState.

    Stateless: the same (position_size, state) always gives the same
    assessment.
    """

    def __init__(self, limits: Optional[RiskLimits] = None):
        self.limits = limits or RiskLimits()

    def daily_loss_remaining(self, state: RiskState) -> Decimal:
        return max(ZERO, self.limits.max_daily_loss - abs(state.daily_loss))

    def validate(
        self,
        position_size: Decimal,
        state: RiskState,
        funds: Optional[FundsSnapshot] = None,
        required: Optional[Decimal] = None,
    ) -> RiskAssessment:
        """
        Assess one trade attempt.

        Args:
            position_size: Proposed size in quote currency
            state: Current risk ledger
            funds: Spendable balance of the input token, when a balance
                source is configured
            required: Input token amount the trade spends (defaults to
                position_size)

        Returns:
            RiskAssessment; is_valid only when no issue was raised
        """
        limits = self.limits
        exposure_after = state.current_exposure + position_size
        loss_remaining = self.daily_loss_remaining(state)

        if state.circuit_breaker_active:
            return RiskAssessment(
                is_valid=False,
                risk_score=RISK_SCORE_MAX,
                portfolio_exposure_after=state.current_exposure,
                daily_loss_remaining=loss_remaining,
                issues=("Circuit breaker active: trading halted until daily reset",),
                circuit_breaker=True,
                funds=funds,
            )

        issues: List[str] = []
        warnings: List[str] = []
        score = 0

        if position_size <= 0:
            issues.append(f"Position size {position_size} must be positive")

        if position_size > limits.max_position_size:
            issues.append(
                f"Position size {position_size} exceeds max {limits.max_position_size}"
            )
            score += RISK_OVERSIZE_PENALTY
        elif position_size > 0:
            proportional = position_size / limits.max_position_size * RISK_PROPORTIONAL_WEIGHT
            score += int(proportional.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

        ceiling = limits.exposure_ceiling
        if exposure_after > ceiling:
            issues.append(
                f"Exposure after trade {exposure_after} exceeds ceiling {ceiling}"
            )
            score += RISK_EXPOSURE_PENALTY
        elif exposure_after > ceiling * WARNING_EXPOSURE_FRACTION:
            warnings.append(
                f"Exposure after trade {exposure_after} above "
                f"{int(WARNING_EXPOSURE_FRACTION * 100)}% of ceiling {ceiling}"
            )

        if abs(state.daily_loss) > limits.max_daily_loss:
            issues.append(
                f"Daily loss {abs(state.daily_loss)} exceeds allowance {limits.max_daily_loss}"
            )
            score += RISK_DAILY_LOSS_PENALTY
        elif loss_remaining < limits.max_daily_loss * WARNING_LOSS_REMAINING_FRACTION:
            warnings.append(
                f"Only {loss_remaining} of daily loss allowance {limits.max_daily_loss} remaining"
            )

        if funds is not None:
            needed = position_size if required is None else required
            if funds.available < needed:
                issues.append(
                    f"Insufficient {funds.source} balance: {funds.available} < {needed} of {funds.token}"
                )
                score += RISK_BALANCE_PENALTY
            if funds.allowance is not None and funds.allowance < needed:
                warnings.append(f"Approval needed: allowance {funds.allowance} < {needed} of {funds.token}")

        assessment = RiskAssessment(
            is_valid=not issues,
            risk_score=clamp_score(score),
            portfolio_exposure_after=exposure_after,
            daily_loss_remaining=loss_remaining,
            issues=tuple(issues),
            warnings=tuple(warnings),
            funds=funds,
        )

        if issues:
            logger.info(
                "Risk check rejected trade",
                extra={"context": {
                    "position_size": str(position_size),
                    **state.to_dict(),
                    **assessment.to_dict(),
                }},
            )

        return assessment
