# PATH: strategy/advisory.py
"""
Advisory gate for CROSSARB.

Wraps an external advisory service (a second opinion on an opportunity)
with a confidence floor, a finite timeout and an explicit fallback policy.

ADVISORY CONTRACT:
==================
Service reachable, response parsed:
    approve iff shouldExecute and confidence >= confidence_floor
Service unavailable / timed out / malformed:
    fallback=reject   -> reject (ADVISORY_UNAVAILABLE / ADVISORY_MALFORMED)
    fallback=proceed  -> approve only when the rule-based recommendation is BUY
Advisory disabled (or no service wired):
    same rule-based check as fallback=proceed
==================
"""

import asyncio
import json
import re
import statistics
from collections import deque
from decimal import Decimal
from typing import Any, Deque, Dict, Mapping, Optional, Union

from chains.interfaces import AdvisoryService
from core.constants import AdvisoryFallback, AdvisorySource, ErrorCode, Recommendation
from core.exceptions import AdvisoryError
from core.logging import get_logger
from core.models import ZERO, AdvisoryContext, AdvisoryDecision, AdvisoryVerdict, ArbitrageOpportunity
from strategy.config import AdvisoryConfig

logger = get_logger("crossarb.advisory")

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def _extract_object(raw: str) -> Dict[str, Any]:
    text = raw.strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Models like to wrap JSON in prose or code fences
        match = _JSON_OBJECT_RE.search(text)
        if not match:
            raise AdvisoryError(
                "Advisory response contains no JSON object",
                code=ErrorCode.ADVISORY_MALFORMED,
                details={"raw": text[:500]},
            )
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise AdvisoryError(
                f"Advisory response is not valid JSON: {e}",
                code=ErrorCode.ADVISORY_MALFORMED,
                details={"raw": text[:500]},
            ) from e

    if not isinstance(data, dict):
        raise AdvisoryError(
            "Advisory response is not a JSON object",
            code=ErrorCode.ADVISORY_MALFORMED,
            details={"raw": text[:500]},
        )
    return data


def parse_advisory_response(raw: Union[str, bytes, Mapping[str, Any]]) -> AdvisoryDecision:
    """
    Parse {shouldExecute, confidence, reasoning, riskNote}, tolerating missing or mistyped fields.

    Raises:
        AdvisoryError(ADVISORY_MALFORMED): missing or mistyped fields
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    data = dict(raw) if isinstance(raw, Mapping) else _extract_object(str(raw))

    should_execute = data.get("shouldExecute", data.get("should_execute"))
    if not isinstance(should_execute, bool):
        raise AdvisoryError(
            "Advisory response missing boolean shouldExecute",
            code=ErrorCode.ADVISORY_MALFORMED,
            details={"response": data},
        )

    confidence = data.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise AdvisoryError(
            "Advisory response missing numeric confidence",
            code=ErrorCode.ADVISORY_MALFORMED,
            details={"response": data},
        )

    return AdvisoryDecision(
        should_execute=should_execute,
        confidence=max(0, min(100, int(round(confidence)))),
        reasoning=str(data.get("reasoning") or ""),
        risk_note=str(data.get("riskNote") or data.get("risk_note") or ""),
    )


def build_request(opportunity: ArbitrageOpportunity, context: AdvisoryContext) -> Dict[str, Any]:
    return {
        "opportunity": opportunity.to_dict(),
        "context": context.to_dict(),
    }


class AdvisoryGate:
    """Second-opinion gate between spread analysis and risk validation."""

    def __init__(
        self,
        service: Optional[AdvisoryService],
        config: Optional[AdvisoryConfig] = None,
    ):
        self.service = service
        self.config = config or AdvisoryConfig()

    def _rule_based(
        self,
        opportunity: ArbitrageOpportunity,
        source: AdvisorySource,
        code: Optional[ErrorCode],
        reasoning: str,
    ) -> AdvisoryVerdict:
        approved = opportunity.recommendation == Recommendation.BUY
        return AdvisoryVerdict(
            approved=approved,
            source=source,
            confidence=opportunity.confidence,
            reasoning=reasoning,
            code=None if approved else (code or ErrorCode.ADVISORY_REJECTED),
        )

    async def review(
        self,
        opportunity: ArbitrageOpportunity,
        context: AdvisoryContext,
    ) -> AdvisoryVerdict:
        """
        Ask the advisory service about an opportunity.

        Never raises for service problems; they are turned into a verdict
        according to the configured fallback.
        """
        if not self.config.enabled or self.service is None:
            return self._rule_based(
                opportunity,
                AdvisorySource.DISABLED,
                ErrorCode.ADVISORY_REJECTED,
                f"Advisory disabled; rule-based recommendation {opportunity.recommendation.value}",
            )

        request = build_request(opportunity, context)
        try:
            raw = await asyncio.wait_for(
                self.service.evaluate(request),
                timeout=self.config.timeout_seconds,
            )
            decision = parse_advisory_response(raw)
        except asyncio.TimeoutError:
            return self._fallback(
                opportunity,
                AdvisoryError(
                    f"Advisory timed out after {self.config.timeout_seconds}s",
                    details={"timeout_seconds": self.config.timeout_seconds},
                ),
                request,
            )
        except AdvisoryError as e:
            return self._fallback(opportunity, e, request)
        except Exception as e:
            return self._fallback(
                opportunity,
                AdvisoryError(f"Advisory call failed: {e}", details={"error_type": type(e).__name__}),
                request,
            )

        if not decision.should_execute:
            code = ErrorCode.ADVISORY_REJECTED
        elif decision.confidence < self.config.confidence_floor:
            code = ErrorCode.ADVISORY_LOW_CONFIDENCE
        else:
            code = None

        verdict = AdvisoryVerdict(
            approved=code is None,
            source=AdvisorySource.SERVICE,
            confidence=decision.confidence,
            reasoning=decision.reasoning,
            risk_note=decision.risk_note,
            code=code,
        )
        logger.info(
            "Advisory verdict",
            extra={"context": {**verdict.to_dict(), "confidence_floor": self.config.confidence_floor}},
        )
        return verdict

    def _fallback(
        self,
        opportunity: ArbitrageOpportunity,
        error: AdvisoryError,
        request: Dict[str, Any],
    ) -> AdvisoryVerdict:
        logger.warning(
            f"Advisory unavailable, applying fallback={self.config.fallback.value}",
            extra={"context": {
                **error.to_dict(),
                "fallback": self.config.fallback.value,
                "request": request,
            }},
        )
        if self.config.fallback == AdvisoryFallback.PROCEED:
            return self._rule_based(
                opportunity,
                AdvisorySource.FALLBACK,
                error.code,
                f"Advisory unavailable ({error.code.value}); "
                f"rule-based recommendation {opportunity.recommendation.value}",
            )
        return AdvisoryVerdict(
            approved=False,
            source=AdvisorySource.FALLBACK,
            confidence=0,
            reasoning=f"Advisory unavailable: {error.message}",
            code=error.code,
        )


class PriceHistory:
    """
    Rolling window of mid prices for the advisory volatility input.

    Volatility is the population standard deviation of cycle-to-cycle
    returns, in percent.
    """

    def __init__(self, window: int = 20):
        self._prices: Deque[Decimal] = deque(maxlen=window)

    def __len__(self) -> int:
        return len(self._prices)

    def record(self, price: Decimal) -> None:
        if price > 0:
            self._prices.append(price)

    def volatility_percent(self) -> Decimal:
        if len(self._prices) < 3:
            return ZERO
        prices = list(self._prices)
        returns = [(b - a) / a for a, b in zip(prices, prices[1:])]
        return statistics.pstdev(returns) * Decimal("100")
