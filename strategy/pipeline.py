# PATH: strategy/pipeline.py
"""
One decision cycle of CROSSARB.

CYCLE CONTRACT:
===============
observe -> analyze -> (skip if unprofitable) -> advisory -> funds -> risk
        -> sign -> execute -> account

- Phases run strictly in sequence; each collaborator call is awaited.
- Every cycle ends in exactly one outcome with a reason code:
    SKIPPED   infra failure (including any unexpected collaborator error),
              invalid market data, not profitable
    REJECTED  advisory or risk said no
    FAILED    trade refused, reverted, or errored
              (only a submitted trade is folded into the RiskState)
    CONFIRMED trade confirmed (settlement may still have failed)
- The RiskState passed in is never mutated. The state returned is the one
  the caller must use for the next cycle.
- SigningError is not caught here: broken key material stops the process.
===============
"""

import asyncio
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from chains.interfaces import BalanceSource, GasEstimator, PoolQuoter, PriceSource, from_raw_amount
from core.constants import CycleOutcome, ErrorCode, EventType
from core.exceptions import ExecutionError, InfraError, InvalidMarketDataError
from core.logging import get_logger
from core.models import (
    AdvisoryContext,
    ArbitrageOpportunity,
    CycleReport,
    FundsSnapshot,
    MarketSnapshot,
    RiskState,
    TradeRequest,
)
from core.time import now_timestamp
from execution.coordinator import ExecutionCoordinator, build_trade_request
from execution.signer import SettlementSigner
from monitoring.events import EventPublisher
from strategy.advisory import AdvisoryGate, PriceHistory
from strategy.config import AgentConfig
from strategy.performance import PerformanceTracker
from strategy.risk import RiskValidator
from strategy.spread import SpreadAnalyzer

logger = get_logger("crossarb.pipeline")


class ArbitragePipeline:
    """
    Wires the decision components for one trading pair.

    Owns no risk state; run_cycle() takes the current RiskState and
    returns the next one.
    """

    def __init__(
        self,
        config: AgentConfig,
        price_source: PriceSource,
        pool_quoter: PoolQuoter,
        gas_estimator: GasEstimator,
        advisory: AdvisoryGate,
        signer: SettlementSigner,
        coordinator: ExecutionCoordinator,
        events: Optional[EventPublisher] = None,
        price_history: Optional[PriceHistory] = None,
        balance_source: Optional[BalanceSource] = None,
    ):
        self.config = config
        self.price_source = price_source
        self.pool_quoter = pool_quoter
        self.gas_estimator = gas_estimator
        self.advisory = advisory
        self.signer = signer
        self.coordinator = coordinator
        self.events = events or EventPublisher()
        self.price_history = price_history or PriceHistory()
        self.balance_source = balance_source

        self.analyzer = SpreadAnalyzer(config.spread)
        self.risk = RiskValidator(config.risk)
        self.tracker = PerformanceTracker(config.risk)

    async def observe(self) -> MarketSnapshot:
        """
        Collect CEX price, DEX price for one base unit, and gas cost.

        The snapshot is stamped with the CEX quote time so a stale ticker
        shows up as a stale snapshot.

        Raises:
            InfraError: any collaborator failed
        """
        execution = self.config.execution
        symbol = self.config.loop.symbol

        cex_quote = await self.price_source.get_price(symbol)

        one_base = 10 ** execution.base_decimals
        raw_out = await self.pool_quoter.get_pool_quote(
            execution.base_token, execution.quote_token, one_base
        )
        dex_price = from_raw_amount(raw_out, execution.quote_decimals)

        gas = await self.gas_estimator.estimate_gas(execution.gas_units)

        return MarketSnapshot(
            cex_price=cex_quote.price,
            dex_price=dex_price,
            gas_cost_estimate=gas.cost_in_quote,
            captured_at=min(cex_quote.timestamp, now_timestamp()),
            symbol=symbol,
        )

    def advisory_context(self, opportunity: ArbitrageOpportunity, state: RiskState) -> AdvisoryContext:
        return AdvisoryContext(
            volatility_percent=self.price_history.volatility_percent(),
            historical_win_rate=state.win_rate,
            current_exposure=state.current_exposure,
            position_size=opportunity.position_size,
            gas_cost=opportunity.snapshot.gas_cost_estimate if opportunity.snapshot else Decimal("0"),
        )

    def _finish(
        self,
        report: CycleReport,
        outcome: CycleOutcome,
        reason: str,
        code: Optional[ErrorCode] = None,
    ) -> CycleReport:
        report.outcome = outcome
        report.reason = reason
        report.code = code
        report.finished_at = now_timestamp()

        if outcome in (CycleOutcome.SKIPPED, CycleOutcome.REJECTED):
            self.events.publish(EventType.TRADE_SKIPPED, {
                "cycle": report.cycle,
                "outcome": outcome.value,
                "code": code.value if code else None,
                "reason": reason,
            })

        logger.info(
            f"Cycle {report.cycle}: {outcome.value} ({code.value if code else 'OK'})",
            extra={"context": {
                "cycle": report.cycle,
                "outcome": outcome.value,
                "code": code.value if code else None,
                "reason": reason,
                "duration_ms": int((report.finished_at - report.started_at) * 1000),
            }},
        )
        return report

    async def run_cycle(self, cycle: int, state: RiskState) -> Tuple[CycleReport, RiskState]:
        """
        Run one full decision cycle.

        Returns:
            (report, next_state)

        Raises:
            SigningError: settlement could not be signed (fatal)
        """
        report = CycleReport(cycle=cycle, outcome=CycleOutcome.SKIPPED, reason="")
        position_size = self.config.execution.position_size

        # 1. Observe
        try:
            snapshot = await self.observe()
        except InfraError as e:
            logger.warning(
                f"Market observation failed: {e.message}",
                extra={"context": {"cycle": cycle, **e.to_dict()}},
            )
            return self._finish(report, CycleOutcome.SKIPPED, e.message, e.code), state
        except Exception as e:
            code = ErrorCode.INFRA_TIMEOUT if isinstance(e, asyncio.TimeoutError) else ErrorCode.INFRA_RPC_ERROR
            logger.error(
                f"Market observation failed: {e}",
                extra={"context": {
                    "cycle": cycle,
                    "symbol": self.config.loop.symbol,
                    "error_type": type(e).__name__,
                    "code": code.value,
                }},
                exc_info=True,
            )
            return self._finish(report, CycleOutcome.SKIPPED, f"{type(e).__name__}: {e}", code), state
        report.snapshot = snapshot

        # 2. Analyze
        try:
            opportunity = self.analyzer.analyze(snapshot, position_size)
        except InvalidMarketDataError as e:
            logger.warning(
                f"Invalid market data: {e.message}",
                extra={"context": {"cycle": cycle, **e.to_dict()}},
            )
            return self._finish(report, CycleOutcome.SKIPPED, e.message, e.code), state
        except Exception as e:
            logger.error(
                f"Market data could not be evaluated: {e}",
                extra={"context": {
                    "cycle": cycle,
                    "error_type": type(e).__name__,
                    **snapshot.to_dict(),
                }},
                exc_info=True,
            )
            return self._finish(
                report,
                CycleOutcome.SKIPPED,
                f"{type(e).__name__}: {e}",
                ErrorCode.INVALID_MARKET_DATA,
            ), state
        report.opportunity = opportunity
        self.price_history.record((snapshot.cex_price + snapshot.dex_price) / 2)

        self.events.publish(EventType.OPPORTUNITY_DETECTED, {"cycle": cycle, **opportunity.to_dict()})

        if not opportunity.is_profitable:
            return self._finish(
                report,
                CycleOutcome.SKIPPED,
                f"Net profit {opportunity.net_profit} not positive "
                f"(spread {opportunity.spread_percent:.4f}%)",
                ErrorCode.NOT_PROFITABLE,
            ), state

        # 3. Advisory
        verdict = await self.advisory.review(opportunity, self.advisory_context(opportunity, state))
        report.advisory = verdict
        if not verdict.approved:
            return self._finish(
                report,
                CycleOutcome.REJECTED,
                verdict.reasoning or "Advisory rejected",
                verdict.code or ErrorCode.ADVISORY_REJECTED,
            ), state

        request = build_trade_request(opportunity, self.config.execution)

        # 4. Funds
        funds: Optional[FundsSnapshot] = None
        if self.balance_source is not None:
            try:
                funds = await self.balance_source.get_funds(
                    request.token_in, self.config.execution.router
                )
            except InfraError as e:
                logger.warning(
                    f"Balance lookup failed: {e.message}",
                    extra={"context": {"cycle": cycle, "token": request.token_in, **e.to_dict()}},
                )
                return self._finish(report, CycleOutcome.SKIPPED, e.message, e.code), state
            except Exception as e:
                logger.error(
                    f"Balance lookup failed: {e}",
                    extra={"context": {
                        "cycle": cycle,
                        "token": request.token_in,
                        "error_type": type(e).__name__,
                    }},
                    exc_info=True,
                )
                return self._finish(
                    report,
                    CycleOutcome.SKIPPED,
                    f"{type(e).__name__}: {e}",
                    ErrorCode.INFRA_RPC_ERROR,
                ), state

        # 5. Risk
        assessment = self.risk.validate(position_size, state, funds, self._amount_in(request))
        report.risk = assessment
        for warning in assessment.warnings:
            self.events.publish(EventType.RISK_WARNING, {
                "cycle": cycle,
                "warning": warning,
                "risk_score": assessment.risk_score,
            })
        if not assessment.is_valid:
            code = ErrorCode.CIRCUIT_BREAKER_ACTIVE if assessment.circuit_breaker else ErrorCode.RISK_REJECTED
            return self._finish(report, CycleOutcome.REJECTED, assessment.reason, code), state

        # 6. Sign (SigningError propagates)
        settlement = self.signer.sign(
            token=request.token_out,
            amount=request.min_amount_out,
            recipient=self.config.execution.recipient,
        )
        report.settlement = settlement

        # 7. Execute
        self.events.publish(EventType.TRADE_EXECUTING, {"cycle": cycle, **request.to_dict()})
        try:
            result = await self.coordinator.execute(request, settlement)
        except ExecutionError as e:
            logger.error(
                f"Execution refused: {e.message}",
                extra={"context": {"cycle": cycle, **e.to_dict()}},
            )
            return self._finish(report, CycleOutcome.FAILED, e.message, e.code), state
        report.execution = result

        if not result.submitted:
            # Nothing reached the chain: no exposure, no trade count
            self.events.publish(EventType.TRADE_COMPLETED, {
                "cycle": cycle,
                **result.to_dict(),
                "risk_state": state.to_dict(),
            })
            report.details = self._details(result.to_dict(), state)
            return self._finish(
                report,
                CycleOutcome.FAILED,
                result.error or "Trade not submitted",
                result.error_code or ErrorCode.EXECUTION_ERROR,
            ), state

        # 8. Account
        next_state = self.tracker.apply(state, result)
        self.events.publish(EventType.TRADE_COMPLETED, {
            "cycle": cycle,
            **result.to_dict(),
            "risk_state": next_state.to_dict(),
        })

        if result.is_confirmed:
            reason = "Trade confirmed"
            if result.is_partial_failure:
                reason = f"Trade confirmed; settlement failed: {result.error}"
            report.details = self._details(result.to_dict(), next_state)
            return self._finish(report, CycleOutcome.CONFIRMED, reason, result.error_code), next_state

        report.details = self._details(result.to_dict(), next_state)
        return self._finish(
            report,
            CycleOutcome.FAILED,
            result.error or "Trade failed",
            result.error_code or ErrorCode.EXECUTION_ERROR,
        ), next_state

    def _amount_in(self, request: TradeRequest) -> Decimal:
        """Input token amount of the request in token units."""
        execution = self.config.execution
        if request.token_in.lower() == execution.base_token.lower():
            return from_raw_amount(request.amount_in, execution.base_decimals)
        return from_raw_amount(request.amount_in, execution.quote_decimals)

    @staticmethod
    def _details(result: Dict[str, Any], state: RiskState) -> Dict[str, Any]:
        return {"profit": result["profit"], "efficiency": result["efficiency"], "risk_state": state.to_dict()}
