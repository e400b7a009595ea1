# PATH: execution/coordinator.py
"""
Execution coordinator for CROSSARB.

Turns an approved opportunity into one on-chain trade and, when the trade
confirms, one settlement submission. Every attempt ends in exactly one
terminal ExecutionResult.

EXECUTION CONTRACT:
===================
- One logical trade <-> one submission. A trade id seen before raises
  ExecutionError(EXECUTION_DUPLICATE) and nothing is sent.
- Pre-submission validation (addresses, path >= 2 hops, positive amounts,
  positive min-out) failing -> FAILED with submitted=False. A submitter
  exception is reported the same way; neither counts as a trade.
- FAILED is terminal; never retried here.
- On CONFIRMED the settlement nonce is consumed, then the settlement is
  submitted. Settlement failure leaves the trade CONFIRMED with
  settlement_status=failed (partial failure).
- Profit is in quote currency, marked at the opposite venue's price:
    DEX buy  (quote -> base): amount_out * mark_price - position_size - gas
    DEX sell (base -> quote): amount_out - amount_in * mark_price - gas
- Efficiency = profit / gas_cost (0 when gas cost is 0).
===================
"""

import uuid
from decimal import Decimal
from typing import Dict, List, Optional

from chains.interfaces import ChainSubmitter, from_raw_amount, to_raw_amount
from core.constants import ErrorCode, SettlementStatus, TradeStatus, Venue
from core.exceptions import CrossArbError, ExecutionError, SettlementError
from core.logging import get_logger
from core.models import (
    ZERO,
    ArbitrageOpportunity,
    ExecutionResult,
    SettlementPayload,
    TradeReceipt,
    TradeRequest,
)
from core.validators import invalid_addresses
from execution.signer import NonceRegistry
from execution.state_machine import TradeState, TradeStateMachine
from strategy.config import ExecutionConfig

logger = get_logger("crossarb.execution")

BPS = Decimal("10000")


def build_trade_request(
    opportunity: ArbitrageOpportunity,
    config: ExecutionConfig,
    trade_id: Optional[str] = None,
) -> TradeRequest:
    """
    Build the on-chain leg of an opportunity.

    DEX is the buy venue  -> swap quote for base on the pool
    DEX is the sell venue -> swap base (bought on CEX) for quote
    min_amount_out = expected_out * (1 - slippage_bps / 10000)
    """
    slippage = Decimal(config.slippage_bps) / BPS
    size = opportunity.position_size

    if opportunity.buy_venue == Venue.DEX:
        path = (config.quote_token, config.base_token)
        amount_in = to_raw_amount(size, config.quote_decimals)
        expected_out = size / opportunity.buy_price
        min_amount_out = to_raw_amount(expected_out * (1 - slippage), config.base_decimals)
        mark_price = opportunity.sell_price
    else:
        path = (config.base_token, config.quote_token)
        base_amount = size / opportunity.buy_price
        amount_in = to_raw_amount(base_amount, config.base_decimals)
        expected_out = base_amount * opportunity.sell_price
        min_amount_out = to_raw_amount(expected_out * (1 - slippage), config.quote_decimals)
        mark_price = opportunity.buy_price

    return TradeRequest(
        trade_id=trade_id or uuid.uuid4().hex,
        token_in=path[0],
        token_out=path[-1],
        amount_in=amount_in,
        min_amount_out=min_amount_out,
        path=path,
        position_size=size,
        expected_profit=opportunity.net_profit,
        buy_venue=opportunity.buy_venue,
        mark_price=mark_price,
    )


def validate_request(request: TradeRequest) -> List[str]:
    """Return the list of problems; empty when the request can be submitted."""
    problems = []
    bad = invalid_addresses([request.token_in, request.token_out, *request.path])
    if bad:
        problems.append(f"Malformed addresses: {sorted(set(bad))}")
    if len(request.path) < 2:
        problems.append(f"Path needs at least 2 hops, got {len(request.path)}")
    elif request.path[0] != request.token_in or request.path[-1] != request.token_out:
        problems.append("Path endpoints do not match token_in/token_out")
    if request.amount_in <= 0:
        problems.append(f"amount_in must be positive, got {request.amount_in}")
    if request.min_amount_out <= 0:
        problems.append(f"min_amount_out must be positive, got {request.min_amount_out}")
    return problems


class ExecutionCoordinator:
    """
    Submits trades and settlements through a ChainSubmitter.

    Keeps the state machine of every trade it has seen, which also serves
    as the duplicate guard.
    """

    def __init__(
        self,
        submitter: ChainSubmitter,
        nonces: NonceRegistry,
        config: Optional[ExecutionConfig] = None,
    ):
        self.submitter = submitter
        self.nonces = nonces
        self.config = config or ExecutionConfig()
        self.machines: Dict[str, TradeStateMachine] = {}

    def realized_profit(self, request: TradeRequest, receipt: TradeReceipt) -> Decimal:
        if request.buy_venue == Venue.DEX:
            base_out = from_raw_amount(receipt.amount_out, self.config.base_decimals)
            gross = base_out * request.mark_price - request.position_size
        else:
            quote_out = from_raw_amount(receipt.amount_out, self.config.quote_decimals)
            base_in = from_raw_amount(request.amount_in, self.config.base_decimals)
            gross = quote_out - base_in * request.mark_price
        return gross - receipt.gas_cost

    async def execute(self, request: TradeRequest, settlement: SettlementPayload) -> ExecutionResult:
        """
        Run one trade attempt to a terminal result.

        Raises:
            ExecutionError(EXECUTION_DUPLICATE): trade id already executed
        """
        if request.trade_id in self.machines:
            raise ExecutionError(
                f"Trade {request.trade_id} already submitted",
                code=ErrorCode.EXECUTION_DUPLICATE,
                details=request.to_dict(),
            )

        machine = TradeStateMachine(trade_id=request.trade_id)
        self.machines[request.trade_id] = machine

        problems = validate_request(request)
        if problems:
            machine.transition_to(TradeState.FAILED, reason="validation", metadata={"problems": problems})
            logger.warning(
                "Trade request failed validation",
                extra={"context": {**request.to_dict(), "problems": problems}},
            )
            return ExecutionResult(
                trade_id=request.trade_id,
                status=TradeStatus.FAILED,
                position_size=request.position_size,
                error="; ".join(problems),
                error_code=ErrorCode.EXECUTION_INVALID_REQUEST,
                submitted=False,
            )

        machine.transition_to(TradeState.SUBMITTED, metadata={"gas_limit": self.config.gas_limit})
        try:
            receipt = await self.submitter.submit_trade(
                token_in=request.token_in,
                amount_in=request.amount_in,
                path=list(request.path),
                min_amount_out=request.min_amount_out,
                gas_limit=self.config.gas_limit,
            )
        except Exception as e:
            code = e.code if isinstance(e, CrossArbError) else ErrorCode.EXECUTION_ERROR
            machine.transition_to(TradeState.FAILED, reason=str(e))
            logger.warning(
                f"Trade submission failed: {e}",
                extra={"context": {**request.to_dict(), "error_type": type(e).__name__}},
            )
            return ExecutionResult(
                trade_id=request.trade_id,
                status=TradeStatus.FAILED,
                position_size=request.position_size,
                error=str(e),
                error_code=code,
                submitted=False,
            )

        if receipt.status != TradeStatus.CONFIRMED:
            error = receipt.error or f"Trade ended {receipt.status.value}"
            machine.transition_to(TradeState.FAILED, reason=error, metadata={"tx_ref": receipt.tx_ref})
            logger.warning(
                "Trade reverted",
                extra={"context": {**request.to_dict(), "tx_ref": receipt.tx_ref, "error": error}},
            )
            return ExecutionResult(
                trade_id=request.trade_id,
                status=TradeStatus.FAILED,
                position_size=request.position_size,
                tx_ref=receipt.tx_ref,
                profit=-receipt.gas_cost,
                gas_used=receipt.gas_used,
                gas_cost=receipt.gas_cost,
                error=error,
                error_code=ErrorCode.EXECUTION_REVERTED,
            )

        machine.transition_to(TradeState.CONFIRMED, metadata={"tx_ref": receipt.tx_ref})
        profit = self.realized_profit(request, receipt)
        efficiency = profit / receipt.gas_cost if receipt.gas_cost > 0 else ZERO

        settlement_status, settlement_tx_ref, error, error_code = await self._settle(request, settlement)

        result = ExecutionResult(
            trade_id=request.trade_id,
            status=TradeStatus.CONFIRMED,
            position_size=request.position_size,
            tx_ref=receipt.tx_ref,
            profit=profit,
            gas_used=receipt.gas_used,
            gas_cost=receipt.gas_cost,
            efficiency=efficiency,
            settlement_status=settlement_status,
            settlement_tx_ref=settlement_tx_ref,
            error=error,
            error_code=error_code,
        )
        logger.info("Trade confirmed", extra={"context": result.to_dict()})
        return result

    async def _settle(self, request: TradeRequest, settlement: SettlementPayload):
        try:
            self.nonces.consume(settlement.nonce)
            tx_ref = await self.submitter.submit_settlement(
                token=settlement.token,
                amount=settlement.amount,
                recipient=settlement.recipient,
                signature=settlement.signature,
                nonce=settlement.nonce,
                gas_limit=self.config.settlement_gas_limit,
            )
        except SettlementError as e:
            self._log_settlement_failure(request, settlement, e)
            return SettlementStatus.FAILED, None, e.message, e.code
        except Exception as e:
            err = SettlementError(f"Settlement submission failed: {e}", details={"error_type": type(e).__name__})
            self._log_settlement_failure(request, settlement, err)
            return SettlementStatus.FAILED, None, err.message, err.code

        return SettlementStatus.CONFIRMED, tx_ref, None, None

    def _log_settlement_failure(
        self,
        request: TradeRequest,
        settlement: SettlementPayload,
        error: SettlementError,
    ) -> None:
        logger.error(
            f"Settlement failed after confirmed trade: {error.message}",
            extra={"context": {
                "trade_id": request.trade_id,
                "code": error.code.value,
                **settlement.to_dict(),
            }},
        )
