"""
chains/paper.py - Dry-run chain submitter.

Fills trades at the live pool quote without broadcasting anything. A fill
below min_amount_out is reported as a revert, the way the router would.
"""

import uuid
from decimal import Decimal
from typing import List, Sequence, Tuple

from chains.interfaces import GasEstimator, PoolQuoter
from core.constants import TradeStatus
from core.logging import get_logger
from core.models import ZERO, TradeReceipt

logger = get_logger(__name__)

PAPER_SWAP_GAS_USED = 140_000
PAPER_SETTLEMENT_GAS_USED = 60_000


class PaperChainSubmitter:
    """ChainSubmitter that simulates fills and records what it would send."""

    def __init__(self, quoter: PoolQuoter, gas_estimator: GasEstimator | None = None):
        self.quoter = quoter
        self.gas_estimator = gas_estimator
        self.trades: List[Tuple[str, TradeReceipt]] = []
        self.settlements: List[dict] = []

    async def submit_trade(
        self,
        token_in: str,
        amount_in: int,
        path: Sequence[str],
        min_amount_out: int,
        gas_limit: int,
    ) -> TradeReceipt:
        tx_ref = f"paper-{uuid.uuid4().hex[:16]}"
        amount_out = await self.quoter.get_pool_quote(path[0], path[-1], amount_in)
        gas_used = min(PAPER_SWAP_GAS_USED, gas_limit)
        gas_cost = ZERO
        if self.gas_estimator is not None:
            gas_cost = (await self.gas_estimator.estimate_gas(gas_used)).cost_in_quote

        if amount_out < min_amount_out:
            receipt = TradeReceipt(
                tx_ref=tx_ref,
                status=TradeStatus.FAILED,
                gas_used=gas_used,
                gas_cost=gas_cost,
                error=f"INSUFFICIENT_OUTPUT_AMOUNT: {amount_out} < {min_amount_out}",
            )
        else:
            receipt = TradeReceipt(
                tx_ref=tx_ref,
                status=TradeStatus.CONFIRMED,
                amount_out=amount_out,
                gas_used=gas_used,
                gas_cost=gas_cost,
            )

        self.trades.append((token_in, receipt))
        logger.info(
            "Paper trade",
            extra={"context": {
                "tx_ref": tx_ref,
                "path": list(path),
                "amount_in": amount_in,
                "min_amount_out": min_amount_out,
                "amount_out": amount_out,
                "status": receipt.status.value,
            }},
        )
        return receipt

    async def submit_settlement(
        self,
        token: str,
        amount: int,
        recipient: str,
        signature: str,
        nonce: str,
        gas_limit: int,
    ) -> str:
        tx_ref = f"paper-settle-{uuid.uuid4().hex[:16]}"
        self.settlements.append({
            "tx_ref": tx_ref,
            "token": token,
            "amount": amount,
            "recipient": recipient,
            "signature": signature,
            "nonce": nonce,
            "gas_limit": gas_limit,
        })
        logger.info(
            "Paper settlement",
            extra={"context": {"tx_ref": tx_ref, "token": token, "amount": amount, "recipient": recipient}},
        )
        return tx_ref
