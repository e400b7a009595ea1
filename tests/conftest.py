# PATH: tests/conftest.py
"""
Pytest configuration, fixtures and collaborator fakes for CROSSARB tests.
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.constants import TradeStatus  # noqa: E402
from core.models import FundsSnapshot, GasEstimate, PriceQuote, TradeReceipt  # noqa: E402
from core.time import now_timestamp  # noqa: E402

# Well-known development key (Hardhat account #0). Never holds funds.
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_SIGNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

BASE_TOKEN = "0x1111111111111111111111111111111111111111"
QUOTE_TOKEN = "0x2222222222222222222222222222222222222222"
ROUTER = "0x3333333333333333333333333333333333333333"
RECIPIENT = "0x4444444444444444444444444444444444444444"


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


# =============================================================================
# FAKES
# =============================================================================

class FakePriceSource:
    """CEX price source returning a settable price."""

    def __init__(self, price: str, timestamp: Optional[float] = None, error: Optional[Exception] = None):
        self.price = Decimal(price)
        self.timestamp = timestamp
        self.error = error
        self.calls = 0

    async def get_price(self, symbol: str) -> PriceQuote:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return PriceQuote(symbol=symbol, price=self.price, timestamp=self.timestamp or now_timestamp())


class FakePoolQuoter:
    """Constant-price pool: base <-> quote at `price` quote per base."""

    def __init__(self, price: str, base_token: str = BASE_TOKEN, base_decimals: int = 18, quote_decimals: int = 6):
        self.price = Decimal(price)
        self.base_token = base_token
        self.base_decimals = base_decimals
        self.quote_decimals = quote_decimals
        self.error: Optional[Exception] = None

    async def get_pool_quote(self, token_in: str, token_out: str, amount_in: int) -> int:
        if self.error is not None:
            raise self.error
        if token_in.lower() == self.base_token.lower():
            human = Decimal(amount_in).scaleb(-self.base_decimals) * self.price
            return int(human.scaleb(self.quote_decimals))
        human = Decimal(amount_in).scaleb(-self.quote_decimals) / self.price
        return int(human.scaleb(self.base_decimals))


class FakeGasEstimator:
    """Fixed gas cost in quote currency."""

    def __init__(self, cost: str = "0.05", gas_price: int = 5_000_000_000):
        self.cost = Decimal(cost)
        self.gas_price = gas_price

    async def estimate_gas(self, op_units: int) -> GasEstimate:
        return GasEstimate(gas_units=op_units, gas_price=self.gas_price, cost_in_quote=self.cost)


class FakeSubmitter:
    """
    ChainSubmitter that fills at the pool price.

    trade_status / settlement_error / trade_error steer the outcome.
    """

    def __init__(
        self,
        quoter: FakePoolQuoter,
        gas_cost: str = "0.05",
        trade_status: TradeStatus = TradeStatus.CONFIRMED,
        trade_error: Optional[Exception] = None,
        settlement_error: Optional[Exception] = None,
        amount_out: Optional[int] = None,
    ):
        self.quoter = quoter
        self.gas_cost = Decimal(gas_cost)
        self.trade_status = trade_status
        self.trade_error = trade_error
        self.settlement_error = settlement_error
        self.amount_out = amount_out
        self.trades: List[dict] = []
        self.settlements: List[dict] = []

    async def submit_trade(self, token_in, amount_in, path, min_amount_out, gas_limit) -> TradeReceipt:
        self.trades.append({
            "token_in": token_in,
            "amount_in": amount_in,
            "path": list(path),
            "min_amount_out": min_amount_out,
            "gas_limit": gas_limit,
        })
        if self.trade_error is not None:
            raise self.trade_error
        tx_ref = f"0xtrade{len(self.trades)}"
        if self.trade_status != TradeStatus.CONFIRMED:
            return TradeReceipt(
                tx_ref=tx_ref,
                status=self.trade_status,
                gas_used=120_000,
                gas_cost=self.gas_cost,
                error="execution reverted",
            )
        amount_out = self.amount_out
        if amount_out is None:
            amount_out = await self.quoter.get_pool_quote(path[0], path[-1], amount_in)
        return TradeReceipt(
            tx_ref=tx_ref,
            status=TradeStatus.CONFIRMED,
            amount_out=amount_out,
            gas_used=120_000,
            gas_cost=self.gas_cost,
        )

    async def submit_settlement(self, token, amount, recipient, signature, nonce, gas_limit) -> str:
        self.settlements.append({
            "token": token,
            "amount": amount,
            "recipient": recipient,
            "signature": signature,
            "nonce": nonce,
            "gas_limit": gas_limit,
        })
        if self.settlement_error is not None:
            raise self.settlement_error
        return f"0xsettle{len(self.settlements)}"


class FakeAdvisoryService:
    """Advisory service returning a canned response, raising, or hanging."""

    def __init__(self, response: Any = None, error: Optional[Exception] = None, delay: float = 0.0):
        self.response = response
        self.error = error
        self.delay = delay
        self.requests: List[dict] = []

    async def evaluate(self, request: dict) -> Any:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


class FakeBalanceSource:
    """Fixed spendable balance (and optional allowance) for every token."""

    def __init__(self, available: str, allowance: Optional[str] = None, source: str = "wallet"):
        self.available = Decimal(available)
        self.allowance = Decimal(allowance) if allowance is not None else None
        self.source = source
        self.error: Optional[Exception] = None
        self.lookups: List[tuple] = []

    async def get_funds(self, token: str, spender: str) -> FundsSnapshot:
        self.lookups.append((token, spender))
        if self.error is not None:
            raise self.error
        return FundsSnapshot(token=token, available=self.available, source=self.source, allowance=self.allowance)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def agent_config():
    """Valid config with test addresses and advisory disabled."""
    from strategy.config import AdvisoryConfig, AgentConfig, ExecutionConfig

    cfg = AgentConfig(
        advisory=AdvisoryConfig(enabled=False),
        execution=ExecutionConfig(
            base_token=BASE_TOKEN,
            quote_token=QUOTE_TOKEN,
            router=ROUTER,
            recipient=RECIPIENT,
            position_size=Decimal("100"),
            base_decimals=18,
            quote_decimals=6,
        ),
        private_key=TEST_PRIVATE_KEY,
    )
    cfg.loop.scan_interval_seconds = 0.01
    return cfg


@pytest.fixture
def signer():
    from execution.signer import SettlementSigner

    return SettlementSigner(TEST_PRIVATE_KEY)


@pytest.fixture
def make_pipeline(agent_config, signer):
    """
    Factory for a pipeline over fakes.

    Returns (pipeline, fakes) where fakes exposes price_source, quoter,
    gas, submitter, events and balance_source for assertions.
    """
    from types import SimpleNamespace

    from execution.coordinator import ExecutionCoordinator
    from monitoring.events import EventPublisher
    from strategy.advisory import AdvisoryGate
    from strategy.pipeline import ArbitragePipeline

    def _make(
        cex_price: str = "0.0850",
        dex_price: str = "0.0860",
        gas_cost: str = "0.05",
        config=None,
        advisory_service=None,
        submitter_kwargs: Optional[dict] = None,
        balance_source=None,
    ):
        cfg = config or agent_config
        price_source = FakePriceSource(cex_price)
        quoter = FakePoolQuoter(dex_price)
        gas = FakeGasEstimator(gas_cost)
        submitter = FakeSubmitter(quoter, gas_cost=gas_cost, **(submitter_kwargs or {}))
        events = EventPublisher()
        pipeline = ArbitragePipeline(
            config=cfg,
            price_source=price_source,
            pool_quoter=quoter,
            gas_estimator=gas,
            advisory=AdvisoryGate(advisory_service, cfg.advisory),
            signer=signer,
            coordinator=ExecutionCoordinator(submitter, signer.nonces, cfg.execution),
            events=events,
            balance_source=balance_source,
        )
        fakes = SimpleNamespace(
            price_source=price_source,
            quoter=quoter,
            gas=gas,
            submitter=submitter,
            events=events,
            balance_source=balance_source,
        )
        return pipeline, fakes

    return _make
