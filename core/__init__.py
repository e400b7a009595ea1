"""
core - Core utilities and models for CROSSARB.

This package contains:
- models.py: Data models (MarketSnapshot, ArbitrageOpportunity, RiskState, ...)
- constants.py: Enums, defaults and error codes
- exceptions.py: Typed exceptions with error codes
- time.py: Freshness rules and monotonic event clock
- validators.py: Market data and address validation
- logging.py: Structured logging
"""

from core.constants import (
    AdvisoryFallback,
    AdvisorySource,
    BalanceSourceKind,
    CycleOutcome,
    ErrorCode,
    EventType,
    Recommendation,
    SettlementStatus,
    TradeStatus,
    Venue,
)
from core.exceptions import (
    AdvisoryError,
    ConfigError,
    CrossArbError,
    ExecutionError,
    InfraError,
    InvalidMarketDataError,
    SettlementError,
    SigningError,
)
from core.logging import get_logger, set_global_context, setup_logging
from core.models import (
    AdvisoryContext,
    AdvisoryDecision,
    AdvisoryVerdict,
    ArbitrageOpportunity,
    CycleReport,
    ExecutionResult,
    FundsSnapshot,
    GasEstimate,
    MarketSnapshot,
    PriceQuote,
    RiskAssessment,
    RiskState,
    SettlementPayload,
    TradeReceipt,
    TradeRequest,
)

__all__ = [
    # Constants
    "AdvisoryFallback",
    "AdvisorySource",
    "BalanceSourceKind",
    "CycleOutcome",
    "ErrorCode",
    "EventType",
    "Recommendation",
    "SettlementStatus",
    "TradeStatus",
    "Venue",
    # Exceptions
    "AdvisoryError",
    "ConfigError",
    "CrossArbError",
    "ExecutionError",
    "InfraError",
    "InvalidMarketDataError",
    "SettlementError",
    "SigningError",
    # Models
    "AdvisoryContext",
    "AdvisoryDecision",
    "AdvisoryVerdict",
    "ArbitrageOpportunity",
    "CycleReport",
    "ExecutionResult",
    "FundsSnapshot",
    "GasEstimate",
    "MarketSnapshot",
    "PriceQuote",
    "RiskAssessment",
    "RiskState",
    "SettlementPayload",
    "TradeReceipt",
    "TradeRequest",
    # Logging
    "get_logger",
    "set_global_context",
    "setup_logging",
]
