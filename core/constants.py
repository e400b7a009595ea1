# PATH: core/constants.py
"""
Constants for CROSSARB.

Contains enums, defaults, and configuration constants shared by the
decision pipeline.
"""

from decimal import Decimal
from enum import Enum
from typing import Final, Tuple


# =============================================================================
# DEFAULTS
# =============================================================================

# Risk limits (quote currency)
DEFAULT_MAX_POSITION_SIZE = Decimal("5000")
DEFAULT_MAX_DAILY_LOSS_PERCENT = Decimal("10")
DEFAULT_EXPOSURE_MULTIPLIER = Decimal("3")

# Risk score composition
RISK_PROPORTIONAL_WEIGHT: Final[int] = 20
RISK_OVERSIZE_PENALTY: Final[int] = 40
RISK_EXPOSURE_PENALTY: Final[int] = 30
RISK_DAILY_LOSS_PENALTY: Final[int] = 30
RISK_BALANCE_PENALTY: Final[int] = 20
RISK_SCORE_MAX: Final[int] = 100

# Spread confidence buckets: (lower bound of spread %, confidence)
DEFAULT_CONFIDENCE_BUCKETS: Final[Tuple[Tuple[Decimal, int], ...]] = (
    (Decimal("0"), 20),
    (Decimal("0.3"), 50),
    (Decimal("0.5"), 80),
    (Decimal("1.0"), 95),
)
DEFAULT_BUY_CONFIDENCE_THRESHOLD = 80

# Market data sanity
DEFAULT_MIN_PRICE = Decimal("0.001")
DEFAULT_MAX_PLAUSIBLE_SPREAD_PERCENT = Decimal("50")
DEFAULT_MAX_QUOTE_AGE_SECONDS = 60

# Advisory
DEFAULT_ADVISORY_CONFIDENCE_FLOOR = 70
DEFAULT_ADVISORY_TIMEOUT_SECONDS = 10.0

# Execution
DEFAULT_POSITION_SIZE = Decimal("100")
DEFAULT_SLIPPAGE_BPS = 100
DEFAULT_GAS_UNITS = 150_000
DEFAULT_GAS_LIMIT = 500_000
DEFAULT_SETTLEMENT_GAS_LIMIT = 300_000
DEFAULT_TOKEN_DECIMALS = 18

# Loop
DEFAULT_SCAN_INTERVAL_SECONDS = 30.0

NONCE_BYTES: Final[int] = 32


class Venue(str, Enum):
    """Price venues."""
    CEX = "CEX"
    DEX = "DEX"


class Recommendation(str, Enum):
    """Coarse recommendation derived from a spread."""
    BUY = "BUY"
    MONITOR = "MONITOR"
    SKIP = "SKIP"


class TradeStatus(str, Enum):
    """Trade execution status."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class SettlementStatus(str, Enum):
    """Settlement delivery status after a trade."""
    NOT_ATTEMPTED = "not_attempted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class CycleOutcome(str, Enum):
    """Terminal status of one decision cycle."""
    SKIPPED = "skipped"
    REJECTED = "rejected"
    FAILED = "failed"
    CONFIRMED = "confirmed"


class AdvisoryFallback(str, Enum):
    """What the advisory gate does when the service is unavailable."""
    REJECT = "reject"
    PROCEED = "proceed"


class BalanceSourceKind(str, Enum):
    """Where spendable funds are read from before a trade."""
    NONE = "none"
    WALLET = "wallet"
    VAULT = "vault"


class AdvisorySource(str, Enum):
    """Where an advisory verdict came from."""
    SERVICE = "SERVICE"
    FALLBACK = "FALLBACK"
    DISABLED = "DISABLED"


class EventType(str, Enum):
    """Observer event stream types."""
    OPPORTUNITY_DETECTED = "opportunity-detected"
    TRADE_EXECUTING = "trade-executing"
    TRADE_COMPLETED = "trade-completed"
    TRADE_SKIPPED = "trade-skipped"
    RISK_WARNING = "risk-warning"


class ErrorCode(str, Enum):
    """
    Error and reason codes.

    Used both on exceptions and as the reason attached to a cycle outcome.
    """
    # Infrastructure
    INFRA_RPC_ERROR = "INFRA_RPC_ERROR"
    INFRA_TIMEOUT = "INFRA_TIMEOUT"
    INFRA_BAD_RESPONSE = "INFRA_BAD_RESPONSE"

    # Market data
    INVALID_MARKET_DATA = "INVALID_MARKET_DATA"
    PRICE_BELOW_FLOOR = "PRICE_BELOW_FLOOR"
    PRICE_IMPLAUSIBLE = "PRICE_IMPLAUSIBLE"
    STALE_QUOTE = "STALE_QUOTE"

    # Decision
    NOT_PROFITABLE = "NOT_PROFITABLE"
    ADVISORY_REJECTED = "ADVISORY_REJECTED"
    ADVISORY_LOW_CONFIDENCE = "ADVISORY_LOW_CONFIDENCE"
    ADVISORY_UNAVAILABLE = "ADVISORY_UNAVAILABLE"
    ADVISORY_MALFORMED = "ADVISORY_MALFORMED"
    RISK_REJECTED = "RISK_REJECTED"
    CIRCUIT_BREAKER_ACTIVE = "CIRCUIT_BREAKER_ACTIVE"

    # Signing / settlement
    SIGNING_FAILED = "SIGNING_FAILED"
    NONCE_REUSED = "NONCE_REUSED"
    SETTLEMENT_FAILED = "SETTLEMENT_FAILED"

    # Execution
    EXECUTION_INVALID_REQUEST = "EXECUTION_INVALID_REQUEST"
    EXECUTION_DUPLICATE = "EXECUTION_DUPLICATE"
    EXECUTION_REVERTED = "EXECUTION_REVERTED"
    EXECUTION_ERROR = "EXECUTION_ERROR"

    # Config
    CONFIG_INVALID = "CONFIG_INVALID"

    UNKNOWN = "UNKNOWN"
