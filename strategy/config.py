"""
strategy/config.py - Agent configuration.

Risk limits, spread thresholds, advisory policy, execution parameters and
loop cadence, loaded from YAML with secrets from the environment.
"""

import math
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from config import DEFAULT_AGENT_CONFIG, get_secret, load_env, load_yaml
from core.constants import (
    DEFAULT_ADVISORY_CONFIDENCE_FLOOR,
    DEFAULT_ADVISORY_TIMEOUT_SECONDS,
    DEFAULT_BUY_CONFIDENCE_THRESHOLD,
    DEFAULT_CONFIDENCE_BUCKETS,
    DEFAULT_EXPOSURE_MULTIPLIER,
    DEFAULT_GAS_LIMIT,
    DEFAULT_GAS_UNITS,
    DEFAULT_MAX_DAILY_LOSS_PERCENT,
    DEFAULT_MAX_PLAUSIBLE_SPREAD_PERCENT,
    DEFAULT_MAX_POSITION_SIZE,
    DEFAULT_MAX_QUOTE_AGE_SECONDS,
    DEFAULT_MIN_PRICE,
    DEFAULT_POSITION_SIZE,
    DEFAULT_SCAN_INTERVAL_SECONDS,
    DEFAULT_SETTLEMENT_GAS_LIMIT,
    DEFAULT_SLIPPAGE_BPS,
    DEFAULT_TOKEN_DECIMALS,
    AdvisoryFallback,
    BalanceSourceKind,
)
from core.exceptions import ConfigError
from core.validators import checksum, is_valid_address


@dataclass
class RiskLimits:
    """Risk limit configuration."""
    max_position_size: Decimal = DEFAULT_MAX_POSITION_SIZE
    max_daily_loss_percent: Decimal = DEFAULT_MAX_DAILY_LOSS_PERCENT
    exposure_multiplier: Decimal = DEFAULT_EXPOSURE_MULTIPLIER
    # Where spendable funds are checked before a trade; none skips the check
    balance_source: BalanceSourceKind = BalanceSourceKind.NONE
    vault_address: str = ""

    @property
    def exposure_ceiling(self) -> Decimal:
        return self.max_position_size * self.exposure_multiplier

    @property
    def max_daily_loss(self) -> Decimal:
        """Daily loss allowance in quote currency (positive number)."""
        return self.max_position_size * self.max_daily_loss_percent / Decimal("100")


@dataclass
class SpreadConfig:
    """Spread analysis thresholds."""
    confidence_buckets: Tuple[Tuple[Decimal, int], ...] = DEFAULT_CONFIDENCE_BUCKETS
    buy_confidence_threshold: int = DEFAULT_BUY_CONFIDENCE_THRESHOLD
    min_price: Decimal = DEFAULT_MIN_PRICE
    max_plausible_spread_percent: Decimal = DEFAULT_MAX_PLAUSIBLE_SPREAD_PERCENT
    max_quote_age_seconds: Optional[float] = DEFAULT_MAX_QUOTE_AGE_SECONDS


@dataclass
class AdvisoryConfig:
    """Advisory gate policy."""
    enabled: bool = True
    url: str = ""
    api_key: str = ""
    confidence_floor: int = DEFAULT_ADVISORY_CONFIDENCE_FLOOR
    timeout_seconds: float = DEFAULT_ADVISORY_TIMEOUT_SECONDS
    fallback: AdvisoryFallback = AdvisoryFallback.REJECT


@dataclass
class ExecutionConfig:
    """Trade building and submission parameters."""
    base_token: str = ""
    quote_token: str = ""
    router: str = ""
    recipient: str = ""
    position_size: Decimal = DEFAULT_POSITION_SIZE
    slippage_bps: int = DEFAULT_SLIPPAGE_BPS
    gas_units: int = DEFAULT_GAS_UNITS
    gas_limit: int = DEFAULT_GAS_LIMIT
    settlement_gas_limit: int = DEFAULT_SETTLEMENT_GAS_LIMIT
    base_decimals: int = DEFAULT_TOKEN_DECIMALS
    quote_decimals: int = DEFAULT_TOKEN_DECIMALS
    dry_run: bool = True


@dataclass
class LoopConfig:
    """Scheduling and collaborator endpoints."""
    symbol: str = "CRO_USDT"
    scan_interval_seconds: float = DEFAULT_SCAN_INTERVAL_SECONDS
    journal_dir: Optional[str] = None
    rpc_url: str = ""
    rpc_timeout_seconds: float = 10.0
    cex_ticker_url: str = "https://api.crypto.com/v2/public/get-ticker"


@dataclass
class AgentConfig:
    """Full agent configuration."""
    risk: RiskLimits = field(default_factory=RiskLimits)
    spread: SpreadConfig = field(default_factory=SpreadConfig)
    advisory: AdvisoryConfig = field(default_factory=AdvisoryConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)
    private_key: str = field(default="", repr=False)

    def validate(self) -> None:
        """
        Check limits and addresses.

        Raises:
            ConfigError: listing every problem found
        """
        problems = []

        if self.risk.max_position_size <= 0:
            problems.append("risk.max_position_size must be positive")
        if not (0 < self.risk.max_daily_loss_percent <= 100):
            problems.append("risk.max_daily_loss_percent must be in (0, 100]")
        if self.risk.exposure_multiplier < 1:
            problems.append("risk.exposure_multiplier must be >= 1")
        if (self.risk.balance_source == BalanceSourceKind.VAULT
                and not is_valid_address(self.risk.vault_address)):
            problems.append("risk.vault_address must be a valid address when balance_source is vault")

        problems.extend(_bucket_problems(self.spread.confidence_buckets))
        if not (0 <= self.spread.buy_confidence_threshold <= 100):
            problems.append("spread.buy_confidence_threshold must be in [0, 100]")
        if self.spread.min_price < 0:
            problems.append("spread.min_price must not be negative")
        if self.spread.max_plausible_spread_percent <= 0:
            problems.append("spread.max_plausible_spread_percent must be positive")

        if not (0 <= self.advisory.confidence_floor <= 100):
            problems.append("advisory.confidence_floor must be in [0, 100]")
        if not (math.isfinite(self.advisory.timeout_seconds) and self.advisory.timeout_seconds > 0):
            problems.append("advisory.timeout_seconds must be positive and finite")
        if self.advisory.enabled and not self.advisory.url:
            problems.append("advisory.url is required when advisory is enabled")

        if self.execution.position_size <= 0:
            problems.append("execution.position_size must be positive")
        if not (0 <= self.execution.slippage_bps < 10_000):
            problems.append("execution.slippage_bps must be in [0, 10000)")
        if self.execution.gas_limit <= 0 or self.execution.settlement_gas_limit <= 0:
            problems.append("execution gas limits must be positive")
        for name in ("base_token", "quote_token", "router", "recipient"):
            if not is_valid_address(getattr(self.execution, name)):
                problems.append(f"execution.{name} is not a valid address")

        if not (math.isfinite(self.loop.scan_interval_seconds) and self.loop.scan_interval_seconds > 0):
            problems.append("loop.scan_interval_seconds must be positive and finite")
        if not self.loop.rpc_url.startswith(("http://", "https://")):
            problems.append("loop.rpc_url must be an http(s) URL (set RPC_URL)")

        if problems:
            raise ConfigError(
                f"Invalid configuration: {'; '.join(problems)}",
                details={"problems": problems},
            )


def _bucket_problems(buckets: Tuple[Tuple[Decimal, int], ...]) -> list:
    if not buckets:
        return ["spread.confidence_buckets must not be empty"]
    problems = []
    if buckets[0][0] != 0:
        problems.append("spread.confidence_buckets must start at 0")
    for (lo_a, conf_a), (lo_b, conf_b) in zip(buckets, buckets[1:]):
        if lo_b <= lo_a:
            problems.append("spread.confidence_buckets bounds must be increasing")
        if conf_b < conf_a:
            problems.append("spread.confidence_buckets confidence must be non-decreasing")
    for _, conf in buckets:
        if not (0 <= conf <= 100):
            problems.append("spread.confidence_buckets confidence must be in [0, 100]")
    return problems


def _decimal(value: Any, name: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ConfigError(f"{name} is not a number: {value!r}") from e
    if not result.is_finite():
        raise ConfigError(f"{name} must be finite: {value!r}")
    return result


def _int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} is not an integer: {value!r}") from e


def _float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} is not a number: {value!r}") from e


def _balance_source(value: Any) -> BalanceSourceKind:
    try:
        return BalanceSourceKind(str(value).lower())
    except ValueError as e:
        raise ConfigError("risk.balance_source must be one of none|wallet|vault") from e


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"{name} must be a mapping, got {type(section).__name__}")
    return section


def _buckets(raw: Any) -> Tuple[Tuple[Decimal, int], ...]:
    if not raw:
        return DEFAULT_CONFIDENCE_BUCKETS
    try:
        return tuple(
            (_decimal(lo, "spread.confidence_buckets"), _int(conf, "spread.confidence_buckets"))
            for lo, conf in raw
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"spread.confidence_buckets must be [bound, confidence] pairs: {raw!r}") from e


def _address(value: Any) -> str:
    # Valid addresses are normalized to checksum form; anything else is
    # kept verbatim so validate() reports it
    raw = str(value or "").strip()
    if is_valid_address(raw):
        return checksum(raw)
    return raw


def load_agent_config(
    config_path: Optional[Path] = None,
    dotenv_path: Optional[Path] = None,
) -> AgentConfig:
    """
    Load agent configuration from YAML plus environment secrets.

    Args:
        config_path: Path to agent YAML (default: config/agent.yaml)
        dotenv_path: Optional .env file

    Returns:
        AgentConfig (not yet validated)

    Raises:
        FileNotFoundError: config file missing
        ConfigError: unparseable YAML or a value of the wrong type
    """
    load_env(dotenv_path)
    data = load_yaml(config_path or DEFAULT_AGENT_CONFIG)
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping, got {type(data).__name__}")

    risk_data = _section(data, "risk")
    risk = RiskLimits(
        max_position_size=_decimal(
            risk_data.get("max_position_size", DEFAULT_MAX_POSITION_SIZE), "risk.max_position_size"),
        max_daily_loss_percent=_decimal(
            risk_data.get("max_daily_loss_percent", DEFAULT_MAX_DAILY_LOSS_PERCENT),
            "risk.max_daily_loss_percent"),
        exposure_multiplier=_decimal(
            risk_data.get("exposure_multiplier", DEFAULT_EXPOSURE_MULTIPLIER), "risk.exposure_multiplier"),
        balance_source=_balance_source(risk_data.get("balance_source", BalanceSourceKind.NONE.value)),
        vault_address=_address(risk_data.get("vault_address")),
    )

    spread_data = _section(data, "spread")
    max_age = spread_data.get("max_quote_age_seconds", DEFAULT_MAX_QUOTE_AGE_SECONDS)
    spread = SpreadConfig(
        confidence_buckets=_buckets(spread_data.get("confidence_buckets")),
        buy_confidence_threshold=_int(
            spread_data.get("buy_confidence_threshold", DEFAULT_BUY_CONFIDENCE_THRESHOLD),
            "spread.buy_confidence_threshold"),
        min_price=_decimal(spread_data.get("min_price", DEFAULT_MIN_PRICE), "spread.min_price"),
        max_plausible_spread_percent=_decimal(
            spread_data.get("max_plausible_spread_percent", DEFAULT_MAX_PLAUSIBLE_SPREAD_PERCENT),
            "spread.max_plausible_spread_percent"),
        max_quote_age_seconds=None if max_age is None else _float(max_age, "spread.max_quote_age_seconds"),
    )

    advisory_data = _section(data, "advisory")
    try:
        fallback = AdvisoryFallback(str(advisory_data.get("fallback", "reject")).lower())
    except ValueError as e:
        raise ConfigError("advisory.fallback must be one of reject|proceed") from e
    advisory = AdvisoryConfig(
        enabled=bool(advisory_data.get("enabled", True)),
        url=get_secret("ADVISORY_URL") or str(advisory_data.get("url", "")),
        api_key=get_secret("ADVISORY_API_KEY"),
        confidence_floor=_int(
            advisory_data.get("confidence_floor", DEFAULT_ADVISORY_CONFIDENCE_FLOOR), "advisory.confidence_floor"),
        timeout_seconds=_float(
            advisory_data.get("timeout_seconds", DEFAULT_ADVISORY_TIMEOUT_SECONDS), "advisory.timeout_seconds"),
        fallback=fallback,
    )

    exec_data = _section(data, "execution")
    execution = ExecutionConfig(
        base_token=_address(exec_data.get("base_token")),
        quote_token=_address(exec_data.get("quote_token")),
        router=_address(exec_data.get("router")),
        recipient=_address(get_secret("RECIPIENT_ADDRESS") or exec_data.get("recipient")),
        position_size=_decimal(exec_data.get("position_size", DEFAULT_POSITION_SIZE), "execution.position_size"),
        slippage_bps=_int(exec_data.get("slippage_bps", DEFAULT_SLIPPAGE_BPS), "execution.slippage_bps"),
        gas_units=_int(exec_data.get("gas_units", DEFAULT_GAS_UNITS), "execution.gas_units"),
        gas_limit=_int(exec_data.get("gas_limit", DEFAULT_GAS_LIMIT), "execution.gas_limit"),
        settlement_gas_limit=_int(
            exec_data.get("settlement_gas_limit", DEFAULT_SETTLEMENT_GAS_LIMIT), "execution.settlement_gas_limit"),
        base_decimals=_int(exec_data.get("base_decimals", DEFAULT_TOKEN_DECIMALS), "execution.base_decimals"),
        quote_decimals=_int(exec_data.get("quote_decimals", DEFAULT_TOKEN_DECIMALS), "execution.quote_decimals"),
        dry_run=bool(exec_data.get("dry_run", True)),
    )

    loop_data = _section(data, "loop")
    loop = LoopConfig(
        symbol=str(loop_data.get("symbol", "CRO_USDT")),
        scan_interval_seconds=_float(
            loop_data.get("scan_interval_seconds", DEFAULT_SCAN_INTERVAL_SECONDS), "loop.scan_interval_seconds"),
        journal_dir=loop_data.get("journal_dir"),
        rpc_url=get_secret("RPC_URL") or str(loop_data.get("rpc_url", "")),
        rpc_timeout_seconds=_float(loop_data.get("rpc_timeout_seconds", 10), "loop.rpc_timeout_seconds"),
        cex_ticker_url=str(loop_data.get("cex_ticker_url", LoopConfig.cex_ticker_url)),
    )

    return AgentConfig(
        risk=risk,
        spread=spread,
        advisory=advisory,
        execution=execution,
        loop=loop,
        private_key=get_secret("AGENT_PRIVATE_KEY"),
    )
