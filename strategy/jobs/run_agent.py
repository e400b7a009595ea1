#!/usr/bin/env python3
"""
strategy/jobs/run_agent.py - CLI entrypoint for the arbitrage agent.

Loads config, wires collaborators (RPC pool quoter, CEX ticker, gas
estimator, advisory client, balance source, paper submitter) and runs the
scan loop.

Exit codes:
    0  clean stop
    2  invalid configuration
    3  settlement signing failed (key material broken)

Usage:
    crossarb-agent --cycles 1
    python -m strategy.jobs.run_agent --interval 15 --json-logs
"""

import asyncio
import signal
import sys
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional

import click

from chains.advisory_http import HttpAdvisoryService
from chains.balances import VaultBalanceSource, WalletBalanceSource
from chains.interfaces import BalanceSource
from chains.paper import PaperChainSubmitter
from chains.providers import RPCProvider
from chains.quotes import HttpPriceSource, RouterPoolQuoter, RpcGasEstimator
from core.constants import BalanceSourceKind
from core.exceptions import ConfigError, SigningError
from core.logging import get_logger, set_global_context, setup_logging
from execution.coordinator import ExecutionCoordinator
from execution.signer import SettlementSigner
from monitoring.journal import TradeJournal
from strategy.advisory import AdvisoryGate
from strategy.config import AgentConfig, load_agent_config
from strategy.loop import ScanLoop
from strategy.pipeline import ArbitragePipeline

logger = get_logger("crossarb.agent")

EXIT_CONFIG_ERROR = 2
EXIT_SIGNING_ERROR = 3


@dataclass
class AgentRuntime:
    """Wired pipeline plus the clients that must be closed on exit."""
    pipeline: ArbitragePipeline
    closables: List[Any] = field(default_factory=list)
    provider: Optional[RPCProvider] = None

    async def close(self) -> None:
        if self.provider is not None:
            logger.info("RPC endpoint stats", extra={"context": self.provider.get_stats_summary()})
        for client in self.closables:
            await client.close()


def build_balance_source(cfg: AgentConfig, provider: RPCProvider, owner: str) -> Optional[BalanceSource]:
    """Funds strategy named by risk.balance_source (None disables the check)."""
    execution = cfg.execution
    decimals = {
        execution.base_token: execution.base_decimals,
        execution.quote_token: execution.quote_decimals,
    }
    kind = cfg.risk.balance_source
    if kind == BalanceSourceKind.WALLET:
        return WalletBalanceSource(provider, owner, decimals)
    if kind == BalanceSourceKind.VAULT:
        return VaultBalanceSource(provider, cfg.risk.vault_address, decimals)
    return None


def build_runtime(cfg: AgentConfig) -> AgentRuntime:
    """
    Wire the pipeline for the bundled (paper) submitter.

    Raises:
        ConfigError: live mode requested
        SigningError: signing key missing or invalid
    """
    if not cfg.execution.dry_run:
        raise ConfigError(
            "Live submission needs an injected ChainSubmitter; the bundled CLI only runs dry",
            details={"dry_run": False},
        )

    signer = SettlementSigner(cfg.private_key)

    provider = RPCProvider([cfg.loop.rpc_url], timeout_seconds=cfg.loop.rpc_timeout_seconds)
    price_source = HttpPriceSource(cfg.loop.cex_ticker_url, timeout_seconds=cfg.loop.rpc_timeout_seconds)
    quoter = RouterPoolQuoter(provider, cfg.execution.router)

    async def native_price() -> Decimal:
        # Base token is the chain's wrapped native token
        return (await price_source.get_price(cfg.loop.symbol)).price

    gas_estimator = RpcGasEstimator(provider, native_price)

    balance_source = build_balance_source(cfg, provider, signer.address)

    closables: List[Any] = [provider, price_source]
    service: Optional[HttpAdvisoryService] = None
    if cfg.advisory.enabled:
        service = HttpAdvisoryService(
            cfg.advisory.url,
            api_key=cfg.advisory.api_key,
            timeout_seconds=cfg.advisory.timeout_seconds,
        )
        closables.append(service)

    submitter = PaperChainSubmitter(quoter, gas_estimator)
    coordinator = ExecutionCoordinator(submitter, signer.nonces, cfg.execution)

    pipeline = ArbitragePipeline(
        config=cfg,
        price_source=price_source,
        pool_quoter=quoter,
        gas_estimator=gas_estimator,
        advisory=AdvisoryGate(service, cfg.advisory),
        signer=signer,
        coordinator=coordinator,
        balance_source=balance_source,
    )
    return AgentRuntime(pipeline=pipeline, closables=closables, provider=provider)


@click.command()
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Agent YAML (default: config/agent.yaml)")
@click.option("--interval", "-i", type=float, default=None, help="Scan interval in seconds")
@click.option("--cycles", "-n", type=int, default=None, help="Stop after N cycles")
@click.option("--log-level", "-l", default="INFO", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]))
@click.option("--json-logs/--no-json-logs", default=False)
@click.option("--dry-run/--live", default=None, help="Override execution.dry_run")
def main(
    config_path: Optional[str],
    interval: Optional[float],
    cycles: Optional[int],
    log_level: str,
    json_logs: bool,
    dry_run: Optional[bool],
) -> None:
    """CROSSARB agent - CEX/DEX spread detection, risk gating and settlement."""
    setup_logging(level=log_level, json_format=json_logs)
    set_global_context(service="crossarb-agent", version="0.1.0")

    try:
        cfg = load_agent_config(Path(config_path) if config_path else None)
        if interval is not None:
            cfg.loop.scan_interval_seconds = interval
        if dry_run is not None:
            cfg.execution.dry_run = dry_run
        cfg.validate()
        runtime = build_runtime(cfg)
    except (ConfigError, FileNotFoundError) as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(EXIT_CONFIG_ERROR)
    except SigningError as e:
        logger.error(f"Signing setup failed: {e}")
        sys.exit(EXIT_SIGNING_ERROR)

    journal = TradeJournal(Path(cfg.loop.journal_dir)) if cfg.loop.journal_dir else None
    scan_loop = ScanLoop(
        runtime.pipeline,
        interval_seconds=cfg.loop.scan_interval_seconds,
        journal=journal,
        max_cycles=cycles,
    )

    logger.info(
        "Starting CROSSARB agent",
        extra={"context": {
            "symbol": cfg.loop.symbol,
            "interval_seconds": cfg.loop.scan_interval_seconds,
            "cycles": cycles,
            "dry_run": cfg.execution.dry_run,
            "advisory_enabled": cfg.advisory.enabled,
            "advisory_fallback": cfg.advisory.fallback.value,
            "balance_source": cfg.risk.balance_source.value,
            "signer": runtime.pipeline.signer.address,
        }},
    )

    async def run() -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, scan_loop.stop)
        try:
            await scan_loop.run()
        finally:
            await runtime.close()

    try:
        asyncio.run(run())
    except SigningError as e:
        logger.error(f"Settlement signing failed, stopping: {e}", exc_info=True)
        sys.exit(EXIT_SIGNING_ERROR)

    logger.info("Final session summary", extra={"context": {
        **scan_loop.stats.to_dict(),
        **scan_loop.state.to_dict(),
    }})
    if journal is not None:
        logger.info("Journal summary", extra={"context": journal.get_summary()})


if __name__ == "__main__":
    main()
