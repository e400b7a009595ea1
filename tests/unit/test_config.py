# PATH: tests/unit/test_config.py
"""
Unit tests for configuration loading and validation.
"""

import unittest
from decimal import Decimal
from pathlib import Path

import pytest

from conftest import BASE_TOKEN, QUOTE_TOKEN, RECIPIENT, ROUTER
from core.constants import AdvisoryFallback, BalanceSourceKind, ErrorCode
from core.exceptions import ConfigError
from core.validators import checksum
from strategy.config import AgentConfig, load_agent_config

CONFIG_DIR = Path(__file__).parent.parent.parent / "config"

SECRET_VARS = ("ADVISORY_URL", "ADVISORY_API_KEY", "RECIPIENT_ADDRESS", "RPC_URL", "AGENT_PRIVATE_KEY")

YAML = f"""
risk:
  max_position_size: "2000"
  balance_source: wallet
  max_daily_loss_percent: "5"
  exposure_multiplier: "2"
spread:
  confidence_buckets:
    - ["0", 10]
    - ["0.4", 60]
    - ["0.8", 90]
  buy_confidence_threshold: 75
advisory:
  enabled: false
  fallback: PROCEED
  timeout_seconds: 3
execution:
  base_token: "{BASE_TOKEN}"
  quote_token: "{QUOTE_TOKEN}"
  router: "{ROUTER}"
  recipient: "{RECIPIENT}"
  position_size: "250"
  slippage_bps: 50
  quote_decimals: 6
loop:
  symbol: "ETH_USDT"
  scan_interval_seconds: 5
  rpc_url: "http://127.0.0.1:8545"
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in SECRET_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "agent.yaml"
    path.write_text(YAML, encoding="utf-8")
    return path


class TestLoadAgentConfig:
    """YAML plus environment secrets."""

    def test_bundled_config_loads_and_validates_with_recipient(self, monkeypatch):
        monkeypatch.setenv("RPC_URL", "https://rpc.example")
        monkeypatch.setenv("RECIPIENT_ADDRESS", RECIPIENT)
        cfg = load_agent_config(CONFIG_DIR / "agent.yaml", dotenv_path=Path("/nonexistent/.env"))

        cfg.validate()
        assert cfg.risk.max_position_size == Decimal("5000")
        assert cfg.advisory.fallback == AdvisoryFallback.REJECT
        assert cfg.risk.balance_source == BalanceSourceKind.NONE

    def test_values_from_yaml(self, config_file):
        cfg = load_agent_config(config_file, dotenv_path=config_file.parent / ".env")

        assert cfg.risk.exposure_ceiling == Decimal("4000")
        assert cfg.risk.max_daily_loss == Decimal("100")
        assert cfg.spread.confidence_buckets[1] == (Decimal("0.4"), 60)
        assert cfg.spread.buy_confidence_threshold == 75
        assert cfg.advisory.enabled is False
        assert cfg.advisory.fallback == AdvisoryFallback.PROCEED
        assert cfg.advisory.timeout_seconds == 3.0
        assert cfg.execution.position_size == Decimal("250")
        assert cfg.execution.quote_decimals == 6
        assert cfg.loop.symbol == "ETH_USDT"
        assert cfg.risk.balance_source == BalanceSourceKind.WALLET
        assert cfg.execution.router == ROUTER
        cfg.validate()

    def test_secrets_from_environment(self, config_file, monkeypatch):
        monkeypatch.setenv("AGENT_PRIVATE_KEY", "0xabc")
        monkeypatch.setenv("ADVISORY_API_KEY", "sk-test")
        monkeypatch.setenv("RPC_URL", "https://rpc.example")
        monkeypatch.setenv("RECIPIENT_ADDRESS", "0x" + "5" * 40)

        cfg = load_agent_config(config_file, dotenv_path=config_file.parent / ".env")

        assert cfg.private_key == "0xabc"
        assert cfg.advisory.api_key == "sk-test"
        assert cfg.loop.rpc_url == "https://rpc.example"
        assert cfg.execution.recipient == "0x" + "5" * 40

    def test_private_key_not_in_repr(self, config_file, monkeypatch):
        monkeypatch.setenv("AGENT_PRIVATE_KEY", "0xsupersecret")
        cfg = load_agent_config(config_file, dotenv_path=config_file.parent / ".env")
        assert "supersecret" not in repr(cfg)

    def test_lowercase_addresses_checksummed(self, tmp_path):
        path = tmp_path / "agent.yaml"
        lower = "0x5c7f8a570d578ed84e63fdfa7b1ee72deae1ae23"
        path.write_text(f'execution:\n  base_token: "{lower}"\n', encoding="utf-8")
        cfg = load_agent_config(path, dotenv_path=tmp_path / ".env")
        assert cfg.execution.base_token == checksum(lower)
        assert cfg.execution.base_token != lower

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_agent_config(tmp_path / "missing.yaml", dotenv_path=tmp_path / ".env")

    def test_bad_number(self, tmp_path):
        path = tmp_path / "agent.yaml"
        path.write_text('risk:\n  max_position_size: "lots"\n', encoding="utf-8")
        with pytest.raises(ConfigError):
            load_agent_config(path, dotenv_path=tmp_path / ".env")

    def test_bad_fallback(self, tmp_path):
        path = tmp_path / "agent.yaml"
        path.write_text("advisory:\n  fallback: maybe\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_agent_config(path, dotenv_path=tmp_path / ".env")

    def test_bad_integer(self, tmp_path):
        path = tmp_path / "agent.yaml"
        path.write_text("execution:\n  slippage_bps: abc\n", encoding="utf-8")
        with pytest.raises(ConfigError) as exc_info:
            load_agent_config(path, dotenv_path=tmp_path / ".env")
        assert "slippage_bps" in str(exc_info.value)

    def test_non_finite_number(self, tmp_path):
        path = tmp_path / "agent.yaml"
        path.write_text('execution:\n  position_size: "NaN"\n', encoding="utf-8")
        with pytest.raises(ConfigError):
            load_agent_config(path, dotenv_path=tmp_path / ".env")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "agent.yaml"
        path.write_text("risk: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError) as exc_info:
            load_agent_config(path, dotenv_path=tmp_path / ".env")
        assert "not valid YAML" in str(exc_info.value)

    def test_section_must_be_mapping(self, tmp_path):
        path = tmp_path / "agent.yaml"
        path.write_text("risk: [1, 2]\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_agent_config(path, dotenv_path=tmp_path / ".env")

    def test_bad_balance_source(self, tmp_path):
        path = tmp_path / "agent.yaml"
        path.write_text("risk:\n  balance_source: bank\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_agent_config(path, dotenv_path=tmp_path / ".env")

    def test_vault_balance_source(self, tmp_path):
        path = tmp_path / "agent.yaml"
        path.write_text(
            f'risk:\n  balance_source: VAULT\n  vault_address: "{RECIPIENT}"\n', encoding="utf-8"
        )
        cfg = load_agent_config(path, dotenv_path=tmp_path / ".env")
        assert cfg.risk.balance_source == BalanceSourceKind.VAULT
        assert cfg.risk.vault_address == RECIPIENT


class TestValidate(unittest.TestCase):
    """AgentConfig.validate() lists every problem."""

    def valid(self) -> AgentConfig:
        cfg = AgentConfig()
        cfg.advisory.url = "http://127.0.0.1:8787"
        cfg.execution.base_token = BASE_TOKEN
        cfg.execution.quote_token = QUOTE_TOKEN
        cfg.execution.router = ROUTER
        cfg.execution.recipient = RECIPIENT
        cfg.loop.rpc_url = "http://127.0.0.1:8545"
        return cfg

    def test_valid(self):
        self.valid().validate()

    def test_collects_problems(self):
        cfg = self.valid()
        cfg.risk.max_position_size = Decimal("0")
        cfg.execution.recipient = "0x1234"
        cfg.advisory.timeout_seconds = 0

        with self.assertRaises(ConfigError) as ctx:
            cfg.validate()

        self.assertEqual(ctx.exception.code, ErrorCode.CONFIG_INVALID)
        self.assertEqual(len(ctx.exception.details["problems"]), 3)

    def test_advisory_url_required_when_enabled(self):
        cfg = self.valid()
        cfg.advisory.url = ""
        with self.assertRaises(ConfigError):
            cfg.validate()

        cfg.advisory.enabled = False
        cfg.validate()

    def test_buckets_must_be_monotonic(self):
        cfg = self.valid()
        cfg.spread.confidence_buckets = ((Decimal("0"), 50), (Decimal("0.5"), 30))
        with self.assertRaises(ConfigError) as ctx:
            cfg.validate()
        self.assertIn("non-decreasing", str(ctx.exception))

    def test_buckets_must_start_at_zero(self):
        cfg = self.valid()
        cfg.spread.confidence_buckets = ((Decimal("0.1"), 50),)
        with self.assertRaises(ConfigError):
            cfg.validate()

    def test_slippage_range(self):
        cfg = self.valid()
        cfg.execution.slippage_bps = 10_000
        with self.assertRaises(ConfigError):
            cfg.validate()

    def test_infinite_timeout_rejected(self):
        cfg = self.valid()
        cfg.advisory.timeout_seconds = float("inf")
        with self.assertRaises(ConfigError) as ctx:
            cfg.validate()
        self.assertIn("advisory.timeout_seconds", str(ctx.exception))

    def test_router_required(self):
        cfg = self.valid()
        cfg.execution.router = ""
        with self.assertRaises(ConfigError) as ctx:
            cfg.validate()
        self.assertIn("execution.router", str(ctx.exception))

    def test_rpc_url_required(self):
        cfg = self.valid()
        cfg.loop.rpc_url = ""
        with self.assertRaises(ConfigError) as ctx:
            cfg.validate()
        self.assertIn("loop.rpc_url", str(ctx.exception))

    def test_mistyped_checksum_rejected(self):
        cfg = self.valid()
        # EIP-55 form of the hardhat account with one letter case flipped
        cfg.execution.recipient = "0xF39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
        with self.assertRaises(ConfigError):
            cfg.validate()

    def test_vault_needs_address(self):
        cfg = self.valid()
        cfg.risk.balance_source = BalanceSourceKind.VAULT
        with self.assertRaises(ConfigError) as ctx:
            cfg.validate()
        self.assertIn("risk.vault_address", str(ctx.exception))

        cfg.risk.vault_address = RECIPIENT
        cfg.validate()


if __name__ == "__main__":
    unittest.main()
