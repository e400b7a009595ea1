"""
chains/balances.py - Spendable funds for pre-trade risk checks.

Two strategies behind the BalanceSource protocol:
- WalletBalanceSource: the agent wallet pays; reads balanceOf(owner) and
  allowance(owner, router) on the input token.
- VaultBalanceSource: a vault contract pays from its own holdings; reads
  balanceOf(vault). No approval is involved, so allowance is None.
"""

from typing import Mapping

from chains.interfaces import from_raw_amount
from chains.providers import RPCProvider
from core.constants import BalanceSourceKind, ErrorCode
from core.exceptions import InfraError
from core.logging import get_logger
from core.models import FundsSnapshot

logger = get_logger(__name__)

# keccak256("balanceOf(address)")[:4]
SELECTOR_BALANCE_OF = "70a08231"
# keccak256("allowance(address,address)")[:4]
SELECTOR_ALLOWANCE = "dd62ed3e"


def _address_word(address: str) -> str:
    return address.lower().replace("0x", "").zfill(64)


def encode_balance_of(owner: str) -> str:
    return f"0x{SELECTOR_BALANCE_OF}{_address_word(owner)}"


def encode_allowance(owner: str, spender: str) -> str:
    return f"0x{SELECTOR_ALLOWANCE}{_address_word(owner)}{_address_word(spender)}"


def decode_uint(hex_result: str) -> int:
    """
    Decode a single uint256 return value.

    Raises:
        InfraError(INFRA_BAD_RESPONSE): empty or non-hex data
    """
    data = hex_result[2:] if hex_result.startswith("0x") else hex_result
    try:
        if len(data) < 64:
            raise ValueError(f"{len(data)} hex chars")
        return int(data[:64], 16)
    except ValueError as e:
        raise InfraError(
            code=ErrorCode.INFRA_BAD_RESPONSE,
            message=f"Bad uint256 result: {e}",
            details={"raw": hex_result[:100]},
        ) from e


class _Erc20Reader:

    def __init__(self, provider: RPCProvider, decimals: Mapping[str, int]):
        self.provider = provider
        self.decimals = {token.lower(): d for token, d in decimals.items()}

    def _decimals(self, token: str) -> int:
        try:
            return self.decimals[token.lower()]
        except KeyError as e:
            raise InfraError(
                code=ErrorCode.INFRA_BAD_RESPONSE,
                message=f"No decimals configured for token {token}",
                details={"token": token},
            ) from e

    async def _read(self, token: str, call_data: str) -> int:
        return decode_uint(await self.provider.eth_call(to=token, data=call_data))


class WalletBalanceSource(_Erc20Reader):
    """Agent wallet balance and router allowance."""

    def __init__(self, provider: RPCProvider, owner: str, decimals: Mapping[str, int]):
        super().__init__(provider, decimals)
        self.owner = owner

    async def get_funds(self, token: str, spender: str) -> FundsSnapshot:
        decimals = self._decimals(token)
        balance = await self._read(token, encode_balance_of(self.owner))
        allowance = await self._read(token, encode_allowance(self.owner, spender))
        funds = FundsSnapshot(
            token=token,
            available=from_raw_amount(balance, decimals),
            allowance=from_raw_amount(allowance, decimals),
            source=BalanceSourceKind.WALLET.value,
        )
        logger.debug("Wallet funds", extra={"context": {"owner": self.owner, **funds.to_dict()}})
        return funds


class VaultBalanceSource(_Erc20Reader):
    """Token balance held by the settlement vault."""

    def __init__(self, provider: RPCProvider, vault: str, decimals: Mapping[str, int]):
        super().__init__(provider, decimals)
        self.vault = vault

    async def get_funds(self, token: str, spender: str) -> FundsSnapshot:
        decimals = self._decimals(token)
        balance = await self._read(token, encode_balance_of(self.vault))
        funds = FundsSnapshot(
            token=token,
            available=from_raw_amount(balance, decimals),
            source=BalanceSourceKind.VAULT.value,
        )
        logger.debug("Vault funds", extra={"context": {"vault": self.vault, **funds.to_dict()}})
        return funds
