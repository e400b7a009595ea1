# PATH: core/exceptions.py
"""
Typed exceptions for CROSSARB.

Transient errors (infra, advisory, execution) are recoverable at the cycle
level. SigningError and ConfigError are fatal to the process.
"""

from typing import Optional

from core.constants import ErrorCode


class CrossArbError(Exception):
    """Base exception for CROSSARB."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self):
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class InfraError(CrossArbError):
    """Infrastructure-related errors (RPC, HTTP, timeouts)."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INFRA_RPC_ERROR,
        details: Optional[dict] = None,
    ):
        super().__init__(message, code, details)


class InvalidMarketDataError(CrossArbError):
    """Market inputs cannot be evaluated (broken feed, not a bad opportunity)."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_MARKET_DATA,
        details: Optional[dict] = None,
    ):
        super().__init__(message, code, details)


class AdvisoryError(CrossArbError):
    """Advisory service unavailable, slow, or returned garbage."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.ADVISORY_UNAVAILABLE,
        details: Optional[dict] = None,
    ):
        super().__init__(message, code, details)


class SigningError(CrossArbError):
    """Settlement signing failed. Key material is broken; fatal."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, ErrorCode.SIGNING_FAILED, details)


class ExecutionError(CrossArbError):
    """Trade submission failed or was refused before submission."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EXECUTION_ERROR,
        details: Optional[dict] = None,
    ):
        super().__init__(message, code, details)


class SettlementError(CrossArbError):
    """Settlement delivery failed after a confirmed trade."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SETTLEMENT_FAILED,
        details: Optional[dict] = None,
    ):
        super().__init__(message, code, details)


class ConfigError(CrossArbError):
    """Configuration is missing or inconsistent; fatal."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, ErrorCode.CONFIG_INVALID, details)
