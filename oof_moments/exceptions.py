"""
OOF Moments Exceptions - Error hierarchy for partial-failure tolerance.

Chain, price and parse errors are recovered inside the analyzer.
Only ``AnalysisRateLimitedError`` reaches the caller of ``analyze_wallet``.
"""

from datetime import datetime
from typing import Any, Optional

from .models import Chain, utcnow


class OOFAnalysisError(Exception):
    """Base exception for all wallet analysis errors."""

    def __init__(
        self,
        message: str,
        chain: Optional[Chain] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.chain = chain
        self.details = details or {}
        self.timestamp = utcnow()
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "chain": self.chain.value if self.chain else None,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class ChainUnavailableError(OOFAnalysisError):
    """A chain's fetch failed or timed out."""

    def __init__(
        self,
        chain: Chain,
        reason: str = "Unknown",
    ) -> None:
        super().__init__(
            f"Chain unavailable for {chain.value}: {reason}",
            chain,
        )
        self.reason = reason


class PriceUnavailableError(OOFAnalysisError):
    """Price oracle had no data for a token."""

    def __init__(
        self,
        token_address: str,
        chain: Optional[Chain] = None,
        reason: str = "no data",
    ) -> None:
        super().__init__(
            f"Price unavailable for {token_address}: {reason}",
            chain,
        )
        self.token_address = token_address


class MalformedTransactionError(OOFAnalysisError):
    """A single raw event could not be normalized."""

    def __init__(
        self,
        message: str,
        chain: Optional[Chain] = None,
        raw_data: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, chain, details)
        self.raw_data = raw_data[:500] if raw_data else None


class RateLimitError(OOFAnalysisError):
    """Upstream API rate limit exceeded."""

    def __init__(
        self,
        message: str,
        chain: Optional[Chain] = None,
        retry_after_seconds: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, chain, details)
        self.retry_after_seconds = retry_after_seconds


class RPCError(OOFAnalysisError):
    """RPC node connection or response error."""

    def __init__(
        self,
        message: str,
        chain: Optional[Chain] = None,
        rpc_url: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, chain, details)
        self.rpc_url = rpc_url
        self.status_code = status_code


class APIError(OOFAnalysisError):
    """External HTTP API (explorer, price oracle) error."""

    def __init__(
        self,
        message: str,
        chain: Optional[Chain] = None,
        api_name: str = "",
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, chain, details)
        self.api_name = api_name
        self.status_code = status_code


class AllChainsFailedError(OOFAnalysisError):
    """Every configured chain failed."""

    def __init__(self, failures: dict[Chain, str]) -> None:
        summary = "; ".join(
            f"{chain.value}: {reason}"
            for chain, reason in sorted(failures.items(), key=lambda i: i[0].value)
        )
        super().__init__(
            f"All chains failed ({summary})" if summary else "No chains configured",
            details={chain.value: reason for chain, reason in failures.items()},
        )
        self.failures = failures


class AnalysisRateLimitedError(OOFAnalysisError):
    """Wallet is still cooling down from its previous analysis."""

    def __init__(
        self,
        wallet_address: str,
        next_allowed_time: datetime,
    ) -> None:
        super().__init__(
            f"Analysis for {wallet_address} not allowed until {next_allowed_time.isoformat()}",
            details={"next_allowed_time": next_allowed_time.isoformat()},
        )
        self.wallet_address = wallet_address
        self.next_allowed_time = next_allowed_time


class StorageError(OOFAnalysisError):
    """Rate-limit store operation error."""
    pass


class ConfigurationError(OOFAnalysisError):
    """Invalid configuration."""
    pass
