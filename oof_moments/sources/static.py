"""
Static collaborators - In-memory chain source and price oracle.

For tests and offline runs.

FEATURES:
- Fixed events and holdings per wallet
- Error injection (raise on fetch)
- Latency injection (delay before returning)
- Call tracking
"""

import asyncio
import logging
from typing import Optional, Sequence

from ..events import RawEvent
from ..models import Chain
from .base import ChainTransactionSource, PriceOracle


logger = logging.getLogger(__name__)


class StaticChainSource(ChainTransactionSource):
    """Serves preloaded events and holdings for one chain."""

    def __init__(
        self,
        chain: Chain,
        events: Optional[dict[str, Sequence[RawEvent]]] = None,
        holdings: Optional[dict[tuple[str, str], float]] = None,
        error: Optional[Exception] = None,
        delay_seconds: float = 0.0,
    ) -> None:
        self._chain = chain
        self.events = events or {}
        self.holdings = holdings or {}
        self.error = error
        self.delay_seconds = delay_seconds

        self.fetch_calls: list[str] = []
        self.holding_calls: list[tuple[str, str]] = []
        self.closed = False

    @property
    def chain(self) -> Chain:
        return self._chain

    async def fetch_transactions(
        self,
        chain: Chain,
        wallet_address: str,
    ) -> list[RawEvent]:
        self.fetch_calls.append(wallet_address)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return list(self.events.get(wallet_address, []))

    async def fetch_current_holding(
        self,
        chain: Chain,
        wallet_address: str,
        token_address: str,
    ) -> float:
        self.holding_calls.append((wallet_address, token_address))
        return self.holdings.get((wallet_address, token_address), 0.0)

    async def close(self) -> None:
        self.closed = True


class StaticPriceOracle(PriceOracle):
    """Serves fixed prices keyed by (chain, token address)."""

    def __init__(
        self,
        current: Optional[dict[tuple[Chain, str], float]] = None,
        peak: Optional[dict[tuple[Chain, str], float]] = None,
        metadata: Optional[dict[tuple[Chain, str], tuple[str, str]]] = None,
        failing_tokens: Optional[set[str]] = None,
    ) -> None:
        self.current = current or {}
        self.peak = peak or {}
        self.metadata = metadata or {}
        self.failing_tokens = failing_tokens or set()
        self.closed = False

    def _check(self, chain: Chain, token_address: str) -> None:
        if token_address in self.failing_tokens:
            raise ConnectionError(f"oracle outage for {token_address} on {chain.value}")

    async def fetch_current_price(
        self,
        chain: Chain,
        token_address: str,
    ) -> float:
        self._check(chain, token_address)
        return self.current.get((chain, token_address), 0.0)

    async def fetch_peak_price(
        self,
        chain: Chain,
        token_address: str,
    ) -> float:
        self._check(chain, token_address)
        return self.peak.get((chain, token_address), 0.0)

    async def fetch_token_metadata(
        self,
        chain: Chain,
        token_address: str,
    ) -> Optional[tuple[str, str]]:
        return self.metadata.get((chain, token_address))

    async def close(self) -> None:
        self.closed = True
