"""
Base collaborators - Interfaces the analysis engine consumes.

Chain access and pricing live behind these so public endpoints can be
swapped for premium providers (Helius, Moralis, Birdeye Pro) without
touching the pipeline.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..events import RawEvent
from ..models import Chain


logger = logging.getLogger(__name__)


class ChainTransactionSource(ABC):
    """
    Per-chain access to a wallet's history and balances.

    ``fetch_transactions`` may raise; the analyzer treats any exception
    as the chain being unavailable for this run.
    """

    @property
    @abstractmethod
    def chain(self) -> Chain:
        """Return the chain this source handles."""
        pass

    @abstractmethod
    async def fetch_transactions(
        self,
        chain: Chain,
        wallet_address: str,
    ) -> Sequence[RawEvent]:
        """Bounded, time-ordered raw events touching the wallet."""
        pass

    @abstractmethod
    async def fetch_current_holding(
        self,
        chain: Chain,
        wallet_address: str,
        token_address: str,
    ) -> float:
        """Current balance of a token in token units."""
        pass

    async def close(self) -> None:
        """Cleanup resources. Override if needed."""
        pass


class PriceOracle(ABC):
    """
    Spot and historical peak prices in USD.

    Both price methods return 0 for unknown tokens.
    """

    @abstractmethod
    async def fetch_current_price(
        self,
        chain: Chain,
        token_address: str,
    ) -> float:
        pass

    @abstractmethod
    async def fetch_peak_price(
        self,
        chain: Chain,
        token_address: str,
    ) -> float:
        pass

    async def fetch_token_metadata(
        self,
        chain: Chain,
        token_address: str,
    ) -> Optional[tuple[str, str]]:
        """(symbol, name) if known."""
        return None

    async def close(self) -> None:
        pass
