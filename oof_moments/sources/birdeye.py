"""
Birdeye Price Oracle - Spot, historical peak and token metadata.

Birdeye covers Solana, Base and Avalanche behind one API selected by the
``x-chain`` header. Unknown tokens resolve to price 0.
"""

import logging
import time
from datetime import datetime
from typing import Any, Optional

import aiohttp

from ..config import AnalyzerConfig, get_config
from ..exceptions import APIError, RateLimitError
from ..models import Chain
from .base import PriceOracle


logger = logging.getLogger(__name__)


class BirdeyePriceOracle(PriceOracle):
    """
    Price lookups against https://public-api.birdeye.so.

    Results are cached per (kind, chain, token) for DEFAULT_CACHE_TTL.
    """

    BASE_URL = "https://public-api.birdeye.so"
    DEFAULT_CACHE_TTL = 300  # 5 minutes
    DEFAULT_TIMEOUT = 15  # seconds

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        api_key: Optional[str] = None,
    ) -> None:
        self.config = config or get_config()
        self.api_key = api_key or self.config.birdeye_api_key

        self._session: Optional[aiohttp.ClientSession] = None
        self._cache: dict[tuple[str, str, str], tuple[Any, datetime]] = {}

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.DEFAULT_TIMEOUT)
            headers = {"accept": "application/json"}
            if self.api_key:
                headers["X-API-KEY"] = self.api_key
            self._session = aiohttp.ClientSession(timeout=timeout, headers=headers)
        return self._session

    async def _get(
        self,
        path: str,
        chain: Chain,
        params: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        """GET a Birdeye endpoint and return its ``data`` object."""
        session = await self._get_session()

        try:
            async with session.get(
                f"{self.BASE_URL}{path}",
                params={k: str(v) for k, v in params.items()},
                headers={"x-chain": chain.value},
            ) as response:
                if response.status == 429:
                    raise RateLimitError(
                        "Birdeye rate limit exceeded",
                        chain=chain,
                        retry_after_seconds=1,
                    )
                if response.status == 404:
                    return None
                if response.status != 200:
                    raise APIError(
                        f"Birdeye HTTP {response.status}",
                        chain=chain,
                        api_name="birdeye",
                        status_code=response.status,
                    )
                data = await response.json()

        except aiohttp.ClientError as e:
            raise APIError(
                f"Network error: {e}",
                chain=chain,
                api_name="birdeye",
            )

        if not data.get("success"):
            return None
        return data.get("data")

    def _cached(self, key: tuple[str, str, str]) -> Optional[Any]:
        if key not in self._cache:
            return None
        value, stored_at = self._cache[key]
        if (datetime.now() - stored_at).total_seconds() <= self.DEFAULT_CACHE_TTL:
            return value
        del self._cache[key]
        return None

    def _store(self, key: tuple[str, str, str], value: Any) -> Any:
        self._cache[key] = (value, datetime.now())
        return value

    async def fetch_current_price(
        self,
        chain: Chain,
        token_address: str,
    ) -> float:
        key = ("price", chain.value, token_address)
        cached = self._cached(key)
        if cached is not None:
            return cached

        data = await self._get("/defi/price", chain, {"address": token_address})
        price = float((data or {}).get("value") or 0.0)
        return self._store(key, price)

    async def fetch_peak_price(
        self,
        chain: Chain,
        token_address: str,
    ) -> float:
        """Highest daily price over the token's recorded history."""
        key = ("peak", chain.value, token_address)
        cached = self._cached(key)
        if cached is not None:
            return cached

        data = await self._get(
            "/defi/history_price",
            chain,
            {
                "address": token_address,
                "address_type": "token",
                "type": "1D",
                "time_from": 0,
                "time_to": int(time.time()),
            },
        )
        items = (data or {}).get("items") or []
        peak = max((float(item.get("value") or 0.0) for item in items), default=0.0)
        return self._store(key, peak)

    async def fetch_token_metadata(
        self,
        chain: Chain,
        token_address: str,
    ) -> Optional[tuple[str, str]]:
        key = ("meta", chain.value, token_address)
        cached = self._cached(key)
        if cached is not None:
            return cached

        data = await self._get(
            "/defi/v3/token/meta-data/single",
            chain,
            {"address": token_address},
        )
        if not data or not data.get("symbol"):
            return None
        return self._store(key, (data["symbol"], data.get("name") or data["symbol"]))

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
