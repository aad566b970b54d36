"""
EVM Chain Source - Etherscan V2 multichain API integration.

Serves Base (chainid 8453) and Avalanche C-Chain (chainid 43114) through
the unified V2 endpoint. A wallet's history is rebuilt from three lists:
ERC-20 transfers (tokentx), normal transactions (txlist) and internal
transactions (txlistinternal, where DEX routers pay out native value).
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Optional

import aiohttp

from ..config import AnalyzerConfig, ChainConfig, get_config
from ..events import EVM_EVENT_TYPES, EvmRawEvent, EvmTransferLeg
from ..exceptions import APIError, ConfigurationError, RateLimitError
from ..models import Chain
from .base import ChainTransactionSource


logger = logging.getLogger(__name__)


WEI_PER_NATIVE = 10 ** 18


class EvmExplorerSource(ChainTransactionSource):
    """
    EVM history and balances via the Etherscan V2 API.

    Free tier constraints:
    - 5 requests/second, we pause between list calls
    - API key required for V2 (ETHERSCAN_API_KEY)
    """

    V2_API_URL = "https://api.etherscan.io/v2/api"
    REQUEST_SPACING_SECONDS = 0.25

    def __init__(
        self,
        chain: Chain,
        config: Optional[AnalyzerConfig] = None,
        api_key: Optional[str] = None,
    ) -> None:
        if chain not in EVM_EVENT_TYPES:
            raise ConfigurationError(f"{chain.value} is not an EVM chain", chain)

        self.config = config or get_config()
        self._chain = chain
        self.chain_config: ChainConfig = (
            self.config.get_chain_config(chain) or ChainConfig(chain=chain)
        )
        if self.chain_config.explorer_chain_id is None:
            raise ConfigurationError(f"No explorer chain id for {chain.value}", chain)

        self.api_key = api_key or self.chain_config.explorer_api_key
        self.base_url = self.chain_config.explorer_api_url or self.V2_API_URL
        self.event_type = EVM_EVENT_TYPES[chain]

        self._session: Optional[aiohttp.ClientSession] = None
        self._decimals: dict[str, int] = {}

    @property
    def chain(self) -> Chain:
        return self._chain

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.chain_config.request_timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def _explorer_get(self, action: str, **extra: Any) -> Any:
        """Call one account-module action and return its ``result``."""
        session = await self._get_session()

        params = {
            "chainid": str(self.chain_config.explorer_chain_id),
            "module": "account",
            "action": action,
            **{k: str(v) for k, v in extra.items()},
        }
        if self.api_key:
            params["apikey"] = self.api_key

        try:
            async with session.get(self.base_url, params=params) as response:
                if response.status == 429:
                    raise RateLimitError(
                        "Explorer rate limit exceeded",
                        chain=self.chain,
                        retry_after_seconds=60,
                    )
                if response.status != 200:
                    raise APIError(
                        f"Explorer HTTP {response.status}",
                        chain=self.chain,
                        api_name="etherscan",
                        status_code=response.status,
                    )

                data = await response.json()

        except aiohttp.ClientError as e:
            raise APIError(
                f"Network error: {e}",
                chain=self.chain,
                api_name="etherscan",
            )

        if data.get("status") == "0":
            message = str(data.get("message", ""))
            result = str(data.get("result", ""))
            # No transactions is not an error
            if "no transactions" in message.lower():
                return []
            if "rate limit" in (message + result).lower():
                raise RateLimitError(
                    f"Explorer rate limit: {result or message}",
                    chain=self.chain,
                )
            raise APIError(
                f"Explorer error: {result or message}",
                chain=self.chain,
                api_name="etherscan",
            )

        return data.get("result", [])

    async def fetch_transactions(
        self,
        chain: Chain,
        wallet_address: str,
    ) -> list[EvmRawEvent]:
        """Rebuild the wallet's recent transactions, oldest first."""
        wallet = wallet_address.lower()
        list_params = {
            "address": wallet,
            "startblock": 0,
            "endblock": 99999999,
            "page": 1,
            "offset": self.chain_config.max_events,
            "sort": "desc",
        }

        token_rows = list(await self._explorer_get("tokentx", **list_params))
        for contract in self.chain_config.watchlist:
            await asyncio.sleep(self.REQUEST_SPACING_SECONDS)
            token_rows.extend(
                await self._explorer_get("tokentx", contractaddress=contract, **list_params)
            )

        await asyncio.sleep(self.REQUEST_SPACING_SECONDS)
        normal_rows = await self._explorer_get("txlist", **list_params)
        await asyncio.sleep(self.REQUEST_SPACING_SECONDS)
        internal_rows = await self._explorer_get("txlistinternal", **list_params)

        events = self._build_events(wallet, token_rows, normal_rows, internal_rows)
        logger.debug(f"[{self.chain.value}] {len(events)} transactions for {wallet}")
        return events

    def _build_events(
        self,
        wallet: str,
        token_rows: list[dict[str, Any]],
        normal_rows: list[dict[str, Any]],
        internal_rows: list[dict[str, Any]],
    ) -> list[EvmRawEvent]:
        """Group explorer rows by transaction hash."""
        legs: dict[str, list[EvmTransferLeg]] = defaultdict(list)
        timestamps: dict[str, int] = {}
        blocks: dict[str, int] = {}
        failed: dict[str, bool] = {}
        native_in: dict[str, float] = defaultdict(float)
        native_out: dict[str, float] = defaultdict(float)
        seen_legs: set[tuple[str, ...]] = set()

        for row in token_rows:
            tx_hash = row.get("hash", "").lower()
            dedupe_key = (
                tx_hash,
                str(row.get("logIndex", "")),
                str(row.get("contractAddress", "")).lower(),
                str(row.get("value", "")),
            )
            if not tx_hash or dedupe_key in seen_legs:
                continue
            seen_legs.add(dedupe_key)
            try:
                leg = EvmTransferLeg.from_explorer(row)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[{self.chain.value}] Skipping malformed transfer in {tx_hash}: {e!r}")
                continue
            self._decimals[leg.token_address] = int(row.get("tokenDecimal") or 18)
            legs[tx_hash].append(leg)
            self._note_block(row, tx_hash, timestamps, blocks)

        for rows, is_internal in ((normal_rows, False), (internal_rows, True)):
            for row in rows:
                tx_hash = row.get("hash", "").lower()
                if not tx_hash:
                    continue
                self._note_block(row, tx_hash, timestamps, blocks)
                if str(row.get("isError", "0")) == "1":
                    # A reverted internal call does not fail the outer transaction
                    if not is_internal:
                        failed[tx_hash] = True
                    continue
                try:
                    value = int(row.get("value") or 0) / WEI_PER_NATIVE
                except ValueError:
                    continue
                if str(row.get("to", "")).lower() == wallet:
                    native_in[tx_hash] += value
                if str(row.get("from", "")).lower() == wallet:
                    native_out[tx_hash] += value

        events = []
        for tx_hash in set(legs) | set(native_in) | set(native_out) | set(failed):
            events.append(self.event_type(
                tx_hash=tx_hash,
                timestamp=timestamps.get(tx_hash),
                block_number=blocks.get(tx_hash, 0),
                failed=failed.get(tx_hash, False),
                transfers=tuple(legs.get(tx_hash, ())),
                native_in=native_in.get(tx_hash, 0.0),
                native_out=native_out.get(tx_hash, 0.0),
            ))

        events.sort(key=lambda e: (e.timestamp or 0, e.block_number, e.tx_hash))
        return events

    @staticmethod
    def _note_block(
        row: dict[str, Any],
        tx_hash: str,
        timestamps: dict[str, int],
        blocks: dict[str, int],
    ) -> None:
        try:
            if tx_hash not in timestamps and row.get("timeStamp"):
                timestamps[tx_hash] = int(row["timeStamp"])
            if tx_hash not in blocks and row.get("blockNumber"):
                blocks[tx_hash] = int(row["blockNumber"])
        except ValueError:
            logger.debug(f"Unreadable block data for {tx_hash}")

    async def fetch_current_holding(
        self,
        chain: Chain,
        wallet_address: str,
        token_address: str,
    ) -> float:
        """ERC-20 balance in token units."""
        result = await self._explorer_get(
            "tokenbalance",
            contractaddress=token_address,
            address=wallet_address.lower(),
            tag="latest",
        )
        decimals = self._decimals.get(token_address.lower(), 18)
        return int(result or 0) / (10 ** decimals)

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
