"""
Solana Chain Source - Solana JSON-RPC integration.

Uses getSignaturesForAddress + getTransaction (jsonParsed) for history and
getTokenAccountsByOwner for current balances.
Rate limits vary by RPC provider - detail fetches are bounded.
"""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from ..config import AnalyzerConfig, get_config
from ..events import SolanaRawEvent
from ..exceptions import MalformedTransactionError, RateLimitError, RPCError
from ..models import Chain
from .base import ChainTransactionSource


logger = logging.getLogger(__name__)


class SolanaRpcSource(ChainTransactionSource):
    """
    Solana history and balances over public RPC.

    RPC endpoints:
    - Mainnet: https://api.mainnet-beta.solana.com
    - Can be replaced with Helius, QuickNode, or premium RPC via SOLANA_RPC_URL
    """

    MAX_SIGNATURES_PER_CALL = 1000
    MAX_CONCURRENT_DETAIL_FETCHES = 5

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        rpc_url: Optional[str] = None,
    ) -> None:
        self.config = config or get_config()
        self.chain_config = self.config.get_chain_config(Chain.SOLANA)

        self.rpc_url = rpc_url or (
            self.chain_config.rpc_url if self.chain_config
            else "https://api.mainnet-beta.solana.com"
        )
        self.max_events = self.chain_config.max_events if self.chain_config else 200
        self.timeout_seconds = (
            self.chain_config.request_timeout_seconds if self.chain_config else 20.0
        )

        self._session: Optional[aiohttp.ClientSession] = None
        self._request_id = 0

    @property
    def chain(self) -> Chain:
        return Chain.SOLANA

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            headers = {"Content-Type": "application/json"}
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
            )
        return self._session

    def _next_request_id(self) -> int:
        """Get next JSON-RPC request ID."""
        self._request_id += 1
        return self._request_id

    async def _rpc_call(
        self,
        method: str,
        params: list[Any],
    ) -> Any:
        """Make a JSON-RPC call to Solana."""
        session = await self._get_session()

        payload = {
            "jsonrpc": "2.0",
            "id": self._next_request_id(),
            "method": method,
            "params": params,
        }

        try:
            async with session.post(self.rpc_url, json=payload) as response:
                if response.status == 429:
                    raise RateLimitError(
                        "Solana RPC rate limit exceeded",
                        chain=Chain.SOLANA,
                        retry_after_seconds=5,
                    )

                if response.status != 200:
                    raise RPCError(
                        f"RPC error: {response.status}",
                        chain=Chain.SOLANA,
                        rpc_url=self.rpc_url,
                        status_code=response.status,
                    )

                data = await response.json()

                if "error" in data:
                    error = data["error"]
                    raise RPCError(
                        f"RPC error: {error.get('message', 'Unknown')}",
                        chain=Chain.SOLANA,
                        details=error,
                    )

                return data.get("result")

        except aiohttp.ClientError as e:
            raise RPCError(
                f"Network error: {e}",
                chain=Chain.SOLANA,
                rpc_url=self.rpc_url,
            )

    async def fetch_transactions(
        self,
        chain: Chain,
        wallet_address: str,
    ) -> list[SolanaRawEvent]:
        """
        Fetch the wallet's most recent transactions, oldest first.

        Signature listing failures propagate; single detail fetches that
        fail are skipped.
        """
        params = [
            wallet_address,
            {"limit": min(self.max_events, self.MAX_SIGNATURES_PER_CALL)},
        ]
        signatures = await self._rpc_call("getSignaturesForAddress", params) or []

        semaphore = asyncio.Semaphore(self.MAX_CONCURRENT_DETAIL_FETCHES)

        async def fetch_one(signature: str) -> Optional[SolanaRawEvent]:
            async with semaphore:
                return await self._get_transaction(signature)

        wanted = [
            s["signature"] for s in signatures[:self.max_events]
            if s.get("signature") and not s.get("err")
        ]
        results = await asyncio.gather(*(fetch_one(sig) for sig in wanted))

        events = [event for event in results if event is not None]
        events.sort(key=lambda e: (e.block_time or 0, e.slot, e.signature))

        logger.debug(
            f"[solana] {len(events)}/{len(signatures)} transactions fetched for {wallet_address}"
        )
        return events

    async def _get_transaction(self, signature: str) -> Optional[SolanaRawEvent]:
        """Get and parse full transaction details."""
        try:
            params = [
                signature,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                },
            ]
            result = await self._rpc_call("getTransaction", params)
        except (RPCError, RateLimitError) as e:
            logger.debug(f"Failed to get transaction {signature[:20]}...: {e}")
            return None

        if not result:
            return None

        result["signature"] = signature
        try:
            return SolanaRawEvent.from_rpc(result)
        except (KeyError, TypeError, ValueError) as e:
            error = MalformedTransactionError(
                f"Unparseable transaction {signature[:20]}...: {e!r}",
                chain=Chain.SOLANA,
                raw_data=str(result),
            )
            logger.warning(error.message)
            return None

    async def fetch_current_holding(
        self,
        chain: Chain,
        wallet_address: str,
        token_address: str,
    ) -> float:
        """Sum of the wallet's token accounts for a mint."""
        result = await self._rpc_call(
            "getTokenAccountsByOwner",
            [
                wallet_address,
                {"mint": token_address},
                {"encoding": "jsonParsed"},
            ],
        )

        total = 0.0
        for account in (result or {}).get("value", []):
            info = account["account"]["data"]["parsed"]["info"]
            total += float(info["tokenAmount"].get("uiAmount") or 0.0)
        return total

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
