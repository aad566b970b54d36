"""
Position Accountant - Folds a token's transactions into a position.

Cost basis is a value-weighted average over all buys (and symmetrically
over all sells). Individual lots are not matched, so realized P&L on
partially closed positions is an approximation.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Iterable, Optional

from .config import AnalyzerConfig, get_config
from .exceptions import PriceUnavailableError
from .models import Chain, TokenPositionAnalysis, TokenTransaction, TransactionKind
from .sources.base import ChainTransactionSource, PriceOracle


logger = logging.getLogger(__name__)


def group_by_token(
    transactions: Iterable[TokenTransaction],
) -> dict[str, list[TokenTransaction]]:
    """Group transactions per token, keeping their relative order."""
    groups: dict[str, list[TokenTransaction]] = defaultdict(list)
    for tx in transactions:
        groups[tx.token_address].append(tx)
    return dict(groups)


def _weighted_average(transactions: list[TokenTransaction], total: float) -> float:
    if total <= 0:
        return 0.0
    return sum(tx.amount * tx.price_per_unit for tx in transactions) / total


def build_position(
    token_address: str,
    chain: Chain,
    transactions: list[TokenTransaction],
    current_holding: float = 0.0,
    current_price: float = 0.0,
    oracle_peak_price: float = 0.0,
    symbol: Optional[str] = None,
    name: Optional[str] = None,
) -> TokenPositionAnalysis:
    """
    Compute volumes, average prices, P&L and peak exposure for one token.

    Category flags are left unset; the categorizer owns them.
    """
    buys = [tx for tx in transactions if tx.kind == TransactionKind.BUY]
    sells = [tx for tx in transactions if tx.kind == TransactionKind.SELL]

    total_bought = sum(tx.amount for tx in buys)
    total_sold = sum(tx.amount for tx in sells)

    average_buy_price = _weighted_average(buys, total_bought)
    average_sell_price = _weighted_average(sells, total_sold)

    # Peak: highest of any execution price and the oracle's history
    peak_price = max(oracle_peak_price, 0.0)
    peak_timestamp = None
    for tx in transactions:
        if tx.price_per_unit > peak_price:
            peak_price = tx.price_per_unit
            peak_timestamp = tx.timestamp

    realized_pnl = (average_sell_price - average_buy_price) * total_sold
    unrealized_pnl = (current_price - average_buy_price) * current_holding

    missed_multiplier = 0.0
    if total_sold > 0 and average_sell_price > 0 and peak_price > average_sell_price:
        missed_multiplier = peak_price / average_sell_price

    return TokenPositionAnalysis(
        token_address=token_address,
        symbol=symbol or _fallback_symbol(token_address),
        name=name or f"Token {token_address[:8]}",
        chain=chain,
        total_bought=total_bought,
        total_sold=total_sold,
        current_holding=current_holding,
        average_buy_price=average_buy_price,
        average_sell_price=average_sell_price,
        current_price=current_price,
        peak_price=peak_price,
        peak_timestamp=peak_timestamp,
        realized_pnl=realized_pnl,
        unrealized_pnl=unrealized_pnl,
        missed_opportunity_multiplier=missed_multiplier,
        transactions=list(transactions),
    )


def _fallback_symbol(token_address: str) -> str:
    address = token_address[2:] if token_address.startswith("0x") else token_address
    return address[:6].upper()


class PositionAccountant:
    """
    Builds positions for every token seen on one chain.

    External lookups degrade instead of failing:
    - price miss -> price 0 (token can no longer be a gain)
    - holding miss -> holding 0
    - metadata miss -> symbol derived from the address
    """

    MAX_CONCURRENT_LOOKUPS = 5

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
    ) -> None:
        self.config = config or get_config()

        # Statistics
        self._stats = {
            "positions_built": 0,
            "tokens_below_min_transactions": 0,
            "price_misses": 0,
            "holding_misses": 0,
        }

    async def analyze_chain(
        self,
        chain: Chain,
        wallet_address: str,
        transactions: list[TokenTransaction],
        source: ChainTransactionSource,
        oracle: PriceOracle,
    ) -> list[TokenPositionAnalysis]:
        """
        Build one position per token with enough transactions.

        Args:
            chain: Chain being analysed
            wallet_address: Wallet that owns the positions
            transactions: Normalized transactions for this chain
            source: Provides current holdings
            oracle: Provides current and peak prices

        Returns:
            Positions ordered by token address
        """
        min_transactions = self.config.thresholds.min_transactions
        groups = group_by_token(transactions)

        eligible = {}
        for token, token_txs in groups.items():
            if len(token_txs) >= min_transactions:
                eligible[token] = token_txs
            else:
                self._stats["tokens_below_min_transactions"] += 1

        semaphore = asyncio.Semaphore(self.MAX_CONCURRENT_LOOKUPS)

        async def analyze_token(token: str) -> TokenPositionAnalysis:
            async with semaphore:
                return await self._analyze_token(
                    chain, wallet_address, token, eligible[token], source, oracle
                )

        positions = await asyncio.gather(*(analyze_token(t) for t in sorted(eligible)))
        self._stats["positions_built"] += len(positions)

        logger.debug(
            f"[{chain.value}] {len(positions)} positions from {len(groups)} tokens"
        )
        return list(positions)

    async def _analyze_token(
        self,
        chain: Chain,
        wallet_address: str,
        token: str,
        transactions: list[TokenTransaction],
        source: ChainTransactionSource,
        oracle: PriceOracle,
    ) -> TokenPositionAnalysis:
        holding = await self._lookup(
            source.fetch_current_holding(chain, wallet_address, token),
            f"holding of {token}",
            chain,
        )
        if holding is None:
            self._stats["holding_misses"] += 1
            holding = 0.0

        current_price = await self._price(oracle.fetch_current_price(chain, token), token, chain)
        peak_price = await self._price(oracle.fetch_peak_price(chain, token), token, chain)

        metadata = await self._lookup(
            oracle.fetch_token_metadata(chain, token),
            f"metadata of {token}",
            chain,
        )
        symbol, name = metadata if metadata else _metadata_from_transactions(transactions)

        return build_position(
            token_address=token,
            chain=chain,
            transactions=transactions,
            current_holding=holding,
            current_price=current_price,
            oracle_peak_price=peak_price,
            symbol=symbol,
            name=name,
        )

    async def _price(
        self,
        lookup: Awaitable[Optional[float]],
        token: str,
        chain: Chain,
    ) -> float:
        try:
            price = await lookup
            if not price or price < 0:
                raise PriceUnavailableError(token, chain)
            return float(price)
        except PriceUnavailableError as e:
            self._stats["price_misses"] += 1
            logger.debug(f"[{chain.value}] {e.message}; assuming 0")
            return 0.0
        except Exception as e:
            self._stats["price_misses"] += 1
            logger.warning(f"[{chain.value}] Price lookup for {token} failed: {e}; assuming 0")
            return 0.0

    async def _lookup(
        self,
        lookup: Awaitable[Any],
        what: str,
        chain: Chain,
    ) -> Any:
        try:
            return await lookup
        except Exception as e:
            logger.warning(f"[{chain.value}] Lookup of {what} failed: {e}")
            return None

    def get_stats(self) -> dict[str, Any]:
        return dict(self._stats)


def _metadata_from_transactions(
    transactions: list[TokenTransaction],
) -> tuple[Optional[str], Optional[str]]:
    for tx in transactions:
        if tx.symbol or tx.name:
            return tx.symbol, tx.name
    return None, None
