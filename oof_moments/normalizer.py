"""
Transaction Normalizer - Converts raw chain events into TokenTransactions.

Each event is reduced to per-token balance deltas for the wallet.
Every leg above the epsilon becomes one transaction; direction comes from
the sign of the delta. Prices are estimated from quote-asset legs
(native gas asset, wrapped native, stablecoins) moving the other way in
the same event, or left at 0 when there is none.
"""

import logging
from typing import Any, Iterable, Optional

from .config import AnalyzerConfig, ChainConfig, get_config
from .events import EvmRawEvent, SolanaRawEvent
from .exceptions import MalformedTransactionError
from .models import Chain, TokenTransaction, TransactionKind


logger = logging.getLogger(__name__)


# Key for the chain's native gas asset in quote price maps
NATIVE_QUOTE_KEY = "native"

LAMPORTS_PER_SOL = 1_000_000_000


class TransactionNormalizer:
    """
    Pure conversion of raw events to canonical transactions.

    Malformed events are logged and dropped; they never fail the batch.
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
    ) -> None:
        self.config = config or get_config()
        self.epsilon = self.config.thresholds.balance_epsilon

        # Statistics
        self._stats = {
            "events_seen": 0,
            "events_failed_onchain": 0,
            "events_malformed": 0,
            "transactions_emitted": 0,
        }

    def normalize(
        self,
        events: Iterable[Any],
        wallet_address: str,
        quote_prices: Optional[dict[str, float]] = None,
    ) -> list[TokenTransaction]:
        """
        Normalize a batch of raw events for one wallet.

        Args:
            events: Raw events from a chain source
            wallet_address: Wallet whose balance deltas are tracked
            quote_prices: USD prices of quote assets keyed by token address,
                plus ``NATIVE_QUOTE_KEY`` for the gas asset

        Returns:
            Transactions ordered by timestamp, signature and token
        """
        quote_prices = quote_prices or {}
        transactions: list[TokenTransaction] = []

        for event in events:
            self._stats["events_seen"] += 1
            try:
                transactions.extend(
                    self._normalize_event(event, wallet_address, quote_prices)
                )
            except MalformedTransactionError as e:
                self._stats["events_malformed"] += 1
                logger.warning(f"Skipping malformed event: {e.message}")
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                self._stats["events_malformed"] += 1
                logger.warning(f"Skipping malformed event {_event_id(event)}: {e!r}")

        transactions.sort(key=lambda tx: (tx.timestamp, tx.signature, tx.token_address))
        self._stats["transactions_emitted"] += len(transactions)
        return transactions

    def get_stats(self) -> dict[str, Any]:
        return dict(self._stats)

    # ─────────────────────────────────────────────────────────────
    # Per-chain conversion
    # ─────────────────────────────────────────────────────────────

    def _normalize_event(
        self,
        event: Any,
        wallet_address: str,
        quote_prices: dict[str, float],
    ) -> list[TokenTransaction]:
        if isinstance(event, SolanaRawEvent):
            return self._normalize_solana(event, wallet_address, quote_prices)
        if isinstance(event, EvmRawEvent):
            return self._normalize_evm(event, wallet_address, quote_prices)
        raise MalformedTransactionError(
            f"Unsupported event type: {type(event).__name__}",
            raw_data=repr(event),
        )

    def _normalize_solana(
        self,
        event: SolanaRawEvent,
        wallet_address: str,
        quote_prices: dict[str, float],
    ) -> list[TokenTransaction]:
        if event.failed:
            self._stats["events_failed_onchain"] += 1
            return []

        if not event.signature or event.block_time is None:
            raise MalformedTransactionError(
                "Solana event without signature or block time",
                chain=Chain.SOLANA,
                raw_data=repr(event),
            )

        deltas: dict[str, float] = {}
        for balance in event.pre_token_balances:
            if balance.owner == wallet_address:
                deltas[balance.mint] = deltas.get(balance.mint, 0.0) - (balance.ui_amount or 0.0)
        for balance in event.post_token_balances:
            if balance.owner == wallet_address:
                deltas[balance.mint] = deltas.get(balance.mint, 0.0) + (balance.ui_amount or 0.0)

        native_delta = 0.0
        if wallet_address in event.account_keys:
            index = event.account_keys.index(wallet_address)
            if index < len(event.pre_balances) and index < len(event.post_balances):
                lamports = event.post_balances[index] - event.pre_balances[index]
                # Fee payer is always the first key; gas is not a trade leg
                if index == 0:
                    lamports += event.fee_lamports
                native_delta = lamports / LAMPORTS_PER_SOL

        return self._legs_to_transactions(
            chain_config=self._chain_config(Chain.SOLANA),
            signature=event.signature,
            timestamp=int(event.block_time),
            deltas=deltas,
            native_delta=native_delta,
            metadata={},
            quote_prices=quote_prices,
        )

    def _normalize_evm(
        self,
        event: EvmRawEvent,
        wallet_address: str,
        quote_prices: dict[str, float],
    ) -> list[TokenTransaction]:
        if event.failed:
            self._stats["events_failed_onchain"] += 1
            return []

        if not event.tx_hash or event.timestamp is None:
            raise MalformedTransactionError(
                "EVM event without hash or timestamp",
                chain=event.chain,
                raw_data=repr(event),
            )

        wallet = wallet_address.lower()
        deltas: dict[str, float] = {}
        metadata: dict[str, tuple[Optional[str], Optional[str]]] = {}

        for leg in event.transfers:
            if leg.amount < 0:
                raise MalformedTransactionError(
                    f"Negative transfer amount for {leg.token_address}",
                    chain=event.chain,
                    raw_data=repr(leg),
                )
            token = leg.token_address.lower()
            if leg.to_address.lower() == wallet:
                deltas[token] = deltas.get(token, 0.0) + leg.amount
            if leg.from_address.lower() == wallet:
                deltas[token] = deltas.get(token, 0.0) - leg.amount
            if token not in metadata and (leg.symbol or leg.name):
                metadata[token] = (leg.symbol, leg.name)

        return self._legs_to_transactions(
            chain_config=self._chain_config(event.chain),
            signature=event.tx_hash,
            timestamp=int(event.timestamp),
            deltas=deltas,
            native_delta=event.native_in - event.native_out,
            metadata=metadata,
            quote_prices=quote_prices,
        )

    # ─────────────────────────────────────────────────────────────
    # Shared leg handling
    # ─────────────────────────────────────────────────────────────

    def _legs_to_transactions(
        self,
        chain_config: ChainConfig,
        signature: str,
        timestamp: int,
        deltas: dict[str, float],
        native_delta: float,
        metadata: dict[str, tuple[Optional[str], Optional[str]]],
        quote_prices: dict[str, float],
    ) -> list[TokenTransaction]:
        legs = {
            token: delta for token, delta in deltas.items()
            if abs(delta) > self.epsilon
        }
        if not legs:
            return []

        quote_addresses = {_key(chain_config, a) for a in chain_config.quote_addresses}

        # USD value of quote legs, split by direction
        quote_in = 0.0
        quote_out = 0.0
        for token, delta in legs.items():
            if _key(chain_config, token) in quote_addresses:
                value = abs(delta) * self._quote_price(chain_config, token, quote_prices)
                if delta > 0:
                    quote_in += value
                else:
                    quote_out += value
        if abs(native_delta) > self.epsilon:
            native_value = abs(native_delta) * quote_prices.get(NATIVE_QUOTE_KEY, 0.0)
            if native_delta > 0:
                quote_in += native_value
            else:
                quote_out += native_value

        transactions = []
        for token in sorted(legs):
            delta = legs[token]
            amount = abs(delta)
            kind = TransactionKind.BUY if delta > 0 else TransactionKind.SELL

            if _key(chain_config, token) in quote_addresses:
                price = self._quote_price(chain_config, token, quote_prices)
            else:
                # A buy is paid with quote assets leaving the wallet
                paid = quote_out if kind == TransactionKind.BUY else quote_in
                price = paid / amount if paid > 0 else 0.0

            symbol, name = metadata.get(token, (None, None))
            transactions.append(TokenTransaction(
                chain=chain_config.chain,
                token_address=token,
                signature=signature,
                timestamp=timestamp,
                kind=kind,
                amount=amount,
                price_per_unit=price,
                symbol=symbol,
                name=name,
            ))

        return transactions

    def _quote_price(
        self,
        chain_config: ChainConfig,
        token: str,
        quote_prices: dict[str, float],
    ) -> float:
        key = _key(chain_config, token)
        for address, price in quote_prices.items():
            if address != NATIVE_QUOTE_KEY and _key(chain_config, address) == key:
                return price
        if chain_config.is_native_asset(token):
            return quote_prices.get(NATIVE_QUOTE_KEY, 0.0)
        if key in {_key(chain_config, a) for a in chain_config.stablecoins}:
            return 1.0
        return 0.0

    def _chain_config(self, chain: Chain) -> ChainConfig:
        chain_config = self.config.get_chain_config(chain)
        if chain_config is None:
            return ChainConfig(chain=chain, enabled=False)
        return chain_config


def _key(chain_config: ChainConfig, address: str) -> str:
    """Comparable form of an address (EVM addresses are case-insensitive)."""
    if chain_config.chain == Chain.SOLANA:
        return address
    return address.lower()


def _event_id(event: Any) -> str:
    return str(getattr(event, "signature", None) or getattr(event, "tx_hash", None) or "?")
