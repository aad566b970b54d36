"""
Wallet Analyzer - Main orchestrator for a wallet analysis run.

Coordinates:
- Analysis gate (per-wallet cooldown)
- Per-chain units: fetch -> normalize -> position accounting
- Categorization, candidate selection and scoring

Chain units run concurrently and fail independently. The run has one
overall deadline; chains still in flight when it expires are cancelled
and reported as failed.
"""

import asyncio
import logging
from typing import Any, Optional

from .accountant import PositionAccountant
from .categorizer import Categorizer
from .config import AnalyzerConfig, get_config
from .exceptions import (
    AllChainsFailedError,
    AnalysisRateLimitedError,
    ChainUnavailableError,
    OOFAnalysisError,
)
from .gate import AnalysisGate, SQLiteRateLimitStore
from .models import (
    AnalysisResult,
    Chain,
    GateDecision,
    MomentCategory,
    OOFMomentCandidate,
    TokenPositionAnalysis,
    utcnow,
)
from .normalizer import NATIVE_QUOTE_KEY, TransactionNormalizer
from .scoring import ScoreEngine, trading_personality
from .selector import CandidateSelector
from .sources import (
    BirdeyePriceOracle,
    ChainTransactionSource,
    EvmExplorerSource,
    PriceOracle,
    SolanaRpcSource,
)


logger = logging.getLogger(__name__)


class WalletAnalyzer:
    """
    Entry point of the analysis engine.

    Usage:
        analyzer = WalletAnalyzer()
        try:
            result = await analyzer.analyze_wallet(address)
        except AnalysisRateLimitedError as e:
            print(f"Try again after {e.next_allowed_time}")
        else:
            for candidate in result.candidate_list:
                print(candidate.category.value, candidate.oof_score)
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        sources: Optional[dict[Chain, ChainTransactionSource]] = None,
        oracle: Optional[PriceOracle] = None,
        gate: Optional[AnalysisGate] = None,
    ) -> None:
        self.config = config or get_config()

        # Collaborators (defaults built lazily in initialize())
        self._sources: dict[Chain, ChainTransactionSource] = dict(sources or {})
        self._default_sources = sources is None
        self._oracle = oracle
        self.gate = gate or AnalysisGate(SQLiteRateLimitStore(config=self.config), self.config)
        self._initialized = False

        # Pipeline stages
        self.normalizer = TransactionNormalizer(self.config)
        self.accountant = PositionAccountant(self.config)
        self.categorizer = Categorizer(self.config)
        self.selector = CandidateSelector()
        self.score_engine = ScoreEngine(self.config)

        # Statistics
        self._stats = {
            "runs": 0,
            "complete_runs": 0,
            "partial_runs": 0,
            "failed_runs": 0,
            "rate_limited": 0,
        }

    async def initialize(self) -> None:
        """Create default sources for enabled chains and the price oracle."""
        if self._initialized:
            return

        for chain in self.config.get_enabled_chains():
            if not self._default_sources or chain in self._sources:
                continue
            if chain == Chain.SOLANA:
                self._sources[chain] = SolanaRpcSource(self.config)
            else:
                self._sources[chain] = EvmExplorerSource(chain, self.config)

        if self._oracle is None:
            self._oracle = BirdeyePriceOracle(self.config)

        self._initialized = True
        logger.info(f"WalletAnalyzer initialized with {len(self._sources)} chain sources")

    @property
    def oracle(self) -> PriceOracle:
        if self._oracle is None:
            raise OOFAnalysisError("WalletAnalyzer used before initialize()")
        return self._oracle

    def is_analysis_allowed(self, wallet_address: str) -> GateDecision:
        return self.gate.is_analysis_allowed(wallet_address)

    async def analyze_wallet(self, wallet_address: str) -> AnalysisResult:
        """
        Run a full analysis for a wallet.

        Raises:
            AnalysisRateLimitedError: the wallet is still cooling down;
                nothing was fetched.

        Returns:
            AnalysisResult; ``analysis_complete`` is False only when every
            chain failed.
        """
        decision = self.gate.is_analysis_allowed(wallet_address)
        if not decision.allowed:
            self._stats["rate_limited"] += 1
            logger.info(f"Analysis of {wallet_address} rate limited until {decision.next_allowed_time}")
            raise AnalysisRateLimitedError(wallet_address, decision.next_allowed_time)

        if not self._initialized:
            await self.initialize()

        self._stats["runs"] += 1
        logger.info(f"Starting analysis for wallet {wallet_address}")

        try:
            result = await self._run(wallet_address)
        finally:
            self.gate.record_analysis(wallet_address)

        if not result.analysis_complete:
            self._stats["failed_runs"] += 1
        elif result.chain_errors:
            self._stats["partial_runs"] += 1
        else:
            self._stats["complete_runs"] += 1

        logger.info(
            f"Analysis of {wallet_address} finished: "
            f"chains={sorted(c.value for c in result.chains_analyzed)} "
            f"positions={result.total_tokens_traded} "
            f"candidates={len(result.candidates)} "
            f"overall_score={result.overall_score:.1f}"
        )
        return result

    # ─────────────────────────────────────────────────────────────
    # Run
    # ─────────────────────────────────────────────────────────────

    async def _run(self, wallet_address: str) -> AnalysisResult:
        started_at = utcnow()
        chains = [c for c in self.config.get_enabled_chains() if c in self._sources]

        positions_by_chain, chain_errors = await self._run_chain_units(chains, wallet_address)

        if not positions_by_chain:
            error = AllChainsFailedError(chain_errors)
            logger.warning(f"Analysis of {wallet_address} incomplete: {error.message}")
            return AnalysisResult(
                wallet_address=wallet_address,
                analysis_complete=False,
                error_message=error.message,
                chain_errors=chain_errors,
                started_at=started_at,
                completed_at=utcnow(),
            )

        positions: list[TokenPositionAnalysis] = []
        for chain in chains:
            positions.extend(positions_by_chain.get(chain, []))

        for position in positions:
            self.categorizer.apply(position)

        candidates: dict[MomentCategory, OOFMomentCandidate] = {}
        for category, position in self.selector.select(positions).items():
            candidates[category] = self.score_engine.build_candidate(category, position)

        return AnalysisResult(
            wallet_address=wallet_address,
            chains_analyzed=frozenset(positions_by_chain),
            all_position_analyses=positions,
            candidates=candidates,
            overall_score=ScoreEngine.overall_score(candidates.values()),
            analysis_complete=True,
            total_transactions=sum(p.transaction_count for p in positions),
            total_tokens_traded=len(positions),
            trading_personality=trading_personality(positions),
            chain_errors=chain_errors,
            started_at=started_at,
            completed_at=utcnow(),
        )

    async def _run_chain_units(
        self,
        chains: list[Chain],
        wallet_address: str,
    ) -> tuple[dict[Chain, list[TokenPositionAnalysis]], dict[Chain, str]]:
        """Run every chain unit under the overall deadline and join them."""
        positions_by_chain: dict[Chain, list[TokenPositionAnalysis]] = {}
        chain_errors: dict[Chain, str] = {}

        if not chains:
            return positions_by_chain, chain_errors

        tasks = {
            chain: asyncio.ensure_future(self._analyze_chain(chain, wallet_address))
            for chain in chains
        }
        timeout = self.config.analysis_timeout_seconds
        if timeout is not None and timeout <= 0:
            timeout = None

        try:
            done, pending = await asyncio.wait(tasks.values(), timeout=timeout)
        finally:
            unfinished = [t for t in tasks.values() if not t.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        for chain, task in tasks.items():
            if task not in done:
                chain_errors[chain] = f"timed out after {timeout}s"
                logger.warning(f"[{chain.value}] Chain unavailable: timed out")
                continue

            error = task.exception()
            if error is not None:
                reason = error.reason if isinstance(error, ChainUnavailableError) else repr(error)
                chain_errors[chain] = reason
                logger.warning(f"[{chain.value}] Chain unavailable: {reason}")
                continue

            positions_by_chain[chain] = task.result()

        return positions_by_chain, chain_errors

    async def _analyze_chain(
        self,
        chain: Chain,
        wallet_address: str,
    ) -> list[TokenPositionAnalysis]:
        """Fetch, normalize and account one chain."""
        source = self._sources[chain]

        try:
            events = await source.fetch_transactions(chain, wallet_address)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ChainUnavailableError(chain, str(e) or type(e).__name__) from e

        quote_prices = await self._quote_prices(chain)
        transactions = self.normalizer.normalize(events, wallet_address, quote_prices)

        logger.debug(
            f"[{chain.value}] {len(events)} events -> {len(transactions)} transactions"
        )

        return await self.accountant.analyze_chain(
            chain, wallet_address, transactions, source, self.oracle
        )

    async def _quote_prices(self, chain: Chain) -> dict[str, float]:
        """USD prices of the chain's quote assets."""
        chain_config = self.config.get_chain_config(chain)
        if chain_config is None:
            return {}

        prices = {address: 1.0 for address in chain_config.stablecoins}

        native_price = 0.0
        if chain_config.wrapped_native_address:
            try:
                native_price = float(
                    await self.oracle.fetch_current_price(chain, chain_config.wrapped_native_address)
                    or 0.0
                )
            except Exception as e:
                logger.warning(f"[{chain.value}] Native price unavailable: {e}")
            prices[chain_config.wrapped_native_address] = native_price

        prices[NATIVE_QUOTE_KEY] = native_price
        return prices

    # ─────────────────────────────────────────────────────────────
    # Introspection
    # ─────────────────────────────────────────────────────────────

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "normalizer_stats": self.normalizer.get_stats(),
            "accountant_stats": self.accountant.get_stats(),
        }

    async def close(self) -> None:
        """Cleanup resources."""
        for source in self._sources.values():
            await source.close()
        if self._oracle is not None:
            await self._oracle.close()


# Singleton instance
_default_analyzer: Optional[WalletAnalyzer] = None


def get_analyzer() -> WalletAnalyzer:
    """Get the default wallet analyzer."""
    global _default_analyzer
    if _default_analyzer is None:
        _default_analyzer = WalletAnalyzer()
    return _default_analyzer


async def analyze_wallet(wallet_address: str) -> AnalysisResult:
    """Convenience function to analyze a wallet with the default analyzer."""
    return await get_analyzer().analyze_wallet(wallet_address)
