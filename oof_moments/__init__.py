"""
OOF Moments - Wallet trading-history analysis and moment scoring.

Turns a wallet's on-chain history on Solana, Base and Avalanche into at
most three "OOF moment" candidates:
- max_gains: the biggest winner
- dusts: the most-traded position that is now worthless
- lost_opportunities: the most painful premature exit

Usage:
    from oof_moments import WalletAnalyzer, AnalysisRateLimitedError

    analyzer = WalletAnalyzer()
    try:
        result = await analyzer.analyze_wallet(address)
    except AnalysisRateLimitedError as e:
        print(f"Next analysis allowed at {e.next_allowed_time}")

    for candidate in result.candidate_list:
        print(candidate.category.value, candidate.oof_score, candidate.rarity.value)

Result semantics:
- AnalysisRateLimitedError: cooldown active, nothing was fetched
- analysis_complete = False: every chain failed, safe to retry
- fewer than 3 candidates: valid outcome, not an error
"""

from .accountant import PositionAccountant, build_position, group_by_token
from .analyzer import WalletAnalyzer, analyze_wallet, get_analyzer
from .categorizer import Categorizer, CategoryFlags
from .config import (
    AnalyzerConfig,
    ChainConfig,
    ScoringConfig,
    ThresholdConfig,
    get_config,
    set_config,
)
from .events import (
    AvalancheRawEvent,
    BaseRawEvent,
    EvmRawEvent,
    EvmTransferLeg,
    RawEvent,
    SolanaRawEvent,
    SolanaTokenBalance,
)
from .exceptions import (
    AllChainsFailedError,
    AnalysisRateLimitedError,
    APIError,
    ChainUnavailableError,
    ConfigurationError,
    MalformedTransactionError,
    OOFAnalysisError,
    PriceUnavailableError,
    RateLimitError,
    RPCError,
    StorageError,
)
from .gate import (
    AnalysisGate,
    InMemoryRateLimitStore,
    RateLimitStore,
    SQLiteRateLimitStore,
)
from .models import (
    AnalysisResult,
    Chain,
    GateDecision,
    MomentCategory,
    NarrativeSeed,
    OOFMomentCandidate,
    Rarity,
    TokenPositionAnalysis,
    TokenTransaction,
    TransactionKind,
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
    StaticChainSource,
    StaticPriceOracle,
)


__all__ = [
    # Main entry point
    "WalletAnalyzer",
    "get_analyzer",
    "analyze_wallet",

    # Pipeline stages
    "TransactionNormalizer",
    "NATIVE_QUOTE_KEY",
    "PositionAccountant",
    "build_position",
    "group_by_token",
    "Categorizer",
    "CategoryFlags",
    "CandidateSelector",
    "ScoreEngine",
    "trading_personality",

    # Gate
    "AnalysisGate",
    "RateLimitStore",
    "InMemoryRateLimitStore",
    "SQLiteRateLimitStore",

    # Collaborators
    "ChainTransactionSource",
    "PriceOracle",
    "SolanaRpcSource",
    "EvmExplorerSource",
    "BirdeyePriceOracle",
    "StaticChainSource",
    "StaticPriceOracle",

    # Models
    "Chain",
    "TransactionKind",
    "MomentCategory",
    "Rarity",
    "TokenTransaction",
    "TokenPositionAnalysis",
    "NarrativeSeed",
    "OOFMomentCandidate",
    "AnalysisResult",
    "GateDecision",

    # Raw events
    "RawEvent",
    "SolanaRawEvent",
    "SolanaTokenBalance",
    "EvmRawEvent",
    "EvmTransferLeg",
    "BaseRawEvent",
    "AvalancheRawEvent",

    # Config
    "AnalyzerConfig",
    "ChainConfig",
    "ThresholdConfig",
    "ScoringConfig",
    "get_config",
    "set_config",

    # Exceptions
    "OOFAnalysisError",
    "ChainUnavailableError",
    "PriceUnavailableError",
    "MalformedTransactionError",
    "AllChainsFailedError",
    "AnalysisRateLimitedError",
    "RateLimitError",
    "RPCError",
    "APIError",
    "StorageError",
    "ConfigurationError",
]


# Version
__version__ = "1.0.0"
