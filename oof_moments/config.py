"""
OOF Moments Configuration - Thresholds, scoring constants and chain settings.

All thresholds are configurable for tuning.
API keys and endpoints are loaded from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Optional

from dotenv import load_dotenv

from .models import Chain, MomentCategory


load_dotenv()


@dataclass
class ChainConfig:
    """Configuration for a specific blockchain."""
    chain: Chain
    enabled: bool = True

    # API endpoints
    rpc_url: str = ""
    explorer_api_url: str = ""
    explorer_api_key: Optional[str] = None
    explorer_chain_id: Optional[int] = None

    # Native asset
    native_symbol: str = ""
    native_decimals: int = 18
    wrapped_native_address: str = ""

    # Quote assets used for price inference (address -> symbol)
    stablecoins: dict[str, str] = field(default_factory=dict)

    # Token contracts always analysed on this chain
    watchlist: list[str] = field(default_factory=list)

    # Fetch bounds
    max_events: int = 200
    request_timeout_seconds: float = 20.0

    @property
    def quote_addresses(self) -> set[str]:
        """Addresses treated as quote legs when inferring prices."""
        addresses = set(self.stablecoins)
        if self.wrapped_native_address:
            addresses.add(self.wrapped_native_address)
        return addresses

    def is_native_asset(self, token_address: str) -> bool:
        """True for the chain's gas asset (native or wrapped)."""
        if not self.wrapped_native_address:
            return False
        if self.chain == Chain.SOLANA:
            return token_address == self.wrapped_native_address
        return token_address.lower() == self.wrapped_native_address.lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain": self.chain.value,
            "enabled": self.enabled,
            "rpc_url": self.rpc_url,
            "explorer_api_url": self.explorer_api_url,
            "explorer_chain_id": self.explorer_chain_id,
            "native_symbol": self.native_symbol,
            "max_events": self.max_events,
            "watchlist_size": len(self.watchlist),
        }


@dataclass
class ThresholdConfig:
    """Categorization thresholds."""

    # Holdings worth less than this are dust
    dust_threshold_usd: float = 1.0

    # Sold below this fraction of peak = paper hands
    paper_hands_threshold: float = 0.3

    # Tokens with fewer transactions are ignored
    min_transactions: int = 2

    # Balance changes at or below this are rounding noise
    balance_epsilon: float = 1e-4

    def to_dict(self) -> dict[str, Any]:
        return {
            "dust_threshold_usd": self.dust_threshold_usd,
            "paper_hands_threshold": self.paper_hands_threshold,
            "min_transactions": self.min_transactions,
            "balance_epsilon": self.balance_epsilon,
        }


@dataclass
class ScoringConfig:
    """OOF score and rarity constants."""
    score_ceiling: float = 1000.0

    gain_divisor: float = 100.0            # USD of total P&L per point
    dust_points_per_transaction: float = 10.0
    missed_multiplier_weight: float = 20.0

    legendary_cutoff: float = 750.0  # strictly above
    epic_cutoff: float = 400.0       # strictly above

    base_emotional_impact: dict[MomentCategory, float] = field(default_factory=lambda: {
        MomentCategory.MAX_GAINS: 85.0,
        MomentCategory.DUSTS: 60.0,
        MomentCategory.LOST_OPPORTUNITIES: 95.0,
    })
    emotional_impact_spread: float = 15.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "score_ceiling": self.score_ceiling,
            "gain_divisor": self.gain_divisor,
            "dust_points_per_transaction": self.dust_points_per_transaction,
            "missed_multiplier_weight": self.missed_multiplier_weight,
            "legendary_cutoff": self.legendary_cutoff,
            "epic_cutoff": self.epic_cutoff,
        }


def _default_chain_configs() -> dict[Chain, ChainConfig]:
    """Default chain configurations with endpoints from environment."""
    etherscan_key = os.environ.get("ETHERSCAN_API_KEY")
    return {
        Chain.SOLANA: ChainConfig(
            chain=Chain.SOLANA,
            rpc_url=os.environ.get("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com"),
            native_symbol="SOL",
            native_decimals=9,
            wrapped_native_address="So11111111111111111111111111111111111111112",
            stablecoins={
                "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v": "USDC",
                "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB": "USDT",
            },
            max_events=200,
        ),
        Chain.BASE: ChainConfig(
            chain=Chain.BASE,
            rpc_url=os.environ.get("BASE_RPC_URL", "https://mainnet.base.org"),
            explorer_api_url="https://api.etherscan.io/v2/api",
            explorer_api_key=etherscan_key,
            explorer_chain_id=8453,
            native_symbol="ETH",
            native_decimals=18,
            wrapped_native_address="0x4200000000000000000000000000000000000006",
            stablecoins={
                "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913": "USDC",
            },
            watchlist=[
                "0x532f27101965dd16442e59d40670faf5ebb142e4",  # BRETT
                "0x4ed4e862860bed51a9570b96d89af5e1b0efefed",  # DEGEN
            ],
        ),
        Chain.AVALANCHE: ChainConfig(
            chain=Chain.AVALANCHE,
            rpc_url=os.environ.get("AVALANCHE_RPC_URL", "https://api.avax.network/ext/bc/C/rpc"),
            explorer_api_url="https://api.etherscan.io/v2/api",
            explorer_api_key=etherscan_key,
            explorer_chain_id=43114,
            native_symbol="AVAX",
            native_decimals=18,
            wrapped_native_address="0xb31f66aa3c1e785363f0875a1b74e27b85fd66c7",
            stablecoins={
                "0xb97ef9ef8734c71904d8002f8b6bc66dd9c48a6e": "USDC",
                "0x9702230a8ea53601f5cd2dc00fdbc13d4df4a8c7": "USDT",
            },
            watchlist=[
                "0x6e84a6216ea6dacc71ee8e6b0a5b7322eebc0fdd",  # JOE
                "0x5947bb275c521040051d82396192181b413227a3",  # LINK
            ],
        ),
    }


@dataclass
class AnalyzerConfig:
    """Main configuration for the wallet analysis engine."""

    chains: dict[Chain, ChainConfig] = field(default_factory=_default_chain_configs)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)

    # Gate
    analysis_cooldown_hours: float = 24.0
    rate_limit_db_path: str = "storage/oof_rate_limits.db"

    # Whole-run deadline; unfinished chains count as failed
    analysis_timeout_seconds: float = 60.0

    # Price oracle
    birdeye_api_key: Optional[str] = None

    def __post_init__(self) -> None:
        """Apply environment overrides."""
        if self.birdeye_api_key is None:
            self.birdeye_api_key = os.environ.get("BIRDEYE_API_KEY")

        timeout = os.environ.get("OOF_ANALYSIS_TIMEOUT_SECONDS")
        if timeout:
            self.analysis_timeout_seconds = float(timeout)

        cooldown = os.environ.get("OOF_ANALYSIS_COOLDOWN_HOURS")
        if cooldown:
            self.analysis_cooldown_hours = float(cooldown)

        db_path = os.environ.get("OOF_RATE_LIMIT_DB")
        if db_path:
            self.rate_limit_db_path = db_path

    def get_chain_config(self, chain: Chain) -> Optional[ChainConfig]:
        """Get configuration for a specific chain."""
        return self.chains.get(chain)

    def get_enabled_chains(self) -> list[Chain]:
        """Enabled chains in declaration order of ``Chain``."""
        return [
            chain for chain in Chain
            if chain in self.chains and self.chains[chain].enabled
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "chains": {k.value: v.to_dict() for k, v in self.chains.items()},
            "thresholds": self.thresholds.to_dict(),
            "scoring": self.scoring.to_dict(),
            "analysis_cooldown_hours": self.analysis_cooldown_hours,
            "analysis_timeout_seconds": self.analysis_timeout_seconds,
            "rate_limit_db_path": self.rate_limit_db_path,
        }


# Default configuration instance
_default_config: Optional[AnalyzerConfig] = None


def get_config() -> AnalyzerConfig:
    """Get the default configuration."""
    global _default_config
    if _default_config is None:
        _default_config = AnalyzerConfig()
    return _default_config


def set_config(config: AnalyzerConfig) -> None:
    """Set the default configuration."""
    global _default_config
    _default_config = config
