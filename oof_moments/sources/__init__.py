"""Chain sources and price oracles."""

from .base import ChainTransactionSource, PriceOracle
from .birdeye import BirdeyePriceOracle
from .evm import EvmExplorerSource
from .solana import SolanaRpcSource
from .static import StaticChainSource, StaticPriceOracle

__all__ = [
    "ChainTransactionSource",
    "PriceOracle",
    "BirdeyePriceOracle",
    "EvmExplorerSource",
    "SolanaRpcSource",
    "StaticChainSource",
    "StaticPriceOracle",
]
