"""
OOF Moments Data Models - Transactions, positions and moment candidates.

Everything produced by an analysis run is a plain dataclass so it can be
handed to the narrative, persistence and transport layers untouched.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class Chain(Enum):
    """Supported blockchain networks."""
    SOLANA = "solana"
    BASE = "base"
    AVALANCHE = "avalanche"


class TransactionKind(Enum):
    """Direction of a balance change relative to the wallet."""
    BUY = "buy"            # Wallet balance of the token increased
    SELL = "sell"          # Wallet balance of the token decreased
    TRANSFER = "transfer"  # Reserved for non-trading movements


class MomentCategory(Enum):
    """Category of an OOF moment."""
    MAX_GAINS = "max_gains"
    DUSTS = "dusts"
    LOST_OPPORTUNITIES = "lost_opportunities"


class Rarity(Enum):
    """Rarity tier derived from the OOF score."""
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


# Fixed output order of candidates
CATEGORY_ORDER: tuple[MomentCategory, ...] = (
    MomentCategory.MAX_GAINS,
    MomentCategory.DUSTS,
    MomentCategory.LOST_OPPORTUNITIES,
)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenTransaction:
    """
    One observed balance change of a token for the analysed wallet.
    """
    chain: Chain
    token_address: str
    signature: str  # Solana signature or EVM tx hash
    timestamp: int  # Unix seconds
    kind: TransactionKind
    amount: float  # Token units, always > 0
    price_per_unit: float = 0.0  # USD at execution, 0 if unknown

    # Optional metadata seen on-chain
    symbol: Optional[str] = None
    name: Optional[str] = None

    @property
    def value_usd(self) -> float:
        return self.amount * self.price_per_unit

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain": self.chain.value,
            "token_address": self.token_address,
            "signature": self.signature,
            "timestamp": self.timestamp,
            "kind": self.kind.value,
            "amount": self.amount,
            "price_per_unit": self.price_per_unit,
            "value_usd": self.value_usd,
        }


@dataclass
class TokenPositionAnalysis:
    """
    Derived state of one token holding for one wallet on one chain.

    ``current_holding`` is supplied by the chain source and is authoritative;
    it is never recomputed from bought minus sold.
    """
    # Identity
    token_address: str
    symbol: str
    name: str
    chain: Chain

    # Volumes
    total_bought: float = 0.0
    total_sold: float = 0.0
    current_holding: float = 0.0

    # Prices
    average_buy_price: float = 0.0
    average_sell_price: float = 0.0
    current_price: float = 0.0
    peak_price: float = 0.0
    peak_timestamp: Optional[int] = None

    # Performance
    realized_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    missed_opportunity_multiplier: float = 0.0

    # Category flags
    is_dust: bool = False
    is_gain: bool = False
    is_paper_hands: bool = False

    # Ordered source transactions
    transactions: list[TokenTransaction] = field(default_factory=list)

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    @property
    def current_value_usd(self) -> float:
        return self.current_holding * self.current_price

    @property
    def total_pnl(self) -> float:
        return self.realized_pnl + self.unrealized_pnl

    @property
    def missed_value_usd(self) -> float:
        """USD left on the table by selling below the peak."""
        return (self.peak_price - self.average_sell_price) * self.total_sold

    def to_dict(self, include_transactions: bool = False) -> dict[str, Any]:
        data = {
            "token_address": self.token_address,
            "symbol": self.symbol,
            "name": self.name,
            "chain": self.chain.value,
            "total_bought": self.total_bought,
            "total_sold": self.total_sold,
            "current_holding": self.current_holding,
            "average_buy_price": self.average_buy_price,
            "average_sell_price": self.average_sell_price,
            "current_price": self.current_price,
            "peak_price": self.peak_price,
            "peak_timestamp": self.peak_timestamp,
            "realized_pnl": self.realized_pnl,
            "unrealized_pnl": self.unrealized_pnl,
            "missed_opportunity_multiplier": self.missed_opportunity_multiplier,
            "is_dust": self.is_dust,
            "is_gain": self.is_gain,
            "is_paper_hands": self.is_paper_hands,
            "transaction_count": self.transaction_count,
            "current_value_usd": self.current_value_usd,
        }
        if include_transactions:
            data["transactions"] = [tx.to_dict() for tx in self.transactions]
        return data


@dataclass(frozen=True)
class NarrativeSeed:
    """
    Plain data handed to the narrative generator.

    No prose is composed here - only the facts a narrative needs.
    """
    category: MomentCategory
    symbol: str
    chain: Chain
    metrics: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "symbol": self.symbol,
            "chain": self.chain.value,
            "metrics": dict(self.metrics),
        }


@dataclass
class OOFMomentCandidate:
    """Best representative of one category for a wallet."""
    category: MomentCategory
    token_position_analysis: TokenPositionAnalysis
    oof_score: float  # 0-1000
    rarity: Rarity
    narrative_seed: NarrativeSeed
    emotional_impact: float = 0.0  # 0-100

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "token_position_analysis": self.token_position_analysis.to_dict(),
            "oof_score": self.oof_score,
            "rarity": self.rarity.value,
            "narrative_seed": self.narrative_seed.to_dict(),
            "emotional_impact": self.emotional_impact,
        }


@dataclass
class AnalysisResult:
    """
    Aggregate output of one analysis run.

    ``error_message`` is set only when every chain failed.
    """
    wallet_address: str
    chains_analyzed: frozenset[Chain] = frozenset()
    all_position_analyses: list[TokenPositionAnalysis] = field(default_factory=list)
    candidates: dict[MomentCategory, OOFMomentCandidate] = field(default_factory=dict)
    overall_score: float = 0.0
    analysis_complete: bool = True
    error_message: Optional[str] = None

    # Summary
    total_transactions: int = 0
    total_tokens_traded: int = 0
    trading_personality: str = "Unknown"

    # Diagnostics
    chain_errors: dict[Chain, str] = field(default_factory=dict)
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def max_gains_candidate(self) -> Optional[OOFMomentCandidate]:
        return self.candidates.get(MomentCategory.MAX_GAINS)

    @property
    def dusts_candidate(self) -> Optional[OOFMomentCandidate]:
        return self.candidates.get(MomentCategory.DUSTS)

    @property
    def lost_opportunities_candidate(self) -> Optional[OOFMomentCandidate]:
        return self.candidates.get(MomentCategory.LOST_OPPORTUNITIES)

    @property
    def candidate_list(self) -> list[OOFMomentCandidate]:
        """Present candidates in fixed category order."""
        return [
            self.candidates[category]
            for category in CATEGORY_ORDER
            if category in self.candidates
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "wallet_address": self.wallet_address,
            "chains_analyzed": sorted(c.value for c in self.chains_analyzed),
            "all_position_analyses": [p.to_dict() for p in self.all_position_analyses],
            "candidates": {
                c.category.value: c.to_dict() for c in self.candidate_list
            },
            "overall_score": self.overall_score,
            "analysis_complete": self.analysis_complete,
            "error_message": self.error_message,
            "total_transactions": self.total_transactions,
            "total_tokens_traded": self.total_tokens_traded,
            "trading_personality": self.trading_personality,
            "chain_errors": {
                chain.value: reason
                for chain, reason in sorted(self.chain_errors.items(), key=lambda i: i[0].value)
            },
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass(frozen=True)
class GateDecision:
    """Outcome of the per-wallet analysis cooldown check."""
    allowed: bool
    next_allowed_time: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "next_allowed_time": (
                self.next_allowed_time.isoformat() if self.next_allowed_time else None
            ),
        }
