"""
Score & Rarity Engine - OOF scores, rarity tiers and wallet-level summaries.

Scores are bounded to [0, ceiling]. Rarity cutoffs are strict: a score
exactly on a cutoff stays in the lower tier.
"""

import logging
from typing import Iterable, Optional

from .config import AnalyzerConfig, get_config
from .models import (
    MomentCategory,
    NarrativeSeed,
    OOFMomentCandidate,
    Rarity,
    TokenPositionAnalysis,
)


logger = logging.getLogger(__name__)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class ScoreEngine:
    """
    Turns selected positions into scored candidates.

    Per category:
    - max_gains: total P&L / gain_divisor
    - dusts: transaction count x dust_points_per_transaction
    - lost_opportunities: missed multiple x missed_multiplier_weight
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
    ) -> None:
        self.config = config or get_config()
        self.scoring = self.config.scoring

    def score(
        self,
        category: MomentCategory,
        position: TokenPositionAnalysis,
    ) -> tuple[float, Rarity]:
        """Return (oof_score, rarity) for a position in a category."""
        if category == MomentCategory.MAX_GAINS:
            raw = position.total_pnl / self.scoring.gain_divisor
        elif category == MomentCategory.DUSTS:
            raw = position.transaction_count * self.scoring.dust_points_per_transaction
        elif category == MomentCategory.LOST_OPPORTUNITIES:
            raw = position.missed_opportunity_multiplier * self.scoring.missed_multiplier_weight
        else:
            raise ValueError(f"Unknown category: {category}")

        oof_score = clamp(raw, 0.0, self.scoring.score_ceiling)
        return oof_score, self.determine_rarity(oof_score)

    def determine_rarity(self, oof_score: float) -> Rarity:
        if oof_score > self.scoring.legendary_cutoff:
            return Rarity.LEGENDARY
        if oof_score > self.scoring.epic_cutoff:
            return Rarity.EPIC
        return Rarity.RARE

    def emotional_impact(self, category: MomentCategory, oof_score: float) -> float:
        """Category base impact plus a share of the spread proportional to the score."""
        base = self.scoring.base_emotional_impact.get(category, 50.0)
        share = oof_score / self.scoring.score_ceiling if self.scoring.score_ceiling else 0.0
        return clamp(base + share * self.scoring.emotional_impact_spread, 0.0, 100.0)

    def build_candidate(
        self,
        category: MomentCategory,
        position: TokenPositionAnalysis,
    ) -> OOFMomentCandidate:
        oof_score, rarity = self.score(category, position)
        return OOFMomentCandidate(
            category=category,
            token_position_analysis=position,
            oof_score=oof_score,
            rarity=rarity,
            narrative_seed=self.narrative_seed(category, position),
            emotional_impact=self.emotional_impact(category, oof_score),
        )

    @staticmethod
    def narrative_seed(
        category: MomentCategory,
        position: TokenPositionAnalysis,
    ) -> NarrativeSeed:
        metrics = {
            "total_pnl": position.total_pnl,
            "realized_pnl": position.realized_pnl,
            "unrealized_pnl": position.unrealized_pnl,
            "current_value_usd": position.current_value_usd,
            "transaction_count": float(position.transaction_count),
        }
        if category == MomentCategory.LOST_OPPORTUNITIES:
            metrics.update({
                "missed_opportunity_multiplier": position.missed_opportunity_multiplier,
                "missed_value_usd": position.missed_value_usd,
                "average_sell_price": position.average_sell_price,
                "peak_price": position.peak_price,
            })
        elif category == MomentCategory.DUSTS:
            metrics["current_holding"] = position.current_holding
        return NarrativeSeed(
            category=category,
            symbol=position.symbol,
            chain=position.chain,
            metrics=metrics,
        )

    @staticmethod
    def overall_score(candidates: Iterable[OOFMomentCandidate]) -> float:
        """Mean of the present candidates' scores; 0 when there are none."""
        scores = [c.oof_score for c in candidates]
        if not scores:
            return 0.0
        return sum(scores) / len(scores)


def trading_personality(positions: list[TokenPositionAnalysis]) -> str:
    """Coarse behavioural label over every analysed position."""
    if not positions:
        return "Unknown"

    total = len(positions)
    gainers = sum(1 for p in positions if p.is_gain)
    losers = total - gainers
    paper_hands = sum(1 for p in positions if p.is_paper_hands)
    dust = sum(1 for p in positions if p.is_dust)

    if gainers > losers and paper_hands < total * 0.3:
        return "Diamond Hands Legend"
    if paper_hands > total * 0.6:
        return "Paper Hands Panic"
    if dust > total * 0.5:
        return "Dust Collector Supreme"
    return "Degen Trader"
