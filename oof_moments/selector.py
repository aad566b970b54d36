"""
Candidate Selector - Picks the best position per moment category.

Every ranking ends in the token address (then chain) so the outcome never
depends on input order.
"""

import logging
from typing import Any, Callable, Iterable, Optional

from .models import MomentCategory, TokenPositionAnalysis


logger = logging.getLogger(__name__)


SortKey = Callable[[TokenPositionAnalysis], tuple[Any, ...]]


def _max_gains_key(position: TokenPositionAnalysis) -> tuple[Any, ...]:
    # Highest total P&L, then highest current value
    return (
        -position.total_pnl,
        -position.current_value_usd,
        position.token_address,
        position.chain.value,
    )


def _dusts_key(position: TokenPositionAnalysis) -> tuple[Any, ...]:
    # Most transactions, then lowest current value
    return (
        -position.transaction_count,
        position.current_value_usd,
        position.token_address,
        position.chain.value,
    )


def _lost_opportunities_key(position: TokenPositionAnalysis) -> tuple[Any, ...]:
    # Biggest missed multiple, then biggest missed USD
    return (
        -position.missed_opportunity_multiplier,
        -abs(position.missed_value_usd),
        position.token_address,
        position.chain.value,
    )


CATEGORY_RULES: dict[MomentCategory, tuple[Callable[[TokenPositionAnalysis], bool], SortKey]] = {
    MomentCategory.MAX_GAINS: (lambda p: p.is_gain, _max_gains_key),
    MomentCategory.DUSTS: (lambda p: p.is_dust, _dusts_key),
    MomentCategory.LOST_OPPORTUNITIES: (lambda p: p.is_paper_hands, _lost_opportunities_key),
}


class CandidateSelector:
    """At most one position per category; empty categories are omitted."""

    def select(
        self,
        positions: Iterable[TokenPositionAnalysis],
    ) -> dict[MomentCategory, TokenPositionAnalysis]:
        positions = list(positions)
        selected: dict[MomentCategory, TokenPositionAnalysis] = {}

        for category, (qualifies, sort_key) in CATEGORY_RULES.items():
            best = self.select_category(positions, qualifies, sort_key)
            if best is not None:
                selected[category] = best
                logger.debug(
                    f"{category.value}: {best.symbol} on {best.chain.value}"
                )

        return selected

    @staticmethod
    def select_category(
        positions: list[TokenPositionAnalysis],
        qualifies: Callable[[TokenPositionAnalysis], bool],
        sort_key: SortKey,
    ) -> Optional[TokenPositionAnalysis]:
        qualifying = [p for p in positions if qualifies(p)]
        if not qualifying:
            return None
        return min(qualifying, key=sort_key)
