"""
Categorizer - Dust, gain and paper-hands flags for a position.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import AnalyzerConfig, get_config
from .models import TokenPositionAnalysis


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CategoryFlags:
    is_dust: bool
    is_gain: bool
    is_paper_hands: bool


class Categorizer:
    """
    Applies the configured thresholds to a position.

    - dust: current value strictly below the USD threshold
      (never the chain's gas asset)
    - gain: realized + unrealized P&L strictly positive
    - paper hands: sold, at an average strictly below
      ``paper_hands_threshold`` x peak
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
    ) -> None:
        self.config = config or get_config()
        self.thresholds = self.config.thresholds

    def categorize(self, position: TokenPositionAnalysis) -> CategoryFlags:
        return CategoryFlags(
            is_dust=self._is_dust(position),
            is_gain=position.realized_pnl + position.unrealized_pnl > 0,
            is_paper_hands=(
                position.total_sold > 0
                and position.average_sell_price
                < position.peak_price * self.thresholds.paper_hands_threshold
            ),
        )

    def apply(self, position: TokenPositionAnalysis) -> TokenPositionAnalysis:
        """Set the flags on the position in place and return it."""
        flags = self.categorize(position)
        position.is_dust = flags.is_dust
        position.is_gain = flags.is_gain
        position.is_paper_hands = flags.is_paper_hands
        return position

    def _is_dust(self, position: TokenPositionAnalysis) -> bool:
        chain_config = self.config.get_chain_config(position.chain)
        if chain_config and chain_config.is_native_asset(position.token_address):
            return False
        value = position.current_holding * position.current_price
        return value < self.thresholds.dust_threshold_usd
