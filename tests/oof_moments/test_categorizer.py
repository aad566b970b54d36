"""
Tests for Categorizer thresholds.
"""

import pytest

from oof_moments import Categorizer, Chain, TokenPositionAnalysis


WSOL = "So11111111111111111111111111111111111111112"


def position(**overrides):
    fields = dict(
        token_address="TOKEN",
        symbol="TKN",
        name="Token",
        chain=Chain.SOLANA,
        total_bought=100.0,
    )
    fields.update(overrides)
    return TokenPositionAnalysis(**fields)


@pytest.fixture
def categorizer(config):
    return Categorizer(config)


# =============================================================================
# TEST: Dust
# =============================================================================


class TestDust:
    """Current value strictly below the threshold."""

    def test_value_exactly_at_threshold_is_not_dust(self, categorizer):
        flags = categorizer.categorize(position(current_holding=2.0, current_price=0.5))
        assert not flags.is_dust

    def test_value_just_below_threshold_is_dust(self, categorizer):
        flags = categorizer.categorize(position(current_holding=1.0, current_price=0.999999))
        assert flags.is_dust

    def test_zero_holding_is_dust(self, categorizer):
        assert categorizer.categorize(position(current_holding=0.0, current_price=5.0)).is_dust

    def test_unknown_price_is_dust(self, categorizer):
        assert categorizer.categorize(position(current_holding=1e6, current_price=0.0)).is_dust

    def test_native_asset_is_never_dust(self, categorizer):
        flags = categorizer.categorize(position(token_address=WSOL, current_holding=0.0))
        assert not flags.is_dust

    def test_custom_threshold(self, config):
        config.thresholds.dust_threshold_usd = 10.0
        flags = Categorizer(config).categorize(position(current_holding=5.0, current_price=1.0))
        assert flags.is_dust


# =============================================================================
# TEST: Gain
# =============================================================================


class TestGain:

    def test_positive_total_pnl_is_gain(self, categorizer):
        assert categorizer.categorize(position(realized_pnl=-5.0, unrealized_pnl=6.0)).is_gain

    def test_zero_pnl_is_not_gain(self, categorizer):
        assert not categorizer.categorize(position(realized_pnl=0.0, unrealized_pnl=0.0)).is_gain

    def test_loss_is_not_gain(self, categorizer):
        assert not categorizer.categorize(position(realized_pnl=-1.0)).is_gain


# =============================================================================
# TEST: Paper hands
# =============================================================================


class TestPaperHands:
    """Sold below a fraction of peak."""

    def test_sell_exactly_at_fraction_is_not_paper_hands(self, categorizer):
        flags = categorizer.categorize(
            position(total_sold=10.0, average_sell_price=0.3, peak_price=1.0)
        )
        assert not flags.is_paper_hands

    def test_sell_below_fraction_is_paper_hands(self, categorizer):
        flags = categorizer.categorize(
            position(total_sold=10.0, average_sell_price=0.29, peak_price=1.0)
        )
        assert flags.is_paper_hands

    def test_sell_just_below_fraction_is_paper_hands(self, categorizer):
        flags = categorizer.categorize(
            position(total_sold=10.0, average_sell_price=0.29999, peak_price=1.0)
        )
        assert flags.is_paper_hands

    def test_never_sold_is_not_paper_hands(self, categorizer):
        flags = categorizer.categorize(
            position(total_sold=0.0, average_sell_price=0.0, peak_price=100.0)
        )
        assert not flags.is_paper_hands


class TestApply:

    def test_apply_sets_flags_in_place(self, categorizer):
        p = position(
            current_holding=0.0,
            realized_pnl=10.0,
            total_sold=1000.0,
            average_sell_price=0.02,
            peak_price=1.0,
        )
        result = categorizer.apply(p)

        assert result is p
        assert p.is_dust and p.is_gain and p.is_paper_hands
