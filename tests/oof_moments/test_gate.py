"""
Tests for the per-wallet analysis cooldown.
"""

from datetime import datetime, timedelta, timezone

import pytest

from oof_moments import (
    AnalysisGate,
    InMemoryRateLimitStore,
    SQLiteRateLimitStore,
)


WALLET = "wallet-under-test"


@pytest.fixture(params=["memory", "sqlite"])
def store(request, config):
    if request.param == "memory":
        return InMemoryRateLimitStore()
    return SQLiteRateLimitStore(":memory:", config)


@pytest.fixture
def gate(store, config, clock):
    return AnalysisGate(store, config, clock=clock)


# =============================================================================
# TEST: Gate decisions
# =============================================================================


class TestAnalysisGate:
    """Cooldown state machine."""

    def test_unknown_wallet_allowed(self, gate):
        decision = gate.is_analysis_allowed(WALLET)
        assert decision.allowed
        assert decision.next_allowed_time is None

    def test_blocked_right_after_run(self, gate, clock):
        gate.record_analysis(WALLET)
        decision = gate.is_analysis_allowed(WALLET)

        assert not decision.allowed
        assert decision.next_allowed_time == clock.now + timedelta(hours=24)

    def test_blocked_one_second_before_cooldown_ends(self, gate, clock):
        gate.record_analysis(WALLET)
        clock.advance(hours=24, seconds=-1)
        assert not gate.is_analysis_allowed(WALLET).allowed

    def test_allowed_exactly_when_cooldown_ends(self, gate, clock):
        gate.record_analysis(WALLET)
        clock.advance(hours=24)
        assert gate.is_analysis_allowed(WALLET).allowed

    def test_allowed_after_cooldown(self, gate, clock):
        gate.record_analysis(WALLET)
        clock.advance(hours=24, seconds=1)
        assert gate.is_analysis_allowed(WALLET).allowed

    def test_wallets_are_independent(self, gate):
        gate.record_analysis(WALLET)
        assert gate.is_analysis_allowed("another-wallet").allowed

    def test_record_with_explicit_timestamp(self, gate, clock):
        gate.record_analysis(WALLET, clock.now - timedelta(hours=30))
        assert gate.is_analysis_allowed(WALLET).allowed

    def test_custom_cooldown(self, store, config, clock):
        config.analysis_cooldown_hours = 1
        gate = AnalysisGate(store, config, clock=clock)
        gate.record_analysis(WALLET)
        clock.advance(hours=1, seconds=1)
        assert gate.is_analysis_allowed(WALLET).allowed

    def test_decision_serializes(self, gate, clock):
        gate.record_analysis(WALLET)
        data = gate.is_analysis_allowed(WALLET).to_dict()
        assert data["allowed"] is False
        assert data["next_allowed_time"] == (clock.now + timedelta(hours=24)).isoformat()


# =============================================================================
# TEST: Stores
# =============================================================================


class TestRateLimitStores:

    def test_latest_record_wins(self, store):
        first = datetime(2025, 1, 1, tzinfo=timezone.utc)
        second = datetime(2025, 1, 2, tzinfo=timezone.utc)
        store.set_last_analysis_time(WALLET, first)
        store.set_last_analysis_time(WALLET, second)

        assert store.get_last_analysis_time(WALLET) == second

    def test_missing_wallet_returns_none(self, store):
        assert store.get_last_analysis_time("nobody") is None

    def test_sqlite_persists_across_instances(self, tmp_path, config):
        db_path = str(tmp_path / "limits" / "oof.db")
        when = datetime(2025, 3, 4, 5, 6, 7, tzinfo=timezone.utc)

        SQLiteRateLimitStore(db_path, config).set_last_analysis_time(WALLET, when)
        restored = SQLiteRateLimitStore(db_path, config).get_last_analysis_time(WALLET)

        assert restored == when
        assert restored.tzinfo is not None
