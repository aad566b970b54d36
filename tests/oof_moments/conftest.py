"""
Shared fixtures for OOF moments tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from oof_moments import (
    AnalyzerConfig,
    Chain,
    SolanaRawEvent,
    SolanaTokenBalance,
    TokenTransaction,
    TransactionKind,
)


WALLET = "WaLLet1111111111111111111111111111111111111"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
WSOL_MINT = "So11111111111111111111111111111111111111112"
TKN_MINT = "TKNmint111111111111111111111111111111111111"


class FakeClock:
    """Controllable clock for gate tests."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def config():
    """Fresh default configuration."""
    return AnalyzerConfig()


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def make_tx():
    """Factory for TokenTransaction records."""
    counter = {"n": 0}

    def _make(
        kind=TransactionKind.BUY,
        amount=100.0,
        price=1.0,
        token="TOKEN",
        chain=Chain.SOLANA,
        timestamp=None,
    ):
        counter["n"] += 1
        return TokenTransaction(
            chain=chain,
            token_address=token,
            signature=f"sig-{counter['n']}",
            timestamp=timestamp if timestamp is not None else 1_700_000_000 + counter["n"],
            kind=kind,
            amount=amount,
            price_per_unit=price,
        )

    return _make


def balance(index, mint, amount, owner=WALLET):
    return SolanaTokenBalance(account_index=index, mint=mint, owner=owner, ui_amount=amount)


def solana_swap(signature, block_time, pre, post, lamports=(5_000_000_000, 5_000_000_000), fee=5000):
    """
    Solana event for WALLET.

    ``pre`` / ``post`` map mint -> ui amount; ``lamports`` is (pre, post)
    for the wallet before fee adjustment.
    """
    return SolanaRawEvent(
        signature=signature,
        block_time=block_time,
        slot=block_time,
        fee_lamports=fee,
        account_keys=(WALLET, "Router1111111111111111111111111111111111111"),
        pre_balances=(lamports[0], 0),
        post_balances=(lamports[1] - fee, 0),
        pre_token_balances=tuple(balance(i + 1, m, a) for i, (m, a) in enumerate(pre.items())),
        post_token_balances=tuple(balance(i + 1, m, a) for i, (m, a) in enumerate(post.items())),
    )


@pytest.fixture
def scenario_events():
    """Buy 1000 TKN for 10 USDC, later sell 1000 TKN for 20 USDC."""
    return [
        solana_swap(
            "buy-sig", 1_700_000_000,
            pre={USDC_MINT: 100.0},
            post={USDC_MINT: 90.0, TKN_MINT: 1000.0},
        ),
        solana_swap(
            "sell-sig", 1_700_086_400,
            pre={USDC_MINT: 90.0, TKN_MINT: 1000.0},
            post={USDC_MINT: 110.0, TKN_MINT: 0.0},
        ),
    ]
