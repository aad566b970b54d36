"""
Tests for the live chain sources and price oracle with HTTP mocked out.
"""

from unittest.mock import AsyncMock

import pytest

from oof_moments import (
    APIError,
    BaseRawEvent,
    BirdeyePriceOracle,
    Chain,
    ConfigurationError,
    EvmExplorerSource,
    RateLimitError,
    RPCError,
    SolanaRawEvent,
    SolanaRpcSource,
    SolanaTokenBalance,
)

from conftest import TKN_MINT, WALLET


EVM_WALLET = "0xabcdef0000000000000000000000000000000001"
ROUTER = "0x000000000000000000000000000000000000beef"
BRETT = "0x532f27101965dd16442e59d40670faf5ebb142e4"


class FakeResponse:
    def __init__(self, status=200, payload=None):
        self.status = status
        self.payload = payload or {}

    async def json(self):
        return self.payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession; records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def _next(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)

    async def close(self):
        self.closed = True


def rpc_transaction(signature, block_time, pre_amount, post_amount):
    return {
        "blockTime": block_time,
        "slot": block_time,
        "meta": {
            "fee": 5000,
            "err": None,
            "preBalances": [1_000_000_000, 0],
            "postBalances": [999_995_000, 0],
            "preTokenBalances": [{
                "accountIndex": 1, "mint": TKN_MINT, "owner": WALLET,
                "uiTokenAmount": {"uiAmount": pre_amount},
            }],
            "postTokenBalances": [{
                "accountIndex": 1, "mint": TKN_MINT, "owner": WALLET,
                "uiTokenAmount": {"uiAmount": post_amount},
            }],
        },
        "transaction": {
            "signatures": [signature],
            "message": {"accountKeys": [{"pubkey": WALLET}, {"pubkey": "Pool111"}]},
        },
    }


# =============================================================================
# TEST: Solana RPC source
# =============================================================================


class TestSolanaRpcSource:

    @pytest.fixture
    def source(self, config):
        return SolanaRpcSource(config, rpc_url="https://rpc.test")

    @pytest.mark.asyncio
    async def test_fetch_transactions(self, source):
        def fake_rpc(method, params):
            if method == "getSignaturesForAddress":
                return [
                    {"signature": "sig-b", "err": None},
                    {"signature": "sig-failed", "err": {"InstructionError": [0, "Custom"]}},
                    {"signature": "sig-a", "err": None},
                    {"signature": "sig-missing", "err": None},
                ]
            signature = params[0]
            if signature == "sig-a":
                return rpc_transaction("sig-a", 100, 0, 500)
            if signature == "sig-b":
                return rpc_transaction("sig-b", 200, 500, 0)
            return None

        source._rpc_call = AsyncMock(side_effect=fake_rpc)
        events = await source.fetch_transactions(Chain.SOLANA, WALLET)

        assert [e.signature for e in events] == ["sig-a", "sig-b"]
        assert all(isinstance(e, SolanaRawEvent) for e in events)
        assert events[0].account_keys == (WALLET, "Pool111")
        assert events[0].post_token_balances[0].ui_amount == 500
        requested = [call.args[1][0] for call in source._rpc_call.call_args_list[1:]]
        assert "sig-failed" not in requested

    @pytest.mark.asyncio
    async def test_unparseable_transaction_skipped(self, source):
        def fake_rpc(method, params):
            if method == "getSignaturesForAddress":
                return [{"signature": "sig-x", "err": None}]
            return {"blockTime": 1, "meta": {}}

        source._rpc_call = AsyncMock(side_effect=fake_rpc)
        assert await source.fetch_transactions(Chain.SOLANA, WALLET) == []

    @pytest.mark.asyncio
    async def test_detail_rpc_error_skipped(self, source):
        def fake_rpc(method, params):
            if method == "getSignaturesForAddress":
                return [{"signature": "sig-x", "err": None}]
            raise RPCError("boom", chain=Chain.SOLANA)

        source._rpc_call = AsyncMock(side_effect=fake_rpc)
        assert await source.fetch_transactions(Chain.SOLANA, WALLET) == []

    @pytest.mark.asyncio
    async def test_signature_listing_failure_propagates(self, source):
        source._rpc_call = AsyncMock(side_effect=RPCError("down", chain=Chain.SOLANA))
        with pytest.raises(RPCError):
            await source.fetch_transactions(Chain.SOLANA, WALLET)

    @pytest.mark.asyncio
    async def test_fetch_current_holding_sums_accounts(self, source):
        def account(amount):
            return {"account": {"data": {"parsed": {"info": {"tokenAmount": {"uiAmount": amount}}}}}}

        source._rpc_call = AsyncMock(return_value={"value": [account(1.5), account(2.5), account(None)]})
        holding = await source.fetch_current_holding(Chain.SOLANA, WALLET, TKN_MINT)

        assert holding == 4.0
        method, params = source._rpc_call.call_args.args
        assert method == "getTokenAccountsByOwner"
        assert params[1] == {"mint": TKN_MINT}

    @pytest.mark.asyncio
    async def test_rpc_call_returns_result(self, source):
        session = FakeSession(FakeResponse(200, {"jsonrpc": "2.0", "result": {"ok": 1}}))
        source._session = session

        assert await source._rpc_call("getSlot", []) == {"ok": 1}
        method, url, kwargs = session.calls[0]
        assert (method, url) == ("POST", "https://rpc.test")
        assert kwargs["json"]["method"] == "getSlot"

    @pytest.mark.asyncio
    async def test_rpc_call_error_payload(self, source):
        source._session = FakeSession(FakeResponse(200, {"error": {"message": "bad params"}}))
        with pytest.raises(RPCError):
            await source._rpc_call("getSlot", [])

    @pytest.mark.asyncio
    async def test_rpc_call_rate_limited(self, source):
        source._session = FakeSession(FakeResponse(429))
        with pytest.raises(RateLimitError):
            await source._rpc_call("getSlot", [])

    @pytest.mark.asyncio
    async def test_close(self, source):
        session = FakeSession(FakeResponse())
        source._session = session
        await source.close()
        assert session.closed

    def test_token_balance_from_ui_amount_string(self):
        balance = SolanaTokenBalance.from_rpc({
            "accountIndex": 2,
            "mint": TKN_MINT,
            "owner": WALLET,
            "uiTokenAmount": {"uiAmount": None, "uiAmountString": "12.5"},
        })
        assert balance.ui_amount == 12.5


# =============================================================================
# TEST: EVM explorer source
# =============================================================================


def token_row(tx_hash, value, log_index="1", timestamp="100"):
    return {
        "hash": tx_hash,
        "logIndex": log_index,
        "contractAddress": BRETT.upper().replace("0X", "0x"),
        "from": ROUTER,
        "to": EVM_WALLET,
        "value": value,
        "tokenDecimal": "18",
        "tokenSymbol": "BRETT",
        "tokenName": "Brett",
        "timeStamp": timestamp,
        "blockNumber": "10",
    }


class TestEvmExplorerSource:

    @pytest.fixture
    def source(self, config):
        source = EvmExplorerSource(Chain.BASE, config, api_key="test-key")
        source.REQUEST_SPACING_SECONDS = 0
        return source

    def test_rejects_non_evm_chain(self, config):
        with pytest.raises(ConfigurationError):
            EvmExplorerSource(Chain.SOLANA, config)

    def test_build_events(self, source):
        token_rows = [
            token_row("0xAAA", "1000000000000000000000"),
            token_row("0xaaa", "1000000000000000000000"),  # same leg via watchlist query
        ]
        normal_rows = [
            {"hash": "0xaaa", "from": EVM_WALLET, "to": ROUTER,
             "value": "500000000000000000", "isError": "0", "timeStamp": "100", "blockNumber": "10"},
            {"hash": "0xbbb", "from": EVM_WALLET, "to": ROUTER,
             "value": "0", "isError": "1", "timeStamp": "200", "blockNumber": "11"},
        ]
        internal_rows = [
            {"hash": "0xccc", "from": ROUTER, "to": EVM_WALLET,
             "value": "2000000000000000000", "isError": "0", "timeStamp": "300", "blockNumber": "12"},
        ]

        events = source._build_events(EVM_WALLET, token_rows, normal_rows, internal_rows)

        assert [e.tx_hash for e in events] == ["0xaaa", "0xbbb", "0xccc"]
        assert all(isinstance(e, BaseRawEvent) for e in events)

        swap, failed, payout = events
        assert len(swap.transfers) == 1
        assert swap.transfers[0].token_address == BRETT
        assert swap.transfers[0].amount == pytest.approx(1000.0)
        assert swap.native_out == pytest.approx(0.5)
        assert failed.failed
        assert payout.native_in == pytest.approx(2.0)
        assert payout.transfers == ()

    @pytest.mark.asyncio
    async def test_fetch_transactions_queries_watchlist(self, source, config):
        def fake_get(action, **params):
            if action == "tokentx" and "contractaddress" not in params:
                return [token_row("0x01", "5000000000000000000")]
            return []

        source._explorer_get = AsyncMock(side_effect=fake_get)
        events = await source.fetch_transactions(Chain.BASE, EVM_WALLET)

        actions = [call.args[0] for call in source._explorer_get.call_args_list]
        watchlist = config.chains[Chain.BASE].watchlist
        assert actions.count("tokentx") == 1 + len(watchlist)
        assert "txlist" in actions and "txlistinternal" in actions
        assert len(events) == 1
        assert events[0].transfers[0].amount == pytest.approx(5.0)

    @pytest.mark.asyncio
    async def test_fetch_current_holding_uses_decimals(self, source):
        source._decimals[BRETT] = 6
        source._explorer_get = AsyncMock(return_value="2500000")

        assert await source.fetch_current_holding(Chain.BASE, EVM_WALLET, BRETT) == 2.5

    @pytest.mark.asyncio
    async def test_explorer_no_transactions_is_empty(self, source):
        source._session = FakeSession(
            FakeResponse(200, {"status": "0", "message": "No transactions found", "result": []})
        )
        assert await source._explorer_get("txlist", address=EVM_WALLET) == []

    @pytest.mark.asyncio
    async def test_explorer_rate_limit_message(self, source):
        source._session = FakeSession(
            FakeResponse(200, {"status": "0", "message": "NOTOK", "result": "Max rate limit reached"})
        )
        with pytest.raises(RateLimitError):
            await source._explorer_get("txlist", address=EVM_WALLET)

    @pytest.mark.asyncio
    async def test_explorer_http_error(self, source):
        source._session = FakeSession(FakeResponse(502))
        with pytest.raises(APIError):
            await source._explorer_get("txlist", address=EVM_WALLET)

    @pytest.mark.asyncio
    async def test_explorer_sends_chain_id_and_key(self, source):
        session = FakeSession(FakeResponse(200, {"status": "1", "result": []}))
        source._session = session
        await source._explorer_get("txlist", address=EVM_WALLET)

        params = session.calls[0][2]["params"]
        assert params["chainid"] == "8453"
        assert params["apikey"] == "test-key"
        assert params["action"] == "txlist"


# =============================================================================
# TEST: Birdeye price oracle
# =============================================================================


class TestBirdeyePriceOracle:

    @pytest.fixture
    def oracle(self, config):
        return BirdeyePriceOracle(config, api_key="test-key")

    @pytest.mark.asyncio
    async def test_current_price_cached(self, oracle):
        session = FakeSession(FakeResponse(200, {"success": True, "data": {"value": 1.23}}))
        oracle._session = session

        assert await oracle.fetch_current_price(Chain.BASE, BRETT) == 1.23
        assert await oracle.fetch_current_price(Chain.BASE, BRETT) == 1.23
        assert len(session.calls) == 1
        assert session.calls[0][2]["headers"] == {"x-chain": "base"}

    @pytest.mark.asyncio
    async def test_peak_price_is_history_max(self, oracle):
        oracle._session = FakeSession(FakeResponse(200, {
            "success": True,
            "data": {"items": [{"value": 1.0}, {"value": 5.0}, {"value": 3.0}]},
        }))
        assert await oracle.fetch_peak_price(Chain.SOLANA, TKN_MINT) == 5.0

    @pytest.mark.asyncio
    async def test_unknown_token_priced_zero(self, oracle):
        oracle._session = FakeSession(FakeResponse(404))
        assert await oracle.fetch_current_price(Chain.SOLANA, TKN_MINT) == 0.0

    @pytest.mark.asyncio
    async def test_unsuccessful_payload_priced_zero(self, oracle):
        oracle._session = FakeSession(FakeResponse(200, {"success": False}))
        assert await oracle.fetch_peak_price(Chain.AVALANCHE, BRETT) == 0.0

    @pytest.mark.asyncio
    async def test_metadata(self, oracle):
        oracle._session = FakeSession(
            FakeResponse(200, {"success": True, "data": {"symbol": "BONK", "name": "Bonk"}})
        )
        assert await oracle.fetch_token_metadata(Chain.SOLANA, TKN_MINT) == ("BONK", "Bonk")

    @pytest.mark.asyncio
    async def test_rate_limited(self, oracle):
        oracle._session = FakeSession(FakeResponse(429))
        with pytest.raises(RateLimitError):
            await oracle.fetch_current_price(Chain.SOLANA, TKN_MINT)
