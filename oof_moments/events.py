"""
Raw chain events - typed shapes of what each chain source returns.

Sources convert API payloads into these records; the normalizer is the
only place that turns them into ``TokenTransaction`` objects.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .models import Chain


@dataclass(frozen=True)
class SolanaTokenBalance:
    """One entry of preTokenBalances / postTokenBalances."""
    account_index: int
    mint: str
    owner: str
    ui_amount: Optional[float]

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "SolanaTokenBalance":
        ui = data.get("uiTokenAmount") or {}
        amount = ui.get("uiAmount")
        if amount is None and ui.get("uiAmountString") not in (None, ""):
            amount = float(ui["uiAmountString"])
        return cls(
            account_index=int(data.get("accountIndex", 0)),
            mint=data["mint"],
            owner=data.get("owner", ""),
            ui_amount=float(amount) if amount is not None else None,
        )


@dataclass(frozen=True)
class SolanaRawEvent:
    """A parsed Solana transaction (getTransaction, jsonParsed)."""
    signature: str
    block_time: Optional[int]
    slot: int = 0
    fee_lamports: int = 0
    failed: bool = False
    account_keys: tuple[str, ...] = ()
    pre_balances: tuple[int, ...] = ()
    post_balances: tuple[int, ...] = ()
    pre_token_balances: tuple[SolanaTokenBalance, ...] = ()
    post_token_balances: tuple[SolanaTokenBalance, ...] = ()

    chain = Chain.SOLANA

    @classmethod
    def from_rpc(cls, raw: dict[str, Any]) -> "SolanaRawEvent":
        """Build from a getTransaction result. Raises on missing structure."""
        meta = raw.get("meta") or {}
        message = raw["transaction"]["message"]

        keys = []
        for key in message.get("accountKeys", []):
            if isinstance(key, dict):
                keys.append(key.get("pubkey", ""))
            else:
                keys.append(str(key))

        signature = raw.get("signature")
        if not signature:
            signatures = raw["transaction"].get("signatures") or [""]
            signature = signatures[0]

        return cls(
            signature=signature,
            block_time=raw.get("blockTime"),
            slot=int(raw.get("slot", 0) or 0),
            fee_lamports=int(meta.get("fee", 0) or 0),
            failed=bool(meta.get("err")),
            account_keys=tuple(keys),
            pre_balances=tuple(int(b) for b in meta.get("preBalances", [])),
            post_balances=tuple(int(b) for b in meta.get("postBalances", [])),
            pre_token_balances=tuple(
                SolanaTokenBalance.from_rpc(b) for b in meta.get("preTokenBalances") or []
            ),
            post_token_balances=tuple(
                SolanaTokenBalance.from_rpc(b) for b in meta.get("postTokenBalances") or []
            ),
        )


@dataclass(frozen=True)
class EvmTransferLeg:
    """One ERC-20 transfer inside an EVM transaction."""
    token_address: str
    from_address: str
    to_address: str
    amount: float  # Decimal-adjusted token units
    symbol: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_explorer(cls, data: dict[str, Any]) -> "EvmTransferLeg":
        """Build from an Etherscan-style ``tokentx`` row."""
        decimals = int(data.get("tokenDecimal") or 18)
        return cls(
            token_address=data["contractAddress"].lower(),
            from_address=data.get("from", "").lower(),
            to_address=data.get("to", "").lower(),
            amount=int(data["value"]) / (10 ** decimals),
            symbol=data.get("tokenSymbol") or None,
            name=data.get("tokenName") or None,
        )


@dataclass(frozen=True)
class EvmRawEvent:
    """An EVM transaction with its token legs and native value movement."""
    tx_hash: str
    timestamp: Optional[int]
    block_number: int = 0
    failed: bool = False
    transfers: tuple[EvmTransferLeg, ...] = ()
    native_in: float = 0.0   # Native units received by the wallet
    native_out: float = 0.0  # Native units sent by the wallet (excluding gas)

    chain = Chain.BASE


@dataclass(frozen=True)
class BaseRawEvent(EvmRawEvent):
    """Transaction on Base."""
    chain = Chain.BASE


@dataclass(frozen=True)
class AvalancheRawEvent(EvmRawEvent):
    """Transaction on Avalanche C-Chain."""
    chain = Chain.AVALANCHE


EVM_EVENT_TYPES: dict[Chain, type] = {
    Chain.BASE: BaseRawEvent,
    Chain.AVALANCHE: AvalancheRawEvent,
}


RawEvent = Union[SolanaRawEvent, BaseRawEvent, AvalancheRawEvent]
