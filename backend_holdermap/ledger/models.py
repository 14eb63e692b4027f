"""
Data models for parsed ledger data.

Everything the aggregation engine reads from the ledger goes through these
dataclasses. Heterogeneous RPC shapes (account keys as strings or as
{pubkey: ...} objects, amounts as strings or numbers) are resolved once by
ledger.parser; the analytics code never re-sniffs raw payloads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator

from backend_holdermap.core.amounts import to_ui_amount

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
WRAPPED_NATIVE_MINT = "So11111111111111111111111111111111111111112"

PROGRAM_KIND_SPL_TOKEN = "spl-token"
PROGRAM_KIND_TOKEN_2022 = "token-2022"

PROGRAM_KIND_BY_OWNER: dict[str, str] = {
    TOKEN_PROGRAM_ID: PROGRAM_KIND_SPL_TOKEN,
    TOKEN_2022_PROGRAM_ID: PROGRAM_KIND_TOKEN_2022,
}
PROGRAM_ID_BY_KIND: dict[str, str] = {kind: pid for pid, kind in PROGRAM_KIND_BY_OWNER.items()}


def parse_raw_amount(value: Any) -> int | None:
    """Raw token amount from an RPC field (decimal string or number); None when unusable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class SignatureInfo:
    """One getSignaturesForAddress entry."""

    signature: str
    block_time: int | None = None
    slot: int | None = None
    err: Any = None


@dataclass(frozen=True)
class TokenBalance:
    """One pre/post token-balance record of a transaction."""

    account_index: int
    mint: str | None
    owner: str | None
    amount_raw: int
    decimals: int


@dataclass(frozen=True)
class ParsedInstruction:
    """A jsonParsed instruction (top-level or inner). Unparsed instructions are not kept."""

    program: str | None
    type_name: str
    info: dict[str, Any] = field(default_factory=dict)

    @property
    def source(self) -> str | None:
        value = self.info.get("source")
        return value if isinstance(value, str) and value else None

    @property
    def destination(self) -> str | None:
        value = self.info.get("destination")
        return value if isinstance(value, str) and value else None

    @property
    def mint(self) -> str | None:
        value = self.info.get("mint")
        return value if isinstance(value, str) and value else None

    @property
    def amount_raw(self) -> int | None:
        """info.amount, else info.tokenAmount.amount (transferChecked)."""
        raw = self.info.get("amount")
        if raw is None:
            token_amount = self.info.get("tokenAmount")
            if isinstance(token_amount, dict):
                raw = token_amount.get("amount")
        return parse_raw_amount(raw)


@dataclass
class ParsedTransaction:
    """
    Structured view of a getTransaction(jsonParsed) result.

    account_keys are plain base58 strings in transaction order (static keys
    followed by loaded writable then readonly addresses), so balance arrays
    and token-balance account indexes resolve with a list lookup.
    """

    signature: str
    block_time: int | None
    account_keys: list[str]
    pre_token_balances: list[TokenBalance] = field(default_factory=list)
    post_token_balances: list[TokenBalance] = field(default_factory=list)
    pre_balances: list[int] = field(default_factory=list)
    post_balances: list[int] = field(default_factory=list)
    instructions: list[ParsedInstruction] = field(default_factory=list)
    inner_instructions: list[ParsedInstruction] = field(default_factory=list)
    slot: int | None = None

    def account_key(self, index: int) -> str | None:
        if 0 <= index < len(self.account_keys):
            return self.account_keys[index] or None
        return None

    def all_instructions(self) -> Iterator[ParsedInstruction]:
        """Top-level instructions first, then inner (CPI) instructions."""
        yield from self.instructions
        yield from self.inner_instructions

    @property
    def block_time_ms(self) -> int | None:
        return self.block_time * 1000 if self.block_time else None


@dataclass(frozen=True)
class MintMetadata:
    mint: str
    decimals: int
    supply_raw: int
    program_kind: str
    token_name: str | None = None
    token_symbol: str | None = None
    token_uri: str | None = None

    @property
    def supply(self) -> float:
        return to_ui_amount(self.supply_raw, self.decimals)


@dataclass(frozen=True)
class HolderBalance:
    """Raw balance of one token account, labelled with its owner. Owners may repeat."""

    owner: str
    amount_raw: int
