"""
Pytest fixtures for HolderMap tests: an in-memory ledger and transaction builders.

The fake ledger implements the Ledger Access Port from plain dicts, counts
calls per method, and can be told to fail for chosen addresses or signatures.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Sequence

import pytest

from backend_holdermap.config.settings import Settings
from backend_holdermap.core.exceptions import MintNotFoundError, RpcError
from backend_holdermap.ledger.models import (
    PROGRAM_KIND_SPL_TOKEN,
    HolderBalance,
    MintMetadata,
    ParsedInstruction,
    ParsedTransaction,
    SignatureInfo,
    TokenBalance,
)

# Valid base58 32-byte addresses
MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
OTHER_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
HOLDER_1 = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
HOLDER_2 = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
HOLDER_3 = "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN"


class FakeLedger:
    """Dict-backed LedgerPort with failure injection and call counters."""

    def __init__(
        self,
        *,
        metadata: MintMetadata | None = None,
        balances: list[HolderBalance] | None = None,
        signatures: dict[str, list[SignatureInfo]] | None = None,
        transactions: dict[str, ParsedTransaction] | None = None,
    ) -> None:
        self.metadata = metadata
        self.balances = balances or []
        self.signatures = signatures or {}
        self.transactions = transactions or {}
        self.failing_addresses: set[str] = set()
        self.failing_signatures: set[str] = set()
        self.metadata_error: Exception | None = None
        self.balances_error: Exception | None = None
        self.calls: Counter = Counter()
        self.signature_requests: list[tuple[str, int]] = []

    async def __aenter__(self) -> "FakeLedger":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def get_mint_metadata(self, mint: str) -> MintMetadata:
        self.calls["get_mint_metadata"] += 1
        if self.metadata_error is not None:
            raise self.metadata_error
        if self.metadata is None or self.metadata.mint != mint:
            raise MintNotFoundError(f"Mint account {mint} does not exist")
        return self.metadata

    async def get_holder_balances(self, mint: str, program_kind: str) -> list[HolderBalance]:
        self.calls["get_holder_balances"] += 1
        if self.balances_error is not None:
            raise self.balances_error
        return list(self.balances)

    async def get_recent_signatures(self, address: str, limit: int) -> list[SignatureInfo]:
        self.calls["get_recent_signatures"] += 1
        self.signature_requests.append((address, limit))
        if address in self.failing_addresses:
            raise RpcError(f"signatures unavailable for {address}", method="getSignaturesForAddress")
        return list(self.signatures.get(address, []))[:limit]

    async def get_parsed_transactions(self, signatures: Sequence[str]) -> list[ParsedTransaction | None]:
        self.calls["get_parsed_transactions"] += 1
        if any(sig in self.failing_signatures for sig in signatures):
            raise RpcError("batch rejected", method="getTransaction")
        return [self.transactions.get(sig) for sig in signatures]


def mint_metadata(mint: str = MINT, *, decimals: int = 0, supply_raw: int = 1000, **names: Any) -> MintMetadata:
    return MintMetadata(
        mint=mint,
        decimals=decimals,
        supply_raw=supply_raw,
        program_kind=PROGRAM_KIND_SPL_TOKEN,
        token_name=names.get("token_name"),
        token_symbol=names.get("token_symbol"),
        token_uri=names.get("token_uri"),
    )


def token_balance(index: int, mint: str, owner: str | None, amount: int, decimals: int = 0) -> TokenBalance:
    return TokenBalance(account_index=index, mint=mint, owner=owner, amount_raw=amount, decimals=decimals)


def transfer_ix(
    source: str,
    destination: str,
    amount: int | str,
    *,
    mint: str | None = None,
    type_name: str = "transfer",
) -> ParsedInstruction:
    info: dict[str, Any] = {"source": source, "destination": destination, "amount": str(amount)}
    if mint is not None:
        info["mint"] = mint
    return ParsedInstruction(program="spl-token", type_name=type_name, info=info)


def make_tx(
    signature: str,
    account_keys: list[str],
    *,
    pre_token: list[TokenBalance] | None = None,
    post_token: list[TokenBalance] | None = None,
    pre_balances: list[int] | None = None,
    post_balances: list[int] | None = None,
    instructions: list[ParsedInstruction] | None = None,
    inner: list[ParsedInstruction] | None = None,
    block_time: int | None = 1_700_000_000,
) -> ParsedTransaction:
    return ParsedTransaction(
        signature=signature,
        block_time=block_time,
        account_keys=account_keys,
        pre_token_balances=pre_token or [],
        post_token_balances=post_token or [],
        pre_balances=pre_balances or [],
        post_balances=post_balances or [],
        instructions=instructions or [],
        inner_instructions=inner or [],
    )


def holder_transfer_tx(
    signature: str,
    from_owner: str,
    to_owner: str,
    amount: int,
    *,
    mint: str = MINT,
    block_time: int | None = 1_700_000_000,
) -> ParsedTransaction:
    """One transfer between two token accounts labelled with their owners."""
    keys = [from_owner, f"{from_owner}-ata", f"{to_owner}-ata"]
    return make_tx(
        signature,
        keys,
        pre_token=[token_balance(1, mint, from_owner, 1000), token_balance(2, mint, to_owner, 0)],
        post_token=[token_balance(1, mint, from_owner, 1000 - amount), token_balance(2, mint, to_owner, amount)],
        instructions=[transfer_ix(f"{from_owner}-ata", f"{to_owner}-ata", amount)],
        block_time=block_time,
    )


@pytest.fixture
def settings() -> Settings:
    """Defaults only; never reads the environment."""
    return Settings(rpc_url="http://rpc.test/")


@pytest.fixture
def snapshot_ledger() -> FakeLedger:
    """Holders 600/300/100 of a 1000-supply mint; holder 2 sent 50 to holder 3 once."""
    tx = holder_transfer_tx("sig-h2-h3", HOLDER_2, HOLDER_3, 50)
    return FakeLedger(
        metadata=mint_metadata(token_name="Trash", token_symbol="TRASH"),
        balances=[
            HolderBalance(owner=HOLDER_1, amount_raw=600),
            HolderBalance(owner=HOLDER_2, amount_raw=300),
            HolderBalance(owner=HOLDER_3, amount_raw=100),
        ],
        signatures={
            HOLDER_2: [SignatureInfo(signature="sig-h2-h3", block_time=1_700_000_000)],
            HOLDER_3: [SignatureInfo(signature="sig-h2-h3", block_time=1_700_000_000)],
        },
        transactions={"sig-h2-h3": tx},
    )
