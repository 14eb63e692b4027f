"""
Ledger Access Port: the four ledger capabilities the aggregation engine consumes.

The engine never talks to the network directly; it is handed an object that
satisfies this protocol (SolanaRpcLedger in production, an in-memory fake in tests).
"""

from __future__ import annotations

from typing import Protocol, Sequence

from backend_holdermap.ledger.models import (
    HolderBalance,
    MintMetadata,
    ParsedTransaction,
    SignatureInfo,
)


class LedgerPort(Protocol):
    async def get_mint_metadata(self, mint: str) -> MintMetadata:
        """Raise MintNotFoundError / NotAMintError when the address is not a fungible mint."""
        ...

    async def get_holder_balances(self, mint: str, program_kind: str) -> list[HolderBalance]:
        """All token accounts of the mint; owners may repeat (caller sums)."""
        ...

    async def get_recent_signatures(self, address: str, limit: int) -> list[SignatureInfo]:
        """Newest first. Best-effort; may raise RpcError per address."""
        ...

    async def get_parsed_transactions(
        self, signatures: Sequence[str]
    ) -> list[ParsedTransaction | None]:
        """None entries mean the transaction could not be retrieved."""
        ...
