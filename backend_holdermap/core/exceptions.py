"""
Application-level exceptions.

Every error carries a stable `code` so callers (CLI, presentation layer) can
surface a single message without inspecting exception types.

- InputError: malformed or missing subject address; fatal to the one request.
- RpcError: one ledger call failed (transport, HTTP status, JSON-RPC error).
  Fan-out helpers contain it to the failing wallet / program / chunk.
- UpstreamError: a single-source dependency every downstream step needs
  (mint metadata, holder balances) failed; fatal to the whole aggregation.
"""

from __future__ import annotations

from typing import Any


class HolderMapError(Exception):
    """Base class for all HolderMap errors."""

    code = "holdermap_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code}


class InputError(HolderMapError):
    code = "invalid_input"


class RpcError(HolderMapError):
    """A ledger RPC call failed after retries."""

    code = "rpc_error"

    def __init__(self, message: str, *, method: str | None = None, rpc_code: int | None = None) -> None:
        super().__init__(message)
        self.method = method
        self.rpc_code = rpc_code


class UpstreamError(HolderMapError):
    code = "upstream_failure"


class MintNotFoundError(UpstreamError):
    code = "mint_not_found"


class NotAMintError(UpstreamError):
    code = "not_a_mint"
