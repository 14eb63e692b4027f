"""
JSON-RPC ledger client: httpx implementation of the Ledger Access Port.

Speaks the Solana JSON-RPC dialect (Gorbagana is a Solana fork) over one
shared httpx.AsyncClient. Transient failures (transport errors, HTTP 429/5xx)
are retried with exponential backoff; anything else, or exhausting the
retries, raises RpcError for the caller to contain.

Batch responses are matched back to requests by JSON-RPC id, never by
position: servers are free to answer a batch in any order.
"""

from __future__ import annotations

import asyncio
import base64
from typing import Any, Sequence

import httpx
from solders.pubkey import Pubkey

from backend_holdermap.config.env import masked_rpc_url
from backend_holdermap.core.exceptions import RpcError
from backend_holdermap.holdermap_logging import get_logger, short_address
from backend_holdermap.ledger.models import (
    METADATA_PROGRAM_ID,
    PROGRAM_ID_BY_KIND,
    PROGRAM_KIND_SPL_TOKEN,
    HolderBalance,
    MintMetadata,
    ParsedTransaction,
    SignatureInfo,
)
from backend_holdermap.ledger.parser import (
    parse_holder_accounts,
    parse_metaplex_metadata,
    parse_mint_account,
    parse_signature_list,
    parse_transaction,
)

logger = get_logger(__name__)

DEFAULT_COMMITMENT = "confirmed"
DEFAULT_TIMEOUT_SEC = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_MIN_RETRY_DELAY_SEC = 0.5
DEFAULT_MAX_RETRY_DELAY_SEC = 8.0
# Legacy SPL token accounts are always 165 bytes; Token-2022 accounts vary with extensions.
SPL_TOKEN_ACCOUNT_SIZE = 165
_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class SolanaRpcLedger:
    """
    Ledger Access Port over JSON-RPC.

    Use as an async context manager, or call aclose() when done. Pass `client`
    to share a connection pool or to inject an httpx.MockTransport in tests.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        max_retries: int = DEFAULT_MAX_RETRIES,
        min_retry_delay_sec: float = DEFAULT_MIN_RETRY_DELAY_SEC,
        max_retry_delay_sec: float = DEFAULT_MAX_RETRY_DELAY_SEC,
        commitment: str = DEFAULT_COMMITMENT,
    ) -> None:
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._rpc_url = rpc_url.strip()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_sec))
        self._max_retries = max_retries
        self._min_retry_delay = min_retry_delay_sec
        self._max_retry_delay = max_retry_delay_sec
        self._commitment = commitment
        self._request_id = 0

    async def __aenter__(self) -> "SolanaRpcLedger":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # JSON-RPC plumbing
    # ------------------------------------------------------------------

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _build_body(self, method: str, params: list[Any]) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": self._next_id(), "method": method, "params": params}

    async def _post(self, payload: Any, method: str) -> Any:
        """POST with retry on transient failures; return decoded JSON."""
        delay = self._min_retry_delay
        last_error = ""
        for attempt in range(self._max_retries):
            try:
                resp = await self._client.post(self._rpc_url, json=payload)
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
            else:
                if resp.status_code not in _RETRYABLE_STATUS:
                    try:
                        resp.raise_for_status()
                        return resp.json()
                    except httpx.HTTPStatusError as e:
                        raise RpcError(f"RPC HTTP {resp.status_code} for {method}", method=method) from e
                    except ValueError as e:
                        raise RpcError(f"RPC returned invalid JSON for {method}", method=method) from e
                last_error = f"HTTP {resp.status_code}"
            if attempt + 1 < self._max_retries:
                logger.debug(
                    "rpc_retry",
                    method=method,
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                    error=last_error,
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, self._max_retry_delay)
        logger.warning(
            "rpc_give_up",
            method=method,
            rpc_url=masked_rpc_url(self._rpc_url),
            max_retries=self._max_retries,
            error=last_error,
        )
        raise RpcError(f"RPC {method} failed after {self._max_retries} attempts: {last_error}", method=method)

    @staticmethod
    def _result_or_raise(data: Any, method: str) -> Any:
        if not isinstance(data, dict):
            raise RpcError(f"RPC returned malformed response for {method}", method=method)
        if "error" in data:
            err = data["error"] or {}
            message = err.get("message", err) if isinstance(err, dict) else err
            code = err.get("code") if isinstance(err, dict) else None
            raise RpcError(f"RPC error for {method}: {message} (code={code})", method=method, rpc_code=code)
        if "result" not in data:
            raise RpcError(f"RPC returned no result for {method}", method=method)
        return data["result"]

    async def _call(self, method: str, params: list[Any]) -> Any:
        data = await self._post(self._build_body(method, params), method)
        return self._result_or_raise(data, method)

    async def _call_batch(self, method: str, params_list: Sequence[list[Any]]) -> dict[int, Any]:
        """
        One JSON-RPC batch of the same method. Returns request id -> response
        entry; callers correlate ids with their own inputs.
        """
        bodies = [self._build_body(method, params) for params in params_list]
        data = await self._post(bodies, method)
        if not isinstance(data, list):
            # Some nodes answer a rejected batch with a single error object.
            self._result_or_raise(data, method)
            raise RpcError(f"RPC returned non-list batch response for {method}", method=method)
        by_id: dict[int, Any] = {}
        for entry in data:
            if isinstance(entry, dict) and isinstance(entry.get("id"), int):
                by_id[entry["id"]] = entry
        return {body["id"]: by_id.get(body["id"]) for body in bodies}

    # ------------------------------------------------------------------
    # Ledger Access Port
    # ------------------------------------------------------------------

    async def get_mint_metadata(self, mint: str) -> MintMetadata:
        result = await self._call(
            "getAccountInfo",
            [mint, {"encoding": "jsonParsed", "commitment": self._commitment}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        metadata = parse_mint_account(mint, value)
        if metadata.token_name and metadata.token_symbol and metadata.token_uri:
            return metadata

        try:
            name, symbol, uri = await self._fetch_metaplex_metadata(mint)
        except (RpcError, ValueError) as e:
            # Not every mint has a Metaplex metadata account.
            logger.debug("mint_metaplex_lookup_failed", mint=short_address(mint), error=str(e))
            return metadata
        return MintMetadata(
            mint=metadata.mint,
            decimals=metadata.decimals,
            supply_raw=metadata.supply_raw,
            program_kind=metadata.program_kind,
            token_name=metadata.token_name or name,
            token_symbol=metadata.token_symbol or symbol,
            token_uri=metadata.token_uri or uri,
        )

    async def _fetch_metaplex_metadata(self, mint: str) -> tuple[str | None, str | None, str | None]:
        program_id = Pubkey.from_string(METADATA_PROGRAM_ID)
        pda, _bump = Pubkey.find_program_address(
            [b"metadata", bytes(program_id), bytes(Pubkey.from_string(mint))],
            program_id,
        )
        result = await self._call(
            "getAccountInfo",
            [str(pda), {"encoding": "base64", "commitment": self._commitment}],
        )
        value = result.get("value") if isinstance(result, dict) else None
        data = (value or {}).get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], str):
            return None, None, None
        return parse_metaplex_metadata(base64.b64decode(data[0]))

    async def get_holder_balances(self, mint: str, program_kind: str) -> list[HolderBalance]:
        filters: list[dict[str, Any]] = [{"memcmp": {"offset": 0, "bytes": mint}}]
        if program_kind == PROGRAM_KIND_SPL_TOKEN:
            filters.insert(0, {"dataSize": SPL_TOKEN_ACCOUNT_SIZE})
        result = await self._call(
            "getProgramAccounts",
            [
                PROGRAM_ID_BY_KIND[program_kind],
                {"encoding": "jsonParsed", "commitment": self._commitment, "filters": filters},
            ],
        )
        return parse_holder_accounts(result)

    async def get_recent_signatures(self, address: str, limit: int) -> list[SignatureInfo]:
        result = await self._call(
            "getSignaturesForAddress",
            [address, {"limit": limit, "commitment": self._commitment}],
        )
        return parse_signature_list(result)

    async def get_parsed_transactions(
        self, signatures: Sequence[str]
    ) -> list[ParsedTransaction | None]:
        if not signatures:
            return []
        opts = {
            "encoding": "jsonParsed",
            "maxSupportedTransactionVersion": 0,
            "commitment": self._commitment,
        }
        responses = await self._call_batch("getTransaction", [[sig, opts] for sig in signatures])
        request_ids = list(responses)
        out: list[ParsedTransaction | None] = []
        for sig, request_id in zip(signatures, request_ids):
            entry = responses[request_id]
            if entry is None or "error" in entry:
                logger.debug("rpc_transaction_missing", signature=short_address(sig))
                out.append(None)
                continue
            out.append(parse_transaction(entry.get("result")))
        return out
