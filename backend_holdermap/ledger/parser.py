"""
Ledger payload parser: raw JSON-RPC results to ledger models.

Parses getTransaction(jsonParsed), getSignaturesForAddress,
getProgramAccounts(jsonParsed) and getAccountInfo results into the dataclasses
of ledger.models. Purely structural; no aggregation or classification logic.
Unparseable entries are skipped (or reported as None) rather than raised, except
for the mint account, whose failure is fatal to a snapshot.
"""

from __future__ import annotations

import struct
from typing import Any

from backend_holdermap.core.exceptions import MintNotFoundError, NotAMintError
from backend_holdermap.ledger.models import (
    PROGRAM_KIND_BY_OWNER,
    HolderBalance,
    MintMetadata,
    ParsedInstruction,
    ParsedTransaction,
    SignatureInfo,
    TokenBalance,
    parse_raw_amount,
)

# Metaplex metadata account: key (1) + update authority (32) + mint (32)
METAPLEX_HEADER_LEN = 65


def _key_to_str(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, dict):
        pubkey = key.get("pubkey")
        return str(pubkey) if pubkey is not None else ""
    return ""


def _get_account_keys(message: dict[str, Any], meta: dict[str, Any] | None) -> list[str]:
    """
    Resolve accountKeys to a list of base58 strings (handles json vs jsonParsed).
    With plain json encoding, versioned transactions list lookup-table addresses in
    meta.loadedAddresses (writable, then readonly); jsonParsed already inlines them.
    """
    keys = message.get("accountKeys")
    if not keys:
        return []
    out = [_key_to_str(k) for k in keys]
    if isinstance(keys[0], str):
        loaded = (meta or {}).get("loadedAddresses") or {}
        for role in ("writable", "readonly"):
            for addr in loaded.get(role) or []:
                out.append(_key_to_str(addr))
    return out


def _get_message_and_meta(raw: dict[str, Any]) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
    """Return (transaction.message, meta) from getTransaction-style result."""
    tx_obj = raw.get("transaction")
    if not tx_obj or not isinstance(tx_obj, dict):
        return None, None
    message = tx_obj.get("message")
    if not message or not isinstance(message, dict):
        return None, None
    meta = raw.get("meta")
    if not isinstance(meta, dict):
        meta = None
    return message, meta


def _parse_token_balances(items: Any) -> list[TokenBalance]:
    out: list[TokenBalance] = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        index = item.get("accountIndex")
        if not isinstance(index, int):
            continue
        ui_amount = item.get("uiTokenAmount") or {}
        amount_raw = parse_raw_amount(ui_amount.get("amount")) if isinstance(ui_amount, dict) else None
        decimals = ui_amount.get("decimals") if isinstance(ui_amount, dict) else None
        out.append(
            TokenBalance(
                account_index=index,
                mint=item.get("mint") or None,
                owner=item.get("owner") or None,
                amount_raw=amount_raw or 0,
                decimals=int(decimals) if isinstance(decimals, int) else 0,
            )
        )
    return out


def _parse_instruction(ix: Any) -> ParsedInstruction | None:
    """Keep jsonParsed instructions whose `parsed` is an object with a type; drop raw ones."""
    if not isinstance(ix, dict):
        return None
    parsed = ix.get("parsed")
    if not isinstance(parsed, dict):
        return None
    type_name = parsed.get("type")
    if not isinstance(type_name, str):
        return None
    info = parsed.get("info")
    return ParsedInstruction(
        program=ix.get("program") or ix.get("programId"),
        type_name=type_name,
        info=info if isinstance(info, dict) else {},
    )


def _parse_instructions(items: Any) -> list[ParsedInstruction]:
    out: list[ParsedInstruction] = []
    for ix in items or []:
        parsed = _parse_instruction(ix)
        if parsed is not None:
            out.append(parsed)
    return out


def _int_list(values: Any) -> list[int]:
    out: list[int] = []
    for v in values or []:
        try:
            out.append(int(v))
        except (TypeError, ValueError):
            out.append(0)
    return out


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_transaction(raw: dict[str, Any] | None) -> ParsedTransaction | None:
    """
    Parse a single getTransaction(jsonParsed) result.

    Returns None if the payload cannot be parsed (missing message, account keys
    or signature); callers treat that like a transaction that could not be retrieved.
    """
    if not isinstance(raw, dict):
        return None
    message, meta = _get_message_and_meta(raw)
    if not message:
        return None

    account_keys = _get_account_keys(message, meta)
    if not account_keys:
        return None

    signatures = (raw.get("transaction") or {}).get("signatures") or []
    signature = signatures[0] if isinstance(signatures, list) and signatures else None
    if not isinstance(signature, str) or not signature:
        return None

    meta = meta or {}
    inner: list[ParsedInstruction] = []
    for inner_block in meta.get("innerInstructions") or []:
        if isinstance(inner_block, dict):
            inner.extend(_parse_instructions(inner_block.get("instructions")))

    return ParsedTransaction(
        signature=signature,
        block_time=_optional_int(raw.get("blockTime")),
        account_keys=account_keys,
        pre_token_balances=_parse_token_balances(meta.get("preTokenBalances")),
        post_token_balances=_parse_token_balances(meta.get("postTokenBalances")),
        pre_balances=_int_list(meta.get("preBalances")),
        post_balances=_int_list(meta.get("postBalances")),
        instructions=_parse_instructions(message.get("instructions")),
        inner_instructions=inner,
        slot=_optional_int(raw.get("slot")),
    )


def parse_signature_list(raw: Any) -> list[SignatureInfo]:
    """getSignaturesForAddress result (newest first) to SignatureInfo; invalid items skipped."""
    out: list[SignatureInfo] = []
    for item in raw or []:
        if not isinstance(item, dict):
            continue
        sig = item.get("signature")
        if not isinstance(sig, str) or not sig:
            continue
        out.append(
            SignatureInfo(
                signature=sig,
                block_time=_optional_int(item.get("blockTime")),
                slot=_optional_int(item.get("slot")),
                err=item.get("err"),
            )
        )
    return out


def parse_holder_accounts(raw: Any) -> list[HolderBalance]:
    """
    getProgramAccounts(jsonParsed) result to (owner, raw amount) pairs.
    Accounts without parsed data, owner or amount are skipped. Owners may repeat.
    """
    if isinstance(raw, dict):
        raw = raw.get("value")
    out: list[HolderBalance] = []
    for entry in raw or []:
        if not isinstance(entry, dict):
            continue
        data = (entry.get("account") or {}).get("data")
        if not isinstance(data, dict):
            continue
        parsed = data.get("parsed")
        if not isinstance(parsed, dict):
            continue
        info = parsed.get("info") or {}
        owner = info.get("owner")
        token_amount = info.get("tokenAmount") or {}
        amount_raw = parse_raw_amount(token_amount.get("amount")) if isinstance(token_amount, dict) else None
        if not owner or amount_raw is None:
            continue
        out.append(HolderBalance(owner=owner, amount_raw=amount_raw))
    return out


def normalize_display_string(value: Any) -> str | None:
    """Strip NUL padding and whitespace; blank or non-string values become None."""
    if not isinstance(value, str):
        return None
    cleaned = value.replace("\0", "").strip()
    return cleaned or None


def _nested(value: Any, key: str) -> str | None:
    if not isinstance(value, dict):
        return None
    return normalize_display_string(value.get(key))


def extract_display_names(info: dict[str, Any]) -> tuple[str | None, str | None, str | None]:
    """Name, symbol and uri from a parsed mint: top-level fields, then each extension and its state."""
    name = normalize_display_string(info.get("name"))
    symbol = normalize_display_string(info.get("symbol"))
    uri = normalize_display_string(info.get("uri"))

    extensions = info.get("extensions")
    for extension in extensions if isinstance(extensions, list) else []:
        if not isinstance(extension, dict):
            continue
        state = extension.get("state")
        name = name or _nested(extension, "name") or _nested(state, "name")
        symbol = symbol or _nested(extension, "symbol") or _nested(state, "symbol")
        uri = uri or _nested(extension, "uri") or _nested(state, "uri")
    return name, symbol, uri


def parse_mint_account(mint: str, value: Any) -> MintMetadata:
    """
    getAccountInfo(jsonParsed).value of a mint to MintMetadata.

    Raises MintNotFoundError when the account does not exist and NotAMintError
    when it is not a parsable mint owned by the Token or Token-2022 program.
    """
    if value is None:
        raise MintNotFoundError(f"Mint account {mint} does not exist")
    data = value.get("data") if isinstance(value, dict) else None
    if not isinstance(data, dict) or not isinstance(data.get("parsed"), dict):
        raise NotAMintError("Mint account is missing or not parsable")
    parsed = data["parsed"]
    if parsed.get("type") != "mint":
        raise NotAMintError("Provided address is not a mint account")

    owner = value.get("owner")
    program_kind = PROGRAM_KIND_BY_OWNER.get(owner or "")
    if program_kind is None:
        raise NotAMintError(
            f"Unsupported mint owner program: {owner}. Expected Token or Token-2022 program."
        )

    info = parsed.get("info") or {}
    supply_raw = parse_raw_amount(info.get("supply")) or 0
    decimals = _optional_int(info.get("decimals")) or 0
    name, symbol, uri = extract_display_names(info)
    return MintMetadata(
        mint=mint,
        decimals=decimals,
        supply_raw=supply_raw,
        program_kind=program_kind,
        token_name=name,
        token_symbol=symbol,
        token_uri=uri,
    )


def _read_borsh_string(data: bytes, offset: int) -> tuple[str | None, int] | None:
    """u32 little-endian length prefix + utf-8 bytes. None when the buffer is truncated."""
    if offset + 4 > len(data):
        return None
    (length,) = struct.unpack_from("<I", data, offset)
    start = offset + 4
    end = start + length
    if end > len(data):
        return None
    value = data[start:end].decode("utf-8", errors="replace")
    return normalize_display_string(value), end


def parse_metaplex_metadata(data: bytes) -> tuple[str | None, str | None, str | None]:
    """(name, symbol, uri) from a Metaplex metadata account; fields after a truncation are None."""
    if len(data) < METAPLEX_HEADER_LEN:
        return None, None, None
    name_parsed = _read_borsh_string(data, METAPLEX_HEADER_LEN)
    if name_parsed is None:
        return None, None, None
    name, offset = name_parsed
    symbol_parsed = _read_borsh_string(data, offset)
    if symbol_parsed is None:
        return name, None, None
    symbol, offset = symbol_parsed
    uri_parsed = _read_borsh_string(data, offset)
    return name, symbol, uri_parsed[0] if uri_parsed else None
