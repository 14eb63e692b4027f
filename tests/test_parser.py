"""
Tests for the ledger payload parser.

Covers getTransaction(jsonParsed) shapes (string and {pubkey} account keys,
loadedAddresses, inner instructions), signature lists, holder accounts,
mint accounts with Token-2022 extensions, and Metaplex metadata decoding.
"""

from __future__ import annotations

import struct

import pytest

from backend_holdermap.core.exceptions import MintNotFoundError, NotAMintError
from backend_holdermap.ledger.models import (
    PROGRAM_KIND_SPL_TOKEN,
    PROGRAM_KIND_TOKEN_2022,
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from backend_holdermap.ledger.parser import (
    METAPLEX_HEADER_LEN,
    parse_holder_accounts,
    parse_metaplex_metadata,
    parse_mint_account,
    parse_signature_list,
    parse_transaction,
)

MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
OWNER_A = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
OWNER_B = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"


def _raw_tx(account_keys, *, meta=None, instructions=None, signatures=("sig-1",)) -> dict:
    return {
        "slot": 10,
        "blockTime": 1_700_000_000,
        "transaction": {
            "signatures": list(signatures),
            "message": {"accountKeys": account_keys, "instructions": instructions or []},
        },
        "meta": meta or {},
    }


def test_parse_transaction_with_pubkey_objects():
    """Account keys given as objects and inner instructions are parsed."""
    raw = _raw_tx(
        [{"pubkey": OWNER_A, "signer": True}, {"pubkey": "ata-a"}, {"pubkey": "ata-b"}],
        meta={
            "preBalances": [5_000_000_000, 0, 0],
            "postBalances": ["4000000000", 0, 0],
            "preTokenBalances": [
                {"accountIndex": 1, "mint": MINT, "owner": OWNER_A, "uiTokenAmount": {"amount": "100", "decimals": 6}},
            ],
            "postTokenBalances": [
                {"accountIndex": 1, "mint": MINT, "owner": OWNER_A, "uiTokenAmount": {"amount": "40", "decimals": 6}},
                {"accountIndex": 2, "mint": MINT, "owner": OWNER_B, "uiTokenAmount": {"amount": "60", "decimals": 6}},
            ],
            "innerInstructions": [
                {
                    "index": 0,
                    "instructions": [
                        {
                            "program": "spl-token",
                            "parsed": {
                                "type": "transferChecked",
                                "info": {
                                    "source": "ata-a",
                                    "destination": "ata-b",
                                    "mint": MINT,
                                    "tokenAmount": {"amount": "60", "decimals": 6},
                                },
                            },
                        }
                    ],
                }
            ],
        },
        instructions=[
            {"programId": "ComputeBudget111111111111111111111111111111", "data": "3DdGGhkhJbjm"},
        ],
    )
    tx = parse_transaction(raw)
    assert tx is not None
    assert tx.signature == "sig-1"
    assert tx.block_time == 1_700_000_000
    assert tx.block_time_ms == 1_700_000_000_000
    assert tx.slot == 10
    assert tx.account_keys == [OWNER_A, "ata-a", "ata-b"]
    assert tx.post_balances == [4_000_000_000, 0, 0]
    assert len(tx.pre_token_balances) == 1
    assert tx.post_token_balances[1].owner == OWNER_B
    assert tx.post_token_balances[1].amount_raw == 60
    assert tx.post_token_balances[1].decimals == 6
    # Raw (unparsed) instruction dropped, inner instruction kept
    assert tx.instructions == []
    inner = list(tx.all_instructions())
    assert len(inner) == 1
    assert inner[0].type_name == "transferChecked"
    assert inner[0].amount_raw == 60
    assert inner[0].mint == MINT


def test_parse_transaction_appends_loaded_addresses():
    """Lookup-table addresses follow the static keys."""
    raw = _raw_tx(
        [OWNER_A, "static-2"],
        meta={"loadedAddresses": {"writable": ["lut-w"], "readonly": ["lut-r"]}},
    )
    tx = parse_transaction(raw)
    assert tx is not None
    assert tx.account_keys == [OWNER_A, "static-2", "lut-w", "lut-r"]
    assert tx.account_key(3) == "lut-r"
    assert tx.account_key(9) is None


@pytest.mark.parametrize(
    "raw",
    [
        None,
        {},
        {"transaction": {"signatures": ["s"]}},
        _raw_tx([], signatures=("s",)),
        _raw_tx([OWNER_A], signatures=()),
    ],
)
def test_parse_transaction_unparseable_returns_none(raw):
    """Payloads without a message or meta give None."""
    assert parse_transaction(raw) is None


def test_parse_signature_list_skips_invalid_items():
    """Items without a signature are skipped."""
    infos = parse_signature_list(
        [
            {"signature": "a", "blockTime": 5, "slot": 1, "err": None},
            {"signature": ""},
            "junk",
            {"signature": "b", "blockTime": None},
        ]
    )
    assert [i.signature for i in infos] == ["a", "b"]
    assert infos[0].block_time == 5
    assert infos[1].block_time is None


def _holder_account(owner, amount):
    return {
        "pubkey": f"{owner}-ata",
        "account": {
            "data": {"parsed": {"info": {"owner": owner, "tokenAmount": {"amount": amount}}, "type": "account"}},
        },
    }


def test_parse_holder_accounts_handles_value_wrapper_and_skips_bad_entries():
    """Holder accounts parse from either result shape."""
    raw = {
        "value": [
            _holder_account(OWNER_A, "600"),
            _holder_account(OWNER_A, "5"),
            {"account": {"data": ["base64data", "base64"]}},
            _holder_account("", "10"),
            _holder_account(OWNER_B, "not-a-number"),
        ]
    }
    balances = parse_holder_accounts(raw)
    assert [(b.owner, b.amount_raw) for b in balances] == [(OWNER_A, 600), (OWNER_A, 5)]


def _mint_value(owner=TOKEN_PROGRAM_ID, info=None, type_name="mint"):
    return {
        "owner": owner,
        "data": {"parsed": {"type": type_name, "info": info or {"supply": "1000000", "decimals": 3}}},
    }


def test_parse_mint_account_legacy_token():
    """Legacy SPL mint: decimals, supply and program kind."""
    metadata = parse_mint_account(MINT, _mint_value())
    assert metadata.program_kind == PROGRAM_KIND_SPL_TOKEN
    assert metadata.decimals == 3
    assert metadata.supply == 1000.0
    assert metadata.token_name is None


def test_parse_mint_account_token_2022_names_from_extension_state():
    """Token-2022 names come from the metadata extension."""
    info = {
        "supply": "5",
        "decimals": 0,
        "extensions": [
            {"extension": "metadataPointer", "state": {"authority": OWNER_A}},
            {
                "extension": "tokenMetadata",
                "state": {"name": "Trash\0\0\0", "symbol": " TRASH ", "uri": ""},
            },
        ],
    }
    metadata = parse_mint_account(MINT, _mint_value(owner=TOKEN_2022_PROGRAM_ID, info=info))
    assert metadata.program_kind == PROGRAM_KIND_TOKEN_2022
    assert metadata.token_name == "Trash"
    assert metadata.token_symbol == "TRASH"
    assert metadata.token_uri is None


def test_parse_mint_account_errors():
    """Missing accounts and non-mint accounts raise."""
    with pytest.raises(MintNotFoundError):
        parse_mint_account(MINT, None)
    with pytest.raises(NotAMintError, match="not a mint"):
        parse_mint_account(MINT, _mint_value(type_name="account"))
    with pytest.raises(NotAMintError, match="Unsupported mint owner"):
        parse_mint_account(MINT, _mint_value(owner=OWNER_A))
    with pytest.raises(NotAMintError):
        parse_mint_account(MINT, {"owner": TOKEN_PROGRAM_ID, "data": ["AAAA", "base64"]})


def _borsh(value: str) -> bytes:
    encoded = value.encode("utf-8")
    return struct.pack("<I", len(encoded)) + encoded


def test_parse_metaplex_metadata():
    """Name, symbol and uri decode with padding stripped."""
    data = bytes(METAPLEX_HEADER_LEN) + _borsh("Gorb Coin\0\0") + _borsh("GORB") + _borsh("https://x/y.json")
    assert parse_metaplex_metadata(data) == ("Gorb Coin", "GORB", "https://x/y.json")


def test_parse_metaplex_metadata_truncated():
    """Truncated metadata data gives no names."""
    data = bytes(METAPLEX_HEADER_LEN) + _borsh("Gorb") + struct.pack("<I", 50) + b"GO"
    assert parse_metaplex_metadata(data) == ("Gorb", None, None)
    assert parse_metaplex_metadata(b"short") == (None, None, None)
