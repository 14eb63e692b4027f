"""
Ledger access package.

Defines the Ledger Access Port the aggregation engine consumes, the parsed
ledger models, the JSON-RPC payload parser, the httpx JSON-RPC client that
implements the port, and the bounded fan-out helpers used to query it.
"""

from backend_holdermap.ledger.models import (
    HolderBalance,
    MintMetadata,
    ParsedInstruction,
    ParsedTransaction,
    SignatureInfo,
    TokenBalance,
)
from backend_holdermap.ledger.parser import parse_transaction
from backend_holdermap.ledger.port import LedgerPort
from backend_holdermap.ledger.rpc_client import SolanaRpcLedger

__all__ = [
    "HolderBalance",
    "LedgerPort",
    "MintMetadata",
    "ParsedInstruction",
    "ParsedTransaction",
    "SignatureInfo",
    "SolanaRpcLedger",
    "TokenBalance",
    "parse_transaction",
]
