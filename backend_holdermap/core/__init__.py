"""
Core utilities: exceptions, address validation and amount math shared by
the ledger access layer, the analytics engine and the live controller.
"""

from backend_holdermap.core.exceptions import (
    HolderMapError,
    InputError,
    MintNotFoundError,
    NotAMintError,
    RpcError,
    UpstreamError,
)

__all__ = [
    "HolderMapError",
    "InputError",
    "MintNotFoundError",
    "NotAMintError",
    "RpcError",
    "UpstreamError",
]
