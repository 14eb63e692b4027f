"""Base58 address validation at the request boundary."""

from __future__ import annotations

from solders.pubkey import Pubkey

from backend_holdermap.core.exceptions import InputError


def is_valid_address(value: str | None) -> bool:
    if not value:
        return False
    try:
        Pubkey.from_string(value.strip())
    except ValueError:
        return False
    return True


def require_address(value: str | None, *, label: str = "mint") -> str:
    """Return the stripped address or raise InputError when missing / not base58 32 bytes."""
    address = (value or "").strip()
    if not address:
        raise InputError(f"Missing {label} address")
    try:
        return str(Pubkey.from_string(address))
    except ValueError as e:
        raise InputError(f"Invalid {label} address: {address}") from e
