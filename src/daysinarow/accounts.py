"""Account address handling.

Accounts are Ethereum addresses. They are stored in EIP-55 checksum form so
that the same account always compares equal regardless of the caller's
casing.
"""

from __future__ import annotations

from web3 import Web3

from daysinarow.errors import ValidationError


def normalize_address(value: object, field: str = "address") -> str:
    """Return the checksum form of an address, or raise ValidationError."""
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValidationError(field, f"Invalid address: {value!r}")
    return Web3.to_checksum_address(value)
