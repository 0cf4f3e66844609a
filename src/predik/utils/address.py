"""EVM wallet address validation."""

from __future__ import annotations

import re

_EVM_ADDRESS = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_evm_address(address: str | None) -> bool:
    """True for a ``0x``-prefixed, 40 hex digit address (checksum not verified)."""
    return bool(address) and _EVM_ADDRESS.match(address) is not None
