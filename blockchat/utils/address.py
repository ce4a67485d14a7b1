"""Wallet address canonicalization.

Every lookup in the connection registry is keyed by the output of
:func:`normalize_address`, so two spellings of the same wallet (lowercase,
uppercase, EIP-55 checksummed, with or without ``0x``) always land on the same
entry.

Identifiers that are not valid addresses are still accepted and simply
lowercased.  That keeps non-standard but consistent identifiers routable at
the cost of not catching typos.
"""

from __future__ import annotations

import logging
from typing import Any
from typing import Optional

from eth_utils import is_checksum_address
from eth_utils import to_checksum_address

logger = logging.getLogger(__name__)


def _has_mixed_case(value: str) -> bool:
    letters = value[2:] if value[:2].lower() == "0x" else value
    return letters != letters.lower() and letters != letters.upper()


def _checksum(raw: str) -> str:
    """Return the EIP-55 form of *raw* or raise :class:`ValueError`.

    Mixed-case input is only accepted when its casing already is a valid
    checksum; all-lower and all-upper input carries no checksum to verify.
    """

    if _has_mixed_case(raw):
        candidate = raw if raw[:2] == "0x" else f"0x{raw}"
        if not is_checksum_address(candidate):
            raise ValueError(f"bad address checksum: {raw!r}")
    return to_checksum_address(raw)


def normalize_address(raw: Any) -> Optional[str]:
    """Return the identity key for *raw*, or ``None`` when there is none.

    ``None``, non-string and empty input yield ``None``.  Valid addresses are
    checksummed and then lowercased; anything else falls back to
    ``raw.lower()`` with a warning.
    """

    if not raw or not isinstance(raw, str):
        return None

    try:
        return _checksum(raw).lower()
    except (ValueError, TypeError):
        logger.warning("Address normalization failed, using lowercase: %s", raw)
        return raw.lower()


def short_address(key: str, length: int = 10) -> str:
    """Truncated form of an address for log lines."""

    return f"{key[:length]}..." if len(key) > length else key


__all__ = ["normalize_address", "short_address"]
