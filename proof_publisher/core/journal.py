"""
Journal Decoder.

The layouts here must match what each guest commits with `env::commit_slice`.
"""

from __future__ import annotations

from typing import Optional

from ..codec.canonical import UINT256_BYTES, decode_uint256
from .errors import JournalDecodeError
from .methods import Method


def decode(method: Method, journal: bytes) -> Optional[int]:
    """
    Extract the method-specific public output from a journal.

    numeric-check: exactly one ABI `uint256` word; the integer is returned and
    later forwarded on-chain. token-issuance: the journal must be non-empty and
    is otherwise opaque, so nothing is returned.
    """
    if not isinstance(journal, (bytes, bytearray)):
        raise JournalDecodeError("journal must be bytes")

    if method is Method.NUMERIC_CHECK:
        if len(journal) != UINT256_BYTES:
            raise JournalDecodeError(
                f"numeric-check journal must be exactly {UINT256_BYTES} bytes, got {len(journal)}"
            )
        return decode_uint256(bytes(journal))

    if method is Method.TOKEN_ISSUANCE:
        if not journal:
            raise JournalDecodeError("token-issuance journal is empty")
        return None

    raise JournalDecodeError(f"unsupported method: {method!r}")  # pragma: no cover
