"""
Deterministic byte-level encoding primitives.

These helpers produce the exact byte layouts the guest programs and the
receiving contract expect; they must stay bit-exact.
"""

from __future__ import annotations

import json
import re
from typing import Any


UINT256_BYTES = 32
UINT256_MAX = (1 << 256) - 1
BINCODE_LEN_BYTES = 8

_HEX_CHARS_RE = re.compile(r"^[0-9a-fA-F]*$")


def _reject_floats(value: Any) -> None:
    if isinstance(value, float):
        raise TypeError("floats are not allowed in canonical encoding")
    if isinstance(value, dict):
        for k, v in value.items():
            if not isinstance(k, str):
                raise TypeError("dict keys must be str for canonical encoding")
            _reject_floats(v)
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _reject_floats(item)


def canonical_json_bytes(value: Any) -> bytes:
    """
    Canonical JSON encoding.

    Rules:
    - UTF-8
    - sort_keys=True
    - separators=(',', ':') (no whitespace)
    - allow_nan=False
    - floats rejected (to avoid representation ambiguity)
    """
    _reject_floats(value)
    text = json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return text.encode("utf-8")


def require_uint256(value: Any, *, name: str = "value") -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"{name} out of uint256 range")
    return value


def encode_uint256(value: int) -> bytes:
    """Big-endian 32-byte encoding (the ABI `uint256` word)."""
    return require_uint256(value).to_bytes(UINT256_BYTES, byteorder="big", signed=False)


def decode_uint256(data: bytes) -> int:
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("data must be bytes")
    if len(data) != UINT256_BYTES:
        raise ValueError(f"uint256 word must be exactly {UINT256_BYTES} bytes, got {len(data)}")
    return int.from_bytes(bytes(data), byteorder="big", signed=False)


def parse_uint256(text: str | int) -> int:
    """Parse a decimal or 0x-prefixed hex uint256."""
    if isinstance(text, int) and not isinstance(text, bool):
        return require_uint256(text)
    if not isinstance(text, str):
        raise TypeError("uint256 must be given as str or int")
    s = text.strip().replace("_", "")
    if not s:
        raise ValueError("uint256 must be non-empty")
    if s.lower().startswith("0x"):
        body = s[2:]
        if not body or not _HEX_CHARS_RE.fullmatch(body):
            raise ValueError(f"invalid hex uint256: {text!r}")
        return require_uint256(int(body, 16))
    if not s.isdigit():
        raise ValueError(f"invalid decimal uint256: {text!r}")
    return require_uint256(int(s, 10))


def encode_bincode_str(value: str) -> bytes:
    """
    Bincode layout of a Rust `String`: u64 little-endian byte length, then UTF-8 bytes.
    """
    if not isinstance(value, str):
        raise TypeError("value must be a str")
    raw = value.encode("utf-8")
    return len(raw).to_bytes(BINCODE_LEN_BYTES, byteorder="little", signed=False) + raw


def decode_bincode_str(data: bytes) -> str:
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("data must be bytes")
    raw = bytes(data)
    if len(raw) < BINCODE_LEN_BYTES:
        raise ValueError("truncated bincode length prefix")
    n = int.from_bytes(raw[:BINCODE_LEN_BYTES], byteorder="little", signed=False)
    body = raw[BINCODE_LEN_BYTES:]
    if len(body) != n:
        raise ValueError(f"bincode string length mismatch: prefix={n} actual={len(body)}")
    return body.decode("utf-8")


def hex_to_bytes(hex_str: str, *, name: str) -> bytes:
    """Decode a hex string of any even length; the 0x prefix is optional."""
    if not isinstance(hex_str, str):
        raise TypeError(f"{name} must be a str")
    s = hex_str.strip()
    if s.lower().startswith("0x"):
        s = s[2:]
    # bytes.fromhex() ignores whitespace, so reject it explicitly.
    if len(s) % 2 != 0 or not _HEX_CHARS_RE.fullmatch(s):
        raise ValueError(f"{name} must be valid hex")
    return bytes.fromhex(s)


def hex_to_bytes_fixed(hex_str: str, *, nbytes: int, name: str) -> bytes:
    if not isinstance(nbytes, int) or isinstance(nbytes, bool) or nbytes <= 0:
        raise ValueError("nbytes must be a positive int")
    out = hex_to_bytes(hex_str, name=name)
    if len(out) != nbytes:
        raise ValueError(f"{name} must decode to exactly {nbytes} bytes, got {len(out)}")
    return out


def canonical_hex_fixed_allow_0x(hex_str: str, *, nbytes: int, name: str) -> str:
    """
    Canonicalize a fixed-size hex string (lowercase, 0x-prefixed).

    Accepts either 0x-prefixed or raw hex input.
    """
    return "0x" + hex_to_bytes_fixed(hex_str, nbytes=nbytes, name=name).hex()
