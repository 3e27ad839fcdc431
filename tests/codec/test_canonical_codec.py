from __future__ import annotations

import pytest

from proof_publisher.codec.canonical import (
    UINT256_MAX,
    canonical_hex_fixed_allow_0x,
    canonical_json_bytes,
    decode_bincode_str,
    decode_uint256,
    encode_bincode_str,
    encode_uint256,
    hex_to_bytes,
    hex_to_bytes_fixed,
    parse_uint256,
)


def test_encode_uint256_is_big_endian_32_bytes() -> None:
    assert encode_uint256(4) == b"\x00" * 31 + b"\x04"
    assert encode_uint256(0) == b"\x00" * 32
    assert encode_uint256(UINT256_MAX) == b"\xff" * 32


def test_encode_uint256_rejects_out_of_range_and_non_int() -> None:
    with pytest.raises(ValueError):
        encode_uint256(-1)
    with pytest.raises(ValueError):
        encode_uint256(UINT256_MAX + 1)
    with pytest.raises(TypeError):
        encode_uint256(True)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        encode_uint256("4")  # type: ignore[arg-type]


def test_decode_uint256_requires_exact_width() -> None:
    assert decode_uint256(encode_uint256(12345678)) == 12345678
    with pytest.raises(ValueError):
        decode_uint256(b"\x00" * 31)
    with pytest.raises(ValueError):
        decode_uint256(b"\x00" * 33)


def test_parse_uint256_accepts_decimal_and_hex() -> None:
    assert parse_uint256("12345678") == 12345678
    assert parse_uint256("0x10") == 16
    assert parse_uint256(" 1_000 ") == 1000
    assert parse_uint256(7) == 7
    for bad in ("", "-1", "0x", "0xzz", "1.5", str(UINT256_MAX + 1)):
        with pytest.raises(ValueError):
            parse_uint256(bad)


def test_bincode_string_layout() -> None:
    encoded = encode_bincode_str("abc")
    assert encoded == b"\x03\x00\x00\x00\x00\x00\x00\x00abc"
    assert decode_bincode_str(encoded) == "abc"
    assert encode_bincode_str("") == b"\x00" * 8


def test_bincode_string_rejects_length_mismatch() -> None:
    with pytest.raises(ValueError):
        decode_bincode_str(b"\x04\x00\x00\x00\x00\x00\x00\x00abc")
    with pytest.raises(ValueError):
        decode_bincode_str(b"\x01\x00")


def test_hex_to_bytes_rejects_whitespace_even_if_length_matches() -> None:
    # bytes.fromhex() ignores whitespace, so ensure we reject it explicitly.
    bad = "0x" + ("aa" * 31) + "  "
    with pytest.raises(ValueError):
        hex_to_bytes_fixed(bad, nbytes=32, name="digest")


def test_hex_helpers() -> None:
    assert hex_to_bytes("0xAB", name="x") == b"\xab"
    assert hex_to_bytes("", name="x") == b""
    with pytest.raises(ValueError):
        hex_to_bytes("0xabc", name="x")
    assert canonical_hex_fixed_allow_0x("AA" * 32, nbytes=32, name="id") == "0x" + "aa" * 32
    with pytest.raises(ValueError):
        canonical_hex_fixed_allow_0x("aa" * 31, nbytes=32, name="id")


def test_canonical_json_is_independent_of_insertion_order() -> None:
    assert canonical_json_bytes({"b": 1, "a": [1, 2]}) == canonical_json_bytes({"a": [1, 2], "b": 1})
    assert canonical_json_bytes({"a": 1}) == b'{"a":1}'
    with pytest.raises(TypeError):
        canonical_json_bytes({"a": 1.5})
