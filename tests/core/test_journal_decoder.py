from __future__ import annotations

import pytest

from proof_publisher.core.errors import JournalDecodeError
from proof_publisher.core.journal import decode
from proof_publisher.core.methods import Method


def test_numeric_check_journal_decodes_single_word() -> None:
    assert decode(Method.NUMERIC_CHECK, (4).to_bytes(32, "big")) == 4
    assert decode(Method.NUMERIC_CHECK, b"\xff" * 32) == (1 << 256) - 1


@pytest.mark.parametrize("length", [0, 1, 31, 33, 64])
def test_numeric_check_journal_must_be_exactly_one_word(length: int) -> None:
    with pytest.raises(JournalDecodeError) as excinfo:
        decode(Method.NUMERIC_CHECK, b"\x00" * length)
    assert excinfo.value.stage == "journal_decoder"


def test_token_issuance_journal_is_opaque_but_non_empty() -> None:
    assert decode(Method.TOKEN_ISSUANCE, b"\x01") is None
    assert decode(Method.TOKEN_ISSUANCE, b"anything at all") is None
    with pytest.raises(JournalDecodeError):
        decode(Method.TOKEN_ISSUANCE, b"")


def test_journal_must_be_bytes() -> None:
    with pytest.raises(JournalDecodeError):
        decode(Method.NUMERIC_CHECK, "00" * 32)  # type: ignore[arg-type]
