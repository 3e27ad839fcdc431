"""
Contract ABI helpers: function selectors and tuple encoding.

Thin wrappers over `eth_abi` and `eth_utils` so the rest of the package never
deals with canonical type strings directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence, Tuple

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import function_signature_to_4byte_selector

SELECTOR_BYTES = 4


@dataclass(frozen=True)
class FunctionAbi:
    """A contract function: name plus ordered canonical argument types."""
    name: str
    arg_types: Tuple[str, ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.arg_types)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)

    def encode_call(self, args: Sequence[Any]) -> bytes:
        if len(args) != len(self.arg_types):
            raise ValueError(f"{self.name} takes {len(self.arg_types)} arguments, got {len(args)}")
        return self.selector + abi_encode(list(self.arg_types), list(args))

    def decode_args(self, calldata: bytes) -> Tuple[Any, ...]:
        if bytes(calldata[:SELECTOR_BYTES]) != self.selector:
            raise ValueError(f"calldata selector does not match {self.signature}")
        return tuple(abi_decode(list(self.arg_types), bytes(calldata[SELECTOR_BYTES:]), strict=True))


def encode_groth16_seal(a: Sequence[int], b: Sequence[Sequence[int]], c: Sequence[int]) -> bytes:
    """ABI-encode Groth16 proof points as `(uint256[2], uint256[2][2], uint256[2])`."""
    return abi_encode(
        ["uint256[2]", "uint256[2][2]", "uint256[2]"],
        [list(a), [list(row) for row in b], list(c)],
    )
