"""
Calldata Builder for the application contract.

Wire contract (must not change):

    function set(uint256 x, bytes32 post_state_digest, bytes calldata seal);
    function set_jwt(uint256 x, bytes32 post_state_digest, bytes calldata seal);
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from ..codec.abi import SELECTOR_BYTES, FunctionAbi
from ..codec.canonical import UINT256_MAX
from .errors import AbiEncodeError
from .methods import Method

logger = logging.getLogger(__name__)

POST_STATE_DIGEST_BYTES = 32

_ARG_TYPES = ("uint256", "bytes32", "bytes")

SET = FunctionAbi(name="set", arg_types=_ARG_TYPES)
SET_JWT = FunctionAbi(name="set_jwt", arg_types=_ARG_TYPES)

FUNCTIONS: Dict[Method, FunctionAbi] = {
    Method.NUMERIC_CHECK: SET,
    Method.TOKEN_ISSUANCE: SET_JWT,
}


@dataclass(frozen=True)
class DecodedCall:
    function: str
    x: int
    post_state_digest: bytes
    seal: bytes


def function_for(method: Method) -> FunctionAbi:
    return FUNCTIONS[method]


def select_call_argument(method: Method, decoded_output: Optional[int], raw_input: int) -> int:
    """
    Value passed as `x`.

    numeric-check forwards the journal output; token-issuance forwards the
    original request input, not anything read from the journal.
    """
    if method is Method.NUMERIC_CHECK:
        if decoded_output is None:
            raise AbiEncodeError("numeric-check requires a decoded journal value")
        return decoded_output
    return raw_input


def build(method: Method, x: int, post_state_digest: bytes, seal: bytes) -> bytes:
    """ABI-encode the state-transition call for ``method``."""
    if not isinstance(post_state_digest, (bytes, bytearray)) or len(post_state_digest) != POST_STATE_DIGEST_BYTES:
        got = len(post_state_digest) if isinstance(post_state_digest, (bytes, bytearray)) else type(post_state_digest).__name__
        raise AbiEncodeError(f"post_state_digest must be exactly {POST_STATE_DIGEST_BYTES} bytes, got {got}")
    if not isinstance(seal, (bytes, bytearray)) or len(seal) == 0:
        raise AbiEncodeError("seal must be non-empty bytes")
    if not isinstance(x, int) or isinstance(x, bool) or not (0 <= x <= UINT256_MAX):
        raise AbiEncodeError(f"x must be a uint256, got {x!r}")

    fn = function_for(method)
    calldata = fn.encode_call([x, bytes(post_state_digest), bytes(seal)])
    logger.info(
        "built calldata: %s selector=0x%s bytes=%d",
        fn.signature,
        fn.selector.hex(),
        len(calldata),
    )
    return calldata


def decode_calldata(calldata: bytes) -> DecodedCall:
    """Decode calldata produced by `build` back into its function and arguments."""
    selector = bytes(calldata[:SELECTOR_BYTES])
    for fn in FUNCTIONS.values():
        if fn.selector == selector:
            x, digest, seal = fn.decode_args(calldata)
            return DecodedCall(function=fn.name, x=int(x), post_state_digest=bytes(digest), seal=bytes(seal))
    raise ValueError(f"unknown function selector: 0x{selector.hex()}")
