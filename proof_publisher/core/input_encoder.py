"""
Input Encoder: pick the guest program for a method and serialize its input.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Mapping, Optional, Tuple

from ..codec.canonical import encode_bincode_str, encode_uint256, require_uint256
from .errors import EncodingError, PublisherError, SerializationError, SigningError
from .methods import Claims, GuestProgram, Method

if TYPE_CHECKING:
    from ..agents.token_issuer import TokenIssuer

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Hello, world!"


def serialize_token(token: str) -> bytes:
    """Serialize a compact token the way the guest deserializes it (bincode `String`)."""
    if not isinstance(token, str) or not token:
        raise SerializationError("signed token must be a non-empty string")
    try:
        return encode_bincode_str(token)
    except UnicodeEncodeError as exc:
        raise SerializationError(f"signed token is not valid UTF-8: {exc}") from exc


def _program_for(method: Method, guests: Mapping[Method, GuestProgram]) -> GuestProgram:
    program = guests.get(method)
    if program is None:
        raise EncodingError(f"no guest program registered for method {method.value!r}")
    return program


def encode(
    method: Method,
    raw_input: int,
    *,
    guests: Mapping[Method, GuestProgram],
    issuer: Optional["TokenIssuer"] = None,
    claims: Optional[Claims] = None,
) -> Tuple[GuestProgram, bytes]:
    """
    Produce the guest program and its serialized input.

    Args:
        method: Selected guest computation
        raw_input: Request value (uint256)
        guests: Guest program per method
        issuer: Token issuer, required for the token-issuance method
        claims: Claims to sign (token-issuance only); defaults to the placeholder subject

    Returns:
        (program, input_bytes)

    Raises:
        EncodingError: If raw_input or claims do not fit the method
        SigningError: If the issuer fails
        SerializationError: If the token cannot be serialized
    """
    try:
        value = require_uint256(raw_input, name="input")
    except (TypeError, ValueError) as exc:
        raise EncodingError(str(exc)) from exc

    program = _program_for(method, guests)

    if method is Method.NUMERIC_CHECK:
        encoded = encode_uint256(value)
    elif method is Method.TOKEN_ISSUANCE:
        if issuer is None:
            raise EncodingError("token-issuance requires a token issuer")
        claims = claims if claims is not None else Claims(subject=DEFAULT_SUBJECT)
        if not isinstance(claims.subject, str) or not claims.subject:
            raise EncodingError("claims.subject is required")
        try:
            token = issuer.generate_token(claims)
        except PublisherError:
            raise
        except Exception as exc:
            raise SigningError(f"token issuer failed: {exc}") from exc
        encoded = serialize_token(token)
    else:  # pragma: no cover - closed enum
        raise EncodingError(f"unsupported method: {method!r}")

    logger.info("encoded input for %s: program=%s bytes=%d", method.value, program.name, len(encoded))
    return program, encoded
