"""
Functional core: method selection, journal decoding and calldata assembly.
"""

from .calldata import build, decode_calldata, select_call_argument
from .errors import (
    AbiEncodeError,
    ConfigError,
    EncodingError,
    JournalDecodeError,
    ProverError,
    PublisherError,
    SerializationError,
    SigningError,
    SubmissionError,
)
from .input_encoder import encode
from .journal import decode
from .methods import Claims, GuestProgram, Method, ProofResult, ProverKind

__all__ = [
    "build",
    "decode_calldata",
    "select_call_argument",
    "encode",
    "decode",
    "Claims",
    "GuestProgram",
    "Method",
    "ProofResult",
    "ProverKind",
    "AbiEncodeError",
    "ConfigError",
    "EncodingError",
    "JournalDecodeError",
    "ProverError",
    "PublisherError",
    "SerializationError",
    "SigningError",
    "SubmissionError",
]
