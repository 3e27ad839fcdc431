"""Exception taxonomy for the proof publishing pipeline.

Every error names the pipeline stage that raised it so the entry point can
report ``error[<stage>]: <message>`` and abort before anything is submitted.
"""

from __future__ import annotations


class PublisherError(RuntimeError):
    """Base class for all pipeline failures."""

    stage = "publisher"


class ConfigError(PublisherError):
    """Raised when the configuration surface is missing or malformed."""

    stage = "config"


class EncodingError(PublisherError):
    """Raised when the raw input does not fit the selected method."""

    stage = "input_encoder"


class SigningError(PublisherError):
    """Raised when the token issuer cannot sign the claims."""

    stage = "input_encoder"


class SerializationError(PublisherError):
    """Raised when a signed token cannot be serialized for the guest."""

    stage = "input_encoder"


class ProverError(PublisherError):
    """Raised by a prover backend; ``kind`` is ``transient`` or ``fatal``."""

    stage = "prover"

    TRANSIENT = "transient"
    FATAL = "fatal"

    def __init__(self, message: str, *, kind: str) -> None:
        if kind not in (self.TRANSIENT, self.FATAL):
            raise ValueError(f"invalid prover error kind: {kind!r}")
        self.kind = kind
        super().__init__(f"{message} ({kind})")

    @property
    def transient(self) -> bool:
        return self.kind == self.TRANSIENT


class JournalDecodeError(PublisherError):
    """Raised when the journal layout does not match the guest's contract."""

    stage = "journal_decoder"


class AbiEncodeError(PublisherError):
    """Raised when the digest or seal cannot be ABI-encoded."""

    stage = "calldata_builder"


class SubmissionError(PublisherError):
    """Raised by the transaction submitter; ``kind`` is ``rejected``, ``timed_out`` or ``network``."""

    stage = "tx_submitter"

    REJECTED = "rejected"
    TIMED_OUT = "timed_out"
    NETWORK = "network"

    def __init__(self, message: str, *, kind: str, tx_hash: str | None = None) -> None:
        if kind not in (self.REJECTED, self.TIMED_OUT, self.NETWORK):
            raise ValueError(f"invalid submission error kind: {kind!r}")
        self.kind = kind
        self.tx_hash = tx_hash
        super().__init__(f"{message} ({kind})")
