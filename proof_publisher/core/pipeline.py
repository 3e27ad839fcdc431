"""
Proof-and-publish pipeline (functional core plus one IO hand-off per stage).

Input Encoder -> Prover Backend -> Journal Decoder -> Calldata Builder -> Transaction Submitter

Strictly sequential and single-shot: each artifact is produced once and handed
to the next stage. Any error aborts the run before later stages execute.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Protocol

from . import calldata as calldata_builder
from . import input_encoder, journal as journal_decoder
from .errors import ProverError
from .methods import Claims, GuestProgram, Method, ProofResult

if TYPE_CHECKING:
    from ..agents.token_issuer import TokenIssuer

logger = logging.getLogger(__name__)


class Prover(Protocol):
    def prove(self, program: GuestProgram, input_bytes: bytes) -> ProofResult:
        ...


class Submitter(Protocol):
    def send(self, calldata: bytes) -> Any:
        ...


@dataclass(frozen=True)
class PublishRequest:
    method: Method
    raw_input: int
    claims: Optional[Claims] = None


@dataclass(frozen=True)
class PublishResult:
    program: GuestProgram
    proof: ProofResult
    x: int
    calldata: bytes
    receipt: Any = None


def prove_with_retries(
    prover: Prover,
    program: GuestProgram,
    input_bytes: bytes,
    *,
    retries: int = 0,
    delay_s: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
) -> ProofResult:
    """Call ``prover.prove``, retrying transient failures up to ``retries`` times."""
    if retries < 0:
        raise ValueError("retries must be non-negative")
    attempt = 0
    while True:
        try:
            return prover.prove(program, input_bytes)
        except ProverError as exc:
            if not exc.transient or attempt >= retries:
                raise
            attempt += 1
            logger.warning("transient prover failure (attempt %d/%d): %s", attempt, retries, exc)
            sleep(delay_s)


def build_calldata(
    request: PublishRequest,
    *,
    guests: Mapping[Method, GuestProgram],
    prover: Prover,
    issuer: Optional["TokenIssuer"] = None,
    prover_retries: int = 0,
    retry_delay_s: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
) -> PublishResult:
    """Run every stage up to (not including) submission."""
    program, input_bytes = input_encoder.encode(
        request.method,
        request.raw_input,
        guests=guests,
        issuer=issuer,
        claims=request.claims,
    )

    proof = prove_with_retries(
        prover,
        program,
        input_bytes,
        retries=prover_retries,
        delay_s=retry_delay_s,
        sleep=sleep,
    )
    logger.info(
        "proof ready: journal=%d bytes seal=%d bytes post_state_digest=0x%s",
        len(proof.journal),
        len(proof.seal),
        bytes(proof.post_state_digest).hex(),
    )

    decoded = journal_decoder.decode(request.method, proof.journal)
    x = calldata_builder.select_call_argument(request.method, decoded, request.raw_input)
    data = calldata_builder.build(request.method, x, proof.post_state_digest, proof.seal)
    return PublishResult(program=program, proof=proof, x=x, calldata=data)


def publish(
    request: PublishRequest,
    *,
    guests: Mapping[Method, GuestProgram],
    prover: Prover,
    submitter: Submitter,
    issuer: Optional["TokenIssuer"] = None,
    prover_retries: int = 0,
    retry_delay_s: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
) -> PublishResult:
    """Full run: build the calldata, then submit it once."""
    built = build_calldata(
        request,
        guests=guests,
        prover=prover,
        issuer=issuer,
        prover_retries=prover_retries,
        retry_delay_s=retry_delay_s,
        sleep=sleep,
    )
    receipt = submitter.send(built.calldata)
    return PublishResult(
        program=built.program,
        proof=built.proof,
        x=built.x,
        calldata=built.calldata,
        receipt=receipt,
    )
