"""
Prover backends (imperative shell).

Two interchangeable implementations of the same contract:

    prove(program, input_bytes) -> ProofResult(journal, post_state_digest, seal)

- RemoteProver drives the Bonsai proving service and converts its Groth16
  SNARK into an ABI-encoded seal. Service unavailability and incomplete
  proofs are reported as transient ProverErrors.
- LocalProver runs an external proving host process. Every failure is fatal:
  local proving is deterministic, so retrying cannot help.

The backend is chosen once by `make_prover`; nothing downstream inspects which
one produced a ProofResult.
"""

from __future__ import annotations

import json
import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

from ..codec.abi import encode_groth16_seal
from ..codec.canonical import canonical_json_bytes, hex_to_bytes
from ..core.errors import ConfigError, ProverError
from ..core.methods import GuestProgram, ProofResult, ProverKind
from .bonsai_client import BonsaiClient, BonsaiConfig, BonsaiError

logger = logging.getLogger(__name__)

TRANSIENT = ProverError.TRANSIENT
FATAL = ProverError.FATAL


@dataclass(frozen=True)
class LocalProverConfig:
    # Proving host command; receives a JSON request on stdin, prints a JSON result on stdout.
    cmd: Optional[Sequence[str]] = None
    # If False, cmd[0] must be an absolute path to an executable.
    allow_path_lookup: bool = True
    # None means wait for the host indefinitely.
    timeout_s: Optional[float] = None
    max_stdout_bytes: int = 64 * 1024 * 1024
    max_stderr_bytes: int = 64_000


@dataclass(frozen=True)
class RemoteProverConfig:
    poll_interval_s: float = 4.0
    # None means poll until the service reports a terminal status.
    max_polls: Optional[int] = None


class ProverBackend:
    """Interface for producing a proof of a guest execution."""

    kind: ProverKind

    def prove(self, program: GuestProgram, input_bytes: bytes) -> ProofResult:
        raise NotImplementedError


def _field_bytes(value: Any, *, name: str) -> bytes:
    # The service encodes byte strings either as hex or as JSON arrays of u8.
    if isinstance(value, str):
        return hex_to_bytes(value, name=name)
    if isinstance(value, list) and all(isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in value):
        return bytes(value)
    raise ValueError(f"{name} must be hex or a byte array")


def _field_uint(value: Any, *, name: str) -> int:
    return int.from_bytes(_field_bytes(value, name=name), byteorder="big", signed=False)


class RemoteProver(ProverBackend):
    kind = ProverKind.REMOTE

    def __init__(
        self,
        client: BonsaiClient,
        config: RemoteProverConfig = RemoteProverConfig(),
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if config.poll_interval_s < 0:
            raise ValueError("poll_interval_s must be non-negative")
        if config.max_polls is not None and config.max_polls <= 0:
            raise ValueError("max_polls must be positive")
        self._client = client
        self._cfg = config
        self._sleep = sleep

    def _call(self, what: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except BonsaiError as exc:
            raise ProverError(f"bonsai {what} failed: {exc}", kind=TRANSIENT if exc.retryable else FATAL) from exc

    def _poll(self, what: str, fetch: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
        polls = 0
        last = None
        while True:
            body = self._call(f"{what} status", fetch)
            status = body.get("status")
            if status != last:
                logger.info("bonsai %s status: %s", what, status)
                last = status
            if status == "SUCCEEDED":
                return body
            if status == "FAILED":
                raise ProverError(f"bonsai {what} failed: {body.get('error_msg') or 'no error message'}", kind=FATAL)
            if status in ("TIMED_OUT", "ABORTED"):
                raise ProverError(f"bonsai {what} {status.lower()}: {body.get('error_msg') or ''}".rstrip(": "), kind=TRANSIENT)
            if status != "RUNNING":
                raise ProverError(f"bonsai {what} returned unexpected status {status!r}", kind=TRANSIENT)
            polls += 1
            if self._cfg.max_polls is not None and polls >= self._cfg.max_polls:
                raise ProverError(f"bonsai {what} still running after {polls} polls", kind=TRANSIENT)
            self._sleep(self._cfg.poll_interval_s)

    def prove(self, program: GuestProgram, input_bytes: bytes) -> ProofResult:
        if not program.image_id:
            raise ProverError(f"guest {program.name!r} has no image_id; remote proving needs one", kind=FATAL)
        try:
            elf = program.read_elf()
        except OSError as exc:
            raise ProverError(f"cannot read guest ELF {program.elf_path}: {exc}", kind=FATAL) from exc

        image_id = program.image_id
        existed = self._call("image upload", lambda: self._client.upload_img(image_id, elf))
        logger.debug("bonsai image %s %s", image_id, "already present" if existed else "uploaded")
        input_id = self._call("input upload", lambda: self._client.upload_input(bytes(input_bytes)))
        session_id = self._call("session create", lambda: self._client.create_session(image_id, input_id))
        logger.info("bonsai session %s created for %s", session_id, program.name)
        self._poll("session", lambda: self._client.session_status(session_id))

        snark_id = self._call("snark create", lambda: self._client.create_snark(session_id))
        logger.info("bonsai snark %s requested", snark_id)
        status = self._poll("snark", lambda: self._client.snark_status(snark_id))
        return self._proof_from_snark_output(status.get("output"))

    @staticmethod
    def _proof_from_snark_output(output: Any) -> ProofResult:
        try:
            if not isinstance(output, dict):
                raise ValueError("snark output missing")
            snark = output.get("snark")
            if not isinstance(snark, dict):
                raise ValueError("snark proof missing")
            a = [_field_uint(v, name="snark.a") for v in snark["a"]]
            b = [[_field_uint(v, name="snark.b") for v in row] for row in snark["b"]]
            c = [_field_uint(v, name="snark.c") for v in snark["c"]]
            if len(a) != 2 or len(c) != 2 or len(b) != 2 or any(len(row) != 2 for row in b):
                raise ValueError("snark proof points have the wrong shape")
            journal = _field_bytes(output.get("journal"), name="journal")
            digest = _field_bytes(output.get("post_state_digest"), name="post_state_digest")
            seal = encode_groth16_seal(a, b, c)
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            raise ProverError(f"incomplete proof from bonsai: {exc}", kind=TRANSIENT) from exc
        return ProofResult(journal=journal, post_state_digest=digest, seal=seal)


class LocalProver(ProverBackend):
    """
    Run the guest under a local proving host process.

    Protocol:
    - stdin: canonical JSON {"program", "elf_path", "image_id", "input"} (input as 0x-hex)
    - stdout: JSON object {"journal", "post_state_digest", "seal"} (0x-hex)
    Non-zero exit, oversized output or malformed JSON => fatal ProverError.
    """

    kind = ProverKind.LOCAL

    def __init__(self, config: LocalProverConfig) -> None:
        if not config.cmd:
            raise ValueError("cmd must be non-empty")
        if config.timeout_s is not None and config.timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        if config.max_stdout_bytes <= 0 or config.max_stderr_bytes <= 0:
            raise ValueError("output caps must be positive")
        self._cmd = list(config.cmd)
        self._cfg = config

    def _request_bytes(self, program: GuestProgram, input_bytes: bytes) -> bytes:
        return canonical_json_bytes(
            {
                "program": program.name,
                "elf_path": str(program.elf_path),
                "image_id": program.image_id,
                "input": "0x" + bytes(input_bytes).hex(),
            }
        )

    def prove(self, program: GuestProgram, input_bytes: bytes) -> ProofResult:
        request = self._request_bytes(program, input_bytes)
        started = time.monotonic()
        try:
            proc = subprocess.Popen(
                self._cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
                close_fds=True,
            )
        except OSError as exc:
            raise ProverError(f"cannot start local prover: {exc}", kind=FATAL) from exc

        try:
            stdout, stderr = proc.communicate(request, timeout=self._cfg.timeout_s)
        except subprocess.TimeoutExpired as exc:
            # start_new_session=True makes the child its own process group leader.
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            proc.communicate()
            raise ProverError(f"local prover timed out after {self._cfg.timeout_s}s", kind=FATAL) from exc

        if len(stderr) > self._cfg.max_stderr_bytes:
            stderr = stderr[: self._cfg.max_stderr_bytes]
        if proc.returncode != 0:
            err = stderr.decode("utf-8", errors="replace").strip()
            raise ProverError(f"local prover failed (exit {proc.returncode}): {err or 'no stderr'}", kind=FATAL)
        if len(stdout) > self._cfg.max_stdout_bytes:
            raise ProverError("local prover stdout too large", kind=FATAL)

        result = self._parse_result(stdout)
        logger.info("local proof for %s finished in %.1fs", program.name, time.monotonic() - started)
        return result

    @staticmethod
    def _parse_result(stdout: bytes) -> ProofResult:
        try:
            body = json.loads(stdout)
        except ValueError as exc:
            raise ProverError(f"invalid local prover output: {exc}", kind=FATAL) from exc
        if not isinstance(body, dict):
            raise ProverError("invalid local prover output (not an object)", kind=FATAL)
        try:
            return ProofResult(
                journal=hex_to_bytes(body["journal"], name="journal"),
                post_state_digest=hex_to_bytes(body["post_state_digest"], name="post_state_digest"),
                seal=hex_to_bytes(body["seal"], name="seal"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProverError(f"invalid local prover output: {exc}", kind=FATAL) from exc


def make_prover(
    kind: ProverKind,
    *,
    local: LocalProverConfig = LocalProverConfig(),
    bonsai: Optional[BonsaiConfig] = None,
    remote: RemoteProverConfig = RemoteProverConfig(),
) -> ProverBackend:
    if kind is ProverKind.LOCAL:
        if not local.cmd:
            raise ConfigError("local prover misconfigured (missing local_prover_cmd)")
        cmd0 = local.cmd[0]
        if not isinstance(cmd0, str) or not cmd0:
            raise ConfigError("local prover misconfigured (local_prover_cmd[0] must be a non-empty string)")
        if not local.allow_path_lookup:
            if not os.path.isabs(cmd0):
                raise ConfigError("local prover misconfigured (command must be an absolute path)")
            if not (os.path.isfile(cmd0) and os.access(cmd0, os.X_OK)):
                raise ConfigError(f"local prover misconfigured (command not executable): {cmd0}")
        return LocalProver(local)

    if kind is ProverKind.REMOTE:
        if bonsai is None or not bonsai.api_key:
            raise ConfigError("remote prover misconfigured (missing BONSAI_API_KEY)")
        if not bonsai.api_url:
            raise ConfigError("remote prover misconfigured (missing BONSAI_API_URL)")
        return RemoteProver(BonsaiClient(bonsai), remote)

    raise ConfigError(f"unsupported prover kind: {kind!r}")  # pragma: no cover
