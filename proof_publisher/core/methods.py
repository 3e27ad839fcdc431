"""
Data model for a single proof-and-publish run.

Both selection axes (which guest computation, which prover backend) are closed
enums resolved once at startup. The remaining types are single-assignment
artifacts handed from one pipeline stage to the next.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import ConfigError


class Method(Enum):
    """Guest computation selector."""
    NUMERIC_CHECK = "numeric-check"
    TOKEN_ISSUANCE = "token-issuance"


class ProverKind(Enum):
    """Prover backend selector."""
    REMOTE = "remote"
    LOCAL = "local"


_METHOD_ALIASES = {
    "numeric-check": Method.NUMERIC_CHECK,
    "is-even": Method.NUMERIC_CHECK,
    "token-issuance": Method.TOKEN_ISSUANCE,
    "jwt": Method.TOKEN_ISSUANCE,
}

_PROVER_ALIASES = {
    "remote": ProverKind.REMOTE,
    "bonsai": ProverKind.REMOTE,
    "local": ProverKind.LOCAL,
}


def parse_method(value: str | Method) -> Method:
    if isinstance(value, Method):
        return value
    key = str(value).strip().lower().replace("_", "-")
    try:
        return _METHOD_ALIASES[key]
    except KeyError:
        choices = ", ".join(m.value for m in Method)
        raise ConfigError(f"unknown method {value!r} (expected one of: {choices})") from None


def parse_prover_kind(value: str | ProverKind) -> ProverKind:
    if isinstance(value, ProverKind):
        return value
    key = str(value).strip().lower()
    try:
        return _PROVER_ALIASES[key]
    except KeyError:
        choices = ", ".join(k.value for k in ProverKind)
        raise ConfigError(f"unknown prover {value!r} (expected one of: {choices})") from None


@dataclass(frozen=True)
class GuestProgram:
    """
    A compiled guest binary.

    Attributes:
        name: Registry name (e.g. "is_even")
        elf_path: Location of the RISC-V ELF blob
        image_id: 0x-prefixed 32-byte image id, required by the remote prover
    """
    name: str
    elf_path: Path
    image_id: Optional[str] = None

    def read_elf(self) -> bytes:
        return Path(self.elf_path).read_bytes()


@dataclass(frozen=True)
class Claims:
    """Claims embedded in the issued token."""
    subject: str


@dataclass(frozen=True)
class ProofResult:
    """Output of a prover backend; ``seal`` is opaque here."""
    journal: bytes
    post_state_digest: bytes
    seal: bytes
