"""
Run configuration.

Precedence, lowest to highest: defaults, optional YAML file, environment,
command-line flags. Secrets are read only from the environment (or key files
named there) and are wrapped so they never end up in logs or reprs.
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from eth_utils import is_address
import yaml

from ..codec.canonical import parse_uint256
from ..core.errors import ConfigError
from ..core.input_encoder import DEFAULT_SUBJECT
from ..core.methods import Method, ProverKind, parse_method, parse_prover_kind
from .bonsai_client import DEFAULT_API_URL, DEFAULT_RISC0_VERSION
from .guests import DEFAULT_MANIFEST_PATH


class Secret:
    """Opaque holder for key material; ``repr``/``str`` are redacted."""

    __slots__ = ("_value",)

    def __init__(self, value: str) -> None:
        self._value = str(value)

    def reveal(self) -> str:
        return self._value

    def __bool__(self) -> bool:
        return bool(self._value)

    def __repr__(self) -> str:
        return "Secret('***')"

    __str__ = __repr__


# Keys the YAML file may set (never secrets).
FILE_KEYS = frozenset(
    {
        "chain_id",
        "rpc_url",
        "contract",
        "input",
        "prover",
        "method",
        "jwt_subject",
        "guest_manifest",
        "local_prover_cmd",
        "local_prover_timeout_s",
        "bonsai_api_url",
        "bonsai_risc0_version",
        "bonsai_poll_interval_s",
        "bonsai_max_polls",
        "receipt_timeout_s",
        "prover_retries",
        "prover_retry_delay_s",
        "dry_run",
    }
)

# Environment variable per key.
ENV_KEYS: Dict[str, str] = {
    "chain_id": "CHAIN_ID",
    "rpc_url": "RPC_URL",
    "contract": "CONTRACT_ADDRESS",
    "guest_manifest": "PUBLISHER_GUEST_MANIFEST",
    "local_prover_cmd": "LOCAL_PROVER_CMD",
    "bonsai_api_url": "BONSAI_API_URL",
    "bonsai_risc0_version": "RISC0_VERSION",
}

SECRET_ENV_WALLET_KEY = "ETH_WALLET_PRIVATE_KEY"
SECRET_ENV_BONSAI_KEY = "BONSAI_API_KEY"
SECRET_ENV_JWT_KEY = "JWT_SIGNING_KEY"
SECRET_ENV_JWT_KEY_FILE = "JWT_SIGNING_KEY_FILE"


@dataclass(frozen=True)
class PublisherConfig:
    chain_id: int
    rpc_url: str
    contract: str
    input: int
    wallet_key: Secret
    prover: ProverKind = ProverKind.LOCAL
    method: Method = Method.NUMERIC_CHECK
    jwt_subject: str = DEFAULT_SUBJECT
    jwt_key: Optional[Secret] = None
    guest_manifest: Path = DEFAULT_MANIFEST_PATH
    local_prover_cmd: Tuple[str, ...] = ()
    local_prover_timeout_s: Optional[float] = None
    bonsai_api_url: str = DEFAULT_API_URL
    bonsai_api_key: Optional[Secret] = None
    bonsai_risc0_version: str = DEFAULT_RISC0_VERSION
    bonsai_poll_interval_s: float = 4.0
    bonsai_max_polls: Optional[int] = None
    receipt_timeout_s: float = 120.0
    prover_retries: int = 0
    prover_retry_delay_s: float = 5.0
    dry_run: bool = False


def load_config_file(path: Path | str) -> Dict[str, Any]:
    p = Path(path)
    try:
        doc = yaml.safe_load(p.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"cannot read config file {p}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid config file {p}: {exc}") from exc
    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise ConfigError(f"config file {p} must contain a mapping")
    unknown = sorted(set(doc) - FILE_KEYS)
    if unknown:
        raise ConfigError(f"config file {p} has unsupported keys: {', '.join(map(str, unknown))}")
    return dict(doc)


def _as_int(value: Any, *, name: str, minimum: int = 0) -> int:
    try:
        out = int(str(value).strip(), 0) if isinstance(value, str) else int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc
    if isinstance(value, bool) or out < minimum:
        raise ConfigError(f"{name} must be an integer >= {minimum}")
    return out


def _as_float(value: Any, *, name: str) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc
    if out <= 0:
        raise ConfigError(f"{name} must be positive")
    return out


def _as_cmd(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return tuple(shlex.split(value))
    if isinstance(value, Sequence) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise ConfigError("local_prover_cmd must be a string or a list of strings")


def _read_jwt_key(env: Mapping[str, str]) -> Optional[Secret]:
    inline = env.get(SECRET_ENV_JWT_KEY)
    if inline:
        return Secret(inline)
    key_file = env.get(SECRET_ENV_JWT_KEY_FILE)
    if key_file:
        try:
            return Secret(Path(key_file).read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError(f"cannot read {SECRET_ENV_JWT_KEY_FILE}: {exc}") from exc
    return None


def resolve_config(
    cli: Mapping[str, Any],
    *,
    env: Optional[Mapping[str, str]] = None,
    file_values: Optional[Mapping[str, Any]] = None,
) -> PublisherConfig:
    """
    Merge configuration sources into a validated PublisherConfig.

    Args:
        cli: Parsed command-line values; None means "not given"
        env: Environment mapping (defaults to os.environ)
        file_values: Values from the YAML config file

    Raises:
        ConfigError: If a required value is missing or malformed
    """
    env = os.environ if env is None else env
    merged: Dict[str, Any] = dict(file_values or {})
    for key, var in ENV_KEYS.items():
        if env.get(var):
            merged[key] = env[var]
    for key, value in cli.items():
        if value is not None:
            merged[key] = value

    missing = [k for k in ("chain_id", "rpc_url", "contract", "input") if merged.get(k) in (None, "")]
    if missing:
        raise ConfigError(f"missing required configuration: {', '.join(missing)}")

    if not is_address(str(merged["contract"])):
        raise ConfigError(f"contract must be a 20-byte 0x address, got {merged['contract']!r}")

    wallet_key = env.get(SECRET_ENV_WALLET_KEY)
    dry_run = bool(merged.get("dry_run", False))
    if not wallet_key and not dry_run:
        raise ConfigError(f"{SECRET_ENV_WALLET_KEY} must be set")

    try:
        raw_input = parse_uint256(merged["input"])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"input must be a uint256: {exc}") from exc

    method = parse_method(merged.get("method", Method.NUMERIC_CHECK))
    jwt_key = _read_jwt_key(env)
    if method is Method.TOKEN_ISSUANCE and jwt_key is None:
        raise ConfigError(f"token-issuance requires {SECRET_ENV_JWT_KEY} or {SECRET_ENV_JWT_KEY_FILE}")

    bonsai_key = env.get(SECRET_ENV_BONSAI_KEY)
    max_polls = merged.get("bonsai_max_polls")
    timeout = merged.get("local_prover_timeout_s")

    return PublisherConfig(
        chain_id=_as_int(merged["chain_id"], name="chain_id", minimum=1),
        rpc_url=str(merged["rpc_url"]),
        contract=str(merged["contract"]),
        input=raw_input,
        wallet_key=Secret(wallet_key or ""),
        prover=parse_prover_kind(merged.get("prover", ProverKind.LOCAL)),
        method=method,
        jwt_subject=str(merged.get("jwt_subject", DEFAULT_SUBJECT)),
        jwt_key=jwt_key,
        guest_manifest=Path(merged.get("guest_manifest", DEFAULT_MANIFEST_PATH)),
        local_prover_cmd=_as_cmd(merged.get("local_prover_cmd", ())),
        local_prover_timeout_s=_as_float(timeout, name="local_prover_timeout_s") if timeout is not None else None,
        bonsai_api_url=str(merged.get("bonsai_api_url", DEFAULT_API_URL)),
        bonsai_api_key=Secret(bonsai_key) if bonsai_key else None,
        bonsai_risc0_version=str(merged.get("bonsai_risc0_version", DEFAULT_RISC0_VERSION)),
        bonsai_poll_interval_s=_as_float(merged.get("bonsai_poll_interval_s", 4.0), name="bonsai_poll_interval_s"),
        bonsai_max_polls=_as_int(max_polls, name="bonsai_max_polls", minimum=1) if max_polls is not None else None,
        receipt_timeout_s=_as_float(merged.get("receipt_timeout_s", 120.0), name="receipt_timeout_s"),
        prover_retries=_as_int(merged.get("prover_retries", 0), name="prover_retries"),
        prover_retry_delay_s=_as_float(merged.get("prover_retry_delay_s", 5.0), name="prover_retry_delay_s"),
        dry_run=dry_run,
    )
