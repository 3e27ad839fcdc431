"""
`publisher` entry point: prove a guest computation and publish the result on-chain.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Any, Dict, Optional, Sequence

from .agents.token_issuer import RsaJwkIssuer
from .core.calldata import decode_calldata
from .core.errors import ConfigError, PublisherError
from .core.methods import Claims, Method
from .core.pipeline import PublishRequest, build_calldata, publish
from .integration.bonsai_client import BonsaiConfig
from .integration.config import PublisherConfig, load_config_file, resolve_config
from .integration.guests import load_guest_registry
from .integration.prover import LocalProverConfig, RemoteProverConfig, make_prover
from .integration.tx_sender import TxSender

logger = logging.getLogger("proof_publisher")

LOG_LEVEL_ENV = "PUBLISHER_LOG"
EXIT_PIPELINE_ERROR = 1
EXIT_CONFIG_ERROR = 2


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="publisher",
        description="Send a proof request for a guest program and publish the result to the app contract",
    )
    parser.add_argument("--config", default=None, help="Optional YAML file with non-secret settings")
    parser.add_argument("--chain-id", dest="chain_id", default=None, help="Ethereum chain id")
    parser.add_argument("--rpc-url", dest="rpc_url", default=None, help="Ethereum node endpoint")
    parser.add_argument("--contract", default=None, help="Application contract address")
    parser.add_argument("-i", "--input", default=None, help="Input for the guest (uint256, decimal or 0x-hex)")
    parser.add_argument("--prover", default=None, help="Prover backend: remote|local (default: local)")
    parser.add_argument("--method", default=None, help="Guest method: numeric-check|token-issuance (default: numeric-check)")
    parser.add_argument("--jwt-subject", dest="jwt_subject", default=None, help="Subject claim for token-issuance")
    parser.add_argument("--guest-manifest", dest="guest_manifest", default=None, help="Guest program manifest (YAML)")
    parser.add_argument("--local-prover-cmd", dest="local_prover_cmd", default=None, help="Local proving host command")
    parser.add_argument("--prover-retries", dest="prover_retries", type=int, default=None, help="Retries on transient prover errors")
    parser.add_argument("--receipt-timeout-s", dest="receipt_timeout_s", type=float, default=None)
    parser.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        default=None,
        help="Build and print the calldata without submitting a transaction",
    )
    parser.add_argument("--log-level", dest="log_level", default=None, help=f"Log level (default: ${LOG_LEVEL_ENV} or INFO)")
    return parser.parse_args(argv)


def configure_logging(level: Optional[str]) -> None:
    name = (level or os.environ.get(LOG_LEVEL_ENV) or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _cli_values(args: argparse.Namespace) -> Dict[str, Any]:
    keys = (
        "chain_id",
        "rpc_url",
        "contract",
        "input",
        "prover",
        "method",
        "jwt_subject",
        "guest_manifest",
        "local_prover_cmd",
        "prover_retries",
        "receipt_timeout_s",
        "dry_run",
    )
    return {k: getattr(args, k) for k in keys}


def run(cfg: PublisherConfig) -> int:
    guests = load_guest_registry(cfg.guest_manifest)
    prover = make_prover(
        cfg.prover,
        local=LocalProverConfig(cmd=cfg.local_prover_cmd or None, timeout_s=cfg.local_prover_timeout_s),
        bonsai=BonsaiConfig(
            api_url=cfg.bonsai_api_url,
            api_key=cfg.bonsai_api_key.reveal() if cfg.bonsai_api_key else "",
            risc0_version=cfg.bonsai_risc0_version,
        ),
        remote=RemoteProverConfig(poll_interval_s=cfg.bonsai_poll_interval_s, max_polls=cfg.bonsai_max_polls),
    )
    issuer = RsaJwkIssuer.from_jwk_json(cfg.jwt_key.reveal()) if cfg.method is Method.TOKEN_ISSUANCE and cfg.jwt_key else None
    request = PublishRequest(
        method=cfg.method,
        raw_input=cfg.input,
        claims=Claims(subject=cfg.jwt_subject) if cfg.method is Method.TOKEN_ISSUANCE else None,
    )
    logger.info("publishing %s input=%d via %s prover", cfg.method.value, cfg.input, cfg.prover.value)

    common = dict(
        guests=guests,
        prover=prover,
        issuer=issuer,
        prover_retries=cfg.prover_retries,
        retry_delay_s=cfg.prover_retry_delay_s,
    )
    if cfg.dry_run:
        result = build_calldata(request, **common)
        call = decode_calldata(result.calldata)
        sys.stdout.write(
            f"function: {call.function}\n"
            f"x: {call.x}\n"
            f"post_state_digest: 0x{call.post_state_digest.hex()}\n"
            f"seal_bytes: {len(call.seal)}\n"
            f"calldata: 0x{result.calldata.hex()}\n"
        )
        return 0

    try:
        submitter = TxSender(
            cfg.chain_id,
            cfg.rpc_url,
            cfg.wallet_key.reveal(),
            cfg.contract,
            receipt_timeout_s=cfg.receipt_timeout_s,
        )
    except ValueError as exc:
        raise ConfigError(f"invalid transaction settings: {exc}") from exc
    result = publish(request, submitter=submitter, **common)
    sys.stdout.write(f"{result.receipt.tx_hash}\n")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    configure_logging(args.log_level)
    try:
        file_values = load_config_file(args.config) if args.config else None
        cfg = resolve_config(_cli_values(args), file_values=file_values)
        return run(cfg)
    except ConfigError as exc:
        sys.stderr.write(f"error[{exc.stage}]: {exc}\n")
        return EXIT_CONFIG_ERROR
    except PublisherError as exc:
        sys.stderr.write(f"error[{exc.stage}]: {exc}\n")
        return EXIT_PIPELINE_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
