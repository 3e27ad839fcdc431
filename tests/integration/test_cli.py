from __future__ import annotations

import base64
import json
import stat
import sys
from pathlib import Path
from typing import List

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from proof_publisher import cli
from proof_publisher.integration.config import ENV_KEYS
from proof_publisher.integration.tx_sender import TxReceipt

CONTRACT = "0x" + "22" * 20

ECHO_HOST = """
import json
import sys

req = json.loads(sys.stdin.read())
print(json.dumps({"journal": req["input"], "post_state_digest": "0x" + "00" * 32, "seal": "0xab"}))
"""

FAILING_HOST = """
import sys

sys.stdin.read()
sys.stderr.write("guest panicked\\n")
sys.exit(3)
"""


def _b64url_uint(n: int) -> str:
    raw = n.to_bytes((n.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in list(ENV_KEYS.values()) + [
        "ETH_WALLET_PRIVATE_KEY",
        "BONSAI_API_KEY",
        "JWT_SIGNING_KEY",
        "JWT_SIGNING_KEY_FILE",
        cli.LOG_LEVEL_ENV,
    ]:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "is-even").write_bytes(b"\x7fELF")
    (tmp_path / "jwt-validator").write_bytes(b"\x7fELF")
    (tmp_path / "methods.yaml").write_text(
        "schema: proof_publisher_guests\n"
        "schema_version: 1\n"
        "programs:\n"
        "  is_even: {method: numeric-check, elf: is-even}\n"
        "  jwt_validator: {method: token-issuance, elf: jwt-validator}\n",
        encoding="utf-8",
    )
    return tmp_path


def _host(workspace: Path, body: str) -> Path:
    script = workspace / "host"
    script.write_text(f"#!{sys.executable}\n" + body, encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return script


def _argv(workspace: Path, host: Path, *extra: str) -> List[str]:
    return [
        "--chain-id",
        "11155111",
        "--rpc-url",
        "http://rpc.invalid",
        "--contract",
        CONTRACT,
        "--guest-manifest",
        str(workspace / "methods.yaml"),
        "--local-prover-cmd",
        str(host),
        *extra,
    ]


def _dry_run_fields(out: str) -> dict:
    return dict(line.split(": ", 1) for line in out.strip().splitlines())


def test_dry_run_numeric_check(workspace: Path, capsys: pytest.CaptureFixture) -> None:
    code = cli.main(_argv(workspace, _host(workspace, ECHO_HOST), "-i", "4", "--dry-run"))
    captured = capsys.readouterr()

    assert code == 0, captured.err
    fields = _dry_run_fields(captured.out)
    assert fields["function"] == "set"
    assert fields["x"] == "4"
    assert fields["post_state_digest"] == "0x" + "00" * 32
    assert fields["seal_bytes"] == "1"
    assert fields["calldata"].startswith("0x")


def test_dry_run_token_issuance_sends_original_input(
    workspace: Path, capsys: pytest.CaptureFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    priv = key.private_numbers()
    jwk = {
        "kty": "RSA",
        "alg": "RS256",
        "n": _b64url_uint(priv.public_numbers.n),
        "e": _b64url_uint(priv.public_numbers.e),
        "d": _b64url_uint(priv.d),
        "p": _b64url_uint(priv.p),
        "q": _b64url_uint(priv.q),
        "dp": _b64url_uint(priv.dmp1),
        "dq": _b64url_uint(priv.dmq1),
        "qi": _b64url_uint(priv.iqmp),
    }
    monkeypatch.setenv("JWT_SIGNING_KEY", json.dumps(jwk))

    code = cli.main(_argv(workspace, _host(workspace, ECHO_HOST), "-i", "7", "--method", "jwt", "--dry-run"))
    captured = capsys.readouterr()

    assert code == 0, captured.err
    fields = _dry_run_fields(captured.out)
    assert fields["function"] == "set_jwt"
    assert fields["x"] == "7"
    assert jwk["d"] not in captured.err


def test_submits_and_prints_tx_hash(
    workspace: Path, capsys: pytest.CaptureFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    sent: List[bytes] = []

    class FakeSender:
        def __init__(self, chain_id, rpc_url, private_key, contract, *, receipt_timeout_s):
            assert chain_id == 11155111
            assert private_key == "0x" + "11" * 32

        def send(self, calldata: bytes) -> TxReceipt:
            sent.append(calldata)
            return TxReceipt(tx_hash="0x" + "cd" * 32, block_number=1, status=1, gas_used=21_000)

    monkeypatch.setattr(cli, "TxSender", FakeSender)
    monkeypatch.setenv("ETH_WALLET_PRIVATE_KEY", "0x" + "11" * 32)

    code = cli.main(_argv(workspace, _host(workspace, ECHO_HOST), "-i", "4"))
    captured = capsys.readouterr()

    assert code == 0, captured.err
    assert captured.out.strip() == "0x" + "cd" * 32
    assert len(sent) == 1
    assert "11" * 32 not in captured.err


def test_missing_configuration_exits_2(workspace: Path, capsys: pytest.CaptureFixture) -> None:
    code = cli.main(["-i", "4", "--dry-run"])
    captured = capsys.readouterr()
    assert code == cli.EXIT_CONFIG_ERROR
    assert captured.err.startswith("error[config]: missing required configuration")
    assert captured.out == ""


def test_prover_failure_exits_1(workspace: Path, capsys: pytest.CaptureFixture) -> None:
    code = cli.main(_argv(workspace, _host(workspace, FAILING_HOST), "-i", "4", "--dry-run"))
    captured = capsys.readouterr()
    assert code == cli.EXIT_PIPELINE_ERROR
    assert "error[prover]: local prover failed (exit 3): guest panicked (fatal)" in captured.err
    assert captured.out == ""
