from __future__ import annotations

import base64
import json

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from proof_publisher.agents.token_issuer import RsaJwkIssuer
from proof_publisher.core.errors import SigningError
from proof_publisher.core.methods import Claims


def _b64(n: int) -> str:
    raw = n.to_bytes((n.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


@pytest.fixture(scope="module")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="module")
def jwk(rsa_key: rsa.RSAPrivateKey) -> dict:
    nums = rsa_key.private_numbers()
    return {
        "alg": "RS256",
        "kty": "RSA",
        "use": "sig",
        "key_ops": ["sign"],
        "kid": "6ab0e8e4bc121fc287e35d3e5e0efb8a",
        "n": _b64(nums.public_numbers.n),
        "e": _b64(nums.public_numbers.e),
        "d": _b64(nums.d),
        "p": _b64(nums.p),
        "q": _b64(nums.q),
        "dp": _b64(nums.dmp1),
        "dq": _b64(nums.dmq1),
        "qi": _b64(nums.iqmp),
    }


def test_generated_token_has_rs256_header_and_subject(jwk: dict) -> None:
    issuer = RsaJwkIssuer.from_jwk_json(json.dumps(jwk))
    token = issuer.generate_token(Claims(subject="Hello, world!"))

    header_b64, payload_b64, _sig = token.split(".")
    assert "=" not in token
    assert json.loads(_b64decode(header_b64)) == {"alg": "RS256", "kid": jwk["kid"], "typ": "JWT"}
    assert json.loads(_b64decode(payload_b64)) == {"subject": "Hello, world!"}


def test_signature_verifies_with_the_public_key(jwk: dict, rsa_key: rsa.RSAPrivateKey) -> None:
    token = RsaJwkIssuer.from_jwk(jwk).generate_token(Claims(subject="alice"))
    header_b64, payload_b64, sig_b64 = token.split(".")
    rsa_key.public_key().verify(
        _b64decode(sig_b64),
        f"{header_b64}.{payload_b64}".encode("ascii"),
        padding.PKCS1v15(),
        hashes.SHA256(),
    )


def test_verify_round_trip_and_tamper_detection(jwk: dict) -> None:
    issuer = RsaJwkIssuer.from_jwk(jwk)
    token = issuer.generate_token(Claims(subject="alice"))
    assert issuer.verify(token) == Claims(subject="alice")

    header_b64, _payload_b64, sig_b64 = token.split(".")
    forged_payload = base64.urlsafe_b64encode(b'{"subject":"mallory"}').rstrip(b"=").decode("ascii")
    with pytest.raises(SigningError):
        issuer.verify(f"{header_b64}.{forged_payload}.{sig_b64}")
    with pytest.raises(SigningError):
        issuer.verify("not-a-token")


def test_rs256_is_deterministic(jwk: dict) -> None:
    issuer = RsaJwkIssuer.from_jwk(jwk)
    assert issuer.generate_token(Claims(subject="x")) == issuer.generate_token(Claims(subject="x"))


@pytest.mark.parametrize(
    "patch",
    [
        {"kty": "EC"},
        {"alg": "HS256"},
        {"key_ops": ["verify"]},
        {"d": ""},
        {"q": "AQAB"},
    ],
)
def test_unusable_jwk_is_rejected(jwk: dict, patch: dict) -> None:
    with pytest.raises(SigningError):
        RsaJwkIssuer.from_jwk({**jwk, **patch})


def test_invalid_json_and_empty_subject_are_rejected(jwk: dict) -> None:
    with pytest.raises(SigningError):
        RsaJwkIssuer.from_jwk_json("{not json")
    with pytest.raises(SigningError):
        RsaJwkIssuer.from_jwk(jwk).generate_token(Claims(subject=""))
