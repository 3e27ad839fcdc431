"""
Token issuance for the token-issuance guest.

The issuer signs a claims record as an RS256 JSON Web Token using an RSA
private key supplied as a JWK. The key is injected per run; nothing here keeps
key material beyond the lifetime of the issuer object.
"""

from __future__ import annotations

import base64
import json
from typing import Any, Dict, Mapping, Optional, Protocol

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..codec.canonical import canonical_json_bytes
from ..core.errors import SigningError
from ..core.methods import Claims

_JWK_PRIVATE_FIELDS = ("n", "e", "d", "p", "q", "dp", "dq", "qi")


class TokenIssuer(Protocol):
    """Anything that turns claims into a signed compact token."""

    def generate_token(self, claims: Claims) -> str:
        ...


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    pad = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + pad)


def _b64url_uint(jwk: Mapping[str, Any], field: str) -> int:
    value = jwk.get(field)
    if not isinstance(value, str) or not value:
        raise SigningError(f"JWK field {field!r} must be a non-empty base64url string")
    try:
        return int.from_bytes(_b64url_decode(value), byteorder="big", signed=False)
    except (ValueError, TypeError) as exc:
        raise SigningError(f"JWK field {field!r} is not valid base64url") from exc


class RsaJwkIssuer:
    """
    RS256 token issuer backed by an RSA private JWK.

    Attributes:
        kid: Key id copied into every token header (may be None)
    """

    def __init__(self, private_key: rsa.RSAPrivateKey, *, kid: Optional[str] = None) -> None:
        self._sk = private_key
        self.kid = kid

    @classmethod
    def from_jwk(cls, jwk: Mapping[str, Any]) -> "RsaJwkIssuer":
        """
        Build an issuer from a parsed JWK.

        Args:
            jwk: JWK object with kty="RSA" and all private CRT parameters

        Returns:
            RsaJwkIssuer

        Raises:
            SigningError: If the JWK is not a usable RSA signing key
        """
        if not isinstance(jwk, Mapping):
            raise SigningError("JWK must be an object")
        if jwk.get("kty") != "RSA":
            raise SigningError(f"unsupported JWK key type: {jwk.get('kty')!r}")
        alg = jwk.get("alg")
        if alg is not None and alg != "RS256":
            raise SigningError(f"unsupported JWK algorithm: {alg!r}")
        key_ops = jwk.get("key_ops")
        if key_ops is not None and "sign" not in key_ops:
            raise SigningError("JWK key_ops does not allow signing")

        n, e, d, p, q, dp, dq, qi = (_b64url_uint(jwk, f) for f in _JWK_PRIVATE_FIELDS)
        try:
            numbers = rsa.RSAPrivateNumbers(
                p=p,
                q=q,
                d=d,
                dmp1=dp,
                dmq1=dq,
                iqmp=qi,
                public_numbers=rsa.RSAPublicNumbers(e=e, n=n),
            )
            private_key = numbers.private_key()
        except ValueError as exc:
            raise SigningError(f"invalid RSA JWK: {exc}") from exc

        kid = jwk.get("kid")
        return cls(private_key, kid=str(kid) if kid is not None else None)

    @classmethod
    def from_jwk_json(cls, text: str) -> "RsaJwkIssuer":
        try:
            jwk = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise SigningError(f"JWK is not valid JSON: {exc}") from exc
        return cls.from_jwk(jwk)

    def _header(self) -> Dict[str, Any]:
        header: Dict[str, Any] = {"alg": "RS256", "typ": "JWT"}
        if self.kid is not None:
            header["kid"] = self.kid
        return header

    def generate_token(self, claims: Claims) -> str:
        """
        Sign claims as a compact JWT.

        Args:
            claims: Claims record (subject must be non-empty)

        Returns:
            "<header>.<payload>.<signature>" in base64url

        Raises:
            SigningError: If the claims are malformed or signing fails
        """
        if not isinstance(claims, Claims):
            raise SigningError("claims must be a Claims record")
        if not isinstance(claims.subject, str) or not claims.subject:
            raise SigningError("claims.subject must be a non-empty string")

        signing_input = (
            _b64url_encode(canonical_json_bytes(self._header()))
            + "."
            + _b64url_encode(canonical_json_bytes({"subject": claims.subject}))
        )
        try:
            signature = self._sk.sign(signing_input.encode("ascii"), padding.PKCS1v15(), hashes.SHA256())
        except (ValueError, TypeError) as exc:
            raise SigningError(f"RS256 signing failed: {exc}") from exc
        return signing_input + "." + _b64url_encode(signature)

    def verify(self, token: str) -> Claims:
        """
        Verify a token produced by this issuer and return its claims.

        Raises:
            SigningError: If the token is malformed or the signature is invalid
        """
        parts = token.split(".") if isinstance(token, str) else []
        if len(parts) != 3:
            raise SigningError("token must have three dot-separated parts")
        header_b64, payload_b64, sig_b64 = parts
        try:
            header = json.loads(_b64url_decode(header_b64))
            payload = json.loads(_b64url_decode(payload_b64))
            signature = _b64url_decode(sig_b64)
        except ValueError as exc:
            raise SigningError(f"malformed token: {exc}") from exc
        if not isinstance(header, dict) or header.get("alg") != "RS256":
            raise SigningError("token header must declare alg RS256")
        try:
            self._sk.public_key().verify(
                signature,
                f"{header_b64}.{payload_b64}".encode("ascii"),
                padding.PKCS1v15(),
                hashes.SHA256(),
            )
        except InvalidSignature as exc:
            raise SigningError("token signature is invalid") from exc
        subject = payload.get("subject") if isinstance(payload, dict) else None
        if not isinstance(subject, str):
            raise SigningError("token payload is missing subject")
        return Claims(subject=subject)
