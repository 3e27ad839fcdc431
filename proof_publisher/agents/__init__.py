"""
Token issuers used to build guest inputs.
"""

from .token_issuer import RsaJwkIssuer, TokenIssuer

__all__ = [
    "RsaJwkIssuer",
    "TokenIssuer",
]
