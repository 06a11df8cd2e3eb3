"""Minimal HS256 bearer tokens.

Tokens are minted by the marketplace identity service; this module only needs
to verify them (``issue_token`` exists for tests and local tooling).
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Any

from fastapi import HTTPException, status

ALGORITHM = "HS256"


class TokenError(Exception):
    pass


def _urlsafe_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def _urlsafe_decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def _sign(signing_input: bytes, secret: str) -> str:
    return _urlsafe_encode(hmac.new(secret.encode(), signing_input, hashlib.sha256).digest())


def _segment(data: dict[str, Any]) -> str:
    return _urlsafe_encode(json.dumps(data, separators=(",", ":"), sort_keys=True).encode())


def issue_token(
    subject: str,
    secret: str,
    *,
    role: str = "USER",
    expires_in_s: int = 3600,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    now = int(time.time())
    claims = {**(extra_claims or {}), "sub": subject, "role": role, "iat": now, "exp": now + expires_in_s}
    signing_input = f"{_segment({'alg': ALGORITHM, 'typ': 'JWT'})}.{_segment(claims)}"
    return f"{signing_input}.{_sign(signing_input.encode(), secret)}"


def verify_token(token: str, secret: str) -> dict[str, Any]:
    parts = token.split(".")
    if len(parts) != 3:
        raise TokenError("Malformed token")
    header_segment, claims_segment, signature = parts

    if not hmac.compare_digest(_sign(f"{header_segment}.{claims_segment}".encode(), secret), signature):
        raise TokenError("Bad signature")

    try:
        header = json.loads(_urlsafe_decode(header_segment))
        claims = json.loads(_urlsafe_decode(claims_segment))
    except ValueError as err:
        raise TokenError("Undecodable token") from err
    if not isinstance(header, dict) or header.get("alg") != ALGORITHM:
        raise TokenError("Unsupported token algorithm")
    if not isinstance(claims, dict):
        raise TokenError("Claims must be an object")

    exp = claims.get("exp")
    if not isinstance(exp, int) or exp < int(time.time()):
        raise TokenError("Token expired")
    return claims


def unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )
