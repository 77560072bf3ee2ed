"""Session tokens: compact HS256 JWTs signed with the app secret.

The GitHub OAuth exchange happens in the auth provider; once it has resolved
a user it mints one of these tokens. The analysis worker holds a long-lived
token with the ``service`` role.
"""

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

ROLE_USER = "user"
ROLE_SERVICE = "service"

_ISSUER = "kontexto"
_HEADER = {"alg": "HS256", "typ": "JWT"}


@dataclass(frozen=True)
class TokenPayload:
    """Decoded claims.

    ``sub`` is the internal user id and may be empty when the provider only
    knows the GitHub identity; ``github_id`` is then used to look the user up.
    """
    sub: str
    role: str
    exp: datetime
    github_id: Optional[str] = None


def create_token(
    subject: str,
    secret: str,
    role: str = ROLE_USER,
    github_id: Optional[str] = None,
    algorithm: str = "HS256",
    expires_hours: int = 24,
) -> str:
    """Sign a token for *subject*. Only HS256 is supported."""
    if algorithm != "HS256":
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    issued_at = int(time.time())
    claims = {
        "iss": _ISSUER,
        "sub": subject,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + expires_hours * 3600,
    }
    if github_id:
        claims["github_id"] = github_id

    signing_input = _encode_json(_HEADER) + b"." + _encode_json(claims)
    return (signing_input + b"." + _b64url(_sign(signing_input, secret))).decode()


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[TokenPayload]:
    """Verify and decode *token*.

    Returns None for anything that does not verify: wrong signature,
    expired, malformed or unsupported algorithm.
    """
    if algorithm != "HS256" or token.count(".") != 2:
        return None

    header_b64, claims_b64, signature_b64 = token.encode().split(b".")
    try:
        signature = _b64url_decode(signature_b64)
        if not hmac.compare_digest(_sign(header_b64 + b"." + claims_b64, secret), signature):
            return None
        claims = json.loads(_b64url_decode(claims_b64))
        exp = int(claims["exp"])
    except (ValueError, KeyError, TypeError):
        return None

    if exp < time.time():
        return None

    return TokenPayload(
        sub=claims.get("sub") or "",
        role=claims.get("role") or "",
        exp=datetime.fromtimestamp(exp, tz=timezone.utc),
        github_id=claims.get("github_id") or None,
    )


def _sign(signing_input: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()


def _encode_json(data: dict) -> bytes:
    return _b64url(json.dumps(data, separators=(",", ":")).encode())


def _b64url(data: bytes) -> bytes:
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64url_decode(data: bytes) -> bytes:
    return base64.urlsafe_b64decode(data + b"=" * (-len(data) % 4))
