"""
auth/tokens.py -- Session token codec.

Security design decisions:
  Format: compact JWS (python-jose, HS256). header.payload.signature, each
       segment base64url; the HMAC covers the exact "header.payload" bytes
       received. Claims: sub (principal id as a string), role, iat, exp
       (epoch seconds).

  Verification order: jose checks the part count and the signature before it
       decodes a single claim, so a forged token never gets its payload read.
       jose decodes the signature segment leniently: the last character of
       a 43-character HS256 signature carries two unused bits, and flipping
       them still decodes to the same MAC. The segment must therefore be the
       canonical base64url encoding of its own bytes, which makes the check
       byte-exact over the token text.
       Only then are the claims interpreted. Expiry is checked here rather
       than by jose so that the boundary is exact: a token is dead from the
       second it reaches exp (now >= exp), with no leeway.

  Outcome: verify() returns TokenClaims or None. There is exactly one
       failure value; callers cannot tell a bad signature from an expired
       token, and neither can a client.

  Secret: one process-wide key, injected at construction from Settings.
       Rotating it invalidates every outstanding token. Tokens cannot be
       revoked individually; there is no server-side denylist. Keep the TTL
       short if that matters for a deployment.

Layer rule: no imports from api/ or hr/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from auth.models import Role, TokenClaims

logger = logging.getLogger("cronocodex.auth")

_ALGORITHM = "HS256"

DEFAULT_TTL = timedelta(hours=8)


def _canonical_signature(token: str) -> bool:
    """Return True if the signature segment re-encodes to exactly itself."""
    parts = token.split(".")
    if len(parts) != 3:
        return False
    try:
        segment = parts[2].encode("ascii")
        return base64url_encode(base64url_decode(segment)) == segment
    except (TypeError, ValueError):
        # binascii.Error and UnicodeEncodeError are both ValueErrors.
        return False


class TokenCodec:
    """Issue and verify signed, self-contained session tokens.

    Usage:
        codec = TokenCodec(settings.secret_key, ttl=timedelta(seconds=settings.token_expire_seconds))
        token = codec.issue(principal.id, principal.role)
        claims = codec.verify(token)  # TokenClaims or None
    """

    def __init__(self, secret: str, ttl: timedelta = DEFAULT_TTL) -> None:
        if not secret:
            raise ValueError("TokenCodec requires a non-empty signing secret.")
        self._secret = secret
        self._ttl = ttl

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, principal_id: int, role: Role, ttl: timedelta | None = None) -> str:
        now = datetime.now(timezone.utc)
        expire = now + (ttl if ttl is not None else self._ttl)
        payload = {
            "sub": str(principal_id),
            "role": Role(role).value,
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str | None) -> TokenClaims | None:
        """Decode and verify a token. Returns the claims or None on any failure."""
        if not token or not isinstance(token, str):
            return None
        if not _canonical_signature(token):
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False, "verify_aud": False},
            )
        except JWTError:
            return None

        try:
            principal_id = int(payload["sub"])
            role = Role(payload["role"])
            expires_at = payload["exp"]
        except (KeyError, TypeError, ValueError):
            logger.warning("Signed token carried unusable claims")
            return None
        if isinstance(expires_at, bool) or not isinstance(expires_at, int):
            return None
        if datetime.now(timezone.utc).timestamp() >= expires_at:
            return None
        return TokenClaims(principal_id=principal_id, role=role, expires_at=expires_at)
