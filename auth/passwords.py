"""
auth/passwords.py -- Salted, iterated password hashing (PBKDF2-HMAC).

Scheme:
  salt       16 random bytes from the secrets module, stored as 32 hex chars.
             The hex text itself is fed to PBKDF2 as the salt, which keeps
             rows created by earlier deployments verifiable.
  hash       PBKDF2-HMAC(digest, password, salt, iterations), 64-byte key,
             stored as hex.
  iterations / digest
             stored per row. verify() always uses the row's own values, so
             raising the defaults later never locks existing users out.

Comparison is hmac.compare_digest over equal-length byte strings.

verify() never raises. A credential with missing or malformed fields, or an
unknown digest name, simply fails to verify; the caller turns that into
the same generic "invalid credentials" as a wrong password.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

from auth.models import Credential

ITERATIONS = 120_000
DIGEST = "sha512"
KEY_LENGTH = 64
SALT_BYTES = 16


def _pbkdf2(secret: str, salt: str, iterations: int, digest: str) -> bytes:
    return hashlib.pbkdf2_hmac(digest, secret.encode("utf-8"), salt.encode("utf-8"), iterations, KEY_LENGTH)


def derive(secret: str) -> Credential:
    """Hash a new password under a fresh random salt."""
    salt = secrets.token_hex(SALT_BYTES)
    derived = _pbkdf2(secret, salt, ITERATIONS, DIGEST)
    return Credential(salt=salt, password_hash=derived.hex(), iterations=ITERATIONS, digest=DIGEST)


def verify(secret: str, credential: Credential | None) -> bool:
    """Return True if secret matches the stored credential."""
    if credential is None or not credential.salt or not credential.password_hash:
        return False
    # Both are stored as hex text; bytes from a BLOB column or a number is damage.
    if not isinstance(credential.salt, str) or not isinstance(credential.password_hash, str):
        return False
    iterations = credential.iterations or ITERATIONS
    digest = credential.digest or DIGEST
    try:
        iterations = int(iterations)
        if iterations <= 0:
            return False
        stored = bytes.fromhex(credential.password_hash)
        candidate = _pbkdf2(secret, credential.salt, iterations, digest)
    except (TypeError, ValueError):
        # ValueError covers bad hex and unsupported digest names.
        return False
    if len(stored) != len(candidate):
        return False
    return hmac.compare_digest(stored, candidate)


# Verified against on unknown identifiers so a miss costs the same PBKDF2
# work as a wrong password and response time does not reveal which it was.
DUMMY_CREDENTIAL: Credential = derive("cronocodex_timing_dummy")
