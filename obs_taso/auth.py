"""Challenge-response authentication for the OBS WebSocket v5 handshake.

The digest is computed in two SHA-256 rounds::

    secret = base64(sha256(password + salt))
    auth   = base64(sha256(secret + challenge))
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets

from .errors import AuthComputationError


def _sha256_b64(text: str) -> str:
    return base64.b64encode(hashlib.sha256(text.encode("utf-8")).digest()).decode("ascii")


def compute_auth_response(password: str, challenge: str, salt: str) -> str:
    """Compute the Identify.authentication string.

    An empty password is valid input.

    Raises:
        AuthComputationError: If the inputs cannot be hashed.
    """
    try:
        secret = _sha256_b64(password + salt)
        return _sha256_b64(secret + challenge)
    except (TypeError, UnicodeEncodeError, ValueError) as err:
        raise AuthComputationError(f"Failed to generate auth response: {err}") from err


def verify_auth_response(
    response: str | None, password: str, challenge: str, salt: str
) -> bool:
    """Check a client digest against the expected one in constant time."""
    if not isinstance(response, str):
        return False
    expected = compute_auth_response(password, challenge, salt)
    return hmac.compare_digest(response.encode("utf-8"), expected.encode("utf-8"))


def generate_challenge(nbytes: int = 32) -> tuple[str, str]:
    """Return a fresh random ``(challenge, salt)`` pair of base64 strings."""
    challenge = base64.b64encode(secrets.token_bytes(nbytes)).decode("ascii")
    salt = base64.b64encode(secrets.token_bytes(nbytes)).decode("ascii")
    return challenge, salt
