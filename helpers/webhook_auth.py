"""
Webhook request authentication.

The site authenticates either with the shared secret as a Bearer token or
with an HMAC-SHA256 signature over ``"{timestamp}.{raw_body}"`` sent in the
``X-Signature`` header, the timestamp (unix seconds) in ``X-Timestamp``.
"""

import hashlib
import hmac
import time
from collections.abc import Mapping
from typing import NamedTuple

from utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


class AuthResult(NamedTuple):
    valid: bool
    error: str | None = None


def generate_signature(secret: str, body: bytes, timestamp: str | int) -> str:
    """Return the hex HMAC-SHA256 of ``"{timestamp}.{body}"``."""
    message = f"{timestamp}.".encode() + body
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_signature(
    secret: str,
    body: bytes,
    signature: str,
    timestamp: str,
    *,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> AuthResult:
    """
    Verify an HMAC signature and reject stale timestamps (replay protection).

    Args:
        secret: Shared webhook secret.
        body: Raw request body bytes, exactly as received.
        signature: Hex signature from the X-Signature header.
        timestamp: Unix seconds from the X-Timestamp header.
        tolerance_seconds: Maximum allowed clock skew.
        now: Current unix time (defaults to time.time()).

    Returns:
        AuthResult with valid flag and an error description on failure.
    """
    try:
        ts = int(timestamp)
    except (TypeError, ValueError):
        return AuthResult(False, "Invalid timestamp format")

    current = time.time() if now is None else now
    if abs(current - ts) > tolerance_seconds:
        return AuthResult(False, "Timestamp expired (replay attack protection)")

    expected = generate_signature(secret, body, timestamp)
    if not hmac.compare_digest(expected, signature.strip().lower()):
        return AuthResult(False, "Invalid signature")
    return AuthResult(True)


def check_request_auth(
    secret: str,
    headers: Mapping[str, str],
    body: bytes,
    *,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
) -> AuthResult:
    """Accept either a matching Bearer token or a valid HMAC signature."""
    if not secret:
        return AuthResult(False, "Webhook secret not configured")

    auth_header = headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:]
        if hmac.compare_digest(token.encode(), secret.encode()):
            return AuthResult(True)
        return AuthResult(False, "Invalid bearer token")

    signature = headers.get("X-Signature")
    timestamp = headers.get("X-Timestamp")
    if signature and timestamp:
        return verify_signature(
            secret,
            body,
            signature,
            timestamp,
            tolerance_seconds=tolerance_seconds,
        )

    return AuthResult(False, "Missing credentials")
