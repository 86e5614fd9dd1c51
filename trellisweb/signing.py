"""HMAC-SHA1 signing of strings with the application's secret key."""

from __future__ import annotations

import hashlib
import hmac


def sign(message: str, secret_key: bytes | str) -> str:
    """Return the hex HMAC-SHA1 of message, or "" when no key is set."""
    if not secret_key:
        return ""
    key = secret_key.encode("utf-8") if isinstance(secret_key, str) else secret_key
    return hmac.new(key, message.encode("utf-8"), hashlib.sha1).hexdigest()


def verify(message: str, signature: str, secret_key: bytes | str) -> bool:
    """Tell whether signature is what sign() produces for message."""
    expected = sign(message, secret_key)
    return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))