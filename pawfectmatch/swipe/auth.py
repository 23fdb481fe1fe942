"""Signed session cookies for the swipe API."""

from __future__ import annotations

import hashlib
import hmac
import os
import re
import secrets

from pawfectmatch.config import DEFAULT_SESSION_SECRET

SESSION_KEY_RE = re.compile(r"^[A-Za-z0-9_-]{16,64}$")


def new_session_key() -> str:
    return secrets.token_urlsafe(24)


def session_secret() -> str:
    """Return the cookie-signing secret."""
    secret = os.environ.get("PAWFECTMATCH_SESSION_SECRET", "").strip()
    return secret or DEFAULT_SESSION_SECRET


def session_signature(session_key: str) -> str:
    """Build an HMAC signature for a session key."""
    payload = session_key.encode("utf-8")
    secret = session_secret().encode("utf-8")
    return hmac.new(secret, payload, hashlib.sha256).hexdigest()


def encode_session_value(session_key: str) -> str:
    """Encode signed session cookie contents."""
    return f"{session_key}.{session_signature(session_key)}"


def decode_session_value(raw_value: str | None) -> str | None:
    """Decode and verify a signed session cookie value."""
    value = (raw_value or "").strip()
    if "." not in value:
        return None
    session_key, signature = value.split(".", 1)
    if not SESSION_KEY_RE.fullmatch(session_key):
        return None
    expected = session_signature(session_key)
    if not hmac.compare_digest(signature, expected):
        return None
    return session_key
