"""
Credential primitives for webhook authentication.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from typing import Optional


def md5_hex(text: str) -> str:
    """Lowercase hex MD5 of a UTF-8 string (Click signatures)."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def constant_time_equals(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def parse_basic_credentials(header: Optional[str]) -> Optional[tuple[str, str]]:
    """Decode ``Basic base64(identity:secret)``; None when absent or malformed."""
    if not header or not header.startswith("Basic "):
        return None
    try:
        decoded = base64.b64decode(header[6:].strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    identity, sep, secret = decoded.partition(":")
    if not sep:
        return None
    return identity, secret


def basic_credentials(identity: str, secret: str) -> str:
    """Build a Basic authorization header value."""
    token = base64.b64encode(f"{identity}:{secret}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"
