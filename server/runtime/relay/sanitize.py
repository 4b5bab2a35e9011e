"""
Ephemeral Chat Relay - Input Sanitization

Helpers for cleaning user supplied names, text, URLs and inline attachments.
"""

import base64
import binascii
import hashlib
import random
import re
from typing import Optional
from urllib.parse import urlsplit

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_DATA_URL = re.compile(r"^data:([\w.+-]+/[\w.+-]+)?((?:;[\w-]+=[\w.-]+)*);base64,(.*)$", re.DOTALL)


def escape_html(text: str) -> str:
    """Neutralize tag delimiters so clients can render text as markup safely"""
    return text.replace("<", "&lt;").replace(">", "&gt;")


def placeholder_name() -> str:
    return f"Anon-{random.randint(0, 999):03d}"


def clean_display_name(value, max_chars: int) -> Optional[str]:
    """
    Normalize a display name.

    Returns None when nothing usable is left after trimming; callers
    substitute a placeholder in that case.
    """
    if not isinstance(value, str):
        return None
    name = " ".join(_CONTROL_CHARS.sub("", value).split())
    if not name:
        return None
    return escape_html(name[:max_chars])


def clean_text(value, max_chars: int) -> str:
    if not isinstance(value, str):
        return ""
    text = _CONTROL_CHARS.sub("", value).strip()
    return escape_html(text[:max_chars])


def is_http_url(value) -> bool:
    if not isinstance(value, str) or len(value) > 2048:
        return False
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def sender_key(identity: str) -> str:
    """Public, stable stand-in for an identity token"""
    return hashlib.sha256(identity.encode("utf-8")).hexdigest()[:16]


def data_url_size(data, max_bytes: int) -> Optional[int]:
    """
    Decoded size of a base64 ``data:`` URL.

    Args:
        data: Candidate data URL
        max_bytes: Ceiling; larger payloads are not decoded

    Returns:
        Size in bytes, or None if the value is not a well-formed
        base64 data URL or exceeds the ceiling
    """
    if not isinstance(data, str):
        return None
    match = _DATA_URL.match(data)
    if match is None:
        return None
    encoded = match.group(3)
    # Cheap upper bound before decoding anything
    if len(encoded) * 3 // 4 > max_bytes + 2:
        return None
    try:
        decoded = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        return None
    if not decoded or len(decoded) > max_bytes:
        return None
    return len(decoded)
