"""
Share links.

``{base}/view?p=<id>#<saltB64>:<ivB64>`` - the salt and iv ride in the URL
fragment, which compliant clients never send to the server.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qs, quote, urlsplit

from pastecore.encoding import b64url_decode, b64url_encode
from pastecore.errors import DecodeError, ValidationError


@dataclass(frozen=True)
class ShareLink:
    paste_id: str
    salt: bytes
    iv: bytes


def build_share_url(base_url: str, paste_id: str, salt: bytes, iv: bytes) -> str:
    return (
        f"{base_url.rstrip('/')}/view?p={quote(paste_id, safe='')}"
        f"#{b64url_encode(salt)}:{b64url_encode(iv)}"
    )


def parse_share_url(url: str) -> ShareLink:
    """Split a share URL into paste id, salt and iv."""
    parts = urlsplit(url)
    paste_id = parse_qs(parts.query).get("p", [""])[0]
    salt_b64, sep, iv_b64 = parts.fragment.partition(":")
    if not paste_id or not sep or not salt_b64 or not iv_b64:
        raise ValidationError("invalid_link", "Invalid share link.")

    try:
        return ShareLink(paste_id=paste_id, salt=b64url_decode(salt_b64), iv=b64url_decode(iv_b64))
    except DecodeError as e:
        raise ValidationError("invalid_link", "Invalid share link.") from e
