"""
Email body extraction from Gmail MIME payloads.

Gmail returns the message body as a tree of parts. Each node has a
``mimeType`` and either inline ``body.data`` (base64url) or child
``parts``. Providers nest alternative bodies, inline images and
attachments arbitrarily, so we pick the part a mail client would render:
HTML first, then plain text, otherwise an empty string.

Nothing in here raises; a missing body is an empty string and callers
fall back to the snippet.
"""
import base64
import binascii
from enum import Enum
from typing import Callable, Dict, List, Optional

from inboxswipe.utils.logger import get_logger

logger = get_logger(__name__)


class PartKind(str, Enum):
    """Shape of a MIME node, used to dispatch extraction."""
    LEAF = "leaf"
    ALTERNATIVE = "multipart/alternative"
    RELATED = "multipart/related"
    MIXED = "multipart/mixed"
    OTHER = "other"
    EMPTY = "empty"


def decode_body(data: str) -> str:
    """
    Decode base64url-encoded body data.

    Gmail uses URL-safe base64 and strips the padding.
    """
    try:
        padding = -len(data) % 4
        decoded = base64.urlsafe_b64decode(data + "=" * padding)
        return decoded.decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Failed to decode body: {e}")
        return ""


def _data(part: dict) -> Optional[str]:
    return (part.get("body") or {}).get("data") or None


def classify_part(part: dict) -> PartKind:
    """Return the kind of a MIME node."""
    if _data(part):
        return PartKind.LEAF
    if not part.get("parts"):
        return PartKind.EMPTY

    mime_type = (part.get("mimeType") or "").lower()
    for kind in (PartKind.ALTERNATIVE, PartKind.RELATED, PartKind.MIXED):
        if mime_type == kind.value:
            return kind
    return PartKind.OTHER


def pick_html_or_text(parts: List[dict]) -> Optional[str]:
    """Among sibling parts, decode the HTML one, else the plain text one."""
    for mime_type in ("text/html", "text/plain"):
        for part in parts:
            if (part.get("mimeType") or "").lower() == mime_type and _data(part):
                return decode_body(_data(part))
    return None


def _scan_children(parts: List[dict]) -> str:
    """Depth-first: first non-empty body found under a child with sub-parts."""
    for part in parts:
        if part.get("parts"):
            nested = extract_body(part)
            if nested:
                return nested
    return ""


def _from_leaf(part: dict) -> str:
    return decode_body(_data(part))


def _from_alternative(part: dict) -> str:
    return pick_html_or_text(part["parts"]) or ""


def _from_related(part: dict) -> str:
    first = part["parts"][0]
    if first.get("parts"):
        return pick_html_or_text(first["parts"]) or ""
    if _data(first):
        return decode_body(_data(first))
    return _scan_children(part["parts"])


def _from_mixed(part: dict) -> str:
    first = part["parts"][0]
    first_kind = classify_part(first)

    if first_kind == PartKind.RELATED and first["parts"][0].get("parts"):
        return pick_html_or_text(first["parts"][0]["parts"]) or ""
    if first_kind == PartKind.ALTERNATIVE:
        return pick_html_or_text(first["parts"]) or ""
    if first.get("parts"):
        return pick_html_or_text(first["parts"]) or ""
    if first_kind == PartKind.LEAF:
        return decode_body(_data(first))
    return _scan_children(part["parts"])


def _from_other(part: dict) -> str:
    return _scan_children(part["parts"])


_EXTRACTORS: Dict[PartKind, Callable[[dict], str]] = {
    PartKind.LEAF: _from_leaf,
    PartKind.ALTERNATIVE: _from_alternative,
    PartKind.RELATED: _from_related,
    PartKind.MIXED: _from_mixed,
    PartKind.OTHER: _from_other,
    PartKind.EMPTY: lambda part: "",
}


def extract_body(payload: Optional[dict]) -> str:
    """
    Extract the best renderable body from a Gmail message payload.

    Args:
        payload: Root MIME part (``message["payload"]``)

    Returns:
        Decoded HTML or plain text body, or "" if none was found
    """
    if not payload:
        return ""
    return _EXTRACTORS[classify_part(payload)](payload)
