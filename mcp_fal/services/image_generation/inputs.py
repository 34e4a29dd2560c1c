"""
Reference image inputs: classification by prefix, data URL parsing, MIME lookup.
"""
import base64
import binascii
import os
import re
from enum import Enum

from mcp_fal.services.image_generation.base import ReferenceImageError

DATA_URL_RE = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)

MIME_TYPES: dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
}
DEFAULT_MIME_TYPE = "image/png"

PREVIEW_CHARS = 100


class ReferenceKind(str, Enum):
    URL = "url"
    DATA_URL = "data_url"
    LOCAL_FILE = "local_file"


def classify_reference(value: str) -> ReferenceKind:
    """Prefix check only; well-formedness is checked when the input is materialized."""
    if value.startswith("data:"):
        return ReferenceKind.DATA_URL
    if value.startswith("http://") or value.startswith("https://"):
        return ReferenceKind.URL
    return ReferenceKind.LOCAL_FILE


def parse_data_url(value: str) -> tuple[bytes, str]:
    """Decode data:<mime>;base64,<payload>. Returns (bytes, content_type)."""
    match = DATA_URL_RE.match(value)
    if not match:
        raise ReferenceImageError("Invalid data URL format. Expected: data:<mime>;base64,<data>")
    content_type, payload = match.group(1), match.group(2)
    try:
        data = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ReferenceImageError(f"Invalid base64 payload in data URL: {e}") from e
    return data, content_type


def guess_content_type(path: str) -> str:
    ext = os.path.splitext(path)[1].lower()
    return MIME_TYPES.get(ext, DEFAULT_MIME_TYPE)


def extension_for(content_type: str) -> str:
    """image/jpeg -> .jpeg; unknown -> .png"""
    subtype = content_type.split("/", 1)[-1].split("+", 1)[0].strip().lower()
    ext = f".{subtype}" if subtype else ""
    return ext if ext in MIME_TYPES else ".png"


def preview(value: str) -> str:
    """Short form for logs; data URLs can be megabytes long."""
    if len(value) <= PREVIEW_CHARS:
        return value
    return value[:PREVIEW_CHARS] + "..."
