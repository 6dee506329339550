"""Helpers for turning Drive file content into tool text."""

import re

GOOGLE_APPS_PREFIX = "application/vnd.google-apps"

# Export formats for Google Workspace files
EXPORT_MIME_TYPES = {
    "application/vnd.google-apps.document": "text/markdown",
    "application/vnd.google-apps.spreadsheet": "text/csv",
    "application/vnd.google-apps.presentation": "text/plain",
    "application/vnd.google-apps.drawing": "image/png",
}
DEFAULT_EXPORT_MIME_TYPE = "text/plain"

TRUNCATION_MARKER = "[BASE64_DATA_TRUNCATED]"

_BASE64_PATTERNS = [
    # Markdown reference-style image definitions
    re.compile(r"\[.*?\]: <(data:image/[^;]+;base64,[A-Za-z0-9+/=]{50,})>"),
    # HTML img tags
    re.compile(r'<img[^>]*src="(data:image/[^;]+;base64,[A-Za-z0-9+/=]{50,})"[^>]*>'),
    # Bare data URIs
    re.compile(r"(data:image/[^;]+;base64,[A-Za-z0-9+/=]{50,})"),
    # Anything else that looks like inline base64
    re.compile(r"(base64,[A-Za-z0-9+/=]{50,})"),
]
_DATA_URI_MIME = re.compile(r"data:(image/[^;]+);")


def export_mime_type(mime_type: str) -> str:
    """Export format for a Google Workspace MIME type."""
    return EXPORT_MIME_TYPES.get(mime_type, DEFAULT_EXPORT_MIME_TYPE)


def is_google_apps_file(mime_type: str | None) -> bool:
    return bool(mime_type) and mime_type.startswith(GOOGLE_APPS_PREFIX)


def is_text_mime_type(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type == "application/json"


def _truncate_match(match: re.Match) -> str:
    text = match.group(0)
    base64_part = match.group(1)

    mime_match = _DATA_URI_MIME.search(base64_part)
    mime_type = mime_match.group(1) if mime_match else "binary data"

    if (text.startswith("[") and "]: <" in text) or text.startswith("<img"):
        return text.replace(base64_part, f"data:{mime_type};base64,{TRUNCATION_MARKER}")

    return base64_part[:20] + TRUNCATION_MARKER


def truncate_base64_content(text: str) -> str:
    """Replace embedded base64 payloads with a short marker.

    Exported documents inline their images as data URIs, which would
    otherwise dominate the tool response.
    """
    if not text:
        return text

    for pattern in _BASE64_PATTERNS:
        text = pattern.sub(_truncate_match, text)
    return text


def format_file_size(size: int) -> str:
    """Human-readable size, e.g. ``1.5 MB``."""
    if size < 1024:
        return f"{size} bytes"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    return f"{size / (1024 * 1024 * 1024):.1f} GB"


def binary_placeholder(size: int) -> str:
    return f"[BINARY_DATA_TRUNCATED - {format_file_size(size)}]"
