"""Embedded-data (``data:`` URL) codec used to ship attachments inline."""

from __future__ import annotations

import base64
import binascii

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def encode_data_url(data: bytes, content_type: str) -> str:
    """Return ``data:<content_type>;base64,<payload>`` for raw bytes."""
    mime = content_type.strip() or DEFAULT_CONTENT_TYPE
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{payload}"


def decode_data_url(url: str) -> tuple[str, bytes]:
    """Split a base64 data URL into its MIME type and decoded payload.

    Raises:
        ValueError: If ``url`` is not a base64 data URL.
    """
    if not url.startswith("data:"):
        raise ValueError("Not a data URL.")
    header, sep, payload = url[5:].partition(",")
    if not sep:
        raise ValueError("Data URL has no payload separator.")
    mime, _, encoding = header.rpartition(";")
    if encoding != "base64":
        raise ValueError("Only base64 data URLs are supported.")
    try:
        data = base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc
    return mime or DEFAULT_CONTENT_TYPE, data


def text_from_data_url(url: str) -> str:
    """Decode a text attachment's data URL back to UTF-8 text."""
    _, data = decode_data_url(url)
    return data.decode("utf-8")
