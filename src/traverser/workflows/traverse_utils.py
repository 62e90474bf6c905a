"""Shared helper functions used by the traversal workflow."""

from __future__ import annotations

import mimetypes
import os
import re
from typing import Dict, Optional
from urllib.parse import unquote

from charset_normalizer import from_bytes

from .traverse_config import LABEL_LINE_BREAKS, URL_TRACKING_PATTERN

_CHARSET_RE = re.compile(r"charset=([^\s;]+)", re.IGNORECASE)


def remove_url_tracking_codes(url: str) -> str:
    """Drop ``utm_*`` query parameters from a URL string."""

    stripped = URL_TRACKING_PATTERN.sub("", url)
    if stripped != url:
        stripped = stripped.rstrip("?&")
    return stripped


def clean_label(label: str) -> str:
    """Collapse line breaks to spaces and trim surrounding whitespace."""

    return LABEL_LINE_BREAKS.sub(" ", label).strip()


def content_disposition_params(value: str) -> Dict[str, str]:
    """Split a ``Content-Disposition`` header into its ``key=value`` parameters.

    The leading disposition type (``attachment``, ``inline``) is skipped, as are
    segments without ``=``. A value wrapped in double quotes, or starting with a
    single quote, loses its wrapping quotes.
    """

    result: Dict[str, str] = {}
    for segment in unquote(value).split(";")[1:]:
        key, sep, raw = segment.strip().partition("=")
        key = key.strip()
        raw = raw.strip()
        if not sep or not key or not raw:
            continue
        first, last = raw[0], raw[-1]
        if (first == last == '"' and len(raw) > 1) or first == "'":
            result[key] = raw[1:-1]
        else:
            result[key] = raw
    return result


def media_type(content_type: str) -> str:
    """Return the bare, lower-cased media type of a ``Content-Type`` value."""

    return (content_type or "").split(";")[0].strip().lower()


def content_charset(content_type: str) -> Optional[str]:
    match = _CHARSET_RE.search(content_type or "")
    if not match:
        return None
    return match.group(1).strip(" \"'").lower() or None


def decode_body(body: bytes, content_type: str = "") -> str:
    """Decode HTTP bytes: charset hint, then strict UTF-8, then charset-normalizer."""

    if not body:
        return ""
    enc = content_charset(content_type)
    if enc:
        try:
            return body.decode(enc, errors="replace")
        except LookupError:
            pass
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        pass
    best = from_bytes(body).best()
    if best is None:
        return body.decode("utf-8", errors="replace")
    return str(best)


def guess_extension(content_type: str) -> str:
    ext = mimetypes.guess_extension(media_type(content_type)) if content_type else None
    return ext or ".bin"


def env_str(name: str, default: str) -> str:
    raw = os.getenv(name, "")
    return raw.strip() or default


def env_int(name: str, default: int = 0) -> int:
    try:
        raw = os.getenv(name, "")
        return int(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def env_float(name: str, default: float = 0.0) -> float:
    try:
        raw = os.getenv(name, "")
        return float(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


__all__ = [
    "clean_label",
    "content_charset",
    "content_disposition_params",
    "decode_body",
    "env_float",
    "env_int",
    "env_str",
    "guess_extension",
    "media_type",
    "remove_url_tracking_codes",
]
