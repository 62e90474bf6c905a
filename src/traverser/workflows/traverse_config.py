"""Traversal defaults (patterns, header names, limits, environment names).

Centralizes static defaults so traverse.py has no embedded magic strings.
Callers override any of them through ``default_traverse_options`` or the
environment variables listed below.
"""

from __future__ import annotations

import re

# Headers
HDR_CONTENT_TYPE = "Content-Type"
HDR_CONTENT_DISPOSITION = "Content-Disposition"
HDR_CONTENT_LENGTH = "Content-Length"
HDR_CONTENT_ENCODING = "Content-Encoding"
HDR_USER_AGENT = "User-Agent"

HTTP_OK = 200

# Request/body patterns
URL_TRACKING_PATTERN = re.compile(r"(?<=&|\?)utm_.*?(&|$)", re.IGNORECASE | re.MULTILINE)
LABEL_LINE_BREAKS = re.compile(r"\r\n|\n|\r")
META_REFRESH_PATTERN = re.compile(r"(CONTENT|content)=[\"']0;[ ]*(URL|url)=(.*?)([\"']\s*/?>)")

TEXT_CONTENT_PREFIX = "text/"
HTML_CONTENT_PREFIX = "text/html"

# Environment
ENV_TIMEOUT = "TRAVERSER_TIMEOUT"
ENV_MAX_REDIRECT_HOPS = "TRAVERSER_MAX_REDIRECT_HOPS"
ENV_USER_AGENT = "TRAVERSER_USER_AGENT"
ENV_DOWNLOAD_DIR = "TRAVERSER_DOWNLOAD_DIR"

# Limits / defaults
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_REDIRECT_HOPS = 10
DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
DOWNLOAD_TEMP_SUBDIR = "traverser-downloads"
