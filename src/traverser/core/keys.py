"""Shared schema keys used when traversal results are serialized."""

from __future__ import annotations

# Common result keys
K_KIND = "kind"
K_REQUEST = "request"
K_LABEL = "label"
K_ERROR = "error"
K_TERMINAL_URL = "terminal_url"
K_STATUS = "status"
K_CONTENT_TYPE = "content_type"
K_CONTENT_DISPOSITION = "content_disposition"
K_TEXT_LENGTH = "text_length"
K_IS_HTML = "is_html_content"
K_REDIRECT_URL = "content_redirect_url"
K_REDIRECTED = "redirected"
K_POSITION = "position"
K_REMARKS = "remarks"
K_TRANSFORMED_FROM = "transformed_from"
K_DOWNLOAD = "download"
K_FILE_NAME = "file_name"
K_SHOULD_WRITE_BYTES = "should_write_bytes"
K_WROTE_BYTES = "wrote_bytes"
