"""High-level exports for the traversal workflows."""

from .download import (
    Download,
    DownloadTraversalResult,
    TraversalResultDownloader,
    is_download_traversal_result,
    is_downloaded_content,
    temp_dir_downloader,
)
from .enhance import enhancer, enhancer_sync
from .json_fetch import (
    JsonTraverseOptions,
    json_traverse_options,
    safe_fetch_json,
    type_guard,
    type_guard_array_of,
)
from .results import (
    InvalidHttpStatus,
    Provenance,
    ResultKind,
    SuccessfulTraversal,
    TraversalContent,
    TraversalContentRedirect,
    TraversalResult,
    TraversalStructuredContent,
    TraversalTextContent,
    UnsuccessfulTraversal,
    is_invalid_http_status,
    is_successful_traversal,
    is_transformed_traversal_result,
    is_traversal_content,
    is_traversal_redirect,
    is_traversal_structured_content,
    is_traversal_text_content,
    is_unsuccessful_traversal,
    provenance_chain,
    terminal_result,
)
from .transport import AiohttpTransport, RequestsTransport
from .traverse import (
    RedirectLoopError,
    TraversalError,
    TraverseContext,
    TraverseOptions,
    default_traverse_options,
    traverse,
)

__all__ = [
    "AiohttpTransport",
    "Download",
    "DownloadTraversalResult",
    "InvalidHttpStatus",
    "JsonTraverseOptions",
    "Provenance",
    "RedirectLoopError",
    "RequestsTransport",
    "ResultKind",
    "SuccessfulTraversal",
    "TraversalContent",
    "TraversalContentRedirect",
    "TraversalError",
    "TraversalResult",
    "TraversalResultDownloader",
    "TraversalStructuredContent",
    "TraversalTextContent",
    "TraverseContext",
    "TraverseOptions",
    "UnsuccessfulTraversal",
    "default_traverse_options",
    "enhancer",
    "enhancer_sync",
    "is_download_traversal_result",
    "is_downloaded_content",
    "is_invalid_http_status",
    "is_successful_traversal",
    "is_transformed_traversal_result",
    "is_traversal_content",
    "is_traversal_redirect",
    "is_traversal_structured_content",
    "is_traversal_text_content",
    "is_unsuccessful_traversal",
    "json_traverse_options",
    "provenance_chain",
    "safe_fetch_json",
    "temp_dir_downloader",
    "terminal_result",
    "traverse",
    "type_guard",
    "type_guard_array_of",
]
