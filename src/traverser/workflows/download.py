"""Download enhancer: stream traversal content into a file and verify its size."""

from __future__ import annotations

import logging
import tempfile
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Dict, Optional

from ..core.keys import K_DOWNLOAD, K_ERROR, K_FILE_NAME, K_SHOULD_WRITE_BYTES, K_WROTE_BYTES
from .enhance import Enhancer, apply
from .results import (
    ResultKind,
    TraversalContent,
    TraversalResult,
    has_capability,
    transform,
)
from .traverse import validate_status
from .traverse_config import DOWNLOAD_TEMP_SUBDIR, ENV_DOWNLOAD_DIR
from .traverse_utils import env_str, guess_extension

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Download:
    file_name: str
    should_write_bytes: Optional[int]
    wrote_bytes: Optional[int]
    error: Optional[BaseException] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            K_FILE_NAME: self.file_name,
            K_SHOULD_WRITE_BYTES: self.should_write_bytes,
            K_WROTE_BYTES: self.wrote_bytes,
        }
        if self.error is not None:
            payload[K_ERROR] = f"{type(self.error).__name__}: {self.error}"
        return payload


def is_downloaded_content(download: Any) -> bool:
    """True when both byte counts are known and match."""

    return (
        isinstance(download, Download)
        and download.error is None
        and download.should_write_bytes is not None
        and download.wrote_bytes is not None
        and download.wrote_bytes == download.should_write_bytes
    )


@dataclass(frozen=True, kw_only=True)
class DownloadTraversalResult(TraversalContent):
    kind: ClassVar[ResultKind] = ResultKind.DOWNLOAD

    download: Download

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload[K_DOWNLOAD] = self.download.to_dict()
        return payload


def is_download_traversal_result(o: Any) -> bool:
    return has_capability(o, ResultKind.DOWNLOAD)


@dataclass(frozen=True)
class TraversalResultDownloader:
    """Write content into ``dest_path``.

    Works as a content enhancer, or as a whole result enhancer since it
    validates the status itself first.
    """

    dest_path: Path
    create_dirs: bool = True
    status_validator: Enhancer = validate_status

    def file_name_for(self, instance: TraversalContent) -> str:
        disposition = instance.content_disposition or {}
        name = Path(disposition.get("filename", "")).name.strip()
        if name in {"", ".", ".."}:
            name = f"{uuid.uuid4().hex}{guess_extension(instance.content_type)}"
        return name

    def expected_bytes(self, instance: TraversalContent) -> Optional[int]:
        """Declared ``Content-Length`` when usable, else the size of a body already read."""

        declared = instance.response.content_length
        if declared is not None:
            return declared
        if instance.body_bytes is not None:
            return len(instance.body_bytes)
        return None

    async def __call__(self, ctx: Any, instance: TraversalResult) -> TraversalResult:
        instance = await apply(self.status_validator, ctx, instance)
        if not isinstance(instance, TraversalContent) or is_download_traversal_result(instance):
            return instance

        dest = Path(self.dest_path)
        file_name = str(dest / self.file_name_for(instance))
        should_write = self.expected_bytes(instance)
        wrote: Optional[int] = None
        error: Optional[BaseException] = None
        try:
            if self.create_dirs:
                dest.mkdir(parents=True, exist_ok=True)
            with open(file_name, "wb") as sink:
                received, wrote = await instance.copy_content(sink)
            if should_write is None:
                # no usable length header: the body size is what arrived
                should_write = received
        except Exception as exc:
            logger.warning("download of %s into %s failed: %s", instance.terminal_url, file_name, exc)
            error = exc

        download = Download(
            file_name=file_name,
            should_write_bytes=should_write,
            wrote_bytes=wrote,
            error=error,
        )
        if error is None and not is_downloaded_content(download):
            logger.warning(
                "download size mismatch for %s: expected %s, wrote %s",
                instance.terminal_url,
                should_write,
                wrote,
            )
        return transform(
            instance,
            DownloadTraversalResult,
            remarks=f"TraversalResultDownloader({file_name})",
            download=download,
        )


def temp_dir_downloader() -> TraversalResultDownloader:
    """Downloader targeting ``$TRAVERSER_DOWNLOAD_DIR`` or a temp subdirectory."""

    default = str(Path(tempfile.gettempdir()) / DOWNLOAD_TEMP_SUBDIR)
    return TraversalResultDownloader(Path(env_str(ENV_DOWNLOAD_DIR, default)))


__all__ = [
    "Download",
    "DownloadTraversalResult",
    "TraversalResultDownloader",
    "is_download_traversal_result",
    "is_downloaded_content",
    "temp_dir_downloader",
]
