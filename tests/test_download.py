import asyncio
from pathlib import Path

from traverser.workflows import results as r
from traverser.workflows.download import (
    Download,
    TraversalResultDownloader,
    is_download_traversal_result,
    is_downloaded_content,
    temp_dir_downloader,
)
from traverser.workflows.traverse import TraverseContext, traverse

from fakes import FakeTransport, html, make_options

PDF = b"%PDF-1.4\n" + b"0" * 100


def _download(transport, url, downloader, *, as_result_enhancer=False):
    if as_result_enhancer:
        options = make_options(transport, tr_enhancer=downloader)
    else:
        options = make_options(transport, content_enhancers=[downloader])
    return asyncio.run(traverse(TraverseContext(request=url, options=options)))


def test_download_uses_content_disposition_filename(tmp_path: Path):
    transport = FakeTransport()
    transport.add(
        "https://example.com/paper",
        headers={
            "Content-Type": "application/pdf",
            "Content-Disposition": 'attachment; filename="paper 05.pdf"',
            "Content-Length": str(len(PDF)),
        },
        body=PDF,
    )

    result = _download(transport, "https://example.com/paper", TraversalResultDownloader(tmp_path))

    assert is_download_traversal_result(result)
    assert r.is_traversal_content(result)
    download = result.download
    assert is_downloaded_content(download)
    assert download.wrote_bytes == download.should_write_bytes == len(PDF)
    assert download.file_name == str(tmp_path / "paper 05.pdf")
    assert Path(download.file_name).read_bytes() == PDF
    assert transport.responses[0].body_used
    assert result.provenance.remarks.startswith("TraversalResultDownloader(")


def test_download_generates_name_from_content_type(tmp_path: Path):
    transport = FakeTransport()
    transport.add(
        "https://example.com/img",
        headers={"Content-Type": "image/png", "Content-Length": "8"},
        body=b"\x89PNG\r\n\x1a\n",
    )

    result = _download(transport, "https://example.com/img", TraversalResultDownloader(tmp_path / "nested"))

    assert is_downloaded_content(result.download)
    path = Path(result.download.file_name)
    assert path.parent == tmp_path / "nested"
    assert path.suffix == ".png"
    assert path.read_bytes() == b"\x89PNG\r\n\x1a\n"


def test_download_size_mismatch_is_reported_not_raised(tmp_path: Path):
    transport = FakeTransport()
    transport.add(
        "https://example.com/short",
        headers={"Content-Type": "application/octet-stream", "Content-Length": "999"},
        body=b"truncated",
    )

    result = _download(transport, "https://example.com/short", TraversalResultDownloader(tmp_path))

    assert is_download_traversal_result(result)
    assert not is_downloaded_content(result.download)
    assert result.download.should_write_bytes == 999
    assert result.download.wrote_bytes == len(b"truncated")


def test_download_without_declared_length_uses_received_size(tmp_path: Path):
    transport = FakeTransport()
    transport.add("https://example.com/stream", headers={"Content-Type": "application/zip"}, body=b"PK\x03\x04")

    result = _download(transport, "https://example.com/stream", TraversalResultDownloader(tmp_path))

    assert result.download.should_write_bytes == 4
    assert result.download.wrote_bytes == 4
    assert is_downloaded_content(result.download)


def test_download_of_text_content_uses_decoded_body(tmp_path: Path):
    transport = FakeTransport()
    headers, body = html("<html><body>café</body></html>")
    transport.add("https://example.com/page", headers=headers, body=body)

    result = _download(transport, "https://example.com/page", TraversalResultDownloader(tmp_path))

    assert is_downloaded_content(result.download)
    assert result.download.should_write_bytes == len(body)
    assert Path(result.download.file_name).read_bytes() == body
    assert r.is_traversal_text_content(result.provenance.transformed_from)


def test_download_filename_cannot_escape_destination(tmp_path: Path):
    transport = FakeTransport()
    transport.add(
        "https://example.com/evil",
        headers={"Content-Disposition": "attachment; filename=../../etc/passwd", "Content-Length": "1"},
        body=b"x",
    )

    result = _download(transport, "https://example.com/evil", TraversalResultDownloader(tmp_path))

    assert Path(result.download.file_name) == tmp_path / "passwd"


def test_download_write_error_is_recorded(tmp_path: Path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file", encoding="utf-8")
    transport = FakeTransport()
    transport.add("https://example.com/a", headers={"Content-Length": "1"}, body=b"x")

    result = _download(transport, "https://example.com/a", TraversalResultDownloader(blocker))

    assert is_download_traversal_result(result)
    assert isinstance(result.download.error, OSError)
    assert result.download.wrote_bytes is None
    assert not is_downloaded_content(result.download)
    assert transport.responses[0].cancelled


def test_downloader_as_whole_result_enhancer(tmp_path: Path):
    transport = FakeTransport()
    transport.add("https://example.com/ok", headers={"Content-Length": "3"}, body=b"abc")
    transport.add("https://example.com/missing", status=404, body=b"")
    downloader = TraversalResultDownloader(tmp_path)

    ok = _download(transport, "https://example.com/ok", downloader, as_result_enhancer=True)
    missing = _download(transport, "https://example.com/missing", downloader, as_result_enhancer=True)

    assert is_downloaded_content(ok.download)
    assert r.is_invalid_http_status(missing)
    assert not is_download_traversal_result(missing)


def test_is_downloaded_content_predicate():
    assert is_downloaded_content(Download(file_name="f", should_write_bytes=3, wrote_bytes=3))
    assert not is_downloaded_content(Download(file_name="f", should_write_bytes=3, wrote_bytes=2))
    assert not is_downloaded_content(Download(file_name="f", should_write_bytes=None, wrote_bytes=2))
    assert not is_downloaded_content({"should_write_bytes": 1, "wrote_bytes": 1})


def test_temp_dir_downloader_honours_env(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("TRAVERSER_DOWNLOAD_DIR", str(tmp_path / "dl"))
    assert temp_dir_downloader().dest_path == tmp_path / "dl"

    monkeypatch.delenv("TRAVERSER_DOWNLOAD_DIR")
    assert temp_dir_downloader().dest_path.name == "traverser-downloads"
