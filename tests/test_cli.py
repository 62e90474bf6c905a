import json
from pathlib import Path

from typer.testing import CliRunner

from traverser import cli
from traverser.workflows import json_fetch
from traverser.workflows.traverse import TraverseSettings, default_traverse_options

from fakes import FakeTransport, html

runner = CliRunner()


def _patch_transport(monkeypatch, transport):
    def options(**kwargs):
        kwargs.setdefault("settings", TraverseSettings())
        return default_traverse_options(transport=transport, **kwargs)

    monkeypatch.setattr(cli, "default_traverse_options", options)
    monkeypatch.setattr(json_fetch, "default_traverse_options", options)


def test_no_command_prints_minimal_help():
    result = runner.invoke(cli.app, [])
    assert result.exit_code == 0
    assert "traverser get <url>" in result.output


def test_get_prints_json_summary(monkeypatch):
    transport = FakeTransport()
    headers, body = html("<p>hi</p>")
    transport.add("https://example.com/", headers=headers, body=body)
    _patch_transport(monkeypatch, transport)

    result = runner.invoke(cli.app, ["get", "https://example.com/?utm_source=cli", "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["kind"] == "text_content"
    assert payload["terminal_url"] == "https://example.com/"


def test_get_exit_code_for_invalid_status(monkeypatch):
    transport = FakeTransport()
    transport.add("https://example.com/gone", status=410)
    _patch_transport(monkeypatch, transport)

    result = runner.invoke(cli.app, ["get", "https://example.com/gone"])

    assert result.exit_code == 1
    assert "invalid_http_status" in result.output


def test_download_command(monkeypatch, tmp_path: Path):
    transport = FakeTransport()
    transport.add(
        "https://example.com/report",
        headers={"Content-Disposition": "attachment; filename=report.pdf", "Content-Length": "4"},
        body=b"%PDF",
    )
    _patch_transport(monkeypatch, transport)

    result = runner.invoke(cli.app, ["download", "https://example.com/report", "--out", str(tmp_path)])

    assert result.exit_code == 0
    assert (tmp_path / "report.pdf").read_bytes() == b"%PDF"
    assert "downloaded:" in result.output


def test_json_command_guard_failure(monkeypatch):
    transport = FakeTransport()
    transport.add("https://api.example.com/x", headers={"Content-Type": "application/json"}, body=b'{"id": 1}')
    _patch_transport(monkeypatch, transport)

    ok = runner.invoke(cli.app, ["json", "https://api.example.com/x", "--keys", "id"])
    bad = runner.invoke(cli.app, ["json", "https://api.example.com/x", "--keys", "name"])

    assert ok.exit_code == 0
    assert json.loads(ok.output) == {"id": 1}
    assert bad.exit_code == 1
