from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from dotenv import load_dotenv

from .workflows.download import (
    TraversalResultDownloader,
    is_download_traversal_result,
    is_downloaded_content,
    temp_dir_downloader,
)
from .workflows.json_fetch import json_traverse_options, safe_fetch_json, type_guard, type_guard_array_of
from .workflows.results import TraversalResult, is_traversal_content, provenance_chain, terminal_result
from .workflows.traverse import TraverseContext, default_traverse_options, traverse

app = typer.Typer(add_help_option=False, no_args_is_help=False)


def _minimal_help() -> str:
    return """Traverser

Usage:
  traverser get <url> [--label <TEXT>] [--json]
  traverser download <url> [--out <DIR>] [--json]
  traverser json <url> [--keys a,b] [--array]

Common options:
  --json          Print the classified result as JSON.
  --verbose       Log transport calls and classifications to stderr.

Important env vars:
  TRAVERSER_TIMEOUT
  TRAVERSER_MAX_REDIRECT_HOPS
  TRAVERSER_USER_AGENT
  TRAVERSER_DOWNLOAD_DIR
"""


def _parse_keys(value: str) -> List[str]:
    return [token.strip() for token in (value or "").split(",") if token.strip()]


def _describe(result: TraversalResult) -> List[str]:
    lines = []
    for step in reversed(provenance_chain(result)):
        remarks = step.provenance.remarks if step.provenance else None
        lines.append(f"{step.kind.value}" + (f" ({remarks})" if remarks else ""))
    payload = result.to_dict()
    for key in ("terminal_url", "status", "content_type", "content_redirect_url", "error"):
        if key in payload:
            lines.append(f"{key}: {payload[key]}")
    return lines


def _emit(result: TraversalResult, json_out: bool) -> None:
    if json_out:
        sys.stdout.write(json.dumps(result.to_dict(), ensure_ascii=False) + "\n")
        return
    for line in _describe(result):
        typer.echo(line)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    help: bool = typer.Option(False, "--help", "-h", is_eager=True, help="Show minimal help."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if help or ctx.invoked_subcommand is None:
        typer.echo(_minimal_help())
        raise typer.Exit(code=0)


@app.command("get", add_help_option=True)
def get_url(
    url: str = typer.Argument(..., help="URL to traverse."),
    label: Optional[str] = typer.Option(None, "--label", help="Label carried on the result."),
    json_out: bool = typer.Option(False, "--json", help="Print result JSON to stdout only."),
) -> None:
    """Traverse a URL and print its classification."""
    options = default_traverse_options()
    result = asyncio.run(traverse(TraverseContext(request=url, options=options, label=label)))
    _emit(result, json_out)
    raise typer.Exit(code=0 if is_traversal_content(terminal_result(result)) else 1)


@app.command("download", add_help_option=True)
def download_url(
    url: str = typer.Argument(..., help="URL to download."),
    out: Optional[Path] = typer.Option(None, "--out", help="Destination directory."),
    json_out: bool = typer.Option(False, "--json", help="Print result JSON to stdout only."),
) -> None:
    """Download a URL and verify the written byte count."""
    downloader = TraversalResultDownloader(out) if out else temp_dir_downloader()
    options = default_traverse_options(content_enhancers=[downloader])
    result = asyncio.run(traverse(TraverseContext(request=url, options=options)))
    _emit(result, json_out)
    final = terminal_result(result)
    ok = is_download_traversal_result(final) and is_downloaded_content(final.download)
    if ok and not json_out:
        typer.echo(f"downloaded: {final.download.file_name} ({final.download.wrote_bytes} bytes)")
    raise typer.Exit(code=0 if ok else 1)


@app.command("json", add_help_option=True)
def json_url(
    url: str = typer.Argument(..., help="URL returning JSON."),
    keys: str = typer.Option("", "--keys", help="Comma-separated keys every object must carry."),
    array: bool = typer.Option(False, "--array", help="Expect a JSON array of such objects."),
) -> None:
    """Fetch JSON and validate its shape."""
    required = _parse_keys(keys)
    guard = type_guard_array_of(*required) if array else type_guard(*required)
    failures: Dict[str, Any] = {}

    def on_guard_failure(value: Any) -> None:
        failures["guard"] = value
        return None

    def on_invalid_result(result: TraversalResult) -> None:
        failures["invalid"] = result
        return None

    value = asyncio.run(
        safe_fetch_json(url, json_traverse_options(guard, on_guard_failure), on_invalid_result)
    )
    if "invalid" in failures:
        typer.echo(json.dumps(failures["invalid"].to_dict(), ensure_ascii=False), err=True)
        raise typer.Exit(code=1)
    if "guard" in failures:
        typer.echo(f"JSON did not match the expected shape (keys: {', '.join(required) or '-'})", err=True)
        raise typer.Exit(code=1)
    sys.stdout.write(json.dumps(value, ensure_ascii=False) + "\n")
    raise typer.Exit(code=0)


if __name__ == "__main__":  # pragma: no cover
    app()
