from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from apiscout.config import AUTO_FRAMEWORK, ScanConfig, load_config
from apiscout.emit.collection import build_collection, write_collection
from apiscout.emit.sync import sync_collection
from apiscout.errors import ApiScoutError
from apiscout.extractors.frameworks import FRAMEWORK_TAGS
from apiscout.orchestrator.pipeline import discover
from apiscout.repo.acquire import acquire
from apiscout.repo.framework_detector import detect_js_framework
from apiscout.repo.scanner import scan_source_files

app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()

_FRAMEWORK_HELP = f"Framework: {'|'.join(FRAMEWORK_TAGS + (AUTO_FRAMEWORK,))}"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _fail(exc: ApiScoutError) -> typer.Exit:
    console.print(f"[bold red]error:[/bold red] {escape(str(exc))}", highlight=False)
    return typer.Exit(code=1)


def _local_dir(directory: str) -> Path:
    path = Path(directory).expanduser().resolve()
    if not path.exists():
        raise typer.BadParameter(f"Directory does not exist: {path}")
    if not path.is_dir():
        raise typer.BadParameter(f"Not a directory: {path}")
    return path


@app.command()
def generate(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="JSON config file"),
    directory: Optional[str] = typer.Option(None, "--dir", help="Directory to scan"),
    framework: Optional[str] = typer.Option(None, help=_FRAMEWORK_HELP),
    instance: Optional[str] = typer.Option(None, help="Route-registration object name (app, router, ...)"),
    base_url: Optional[str] = typer.Option(None, help="Base URL prefixed to every request"),
    out: Optional[str] = typer.Option(None, help="Collection output file"),
    repo_url: Optional[str] = typer.Option(None, help="Remote repository to scan instead of a local dir"),
    sync: bool = typer.Option(True, "--sync/--no-sync", help="Push to the workspace when credentials are set"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Discover endpoints and write a Postman collection."""
    _setup_logging(verbose)
    try:
        cfg = load_config(config).with_overrides(
            directory_to_scan=directory,
            framework=framework,
            object_instance=instance,
            base_url=base_url,
            postman_collection_file=out,
            repo_url=repo_url,
        )
        with acquire(cfg) as root:
            result = discover(root, cfg)

        collection = build_collection(result.records, cfg.base_url, cfg.collection_name)
        out_path = Path(cfg.postman_collection_file).expanduser()
        write_collection(collection, out_path)

        outcome = None
        if sync and cfg.postman_api_key and cfg.workspace_id:
            outcome = sync_collection(collection, cfg.postman_api_key, cfg.workspace_id)
    except ApiScoutError as exc:
        raise _fail(exc) from exc

    console.print(f"[bold green]apiscout[/bold green] generate: {cfg.repo_url or root}")
    console.print(
        f"Framework: [bold]{result.framework}[/bold] (confidence={result.confidence:.2f})"
    )
    console.print(f"Source files scanned: {result.files_scanned} (skipped: {result.files_skipped})")
    console.print(f"Endpoints found: [bold]{len(result.records)}[/bold] in {len(result.groups)} resource(s)")
    for warning in result.warnings:
        console.print(f"[yellow]warning:[/yellow] {warning}")
    console.print(f"Collection saved to: {out_path}")
    if outcome is not None:
        console.print(f"Workspace sync: {outcome.action} collection '{outcome.name}'")
    elif sync and not (cfg.postman_api_key and cfg.workspace_id):
        console.print("Workspace sync skipped (no API key / workspace id).")


@app.command()
def endpoints(
    directory: str = typer.Argument(..., help="Directory to scan"),
    framework: str = typer.Option("express", help=_FRAMEWORK_HELP),
    instance: str = typer.Option("app", help="Route-registration object name"),
    method: Optional[str] = typer.Option(None, help="Filter by HTTP method (GET/POST/...)"),
    path_contains: Optional[str] = typer.Option(None, help="Substring match on path"),
    format: str = typer.Option("table", help="Output format: table|json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """List discovered endpoints."""
    _setup_logging(verbose)
    root = _local_dir(directory)
    fmt = format.lower().strip()
    if fmt not in ("table", "json"):
        raise typer.BadParameter("format must be one of: table, json")

    try:
        cfg = ScanConfig().with_overrides(framework=framework, object_instance=instance)
        result = discover(root, cfg)
    except ApiScoutError as exc:
        raise _fail(exc) from exc

    records = result.records
    if method:
        records = [r for r in records if r.method == method.upper()]
    if path_contains:
        records = [r for r in records if path_contains in r.path]

    if fmt == "json":
        typer.echo(json.dumps([r.model_dump() for r in records], indent=2))
        return

    console.print(f"[bold]Endpoints:[/bold] {len(records)} ({result.framework})")
    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("HANDLER")
    table.add_column("FILE:LINE", no_wrap=True)

    for r in records:
        table.add_row(r.method, r.path, r.handler_name or "-", f"{r.source_file}:{r.line}")

    console.print(table)


@app.command()
def detect(
    directory: str = typer.Argument(..., help="Directory to inspect"),
) -> None:
    """Guess which framework the tree uses."""
    root = _local_dir(directory)
    try:
        files = scan_source_files(root)
    except ApiScoutError as exc:
        raise _fail(exc) from exc
    framework, confidence = detect_js_framework(files)
    console.print(f"Detected framework: [bold]{framework}[/bold] (confidence={confidence:.2f})")
    console.print(f"Source files scanned: {len(files)}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
