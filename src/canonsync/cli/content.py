"""
canonsync CLI - content commands.

check   load and canonicalize a content tree, reporting every failure
format  canonicalize and write formatted files back
plan    diff canonical content against the last recorded sync
"""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from canonsync.cli.errors import (
    ExitCode,
    print_content_dir_not_found_error,
    print_content_error,
    print_error,
)
from canonsync.core.config import BatchPolicy, CanonsyncConfig, load_config
from canonsync.core.content.errors import ContentError
from canonsync.core.content.loader import ContentLoader, LoadReport
from canonsync.core.sync import Collection, MetadataStore, SyncPlan

console = Console()


def _config() -> CanonsyncConfig:
    try:
        return load_config(use_cache=False)
    except ValueError as e:
        print_error(
            "Invalid configuration",
            reason=str(e),
            solution="fix .canonsync.json or the CANONSYNC_* environment variables",
        )
        raise typer.Exit(ExitCode.USER_ERROR)


def _content_root(root: Path | None, config: CanonsyncConfig) -> Path:
    path = root if root is not None else Path(config.sync.content_dir)
    if not path.is_dir():
        print_content_dir_not_found_error(str(path))
        raise typer.Exit(ExitCode.USER_ERROR)
    return path


def _print_failures(report: LoadReport) -> None:
    table = Table(title="Failures")
    table.add_column("Collection", style="cyan")
    table.add_column("Key")
    table.add_column("Error", style="red")
    for failure in report.failures:
        table.add_row(failure.collection, failure.key, failure.message)
    console.print(table)


def _print_loaded(report: LoadReport) -> None:
    content = report.content
    console.print(
        f"[green]✓[/green] {len(content.courses)} courses, "
        f"{len(content.questions())} questions, "
        f"{len(content.bundles)} bundles, {len(content.icons)} icons"
    )
    for record in report.renames:
        console.print(f"  [dim]renamed {record.old_reference} → {record.new_reference}[/dim]")


def check(
    root: Path | None = typer.Argument(
        None,
        help="Content root (defaults to sync.content_dir)",
    ),
) -> None:
    """
    Load and canonicalize content, reporting every failure.

    Exits with code 3 when any file fails to parse or validate.

    Examples:
        canonsync check
        canonsync check path/to/content
    """
    config = _config()
    loader = ContentLoader.from_config(config, root=_content_root(root, config))
    loader.policy = BatchPolicy.BEST_EFFORT
    report = loader.load()

    _print_loaded(report)
    if not report.ok:
        _print_failures(report)
        raise typer.Exit(ExitCode.VALIDATION_FAILED)


def format_content(
    root: Path | None = typer.Argument(
        None,
        help="Content root (defaults to sync.content_dir)",
    ),
) -> None:
    """
    Canonicalize content and write formatted files back.

    Files are only rewritten when their canonical form differs. Files that
    fail are left untouched and reported.

    Examples:
        canonsync format
        canonsync format path/to/content
    """
    config = _config()
    loader = ContentLoader.from_config(config, root=_content_root(root, config), write_back=True)
    loader.policy = BatchPolicy.BEST_EFFORT
    report = loader.load()

    for path in report.written:
        console.print(f"[green]✓[/green] Formatted {path}")
    if not report.written:
        console.print("[blue]Nothing to format[/blue]")

    if not report.ok:
        _print_failures(report)
        raise typer.Exit(ExitCode.VALIDATION_FAILED)


def _print_plan(plan: SyncPlan) -> None:
    table = Table(title="Sync Plan")
    table.add_column("Collection", style="cyan")
    table.add_column("Sync", justify="right")
    table.add_column("Delete", justify="right")
    for collection in Collection:
        diff = plan[collection]
        table.add_row(collection.value, str(len(diff.for_sync)), str(len(diff.for_deletion)))
    console.print(table)


def plan(
    root: Path | None = typer.Argument(
        None,
        help="Content root (defaults to sync.content_dir)",
    ),
    metadata: Path | None = typer.Option(
        None,
        "--metadata",
        "-m",
        help="Recorded sync metadata (defaults to sync.metadata_path)",
    ),
    write_metadata: bool = typer.Option(
        False,
        "--write-metadata",
        help="Record the new fingerprint snapshot after planning",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the plan as JSON",
    ),
) -> None:
    """
    Plan an incremental sync against the recorded metadata.

    Every collection is diffed on its own: new or changed entities are listed
    for sync, recorded keys that disappeared are listed for deletion. No plan
    is printed while any content file fails to load.

    Examples:
        canonsync plan
        canonsync plan --json
        canonsync plan content --metadata build/metadata.json --write-metadata
    """
    config = _config()
    loader = ContentLoader.from_config(config, root=_content_root(root, config))
    store = MetadataStore(metadata if metadata is not None else Path(config.sync.metadata_path))

    try:
        report = loader.load()
    except ContentError as e:
        print_content_error(e)
        raise typer.Exit(ExitCode.VALIDATION_FAILED)
    except OSError as e:
        print_error("Could not read content", reason=str(e))
        raise typer.Exit(ExitCode.VALIDATION_FAILED)

    if not report.ok:
        _print_failures(report)

    try:
        sync_plan = report.sync_plan(store.load())
    except ContentError as e:
        print_content_error(e)
        raise typer.Exit(ExitCode.VALIDATION_FAILED)

    if as_json:
        output = {
            collection.value: {
                "sync": list(sync_plan[collection].for_sync),
                "delete": sync_plan[collection].for_deletion,
            }
            for collection in Collection
        }
        typer.echo(json.dumps(output, indent=2))
    else:
        _print_plan(sync_plan)
        if sync_plan.is_empty:
            console.print("[green]✓[/green] Everything is in sync")

    if write_metadata:
        store.save(sync_plan.metadata)
        if not as_json:
            console.print(f"[green]✓[/green] Recorded metadata in {store.path}")
