"""Command-line interface for studytracker backups.

Built with Typer for commands and Rich for output.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .auth import UserSession
from .backup import BackupExporter, BatchedImporter, ImportResult, parse_backup, serialize
from .config import get_config
from .db import get_db
from .errors import StudyTrackerError
from .sync import RemoteSyncClient

# Create the main app
app = typer.Typer(
    name="studytracker",
    help="Back up, restore and sync your study data.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
backup_app = typer.Typer(help="Export and import local backup files.")
app.add_typer(backup_app, name="backup")

drive_app = typer.Typer(help="Keep backups in Google Drive.")
app.add_typer(drive_app, name="drive")

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def print_import_result(result: ImportResult) -> None:
    """Summarize an import, listing per-collection failures."""
    console.print(
        f"Imported [bold]{result.imported_documents}[/bold] of "
        f"{result.total_documents} documents"
    )
    if result.errors:
        print_warning(f"{len(result.errors)} collection(s) had problems")
        for error in result.errors:
            console.print(f"  [red]- {error}[/red]")


def _sync_client() -> RemoteSyncClient:
    return RemoteSyncClient()


def _exporter() -> BackupExporter:
    return BackupExporter(get_db(), UserSession.from_config())


def _importer(show_progress: bool = True) -> BatchedImporter:
    return BatchedImporter(get_db(), UserSession.from_config(), show_progress=show_progress)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Back up, restore and sync your study data."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.command()
def version() -> None:
    """Show the installed version."""
    console.print(f"studytracker {__version__}")


# ============================================================================
# Local Backup Commands
# ============================================================================


@backup_app.command("export")
def backup_export(
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output file path (default: <prefix>_<date>.json)"
    ),
) -> None:
    """Export your data to a backup file."""
    exporter = _exporter()

    try:
        document = exporter.build_document()
    except StudyTrackerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if output is None:
        output = Path(f"{get_config().backup_prefix}_{document.metadata.timestamp[:10]}.json")

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(serialize(document), encoding="utf-8")

    print_success(f"Exported {document.total_records} records to {output}")


@backup_app.command("import")
def backup_import(
    file: Path = typer.Argument(..., help="Backup file to restore"),
    overwrite: bool = typer.Option(
        False, "--overwrite", help="Delete existing subjects and progress first"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
) -> None:
    """Restore data from a backup file."""
    if not file.exists():
        print_error(f"File not found: {file}")
        raise typer.Exit(1)

    if overwrite and not yes:
        typer.confirm("This deletes your existing subjects and progress. Continue?", abort=True)

    try:
        result = _importer().import_user_data(file.read_text(encoding="utf-8"), overwrite=overwrite)
    except StudyTrackerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_import_result(result)
    if not result.success:
        raise typer.Exit(1)


@backup_app.command("inspect")
def backup_inspect(
    file: Path = typer.Argument(..., help="Backup file to inspect"),
) -> None:
    """Show what a backup file contains without restoring it."""
    if not file.exists():
        print_error(f"File not found: {file}")
        raise typer.Exit(1)

    try:
        document = parse_backup(file.read_text(encoding="utf-8"))
    except StudyTrackerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    meta = document.metadata
    console.print(
        Panel(
            f"User: {meta.user_id}\nCreated: {meta.timestamp}\nVersion: {meta.version}",
            title=str(file.name),
        )
    )

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Collection", style="cyan")
    table.add_column("Records", justify="right")
    for name, count in document.record_counts().items():
        table.add_row(name, str(count))
    console.print(table)


# ============================================================================
# Google Drive Commands
# ============================================================================


@drive_app.command("sign-in")
def drive_sign_in() -> None:
    """Sign in to Google Drive."""
    config = get_config()
    if not config.has_drive_config():
        print_warning("Set GOOGLE_DRIVE_CLIENT_ID and GOOGLE_DRIVE_CLIENT_SECRET to sign in.")

    client = _sync_client()
    try:
        client.sign_in()
    except StudyTrackerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success("Signed in to Google Drive")


@drive_app.command("sign-out")
def drive_sign_out() -> None:
    """Sign out of Google Drive."""
    client = _sync_client()
    try:
        client.initialize()
        client.sign_out()
    except StudyTrackerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success("Signed out of Google Drive")


@drive_app.command("list")
def drive_list() -> None:
    """List backups stored in Google Drive."""
    client = _sync_client()
    try:
        backups = client.list_backups()
    except StudyTrackerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not backups:
        print_info("No backups found in Google Drive.")
        return

    table = Table(title="Drive Backups", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Modified", style="green")
    table.add_column("Size", justify="right")
    table.add_column("ID", style="dim")

    for descriptor in backups:
        table.add_row(
            descriptor.name,
            descriptor.modified_time.strftime("%Y-%m-%d %H:%M"),
            descriptor.size_human,
            descriptor.id,
        )

    console.print(table)


@drive_app.command("upload")
def drive_upload(
    name: Optional[str] = typer.Option(
        None, "--name", "-n", help="Remote file name (default: <prefix>_<today>.json)"
    ),
) -> None:
    """Back up your data to Google Drive."""
    client = _sync_client()
    try:
        descriptor = client.backup(_exporter(), file_name=name)
    except StudyTrackerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Backed up to Google Drive as {descriptor.name}")


@drive_app.command("restore")
def drive_restore(
    file_id: Optional[str] = typer.Option(
        None, "--file-id", "-f", help="Drive file ID (default: latest backup)"
    ),
    overwrite: bool = typer.Option(
        False, "--overwrite", help="Delete existing subjects and progress first"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
) -> None:
    """Restore your data from a Google Drive backup."""
    if overwrite and not yes:
        typer.confirm("This deletes your existing subjects and progress. Continue?", abort=True)

    client = _sync_client()
    try:
        result = client.restore(_importer(), file_id=file_id, overwrite=overwrite)
    except StudyTrackerError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_import_result(result)
    if not result.success:
        raise typer.Exit(1)


@drive_app.command("prune")
def drive_prune(
    keep: Optional[int] = typer.Option(
        None, "--keep", "-k", help="Number of newest backups to keep (default from config)"
    ),
) -> None:
    """Delete old backups from Google Drive."""
    if keep is None:
        keep = get_config().backup_retention

    client = _sync_client()
    try:
        deleted = client.prune_backups(keep)
    except (StudyTrackerError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not deleted:
        print_info(f"Nothing to prune ({keep} newest kept).")
        return

    for descriptor in deleted:
        console.print(f"  [dim]- {descriptor.name}[/dim]")
    print_success(f"Deleted {len(deleted)} old backup(s)")


if __name__ == "__main__":
    app()
