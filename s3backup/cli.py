# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
s3backup CLI - Command-line interface.

    s3backup backup [--full]
    s3backup list
    s3backup restore KEY TARGET_DIR
    s3backup rotate
"""

import asyncio
import logging
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.table import Table

from s3backup.config import BackupConfig
from s3backup.env import load_config
from s3backup.exceptions import (
    ChainNotFoundError,
    ConfigurationError,
    RestoreError,
    StorageError,
)

app = typer.Typer(
    name="s3backup",
    help="Incremental tar backups to S3 with monthly full anchors and rotation",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

EXIT_FAILURE = 1
EXIT_CONFIG = 2


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


def _config(ctx: typer.Context) -> BackupConfig:
    try:
        return load_config(ctx.obj["config_path"])
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(EXIT_CONFIG)


@app.callback()
def main(
    ctx: typer.Context,
    config: Path = typer.Option(
        Path("config.yaml"), "--config", "-c", help="Path to the YAML configuration file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Back up folders to S3 and restore them."""
    _configure_logging(verbose)
    ctx.obj = {"config_path": config}


@app.command()
def backup(
    ctx: typer.Context,
    full: bool = typer.Option(False, "--full", help="Force full snapshots for every job"),
):
    """Perform an immediate backup and rotate old ones."""
    from s3backup.core import run_backup

    cfg = _config(ctx)
    result = asyncio.run(run_backup(cfg, force_full=full))

    for job in result.jobs:
        if job.ok:
            console.print(f"[green]✓[/green] {job.name}: {job.key} ({job.kind.value})")
        else:
            console.print(f"[red]✗[/red] {job.name}: {job.error}")

    if result.rotation is not None:
        console.print(
            f"Rotation: kept {result.rotation.kept_count}, "
            f"deleted {result.rotation.deleted_count}"
        )

    if not result.ok:
        err_console.print(f"[red]Completed with {len(result.errors)} error(s):[/red]")
        for error in result.errors:
            err_console.print(f"  - {error}")
        raise typer.Exit(EXIT_FAILURE)

    console.print("[green]Backup process completed successfully[/green]")


@app.command("list")
def list_command(ctx: typer.Context):
    """List backups in S3."""
    from s3backup.core import list_backups

    cfg = _config(ctx)
    try:
        artifacts = asyncio.run(list_backups(cfg))
    except StorageError as e:
        err_console.print(f"[red]Failed to list backups:[/red] {e}")
        raise typer.Exit(EXIT_FAILURE)

    table = Table(title=f"Available backups ({len(artifacts)})")
    table.add_column("Key", style="cyan")
    table.add_column("Job", style="magenta")
    table.add_column("Created (UTC)")
    table.add_column("Kind")
    table.add_column("Encrypted")

    for artifact in artifacts:
        table.add_row(
            artifact.key,
            artifact.name,
            artifact.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            artifact.kind.value,
            "yes" if artifact.encrypted else "no",
        )

    console.print(table)


@app.command()
def restore(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Backup key to restore"),
    target_dir: Path = typer.Argument(..., help="Directory to extract into"),
):
    """Restore a backup (and the chain it depends on) from S3."""
    from s3backup.core import restore_backup

    cfg = _config(ctx)
    try:
        result = asyncio.run(restore_backup(cfg, key, target_dir))
    except (ChainNotFoundError, RestoreError) as e:
        err_console.print(f"[red]Restore failed:[/red] {e}")
        raise typer.Exit(EXIT_FAILURE)

    for applied in result.restored_keys:
        console.print(f"[green]✓[/green] {applied}")
    console.print(f"[green]Restore completed successfully[/green] into {result.target_dir}")


@app.command()
def rotate(ctx: typer.Context):
    """Apply the retention policy without taking a backup."""
    from s3backup.core import rotate as run_rotation

    cfg = _config(ctx)
    result = asyncio.run(run_rotation(cfg))

    console.print(f"Kept {result.kept_count}, deleted {result.deleted_count}")
    if not result.ok:
        for error in result.errors:
            err_console.print(f"  - {error}")
        raise typer.Exit(EXIT_FAILURE)


if __name__ == "__main__":
    app()
