"""Command-line entry point for artsync."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import click

from .config import ConfigLoader, load_config
from .git import GitError, SyncManager


def _emit(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _finish(ctx: click.Context, result: dict) -> None:
    """Print a result and exit non-zero when it reports failure."""
    _emit(result)
    if not result.get("success", result.get("isValid", True)):
        ctx.exit(1)


@click.group()
@click.option(
    "--repo",
    "-r",
    type=click.Path(file_okay=False, path_type=Path),
    help="Path to the art repository (default: current directory)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to an artsync.yaml file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging output")
@click.pass_context
def main(
    ctx: click.Context, repo: Path | None, config_path: Path | None, verbose: bool
) -> None:
    """artsync - keep an art library in sync through git."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
    else:
        logging.basicConfig(level=logging.WARNING)

    if config_path:
        config = ConfigLoader(config_path.parent).load_file(config_path)
    else:
        config = load_config(repo)
    if repo:
        config.repo.path = str(repo.resolve())

    ctx.ensure_object(dict)
    ctx.obj["manager"] = SyncManager.from_config(config)


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show pending uploads and downloads."""
    manager: SyncManager = ctx.obj["manager"]
    try:
        _emit(manager.get_status().to_dict())
    except GitError as e:
        _emit({"success": False, "error": str(e)})
        ctx.exit(1)


@main.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Commit local changes, pull, then push."""
    manager: SyncManager = ctx.obj["manager"]
    _finish(ctx, manager.perform_full_sync().to_dict())


@main.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Pull remote changes if behind and the working set is clean."""
    manager: SyncManager = ctx.obj["manager"]
    _finish(ctx, manager.check_and_pull_if_behind().to_dict())


@main.command()
@click.pass_context
def verify(ctx: click.Context) -> None:
    """Check the repository's git setup."""
    manager: SyncManager = ctx.obj["manager"]
    _finish(ctx, manager.verify_configuration().to_dict())


@main.command()
@click.option("--limit", "-n", type=int, default=None, help="Show only the newest N")
@click.pass_context
def logs(ctx: click.Context, limit: int | None) -> None:
    """Show the sync history, newest first."""
    manager: SyncManager = ctx.obj["manager"]
    entries = manager.get_sync_logs()
    if limit is not None:
        entries = entries[:limit]
    _emit([entry.to_dict() for entry in entries])


@main.command("clear-logs")
@click.pass_context
def clear_logs(ctx: click.Context) -> None:
    """Delete the sync history."""
    manager: SyncManager = ctx.obj["manager"]
    manager.clear_sync_logs()
    _emit({"success": True})


@main.command()
@click.confirmation_option(prompt="Discard all local changes and match the remote?")
@click.pass_context
def reset(ctx: click.Context) -> None:
    """Discard local work and match the remote branch."""
    manager: SyncManager = ctx.obj["manager"]
    _finish(ctx, manager.reset_to_remote().to_dict())


@main.command("abort-merge")
@click.pass_context
def abort_merge(ctx: click.Context) -> None:
    """Abort an in-progress merge or rebase."""
    manager: SyncManager = ctx.obj["manager"]
    _finish(ctx, manager.abort_merge().to_dict())


if __name__ == "__main__":
    main()
