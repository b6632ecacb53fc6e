"""Init command implementation.

Writes the engine configuration file for a container.
"""

from pathlib import Path
from typing import Annotated

import typer

from confsync.cli.types import ExitCode, get_options
from confsync.core.config import (
    ConfigError,
    ContainerConfig,
    EngineConfig,
    RepositoryConfig,
    SnapshotBackendChoice,
    SnapshotConfig,
    save_config,
)
from confsync.core.paths import DEFAULT_REPO_DIR, get_config_path
from confsync.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Create the engine configuration file.",
    invoke_without_command=True,
)

_BACKENDS: tuple[SnapshotBackendChoice, ...] = ("auto", "zfs", "lvm", "btrfs", "file")


@app.callback(invoke_without_command=True)
def init(
    ctx: typer.Context,
    repo_url: Annotated[
        str,
        typer.Option(
            "--repo-url",
            help="Configuration repository URL (empty: use the local clone as-is).",
        ),
    ] = "",
    branch: Annotated[
        str,
        typer.Option("--branch", "-b", help="Tracked branch."),
    ] = "main",
    repo_path: Annotated[
        Path,
        typer.Option("--repo-path", help="Local clone directory."),
    ] = DEFAULT_REPO_DIR,
    configs_subdir: Annotated[
        str,
        typer.Option(
            "--configs-subdir",
            help="Directory inside the clone holding packages/, scripts/ and files/.",
        ),
    ] = "",
    user: Annotated[
        str,
        typer.Option("--user", "-u", help="Operator account (default: auto-detect)."),
    ] = "",
    snapshot_backend: Annotated[
        str,
        typer.Option(
            "--snapshot-backend",
            help="Snapshot backend: auto, zfs, lvm, btrfs or file.",
        ),
    ] = "auto",
    no_snapshots: Annotated[
        bool,
        typer.Option("--no-snapshots", help="Disable pre-sync snapshots."),
    ] = False,
    retention_days: Annotated[
        int,
        typer.Option("--retention-days", min=1, help="Snapshot retention in days."),
    ] = 7,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing config file."),
    ] = False,
) -> None:
    """Write the configuration file.

    Examples:
        confsync init --repo-url https://git.example.com/infra.git
        confsync init --repo-url URL --configs-subdir lxc/configs --user coder
        confsync init --repo-path /srv/configs --no-snapshots
    """
    if ctx.invoked_subcommand is not None:
        return

    config_path = get_options(ctx).config_path or get_config_path()

    if config_path.exists() and not force:
        print_error(f"Config already exists: {config_path}")
        print_info("Use --force to overwrite it.")
        raise typer.Exit(code=ExitCode.FAILED)

    if snapshot_backend not in _BACKENDS:
        print_error(
            f"Unknown snapshot backend '{snapshot_backend}'. Choose from: {', '.join(_BACKENDS)}"
        )
        raise typer.Exit(code=ExitCode.FAILED)

    try:
        config = EngineConfig(
            repository=RepositoryConfig(
                url=repo_url,
                branch=branch,
                path=repo_path,
                configs_subdir=configs_subdir,
            ),
            container=ContainerConfig(user=user),
            snapshots=SnapshotConfig(
                enabled="no" if no_snapshots else "auto",
                backend=snapshot_backend,  # type: ignore[arg-type]
                retention_days=retention_days,
            ),
        )
    except ValueError as e:
        print_error(f"Invalid configuration: {e}")
        raise typer.Exit(code=ExitCode.FAILED) from e

    try:
        saved = save_config(config, config_path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=ExitCode.FAILED) from e

    print_success(f"Config written: {saved}")
    if not repo_url:
        console.print(f"[muted]No repository URL set; {repo_path} is used as-is.[/muted]")
    console.print("[muted]Run 'confsync sync --dry-run' to preview the first sync.[/muted]")
