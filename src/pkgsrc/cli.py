"""
Main CLI for pkgsrc using Click.

Commands:
    search (s)     Search package names and descriptions
    install (i)    Build and install packages from the tree
    uninstall (u)  Remove installed packages
    reindex        Rebuild the index cache

Every command needs PKGSRCLOC (or pkgsrc.root in the config file) to
point at a pkgsrc checkout.
"""

import json
import sys
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any, Iterator

import click
import yaml
from pydantic import ValidationError

from .builder import (
    BuildStepError,
    PackageInstaller,
    PackageNotFoundError,
    ToolNotFoundError,
    UninstallError,
)
from .config import AppConfig, MissingRootError, load_config, require_root
from .indexer import (
    CacheCorruptError,
    DescriptionTooLargeError,
    IndexCache,
    PackageIndex,
    PackageRecord,
    TreeScanner,
    query,
)
from .logging import configure_logging

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_CONFIG_ERROR = 3
EXIT_NOT_FOUND = 4
EXIT_INTERRUPTED = 130

# Current version
_VERSION = "0.1.0"

COMMAND_ALIASES: dict[str, str] = {
    "s": "search",
    "i": "install",
    "u": "uninstall",
}


class AliasedGroup(click.Group):
    """Click group that also accepts the single-letter command aliases."""

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        return super().get_command(ctx, COMMAND_ALIASES.get(cmd_name, cmd_name))

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[str | None, click.Command | None, list[str]]:
        # Report the full command name, not the alias that was typed
        _, cmd, args = super().resolve_command(ctx, args)
        return (cmd.name if cmd else None), cmd, args


@click.group(cls=AliasedGroup, invoke_without_command=True)
@click.version_option(version=_VERSION, prog_name="pkgsrc")
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to the YAML configuration file",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Technical logging (-v info, -vv debug)",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    help="Only print results and errors",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write JSON logs to this file",
)
@click.pass_context
def main(
    ctx: click.Context,
    config: Path | None,
    verbose: int,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """pkgsrc - search, install and uninstall packages from a pkgsrc tree.

    The tree location is read from the PKGSRCLOC environment variable.
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(EXIT_USAGE)

    ctx.obj = {
        "config_path": config,
        "quiet": quiet,
        "cli_args": {
            "verbose": verbose or None,
            "log_file": log_file,
        },
    }


@main.command()
@click.argument("terms", nargs=-1)
@click.option(
    "--unique",
    is_flag=True,
    help="Print each package once even when several terms match it",
)
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Print results as a JSON array",
)
@click.pass_context
def search(ctx: click.Context, terms: tuple[str, ...], unique: bool, json_output: bool) -> None:
    """Search package names and descriptions.

    A package is printed for every term found (case-insensitively) in its
    name or description.
    """
    config, root = _load_settings(ctx, {"unique": unique})

    with _exit_on_error():
        index = _load_index(config, root)
        hits = query.search(index.records, terms, unique=config.search.unique)

        if json_output:
            click.echo(json.dumps([asdict(index[i]) for i in hits], indent=2))
            return

        for i in hits:
            _print_record(index[i])


@main.command()
@click.argument("packages", nargs=-1)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show the build commands without running them",
)
@click.option(
    "--make",
    help="Build tool to run in each package directory (default: bmake)",
)
@click.pass_context
def install(ctx: click.Context, packages: tuple[str, ...], dry_run: bool, make: str | None) -> None:
    """Install one or more packages.

    Each package is built with `make build`, `make install`, `make clean`
    and `make clean-depends`. The first failure stops the batch.
    """
    config, root = _load_settings(ctx, {"make": make})

    with _exit_on_error():
        index = _load_index(config, root)
        installer = PackageInstaller(
            root,
            make=config.build.make,
            uninstall_tool=config.build.uninstall,
            dry_run=dry_run,
        )
        installer.install(index, list(packages))


@main.command()
@click.argument("packages", nargs=-1)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show the removal commands without running them",
)
@click.pass_context
def uninstall(ctx: click.Context, packages: tuple[str, ...], dry_run: bool) -> None:
    """Uninstall one or more packages.

    The first failure stops the batch.
    """
    config, root = _load_settings(ctx, {})

    with _exit_on_error():
        installer = PackageInstaller(
            root,
            make=config.build.make,
            uninstall_tool=config.build.uninstall,
            dry_run=dry_run,
        )
        installer.uninstall(list(packages))


@main.command()
@click.pass_context
def reindex(ctx: click.Context) -> None:
    """Rebuild the index cache from a fresh scan of the tree.

    The cache is never refreshed on its own; run this after updating the
    pkgsrc checkout.
    """
    config, root = _load_settings(ctx, {})

    with _exit_on_error():
        cache = IndexCache(root, config.pkgsrc.cache_file)
        index = cache.rebuild(_scanner(config, root))

    click.echo(f"Indexed {len(index)} packages into {cache.path}")


# ── Helpers ───────────────────────────────────────────────────────────────


def _load_settings(ctx: click.Context, cli_args: dict[str, Any]) -> tuple[AppConfig, Path]:
    """Load configuration, configure logging and resolve the tree root.

    Exits with EXIT_CONFIG_ERROR on any configuration problem.
    """
    opts = ctx.obj or {}
    try:
        config = load_config(
            config_path=opts.get("config_path"),
            cli_args={**opts.get("cli_args", {}), **cli_args},
        )
    except (FileNotFoundError, ValidationError, yaml.YAMLError) as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    configure_logging(config.logging, quiet=opts.get("quiet", False))

    try:
        root = require_root(config)
    except MissingRootError as e:
        click.echo(str(e), err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    return config, root


def _scanner(config: AppConfig, root: Path) -> TreeScanner:
    return TreeScanner(
        root,
        descr_file=config.pkgsrc.descr_file,
        max_descr_bytes=config.pkgsrc.max_descr_bytes,
    )


def _load_index(config: AppConfig, root: Path) -> PackageIndex:
    cache = IndexCache(root, config.pkgsrc.cache_file)
    return cache.load_or_build(_scanner(config, root))


def _print_record(record: PackageRecord) -> None:
    click.echo(
        click.style(record.category, fg="cyan")
        + "/"
        + click.style(record.name, fg="bright_white")
    )
    click.echo(record.description)
    click.echo()


def _echo_step_output(stdout: str, stderr: str) -> None:
    if stdout:
        click.echo(stdout, nl=not stdout.endswith("\n"))
    if stderr:
        click.echo(stderr, err=True, nl=not stderr.endswith("\n"))


@contextmanager
def _exit_on_error() -> Iterator[None]:
    """Map domain errors to a message on stderr and an exit code."""
    try:
        yield
    except KeyboardInterrupt:
        click.echo("\nInterrupted.", err=True)
        sys.exit(EXIT_INTERRUPTED)
    except CacheCorruptError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("Run 'pkgsrc reindex' to rebuild it.", err=True)
        sys.exit(EXIT_FAILED)
    except DescriptionTooLargeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)
    except PackageNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_NOT_FOUND)
    except (BuildStepError, UninstallError) as e:
        _echo_step_output(e.result.stdout, e.result.stderr)
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)
    except ToolNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)
    except OSError as e:
        click.echo(f"Filesystem error: {e}", err=True)
        sys.exit(EXIT_FAILED)
