"""Command-line interface.

Purpose
-------
Expose checks, updates, cache maintenance and configuration display as
``jsproj-dep-analyse`` sub-commands. All logic lives in the library; this
module parses arguments and prints results.

Contents
--------
* :func:`cli` – click group with ``check``, ``update``, ``cache``, ``config``
  and ``info`` commands
* :func:`main` – console-script entry point
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __init__conf__
from .checker import DependencyChecker, write_updates_json
from .config import UpdateConfig, get_update_config
from .config_show import display_config
from .errors import ConfigurationError
from .models import UpdateCandidate, UpdateResult

_PATH_ARGUMENT = click.argument(
    "path",
    required=False,
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)


def _load_config(path: Path) -> UpdateConfig:
    try:
        return get_update_config(start_dir=str(path))
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc


def _echo_candidates(title: str, candidates: list[UpdateCandidate]) -> None:
    click.echo(f"{title} ({len(candidates)}):")
    for candidate in candidates:
        installed = f" (installed {candidate.installed_version})" if candidate.installed_version else ""
        click.echo(f"  {candidate.name} {candidate.current_version}{installed} → {candidate.new_version}")


def _echo_result(result: UpdateResult) -> None:
    if result.is_empty:
        click.echo("All dependencies are up to date.")
        return
    _echo_candidates("Updatable", result.updatable)
    _echo_candidates("Breaking changes", result.breaking_changes)


@click.group()
@click.version_option(__init__conf__.version, prog_name=__init__conf__.shell_command)
@click.option("-v", "--verbose", count=True, help="Increase log output (-v info, -vv debug).")
def cli(verbose: int) -> None:
    """Detect outdated dependencies in JavaScript projects and monorepos."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@cli.command()
@_PATH_ARGUMENT
@click.option(
    "--json",
    "json_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write the result to this JSON file.",
)
@click.option("--no-cache", is_flag=True, help="Do not read or write the version cache.")
def check(path: Path, json_file: Path | None, no_cache: bool) -> None:
    """Report available updates for the project at PATH."""
    checker = DependencyChecker(config=_load_config(path), use_cache=not no_cache)
    try:
        result = checker.check(path)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc

    _echo_result(result)
    for candidate in result.breaking_changes:
        if candidate.migration_instructions:
            click.echo(f"\n{candidate.migration_instructions}")
    if json_file is not None:
        write_updates_json(result, json_file)


@cli.command()
@_PATH_ARGUMENT
def update(path: Path) -> None:
    """Apply all non-breaking updates to the project at PATH."""
    checker = DependencyChecker(config=_load_config(path))
    try:
        applied = checker.update(path)
    except (ConfigurationError, OSError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc

    if not applied:
        click.echo("Nothing to update.")
        return
    for candidate in applied:
        click.echo(f"Updated {candidate.name} {candidate.current_version} → {candidate.new_version}")


@cli.group()
def cache() -> None:
    """Inspect or maintain the version cache."""


@cache.command("stats")
@_PATH_ARGUMENT
def cache_stats(path: Path) -> None:
    """Show entry count and size of the cache."""
    version_cache = DependencyChecker(config=_load_config(path)).version_cache(path)
    stats = version_cache.stats()
    click.echo(f"Cache file: {version_cache.cache_file}")
    click.echo(f"Entries:    {stats.entry_count}")
    click.echo(f"Size:       {stats.total_size_bytes} bytes")


@cache.command("clean")
@_PATH_ARGUMENT
def cache_clean(path: Path) -> None:
    """Remove expired cache entries."""
    removed = DependencyChecker(config=_load_config(path)).version_cache(path).clean_expired()
    click.echo(f"Removed {removed} expired entries.")


@cache.command("clear")
@_PATH_ARGUMENT
def cache_clear(path: Path) -> None:
    """Delete the whole cache."""
    DependencyChecker(config=_load_config(path)).version_cache(path).clear()
    click.echo("Cache cleared.")


@cli.command("config")
@click.option("--format", "output_format", type=click.Choice(["human", "json"]), default="human")
@click.option("--section", default=None, help="Only show this section.")
@click.option("--effective", is_flag=True, help="Show the validated update policy with overrides applied.")
def config_command(output_format: str, section: str | None, effective: bool) -> None:
    """Show the merged configuration."""
    try:
        display_config(format=output_format, section=section, effective=effective)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
def info() -> None:
    """Print package metadata."""
    __init__conf__.print_info()


def main() -> None:
    """Console-script entry point."""
    cli(prog_name=__init__conf__.shell_command)


__all__ = [
    "cli",
    "main",
]
