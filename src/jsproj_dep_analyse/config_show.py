"""Configuration display functionality for the CLI config command.

Purpose
-------
Print the merged configuration, or the effective update policy after
validation and environment overrides, in human-readable or JSON form.

Contents
--------
* :func:`display_config` – displays configuration in the requested format

System Role
-----------
The CLI command delegates here for all formatting so the command layer only
parses arguments.
"""

from __future__ import annotations

import json
from typing import Any, cast

import click

from .config import get_config, get_update_config


def _format_value(value: Any) -> str:
    """Format a configuration value for human-readable display."""
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _display_section_human(section_name: str, section_data: Any) -> None:
    click.echo(f"\n[{section_name}]")
    if not isinstance(section_data, dict):
        click.echo(f"  {section_data}")
        return
    for key, value in cast(dict[str, Any], section_data).items():
        click.echo(f"  {key} = {_format_value(value)}")


def _load_sections(*, effective: bool) -> dict[str, Any]:
    if effective:
        return {"updates": get_update_config().to_mapping()}
    return dict(get_config().as_dict())


def _select(sections: dict[str, Any], section: str | None) -> dict[str, Any]:
    if section is None:
        return sections
    section_data = sections.get(section)
    if not section_data:
        click.echo(f"Section '{section}' not found or empty", err=True)
        raise SystemExit(1)
    return {section: section_data}


def display_config(*, format: str = "human", section: str | None = None, effective: bool = False) -> None:
    """Display the current configuration.

    Args:
        format: ``"human"`` for TOML-like output or ``"json"``.
        section: Only display this section.
        effective: Display the validated ``[updates]`` policy with native
            environment overrides applied instead of the raw merged layers.

    Side Effects:
        Writes to stdout via click.echo(). Raises SystemExit(1) if the
        requested section does not exist.

    Example:
        >>> display_config(section="updates")  # doctest: +SKIP
        <BLANKLINE>
        [updates]
          default_update_strategy = "major"
          allow_major_updates = false
    """
    selected = _select(_load_sections(effective=effective), section)

    if format.lower() == "json":
        click.echo(json.dumps(selected, indent=2))
        return
    for section_name, section_data in selected.items():
        _display_section_human(section_name, section_data)


__all__ = [
    "display_config",
]
