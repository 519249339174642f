"""Static package metadata and layered-configuration identifiers.

The LAYEREDCONF_* constants decide where :mod:`lib_layered_config` looks for
application, host and user configuration files on each platform.
"""

from __future__ import annotations

name = "jsproj_dep_analyse"
title = "Dependency update analysis for JavaScript workspaces and monorepos"
version = "0.1.0"
homepage = "https://github.com/bitranox/jsproj_dep_analyse"
author = "bitranox"
author_email = "bitranox@gmail.com"
shell_command = "jsproj-dep-analyse"

LAYEREDCONF_VENDOR = "bitranox"
LAYEREDCONF_APP = "jsproj-dep-analyse"
LAYEREDCONF_SLUG = "jsproj-dep-analyse"


def print_info() -> None:
    """Print the summarised metadata block."""
    fields = [
        ("name", name),
        ("title", title),
        ("version", version),
        ("homepage", homepage),
        ("author", author),
        ("author_email", author_email),
        ("shell_command", shell_command),
    ]
    pad = max(len(label) for label, _ in fields)
    lines = [f"Info for {name}:", ""]
    lines.extend(f"    {label.ljust(pad)} = {value}" for label, value in fields)
    print("\n".join(lines))


__all__ = [
    "LAYEREDCONF_APP",
    "LAYEREDCONF_SLUG",
    "LAYEREDCONF_VENDOR",
    "print_info",
]
