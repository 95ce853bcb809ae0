"""
Kindle CLI - styled output helpers built on Click.

    success(), error(), warning(), dim(), bold()
    kv()      - aligned key-value pair
    badge()   - inline status badge  [✓ ready]  [✗ failed]
"""

from __future__ import annotations

import click


_CHECK = "\u2713"     # ✓
_CROSS = "\u2717"     # ✗
_CIRCLE = "\u25cb"    # ○
_ARROW = "\u2192"     # →


def success(message: str) -> None:
    """Print success message in green."""
    click.echo(click.style(message, fg="green"))


def error(message: str) -> None:
    """Print error message in red (to stderr)."""
    click.echo(click.style(message, fg="red"), err=True)


def warning(message: str) -> None:
    """Print warning message in yellow."""
    click.echo(click.style(message, fg="yellow"))


def dim(message: str) -> None:
    """Print dimmed message."""
    click.echo(click.style(message, dim=True))


def bold(message: str) -> str:
    """Return bold-styled text (does not echo)."""
    return click.style(message, bold=True)


def kv(key: str, value: str, *, key_width: int = 16, indent: int = 2) -> None:
    """
    Print an aligned key-value pair.

        State:          ready
        Pending:        []
    """
    prefix = " " * indent
    k = click.style(f"{key}:", fg="white")
    v = click.style(str(value), fg="cyan")
    padding = " " * max(1, key_width - len(key) - 1)
    click.echo(f"{prefix}{k}{padding}{v}")


def badge(label: str, *, style: str = "ok") -> str:
    """Return an inline badge string (not echoed)."""
    colours = {
        "ok": ("green", _CHECK),
        "fail": ("red", _CROSS),
        "skip": ("yellow", _CIRCLE),
    }
    fg, icon = colours.get(style, ("white", _CIRCLE))
    return click.style(f"[{icon} {label}]", fg=fg)
