# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""User-facing status lines and GitHub workflow annotations."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Final, Literal

from rich.rule import Rule
from rich.text import Text

from .console import detect_tty, get_console_manager

AnnotationLevel = Literal["error", "warning", "notice"]


@dataclass(frozen=True, slots=True)
class _Tone:
    icon: str
    style: str


_TONES: Final[dict[str, _Tone]] = {
    "info": _Tone("ℹ️ ", "cyan"),
    "ok": _Tone("✅ ", "green"),
    "warn": _Tone("⚠️ ", "yellow"),
    "fail": _Tone("❌ ", "red"),
}


def emoji(symbol: str, enable: bool) -> str:
    """Return *symbol* when emoji output is enabled, otherwise blank."""

    return symbol if enable else ""


def _emit(tone: str, msg: str, *, use_emoji: bool, use_color: bool | None) -> None:
    spec = _TONES[tone]
    color_enabled = detect_tty() if use_color is None else use_color
    text = Text(f"{emoji(spec.icon, use_emoji)}{msg}")
    if color_enabled:
        text.stylize(spec.style)
    get_console_manager().get(color=color_enabled, emoji=use_emoji).print(text)


def section(title: str, *, use_color: bool) -> None:
    """Print a divider before a block of related output."""

    console = get_console_manager().get(color=use_color, emoji=True)
    if use_color:
        console.print()
        console.print(Rule(title))
    else:
        console.print(f"\n--- {title} ---")


def info(msg: str, *, use_emoji: bool, use_color: bool | None = None) -> None:
    """Emit an informational status line.

    Args:
        msg: Message text to display.
        use_emoji: Flag indicating whether the status icon is shown.
        use_color: Optional explicit colour flag overriding TTY detection.
    """

    _emit("info", msg, use_emoji=use_emoji, use_color=use_color)


def ok(msg: str, *, use_emoji: bool, use_color: bool | None = None) -> None:
    """Emit a success status line.

    Args:
        msg: Message text to display.
        use_emoji: Flag indicating whether the status icon is shown.
        use_color: Optional explicit colour flag overriding TTY detection.
    """

    _emit("ok", msg, use_emoji=use_emoji, use_color=use_color)


def warn(msg: str, *, use_emoji: bool, use_color: bool | None = None) -> None:
    """Emit a warning status line.

    Args:
        msg: Message text to display.
        use_emoji: Flag indicating whether the status icon is shown.
        use_color: Optional explicit colour flag overriding TTY detection.
    """

    _emit("warn", msg, use_emoji=use_emoji, use_color=use_color)


def fail(msg: str, *, use_emoji: bool, use_color: bool | None = None) -> None:
    """Emit an error status line.

    Args:
        msg: Message text to display.
        use_emoji: Flag indicating whether the status icon is shown.
        use_color: Optional explicit colour flag overriding TTY detection.
    """

    _emit("fail", msg, use_emoji=use_emoji, use_color=use_color)


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _escape_property(value: str) -> str:
    return _escape_data(value).replace(":", "%3A").replace(",", "%2C")


def format_annotation(level: AnnotationLevel, message: str, *, file: str | None = None, line: int | None = None) -> str:
    """Return a ``::level ...::message`` workflow command.

    Examples:
        >>> format_annotation("error", "2 error(s) found.")
        '::error::2 error(s) found.'
        >>> format_annotation("warning", "a\\nb", file="main.tf", line=3)
        '::warning file=main.tf,line=3::a%0Ab'
    """

    properties = []
    if file:
        properties.append(f"file={_escape_property(file)}")
    if line is not None:
        properties.append(f"line={line}")
    head = f"{level} {','.join(properties)}" if properties else level
    return f"::{head}::{_escape_data(message)}"


def annotate(level: AnnotationLevel, message: str, *, file: str | None = None, line: int | None = None) -> None:
    """Write a workflow annotation to stdout, where the Actions runner reads it."""

    print(format_annotation(level, message, file=file, line=line), file=sys.stdout)


__all__ = ["annotate", "emoji", "fail", "format_annotation", "info", "ok", "section", "warn"]
