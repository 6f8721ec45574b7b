# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Rich console provisioning for terminals and CI job logs."""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Final

from rich.console import Console

NO_COLOR_ENV: Final[str] = "NO_COLOR"
GITHUB_ACTIONS_ENV: Final[str] = "GITHUB_ACTIONS"


def detect_tty() -> bool:
    """Return ``True`` when stdout appears to be backed by a terminal."""

    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


def running_in_ci_log(env: Mapping[str, str] | None = None) -> bool:
    """Return ``True`` inside a GitHub Actions job, whose log viewer renders ANSI colour."""

    env = os.environ if env is None else env
    return env.get(GITHUB_ACTIONS_ENV, "").lower() == "true"


@dataclass(frozen=True, slots=True)
class ConsoleSettings:
    """Resolved presentation flags for one console."""

    color: bool
    emoji: bool
    terminal: bool

    @classmethod
    def resolve(cls, *, color: bool, emoji: bool, env: Mapping[str, str] | None = None) -> ConsoleSettings:
        """Combine the requested flags with what the output stream supports.

        ``NO_COLOR`` always wins. Otherwise colour needs a TTY or a CI log.
        """

        env = os.environ if env is None else env
        terminal = detect_tty() or running_in_ci_log(env)
        wants_color = color and NO_COLOR_ENV not in env
        return cls(color=wants_color and terminal, emoji=emoji, terminal=terminal)


class RichConsoleManager:
    """Hand out one cached :class:`Console` per :class:`ConsoleSettings`."""

    def __init__(self) -> None:
        self._cache: dict[ConsoleSettings, Console] = {}

    def get(self, *, color: bool, emoji: bool) -> Console:
        """Return a console honouring ``color`` and ``emoji`` where the stream allows it."""

        settings = ConsoleSettings.resolve(color=color, emoji=emoji)
        console = self._cache.get(settings)
        if console is None:
            console = Console(
                color_system="auto" if settings.color else None,
                force_terminal=settings.terminal,
                no_color=not settings.color,
                emoji=settings.emoji,
                soft_wrap=True,
            )
            self._cache[settings] = console
        return console


@lru_cache(maxsize=1)
def get_console_manager() -> RichConsoleManager:
    """Return the process-wide :class:`RichConsoleManager` instance."""

    return RichConsoleManager()


__all__ = [
    "ConsoleSettings",
    "RichConsoleManager",
    "detect_tty",
    "get_console_manager",
    "running_in_ci_log",
]
