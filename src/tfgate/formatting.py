# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Check-only ``terraform fmt`` over changed files."""

from __future__ import annotations

import logging
import subprocess  # nosec B404
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from .models import FormatCheckResult
from .process_utils import CommandTimeoutError, run_command

LOGGER = logging.getLogger(__name__)

FormatRunner = Callable[[Sequence[str], Path, float], "subprocess.CompletedProcess[str]"]


def _default_runner(cmd: Sequence[str], cwd: Path, timeout: float) -> subprocess.CompletedProcess[str]:
    return run_command(
        cmd,
        cwd=cwd,
        text=True,
        timeout=timeout,
    )


class FormatChecker:
    """Run ``terraform fmt -check -diff`` for each changed file."""

    def __init__(
        self,
        root: Path,
        *,
        executable: str = "terraform",
        timeout: float = 60.0,
        runner: FormatRunner | None = None,
    ) -> None:
        self._root = root
        self._executable = executable
        self._timeout = timeout
        self._runner = runner or _default_runner

    def check_file(self, path: str) -> FormatCheckResult:
        """Return whether ``path`` (relative to the working root) is formatted."""

        cmd = [self._executable, "fmt", "-check", "-diff", path]
        try:
            completed = self._runner(cmd, self._root, self._timeout)
        except CommandTimeoutError:
            return FormatCheckResult(path=path, passed=False, diff=f"terraform fmt timed out after {self._timeout:g}s")
        except OSError as exc:
            return FormatCheckResult(path=path, passed=False, diff=f"could not start {self._executable}: {exc}")
        if completed.returncode == 0:
            return FormatCheckResult(path=path, passed=True)
        output = "\n".join(part.strip("\n") for part in (completed.stdout, completed.stderr) if part and part.strip())
        LOGGER.debug("%s is not formatted (exit status %d)", path, completed.returncode)
        return FormatCheckResult(path=path, passed=False, diff=output)

    def check(self, paths: Iterable[str]) -> tuple[FormatCheckResult, ...]:
        """Check every path in sorted order."""

        return tuple(self.check_file(path) for path in sorted(set(paths)))


__all__ = ["FormatChecker", "FormatRunner"]
