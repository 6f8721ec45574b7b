# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Run external tools with captured output and a hard deadline."""

from __future__ import annotations

import os
import shutil
import signal

# Bandit: subprocess usage is intentional; commands are argument lists and
# ``shell=True`` is never used.
import subprocess  # nosec B404
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any


class CommandTimeoutError(RuntimeError):
    """Raised when a command exceeds its deadline; the whole process group has been killed."""

    def __init__(self, command: Sequence[str], timeout: float) -> None:
        super().__init__(f"Command '{command[0]}' timed out after {timeout:.1f}s")
        self.command = tuple(command)
        self.timeout = timeout


def _normalize_args(args: Sequence[str]) -> list[str]:
    if not args:
        raise ValueError("subprocess command requires at least one argument")

    head, *rest = args
    if Path(head).is_absolute():
        return [head, *rest]
    resolved = shutil.which(head)
    if resolved is None:
        raise FileNotFoundError(f"Executable '{head}' was not found on PATH")
    return [resolved, *rest]


def _kill_group(process: subprocess.Popen[Any]) -> None:
    # TFLint plugins run as children of the analyzer and would otherwise keep the pipes open.
    if hasattr(os, "killpg"):
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        return
    process.kill()


def run_command(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    text: bool = True,
    encoding: str | None = None,
    timeout: float | None = None,
    discard_stdin: bool = True,
) -> subprocess.CompletedProcess[Any]:
    """Execute ``args`` and capture stdout and stderr separately.

    The command runs in its own session so a timeout can terminate it together
    with anything it spawned. A non-zero exit status is returned, not raised.

    Raises:
        FileNotFoundError: If the executable cannot be resolved on ``PATH``.
        CommandTimeoutError: If ``timeout`` elapses first.
    """

    normalized = _normalize_args(args)
    # Bandit: argument list only, no shell expansion.
    with subprocess.Popen(  # nosec B603
        normalized,
        cwd=str(cwd) if cwd is not None else None,
        env=dict(env) if env is not None else None,
        stdin=subprocess.DEVNULL if discard_stdin else None,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=text,
        encoding=encoding,
        start_new_session=True,
    ) as process:
        try:
            stdout, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            _kill_group(process)
            process.communicate()
            raise CommandTimeoutError(normalized, timeout or 0.0) from exc
    return subprocess.CompletedProcess(normalized, process.returncode, stdout=stdout, stderr=stderr)


__all__ = ["CommandTimeoutError", "run_command"]
