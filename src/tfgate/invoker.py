# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Run the analyzer once per target directory."""

from __future__ import annotations

import logging
import subprocess  # nosec B404
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from functools import partial
from pathlib import Path
from typing import Protocol

from .analyzer_config import ResolvedAnalyzerConfig
from .models import InvocationResult, InvocationStatus
from .process_utils import CommandTimeoutError, run_command

LOGGER = logging.getLogger(__name__)

CommandRunner = Callable[[Sequence[str], Path, float], "subprocess.CompletedProcess[bytes]"]


class Analyzer(Protocol):
    """Analyze a single directory with a resolved configuration."""

    def analyze(self, directory: str, config: ResolvedAnalyzerConfig) -> InvocationResult:
        """Return the captured result of analysing ``directory``."""
        ...


def default_command_runner(cmd: Sequence[str], cwd: Path, timeout: float) -> subprocess.CompletedProcess[bytes]:
    """Execute ``cmd`` in ``cwd`` capturing raw stdout and stderr bytes."""

    return run_command(
        cmd,
        cwd=cwd,
        text=False,
        timeout=timeout,
    )


class TFLintAnalyzer:
    """Invoke TFLint with JSON output for one directory at a time.

    Each invocation gets its own ``cwd`` passed to the subprocess; the
    process-wide working directory is never changed, so instances are safe to
    share between worker threads.
    """

    def __init__(
        self,
        root: Path,
        *,
        executable: str = "tflint",
        timeout: float = 300.0,
        runner: CommandRunner | None = None,
    ) -> None:
        self._root = root
        self._executable = executable
        self._timeout = timeout
        self._runner = runner or default_command_runner

    def build_command(self, config: ResolvedAnalyzerConfig) -> list[str]:
        """Return the analyzer command line for ``config``."""
        return [self._executable, "--config", config.identifier, "--format", "json"]

    def analyze(self, directory: str, config: ResolvedAnalyzerConfig) -> InvocationResult:
        """Run TFLint in ``directory`` (relative to the working root)."""

        target = self._root / directory
        if not target.is_dir():
            return _failed(directory, f"directory {directory} does not exist")
        return self._execute(directory, self.build_command(config), target)

    def init_plugins(self, config: ResolvedAnalyzerConfig) -> InvocationResult:
        """Install the plugins declared by ``config`` (``tflint --init``)."""

        cmd = [self._executable, "--init", "--config", config.identifier]
        return self._execute(".", cmd, self._root)

    def version(self) -> str | None:
        """Return the first line of ``tflint --version`` or ``None`` when unavailable."""

        result = self._execute(".", [self._executable, "--version"], self._root)
        if not result.succeeded or result.returncode != 0:
            return None
        lines = result.raw_output.decode("utf-8", errors="replace").strip().splitlines()
        return lines[0] if lines else None

    def _execute(self, directory: str, cmd: Sequence[str], cwd: Path) -> InvocationResult:
        LOGGER.debug("running %s in %s", " ".join(cmd), cwd)
        try:
            completed = self._runner(cmd, cwd, self._timeout)
        except CommandTimeoutError:
            return _failed(directory, f"timed out after {self._timeout:g}s")
        except OSError as exc:
            return _failed(directory, f"could not start {self._executable}: {exc}")
        if completed.returncode < 0:
            return InvocationResult(
                directory=directory,
                status=InvocationStatus.FAILED,
                returncode=completed.returncode,
                raw_output=completed.stdout or b"",
                stderr=completed.stderr or b"",
                reason=f"{self._executable} terminated by signal {-completed.returncode}",
            )
        return InvocationResult(
            directory=directory,
            status=InvocationStatus.SUCCEEDED,
            returncode=completed.returncode,
            raw_output=completed.stdout or b"",
            stderr=completed.stderr or b"",
        )


def _failed(directory: str, reason: str) -> InvocationResult:
    LOGGER.warning("analysis of %s failed: %s", directory, reason)
    return InvocationResult(directory=directory, status=InvocationStatus.FAILED, reason=reason)


class AnalyzerInvoker:
    """Fan analyzer invocations out over a bounded worker pool."""

    def __init__(self, analyzer: Analyzer, *, jobs: int = 1) -> None:
        if jobs < 1:
            raise ValueError("jobs must be at least 1")
        self._analyzer = analyzer
        self._jobs = jobs

    def run(self, directories: Iterable[str], config: ResolvedAnalyzerConfig) -> tuple[InvocationResult, ...]:
        """Analyze every directory and return results in lexicographic order.

        Returns only after every invocation has completed or timed out.
        """

        ordered = sorted(set(directories))
        if not ordered:
            return ()
        runner = partial(self._analyzer.analyze, config=config)
        if self._jobs == 1 or len(ordered) == 1:
            results = [runner(directory) for directory in ordered]
        else:
            results = self._run_parallel(ordered, runner)
        return tuple(sorted(results, key=lambda result: result.directory))

    def _run_parallel(
        self,
        directories: Sequence[str],
        runner: Callable[[str], InvocationResult],
    ) -> list[InvocationResult]:
        results: list[InvocationResult] = []
        with ThreadPoolExecutor(max_workers=min(self._jobs, len(directories))) as executor:
            future_map = {executor.submit(runner, directory): directory for directory in directories}
            for future in as_completed(future_map):
                results.append(future.result())
        return results


__all__ = [
    "Analyzer",
    "AnalyzerInvoker",
    "CommandRunner",
    "TFLintAnalyzer",
    "default_command_runner",
]
