# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Git-based change scope resolution."""

from __future__ import annotations

import logging
import re
import subprocess  # nosec B404
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path, PurePosixPath

from .errors import ScopeResolutionError
from .process_utils import run_command

LOGGER = logging.getLogger(__name__)

GitRunner = Callable[[Sequence[str], Path], "subprocess.CompletedProcess[str]"]


@dataclass(frozen=True, slots=True)
class ChangeScope:
    """Changed files matching the pattern and the directories that contain them."""

    files: tuple[str, ...]
    directories: tuple[str, ...]

    @property
    def is_empty(self) -> bool:
        """Return ``True`` when no matching file changed."""
        return not self.directories


@lru_cache(maxsize=64)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    """Translate a ``/``-aware glob into a regular expression.

    ``**/`` matches zero or more directories, ``*`` and ``?`` never cross a
    path separator.
    """

    index = 0
    parts: list[str] = []
    while index < len(pattern):
        if pattern.startswith("**/", index):
            parts.append("(?:.*/)?")
            index += 3
        elif pattern.startswith("**", index):
            parts.append(".*")
            index += 2
        elif pattern[index] == "*":
            parts.append("[^/]*")
            index += 1
        elif pattern[index] == "?":
            parts.append("[^/]")
            index += 1
        else:
            parts.append(re.escape(pattern[index]))
            index += 1
    return re.compile("".join(parts) + r"\Z")


def normalize_changed_path(path: str) -> str:
    """Return ``path`` as a clean POSIX path relative to the working root."""

    cleaned = PurePosixPath(path.strip().replace("\\", "/"))
    parts = [part for part in cleaned.parts if part not in ("", ".")]
    return PurePosixPath(*parts).as_posix() if parts else ""


def matching_files(paths: Iterable[str], pattern: str) -> tuple[str, ...]:
    """Return the deduplicated, sorted subset of ``paths`` matching ``pattern``."""

    regex = _compile_glob(pattern)
    matched = {normalized for normalized in map(normalize_changed_path, paths) if normalized}
    return tuple(sorted(candidate for candidate in matched if regex.match(candidate)))


def resolve_target_directories(paths: Iterable[str], pattern: str) -> tuple[str, ...]:
    """Map changed ``paths`` onto the unique directories requiring analysis.

    Args:
        paths: Changed file paths relative to the working root.
        pattern: Glob selecting the files that participate in analysis.

    Returns:
        tuple[str, ...]: Lexicographically sorted parent directories; ``.``
        denotes the working root itself.
    """

    directories = {PurePosixPath(path).parent.as_posix() for path in matching_files(paths, pattern)}
    return tuple(sorted(directories))


class ChangeScopeResolver:
    """Resolve the files changed between two revisions into a lint scope."""

    def __init__(self, *, runner: GitRunner | None = None) -> None:
        """Create a resolver.

        Args:
            runner: Optional command runner used to execute git commands. The
                default executes git through :func:`run_command`.
        """

        self._runner = runner or self._default_runner

    def changed_files(self, root: Path, base_ref: str, head_ref: str) -> list[str]:
        """Return files added, copied, modified or renamed between the revisions.

        Paths are reported relative to ``root`` and limited to files under it.

        Raises:
            ScopeResolutionError: If the history needed for the comparison is
                unavailable or git fails.
        """

        self._ensure_full_history(root)
        cmd = [
            "git",
            "-c",
            "core.quotePath=false",
            "diff",
            "--name-only",
            "-z",
            "--relative",
            "--diff-filter=d",
            f"{base_ref}...{head_ref}",
            "--",
        ]
        completed = self._run(cmd, root)
        if completed.returncode != 0:
            detail = (completed.stderr or "").strip() or f"exit status {completed.returncode}"
            raise ScopeResolutionError(f"git diff {base_ref}...{head_ref} failed: {detail}")
        # -z output: NUL-terminated, unquoted paths.
        return [entry for entry in (completed.stdout or "").split("\0") if entry.strip()]

    def resolve(self, root: Path, base_ref: str, head_ref: str, pattern: str) -> ChangeScope:
        """Return the :class:`ChangeScope` for the revision comparison."""

        files = matching_files(self.changed_files(root, base_ref, head_ref), pattern)
        directories = resolve_target_directories(files, pattern)
        LOGGER.debug("resolved %d changed file(s) into %d director(ies)", len(files), len(directories))
        return ChangeScope(files=files, directories=directories)

    def _ensure_full_history(self, root: Path) -> None:
        completed = self._run(["git", "rev-parse", "--is-shallow-repository"], root)
        if completed.returncode != 0:
            detail = (completed.stderr or "").strip() or f"exit status {completed.returncode}"
            raise ScopeResolutionError(f"{root} is not a git work tree: {detail}")
        if (completed.stdout or "").strip() == "true":
            raise ScopeResolutionError(
                "Repository is a shallow clone; fetch full history (fetch-depth: 0) before resolving changes",
            )

    def _run(self, cmd: Sequence[str], root: Path) -> subprocess.CompletedProcess[str]:
        try:
            return self._runner(cmd, root)
        except OSError as exc:
            raise ScopeResolutionError(f"Unable to execute git: {exc}") from exc

    @staticmethod
    def _default_runner(cmd: Sequence[str], root: Path) -> subprocess.CompletedProcess[str]:
        return run_command(cmd, cwd=root, text=True, encoding="utf-8")


__all__ = [
    "ChangeScope",
    "ChangeScopeResolver",
    "GitRunner",
    "matching_files",
    "normalize_changed_path",
    "resolve_target_directories",
]
