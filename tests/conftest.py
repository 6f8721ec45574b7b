# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import json
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

from tfgate.analyzer_config import ResolvedAnalyzerConfig
from tfgate.models import PolicyDecision


def tflint_issue(
    rule: str,
    severity: str,
    *,
    filename: str = "main.tf",
    line: int = 1,
    column: int = 1,
    message: str = "problem",
) -> dict[str, Any]:
    """Return one issue in TFLint's JSON shape."""

    return {
        "rule": {"name": rule, "severity": severity, "link": f"https://example.invalid/{rule}"},
        "message": message,
        "range": {
            "filename": filename,
            "start": {"line": line, "column": column},
            "end": {"line": line, "column": column + 1},
        },
        "callers": [],
    }


def tflint_document(*issues: dict[str, Any], errors: Sequence[dict[str, Any]] = ()) -> bytes:
    """Return TFLint ``--format json`` output containing ``issues``."""

    return json.dumps({"issues": list(issues), "errors": list(errors)}).encode("utf-8")


class RecordingPublisher:
    """Publisher double capturing every publish call."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, PolicyDecision]] = []
        self._error = error

    def publish(self, report: str, decision: PolicyDecision) -> None:
        self.calls.append((report, decision))
        if self._error is not None:
            raise self._error


class FakeGit:
    """Git runner double answering ``rev-parse`` and ``diff`` calls."""

    def __init__(
        self,
        changed: Sequence[str] = (),
        *,
        shallow: bool = False,
        diff_returncode: int = 0,
        diff_stderr: str = "",
    ) -> None:
        self.changed = list(changed)
        self.shallow = shallow
        self.diff_returncode = diff_returncode
        self.diff_stderr = diff_stderr
        self.calls: list[tuple[tuple[str, ...], Path]] = []

    def __call__(self, cmd: Sequence[str], root: Path) -> subprocess.CompletedProcess[str]:
        self.calls.append((tuple(cmd), root))
        if cmd[1] == "rev-parse":
            stdout = "true\n" if self.shallow else "false\n"
            return subprocess.CompletedProcess(list(cmd), 0, stdout=stdout, stderr="")
        return subprocess.CompletedProcess(
            list(cmd),
            self.diff_returncode,
            stdout="".join(f"{path}\0" for path in self.changed) if self.diff_returncode == 0 else "",
            stderr=self.diff_stderr,
        )


AnalyzerBehaviour = Callable[[Sequence[str], Path, float], subprocess.CompletedProcess[bytes]]


@pytest.fixture
def resolved_config(tmp_path: Path) -> ResolvedAnalyzerConfig:
    """Return a resolved analyzer config pointing at a scratch file."""

    path = tmp_path / ".tflint.hcl"
    path.write_text('plugin "terraform" {\n  enabled = true\n}\n', encoding="utf-8")
    return ResolvedAnalyzerConfig(path=path, builtin=False)


@pytest.fixture
def recording_publisher() -> RecordingPublisher:
    return RecordingPublisher()
