# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""CLI behaviour tests using typer's runner."""

from __future__ import annotations

import json
import subprocess
from collections.abc import Sequence
from pathlib import Path

import pytest
from conftest import FakeGit, tflint_document, tflint_issue
from typer.testing import CliRunner

from tfgate import pipeline as pipeline_module
from tfgate.cli import app
from tfgate.discovery import ChangeScopeResolver
from tfgate.invoker import TFLintAnalyzer

runner = CliRunner()


def _install_git(monkeypatch: pytest.MonkeyPatch, git: FakeGit) -> None:
    monkeypatch.setattr(pipeline_module, "ChangeScopeResolver", lambda: ChangeScopeResolver(runner=git))


def _install_tflint(monkeypatch: pytest.MonkeyPatch, output: bytes) -> list[tuple[str, ...]]:
    calls: list[tuple[str, ...]] = []

    def fake(cmd: Sequence[str], cwd: Path, timeout: float) -> subprocess.CompletedProcess[bytes]:
        calls.append(tuple(cmd))
        stdout = output if "--format" in cmd else b""
        return subprocess.CompletedProcess(list(cmd), 0, stdout=stdout, stderr=b"")

    def factory(root: Path, **_: object) -> TFLintAnalyzer:
        return TFLintAnalyzer(root, runner=fake)

    monkeypatch.setattr(pipeline_module, "TFLintAnalyzer", factory)
    return calls


def test_default_config_prints_builtin_ruleset() -> None:
    result = runner.invoke(app, ["default-config", "--severity", "terraform_naming_convention=error"])

    assert result.exit_code == 0
    assert 'plugin "terraform"' in result.stdout
    assert 'rule "terraform_naming_convention"' in result.stdout


def test_invalid_severity_override_is_a_usage_error() -> None:
    result = runner.invoke(app, ["default-config", "--severity", "terraform_naming_convention=fatal"])

    assert result.exit_code == 2


def test_scope_lists_directories(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _install_git(monkeypatch, FakeGit(["modules/vpc/main.tf", "modules/vpc/outputs.tf", "main.tf", "notes.md"]))

    result = runner.invoke(app, ["scope", "--root", str(tmp_path)])

    assert result.exit_code == 0
    assert result.stdout.splitlines() == [".", "modules/vpc"]


def test_scope_lists_files(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _install_git(monkeypatch, FakeGit(["b.tf", "a.tf", "notes.md"]))

    result = runner.invoke(app, ["scope", "--root", str(tmp_path), "--files"])

    assert result.stdout.splitlines() == ["a.tf", "b.tf"]


def test_check_without_changes_succeeds(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _install_git(monkeypatch, FakeGit(["docs/readme.md"]))
    calls = _install_tflint(monkeypatch, b"[]")

    result = runner.invoke(app, ["check", "--root", str(tmp_path), "--no-emoji", "--no-color"])

    assert result.exit_code == 0
    assert "nothing to check" in result.stdout
    assert calls == []
    assert json.loads((tmp_path / "tflint-output.json").read_text(encoding="utf-8")) == []


def test_check_fails_on_error_findings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "app").mkdir()
    _install_git(monkeypatch, FakeGit(["app/main.tf"]))
    _install_tflint(monkeypatch, tflint_document(tflint_issue("terraform_required_version", "error")))

    result = runner.invoke(app, ["check", "--root", str(tmp_path), "--no-fmt", "--no-emoji", "--no-color", "-j", "1"])

    assert result.exit_code == 1
    assert "Check failed: 1 error(s) found." in result.stdout


def test_check_passes_on_warnings_by_default(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "app").mkdir()
    _install_git(monkeypatch, FakeGit(["app/main.tf"]))
    _install_tflint(monkeypatch, tflint_document(tflint_issue("terraform_typed_variables", "warning")))
    args = ["check", "--root", str(tmp_path), "--no-fmt", "--no-emoji", "--no-color"]

    assert runner.invoke(app, args).exit_code == 0
    assert runner.invoke(app, [*args, "--fail-on-warnings"]).exit_code == 1


def test_shallow_clone_is_fatal(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _install_git(monkeypatch, FakeGit(shallow=True))

    result = runner.invoke(app, ["check", "--root", str(tmp_path), "--no-emoji", "--no-color"])

    assert result.exit_code == 2
    assert "shallow clone" in result.stdout


def test_invalid_configuration_is_fatal(tmp_path: Path) -> None:
    (tmp_path / ".tfgate.toml").write_text("jobs = 0\n", encoding="utf-8")

    result = runner.invoke(app, ["check", "--root", str(tmp_path), "--no-emoji", "--no-color"])

    assert result.exit_code == 2
    assert "Configuration invalid" in result.stdout


def test_github_publish_requires_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GITHUB_TOKEN", "GITHUB_REPOSITORY", "GITHUB_EVENT_PATH"):
        monkeypatch.delenv(name, raising=False)

    result = runner.invoke(app, ["check", "--root", str(tmp_path), "--publish", "github", "--no-emoji"])

    assert result.exit_code == 2
    assert "Cannot publish to GitHub" in result.stdout


def test_github_publish_rejects_event_without_pull_request(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    event = tmp_path / "event.json"
    event.write_text(json.dumps({"pull_request": None}), encoding="utf-8")
    monkeypatch.setenv("GITHUB_TOKEN", "t")
    monkeypatch.setenv("GITHUB_REPOSITORY", "acme/infra")
    monkeypatch.setenv("GITHUB_EVENT_PATH", str(event))

    result = runner.invoke(app, ["check", "--root", str(tmp_path), "--publish", "github", "--no-emoji"])

    assert result.exit_code == 2
    assert "does not describe a pull request" in result.stdout


def test_raw_flag_prints_markdown_source(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "app").mkdir()
    _install_git(monkeypatch, FakeGit(["app/main.tf"]))
    _install_tflint(monkeypatch, tflint_document(tflint_issue("terraform_required_version", "error", line=7)))

    result = runner.invoke(
        app, ["check", "--root", str(tmp_path), "--no-fmt", "--no-emoji", "--no-color", "--raw"]
    )

    assert result.exit_code == 1
    assert "### TFLint Results" in result.stdout
    assert "**app/main.tf:7**" in result.stdout


def test_report_re_evaluates_persisted_violations(tmp_path: Path) -> None:
    payload = [
        {
            "rule": {"name": "terraform_typed_variables", "severity": "warning"},
            "message": "variable has no type",
            "range": {"filename": "app/variables.tf", "start": {"line": 3, "column": 1}},
        }
    ]
    (tmp_path / "tflint-output.json").write_text(json.dumps(payload), encoding="utf-8")
    args = ["report", "--root", str(tmp_path), "--no-emoji", "--no-color", "--raw"]

    lenient = runner.invoke(app, args)
    strict = runner.invoke(app, [*args, "--fail-on-warnings"])

    assert lenient.exit_code == 0
    assert "**app/variables.tf:3**" in lenient.stdout
    assert "Check passed" in lenient.stdout
    assert strict.exit_code == 1
    assert "1 warning(s) found under strict mode." in strict.stdout


def test_report_without_violation_file_is_fatal(tmp_path: Path) -> None:
    result = runner.invoke(app, ["report", "--root", str(tmp_path), "--no-emoji", "--no-color"])

    assert result.exit_code == 2
    assert "run 'tfgate check' first" in result.stdout


def test_report_with_malformed_file_is_fatal(tmp_path: Path) -> None:
    (tmp_path / "tflint-output.json").write_text("{not json", encoding="utf-8")

    result = runner.invoke(app, ["report", "--root", str(tmp_path), "--no-emoji", "--no-color"])

    assert result.exit_code == 2
    assert "Cannot read" in result.stdout
