# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for analyzer configuration materialization."""

from pathlib import Path

from tfgate.analyzer_config import (
    DEFAULT_CONFIG_VERSION,
    DEFAULT_RULES,
    materialize_config,
    render_default_config,
)
from tfgate.severity import Severity


def _rule_block(document: str, rule: str) -> str:
    start = document.index(f'rule "{rule}"')
    return document[start : document.index("}", start) + 1]


def test_default_config_is_deterministic() -> None:
    assert render_default_config() == render_default_config()


def test_default_config_assigns_initial_severities() -> None:
    document = render_default_config()

    assert 'plugin "terraform"' in document
    assert 'severity = "error"' in _rule_block(document, "terraform_deprecated_interpolation")
    assert 'severity = "warning"' in _rule_block(document, "terraform_naming_convention")
    assert 'severity = "info"' in _rule_block(document, "terraform_documented_outputs")
    assert 'severity = "notice"' in _rule_block(document, "terraform_comment_syntax")
    disabled = _rule_block(document, "terraform_standard_module_structure")
    assert "enabled  = false" in disabled
    assert "severity" not in disabled
    assert document.count('rule "') == len(DEFAULT_RULES)


def test_severity_overrides_replace_defaults() -> None:
    document = render_default_config({"terraform_naming_convention": Severity.ERROR})

    assert 'severity = "error"' in _rule_block(document, "terraform_naming_convention")


def test_empty_path_materializes_builtin_default(tmp_path: Path) -> None:
    scratch = tmp_path / "scratch"

    resolved = materialize_config("", root=tmp_path, scratch_dir=scratch)

    assert resolved.builtin
    assert resolved.version == DEFAULT_CONFIG_VERSION
    assert resolved.path == (scratch / ".tflint.hcl").resolve()
    assert resolved.path.read_text(encoding="utf-8") == render_default_config()


def test_missing_user_config_falls_back_to_default(tmp_path: Path) -> None:
    resolved = materialize_config("does/not/exist.hcl", root=tmp_path, scratch_dir=tmp_path / "scratch")

    assert resolved.builtin


def test_existing_user_config_is_used_verbatim(tmp_path: Path) -> None:
    user_config = tmp_path / "lint" / "custom.hcl"
    user_config.parent.mkdir()
    user_config.write_text('rule "terraform_typed_variables" {\n  enabled = false\n}\n', encoding="utf-8")
    scratch = tmp_path / "scratch"

    resolved = materialize_config(
        "lint/custom.hcl",
        root=tmp_path,
        scratch_dir=scratch,
        overrides={"terraform_typed_variables": Severity.ERROR},
    )

    assert not resolved.builtin
    assert resolved.identifier == str(user_config.resolve())
    assert user_config.read_text(encoding="utf-8").startswith('rule "terraform_typed_variables"')
    assert not scratch.exists()
