# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Resolve the TFLint configuration shared by every invocation in a run."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from pydantic import BaseModel, ConfigDict

from .severity import Severity

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_VERSION: Final[str] = "1"
DEFAULT_CONFIG_FILENAME: Final[str] = ".tflint.hcl"


@dataclass(frozen=True, slots=True)
class RuleDefault:
    """Initial enablement and severity for one bundled TFLint rule."""

    name: str
    enabled: bool = True
    severity: Severity | None = None


# Structural and deprecation problems are errors, style is a warning and
# documentation completeness is informational.
DEFAULT_RULES: Final[tuple[RuleDefault, ...]] = (
    RuleDefault("terraform_comment_syntax", severity=Severity.NOTICE),
    RuleDefault("terraform_deprecated_index", severity=Severity.WARNING),
    RuleDefault("terraform_deprecated_interpolation", severity=Severity.ERROR),
    RuleDefault("terraform_deprecated_lookup", severity=Severity.ERROR),
    RuleDefault("terraform_documented_outputs", severity=Severity.INFO),
    RuleDefault("terraform_documented_variables", severity=Severity.INFO),
    RuleDefault("terraform_empty_list_equality", severity=Severity.ERROR),
    RuleDefault("terraform_map_duplicate_keys", severity=Severity.ERROR),
    RuleDefault("terraform_module_pinned_source", severity=Severity.ERROR),
    RuleDefault("terraform_module_version", severity=Severity.ERROR),
    RuleDefault("terraform_naming_convention", severity=Severity.WARNING),
    RuleDefault("terraform_required_providers", severity=Severity.ERROR),
    RuleDefault("terraform_required_version", severity=Severity.ERROR),
    RuleDefault("terraform_standard_module_structure", enabled=False),
    RuleDefault("terraform_typed_variables", severity=Severity.WARNING),
    RuleDefault("terraform_unused_declarations", severity=Severity.ERROR),
    RuleDefault("terraform_unused_required_providers", severity=Severity.INFO),
    RuleDefault("terraform_workspace_remote", severity=Severity.ERROR),
)


class ResolvedAnalyzerConfig(BaseModel):
    """Configuration file handed unchanged to every analyzer invocation."""

    model_config = ConfigDict(frozen=True)

    path: Path
    builtin: bool
    version: str | None = None

    @property
    def identifier(self) -> str:
        """Return the resolved path used to identify this configuration."""
        return str(self.path)


def render_default_config(overrides: Mapping[str, Severity] | None = None) -> str:
    """Return the bundled ruleset as HCL.

    Args:
        overrides: Optional per-rule severity replacing the bundled default.
            Overriding a disabled rule enables it.

    Returns:
        str: Deterministic ``.tflint.hcl`` document.
    """

    overrides = overrides or {}
    lines = [
        f"# tfgate default ruleset v{DEFAULT_CONFIG_VERSION}",
        'plugin "terraform" {',
        "  enabled = true",
        "}",
    ]
    for rule in DEFAULT_RULES:
        severity = overrides.get(rule.name, rule.severity)
        enabled = rule.enabled or rule.name in overrides
        lines.append("")
        lines.append(f'rule "{rule.name}" {{')
        lines.append(f"  enabled  = {'true' if enabled else 'false'}")
        if enabled and severity is not None:
            lines.append(f'  severity = "{severity.value}"')
        lines.append("}")
    return "\n".join(lines) + "\n"


def materialize_config(
    config_file: str,
    *,
    root: Path,
    scratch_dir: Path,
    overrides: Mapping[str, Severity] | None = None,
) -> ResolvedAnalyzerConfig:
    """Resolve the analyzer configuration for a run.

    A user-supplied file is used verbatim. When ``config_file`` is empty or
    does not name an existing file, the bundled ruleset is written to
    ``scratch_dir`` instead.

    Args:
        config_file: Optional user-supplied path, relative to ``root`` when not absolute.
        root: Working root used to resolve relative paths.
        scratch_dir: Run-scoped directory receiving the generated default.
        overrides: Severity overrides applied to the bundled ruleset only.

    Returns:
        ResolvedAnalyzerConfig: Absolute configuration path and its provenance.
    """

    if config_file.strip():
        candidate = Path(config_file).expanduser()
        if not candidate.is_absolute():
            candidate = root / candidate
        if candidate.is_file():
            LOGGER.debug("using provided TFLint config %s", candidate)
            return ResolvedAnalyzerConfig(path=candidate.resolve(), builtin=False)
        LOGGER.warning("TFLint config %s not found; falling back to the built-in ruleset", candidate)

    scratch_dir.mkdir(parents=True, exist_ok=True)
    destination = scratch_dir / DEFAULT_CONFIG_FILENAME
    destination.write_text(render_default_config(overrides), encoding="utf-8")
    return ResolvedAnalyzerConfig(path=destination.resolve(), builtin=True, version=DEFAULT_CONFIG_VERSION)


__all__ = [
    "DEFAULT_CONFIG_FILENAME",
    "DEFAULT_CONFIG_VERSION",
    "DEFAULT_RULES",
    "ResolvedAnalyzerConfig",
    "RuleDefault",
    "materialize_config",
    "render_default_config",
]
