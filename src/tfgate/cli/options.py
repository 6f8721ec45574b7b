# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared option declarations and data structures for the tfgate CLI."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import typer

from ..severity import parse_severity


class PublishTarget(str, Enum):
    """Where the rendered report is delivered."""

    CONSOLE = "console"
    GITHUB = "github"


ROOT_OPTION = Annotated[Path, typer.Option("--root", "-r", help="Working root containing the Terraform code.")]
BASE_OPTION = Annotated[str | None, typer.Option("--base", help="Base revision of the change.")]
HEAD_OPTION = Annotated[str | None, typer.Option("--head", help="Head revision of the change.")]
PATTERN_OPTION = Annotated[
    str | None,
    typer.Option("--pattern", help="Glob, relative to the root, selecting files to check."),
]
CONFIG_FILE_OPTION = Annotated[
    str | None,
    typer.Option("--config-file", help="TFLint config; the built-in ruleset is used when absent."),
]
TFLINT_VERSION_OPTION = Annotated[
    str | None,
    typer.Option("--tflint-version", help="Expected TFLint version ('latest' skips the check)."),
]
FAIL_ON_WARNINGS_OPTION = Annotated[
    bool | None,
    typer.Option("--fail-on-warnings/--no-fail-on-warnings", help="Block the change on warnings too."),
]
JOBS_OPTION = Annotated[int | None, typer.Option("--jobs", "-j", min=1, help="Directories analysed in parallel.")]
TIMEOUT_OPTION = Annotated[
    float | None,
    typer.Option("--timeout", min=1.0, help="Seconds allowed for each analyzer invocation."),
]
SEVERITY_OPTION = Annotated[
    list[str] | None,
    typer.Option("--severity", help="Override a built-in rule severity as RULE=LEVEL (repeatable)."),
]
OUTPUT_JSON_OPTION = Annotated[
    str | None,
    typer.Option("--output-json", help="Where the merged violation array is written."),
]
FORMAT_OPTION = Annotated[
    bool | None,
    typer.Option("--fmt/--no-fmt", help="Also run the terraform fmt check on changed files."),
]
PUBLISH_OPTION = Annotated[
    PublishTarget,
    typer.Option("--publish", case_sensitive=False, help="Report destination."),
]
EMOJI_OPTION = Annotated[bool, typer.Option("--emoji/--no-emoji", help="Toggle emoji output.")]
COLOR_OPTION = Annotated[bool, typer.Option("--color/--no-color", help="Toggle coloured output.")]
RAW_OPTION = Annotated[
    bool,
    typer.Option("--raw", help="Print the Markdown source instead of rendering it in the terminal."),
]


def parse_severity_overrides(values: Sequence[str] | None) -> dict[str, str] | None:
    """Parse ``RULE=LEVEL`` pairs into an override mapping.

    Raises:
        typer.BadParameter: If a pair is malformed or names an unknown level.
    """

    if not values:
        return None
    overrides: dict[str, str] = {}
    for entry in values:
        rule, separator, level = entry.partition("=")
        if not separator or not rule.strip():
            raise typer.BadParameter(f"expected RULE=LEVEL, got '{entry}'", param_hint="--severity")
        if parse_severity(level) is None:
            raise typer.BadParameter(f"unknown severity '{level}'", param_hint="--severity")
        overrides[rule.strip()] = level.strip().lower()
    return overrides


@dataclass(slots=True)
class CheckCLIOptions:
    """Capture CLI overrides supplied to the ``check`` command."""

    root: Path
    base: str | None = None
    head: str | None = None
    pattern: str | None = None
    config_file: str | None = None
    tflint_version: str | None = None
    fail_on_warnings: bool | None = None
    jobs: int | None = None
    timeout: float | None = None
    severity: dict[str, str] | None = None
    output_json: str | None = None
    check_format: bool | None = None

    def to_overrides(self) -> dict[str, Any]:
        """Return the settings layered over file-based configuration."""

        return {
            "root": self.root,
            "base_ref": self.base,
            "head_ref": self.head,
            "pattern": self.pattern,
            "config_file": self.config_file,
            "tflint_version": self.tflint_version,
            "fail_on_warnings": self.fail_on_warnings,
            "jobs": self.jobs,
            "timeout": self.timeout,
            "severity_overrides": self.severity,
            "output_json": self.output_json,
            "check_format": self.check_format,
        }


__all__ = [
    "BASE_OPTION",
    "COLOR_OPTION",
    "CONFIG_FILE_OPTION",
    "CheckCLIOptions",
    "EMOJI_OPTION",
    "FAIL_ON_WARNINGS_OPTION",
    "FORMAT_OPTION",
    "HEAD_OPTION",
    "JOBS_OPTION",
    "OUTPUT_JSON_OPTION",
    "PATTERN_OPTION",
    "PUBLISH_OPTION",
    "PublishTarget",
    "RAW_OPTION",
    "ROOT_OPTION",
    "SEVERITY_OPTION",
    "TFLINT_VERSION_OPTION",
    "TIMEOUT_OPTION",
    "parse_severity_overrides",
]
