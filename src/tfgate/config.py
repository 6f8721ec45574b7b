# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Run configuration model and layered loading for tfgate."""

from __future__ import annotations

import math
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError
from .severity import Severity, parse_severity

PYPROJECT_FILENAME: Final[str] = "pyproject.toml"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "tfgate"
STANDALONE_FILENAME: Final[str] = ".tfgate.toml"
DEFAULT_PATTERN: Final[str] = "**/*.tf"
DEFAULT_OUTPUT_JSON: Final[str] = "tflint-output.json"
DEFAULT_TIMEOUT_SECONDS: Final[float] = 300.0


def default_parallel_jobs() -> int:
    """Return a CPU count scaled down for concurrent analyzer runs.

    Returns:
        int: Roughly 75% of the available CPU cores, never less than one.
    """
    cores = os.cpu_count() or 1
    return max(1, math.floor(cores * 0.75))


class GateConfig(BaseModel):
    """Effective settings for one gate run."""

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    root: Path = Path(".")
    pattern: str = DEFAULT_PATTERN
    base_ref: str = "origin/main"
    head_ref: str = "HEAD"
    tflint_version: str = "latest"
    tflint_bin: str = "tflint"
    terraform_bin: str = "terraform"
    config_file: str = ""
    fail_on_warnings: bool = False
    check_format: bool = True
    include_info: bool = True
    jobs: int = Field(default_factory=default_parallel_jobs, ge=1)
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    severity_overrides: dict[str, Severity] = Field(default_factory=dict)
    output_json: str = DEFAULT_OUTPUT_JSON

    @field_validator("severity_overrides", mode="before")
    @classmethod
    def _coerce_overrides(cls, value: object) -> object:
        if not isinstance(value, Mapping):
            return value
        coerced: dict[str, Severity] = {}
        for rule, label in value.items():
            severity = parse_severity(label)
            if severity is None:
                raise ValueError(f"unknown severity '{label}' for rule '{rule}'")
            coerced[str(rule)] = severity
        return coerced

    @field_validator("pattern")
    @classmethod
    def _reject_empty_pattern(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("pattern must not be empty")
        return value

    @property
    def resolved_root(self) -> Path:
        """Return the absolute working root."""
        return self.root.expanduser().resolve()

    @property
    def output_json_path(self) -> Path:
        """Return where the merged violation array is persisted."""
        candidate = Path(self.output_json)
        return candidate if candidate.is_absolute() else self.resolved_root / candidate


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc


def _load_pyproject_section(root: Path) -> dict[str, Any]:
    path = root / PYPROJECT_FILENAME
    if not path.is_file():
        return {}
    document = _read_toml(path)
    section = document.get(PYPROJECT_TOOL_KEY, {}).get(PYPROJECT_SECTION_KEY, {})
    if not isinstance(section, Mapping):
        raise ConfigError(f"[tool.{PYPROJECT_SECTION_KEY}] in {path} must be a table")
    return dict(section)


def _load_standalone(root: Path) -> dict[str, Any]:
    path = root / STANDALONE_FILENAME
    if not path.is_file():
        return {}
    document = _read_toml(path)
    nested = document.get(PYPROJECT_SECTION_KEY)
    if isinstance(nested, Mapping):
        return dict(nested)
    return document


def load_config(root: Path, overrides: Mapping[str, Any] | None = None) -> GateConfig:
    """Build the effective :class:`GateConfig` for ``root``.

    Precedence, lowest first: built-in defaults, ``[tool.tfgate]`` in
    ``pyproject.toml``, ``.tfgate.toml``, then ``overrides`` (typically CLI
    flags). ``None`` override values are ignored.

    Args:
        root: Working root containing optional configuration files.
        overrides: Explicit settings taking precedence over files.

    Returns:
        GateConfig: Validated configuration.

    Raises:
        ConfigError: If any layer is malformed or the merged result is invalid.
    """

    payload: dict[str, Any] = {}
    payload.update(_load_pyproject_section(root))
    payload.update(_load_standalone(root))
    payload.update({key: value for key, value in (overrides or {}).items() if value is not None})
    payload.setdefault("root", root)
    try:
        return GateConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Configuration invalid: {exc}") from exc


__all__ = ["GateConfig", "default_parallel_jobs", "load_config"]
