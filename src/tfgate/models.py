# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Core data models shared across the tfgate package."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .severity import SEVERITY_ORDER, Severity, empty_totals

DedupeKey = tuple[str, str, int, int]


class InvocationStatus(str, Enum):
    """Outcome of launching the analyzer for a single directory."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class InvocationErrorKind(str, Enum):
    """Distinguish process failures from unusable analyzer output."""

    INVOCATION = "invocation"
    PARSE = "parse"


class Violation(BaseModel):
    """Normalized TFLint issue."""

    model_config = ConfigDict(frozen=True)

    rule_name: str
    severity: Severity
    message: str
    file: str
    line: int = Field(ge=1)
    column: int = Field(ge=1)
    directory: str = "."

    @property
    def dedupe_key(self) -> DedupeKey:
        """Return the identity used to collapse duplicate reports."""
        return (self.rule_name, self.file, self.line, self.column)

    @property
    def sort_key(self) -> tuple[str, int, int]:
        """Return the ordering used when rendering a severity section."""
        return (self.file, self.line, self.column)


class InvocationResult(BaseModel):
    """Raw analyzer output captured for one target directory."""

    model_config = ConfigDict(frozen=True)

    directory: str
    status: InvocationStatus
    returncode: int | None = None
    raw_output: bytes = b""
    stderr: bytes = b""
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        """Return ``True`` when the analyzer process ran to completion."""
        return self.status is InvocationStatus.SUCCEEDED


class InvocationErrorEntry(BaseModel):
    """A directory whose analysis could not be completed."""

    model_config = ConfigDict(frozen=True)

    directory: str
    reason: str
    kind: InvocationErrorKind = InvocationErrorKind.INVOCATION


class AggregatedReport(BaseModel):
    """Merged, deduplicated and classified analyzer findings for one run."""

    model_config = ConfigDict(frozen=True)

    directories: tuple[str, ...] = ()
    violations: tuple[Violation, ...] = ()
    violations_by_severity: dict[Severity, tuple[Violation, ...]] = Field(
        default_factory=lambda: {severity: () for severity in SEVERITY_ORDER},
    )
    totals_by_severity: dict[Severity, int] = Field(default_factory=empty_totals)
    invocation_errors: tuple[InvocationErrorEntry, ...] = ()

    @property
    def total(self) -> int:
        """Return the number of distinct violations across all severities."""
        return len(self.violations)

    @property
    def is_complete(self) -> bool:
        """Return ``True`` when every directory was analysed successfully."""
        return not self.invocation_errors

    def count(self, severity: Severity) -> int:
        """Return the number of violations recorded for ``severity``."""
        return self.totals_by_severity.get(severity, 0)


class PolicyDecision(BaseModel):
    """Pass/fail verdict derived from an aggregated report."""

    model_config = ConfigDict(frozen=True)

    should_fail: bool
    reason: str

    @property
    def exit_code(self) -> int:
        """Return the process exit status signalling this decision."""
        return 1 if self.should_fail else 0


class FormatCheckResult(BaseModel):
    """Outcome of a check-only ``terraform fmt`` run for one file."""

    model_config = ConfigDict(frozen=True)

    path: str
    passed: bool
    diff: str = ""


__all__ = [
    "AggregatedReport",
    "DedupeKey",
    "FormatCheckResult",
    "InvocationErrorEntry",
    "InvocationErrorKind",
    "InvocationResult",
    "InvocationStatus",
    "PolicyDecision",
    "Violation",
]
