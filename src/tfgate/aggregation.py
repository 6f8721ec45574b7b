# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Parse per-directory analyzer output and merge it into one report."""

from __future__ import annotations

import json
import logging
import posixpath
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Final, TypeAlias

from pydantic import ValidationError

from .models import (
    AggregatedReport,
    DedupeKey,
    InvocationErrorEntry,
    InvocationErrorKind,
    InvocationResult,
    Violation,
)
from .severity import SEVERITY_ORDER, Severity, count_by_severity, parse_severity

LOGGER = logging.getLogger(__name__)

JsonValue: TypeAlias = Any

_ISSUES_KEY: Final[str] = "issues"
_ERRORS_KEY: Final[str] = "errors"
_STDERR_EXCERPT_LIMIT: Final[int] = 500


class OutputFormatError(ValueError):
    """Raised when analyzer output cannot be interpreted as a violation list."""


@dataclass(frozen=True, slots=True)
class ParsedOutput:
    """Violations extracted from one invocation, or the reason there are none."""

    directory: str
    violations: tuple[Violation, ...] = ()
    error: InvocationErrorEntry | None = None


def _stderr_excerpt(result: InvocationResult) -> str:
    text = result.stderr.decode("utf-8", errors="replace").strip()
    if len(text) > _STDERR_EXCERPT_LIMIT:
        text = text[:_STDERR_EXCERPT_LIMIT].rstrip() + "…"
    return text


def _join_reported_path(directory: str, filename: str) -> str:
    """Express a filename reported relative to ``directory`` relative to the working root."""

    if not filename:
        return directory
    reported = PurePosixPath(filename.replace("\\", "/"))
    if reported.is_absolute():
        return reported.as_posix()
    return posixpath.normpath((PurePosixPath(directory) / reported).as_posix())


def _require_mapping(value: JsonValue, field: str) -> Mapping[str, JsonValue]:
    if not isinstance(value, Mapping):
        raise OutputFormatError(f"issue field '{field}' must be an object")
    return value


def _require_position(value: JsonValue, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise OutputFormatError(f"issue field '{field}' must be an integer")
    return max(value, 1)


def build_violation(issue: JsonValue, directory: str) -> Violation:
    """Convert one TFLint issue object into a :class:`Violation`.

    Args:
        issue: Decoded issue object with ``rule``, ``message`` and ``range``.
        directory: Target directory the analyzer ran in.

    Returns:
        Violation: Normalized violation with a root-relative file path.

    Raises:
        OutputFormatError: If required fields are missing or malformed.
    """

    payload = _require_mapping(issue, "issue")
    rule = _require_mapping(payload.get("rule"), "rule")
    location = _require_mapping(payload.get("range"), "range")
    start = _require_mapping(location.get("start"), "range.start")

    name = rule.get("name")
    if not isinstance(name, str) or not name:
        raise OutputFormatError("issue field 'rule.name' must be a non-empty string")
    severity = parse_severity(rule.get("severity"))
    if severity is None:
        raise OutputFormatError(f"unknown severity {rule.get('severity')!r} for rule '{name}'")
    message = payload.get("message")
    if not isinstance(message, str):
        raise OutputFormatError(f"issue field 'message' must be a string for rule '{name}'")
    filename = location.get("filename", "")
    if not isinstance(filename, str):
        raise OutputFormatError("issue field 'range.filename' must be a string")

    try:
        return Violation(
            rule_name=name,
            severity=severity,
            message=message,
            file=_join_reported_path(directory, filename),
            line=_require_position(start.get("line"), "range.start.line"),
            column=_require_position(start.get("column"), "range.start.column"),
            directory=directory,
        )
    except ValidationError as exc:
        raise OutputFormatError(str(exc)) from exc


def _extract_issues(payload: JsonValue) -> list[JsonValue]:
    """Return the issue list from a bare array or TFLint's ``{"issues", "errors"}`` document."""

    if isinstance(payload, list):
        return payload
    if not isinstance(payload, Mapping):
        raise OutputFormatError(f"expected a JSON array or object, got {type(payload).__name__}")
    errors = payload.get(_ERRORS_KEY) or []
    if not isinstance(errors, list):
        raise OutputFormatError("'errors' must be an array")
    if errors:
        messages = [
            str(entry.get("message", entry)) if isinstance(entry, Mapping) else str(entry) for entry in errors
        ]
        raise OutputFormatError("analyzer reported errors: " + "; ".join(messages))
    issues = payload.get(_ISSUES_KEY, [])
    if not isinstance(issues, list):
        raise OutputFormatError("'issues' must be an array")
    return issues


def parse_invocation(result: InvocationResult) -> ParsedOutput:
    """Interpret one :class:`InvocationResult`.

    Failed invocations and unusable output each yield exactly one error entry
    and no violations.
    """

    directory = result.directory
    if not result.succeeded:
        reason = result.reason or "analyzer invocation failed"
        excerpt = _stderr_excerpt(result)
        if excerpt:
            reason = f"{reason}: {excerpt}"
        return ParsedOutput(directory, error=InvocationErrorEntry(directory=directory, reason=reason))

    try:
        violations = _parse_raw_output(result)
    except OutputFormatError as exc:
        LOGGER.warning("unusable analyzer output for %s: %s", directory, exc)
        error = InvocationErrorEntry(directory=directory, reason=str(exc), kind=InvocationErrorKind.PARSE)
        return ParsedOutput(directory, error=error)
    return ParsedOutput(directory, violations=violations)


def _parse_raw_output(result: InvocationResult) -> tuple[Violation, ...]:
    try:
        text = result.raw_output.decode("utf-8").strip()
    except UnicodeDecodeError as exc:
        raise OutputFormatError(f"output is not valid UTF-8: {exc}") from exc
    if not text:
        if result.returncode in (0, None):
            return ()
        detail = _stderr_excerpt(result) or "no output"
        raise OutputFormatError(f"exit status {result.returncode} with empty output: {detail}")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise OutputFormatError(f"malformed JSON output: {exc}") from exc
    return tuple(build_violation(issue, result.directory) for issue in _extract_issues(payload))


def build_report(
    violations: Iterable[Violation],
    *,
    directories: Sequence[str] = (),
    invocation_errors: Sequence[InvocationErrorEntry] = (),
) -> AggregatedReport:
    """Deduplicate ``violations`` and classify them by severity.

    Two violations are duplicates when rule name, file, line and column match;
    the first one encountered is kept.
    """

    seen: set[DedupeKey] = set()
    unique: list[Violation] = []
    for violation in violations:
        if violation.dedupe_key in seen:
            continue
        seen.add(violation.dedupe_key)
        unique.append(violation)

    by_severity: dict[Severity, tuple[Violation, ...]] = {
        severity: tuple(violation for violation in unique if violation.severity is severity)
        for severity in SEVERITY_ORDER
    }
    return AggregatedReport(
        directories=tuple(directories),
        violations=tuple(unique),
        violations_by_severity=by_severity,
        totals_by_severity=count_by_severity(violation.severity for violation in unique),
        invocation_errors=tuple(invocation_errors),
    )


def aggregate(results: Iterable[InvocationResult]) -> AggregatedReport:
    """Merge every invocation result into one :class:`AggregatedReport`.

    Results are folded in lexicographic directory order regardless of the
    order in which they completed.
    """

    ordered = sorted(results, key=lambda result: result.directory)
    violations: list[Violation] = []
    errors: list[InvocationErrorEntry] = []
    for result in ordered:
        parsed = parse_invocation(result)
        if parsed.error is not None:
            errors.append(parsed.error)
        violations.extend(parsed.violations)
    return build_report(
        violations,
        directories=[result.directory for result in ordered],
        invocation_errors=errors,
    )


def violation_to_json(violation: Violation) -> dict[str, JsonValue]:
    """Serialize ``violation`` using the analyzer's native issue shape."""

    return {
        "rule": {"name": violation.rule_name, "severity": violation.severity.value},
        "message": violation.message,
        "range": {
            "filename": violation.file,
            "start": {"line": violation.line, "column": violation.column},
        },
    }


def write_violations_json(report: AggregatedReport, path: Path) -> None:
    """Persist the merged violation array; an empty report writes ``[]``."""

    payload = [violation_to_json(violation) for violation in report.violations]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def load_violations_json(path: Path) -> tuple[Violation, ...]:
    """Load violations previously written by :func:`write_violations_json`.

    Raises:
        OutputFormatError: If the document is not a well-formed violation array.
    """

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise OutputFormatError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise OutputFormatError(f"{path} must contain a JSON array")
    return tuple(build_violation(issue, ".") for issue in payload)


__all__ = [
    "OutputFormatError",
    "ParsedOutput",
    "aggregate",
    "build_report",
    "build_violation",
    "load_violations_json",
    "parse_invocation",
    "violation_to_json",
    "write_violations_json",
]
