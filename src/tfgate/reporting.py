# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Render aggregated results as a Markdown review comment."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from .models import AggregatedReport, FormatCheckResult, InvocationErrorEntry, Violation
from .severity import SEVERITY_ORDER, Severity

LINT_TITLE: Final[str] = "### TFLint Results"
FORMAT_TITLE: Final[str] = "### Terraform Format Check Failed"
INCOMPLETE_TITLE: Final[str] = "#### Could not complete analysis"

SEVERITY_ICONS: Final[dict[Severity, str]] = {
    Severity.ERROR: "🚨",
    Severity.WARNING: "⚠️",
    Severity.NOTICE: "🤔",
    Severity.INFO: "ℹ️",
}

_INLINE_SPECIALS: Final[re.Pattern[str]] = re.compile(r"([\\`*_])")
_BACKTICK_RUN: Final[re.Pattern[str]] = re.compile(r"`+")


@dataclass(frozen=True, slots=True)
class ReportOptions:
    """Presentation switches for the rendered report."""

    include_info: bool = True
    use_emoji: bool = True


def escape_inline(text: str) -> str:
    """Escape ``text`` so it renders verbatim inside a Markdown paragraph.

    Markdown emphasis and code delimiters are backslash-escaped, HTML openers
    are entity-encoded and line breaks become ``<br>`` so one message never
    spills into the surrounding report structure.
    """

    escaped = _INLINE_SPECIALS.sub(r"\\\1", text)
    escaped = escaped.replace("<", "&lt;").replace(">", "&gt;")
    return "<br>".join(escaped.splitlines())


def _longest_backtick_run(text: str) -> int:
    return max((len(match.group(0)) for match in _BACKTICK_RUN.finditer(text)), default=0)


def code_span(text: str) -> str:
    """Wrap ``text`` in a code span whose delimiter cannot occur inside it."""

    fence = "`" * (_longest_backtick_run(text) + 1)
    padding = " " if text.startswith("`") or text.endswith("`") else ""
    return f"{fence}{padding}{text}{padding}{fence}"


def code_block(text: str, language: str = "") -> list[str]:
    """Return a fenced block for ``text`` using a fence longer than any backtick run inside it."""

    fence = "`" * max(3, _longest_backtick_run(text) + 1)
    return [f"{fence}{language}", text.rstrip("\n"), fence]


def _icon(severity: Severity, options: ReportOptions) -> str:
    return f"{SEVERITY_ICONS[severity]} " if options.use_emoji else ""


def _visible_severities(options: ReportOptions) -> tuple[Severity, ...]:
    if options.include_info:
        return SEVERITY_ORDER
    return tuple(severity for severity in SEVERITY_ORDER if severity is not Severity.INFO)


def sorted_section(violations: Sequence[Violation]) -> list[Violation]:
    """Return ``violations`` ordered by file, line and column."""

    return sorted(violations, key=lambda violation: violation.sort_key)


def render_summary(report: AggregatedReport, options: ReportOptions | None = None) -> list[str]:
    """Return the summary lines with per-severity totals."""

    options = options or ReportOptions()
    severities = _visible_severities(options)
    shown = sum(report.count(severity) for severity in severities)
    lines = [f"Found {shown} issue(s):"]
    for severity in severities:
        lines.append(f"- {_icon(severity, options)}{report.count(severity)} {severity.value}(s)")
    return lines


def render_violation(violation: Violation, options: ReportOptions | None = None) -> list[str]:
    """Return the Markdown lines describing one violation."""

    options = options or ReportOptions()
    location = escape_inline(f"{violation.file}:{violation.line}")
    return [
        f"{_icon(violation.severity, options)}**{location}**",
        f"{code_span(violation.rule_name)}: {escape_inline(violation.message)}",
        "",
    ]


def render_invocation_errors(errors: Sequence[InvocationErrorEntry]) -> list[str]:
    """Return the section listing directories whose analysis did not finish."""

    if not errors:
        return []
    lines = [
        INCOMPLETE_TITLE,
        "",
        "The analyzer did not finish for the following directories, so these results are incomplete:",
        "",
    ]
    for entry in errors:
        lines.append(f"- {code_span(entry.directory)} ({entry.kind.value}): {escape_inline(entry.reason)}")
    lines.append("")
    return lines


def render_report(report: AggregatedReport, options: ReportOptions | None = None) -> str:
    """Render ``report`` as Markdown.

    The output depends only on ``report`` and ``options``: rendering the same
    inputs twice yields identical text.
    """

    options = options or ReportOptions()
    lines = [LINT_TITLE, ""]
    lines.extend(render_summary(report, options))
    lines.append("")
    for severity in _visible_severities(options):
        section = report.violations_by_severity.get(severity, ())
        if not section:
            continue
        lines.extend([f"#### {severity.value.upper()}", ""])
        for violation in sorted_section(section):
            lines.extend(render_violation(violation, options))
    lines.extend(render_invocation_errors(report.invocation_errors))
    return "\n".join(lines).rstrip("\n") + "\n"


def render_format_report(results: Sequence[FormatCheckResult], *, use_emoji: bool = True) -> str:
    """Render failed format checks with their diffs; empty when every file passed."""

    failures = sorted((result for result in results if not result.passed), key=lambda result: result.path)
    if not failures:
        return ""
    title = f"{FORMAT_TITLE} 🎨" if use_emoji else FORMAT_TITLE
    lines = [title, "", "The following files need to be formatted with `terraform fmt`:", ""]
    for result in failures:
        lines.extend([f"#### {escape_inline(result.path)}", ""])
        lines.extend(code_block(result.diff or "(no diff produced)", "diff"))
        lines.append("")
    lines.append("Please run `terraform fmt` on these files and commit the changes.")
    return "\n".join(lines) + "\n"


def combine_sections(*sections: str) -> str:
    """Join non-empty report sections into one comment body."""

    return "\n".join(section.rstrip("\n") + "\n" for section in sections if section.strip())


__all__ = [
    "ReportOptions",
    "SEVERITY_ICONS",
    "code_block",
    "code_span",
    "combine_sections",
    "escape_inline",
    "render_format_report",
    "render_invocation_errors",
    "render_report",
    "render_summary",
    "render_violation",
    "sorted_section",
]
