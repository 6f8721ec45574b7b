# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Convert aggregated counts into a pass/fail decision."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Final

from .models import AggregatedReport, FormatCheckResult, PolicyDecision
from .severity import Severity

INCOMPLETE_REASON: Final[str] = "analysis incomplete."
PASS_REASON: Final[str] = "no blocking findings."


def evaluate_policy(
    totals: Mapping[Severity, int],
    *,
    fail_on_warnings: bool,
    has_invocation_errors: bool,
) -> PolicyDecision:
    """Return the decision for ``totals``; the first matching rule wins.

    1. Any invocation error fails the run, whatever the counts.
    2. Any error-severity violation fails the run.
    3. In strict mode any warning fails the run.
    4. Otherwise the run passes.
    """

    if has_invocation_errors:
        return PolicyDecision(should_fail=True, reason=INCOMPLETE_REASON)
    errors = totals.get(Severity.ERROR, 0)
    if errors > 0:
        return PolicyDecision(should_fail=True, reason=f"{errors} error(s) found.")
    warnings = totals.get(Severity.WARNING, 0)
    if fail_on_warnings and warnings > 0:
        return PolicyDecision(should_fail=True, reason=f"{warnings} warning(s) found under strict mode.")
    return PolicyDecision(should_fail=False, reason=PASS_REASON)


def evaluate_report(report: AggregatedReport, *, fail_on_warnings: bool) -> PolicyDecision:
    """Apply :func:`evaluate_policy` to a complete :class:`AggregatedReport`."""

    return evaluate_policy(
        report.totals_by_severity,
        fail_on_warnings=fail_on_warnings,
        has_invocation_errors=not report.is_complete,
    )


def evaluate_format(results: Sequence[FormatCheckResult]) -> PolicyDecision:
    """Fail when any checked file needs formatting."""

    failed = sum(1 for result in results if not result.passed)
    if failed:
        return PolicyDecision(should_fail=True, reason=f"{failed} file(s) need terraform fmt.")
    return PolicyDecision(should_fail=False, reason=PASS_REASON)


def combine_decisions(*decisions: PolicyDecision) -> PolicyDecision:
    """Merge independent decisions; failing reasons are joined in argument order."""

    reasons = [decision.reason for decision in decisions if decision.should_fail]
    if reasons:
        return PolicyDecision(should_fail=True, reason=" ".join(reasons))
    return PolicyDecision(should_fail=False, reason=PASS_REASON)


__all__ = [
    "INCOMPLETE_REASON",
    "PASS_REASON",
    "combine_decisions",
    "evaluate_format",
    "evaluate_policy",
    "evaluate_report",
]
