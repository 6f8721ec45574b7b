# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Severity related types and helpers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Final


class Severity(str, Enum):
    """Severity levels reported by TFLint rules."""

    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"
    INFO = "info"


SEVERITY_ORDER: Final[tuple[Severity, ...]] = (
    Severity.ERROR,
    Severity.WARNING,
    Severity.NOTICE,
    Severity.INFO,
)

_SEVERITY_ALIASES: Final[dict[str, Severity]] = {
    "error": Severity.ERROR,
    "warning": Severity.WARNING,
    "warn": Severity.WARNING,
    "notice": Severity.NOTICE,
    "info": Severity.INFO,
}


def parse_severity(label: object) -> Severity | None:
    """Return the :class:`Severity` matching ``label`` or ``None`` when unknown.

    Args:
        label: Raw severity label as emitted by the analyzer.

    Returns:
        Severity | None: Normalised severity, ``None`` for unrecognised labels.
    """

    if isinstance(label, Severity):
        return label
    if not isinstance(label, str):
        return None
    return _SEVERITY_ALIASES.get(label.strip().lower())


def empty_totals() -> dict[Severity, int]:
    """Return a zeroed count for every severity in report order."""

    return {severity: 0 for severity in SEVERITY_ORDER}


def count_by_severity(severities: Iterable[Severity]) -> dict[Severity, int]:
    """Count ``severities`` into a mapping covering every severity level."""

    totals = empty_totals()
    for severity in severities:
        totals[severity] += 1
    return totals


def format_totals(totals: Mapping[Severity, int]) -> str:
    """Render ``totals`` as ``error=1 warning=0 ...`` for log output."""

    return " ".join(f"{severity.value}={totals.get(severity, 0)}" for severity in SEVERITY_ORDER)


__all__ = [
    "SEVERITY_ORDER",
    "Severity",
    "count_by_severity",
    "empty_totals",
    "format_totals",
    "parse_severity",
]
