# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exceptions that abort a gate run.

Per-directory invocation and parse problems are not exceptions: they are
collected as :class:`tfgate.models.InvocationErrorEntry` values and reported
together once every directory has been analysed.
"""

from __future__ import annotations


class GateError(Exception):
    """Base class for fatal gate failures."""


class ConfigError(GateError):
    """Raised when run configuration input is invalid."""


class ScopeResolutionError(GateError):
    """Raised when changed files cannot be resolved from revision history."""


class PublishError(GateError):
    """Raised when the rendered report cannot be delivered."""


__all__ = ["ConfigError", "GateError", "PublishError", "ScopeResolutionError"]
