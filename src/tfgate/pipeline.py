# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""End-to-end gate run: scope, analyze, aggregate, report, decide, publish."""

from __future__ import annotations

import logging
import re
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Final

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from .aggregation import aggregate, write_violations_json
from .analyzer_config import ResolvedAnalyzerConfig, materialize_config
from .config import GateConfig
from .discovery import ChangeScope, ChangeScopeResolver
from .errors import PublishError
from .formatting import FormatChecker
from .invoker import AnalyzerInvoker, TFLintAnalyzer
from .models import (
    AggregatedReport,
    FormatCheckResult,
    InvocationErrorEntry,
    InvocationErrorKind,
    PolicyDecision,
)
from .policy import PASS_REASON, combine_decisions, evaluate_format, evaluate_report
from .publish import Publisher
from .reporting import ReportOptions, combine_sections, render_format_report, render_report
from .severity import format_totals

LOGGER = logging.getLogger(__name__)

NOTHING_TO_CHECK: Final[str] = "no changed files match the pattern; nothing to check."
PUBLISH_FAILURE_EXIT_CODE: Final[int] = 2
_VERSION_PATTERN: Final[re.Pattern[str]] = re.compile(r"(\d+(?:\.\d+)*)")


@dataclass(frozen=True, slots=True)
class GateOutcome:
    """Everything a single gate run produced."""

    scope: ChangeScope
    report: AggregatedReport
    decision: PolicyDecision
    format_results: tuple[FormatCheckResult, ...] = ()
    rendered: str | None = None
    analyzer_config: ResolvedAnalyzerConfig | None = None
    published: bool = False
    publish_error: str | None = None
    notes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def nothing_to_check(self) -> bool:
        """Return ``True`` when the change touched no matching file."""
        return self.scope.is_empty

    @property
    def exit_code(self) -> int:
        """Return the process exit status for this run."""
        if self.publish_error is not None:
            return PUBLISH_FAILURE_EXIT_CODE
        return self.decision.exit_code


def version_matches(wanted: str, reported: str) -> bool:
    """Return ``True`` when the version in ``reported`` satisfies the pin ``wanted``.

    The pin is a release prefix: ``0.50`` accepts ``TFLint version 0.50.3``
    while ``0.5`` does not.
    """

    wanted_match = _VERSION_PATTERN.search(wanted)
    reported_match = _VERSION_PATTERN.search(reported)
    if wanted_match is None or reported_match is None:
        return False
    try:
        pin = SpecifierSet(f"=={wanted_match.group(1)}.*")
        return Version(reported_match.group(1)) in pin
    except (InvalidSpecifier, InvalidVersion):
        return False


class GatePipeline:
    """Wire the gate components together for one run."""

    def __init__(
        self,
        config: GateConfig,
        *,
        publisher: Publisher,
        resolver: ChangeScopeResolver | None = None,
        analyzer: TFLintAnalyzer | None = None,
        format_checker: FormatChecker | None = None,
        use_emoji: bool = True,
    ) -> None:
        root = config.resolved_root
        self._config = config
        self._root = root
        self._publisher = publisher
        self._use_emoji = use_emoji
        self._resolver = resolver or ChangeScopeResolver()
        self._analyzer = analyzer or TFLintAnalyzer(root, executable=config.tflint_bin, timeout=config.timeout)
        self._format_checker = format_checker or FormatChecker(
            root,
            executable=config.terraform_bin,
            timeout=config.timeout,
        )

    def resolve_scope(self) -> ChangeScope:
        """Resolve the changed files into target directories.

        Raises:
            ScopeResolutionError: If revision history is unavailable.
        """

        config = self._config
        return self._resolver.resolve(self._root, config.base_ref, config.head_ref, config.pattern)

    def run(self) -> GateOutcome:
        """Execute the gate and publish its report exactly once.

        Nothing is analysed or published when the scope is empty; the merged
        violation file is still written so downstream readers always find a
        JSON array.
        """

        config = self._config
        scope = self.resolve_scope()
        if scope.is_empty:
            LOGGER.info(NOTHING_TO_CHECK)
            empty = AggregatedReport()
            write_violations_json(empty, config.output_json_path)
            return GateOutcome(
                scope=scope,
                report=empty,
                decision=PolicyDecision(should_fail=False, reason=PASS_REASON),
                notes=(NOTHING_TO_CHECK,),
            )

        format_results = self._format_checker.check(scope.files) if config.check_format else ()
        notes: list[str] = []
        with tempfile.TemporaryDirectory(prefix="tfgate-") as scratch:
            resolved = materialize_config(
                config.config_file,
                root=self._root,
                scratch_dir=Path(scratch),
                overrides=config.severity_overrides,
            )
            notes.extend(self._check_version())
            report = self._analyze(scope, resolved)

        LOGGER.info("aggregated %d violation(s): %s", report.total, format_totals(report.totals_by_severity))
        write_violations_json(report, config.output_json_path)
        decision = combine_decisions(
            evaluate_report(report, fail_on_warnings=config.fail_on_warnings),
            evaluate_format(format_results),
        )
        rendered = combine_sections(
            render_report(report, ReportOptions(include_info=config.include_info, use_emoji=self._use_emoji)),
            render_format_report(format_results, use_emoji=self._use_emoji),
        )
        outcome = GateOutcome(
            scope=scope,
            report=report,
            decision=decision,
            format_results=format_results,
            rendered=rendered,
            analyzer_config=resolved,
            notes=tuple(notes),
        )
        return self._publish(outcome)

    def _analyze(self, scope: ChangeScope, resolved: ResolvedAnalyzerConfig) -> AggregatedReport:
        init_errors: list[InvocationErrorEntry] = []
        init = self._analyzer.init_plugins(resolved)
        if not init.succeeded or init.returncode != 0:
            detail = init.reason or init.stderr.decode("utf-8", errors="replace").strip() or "unknown error"
            init_errors.append(
                InvocationErrorEntry(
                    directory=".",
                    reason=f"plugin initialisation failed: {detail}",
                    kind=InvocationErrorKind.INVOCATION,
                )
            )
        invoker = AnalyzerInvoker(self._analyzer, jobs=self._config.jobs)
        report = aggregate(invoker.run(scope.directories, resolved))
        if not init_errors:
            return report
        return report.model_copy(update={"invocation_errors": (*init_errors, *report.invocation_errors)})

    def _check_version(self) -> list[str]:
        wanted = self._config.tflint_version.strip().lstrip("v")
        if wanted in ("", "latest"):
            return []
        reported = self._analyzer.version()
        if reported is None or version_matches(wanted, reported):
            return []
        note = f"requested TFLint {wanted} but found '{reported}'"
        LOGGER.warning(note)
        return [note]

    def _publish(self, outcome: GateOutcome) -> GateOutcome:
        try:
            self._publisher.publish(outcome.rendered or "", outcome.decision)
        except PublishError as exc:
            LOGGER.error("publishing the report failed: %s", exc)
            return replace(outcome, publish_error=str(exc))
        return replace(outcome, published=True)


__all__ = ["GateOutcome", "GatePipeline", "NOTHING_TO_CHECK", "PUBLISH_FAILURE_EXIT_CODE", "version_matches"]
