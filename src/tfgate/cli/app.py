# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""CLI application entry point wiring the gate commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from rich.logging import RichHandler

from ..aggregation import OutputFormatError, build_report, load_violations_json
from ..analyzer_config import render_default_config
from ..config import GateConfig, load_config
from ..console import get_console_manager
from ..errors import ConfigError, PublishError, ScopeResolutionError
from ..formatting import FormatChecker
from ..logging import annotate, fail, info, ok, section, warn
from ..pipeline import NOTHING_TO_CHECK, GatePipeline
from ..policy import evaluate_format, evaluate_report
from ..publish import ConsolePublisher, GitHubReviewPublisher, Publisher
from ..reporting import ReportOptions, render_format_report, render_report
from ..severity import parse_severity
from .options import (
    BASE_OPTION,
    COLOR_OPTION,
    CONFIG_FILE_OPTION,
    EMOJI_OPTION,
    FAIL_ON_WARNINGS_OPTION,
    FORMAT_OPTION,
    HEAD_OPTION,
    JOBS_OPTION,
    OUTPUT_JSON_OPTION,
    PATTERN_OPTION,
    PUBLISH_OPTION,
    RAW_OPTION,
    ROOT_OPTION,
    SEVERITY_OPTION,
    TFLINT_VERSION_OPTION,
    TIMEOUT_OPTION,
    CheckCLIOptions,
    PublishTarget,
    parse_severity_overrides,
)

FATAL_EXIT_CODE = 2

app = typer.Typer(
    name="tfgate",
    help="Incremental TFLint gate for Terraform changes.",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    debug: Annotated[bool, typer.Option("--debug", help="Emit debug logging.")] = False,
) -> None:
    """Configure logging shared by every command."""

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=get_console_manager().get(color=True, emoji=False), show_path=False)],
        force=True,
    )


def _abort(message: str, *, use_emoji: bool) -> NoReturn:
    fail(message, use_emoji=use_emoji)
    raise typer.Exit(code=FATAL_EXIT_CODE)


def _load(root: Path, overrides: dict[str, Any], *, use_emoji: bool) -> GateConfig:
    try:
        return load_config(root, overrides)
    except ConfigError as exc:
        _abort(str(exc), use_emoji=use_emoji)


def _build_publisher(target: PublishTarget, *, use_emoji: bool, use_color: bool, raw: bool = False) -> Publisher:
    if target is PublishTarget.GITHUB:
        try:
            return GitHubReviewPublisher.from_environment()
        except PublishError as exc:
            _abort(f"Cannot publish to GitHub: {exc}", use_emoji=use_emoji)
    return ConsolePublisher(use_color=use_color, use_emoji=use_emoji, render_markdown=not raw)


@app.command("check")
def check_command(
    root: ROOT_OPTION = Path("."),
    base: BASE_OPTION = None,
    head: HEAD_OPTION = None,
    pattern: PATTERN_OPTION = None,
    config_file: CONFIG_FILE_OPTION = None,
    tflint_version: TFLINT_VERSION_OPTION = None,
    fail_on_warnings: FAIL_ON_WARNINGS_OPTION = None,
    jobs: JOBS_OPTION = None,
    timeout: TIMEOUT_OPTION = None,
    severity: SEVERITY_OPTION = None,
    output_json: OUTPUT_JSON_OPTION = None,
    check_format: FORMAT_OPTION = None,
    publish: PUBLISH_OPTION = PublishTarget.CONSOLE,
    emoji: EMOJI_OPTION = True,
    color: COLOR_OPTION = True,
    raw: RAW_OPTION = False,
) -> None:
    """Lint the Terraform directories touched by a change and apply the gate policy."""

    options = CheckCLIOptions(
        root=root,
        base=base,
        head=head,
        pattern=pattern,
        config_file=config_file,
        tflint_version=tflint_version,
        fail_on_warnings=fail_on_warnings,
        jobs=jobs,
        timeout=timeout,
        severity=parse_severity_overrides(severity),
        output_json=output_json,
        check_format=check_format,
    )
    config = _load(root, options.to_overrides(), use_emoji=emoji)
    publisher = _build_publisher(publish, use_emoji=emoji, use_color=color, raw=raw)

    try:
        outcome = GatePipeline(config, publisher=publisher, use_emoji=emoji).run()
    except ScopeResolutionError as exc:
        _abort(f"Unable to resolve changed files: {exc}", use_emoji=emoji)

    if outcome.nothing_to_check:
        ok(NOTHING_TO_CHECK.capitalize(), use_emoji=emoji, use_color=color)
        raise typer.Exit(code=0)
    for note in outcome.notes:
        warn(note, use_emoji=emoji, use_color=color)
        if publish is PublishTarget.GITHUB:
            annotate("warning", note)
    if outcome.publish_error is not None:
        _abort(f"Publishing the report failed: {outcome.publish_error}", use_emoji=emoji)
    if publish is PublishTarget.GITHUB:
        summary = f"{'Blocking' if outcome.decision.should_fail else 'Passed'}: {outcome.decision.reason}"
        info(summary, use_emoji=emoji, use_color=color)
    raise typer.Exit(code=outcome.exit_code)


@app.command("scope")
def scope_command(
    root: ROOT_OPTION = Path("."),
    base: BASE_OPTION = None,
    head: HEAD_OPTION = None,
    pattern: PATTERN_OPTION = None,
    files: Annotated[bool, typer.Option("--files", help="List changed files instead of directories.")] = False,
) -> None:
    """Print the directories (or files) a change puts in scope, one per line."""

    config = _load(root, {"base_ref": base, "head_ref": head, "pattern": pattern}, use_emoji=False)
    pipeline = GatePipeline(config, publisher=ConsolePublisher())
    try:
        scope = pipeline.resolve_scope()
    except ScopeResolutionError as exc:
        _abort(f"Unable to resolve changed files: {exc}", use_emoji=False)
    for entry in scope.files if files else scope.directories:
        typer.echo(entry)


@app.command("fmt")
def fmt_command(
    root: ROOT_OPTION = Path("."),
    base: BASE_OPTION = None,
    head: HEAD_OPTION = None,
    pattern: PATTERN_OPTION = None,
    emoji: EMOJI_OPTION = True,
    color: COLOR_OPTION = True,
) -> None:
    """Run only the terraform fmt check over changed files."""

    config = _load(root, {"base_ref": base, "head_ref": head, "pattern": pattern}, use_emoji=emoji)
    pipeline = GatePipeline(config, publisher=ConsolePublisher(use_color=color, use_emoji=emoji))
    try:
        scope = pipeline.resolve_scope()
    except ScopeResolutionError as exc:
        _abort(f"Unable to resolve changed files: {exc}", use_emoji=emoji)
    if scope.is_empty:
        ok(NOTHING_TO_CHECK.capitalize(), use_emoji=emoji, use_color=color)
        raise typer.Exit(code=0)

    checker = FormatChecker(config.resolved_root, executable=config.terraform_bin, timeout=config.timeout)
    results = checker.check(scope.files)
    decision = evaluate_format(results)
    if not decision.should_fail:
        ok(f"{len(results)} file(s) correctly formatted", use_emoji=emoji, use_color=color)
        raise typer.Exit(code=0)
    section("terraform fmt", use_color=color)
    typer.echo(render_format_report(results, use_emoji=emoji))
    fail(decision.reason, use_emoji=emoji, use_color=color)
    raise typer.Exit(code=decision.exit_code)


@app.command("report")
def report_command(
    root: ROOT_OPTION = Path("."),
    output_json: OUTPUT_JSON_OPTION = None,
    fail_on_warnings: FAIL_ON_WARNINGS_OPTION = None,
    emoji: EMOJI_OPTION = True,
    color: COLOR_OPTION = True,
    raw: RAW_OPTION = False,
) -> None:
    """Re-render and re-evaluate the violation file written by a previous ``check``.

    Invocation errors are not persisted, so the policy sees a complete run.
    """

    config = _load(root, {"output_json": output_json, "fail_on_warnings": fail_on_warnings}, use_emoji=emoji)
    path = config.output_json_path
    try:
        violations = load_violations_json(path)
    except FileNotFoundError:
        _abort(f"No violation file at {path}; run 'tfgate check' first", use_emoji=emoji)
    except (OSError, OutputFormatError) as exc:
        _abort(f"Cannot read {path}: {exc}", use_emoji=emoji)

    report = build_report(violations)
    decision = evaluate_report(report, fail_on_warnings=config.fail_on_warnings)
    rendered = render_report(report, ReportOptions(include_info=config.include_info, use_emoji=emoji))
    ConsolePublisher(use_color=color, use_emoji=emoji, render_markdown=not raw).publish(rendered, decision)
    raise typer.Exit(code=decision.exit_code)


@app.command("default-config")
def default_config_command(severity: SEVERITY_OPTION = None) -> None:
    """Print the built-in .tflint.hcl ruleset."""

    overrides = parse_severity_overrides(severity) or {}
    resolved = {rule: level for rule, raw in overrides.items() if (level := parse_severity(raw)) is not None}
    typer.echo(render_default_config(resolved), nl=False)


__all__ = ["app"]
