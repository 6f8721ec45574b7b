# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for parsing and merging analyzer output."""

import json
from pathlib import Path

import pytest

from conftest import tflint_document, tflint_issue
from tfgate.aggregation import (
    OutputFormatError,
    aggregate,
    load_violations_json,
    parse_invocation,
    write_violations_json,
)
from tfgate.models import AggregatedReport, InvocationErrorKind, InvocationResult, InvocationStatus
from tfgate.severity import Severity


def _ok(directory: str, output: bytes, returncode: int = 2) -> InvocationResult:
    return InvocationResult(
        directory=directory,
        status=InvocationStatus.SUCCEEDED,
        returncode=returncode,
        raw_output=output,
    )


def test_native_document_is_parsed_with_root_relative_paths() -> None:
    output = tflint_document(
        tflint_issue("terraform_deprecated_interpolation", "error", line=12, column=3, message="Interpolation-only"),
    )

    parsed = parse_invocation(_ok("modules/vpc", output))

    assert parsed.error is None
    (violation,) = parsed.violations
    assert violation.rule_name == "terraform_deprecated_interpolation"
    assert violation.severity is Severity.ERROR
    assert violation.file == "modules/vpc/main.tf"
    assert (violation.line, violation.column) == (12, 3)
    assert violation.directory == "modules/vpc"


def test_bare_issue_array_is_accepted() -> None:
    output = json.dumps([tflint_issue("terraform_typed_variables", "warning")]).encode()

    parsed = parse_invocation(_ok(".", output))

    assert [violation.file for violation in parsed.violations] == ["main.tf"]


def test_empty_output_with_clean_exit_means_no_findings() -> None:
    parsed = parse_invocation(_ok("app", b"", returncode=0))

    assert parsed.error is None
    assert parsed.violations == ()


@pytest.mark.parametrize(
    ("output", "fragment"),
    [
        (b"Failed to load configurations", "malformed JSON"),
        (b"\xff\xfe", "UTF-8"),
        (b'"just a string"', "expected a JSON array or object"),
        (json.dumps([{"rule": {"name": "x"}}]).encode(), "'range'"),
        (json.dumps([{"message": "no rule"}]).encode(), "'rule'"),
        (json.dumps([tflint_issue("x", "critical")]).encode(), "unknown severity"),
    ],
)
def test_unusable_output_becomes_one_parse_error(output: bytes, fragment: str) -> None:
    parsed = parse_invocation(_ok("app", output))

    assert parsed.violations == ()
    assert parsed.error is not None
    assert parsed.error.kind is InvocationErrorKind.PARSE
    assert parsed.error.directory == "app"
    assert fragment in parsed.error.reason


def test_analyzer_errors_make_directory_incomplete() -> None:
    output = tflint_document(
        tflint_issue("terraform_typed_variables", "warning"),
        errors=[{"message": "main.tf:3,1-2: Argument or block definition required", "severity": "error"}],
    )

    parsed = parse_invocation(_ok("app", output, returncode=1))

    assert parsed.violations == ()
    assert parsed.error is not None
    assert "Argument or block definition required" in parsed.error.reason


def test_failed_invocation_becomes_invocation_error() -> None:
    failed = InvocationResult(
        directory="slow",
        status=InvocationStatus.FAILED,
        reason="timed out after 300s",
        stderr=b"partial log",
    )

    parsed = parse_invocation(failed)

    assert parsed.error is not None
    assert parsed.error.kind is InvocationErrorKind.INVOCATION
    assert parsed.error.reason == "timed out after 300s: partial log"


def test_zero_positions_are_clamped_to_one() -> None:
    output = tflint_document(tflint_issue("terraform_required_version", "error", line=0, column=0))

    (violation,) = parse_invocation(_ok("app", output)).violations

    assert (violation.line, violation.column) == (1, 1)


def test_duplicates_keep_first_in_directory_order() -> None:
    first = tflint_issue("terraform_naming_convention", "warning", filename="../shared/a.tf", message="first")
    second = tflint_issue("terraform_naming_convention", "warning", filename="a.tf", message="second")
    results = [
        _ok("shared", tflint_document(second)),
        _ok("app", tflint_document(first)),
    ]

    report = aggregate(results)

    assert report.total == 1
    assert report.violations[0].message == "first"
    assert report.violations[0].file == "shared/a.tf"
    assert report.count(Severity.WARNING) == 1


def test_aggregate_partitions_and_counts_by_severity() -> None:
    results = [
        _ok(
            "b",
            tflint_document(
                tflint_issue("terraform_documented_outputs", "info"),
                tflint_issue("terraform_comment_syntax", "notice", line=4),
            ),
        ),
        _ok(
            "a",
            tflint_document(
                tflint_issue("terraform_unused_declarations", "error", line=9),
                tflint_issue("terraform_unused_declarations", "error", line=2),
            ),
        ),
    ]

    report = aggregate(results)

    assert report.directories == ("a", "b")
    assert report.totals_by_severity == {
        Severity.ERROR: 2,
        Severity.WARNING: 0,
        Severity.NOTICE: 1,
        Severity.INFO: 1,
    }
    assert [v.line for v in report.violations_by_severity[Severity.ERROR]] == [9, 2]
    assert [v.directory for v in report.violations] == ["a", "a", "b", "b"]


def test_one_bad_directory_does_not_affect_others() -> None:
    results = [
        _ok("good", tflint_document(tflint_issue("terraform_module_version", "error"))),
        _ok("bad", b"not json"),
    ]

    report = aggregate(results)

    assert report.count(Severity.ERROR) == 1
    assert [entry.directory for entry in report.invocation_errors] == ["bad"]
    assert {v.directory for v in report.violations} == {"good"}


def test_no_results_yield_empty_complete_report() -> None:
    report = aggregate([])

    assert report == AggregatedReport()
    assert report.is_complete
    assert report.total == 0


def test_violation_json_is_written_even_when_empty(tmp_path: Path) -> None:
    destination = tmp_path / "out" / "tflint-output.json"

    write_violations_json(AggregatedReport(), destination)

    assert json.loads(destination.read_text(encoding="utf-8")) == []
    assert load_violations_json(destination) == ()


def test_violation_json_preserves_merged_violations(tmp_path: Path) -> None:
    report = aggregate([_ok("modules/vpc", tflint_document(tflint_issue("terraform_module_pinned_source", "error")))])
    destination = tmp_path / "tflint-output.json"

    write_violations_json(report, destination)
    payload = json.loads(destination.read_text(encoding="utf-8"))

    assert payload[0]["rule"] == {"name": "terraform_module_pinned_source", "severity": "error"}
    assert payload[0]["range"]["filename"] == "modules/vpc/main.tf"
    assert [v.file for v in load_violations_json(destination)] == ["modules/vpc/main.tf"]


def test_load_rejects_non_array_document(tmp_path: Path) -> None:
    destination = tmp_path / "tflint-output.json"
    destination.write_text("{}", encoding="utf-8")

    with pytest.raises(OutputFormatError):
        load_violations_json(destination)
