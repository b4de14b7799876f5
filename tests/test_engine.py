#!/usr/bin/env python3
"""
LINTCURO ENGINE TESTS - Orchestration Properties
------------------------------------------------
Filtering, severity resolution, ordering, batch dispatch and the
error policy of LintEngine.

Author: LintCuro Team
Date: 2026-01-16
"""

import pytest

from lintcuro.config.settings import LintConfig
from lintcuro.core.engine import LintEngine
from lintcuro.core.models import CheckFailure, LintResult, Severity
from lintcuro.rules.catalogue import default_catalogue
from lintcuro.rules.framework import RuleCatalogue, simple_rule

MESSY = """\
FROM ubuntu
MAINTAINER someone
WORKDIR app
RUN sudo apt-get update
RUN curl -s https://example.com | sh
CMD python app.py
"""


def test_failures_are_sorted_and_counted():
    result = LintEngine().lint_dockerfile(MESSY)
    keys = [f.sort_key for f in result.failures]
    assert keys == sorted(keys)
    assert result.error_count == sum(1 for f in result.failures if f.severity is Severity.ERROR)
    assert result.warning_count == sum(1 for f in result.failures if f.severity is Severity.WARNING)
    assert result.has_errors()
    assert result.max_severity() is Severity.ERROR
    assert result.files_checked == 1


def test_sort_is_idempotent():
    result = LintEngine().lint_dockerfile(MESSY)
    before = list(result.failures)
    result.sort()
    assert result.failures == before


def test_parse_failure_short_circuits():
    result = LintEngine().lint_dockerfile("FROM ubuntu\nNOPE x", "build/Dockerfile")
    assert result.failures == []
    assert result.parse_errors == ["build/Dockerfile: line 2:1: unknown instruction 'NOPE'"]


def test_off_rule_never_reports():
    config = LintConfig.from_dict({"rules": {"DL3006": "off"}})
    codes = {f.code for f in LintEngine(config=config).lint_dockerfile(MESSY).failures}
    assert "DL3006" not in codes


def test_disabled_rule_is_never_invoked():
    calls = []

    def spy(instr, shell):
        calls.append(instr)
        return True

    catalogue = RuleCatalogue([simple_rule("XX0001", Severity.ERROR, "spy", "spy", spy)])
    config = LintConfig.from_dict({"rules": {"XX0001": "off"}})
    LintEngine(catalogue, config).lint_dockerfile(MESSY)
    assert calls == []


def test_threshold_filters_lower_severities():
    config = LintConfig.from_dict({"threshold": "error"})
    result = LintEngine(config=config).lint_dockerfile(MESSY)
    assert result.failures
    assert all(f.severity is Severity.ERROR for f in result.failures)


def test_configured_level_becomes_effective_severity():
    config = LintConfig.from_dict({"rules": {"DL3006": "error"}})
    result = LintEngine(config=config).lint_dockerfile("FROM ubuntu\nHEALTHCHECK NONE")
    dl3006 = [f for f in result.failures if f.code == "DL3006"]
    assert dl3006[0].severity is Severity.ERROR


def test_fixable_only():
    config = LintConfig(fixable_only=True)
    result = LintEngine(config=config).lint_dockerfile(MESSY)
    assert {str(f.code) for f in result.failures} == {"DL4000", "DL3025"}
    assert all(f.fixable for f in result.failures)


def test_should_fail_respects_threshold_and_no_fail():
    warning = CheckFailure("DL3006", Severity.WARNING, "m", "Dockerfile", 1)
    result = LintResult(failures=[warning])
    assert result.should_fail(LintConfig())
    assert not result.should_fail(LintConfig(threshold=Severity.ERROR))
    assert not result.should_fail(LintConfig(no_fail=True))
    assert not LintResult().should_fail(LintConfig())


def test_same_line_orders_most_severe_first():
    failures = [
        CheckFailure("DL3059", Severity.INFO, "b", "Dockerfile", 3),
        CheckFailure("DL3004", Severity.ERROR, "a", "Dockerfile", 3),
        CheckFailure("DL3006", Severity.WARNING, "c", "Dockerfile", 1),
    ]
    result = LintResult(failures=failures)
    result.sort()
    assert [str(f.code) for f in result.failures] == ["DL3006", "DL3004", "DL3059"]


def test_lint_dockerfile_file(tmp_path):
    path = tmp_path / "Dockerfile"
    path.write_text("FROM ubuntu\n")
    result = LintEngine().lint_dockerfile_file(path)
    assert result.failures[0].file == str(path)

    missing = LintEngine().lint_dockerfile_file(tmp_path / "nope")
    assert missing.parse_errors[0].startswith("Failed to read file:")


def test_excluded_file_is_not_parsed(tmp_path):
    path = tmp_path / "Dockerfile.vendor"
    path.write_text("THIS IS NOT A DOCKERFILE\n")
    result = LintEngine(config=LintConfig(exclude=["*.vendor"])).lint_dockerfile_file(path)
    assert result.parse_errors == []
    assert result.files_checked == 0


def test_chart_path_errors(tmp_path):
    missing = LintEngine().lint_chart(tmp_path / "absent")
    assert missing.parse_errors[0].startswith("Chart path does not exist")
    afile = tmp_path / "file.txt"
    afile.write_text("x")
    assert LintEngine().lint_chart(afile).parse_errors[0].startswith("Chart path is not a directory")


def test_broken_chart_yaml_is_recorded(make_chart):
    result = LintEngine().lint_chart(make_chart({"Chart.yaml": "name: [oops\n"}))
    assert result.parse_errors and result.parse_errors[0].startswith("Chart.yaml: ")
    # The file exists, so it is not reported as missing
    assert "HL1001" not in {f.code for f in result.failures}


def test_excluded_chart_files_are_skipped(make_chart):
    root = make_chart({"templates/bad.yaml": "{{ if .Values.replicaCount }}\n"})
    config = LintConfig(exclude=["templates/bad.yaml"])
    result = LintEngine(config=config).lint_chart(root)
    assert "HL3002" not in {f.code for f in result.failures}


def test_excluded_chart_metadata_is_not_reported_missing(make_chart):
    root = make_chart()
    config = LintConfig(exclude=["Chart.yaml", "values.yaml", "templates/NOTES.txt"])
    result = LintEngine(config=config).lint_chart(root)
    codes = {f.code for f in result.failures}
    assert not codes & {"HL1001", "HL1011", "HL3008"}
    assert result.files_checked == 2


def test_absent_chart_metadata_is_still_reported(make_chart):
    result = LintEngine().lint_chart(make_chart({"Chart.yaml": None, "values.yaml": None}))
    codes = {f.code for f in result.failures}
    assert {"HL1001", "HL1011"} <= codes


def test_lint_paths_dispatch_and_summary(tmp_path, make_chart):
    chart = make_chart()
    dockerfile = tmp_path / "Dockerfile"
    dockerfile.write_text("FROM ubuntu\n")
    engine = LintEngine()
    seen = []
    results = engine.lint_paths([tmp_path], progress_callback=lambda done, total: seen.append((done, total)))
    assert set(results) == {str(chart), str(dockerfile)}
    assert results[str(chart)].failures == []
    assert seen[-1] == (2, 2)

    summary = engine.generate_summary(results)
    assert summary["targets"] == 2
    assert summary["files_checked"] == 6
    assert summary["failing_targets"] == 1


def test_empty_summary():
    assert LintEngine().generate_summary({})["targets"] == 0


def test_result_to_dict():
    result = LintEngine().lint_dockerfile("FROM ubuntu:latest\nHEALTHCHECK NONE")
    payload = result.to_dict()
    assert payload["max_severity"] == "warning"
    assert payload["failures"][0]["code"] == "DL3007"
    assert payload["failures"][0]["category"] == "Dockerfile"


@pytest.mark.parametrize("text", ["", "# only a comment\n", "\n\n"])
def test_empty_documents_have_no_failures(text):
    result = LintEngine().lint_dockerfile(text)
    assert result.failures == []
    assert result.parse_errors == []
