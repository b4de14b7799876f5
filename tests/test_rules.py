#!/usr/bin/env python3
"""
LINTCURO RULE TESTS - Bundled DL and HL Rules
---------------------------------------------
Each bundled rule is exercised through the engine with the default
catalogue, so the tests also cover state handling and line attribution.

Author: LintCuro Team
Date: 2026-01-16
"""

import pytest

from lintcuro.config.settings import LintConfig
from lintcuro.core.engine import LintEngine
from lintcuro.core.models import Severity
from lintcuro.rules.catalogue import default_catalogue
from lintcuro.rules.chart_rules import is_valid_semver
from lintcuro.rules.framework import CONTEXT, DOCKERFILE, HELM, STREAMING


def docker_hits(text, config=None):
    """(code, line) pairs for a build script."""
    result = LintEngine(default_catalogue(), config).lint_dockerfile(text)
    return {(str(f.code), f.line) for f in result.failures}


def chart_failures(path, code):
    result = LintEngine(default_catalogue()).lint_chart(path)
    return [f for f in result.failures if f.code == code]


# --- Catalogue ---

def test_catalogue_is_split_by_domain_and_kind():
    catalogue = default_catalogue()
    assert "DL3006" in catalogue and "HL1001" in catalogue
    assert all(r.kind == STREAMING for r in catalogue.streaming_rules(DOCKERFILE))
    assert all(r.kind == CONTEXT for r in catalogue.context_rules(HELM))
    assert [r.code for r in catalogue.context_rules(DOCKERFILE)] == ["DL3057"]
    assert {r.code for r in catalogue.streaming_rules(HELM)} == {"HL3005", "HL4002", "HL4004"}


def test_catalogue_subset_and_duplicates():
    catalogue = default_catalogue(only=["DL3006", "HL1001", "XX9999"])
    assert sorted(catalogue.codes()) == ["DL3006", "HL1001"]
    with pytest.raises(ValueError):
        catalogue.register(catalogue.get("DL3006"))


# --- Dockerfile rules ---

@pytest.mark.parametrize("text,hit", [
    ("FROM ubuntu", ("DL3006", 1)),
    ("FROM ubuntu:latest", ("DL3007", 1)),
    ("FROM alpine:3.19\nWORKDIR app", ("DL3000", 2)),
    ("FROM alpine:3.19\nRUN sudo apk add curl", ("DL3004", 2)),
    ("FROM alpine:3.19\nUSER app\nUSER root", ("DL3002", 3)),
    ("FROM alpine:3.19\nHEALTHCHECK CMD true\nHEALTHCHECK CMD false", ("DL3012", 3)),
    ("FROM ubuntu:22.04\nRUN apt-get update && apt-get install -y curl", ("DL3015", 2)),
    ("FROM alpine:3.19\nADD app.py /app/", ("DL3020", 2)),
    ("FROM alpine:3.19\nCOPY --from=nowhere /a /b", ("DL3022", 2)),
    ("FROM alpine:3.19 AS build\nCOPY --from=build /a /b", ("DL3023", 2)),
    ("FROM alpine:3.19 AS a\nFROM alpine:3.19 AS a", ("DL3024", 2)),
    ("FROM alpine:3.19\nCMD python app.py", ("DL3025", 2)),
    ("FROM python:3.12\nRUN pip3 install flask", ("DL3042", 2)),
    ("FROM alpine:3.19\nENV A=1 B=$A", ("DL3044", 2)),
    ("FROM alpine:3.19\nCOPY app.py src/", ("DL3045", 2)),
    ("FROM alpine:3.19\nLABEL -bad=1", ("DL3048", 2)),
    ("FROM alpine:3.19\nRUN a\nRUN b", ("DL3059", 3)),
    ("FROM alpine:3.19\nMAINTAINER someone", ("DL4000", 2)),
    ("FROM alpine:3.19\nRUN wget x\nRUN curl y", ("DL4001", 3)),
    ("FROM alpine:3.19\nCMD [\"a\"]\nCMD [\"b\"]", ("DL4003", 3)),
    ("FROM alpine:3.19\nENTRYPOINT [\"a\"]\nENTRYPOINT [\"b\"]", ("DL4004", 3)),
    ("FROM alpine:3.19\nRUN curl -s x | sh", ("DL4006", 2)),
    ("FROM alpine:3.19", ("DL3057", 1)),
])
def test_dockerfile_rule_fires(text, hit):
    assert hit in docker_hits(text)


@pytest.mark.parametrize("text,code", [
    ("FROM ubuntu:20.04", "DL3006"),
    ("FROM ubuntu@sha256:abc", "DL3007"),
    ("FROM scratch", "DL3006"),
    ("FROM golang:1.22 AS build\nFROM build", "DL3006"),
    ("FROM alpine:3.19\nWORKDIR $HOME/app", "DL3000"),
    ("FROM alpine:3.19\nUSER root\nUSER app", "DL3002"),
    ("FROM ubuntu:22.04\nRUN apt-get install -y --no-install-recommends curl", "DL3015"),
    ("FROM ubuntu:22.04\nRUN apt-get update", "DL3015"),
    ("FROM alpine:3.19\nADD https://example.com/a.tar.gz /tmp/", "DL3020"),
    ("FROM alpine:3.19\nADD vendor.tar.gz /opt/", "DL3020"),
    ("FROM alpine:3.19 AS build\nFROM alpine:3.19\nCOPY --from=build /a /b", "DL3022"),
    ("FROM alpine:3.19\nCOPY --from=nginx:1.25 /a /b", "DL3022"),
    ("FROM alpine:3.19\nCMD [\"python\", \"app.py\"]", "DL3025"),
    ("FROM python:3.12\nRUN pip install --no-cache-dir flask", "DL3042"),
    ("FROM python:3.12\nRUN pip freeze", "DL3042"),
    ("FROM alpine:3.19\nWORKDIR /app\nCOPY app.py src/", "DL3045"),
    ("FROM alpine:3.19\nRUN a\nCOPY x /y\nRUN b", "DL3059"),
    ("FROM alpine:3.19\nRUN wget x", "DL4001"),
    ("FROM alpine:3.19\nCMD [\"a\"]\nFROM alpine:3.19\nCMD [\"b\"]", "DL4003"),
    ("FROM alpine:3.19\nSHELL [\"/bin/bash\", \"-o\", \"pipefail\", \"-c\"]\nRUN curl x | sh", "DL4006"),
    ("FROM alpine:3.19\nRUN set -o pipefail && curl x | sh", "DL4006"),
    ("FROM alpine:3.19\nHEALTHCHECK CMD true", "DL3057"),
])
def test_dockerfile_rule_passes(text, code):
    assert code not in {c for c, _ in docker_hits(text)}


def test_wget_and_curl_reports_every_use():
    hits = docker_hits("FROM alpine:3.19\nRUN wget a\nRUN curl b && curl c")
    assert {("DL4001", 2), ("DL4001", 3)} <= hits


def test_trusted_registries_option():
    config = LintConfig.from_dict({"trustedRegistries": ["docker.io"]})
    assert ("DL3026", 1) in docker_hits("FROM gcr.io/project/app:1.0", config)
    assert ("DL3026", 1) not in docker_hits("FROM ubuntu:20.04", config)


def test_trusted_registries_off_by_default():
    assert "DL3026" not in {c for c, _ in docker_hits("FROM gcr.io/project/app:1.0")}


def test_onbuild_inner_instruction_is_checked():
    assert ("DL3004", 2) in docker_hits("FROM alpine:3.19\nONBUILD RUN sudo make")


def test_heredoc_script_is_linted():
    text = "FROM ubuntu:22.04\nRUN <<EOF\nsudo apt-get update\napt-get install -y curl\nEOF\nUSER app\n"
    result = LintEngine().lint_dockerfile(text)
    assert result.parse_errors == []
    hits = {(str(f.code), f.line) for f in result.failures}
    assert {("DL3004", 2), ("DL3015", 2)} <= hits


def test_uncommon_expose_forms_do_not_block_linting():
    result = LintEngine().lint_dockerfile("FROM ubuntu\nEXPOSE 8080/sctp\nEXPOSE ${PORT:-80}\n")
    assert result.parse_errors == []
    assert ("DL3006", 1) in {(str(f.code), f.line) for f in result.failures}


def test_comments_are_not_seen_by_rules():
    # A comment between two RUNs does not break the consecutive-RUN chain
    assert ("DL3059", 4) in docker_hits("FROM alpine:3.19\nRUN a\n# note\nRUN b")


# --- Chart rules ---

def test_clean_chart_has_no_failures(make_chart):
    result = LintEngine(default_catalogue()).lint_chart(make_chart())
    assert result.failures == []
    assert result.parse_errors == []
    assert result.files_checked == 5


def test_missing_chart_yaml(make_chart):
    failures = chart_failures(make_chart({"Chart.yaml": None}), "HL1001")
    assert [(f.file, f.line, f.message) for f in failures] == [("Chart.yaml", 1, "Missing Chart.yaml file")]


@pytest.mark.parametrize("chart_yaml,code,message", [
    ("apiVersion: v3\nname: web\nversion: 1.0.0\n", "HL1002", "Invalid apiVersion 'v3'. Must be v1 or v2"),
    ("apiVersion: v2\nversion: 1.0.0\n", "HL1003", "Missing required field 'name' in Chart.yaml"),
    ("apiVersion: v2\nname: web\n", "HL1004", "Missing required field 'version' in Chart.yaml"),
    ("apiVersion: v2\nname: web\nversion: one\n", "HL1005",
     "Version 'one' is not valid SemVer (expected X.Y.Z format)"),
    ("apiVersion: v2\nname: web\nversion: 1.0.0\n", "HL1006", "Chart.yaml is missing a description"),
    ("apiVersion: v2\nname: web\nversion: 1.0.0\n", "HL1007", "Chart.yaml has no maintainers listed"),
    ("apiVersion: v2\nname: web\nversion: 1.0.0\ndeprecated: true\n", "HL1008", "Chart is marked as deprecated"),
    ("apiVersion: v2\nname: Web_App\nversion: 1.0.0\n", "HL1012",
     "Chart name 'Web_App' contains invalid characters. Use only lowercase letters, numbers, and hyphens"),
    ("apiVersion: v2\nname: web\nversion: 1.0.0\nicon: http://x/icon.png\n", "HL1013",
     "Icon URL should use HTTPS instead of HTTP"),
    ("apiVersion: v2\nname: web\nversion: 1.0.0\nhome: http://x\n", "HL1014",
     "Home URL should use HTTPS instead of HTTP"),
    ("apiVersion: v2\nname: web\nversion: 1.0.0\ndependencies:\n  - name: db\n    repository: r\n"
     "  - name: db\n    version: 1.0.0\n    repository: r\n", "HL1015", "Duplicate dependency names: db"),
    ("apiVersion: v2\nname: web\nversion: 1.0.0\ndependencies:\n  - name: db\n    repository: r\n",
     "HL1016", "Dependency 'db' is missing a version"),
    ("apiVersion: v2\nname: web\nversion: 1.0.0\ndependencies:\n  - name: db\n    version: 1.0.0\n",
     "HL1017", "Dependency 'db' is missing a repository"),
])
def test_chart_metadata_rules(make_chart, chart_yaml, code, message):
    failures = chart_failures(make_chart({"Chart.yaml": chart_yaml}), code)
    assert [f.message for f in failures] == [message]
    assert failures[0].file == "Chart.yaml"


@pytest.mark.parametrize("version,valid", [
    ("1.0.0", True), ("1.0", True), ("1.2.3-rc.1", True), ("1.2.3+build", True),
    ("1", False), ("1.2.3.4", False), ("v1.2.3", False), ("1.x.0", False),
])
def test_semver_check(version, valid):
    assert is_valid_semver(version) is valid


def test_missing_templates_dir(make_chart):
    root = make_chart({
        "templates/deployment.yaml": None, "templates/_helpers.tpl": None, "templates/NOTES.txt": None,
    })
    failures = chart_failures(root, "HL1009")
    assert [(f.file, f.message) for f in failures] == [(".", "Chart has no templates directory")]


def test_library_chart_needs_no_templates(make_chart):
    library = "apiVersion: v2\nname: lib\nversion: 1.0.0\ntype: library\n"
    root = make_chart({"Chart.yaml": library, "templates/NOTES.txt": None})
    assert chart_failures(root, "HL1009") == []
    assert chart_failures(root, "HL3008") == []


def test_missing_values_yaml(make_chart):
    failures = chart_failures(make_chart({"values.yaml": None}), "HL1011")
    assert [(f.file, f.message) for f in failures] == [("values.yaml", "Missing values.yaml file")]


def test_undefined_value_reference(make_chart):
    template = "value: {{ .Values.missing.key }}\nother: {{ .Values.image.extra }}\n"
    failures = chart_failures(make_chart({"templates/cm.yaml": template}), "HL2002")
    # image.extra is covered by its defined parent 'image'
    assert [f.message for f in failures] == [
        "Value '.Values.missing.key' is referenced but not defined in values.yaml"]


def test_unused_value(make_chart):
    values = "replicaCount: 1\nimage:\n  repository: nginx\n  tag: \"1.25\"\nunused: true\n"
    failures = chart_failures(make_chart({"values.yaml": values}), "HL2003")
    assert [(f.line, f.message) for f in failures] == [
        (5, "Value 'unused' is defined but never used in templates")]


def test_values_content_rules(make_chart):
    values = (
        "replicaCount: 0\n"
        "image:\n"
        "  repository: nginx\n"
        "  tag: latest\n"
        "service:\n"
        "  port: 70000\n"
        "db:\n"
        "  password: hunter2\n"
        "  apiToken: \"$SECRET_REF\"\n"
    )
    result = LintEngine(default_catalogue()).lint_chart(make_chart({"values.yaml": values}))
    hits = {(str(f.code), f.line) for f in result.failures if f.file == "values.yaml"}
    assert ("HL2008", 1) in hits
    assert ("HL2007", 4) in hits
    assert ("HL2005", 6) in hits
    assert ("HL2004", 8) in hits
    assert ("HL2004", 9) not in hits


def test_unclosed_template_action_and_block(make_chart):
    root = make_chart({
        "templates/broken.yaml": "a: {{ .Values.replicaCount\n",
        "templates/open.yaml": "{{- if .Values.replicaCount }}\nkind: Service\n",
    })
    result = LintEngine(default_catalogue()).lint_chart(root)
    assert [(f.file, f.line, f.message) for f in result.failures if f.code == "HL3001"] == [
        ("templates/broken.yaml", 1, "Unclosed template action (missing }})")]
    assert [(f.file, f.line, f.message) for f in result.failures if f.code == "HL3002"] == [
        ("templates/open.yaml", 1, "Unclosed If block (missing {{- end }})")]


def test_deprecated_function_reports_real_line(make_chart):
    template = "kind: ConfigMap\ndata:\n  when: {{ dateInZone \"2006-01-02\" (now) \"UTC\" }}\n"
    failures = chart_failures(make_chart({"templates/cm.yaml": template}), "HL3005")
    assert [(f.file, f.line) for f in failures] == [("templates/cm.yaml", 3)]
    assert "mustDateModify" in failures[0].message


def test_unexpected_template_extension(make_chart):
    failures = chart_failures(make_chart({"templates/config.json": "{}"}), "HL3007")
    assert [f.message for f in failures] == ["Template file 'templates/config.json' has unexpected extension"]


def test_missing_notes(make_chart):
    failures = chart_failures(make_chart({"templates/NOTES.txt": None}), "HL3008")
    assert [f.file for f in failures] == ["templates/NOTES.txt"]


def test_helper_without_comment_and_unused(make_chart):
    helpers = (
        '{{- define "web.name" -}}\nweb\n{{- end }}\n'
        '{{- define "web.unused" -}}\nx\n{{- end }}\n'
    )
    root = make_chart({"templates/_helpers.tpl": helpers})
    assert [(f.line, f.message) for f in chart_failures(root, "HL3009")] == [
        (1, "Helper 'web.name' is missing a description comment"),
        (4, "Helper 'web.unused' is missing a description comment"),
    ]
    assert [f.message for f in chart_failures(root, "HL3010")] == [
        "Helper 'web.unused' is defined but never used"]


def test_include_of_undefined_helper(make_chart):
    template = 'name: {{ include "web.missing" . }}\n'
    failures = chart_failures(make_chart({"templates/svc.yaml": template}), "HL3011")
    assert [(f.file, f.message) for f in failures] == [
        ("templates/svc.yaml", "Template includes 'web.missing' which is not defined")]


def test_security_literals(make_chart):
    template = (
        "spec:\n"
        "  hostNetwork: true\n"
        "  containers:\n"
        "    - name: x\n"
        "      securityContext:\n"
        "        privileged: true\n"
    )
    result = LintEngine(default_catalogue()).lint_chart(make_chart({"templates/pod.yaml": template}))
    hits = {(str(f.code), f.line, f.severity) for f in result.failures}
    assert ("HL4004", 2, Severity.WARNING) in hits
    assert ("HL4002", 6, Severity.ERROR) in hits
