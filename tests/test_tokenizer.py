#!/usr/bin/env python3
"""
LINTCURO TOKENIZER TESTS - Template Tokenizer
---------------------------------------------
Best-effort tokenization: delimiters, trim markers, comments, control
blocks and the heuristic extraction of values and helper references.

Author: LintCuro Team
Date: 2026-01-16
"""

import pytest

from lintcuro.templating.tokenizer import (
    ActionToken, CommentToken, ControlKind, TextToken, extract_variables,
    tokenize_template,
)

SERVICE = "{{- if .Values.enabled }}\nkind: Service\n{{- end }}"


def test_balanced_block_has_no_errors():
    parsed = tokenize_template(SERVICE, "templates/service.yaml")
    assert parsed.errors == []
    assert not parsed.has_unclosed_blocks()
    assert parsed.values_references() == {"enabled"}


def test_missing_end_reports_opening_line():
    text = "kind: Service\n{{- if .Values.enabled }}\nkind: Service\n"
    parsed = tokenize_template(text)
    assert len(parsed.errors) == 1
    assert parsed.errors[0].line == 2
    assert parsed.errors[0].message == "Unclosed If block"
    assert parsed.unclosed_blocks == [(ControlKind.IF, 2)]


def test_removing_end_yields_exactly_one_unclosed_block():
    parsed = tokenize_template(SERVICE.replace("\n{{- end }}", ""))
    assert [e.message for e in parsed.errors] == ["Unclosed If block"]


def test_token_kinds_lines_and_trim_markers():
    text = "a: 1\n{{- /* note */ -}}\nb: {{ .Values.b -}}\n"
    tokens = tokenize_template(text).tokens
    assert isinstance(tokens[0], TextToken) and tokens[0].line == 1
    comment = tokens[1]
    assert isinstance(comment, CommentToken)
    assert comment.content == "note"
    assert comment.line == 2
    assert comment.trim_left and comment.trim_right
    action = [t for t in tokens if isinstance(t, ActionToken)][0]
    assert action.content == ".Values.b"
    assert action.line == 3
    assert action.trim_right and not action.trim_left


def test_unclosed_action_stops_scanning():
    parsed = tokenize_template("a: {{ .Values.a }}\nb: {{ .Values.b\nc: 3\n")
    assert [e.message for e in parsed.errors] == ["Unclosed template action"]
    assert parsed.errors[0].line == 2
    assert parsed.values_references() == {"a"}


def test_unexpected_end_is_recorded():
    parsed = tokenize_template("{{ end }}")
    assert [e.message for e in parsed.errors] == ["Unexpected end"]


def test_nested_blocks_and_else():
    text = (
        "{{- range .Values.items }}\n"
        "{{- if .enabled }}on{{ else if .maybe }}maybe{{ else }}off{{ end }}\n"
        "{{- end }}\n"
    )
    parsed = tokenize_template(text)
    assert parsed.errors == []
    kinds = [t.control for t in parsed.actions()]
    assert ControlKind.ELSE_IF in kinds
    assert ControlKind.ELSE in kinds


def test_define_and_include_names():
    text = '{{- define "app.labels" -}}\napp: x\n{{- end }}\n{{ include "app.name" . }}\n{{ template "app.other" }}'
    parsed = tokenize_template(text, "templates/_helpers.tpl")
    assert parsed.defined_templates == {"app.labels"}
    assert parsed.referenced_templates == {"app.name", "app.other"}


def test_function_detection():
    parsed = tokenize_template('{{ tpl .Values.raw . }}{{ lookup "v1" "Secret" "ns" "x" }}')
    assert parsed.uses_tpl()
    assert parsed.uses_lookup()
    assert parsed.calls_function("lookup")
    assert not parsed.calls_function("dateInZone")


def test_release_references():
    parsed = tokenize_template("name: {{ .Release.Name }}-{{ .Values.suffix }}")
    assert parsed.release_references() == {".Release.Name"}


@pytest.mark.parametrize("content,expected", [
    (".Values.image.tag", {".Values.image.tag"}),
    ("$.Values.global.x | default .", {".Values.global.x"}),
    ("printf \"%s\" .Chart.Name", {".Chart.Name"}),
    (".", set()),
])
def test_extract_variables(content, expected):
    assert extract_variables(content) == expected


def test_tokenizing_is_repeatable():
    assert tokenize_template(SERVICE).tokens == tokenize_template(SERVICE).tokens
