#!/usr/bin/env python3
"""
LINTCURO CHART RULES - HL Catalogue
-----------------------------------
Chart checks. Most need random access across Chart.yaml, values.yaml and
the templates, so they are context rules; the token-local checks
(deprecated functions, privileged/hostNetwork literals) stream over each
template's tokens so they can report exact lines.

Author: LintCuro Team
Date: 2026-01-16
"""

import re
from typing import Any, List, Optional

from lintcuro.core.models import CheckFailure, Severity
from lintcuro.rules.framework import HELM, Rule, RuleState, context_rule, custom_rule
from lintcuro.templating.tokenizer import ActionToken, TextToken

CHART_FILE = "Chart.yaml"
VALUES_FILE = "values.yaml"

CHART_NAME = re.compile(r'^[a-z][a-z0-9-]*$')
PORT_SUFFIXES = ("port", "containerport", "targetport", "hostport", "nodeport")
TEMPLATE_EXTENSIONS = (".yaml", ".yml", ".tpl", ".txt")
DEPRECATED_FUNCTIONS = (
    ("dateInZone", "Use 'mustDateModify' instead"),
    ("genCA", "Use 'genSelfSignedCert' for better control"),
)


def is_valid_semver(version: str) -> bool:
    """X.Y or X.Y.Z, with pre-release/build metadata allowed on the last part."""
    core = re.split(r'[-+]', version, maxsplit=1)[0]
    parts = core.split('.')
    if not 2 <= len(parts) <= 3:
        return False
    return all(part.isdigit() for part in parts)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        return int(value)
    return None


def _chart_failure(rule, message: str) -> List[CheckFailure]:
    return [rule.failure(message, CHART_FILE, 1)]


# --- HL1xxx: chart structure ---

def _missing_chart(rule, ctx, options):
    if ctx.chart is None and not ctx.has_file(CHART_FILE):
        return _chart_failure(rule, "Missing Chart.yaml file")
    return []


def _api_version(rule, ctx, options):
    if ctx.chart and not ctx.chart.has_valid_api_version():
        version = ctx.chart.api_version or "unknown"
        return _chart_failure(rule, f"Invalid apiVersion '{version}'. Must be v1 or v2")
    return []


def _missing_name(rule, ctx, options):
    if ctx.chart and not ctx.chart.name:
        return _chart_failure(rule, "Missing required field 'name' in Chart.yaml")
    return []


def _missing_version(rule, ctx, options):
    if ctx.chart and not ctx.chart.version:
        return _chart_failure(rule, "Missing required field 'version' in Chart.yaml")
    return []


def _semver(rule, ctx, options):
    if ctx.chart and ctx.chart.version and not is_valid_semver(ctx.chart.version):
        return _chart_failure(
            rule, f"Version '{ctx.chart.version}' is not valid SemVer (expected X.Y.Z format)")
    return []


def _description(rule, ctx, options):
    if ctx.chart and not ctx.chart.description:
        return _chart_failure(rule, "Chart.yaml is missing a description")
    return []


def _maintainers(rule, ctx, options):
    if ctx.chart and not ctx.chart.maintainers:
        return _chart_failure(rule, "Chart.yaml has no maintainers listed")
    return []


def _deprecated(rule, ctx, options):
    if ctx.chart and ctx.chart.is_deprecated():
        return _chart_failure(rule, "Chart is marked as deprecated")
    return []


def _templates_dir(rule, ctx, options):
    if ctx.chart and ctx.chart.is_library():
        return []
    has_templates = any(f.startswith("templates/") or "/templates/" in f for f in ctx.present_files())
    if not has_templates and not ctx.templates:
        return [rule.failure("Chart has no templates directory", ".", 1)]
    return []


def _values_file(rule, ctx, options):
    if ctx.values is None and not ctx.has_file(VALUES_FILE):
        return [rule.failure("Missing values.yaml file", VALUES_FILE, 1)]
    return []


def _chart_name(rule, ctx, options):
    if ctx.chart and ctx.chart.name and not CHART_NAME.match(ctx.chart.name):
        return _chart_failure(
            rule, f"Chart name '{ctx.chart.name}' contains invalid characters. "
                  "Use only lowercase letters, numbers, and hyphens")
    return []


def _https_field(field_name: str, label: str):
    def check(rule, ctx, options):
        value = getattr(ctx.chart, field_name, None) if ctx.chart else None
        if value and value.startswith("http://"):
            return _chart_failure(rule, f"{label} URL should use HTTPS instead of HTTP")
        return []
    return check


def _duplicate_dependencies(rule, ctx, options):
    if ctx.chart:
        duplicates = ctx.chart.duplicate_dependencies()
        if duplicates:
            return _chart_failure(rule, f"Duplicate dependency names: {', '.join(duplicates)}")
    return []


def _dependency_version(rule, ctx, options):
    if not ctx.chart:
        return []
    return [rule.failure(f"Dependency '{dep.name}' is missing a version", CHART_FILE, 1)
            for dep in ctx.chart.dependencies if not dep.version]


def _dependency_repository(rule, ctx, options):
    if not ctx.chart:
        return []
    return [rule.failure(f"Dependency '{dep.name}' is missing a repository", CHART_FILE, 1)
            for dep in ctx.chart.dependencies if not dep.repository]


# --- HL2xxx: values ---

def _undefined_values(rule, ctx, options):
    if ctx.values is None:
        return []
    failures = []
    for ref in sorted(ctx.template_value_refs):
        parts = ref.split('.')
        prefixes = ('.'.join(parts[:i]) for i in range(1, len(parts) + 1))
        if not any(ctx.values.has_path(p) for p in prefixes):
            failures.append(rule.failure(
                f"Value '.Values.{ref}' is referenced but not defined in values.yaml", VALUES_FILE, 1))
    return failures


def _unused_values(rule, ctx, options):
    if ctx.values is None:
        return []
    refs = ctx.template_value_refs
    failures = []
    for path in ctx.values.defined_paths:
        used = any(r == path or r.startswith(path + ".") or path.startswith(r + ".") for r in refs)
        if not used:
            failures.append(rule.failure(
                f"Value '{path}' is defined but never used in templates",
                VALUES_FILE, ctx.values.line_for_path(path) or 1))
    return failures


def _sensitive_values(rule, ctx, options):
    if ctx.values is None:
        return []
    failures = []
    for path in ctx.values.sensitive_paths():
        value = ctx.values.get(path)
        if isinstance(value, str) and value and not value.startswith("$"):
            failures.append(rule.failure(
                f"Sensitive value '{path}' has a hardcoded default. Consider using a Secret reference",
                VALUES_FILE, ctx.values.line_for_path(path) or 1))
    return failures


def _port_range(rule, ctx, options):
    if ctx.values is None:
        return []
    failures = []
    for path in ctx.values.defined_paths:
        if not path.lower().endswith(PORT_SUFFIXES):
            continue
        port = _as_int(ctx.values.get(path))
        if port is not None and not 1 <= port <= 65535:
            failures.append(rule.failure(
                f"Invalid port number {port} at '{path}'. Must be between 1 and 65535",
                VALUES_FILE, ctx.values.line_for_path(path) or 1))
    return failures


def _latest_tag(rule, ctx, options):
    if ctx.values is None:
        return []
    failures = []
    for path in ctx.values.defined_paths:
        lower = path.lower()
        if (lower.endswith(".tag") or lower.endswith("imagetag")) and ctx.values.get(path) == "latest":
            failures.append(rule.failure(
                f"Image tag at '{path}' is 'latest'. Pin to a specific version for reproducibility",
                VALUES_FILE, ctx.values.line_for_path(path) or 1))
    return failures


def _zero_replicas(rule, ctx, options):
    if ctx.values is None:
        return []
    failures = []
    for path in ctx.values.defined_paths:
        lower = path.lower()
        if lower.endswith("replicacount") or lower.endswith("replicas"):
            if _as_int(ctx.values.get(path)) == 0:
                failures.append(rule.failure(
                    f"Replica count at '{path}' is 0. No pods will be created by default",
                    VALUES_FILE, ctx.values.line_for_path(path) or 1))
    return failures


# --- HL3xxx: template syntax ---

def _unclosed_actions(rule, ctx, options):
    return [rule.failure("Unclosed template action (missing }})", t.path, e.line)
            for t in ctx.templates for e in t.errors if e.message == "Unclosed template action"]


def _unclosed_blocks(rule, ctx, options):
    return [rule.failure(f"Unclosed {kind.value} block (missing {{{{- end }}}})", t.path, line)
            for t in ctx.templates for kind, line in t.unclosed_blocks]


def _deprecated_function_step(state: RuleState, line: int, token, shell):
    if not isinstance(token, ActionToken):
        return
    for name, suggestion in DEPRECATED_FUNCTIONS:
        if re.search(rf'\b{name}\b', token.content):
            state.fail(line, f"Function '{name}' is deprecated. {suggestion}")


def _template_extension(rule, ctx, options):
    failures = []
    for path in sorted(ctx.files):
        if "templates/" not in path or "templates/tests/" in path:
            continue
        if path.endswith(TEMPLATE_EXTENSIONS) or "_helpers" in path or path.endswith("NOTES.txt"):
            continue
        failures.append(rule.failure(f"Template file '{path}' has unexpected extension", path, 1))
    return failures


def _notes_file(rule, ctx, options):
    if ctx.chart and ctx.chart.is_library():
        return []
    if not ctx.has_file("NOTES.txt"):
        return [rule.failure("Chart is missing templates/NOTES.txt for post-install instructions",
                             "templates/NOTES.txt", 1)]
    return []


def _helper_docs(rule, ctx, options):
    if ctx.helpers is None:
        return []
    return [rule.failure(f"Helper '{h.name}' is missing a description comment", ctx.helpers.path, h.line)
            for h in ctx.helpers.helpers if h.doc_comment is None]


def _unused_helpers(rule, ctx, options):
    if ctx.helpers is None:
        return []
    referenced = ctx.template_references()
    failures = []
    for helper in ctx.helpers.helpers:
        if helper.name in referenced:
            continue
        if any(h.name != helper.name and helper.name in h.content for h in ctx.helpers.helpers):
            continue
        failures.append(rule.failure(f"Helper '{helper.name}' is defined but never used",
                                     ctx.helpers.path, helper.line))
    return failures


def _missing_includes(rule, ctx, options):
    defined = ctx.helper_names()
    failures = []
    for name in sorted(ctx.template_references() - defined):
        for template in ctx.templates:
            if name in template.referenced_templates:
                failures.append(rule.failure(f"Template includes '{name}' which is not defined",
                                             template.path, 1))
                break
    return failures


# --- HL4xxx: security literals in rendered text ---

def _literal_step(literal: str, message: str):
    pattern = re.compile(rf'^[ \t]*-?[ \t]*{re.escape(literal)}[ \t]*$', re.MULTILINE)

    def step(state: RuleState, line: int, token, shell):
        if not isinstance(token, TextToken):
            return
        for match in pattern.finditer(token.content):
            state.fail(line + token.content.count('\n', 0, match.start()), message)
    return step


def rules() -> List[Rule]:
    """All bundled chart rules, in code order."""
    return [
        context_rule("HL1001", Severity.ERROR, "missing-chart-yaml",
                     "Chart must have a Chart.yaml file", _missing_chart),
        context_rule("HL1002", Severity.ERROR, "invalid-api-version",
                     "Chart apiVersion must be v1 or v2", _api_version),
        context_rule("HL1003", Severity.ERROR, "missing-name",
                     "Chart.yaml must have a name field", _missing_name),
        context_rule("HL1004", Severity.ERROR, "missing-version",
                     "Chart.yaml must have a version field", _missing_version),
        context_rule("HL1005", Severity.WARNING, "invalid-semver",
                     "Chart version should be valid SemVer", _semver),
        context_rule("HL1006", Severity.INFO, "missing-description",
                     "Chart should have a description", _description),
        context_rule("HL1007", Severity.INFO, "missing-maintainers",
                     "Chart should list maintainers", _maintainers),
        context_rule("HL1008", Severity.WARNING, "chart-deprecated",
                     "Chart is marked as deprecated", _deprecated),
        context_rule("HL1009", Severity.WARNING, "missing-templates",
                     "Chart should have a templates directory", _templates_dir),
        context_rule("HL1011", Severity.WARNING, "missing-values-yaml",
                     "Chart should have a values.yaml file", _values_file),
        context_rule("HL1012", Severity.ERROR, "invalid-chart-name",
                     "Chart name must contain only lowercase alphanumeric characters and hyphens",
                     _chart_name),
        context_rule("HL1013", Severity.WARNING, "icon-not-https",
                     "Chart icon URL should use HTTPS", _https_field("icon", "Icon")),
        context_rule("HL1014", Severity.WARNING, "home-not-https",
                     "Chart home URL should use HTTPS", _https_field("home", "Home")),
        context_rule("HL1015", Severity.ERROR, "duplicate-dependencies",
                     "Chart has duplicate dependency names", _duplicate_dependencies),
        context_rule("HL1016", Severity.WARNING, "dependency-missing-version",
                     "Chart dependency is missing a version", _dependency_version),
        context_rule("HL1017", Severity.ERROR, "dependency-missing-repository",
                     "Chart dependency is missing a repository", _dependency_repository),
        context_rule("HL2002", Severity.WARNING, "undefined-value",
                     "Value is referenced in template but not defined in values.yaml",
                     _undefined_values),
        context_rule("HL2003", Severity.INFO, "unused-value",
                     "Value is defined in values.yaml but never used in templates", _unused_values),
        context_rule("HL2004", Severity.WARNING, "sensitive-value-exposed",
                     "Sensitive value should be handled as a Kubernetes Secret", _sensitive_values),
        context_rule("HL2005", Severity.ERROR, "invalid-port",
                     "Port number must be between 1 and 65535", _port_range),
        context_rule("HL2007", Severity.WARNING, "image-tag-latest",
                     "Using 'latest' tag is prone to unexpected changes", _latest_tag),
        context_rule("HL2008", Severity.WARNING, "zero-replicas",
                     "Replica count is zero which means no pods will be created", _zero_replicas),
        context_rule("HL3001", Severity.ERROR, "unclosed-action",
                     "Template has unclosed action (missing }})", _unclosed_actions),
        context_rule("HL3002", Severity.ERROR, "unclosed-block",
                     "Template has unclosed control block (if/range/with)", _unclosed_blocks),
        custom_rule("HL3005", Severity.WARNING, "deprecated-function",
                    "Template uses deprecated function", _deprecated_function_step, domain=HELM),
        context_rule("HL3007", Severity.WARNING, "invalid-template-extension",
                     "Template file should have .yaml, .yml, or .tpl extension", _template_extension),
        context_rule("HL3008", Severity.INFO, "missing-notes",
                     "Chart should have a NOTES.txt for post-install instructions", _notes_file),
        context_rule("HL3009", Severity.INFO, "helper-missing-comment",
                     "Helper template should have a description comment", _helper_docs),
        context_rule("HL3010", Severity.INFO, "unused-helper",
                     "Helper template is defined but never used", _unused_helpers),
        context_rule("HL3011", Severity.ERROR, "include-not-found",
                     "Template includes a helper that is not defined", _missing_includes),
        custom_rule("HL4002", Severity.ERROR, "privileged-container",
                    "Container is configured with privileged: true",
                    _literal_step("privileged: true", "Container is configured with privileged: true"),
                    domain=HELM),
        custom_rule("HL4004", Severity.WARNING, "host-network",
                    "Pod uses host network. This bypasses network policies",
                    _literal_step("hostNetwork: true", "Pod uses host network. This bypasses network policies"),
                    domain=HELM),
    ]
