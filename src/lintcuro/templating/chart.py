#!/usr/bin/env python3
"""
LINTCURO CHART ARTEFACTS - Chart.yaml, values.yaml, _helpers.tpl
----------------------------------------------------------------
Loads the non-template parts of a chart into typed objects for the
context rules. YAML goes through ruamel.yaml; the round-trip loader is
used for values files because it keeps line information per key.

Author: LintCuro Team
Date: 2026-01-16
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError, MarkedYAMLError

from lintcuro.templating.tokenizer import (
    ActionToken, CommentToken, ControlKind, ParsedTemplate, TextToken,
    first_quoted, tokenize_template,
)

logger = logging.getLogger("lintcuro.templating")

SENSITIVE_MARKERS = ("password", "secret", "token", "apikey", "api_key",
                     "privatekey", "private_key", "credential")

# A doc comment must end within this many lines of the define it describes
HELPER_DOC_WINDOW = 5


class ChartParseError(Exception):
    """Chart.yaml or values.yaml could not be loaded."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.message = message
        self.line = line
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.line is not None:
            return f"line {self.line}: {self.message}"
        return self.message


def _yaml_error(e: YAMLError) -> ChartParseError:
    line = None
    if isinstance(e, MarkedYAMLError) and e.problem_mark is not None:
        line = e.problem_mark.line + 1
    problem = getattr(e, "problem", None) or str(e)
    return ChartParseError(problem, line)


# --- Chart.yaml ---

@dataclass
class ChartDependency:
    name: str
    version: Optional[str] = None
    repository: Optional[str] = None
    condition: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    import_values: List[Any] = field(default_factory=list)
    alias: Optional[str] = None


@dataclass
class Maintainer:
    name: str
    email: Optional[str] = None
    url: Optional[str] = None


@dataclass
class ChartMetadata:
    """Typed view of Chart.yaml. Missing required fields are empty strings."""
    api_version: str = ""
    name: str = ""
    version: str = ""
    kube_version: Optional[str] = None
    description: Optional[str] = None
    type: str = "application"
    keywords: List[str] = field(default_factory=list)
    home: Optional[str] = None
    sources: List[str] = field(default_factory=list)
    dependencies: List[ChartDependency] = field(default_factory=list)
    maintainers: List[Maintainer] = field(default_factory=list)
    icon: Optional[str] = None
    app_version: Optional[str] = None
    deprecated: bool = False
    annotations: Dict[str, str] = field(default_factory=dict)

    def has_valid_api_version(self) -> bool:
        return self.api_version in ("v1", "v2")

    def is_library(self) -> bool:
        return self.type == "library"

    def is_deprecated(self) -> bool:
        return self.deprecated

    def duplicate_dependencies(self) -> List[str]:
        seen, duplicates = set(), []
        for dep in self.dependencies:
            if dep.name in seen and dep.name not in duplicates:
                duplicates.append(dep.name)
            seen.add(dep.name)
        return duplicates


def _opt_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


def parse_chart_yaml(text: str) -> ChartMetadata:
    """
    Raises:
        ChartParseError: YAML syntax errors or a non-mapping document.
    """
    try:
        data = YAML(typ='safe').load(text)
    except YAMLError as e:
        raise _yaml_error(e)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ChartParseError("Chart.yaml must contain a mapping", 1)

    dependencies = []
    for raw in data.get("dependencies") or []:
        if not isinstance(raw, dict):
            logger.debug(f"Skipping malformed dependency entry: {raw!r}")
            continue
        dependencies.append(ChartDependency(
            name=str(raw.get("name", "")),
            version=_opt_str(raw.get("version")),
            repository=_opt_str(raw.get("repository")),
            condition=_opt_str(raw.get("condition")),
            tags=_str_list(raw.get("tags")),
            import_values=list(raw.get("import-values") or []),
            alias=_opt_str(raw.get("alias")),
        ))

    maintainers = []
    for raw in data.get("maintainers") or []:
        if isinstance(raw, dict):
            maintainers.append(Maintainer(
                name=str(raw.get("name", "")),
                email=_opt_str(raw.get("email")),
                url=_opt_str(raw.get("url")),
            ))

    annotations = data.get("annotations")
    return ChartMetadata(
        api_version=str(data.get("apiVersion") or ""),
        name=str(data.get("name") or ""),
        version=str(data.get("version") or ""),
        kube_version=_opt_str(data.get("kubeVersion")),
        description=_opt_str(data.get("description")),
        type=str(data.get("type") or "application"),
        keywords=_str_list(data.get("keywords")),
        home=_opt_str(data.get("home")),
        sources=_str_list(data.get("sources")),
        dependencies=dependencies,
        maintainers=maintainers,
        icon=_opt_str(data.get("icon")),
        app_version=_opt_str(data.get("appVersion")),
        deprecated=bool(data.get("deprecated", False)),
        annotations={str(k): str(v) for k, v in annotations.items()} if isinstance(annotations, dict) else {},
    )


# --- values.yaml ---

@dataclass
class ValuesFile:
    """Parsed values plus the line each dotted key path is defined on."""
    values: Any = field(default_factory=CommentedMap)
    line_map: Dict[str, int] = field(default_factory=dict)

    @property
    def defined_paths(self) -> List[str]:
        return list(self.line_map)

    def get(self, path: str) -> Any:
        current = self.values
        for part in path.split('.'):
            if not isinstance(current, dict):
                return None
            if part in current:
                current = current[part]
                continue
            match = [k for k in current if str(k) == part]
            if not match:
                return None
            current = current[match[0]]
        return current

    def has_path(self, path: str) -> bool:
        return path in self.line_map

    def line_for_path(self, path: str) -> Optional[int]:
        return self.line_map.get(path)

    @staticmethod
    def is_sensitive_path(path: str) -> bool:
        lower = path.lower()
        return any(marker in lower for marker in SENSITIVE_MARKERS)

    def sensitive_paths(self) -> List[str]:
        return [p for p in self.line_map if self.is_sensitive_path(p)]


def _collect_paths(node: Any, prefix: str, line_map: Dict[str, int]):
    """Records every mapping key path; sequences are not descended into."""
    if not isinstance(node, CommentedMap):
        return
    for key in node:
        path = f"{prefix}.{key}" if prefix else str(key)
        try:
            line = node.lc.key(key)[0] + 1
        except (KeyError, TypeError):
            line = node.lc.line + 1
        line_map[path] = line
        _collect_paths(node[key], path, line_map)


def parse_values_yaml(text: str) -> ValuesFile:
    """
    Raises:
        ChartParseError: YAML syntax errors or a non-mapping document.
    """
    try:
        data = YAML().load(text)
    except YAMLError as e:
        raise _yaml_error(e)

    if data is None:
        return ValuesFile()
    if not isinstance(data, CommentedMap):
        raise ChartParseError("values.yaml must contain a mapping", 1)

    line_map: Dict[str, int] = {}
    _collect_paths(data, "", line_map)
    return ValuesFile(values=data, line_map=line_map)


# --- _helpers.tpl ---

@dataclass
class Helper:
    name: str
    line: int
    content: str
    doc_comment: Optional[str] = None


@dataclass
class HelpersFile:
    path: str
    helpers: List[Helper] = field(default_factory=list)
    template: Optional[ParsedTemplate] = None

    def names(self) -> List[str]:
        return [h.name for h in self.helpers]


def _render(token) -> str:
    if isinstance(token, TextToken):
        return token.content
    if isinstance(token, CommentToken):
        return f"{{{{/* {token.content} */}}}}"
    return f"{{{{ {token.content} }}}}"


def parse_helpers(text: str, path: str) -> HelpersFile:
    """Finds `define` blocks and their description comments."""
    template = tokenize_template(text, path)
    tokens = template.tokens
    helpers = []

    for index, token in enumerate(tokens):
        if not isinstance(token, ActionToken) or token.control is not ControlKind.DEFINE:
            continue
        name = first_quoted(token.content)
        if not name:
            continue

        # Body runs until the matching end
        depth, body = 1, []
        for inner in tokens[index + 1:]:
            if isinstance(inner, ActionToken):
                kind = inner.control
                if kind is not None and kind.starts_block:
                    depth += 1
                elif kind is ControlKind.END:
                    depth -= 1
                    if depth == 0:
                        break
            body.append(_render(inner))

        doc = None
        for previous in reversed(tokens[:index]):
            if isinstance(previous, CommentToken):
                if token.line - previous.line <= HELPER_DOC_WINDOW:
                    doc = previous.content
                break
            if isinstance(previous, ActionToken):
                break

        helpers.append(Helper(name=name, line=token.line, content="".join(body), doc_comment=doc))

    return HelpersFile(path=path, helpers=helpers, template=template)

