#!/usr/bin/env python3
"""
LINTCURO ENGINE - The Lint Orchestrator
---------------------------------------
LintEngine drives one document (or one chart) through the lint phases:
parse, pragma extraction, rule execution, filtering and sorting. Parse
failures are recorded on the result; nothing raises for malformed but
readable input.

Author: LintCuro Team
Date: 2026-01-16
"""

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from lintcuro.config.settings import LintConfig
from lintcuro.core.models import CheckFailure, LintResult, Severity
from lintcuro.parser.dockerfile import DockerfileParseError, parse_dockerfile
from lintcuro.parser.instructions import OnBuild, Run
from lintcuro.parser.shell import ParsedShell
from lintcuro.pragma.resolver import PragmaState, extract_dockerfile_pragmas, extract_helm_pragmas
from lintcuro.rules.catalogue import default_catalogue
from lintcuro.rules.context import DockerfileContext, LintContext
from lintcuro.rules.framework import DOCKERFILE, HELM, RuleCatalogue
from lintcuro.templating.chart import (
    ChartParseError, parse_chart_yaml, parse_helpers, parse_values_yaml,
)
from lintcuro.templating.tokenizer import tokenize_template

logger = logging.getLogger("lintcuro.engine")

CHART_FILE = "Chart.yaml"
VALUES_FILE = "values.yaml"
TEMPLATE_EXTENSIONS = (".yaml", ".yml", ".tpl", ".txt")
SKIPPED_DIRS = {".git", "charts", "node_modules", "__pycache__"}


class LintEngine:
    """
    Principal orchestrator. Holds an explicit rule catalogue and the
    resolved configuration; keeps no state between lint calls.
    """

    def __init__(self, catalogue: Optional[RuleCatalogue] = None,
                 config: Optional[LintConfig] = None):
        self.catalogue = catalogue if catalogue is not None else default_catalogue()
        self.config = config or LintConfig()

    # --- Build scripts ---

    def lint_dockerfile(self, text: str, path: str = "Dockerfile") -> LintResult:
        result = LintResult(files_checked=1)

        # PHASE 1: Parse (fail-fast)
        try:
            instructions = parse_dockerfile(text)
        except DockerfileParseError as e:
            logger.debug(f"Parse failure in {path}: {e}")
            result.parse_errors.append(f"{path}: {e}")
            return result

        # PHASE 2: Pragmas
        pragmas = extract_dockerfile_pragmas(instructions, enabled=not self.config.disable_ignore_pragma)
        if pragmas.file_disabled:
            logger.debug(f"{path}: disabled by pragma")
            return result
        posix_shell = pragmas.is_posix_shell()

        # PHASE 3: Streaming rules over every non-comment instruction
        failures: List[CheckFailure] = []
        active = [r for r in self.catalogue.streaming_rules(DOCKERFILE) if not self.config.is_rule_disabled(r.code)]
        states = [(rule, rule.new_state(path, self.config.rule_options(rule.code))) for rule in active]

        for positioned in instructions:
            if positioned.keyword == "#":
                continue
            nodes = [positioned.instruction]
            if isinstance(positioned.instruction, OnBuild):
                nodes.append(positioned.instruction.inner)
            for node in nodes:
                shell = ParsedShell.from_arguments(node.arguments) if isinstance(node, Run) and posix_shell else None
                for rule, state in states:
                    rule.check(state, positioned.line_number, node, shell)

        for rule, state in states:
            failures.extend(rule.finalize(state))

        # PHASE 4: Whole-document rules
        context = DockerfileContext(path=path, instructions=instructions)
        for rule in self.catalogue.context_rules(DOCKERFILE):
            if not self.config.is_rule_disabled(rule.code):
                failures.extend(rule.check(context, self.config.rule_options(rule.code)))

        # PHASE 5: Filter, sort, count
        result.failures = self._filter(failures, lambda f: pragmas)
        result.sort()
        result.update_counts()
        return result

    def lint_dockerfile_file(self, path) -> LintResult:
        path_str = str(path)
        if self.config.is_excluded(path_str):
            logger.debug(f"Skipping excluded file {path_str}")
            return LintResult()
        try:
            text = Path(path).read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            return LintResult(parse_errors=[f"Failed to read file: {path_str}: {e}"])
        return self.lint_dockerfile(text, path_str)

    # --- Charts ---

    def lint_chart(self, chart_dir) -> LintResult:
        root = Path(chart_dir)
        result = LintResult()
        if not root.exists():
            result.parse_errors.append(f"Chart path does not exist: {root}")
            return result
        if not root.is_dir():
            result.parse_errors.append(f"Chart path is not a directory: {root}")
            return result

        # PHASE 1: Discovery
        files, excluded = self._collect_chart_files(root)
        file_set = set(files)
        pragmas: Dict[str, PragmaState] = {}
        pragmas_on = not self.config.disable_ignore_pragma

        # PHASE 2: Chart.yaml / values.yaml
        chart = None
        if CHART_FILE in file_set:
            text = self._read(root / CHART_FILE, result)
            if text is not None:
                result.files_checked += 1
                pragmas[CHART_FILE] = extract_helm_pragmas(text, enabled=pragmas_on)
                try:
                    chart = parse_chart_yaml(text)
                except ChartParseError as e:
                    result.parse_errors.append(f"{CHART_FILE}: {e}")

        values = None
        if VALUES_FILE in file_set:
            text = self._read(root / VALUES_FILE, result)
            if text is not None:
                result.files_checked += 1
                pragmas[VALUES_FILE] = extract_helm_pragmas(text, enabled=pragmas_on)
                try:
                    values = parse_values_yaml(text)
                except ChartParseError as e:
                    result.parse_errors.append(f"{VALUES_FILE}: {e}")

        # PHASE 3: Templates and helpers
        templates, helpers = [], None
        for rel in files:
            if not rel.startswith("templates/") or not rel.endswith(TEMPLATE_EXTENSIONS):
                continue
            text = self._read(root / rel, result)
            if text is None:
                continue
            result.files_checked += 1
            template = tokenize_template(text, rel)
            templates.append(template)
            pragmas[rel] = extract_helm_pragmas(text, template.tokens, enabled=pragmas_on)
            if "_helpers" in Path(rel).name and helpers is None:
                helpers = parse_helpers(text, rel)

        chart_wide = PragmaState()
        for state in pragmas.values():
            chart_wide = chart_wide.merge(state.file_level())

        if chart_wide.file_disabled:
            logger.debug(f"{root}: disabled by pragma")
            return result

        context = LintContext(chart_path=str(root), chart=chart, values=values,
                              templates=templates, helpers=helpers, files=file_set,
                              excluded=excluded)

        # PHASE 4: Rules
        failures: List[CheckFailure] = []
        for rule in self.catalogue.context_rules(HELM):
            if not self.config.is_rule_disabled(rule.code):
                failures.extend(rule.check(context, self.config.rule_options(rule.code)))

        streaming = [r for r in self.catalogue.streaming_rules(HELM) if not self.config.is_rule_disabled(r.code)]
        for template in templates:
            for rule in streaming:
                state = rule.new_state(template.path, self.config.rule_options(rule.code))
                for token in template.tokens:
                    rule.check(state, token.line, token)
                failures.extend(rule.finalize(state))

        # PHASE 5: Filter, sort, count
        def pragma_for(failure: CheckFailure) -> PragmaState:
            local = pragmas.get(failure.file)
            return chart_wide.merge(local) if local else chart_wide

        result.failures = self._filter(failures, pragma_for)
        result.sort()
        result.update_counts()
        return result

    def _collect_chart_files(self, root: Path) -> Tuple[List[str], Set[str]]:
        """
        Chart-relative '/' paths to lint, vendored subcharts dropped.
        Files matched by an exclude pattern are returned separately.
        """
        collected, excluded = [], set()
        for path in sorted(root.rglob("*")):
            rel_parts = path.relative_to(root).parts
            if any(part in SKIPPED_DIRS for part in rel_parts[:-1]):
                continue
            if not path.is_file() or path.is_symlink():
                continue
            rel = "/".join(rel_parts)
            if self.config.is_excluded(rel) or self.config.is_excluded(str(path)):
                logger.debug(f"Skipping excluded file {rel}")
                excluded.add(rel)
                continue
            collected.append(rel)
        return collected, excluded

    def _read(self, path: Path, result: LintResult) -> Optional[str]:
        try:
            return path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            result.parse_errors.append(f"Failed to read file: {path}: {e}")
            return None

    # --- Shared filtering ---

    def _filter(self, failures: Iterable[CheckFailure],
                pragma_for: Callable[[CheckFailure], PragmaState]) -> List[CheckFailure]:
        kept = []
        for failure in failures:
            if self.config.is_rule_disabled(failure.code):
                continue
            severity = self.config.effective_severity(failure.code, failure.severity)
            if severity is Severity.IGNORE or severity < self.config.threshold:
                continue
            if not self.config.disable_ignore_pragma and pragma_for(failure).is_ignored(failure.code, failure.line):
                continue
            if self.config.fixable_only and not failure.fixable:
                continue
            kept.append(failure.with_severity(severity))
        return kept

    # --- Batch ---

    def lint_paths(self, paths: Iterable[Any],
                   progress_callback: Optional[Callable[[int, int], None]] = None) -> Dict[str, LintResult]:
        """
        Charts (directories holding Chart.yaml) go to lint_chart, other
        files to lint_dockerfile_file. Plain directories are searched for
        charts and Dockerfiles.
        """
        targets = []
        for raw in paths:
            path = Path(raw)
            if path.is_dir() and not (path / CHART_FILE).is_file():
                targets.extend(self._discover(path))
            else:
                targets.append(path)

        results: Dict[str, LintResult] = {}
        total = len(targets)
        for index, target in enumerate(targets, start=1):
            key = str(target)
            if target.is_dir():
                results[key] = self.lint_chart(target)
            else:
                results[key] = self.lint_dockerfile_file(target)
            if progress_callback:
                progress_callback(index, total)
        return results

    def _discover(self, directory: Path) -> List[Path]:
        found = []
        for chart_file in sorted(directory.rglob(CHART_FILE)):
            chart_dir = chart_file.parent
            if "charts" in chart_dir.relative_to(directory).parts[:-1]:
                continue
            found.append(chart_dir)
        for candidate in sorted(directory.rglob("*")):
            if not candidate.is_file() or self.config.is_excluded(str(candidate)):
                continue
            if any(chart in candidate.parents for chart in found):
                continue
            name = candidate.name
            if name == "Dockerfile" or name.startswith("Dockerfile.") or name.endswith(".Dockerfile"):
                found.append(candidate)
        return found

    def generate_summary(self, results: Dict[str, LintResult]) -> Dict[str, Any]:
        """Totals across a batch run."""
        if not results:
            return {
                "targets": 0, "files_checked": 0, "failures": 0,
                "errors": 0, "warnings": 0, "parse_errors": 0, "failing_targets": 0,
            }

        return {
            "targets": len(results),
            "files_checked": sum(r.files_checked for r in results.values()),
            "failures": sum(len(r.failures) for r in results.values()),
            "errors": sum(r.error_count for r in results.values()),
            "warnings": sum(r.warning_count for r in results.values()),
            "parse_errors": sum(len(r.parse_errors) for r in results.values()),
            "failing_targets": sum(1 for r in results.values() if r.should_fail(self.config)),
            "summary_timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
        }
