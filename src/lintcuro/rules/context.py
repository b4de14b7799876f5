#!/usr/bin/env python3
"""
LINTCURO LINT CONTEXT
---------------------
Read-only bundles handed to context rules. A context lives for exactly one
orchestration run and is never mutated by rules.

Author: LintCuro Team
Date: 2026-01-16
"""

from dataclasses import dataclass, field
from typing import List, Optional, Set

from lintcuro.parser.instructions import PositionedInstruction
from lintcuro.templating.chart import ChartMetadata, ValuesFile, HelpersFile
from lintcuro.templating.tokenizer import ParsedTemplate


@dataclass
class DockerfileContext:
    """Whole-document view of one build script."""
    path: str
    instructions: List[PositionedInstruction] = field(default_factory=list)

    def non_comment(self) -> List[PositionedInstruction]:
        return [p for p in self.instructions if p.keyword != "#"]


@dataclass
class LintContext:
    """
    Whole-chart view: metadata, values, every template and the helpers.
    `files` holds chart-relative paths with '/' separators; `excluded`
    holds files that exist but were skipped by an exclude pattern.
    """
    chart_path: str
    chart: Optional[ChartMetadata] = None          # None if Chart.yaml is missing/broken
    values: Optional[ValuesFile] = None            # None if values.yaml is missing/broken
    templates: List[ParsedTemplate] = field(default_factory=list)
    helpers: Optional[HelpersFile] = None
    files: Set[str] = field(default_factory=set)
    excluded: Set[str] = field(default_factory=set)

    def __post_init__(self):
        refs = set()
        for template in self.templates:
            refs.update(template.values_references())
        self.template_value_refs = refs

    def present_files(self) -> Set[str]:
        return self.files | self.excluded

    def has_file(self, name: str) -> bool:
        present = self.present_files()
        return name in present or any(f.endswith("/" + name) for f in present)

    def helper_names(self) -> Set[str]:
        names = set(self.helpers.names()) if self.helpers else set()
        for template in self.templates:
            names.update(template.defined_templates)
        return names

    def template_references(self) -> Set[str]:
        refs = set()
        for template in self.templates:
            refs.update(template.referenced_templates)
        return refs
