#!/usr/bin/env python3
"""
LINTCURO CORE MODELS
--------------------
Defines the fundamental data structures shared by every LintCuro linter.
Severities, rule codes and failures are the currency exchanged between
the parsers, the rule engine and the report layer.

Author: LintCuro Team
Date: 2026-01-16
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any


class Severity(Enum):
    """
    Ordered failure severity. ERROR is the most severe, IGNORE the least.
    Comparisons follow that order: Severity.ERROR > Severity.WARNING.
    """
    ERROR = 0
    WARNING = 1
    INFO = 2
    STYLE = 3
    IGNORE = 4

    @property
    def rank(self) -> int:
        """Sort key: lower rank means more severe."""
        return self.value

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, text: Any) -> Optional["Severity"]:
        """Case-insensitive lookup. Returns None for unknown names."""
        if isinstance(text, Severity):
            return text
        if not isinstance(text, str):
            return None
        return _SEVERITY_ALIASES.get(text.strip().lower())

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.value > other.value

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.value >= other.value

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.value < other.value

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.value <= other.value

    def __str__(self) -> str:
        return self.label


_SEVERITY_ALIASES = {
    "error": Severity.ERROR,
    "warning": Severity.WARNING,
    "warn": Severity.WARNING,
    "info": Severity.INFO,
    "style": Severity.STYLE,
    "ignore": Severity.IGNORE,
    "none": Severity.IGNORE,
    "off": Severity.IGNORE,
}


class RuleCategory(Enum):
    """Coarse grouping of rules, derived from the rule code prefix."""
    DOCKERFILE = "Dockerfile"
    SHELL = "Shell"
    STRUCTURE = "Chart Structure"
    VALUES = "Values Validation"
    TEMPLATE = "Template Syntax"
    SECURITY = "Security"
    BEST_PRACTICE = "Best Practice"
    OTHER = "Other"

    @property
    def display_name(self) -> str:
        return self.value


# Longest prefixes first so that "HL1" wins over a bare "HL"
_CATEGORY_PREFIXES = [
    ("HL1", RuleCategory.STRUCTURE),
    ("HL2", RuleCategory.VALUES),
    ("HL3", RuleCategory.TEMPLATE),
    ("HL4", RuleCategory.SECURITY),
    ("HL5", RuleCategory.BEST_PRACTICE),
    ("DL", RuleCategory.DOCKERFILE),
    ("SC", RuleCategory.SHELL),
]


class RuleCode(str):
    """
    Opaque rule identifier such as 'DL3006' or 'HL1001'.
    Behaves like a plain string so it can key dicts and sets directly.
    """

    @property
    def category(self) -> RuleCategory:
        upper = self.upper()
        for prefix, category in _CATEGORY_PREFIXES:
            if upper.startswith(prefix):
                return category
        return RuleCategory.OTHER


@dataclass(frozen=True)
class CheckFailure:
    """
    A single rule violation.

    Failures are immutable; the orchestrator derives a copy carrying the
    effective severity with `with_severity` instead of mutating.
    """
    code: RuleCode                    # Stable rule code (e.g. 'DL3006')
    severity: Severity                # Severity as emitted (or as resolved)
    message: str                      # Human-readable explanation
    file: str                         # Path used for attribution
    line: int                         # 1-indexed line number
    column: Optional[int] = None      # Optional 1-indexed column
    fixable: bool = False             # True if an auto-fix exists
    category: Optional[RuleCategory] = None

    def __post_init__(self):
        if not isinstance(self.code, RuleCode):
            object.__setattr__(self, "code", RuleCode(self.code))
        if self.category is None:
            object.__setattr__(self, "category", self.code.category)

    @property
    def sort_key(self):
        return (self.file, self.line, self.severity.rank, str(self.code), self.message)

    def __lt__(self, other: "CheckFailure") -> bool:
        if not isinstance(other, CheckFailure):
            return NotImplemented
        return self.sort_key < other.sort_key

    def with_severity(self, severity: Severity) -> "CheckFailure":
        if severity is self.severity:
            return self
        return CheckFailure(
            code=self.code, severity=severity, message=self.message,
            file=self.file, line=self.line, column=self.column,
            fixable=self.fixable, category=self.category,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": str(self.code),
            "severity": self.severity.label,
            "message": self.message,
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "fixable": self.fixable,
            "category": self.category.display_name,
        }


@dataclass
class LintResult:
    """
    Output of one orchestration run. Everything downstream (report tables,
    JSON export, exit codes) consumes only this object.
    """
    failures: List[CheckFailure] = field(default_factory=list)
    parse_errors: List[str] = field(default_factory=list)
    files_checked: int = 0
    error_count: int = 0
    warning_count: int = 0

    def sort(self):
        """Orders failures by (file, line, severity). Idempotent."""
        self.failures.sort(key=lambda f: f.sort_key)

    def update_counts(self):
        self.error_count = sum(1 for f in self.failures if f.severity is Severity.ERROR)
        self.warning_count = sum(1 for f in self.failures if f.severity is Severity.WARNING)

    def has_errors(self) -> bool:
        return any(f.severity is Severity.ERROR for f in self.failures)

    def max_severity(self) -> Optional[Severity]:
        if not self.failures:
            return None
        return max(f.severity for f in self.failures)

    def should_fail(self, config) -> bool:
        """
        True when a failure meets the configured threshold, unless the
        configuration says never to fail.
        """
        if config.no_fail:
            return False
        return any(f.severity >= config.threshold for f in self.failures)

    def to_dict(self) -> Dict[str, Any]:
        max_sev = self.max_severity()
        return {
            "failures": [f.to_dict() for f in self.failures],
            "parse_errors": list(self.parse_errors),
            "files_checked": self.files_checked,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "max_severity": max_sev.label if max_sev else None,
        }
