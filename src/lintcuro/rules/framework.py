#!/usr/bin/env python3
"""
LINTCURO RULE FRAMEWORK - Streaming & Context Rules
---------------------------------------------------
Rules come in two shapes behind one flat registry:

* StreamingRule - called once per instruction/token with a rule-owned
  RuleState accumulator, then finalized after the last node.
* ContextRule   - called once per document with the whole LintContext.

Both carry a `kind` tag that the orchestrator branches on. Rule authors
build streaming rules with simple_rule / custom_rule / very_custom_rule
and context rules with context_rule.

Author: LintCuro Team
Date: 2026-01-16
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from lintcuro.core.models import CheckFailure, RuleCode, Severity

logger = logging.getLogger("lintcuro.rules")

STREAMING = "streaming"
CONTEXT = "context"

DOCKERFILE = "dockerfile"
HELM = "helm"


class RuleState:
    """
    Per-document accumulator owned by exactly one streaming rule.
    `data` is free-form storage for whatever the rule needs to remember.
    """

    def __init__(self, rule: "StreamingRule", path: str, options: Optional[Dict[str, Any]] = None):
        self.rule = rule
        self.path = path
        self.options = options or {}
        self.failures: List[CheckFailure] = []
        self.data: Dict[str, Any] = {}

    def fail(self, line: int, message: Optional[str] = None, column: Optional[int] = None):
        """Records a failure for this rule at the given line."""
        self.failures.append(CheckFailure(
            code=self.rule.code,
            severity=self.rule.severity,
            message=message or self.rule.message,
            file=self.path,
            line=line,
            column=column,
            fixable=self.rule.fixable,
        ))


StepFn = Callable[[RuleState, int, Any, Any], None]
DoneFn = Callable[[RuleState], None]


@dataclass
class StreamingRule:
    code: RuleCode
    severity: Severity
    name: str
    message: str
    step: StepFn
    done: Optional[DoneFn] = None
    description: str = ""
    domain: str = DOCKERFILE
    fixable: bool = False

    kind = STREAMING

    def __post_init__(self):
        self.code = RuleCode(self.code)
        if not self.description:
            self.description = self.message

    def new_state(self, path: str, options: Optional[Dict[str, Any]] = None) -> RuleState:
        return RuleState(self, path, options)

    def check(self, state: RuleState, line: int, node: Any, shell: Any = None):
        self.step(state, line, node, shell)

    def finalize(self, state: RuleState) -> List[CheckFailure]:
        if self.done is not None:
            self.done(state)
        return state.failures


CheckFn = Callable[["ContextRule", Any, Dict[str, Any]], List[CheckFailure]]


@dataclass
class ContextRule:
    code: RuleCode
    severity: Severity
    name: str
    description: str
    check_fn: CheckFn
    domain: str = HELM
    fixable: bool = False

    kind = CONTEXT

    def __post_init__(self):
        self.code = RuleCode(self.code)

    def check(self, context: Any, options: Optional[Dict[str, Any]] = None) -> List[CheckFailure]:
        return list(self.check_fn(self, context, options or {}))

    def failure(self, message: str, file: str, line: int = 1,
                column: Optional[int] = None) -> CheckFailure:
        return CheckFailure(
            code=self.code, severity=self.severity, message=message,
            file=file, line=line, column=column, fixable=self.fixable,
        )


Rule = Union[StreamingRule, ContextRule]


# --- Builders ---

def simple_rule(code: str, severity: Severity, name: str, message: str,
                predicate: Callable[[Any, Any], bool], **kwargs) -> StreamingRule:
    """
    Stateless rule: fails on every node for which predicate(node, shell)
    returns False.
    """
    def step(state: RuleState, line: int, node: Any, shell: Any):
        if not predicate(node, shell):
            state.fail(line)

    return StreamingRule(code=code, severity=severity, name=name, message=message, step=step, **kwargs)


def custom_rule(code: str, severity: Severity, name: str, message: str,
                step: StepFn, **kwargs) -> StreamingRule:
    """Stateful rule; `step` reads and writes state.data."""
    return StreamingRule(code=code, severity=severity, name=name, message=message, step=step, **kwargs)


def very_custom_rule(code: str, severity: Severity, name: str, message: str,
                     step: StepFn, done: DoneFn, **kwargs) -> StreamingRule:
    """Stateful rule with a finalization hook run after the last node."""
    return StreamingRule(code=code, severity=severity, name=name, message=message,
                         step=step, done=done, **kwargs)


def context_rule(code: str, severity: Severity, name: str, description: str,
                 check_fn: CheckFn, **kwargs) -> ContextRule:
    return ContextRule(code=code, severity=severity, name=name, description=description,
                       check_fn=check_fn, **kwargs)


class RuleCatalogue:
    """
    Explicit, caller-built set of rules. Nothing is registered globally:
    tests and embedders construct exactly the catalogue they want.
    """

    def __init__(self, rules: Optional[List[Rule]] = None):
        self._rules: Dict[str, Rule] = {}
        for rule in rules or []:
            self.register(rule)

    def register(self, rule: Rule):
        if rule.code in self._rules:
            raise ValueError(f"Duplicate rule code: {rule.code}")
        self._rules[rule.code] = rule

    def get(self, code: str) -> Optional[Rule]:
        return self._rules.get(code)

    def codes(self) -> List[str]:
        return list(self._rules)

    def for_domain(self, domain: str) -> List[Rule]:
        return [r for r in self._rules.values() if r.domain == domain]

    def streaming_rules(self, domain: str) -> List[StreamingRule]:
        return [r for r in self.for_domain(domain) if r.kind == STREAMING]

    def context_rules(self, domain: str) -> List[ContextRule]:
        return [r for r in self.for_domain(domain) if r.kind == CONTEXT]

    def subset(self, codes) -> "RuleCatalogue":
        wanted = set(codes)
        unknown = wanted - set(self._rules)
        if unknown:
            logger.warning(f"Unknown rule codes ignored: {', '.join(sorted(unknown))}")
        return RuleCatalogue([r for c, r in self._rules.items() if c in wanted])

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, code) -> bool:
        return code in self._rules
