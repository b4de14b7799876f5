#!/usr/bin/env python3
"""
LINTCURO PRAGMA RESOLVER - Inline Suppressions
----------------------------------------------
Turns in-source comments into suppression state.

Build scripts:
    # hadolint ignore=DL3006,DL3008   -> next instruction
    RUN foo  # hadolint ignore=DL3004 -> this instruction
    # hadolint global ignore=DL3059   -> whole file
    # hadolint shell=/bin/bash        -> shell used for RUN analysis
    # hadolint disable                -> whole file off
('lintcuro' is accepted wherever 'hadolint' is.)

Charts (YAML comments or {{/* ... */}} template comments):
    # helmlint-ignore HL2002          -> next line ('*' if no codes)
    x: {{ f }} {{/* helmlint-ignore HL3005 */}}  -> this line and the next
    # helmlint-ignore-file HL3009     -> whole file (file off if no codes)
('disable' is accepted wherever 'ignore' is.)

Author: LintCuro Team
Date: 2026-01-16
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from lintcuro.parser.instructions import Comment, PositionedInstruction
from lintcuro.templating.tokenizer import CommentToken, tokenize_template

logger = logging.getLogger("lintcuro.pragma")

WILDCARD = "*"
NON_POSIX_SHELLS = ("pwsh", "powershell", "cmd")


@dataclass
class PragmaState:
    """Suppression state for one document (or a whole chart after merging)."""
    file_disabled: bool = False
    file_ignores: Set[str] = field(default_factory=set)
    line_ignores: Dict[int, Set[str]] = field(default_factory=dict)
    shell: Optional[str] = None

    def ignore_line(self, line: int, codes: Iterable[str]):
        self.line_ignores.setdefault(line, set()).update(codes)

    def is_ignored(self, code: str, line: int) -> bool:
        if self.file_disabled:
            return True
        if code in self.file_ignores or WILDCARD in self.file_ignores:
            return True
        codes = self.line_ignores.get(line, ())
        return code in codes or WILDCARD in codes

    def merge(self, other: "PragmaState") -> "PragmaState":
        """Union of both states. A disabled file stays disabled."""
        lines = {line: set(codes) for line, codes in self.line_ignores.items()}
        for line, codes in other.line_ignores.items():
            lines.setdefault(line, set()).update(codes)
        return PragmaState(
            file_disabled=self.file_disabled or other.file_disabled,
            file_ignores=self.file_ignores | other.file_ignores,
            line_ignores=lines,
            shell=self.shell or other.shell,
        )

    def file_level(self) -> "PragmaState":
        """Copy without the line-scoped entries."""
        return PragmaState(file_disabled=self.file_disabled,
                           file_ignores=set(self.file_ignores), shell=self.shell)

    def is_posix_shell(self) -> bool:
        if self.shell is None:
            return True
        words = self.shell.strip().strip('"\'').split()
        if not words:
            return True
        program = re.split(r'[\\/]', words[0])[-1].lower()
        return not program.startswith(NON_POSIX_SHELLS)


# --- Build scripts ---

DOCKER_PRAGMA = re.compile(r'^(?:hadolint|lintcuro)\b\s*(?P<body>.*)$', re.IGNORECASE)
IGNORE_LIST = re.compile(r'^ignore\s*=\s*(?P<codes>.*)$', re.IGNORECASE)
TRAILING_PRAGMA = re.compile(r'#\s*(?:hadolint|lintcuro)\s+ignore\s*=\s*(?P<codes>[A-Za-z0-9_,\s]+)',
                             re.IGNORECASE)


def _split_codes(text: str) -> List[str]:
    return [c.strip().upper() for c in re.split(r'[,\s]+', text) if c.strip()]


def _apply_docker_pragma(body: str, target_line: Optional[int], state: PragmaState):
    body = body.strip()
    lower = body.lower()

    if lower.startswith("global"):
        match = IGNORE_LIST.match(body[len("global"):].strip())
        if match:
            state.file_ignores.update(_split_codes(match.group("codes")))
        return

    match = IGNORE_LIST.match(body)
    if match:
        codes = _split_codes(match.group("codes"))
        if target_line is not None and codes:
            state.ignore_line(target_line, codes)
        return

    if lower.startswith("shell="):
        state.shell = body[len("shell="):].strip() or None
        return

    if lower == "disable":
        state.file_disabled = True
        return

    logger.debug(f"Unrecognised pragma: {body!r}")


def extract_dockerfile_pragmas(instructions: List[PositionedInstruction],
                               enabled: bool = True) -> PragmaState:
    """
    A standalone ignore comment targets the next non-comment instruction;
    a trailing one targets the instruction it sits on.
    """
    state = PragmaState()
    if not enabled:
        return state

    pending: List[str] = []
    for positioned in instructions:
        instruction = positioned.instruction
        if isinstance(instruction, Comment):
            match = DOCKER_PRAGMA.match(instruction.text)
            if match:
                pending.append(match.group("body"))
            continue

        for body in pending:
            _apply_docker_pragma(body, positioned.line_number, state)
        pending = []

        trailing = TRAILING_PRAGMA.search(positioned.source_text)
        if trailing:
            state.ignore_line(positioned.line_number, _split_codes(trailing.group("codes")))

    # Pragmas after the last instruction still count for file-wide directives
    for body in pending:
        _apply_docker_pragma(body, None, state)

    return state


# --- Charts ---

HELM_PRAGMA = re.compile(
    r'^helmlint-(?P<verb>ignore|disable)(?P<file>-file)?\b\s*(?P<rest>.*)$', re.IGNORECASE)
TEMPLATE_COMMENT = re.compile(r'\{\{-?\s*/\*.*?\*/\s*-?\}\}')


def _helm_codes(rest: str) -> List[str]:
    return [c for c in _split_codes(rest) if c.startswith("HL")]


def _apply_helm_comment(comment: str, line: int, state: PragmaState, trailing: bool = False):
    match = HELM_PRAGMA.match(comment.strip())
    if not match:
        return
    rest = match.group("rest").strip()
    codes = _helm_codes(rest)
    if match.group("file"):
        if not rest:
            state.file_disabled = True
        else:
            state.file_ignores.update(codes)
    else:
        targets = codes if rest else [WILDCARD]
        state.ignore_line(line + 1, targets)
        if trailing:
            state.ignore_line(line, targets)


def _shares_line(token: CommentToken, lines: List[str]) -> bool:
    """True when a one-line template comment sits beside other content."""
    if '\n' in token.content or not 0 < token.line <= len(lines):
        return False
    return bool(TEMPLATE_COMMENT.sub('', lines[token.line - 1]).strip())


def extract_helm_pragmas(text: str, tokens=None, enabled: bool = True) -> PragmaState:
    """
    Scans '#' line comments and template comments. `tokens` may be
    passed when the text has already been tokenized.
    """
    state = PragmaState()
    if not enabled:
        return state

    for number, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped.startswith('#'):
            continue
        _apply_helm_comment(stripped[1:], number, state)

    if tokens is None:
        if "{{" not in text:
            return state
        tokens = tokenize_template(text).tokens

    lines = text.splitlines()
    for token in tokens:
        if isinstance(token, CommentToken):
            # A multi-line comment targets the line after its end
            last_line = token.line + token.content.count('\n')
            _apply_helm_comment(token.content, last_line, state,
                                trailing=_shares_line(token, lines))

    return state
