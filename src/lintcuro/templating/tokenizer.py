#!/usr/bin/env python3
"""
LINTCURO TEMPLATE TOKENIZER - Go/Helm Template Scanner
------------------------------------------------------
Single forward pass over template text producing Text / Action / Comment
tokens with line numbers. Control structures are tracked on a block stack
so unclosed `if` / `range` / `with` / `define` / `block` sections can be
reported at the line where they were opened.

The tokenizer never raises. Malformed input is recorded in
ParsedTemplate.errors and whatever was captured up to that point is kept.

Variable and function extraction is a heuristic scan of the action text,
not an expression parser.

Author: LintCuro Team
Date: 2026-01-16
"""

import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple, Union

logger = logging.getLogger("lintcuro.templating")

# Known template functions; membership is a substring test on the action
KNOWN_FUNCTIONS = (
    "include", "tpl", "lookup", "required", "default", "empty", "coalesce",
    "toYaml", "toJson", "fromYaml", "fromJson", "indent", "nindent", "trim",
    "trimAll", "trimPrefix", "trimSuffix", "quote", "squote", "upper",
    "lower", "title", "untitle", "substr", "replace", "trunc", "list",
    "dict", "get", "set", "unset", "hasKey", "keys", "values", "merge",
    "mergeOverwrite", "append", "prepend", "concat", "first", "last",
    "printf", "print", "println", "fail", "kindOf", "typeOf", "deepEqual",
    "b64enc", "b64dec", "sha256sum", "randAlphaNum", "randAlpha", "now",
    "date", "dateModify", "toDate", "env", "expandenv", "dateInZone", "genCA",
)

QUOTED_NAME = re.compile(r'"([^"]*)"')


class ControlKind(Enum):
    IF = "If"
    ELSE = "Else"
    ELSE_IF = "ElseIf"
    RANGE = "Range"
    WITH = "With"
    DEFINE = "Define"
    BLOCK = "Block"
    TEMPLATE = "Template"
    END = "End"

    @property
    def starts_block(self) -> bool:
        return self in (ControlKind.IF, ControlKind.RANGE, ControlKind.WITH,
                        ControlKind.DEFINE, ControlKind.BLOCK)

    @classmethod
    def classify(cls, content: str) -> Optional["ControlKind"]:
        """Looks at the first word of an action's content."""
        words = content.split()
        if not words:
            return None
        first = words[0]
        if first == "else":
            if len(words) > 1 and words[1] == "if":
                return cls.ELSE_IF
            return cls.ELSE
        return _KEYWORDS.get(first)


_KEYWORDS = {
    "if": ControlKind.IF,
    "range": ControlKind.RANGE,
    "with": ControlKind.WITH,
    "define": ControlKind.DEFINE,
    "block": ControlKind.BLOCK,
    "template": ControlKind.TEMPLATE,
    "end": ControlKind.END,
}


@dataclass(frozen=True)
class TextToken:
    content: str
    line: int


@dataclass(frozen=True)
class ActionToken:
    content: str
    line: int
    trim_left: bool = False
    trim_right: bool = False

    @property
    def control(self) -> Optional[ControlKind]:
        return ControlKind.classify(self.content)


@dataclass(frozen=True)
class CommentToken:
    content: str
    line: int
    trim_left: bool = False
    trim_right: bool = False


TemplateToken = Union[TextToken, ActionToken, CommentToken]


@dataclass(frozen=True)
class TemplateParseError:
    message: str
    line: int

    def __str__(self) -> str:
        return f"line {self.line}: {self.message}"


@dataclass
class ParsedTemplate:
    """Everything the tokenizer learned about one template file."""
    path: str
    tokens: List[TemplateToken] = field(default_factory=list)
    variables_used: Set[str] = field(default_factory=set)
    functions_called: Set[str] = field(default_factory=set)
    defined_templates: Set[str] = field(default_factory=set)
    referenced_templates: Set[str] = field(default_factory=set)
    unclosed_blocks: List[Tuple[ControlKind, int]] = field(default_factory=list)
    errors: List[TemplateParseError] = field(default_factory=list)

    def values_references(self) -> Set[str]:
        """Paths under .Values, without the prefix."""
        return {v[len(".Values."):] for v in self.variables_used if v.startswith(".Values.")}

    def release_references(self) -> Set[str]:
        return {v for v in self.variables_used if v.startswith(".Release.")}

    def has_unclosed_blocks(self) -> bool:
        return bool(self.unclosed_blocks)

    def calls_function(self, name: str) -> bool:
        return name in self.functions_called

    def uses_lookup(self) -> bool:
        return self.calls_function("lookup")

    def uses_tpl(self) -> bool:
        return self.calls_function("tpl")

    def comments(self) -> List[CommentToken]:
        return [t for t in self.tokens if isinstance(t, CommentToken)]

    def actions(self) -> List[ActionToken]:
        return [t for t in self.tokens if isinstance(t, ActionToken)]


class TemplateTokenizer:
    """
    Scans template text character by character.
    A fresh tokenizer state is used for every call to tokenize().
    """

    OPEN = "{{"
    CLOSE = "}}"
    COMMENT_START = re.compile(r'[ \t]*/\*')

    def tokenize(self, text: str, path: str = "") -> ParsedTemplate:
        result = ParsedTemplate(path=path)
        stack: List[Tuple[ControlKind, int]] = []

        pos = 0
        line = 1
        text_start = 0
        text_start_line = 1
        length = len(text)

        while pos < length:
            open_at = text.find(self.OPEN, pos)
            if open_at == -1:
                break

            # --- PHASE 1: flush pending literal text ---
            if open_at > text_start:
                result.tokens.append(TextToken(text[text_start:open_at], text_start_line))
            line += text.count('\n', pos, open_at)
            action_line = line

            # --- PHASE 2: markers ---
            cursor = open_at + 2
            trim_left = text.startswith('-', cursor) and (cursor + 1 >= length or text[cursor + 1].isspace())
            if trim_left:
                cursor += 1
            body_start = cursor
            is_comment = self.COMMENT_START.match(text, cursor) is not None

            # --- PHASE 3: consume to the close delimiter ---
            close_at = text.find(self.CLOSE, body_start)
            if close_at == -1:
                result.errors.append(TemplateParseError("Unclosed template action", action_line))
                logger.debug(f"{path}: unclosed action at line {action_line}")
                text_start = length
                pos = length
                break

            body_end = close_at
            trim_right = close_at > body_start and text[close_at - 1] == '-' \
                and (close_at - 2 < body_start or text[close_at - 2].isspace())
            if trim_right:
                body_end -= 1
            body = text[body_start:body_end]
            line += text.count('\n', body_start, close_at)

            if is_comment:
                result.tokens.append(CommentToken(body.strip().strip('/*').strip(), action_line,
                                                  trim_left, trim_right))
            else:
                content = body.strip()
                result.tokens.append(ActionToken(content, action_line, trim_left, trim_right))
                self._analyze_action(content, action_line, stack, result)

            pos = close_at + 2
            text_start = pos
            text_start_line = line

        if text_start < length:
            result.tokens.append(TextToken(text[text_start:], text_start_line))

        # --- PHASE 4: anything still open was never closed ---
        for kind, opened_at in stack:
            result.unclosed_blocks.append((kind, opened_at))
            result.errors.append(TemplateParseError(f"Unclosed {kind.value} block", opened_at))

        return result

    def _analyze_action(self, content: str, line: int,
                        stack: List[Tuple[ControlKind, int]], result: ParsedTemplate):
        kind = ControlKind.classify(content)
        if kind is not None:
            if kind.starts_block:
                stack.append((kind, line))
                if kind in (ControlKind.DEFINE, ControlKind.BLOCK):
                    name = first_quoted(content)
                    if name:
                        result.defined_templates.add(name)
            elif kind is ControlKind.END:
                if stack:
                    stack.pop()
                else:
                    result.errors.append(TemplateParseError("Unexpected end", line))
            elif kind is ControlKind.TEMPLATE:
                name = first_quoted(content)
                if name:
                    result.referenced_templates.add(name)

        result.variables_used.update(extract_variables(content))
        result.functions_called.update(extract_functions(content))
        if "include" in content or "template" in content:
            name = first_quoted(content)
            if name:
                result.referenced_templates.add(name)


def first_quoted(content: str) -> Optional[str]:
    """First double-quoted string in an action, e.g. the name in `define "x"`."""
    match = QUOTED_NAME.search(content)
    return match.group(1) if match else None


def extract_variables(content: str) -> Set[str]:
    """
    Collects '.'-started paths such as '.Values.image.tag'.
    A lone '.' is not a variable.
    """
    found = set()
    i = 0
    length = len(content)
    while i < length:
        if content[i] == '.':
            j = i + 1
            while j < length and (content[j].isalnum() or content[j] in "_."):
                j += 1
            candidate = content[i:j]
            if len(candidate) > 1:
                found.add(candidate)
            i = j
        else:
            i += 1
    return found


def extract_functions(content: str) -> Set[str]:
    return {name for name in KNOWN_FUNCTIONS if name in content}


def tokenize_template(text: str, path: str = "") -> ParsedTemplate:
    """Convenience wrapper around TemplateTokenizer().tokenize()."""
    return TemplateTokenizer().tokenize(text, path)
