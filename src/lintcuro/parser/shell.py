#!/usr/bin/env python3
"""
LINTCURO SHELL SCANNER
----------------------
Light-weight decomposition of RUN scripts into individual commands.
This is not a shell parser: it splits on control operators and keeps
enough structure (command name, arguments, flags) for rules to ask
questions like "does this script call wget?".

Author: LintCuro Team
Date: 2026-01-16
"""

import shlex
from dataclasses import dataclass, field
from typing import List, Callable

from lintcuro.parser.instructions import Arguments

CONTROL_OPERATORS = {"&&", "||", ";", "|", "&", ";;", "|&"}


@dataclass
class Command:
    """One simple command inside a script."""
    name: str
    arguments: List[str] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)

    def has_flag(self, flag: str) -> bool:
        return flag in self.flags

    def is_pip_install(self) -> bool:
        if self.name.startswith("pip") and not self.name.startswith("pipenv") and "install" in self.arguments:
            return True
        if self.name.startswith("python"):
            args = self.arguments
            return any(args[i:i + 3] == ["-m", "pip", "install"] for i in range(len(args)))
        return False

    def is_apt_get_install(self) -> bool:
        return self.name == "apt-get" and "install" in self.arguments


@dataclass
class ParsedShell:
    """A script split into commands, plus whether it pipes."""
    original: str
    commands: List[Command] = field(default_factory=list)
    has_pipes: bool = False

    @classmethod
    def parse(cls, script: str) -> "ParsedShell":
        return cls(original=script, commands=_extract_commands(script), has_pipes=_has_pipe(script))

    @classmethod
    def from_arguments(cls, arguments: Arguments) -> "ParsedShell":
        return cls.parse(arguments.as_text())

    def any_command(self, predicate: Callable[[Command], bool]) -> bool:
        return any(predicate(c) for c in self.commands)

    def command_names(self) -> List[str]:
        return [c.name for c in self.commands]

    def using_program(self, program: str) -> bool:
        return any(c.name == program for c in self.commands)


def _tokenize(script: str) -> List[str]:
    # Heredoc scripts keep their newlines, which separate commands
    script = script.replace("\\\n", " ").replace("\n", " ; ")
    lexer = shlex.shlex(script, posix=True, punctuation_chars=";&|")
    lexer.whitespace_split = True
    lexer.commenters = ""
    try:
        return list(lexer)
    except ValueError:
        # Unbalanced quotes: fall back to a plain whitespace split
        return script.replace(";", " ; ").replace("&&", " && ").replace("||", " || ").split()


def _has_pipe(script: str) -> bool:
    tokens = _tokenize(script)
    return "|" in tokens or "|&" in tokens


def _extract_commands(script: str) -> List[Command]:
    commands = []
    current: List[str] = []
    for token in _tokenize(script) + [";"]:
        if token in CONTROL_OPERATORS:
            if current:
                commands.append(_build_command(current))
            current = []
        else:
            current.append(token)
    return commands


def _build_command(words: List[str]) -> Command:
    # Skip leading environment assignments (FOO=bar cmd ...)
    while len(words) > 1 and '=' in words[0] and not words[0].startswith('-'):
        words = words[1:]
    name, arguments = words[0], words[1:]
    flags = [a for a in arguments if a.startswith('-') and a != '-']
    return Command(name=name, arguments=arguments, flags=flags)
