#!/usr/bin/env python3
"""
LINTCURO INSTRUCTION PARSER - Dockerfile Front End
--------------------------------------------------
Turns raw build-script text into an ordered list of PositionedInstruction
objects. Continuation lines are joined before tokenizing, flags are parsed
into typed records and the argument form (shell vs exec) is preserved.

Parsing is all-or-nothing: the first structurally invalid line raises a
DockerfileParseError and no partial instruction list is returned.

Author: LintCuro Team
Date: 2026-01-16
"""

import re
import json
import shlex
from typing import List, Tuple, Optional, Dict

from lintcuro.parser.instructions import (
    Instruction, PositionedInstruction, Comment, From, Run, Copy, Add, Env,
    Label, Expose, Arg, Entrypoint, Cmd, Shell, User, Workdir, Volume,
    Maintainer, StopSignal, Healthcheck, OnBuild, BaseImage, ShellForm,
    ExecForm, Arguments, RunMount, RunFlags, CopyFlags, AddFlags, Port,
    HealthcheckArgs,
)


class DockerfileParseError(ValueError):
    """A structurally invalid instruction. Displays as 'line N[:col]: msg'."""

    def __init__(self, message: str, line: int, column: Optional[int] = None):
        self.message = message
        self.line = line
        self.column = column
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.column is not None:
            return f"line {self.line}:{self.column}: {self.message}"
        return f"line {self.line}: {self.message}"


class DockerfileParser:
    """
    Line-oriented parser for the Dockerfile grammar.
    One instance may be reused; it keeps no state between parse() calls.
    """

    FLAG_PATTERN = re.compile(r'--([A-Za-z][\w-]*)(?:=(\S*))?')
    PORT_PATTERN = re.compile(r'^(\d+)(?:-(\d+))?(?:/(\w+))?$')
    VARIABLE_PORT_PATTERN = re.compile(r'^(\$.+?)(?:/([A-Za-z]+))?$')
    PROTOCOLS = ("tcp", "udp", "sctp")
    HEREDOC_PATTERN = re.compile(r'(?<!<)<<(-?)(["\']?)([A-Za-z_][\w.-]*)\2')
    HEREDOC_KEYWORDS = ("RUN", "COPY", "ADD")
    ARG_NAME_PATTERN = re.compile(r'^[A-Za-z_][\w.-]*$')

    def __init__(self):
        self._dispatch = {
            "FROM": self._parse_from,
            "RUN": self._parse_run,
            "COPY": self._parse_copy,
            "ADD": self._parse_add,
            "ENV": self._parse_env,
            "LABEL": self._parse_label,
            "EXPOSE": self._parse_expose,
            "ARG": self._parse_arg,
            "ENTRYPOINT": lambda rest, line: Entrypoint(self._parse_arguments(rest, line, "ENTRYPOINT")),
            "CMD": lambda rest, line: Cmd(self._parse_arguments(rest, line, "CMD")),
            "SHELL": self._parse_shell,
            "USER": lambda rest, line: User(self._require(rest, line, "USER")),
            "WORKDIR": lambda rest, line: Workdir(self._require(rest, line, "WORKDIR")),
            "VOLUME": self._parse_volume,
            "MAINTAINER": lambda rest, line: Maintainer(self._require(rest, line, "MAINTAINER")),
            "STOPSIGNAL": lambda rest, line: StopSignal(self._require(rest, line, "STOPSIGNAL")),
            "HEALTHCHECK": self._parse_healthcheck,
            "ONBUILD": self._parse_onbuild,
        }

    def _clean_artifacts(self, text: str) -> str:
        """Removes a UTF-8 BOM and normalizes line endings."""
        text = text.lstrip('\ufeff')
        return text.replace('\r\n', '\n').replace('\r', '\n')

    def parse(self, text: str) -> List[PositionedInstruction]:
        """
        Parses a complete document.

        Raises:
            DockerfileParseError: on the first invalid instruction.
        """
        lines = self._clean_artifacts(text).split('\n')
        instructions = []

        for line_number, logical, physical, heredocs in self._logical_lines(lines):
            source_text = "\n".join(physical)
            if logical.startswith('#'):
                instructions.append(PositionedInstruction(
                    Comment(logical[1:].strip()), line_number, source_text))
                continue
            if heredocs:
                logical = self._inline_heredoc(logical, heredocs[0])
            instruction = self._parse_instruction(logical, line_number)
            instructions.append(PositionedInstruction(instruction, line_number, source_text))

        return instructions

    def _logical_lines(self, lines: List[str]):
        """
        Yields (start_line, logical_text, physical_lines, heredoc_bodies).
        A trailing backslash joins the next physical line; comment lines
        inside a continuation are dropped from the logical text. Heredoc
        bodies of RUN/COPY/ADD are kept out of the logical text.
        """
        i = 0
        total = len(lines)
        while i < total:
            raw = lines[i]
            stripped = raw.strip()
            if not stripped:
                i += 1
                continue

            start = i + 1
            if stripped.startswith('#'):
                yield start, stripped, [raw], []
                i += 1
                continue

            physical = [raw]
            parts = []
            segment = raw.rstrip()
            while segment.endswith('\\'):
                parts.append(segment[:-1])
                i += 1
                while i < total and lines[i].strip().startswith('#'):
                    physical.append(lines[i])
                    i += 1
                if i >= total:
                    segment = ""
                    break
                physical.append(lines[i])
                segment = lines[i].rstrip()
            parts.append(segment)
            i += 1

            logical = " ".join(p.strip() for p in parts if p.strip())

            heredocs = []
            keyword = logical.split(None, 1)[0].upper() if logical else ""
            if keyword in self.HEREDOC_KEYWORDS:
                for match in self.HEREDOC_PATTERN.finditer(logical):
                    strip_tabs, word = bool(match.group(1)), match.group(3)
                    body = []
                    while True:
                        if i >= total:
                            raise DockerfileParseError(f"unterminated heredoc '{word}'", start)
                        physical.append(lines[i])
                        candidate = lines[i].lstrip('\t') if strip_tabs else lines[i]
                        i += 1
                        if candidate.rstrip() == word:
                            break
                        body.append(candidate)
                    heredocs.append("\n".join(body))

            yield start, logical, physical, heredocs

    def _inline_heredoc(self, logical: str, body: str) -> str:
        """`RUN [flags] <<EOF` runs the heredoc body as its shell script."""
        keyword, rest = logical.split(None, 1)
        if keyword.upper() != "RUN":
            return logical
        flags = []
        while rest.startswith("--"):
            match = self.FLAG_PATTERN.match(rest)
            if not match:
                return logical
            flags.append(match.group(0))
            rest = rest[match.end():].lstrip()
        script = "\n".join(row for row in body.split("\n") if row.strip() and not row.strip().startswith('#'))
        if not self.HEREDOC_PATTERN.fullmatch(rest) or not script:
            return logical
        return " ".join([keyword] + flags + [script])

    def _parse_instruction(self, text: str, line: int) -> Instruction:
        parts = text.split(None, 1)
        if not parts:
            raise DockerfileParseError("empty instruction", line)
        keyword = parts[0]
        rest = parts[1].strip() if len(parts) > 1 else ""
        if keyword.upper() not in self._dispatch:
            raise DockerfileParseError(f"unknown instruction '{keyword}'", line, 1)
        return self._dispatch[keyword.upper()](rest, line)

    # --- Shared helpers ---

    def _require(self, rest: str, line: int, keyword: str) -> str:
        if not rest:
            raise DockerfileParseError(f"{keyword} requires an argument", line)
        return rest

    def _split_flags(self, rest: str, line: int, keyword: str,
                     allowed: Tuple[str, ...]) -> Tuple[List[Tuple[str, Optional[str]]], str]:
        """Peels leading --flag[=value] tokens off an argument string."""
        flags = []
        while rest.startswith("--"):
            match = self.FLAG_PATTERN.match(rest)
            if not match:
                raise DockerfileParseError(f"malformed flag in {keyword}", line)
            name, value = match.group(1).lower(), match.group(2)
            if name not in allowed:
                raise DockerfileParseError(f"unknown flag '--{name}' for {keyword}", line)
            flags.append((name, value))
            rest = rest[match.end():].lstrip()
        return flags, rest

    def _parse_arguments(self, rest: str, line: int, keyword: str) -> Arguments:
        """Exec form when the text is a JSON array of strings, shell form otherwise."""
        if not rest:
            raise DockerfileParseError(f"{keyword} requires arguments", line)
        if rest.startswith('['):
            try:
                items = json.loads(rest)
            except ValueError:
                return ShellForm(rest)
            if isinstance(items, list) and all(isinstance(i, str) for i in items):
                return ExecForm(tuple(items))
        return ShellForm(rest)

    def _split_words(self, rest: str, line: int, keyword: str) -> List[str]:
        try:
            return shlex.split(rest, posix=True)
        except ValueError as e:
            raise DockerfileParseError(f"{keyword}: {e}", line)

    def _parse_paths(self, rest: str, line: int, keyword: str) -> Tuple[Tuple[str, ...], str]:
        arguments = self._parse_arguments(rest, line, keyword)
        if arguments.is_exec:
            paths = list(arguments.items)
        else:
            paths = self._split_words(arguments.text, line, keyword)
        if not paths:
            raise DockerfileParseError(f"{keyword} requires at least one path", line)
        if len(paths) == 1:
            return (paths[0],), paths[0]
        return tuple(paths[:-1]), paths[-1]

    # --- Instruction parsers ---

    def _parse_from(self, rest: str, line: int) -> From:
        flags, rest = self._split_flags(rest, line, "FROM", ("platform",))
        platform = None
        for name, value in flags:
            if not value:
                raise DockerfileParseError("--platform requires a value", line)
            platform = value

        tokens = rest.split()
        if not tokens:
            raise DockerfileParseError("FROM requires an image", line)
        alias = None
        if len(tokens) == 3 and tokens[1].lower() == "as":
            alias = tokens[2]
        elif len(tokens) != 1:
            raise DockerfileParseError("expected 'FROM image [AS name]'", line)

        return From(self.parse_image_reference(tokens[0], alias=alias, platform=platform))

    @staticmethod
    def parse_image_reference(reference: str, alias: Optional[str] = None,
                              platform: Optional[str] = None) -> BaseImage:
        """
        Splits 'registry:port/name:tag@digest' into its components.
        A ':' after the last '/' is always a tag; a ':' in the first path
        segment of a multi-segment reference is a registry port.
        """
        digest = None
        if '@' in reference:
            reference, digest = reference.split('@', 1)

        tag = None
        last_slash = reference.rfind('/')
        last_colon = reference.rfind(':')
        if last_colon > last_slash:
            reference, tag = reference[:last_colon], reference[last_colon + 1:]

        registry = None
        if '/' in reference:
            first = reference.split('/', 1)[0]
            if '.' in first or ':' in first or first == "localhost":
                registry = first

        return BaseImage(image=reference, tag=tag or None, digest=digest or None,
                         alias=alias, platform=platform, registry=registry)

    def _parse_run(self, rest: str, line: int) -> Run:
        flags, rest = self._split_flags(rest, line, "RUN", ("mount", "network", "security"))
        mounts = []
        network = security = None
        for name, value in flags:
            if name == "mount":
                mounts.append(self._parse_mount(value or "", line))
            elif name == "network":
                network = value
            else:
                security = value
        return Run(self._parse_arguments(rest, line, "RUN"),
                   RunFlags(mounts=tuple(mounts), network=network, security=security))

    def _parse_mount(self, spec: str, line: int) -> RunMount:
        fields: Dict[str, Optional[str]] = {}
        for part in filter(None, spec.split(',')):
            key, sep, value = part.partition('=')
            fields[key.strip().lower()] = value.strip() if sep else None

        mount_type = (fields.pop("type", None) or "bind").lower()
        if mount_type not in ("bind", "cache", "tmpfs", "secret", "ssh"):
            raise DockerfileParseError(f"unsupported mount type '{mount_type}'", line)

        def as_int(key: str) -> Optional[int]:
            raw = fields.get(key)
            if raw is None:
                return None
            if not raw.isdigit():
                raise DockerfileParseError(f"mount option '{key}' must be an integer", line)
            return int(raw)

        def as_bool(*keys: str) -> bool:
            for key in keys:
                if key in fields:
                    raw = fields[key]
                    return raw is None or raw.lower() in ("true", "1", "yes")
            return False

        target = fields.get("target") or fields.get("dst") or fields.get("destination")
        return RunMount(
            type=mount_type,
            target=target,
            source=fields.get("source") or fields.get("src"),
            from_=fields.get("from"),
            id=fields.get("id"),
            sharing=fields.get("sharing"),
            mode=fields.get("mode"),
            uid=as_int("uid"),
            gid=as_int("gid"),
            readonly=as_bool("ro", "readonly"),
            required=as_bool("required"),
            size=fields.get("size"),
        )

    def _parse_copy(self, rest: str, line: int) -> Copy:
        flags, rest = self._split_flags(rest, line, "COPY", ("from", "chown", "chmod", "link", "parents", "exclude"))
        values = dict(flags)
        sources, destination = self._parse_paths(rest, line, "COPY")
        return Copy(sources, destination, CopyFlags(
            from_=values.get("from"),
            chown=values.get("chown"),
            chmod=values.get("chmod"),
            link=self._flag_enabled(values, "link"),
        ))

    def _parse_add(self, rest: str, line: int) -> Add:
        flags, rest = self._split_flags(rest, line, "ADD", ("chown", "chmod", "checksum", "link", "keep-git-dir"))
        values = dict(flags)
        sources, destination = self._parse_paths(rest, line, "ADD")
        return Add(sources, destination, AddFlags(
            chown=values.get("chown"),
            chmod=values.get("chmod"),
            checksum=values.get("checksum"),
            link=self._flag_enabled(values, "link"),
        ))

    @staticmethod
    def _flag_enabled(values: Dict[str, Optional[str]], name: str) -> bool:
        if name not in values:
            return False
        raw = values[name]
        return raw is None or raw.lower() != "false"

    def _parse_pairs(self, rest: str, line: int, keyword: str) -> Tuple[Tuple[str, str], ...]:
        rest = self._require(rest, line, keyword)
        first = rest.split(None, 1)[0]
        # Legacy 'KEY value with spaces' form
        if '=' not in first:
            key, _, value = rest.partition(' ')
            return ((key, value.strip()),)

        pairs = []
        for word in self._split_words(rest, line, keyword):
            key, sep, value = word.partition('=')
            if not sep or not key:
                raise DockerfileParseError(f"{keyword}: expected key=value, got '{word}'", line)
            pairs.append((key, value))
        return tuple(pairs)

    def _parse_env(self, rest: str, line: int) -> Env:
        return Env(self._parse_pairs(rest, line, "ENV"))

    def _parse_label(self, rest: str, line: int) -> Label:
        return Label(self._parse_pairs(rest, line, "LABEL"))

    def _parse_expose(self, rest: str, line: int) -> Expose:
        ports = []
        for word in self._require(rest, line, "EXPOSE").split():
            match = self.PORT_PATTERN.match(word)
            if match:
                number, end, protocol = match.groups()
                port = Port(number=int(number), end=int(end) if end else None,
                            protocol=(protocol or "tcp").lower())
            else:
                var_match = self.VARIABLE_PORT_PATTERN.match(word)
                if not var_match:
                    raise DockerfileParseError(f"invalid port '{word}'", line)
                port = Port(variable=var_match.group(1), protocol=(var_match.group(2) or "tcp").lower())
            if port.protocol not in self.PROTOCOLS:
                raise DockerfileParseError(f"invalid protocol '{port.protocol}'", line)
            ports.append(port)
        return Expose(tuple(ports))

    def _parse_arg(self, rest: str, line: int) -> Arg:
        name, sep, default = self._require(rest, line, "ARG").partition('=')
        name = name.strip()
        if not self.ARG_NAME_PATTERN.match(name):
            raise DockerfileParseError(f"invalid ARG name '{name}'", line)
        if sep:
            default = default.strip()
            if len(default) >= 2 and default[0] == default[-1] and default[0] in "\"'":
                default = default[1:-1]
            return Arg(name, default)
        return Arg(name)

    def _parse_shell(self, rest: str, line: int) -> Shell:
        arguments = self._parse_arguments(rest, line, "SHELL")
        if not arguments.is_exec or not arguments.items:
            raise DockerfileParseError("SHELL requires the exec (JSON array) form", line)
        return Shell(arguments)

    def _parse_volume(self, rest: str, line: int) -> Volume:
        arguments = self._parse_arguments(rest, line, "VOLUME")
        if arguments.is_exec:
            return Volume(tuple(arguments.items))
        return Volume(tuple(arguments.text.split()))

    def _parse_healthcheck(self, rest: str, line: int) -> Healthcheck:
        rest = self._require(rest, line, "HEALTHCHECK")
        if rest.upper() == "NONE":
            return Healthcheck(None)

        flags, rest = self._split_flags(
            rest, line, "HEALTHCHECK",
            ("interval", "timeout", "start-period", "start-interval", "retries"))
        values = dict(flags)

        keyword, _, command = rest.partition(' ')
        if keyword.upper() != "CMD":
            raise DockerfileParseError("HEALTHCHECK expects NONE or CMD", line)

        retries = values.get("retries")
        if retries is not None and not retries.isdigit():
            raise DockerfileParseError("HEALTHCHECK --retries must be an integer", line)

        return Healthcheck(HealthcheckArgs(
            arguments=self._parse_arguments(command.strip(), line, "HEALTHCHECK CMD"),
            interval=values.get("interval"),
            timeout=values.get("timeout"),
            start_period=values.get("start-period"),
            start_interval=values.get("start-interval"),
            retries=int(retries) if retries is not None else None,
        ))

    def _parse_onbuild(self, rest: str, line: int) -> OnBuild:
        rest = self._require(rest, line, "ONBUILD")
        if rest.split(None, 1)[0].upper() == "ONBUILD":
            raise DockerfileParseError("ONBUILD ONBUILD is not allowed", line)
        return OnBuild(self._parse_instruction(rest, line))


def parse_dockerfile(text: str) -> List[PositionedInstruction]:
    """Convenience wrapper around DockerfileParser().parse()."""
    return DockerfileParser().parse(text)
