#!/usr/bin/env python3
"""
LINTCURO INSTRUCTION MODELS
---------------------------
Typed representation of build-script (Dockerfile) instructions.
Every instruction the parser understands maps onto exactly one dataclass
below; rules pattern-match on these types and their flag records rather
than on raw strings.

Author: LintCuro Team
Date: 2026-01-16
"""

from dataclasses import dataclass, field
from typing import Optional, List, Tuple, Union

# Extensions ADD will auto-extract
ARCHIVE_EXTENSIONS = (
    ".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tbz2", ".tar.xz", ".txz",
    ".zip", ".gz", ".bz2", ".xz", ".Z", ".lz", ".lzma",
)


# --- Arguments: the shell-form / exec-form split is structural ---

@dataclass(frozen=True)
class ShellForm:
    """`RUN apt-get update` style arguments, kept as one string."""
    text: str

    is_exec = False

    @property
    def words(self) -> List[str]:
        return self.text.split()

    def as_text(self) -> str:
        return self.text


@dataclass(frozen=True)
class ExecForm:
    """`RUN ["apt-get", "update"]` style arguments (JSON array)."""
    items: Tuple[str, ...]

    is_exec = True

    @property
    def words(self) -> List[str]:
        return list(self.items)

    def as_text(self) -> str:
        return " ".join(self.items)


Arguments = Union[ShellForm, ExecForm]


# --- Base image ---

@dataclass(frozen=True)
class BaseImage:
    """Parsed `FROM` image reference."""
    image: str                       # Full reference without tag/digest
    tag: Optional[str] = None
    digest: Optional[str] = None
    alias: Optional[str] = None      # Stage name from `AS alias`
    platform: Optional[str] = None   # Value of --platform
    registry: Optional[str] = None   # e.g. 'gcr.io', 'localhost:5000'

    @property
    def name(self) -> str:
        """Image name with the registry stripped."""
        if self.registry and self.image.startswith(self.registry + "/"):
            return self.image[len(self.registry) + 1:]
        return self.image

    def is_scratch(self) -> bool:
        return self.image.lower() == "scratch"

    def is_variable(self) -> bool:
        return self.image.startswith("$")

    def has_version(self) -> bool:
        return self.tag is not None or self.digest is not None


# --- Flag records ---

@dataclass(frozen=True)
class RunMount:
    """One `--mount=type=...,k=v` specification."""
    type: str = "bind"               # bind | cache | tmpfs | secret | ssh
    target: Optional[str] = None
    source: Optional[str] = None
    from_: Optional[str] = None
    id: Optional[str] = None
    sharing: Optional[str] = None    # shared | private | locked
    mode: Optional[str] = None
    uid: Optional[int] = None
    gid: Optional[int] = None
    readonly: bool = False
    required: bool = False
    size: Optional[str] = None


@dataclass(frozen=True)
class RunFlags:
    mounts: Tuple[RunMount, ...] = ()
    network: Optional[str] = None    # default | none | host
    security: Optional[str] = None   # sandbox | insecure


@dataclass(frozen=True)
class CopyFlags:
    from_: Optional[str] = None
    chown: Optional[str] = None
    chmod: Optional[str] = None
    link: bool = False


@dataclass(frozen=True)
class AddFlags:
    chown: Optional[str] = None
    chmod: Optional[str] = None
    checksum: Optional[str] = None
    link: bool = False


@dataclass(frozen=True)
class Port:
    """An EXPOSE entry: a number (or range), or a build variable."""
    number: Optional[int] = None
    end: Optional[int] = None        # Upper bound for ranges like 8000-8010
    variable: Optional[str] = None
    protocol: str = "tcp"


@dataclass(frozen=True)
class HealthcheckArgs:
    arguments: Arguments
    interval: Optional[str] = None
    timeout: Optional[str] = None
    start_period: Optional[str] = None
    start_interval: Optional[str] = None
    retries: Optional[int] = None


# --- Instructions ---

@dataclass(frozen=True)
class Instruction:
    keyword = ""


@dataclass(frozen=True)
class Comment(Instruction):
    text: str
    keyword = "#"


@dataclass(frozen=True)
class From(Instruction):
    image: BaseImage
    keyword = "FROM"


@dataclass(frozen=True)
class Run(Instruction):
    arguments: Arguments
    flags: RunFlags = field(default_factory=RunFlags)
    keyword = "RUN"


@dataclass(frozen=True)
class Copy(Instruction):
    sources: Tuple[str, ...]
    destination: str
    flags: CopyFlags = field(default_factory=CopyFlags)
    keyword = "COPY"


@dataclass(frozen=True)
class Add(Instruction):
    sources: Tuple[str, ...]
    destination: str
    flags: AddFlags = field(default_factory=AddFlags)
    keyword = "ADD"

    def has_url(self) -> bool:
        return any(s.startswith(("http://", "https://")) for s in self.sources)

    def has_archive(self) -> bool:
        return any(s.endswith(ARCHIVE_EXTENSIONS) for s in self.sources)


@dataclass(frozen=True)
class Env(Instruction):
    pairs: Tuple[Tuple[str, str], ...]
    keyword = "ENV"


@dataclass(frozen=True)
class Label(Instruction):
    pairs: Tuple[Tuple[str, str], ...]
    keyword = "LABEL"


@dataclass(frozen=True)
class Expose(Instruction):
    ports: Tuple[Port, ...]
    keyword = "EXPOSE"


@dataclass(frozen=True)
class Arg(Instruction):
    name: str
    default: Optional[str] = None
    keyword = "ARG"


@dataclass(frozen=True)
class Entrypoint(Instruction):
    arguments: Arguments
    keyword = "ENTRYPOINT"


@dataclass(frozen=True)
class Cmd(Instruction):
    arguments: Arguments
    keyword = "CMD"


@dataclass(frozen=True)
class Shell(Instruction):
    arguments: ExecForm
    keyword = "SHELL"


@dataclass(frozen=True)
class User(Instruction):
    user: str
    keyword = "USER"


@dataclass(frozen=True)
class Workdir(Instruction):
    path: str
    keyword = "WORKDIR"


@dataclass(frozen=True)
class Volume(Instruction):
    paths: Tuple[str, ...]
    keyword = "VOLUME"


@dataclass(frozen=True)
class Maintainer(Instruction):
    name: str
    keyword = "MAINTAINER"


@dataclass(frozen=True)
class StopSignal(Instruction):
    signal: str
    keyword = "STOPSIGNAL"


@dataclass(frozen=True)
class Healthcheck(Instruction):
    check: Optional[HealthcheckArgs] = None   # None means HEALTHCHECK NONE
    keyword = "HEALTHCHECK"

    @property
    def disabled(self) -> bool:
        return self.check is None


@dataclass(frozen=True)
class OnBuild(Instruction):
    """Wraps exactly one other instruction, never another ONBUILD."""
    inner: Instruction
    keyword = "ONBUILD"

    def __post_init__(self):
        if isinstance(self.inner, OnBuild):
            raise ValueError("ONBUILD cannot wrap another ONBUILD instruction")


@dataclass(frozen=True)
class PositionedInstruction:
    """An instruction plus where it came from in the source text."""
    instruction: Instruction
    line_number: int                 # 1-indexed first physical line
    source_text: str                 # Physical lines, joined with '\n'

    @property
    def keyword(self) -> str:
        return self.instruction.keyword
