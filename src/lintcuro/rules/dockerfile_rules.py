#!/usr/bin/env python3
"""
LINTCURO DOCKERFILE RULES - DL Catalogue
----------------------------------------
Build-script checks expressed with the streaming rule builders. Each
rule only looks at typed instructions; multi-stage bookkeeping (aliases,
per-stage counters) lives in the rule's own RuleState.data.

Author: LintCuro Team
Date: 2026-01-16
"""

import re
from typing import List

from lintcuro.core.models import Severity
from lintcuro.parser.instructions import (
    Add, Cmd, Copy, Entrypoint, Env, From, Healthcheck, Label, Maintainer,
    Run, Shell, User, Workdir,
)
from lintcuro.rules.framework import (
    DOCKERFILE, RuleState, Rule, context_rule, custom_rule, simple_rule,
    very_custom_rule,
)

WINDOWS_ABSOLUTE = re.compile(r'^[A-Za-z]:[\\/]')
LABEL_KEY = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]*$')
DEFAULT_REGISTRY = "docker.io"


def _unquote(value: str) -> str:
    return value.strip().strip('"\'')


def _is_root(user: str) -> bool:
    name = user.split(':', 1)[0].strip()
    return name in ("root", "0")


def _stage_name(instr: From, index: int) -> str:
    return instr.image.alias.lower() if instr.image.alias else str(index)


# --- Stateless checks ---

def _absolute_workdir(instr, shell) -> bool:
    if not isinstance(instr, Workdir):
        return True
    path = _unquote(instr.path)
    return path.startswith(('/', '$')) or bool(WINDOWS_ABSOLUTE.match(path))


def _no_sudo(instr, shell) -> bool:
    if not isinstance(instr, Run) or shell is None:
        return True
    return not shell.using_program("sudo")


def _apt_no_recommends(instr, shell) -> bool:
    if not isinstance(instr, Run) or shell is None:
        return True
    return not shell.any_command(
        lambda cmd: cmd.is_apt_get_install() and not cmd.has_flag("--no-install-recommends"))


def _pip_no_cache(instr, shell) -> bool:
    if not isinstance(instr, Run) or shell is None:
        return True
    return not shell.any_command(lambda cmd: cmd.is_pip_install() and not cmd.has_flag("--no-cache-dir"))


def _not_latest(instr, shell) -> bool:
    if not isinstance(instr, From):
        return True
    return instr.image.tag != "latest" or instr.image.digest is not None


def _add_for_remote_or_archive(instr, shell) -> bool:
    if not isinstance(instr, Add):
        return True
    return instr.has_url() or instr.has_archive() or all(s.startswith('$') for s in instr.sources)


def _exec_form_cmd(instr, shell) -> bool:
    if isinstance(instr, (Cmd, Entrypoint)):
        return instr.arguments.is_exec
    return True


def _no_env_self_reference(instr, shell) -> bool:
    if not isinstance(instr, Env):
        return True
    defined: List[str] = []
    for key, value in instr.pairs:
        for var in defined:
            if f"${var}" in value or f"${{{var}}}" in value:
                return False
        defined.append(key)
    return True


def _valid_label_keys(instr, shell) -> bool:
    if not isinstance(instr, Label):
        return True
    return all(LABEL_KEY.match(key) for key, _ in instr.pairs)


def _no_maintainer(instr, shell) -> bool:
    return not isinstance(instr, Maintainer)


# --- Stateful checks ---

def _last_user_step(state: RuleState, line: int, instr, shell):
    if isinstance(instr, From):
        state.data["last_user"] = None
    elif isinstance(instr, User):
        state.data["last_user"] = (line, instr.user)


def _last_user_done(state: RuleState):
    last = state.data.get("last_user")
    if last and _is_root(last[1]):
        state.fail(last[0])


def _tagged_image_step(state: RuleState, line: int, instr, shell):
    if not isinstance(instr, From):
        return
    aliases = state.data.setdefault("aliases", set())
    image = instr.image
    if not (image.is_scratch() or image.is_variable() or image.has_version()
            or image.image.lower() in aliases):
        state.fail(line)
    if image.alias:
        aliases.add(image.alias.lower())


def _per_stage_counter(kind):
    """Fails on the second and later `kind` instruction within one stage."""
    def step(state: RuleState, line: int, instr, shell):
        if isinstance(instr, From):
            state.data["seen"] = False
        elif isinstance(instr, kind):
            if state.data.get("seen"):
                state.fail(line)
            state.data["seen"] = True
    return step


def _copy_from_step(state: RuleState, line: int, instr, shell):
    stages = state.data.setdefault("stages", [])
    if isinstance(instr, From):
        stages.append(_stage_name(instr, len(stages)))
        return
    if not isinstance(instr, Copy) or instr.flags.from_ is None:
        return
    source = instr.flags.from_.lower()
    known_alias = source in stages
    earlier_index = source.isdigit() and int(source) < len(stages)
    external_image = '/' in source or ':' in source
    if not (known_alias or earlier_index or external_image):
        state.fail(line, f"`COPY --from={instr.flags.from_}` references an undefined stage.")


def _copy_from_self_step(state: RuleState, line: int, instr, shell):
    if isinstance(instr, From):
        index = state.data.get("index", -1) + 1
        state.data["index"] = index
        state.data["current"] = {str(index)}
        if instr.image.alias:
            state.data["current"].add(instr.image.alias.lower())
    elif isinstance(instr, Copy) and instr.flags.from_ is not None:
        if instr.flags.from_.lower() in state.data.get("current", set()):
            state.fail(line)


def _unique_alias_step(state: RuleState, line: int, instr, shell):
    if not isinstance(instr, From) or not instr.image.alias:
        return
    seen = state.data.setdefault("aliases", set())
    alias = instr.image.alias.lower()
    if alias in seen:
        state.fail(line, f"Duplicate `FROM` alias `{instr.image.alias}`.")
    seen.add(alias)


def _trusted_registry_step(state: RuleState, line: int, instr, shell):
    trusted = state.options.get("trusted") or []
    if not isinstance(instr, From) or not trusted:
        return
    aliases = state.data.setdefault("aliases", set())
    image = instr.image
    if not (image.is_scratch() or image.is_variable() or image.image.lower() in aliases):
        registry = image.registry or DEFAULT_REGISTRY
        if registry not in trusted:
            state.fail(line, f"Use only an allowed registry in the `FROM image`: '{registry}' is not trusted.")
    if image.alias:
        aliases.add(image.alias.lower())


def _relative_copy_step(state: RuleState, line: int, instr, shell):
    if isinstance(instr, From):
        parents = state.data.setdefault("stages_with_workdir", set())
        stage = instr.image.alias.lower() if instr.image.alias else instr.image.image.lower()
        state.data["current"] = stage
        state.data["has_workdir"] = instr.image.image.lower() in parents
        if state.data["has_workdir"]:
            parents.add(stage)
    elif isinstance(instr, Workdir):
        state.data["has_workdir"] = True
        state.data.setdefault("stages_with_workdir", set()).add(state.data.get("current", ""))
    elif isinstance(instr, Copy) and not state.data.get("has_workdir"):
        destination = _unquote(instr.destination)
        if not (destination.startswith(('/', '$')) or WINDOWS_ABSOLUTE.match(destination)):
            state.fail(line)


def _consecutive_run_step(state: RuleState, line: int, instr, shell):
    if isinstance(instr, Run):
        if state.data.get("previous_was_run"):
            state.fail(line)
        state.data["previous_was_run"] = True
    else:
        state.data["previous_was_run"] = False


def _wget_curl_step(state: RuleState, line: int, instr, shell):
    if not isinstance(instr, Run) or shell is None:
        return
    if shell.using_program("wget"):
        state.data.setdefault("wget", []).append(line)
    if shell.using_program("curl"):
        state.data.setdefault("curl", []).append(line)


def _wget_curl_done(state: RuleState):
    wget, curl = state.data.get("wget", []), state.data.get("curl", [])
    if wget and curl:
        for line in wget + curl:
            state.fail(line)


def _sets_pipefail(words: List[str]) -> bool:
    for i, word in enumerate(words):
        short_flag = word.startswith("-") and not word.startswith("--") and word.endswith("o")
        if short_flag and i + 1 < len(words) and words[i + 1] == "pipefail":
            return True
    return False


def _pipefail_step(state: RuleState, line: int, instr, shell):
    if isinstance(instr, From):
        state.data["pipefail"] = False
    elif isinstance(instr, Shell):
        items = list(instr.arguments.items)
        non_posix = items and any(name in items[0] for name in ("pwsh", "powershell", "cmd"))
        state.data["pipefail"] = bool(non_posix) or _sets_pipefail(items)
    elif isinstance(instr, Run) and shell is not None and shell.has_pipes:
        if state.data.get("pipefail"):
            return
        first = shell.commands[0] if shell.commands else None
        if first is not None and first.name == "set" and _sets_pipefail(first.arguments):
            return
        state.fail(line)


# --- Whole-document checks ---

def _healthcheck_present(rule, context, options) -> List:
    instructions = context.non_comment()
    if not instructions:
        return []
    if any(isinstance(p.instruction, Healthcheck) for p in instructions):
        return []
    return [rule.failure("`HEALTHCHECK` instruction missing.", context.path, 1)]


def rules() -> List[Rule]:
    """All bundled Dockerfile rules, in code order."""
    return [
        simple_rule("DL3000", Severity.ERROR, "absolute-workdir",
                    "Use absolute WORKDIR", _absolute_workdir),
        very_custom_rule("DL3002", Severity.WARNING, "last-user-not-root",
                         "Last USER should not be root", _last_user_step, _last_user_done),
        simple_rule("DL3004", Severity.ERROR, "no-sudo",
                    "Do not use sudo as it leads to unpredictable behavior. "
                    "Use a tool like gosu to enforce root", _no_sudo),
        custom_rule("DL3006", Severity.WARNING, "tag-image-version",
                    "Always tag the version of an image explicitly", _tagged_image_step),
        simple_rule("DL3007", Severity.WARNING, "no-latest-tag",
                    "Using latest is prone to errors if the image will ever update. "
                    "Pin the version explicitly to a release tag", _not_latest),
        custom_rule("DL3012", Severity.ERROR, "single-healthcheck",
                    "Multiple `HEALTHCHECK` instructions.", _per_stage_counter(Healthcheck)),
        simple_rule("DL3015", Severity.INFO, "apt-no-install-recommends",
                    "Avoid additional packages by specifying `--no-install-recommends`.",
                    _apt_no_recommends),
        simple_rule("DL3020", Severity.ERROR, "copy-not-add",
                    "Use COPY instead of ADD for files and folders", _add_for_remote_or_archive,
                    fixable=True),
        custom_rule("DL3022", Severity.WARNING, "copy-from-known-stage",
                    "`COPY --from` should reference a previously defined `FROM` alias",
                    _copy_from_step),
        custom_rule("DL3023", Severity.ERROR, "copy-from-other-stage",
                    "`COPY --from` cannot reference its own `FROM` alias", _copy_from_self_step),
        custom_rule("DL3024", Severity.ERROR, "unique-stage-alias",
                    "`FROM` aliases (stage names) must be unique", _unique_alias_step),
        simple_rule("DL3025", Severity.WARNING, "json-cmd",
                    "Use arguments JSON notation for CMD and ENTRYPOINT arguments", _exec_form_cmd,
                    fixable=True),
        custom_rule("DL3026", Severity.ERROR, "trusted-registry",
                    "Use only an allowed registry in the `FROM image`", _trusted_registry_step),
        simple_rule("DL3042", Severity.WARNING, "pip-no-cache-dir",
                    "Avoid use of cache directory with pip. "
                    "Use `pip install --no-cache-dir <package>`.", _pip_no_cache),
        simple_rule("DL3044", Severity.ERROR, "env-self-reference",
                    "Do not refer to an environment variable within the same `ENV` statement "
                    "where it is defined.", _no_env_self_reference),
        custom_rule("DL3045", Severity.WARNING, "copy-relative-without-workdir",
                    "`COPY` to a relative destination without `WORKDIR` set.", _relative_copy_step),
        simple_rule("DL3048", Severity.STYLE, "label-key",
                    "Invalid label key.", _valid_label_keys),
        context_rule("DL3057", Severity.INFO, "healthcheck-missing",
                     "`HEALTHCHECK` instruction missing.", _healthcheck_present, domain=DOCKERFILE),
        custom_rule("DL3059", Severity.INFO, "consolidate-run",
                    "Multiple consecutive `RUN` instructions. Consider consolidation.",
                    _consecutive_run_step),
        simple_rule("DL4000", Severity.ERROR, "maintainer-deprecated",
                    "MAINTAINER is deprecated", _no_maintainer, fixable=True),
        very_custom_rule("DL4001", Severity.WARNING, "wget-or-curl",
                         "Either use `wget` or `curl`, but not both.", _wget_curl_step, _wget_curl_done),
        custom_rule("DL4003", Severity.WARNING, "single-cmd",
                    "Multiple `CMD` instructions found. If you list more than one `CMD` "
                    "then only the last `CMD` will take effect", _per_stage_counter(Cmd)),
        custom_rule("DL4004", Severity.ERROR, "single-entrypoint",
                    "Multiple `ENTRYPOINT` instructions found. If you list more than one "
                    "`ENTRYPOINT` then only the last `ENTRYPOINT` will take effect",
                    _per_stage_counter(Entrypoint)),
        custom_rule("DL4006", Severity.WARNING, "pipefail",
                    "Set the SHELL option -o pipefail before RUN with a pipe in it",
                    _pipefail_step),
    ]
