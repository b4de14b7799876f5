#!/usr/bin/env python3
"""
LINTCURO SETTINGS - Configuration Resolver
------------------------------------------
Reads `.lintcuro.yaml` (or a hadolint/helmlint style file) and answers the
per-rule questions the orchestrator asks: is this rule off, what severity
does it report at, which files are skipped.

Accepted shape:

    rules:
      DL3006: off
      DL3026: [error, {trusted: [docker.io]}]
      HL2003: {level: warning}
    ignored: [DL3059]
    override: {error: [DL3007], info: [HL1006]}
    trustedRegistries: [docker.io, ghcr.io]
    exclude: ["vendor/*"]
    threshold: warning
    disableIgnorePragma: false
    fixableOnly: false
    no-fail: false
    strict: false

Author: LintCuro Team
Date: 2026-01-16
"""

import fnmatch
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from lintcuro.core.models import Severity

logger = logging.getLogger("lintcuro.config")

CONFIG_FILENAMES = (
    ".lintcuro.yaml",
    ".lintcuro.yml",
    ".hadolint.yaml",
    ".hadolint.yml",
    ".helmlint.yaml",
)

TRUSTED_REGISTRY_RULE = "DL3026"
GLOB_CHARS = "*?["


class ConfigError(Exception):
    """A configuration file could not be read or is not valid YAML."""


@dataclass
class RuleConfig:
    """Per-rule settings. level None means 'use the rule's default'."""
    level: Optional[Severity] = None
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def enabled(self) -> bool:
        return self.level is not Severity.IGNORE

    def get_bool_option(self, key: str, default: bool = False) -> bool:
        value = self.options.get(key, default)
        return value if isinstance(value, bool) else default

    def get_string_option(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.options.get(key)
        return str(value) if value is not None else default

    def get_string_array_option(self, key: str) -> List[str]:
        value = self.options.get(key)
        if isinstance(value, str):
            return [value]
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return []


def _flag(raw: Dict[str, Any], *keys: str, default: bool = False) -> bool:
    for key in keys:
        if key in raw:
            value = raw[key]
            if isinstance(value, bool):
                return value
            logger.warning(f"Config key '{key}' expects true/false, got {value!r}; ignoring")
    return default


def _string_list(raw: Dict[str, Any], key: str) -> List[str]:
    """A list setting; a lone string counts as one item."""
    value = raw.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value]
    logger.warning(f"Config key '{key}' expects a list, got {value!r}; ignoring")
    return []


def _parse_rule_entry(code: str, entry: Any) -> Optional[RuleConfig]:
    """Plain level, [level, {options}] or {level:, options:}."""
    if isinstance(entry, (list, tuple)):
        if not entry:
            return None
        level = Severity.parse(entry[0])
        options = entry[1] if len(entry) > 1 else {}
        if level is None or not isinstance(options, dict):
            return None
        return RuleConfig(level, dict(options))

    if isinstance(entry, dict):
        options = entry.get("options") or {}
        if not isinstance(options, dict):
            return None
        level = None
        if "level" in entry:
            level = Severity.parse(entry["level"])
            if level is None:
                return None
        return RuleConfig(level, dict(options))

    # YAML reads a bare `off` as False
    if entry is False:
        return RuleConfig(Severity.IGNORE)

    level = Severity.parse(entry)
    return RuleConfig(level) if level is not None else None


@dataclass
class LintConfig:
    rules: Dict[str, RuleConfig] = field(default_factory=dict)
    quiet: bool = False
    debug: bool = False
    exclude: List[str] = field(default_factory=list)
    threshold: Severity = Severity.STYLE
    disable_ignore_pragma: bool = False
    fixable_only: bool = False
    no_fail: bool = False
    strict: bool = False

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "LintConfig":
        """
        Builds a config from an already-loaded mapping. Bad entries are
        logged and skipped; this never raises on content.
        """
        config = cls()
        if not raw:
            return config
        if not isinstance(raw, dict):
            logger.warning(f"Configuration must be a mapping, got {type(raw).__name__}; using defaults")
            return config

        # --- PHASE 1: per-rule entries ---
        rules = raw.get("rules") or {}
        if isinstance(rules, dict):
            for code, entry in rules.items():
                parsed = _parse_rule_entry(str(code), entry)
                if parsed is None:
                    logger.warning(f"Skipping invalid config for rule {code}: {entry!r}")
                    continue
                config.rules[str(code).upper()] = parsed
        else:
            logger.warning("Config 'rules' must be a mapping; ignoring")

        # --- PHASE 2: hadolint-style shorthands ---
        for code in _string_list(raw, "ignored"):
            config.rule(code).level = Severity.IGNORE

        overrides = raw.get("override") or {}
        if not isinstance(overrides, dict):
            logger.warning("Config 'override' must be a mapping; ignoring")
        else:
            for level_name, codes in overrides.items():
                level = Severity.parse(level_name)
                if level is None or not isinstance(codes, list):
                    logger.warning(f"Skipping invalid override '{level_name}'")
                    continue
                for code in codes:
                    config.rule(str(code)).level = level

        if "trustedRegistries" in raw:
            config.rule(TRUSTED_REGISTRY_RULE).options["trusted"] = _string_list(raw, "trustedRegistries")

        # --- PHASE 3: global settings ---
        config.quiet = _flag(raw, "quiet")
        config.debug = _flag(raw, "debug")
        config.disable_ignore_pragma = _flag(raw, "disableIgnorePragma", "disable-ignore-pragma")
        config.fixable_only = _flag(raw, "fixableOnly", "fixable-only")
        config.no_fail = _flag(raw, "no-fail", "noFail")
        config.strict = _flag(raw, "strict")

        config.exclude = _string_list(raw, "exclude")

        for key in ("threshold", "failure-threshold", "failureThreshold"):
            if key in raw:
                level = Severity.parse(raw[key])
                if level is None:
                    logger.warning(f"Unknown threshold {raw[key]!r}; keeping {config.threshold.label}")
                else:
                    config.threshold = level
                break

        return config

    def rule(self, code: str) -> RuleConfig:
        """Returns the RuleConfig for code, creating an empty one if needed."""
        return self.rules.setdefault(code.upper(), RuleConfig())

    def rule_options(self, code: str) -> Dict[str, Any]:
        entry = self.rules.get(code)
        return entry.options if entry else {}

    def is_rule_disabled(self, code: str) -> bool:
        entry = self.rules.get(code)
        return entry is not None and not entry.enabled

    def effective_severity(self, code: str, default: Severity) -> Severity:
        entry = self.rules.get(code)
        level = entry.level if entry and entry.level is not None else default
        if self.strict and level is Severity.WARNING:
            return Severity.ERROR
        return level

    def is_excluded(self, path: str) -> bool:
        normalized = str(path).replace(os.sep, "/")
        name = os.path.basename(normalized)
        for pattern in self.exclude:
            if fnmatch.fnmatch(normalized, pattern) or fnmatch.fnmatch(name, pattern):
                return True
            if not any(ch in pattern for ch in GLOB_CHARS) and pattern in normalized:
                return True
        return False


def load_config(path) -> LintConfig:
    """
    Raises:
        ConfigError: the file cannot be read or is not valid YAML.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}")

    try:
        raw = YAML(typ='safe').load(text)
    except YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")

    logger.debug(f"Loaded configuration from {path}")
    return LintConfig.from_dict(raw)


def find_config(start=".") -> Optional[Path]:
    """Looks for a known config file in start and each parent directory."""
    current = Path(start).resolve()
    if current.is_file():
        current = current.parent
    for directory in (current, *current.parents):
        for name in CONFIG_FILENAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return None
