#!/usr/bin/env python3
"""
LINTCURO RULE CATALOGUE - Bundled Rule Registry
-----------------------------------------------
Assembles the bundled Dockerfile and chart rules into one RuleCatalogue.

Author: LintCuro Team
Date: 2026-01-16
"""

from typing import Iterable, Optional

from lintcuro.rules import chart_rules, dockerfile_rules
from lintcuro.rules.framework import RuleCatalogue


def default_catalogue(only: Optional[Iterable[str]] = None) -> RuleCatalogue:
    """
    Builds a fresh catalogue on every call. `only` restricts it to the
    listed codes.
    """
    active_rules = [
        *dockerfile_rules.rules(),
        *chart_rules.rules(),
    ]
    catalogue = RuleCatalogue(active_rules)
    if only is not None:
        return catalogue.subset(only)
    return catalogue
