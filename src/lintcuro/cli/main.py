#!/usr/bin/env python3
"""
LINTCURO CLI - Dockerfile & Helm Chart Linter
---------------------------------------------
Translates user commands into LintEngine runs and renders the results
with rich. Exit status is 1 when any target fails the configured
threshold, 2 for usage/configuration errors, 130 on Ctrl-C.

Author: LintCuro Team
Date: 2026-01-16
"""

import sys
import argparse
import logging
from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    BarColumn,
    TaskProgressColumn
)

from lintcuro.cli.formatter import LintFormatter
from lintcuro.config.settings import ConfigError, LintConfig, find_config, load_config
from lintcuro.core.engine import LintEngine
from lintcuro.core.models import LintResult, Severity
from lintcuro.rules.catalogue import default_catalogue

VERSION = "0.1.0"

# Global console for consistent styling across the application
console = Console()


class LintCuroCLI:
    """
    CLI wrapper that translates user commands into engine runs.
    """

    def __init__(self, console: Console = console):
        self.console = console
        self.formatter = LintFormatter(console)
        self.parser = argparse.ArgumentParser(
            prog="lintcuro",
            description="LintCuro - Dockerfile & Helm chart linter",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self._setup_args()

    def _setup_args(self):
        """Configures the command-line flags and subcommands."""
        self.parser.add_argument("-v", "--version", action="version", version=f"lintcuro v{VERSION}")
        subparsers = self.parser.add_subparsers(dest="command", metavar="Command")

        # Flags shared by every linting subcommand
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument("--config", help="Path to a config file (default: search upward)")
        common.add_argument("--threshold", help="Minimum severity: error, warning, info, style")
        common.add_argument("--ignore", action="append", default=[], metavar="CODE",
                            help="Disable a rule (repeatable)")
        common.add_argument("--no-fail", action="store_true", help="Always exit 0")
        common.add_argument("--fixable-only", action="store_true", help="Report only auto-fixable findings")
        common.add_argument("--strict", action="store_true", help="Promote warnings to errors")
        common.add_argument("--format", choices=["table", "json"], default="table", help="Output format")
        common.add_argument("--debug", action="store_true", help="Verbose logging")

        docker_parser = subparsers.add_parser("docker", parents=[common], help="🐳 Lint Dockerfiles")
        docker_parser.add_argument("paths", nargs="+", help="Dockerfile paths ('-' reads stdin)")

        helm_parser = subparsers.add_parser("helm", parents=[common], help="⎈ Lint Helm charts")
        helm_parser.add_argument("paths", nargs="+", help="Chart directories")

        scan_parser = subparsers.add_parser("scan", parents=[common], help="🔍 Discover and lint everything")
        scan_parser.add_argument("paths", nargs="+", help="Files or directories")

        subparsers.add_parser("rules", help="📋 List bundled rules")

    def print_header(self, subtitle: str):
        """Renders the LintCuro splash header."""
        self.console.print(Panel.fit(
            f"[bold cyan]LintCuro v{VERSION}[/bold cyan]\n"
            "══════════════════════════════════════════════════════════════════",
            title=f"[bold white]{subtitle}[/bold white]",
            border_style="cyan"
        ))

    def _build_config(self, args: argparse.Namespace) -> LintConfig:
        """File settings first, then CLI flags on top."""
        path = args.config or find_config(args.paths[0] if args.paths[0] != "-" else ".")
        config = load_config(path) if path else LintConfig()

        if args.threshold:
            level = Severity.parse(args.threshold)
            if level is None:
                raise ConfigError(f"Unknown threshold '{args.threshold}'")
            config.threshold = level
        for code in args.ignore:
            for part in code.split(","):
                if part.strip():
                    config.rule(part.strip()).level = Severity.IGNORE
        config.no_fail = config.no_fail or args.no_fail
        config.fixable_only = config.fixable_only or args.fixable_only
        config.strict = config.strict or args.strict
        config.debug = config.debug or args.debug
        return config

    def _lint(self, engine: LintEngine, args: argparse.Namespace) -> Dict[str, LintResult]:
        if args.command == "docker":
            results = {}
            for target in args.paths:
                if target == "-":
                    results["<stdin>"] = engine.lint_dockerfile(sys.stdin.read(), "<stdin>")
                else:
                    results[target] = engine.lint_dockerfile_file(target)
            return results

        if args.command == "helm":
            return {target: engine.lint_chart(target) for target in args.paths}

        if args.format == "json" or engine.config.quiet:
            return engine.lint_paths(args.paths)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(bar_width=40),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=self.console,
            transient=True
        ) as progress:
            task_id = progress.add_task("Linting targets...", total=None)

            def advance(done: int, total: int):
                progress.update(task_id, completed=done, total=total)

            return engine.lint_paths(args.paths, progress_callback=advance)

    def _run_lint(self, args: argparse.Namespace) -> int:
        try:
            config = self._build_config(args)
        except ConfigError as e:
            self.console.print(f"[bold red]Config error:[/bold red] {escape(str(e))}")
            return 2

        if config.debug:
            logging.getLogger("lintcuro").setLevel(logging.DEBUG)

        engine = LintEngine(default_catalogue(), config)
        if args.format == "table" and not config.quiet:
            self.print_header(f"{args.command.capitalize()} Lint")

        results = self._lint(engine, args)
        summary = engine.generate_summary(results)

        if args.format == "json":
            self.formatter.print_json(results, summary)
        else:
            for target, result in results.items():
                if config.quiet and not result.failures and not result.parse_errors:
                    continue
                self.formatter.print_result(target, result)
            if not config.quiet:
                self.formatter.print_summary(summary)

        failed = any(r.should_fail(config) or (r.parse_errors and not config.no_fail)
                     for r in results.values())
        return 1 if failed else 0

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Primary routing entry point. Returns the process exit code."""
        argv = sys.argv[1:] if argv is None else argv
        if not argv:
            self.print_header("Dockerfile & Helm Linter")
            self.parser.print_help()
            return 0

        args = self.parser.parse_args(argv)
        if args.command == "rules":
            self.formatter.print_rules(default_catalogue())
            return 0
        if args.command in ("docker", "helm", "scan"):
            return self._run_lint(args)

        self.parser.print_help()
        return 0


def main():
    """Application entry point with interrupt handling."""
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    try:
        sys.exit(LintCuroCLI().run())
    except KeyboardInterrupt:
        console.print("\n[bold red]Terminated by user.[/bold red]")
        sys.exit(130)


if __name__ == "__main__":
    main()
