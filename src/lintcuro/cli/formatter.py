# src/lintcuro/cli/formatter.py
import json
from typing import Dict, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from lintcuro.core.models import LintResult, Severity
from lintcuro.rules.framework import RuleCatalogue

SEVERITY_STYLES = {
    Severity.ERROR: "bold red",
    Severity.WARNING: "yellow",
    Severity.INFO: "cyan",
    Severity.STYLE: "dim",
    Severity.IGNORE: "dim",
}


class LintFormatter:
    """
    LintFormatter: renders LintResults for the terminal (rich tables and
    panels) or as JSON for machines.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_result(self, target: str, result: LintResult):
        """One table per linted target; parse errors are printed above it."""
        for error in result.parse_errors:
            self.console.print(f"[bold red]Parse error:[/bold red] {escape(error)}")

        if not result.failures:
            if not result.parse_errors:
                self.console.print(f"[green]✅ {target}: no issues found[/green]")
            return

        table = Table(title=f"Lint Report: {target}", show_header=True, header_style="bold magenta")
        table.add_column("Location", style="cyan")
        table.add_column("Code")
        table.add_column("Severity")
        table.add_column("Message")
        table.add_column("Fix", justify="center")

        for f in result.failures:
            style = SEVERITY_STYLES[f.severity]
            table.add_row(
                f"{f.file}:{f.line}",
                str(f.code),
                f"[{style}]{f.severity.label}[/{style}]",
                escape(f.message),
                "🔧" if f.fixable else "",
            )

        self.console.print(table)

    def print_summary(self, summary: Dict):
        """Closing metrics panel for a batch run."""
        self.console.print(Panel(
            f"[bold white]Summary Report[/bold white]\n"
            f"════════════════════════════════════════\n"
            f"Targets:        {summary['targets']}\n"
            f"Files Checked:  {summary['files_checked']}\n"
            f"Errors:         [red]{summary['errors']}[/red]\n"
            f"Warnings:       [yellow]{summary['warnings']}[/yellow]\n"
            f"Total Findings: {summary['failures']}\n"
            f"Parse Errors:   [red]{summary['parse_errors']}[/red]",
            border_style="dim"
        ))

    def print_json(self, results: Dict[str, LintResult], summary: Dict):
        payload = {
            "results": {target: r.to_dict() for target, r in results.items()},
            "summary": summary,
        }
        self.console.print_json(json.dumps(payload))

    def print_rules(self, catalogue: RuleCatalogue):
        """Table of every rule in the catalogue."""
        table = Table(title="LintCuro Rule Catalogue", show_header=True, header_style="bold magenta")
        table.add_column("Code", style="cyan")
        table.add_column("Severity")
        table.add_column("Kind", style="dim")
        table.add_column("Category")
        table.add_column("Description")

        for rule in sorted(catalogue, key=lambda r: str(r.code)):
            style = SEVERITY_STYLES[rule.severity]
            table.add_row(
                str(rule.code),
                f"[{style}]{rule.severity.label}[/{style}]",
                rule.kind,
                rule.code.category.display_name,
                rule.description,
            )

        self.console.print(table)
