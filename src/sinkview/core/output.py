"""Output formatting utilities using Rich."""

import json
from enum import Enum
from typing import Any

import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

error_console = Console(stderr=True)

LEVEL_STYLES = {
    "verbose": "dim",
    "debug": "dim",
    "information": "blue",
    "info": "blue",
    "warning": "yellow",
    "warn": "yellow",
    "error": "red",
    "fatal": "bold red",
    "critical": "bold red",
}


class OutputFormat(str, Enum):
    """Supported output formats."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"
    RAW = "raw"


class OutputFormatter:
    """Handles output formatting for CLI commands."""

    def __init__(
        self,
        format: OutputFormat = OutputFormat.TABLE,
        color: bool = True,
        quiet: bool = False,
    ):
        self.format = format
        self.color = color
        self.quiet = quiet
        self._console = Console(force_terminal=color, no_color=not color, highlight=color)

    def print(self, message: str, style: str | None = None) -> None:
        """Print a message to stdout."""
        if self.quiet:
            return
        self._console.print(message, style=style)

    def print_error(self, message: str) -> None:
        """Print an error message to stderr."""
        error_console.print(f"[red]Error:[/red] {escape(message)}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        if self.quiet:
            return
        self._console.print(f"[yellow]Warning:[/yellow] {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        if self.quiet:
            return
        self._console.print(f"[blue]ℹ[/blue] {message}")

    def print_data(
        self,
        data: list[dict[str, Any]] | dict[str, Any],
        headers: list[str] | None = None,
        title: str | None = None,
    ) -> None:
        """Print data in the configured format."""
        if self.format == OutputFormat.JSON:
            self._print_json(data)
        elif self.format == OutputFormat.YAML:
            self._print_yaml(data)
        elif self.format == OutputFormat.RAW:
            self._print_raw(data)
        else:
            self._print_table(data, headers, title)

    def _print_json(self, data: Any) -> None:
        json_str = json.dumps(data, indent=2, default=str)
        if self.color:
            self._console.print(Syntax(json_str, "json", theme="monokai"))
        else:
            print(json_str)

    def _print_yaml(self, data: Any) -> None:
        # Driver-specific values (Decimal, ObjectId, ...) are dumped as strings
        plain = json.loads(json.dumps(data, default=str))
        yaml_str = yaml.safe_dump(plain, default_flow_style=False, allow_unicode=True, sort_keys=False)
        if self.color:
            self._console.print(Syntax(yaml_str, "yaml", theme="monokai"))
        else:
            print(yaml_str)

    def _print_raw(self, data: Any) -> None:
        if isinstance(data, list):
            for item in data:
                print(item)
        elif isinstance(data, dict):
            for key, value in data.items():
                print(f"{key}: {value}")
        else:
            print(data)

    def _print_table(
        self,
        data: list[dict[str, Any]] | dict[str, Any],
        headers: list[str] | None = None,
        title: str | None = None,
    ) -> None:
        """Print data as a formatted table."""
        if isinstance(data, dict):
            # Single record - display as key-value pairs
            table = Table(title=title, show_header=True, header_style="bold cyan")
            table.add_column("Field", style="dim")
            table.add_column("Value")
            for key, value in data.items():
                table.add_row(escape(str(key)), escape(str(value)))
            self._console.print(table)
        elif isinstance(data, list) and len(data) > 0:
            if headers is None:
                headers = list(data[0].keys())

            table = Table(title=title, show_header=True, header_style="bold cyan")
            for header in headers:
                table.add_column(header, overflow="fold")

            for row in data:
                cells = []
                for h in headers:
                    value = row.get(h, "")
                    cell = "" if value is None else escape(str(value))
                    if h == "level" and self.color:
                        style = LEVEL_STYLES.get(cell.lower())
                        if style:
                            cell = f"[{style}]{cell}[/{style}]"
                    cells.append(cell)
                table.add_row(*cells)

            self._console.print(table)
        else:
            self._console.print("[dim]No data to display[/dim]")

    def print_panel(self, content: str, title: str | None = None, style: str = "blue") -> None:
        """Print content in a panel."""
        if self.quiet:
            return
        self._console.print(Panel(escape(content), title=title, border_style=style))

    def print_code(self, code: str, language: str = "json") -> None:
        """Print syntax-highlighted code."""
        if self.color:
            self._console.print(Syntax(code, language, theme="monokai", word_wrap=True))
        else:
            print(code)


def truncate(text: str | None, width: int = 80) -> str:
    """Shorten text to a single display line."""
    if not text:
        return ""
    line = " ".join(text.split())
    if len(line) <= width:
        return line
    return line[: width - 1] + "…"
