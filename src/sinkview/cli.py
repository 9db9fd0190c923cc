"""Main CLI entry point for sinkview."""

import sys
from typing import Any

import click
from rich.console import Console

from sinkview import __version__
from sinkview.config import load_config
from sinkview.core.context import SinkViewContext
from sinkview.core.exceptions import ConfigurationError, SinkViewError
from sinkview.core.output import OutputFormat


CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 120,
}


class OutputFormatType(click.ParamType):
    """Custom Click parameter type for output format."""

    name = "format"

    def convert(
        self,
        value: Any,
        param: click.Parameter | None,
        ctx: click.Context | None,
    ) -> OutputFormat:
        if isinstance(value, OutputFormat):
            return value
        try:
            return OutputFormat(value.lower())
        except ValueError:
            self.fail(
                f"Invalid format '{value}'. Choose from: table, json, yaml, raw",
                param,
                ctx,
            )


OUTPUT_FORMAT = OutputFormatType()


def print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    Console().print(f"sinkview version {__version__}")
    ctx.exit()


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "-o",
    "--output",
    "output_format",
    type=OUTPUT_FORMAT,
    metavar="FORMAT",
    help="Output format: table, json, yaml, raw",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (-v for info, -vv for debug)",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    help="Suppress non-essential output",
)
@click.option(
    "--no-color",
    is_flag=True,
    help="Disable colored output",
)
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True),
    metavar="FILE",
    envvar="SINKVIEW_CONFIG",
    help="Path to config file",
)
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit",
)
@click.pass_context
def cli(
    ctx: click.Context,
    output_format: OutputFormat | None,
    verbose: int,
    quiet: bool,
    no_color: bool,
    config_file: str | None,
) -> None:
    """SinkView - browse logs written by structured-logging sinks.

    Reads paged, filtered logs from SQL Server, MySQL/MariaDB, PostgreSQL,
    SQLite, MongoDB and Elasticsearch through one query model.

    \b
    Examples:
        sinkview providers
        sinkview fetch SQLite.Logs --level Error
        sinkview fetch MongoDB.app.logs --search timeout --since 1h -o json

    \b
    Configuration:
        ~/.sinkview/config.yaml    User configuration
        ./sinkview.yaml            Project configuration
        SINKVIEW_CONFIG            Explicit config file
    """
    try:
        config = load_config(config_file)

        ctx.obj = SinkViewContext(
            config=config,
            output_format=output_format,
            verbose=verbose,
            quiet=quiet,
            color=not no_color,
        )
        ctx.call_on_close(ctx.obj.close)

    except ConfigurationError as e:
        console = Console(stderr=True)
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)


def register_commands() -> None:
    """Register all commands."""
    from sinkview.commands.logs import fetch, providers

    cli.add_command(providers)
    cli.add_command(fetch)


register_commands()


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except SinkViewError as e:
        console = Console(stderr=True)
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console = Console(stderr=True)
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
