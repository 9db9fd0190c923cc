"""Log browsing commands."""

import json

import click
from rich.markup import escape

from sinkview.core.context import SinkViewContext, pass_context
from sinkview.core.exceptions import ProviderUnavailable, SinkViewError
from sinkview.core.output import OutputFormat, truncate
from sinkview.logs.models import LogsPage
from sinkview.logs.query import FetchLogsQuery, SortDirection, SortProperty

TABLE_HEADERS = ["#", "timestamp", "level", "message", "exception"]


@click.command("providers")
@pass_context
def providers(ctx: SinkViewContext) -> None:
    """List registered providers.

    \b
    Examples:
        sinkview providers
        sinkview -o json providers
    """
    try:
        registry = ctx.registry
    except SinkViewError as e:
        ctx.output.print_error(str(e))
        raise click.Abort()

    if not len(registry):
        ctx.output.print_info("No providers configured")
        return

    rows = [
        {
            "name": provider.name,
            "dialect": provider.dialect.value,
            "schema": provider.schema or "",
            "table": provider.table,
        }
        for provider in sorted(registry, key=lambda p: p.name)
    ]
    ctx.output.print_data(rows, headers=["name", "dialect", "schema", "table"], title="Providers")


@click.command("fetch")
@click.argument("provider")
@click.option("--page", default=0, type=int, show_default=True, help="Zero-based page number")
@click.option("--count", default=None, type=int, help="Records per page")
@click.option("--level", default=None, help="Exact level match (case-insensitive)")
@click.option("--search", default=None, help="Substring to find in the message")
@click.option("--since", default=None, help="Relative start (e.g., 15m, 1h, 7d)")
@click.option("--start", "start_date", default=None, help="Inclusive start (ISO-8601)")
@click.option("--end", "end_date", default=None, help="Inclusive end (ISO-8601)")
@click.option(
    "--sort-on",
    type=click.Choice([p.value for p in SortProperty]),
    default=SortProperty.TIMESTAMP.value,
    show_default=True,
    help="Sort property",
)
@click.option(
    "--sort-by",
    type=click.Choice([d.value for d in SortDirection]),
    default=SortDirection.DESC.value,
    show_default=True,
    help="Sort direction",
)
@click.option("--details", is_flag=True, help="Show exception and properties of each record")
@pass_context
def fetch(
    ctx: SinkViewContext,
    provider: str,
    page: int,
    count: int | None,
    level: str | None,
    search: str | None,
    since: str | None,
    start_date: str | None,
    end_date: str | None,
    sort_on: str,
    sort_by: str,
    details: bool,
) -> None:
    """Fetch one page of logs from a provider.

    \b
    Examples:
        sinkview fetch SQLite.Logs --level Error
        sinkview fetch NPGSQL.public.logs --search timeout --since 1h
        sinkview fetch MongoDB.app.logs --page 2 --count 50 -o json
    """
    if since and start_date:
        ctx.output.print_error("Use either --since or --start, not both")
        raise click.Abort()

    settings = ctx.config.global_settings
    try:
        query = FetchLogsQuery.from_params(
            page=page,
            count=count if count is not None else settings.default_page_size,
            level=level,
            search=search,
            start_date=start_date,
            end_date=end_date,
            since=since,
            sort_on=sort_on,
            sort_by=sort_by,
            max_page_size=settings.max_page_size,
        )
        result = ctx.registry.fetch_sync(provider, query)

    except ProviderUnavailable as e:
        ctx.output.print_error(f"{e} (try again later)")
        raise click.Abort()
    except SinkViewError as e:
        ctx.output.print_error(f"Fetch failed: {e}")
        raise click.Abort()

    if ctx.output_format in (OutputFormat.JSON, OutputFormat.YAML):
        ctx.output.print_data(result.to_dict())
        return

    if result.is_empty:
        ctx.output.print_info(f"No logs found ({result.total_matching} matching)")
        return

    if ctx.output_format == OutputFormat.RAW:
        for record in result.records:
            click.echo(record.format())
    else:
        rows = [
            {
                "#": record.row_no,
                "timestamp": record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                "level": record.level,
                "message": truncate(record.message, 100),
                "exception": "yes" if record.exception else "",
            }
            for record in result.records
        ]
        ctx.output.print_data(rows, headers=TABLE_HEADERS, title=provider)

    if details:
        _print_details(ctx, result)

    ctx.output.print(_summary(result), style="dim")


def _summary(result: LogsPage) -> str:
    first = result.records[0].row_no + 1
    last = result.records[-1].row_no + 1
    return (
        f"Showing {first}-{last} of {result.total_matching} "
        f"(page {result.page + 1} of {result.total_pages})"
    )


def _print_details(ctx: SinkViewContext, result: LogsPage) -> None:
    for record in result.records:
        ctx.output.print(f"\n[bold]#{record.row_no}[/bold] {escape(record.message)}")
        if record.exception:
            ctx.output.print_panel(record.exception, title="Exception", style="red")
        for name, value in record.properties.items():
            kind = record.field_kinds.get(name)
            if kind is not None and kind.is_code:
                ctx.output.print(f"[cyan]{escape(name)}[/cyan]:")
                if isinstance(value, (dict, list)):
                    value = json.dumps(value, indent=2, default=str)
                ctx.output.print_code(str(value), language=kind.value)
            else:
                ctx.output.print(f"[cyan]{escape(name)}[/cyan]: {escape(str(value))}")
