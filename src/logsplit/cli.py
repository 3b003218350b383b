from __future__ import annotations

import asyncio
import re
import time
from datetime import datetime, timedelta, timezone

import click
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from logsplit.utils import console, setup_logging

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_duration(value: str) -> timedelta:
    """Parse durations like `30m`, `6h` or `2d`."""
    m = _DURATION_RE.match(value.strip())
    if m is None:
        raise click.BadParameter(f"invalid duration {value!r}; use e.g. 30m, 6h, 2d")
    return timedelta(**{_UNITS[m.group(2)]: int(m.group(1))})


def parse_shards(value: str) -> list[int]:
    try:
        return [int(s) for s in value.split(",") if s.strip()]
    except ValueError as e:
        raise click.BadParameter(f"invalid shard list {value!r}") from e


@click.group()
def cli() -> None:
    """logsplit: shard-splitting query runner for Loki log stores."""


@cli.command("plan")
@click.option("--shards", required=True, help="Comma-separated shard ids, e.g. 5,4,3,2,1")
@click.option("--window", default="1h", show_default=True, help="Query window length (30m, 6h, 2d)")
def plan_cmd(shards: str, window: str) -> None:
    """Print the dispatch order of shard groups for a window."""
    from logsplit.core.models import TimeRange
    from logsplit.core.planner import plan_shard_groups

    ids = parse_shards(shards)
    if not ids:
        raise click.UsageError("Pass at least one shard id")

    end = datetime.now(timezone.utc)
    try:
        plan = plan_shard_groups(ids, TimeRange(start=end - parse_duration(window), end=end))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--shards") from e
    for i, group in enumerate(plan.groups):
        click.echo(f"{i}: {','.join(str(s) for s in group)}")


@cli.command("query")
@click.argument("expr")
@click.option("--url", required=True, help="Loki base URL")
@click.option("--since", default="1h", show_default=True, help="Window ending now (ignored with --from)")
@click.option("--from", "from_", type=click.DateTime(), default=None, help="Window start (UTC)")
@click.option("--to", type=click.DateTime(), default=None, help="Window end (UTC), defaults to now")
@click.option("--max-lines", type=int, default=None, help="Stop once this many lines were returned")
@click.option("--ref-id", default="A", show_default=True)
@click.option("--request-id", default=None, help="Correlation id; cycles append _shard_<n>")
@click.option("--tenant", default=None, help="X-Scope-OrgID tenant")
@click.option("--timeout", "timeout_s", type=int, default=30, show_default=True)
@click.option("--retry-delay", type=float, default=0.0, show_default=True, help="Linear backoff between retries (s)")
@click.option("--print-lines/--no-print-lines", default=True, show_default=True)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
def query_cmd(
    expr: str,
    url: str,
    since: str,
    from_: datetime | None,
    to: datetime | None,
    max_lines: int | None,
    ref_id: str,
    request_id: str | None,
    tenant: str | None,
    timeout_s: int,
    retry_delay: float,
    print_lines: bool,
    log_level: str,
) -> None:
    """Run EXPR over the window, one shard group at a time."""
    from logsplit.clients.loki import LokiClient
    from logsplit.core.config import LokiConfig, ShardingConfig
    from logsplit.core.models import LogicalRequest, Target, TimeRange
    from logsplit.core.use_cases.shard_split import run_shard_split_query

    setup_logging(log_level)

    end = (to or datetime.now(timezone.utc)).replace(tzinfo=timezone.utc)
    start = from_.replace(tzinfo=timezone.utc) if from_ else end - parse_duration(since)
    try:
        time_range = TimeRange(start=start, end=end)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    request = LogicalRequest(
        targets=(Target(ref_id=ref_id, expr=expr, max_lines=max_lines),),
        time_range=time_range,
        request_id=request_id,
    )

    async def run() -> None:
        t0 = time.time()
        progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]querying shards[/]"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("•"),
            TimeElapsedColumn(),
            TextColumn(" • {task.description}"),
            console=console,
            transient=True,
        )

        async with LokiClient(LokiConfig(url=url, timeout_s=timeout_s, tenant_id=tenant)) as client:
            query = run_shard_split_query(
                request,
                discovery=client,
                dispatcher=client,
                config=ShardingConfig(retry_delay_s=retry_delay),
            )
            with progress:
                task = progress.add_task(description="discovering", total=None)
                async for response in query:
                    total = len(query.plan) if query.plan is not None else 1
                    lines = response.line_count(ref_id)
                    progress.update(task, total=total, description=f"{lines:,} lines")
                    if response.state != "done":
                        progress.advance(task, 1)

        response = query.response
        if print_lines:
            for frame in response.frames:
                for row in frame.rows:
                    click.echo(row.get("line", row))

        elapsed = time.time() - t0
        stats = query.stats
        console.print(
            f"[bold]done[/]: {response.line_count(ref_id)} rows • {elapsed:.2f}s"
        )
        console.print(
            f"[bold]summary[/]: "
            f"[green]cycles_ok[/]={stats.completed}  "
            f"[red]cycles_abandoned[/]={stats.abandoned}  "
            f"[yellow]retries[/]={stats.retries}  "
            f"(requests={stats.dispatched}, sharded={not stats.fallback})"
        )
        for err in response.errors:
            console.print(f"[red]error[/]: {err.message}")

    try:
        asyncio.run(run())
    except RuntimeError as e:
        raise click.ClickException(str(e)) from e


if __name__ == "__main__":
    cli()
