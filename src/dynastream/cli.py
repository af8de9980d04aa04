from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from dynastream.constants import POLL_DELAY_QUICK, POLL_DELAY_SLOW, SHARD_SETTLE_DELAY, STATUS_CLOSED
from dynastream.core.config import ConsumerConfig
from dynastream.core.errors import StreamConsumerError
from dynastream.core.models import ShardDescriptor, StreamRecord, order_parents_first

console = Console()
err_console = Console(stderr=True)


def _connection_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    options = [
        click.option("--stream-arn", required=True, envvar="DYNASTREAM_STREAM_ARN", help="DynamoDB stream ARN"),
        click.option("--region", envvar="AWS_DEFAULT_REGION", default=None, help="AWS region override"),
        click.option("--endpoint-url", envvar="DYNASTREAM_ENDPOINT_URL", default=None, help="Custom endpoint (e.g. local emulator)"),
        click.option("--profile", envvar="AWS_PROFILE", default=None, help="AWS credentials profile"),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


@click.group()
@click.option("-v", "--verbose", count=True, help="-v for INFO, -vv for DEBUG")
def cli(verbose: int) -> None:
    """dynastream: resumable, lineage-ordered DynamoDB Streams consumer."""
    level = logging.WARNING if verbose == 0 else logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
        force=True,
    )


@cli.command("shards")
@_connection_options
def shards_cmd(stream_arn: str, region: str | None, endpoint_url: str | None, profile: str | None) -> None:
    """List the stream's shards, parents first."""
    from dynastream.clients.streams import DynamoDBStreamsClient

    config = ConsumerConfig(region=region, endpoint_url=endpoint_url, profile=profile)

    async def run() -> list[ShardDescriptor]:
        client = DynamoDBStreamsClient(stream_arn, config=config)
        try:
            return await client.list_shards()
        finally:
            await client.aclose()

    try:
        shards = asyncio.run(run())
    except StreamConsumerError as e:
        raise click.ClickException(str(e)) from e

    table = Table(title=stream_arn)
    table.add_column("shard")
    table.add_column("parent")
    table.add_column("first sequence")
    table.add_column("last sequence")
    table.add_column("state")
    for s in order_parents_first(shards):
        table.add_row(
            s.shard_id,
            s.parent_shard_id or "-",
            s.starting_sequence_number or "-",
            s.ending_sequence_number or "-",
            "[yellow]sealed[/]" if s.ending_sequence_number else "[green]open[/]",
        )
    console.print(table)


@cli.command("consume")
@_connection_options
@click.option(
    "--checkpoint",
    "checkpoint_path",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="JSON checkpoint file; read to resume, rewritten after every record",
)
@click.option(
    "--out",
    "out_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="JSONL file for delivered records (default: stdout)",
)
@click.option("--duration", type=float, default=None, help="Stop after this many seconds (default: until all shards close)")
@click.option("--records-limit", type=click.IntRange(1, 1000), default=None, help="GetRecords page size")
@click.option("--poll-delay-quick", type=float, default=POLL_DELAY_QUICK, show_default=True, help="Pause after a non-empty batch (s)")
@click.option("--poll-delay-slow", type=float, default=POLL_DELAY_SLOW, show_default=True, help="Pause after an empty batch (s)")
@click.option("--settle-delay", type=float, default=SHARD_SETTLE_DELAY, show_default=True, help="Pause before listing a closed shard's children (s)")
def consume_cmd(
    stream_arn: str,
    region: str | None,
    endpoint_url: str | None,
    profile: str | None,
    checkpoint_path: Path,
    out_path: Path | None,
    duration: float | None,
    records_limit: int | None,
    poll_delay_quick: float,
    poll_delay_slow: float,
    settle_delay: float,
) -> None:
    """Consume the stream, resuming from and updating a checkpoint file."""
    from dynastream.orchestration.consumer import StreamConsumer
    from dynastream.storage.checkpoints import JsonCheckpointStore
    from dynastream.storage.records import JsonlRecordSink, record_to_json_line

    config = ConsumerConfig(
        region=region,
        endpoint_url=endpoint_url,
        profile=profile,
        records_limit=records_limit,
        poll_delay_quick=poll_delay_quick,
        poll_delay_slow=poll_delay_slow,
        shard_settle_delay=settle_delay,
    )
    store = JsonCheckpointStore(checkpoint_path)
    try:
        snapshot = store.load()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    async def echo_record(stream_id: str, shard: ShardDescriptor, record: StreamRecord) -> None:
        click.echo(record_to_json_line(stream_id, shard, record), nl=False)

    async def run() -> Any:
        consumer = StreamConsumer(stream_arn, config, snapshot)
        consumer.set_record_handler(JsonlRecordSink(out_path) if out_path else echo_record)
        consumer.set_status_handler(store.save)
        deadline = time.time() + duration if duration is not None else None
        try:
            return await consumer.run(deadline)
        finally:
            await consumer.aclose()

    t0 = time.time()
    try:
        stats = asyncio.run(run())
    except StreamConsumerError as e:
        raise click.ClickException(str(e)) from e

    elapsed = time.time() - t0
    closed = sum(1 for v in store.shards.values() if v == STATUS_CLOSED)
    err_console.print(f"[bold]done[/]: {stats.records_delivered} records • {elapsed:.2f}s")
    err_console.print(
        f"[bold]summary[/]: "
        f"[green]activated[/]={stats.shards_activated}  "
        f"[cyan]resumed[/]={stats.shards_resumed}  "
        f"[yellow]closed[/]={stats.shards_closed}  "
        f"(checkpointed shards={len(store.shards)}, closed overall={closed})",
    )


if __name__ == "__main__":
    cli()
