from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from conftest import STREAM_ARN, FakeStreamsClient, page
from dynastream.clients.streams import DynamoDBStreamsClient
from dynastream.core.config import ConsumerConfig
from dynastream.core.errors import ConsumerAlreadyRunError, RecordHandlerError
from dynastream.core.heartbeat import HeartbeatWatchdog
from dynastream.core.models import ShardDescriptor, StreamRecord
from dynastream.orchestration.consumer import StreamConsumer

A = ShardDescriptor("shard-A")
B = ShardDescriptor("shard-B", parent_shard_id="shard-A")


@pytest.mark.asyncio
async def test_run_delivers_lineage_in_order(fast_config: ConsumerConfig, quiet_watchdog: HeartbeatWatchdog) -> None:
    client = FakeStreamsClient([A, B], {"shard-A": [page(1, 2)], "shard-B": [page(10)]})
    consumer = StreamConsumer(STREAM_ARN, fast_config, client=client, watchdog=quiet_watchdog)
    delivered: list[tuple[str, str, str]] = []
    persisted: dict[str, str] = {}

    @consumer.set_record_handler
    async def on_record(stream_id: str, shard: ShardDescriptor, record: StreamRecord) -> None:
        delivered.append((stream_id, shard.shard_id, record.sequence_number))

    @consumer.set_status_handler
    async def on_status(stream_id: str, shard: ShardDescriptor, status: str) -> None:
        persisted[shard.shard_id] = status

    stats = await consumer.run()

    assert delivered == [
        (STREAM_ARN, "shard-A", "1"),
        (STREAM_ARN, "shard-A", "2"),
        (STREAM_ARN, "shard-B", "10"),
    ]
    assert persisted == {"shard-A": "closed", "shard-B": "closed"}
    assert consumer.snapshot() == persisted
    assert stats.records_delivered == 3
    assert stats.shards_activated == 2
    assert stats.shards_closed == 2


@pytest.mark.asyncio
async def test_run_resumes_from_snapshot(fast_config: ConsumerConfig, quiet_watchdog: HeartbeatWatchdog) -> None:
    client = FakeStreamsClient([A, B], {"shard-A": [page(41, 42, 43)], "shard-B": [page(50)]})
    consumer = StreamConsumer(
        STREAM_ARN, fast_config, {"shard-A": "42"}, client=client, watchdog=quiet_watchdog
    )
    delivered: list[str] = []
    consumer.set_record_handler(lambda stream_id, shard, record: delivered.append(record.sequence_number))

    await consumer.run()

    assert client.calls("get_iterator", "shard-A") == [("get_iterator", "shard-A", "42")]
    assert delivered == ["43", "50"]
    assert consumer.stats.shards_resumed == 1


@pytest.mark.asyncio
async def test_run_without_handlers(fast_config: ConsumerConfig, quiet_watchdog: HeartbeatWatchdog) -> None:
    client = FakeStreamsClient([A], {"shard-A": [page(1)]})
    consumer = StreamConsumer(STREAM_ARN, fast_config, client=client, watchdog=quiet_watchdog)

    stats = await consumer.run()

    assert stats.records_delivered == 1
    assert consumer.snapshot() == {"shard-A": "closed"}


@pytest.mark.asyncio
async def test_closed_snapshot_is_never_polled(fast_config: ConsumerConfig, quiet_watchdog: HeartbeatWatchdog) -> None:
    client = FakeStreamsClient([A], {"shard-A": [page(1)]})
    consumer = StreamConsumer(STREAM_ARN, fast_config, {"shard-A": "closed"}, client=client, watchdog=quiet_watchdog)

    stats = await consumer.run()

    assert client.calls("get_iterator") == []
    assert stats.records_delivered == 0


@pytest.mark.asyncio
async def test_run_is_single_use(fast_config: ConsumerConfig, quiet_watchdog: HeartbeatWatchdog) -> None:
    client = FakeStreamsClient([A])
    consumer = StreamConsumer(STREAM_ARN, fast_config, client=client, watchdog=quiet_watchdog)
    await consumer.run()

    with pytest.raises(ConsumerAlreadyRunError):
        await consumer.run()


@pytest.mark.asyncio
async def test_run_stops_watchdog(fast_config: ConsumerConfig, quiet_watchdog: HeartbeatWatchdog) -> None:
    client = FakeStreamsClient([A])
    consumer = StreamConsumer(STREAM_ARN, fast_config, client=client, watchdog=quiet_watchdog)
    assert quiet_watchdog.running

    await consumer.run()

    assert not quiet_watchdog.running


@pytest.mark.asyncio
async def test_past_deadline_keeps_progress(fast_config: ConsumerConfig, quiet_watchdog: HeartbeatWatchdog) -> None:
    client = FakeStreamsClient([A], {"shard-A": [page(43)]}, open_shards=("shard-A",))
    consumer = StreamConsumer(STREAM_ARN, fast_config, {"shard-A": "42"}, client=client, watchdog=quiet_watchdog)

    stats = await consumer.run(datetime.now(timezone.utc) - timedelta(seconds=1))

    assert stats.records_delivered == 0
    assert client.calls("get_records") == []
    assert consumer.snapshot() == {"shard-A": "42"}


@pytest.mark.asyncio
async def test_handler_error_is_run_result(fast_config: ConsumerConfig, quiet_watchdog: HeartbeatWatchdog) -> None:
    client = FakeStreamsClient([A], {"shard-A": [page(1), page(2)]})
    consumer = StreamConsumer(STREAM_ARN, fast_config, client=client, watchdog=quiet_watchdog)
    persisted: dict[str, str] = {}

    async def on_record(stream_id: str, shard: ShardDescriptor, record: StreamRecord) -> None:
        if record.sequence_number == "2":
            raise RuntimeError("poison record")

    async def on_status(stream_id: str, shard: ShardDescriptor, status: str) -> None:
        persisted[shard.shard_id] = status

    consumer.set_record_handler(on_record)
    consumer.set_status_handler(on_status)

    with pytest.raises(RecordHandlerError):
        await consumer.run()

    assert persisted == {"shard-A": "1"}
    assert not quiet_watchdog.running


@pytest.mark.asyncio
async def test_default_client_beats_watchdog(quiet_watchdog: HeartbeatWatchdog) -> None:
    consumer = StreamConsumer(STREAM_ARN, ConsumerConfig(region="us-east-1"), watchdog=quiet_watchdog)

    assert isinstance(consumer.client, DynamoDBStreamsClient)
    assert consumer.client.heartbeat is quiet_watchdog
    assert consumer.client.stream_arn == STREAM_ARN

    await consumer.aclose()
    assert not quiet_watchdog.running


def test_invalid_snapshot_value_is_rejected(quiet_watchdog: HeartbeatWatchdog) -> None:
    with pytest.raises(ValueError):
        StreamConsumer(STREAM_ARN, progress={"shard-A": ""}, client=FakeStreamsClient([]), watchdog=quiet_watchdog)


@pytest.mark.asyncio
async def test_watchdog_is_joined_off_the_event_loop(
    fast_config: ConsumerConfig, quiet_watchdog: HeartbeatWatchdog
) -> None:
    consumer = StreamConsumer(STREAM_ARN, fast_config, client=FakeStreamsClient([A]), watchdog=quiet_watchdog)
    stopped_on: list[threading.Thread] = []
    stop = quiet_watchdog.stop

    def recording_stop() -> None:
        stopped_on.append(threading.current_thread())
        stop()

    quiet_watchdog.stop = recording_stop  # type: ignore[method-assign]
    await consumer.run()
    await consumer.aclose()

    assert len(stopped_on) == 2
    assert threading.current_thread() not in stopped_on
    assert not quiet_watchdog.running
