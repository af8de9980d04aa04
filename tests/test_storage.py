from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import make_record
from dynastream.core.models import ShardDescriptor
from dynastream.storage.checkpoints import JsonCheckpointStore
from dynastream.storage.records import JsonlRecordSink

SHARD = ShardDescriptor("shard-A")


def test_checkpoint_store_missing_file_is_empty(tmp_path: Path) -> None:
    store = JsonCheckpointStore(tmp_path / "state" / "checkpoints.json")

    assert store.load() == {}
    assert (tmp_path / "state").is_dir()


@pytest.mark.asyncio
async def test_checkpoint_store_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "checkpoints.json"
    store = JsonCheckpointStore(path)
    store.load()

    await store.save("stream", SHARD, "new")
    await store.save("stream", SHARD, "17")
    await store("stream", ShardDescriptor("shard-B"), "closed")

    assert json.loads(path.read_text()) == {"shard-A": "17", "shard-B": "closed"}
    assert not path.with_suffix(".json.tmp").exists()
    assert JsonCheckpointStore(path).load() == {"shard-A": "17", "shard-B": "closed"}


@pytest.mark.asyncio
async def test_checkpoint_store_keeps_loaded_shards(tmp_path: Path) -> None:
    path = tmp_path / "checkpoints.json"
    path.write_text(json.dumps({"old": "closed"}))
    store = JsonCheckpointStore(path)
    store.load()

    await store.save("stream", SHARD, "new")

    assert json.loads(path.read_text()) == {"old": "closed", "shard-A": "new"}


def test_checkpoint_store_rejects_non_object(tmp_path: Path) -> None:
    path = tmp_path / "checkpoints.json"
    path.write_text("[1, 2]")

    with pytest.raises(ValueError):
        JsonCheckpointStore(path).load()


@pytest.mark.asyncio
async def test_record_sink_appends_lines(tmp_path: Path) -> None:
    sink = JsonlRecordSink(tmp_path / "out" / "records.jsonl")

    await sink.write("stream", SHARD, make_record(1))
    await sink("stream", SHARD, make_record(2, event_name="REMOVE"))

    lines = [json.loads(row) for row in (tmp_path / "out" / "records.jsonl").read_text().splitlines()]
    assert [row["sequence_number"] for row in lines] == ["1", "2"]
    assert lines[1]["event_name"] == "REMOVE"
    assert lines[0]["shard_id"] == "shard-A"
    assert lines[0]["keys"] == {"pk": {"S": "item-1"}}
    assert sink.written == 2


@pytest.mark.asyncio
async def test_checkpoint_store_save_without_load_keeps_file(tmp_path: Path) -> None:
    path = tmp_path / "checkpoints.json"
    path.write_text(json.dumps({"old": "closed"}))
    store = JsonCheckpointStore(path)

    await store.save("stream", SHARD, "new")

    assert json.loads(path.read_text()) == {"old": "closed", "shard-A": "new"}
    assert store.shards == {"old": "closed", "shard-A": "new"}
