"""
Metrics Collector - Storage Tests

Memory and file backends.
"""

import asyncio
import json

import pytest

from metrics_common.errors import BackendNotSupportedError, CounterOverflowError, StorageError
from metrics_common.models import INT64_MAX, INT64_MIN, Metric
from metrics_collector.storage import BackendKind, FileMetricStore, MemoryMetricStore


class TestMemoryMetricStore:
    """Test the in-memory backend."""

    @pytest.mark.asyncio
    async def test_gauge_last_write_wins(self):
        store = MemoryMetricStore()

        await store.update_gauge("Alloc", 1.0)
        await store.update_gauge("Alloc", 2.5)

        assert await store.get_gauge("Alloc") == 2.5

    @pytest.mark.asyncio
    async def test_counter_accumulates(self):
        store = MemoryMetricStore()

        await store.update_counter("PollCount", 3)
        await store.update_counter("PollCount", 4)

        assert await store.get_counter("PollCount") == 7

    @pytest.mark.asyncio
    async def test_concurrent_counter_updates_sum(self):
        """Interleaved updates to several names lose nothing."""
        store = MemoryMetricStore()

        await asyncio.gather(*(
            store.update_counter(name, 1)
            for _ in range(100)
            for name in ("a", "b", "c")
        ), *(store.update_gauge("g", float(i)) for i in range(50)))

        assert await store.get_counter("a") == 100
        assert await store.get_counter("b") == 100
        assert await store.get_counter("c") == 100

    @pytest.mark.asyncio
    async def test_counter_stays_within_int64(self):
        store = MemoryMetricStore()
        await store.update_counter("PollCount", INT64_MAX)

        with pytest.raises(CounterOverflowError):
            await store.update_counter("PollCount", 1)
        with pytest.raises(CounterOverflowError):
            await store.set_counter("Other", INT64_MIN - 1)

        assert await store.get_counter("PollCount") == INT64_MAX
        assert await store.get_counter("Other") is None

    @pytest.mark.asyncio
    async def test_missing_metric_is_none(self):
        store = MemoryMetricStore()

        assert await store.get_gauge("nope") is None
        assert await store.get_counter("nope") is None

    @pytest.mark.asyncio
    async def test_set_counter_overwrites(self):
        store = MemoryMetricStore()

        await store.update_counter("PollCount", 10)
        await store.set_counter("PollCount", 3)

        assert await store.get_counter("PollCount") == 3

    @pytest.mark.asyncio
    async def test_get_all_lists_gauges_then_counters(self):
        store = MemoryMetricStore()
        await store.update_counter("PollCount", 1)
        await store.update_gauge("b", 2.0)
        await store.update_gauge("a", 1.0)

        assert await store.get_all() == [
            Metric.gauge("a", 1.0),
            Metric.gauge("b", 2.0),
            Metric.counter("PollCount", 1),
        ]

    @pytest.mark.asyncio
    async def test_ping_not_supported(self):
        store = MemoryMetricStore()

        assert store.kind == BackendKind.MEMORY
        with pytest.raises(BackendNotSupportedError):
            await store.ping()


class TestFileMetricStore:
    """Test the JSON file backend."""

    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path):
        """Save, reopen, identical snapshot."""
        path = tmp_path / "metrics.json"
        store = await FileMetricStore.open(str(path), sync_writes=False)
        await store.update_gauge("Alloc", 1024.0)
        await store.update_counter("PollCount", 5)
        await store.save()

        reopened = await FileMetricStore.open(str(path))

        assert await reopened.get_all() == await store.get_all()

    @pytest.mark.asyncio
    async def test_file_is_json_array(self, tmp_path):
        path = tmp_path / "metrics.json"
        store = await FileMetricStore.open(str(path))
        await store.update_gauge("Alloc", 1.5)
        await store.update_counter("PollCount", 2)

        data = json.loads(path.read_text())

        assert data == [
            {"id": "Alloc", "type": "gauge", "value": 1.5},
            {"id": "PollCount", "type": "counter", "delta": 2},
        ]

    @pytest.mark.asyncio
    async def test_sync_writes_persist_each_update(self, tmp_path):
        path = tmp_path / "metrics.json"
        store = await FileMetricStore.open(str(path), sync_writes=True)

        await store.update_counter("PollCount", 1)

        assert path.exists()
        reopened = await FileMetricStore.open(str(path))
        assert await reopened.get_counter("PollCount") == 1

    @pytest.mark.asyncio
    async def test_interval_mode_defers_writes_until_save(self, tmp_path):
        path = tmp_path / "metrics.json"
        store = await FileMetricStore.open(str(path), sync_writes=False)

        await store.update_gauge("Alloc", 1.0)
        assert not path.exists()

        await store.save()
        assert path.exists()

    @pytest.mark.asyncio
    async def test_no_temp_files_left_behind(self, tmp_path):
        """Writes go through a temp file that is renamed over the target."""
        path = tmp_path / "metrics.json"
        store = await FileMetricStore.open(str(path))

        for i in range(5):
            await store.update_gauge("Alloc", float(i))

        assert sorted(p.name for p in tmp_path.iterdir()) == ["metrics.json"]

    @pytest.mark.asyncio
    async def test_missing_file_starts_empty(self, tmp_path):
        store = await FileMetricStore.open(str(tmp_path / "absent.json"))

        assert await store.get_all() == []

    @pytest.mark.asyncio
    async def test_restore_disabled_ignores_existing_file(self, tmp_path):
        path = tmp_path / "metrics.json"
        path.write_text('[{"id": "Alloc", "type": "gauge", "value": 1.0}]')

        store = await FileMetricStore.open(str(path), restore=False)

        assert await store.get_gauge("Alloc") is None

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_storage_error(self, tmp_path):
        path = tmp_path / "metrics.json"
        path.write_text("{not json")

        with pytest.raises(StorageError):
            await FileMetricStore.open(str(path))

    @pytest.mark.asyncio
    async def test_unwritable_location_raises_storage_error(self, tmp_path):
        """A parent path that is a regular file cannot hold the snapshot."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = await FileMetricStore.open(str(blocker / "metrics.json"), sync_writes=False)
        await store.update_gauge("Alloc", 1.0)

        with pytest.raises(StorageError):
            await store.save()

    @pytest.mark.asyncio
    async def test_failed_sync_write_leaves_counter_unchanged(self, tmp_path):
        """An update reported as failed is not applied."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = await FileMetricStore.open(str(blocker / "metrics.json"), sync_writes=True)

        for _ in range(2):
            with pytest.raises(StorageError):
                await store.update_counter("PollCount", 5)

        assert await store.get_counter("PollCount") is None

    @pytest.mark.asyncio
    async def test_failed_sync_write_restores_previous_values(self, tmp_path):
        path = tmp_path / "metrics.json"
        store = await FileMetricStore.open(str(path), sync_writes=True)
        await store.update_gauge("Alloc", 1.0)
        await store.update_counter("PollCount", 2)

        async def broken_write(metrics):
            raise StorageError("disk full")

        store._write = broken_write

        with pytest.raises(StorageError):
            await store.update_gauge("Alloc", 9.0)
        with pytest.raises(StorageError):
            await store.update_counter("PollCount", 3)
        with pytest.raises(StorageError):
            await store.set_counter("PollCount", 100)

        assert await store.get_gauge("Alloc") == 1.0
        assert await store.get_counter("PollCount") == 2

    @pytest.mark.asyncio
    async def test_counter_overflow_rejected(self, tmp_path):
        path = tmp_path / "metrics.json"
        store = await FileMetricStore.open(str(path))
        await store.update_counter("PollCount", INT64_MAX)

        with pytest.raises(CounterOverflowError):
            await store.update_counter("PollCount", 1)

        reopened = await FileMetricStore.open(str(path))
        assert await reopened.get_counter("PollCount") == INT64_MAX

    @pytest.mark.asyncio
    async def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "metrics.json"
        store = await FileMetricStore.open(str(path))

        await store.update_gauge("Alloc", 1.0)

        assert path.exists()
