"""
Metrics Collector - Persistence Service Tests
"""

import asyncio

import pytest

from metrics_common.errors import StorageError
from metrics_collector.services import PersistenceService
from metrics_collector.storage import MemoryMetricStore


class CountingStore(MemoryMetricStore):
    """Memory store that counts save() calls and can be told to fail."""

    def __init__(self, fail=False):
        super().__init__()
        self.saves = 0
        self.fail = fail

    async def save(self):
        self.saves += 1
        if self.fail:
            raise StorageError("disk full")


class TestPersistenceService:
    """Test the periodic save loop."""

    @pytest.mark.asyncio
    async def test_zero_interval_runs_no_loop(self):
        store = CountingStore()
        service = PersistenceService(store, interval=0)

        await service.start()
        assert service.is_running
        assert service._save_task is None

        await service.stop()
        assert store.saves == 1

    @pytest.mark.asyncio
    async def test_periodic_saves(self, monkeypatch):
        store = CountingStore()
        service = PersistenceService(store, interval=1)
        real_sleep = asyncio.sleep

        async def fast_sleep(delay):
            await real_sleep(0)

        monkeypatch.setattr("metrics_collector.services.persistence.asyncio.sleep", fast_sleep)

        await service.start()
        while store.saves < 3:
            await real_sleep(0)
        await service.stop()

        assert store.saves >= 4  # at least three periodic saves plus the final one

    @pytest.mark.asyncio
    async def test_save_failures_do_not_stop_service(self):
        store = CountingStore(fail=True)
        service = PersistenceService(store, interval=0)

        await service.start()
        await service.stop()

        assert store.saves == 1
        assert not service.is_running
