"""
Metrics Agent - Lifecycle Tests
"""

import asyncio

import httpx
import pytest

from metrics_agent.config import AgentSettings
from metrics_agent.main import MetricsAgent
from metrics_agent.reporter import CollectorClient


class TestMetricsAgent:
    """Test starting and stopping the agent."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200))
        client = CollectorClient("http://collector", transport=transport)
        agent = MetricsAgent(AgentSettings(poll_interval=60, report_interval=60), client=client)

        task = asyncio.create_task(agent.start())
        while not (agent.telemetry_collector.is_running and agent.reporter.is_running):
            await asyncio.sleep(0)

        await agent.stop()
        await asyncio.wait_for(task, timeout=5)

        assert not agent.running
        assert not agent.telemetry_collector.is_running
        assert not agent.reporter.is_running

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        agent = MetricsAgent(AgentSettings())

        await agent.stop()

        assert not agent.running
