#!/usr/bin/env python3
"""
Metrics Agent

Samples local runtime and host telemetry and reports it to a metrics
collector:
- Process gauges (memory, CPU, threads, open files)
- Interpreter GC gauges
- Host memory and per-core CPU utilization
- PollCount counter

Usage:
    metrics-agent [--config CONFIG_PATH] [-a ADDRESS] [-r REPORT_INTERVAL]
                  [-p POLL_INTERVAL] [-k KEY]
"""

import argparse
import asyncio
import signal
import sys
from typing import Any, Dict, List, Optional

import structlog

from metrics_common.log import configure_logging

from .config import AgentSettings, load_settings
from .reporter import CollectorClient, Reporter
from .telemetry import TelemetryCollector

logger = structlog.get_logger(__name__)

VERSION = "1.0.0"


class MetricsAgent:
    """Main agent application: a poll loop and a report loop."""

    def __init__(self, settings: AgentSettings, client: Optional[CollectorClient] = None):
        self.settings = settings
        self.running = False
        self._shutdown_event = asyncio.Event()

        # Initialize components
        self.telemetry_collector = TelemetryCollector(poll_interval=settings.poll_interval)
        self.client = client or CollectorClient(
            settings.base_url,
            key=settings.signing_key,
            timeout=settings.request_timeout,
        )
        self.reporter = Reporter(self.telemetry_collector, self.client, settings)

    async def start(self):
        """Start the agent and block until stopped."""
        logger.info(
            "Starting metrics agent",
            version=VERSION,
            collector=self.settings.base_url,
            poll_interval=self.settings.poll_interval,
            report_interval=self.settings.report_interval,
        )
        self.running = True

        await self.telemetry_collector.start()
        await self.reporter.start()

        logger.info("Metrics agent started successfully")

        # Wait for shutdown signal
        await self._shutdown_event.wait()

    async def stop(self):
        """Stop the agent gracefully."""
        if not self.running:
            return

        logger.info("Stopping metrics agent")
        self.running = False

        await self.reporter.stop()
        await self.telemetry_collector.stop()
        await self.client.aclose()

        self._shutdown_event.set()
        logger.info("Metrics agent stopped")

    def handle_signal(self, signum):
        """Handle shutdown signals."""
        logger.info("Received signal", signal=signum)
        asyncio.create_task(self.stop())


def parse_args(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="Metrics agent")
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to YAML configuration file"
    )
    parser.add_argument("-a", dest="address", help="Collector address host:port")
    parser.add_argument("-r", dest="report_interval", type=int, help="Seconds between reports")
    parser.add_argument("-p", dest="poll_interval", type=int, help="Seconds between polls")
    parser.add_argument("-k", dest="key", help="HMAC-SHA256 signing key")
    return parser.parse_args(argv)


def flag_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Flags given on the command line, as settings overrides."""
    return {
        name: value
        for name, value in vars(args).items()
        if name != "config" and value is not None
    }


async def run(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = parse_args(argv)
    settings = load_settings(args.config, flag_overrides(args))
    configure_logging(settings.log_level)

    agent = MetricsAgent(settings)

    # Register signal handlers
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, agent.handle_signal, signum)

    try:
        await agent.start()
    except Exception as e:
        logger.exception("Agent failed", error=str(e))
        sys.exit(1)


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
