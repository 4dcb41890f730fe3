"""
Metrics Agent - Telemetry Package
"""

from .collector import POLL_COUNT, TelemetryCollector

__all__ = ["POLL_COUNT", "TelemetryCollector"]
