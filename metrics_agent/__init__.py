"""
Metrics Agent - samples local telemetry and reports it to a collector.
"""
