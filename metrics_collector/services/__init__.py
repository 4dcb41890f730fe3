"""
Metrics Collector - Services Package

Business logic services for the collector API.
"""

from .ingest import MetricIngestor, validate_batch, validate_metric
from .persistence import PersistenceService

__all__ = ["MetricIngestor", "validate_batch", "validate_metric", "PersistenceService"]
