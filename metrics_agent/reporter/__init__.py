"""
Metrics Agent - Reporter Package
"""

from .client import CollectorClient
from .reporter import Reporter

__all__ = ["CollectorClient", "Reporter"]
