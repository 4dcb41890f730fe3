"""
Metrics Collector - API Routers Package
"""

from . import metrics, system

__all__ = [
    "metrics",
    "system",
]
