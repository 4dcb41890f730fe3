"""
Metrics Collector - HTTP server that receives, stores and serves metrics.
"""
