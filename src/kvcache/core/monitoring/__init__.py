"""
Core Monitoring Module

Provides in-process metrics for cache hit rates and storage timings.
"""

from .metrics import MetricsCollector, get_metrics_collector

__all__ = [
    'MetricsCollector',
    'get_metrics_collector'
]
