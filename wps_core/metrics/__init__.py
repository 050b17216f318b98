"""
Metrics Module: Diagnostics, counters, histograms.

Every rejected request or failed solve is counted under a drop reason code,
so no estimation failure goes unrecorded.

Usage:
    from wps_core.metrics import get_metrics
    
    metrics = get_metrics()
    metrics.increment('estimation_attempts')
    metrics.increment_drop('degenerate_geometry')
    metrics.record_histogram('signal_distance_m', 31.6)
"""

from .counters import MetricsCollector

# Global singleton for easy access
_global_metrics = None


def get_metrics() -> MetricsCollector:
    """
    Get the global metrics collector singleton.
    
    Returns:
        MetricsCollector instance
    """
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = MetricsCollector()
    return _global_metrics


def reset_metrics():
    """Reset global metrics (for testing)."""
    global _global_metrics
    _global_metrics = MetricsCollector()


__all__ = ['MetricsCollector', 'get_metrics', 'reset_metrics']
