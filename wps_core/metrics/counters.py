"""
Request and estimation counters.

Tracks, per server process:
- request counters (received, answered, scans saved, solver outcomes)
- rejections by reason code (invalid_input, degenerate_geometry, ...)
- bounded sample windows (known anchors per request, modelled distances)

Every rejected request or failed solve is counted under a reason code.
"""

import logging
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

# Most recent samples kept per histogram
HISTOGRAM_WINDOW = 5000


@dataclass
class CounterSnapshot:
    """Copy of the collector state at one instant."""

    timestamp: float
    counters: Dict[str, int]
    drop_reasons: Dict[str, int]
    histograms: Dict[str, List[float]] = field(default_factory=dict)

    def total_dropped(self) -> int:
        return sum(self.drop_reasons.values())


class MetricsCollector:
    """
    Thread-safe counters for the positioning server.

    Usage:
        metrics = MetricsCollector()
        metrics.increment('requests_in')
        metrics.increment_drop('insufficient_known_anchors')
        metrics.record_histogram('estimation_known_anchors', 3)
        metrics.log_summary()
    """

    # Reason code -> meaning
    DROP_REASONS = {
        'parse_error': 'Malformed request, failed to parse',
        'unknown_request': 'Unsupported request type',
        'invalid_input': 'No observations supplied',
        'insufficient_known_anchors': 'Neither 1 nor at least 3 known anchors matched',
        'insufficient_anchors': 'Multilateration called with fewer than 3 anchors',
        'degenerate_geometry': 'Anchors collinear or coincident',
        'non_finite_solution': 'Ranges too large for a finite position',
        'audit_log_failed': 'Audit log append failed',
    }

    STANDARD_COUNTERS = (
        'requests_in',
        'requests_answered',
        'requests_dropped',
        'estimation_attempts',
        'estimation_success',
        'multilateration_attempts',
        'multilateration_success',
        'single_anchor_fallbacks',
        'scans_saved',
    )

    def __init__(self, histogram_window: int = HISTOGRAM_WINDOW):
        self._lock = threading.Lock()
        self._counters = Counter({name: 0 for name in self.STANDARD_COUNTERS})
        self._drops = Counter({reason: 0 for reason in self.DROP_REASONS})
        self._histograms: Dict[str, Deque[float]] = {}
        self._histogram_window = histogram_window
        self._started = time.monotonic()

    def increment(self, counter_name: str, value: int = 1):
        with self._lock:
            self._counters[counter_name] += value

    def increment_drop(self, reason: str, value: int = 1):
        """
        Count a rejected request or failed solve.

        Reasons outside DROP_REASONS are still counted, with a warning.
        """
        if reason not in self.DROP_REASONS:
            logger.warning(f"Unknown drop reason '{reason}'")

        with self._lock:
            self._drops[reason] += value
            self._counters['requests_dropped'] += value

    def get_counter(self, counter_name: str) -> int:
        with self._lock:
            return self._counters.get(counter_name, 0)

    def get_drop_count(self, reason: str) -> int:
        with self._lock:
            return self._drops.get(reason, 0)

    def record_histogram(self, histogram_name: str, value: float):
        """Add a sample; only the newest histogram_window samples are kept."""
        with self._lock:
            samples = self._histograms.get(histogram_name)
            if samples is None:
                samples = deque(maxlen=self._histogram_window)
                self._histograms[histogram_name] = samples
            samples.append(float(value))

    def get_histogram_stats(self, histogram_name: str) -> Optional[Dict[str, float]]:
        """
        Summary of a histogram window.

        Returns:
            {'count', 'min', 'max', 'mean', 'median', 'p95'}, or None when
            nothing was recorded
        """
        with self._lock:
            samples = np.array(self._histograms.get(histogram_name, ()), dtype=float)

        if samples.size == 0:
            return None

        median, p95 = np.percentile(samples, [50, 95])
        return {
            'count': int(samples.size),
            'min': float(samples.min()),
            'max': float(samples.max()),
            'mean': float(samples.mean()),
            'median': float(median),
            'p95': float(p95),
        }

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(
                timestamp=time.time(),
                counters=dict(self._counters),
                drop_reasons=dict(self._drops),
                histograms={name: list(s) for name, s in self._histograms.items()},
            )

    def get_uptime(self) -> float:
        """Seconds since the collector was created."""
        return time.monotonic() - self._started

    def log_summary(self):
        """Log counters, non-zero drop reasons and histogram summaries."""
        snapshot = self.snapshot()
        requests_in = snapshot.counters.get('requests_in', 0)

        logger.info(f"Metrics summary (uptime: {self.get_uptime():.1f}s)")
        for name, value in sorted(snapshot.counters.items()):
            logger.info(f"  {name:30s}: {value:8d}")

        for reason, count in sorted(snapshot.drop_reasons.items()):
            if count:
                share = f" ({100.0 * count / requests_in:5.1f}% of requests)" if requests_in else ""
                logger.info(f"  drop {reason:25s}: {count:8d}{share}")

        for name in sorted(snapshot.histograms):
            stats = self.get_histogram_stats(name)
            if stats:
                logger.info(f"  {name}: n={stats['count']} mean={stats['mean']:.2f} "
                            f"median={stats['median']:.2f} p95={stats['p95']:.2f}")
