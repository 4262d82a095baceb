"""
Performance monitoring and metrics collection for pipeline stages.
"""
import time
import inspect
import logging
import threading
from collections import defaultdict
from functools import wraps
from typing import Any, Dict, List, Optional

from chartpilot.core.logging import correlation_id_var

logger = logging.getLogger(__name__)

MAX_SAMPLES_PER_METRIC = 1000

# Reentrant so get_all_metrics can call get_stats while holding it
_metrics_lock = threading.RLock()
_metrics: Dict[str, List[Dict[str, Any]]] = defaultdict(list)


class PerformanceMonitor:
    """Monitor and track performance metrics."""

    @staticmethod
    def record_metric(name: str, value: float, metadata: Optional[Dict[str, Any]] = None):
        """
        Record a performance metric.

        Args:
            name: Metric name (e.g., 'extract_from_files', 'http_request')
            value: Metric value (usually duration in seconds)
            metadata: Optional metadata (correlation_id, status, etc.)
        """
        with _metrics_lock:
            samples = _metrics[name]
            samples.append({
                'value': value,
                'timestamp': time.time(),
                'metadata': metadata or {}
            })
            if len(samples) > MAX_SAMPLES_PER_METRIC:
                del samples[:-MAX_SAMPLES_PER_METRIC]

    @staticmethod
    def get_stats(metric_name: str) -> Optional[Dict[str, float]]:
        """
        Get statistics for a metric.

        Returns:
            Dict with count, min, max, mean and percentiles, or None if no data
        """
        with _metrics_lock:
            samples = _metrics.get(metric_name)
            if not samples:
                return None
            values = sorted(m['value'] for m in samples)
            errors = sum(1 for m in samples if m['metadata'].get('status') == 'error')

        count = len(values)
        return {
            'count': count,
            'errors': errors,
            'min': values[0],
            'max': values[-1],
            'mean': sum(values) / count,
            'p50': values[count // 2],
            'p95': values[min(count - 1, int(count * 0.95))],
        }

    @staticmethod
    def get_all_metrics() -> Dict[str, Dict[str, float]]:
        """Get statistics for all metrics."""
        with _metrics_lock:
            names = list(_metrics.keys())
            return {name: PerformanceMonitor.get_stats(name) for name in names}

    @staticmethod
    def clear_metrics():
        """Clear all metrics (useful for testing)."""
        with _metrics_lock:
            _metrics.clear()


def _finish(metric_name: str, start_time: float, error: Optional[BaseException] = None) -> None:
    duration = time.perf_counter() - start_time
    metadata: Dict[str, Any] = {
        'correlation_id': correlation_id_var.get(),
        'status': 'error' if error else 'success',
    }
    if error is not None:
        metadata['error'] = str(error)
        logger.warning(
            f"{metric_name} failed after {duration:.3f}s: {error}",
            extra={'metric': metric_name, 'duration': duration}
        )
    else:
        logger.debug(
            f"{metric_name} completed in {duration:.3f}s",
            extra={'metric': metric_name, 'duration': duration}
        )
    PerformanceMonitor.record_metric(metric_name, duration, metadata)


def track_performance(metric_name: str):
    """
    Decorator to track function execution time.

    Works for plain functions and coroutine functions alike.

    Usage:
        @track_performance("extract_from_files")
        def extract_from_files(...):
            ...
    """
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _finish(metric_name, start_time, e)
                    raise
                _finish(metric_name, start_time)
                return result
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _finish(metric_name, start_time, e)
                raise
            _finish(metric_name, start_time)
            return result
        return sync_wrapper

    return decorator
