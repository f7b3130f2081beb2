"""Timing utilities for engine operations.

Tracks how long ingestion, promotion, matching and composition take so
slow collaborator batches or large libraries show up in the logs.
"""

import functools
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class PerformanceMetrics:
    """Timing of one operation run."""

    operation_name: str
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    duration: Optional[float] = None
    success: bool = True
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def finish(self, success: bool = True, error: Optional[str] = None) -> None:
        """Mark the operation as finished."""
        self.end_time = time.time()
        self.duration = self.end_time - self.start_time
        self.success = success
        self.error = error


class PerformanceMonitor:
    """
    Collects operation timings of one engine instance.

    Operations slower than `max_processing_time` are logged as warnings.
    """

    def __init__(self, max_processing_time: float = 60):
        """
        Args:
            max_processing_time: Seconds after which an operation is reported as slow.
        """
        self.max_processing_time = max_processing_time
        self.metrics: Dict[str, List[PerformanceMetrics]] = {}
        self._operation_stack: List[PerformanceMetrics] = []

    def start_operation(self, operation_name: str, **metadata) -> PerformanceMetrics:
        metric = PerformanceMetrics(operation_name=operation_name, metadata=metadata)
        self._operation_stack.append(metric)
        return metric

    def end_operation(
        self,
        metric: Optional[PerformanceMetrics] = None,
        success: bool = True,
        error: Optional[str] = None,
    ) -> None:
        """
        End tracking an operation.

        Args:
            metric: The metric to end. If None, ends the most recent operation.
            success: Whether the operation succeeded.
            error: Optional error message.
        """
        if metric is None and self._operation_stack:
            metric = self._operation_stack.pop()
        elif metric and metric in self._operation_stack:
            self._operation_stack.remove(metric)

        if metric is None:
            return

        metric.finish(success=success, error=error)
        self.metrics.setdefault(metric.operation_name, []).append(metric)

        if metric.duration and metric.duration > self.max_processing_time:
            logger.warning(
                f"Operation '{metric.operation_name}' exceeded max time: "
                f"{metric.duration:.2f}s > {self.max_processing_time}s"
            )

    @contextmanager
    def track(self, operation_name: str, **metadata) -> Iterator[PerformanceMetrics]:
        """Context manager form of start_operation / end_operation."""
        metric = self.start_operation(operation_name, **metadata)
        try:
            yield metric
        except Exception as e:
            self.end_operation(metric, success=False, error=str(e))
            raise
        self.end_operation(metric)

    def get_operation_stats(self, operation_name: str) -> Dict[str, Any]:
        """
        Get statistics for a specific operation.

        Returns:
            Dictionary with count, average, min, max, total and success_rate;
            empty when the operation never finished.
        """
        runs = self.metrics.get(operation_name, [])
        durations = [m.duration for m in runs if m.duration is not None]
        if not durations:
            return {}

        return {
            "count": len(durations),
            "average": sum(durations) / len(durations),
            "min": min(durations),
            "max": max(durations),
            "total": sum(durations),
            "success_rate": sum(1 for m in runs if m.success) / len(runs),
        }

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        return {name: self.get_operation_stats(name) for name in self.metrics}

    def reset(self) -> None:
        self.metrics.clear()
        self._operation_stack.clear()


def timed_operation(operation_name: str):
    """
    Decorator that logs the duration of a call.

    Example:
        @timed_operation("compose_contract")
        def compose(...):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration = time.time() - start_time
                logger.error(f"{operation_name} failed after {duration:.2f}s: {e}")
                raise
            logger.debug(f"{operation_name} completed in {time.time() - start_time:.2f}s")
            return result
        return wrapper
    return decorator
