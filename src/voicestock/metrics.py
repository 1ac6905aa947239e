"""Lightweight observability metrics for the interpretation pipeline.

This module provides in-process metrics collection without external dependencies.
Metrics are best-effort in multi-worker environments (each worker has its own state).
"""

import os
import threading
from dataclasses import dataclass, field
from typing import Any


@dataclass
class MetricsCollector:
    """In-memory metrics collector for observability.

    Thread-safe implementation; each worker process maintains its own state.
    """

    fragments_processed: int = 0
    interim_fragments_ignored: int = 0
    relative_term_hits: int = 0
    partial_emissions: int = 0
    interpreter_failures: int = 0

    # Completed commands keyed by action (add, remove, set, undo)
    completed_counts: dict[str, int] = field(default_factory=dict)

    # Latency samples for one interpretation call (in milliseconds)
    interpret_latencies: list[float] = field(default_factory=list)

    _lock: threading.Lock = field(default_factory=threading.Lock)

    def record_fragment(self, is_final: bool, relative: bool = False) -> None:
        """Record an incoming transcript fragment."""
        with self._lock:
            if not is_final:
                self.interim_fragments_ignored += 1
                return
            self.fragments_processed += 1
            if relative:
                self.relative_term_hits += 1

    def record_interpretation(self, latency_ms: float, failed: bool = False) -> None:
        """Record one call to the language-understanding provider."""
        with self._lock:
            self.interpret_latencies.append(latency_ms)
            if failed:
                self.interpreter_failures += 1

    def record_completed(self, action: str) -> None:
        """Record a finished command emitted to the caller."""
        with self._lock:
            self.completed_counts[action] = self.completed_counts.get(action, 0) + 1

    def record_partial(self) -> None:
        """Record a live partial-state emission."""
        with self._lock:
            self.partial_emissions += 1

    def _calculate_percentile(self, sorted_values: list[float], percentile: float) -> float | None:
        if not sorted_values:
            return None

        n = len(sorted_values)
        idx = int(n * percentile)
        return sorted_values[min(idx, n - 1)]

    def get_snapshot(self) -> dict[str, Any]:
        """Get a snapshot of current metrics.

        Returns:
            Dictionary with all metrics including latency percentiles.
        """
        with self._lock:
            sorted_latencies = sorted(self.interpret_latencies)
            return {
                "fragments_processed": self.fragments_processed,
                "interim_fragments_ignored": self.interim_fragments_ignored,
                "relative_term_hits": self.relative_term_hits,
                "partial_emissions": self.partial_emissions,
                "interpreter_failures": self.interpreter_failures,
                "completed_counts": dict(self.completed_counts),
                "interpret_latency_ms": {
                    "p50": self._calculate_percentile(sorted_latencies, 0.5),
                    "p95": self._calculate_percentile(sorted_latencies, 0.95),
                    "count": len(sorted_latencies),
                },
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self.fragments_processed = 0
            self.interim_fragments_ignored = 0
            self.relative_term_hits = 0
            self.partial_emissions = 0
            self.interpreter_failures = 0
            self.completed_counts.clear()
            self.interpret_latencies.clear()


_metrics_collector: MetricsCollector | None = None
_metrics_lock = threading.Lock()


def get_metrics_collector() -> MetricsCollector:
    """Get or create the global metrics collector instance."""
    global _metrics_collector
    with _metrics_lock:
        if _metrics_collector is None:
            _metrics_collector = MetricsCollector()
        return _metrics_collector


def is_metrics_enabled() -> bool:
    """Check if the metrics endpoint is enabled.

    Returns:
        True if VOICESTOCK_ENABLE_METRICS=true, False otherwise.
    """
    return os.getenv("VOICESTOCK_ENABLE_METRICS", "false").lower() in ("true", "1", "yes")
