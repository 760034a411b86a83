"""
lobstersage/metrics.py

Prometheus metrics collection for the reputation engine.

Tracks ledger traffic, ledger failures and local fallbacks so operators can
tell when reputation is being served from the local cache instead of the
ledger.
"""

import time
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Dict, List, Optional, Any

if TYPE_CHECKING:
    from .protocol.cache import LocalLedgerCache

logger = logging.getLogger("lobstersage.metrics")


class ReputationMetrics:
    """
    Prometheus metrics collector for the reputation engine.

    Usage:
        from lobstersage.metrics import ReputationMetrics

        metrics = ReputationMetrics()
        orchestrator = ReputationOrchestrator(ledger, metrics=metrics)

        # Get metrics in Prometheus format
        prometheus_output = metrics.collect()
    """

    # Metric definitions
    METRICS = {
        "lobstersage_ledger_writes_total": {
            "type": "counter",
            "help": "Confirmed ledger writes by kind",
        },
        "lobstersage_ledger_write_failures_total": {
            "type": "counter",
            "help": "Failed ledger writes by kind",
        },
        "lobstersage_ledger_read_failures_total": {
            "type": "counter",
            "help": "Failed ledger reads by operation",
        },
        "lobstersage_local_fallbacks_total": {
            "type": "counter",
            "help": "Updates answered from the local cache, by reason",
        },
        "lobstersage_cached_addresses": {
            "type": "gauge",
            "help": "Addresses with data in the local cache",
        },
        "lobstersage_ledger_write_latency_seconds": {
            "type": "histogram",
            "help": "Ledger write latency (submit to confirmation) in seconds",
        },
        "lobstersage_uptime_seconds": {
            "type": "counter",
            "help": "Engine uptime in seconds",
        },
    }

    LATENCY_BUCKETS = [0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0]

    def __init__(self, cache: Optional["LocalLedgerCache"] = None):
        """
        Initialize metrics collector.

        Args:
            cache: Local cache to report sizes for
        """
        self.cache = cache
        self._start_time = time.time()
        self.reset_counters()

    def record_write(self, kind: str, latency_seconds: float) -> None:
        """Record a confirmed ledger write."""
        self._writes[kind] += 1
        self._latency_sum += latency_seconds
        self._latency_count += 1
        for bucket in self.LATENCY_BUCKETS:
            if latency_seconds <= bucket:
                self._latency_counts[bucket] += 1
        self._latency_counts[float('inf')] += 1

    def record_write_failure(self, kind: str) -> None:
        self._write_failures[kind] += 1

    def record_read_failure(self, operation: str) -> None:
        self._read_failures[operation] += 1

    def record_fallback(self, reason: str) -> None:
        self._fallbacks[reason] += 1

    def collect(self) -> str:
        """
        Collect all metrics and return in Prometheus format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines: List[str] = []

        def add_header(name: str) -> None:
            metric_def = self.METRICS.get(name, {})
            lines.append(f"# HELP {name} {metric_def.get('help', '')}")
            lines.append(f"# TYPE {name} {metric_def.get('type', 'gauge')}")

        def add_labelled(name: str, label: str, values: Dict[str, int]) -> None:
            add_header(name)
            for key, value in sorted(values.items()):
                lines.append(f'{name}{{{label}="{key}"}} {value}')

        add_labelled("lobstersage_ledger_writes_total", "kind", self._writes)
        add_labelled("lobstersage_ledger_write_failures_total", "kind", self._write_failures)
        add_labelled("lobstersage_ledger_read_failures_total", "operation", self._read_failures)
        add_labelled("lobstersage_local_fallbacks_total", "reason", self._fallbacks)

        add_header("lobstersage_cached_addresses")
        lines.append(f"lobstersage_cached_addresses {len(self.cache) if self.cache is not None else 0}")

        add_header("lobstersage_uptime_seconds")
        lines.append(f"lobstersage_uptime_seconds {time.time() - self._start_time}")

        if self._latency_count > 0:
            name = "lobstersage_ledger_write_latency_seconds"
            add_header(name)
            # Bucket counts are already cumulative (record_write fills every bucket >= latency)
            for bucket in self.LATENCY_BUCKETS:
                lines.append(f'{name}_bucket{{le="{bucket}"}} {self._latency_counts[bucket]}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self._latency_counts[float("inf")]}')
            lines.append(f"{name}_sum {self._latency_sum}")
            lines.append(f"{name}_count {self._latency_count}")

        return "\n".join(lines) + "\n"

    def get_stats(self) -> Dict[str, Any]:
        """
        Get metrics as a dictionary (for JSON API).

        Returns:
            Dictionary of metric values
        """
        return {
            "ledger_writes": dict(self._writes),
            "ledger_write_failures": dict(self._write_failures),
            "ledger_read_failures": dict(self._read_failures),
            "local_fallbacks": dict(self._fallbacks),
            "cached_addresses": len(self.cache) if self.cache is not None else 0,
            "write_latency_avg": (
                self._latency_sum / self._latency_count if self._latency_count else 0.0
            ),
            "uptime_seconds": time.time() - self._start_time,
        }

    def reset_counters(self) -> None:
        """Reset all counters (useful for testing)."""
        self._writes: Dict[str, int] = defaultdict(int)
        self._write_failures: Dict[str, int] = defaultdict(int)
        self._read_failures: Dict[str, int] = defaultdict(int)
        self._fallbacks: Dict[str, int] = defaultdict(int)
        self._latency_counts = {b: 0 for b in self.LATENCY_BUCKETS}
        self._latency_counts[float('inf')] = 0
        self._latency_sum = 0.0
        self._latency_count = 0
