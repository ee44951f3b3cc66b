import logging
import statistics
import sys
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IterationReport:
    """Result of a single benchmark iteration."""

    duration: float
    status: int = 0
    bytes: int = 0
    items: int = 0
    error_message: str = ""

    @property
    def success(self) -> bool:
        return self.status == 0

    @property
    def latency_ms(self) -> float:
        """Iteration latency in milliseconds."""
        return self.duration * 1000.0


@dataclass
class RecordedIteration:
    worker_id: int
    report: IterationReport


@dataclass
class MetricsCollector:
    """Collector for iteration reports. Safe for use with asyncio (single-threaded)."""

    iterations: List[RecordedIteration] = field(default_factory=list)
    _start_time: Optional[float] = None
    _end_time: Optional[float] = None

    def record(self, worker_id: int, report: IterationReport) -> None:
        """
        Record an iteration report as it completes.

        Args:
            worker_id: Index of the worker that produced the report
            report: The iteration report
        """
        now = time.time()
        if self._start_time is None:
            self._start_time = now - report.duration
        self._end_time = now
        self.iterations.append(RecordedIteration(worker_id, report))

    @property
    def total_duration(self) -> float:
        if self._start_time is None or self._end_time is None:
            return 0.0
        return self._end_time - self._start_time

    def _calculate_percentiles(self, values: List[float]) -> Dict[str, float]:
        """Calculate percentiles for a list of values."""
        if not values:
            return {
                "avg": 0.0,
                "stddev": 0.0,
                "min": 0.0,
                "max": 0.0,
                "p50": 0.0,
                "p95": 0.0,
                "p99": 0.0,
            }

        sorted_values = sorted(values)
        avg = sum(sorted_values) / len(sorted_values)
        stddev = statistics.stdev(sorted_values) if len(sorted_values) > 1 else 0.0

        def percentile(p: float) -> float:
            index = int(len(sorted_values) * p)
            return sorted_values[index] if index < len(sorted_values) else sorted_values[-1]

        return {
            "avg": avg,
            "stddev": stddev,
            "min": sorted_values[0],
            "max": sorted_values[-1],
            "p50": percentile(0.50),
            "p95": percentile(0.95),
            "p99": percentile(0.99),
        }

    def get_summary(self) -> Dict[str, Any]:
        """
        Calculate and return summary statistics.

        Returns:
            Dictionary containing metrics summary
        """
        reports = [it.report for it in self.iterations]
        successful = [r for r in reports if r.success]
        total_duration = self.total_duration

        def rate(value: float) -> float:
            return value / total_duration if total_duration > 0 else 0.0

        return {
            "total_duration": total_duration,
            "total_iterations": len(reports),
            "successful_iterations": len(successful),
            "failed_iterations": len(reports) - len(successful),
            "failures_by_status": dict(Counter(r.status for r in reports if not r.success)),
            "iterations_per_second": rate(len(reports)),
            "items": sum(r.items for r in successful),
            "bytes": sum(r.bytes for r in successful),
            "items_per_second": rate(sum(r.items for r in successful)),
            "bytes_per_second": rate(sum(r.bytes for r in successful)),
            "latency": self._calculate_percentiles([r.latency_ms for r in successful]),
        }

    def print_summary(self, title: str = "SUMMARY") -> None:
        """Print formatted metrics summary to stdout (not as log)."""

        summary = self.get_summary()
        lat = summary["latency"]

        print("=" * 60, file=sys.stdout)
        print(f"PERFORMANCE METRICS: {title}", file=sys.stdout)
        print("=" * 60, file=sys.stdout)
        print(f"Total Duration:           {summary['total_duration']:.2f} seconds", file=sys.stdout)
        print(f"Total Iterations:         {summary['total_iterations']}", file=sys.stdout)
        print(f"Successful Iterations:    {summary['successful_iterations']}", file=sys.stdout)
        print(f"Failed Iterations:        {summary['failed_iterations']}", file=sys.stdout)
        for status, count in sorted(summary["failures_by_status"].items()):
            print(f"  status {status:<8}        {count}", file=sys.stdout)
        print(f"Iterations per Second:    {summary['iterations_per_second']:.2f}", file=sys.stdout)
        print(f"Items per Second:         {summary['items_per_second']:.2f}", file=sys.stdout)
        print(f"Throughput:               {summary['bytes_per_second'] / 1024 / 1024:.2f} MiB/s", file=sys.stdout)
        print("=" * 60, file=sys.stdout)

        print(f"{'Metric':<15} {'Latency (ms)':>20}", file=sys.stdout)
        print("-" * 60, file=sys.stdout)
        print(f"{'Average':<15} {lat['avg']:>20.2f}", file=sys.stdout)
        print(f"{'STDDev':<15} {lat['stddev']:>20.2f}", file=sys.stdout)
        print(f"{'Minimum':<15} {lat['min']:>20.2f}", file=sys.stdout)
        print(f"{'Maximum':<15} {lat['max']:>20.2f}", file=sys.stdout)
        print(f"{'P50 (Median)':<15} {lat['p50']:>20.2f}", file=sys.stdout)
        print(f"{'P95':<15} {lat['p95']:>20.2f}", file=sys.stdout)
        print(f"{'P99':<15} {lat['p99']:>20.2f}", file=sys.stdout)
        print("=" * 60, file=sys.stdout)

        sys.stdout.flush()
