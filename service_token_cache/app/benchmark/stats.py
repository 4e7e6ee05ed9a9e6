"""
Statistics reporter for benchmark runs.

Percentiles use the nearest-rank estimator: the durations are sorted
ascending and the element at ``floor(p * N + 0.5)`` is selected, i.e.
``p * N`` rounded half up, clamped to ``[0, N - 1]``. No interpolation is
done. For ten samples P50 is index 5 (the sixth smallest) and P95 is
index 9, since 9.5 rounds up to 10 and is clamped.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, TextIO

from shared.errors import StatisticsError
from ..accessor.token_cache_accessor import AccessorStats
from .driver import BenchmarkParameters, ExecutionWindow


REPORT_RULE = "=" * 74


def percentile_index(count: int, p: float) -> int:
    """Index selected by the nearest-rank percentile ``p`` over ``count`` samples."""
    if count <= 0:
        raise StatisticsError("Percentile of an empty sequence", details={"count": count})
    if not 0.0 <= p <= 1.0:
        raise StatisticsError("Percentile must be within [0, 1]", details={"p": p})

    index = math.floor(p * count + 0.5)
    return min(max(index, 0), count - 1)


def percentile(durations: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of ``durations``; the input is not modified."""
    ordered = sorted(durations)
    return ordered[percentile_index(len(ordered), p)]


def phase_average(total: float, token_count: int) -> float:
    """Mean per-token time of a phase."""
    if token_count <= 0:
        raise StatisticsError(
            "Average is undefined without tokens",
            details={"token_count": token_count}
        )
    return total / token_count


def format_duration(seconds: float) -> str:
    """Render seconds in the largest unit that keeps the value >= 1 (``1.5ms``, ``250µs``)."""
    if seconds == 0:
        return "0s"

    magnitude = abs(seconds)
    if magnitude < 1e-6:
        value, unit = seconds * 1e9, "ns"
    elif magnitude < 1e-3:
        value, unit = seconds * 1e6, "µs"
    elif magnitude < 1:
        value, unit = seconds * 1e3, "ms"
    else:
        value, unit = seconds, "s"

    return f"{value:.6f}".rstrip("0").rstrip(".") + unit


@dataclass(frozen=True)
class PerfStats:
    """Read-only view over a run's two execution windows."""

    population: ExecutionWindow
    retrieval: ExecutionWindow
    tenants: int
    count: int
    accessor: Optional[AccessorStats] = None

    @classmethod
    def from_run(
        cls,
        params: BenchmarkParameters,
        population: ExecutionWindow,
        retrieval: ExecutionWindow,
        accessor: Optional[AccessorStats] = None,
    ) -> "PerfStats":
        # Copied; the live accessor keeps counting after the run
        snapshot = AccessorStats(**accessor.as_dict()) if accessor else None
        return cls(population, retrieval, params.tenant_count, params.token_count, snapshot)

    @property
    def pop_duration(self) -> float:
        """Total wall-clock time spent populating the cache."""
        return self.population.elapsed

    @property
    def ret_duration(self) -> float:
        """Total wall-clock time spent retrieving tokens."""
        return self.retrieval.elapsed

    @property
    def pop_average(self) -> float:
        return phase_average(self.pop_duration, self.count)

    @property
    def ret_average(self) -> float:
        return phase_average(self.ret_duration, self.count)

    def pop_percentile(self, p: float) -> float:
        return percentile(self.population.durations, p)

    def ret_percentile(self, p: float) -> float:
        return percentile(self.retrieval.durations, p)

    @property
    def population_errors(self) -> int:
        return self.population.errors

    @property
    def retrieval_errors(self) -> int:
        return self.retrieval.errors

    @property
    def retrieval_misses(self) -> int:
        return self.retrieval.misses

    @property
    def retrieval_error_rate(self) -> float:
        if self.count <= 0:
            raise StatisticsError("Error rate is undefined without tokens", details={"token_count": self.count})
        return self.retrieval.errors / self.count

    def as_dict(self) -> Dict[str, Any]:
        """Flat summary suitable for structured logging."""
        summary: Dict[str, Any] = {
            "tenants": self.tenants,
            "tokens": self.count,
            "population_total_seconds": self.pop_duration,
            "population_avg_seconds": self.pop_average,
            "population_p50_seconds": self.pop_percentile(0.5),
            "population_p95_seconds": self.pop_percentile(0.95),
            "population_min_seconds": min(self.population.durations),
            "population_max_seconds": max(self.population.durations),
            "retrieval_total_seconds": self.ret_duration,
            "retrieval_avg_seconds": self.ret_average,
            "retrieval_p50_seconds": self.ret_percentile(0.5),
            "retrieval_p95_seconds": self.ret_percentile(0.95),
            "retrieval_min_seconds": min(self.retrieval.durations),
            "retrieval_max_seconds": max(self.retrieval.durations),
            "population_errors": self.population_errors,
            "retrieval_errors": self.retrieval_errors,
            "retrieval_misses": self.retrieval_misses,
            "retrieval_error_rate": self.retrieval_error_rate,
        }
        if self.accessor:
            summary.update({f"accessor_{name}": value for name, value in self.accessor.as_dict().items()})
        return summary


def render_report(stats: PerfStats) -> str:
    """Plain-text report: the summary line, then per-phase percentiles."""
    lines = [
        "",
        "Test Results:",
        (
            f"[{stats.tenants} tenants][{stats.count} tokens] "
            f"[population: total {format_duration(stats.pop_duration)}, avg {format_duration(stats.pop_average)}] "
            f"[retrieval: total {format_duration(stats.ret_duration)}, avg {format_duration(stats.ret_average)}]"
        ),
        REPORT_RULE,
        "Populate Statistic",
        f"P50 {format_duration(stats.pop_percentile(0.5))}",
        f"P95 {format_duration(stats.pop_percentile(0.95))}",
        "Retrieve Statistic",
        f"P50 {format_duration(stats.ret_percentile(0.5))}",
        f"P95 {format_duration(stats.ret_percentile(0.95))}",
        "Cache Statistic",
        (
            f"retrieval errors {stats.retrieval_errors} ({stats.retrieval_error_rate:.2%}), "
            f"misses {stats.retrieval_misses}"
        ),
        f"population errors {stats.population_errors}",
    ]

    if stats.accessor:
        accessor = stats.accessor
        lines.append(
            f"accessor exports {accessor.exports} ({accessor.export_failures} failed), "
            f"replaces {accessor.replaces} (hits {accessor.hits}, misses {accessor.misses}, "
            f"read failures {accessor.read_failures})"
        )

    return "\n".join(lines) + "\n"


def write_report(stats: PerfStats, out: TextIO) -> None:
    """Render the report and write it to ``out``."""
    out.write(render_report(stats))
    out.flush()
