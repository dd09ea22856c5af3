"""
Benchmark summary aggregation

Turns the loop's running totals into final averages and throughput, and
renders the text block appended to the benchmark report.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict

from .errors import DivisionUndefined
from .metrics import ThroughputCalculator


REPORT_RULE = "=" * 35


@dataclass
class RunningTotals:
    """Accumulators updated once per completed cycle"""
    inference_count: int = 0
    memory_sum: int = 0
    utilization_sum: int = 0
    temperature_sum: int = 0
    sample_count: int = 0


@dataclass(frozen=True)
class BenchmarkSummary:
    model_name: str
    total_inferences: int
    total_duration_seconds: float
    avg_memory_mb: float
    avg_utilization_pct: float
    avg_temperature_c: float
    final_throughput: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ReportAggregator:
    """Derives a BenchmarkSummary from running totals"""

    def finalize(self, totals: RunningTotals, model: str,
                 start_time: float, end_time: float) -> BenchmarkSummary:
        """
        Compute averages and final throughput.

        Raises DivisionUndefined when there are no samples or no elapsed
        time, rather than returning NaN/Inf values.
        """
        if totals.sample_count == 0:
            raise DivisionUndefined(f"No samples collected for {model}")

        duration = end_time - start_time
        if duration <= 0:
            raise DivisionUndefined(f"Zero benchmark duration for {model}")

        count = totals.sample_count
        return BenchmarkSummary(
            model_name=model,
            total_inferences=totals.inference_count,
            total_duration_seconds=duration,
            avg_memory_mb=totals.memory_sum / count,
            avg_utilization_pct=totals.utilization_sum / count,
            avg_temperature_c=totals.temperature_sum / count,
            final_throughput=ThroughputCalculator.calculate_throughput(
                totals.inference_count, duration
            ),
        )

    @staticmethod
    def format_summary(summary: BenchmarkSummary) -> str:
        lines = [
            REPORT_RULE,
            "      GPU Benchmark Report",
            REPORT_RULE,
            f"Model Tested: {summary.model_name}",
            f"Total Inferences: {summary.total_inferences}",
            f"Total Duration: {summary.total_duration_seconds:.0f} seconds",
            f"Average GPU Memory Usage: {summary.avg_memory_mb:.2f} MB",
            f"Average GPU Utilization: {summary.avg_utilization_pct:.2f}%",
            f"Average GPU Temperature: {summary.avg_temperature_c:.2f}°C",
            f"Final Throughput: {summary.final_throughput:.2f} inferences/sec",
            REPORT_RULE,
        ]
        return "\n".join(lines) + "\n\n"

    @staticmethod
    def format_insufficient_data(model: str, reason: str) -> str:
        lines = [
            REPORT_RULE,
            "      GPU Benchmark Report",
            REPORT_RULE,
            f"Model Tested: {model}",
            "Result: insufficient data",
            f"Reason: {reason}",
            REPORT_RULE,
        ]
        return "\n".join(lines) + "\n\n"
