"""
Benchmark result persistence

- one CSV file per model with a row per sampling cycle
- a text report that accumulates one summary block per model run
- an optional JSON dump of each run's summary
"""

import re
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from .report import BenchmarkSummary, ReportAggregator


CSV_COLUMNS = [
    "Timestamp",
    "Inference Count",
    "GPU Memory (MB)",
    "GPU Utilization (%)",
    "Temperature (C)",
    "Throughput (inferences/sec)",
]


def safe_model_name(model: str) -> str:
    """Strip everything but [A-Za-z0-9@._-] so the name is usable in a path"""
    cleaned = re.sub(r"[^a-zA-Z0-9@._-]", "", model)
    if not cleaned:
        raise ValueError(f"Model name {model!r} has no usable characters")
    return cleaned


class ResultSink:
    """Writes per-sample CSV rows and appends summaries to the report file"""

    def __init__(self, output_dir: str = ".", report_file: str = "benchmark_report.txt",
                 logger: Optional[logging.Logger] = None):
        self.output_dir = Path(output_dir)
        self.report_path = self.output_dir / report_file
        self.csv_path: Optional[Path] = None
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    def csv_path_for(self, model: str) -> Path:
        return self.output_dir / f"{safe_model_name(model)}_benchmark.csv"

    def open_run(self, model: str) -> Path:
        """Start a fresh CSV file (header only) for a model run"""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.csv_path = self.csv_path_for(model)
        pd.DataFrame(columns=CSV_COLUMNS).to_csv(self.csv_path, index=False)
        self.logger.info(f"Writing samples for {model} to {self.csv_path}")
        return self.csv_path

    def write_sample(self, record):
        if self.csv_path is None:
            raise RuntimeError("open_run() must be called before write_sample()")

        row = {
            "Timestamp": record.timestamp.strftime("%H:%M:%S"),
            "Inference Count": record.cumulative_inference_count,
            "GPU Memory (MB)": record.gpu_memory_mb,
            "GPU Utilization (%)": record.gpu_utilization_pct,
            "Temperature (C)": record.temperature_c,
            "Throughput (inferences/sec)": f"{record.throughput:.2f}",
        }
        pd.DataFrame([row], columns=CSV_COLUMNS).to_csv(
            self.csv_path, mode="a", header=False, index=False
        )

    def _append_report(self, text: str):
        self.output_dir.mkdir(parents=True, exist_ok=True)
        with open(self.report_path, "a", encoding="utf-8") as f:
            f.write(text)

    def write_summary(self, summary: BenchmarkSummary):
        self._append_report(ReportAggregator.format_summary(summary))
        self.logger.info(f"Summary for {summary.model_name} appended to {self.report_path}")

    def write_insufficient_data(self, model: str, reason: str):
        self._append_report(ReportAggregator.format_insufficient_data(model, reason))
        self.logger.warning(f"Insufficient data for {model}: {reason}")


def save_results(results: Dict[str, Any], output_path: str):
    """Save benchmark results to JSON file"""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        json.dump(results, f, indent=2)

    print(f"💾 Results saved to {output_path}")


def load_results(input_path: str) -> Dict[str, Any]:
    """Load benchmark results from JSON file"""
    with open(input_path, 'r') as f:
        return json.load(f)
