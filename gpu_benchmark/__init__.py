"""
GPU Inference Benchmark - core package

Runs concurrent inference batches against a local model runner, samples GPU
telemetry on a fixed cadence and aggregates throughput and utilization into
per-model CSV files and a text report.
"""

__version__ = "1.0.0"

from .errors import (
    BenchmarkError,
    BenchmarkAborted,
    ConfigurationError,
    DivisionUndefined,
    DriverUnavailable,
    InferenceFailure,
)
from .metrics import (
    GPUSample,
    GPUSampler,
    NvidiaSmiSampler,
    NvmlSampler,
    ThroughputCalculator,
    create_sampler,
)
from .inference import BatchResult, InferenceDriver, OllamaRunner
from .report import BenchmarkSummary, ReportAggregator, RunningTotals
from .loop import BenchmarkLoop, LoopResult, SampleRecord
from .results import ResultSink, load_results, save_results
from .config import BenchmarkConfig, ModelSpec, DEFAULT_MODELS
from .runner import BenchmarkSession, ModelRunOutcome, run_session

__all__ = [
    "BenchmarkError",
    "BenchmarkAborted",
    "ConfigurationError",
    "DivisionUndefined",
    "DriverUnavailable",
    "InferenceFailure",
    "GPUSample",
    "GPUSampler",
    "NvidiaSmiSampler",
    "NvmlSampler",
    "ThroughputCalculator",
    "create_sampler",
    "BatchResult",
    "InferenceDriver",
    "OllamaRunner",
    "BenchmarkSummary",
    "ReportAggregator",
    "RunningTotals",
    "BenchmarkLoop",
    "LoopResult",
    "SampleRecord",
    "ResultSink",
    "load_results",
    "save_results",
    "BenchmarkConfig",
    "ModelSpec",
    "DEFAULT_MODELS",
    "BenchmarkSession",
    "ModelRunOutcome",
    "run_session",
]
