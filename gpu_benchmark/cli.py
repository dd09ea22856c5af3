#!/usr/bin/env python3
"""
GPU Inference Benchmark CLI
Usage: gpu-benchmark run --model mistral --duration 600 --interval 120 --parallelism 2
"""

import argparse
import logging
import sys
from pathlib import Path

from .config import BenchmarkConfig, ModelSpec, DEFAULT_PROMPT
from .environment import check_environment
from .errors import ConfigurationError
from .logging_utils import setup_logging
from .metrics import SAMPLERS
from .runner import run_session


def print_progress(record, fraction):
    """Single-line terminal progress for the current model"""
    percentage = min(int(fraction * 100), 100)
    print(
        f"\r⏳ {percentage}% | Inferences: {record.cumulative_inference_count} | "
        f"GPU: {record.gpu_utilization_pct}% | Mem: {record.gpu_memory_mb} MB | "
        f"Temp: {record.temperature_c}°C | Throughput: {record.throughput:.2f} inferences/sec    ",
        end="",
        flush=True,
    )


def print_final_summary(outcomes):
    """Print final execution summary"""
    print("\n" + "=" * 60)
    print("🎯 GPU BENCHMARK EXECUTION SUMMARY")
    print("=" * 60)
    for outcome in outcomes:
        if outcome.ok:
            s = outcome.summary
            print(f"✅ {outcome.model}:")
            print(f"  Inferences: {s.total_inferences} in {s.total_duration_seconds:.0f}s")
            print(f"  Throughput: {s.final_throughput:.2f} inferences/sec")
            print(f"  Avg GPU: {s.avg_utilization_pct:.2f}% | Avg Mem: {s.avg_memory_mb:.2f} MB "
                  f"| Avg Temp: {s.avg_temperature_c:.2f}°C")
        else:
            print(f"❌ {outcome.model}: {outcome.status} ({outcome.error})")
    successful = len([o for o in outcomes if o.ok])
    print(f"\nOVERALL: {successful}/{len(outcomes)} models benchmarked")
    print("=" * 60)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gpu-benchmark",
        description="GPU-backed LLM inference benchmark",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  gpu-benchmark run
  gpu-benchmark run --model mistral --prompt "Summarize the impact of AI in healthcare."
  gpu-benchmark run --config benchmark.json --duration 300 --interval 60
  gpu-benchmark check
        """
    )
    subparsers = parser.add_subparsers(dest="command")

    run = subparsers.add_parser("run", help="Benchmark one or more models")
    run.add_argument("--config", help="JSON configuration file")
    run.add_argument("--model", action="append", dest="models",
                     help="Model to benchmark (repeatable, default: mistral, llama3, gemma3)")
    run.add_argument("--prompt", action="append", dest="prompts",
                     help="Prompt for the matching --model (repeatable)")
    run.add_argument("--interval", type=float, dest="log_interval",
                     help="Seconds between GPU samples (default: 120)")
    run.add_argument("--duration", type=float, dest="total_duration",
                     help="Benchmark duration per model in seconds (default: 600)")
    run.add_argument("--parallelism", type=int,
                     help="Concurrent inferences per cycle (default: 2)")
    run.add_argument("--timeout", type=float, dest="inference_timeout",
                     help="Timeout for a single inference in seconds (default: none)")
    run.add_argument("--max-driver-failures", type=int,
                     help="Consecutive GPU query failures before a run is aborted (default: 3)")
    run.add_argument("--max-inference-failures", type=int,
                     help="Consecutive batches with no completed inference before a run is aborted (default: 3)")
    run.add_argument("--sampler", choices=list(SAMPLERS),
                     help="GPU metrics backend (default: nvidia-smi)")
    run.add_argument("--gpu-index", type=int, help="GPU to sample (default: 0)")
    run.add_argument("--output-dir", help="Directory for CSV, report and JSON files")
    run.add_argument("--log-file", help="Log file name (default: gpu_test_log.txt)")
    run.add_argument("--report-file", help="Report file name (default: benchmark_report.txt)")
    run.add_argument("--no-json", action="store_true", help="Skip per-model JSON summaries")
    run.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers.add_parser("check", help="Verify nvidia-smi, ollama and git are available")
    return parser


OVERRIDES = [
    "log_interval", "total_duration", "parallelism", "inference_timeout",
    "max_driver_failures", "max_inference_failures", "sampler", "gpu_index",
    "output_dir", "log_file", "report_file",
]


def build_config(args) -> BenchmarkConfig:
    """Merge the config file (if any) with command line overrides"""
    config = BenchmarkConfig.from_file(args.config) if args.config else BenchmarkConfig()

    if args.models:
        prompts = args.prompts or []
        if len(prompts) > len(args.models):
            raise ConfigurationError("More --prompt values than --model values")
        config.models = [
            ModelSpec(name, prompts[i] if i < len(prompts) else DEFAULT_PROMPT)
            for i, name in enumerate(args.models)
        ]
    elif args.prompts:
        raise ConfigurationError("--prompt requires --model")

    for key in OVERRIDES:
        value = getattr(args, key, None)
        if value is not None:
            setattr(config, key, value)
    if args.no_json:
        config.save_json = False

    return config.validate()


def main(argv=None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command == "check":
        checks = check_environment()
        return 0 if all(checks.values()) else 1

    if args.command != "run":
        parser.print_help()
        return 1

    try:
        config = build_config(args)
    except ConfigurationError as e:
        print(f"❌ Invalid configuration: {e}", file=sys.stderr)
        return 2

    log_path = Path(config.output_dir) / config.log_file
    logger = setup_logging(str(log_path), logging.DEBUG if args.verbose else logging.INFO)

    outcomes = run_session(config, on_record=print_progress, logger=logger)
    print_final_summary(outcomes)
    return 0 if all(o.ok for o in outcomes) else 1


if __name__ == "__main__":
    sys.exit(main())
