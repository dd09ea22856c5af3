"""
Benchmark session runner

Runs the benchmark loop for each configured model in turn. Every model run
is independent: a failure in one is recorded and the session moves on.
"""

import time
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Callable, List, Optional

from .config import BenchmarkConfig, ModelSpec
from .environment import get_system_info
from .errors import BenchmarkAborted, DivisionUndefined
from .inference import InferenceDriver, OllamaRunner
from .loop import BenchmarkLoop, LoopResult
from .metrics import GPUSampler, create_sampler
from .report import BenchmarkSummary, ReportAggregator
from .results import ResultSink, safe_model_name, save_results

STATUS_SUCCESS = "success"
STATUS_INSUFFICIENT_DATA = "insufficient_data"
STATUS_ABORTED = "aborted"
STATUS_ERROR = "error"


@dataclass
class ModelRunOutcome:
    model: str
    status: str
    summary: Optional[BenchmarkSummary] = None
    csv_path: Optional[str] = None
    samples: int = 0
    skipped_cycles: int = 0
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS


class BenchmarkSession:
    """Runs one or more model benchmarks with shared sampler, driver and sink"""

    def __init__(self, config: BenchmarkConfig,
                 sampler: Optional[GPUSampler] = None,
                 driver: Optional[InferenceDriver] = None,
                 sink: Optional[ResultSink] = None,
                 clock: Callable[[], float] = time.time,
                 sleep: Callable[[float], None] = time.sleep,
                 on_record=None,
                 logger: Optional[logging.Logger] = None):
        self.config = config.validate()
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.sampler = sampler or create_sampler(config.sampler, config.gpu_index, logger=self.logger)
        self.driver = driver or InferenceDriver(
            OllamaRunner(timeout=config.inference_timeout), logger=self.logger
        )
        self.sink = sink or ResultSink(config.output_dir, config.report_file, logger=self.logger)
        self.aggregator = ReportAggregator()
        self.clock = clock
        self.sleep = sleep
        self.on_record = on_record

    def build_loop(self) -> BenchmarkLoop:
        return BenchmarkLoop(
            driver=self.driver,
            sampler=self.sampler,
            sink=self.sink,
            log_interval=self.config.log_interval,
            total_duration=self.config.total_duration,
            parallelism=self.config.parallelism,
            max_driver_failures=self.config.max_driver_failures,
            max_inference_failures=self.config.max_inference_failures,
            clock=self.clock,
            sleep=self.sleep,
            on_record=self.on_record,
            logger=self.logger,
        )

    def run_model(self, spec: ModelSpec) -> ModelRunOutcome:
        """Benchmark a single model; never raises for benchmark failures"""
        outcome = ModelRunOutcome(model=spec.name, status=STATUS_ERROR)
        try:
            outcome.csv_path = str(self.sink.open_run(spec.name))
            result: LoopResult = self.build_loop().run(spec.name, spec.prompt)
            outcome.samples = result.totals.sample_count
            outcome.skipped_cycles = result.skipped_cycles

            summary = self.aggregator.finalize(
                result.totals, spec.name, result.start_time, result.end_time
            )
        except BenchmarkAborted as e:
            outcome.status = STATUS_ABORTED
            outcome.error = str(e)
            self.logger.error(str(e))
            self.sink.write_insufficient_data(spec.name, e.reason)
        except DivisionUndefined as e:
            outcome.status = STATUS_INSUFFICIENT_DATA
            outcome.error = str(e)
            self.sink.write_insufficient_data(spec.name, str(e))
        except Exception as e:
            outcome.status = STATUS_ERROR
            outcome.error = str(e)
            self.logger.exception(f"{spec.name} benchmark crashed: {e}")
        else:
            outcome.status = STATUS_SUCCESS
            outcome.summary = summary
            self.sink.write_summary(summary)
            self._log_summary(summary)

        if self.config.save_json:
            self._save_outcome(outcome)
        return outcome

    def run(self) -> List[ModelRunOutcome]:
        outcomes = []
        try:
            for spec in self.config.models:
                outcomes.append(self.run_model(spec))
        finally:
            self.sampler.close()

        successful = len([o for o in outcomes if o.ok])
        self.logger.info(f"Session complete: {successful}/{len(outcomes)} models produced a summary")
        return outcomes

    def _log_summary(self, summary: BenchmarkSummary):
        self.logger.info(f"{summary.model_name} Test Completed")
        self.logger.info(f"Total Inferences: {summary.total_inferences}")
        self.logger.info(f"Total Duration: {summary.total_duration_seconds:.0f} seconds")
        self.logger.info(f"Average GPU Memory Usage: {summary.avg_memory_mb:.2f} MB")
        self.logger.info(f"Average GPU Utilization: {summary.avg_utilization_pct:.2f}%")
        self.logger.info(f"Average GPU Temperature: {summary.avg_temperature_c:.2f}°C")
        self.logger.info(f"Final Throughput: {summary.final_throughput:.2f} inferences/sec")

    def _save_outcome(self, outcome: ModelRunOutcome):
        payload = asdict(outcome)
        payload["config"] = {
            "log_interval": self.config.log_interval,
            "total_duration": self.config.total_duration,
            "parallelism": self.config.parallelism,
            "inference_timeout": self.config.inference_timeout,
            "max_driver_failures": self.config.max_driver_failures,
            "max_inference_failures": self.config.max_inference_failures,
            "sampler": self.config.sampler,
            "gpu_index": self.config.gpu_index,
        }
        payload["system_info"] = get_system_info()
        path = Path(self.config.output_dir) / f"{safe_model_name(outcome.model)}_summary.json"
        try:
            save_results(payload, str(path))
        except OSError as e:
            self.logger.error(f"Could not save JSON summary for {outcome.model}: {e}")


def run_session(config: BenchmarkConfig, **kwargs) -> List[ModelRunOutcome]:
    """Run every configured model sequentially"""
    return BenchmarkSession(config, **kwargs).run()
