"""
Fixed-duration benchmark loop

Each cycle runs one inference batch, takes one GPU sample, updates the
running totals and emits a SampleRecord, then sleeps for the log interval.
The deadline is only checked before a cycle starts, so the last cycle may
finish after it (at most one batch plus one sleep).

Clock, sleep, sampler, driver, sink and logger are all injected so the loop
can be driven deterministically in tests.
"""

import time
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from .errors import BenchmarkAborted, DriverUnavailable
from .inference import InferenceDriver
from .metrics import GPUSampler, ThroughputCalculator
from .report import RunningTotals


@dataclass(frozen=True)
class SampleRecord:
    timestamp: datetime
    cumulative_inference_count: int
    gpu_memory_mb: int
    gpu_utilization_pct: int
    temperature_c: int
    throughput: float


@dataclass
class LoopResult:
    model: str
    start_time: float
    end_time: float
    finished_at: float
    totals: RunningTotals
    records: List[SampleRecord] = field(default_factory=list)
    skipped_cycles: int = 0


class BenchmarkLoop:
    """Drives InferenceDriver and GPUSampler on a fixed cadence"""

    def __init__(self, driver: InferenceDriver, sampler: GPUSampler, sink=None,
                 log_interval: float = 120, total_duration: float = 600,
                 parallelism: int = 2, max_driver_failures: int = 3,
                 max_inference_failures: int = 3,
                 clock: Callable[[], float] = time.time,
                 sleep: Callable[[float], None] = time.sleep,
                 on_record: Optional[Callable[[SampleRecord, float], None]] = None,
                 logger: Optional[logging.Logger] = None):
        if total_duration <= 0:
            raise ValueError(f"total_duration must be > 0, got {total_duration}")
        if log_interval < 0:
            raise ValueError(f"log_interval must be >= 0, got {log_interval}")
        if parallelism < 1:
            raise ValueError(f"parallelism must be >= 1, got {parallelism}")
        if max_driver_failures < 1:
            raise ValueError(f"max_driver_failures must be >= 1, got {max_driver_failures}")
        if max_inference_failures < 1:
            raise ValueError(f"max_inference_failures must be >= 1, got {max_inference_failures}")

        self.driver = driver
        self.sampler = sampler
        self.sink = sink
        self.log_interval = log_interval
        self.total_duration = total_duration
        self.parallelism = parallelism
        self.max_driver_failures = max_driver_failures
        self.max_inference_failures = max_inference_failures
        self.clock = clock
        self.sleep = sleep
        self.on_record = on_record
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    def run(self, model: str, prompt: str) -> LoopResult:
        """Run the benchmark for one model until the deadline passes"""
        start_time = self.clock()
        end_time = start_time + self.total_duration
        totals = RunningTotals()
        result = LoopResult(
            model=model,
            start_time=start_time,
            end_time=start_time,
            finished_at=start_time,
            totals=totals,
        )
        consecutive_failures = 0
        failed_batches = 0

        self.logger.info(
            f"Starting {model} test: {self.total_duration}s, "
            f"sampling every {self.log_interval}s, {self.parallelism} parallel inferences"
        )

        while self.clock() < end_time:
            batch = self.driver.run_batch(model, prompt, self.parallelism)
            if batch.failed:
                self.logger.warning(
                    f"{batch.failed}/{batch.total} inferences failed for {model} this cycle"
                )
            if batch.completed == 0:
                failed_batches += 1
                if failed_batches >= self.max_inference_failures:
                    result.finished_at = self.clock()
                    raise BenchmarkAborted(
                        model, f"no inference completed for {failed_batches} consecutive batches"
                    )
            else:
                failed_batches = 0

            try:
                gpu = self.sampler.sample()
            except DriverUnavailable as e:
                consecutive_failures += 1
                result.skipped_cycles += 1
                self.logger.warning(
                    f"GPU sample failed for {model} "
                    f"({consecutive_failures}/{self.max_driver_failures}): {e}"
                )
                if consecutive_failures >= self.max_driver_failures:
                    result.finished_at = self.clock()
                    raise BenchmarkAborted(
                        model, f"GPU driver unavailable for {consecutive_failures} consecutive cycles"
                    ) from e
                self.sleep(self.log_interval)
                continue

            consecutive_failures = 0
            totals.inference_count += batch.completed
            totals.memory_sum += gpu.memory_mb
            totals.utilization_sum += gpu.utilization_pct
            totals.temperature_sum += gpu.temperature_c
            totals.sample_count += 1

            now = self.clock()
            elapsed = now - start_time
            record = SampleRecord(
                timestamp=datetime.fromtimestamp(now),
                cumulative_inference_count=totals.inference_count,
                gpu_memory_mb=gpu.memory_mb,
                gpu_utilization_pct=gpu.utilization_pct,
                temperature_c=gpu.temperature_c,
                throughput=ThroughputCalculator.calculate_throughput(totals.inference_count, elapsed),
            )
            result.records.append(record)
            result.end_time = now

            if self.sink is not None:
                self.sink.write_sample(record)
            if self.on_record is not None:
                self.on_record(record, elapsed / self.total_duration)

            self.logger.info(
                f"Inference #{record.cumulative_inference_count} - "
                f"GPU Memory: {record.gpu_memory_mb} MB - "
                f"Utilization: {record.gpu_utilization_pct}% - "
                f"Temp: {record.temperature_c}°C - "
                f"Throughput: {record.throughput:.2f} inferences/sec"
            )

            self.sleep(self.log_interval)

        result.finished_at = self.clock()
        self.logger.info(
            f"{model} test completed: {totals.sample_count} samples, "
            f"{result.skipped_cycles} skipped cycles"
        )
        return result
