"""
GPU Metrics Collection Utility

Point-in-time GPU telemetry for the benchmark loop.

Metrics collected (single GPU):
- GPU memory used (MB)
- GPU utilization percentage
- GPU temperature (C)

Two backends are available: ``nvidia-smi`` (default, no driver bindings
needed) and NVML through ``pynvml``. Both raise ``DriverUnavailable``
instead of reporting a zero when the driver cannot answer.
"""

import subprocess
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import pynvml

from .errors import DriverUnavailable


QUERY_FIELDS = "memory.used,utilization.gpu,temperature.gpu"


@dataclass(frozen=True)
class GPUSample:
    """One reading of the three counters the benchmark tracks"""
    memory_mb: int
    utilization_pct: int
    temperature_c: int


class GPUSampler(ABC):
    """Base class for GPU metric samplers"""

    def __init__(self, gpu_index: int = 0, logger: Optional[logging.Logger] = None):
        self.gpu_index = gpu_index
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def sample(self) -> GPUSample:
        """Query the driver now. Raises DriverUnavailable on any failure."""
        pass

    def close(self):
        """Release driver resources, if any"""
        pass


class NvidiaSmiSampler(GPUSampler):
    """Samples GPU counters by shelling out to nvidia-smi"""

    def __init__(self, gpu_index: int = 0, timeout: float = 10.0,
                 logger: Optional[logging.Logger] = None):
        super().__init__(gpu_index, logger)
        self.timeout = timeout

    def build_command(self):
        return [
            'nvidia-smi',
            f'--query-gpu={QUERY_FIELDS}',
            '--format=csv,noheader,nounits',
            '-i', str(self.gpu_index),
        ]

    def sample(self) -> GPUSample:
        try:
            result = subprocess.run(
                self.build_command(),
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise DriverUnavailable("nvidia-smi not found on PATH") from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise DriverUnavailable(f"nvidia-smi exited with {e.returncode}: {stderr}") from e
        except subprocess.TimeoutExpired as e:
            raise DriverUnavailable(f"nvidia-smi timed out after {self.timeout}s") from e

        return self.parse_output(result.stdout)

    @staticmethod
    def parse_output(stdout: str) -> GPUSample:
        """Parse one 'memory, utilization, temperature' csv line"""
        lines = [line for line in stdout.strip().split('\n') if line.strip()]
        if not lines:
            raise DriverUnavailable("nvidia-smi returned no data")

        parts = [x.strip() for x in lines[0].split(',')]
        if len(parts) != 3:
            raise DriverUnavailable(f"Unexpected nvidia-smi output: {lines[0]!r}")

        try:
            memory, utilization, temperature = (int(float(p)) for p in parts)
        except ValueError as e:
            # 'N/A' and '[Not Supported]' end up here
            raise DriverUnavailable(f"Unreadable nvidia-smi values: {lines[0]!r}") from e

        return GPUSample(memory_mb=memory, utilization_pct=utilization, temperature_c=temperature)


class NvmlSampler(GPUSampler):
    """Samples GPU counters through NVML bindings (pynvml)"""

    def __init__(self, gpu_index: int = 0, logger: Optional[logging.Logger] = None):
        super().__init__(gpu_index, logger)
        self._handle = None
        self._initialized = False

    def _get_handle(self):
        if self._handle is None:
            if not self._initialized:
                pynvml.nvmlInit()
                self._initialized = True
            self._handle = pynvml.nvmlDeviceGetHandleByIndex(self.gpu_index)
        return self._handle

    def sample(self) -> GPUSample:
        try:
            handle = self._get_handle()
            memory = pynvml.nvmlDeviceGetMemoryInfo(handle)
            rates = pynvml.nvmlDeviceGetUtilizationRates(handle)
            temperature = pynvml.nvmlDeviceGetTemperature(handle, pynvml.NVML_TEMPERATURE_GPU)
        except pynvml.NVMLError as e:
            # next sample re-initializes, so release this init first
            self.close()
            raise DriverUnavailable(f"NVML query failed: {e}") from e

        return GPUSample(
            memory_mb=int(memory.used // (1024 ** 2)),
            utilization_pct=int(rates.gpu),
            temperature_c=int(temperature),
        )

    def close(self):
        self._handle = None
        if self._initialized:
            self._initialized = False
            try:
                pynvml.nvmlShutdown()
            except pynvml.NVMLError as e:
                self.logger.warning(f"NVML shutdown failed: {e}")


SAMPLERS = {
    "nvidia-smi": NvidiaSmiSampler,
    "nvml": NvmlSampler,
}


def create_sampler(name: str, gpu_index: int = 0,
                   logger: Optional[logging.Logger] = None) -> GPUSampler:
    """Build a sampler by backend name"""
    if name not in SAMPLERS:
        raise ValueError(f"Unknown sampler: {name}. Must be one of: {list(SAMPLERS)}")
    return SAMPLERS[name](gpu_index=gpu_index, logger=logger)


class ThroughputCalculator:
    """Calculate throughput metrics"""

    @staticmethod
    def calculate_throughput(total_inferences: int, total_time_seconds: float) -> float:
        """Calculate inferences per second (0 when no time has elapsed)"""
        if total_time_seconds <= 0:
            return 0.0
        return total_inferences / total_time_seconds
