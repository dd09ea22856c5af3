import subprocess
import unittest
from types import SimpleNamespace
from unittest import mock

import pynvml

from gpu_benchmark.errors import DriverUnavailable
from gpu_benchmark.metrics import (
    GPUSample,
    NvidiaSmiSampler,
    NvmlSampler,
    ThroughputCalculator,
    create_sampler,
)


def completed(stdout, returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr="")


class TestNvidiaSmiSampler(unittest.TestCase):
    def setUp(self):
        self.sampler = NvidiaSmiSampler(gpu_index=1)

    def test_parses_query_output(self):
        with mock.patch("gpu_benchmark.metrics.subprocess.run",
                        return_value=completed("3412, 87, 71\n")) as run:
            sample = self.sampler.sample()

        self.assertEqual(sample, GPUSample(memory_mb=3412, utilization_pct=87, temperature_c=71))
        cmd = run.call_args[0][0]
        self.assertEqual(cmd[0], "nvidia-smi")
        self.assertIn("--query-gpu=memory.used,utilization.gpu,temperature.gpu", cmd)
        self.assertIn("--format=csv,noheader,nounits", cmd)
        self.assertEqual(cmd[-2:], ["-i", "1"])

    def test_queries_every_call(self):
        outputs = [completed("100, 1, 30\n"), completed("200, 2, 31\n")]
        with mock.patch("gpu_benchmark.metrics.subprocess.run", side_effect=outputs):
            first = self.sampler.sample()
            second = self.sampler.sample()

        self.assertEqual(first.memory_mb, 100)
        self.assertEqual(second.memory_mb, 200)

    def test_unreadable_values_raise(self):
        for stdout in ("", "\n", "N/A, 10, 40", "[Not Supported], 1, 2", "100, 20"):
            with self.subTest(stdout=stdout):
                with self.assertRaises(DriverUnavailable):
                    NvidiaSmiSampler.parse_output(stdout)

    def test_missing_binary_raises(self):
        with mock.patch("gpu_benchmark.metrics.subprocess.run", side_effect=FileNotFoundError()):
            with self.assertRaises(DriverUnavailable):
                self.sampler.sample()

    def test_nonzero_exit_raises(self):
        error = subprocess.CalledProcessError(9, ["nvidia-smi"], stderr="No devices were found")
        with mock.patch("gpu_benchmark.metrics.subprocess.run", side_effect=error):
            with self.assertRaises(DriverUnavailable) as ctx:
                self.sampler.sample()
        self.assertIn("No devices were found", str(ctx.exception))

    def test_timeout_raises(self):
        error = subprocess.TimeoutExpired(["nvidia-smi"], 10)
        with mock.patch("gpu_benchmark.metrics.subprocess.run", side_effect=error):
            with self.assertRaises(DriverUnavailable):
                self.sampler.sample()


class TestNvmlSampler(unittest.TestCase):
    def test_reads_counters(self):
        with mock.patch.object(pynvml, "nvmlInit"), \
             mock.patch.object(pynvml, "nvmlDeviceGetHandleByIndex", return_value="handle") as get_handle, \
             mock.patch.object(pynvml, "nvmlDeviceGetMemoryInfo",
                               return_value=SimpleNamespace(used=2048 * 1024 ** 2)), \
             mock.patch.object(pynvml, "nvmlDeviceGetUtilizationRates",
                               return_value=SimpleNamespace(gpu=93, memory=40)), \
             mock.patch.object(pynvml, "nvmlDeviceGetTemperature", return_value=68):
            sample = NvmlSampler(gpu_index=0).sample()

        get_handle.assert_called_once_with(0)
        self.assertEqual(sample, GPUSample(memory_mb=2048, utilization_pct=93, temperature_c=68))

    def test_nvml_error_raises_driver_unavailable(self):
        error = pynvml.NVMLError(pynvml.NVML_ERROR_LIBRARY_NOT_FOUND)
        with mock.patch.object(pynvml, "nvmlInit", side_effect=error):
            with self.assertRaises(DriverUnavailable):
                NvmlSampler().sample()

    def test_failed_init_is_not_shut_down(self):
        error = pynvml.NVMLError(pynvml.NVML_ERROR_LIBRARY_NOT_FOUND)
        with mock.patch.object(pynvml, "nvmlInit", side_effect=error), \
             mock.patch.object(pynvml, "nvmlShutdown") as shutdown:
            sampler = NvmlSampler()
            with self.assertRaises(DriverUnavailable):
                sampler.sample()
            sampler.close()

        shutdown.assert_not_called()

    def test_query_error_releases_init(self):
        error = pynvml.NVMLError(pynvml.NVML_ERROR_GPU_IS_LOST)
        with mock.patch.object(pynvml, "nvmlInit") as init, \
             mock.patch.object(pynvml, "nvmlShutdown") as shutdown, \
             mock.patch.object(pynvml, "nvmlDeviceGetHandleByIndex", return_value="handle"), \
             mock.patch.object(pynvml, "nvmlDeviceGetMemoryInfo", side_effect=error):
            sampler = NvmlSampler()
            for _ in range(3):
                with self.assertRaises(DriverUnavailable):
                    sampler.sample()
            sampler.close()

        self.assertEqual(init.call_count, 3)
        self.assertEqual(shutdown.call_count, 3)

    def test_handle_lookup_error_releases_init(self):
        error = pynvml.NVMLError(pynvml.NVML_ERROR_INVALID_ARGUMENT)
        with mock.patch.object(pynvml, "nvmlInit") as init, \
             mock.patch.object(pynvml, "nvmlShutdown") as shutdown, \
             mock.patch.object(pynvml, "nvmlDeviceGetHandleByIndex", side_effect=error):
            with self.assertRaises(DriverUnavailable):
                NvmlSampler(gpu_index=7).sample()

        init.assert_called_once_with()
        shutdown.assert_called_once_with()


class TestSamplerFactory(unittest.TestCase):
    def test_known_backends(self):
        self.assertIsInstance(create_sampler("nvidia-smi"), NvidiaSmiSampler)
        self.assertIsInstance(create_sampler("nvml", gpu_index=2), NvmlSampler)

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            create_sampler("rocm-smi")


class TestThroughputCalculator(unittest.TestCase):
    def test_throughput(self):
        self.assertEqual(ThroughputCalculator.calculate_throughput(10, 5.0), 2.0)

    def test_zero_elapsed(self):
        self.assertEqual(ThroughputCalculator.calculate_throughput(4, 0), 0.0)
        self.assertEqual(ThroughputCalculator.calculate_throughput(0, 0), 0.0)


if __name__ == "__main__":
    unittest.main()
