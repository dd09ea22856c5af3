import tempfile
import unittest
from pathlib import Path

from gpu_benchmark.config import BenchmarkConfig, ModelSpec
from gpu_benchmark.errors import DriverUnavailable, InferenceFailure
from gpu_benchmark.inference import InferenceDriver
from gpu_benchmark.runner import (
    STATUS_ABORTED,
    STATUS_ERROR,
    STATUS_INSUFFICIENT_DATA,
    STATUS_SUCCESS,
    BenchmarkSession,
    run_session,
)

from tests.fakes import FakeClock, FakeDriver, FakeSampler


class TestBenchmarkSession(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.output_dir = Path(self.tmp.name)
        self.clock = FakeClock(start=1_700_000_000.0)
        self.config = BenchmarkConfig(
            models=[
                ModelSpec("mistral", "Summarize the impact of AI in healthcare."),
                ModelSpec("llama3", "Describe the history of neural networks."),
            ],
            log_interval=120,
            total_duration=600,
            parallelism=2,
            output_dir=str(self.output_dir),
        )

    def tearDown(self):
        self.tmp.cleanup()

    def session(self, sampler=None, driver=None, **overrides):
        for key, value in overrides.items():
            setattr(self.config, key, value)
        return BenchmarkSession(
            self.config,
            sampler=sampler or FakeSampler(),
            driver=driver or FakeDriver(self.clock),
            clock=self.clock,
            sleep=self.clock.sleep,
        )

    def test_two_models_append_two_report_blocks(self):
        outcomes = self.session().run()

        self.assertEqual([o.status for o in outcomes], [STATUS_SUCCESS, STATUS_SUCCESS])
        report = (self.output_dir / "benchmark_report.txt").read_text(encoding="utf-8")
        self.assertEqual(report.count("GPU Benchmark Report"), 2)
        self.assertIn("Model Tested: mistral", report)
        self.assertIn("Model Tested: llama3", report)

        for model in ("mistral", "llama3"):
            lines = (self.output_dir / f"{model}_benchmark.csv").read_text().splitlines()
            self.assertEqual(len(lines), 6)
            self.assertTrue((self.output_dir / f"{model}_summary.json").exists())

    def test_summary_matches_last_record(self):
        outcome = self.session().run()[0]

        self.assertEqual(outcome.samples, 5)
        self.assertEqual(outcome.summary.total_inferences, 10)
        self.assertEqual(outcome.summary.total_duration_seconds, 480)
        self.assertEqual(outcome.summary.avg_memory_mb, 3400.0)
        last_row = (self.output_dir / "mistral_benchmark.csv").read_text().splitlines()[-1]
        self.assertEqual(last_row.split(",")[1], "10")

    def test_failed_model_does_not_stop_the_next(self):
        gone = DriverUnavailable("nvidia-smi not found on PATH")
        sampler = FakeSampler([gone, gone, gone])
        outcomes = self.session(sampler=sampler, max_driver_failures=3).run()

        self.assertEqual(outcomes[0].status, STATUS_ABORTED)
        self.assertEqual(outcomes[1].status, STATUS_SUCCESS)
        report = (self.output_dir / "benchmark_report.txt").read_text(encoding="utf-8")
        self.assertIn("insufficient data", report)
        self.assertEqual(report.count("GPU Benchmark Report"), 2)

    def test_missing_runner_aborts_instead_of_reporting_zero(self):
        def missing_ollama(model, prompt):
            if model == "mistral":
                raise InferenceFailure(model, "ollama not found on PATH")
            return "ok"

        driver = InferenceDriver(missing_ollama)
        outcomes = self.session(driver=driver, max_inference_failures=3).run()

        self.assertEqual(outcomes[0].status, STATUS_ABORTED)
        self.assertFalse(outcomes[0].ok)
        self.assertIsNone(outcomes[0].summary)
        self.assertIn("no inference completed", outcomes[0].error)
        self.assertEqual(outcomes[1].status, STATUS_SUCCESS)
        self.assertEqual(outcomes[1].summary.total_inferences, 10)
        report = (self.output_dir / "benchmark_report.txt").read_text(encoding="utf-8")
        self.assertIn("no inference completed for 3 consecutive batches", report)

    def test_unexpected_error_does_not_stop_the_next(self):
        driver = FakeDriver(self.clock, crashing_models={"mistral"})
        with self.assertLogs(level="ERROR") as logs:
            outcomes = self.session(driver=driver).run()

        self.assertEqual(outcomes[0].status, STATUS_ERROR)
        self.assertIn("driver crashed while running mistral", outcomes[0].error)
        self.assertEqual(outcomes[1].status, STATUS_SUCCESS)
        self.assertTrue(any("mistral benchmark crashed" in line for line in logs.output))
        saved = (self.output_dir / "mistral_summary.json").read_text(encoding="utf-8")
        self.assertIn('"status": "error"', saved)

    def test_single_sample_at_start_is_insufficient(self):
        # one cycle at t=0 leaves no elapsed time to compute a throughput over
        outcomes = self.session(log_interval=600, save_json=False).run()

        self.assertEqual([o.status for o in outcomes], [STATUS_INSUFFICIENT_DATA] * 2)
        self.assertEqual(outcomes[0].samples, 1)
        self.assertFalse((self.output_dir / "mistral_summary.json").exists())

    def test_partial_batch_failures_are_reflected(self):
        driver = FakeDriver(self.clock, failures_per_batch=1)
        outcome = self.session(driver=driver).run()[0]

        self.assertEqual(outcome.status, STATUS_SUCCESS)
        self.assertEqual(outcome.summary.total_inferences, 5)

    def test_sampler_closed_after_session(self):
        sampler = FakeSampler()
        self.session(sampler=sampler).run()

        self.assertTrue(sampler.closed)

    def test_run_session_helper(self):
        self.config.models = [ModelSpec("gemma3", "p")]
        outcomes = run_session(
            self.config,
            sampler=FakeSampler(),
            driver=FakeDriver(self.clock),
            clock=self.clock,
            sleep=self.clock.sleep,
        )

        self.assertEqual(len(outcomes), 1)
        self.assertTrue(outcomes[0].ok)


if __name__ == "__main__":
    unittest.main()
