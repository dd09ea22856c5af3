"""
Benchmark error types

Every failure the benchmark loop knows how to handle is one of these.
Anything else is a bug and propagates.
"""


class BenchmarkError(Exception):
    """Base class for all benchmark errors"""


class ConfigurationError(BenchmarkError, ValueError):
    """Invalid benchmark configuration (rejected before any run starts)"""


class DriverUnavailable(BenchmarkError):
    """The GPU query interface could not be reached or returned no usable value"""


class InferenceFailure(BenchmarkError):
    """A single inference invocation failed"""

    def __init__(self, model: str, message: str, returncode=None):
        super().__init__(f"{model}: {message}")
        self.model = model
        self.returncode = returncode


class DivisionUndefined(BenchmarkError):
    """Averages or throughput requested over zero samples or zero duration"""


class BenchmarkAborted(BenchmarkError):
    """The loop gave up on a model run (e.g. GPU driver permanently gone)"""

    def __init__(self, model: str, reason: str):
        super().__init__(f"Benchmark for {model} aborted: {reason}")
        self.model = model
        self.reason = reason
