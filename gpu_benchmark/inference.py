"""
Inference load generation

Runs a batch of concurrent inference invocations against a local model
runner and waits for all of them. Output is discarded; only completion
matters, since the batch exists to put load on the GPU between samples.
"""

import subprocess
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .errors import InferenceFailure


class OllamaRunner:
    """Runs a single `ollama run <model> <prompt>` invocation"""

    def __init__(self, executable: str = "ollama", timeout: Optional[float] = None):
        self.executable = executable
        self.timeout = timeout

    def build_command(self, model: str, prompt: str) -> List[str]:
        return [self.executable, "run", model, prompt]

    def __call__(self, model: str, prompt: str):
        cmd = self.build_command(model, prompt)
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise InferenceFailure(model, f"{self.executable} not found on PATH") from e
        except subprocess.TimeoutExpired as e:
            raise InferenceFailure(model, f"timed out after {self.timeout}s") from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise InferenceFailure(
                model, f"exit code {result.returncode}: {stderr}", returncode=result.returncode
            )


@dataclass
class BatchResult:
    """Outcome of one batch of concurrent invocations"""
    completed: int = 0
    failed: int = 0
    errors: List[Exception] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.completed + self.failed


class InferenceDriver:
    """Fans out concurrent inference invocations and joins them"""

    def __init__(self, runner: Optional[Callable[[str, str], None]] = None,
                 logger: Optional[logging.Logger] = None):
        self.runner = runner or OllamaRunner()
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    def run_batch(self, model: str, prompt: str, parallelism: int) -> BatchResult:
        """
        Run `parallelism` invocations concurrently and block until all finish.

        Failed invocations are counted, not raised, and never retried.
        """
        if parallelism < 1:
            raise ValueError(f"parallelism must be >= 1, got {parallelism}")

        batch = BatchResult()
        with ThreadPoolExecutor(max_workers=parallelism) as executor:
            futures = [executor.submit(self.runner, model, prompt) for _ in range(parallelism)]
            # leaving the with-block joins every worker
            for future in futures:
                error = future.exception()
                if error is None:
                    batch.completed += 1
                else:
                    batch.failed += 1
                    batch.errors.append(error)
                    self.logger.warning(f"Inference failed for {model}: {error}")

        return batch
