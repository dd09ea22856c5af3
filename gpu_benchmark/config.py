"""
Benchmark configuration

Parameters (reference defaults):
- Models: mistral, llama3, gemma3 (one prompt each)
- Log interval: 120s, total duration: 600s
- Parallel inferences per cycle: 2
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigurationError
from .metrics import SAMPLERS
from .results import safe_model_name


@dataclass
class ModelSpec:
    name: str
    prompt: str


DEFAULT_MODELS = [
    ModelSpec("mistral", "Summarize the impact of AI in healthcare."),
    ModelSpec("llama3", "Describe the history of neural networks."),
    ModelSpec("gemma3", "Discuss the ethical implications of AI in business."),
]

DEFAULT_PROMPT = DEFAULT_MODELS[0].prompt

NUMBER_FIELDS = ["log_interval", "total_duration", "inference_timeout"]
INTEGER_FIELDS = ["parallelism", "max_driver_failures", "max_inference_failures", "gpu_index"]
STRING_FIELDS = ["sampler", "output_dir", "log_file", "report_file"]


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class BenchmarkConfig:
    models: List[ModelSpec] = field(default_factory=lambda: list(DEFAULT_MODELS))
    log_interval: float = 120
    total_duration: float = 600
    parallelism: int = 2
    inference_timeout: Optional[float] = None
    max_driver_failures: int = 3
    max_inference_failures: int = 3
    sampler: str = "nvidia-smi"
    gpu_index: int = 0
    output_dir: str = "."
    log_file: str = "gpu_test_log.txt"
    report_file: str = "benchmark_report.txt"
    save_json: bool = True

    def validate(self) -> "BenchmarkConfig":
        """Reject settings the loop cannot run with"""
        self._check_types()
        if not self.models:
            raise ConfigurationError("At least one model must be configured")
        file_names = {}
        for spec in self.models:
            try:
                file_name = safe_model_name(spec.name)
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
            if file_name in file_names and file_names[file_name] != spec.name:
                raise ConfigurationError(
                    f"Models {file_names[file_name]!r} and {spec.name!r} would share result files"
                )
            file_names[file_name] = spec.name
        if self.total_duration <= 0:
            raise ConfigurationError(f"total_duration must be > 0, got {self.total_duration}")
        if self.log_interval < 0:
            raise ConfigurationError(f"log_interval must be >= 0, got {self.log_interval}")
        if self.parallelism < 1:
            raise ConfigurationError(f"parallelism must be >= 1, got {self.parallelism}")
        if self.inference_timeout is not None and self.inference_timeout <= 0:
            raise ConfigurationError(
                f"inference_timeout must be > 0 when set, got {self.inference_timeout}"
            )
        if self.max_driver_failures < 1:
            raise ConfigurationError(
                f"max_driver_failures must be >= 1, got {self.max_driver_failures}"
            )
        if self.max_inference_failures < 1:
            raise ConfigurationError(
                f"max_inference_failures must be >= 1, got {self.max_inference_failures}"
            )
        if self.sampler not in SAMPLERS:
            raise ConfigurationError(
                f"Invalid sampler: {self.sampler}. Must be one of: {list(SAMPLERS)}"
            )
        return self

    def _check_types(self):
        for spec in self.models:
            if not isinstance(spec.name, str) or not isinstance(spec.prompt, str):
                raise ConfigurationError(f"Model name and prompt must be strings, got {spec!r}")
        for name in NUMBER_FIELDS:
            value = getattr(self, name)
            if value is None and name == "inference_timeout":
                continue
            if not _is_number(value):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")
        for name in INTEGER_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        for name in STRING_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, str):
                raise ConfigurationError(f"{name} must be a string, got {value!r}")
        if not isinstance(self.save_json, bool):
            raise ConfigurationError(f"save_json must be true or false, got {self.save_json!r}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchmarkConfig":
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration must be a JSON object, got {type(data).__name__}"
            )
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        values = dict(data)
        if "models" in values:
            if not isinstance(values["models"], list):
                raise ConfigurationError("models must be a list of names or objects")
            models = []
            for entry in values["models"]:
                if isinstance(entry, str):
                    models.append(ModelSpec(entry, DEFAULT_PROMPT))
                elif isinstance(entry, dict) and "name" in entry:
                    models.append(ModelSpec(entry["name"], entry.get("prompt", DEFAULT_PROMPT)))
                else:
                    raise ConfigurationError(
                        f"Each model must be a name or an object with a 'name' key, got {entry!r}"
                    )
            values["models"] = models
        return cls(**values)

    @classmethod
    def from_file(cls, path: str) -> "BenchmarkConfig":
        """Load configuration from a JSON file"""
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        try:
            with open(config_path, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {config_path}: {e}") from e
        return cls.from_dict(data)
