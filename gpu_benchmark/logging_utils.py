import logging
from pathlib import Path
from typing import Optional


LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(log_file: Optional[str] = None, level: int = logging.INFO,
                  name: str = "gpu_benchmark") -> logging.Logger:
    """Setup logging configuration (file + console) and return the benchmark logger"""
    handlers = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )
    logger = logging.getLogger(name)
    logger.info("Benchmark logging initialized")
    return logger
