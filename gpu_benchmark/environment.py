"""
Environment checks for the GPU benchmark

Confirms the external tools the benchmark shells out to are callable and
collects basic host information for the results files. Installing those
tools is left to the operator.
"""

import os
import sys
import shutil
import platform
import subprocess
from datetime import datetime
from typing import Any, Dict, List, Tuple

import psutil


TOOL_CHECKS: List[Tuple[str, List[str]]] = [
    ("nvidia-smi", ["nvidia-smi", "--query-gpu=name", "--format=csv,noheader"]),
    ("ollama", ["ollama", "--version"]),
    ("git", ["git", "--version"]),
]


def check_tool(cmd: List[str], timeout: float = 10.0) -> bool:
    """Return True when the command exists and exits with status 0"""
    if shutil.which(cmd[0]) is None:
        return False
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0


def check_environment(logger=None) -> Dict[str, bool]:
    """Check that the benchmark can run and report each check"""
    print("🔍 Checking benchmark environment...")

    checks = {"Python": sys.version_info >= (3, 8)}
    for name, cmd in TOOL_CHECKS:
        checks[name] = check_tool(cmd)

    for check, status in checks.items():
        status_symbol = "✅" if status else "❌"
        print(f"  {status_symbol} {check}")
        if logger is not None:
            logger.info(f"[{'ok' if status else 'missing'}] {check}")

    return checks


def get_system_info() -> Dict[str, Any]:
    """Get system information"""
    return {
        "hostname": platform.node(),
        "platform": platform.platform(),
        "python_version": platform.python_version(),
        "cpu_count": psutil.cpu_count(),
        "memory_total_gb": round(psutil.virtual_memory().total / (1024**3), 2),
        "python_pid": os.getpid(),
        "benchmark_time": datetime.now().isoformat(),
    }
