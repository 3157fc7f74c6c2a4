"""
Mmhost - host-side harness for an accelerated dense matrix multiplication.

This package prepares operands in the accelerator's memory pack layout, drives
the accelerator through program load, transfers and a timed kernel run, and
verifies the result against a software reference.
"""

from .config import ExecutionMode, HarnessConfig, ProblemConfig
from .harness import RunReport, run
from .runtime.base import AcceleratorError
from .session import AcceleratorSession

__version__ = "0.1.0"
__all__ = [
    "AcceleratorError",
    "AcceleratorSession",
    "ExecutionMode",
    "HarnessConfig",
    "ProblemConfig",
    "RunReport",
    "run",
    "__version__",
]
