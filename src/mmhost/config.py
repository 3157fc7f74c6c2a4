"""
Mmhost Configuration Module

This module defines the configuration dataclasses for the matrix multiplication
harness. The problem parameters must match the values the accelerator image was
built with: the kernel is compiled for one fixed problem size, memory width and
element type.

For C = A × B:
- A is N×K (left operand)
- B is K×M (right operand)
- C is N×M (result)
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import numpy as np

EMULATION_ENV_VAR = "XCL_EMULATION_MODE"
"""Environment variable the XRT runtime inspects to select emulation."""

DMA_ALIGNMENT = 4096
"""Host buffer alignment required for DMA transfers, in bytes."""


class ExecutionMode(Enum):
    """
    Where the kernel runs.

    The values are the spellings accepted on the command line and used as the
    suffix of the bitstream image name.
    """

    HW = "hw"  # Real accelerator card
    HW_EMU = "hw_emu"  # Hardware emulation

    @property
    def is_emulation(self) -> bool:
        return self is ExecutionMode.HW_EMU


@dataclass
class ProblemConfig:
    """
    Configuration of one matrix multiplication problem.

    Example:
        >>> problem = ProblemConfig(size_n=64, size_k=32, size_m=16)
        >>> problem.a_packs  # 64 * 32 / 4
        512
        >>> problem.op_count  # 2 * 64 * 32 * 16
        65536
    """

    # =========================================================================
    # Matrix Dimensions
    # =========================================================================
    size_n: int = 512
    """Rows of A and C."""

    size_k: int = 512
    """Columns of A, rows of B (reduction dimension)."""

    size_m: int = 512
    """Columns of B and C."""

    # =========================================================================
    # Memory Interface
    # =========================================================================
    memory_width: int = 4
    """Elements per memory transaction (W). Must divide every matrix size."""

    alignment: int = DMA_ALIGNMENT
    """Alignment of host buffers handed to the runtime, in bytes."""

    # =========================================================================
    # Data
    # =========================================================================
    dtype: np.dtype = np.dtype(np.float32)
    """Element type. Integral types get an exact comparison."""

    seed: int = 5
    """Seed for operand generation, so runs are reproducible."""

    value_low: int = 1
    """Lower bound of generated operand values."""

    value_high: int = 10
    """Upper bound of generated operand values (inclusive for integers)."""

    # =========================================================================
    # Computed Properties
    # =========================================================================
    @property
    def a_elements(self) -> int:
        return self.size_n * self.size_k

    @property
    def b_elements(self) -> int:
        return self.size_k * self.size_m

    @property
    def c_elements(self) -> int:
        return self.size_n * self.size_m

    @property
    def a_packs(self) -> int:
        """Number of memory packs holding A."""
        return self.a_elements // self.memory_width

    @property
    def b_packs(self) -> int:
        """Number of memory packs holding B."""
        return self.b_elements // self.memory_width

    @property
    def c_packs(self) -> int:
        """Number of memory packs holding C."""
        return self.c_elements // self.memory_width

    @property
    def is_integral(self) -> bool:
        return np.issubdtype(self.dtype, np.integer)

    @property
    def tolerance(self):
        """
        Largest accepted absolute difference against the reference.

        1e-3 converted to the element type, which truncates to 0 for
        integral types.
        """
        return self.dtype.type(1e-3)

    @property
    def op_count(self) -> int:
        """Operations in one product: a multiply and an add per term."""
        return 2 * self.size_n * self.size_k * self.size_m

    def __post_init__(self):
        """Validate configuration parameters."""
        self.dtype = np.dtype(self.dtype)
        assert self.size_n > 0, "size_n must be positive"
        assert self.size_k > 0, "size_k must be positive"
        assert self.size_m > 0, "size_m must be positive"
        assert self.memory_width > 0, "memory_width must be positive"
        assert self.a_elements % self.memory_width == 0, "N*K must be divisible by memory_width"
        assert self.b_elements % self.memory_width == 0, "K*M must be divisible by memory_width"
        assert self.c_elements % self.memory_width == 0, "N*M must be divisible by memory_width"
        assert self.alignment > 0 and self.alignment & (self.alignment - 1) == 0, (
            "alignment must be a power of two"
        )
        assert self.dtype.kind in "iuf", "dtype must be an integer or floating point type"
        assert self.value_low <= self.value_high, "value_low must not exceed value_high"


@dataclass
class HarnessConfig:
    """
    Configuration for one harness run.

    The execution mode selects both the runtime and the bitstream image:

        >>> HarnessConfig(mode=ExecutionMode.HW_EMU).image_path
        PosixPath('MatrixMultiplication_hw_emu.xclbin')
    """

    mode: ExecutionMode = ExecutionMode.HW
    """Real hardware or emulation."""

    verify: bool = True
    """Transfer data and check the result against the reference."""

    problem: ProblemConfig = field(default_factory=ProblemConfig)
    """Problem the image was built for."""

    image_dir: Path = Path(".")
    """Directory holding the bitstream images."""

    image_stem: str = "MatrixMultiplication"
    """Image name without the mode suffix and extension."""

    kernel_name: str = "MatrixMultiplicationKernel"
    """Compute entry point inside the image."""

    emulation_model: str = "functional"
    """Kernel model of the emulated device: 'functional' or 'rtl'."""

    device_index: int = 0
    """Accelerator index for real hardware."""

    @property
    def image_path(self) -> Path:
        return Path(self.image_dir) / f"{self.image_stem}_{self.mode.value}.xclbin"

    def __post_init__(self):
        """Validate configuration parameters."""
        self.mode = ExecutionMode(self.mode)
        assert self.emulation_model in ("functional", "rtl"), (
            "emulation_model must be 'functional' or 'rtl'"
        )
        assert self.device_index >= 0, "device_index must be non-negative"


def apply_emulation_environment(mode: ExecutionMode, environ=None) -> None:
    """
    Set or clear the emulation variable for the XRT runtime.

    Called once at start-up. The variable is removed for real hardware so a
    value left over in the calling shell cannot switch the runtime into
    emulation.
    """
    if environ is None:
        environ = os.environ
    if ExecutionMode(mode).is_emulation:
        environ[EMULATION_ENV_VAR] = ExecutionMode.HW_EMU.value
    else:
        environ.pop(EMULATION_ENV_VAR, None)


# Pre-defined configurations
DEFAULT_PROBLEM = ProblemConfig()
"""512×512×512 single-precision problem."""

SMALL_PROBLEM = ProblemConfig(size_n=8, size_k=8, size_m=8, dtype=np.dtype(np.int32))
"""Small integer problem, fast enough for the RTL kernel model."""
