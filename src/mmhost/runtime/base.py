"""
Accelerator runtime interface.

The harness drives the accelerator through a narrow interface:

    context = open_context(config)           # AcceleratorContext
    program = context.load(image_path)       # Program
    buf = context.allocate(bank, access, ...)  # DeviceBuffer
    kernel = program.make_kernel(name, *bufs)  # Kernel
    elapsed = kernel.execute()               # seconds

Backends implement the abstract classes below. Every failure reported by a
backend is raised as AcceleratorError.
"""

import time
from abc import ABC, abstractmethod
from enum import Flag, IntEnum, auto
from pathlib import Path

import numpy as np


class AcceleratorError(RuntimeError):
    """Failure reported by the accelerator runtime."""


class Access(Flag):
    """
    How a kernel accesses a device buffer.

    READ buffers are kernel inputs, WRITE buffers are kernel outputs. The host
    may copy into any buffer; it may only read a WRITE-only buffer back once a
    kernel has written it.
    """

    READ = auto()
    WRITE = auto()
    READ_WRITE = READ | WRITE


class MemoryBank(IntEnum):
    """Device memory banks. Inputs and outputs are spread to avoid contention."""

    BANK0 = 0
    BANK1 = 1
    BANK2 = 2
    BANK3 = 3


class DeviceBuffer(ABC):
    """
    Accelerator-resident buffer sized in memory packs.

    Attributes:
        bank: Memory bank the buffer lives in
        access: Kernel access mode
        num_packs: Number of memory packs
        memory_width: Elements per pack
        dtype: Element type
    """

    def __init__(
        self,
        bank: MemoryBank,
        access: Access,
        num_packs: int,
        memory_width: int,
        dtype,
    ):
        self.bank = MemoryBank(bank)
        self.access = access
        self.num_packs = num_packs
        self.memory_width = memory_width
        self.dtype = np.dtype(dtype)

    @property
    def shape(self) -> tuple[int, int]:
        return (self.num_packs, self.memory_width)

    @property
    def nbytes(self) -> int:
        return self.num_packs * self.memory_width * self.dtype.itemsize

    def _check_host(self, packs: np.ndarray):
        """Host arrays must match the buffer exactly; anything else is a caller bug."""
        if packs.shape != self.shape or packs.dtype != self.dtype:
            raise ValueError(
                f"Host array {packs.shape} {packs.dtype} does not match device buffer "
                f"{self.shape} {self.dtype}"
            )

    @abstractmethod
    def copy_from_host(self, packs: np.ndarray) -> None:
        """Blocking copy of host packs into the buffer."""

    @abstractmethod
    def copy_to_host(self, packs: np.ndarray) -> None:
        """Blocking copy of the buffer into host packs, overwriting them."""

    @abstractmethod
    def release(self) -> None:
        """Free the device memory. Safe to call more than once."""

    def __repr__(self):
        return (
            f"{type(self).__name__}(bank={self.bank.name}, access={self.access.name}, "
            f"packs={self.num_packs}x{self.memory_width} {self.dtype})"
        )


class Kernel(ABC):
    """Runnable kernel bound to its device buffers."""

    def __init__(self, name: str, buffers: tuple[DeviceBuffer, ...]):
        self.name = name
        self.buffers = buffers

    def execute(self) -> float:
        """
        Launch the kernel as a single task and wait for it.

        Returns:
            Wall-clock seconds from launch to completion
        """
        start = time.perf_counter()
        self._run()
        return time.perf_counter() - start

    @abstractmethod
    def _run(self) -> None:
        """Launch and block until the kernel has finished."""


class Program(ABC):
    """Bitstream image loaded onto the device."""

    def __init__(self, image_path: Path):
        self.image_path = Path(image_path)

    @abstractmethod
    def make_kernel(self, name: str, *buffers: DeviceBuffer) -> Kernel:
        """Bind the entry point `name` to its buffer arguments."""


class AcceleratorContext(ABC):
    """
    Session with one accelerator device.

    Contexts are context managers; leaving the block releases the device.
    """

    @abstractmethod
    def load(self, image_path) -> Program:
        """Program the device with a bitstream image."""

    @abstractmethod
    def allocate(
        self,
        bank: MemoryBank,
        access: Access,
        num_packs: int,
        memory_width: int,
        dtype,
    ) -> DeviceBuffer:
        """Allocate a device buffer of num_packs memory packs."""

    @abstractmethod
    def release(self) -> None:
        """Release the device. Safe to call more than once."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
