"""
Emulated Accelerator Runtime.

This module provides a software model of the accelerator for hw_emu runs. It
supports:
- Loading emulation images (xclbin magic followed by a JSON manifest)
- Bank-aware buffer allocation with per-bank capacity
- Host transfers with access-mode checks
- Kernel execution through a functional model or the RTL model

In a real system, this would be replaced by the vendor's emulation runtime.

Image layout:

    b"xclbin2\\0" {"mode": "hw_emu", "kernels": {"<name>": {<problem>}}}

Each kernel entry records the problem the kernel was built for (sizes, memory
width, dtype). The emulated device refuses images built for real hardware.
"""

import json
from pathlib import Path

import numpy as np

from ..config import ExecutionMode, ProblemConfig
from .base import (
    AcceleratorContext,
    AcceleratorError,
    Access,
    DeviceBuffer,
    Kernel,
    MemoryBank,
    Program,
)
from .rtl import simulate_matmul

XCLBIN_MAGIC = b"xclbin2\0"

DEFAULT_BANK_CAPACITY = 4 * 1024**3
"""Capacity of one emulated memory bank in bytes (4 GiB)."""

KERNEL_MODELS = ("functional", "rtl")

MATMUL_SIGNATURE = (Access.READ, Access.READ, Access.WRITE)
"""Argument access modes of the matrix multiplication entry point: A, B, C."""


def write_emulation_image(
    path,
    problem: ProblemConfig,
    kernel_name: str = "MatrixMultiplicationKernel",
    mode: ExecutionMode = ExecutionMode.HW_EMU,
) -> Path:
    """
    Write an image the emulated device can load.

    Args:
        path: Output file
        problem: Problem the kernel is built for
        kernel_name: Name of the compute entry point
        mode: Target recorded in the image

    Returns:
        Path of the written image
    """
    manifest = {
        "mode": ExecutionMode(mode).value,
        "kernels": {
            kernel_name: {
                "size_n": problem.size_n,
                "size_k": problem.size_k,
                "size_m": problem.size_m,
                "memory_width": problem.memory_width,
                "dtype": problem.dtype.name,
            }
        },
    }
    path = Path(path)
    path.write_bytes(XCLBIN_MAGIC + json.dumps(manifest, indent=2).encode())
    return path


class EmulatedBuffer(DeviceBuffer):
    """Device buffer backed by host memory."""

    def __init__(self, context: "EmulatedContext", bank, access, num_packs, memory_width, dtype):
        super().__init__(bank, access, num_packs, memory_width, dtype)
        self.context = context
        self.data = np.zeros(self.shape, dtype=self.dtype)
        self.kernel_written = False
        self.released = False

    def _check_live(self):
        if self.released:
            raise AcceleratorError(f"Use of released buffer {self!r}")
        self.context._check_live()

    def copy_from_host(self, packs):
        self._check_live()
        self._check_host(packs)
        self.data[...] = packs
        self.context.copies_to_device += 1

    def copy_to_host(self, packs):
        self._check_live()
        self._check_host(packs)
        if Access.READ not in self.access and not self.kernel_written:
            raise AcceleratorError(
                f"Write-only buffer {self!r} read back before a kernel wrote it"
            )
        packs[...] = self.data
        self.context.copies_to_host += 1

    def release(self):
        if not self.released:
            self.released = True
            self.context._free(self)


class EmulatedKernel(Kernel):
    """Matrix multiplication kernel running on the host."""

    def __init__(self, name, buffers, problem: ProblemConfig, model: str, context):
        super().__init__(name, buffers)
        self.problem = problem
        self.model = model
        self.context = context

    def _run(self):
        for buf in self.buffers:
            buf._check_live()

        a_buf, b_buf, c_buf = self.buffers
        p = self.problem
        a = a_buf.data.reshape(-1)
        b = b_buf.data.reshape(-1)

        if self.model == "rtl":
            c = simulate_matmul(a, b, p.size_n, p.size_k, p.size_m, p.memory_width, p.dtype)
        else:
            c = self._functional(a, b)

        c_buf.data[...] = c.reshape(c_buf.shape)
        c_buf.kernel_written = True
        self.context.kernel_runs += 1

    def _functional(self, a, b):
        """Stream rows of B through the output, accumulating in k order."""
        p = self.problem
        a_mat = a.reshape(p.size_n, p.size_k)
        b_mat = b.reshape(p.size_k, p.size_m)
        c_mat = np.zeros((p.size_n, p.size_m), dtype=p.dtype)
        for k in range(p.size_k):
            c_mat += a_mat[:, k, np.newaxis] * b_mat[k]
        return c_mat.reshape(-1)


class EmulatedProgram(Program):
    """Loaded emulation image."""

    def __init__(self, context: "EmulatedContext", image_path, kernels: dict):
        super().__init__(image_path)
        self.context = context
        self.kernels = kernels

    def make_kernel(self, name, *buffers):
        self.context._check_live()
        if name not in self.kernels:
            raise AcceleratorError(f"Kernel '{name}' not found in {self.image_path}")

        if len(buffers) != len(MATMUL_SIGNATURE):
            raise AcceleratorError(
                f"Kernel '{name}' takes {len(MATMUL_SIGNATURE)} arguments, got {len(buffers)}"
            )
        for index, (buf, required) in enumerate(zip(buffers, MATMUL_SIGNATURE, strict=True)):
            if getattr(buf, "context", None) is not self.context:
                raise AcceleratorError(f"Argument {index} belongs to another context")
            buf._check_live()
            if (required & buf.access) != required:
                raise AcceleratorError(
                    f"Argument {index} of '{name}' needs {required.name} access, "
                    f"buffer is {buf.access.name}"
                )

        problem = self.kernels[name]
        expected = (problem.a_packs, problem.b_packs, problem.c_packs)
        for index, (buf, num_packs) in enumerate(zip(buffers, expected, strict=True)):
            if buf.shape != (num_packs, problem.memory_width) or buf.dtype != problem.dtype:
                raise AcceleratorError(
                    f"Argument {index} of '{name}' is {buf.shape} {buf.dtype}, kernel was "
                    f"built for {(num_packs, problem.memory_width)} {problem.dtype}"
                )

        if self.context.model == "rtl" and not problem.is_integral:
            raise AcceleratorError(
                f"RTL kernel model supports integral types only, image uses {problem.dtype}"
            )
        if self.context.model == "rtl" and problem.size_k % problem.memory_width != 0:
            raise AcceleratorError(
                f"RTL kernel model streams whole packs along K, but K={problem.size_k} "
                f"is not a multiple of the memory width {problem.memory_width}"
            )

        return EmulatedKernel(name, buffers, problem, self.context.model, self.context)


class EmulatedContext(AcceleratorContext):
    """
    Emulated accelerator device.

    Attributes:
        model: Kernel model, 'functional' or 'rtl'
        bank_capacity: Bytes available in each memory bank
        bank_used: Bytes allocated per bank
        copies_to_device: Number of host-to-device copies performed
        copies_to_host: Number of device-to-host copies performed
        kernel_runs: Number of completed kernel executions

    Example:
        >>> with EmulatedContext() as ctx:
        ...     program = ctx.load("MatrixMultiplication_hw_emu.xclbin")
        ...     buf = ctx.allocate(MemoryBank.BANK0, Access.READ, 16, 4, np.float32)
    """

    def __init__(self, model: str = "functional", bank_capacity: int = DEFAULT_BANK_CAPACITY):
        if model not in KERNEL_MODELS:
            raise ValueError(f"Unknown kernel model '{model}', expected one of {KERNEL_MODELS}")
        self.model = model
        self.bank_capacity = bank_capacity
        self.bank_used = {bank: 0 for bank in MemoryBank}
        self.buffers = []
        self.programs = []
        self.released = False

        self.copies_to_device = 0
        self.copies_to_host = 0
        self.kernel_runs = 0

    def _check_live(self):
        if self.released:
            raise AcceleratorError("Accelerator context has been released")

    def load(self, image_path):
        self._check_live()
        path = Path(image_path)
        try:
            data = path.read_bytes()
        except OSError as err:
            raise AcceleratorError(f"Failed to read bitstream image {path}: {err}") from err

        if not data.startswith(XCLBIN_MAGIC):
            raise AcceleratorError(f"{path} is not an xclbin image")
        try:
            manifest = json.loads(data[len(XCLBIN_MAGIC) :])
        except (UnicodeDecodeError, json.JSONDecodeError) as err:
            raise AcceleratorError(f"{path} has no emulation metadata: {err}") from err

        if manifest.get("mode") != ExecutionMode.HW_EMU.value:
            raise AcceleratorError(
                f"{path} targets '{manifest.get('mode')}' and cannot run on the emulated device"
            )

        kernels = {}
        try:
            for name, entry in manifest["kernels"].items():
                kernels[name] = ProblemConfig(
                    size_n=entry["size_n"],
                    size_k=entry["size_k"],
                    size_m=entry["size_m"],
                    memory_width=entry["memory_width"],
                    dtype=np.dtype(entry["dtype"]),
                )
        except (KeyError, TypeError, AssertionError) as err:
            raise AcceleratorError(f"{path} has malformed kernel metadata: {err}") from err

        program = EmulatedProgram(self, path, kernels)
        self.programs.append(program)
        return program

    def allocate(self, bank, access, num_packs, memory_width, dtype):
        self._check_live()
        bank = MemoryBank(bank)
        nbytes = num_packs * memory_width * np.dtype(dtype).itemsize
        if self.bank_used[bank] + nbytes > self.bank_capacity:
            raise AcceleratorError(
                f"Allocation of {nbytes} bytes exceeds capacity of {bank.name} "
                f"({self.bank_capacity - self.bank_used[bank]} bytes free)"
            )

        buf = EmulatedBuffer(self, bank, access, num_packs, memory_width, dtype)
        self.bank_used[bank] += nbytes
        self.buffers.append(buf)
        return buf

    def _free(self, buf: EmulatedBuffer):
        self.bank_used[buf.bank] -= buf.nbytes
        self.buffers.remove(buf)

    def release(self):
        if self.released:
            return
        for buf in list(self.buffers):
            buf.release()
        self.programs.clear()
        self.released = True
