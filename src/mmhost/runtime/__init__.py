"""
Accelerator runtimes.

This module contains:
- AcceleratorContext and friends: the interface the harness drives
- EmulatedContext: software device for hw_emu runs
- XrtContext: real hardware through XRT
- PackDotProduct: RTL model used by the emulated device
"""

from ..config import HarnessConfig
from .base import (
    AcceleratorContext,
    AcceleratorError,
    Access,
    DeviceBuffer,
    Kernel,
    MemoryBank,
    Program,
)
from .emulation import EmulatedContext, write_emulation_image
from .rtl import PackDotProduct, simulate_matmul
from .xrt import XrtContext


def open_context(config: HarnessConfig) -> AcceleratorContext:
    """Open the runtime matching the configured execution mode."""
    if config.mode.is_emulation:
        return EmulatedContext(model=config.emulation_model)
    return XrtContext(device_index=config.device_index)


__all__ = [
    "AcceleratorContext",
    "AcceleratorError",
    "Access",
    "DeviceBuffer",
    "EmulatedContext",
    "Kernel",
    "MemoryBank",
    "PackDotProduct",
    "Program",
    "XrtContext",
    "open_context",
    "simulate_matmul",
    "write_emulation_image",
]
