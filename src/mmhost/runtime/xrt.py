"""
XRT Accelerator Runtime.

Drives a real accelerator card through the XRT Python bindings (pyxrt), which
are installed with XRT (typically under /opt/xilinx/xrt/python) rather than
from the package index.

Buffers are XRT buffer objects; every host copy is followed or preceded by an
explicit sync in the matching direction.

XRT places buffer objects by memory group, the index of a memory in the
loaded xclbin's topology, not by DDR bank number. Loading an image therefore
resolves each MemoryBank to the group whose topology tag names that bank
(DDR[n] or bankn); allocating in a bank the image does not contain fails.
"""

import contextlib
import re
from pathlib import Path

import numpy as np

from .base import (
    AcceleratorContext,
    AcceleratorError,
    DeviceBuffer,
    Kernel,
    MemoryBank,
    Program,
)

BANK_TAG = re.compile(r"DDR\[(\d+)\]|bank(\d+)")
"""Memory topology tags of DDR banks, e.g. DDR[1] or bank1."""


@contextlib.contextmanager
def _xrt_errors(action: str):
    """Re-raise pyxrt failures as AcceleratorError."""
    try:
        yield
    except AcceleratorError:
        raise
    except (RuntimeError, OSError, TypeError) as err:
        raise AcceleratorError(f"{action}: {err}") from err


class XrtBuffer(DeviceBuffer):
    """XRT buffer object in one memory bank."""

    def __init__(
        self, context: "XrtContext", group: int, bank, access, num_packs, memory_width, dtype
    ):
        super().__init__(bank, access, num_packs, memory_width, dtype)
        self.context = context
        self.group = group
        xrt = context.xrt
        with _xrt_errors(f"Failed to allocate {self.nbytes} bytes in {self.bank.name}"):
            self.bo = xrt.bo(context.device, self.nbytes, xrt.bo.flags.normal, group)

    def _handle(self):
        if self.bo is None:
            raise AcceleratorError(f"Use of released buffer {self!r}")
        return self.bo

    def copy_from_host(self, packs):
        self._check_host(packs)
        bo = self._handle()
        xrt = self.context.xrt
        with _xrt_errors("Failed to copy buffer to device"):
            bo.write(np.ascontiguousarray(packs), 0)
            bo.sync(xrt.xclBOSyncDirection.XCL_BO_SYNC_BO_TO_DEVICE, self.nbytes, 0)

    def copy_to_host(self, packs):
        self._check_host(packs)
        bo = self._handle()
        xrt = self.context.xrt
        with _xrt_errors("Failed to copy buffer from device"):
            bo.sync(xrt.xclBOSyncDirection.XCL_BO_SYNC_BO_FROM_DEVICE, self.nbytes, 0)
            raw = bo.read(self.nbytes, 0)
        packs[...] = np.frombuffer(raw, dtype=self.dtype).reshape(self.shape)

    def release(self):
        self.bo = None


class XrtKernel(Kernel):
    """Kernel run as a single task."""

    def __init__(self, name, buffers, handle, xrt):
        super().__init__(name, buffers)
        self.handle = handle
        self.xrt = xrt

    def _run(self):
        args = [buf._handle() for buf in self.buffers]
        with _xrt_errors(f"Failed to execute kernel '{self.name}'"):
            run = self.handle(*args)
            state = run.wait()
        if state != self.xrt.ert_cmd_state.ERT_CMD_STATE_COMPLETED:
            raise AcceleratorError(f"Kernel '{self.name}' finished in state {state}")


class XrtProgram(Program):
    """xclbin registered on the device, with its hardware context."""

    def __init__(self, context: "XrtContext", image_path, hw_context):
        super().__init__(image_path)
        self.context = context
        self.hw_context = hw_context

    def make_kernel(self, name, *buffers):
        xrt = self.context.xrt
        with _xrt_errors(f"Failed to create kernel '{name}'"):
            handle = xrt.kernel(self.hw_context, name)
        return XrtKernel(name, buffers, handle, xrt)


class XrtContext(AcceleratorContext):
    """
    Session with one XRT device.

    Args:
        device_index: Index of the card to open
    """

    def __init__(self, device_index: int = 0):
        try:
            import pyxrt
        except ImportError as err:
            raise AcceleratorError(
                "XRT Python bindings (pyxrt) are not available; source the XRT setup script"
            ) from err

        self.xrt = pyxrt
        self.device_index = device_index
        with _xrt_errors(f"Failed to open device {device_index}"):
            self.device = pyxrt.device(device_index)
        self.programs = []
        self.memory_groups = {}

    def _check_live(self):
        if self.device is None:
            raise AcceleratorError("Accelerator context has been released")

    def load(self, image_path):
        self._check_live()
        path = Path(image_path)
        if not path.is_file():
            raise AcceleratorError(f"Bitstream image not found: {path}")

        with _xrt_errors(f"Failed to program device with {path}"):
            xclbin = self.xrt.xclbin(str(path))
            self.device.register_xclbin(xclbin)
            hw_context = self.xrt.hw_context(self.device, xclbin.get_uuid())
            self.memory_groups = bank_groups(xclbin)

        program = XrtProgram(self, path, hw_context)
        self.programs.append(program)
        return program

    def allocate(self, bank, access, num_packs, memory_width, dtype):
        self._check_live()
        bank = MemoryBank(bank)
        if not self.programs:
            raise AcceleratorError("Device must be programmed before allocating buffers")
        if bank not in self.memory_groups:
            raise AcceleratorError(f"{bank.name} is not in the memory topology of the loaded image")
        group = self.memory_groups[bank]
        return XrtBuffer(self, group, bank, access, num_packs, memory_width, dtype)

    def release(self):
        self.programs.clear()
        self.memory_groups = {}
        self.device = None


def bank_groups(xclbin) -> dict[MemoryBank, int]:
    """
    Map memory banks to XRT memory groups from an xclbin's topology.

    Memories whose tag is not a DDR bank (HBM, PLRAM, host memory) and banks
    beyond MemoryBank are ignored. The first memory carrying a bank's tag wins.
    """
    groups = {}
    for mem in xclbin.get_mems():
        match = BANK_TAG.fullmatch(mem.get_tag())
        if match is None:
            continue
        number = int(match.group(1) or match.group(2))
        if number < len(MemoryBank):
            groups.setdefault(MemoryBank(number), mem.get_index())
    return groups
