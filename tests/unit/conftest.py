"""Shared fixtures for the harness unit tests."""

import numpy as np
import pytest

from mmhost.config import ExecutionMode, HarnessConfig, ProblemConfig
from mmhost.runtime.emulation import EmulatedContext, write_emulation_image


@pytest.fixture
def small_problem():
    """Small single-precision problem with non-square dimensions."""
    return ProblemConfig(size_n=8, size_k=12, size_m=16, memory_width=4, dtype=np.float32)


@pytest.fixture
def int_problem():
    """Small integer problem, suitable for the RTL model."""
    return ProblemConfig(size_n=4, size_k=8, size_m=4, memory_width=4, dtype=np.int32)


@pytest.fixture
def emu_config(tmp_path, small_problem):
    """Emulation config with a matching image written to tmp_path."""
    config = HarnessConfig(mode=ExecutionMode.HW_EMU, problem=small_problem, image_dir=tmp_path)
    write_emulation_image(config.image_path, small_problem, config.kernel_name)
    return config


@pytest.fixture
def contexts():
    """Contexts opened by emulated_factory, for inspection after a run."""
    return []


@pytest.fixture
def emulated_factory(contexts):
    """Context factory that opens emulated devices and records them."""

    def factory(config):
        ctx = EmulatedContext(model=config.emulation_model)
        contexts.append(ctx)
        return ctx

    return factory
