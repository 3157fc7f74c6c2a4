"""
Unit tests for the harness run.

These tests verify:
1. A verified emulation run passes and reports throughput
2. With verification off no data is generated or transferred
3. Mismatches and accelerator errors produce exit status 1 and a message
"""

import sys

import numpy as np
import pytest

from mmhost.config import ExecutionMode, HarnessConfig, ProblemConfig
from mmhost.harness import RunReport, run
from mmhost.runtime.emulation import EmulatedContext, EmulatedKernel, write_emulation_image
from mmhost.verify import Mismatch


class TestVerifiedRun:
    """Test runs with verification on."""

    def test_passes(self, emu_config, emulated_factory, contexts, capsys):
        report = run(emu_config, emulated_factory)

        assert report.verified
        assert report.exit_code == 0
        assert report.mismatch is None
        assert report.error is None
        assert report.elapsed > 0
        assert report.gops > 0

        out = capsys.readouterr().out
        assert "Initializing host memory... Done." in out
        assert "Copying memory to device..." in out
        assert "Kernel executed in" in out
        assert "Successfully verified." in out

        ctx = contexts[0]
        assert ctx.copies_to_device == 3
        assert ctx.copies_to_host == 1
        assert ctx.released

    def test_rtl_model(self, tmp_path, int_problem, emulated_factory):
        config = HarnessConfig(
            mode=ExecutionMode.HW_EMU,
            problem=int_problem,
            image_dir=tmp_path,
            emulation_model="rtl",
        )
        write_emulation_image(config.image_path, int_problem, config.kernel_name)

        report = run(config, emulated_factory)

        assert report.verified
        assert report.exit_code == 0

    def test_mismatch(self, emu_config, emulated_factory, monkeypatch, capsys):
        """Test a corrupted result is reported at its coordinate."""
        functional = EmulatedKernel._functional

        def corrupted(self, a, b):
            c = functional(self, a, b)
            c[1 * self.problem.size_m + 3] += 1.0
            return c

        monkeypatch.setattr(EmulatedKernel, "_functional", corrupted)

        report = run(emu_config, emulated_factory)

        assert not report.verified
        assert report.exit_code == 1
        assert (report.mismatch.row, report.mismatch.col) == (1, 3)

        captured = capsys.readouterr()
        assert captured.err.startswith("Mismatch at (1, 3): ")
        assert "Successfully verified." not in captured.out


class TestUnverifiedRun:
    """Test runs with verification off."""

    def test_no_data_movement(self, emu_config, emulated_factory, contexts, monkeypatch, capsys):
        """Test the kernel runs without generation, copies or reference."""

        def forbidden(*args, **kwargs):
            raise AssertionError("must not be called without verification")

        monkeypatch.setattr("mmhost.harness.generate_operands", forbidden)
        monkeypatch.setattr("mmhost.harness.reference_matmul", forbidden)
        emu_config.verify = False

        report = run(emu_config, emulated_factory)

        assert report.exit_code == 0
        assert not report.verified
        assert report.gops > 0

        ctx = contexts[0]
        assert ctx.copies_to_device == 0
        assert ctx.copies_to_host == 0
        assert ctx.kernel_runs == 1

        out = capsys.readouterr().out
        assert "Copying" not in out
        assert "Kernel executed in" in out


class TestFailures:
    """Test accelerator failures."""

    def test_missing_image(self, tmp_path, small_problem, emulated_factory, contexts, capsys):
        config = HarnessConfig(mode=ExecutionMode.HW_EMU, problem=small_problem, image_dir=tmp_path)

        report = run(config, emulated_factory)

        assert report.exit_code == 1
        assert report.elapsed is None
        assert "Failed to read bitstream image" in report.error
        assert capsys.readouterr().err.startswith('Execution failed with error: "')
        assert contexts[0].released

    def test_image_for_other_kernel(self, tmp_path, emu_config, emulated_factory, capsys):
        write_emulation_image(emu_config.image_path, emu_config.problem, "SomethingElse")

        report = run(emu_config, emulated_factory)

        assert report.exit_code == 1
        assert "not found" in capsys.readouterr().err

    def test_hardware_without_xrt(self, small_problem, monkeypatch, capsys):
        """Test hw mode fails cleanly when the XRT bindings are missing."""
        monkeypatch.setitem(sys.modules, "pyxrt", None)
        config = HarnessConfig(mode=ExecutionMode.HW, problem=small_problem)

        report = run(config)

        assert report.exit_code == 1
        assert "pyxrt" in report.error
        assert "pyxrt" in capsys.readouterr().err

    def test_rtl_model_with_partial_packs(self, tmp_path, emulated_factory, capsys):
        """Test an unsupported RTL problem fails as an accelerator error."""
        problem = ProblemConfig(size_n=4, size_k=2, size_m=4, memory_width=4, dtype=np.int32)
        config = HarnessConfig(
            mode=ExecutionMode.HW_EMU,
            problem=problem,
            image_dir=tmp_path,
            emulation_model="rtl",
        )
        write_emulation_image(config.image_path, problem, config.kernel_name)

        report = run(config, emulated_factory)

        assert report.exit_code == 1
        assert report.elapsed is None
        assert "memory width" in capsys.readouterr().err

    def test_out_of_device_memory(self, emu_config):
        def tiny_device(config):
            return EmulatedContext(bank_capacity=64)

        report = run(emu_config, tiny_device)

        assert report.exit_code == 1
        assert "exceeds capacity" in report.error


class TestRunReport:
    """Test exit status derivation."""

    @pytest.mark.parametrize(
        "report, code",
        [
            (RunReport(), 0),
            (RunReport(elapsed=1.0, gops=2.0, verified=True), 0),
            (RunReport(error="boom"), 1),
            (RunReport(mismatch=Mismatch(0, 0, np.float32(1), np.float32(2))), 1),
        ],
    )
    def test_exit_code(self, report, code):
        assert report.exit_code == code
