"""
Unit tests for the command line entry point.

These tests verify:
1. Accepted argument combinations and their defaults
2. Rejected arguments exit with status 1 before any run
3. The emulation environment variable follows the mode
4. An end-to-end emulation run at the default problem size
"""

import os

import pytest

from mmhost import cli
from mmhost.config import DEFAULT_PROBLEM, EMULATION_ENV_VAR, ExecutionMode, HarnessConfig
from mmhost.harness import RunReport
from mmhost.runtime.emulation import write_emulation_image


@pytest.fixture
def recorded_runs(monkeypatch):
    """Replace the harness run with a stub that records its configs."""
    runs = []

    def fake_run(config):
        runs.append(config)
        return RunReport()

    monkeypatch.setattr(cli, "run", fake_run)
    # Register the variable so the test's changes are undone
    monkeypatch.setenv(EMULATION_ENV_VAR, "unset-by-test")
    return runs


class TestArguments:
    """Test argument parsing."""

    @pytest.mark.parametrize(
        "argv, mode, verify",
        [
            ([], ExecutionMode.HW, True),
            (["hw"], ExecutionMode.HW, True),
            (["hw_emu"], ExecutionMode.HW_EMU, True),
            (["hw", "off"], ExecutionMode.HW, False),
            (["hw_emu", "on"], ExecutionMode.HW_EMU, True),
            (["hw_emu", "off"], ExecutionMode.HW_EMU, False),
        ],
    )
    def test_accepted(self, recorded_runs, argv, mode, verify):
        assert cli.main(argv) == 0
        (config,) = recorded_runs
        assert config.mode is mode
        assert config.verify is verify

    @pytest.mark.parametrize(
        "argv",
        [
            ["foo"],
            ["sw_emu"],
            ["HW"],
            ["hw", "maybe"],
            ["hw", "yes"],
            ["hw", "on", "extra"],
            ["-h"],
            ["--help"],
        ],
    )
    def test_rejected(self, recorded_runs, argv, capsys):
        """Test bad arguments print the usage and exit with status 1."""
        with pytest.raises(SystemExit) as exc_info:
            cli.main(argv)

        assert exc_info.value.code == 1
        assert recorded_runs == []
        assert "usage:" in capsys.readouterr().out

    def test_exit_status_from_report(self, monkeypatch):
        monkeypatch.setattr(cli, "run", lambda config: RunReport(error="boom"))
        monkeypatch.setenv(EMULATION_ENV_VAR, "unset-by-test")
        assert cli.main(["hw"]) == 1

    def test_config_from_args(self):
        args = cli.build_parser().parse_args(["hw_emu", "off"])
        config = cli.config_from_args(args)
        assert isinstance(config, HarnessConfig)
        assert config.image_path.name == "MatrixMultiplication_hw_emu.xclbin"


class TestEnvironment:
    """Test the emulation variable is set from the mode."""

    def test_emulation_sets_variable(self, recorded_runs):
        cli.main(["hw_emu"])
        assert os.environ[EMULATION_ENV_VAR] == "hw_emu"

    def test_hardware_clears_variable(self, recorded_runs):
        cli.main(["hw"])
        assert EMULATION_ENV_VAR not in os.environ


@pytest.mark.slow
class TestEndToEnd:
    """Test full runs through the command line."""

    def test_emulated_default_problem(self, tmp_path, monkeypatch, capsys):
        """Test the 512 problem verifies on the emulated device."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv(EMULATION_ENV_VAR, "unset-by-test")
        write_emulation_image(tmp_path / "MatrixMultiplication_hw_emu.xclbin", DEFAULT_PROBLEM)

        assert cli.main(["hw_emu", "on"]) == 0

        out = capsys.readouterr().out
        assert "Successfully verified." in out

    def test_emulated_missing_image(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv(EMULATION_ENV_VAR, "unset-by-test")

        assert cli.main(["hw_emu", "off"]) == 1
        assert "Execution failed with error" in capsys.readouterr().err
