"""
Command line entry point.

Usage:
    mmhost [hw|hw_emu] [on|off]

The first argument selects real hardware (default) or emulation, the second
turns result verification on (default) or off. Anything else prints the usage
and exits with status 1 before the accelerator is touched.
"""

import sys
from argparse import ArgumentParser, Namespace

from .config import ExecutionMode, HarnessConfig, apply_emulation_environment
from .harness import run

USAGE = "%(prog)s <mode [hw/hw_emu]> [<verify [on/off]>]"


class HarnessArgumentParser(ArgumentParser):
    """ArgumentParser that reports usage errors with exit status 1."""

    def error(self, message):
        self.print_usage(sys.stdout)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> HarnessArgumentParser:
    parser = HarnessArgumentParser(
        prog="mmhost",
        usage=USAGE,
        add_help=False,
        description="Run and verify the accelerated matrix multiplication.",
    )
    parser.add_argument(
        "mode",
        nargs="?",
        default=ExecutionMode.HW.value,
        choices=[mode.value for mode in ExecutionMode],
        help="Execution mode (default: hw)",
    )
    parser.add_argument(
        "verify",
        nargs="?",
        default="on",
        choices=["on", "off"],
        help="Check the result against the reference (default: on)",
    )
    return parser


def config_from_args(args: Namespace) -> HarnessConfig:
    return HarnessConfig(mode=ExecutionMode(args.mode), verify=args.verify == "on")


def main(argv=None) -> int:
    """Parse arguments, run the harness and return the exit status."""
    args = build_parser().parse_args(argv)
    config = config_from_args(args)
    apply_emulation_environment(config.mode)
    return run(config).exit_code


if __name__ == "__main__":
    sys.exit(main())
