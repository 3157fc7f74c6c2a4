#!/usr/bin/env python3
"""
Emulated Matrix Multiply Demo.

This example runs the full harness against the emulated device without any
accelerator card or XRT installation. It shows:

1. Problem Setup
   - Choose the matrix sizes, memory width and element type
   - Write an emulation image built for exactly that problem

2. Harness Run
   - Pack A, B and C into aligned memory packs
   - Program the emulated device, allocate banks, copy, execute, copy back

3. Verification
   - Compare the result against the host reference
   - Report the kernel time and throughput

Usage:
    python 01_emulated_matmul.py [--size N] [--dtype T] [--rtl]

    --size N      Matrix size (default: 64, creates NxN matrices)
    --dtype T     Element type (default: float32)
    --rtl         Run the kernel through the Amaranth RTL model
                  (integer types only, slow for large sizes)
"""

import argparse
import sys
import tempfile
from pathlib import Path

import numpy as np

# Add src to path if running from examples/
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mmhost.config import ExecutionMode, HarnessConfig, ProblemConfig  # noqa: E402
from mmhost.harness import run  # noqa: E402
from mmhost.runtime.emulation import write_emulation_image  # noqa: E402


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Emulated Matrix Multiply Demo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--size", type=int, default=64, help="Matrix size N (default: 64)")
    parser.add_argument("--dtype", default="float32", help="Element type (default: float32)")
    parser.add_argument("--rtl", action="store_true", help="Use the RTL kernel model")
    args = parser.parse_args()

    problem = ProblemConfig(
        size_n=args.size,
        size_k=args.size,
        size_m=args.size,
        dtype=np.dtype(args.dtype),
    )

    print("=" * 60)
    print("EMULATED MATRIX MULTIPLY")
    print("=" * 60)
    print(
        f"  C[{problem.size_n}x{problem.size_m}] = "
        f"A[{problem.size_n}x{problem.size_k}] x B[{problem.size_k}x{problem.size_m}]"
    )
    print(f"  Element type: {problem.dtype}, memory width: {problem.memory_width}")
    print(f"  Kernel model: {'rtl' if args.rtl else 'functional'}")
    print()

    with tempfile.TemporaryDirectory() as image_dir:
        config = HarnessConfig(
            mode=ExecutionMode.HW_EMU,
            problem=problem,
            image_dir=Path(image_dir),
            emulation_model="rtl" if args.rtl else "functional",
        )
        write_emulation_image(config.image_path, problem, config.kernel_name)
        report = run(config)

    print()
    print("=" * 60)
    print("PASSED" if report.verified else "FAILED")
    print("=" * 60)
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
