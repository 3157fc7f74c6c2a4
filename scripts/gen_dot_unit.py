#!/usr/bin/env python3
"""Generate Verilog for the pack dot-product unit used by the RTL kernel model."""

import argparse
import sys
from pathlib import Path

import numpy as np

# Add src to path if running from scripts/
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from amaranth.back import verilog  # noqa: E402

from mmhost.config import DEFAULT_PROBLEM, SMALL_PROBLEM, ProblemConfig  # noqa: E402
from mmhost.runtime.rtl import dot_unit_for  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--memory-width",
        type=int,
        default=DEFAULT_PROBLEM.memory_width,
        help=f"Elements per memory pack (default: {DEFAULT_PROBLEM.memory_width})",
    )
    parser.add_argument(
        "--dtype",
        default=SMALL_PROBLEM.dtype.name,
        help=f"Integral element type (default: {SMALL_PROBLEM.dtype.name})",
    )
    args = parser.parse_args()

    problem = ProblemConfig(memory_width=args.memory_width, dtype=np.dtype(args.dtype))
    if not problem.is_integral:
        parser.error(f"the RTL unit needs an integral element type, got {problem.dtype}")

    unit = dot_unit_for(problem.memory_width, problem.dtype)

    gen_dir = project_root / "gen"
    gen_dir.mkdir(exist_ok=True)
    output_path = gen_dir / f"pack_dot_product_w{problem.memory_width}_{problem.dtype.name}.v"
    with open(output_path, "w") as f:
        f.write(verilog.convert(unit, name="PackDotProduct"))

    print(f"Generated {output_path}")


if __name__ == "__main__":
    main()
