#!/usr/bin/env python3
"""Generate the hw_emu image the emulated device loads."""

import argparse
import sys
from pathlib import Path

# Add src to path if running from scripts/
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from mmhost.config import ExecutionMode, HarnessConfig  # noqa: E402
from mmhost.runtime.emulation import write_emulation_image  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--out-dir",
        type=Path,
        default=Path("."),
        help="Directory to write the image into (default: current directory)",
    )
    args = parser.parse_args()

    config = HarnessConfig(mode=ExecutionMode.HW_EMU, image_dir=args.out_dir)
    config.image_path.parent.mkdir(parents=True, exist_ok=True)
    write_emulation_image(config.image_path, config.problem, config.kernel_name)

    print(f"Generated {config.image_path}")


if __name__ == "__main__":
    main()
