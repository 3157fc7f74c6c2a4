"""
Harness run: data preparation, accelerator session, verification, report.

With verification on:
1. Generate A and B from the seed, zero the C placeholder, pack all three
2. Program the device, allocate buffers, copy A, B and C to the device
3. Execute the kernel and report time and throughput
4. Copy C back, run the reference and compare

With verification off only steps 2 and 3 run, without the copies.

Progress goes to standard output; accelerator errors and mismatches go to
standard error.
"""

import sys
from dataclasses import dataclass

import numpy as np

from .config import HarnessConfig
from .memory import pack, unpack
from .reference import generate_operands, reference_matmul
from .runtime import open_context
from .runtime.base import AcceleratorError
from .session import AcceleratorSession
from .verify import Mismatch, find_first_mismatch, throughput_gops


@dataclass
class RunReport:
    """Outcome of one harness run."""

    elapsed: float | None = None
    """Kernel wall-clock time in seconds, if the kernel ran."""

    gops: float | None = None
    """Throughput in GOp/s, if the kernel ran."""

    verified: bool = False
    """Result was checked and matched the reference."""

    mismatch: Mismatch | None = None
    """First failing element, if verification failed."""

    error: str | None = None
    """Accelerator error message, if the session failed."""

    @property
    def exit_code(self) -> int:
        return 1 if self.error is not None or self.mismatch is not None else 0


def run(config: HarnessConfig, context_factory=open_context) -> RunReport:
    """
    Execute one harness run.

    Args:
        config: Harness configuration
        context_factory: Callable opening the accelerator runtime

    Returns:
        RunReport describing the outcome
    """
    problem = config.problem
    report = RunReport()

    a = b = c_ref = None
    a_packs = b_packs = c_packs = None

    print("Initializing host memory...", end="", flush=True)
    if config.verify:
        a, b = generate_operands(problem)
        c_ref = np.zeros(problem.c_elements, dtype=problem.dtype)

        a_packs = pack(a, problem.memory_width, problem.alignment)
        b_packs = pack(b, problem.memory_width, problem.alignment)
        c_packs = pack(c_ref, problem.memory_width, problem.alignment)
    print(" Done.")

    try:
        print("Initializing accelerator context...", flush=True)
        with AcceleratorSession(config, context_factory) as session:
            print(f"Programming device with {config.image_path}...", flush=True)
            session.program_device()

            print("Initializing device memory...", flush=True)
            session.allocate()

            if config.verify:
                print("Copying memory to device...", flush=True)
                session.copy_inputs(a_packs, b_packs, c_packs)

            print("Creating kernel...", flush=True)
            session.make_kernel()

            print("Executing kernel...", flush=True)
            report.elapsed = session.execute()
            report.gops = throughput_gops(problem.op_count, report.elapsed)
            print(
                f"Kernel executed in {report.elapsed:.6f} seconds, "
                f"corresponding to a performance of {report.gops:.4f} GOp/s."
            )

            if config.verify:
                print("Copying back result...", flush=True)
                session.copy_output(c_packs)

    except AcceleratorError as err:
        print(f'Execution failed with error: "{err}".', file=sys.stderr)
        report.error = str(err)
        return report

    if config.verify:
        print("Running reference implementation...", flush=True)
        reference_matmul(a, b, c_ref, problem.size_n, problem.size_k, problem.size_m)

        print("Verifying result...", flush=True)
        report.mismatch = find_first_mismatch(
            unpack(c_packs), c_ref, problem.size_n, problem.size_m, problem.tolerance
        )
        if report.mismatch is not None:
            print(report.mismatch, file=sys.stderr)
            return report

        report.verified = True
        print("Successfully verified.")

    return report
