"""
Pack Dot-Product Unit - RTL model of the kernel's compute lane.

Each cycle the unit takes one memory pack of A (W consecutive elements of a
row) and one pack of B (W consecutive elements of a column), forms the W
products and adds their sum to an accumulator:

    acc = (first ? 0 : acc) + sum(a[l] * b[l] for l in range(W))

A full output element C[i][j] takes K / W cycles. The accumulator has the
width of the element type and wraps on overflow like the element type does.

simulate_matmul() drives the unit through amaranth.sim for a whole problem.
Simulation costs N * M * K / W cycles, so it is meant for small problems.
"""

import numpy as np
from amaranth import Module, Signal, signed, unsigned
from amaranth.lib.wiring import Component, In, Out
from amaranth.sim import Simulator


class PackDotProduct(Component):
    """
    Multiply-accumulate over one memory pack per cycle.

    Ports:
        a0..a{W-1}: Lanes of the A pack
        b0..b{W-1}: Lanes of the B pack
        in_valid: Lanes hold valid data this cycle
        in_first: First pack of an output element (restart accumulation)

        out_acc: Accumulated value (updated one cycle after valid input)

    Parameters:
        memory_width: Lanes per pack (W)
        element_bits: Bit width of one element
        is_signed: Elements are two's complement
    """

    def __init__(self, memory_width: int, element_bits: int, is_signed: bool = True):
        self.memory_width = memory_width
        self.element_bits = element_bits
        self.is_signed = is_signed

        shape = signed(element_bits) if is_signed else unsigned(element_bits)

        ports = {}
        for lane in range(memory_width):
            ports[f"a{lane}"] = In(shape)
            ports[f"b{lane}"] = In(shape)
        ports.update(
            {
                "in_valid": In(1),
                "in_first": In(1),
                "out_acc": Out(shape),
            }
        )
        super().__init__(ports)

    @property
    def a_lanes(self):
        return [getattr(self, f"a{lane}") for lane in range(self.memory_width)]

    @property
    def b_lanes(self):
        return [getattr(self, f"b{lane}") for lane in range(self.memory_width)]

    def elaborate(self, _platform):
        m = Module()
        shape = signed(self.element_bits) if self.is_signed else unsigned(self.element_bits)

        # Sum of the lane products, truncated to the element width
        beat_sum = Signal(shape, name="beat_sum")
        products = [a * b for a, b in zip(self.a_lanes, self.b_lanes, strict=True)]
        m.d.comb += beat_sum.eq(sum(products[1:], products[0]))

        acc = Signal(shape, name="acc")
        with m.If(self.in_valid):
            with m.If(self.in_first):
                m.d.sync += acc.eq(beat_sum)
            with m.Else():
                m.d.sync += acc.eq(acc + beat_sum)

        m.d.comb += self.out_acc.eq(acc)

        return m


def dot_unit_for(memory_width: int, dtype) -> PackDotProduct:
    """Build the dot-product unit for packs of memory_width elements of an integral dtype."""
    dtype = np.dtype(dtype)
    assert np.issubdtype(dtype, np.integer), "RTL model supports integral types only"
    return PackDotProduct(
        memory_width,
        dtype.itemsize * 8,
        is_signed=bool(np.issubdtype(dtype, np.signedinteger)),
    )


def simulate_matmul(
    a: np.ndarray,
    b: np.ndarray,
    size_n: int,
    size_k: int,
    size_m: int,
    memory_width: int,
    dtype,
) -> np.ndarray:
    """
    Compute C = A × B by simulating PackDotProduct cycle by cycle.

    Rows of A and columns of B are streamed one memory pack per cycle.

    Args:
        a: N×K operand, flat row-major, integral dtype
        b: K×M operand, flat row-major, integral dtype
        size_n, size_k, size_m: Problem dimensions
        memory_width: Elements per pack (must divide size_k)
        dtype: Element type of the result

    Returns:
        N×M result, flat row-major
    """
    dtype = np.dtype(dtype)
    assert size_k % memory_width == 0, "size_k must be divisible by memory_width"

    dut = dot_unit_for(memory_width, dtype)

    beats = size_k // memory_width
    a_rows = a.reshape(size_n, beats, memory_width)
    b_cols = b.reshape(size_k, size_m).T.reshape(size_m, beats, memory_width)
    result = np.zeros(size_n * size_m, dtype=dtype)

    a_lanes = dut.a_lanes
    b_lanes = dut.b_lanes

    async def testbench(ctx):
        for i in range(size_n):
            for j in range(size_m):
                for beat in range(beats):
                    for lane in range(memory_width):
                        ctx.set(a_lanes[lane], int(a_rows[i, beat, lane]))
                        ctx.set(b_lanes[lane], int(b_cols[j, beat, lane]))
                    ctx.set(dut.in_valid, 1)
                    ctx.set(dut.in_first, int(beat == 0))
                    await ctx.tick()
                ctx.set(dut.in_valid, 0)
                result[i * size_m + j] = ctx.get(dut.out_acc)

    sim = Simulator(dut)
    sim.add_clock(1e-8)
    sim.add_testbench(testbench)
    sim.run()

    return result
