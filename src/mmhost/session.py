"""
Accelerator Session - lifecycle of one accelerator run.

The session owns the context, program, device buffers and kernel for one run
and must be used as a context manager. Resources are released in reverse order
of acquisition when the block exits, whether it exits normally or through an
exception.

Required call order inside the block:

    with AcceleratorSession(config) as session:   # acquire context
        session.program_device()                   # load bitstream image
        session.allocate()                         # A, B read-only; C write-only
        session.copy_inputs(a, b, c)               # only when verifying
        session.make_kernel()
        elapsed = session.execute()
        session.copy_output(c)                     # only when verifying

Memory placement:

    A -> BANK0 (read)     B -> BANK1 (read)     C -> BANK1 (write)
"""

from contextlib import ExitStack

from .config import HarnessConfig
from .runtime import open_context
from .runtime.base import Access, MemoryBank


class AcceleratorSession:
    """
    Scope-guarded execution session.

    Args:
        config: Harness configuration (mode, problem, image, kernel name)
        context_factory: Callable opening the runtime for a configuration
    """

    def __init__(self, config: HarnessConfig, context_factory=open_context):
        self.config = config
        self.context_factory = context_factory

        self.context = None
        self.program = None
        self.kernel = None
        self.a_device = None
        self.b_device = None
        self.c_device = None

        self._resources = None

    def __enter__(self):
        self._resources = ExitStack()
        try:
            self.acquire()
        except BaseException:
            self._close()
            raise
        return self

    def __exit__(self, exc_type, exc, tb):
        self._close()
        return False

    def _close(self):
        resources, self._resources = self._resources, None
        if resources is not None:
            resources.close()

    def _require(self, *names):
        assert self._resources is not None, "AcceleratorSession must be used in a with block"
        for name in names:
            assert getattr(self, name) is not None, f"{name} is not set up yet"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def acquire(self):
        """Open the accelerator context."""
        self._require()
        self.context = self.context_factory(self.config)
        self._resources.callback(self.context.release)

    def program_device(self, image_path=None):
        """Load the mode's bitstream image (or an explicit path)."""
        self._require("context")
        if image_path is None:
            image_path = self.config.image_path
        self.program = self.context.load(image_path)

    def allocate(self):
        """Allocate the operand and result buffers."""
        self._require("context")
        problem = self.config.problem
        self.a_device = self._allocate(MemoryBank.BANK0, Access.READ, problem.a_packs)
        self.b_device = self._allocate(MemoryBank.BANK1, Access.READ, problem.b_packs)
        self.c_device = self._allocate(MemoryBank.BANK1, Access.WRITE, problem.c_packs)

    def _allocate(self, bank, access, num_packs):
        problem = self.config.problem
        buf = self.context.allocate(bank, access, num_packs, problem.memory_width, problem.dtype)
        self._resources.callback(buf.release)
        return buf

    def copy_inputs(self, a_packs, b_packs, c_packs):
        """Copy host packs to the device. C carries the zeroed placeholder."""
        self._require("a_device", "b_device", "c_device")
        self.a_device.copy_from_host(a_packs)
        self.b_device.copy_from_host(b_packs)
        self.c_device.copy_from_host(c_packs)

    def make_kernel(self, name=None):
        """Bind the compute entry point to A, B and C."""
        self._require("program", "a_device", "b_device", "c_device")
        if name is None:
            name = self.config.kernel_name
        self.kernel = self.program.make_kernel(name, self.a_device, self.b_device, self.c_device)

    def execute(self) -> float:
        """Run the kernel to completion and return the elapsed seconds."""
        self._require("kernel")
        return self.kernel.execute()

    def copy_output(self, c_packs):
        """Copy the result back into the host packs."""
        self._require("c_device")
        self.c_device.copy_to_host(c_packs)
