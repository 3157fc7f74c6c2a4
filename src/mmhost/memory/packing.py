"""
Memory pack conversion for the accelerator's wide memory interface.

The kernel reads and writes memory in transactions of W consecutive elements
(a memory pack). On the host a sequence of packs is a C-contiguous array of
shape (L / W, W) whose data pointer is aligned for DMA:

    operand:  [e0 e1 e2 e3 e4 e5 e6 e7 ...]
    packs:    [[e0 e1 e2 e3]
               [e4 e5 e6 e7]
               ...          ]

The runtime rejects or slow-paths buffers that are not aligned, so every pack
array handed to it comes from aligned_empty().
"""

import numpy as np

from ..config import DMA_ALIGNMENT


def aligned_empty(shape, dtype, alignment: int = DMA_ALIGNMENT) -> np.ndarray:
    """
    Allocate an uninitialized array whose data starts on an alignment boundary.

    Over-allocates a byte buffer and returns a view starting at the first
    aligned address. The view keeps the underlying buffer alive.

    Args:
        shape: Array shape
        dtype: Element type
        alignment: Required alignment in bytes (power of two)

    Returns:
        C-contiguous array of the requested shape and dtype
    """
    dtype = np.dtype(dtype)
    shape = tuple(np.atleast_1d(shape).tolist())
    nbytes = int(np.prod(shape)) * dtype.itemsize

    raw = np.empty(nbytes + alignment, dtype=np.uint8)
    offset = (-raw.ctypes.data) % alignment
    return raw[offset : offset + nbytes].view(dtype).reshape(shape)


def is_aligned(array: np.ndarray, alignment: int = DMA_ALIGNMENT) -> bool:
    """Check that an array's data pointer sits on an alignment boundary."""
    return array.ctypes.data % alignment == 0


def pack(operand: np.ndarray, memory_width: int, alignment: int = DMA_ALIGNMENT) -> np.ndarray:
    """
    Pack a flat operand into memory packs of memory_width elements.

    Pack i holds elements [i*W, (i+1)*W) of the operand. The operand length
    must be a multiple of memory_width. The input is not modified.

    Args:
        operand: Row-major matrix elements (any shape, read in C order)
        memory_width: Elements per memory pack
        alignment: Alignment of the returned buffer in bytes

    Returns:
        Aligned array of shape (len(operand) // memory_width, memory_width)

    Example:
        >>> pack(np.arange(8, dtype=np.int32), 4)
        array([[0, 1, 2, 3],
               [4, 5, 6, 7]], dtype=int32)
    """
    flat = np.asarray(operand).reshape(-1)
    packs = aligned_empty((flat.size // memory_width, memory_width), flat.dtype, alignment)
    packs[...] = flat.reshape(-1, memory_width)
    return packs


def unpack(packs: np.ndarray) -> np.ndarray:
    """
    Flatten memory packs back into a scalar sequence.

    Inverse of pack(): unpack(pack(x, w)) equals x element for element.

    Returns:
        New one-dimensional array in pack order
    """
    return np.array(packs, copy=True).reshape(-1)
