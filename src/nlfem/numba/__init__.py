"""Numba-accelerated kernels.

Small, *stateless* kernels compiled in Numba's ``nopython`` mode. They are
opt-in: elements use them when constructed with ``use_numba=True`` and the
pure NumPy path otherwise.
"""

from .kernels_q4 import q4_shape_numba, q4_B_detJ_numba, q4_precompute_numba

__all__ = [
    "q4_shape_numba",
    "q4_B_detJ_numba",
    "q4_precompute_numba",
]
