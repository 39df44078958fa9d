"""Small Q4 (bilinear quad) kernels."""

from __future__ import annotations

import numpy as np
from numba import njit


# natural coordinates of the four corners, counter-clockwise
_XI_A = np.array((-1.0, 1.0, 1.0, -1.0))
_ETA_A = np.array((-1.0, -1.0, 1.0, 1.0))


@njit(cache=True)
def q4_shape_numba(xi: float, eta: float):
    """``N``, ``dN/dxi`` and ``dN/deta`` at one natural point, each (4,)."""
    N = np.empty(4, dtype=np.float64)
    dN_dxi = np.empty(4, dtype=np.float64)
    dN_deta = np.empty(4, dtype=np.float64)
    for a in range(4):
        sx = 1.0 + _XI_A[a] * xi
        se = 1.0 + _ETA_A[a] * eta
        N[a] = 0.25 * sx * se
        dN_dxi[a] = 0.25 * _XI_A[a] * se
        dN_deta[a] = 0.25 * _ETA_A[a] * sx
    return N, dN_dxi, dN_deta


@njit(cache=True)
def q4_B_detJ_numba(xi: float, eta: float, xe: np.ndarray):
    """B (3x8) and detJ at one natural point; ``xe`` is (4,2)."""
    _N, dN_dxi, dN_deta = q4_shape_numba(xi, eta)
    j00 = 0.0
    j01 = 0.0
    j10 = 0.0
    j11 = 0.0
    for a in range(4):
        j00 += dN_dxi[a] * xe[a, 0]
        j01 += dN_dxi[a] * xe[a, 1]
        j10 += dN_deta[a] * xe[a, 0]
        j11 += dN_deta[a] * xe[a, 1]
    detJ = j00 * j11 - j01 * j10
    inv00 = j11 / detJ
    inv01 = -j01 / detJ
    inv10 = -j10 / detJ
    inv11 = j00 / detJ

    B = np.zeros((3, 8), dtype=np.float64)
    for a in range(4):
        dx = inv00 * dN_dxi[a] + inv01 * dN_deta[a]
        dy = inv10 * dN_dxi[a] + inv11 * dN_deta[a]
        B[0, 2 * a] = dx
        B[1, 2 * a + 1] = dy
        B[2, 2 * a] = dy
        B[2, 2 * a + 1] = dx
    return B, detJ


@njit(cache=True)
def q4_precompute_numba(xe: np.ndarray, points: np.ndarray):
    """B matrices (ngp,3,8) and detJ (ngp,) at all quadrature points of one element."""
    ngp = points.shape[0]
    B_all = np.zeros((ngp, 3, 8), dtype=np.float64)
    detJ_all = np.zeros(ngp, dtype=np.float64)
    for igp in range(ngp):
        B, detJ = q4_B_detJ_numba(points[igp, 0], points[igp, 1], xe)
        B_all[igp, :, :] = B
        detJ_all[igp] = detJ
    return B_all, detJ_all
