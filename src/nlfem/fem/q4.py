"""Q4 shape functions (bilinear quadrilateral) and Gauss quadrature."""

from __future__ import annotations

import math
from typing import List, Tuple

import numpy as np

# corner natural coordinates, counter-clockwise from (-1, -1)
XI_CORNERS = np.array([-1.0, 1.0, 1.0, -1.0])
ETA_CORNERS = np.array([-1.0, -1.0, 1.0, 1.0])


def q4_shape(xi: float, eta: float):
    """``(N, dN/dxi, dN/deta)`` at one natural point, each of length 4."""
    sx = 1.0 + XI_CORNERS * xi
    se = 1.0 + ETA_CORNERS * eta
    N = 0.25 * sx * se
    dN_dxi = 0.25 * XI_CORNERS * se
    dN_deta = 0.25 * ETA_CORNERS * sx
    return N, dN_dxi, dN_deta


def gauss_legendre_2d(ngp: int) -> Tuple[np.ndarray, np.ndarray]:
    """Tensor-product Gauss rule on [-1,1]^2. Returns (points (n,2), weights (n,))."""
    if ngp == 2:
        a = 1.0 / math.sqrt(3.0)
        pts = np.array([(-a, -a), (+a, -a), (+a, +a), (-a, +a)], dtype=float)
        return pts, np.ones(4, dtype=float)
    x, w = np.polynomial.legendre.leggauss(int(ngp))
    pts: List[Tuple[float, float]] = []
    wts: List[float] = []
    for j in range(int(ngp)):
        for i in range(int(ngp)):
            pts.append((x[i], x[j]))
            wts.append(w[i] * w[j])
    return np.array(pts, dtype=float), np.array(wts, dtype=float)


def element_B_detJ(xi: float, eta: float, xe: np.ndarray):
    """Strain-displacement matrix B (3x8) and Jacobian determinant at (xi, eta)."""
    _, dN_dxi, dN_deta = q4_shape(xi, eta)
    dN_nat = np.vstack((dN_dxi, dN_deta))
    J = dN_nat @ np.asarray(xe, dtype=float)
    detJ = float(J[0, 0] * J[1, 1] - J[0, 1] * J[1, 0])
    if detJ <= 0.0:
        raise ValueError(f"Non-positive Jacobian determinant ({detJ:.3e}); check node ordering")
    dN_x, dN_y = np.linalg.solve(J, dN_nat)

    B = np.zeros((3, 8), dtype=float)
    B[0, 0::2] = dN_x
    B[1, 1::2] = dN_y
    B[2, 0::2] = dN_y
    B[2, 1::2] = dN_x
    return B, detJ


def precompute_B_detJ(xe: np.ndarray, points: np.ndarray):
    """B matrices and detJ of one element at all quadrature points.

    Returns:
      B_all[igp,3,8], detJ_all[igp]
    """
    ngp = points.shape[0]
    B_all = np.zeros((ngp, 3, 8), dtype=float)
    detJ_all = np.zeros(ngp, dtype=float)
    for igp in range(ngp):
        B, detJ = element_B_detJ(float(points[igp, 0]), float(points[igp, 1]), xe)
        B_all[igp] = B
        detJ_all[igp] = detJ
    return B_all, detJ_all
