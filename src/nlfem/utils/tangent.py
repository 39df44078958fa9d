"""Tangent-matrix parametrisations for externally supplied material responses.

A trained response model usually outputs a short parameter vector ``o``
instead of a full 3x3 tangent. These helpers map ``o`` to a tangent with the
required structure (symmetric, orthotropic or symmetric positive definite).
"""

from __future__ import annotations

from typing import Callable

import numpy as np


def sym_H(o: np.ndarray) -> np.ndarray:
    """Symmetric 3x3 matrix from its 6 upper-triangular entries."""
    o = np.asarray(o, dtype=float).reshape(-1)
    if o.size != 6:
        raise ValueError(f"sym_H expects 6 parameters, got {o.size}")
    return np.array(
        [[o[0], o[1], o[2]],
         [o[1], o[3], o[4]],
         [o[2], o[4], o[5]]],
        dtype=float,
    )


def orthotropic_H(o: np.ndarray) -> np.ndarray:
    """Orthotropic plane tangent (no normal/shear coupling) from 4 parameters."""
    o = np.asarray(o, dtype=float).reshape(-1)
    if o.size != 4:
        raise ValueError(f"orthotropic_H expects 4 parameters, got {o.size}")
    return np.array(
        [[o[0], o[1], 0.0],
         [o[1], o[2], 0.0],
         [0.0, 0.0, o[3]]],
        dtype=float,
    )


def spd_H(o: np.ndarray, H0: np.ndarray) -> np.ndarray:
    """Rank-one softening of a reference SPD tangent ``H0``.

    ``H = H0 - H0 o oᵀ H0 / (1 + oᵀ H0 o)`` stays SPD for any ``o``.
    """
    o = np.asarray(o, dtype=float).reshape(-1)
    H0 = np.asarray(H0, dtype=float)
    if o.size != H0.shape[0]:
        raise ValueError(f"spd_H expects {H0.shape[0]} parameters, got {o.size}")
    H0o = H0 @ o
    return H0 - np.outer(H0o, H0o) / (1.0 + float(o @ H0o))


def spd_cholesky(o: np.ndarray) -> np.ndarray:
    """SPD 3x3 matrix ``L Lᵀ`` from the 6 entries of a lower-triangular ``L``."""
    o = np.asarray(o, dtype=float).reshape(-1)
    if o.size != 6:
        raise ValueError(f"spd_cholesky expects 6 parameters, got {o.size}")
    L = np.array(
        [[o[0], 0.0, 0.0],
         [o[1], o[3], 0.0],
         [o[2], o[4], o[5]]],
        dtype=float,
    )
    return L @ L.T


TANGENT_FORMS = {
    "sym": sym_H,
    "orthotropic": orthotropic_H,
    "cholesky": spd_cholesky,
}


def finite_difference_tangent(
    func: Callable[[np.ndarray], np.ndarray],
    x0: np.ndarray,
    h: float = 1e-7,
) -> np.ndarray:
    """Central-difference Jacobian of a vector function ``func`` at ``x0``."""
    x0 = np.asarray(x0, dtype=float).reshape(-1)
    f0 = np.asarray(func(x0), dtype=float).reshape(-1)
    J = np.zeros((f0.size, x0.size), dtype=float)
    scale = max(1.0, float(np.max(np.abs(x0)))) if x0.size else 1.0
    step = h * scale
    for i in range(x0.size):
        xp = x0.copy()
        xm = x0.copy()
        xp[i] += step
        xm[i] -= step
        J[:, i] = (np.asarray(func(xp), dtype=float).reshape(-1)
                   - np.asarray(func(xm), dtype=float).reshape(-1)) / (2.0 * step)
    return J
