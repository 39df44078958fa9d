"""Linear solves for the Newton updates and a tangent gradient test."""

from __future__ import annotations

from typing import Callable, Optional, Tuple

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from nlfem.utils.scaling import diagonal_equilibration, unscale_solution


def _solve(A, b: np.ndarray) -> np.ndarray:
    if sp.issparse(A):
        try:
            x = spla.spsolve(A.tocsc(), b)
        except Exception:
            x = spla.lsmr(A, b, atol=1e-12, btol=1e-12, maxiter=2000)[0]
        if not np.all(np.isfinite(x)):
            x = spla.lsmr(A, b, atol=1e-12, btol=1e-12, maxiter=2000)[0]
        return np.asarray(x, dtype=float).reshape(-1)
    try:
        return np.linalg.solve(A, b)
    except np.linalg.LinAlgError:
        return np.linalg.lstsq(A, b, rcond=None)[0]


def solve_linear(A, b: np.ndarray, equilibrate: bool = False) -> np.ndarray:
    """Solve ``A x = b`` for a dense array or a scipy sparse matrix.

    Singular systems fall back to a least-squares solution.
    """
    b = np.asarray(b, dtype=float)
    if b.size == 0:
        return np.zeros(0, dtype=float)
    if equilibrate:
        A_s, b_s, s = diagonal_equilibration(A, b, eps=1e-12)
        return unscale_solution(_solve(A_s, b_s), s)
    return _solve(A, b)


def gradient_test(
    func: Callable[[np.ndarray], Tuple[np.ndarray, object]],
    x0: np.ndarray,
    direction: Optional[np.ndarray] = None,
    steps: int = 5,
    seed: int = 0,
    verbose: bool = True,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Taylor test of a (value, jacobian) function.

    For ``h = 10^-1 … 10^-steps`` compares the zeroth-order remainder
    ``|f(x+hv) - f(x)|`` (expected ``O(h)``) with the first-order remainder
    ``|f(x+hv) - f(x) - h J v|`` (expected ``O(h²)`` for a consistent ``J``).

    Returns ``(h, err0, err1)``.
    """
    x0 = np.asarray(x0, dtype=float).reshape(-1)
    if direction is None:
        direction = np.random.default_rng(seed).standard_normal(x0.size)
    v = np.asarray(direction, dtype=float).reshape(-1)

    f0, J0 = func(x0)
    f0 = np.asarray(f0, dtype=float).copy()
    Jv = np.asarray(J0 @ v, dtype=float).reshape(-1)

    hs = 10.0 ** -np.arange(1, int(steps) + 1, dtype=float)
    err0 = np.zeros_like(hs)
    err1 = np.zeros_like(hs)
    for k, h in enumerate(hs):
        fh, _ = func(x0 + h * v)
        fh = np.asarray(fh, dtype=float)
        err0[k] = float(np.linalg.norm(fh - f0))
        err1[k] = float(np.linalg.norm(fh - f0 - h * Jv))

    if verbose:
        print("[gradcheck]        h      |f(x+hv)-f(x)|   |f(x+hv)-f(x)-hJv|")
        for h, e0, e1 in zip(hs, err0, err1):
            print(f"[gradcheck]  {h:9.1e}   {e0:14.6e}   {e1:14.6e}")
    return hs, err0, err1
