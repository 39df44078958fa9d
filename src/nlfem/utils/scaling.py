"""Symmetric diagonal equilibration of Newton linear systems.

The generalized-alpha Jacobian mixes a mass term and a ``Δt²``-scaled
stiffness term, and the static stiffness can span several orders of
magnitude between soft and stiff regions. Solving

    Ã x̃ = r̃,   Ã = S A S,   r̃ = S r,   S = diag(|A_ii| + ε)^(-1/2)

and recovering ``x = S x̃`` leaves the solution unchanged while bringing the
diagonal of ``Ã`` to one.
"""

from __future__ import annotations

import numpy as np
import scipy.sparse as sp


def diagonal_equilibration(A, r: np.ndarray, eps: float = 1e-12):
    """Scale ``A x = r`` symmetrically by its diagonal.

    Parameters
    ----------
    A : ndarray or sparse matrix
        Square system matrix.
    r : ndarray
        Right-hand side.
    eps : float, optional
        Added to ``|diag(A)|`` so zero pivots stay finite.

    Returns
    -------
    A_scaled, r_scaled, s : tuple
        Scaled matrix and right-hand side, and the scale vector ``s`` used by
        :func:`unscale_solution`.
    """
    diag = A.diagonal() if sp.issparse(A) else np.diag(A)
    s = 1.0 / np.sqrt(np.abs(diag) + eps)

    if sp.issparse(A):
        S = sp.diags(s, format="csr")
        A_scaled = (S @ A @ S).tocsr()
    else:
        A_scaled = s[:, None] * A * s[None, :]

    return A_scaled, s * np.asarray(r, dtype=float), s


def unscale_solution(x_scaled: np.ndarray, s: np.ndarray) -> np.ndarray:
    """Undo :func:`diagonal_equilibration` on a solution vector."""
    return s * x_scaled
