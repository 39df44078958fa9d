"""Isotropic linear-elastic matrices in Voigt ordering ``[xx, yy, xy]``.

Kept free of package imports so the material models and the tangent
parametrisations can both use it.
"""

from __future__ import annotations

import numpy as np


def plane_stress_C(E: float, nu: float) -> np.ndarray:
    """Plane-stress elasticity matrix (``sigma_zz = 0``), engineering shear."""
    E = float(E)
    nu = float(nu)
    c = E / (1.0 - nu * nu)
    return np.array(
        [[c, c * nu, 0.0],
         [c * nu, c, 0.0],
         [0.0, 0.0, 0.5 * c * (1.0 - nu)]],
        dtype=float,
    )


def plane_strain_C(E: float, nu: float) -> np.ndarray:
    """Plane-strain elasticity matrix (``eps_zz = 0``), engineering shear."""
    E = float(E)
    nu = float(nu)
    c11 = E * (1.0 - nu) / ((1.0 + nu) * (1.0 - 2.0 * nu))
    c12 = c11 * nu / (1.0 - nu)
    c33 = c11 * 0.5 * (1.0 - 2.0 * nu) / (1.0 - nu)
    return np.array([[c11, c12, 0.0], [c12, c11, 0.0], [0.0, 0.0, c33]], dtype=float)
