"""Post-processing of domain history and committed element state."""

from __future__ import annotations

from typing import Dict, List

import numpy as np


def history_arrays(domain) -> Dict[str, np.ndarray]:
    """Stack ``domain.history`` into arrays (one row per accepted step)."""
    out: Dict[str, np.ndarray] = {}
    for key, rows in domain.history.items():
        if not rows:
            out[key] = np.zeros((0,), dtype=float)
        elif key == "time":
            out[key] = np.asarray(rows, dtype=float)
        else:
            out[key] = np.vstack(rows)
    return out


def full_internal_force(domain) -> np.ndarray:
    """Full-length internal force vector from the committed stresses."""
    f = np.zeros(domain.nnodes * domain.ndofs, dtype=float)
    for ie, el in enumerate(domain.elements):
        np.add.at(f, domain.el_dofs[ie], el.committed_internal_force())
    return f


def reaction_forces(domain) -> np.ndarray:
    """Reaction at every constrained DOF, ordered as ``domain.fixed_dofs``.

    Quasi-static reading: inertia of the constrained DOFs is not included.
    """
    return full_internal_force(domain)[domain.fixed_dofs]


def kinetic_energy(globdat) -> float:
    if globdat.M is None:
        raise RuntimeError("Mass matrix not assembled")
    v = globdat.velo
    return 0.5 * float(v @ (globdat.M @ v))


def element_stresses(domain) -> List[np.ndarray]:
    """Committed quadrature-point stresses per element."""
    return [el.get_stress() for el in domain.elements]


def nodal_displacements(domain) -> np.ndarray:
    return domain.state.reshape(domain.nnodes, domain.ndofs).copy()
