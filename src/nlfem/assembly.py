"""Global assembly over the free equations.

Element contributions are gathered as COO triplets and reduced once, so the
element loop carries no shared mutable matrix.
"""

from __future__ import annotations

from typing import List, Tuple

import numpy as np
import scipy.sparse as sp


def _element_vectors(domain, ie: int) -> Tuple[np.ndarray, np.ndarray]:
    dofs = domain.el_dofs[ie]
    return domain.state[dofs], domain.Dstate[dofs]


def _finish_matrix(domain, rows: List[np.ndarray], cols: List[np.ndarray], data: List[np.ndarray]):
    neqs = domain.neqs
    if rows:
        r = np.concatenate(rows)
        c = np.concatenate(cols)
        d = np.concatenate(data)
    else:
        r = c = np.zeros(0, dtype=int)
        d = np.zeros(0, dtype=float)
    K = sp.coo_matrix((d, (r, c)), shape=(neqs, neqs)).tocsr()
    if domain.sparse:
        return K
    return K.toarray()


def _scatter(eqs: np.ndarray, Ke: np.ndarray, rows, cols, data) -> None:
    mask = eqs >= 0
    if not np.any(mask):
        return
    e = eqs[mask]
    rows.append(np.repeat(e, e.size))
    cols.append(np.tile(e, e.size))
    data.append(Ke[np.ix_(mask, mask)].reshape(-1))


def assemble_internal_force(globdat, domain, dt: float = 0.0) -> np.ndarray:
    """Internal force over the free equations at ``domain.state``."""
    fint = np.zeros(domain.neqs, dtype=float)
    for ie, el in enumerate(domain.elements):
        ue, Due = _element_vectors(domain, ie)
        fe = el.get_internal_force(ue, Due, dt)
        eqs = domain.el_eqs[ie]
        mask = eqs >= 0
        np.add.at(fint, eqs[mask], fe[mask])
    return fint


def assemble_stiff_and_force(globdat, domain, dt: float = 0.0):
    """Internal force and tangent stiffness over the free equations.

    Returns ``(fint, K)``; ``K`` is a CSR matrix when ``domain.sparse`` is set,
    a dense array otherwise.
    """
    fint = np.zeros(domain.neqs, dtype=float)
    rows: List[np.ndarray] = []
    cols: List[np.ndarray] = []
    data: List[np.ndarray] = []
    for ie, el in enumerate(domain.elements):
        ue, Due = _element_vectors(domain, ie)
        fe, Ke = el.get_stiff_and_force(ue, Due, dt)
        eqs = domain.el_eqs[ie]
        mask = eqs >= 0
        np.add.at(fint, eqs[mask], fe[mask])
        _scatter(eqs, Ke, rows, cols, data)
    return fint, _finish_matrix(domain, rows, cols, data)


def assemble_mass_matrix(globdat, domain):
    """Consistent mass over the free equations plus its row-sum lumping.

    Stores the result in ``globdat.M`` / ``globdat.Mlumped`` and returns
    ``(M, Mlumped)``. The mass is assembled once per Domain.
    """
    if globdat.mass_assembled or domain.mass_assembled:
        raise RuntimeError("Mass matrix already assembled for this Domain")
    rows: List[np.ndarray] = []
    cols: List[np.ndarray] = []
    data: List[np.ndarray] = []
    for ie, el in enumerate(domain.elements):
        _scatter(domain.el_eqs[ie], el.get_mass_matrix(), rows, cols, data)
    M = _finish_matrix(domain, rows, cols, data)
    Mlumped = np.asarray(M.sum(axis=1), dtype=float).reshape(-1)
    globdat.M = M
    globdat.Mlumped = Mlumped
    domain.mass_assembled = True
    return M, Mlumped
