"""Small-strain elements.

An element owns its connectivity, its reference coordinates and one material
instance per quadrature point. Local DOFs are node-major
``[u1x, u1y, u2x, u2y, ...]``, matching the global numbering
``dof = node * ndofs + component`` used by :class:`nlfem.domain.Domain`.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Tuple

import numpy as np

from nlfem.fem.q4 import gauss_legendre_2d, precompute_B_detJ, q4_shape
from nlfem.material_factory import make_material


class Element:
    """Common bookkeeping: connectivity, materials and history commit."""

    ndofs_per_node = 2

    def __init__(self, coords: np.ndarray, elnodes, prop: Mapping[str, Any]):
        self.coords = np.asarray(coords, dtype=float)
        self.elnodes = np.asarray(elnodes, dtype=int).reshape(-1)
        if self.coords.shape != (self.elnodes.size, 2):
            raise ValueError(
                f"Element coordinates have shape {self.coords.shape}, expected ({self.elnodes.size}, 2)"
            )
        self.prop = dict(prop)
        self.rho = float(self.prop.get("rho", 0.0))
        self.mat: List[Any] = []

    def dofs(self, ndofs: int) -> np.ndarray:
        return (self.elnodes[:, None] * ndofs + np.arange(ndofs)[None, :]).reshape(-1)

    def commit_history(self) -> None:
        for m in self.mat:
            m.commit_history()

    def get_stress(self) -> np.ndarray:
        """Committed stress at every quadrature point (ngp, nstrain)."""
        return np.array([m.sigma0 for m in self.mat], dtype=float)

    def get_strain(self, state: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def committed_internal_force(self) -> np.ndarray:
        """Nodal force of the committed stresses; materials are not evaluated."""
        raise NotImplementedError

    def _integrate(self, state: np.ndarray, Dstate: np.ndarray, dt: float, with_tangent: bool):
        raise NotImplementedError

    def get_internal_force(self, state: np.ndarray, Dstate: np.ndarray, dt: float = 0.0) -> np.ndarray:
        fe, _ = self._integrate(state, Dstate, dt, with_tangent=False)
        return fe

    def get_stiff_and_force(self, state: np.ndarray, Dstate: np.ndarray, dt: float = 0.0) -> Tuple[np.ndarray, np.ndarray]:
        return self._integrate(state, Dstate, dt, with_tangent=True)


class SmallStrainContinuum(Element):
    """Bilinear quadrilateral (Q4), small strain, n×n Gauss integration.

    ``prop`` carries the material record plus an optional ``thickness``
    (default 1). ``B`` and ``detJ`` are precomputed at the Gauss points since
    the reference geometry never changes.
    """

    def __init__(self, coords, elnodes, prop, ngp: int = 2, use_numba: bool = False):
        super().__init__(coords, elnodes, prop)
        if self.elnodes.size != 4:
            raise ValueError(f"SmallStrainContinuum needs 4 nodes, got {self.elnodes.size}")
        self.thickness = float(self.prop.get("thickness", 1.0))
        self.points, self.weights = gauss_legendre_2d(ngp)
        self.use_numba = bool(use_numba)

        if self.use_numba:
            from nlfem.numba.kernels_q4 import q4_precompute_numba

            self.B, self.detJ = q4_precompute_numba(
                np.ascontiguousarray(self.coords, dtype=np.float64),
                np.ascontiguousarray(self.points, dtype=np.float64),
            )
            if np.any(self.detJ <= 0.0):
                raise ValueError("Non-positive Jacobian determinant; check node ordering")
        else:
            self.B, self.detJ = precompute_B_detJ(self.coords, self.points)

        self.mat = [make_material(self.prop) for _ in range(self.points.shape[0])]
        if any(getattr(m, "nstrain", 3) != 3 for m in self.mat):
            raise ValueError(f"Material '{self.prop.get('name')}' is not a 2D continuum material")

    def get_strain(self, state: np.ndarray) -> np.ndarray:
        return np.einsum("gij,j->gi", self.B, np.asarray(state, dtype=float))

    def _integrate(self, state, Dstate, dt, with_tangent):
        ue = np.asarray(state, dtype=float)
        Due = np.asarray(Dstate, dtype=float)
        fe = np.zeros(8, dtype=float)
        Ke = np.zeros((8, 8), dtype=float) if with_tangent else None
        for igp, m in enumerate(self.mat):
            B = self.B[igp]
            eps = B @ ue
            deps = eps - B @ Due
            sig, D = m.get_stress(eps, deps, dt)
            wdet = self.weights[igp] * self.detJ[igp] * self.thickness
            fe += (B.T @ sig) * wdet
            if with_tangent:
                Ke += (B.T @ D @ B) * wdet
        return fe, Ke

    def committed_internal_force(self) -> np.ndarray:
        fe = np.zeros(8, dtype=float)
        for igp, m in enumerate(self.mat):
            fe += (self.B[igp].T @ m.sigma0) * self.weights[igp] * self.detJ[igp] * self.thickness
        return fe

    def get_mass_matrix(self) -> np.ndarray:
        """Consistent mass ``∫ ρ Nᵀ N dΩ`` (8x8)."""
        Me = np.zeros((8, 8), dtype=float)
        for igp in range(self.points.shape[0]):
            N, _, _ = q4_shape(float(self.points[igp, 0]), float(self.points[igp, 1]))
            Nmat = np.zeros((2, 8), dtype=float)
            Nmat[0, 0::2] = N
            Nmat[1, 1::2] = N
            Me += self.rho * (Nmat.T @ Nmat) * self.weights[igp] * self.detJ[igp] * self.thickness
        return Me


class SmallStrainTruss(Element):
    """Two-node bar in the plane with a uniaxial material.

    Axial strain is the linearised elongation ``e · (u2 - u1) / L0`` with
    ``e`` the reference unit direction; ``prop['A0']`` is the cross-section
    area (default 1).
    """

    def __init__(self, coords, elnodes, prop, ngp: int = 1):
        super().__init__(coords, elnodes, prop)
        if self.elnodes.size != 2:
            raise ValueError(f"SmallStrainTruss needs 2 nodes, got {self.elnodes.size}")
        d = self.coords[1] - self.coords[0]
        self.L0 = float(np.linalg.norm(d))
        if self.L0 <= 0.0:
            raise ValueError("SmallStrainTruss has zero length")
        e = d / self.L0
        self.A0 = float(self.prop.get("A0", 1.0))
        self.B = np.array([[-e[0], -e[1], e[0], e[1]]], dtype=float) / self.L0

        x, w = np.polynomial.legendre.leggauss(int(ngp))
        self.weights = 0.5 * self.L0 * np.asarray(w, dtype=float)
        self.mat = [make_material(self.prop) for _ in range(int(ngp))]
        if any(getattr(m, "nstrain", 1) != 1 for m in self.mat):
            raise ValueError(f"Material '{self.prop.get('name')}' is not a uniaxial material")

    def get_strain(self, state: np.ndarray) -> np.ndarray:
        eps = self.B @ np.asarray(state, dtype=float)
        return np.tile(eps, (len(self.mat), 1))

    def _integrate(self, state, Dstate, dt, with_tangent):
        eps = self.B @ np.asarray(state, dtype=float)
        deps = eps - self.B @ np.asarray(Dstate, dtype=float)
        fe = np.zeros(4, dtype=float)
        Ke = np.zeros((4, 4), dtype=float) if with_tangent else None
        for igp, m in enumerate(self.mat):
            sig, D = m.get_stress(eps, deps, dt)
            wA = self.weights[igp] * self.A0
            fe += (self.B.T @ sig) * wA
            if with_tangent:
                Ke += (self.B.T @ D @ self.B) * wA
        return fe, Ke

    def committed_internal_force(self) -> np.ndarray:
        fe = np.zeros(4, dtype=float)
        for igp, m in enumerate(self.mat):
            fe += (self.B.T @ m.sigma0) * self.weights[igp] * self.A0
        return fe

    def get_mass_matrix(self) -> np.ndarray:
        """Consistent bar mass ``ρ A L0 / 6 [[2I, I], [I, 2I]]``."""
        I2 = np.eye(2)
        return self.rho * self.A0 * self.L0 / 6.0 * np.block([[2.0 * I2, I2], [I2, 2.0 * I2]])
