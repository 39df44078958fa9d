"""Mesh, DOF bookkeeping and the full-length displacement state.

Full DOFs are numbered node-major (``dof = node * ndofs + component``).
``EBC`` codes per DOF: ``0`` free, ``-1`` fixed to ``g``, ``-2`` prescribed by
``globdat.EBC_func(t)``. ``NBC`` codes: ``0`` no load, ``-1`` static load
``f``, ``-2`` load given by ``globdat.FBC_func(t)``. Free DOFs become
equations in ascending full-DOF order and that numbering never changes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import numpy as np

SPARSE_THRESHOLD = 500


def _table(name: str, x, shape) -> np.ndarray:
    a = np.asarray(x)
    if a.shape != shape:
        raise ValueError(f"Domain.{name} has shape {a.shape}, expected {shape}")
    return a


class Domain:
    def __init__(
        self,
        nodes,
        elements: Sequence[Any],
        ndofs: int,
        EBC,
        g,
        NBC,
        f,
        sparse: Optional[bool] = None,
    ):
        self.nodes = np.asarray(nodes, dtype=float)
        if self.nodes.ndim != 2:
            raise ValueError(f"Domain.nodes must be (nnodes, dim), got shape {self.nodes.shape}")
        self.nnodes = int(self.nodes.shape[0])
        self.ndofs = int(ndofs)
        self.elements: List[Any] = list(elements)

        shape = (self.nnodes, self.ndofs)
        self.EBC = _table("EBC", EBC, shape).astype(int)
        self.g = _table("g", g, shape).astype(float)
        self.NBC = _table("NBC", NBC, shape).astype(int)
        self.f = _table("f", f, shape).astype(float)
        for name, codes in (("EBC", self.EBC), ("NBC", self.NBC)):
            bad = np.setdiff1d(np.unique(codes), [0, -1, -2])
            if bad.size:
                raise ValueError(f"Domain.{name} contains unknown codes {bad.tolist()}")

        ebc = self.EBC.reshape(-1)
        nbc = self.NBC.reshape(-1)
        self.eq_to_dof = np.flatnonzero(ebc == 0)
        self.neqs = int(self.eq_to_dof.size)
        self.dof_to_eq = np.full(ebc.size, -1, dtype=int)
        self.dof_to_eq[self.eq_to_dof] = np.arange(self.neqs)
        self.fixed_dofs = np.flatnonzero(ebc != 0)
        self.ebc_static_dofs = np.flatnonzero(ebc == -1)
        self.ebc_time_dofs = np.flatnonzero(ebc == -2)
        self.nbc_static_dofs = np.flatnonzero(nbc == -1)
        self.nbc_time_dofs = np.flatnonzero(nbc == -2)

        nfull = self.nnodes * self.ndofs
        self.el_dofs: List[np.ndarray] = []
        self.el_eqs: List[np.ndarray] = []
        for ie, el in enumerate(self.elements):
            if getattr(el, "ndofs_per_node", self.ndofs) != self.ndofs:
                raise ValueError(f"Element {ie} has {el.ndofs_per_node} DOFs per node, domain has {self.ndofs}")
            dofs = el.dofs(self.ndofs)
            if dofs.size and (dofs.min() < 0 or dofs.max() >= nfull):
                raise ValueError(f"Element {ie} references nodes outside the mesh")
            self.el_dofs.append(dofs)
            self.el_eqs.append(self.dof_to_eq[dofs])

        self.sparse = bool(self.neqs > SPARSE_THRESHOLD) if sparse is None else bool(sparse)
        self.mass_assembled = False

        self.state = np.zeros(nfull, dtype=float)
        self.state[self.ebc_static_dofs] = self.g.reshape(-1)[self.ebc_static_dofs]
        self.Dstate = self.state.copy()

        self.history: Dict[str, List[np.ndarray]] = {"fint": [], "fext": [], "time": [], "state": []}

    def __repr__(self) -> str:
        return (
            f"Domain(nnodes={self.nnodes}, nelems={len(self.elements)}, ndofs={self.ndofs}, "
            f"neqs={self.neqs}, sparse={self.sparse})"
        )

    @staticmethod
    def _time_values(func, t: float, n: int, what: str) -> np.ndarray:
        if func is None:
            raise RuntimeError(f"{what} has -2 entries but no time function was given")
        vals = np.asarray(func(t), dtype=float).reshape(-1)
        if vals.size != n:
            raise ValueError(f"{what} time function returned {vals.size} values, expected {n}")
        return vals

    def update_state_boundary(self, globdat, time: Optional[float] = None) -> None:
        """Write the prescribed values at ``time`` (default ``globdat.time``) into ``state``."""
        t = globdat.time if time is None else float(time)
        self.state[self.ebc_static_dofs] = self.g.reshape(-1)[self.ebc_static_dofs]
        if self.ebc_time_dofs.size:
            self.state[self.ebc_time_dofs] = self._time_values(
                globdat.EBC_func, t, self.ebc_time_dofs.size, "EBC"
            )

    def prescribed_values(self, globdat, time: Optional[float] = None) -> np.ndarray:
        """Full-length vector holding only the prescribed displacements at ``time``."""
        t = globdat.time if time is None else float(time)
        u = np.zeros(self.nnodes * self.ndofs, dtype=float)
        u[self.ebc_static_dofs] = self.g.reshape(-1)[self.ebc_static_dofs]
        if self.ebc_time_dofs.size:
            u[self.ebc_time_dofs] = self._time_values(globdat.EBC_func, t, self.ebc_time_dofs.size, "EBC")
        return u

    def get_external_force(self, globdat, time: Optional[float] = None) -> np.ndarray:
        """External force over the free equations (length ``neqs``)."""
        t = globdat.time if time is None else float(time)
        full = np.zeros(self.nnodes * self.ndofs, dtype=float)
        full[self.nbc_static_dofs] = self.f.reshape(-1)[self.nbc_static_dofs]
        if self.nbc_time_dofs.size:
            full[self.nbc_time_dofs] = self._time_values(globdat.FBC_func, t, self.nbc_time_dofs.size, "NBC")
        return full[self.eq_to_dof]

    def update_states(self, globdat) -> None:
        self.state[self.eq_to_dof] = globdat.state

    def commit_history(self) -> None:
        for el in self.elements:
            el.commit_history()

    def push_history(self, fint: np.ndarray, fext: np.ndarray, time: float) -> None:
        self.history["fint"].append(np.array(fint, dtype=float, copy=True))
        self.history["fext"].append(np.array(fext, dtype=float, copy=True))
        self.history["time"].append(float(time))
        self.history["state"].append(self.state.copy())
