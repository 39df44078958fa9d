"""Free-DOF kinematic state shared by the solvers."""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np


def _as_vector(name: str, x, neqs: int) -> np.ndarray:
    v = np.array(x, dtype=float, copy=True).reshape(-1)
    if v.size != int(neqs):
        raise ValueError(f"GlobalData.{name} has length {v.size}, expected neqs={neqs}")
    return v


class GlobalData:
    """Displacement, previous displacement, velocity and acceleration over the free DOFs.

    ``M`` and ``Mlumped`` stay ``None`` until
    :func:`nlfem.assembly.assemble_mass_matrix` fills them; they are assembled
    once and never rebuilt. ``EBC_func(t)`` returns the prescribed values of
    the ``-2`` tagged displacement DOFs, ``FBC_func(t)`` the values of the
    ``-2`` tagged force entries, both ordered by ascending full DOF index.
    """

    def __init__(
        self,
        state,
        Dstate,
        velo,
        acce,
        neqs: int,
        EBC_func: Optional[Callable[[float], np.ndarray]] = None,
        FBC_func: Optional[Callable[[float], np.ndarray]] = None,
        time: float = 0.0,
    ):
        self.neqs = int(neqs)
        self.state = _as_vector("state", state, self.neqs)
        self.Dstate = _as_vector("Dstate", Dstate, self.neqs)
        self.velo = _as_vector("velo", velo, self.neqs)
        self.acce = _as_vector("acce", acce, self.neqs)
        self.time = float(time)
        self.EBC_func = EBC_func
        self.FBC_func = FBC_func

        self.M = None
        self.Mlumped: Optional[np.ndarray] = None
        self.last_iterations = 0

    @classmethod
    def at_rest(cls, neqs: int, **kwargs) -> "GlobalData":
        z = np.zeros(int(neqs), dtype=float)
        return cls(z, z, z, z, neqs, **kwargs)

    @property
    def mass_assembled(self) -> bool:
        return self.M is not None
