"""Newton convergence helpers (stable rules)."""

from __future__ import annotations
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class NewtonConvergence:
    abs_tol: float = 1e-8
    rel_tol: float = 1e-8
    maxiter: int = 100

    def residual_tolerance(self, norm_res0: float) -> float:
        return max(float(self.abs_tol), float(self.rel_tol) * float(norm_res0))

    def residual_converged(self, norm_res: float, norm_res0: float) -> bool:
        # either tolerance suffices
        return float(norm_res) < float(self.abs_tol) or float(norm_res) < float(self.rel_tol) * float(norm_res0)

    def exhausted(self, iterstep: int) -> bool:
        return int(iterstep) > int(self.maxiter)

    @staticmethod
    def finite(norm_res: float) -> bool:
        return bool(np.isfinite(norm_res))
