"""Solver parameter containers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

# keys accepted by the adaptive driver
LEGACY_KEYS = {
    "Newmark_rho": "rho_inf",
    "damped_Newton_eta": "eta",
    "Newton_maxiter": "maxiter",
    "Newton_Abs_Err": "abs_tol",
    "Newton_Rel_Err": "rel_tol",
}


def generalized_alpha_parameters(rho_inf: float) -> Tuple[float, float]:
    """(alpha_m, alpha_f) for a target high-frequency spectral radius ``rho_inf``."""
    rho = float(rho_inf)
    if not (0.0 <= rho <= 1.0):
        raise ValueError(f"Spectral radius must lie in [0, 1], got {rho_inf}")
    return (2.0 * rho - 1.0) / (rho + 1.0), rho / (rho + 1.0)


@dataclass
class NewmarkConfig:
    """Generalized-alpha / Newton parameters.

    ``rho_inf`` takes precedence over ``alpha_m``/``alpha_f`` when set.
    """

    alpha_m: float = 0.0
    alpha_f: float = 0.0
    rho_inf: Optional[float] = None

    # Newton
    eta: float = 1.0
    maxiter: int = 100
    abs_tol: float = 1e-8
    rel_tol: float = 1e-8
    failsafe: bool = False
    gradcheck: bool = False

    # Linear solver
    equilibrate: bool = False

    verbose: bool = False

    def alphas(self) -> Tuple[float, float]:
        if self.rho_inf is not None:
            return generalized_alpha_parameters(self.rho_inf)
        return float(self.alpha_m), float(self.alpha_f)

    @classmethod
    def from_args(cls, args: Mapping[str, Any], **overrides) -> "NewmarkConfig":
        missing = [k for k in LEGACY_KEYS if k not in args]
        if missing:
            raise ValueError(f"Solver arguments are missing keys: {missing}")
        kw = {field: args[key] for key, field in LEGACY_KEYS.items()}
        kw["rho_inf"] = float(kw["rho_inf"])
        kw["eta"] = float(kw["eta"])
        kw["maxiter"] = int(kw["maxiter"])
        kw["abs_tol"] = float(kw["abs_tol"])
        kw["rel_tol"] = float(kw["rel_tol"])
        kw.update(overrides)
        return cls(**kw)
