"""State stored at one integration point.

A material keeps two of these: ``committed`` for the last accepted step and
``trial`` for the latest constitutive evaluation. Newton iterations write
only ``trial``; ``commit_history`` promotes it.

Vectors use Voigt order ``[xx, yy, xy]`` (engineering shear) for continua and
length 1 for bars.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

import numpy as np


def _zeros3() -> np.ndarray:
    return np.zeros(3, dtype=float)


def _dup(val: Any) -> Any:
    return val.copy() if isinstance(val, np.ndarray) else val


@dataclass
class MaterialPoint:
    """Strain, stress and internal variables of one point.

    ``eps_p`` is the plastic strain, ``kappa`` the accumulated equivalent
    plastic strain, ``tangent`` the algorithmic tangent that goes with
    ``sigma``. ``extra`` carries model-specific values such as the
    out-of-plane strain of plane-stress plasticity.
    """

    eps: np.ndarray = field(default_factory=_zeros3)
    sigma: np.ndarray = field(default_factory=_zeros3)
    eps_p: np.ndarray = field(default_factory=_zeros3)
    kappa: float = 0.0
    tangent: Optional[np.ndarray] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def zeros(cls, nstrain: int = 3) -> "MaterialPoint":
        n = int(nstrain)
        return cls(eps=np.zeros(n), sigma=np.zeros(n), eps_p=np.zeros(n))

    def copy_shallow(self) -> "MaterialPoint":
        """Independent copy: arrays are duplicated, scalars shared."""
        return replace(
            self,
            eps=self.eps.copy(),
            sigma=self.sigma.copy(),
            eps_p=self.eps_p.copy(),
            kappa=float(self.kappa),
            tangent=_dup(self.tangent),
            extra={k: _dup(v) for k, v in self.extra.items()},
        )
