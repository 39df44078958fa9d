"""Constitutive models behind the element/material contract.

Elements call a material through three operations:

* ``get_stress(strain, dstrain, dt) -> (stress, tangent)`` evaluates the
  response at a trial strain starting from the *committed* history. The
  result is stored as the trial state; the committed state is never touched.
* ``get_tangent()`` returns the most recently computed tangent.
* ``commit_history()`` promotes trial -> committed. The solvers call it once
  per accepted step, never on a rejected Newton attempt.

Strains use Voigt ordering ``[exx, eyy, gxy]`` (engineering shear) for the
2D continua and a single axial component for 1D materials.

Models:
  - Linear elastic plane strain / plane stress
  - J2 (von Mises) plasticity with linear isotropic hardening, plane stress
    (local Newton on ``eps_zz``) and plane strain, consistent tangent
  - Uniaxial elasticity/plasticity for truss elements
  - An adapter for externally supplied (e.g. trained) response models
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Tuple

import numpy as np

from nlfem.linear_elastic import plane_strain_C, plane_stress_C
from nlfem.material_point import MaterialPoint
from nlfem.utils.tangent import TANGENT_FORMS, finite_difference_tangent, spd_H


# ----------------------------
# Utilities (Voigt <-> tensor)
# ----------------------------


def _strain6_to_tensor(eps6: np.ndarray) -> np.ndarray:
    """Engineering-strain Voigt6 [xx, yy, zz, xy, yz, xz] -> symmetric tensor."""
    e = np.asarray(eps6, dtype=float).reshape(6)
    E = np.zeros((3, 3), dtype=float)
    E[0, 0] = e[0]
    E[1, 1] = e[1]
    E[2, 2] = e[2]
    E[0, 1] = E[1, 0] = 0.5 * e[3]
    E[1, 2] = E[2, 1] = 0.5 * e[4]
    E[0, 2] = E[2, 0] = 0.5 * e[5]
    return E


def _tensor_to_strain6(E: np.ndarray) -> np.ndarray:
    """Symmetric strain tensor -> engineering-strain Voigt6."""
    return np.array(
        [E[0, 0], E[1, 1], E[2, 2], 2.0 * E[0, 1], 2.0 * E[1, 2], 2.0 * E[0, 2]],
        dtype=float,
    )


def _tensor_to_stress6(S: np.ndarray) -> np.ndarray:
    """Symmetric stress tensor -> stress Voigt6."""
    return np.array([S[0, 0], S[1, 1], S[2, 2], S[0, 1], S[1, 2], S[0, 2]], dtype=float)


def _iso_lame(E: float, nu: float) -> Tuple[float, float]:
    """Return (mu, K) for 3D isotropic elasticity."""
    E = float(E)
    nu = float(nu)
    mu = E / (2.0 * (1.0 + nu))
    K = E / (3.0 * (1.0 - 2.0 * nu))
    return mu, K


def _condense_plane_stress(C6: np.ndarray) -> np.ndarray:
    """Schur-condense a 6x6 tangent to plane stress (xx,yy,xy) eliminating zz."""
    C4 = np.asarray(C6, dtype=float)[np.ix_([0, 1, 2, 3], [0, 1, 2, 3])]
    Cii = C4[np.ix_([0, 1, 3], [0, 1, 3])]
    Ci2 = C4[np.ix_([0, 1, 3], [2])]
    C2i = C4[np.ix_([2], [0, 1, 3])]
    C22 = float(C4[2, 2])
    if abs(C22) < 1e-24:
        return Cii
    return Cii - (Ci2 @ C2i) / C22


def _j2_return_mapping_3d(
    E: float,
    nu: float,
    eps6: np.ndarray,
    eps_p6_old: np.ndarray,
    kappa_old: float,
    sigmaY: float,
    K_hard: float,
) -> Tuple[np.ndarray, np.ndarray, float, np.ndarray]:
    """Radial return for von Mises plasticity. Returns (sig6, eps_p6, kappa, Cep6)."""
    mu, Kb = _iso_lame(E, nu)
    I = np.eye(3)

    Ee = _strain6_to_tensor(np.asarray(eps6, dtype=float) - np.asarray(eps_p6_old, dtype=float))
    tr_e = float(np.trace(Ee))
    s_tr = 2.0 * mu * (Ee - tr_e / 3.0 * I)
    q_tr = float(np.sqrt(1.5 * np.sum(s_tr * s_tr)))

    f_tr = q_tr - (float(sigmaY) + float(K_hard) * float(kappa_old))
    if f_tr <= 0.0 or q_tr <= 1e-300:
        dgamma = 0.0
        n_hat = np.zeros((3, 3), dtype=float)
        theta, theta_bar = 1.0, 0.0
    else:
        dgamma = f_tr / (3.0 * mu + float(K_hard))
        n_hat = s_tr / float(np.sqrt(np.sum(s_tr * s_tr)))
        theta = 1.0 - 3.0 * mu * dgamma / q_tr
        theta_bar = 1.0 / (1.0 + float(K_hard) / (3.0 * mu)) - (1.0 - theta)

    S_new = Kb * tr_e * I + theta * s_tr
    sig6 = _tensor_to_stress6(S_new)

    # flow direction 3/2 s/q, plastic strain stays deviatoric
    Ep_old = _strain6_to_tensor(np.asarray(eps_p6_old, dtype=float))
    Ep_new = Ep_old + dgamma * np.sqrt(1.5) * n_hat
    eps_p6 = _tensor_to_strain6(Ep_new)
    kappa = float(kappa_old) + dgamma

    def apply_Cep(Eps: np.ndarray) -> np.ndarray:
        trE = float(np.trace(Eps))
        dev = Eps - trE / 3.0 * I
        return Kb * trE * I + 2.0 * mu * theta * dev - 2.0 * mu * theta_bar * float(np.sum(n_hat * dev)) * n_hat

    # column-by-column application to unit engineering strains
    Cep6 = np.zeros((6, 6), dtype=float)
    for j in range(6):
        ej = np.zeros(6, dtype=float)
        ej[j] = 1.0
        Cep6[:, j] = _tensor_to_stress6(apply_Cep(_strain6_to_tensor(ej)))

    return sig6, eps_p6, kappa, Cep6


# ----------------------------
# Protocol + trial/commit base
# ----------------------------


class Material(Protocol):
    rho: float

    def get_stress(self, strain: np.ndarray, dstrain: np.ndarray, dt: float = 0.0) -> Tuple[np.ndarray, np.ndarray]:
        """Return (stress, tangent) at a trial strain and store the trial state."""

    def get_tangent(self) -> np.ndarray:
        """Most recently computed tangent."""

    def commit_history(self) -> None:
        """Promote the trial state to the committed state."""


class _TrialCommit:
    """Two explicit history slots per material: ``committed`` and ``trial``."""

    nstrain: int = 3

    def _init_history(self, tangent0: np.ndarray) -> None:
        self.committed = MaterialPoint.zeros(self.nstrain)
        self.committed.tangent = np.array(tangent0, dtype=float, copy=True)
        self.trial = self.committed.copy_shallow()

    def _store_trial(self, mp: MaterialPoint) -> Tuple[np.ndarray, np.ndarray]:
        self.trial = mp
        return mp.sigma.copy(), mp.tangent

    def _zero_increment(self, eps: np.ndarray) -> bool:
        return np.array_equal(eps, self.committed.eps) and self.committed.tangent is not None

    @property
    def sigma0(self) -> np.ndarray:
        return self.committed.sigma

    @property
    def eps0(self) -> np.ndarray:
        return self.committed.eps

    def get_tangent(self) -> np.ndarray:
        return self.trial.tangent

    def commit_history(self) -> None:
        self.committed = self.trial.copy_shallow()


def _as_strain(strain: np.ndarray, n: int) -> np.ndarray:
    eps = np.asarray(strain, dtype=float).reshape(-1)
    if eps.size != n:
        raise ValueError(f"Expected a strain vector of length {n}, got {eps.size}")
    return eps


# ----------------------------
# Linear elastic
# ----------------------------


@dataclass
class _LinearElastic2D(_TrialCommit):
    E: float
    nu: float
    rho: float = 0.0

    def _stiffness(self) -> np.ndarray:
        raise NotImplementedError

    def __post_init__(self) -> None:
        self.H = self._stiffness()
        self._init_history(self.H)

    def get_stress(self, strain, dstrain=None, dt: float = 0.0):
        eps = _as_strain(strain, 3)
        mp = MaterialPoint(eps=eps.copy(), sigma=self.H @ eps, tangent=self.H)
        return self._store_trial(mp)


@dataclass
class PlaneStrain(_LinearElastic2D):
    """Isotropic linear elasticity under plane strain."""

    def _stiffness(self) -> np.ndarray:
        return plane_strain_C(self.E, self.nu)


@dataclass
class PlaneStress(_LinearElastic2D):
    """Isotropic linear elasticity under plane stress."""

    def _stiffness(self) -> np.ndarray:
        return plane_stress_C(self.E, self.nu)


# -------------------------------------
# J2 plasticity (linear isotropic hardening)
# -------------------------------------


@dataclass
class PlaneStressPlasticity(_TrialCommit):
    """Von Mises plasticity with linear isotropic hardening, plane stress.

    Parameters
    ----------
    E, nu:
        3D elastic constants.
    sigmaY:
        Initial uniaxial yield stress.
    K:
        Isotropic hardening modulus on the equivalent plastic strain.

    Plane stress requires an internal out-of-plane strain ``eps_zz`` with
    ``sigma_zz = 0``; it is found by a local Newton iteration using the
    algorithmic tangent, and the returned tangent is the Schur complement of
    the 3D consistent tangent.
    """

    E: float
    nu: float
    sigmaY: float
    K: float = 0.0
    rho: float = 0.0
    plane_stress_tol: float = 1e-12
    plane_stress_maxit: int = 25

    def __post_init__(self) -> None:
        self._init_history(plane_stress_C(self.E, self.nu))
        self.committed.extra["eps_p6"] = np.zeros(6, dtype=float)
        self.committed.extra["eps_zz"] = 0.0
        self.trial = self.committed.copy_shallow()

    def get_stress(self, strain, dstrain=None, dt: float = 0.0):
        eps = _as_strain(strain, 3)
        if self._zero_increment(eps):
            return self._store_trial(self.committed.copy_shallow())

        c = self.committed
        eps_p6_old = np.asarray(c.extra["eps_p6"], dtype=float)
        # elastic plane-stress guess relative to the committed out-of-plane strain
        ezz = float(c.extra["eps_zz"]) - self.nu / (1.0 - self.nu) * float(
            (eps[0] - c.eps[0]) + (eps[1] - c.eps[1])
        )

        sig6 = Cep6 = eps_p6 = None
        kappa = c.kappa
        for _it in range(int(self.plane_stress_maxit)):
            eps6 = np.array([eps[0], eps[1], ezz, eps[2], 0.0, 0.0], dtype=float)
            sig6, eps_p6, kappa, Cep6 = _j2_return_mapping_3d(
                self.E, self.nu, eps6, eps_p6_old, c.kappa, self.sigmaY, self.K
            )
            r = float(sig6[2])
            if abs(r) <= self.plane_stress_tol * max(1.0, abs(sig6[0]) + abs(sig6[1]) + abs(sig6[3])):
                break
            dsd_ezz = float(Cep6[2, 2])
            if abs(dsd_ezz) < 1e-18:
                break
            ezz -= r / dsd_ezz

        mp = MaterialPoint(
            eps=eps.copy(),
            sigma=np.array([sig6[0], sig6[1], sig6[3]], dtype=float),
            eps_p=np.array([eps_p6[0], eps_p6[1], eps_p6[3]], dtype=float),
            kappa=float(kappa),
            tangent=_condense_plane_stress(Cep6),
            extra={"eps_p6": eps_p6, "eps_zz": float(ezz)},
        )
        return self._store_trial(mp)


@dataclass
class PlaneStrainPlasticity(_TrialCommit):
    """Von Mises plasticity with linear isotropic hardening, plane strain."""

    E: float
    nu: float
    sigmaY: float
    K: float = 0.0
    rho: float = 0.0

    def __post_init__(self) -> None:
        self._init_history(plane_strain_C(self.E, self.nu))
        self.committed.extra["eps_p6"] = np.zeros(6, dtype=float)
        self.trial = self.committed.copy_shallow()

    def get_stress(self, strain, dstrain=None, dt: float = 0.0):
        eps = _as_strain(strain, 3)
        if self._zero_increment(eps):
            return self._store_trial(self.committed.copy_shallow())

        c = self.committed
        eps6 = np.array([eps[0], eps[1], 0.0, eps[2], 0.0, 0.0], dtype=float)
        sig6, eps_p6, kappa, Cep6 = _j2_return_mapping_3d(
            self.E, self.nu, eps6, c.extra["eps_p6"], c.kappa, self.sigmaY, self.K
        )
        idx = [0, 1, 3]
        mp = MaterialPoint(
            eps=eps.copy(),
            sigma=sig6[idx].copy(),
            eps_p=eps_p6[idx].copy(),
            kappa=float(kappa),
            tangent=Cep6[np.ix_(idx, idx)].copy(),
            extra={"eps_p6": eps_p6, "sigma_zz": float(sig6[2])},
        )
        return self._store_trial(mp)


# -------------------------------------
# Uniaxial (truss) materials
# -------------------------------------


@dataclass
class Elasticity1D(_TrialCommit):
    E: float
    rho: float = 0.0
    nstrain: int = 1

    def __post_init__(self) -> None:
        self.H = np.array([[float(self.E)]], dtype=float)
        self._init_history(self.H)

    def get_stress(self, strain, dstrain=None, dt: float = 0.0):
        eps = _as_strain(strain, 1)
        mp = MaterialPoint(eps=eps.copy(), sigma=self.H @ eps, eps_p=np.zeros(1), tangent=self.H)
        return self._store_trial(mp)


@dataclass
class Plasticity1D(_TrialCommit):
    """Uniaxial elastoplasticity with linear isotropic hardening."""

    E: float
    sigmaY: float
    K: float = 0.0
    rho: float = 0.0
    nstrain: int = 1

    def __post_init__(self) -> None:
        self._init_history(np.array([[float(self.E)]], dtype=float))

    def get_stress(self, strain, dstrain=None, dt: float = 0.0):
        eps = _as_strain(strain, 1)
        if self._zero_increment(eps):
            return self._store_trial(self.committed.copy_shallow())

        c = self.committed
        E = float(self.E)
        sig_tr = E * (float(eps[0]) - float(c.eps_p[0]))
        f_tr = abs(sig_tr) - (float(self.sigmaY) + float(self.K) * c.kappa)
        if f_tr <= 0.0:
            mp = MaterialPoint(
                eps=eps.copy(), sigma=np.array([sig_tr]), eps_p=c.eps_p.copy(),
                kappa=c.kappa, tangent=np.array([[E]]),
            )
            return self._store_trial(mp)

        sign = 1.0 if sig_tr > 0.0 else -1.0
        dgamma = f_tr / (E + float(self.K))
        mp = MaterialPoint(
            eps=eps.copy(),
            sigma=np.array([sig_tr - E * dgamma * sign]),
            eps_p=c.eps_p + dgamma * sign,
            kappa=c.kappa + dgamma,
            tangent=np.array([[E * float(self.K) / (E + float(self.K))]]),
        )
        return self._store_trial(mp)


# -------------------------------------
# Externally supplied response
# -------------------------------------


@dataclass
class ExternalResponse(_TrialCommit):
    """Adapter for an opaque response model (e.g. a trained network).

    ``model(strain, eps0, sigma0, dt)`` sees the trial strain and the
    committed strain/stress. It returns either

    * ``stress``: the tangent is then obtained by central finite differences;
    * ``(stress, tangent)``;
    * raw parameters ``o`` when ``tangent_form`` is set. The tangent is
      ``H(o)`` (``sym``, ``orthotropic``, ``cholesky`` or ``spd`` around
      ``H0``) and the stress is the incremental update
      ``sigma0 + H(o) (strain - eps0)``.
    """

    model: Callable[..., Any]
    nstrain: int = 3
    rho: float = 0.0
    tangent_form: Optional[str] = None
    H0: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        if self.tangent_form is not None and self.tangent_form not in TANGENT_FORMS and self.tangent_form != "spd":
            raise ValueError(f"Unknown tangent_form '{self.tangent_form}'")
        if self.tangent_form == "spd" and self.H0 is None:
            raise ValueError("tangent_form='spd' requires a reference tangent H0")
        H0 = np.eye(self.nstrain) if self.H0 is None else np.asarray(self.H0, dtype=float)
        self._init_history(H0)

    def _tangent_from_params(self, o: np.ndarray) -> np.ndarray:
        if self.tangent_form == "spd":
            return spd_H(o, self.H0)
        return TANGENT_FORMS[self.tangent_form](o)

    def _stress_only(self, eps: np.ndarray, dt: float) -> np.ndarray:
        c = self.committed
        out = self.model(eps, c.eps, c.sigma, dt)
        if isinstance(out, tuple):
            out = out[0]
        return np.asarray(out, dtype=float).reshape(-1)

    def get_stress(self, strain, dstrain=None, dt: float = 0.0):
        eps = _as_strain(strain, self.nstrain)
        c = self.committed
        out = self.model(eps, c.eps.copy(), c.sigma.copy(), dt)

        if self.tangent_form is not None:
            H = self._tangent_from_params(np.asarray(out, dtype=float))
            sig = c.sigma + H @ (eps - c.eps)
        elif isinstance(out, tuple):
            sig = np.asarray(out[0], dtype=float).reshape(-1)
            H = np.asarray(out[1], dtype=float)
        else:
            sig = np.asarray(out, dtype=float).reshape(-1)
            H = finite_difference_tangent(lambda e: self._stress_only(e, dt), eps)

        if sig.size != self.nstrain or H.shape != (self.nstrain, self.nstrain):
            raise ValueError(
                f"External model returned stress {sig.shape} / tangent {H.shape}, "
                f"expected ({self.nstrain},) / ({self.nstrain}, {self.nstrain})"
            )
        mp = MaterialPoint(eps=eps.copy(), sigma=sig, eps_p=np.zeros(self.nstrain), tangent=H)
        return self._store_trial(mp)
