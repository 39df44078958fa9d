"""Time and load stepping for ``M a + f_int(u) = f_ext(t)``.

Every solver advances ``globdat`` (free DOFs) and ``domain`` (full state,
material history, output history) by one step and returns whether the step
converged. Material history is committed only for accepted steps.

* :func:`explicit_solver`: central differences with the lumped mass.
* :func:`newmark_solver`: generalized-alpha with Newton on the acceleration.
* :func:`static_solver`: load-stepping Newton without inertia.
* :func:`adaptive_solver`: step halving / doubling around the Newmark step.
"""

from __future__ import annotations

import warnings
from dataclasses import replace
from typing import Any, Mapping, Optional, Tuple, Union

import numpy as np

from nlfem.assembly import assemble_internal_force, assemble_stiff_and_force
from nlfem.config import NewmarkConfig
from nlfem.convergence import NewtonConvergence
from nlfem.utils.linalg import gradient_test, solve_linear

SUPPORTED_ADAPTIVE = ("NewmarkSolver",)


def _check_neqs(globdat, domain) -> None:
    if globdat.neqs != domain.neqs or globdat.state.size != domain.neqs:
        raise ValueError(
            f"GlobalData has {globdat.state.size} free DOFs but the Domain has neqs={domain.neqs}"
        )


def explicit_solver(dt: float, globdat, domain, verbose: bool = False) -> bool:
    """One central-difference step.

    ``globdat.acce`` must hold a consistent initial acceleration for the
    first step; it is never recomputed here.
    """
    _check_neqs(globdat, domain)
    if globdat.Mlumped is None:
        raise RuntimeError("Mass matrix not assembled; call assemble_mass_matrix(globdat, domain) first")
    dt = float(dt)
    t_new = globdat.time + dt

    v = globdat.velo + 0.5 * dt * globdat.acce
    u = globdat.state + dt * v

    domain.Dstate = domain.state.copy()
    domain.state[domain.eq_to_dof] = u
    domain.update_state_boundary(globdat, t_new)

    fext = domain.get_external_force(globdat, t_new)
    fint = assemble_internal_force(globdat, domain, dt)
    a = (fext - fint) / globdat.Mlumped
    v = v + 0.5 * dt * a

    globdat.Dstate = globdat.state.copy()
    globdat.state = u
    globdat.velo = v
    globdat.acce = a
    globdat.time = t_new

    domain.commit_history()
    domain.update_states(globdat)
    domain.push_history(fint, fext, t_new)
    if verbose:
        print(f"[explicit] t={t_new:.6g} dt={dt:.3e} ||a||={np.linalg.norm(a):.3e}")
    return True


def newmark_solver(
    dt: float,
    globdat,
    domain,
    alpha_m: float = 0.0,
    alpha_f: float = 0.0,
    eps: float = 1e-8,
    eps0: float = 1e-8,
    maxiterstep: int = 100,
    eta: float = 1.0,
    failsafe: bool = False,
    *,
    gradcheck: bool = False,
    equilibrate: bool = False,
    verbose: bool = False,
    config: Optional[NewmarkConfig] = None,
) -> bool:
    """One generalized-alpha step solved by damped Newton on ``a_{n+1}``.

    With ``β2 = ½(1-αm+αf)²`` and ``γ = ½-αm+αf`` the predictor is
    ``u_{n+1} = u_n + Δt v_n + ½Δt²((1-β2) a_n + β2 a_{n+1})`` and the
    residual

        M((1-αm) a_{n+1} + αm a_n) + f_int(u_{n+1-αf}) - f_ext(t_{n+1-αf})

    is driven to zero with the Jacobian ``(1-αm) M + (1-αf) ½β2 Δt² K``.
    The Newton step length starts at ``eta``, is halved while the update
    grows compared with the previous one, and doubles back towards 1.

    Returns ``True`` on convergence. On failure with ``failsafe`` the time,
    displacement state and material history are left as before the call and
    ``False`` is returned. Without ``failsafe`` the last iterate is accepted,
    a ``RuntimeWarning`` is issued and ``False`` is returned.

    A :class:`~nlfem.config.NewmarkConfig` passed as ``config`` replaces all
    the keyword parameters.
    """
    if config is not None:
        alpha_m, alpha_f = config.alphas()
        eps, eps0, maxiterstep, eta = config.abs_tol, config.rel_tol, config.maxiter, config.eta
        failsafe, gradcheck = config.failsafe, config.gradcheck
        equilibrate, verbose = config.equilibrate, config.verbose
    _check_neqs(globdat, domain)
    if globdat.M is None:
        raise RuntimeError("Mass matrix not assembled; call assemble_mass_matrix(globdat, domain) first")

    dt = float(dt)
    am = float(alpha_m)
    af = float(alpha_f)
    beta2 = 0.5 * (1.0 - am + af) ** 2
    gamma = 0.5 - am + af
    conv = NewtonConvergence(abs_tol=eps, rel_tol=eps0, maxiter=maxiterstep)

    t_n = globdat.time
    t_alpha = t_n + (1.0 - af) * dt
    failsafe_state = domain.state.copy()
    failsafe_Dstate = domain.Dstate.copy()

    def _revert() -> bool:
        globdat.time = t_n
        domain.state = failsafe_state
        domain.Dstate = failsafe_Dstate
        return False

    domain.Dstate = domain.state.copy()
    domain.update_state_boundary(globdat, t_alpha)

    M = globdat.M
    u = globdat.state.copy()
    v = globdat.velo.copy()
    a = globdat.acce.copy()
    fext = domain.get_external_force(globdat, t_alpha)
    jac_scale = (1.0 - af) * 0.5 * beta2 * dt * dt

    def _displacement(ap: np.ndarray) -> np.ndarray:
        return (1.0 - af) * (u + dt * v + 0.5 * dt * dt * ((1.0 - beta2) * a + beta2 * ap)) + af * u

    ap = a.copy()
    norm_prev = np.inf
    norm_res0 = None
    converged = False
    iterstep = 0
    while True:
        iterstep += 1
        domain.state[domain.eq_to_dof] = _displacement(ap)
        fint, K = assemble_stiff_and_force(globdat, domain, dt)
        res = M @ ((1.0 - am) * ap + am * a) + fint - fext
        norm_res = float(np.linalg.norm(res))

        if not conv.finite(norm_res):
            if failsafe:
                if verbose:
                    print(f"[newmark] non-finite residual at it={iterstep:02d}; step reverted")
                return _revert()
            globdat.last_iterations = iterstep
            raise RuntimeError(f"Newmark: non-finite residual at t={t_alpha:.6g} (it={iterstep})")

        if norm_res0 is None:
            norm_res0 = norm_res
        if verbose:
            print(f"    [newmark] it={iterstep:02d}/{maxiterstep} ||res||={norm_res:.3e}")
        if conv.residual_converged(norm_res, norm_res0):
            converged = True
            break
        if conv.exhausted(iterstep):
            break

        A = (1.0 - am) * M + jac_scale * K
        delta = solve_linear(A, res, equilibrate=equilibrate)
        norm_delta = float(np.linalg.norm(delta))
        while eta * norm_delta > norm_prev and eta > 1e-12:
            eta *= 0.5
            if verbose:
                print(f"    [newmark] eta={eta:.3e}")
        ap = ap - eta * delta
        eta = min(1.0, 2.0 * eta)
        norm_prev = norm_delta

    globdat.last_iterations = iterstep

    if not converged:
        if failsafe:
            if verbose:
                print(f"[newmark] Newton failed after {maxiterstep} iterations; step reverted")
            return _revert()
        if gradcheck:
            def _res_and_jac(x):
                domain.state[domain.eq_to_dof] = _displacement(x)
                fi, Ki = assemble_stiff_and_force(globdat, domain, dt)
                return fi, jac_scale * Ki

            gradient_test(_res_and_jac, ap, verbose=True)
            domain.state[domain.eq_to_dof] = _displacement(ap)
            fint = assemble_internal_force(globdat, domain, dt)
        msg = f"Newmark: Newton did not converge in {maxiterstep} iterations (||res||={norm_res:.3e})"
        print(f"[newmark] {msg}")
        warnings.warn(msg, RuntimeWarning)
    elif verbose:
        print(f"[newmark] converged it={iterstep:02d} t={t_n + dt:.6g}")

    globdat.Dstate = globdat.state.copy()
    globdat.state = u + dt * v + 0.5 * dt * dt * ((1.0 - beta2) * a + beta2 * ap)
    globdat.velo = v + dt * ((1.0 - gamma) * a + gamma * ap)
    globdat.acce = ap
    globdat.time = t_n + dt

    domain.update_state_boundary(globdat, globdat.time)
    domain.update_states(globdat)
    if af != 0.0:
        # history is committed at u_{n+1}, not at the alpha-level iterate
        fint = assemble_internal_force(globdat, domain, dt)
    domain.commit_history()
    domain.push_history(fint, fext, globdat.time)
    return converged


def static_solver(
    globdat,
    domain,
    loaditerstep: int = 10,
    eps: float = 1e-8,
    maxiterstep: int = 100,
    eps0: float = 1e-8,
    *,
    equilibrate: bool = False,
    verbose: bool = False,
) -> bool:
    """Load-stepping Newton for ``f_int(u) = f_ext``.

    Increment ``i`` targets ``i/loaditerstep`` of the external force and of
    the change in prescribed displacements between the current state and
    their values at ``globdat.time``. Static ``-1`` values of ``g`` are
    written into ``domain.state`` when the Domain is built, so they are
    already in place at increment 1; only ``EBC_func`` DOFs ramp.
    Returns ``False`` if any increment hit ``maxiterstep``; such increments
    are still committed.
    """
    _check_neqs(globdat, domain)
    n = int(loaditerstep)
    if n < 1:
        raise ValueError(f"loaditerstep must be >= 1, got {loaditerstep}")
    conv = NewtonConvergence(abs_tol=eps, rel_tol=eps0, maxiter=maxiterstep)

    fext_full = domain.get_external_force(globdat)
    fixed = domain.fixed_dofs
    u_fixed0 = domain.state[fixed].copy()
    u_fixed1 = domain.prescribed_values(globdat)[fixed]

    globdat.Dstate = globdat.state.copy()
    domain.Dstate = domain.state.copy()
    all_converged = True
    for step in range(1, n + 1):
        lam = step / n
        target = lam * fext_full
        domain.state[fixed] = u_fixed0 + lam * (u_fixed1 - u_fixed0)

        norm_res0 = None
        converged = False
        iterstep = 0
        while True:
            iterstep += 1
            domain.update_states(globdat)
            fint, K = assemble_stiff_and_force(globdat, domain)
            res = fint - target
            norm_res = float(np.linalg.norm(res))
            if not conv.finite(norm_res):
                raise RuntimeError(f"Static solver: non-finite residual in increment {step}/{n}")
            if norm_res0 is None:
                norm_res0 = norm_res
            if verbose:
                print(f"    [static] inc={step:03d}/{n} it={iterstep:02d} ||res||={norm_res:.3e}")
            if conv.residual_converged(norm_res, norm_res0):
                converged = True
                break
            if conv.exhausted(iterstep):
                break
            globdat.state = globdat.state - solve_linear(K, res, equilibrate=equilibrate)

        globdat.last_iterations = iterstep
        if not converged:
            all_converged = False
            msg = f"Static solver: {iterstep} Newton iterations did not converge in increment {step}/{n}"
            print(f"[static] {msg}")
            warnings.warn(msg, RuntimeWarning)

        domain.commit_history()
        globdat.Dstate = globdat.state.copy()
        domain.Dstate = domain.state.copy()
        domain.push_history(fint, target, globdat.time)
    return all_converged


def adaptive_solver(
    solvername: str,
    globdat,
    domain,
    T: float,
    NT: int,
    args: Union[Mapping[str, Any], NewmarkConfig],
    min_dt: Optional[float] = None,
    verbose: bool = True,
) -> Tuple[Any, Any, np.ndarray]:
    """Integrate over ``[t0, t0 + T]`` with step halving on failure.

    Starts with ``dt = T/NT``. A failed (reverted) Newmark step is retried
    with half the step; after five consecutive successes the step doubles
    while it is below ``0.8 T/NT``. Returns ``(globdat, domain, ts)`` where
    ``ts`` holds the start time and every accepted step end time.
    """
    if solvername not in SUPPORTED_ADAPTIVE:
        raise ValueError(f"Adaptive stepping is not implemented for solver '{solvername}'")
    _check_neqs(globdat, domain)
    cfg = args if isinstance(args, NewmarkConfig) else NewmarkConfig.from_args(args)
    cfg = replace(cfg, failsafe=True)

    Dt = float(T) / int(NT)
    dt = Dt
    if min_dt is None:
        min_dt = Dt * 2.0 ** -20
    t0 = globdat.time
    t_end = t0 + float(T)
    t_tol = 1e-12 * max(1.0, abs(t_end))
    t = t0
    ts = [t]

    counter = 0
    while t_end - t > t_tol:
        if t + dt > t_end:
            dt = t_end - t
        if verbose:
            print(f"[adaptive] t={t:.6g} dt={dt:.3e} T={t_end:.6g}")
        ok = newmark_solver(dt, globdat, domain, config=cfg)
        if ok:
            counter += 1
            t = globdat.time
            ts.append(t)
            if dt < 0.8 * Dt and counter >= 5:
                dt *= 2.0
        else:
            counter = 0
            dt *= 0.5
            if dt < min_dt:
                raise RuntimeError(f"Adaptive Newmark: dt fell below min_dt ({min_dt:.3e}) at t={t:.6g}")
            if verbose:
                print(f"[adaptive] step rejected, retry with dt={dt:.3e}")

    return globdat, domain, np.asarray(ts, dtype=float)
