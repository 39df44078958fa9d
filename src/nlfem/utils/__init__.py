"""Utility helpers for solvers, materials and runners."""

from .scaling import diagonal_equilibration, unscale_solution
from .linalg import solve_linear, gradient_test
from .tangent import sym_H, orthotropic_H, spd_H, spd_cholesky, finite_difference_tangent

__all__ = [
    "diagonal_equilibration",
    "unscale_solution",
    "solve_linear",
    "gradient_test",
    "sym_H",
    "orthotropic_H",
    "spd_H",
    "spd_cholesky",
    "finite_difference_tangent",
]
