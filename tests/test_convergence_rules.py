import numpy as np
import scipy.sparse as sp

from nlfem.convergence import NewtonConvergence
from nlfem.utils.linalg import solve_linear


def test_absolute_or_relative_tolerance_suffices():
    conv = NewtonConvergence(abs_tol=1e-6, rel_tol=1e-3, maxiter=5)
    assert conv.residual_converged(5e-7, 1e3)
    assert conv.residual_converged(0.5, 1e3)
    assert not conv.residual_converged(2.0, 1e3)
    assert conv.residual_tolerance(1e3) == 1.0
    assert not conv.exhausted(5)
    assert conv.exhausted(6)
    assert not conv.finite(np.nan)


def test_solve_linear_dense_sparse_and_equilibrated_agree():
    A = np.array([[4.0e6, 1.0, 0.0], [1.0, 3.0, 1e-3], [0.0, 1e-3, 2.0e-4]])
    b = np.array([1.0, 2.0, 3.0])
    x = np.linalg.solve(A, b)
    assert np.allclose(solve_linear(A, b), x)
    assert np.allclose(solve_linear(A, b, equilibrate=True), x)
    assert np.allclose(solve_linear(sp.csr_matrix(A), b), x)
    assert np.allclose(solve_linear(sp.csr_matrix(A), b, equilibrate=True), x)
    assert solve_linear(np.zeros((0, 0)), np.zeros(0)).shape == (0,)
