"""
Pytest configuration for nlfem tests.

Adds src/ to sys.path so tests can import nlfem without PYTHONPATH, and
provides small mesh builders shared by the solver tests.
"""

import sys
import os

import numpy as np
import pytest

repo_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
src_path = os.path.join(repo_root, 'src')

if src_path not in sys.path:
    sys.path.insert(0, src_path)

from nlfem.elements import SmallStrainContinuum, SmallStrainTruss  # noqa: E402


def structured_plate(nx, ny, Lx, Ly, prop, use_numba=False):
    """Rectangular Q4 mesh; node id = j*(nx+1) + i, counter-clockwise connectivity."""
    xs = np.linspace(0.0, Lx, nx + 1)
    ys = np.linspace(0.0, Ly, ny + 1)
    nodes = np.array([(x, y) for y in ys for x in xs], dtype=float)
    elements = []
    for j in range(ny):
        for i in range(nx):
            n0 = j * (nx + 1) + i
            conn = [n0, n0 + 1, n0 + nx + 2, n0 + nx + 1]
            elements.append(SmallStrainContinuum(nodes[conn], conn, prop, use_numba=use_numba))
    return nodes, elements


def spring_truss(prop, L=1.0):
    """One bar along x; node 0 pinned, node 1 free in x only."""
    nodes = np.array([[0.0, 0.0], [L, 0.0]], dtype=float)
    elements = [SmallStrainTruss(nodes, [0, 1], prop)]
    EBC = np.array([[-1, -1], [0, -1]], dtype=int)
    return nodes, elements, EBC


@pytest.fixture
def make_plate():
    return structured_plate


@pytest.fixture
def make_spring():
    return spring_truss
