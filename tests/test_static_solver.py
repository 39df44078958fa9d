import numpy as np
import pytest

from nlfem.domain import Domain
from nlfem.elements import SmallStrainTruss
from nlfem.globaldata import GlobalData
from nlfem.post import history_arrays, reaction_forces
from nlfem.solvers import static_solver


def _single_element_tension(make_plate, maxiterstep=100):
    """Unit square, left edge on rollers, unit traction on the right edge."""
    prop = {"name": "PlaneStress", "E": 100.0, "nu": 0.25, "rho": 1.0}
    nodes, elements = make_plate(1, 1, 1.0, 1.0, prop)
    EBC = np.zeros((4, 2), dtype=int)
    EBC[[0, 2], 0] = -1
    EBC[0, 1] = -1
    NBC = np.zeros((4, 2), dtype=int)
    f = np.zeros((4, 2))
    NBC[[1, 3], 0] = -1
    f[[1, 3], 0] = 0.5
    domain = Domain(nodes, elements, 2, EBC, np.zeros((4, 2)), NBC, f)
    return domain, GlobalData.at_rest(domain.neqs)


def test_single_linear_element_converges_in_two_iterations(make_plate):
    domain, gd = _single_element_tension(make_plate)
    ok = static_solver(gd, domain, loaditerstep=1)

    assert ok
    assert gd.last_iterations <= 2
    u = domain.state.reshape(4, 2)
    assert np.allclose(u[[1, 3], 0], 0.01, rtol=1e-10)
    assert np.allclose(u[[2, 3], 1], -0.25 * 0.01, rtol=1e-10)
    assert np.allclose(domain.elements[0].get_stress()[:, 0], 1.0, rtol=1e-10)
    assert len(domain.history["fint"]) == 1


def _single_element_stretched(make_plate):
    """Unit square, left edge on rollers, right edge pulled by ``g = 1``."""
    prop = {"name": "PlaneStress", "E": 100.0, "nu": 0.25, "rho": 1.0}
    nodes, elements = make_plate(1, 1, 1.0, 1.0, prop)
    EBC = np.zeros((4, 2), dtype=int)
    EBC[[0, 1, 2, 3], 0] = -1
    EBC[0, 1] = -1
    g = np.zeros((4, 2))
    g[[1, 3], 0] = 1.0
    domain = Domain(nodes, elements, 2, EBC, g, np.zeros((4, 2), dtype=int), np.zeros((4, 2)))
    return domain, GlobalData.at_rest(domain.neqs)


def test_imposed_unit_displacement_converges_in_two_iterations(make_plate):
    domain, gd = _single_element_stretched(make_plate)
    assert static_solver(gd, domain, loaditerstep=1)

    assert gd.last_iterations <= 2
    u = domain.state.reshape(4, 2)
    assert np.allclose(u[[1, 3], 0], 1.0)
    assert np.allclose(u[[2, 3], 1], -0.25, rtol=1e-10)
    assert u[1, 1] == pytest.approx(0.0, abs=1e-12)
    assert np.allclose(domain.elements[0].get_stress()[:, 0], 100.0, rtol=1e-10)
    # fixed dofs in ascending order: 0x, 0y, 1x, 2x, 3x
    R = reaction_forces(domain)
    assert R[[2, 4]].sum() == pytest.approx(100.0, rel=1e-10)
    assert R[[0, 3]].sum() == pytest.approx(-100.0, rel=1e-10)


def test_static_g_values_are_in_place_from_the_first_increment(make_plate):
    domain, gd = _single_element_stretched(make_plate)
    assert np.allclose(domain.state.reshape(4, 2)[[1, 3], 0], 1.0)
    assert static_solver(gd, domain, loaditerstep=4)

    states = domain.history["state"]
    assert len(states) == 4
    for s in states:
        assert np.allclose(s, domain.state, atol=1e-12)


def test_static_load_steps_commit_each_increment(make_plate):
    domain, gd = _single_element_tension(make_plate)
    assert static_solver(gd, domain, loaditerstep=4)

    hist = history_arrays(domain)
    assert hist["fint"].shape == (4, domain.neqs)
    # each increment equilibrates its fraction of the load
    for i in range(4):
        assert np.allclose(hist["fint"][i], hist["fext"][i], atol=1e-8)
    assert np.allclose(hist["fext"][-1], domain.get_external_force(gd))
    assert np.allclose(gd.Dstate, gd.state)


def test_static_at_rest_stays_at_rest(make_plate):
    prop = {"name": "PlaneStressPlasticity", "E": 200.0, "nu": 0.3, "sigmaY": 0.3, "K": 1.0}
    nodes, elements = make_plate(2, 1, 2.0, 1.0, prop)
    EBC = np.zeros((6, 2), dtype=int)
    EBC[[0, 3], :] = -1
    domain = Domain(nodes, elements, 2, EBC, np.zeros((6, 2)), np.zeros((6, 2), dtype=int), np.zeros((6, 2)))
    gd = GlobalData.at_rest(domain.neqs)

    assert static_solver(gd, domain, loaditerstep=3)
    assert np.all(gd.state == 0.0)
    assert np.all(domain.state == 0.0)
    assert gd.last_iterations == 1


def test_static_nonconvergence_warns_and_reports(make_plate):
    domain, gd = _single_element_tension(make_plate)
    with pytest.warns(RuntimeWarning):
        ok = static_solver(gd, domain, loaditerstep=1, maxiterstep=0)
    assert ok is False
    assert len(domain.history["fint"]) == 1


def test_static_prescribed_displacement_ramp_with_plastic_bars():
    """Two bars in series pulled to 5% strain: yield stress plus linear hardening."""
    E, sigmaY, K = 100.0, 1.0, 10.0
    prop = {"name": "Plasticity1D", "E": E, "sigmaY": sigmaY, "K": K, "A0": 1.0}
    nodes = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
    elements = [
        SmallStrainTruss(nodes[[0, 1]], [0, 1], prop),
        SmallStrainTruss(nodes[[1, 2]], [1, 2], prop),
    ]
    EBC = np.array([[-1, -1], [0, -1], [-2, -1]], dtype=int)
    domain = Domain(nodes, elements, 2, EBC, np.zeros((3, 2)), np.zeros((3, 2), dtype=int), np.zeros((3, 2)))
    gd = GlobalData.at_rest(domain.neqs, EBC_func=lambda t: np.array([0.05 * t]), time=1.0)

    assert static_solver(gd, domain, loaditerstep=5)

    assert gd.state[0] == pytest.approx(0.025, rel=1e-8)
    Ep = E * K / (E + K)
    sig = sigmaY + Ep * (0.025 - sigmaY / E)
    for el in domain.elements:
        assert el.get_stress()[0, 0] == pytest.approx(sig, rel=1e-8)
        assert el.mat[0].committed.kappa > 0.0

    R = reaction_forces(domain)
    # fixed dofs in ascending order: 0x, 0y, 1y, 2x, 2y
    assert R[3] == pytest.approx(sig, rel=1e-8)
    assert R[0] == pytest.approx(-sig, rel=1e-8)
    assert len(domain.history["state"]) == 5
    assert domain.history["state"][0][4] == pytest.approx(0.01)
