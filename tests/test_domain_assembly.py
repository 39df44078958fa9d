import numpy as np
import pytest
import scipy.sparse as sp

from nlfem.assembly import assemble_mass_matrix, assemble_stiff_and_force, assemble_internal_force
from nlfem.domain import Domain
from nlfem.globaldata import GlobalData
from nlfem.elements import SmallStrainTruss


ELASTIC = {"name": "PlaneStress", "E": 200.0, "nu": 0.3, "rho": 2.0, "thickness": 0.5}


def _plate_bc(nnodes):
    EBC = np.zeros((nnodes, 2), dtype=int)
    g = np.zeros((nnodes, 2))
    NBC = np.zeros((nnodes, 2), dtype=int)
    f = np.zeros((nnodes, 2))
    return EBC, g, NBC, f


def test_equation_numbering_is_ascending_over_free_dofs(make_plate):
    nodes, elements = make_plate(2, 1, 2.0, 1.0, ELASTIC)
    EBC, g, NBC, f = _plate_bc(6)
    EBC[[0, 3], 0] = -1
    EBC[0, 1] = -1
    EBC[[2, 5], 0] = -2
    domain = Domain(nodes, elements, 2, EBC, g, NBC, f)

    assert domain.neqs == 7
    assert domain.eq_to_dof.tolist() == [2, 3, 5, 7, 8, 9, 11]
    assert domain.ebc_time_dofs.tolist() == [4, 10]
    assert np.all(domain.dof_to_eq[domain.eq_to_dof] == np.arange(7))
    assert np.all(domain.dof_to_eq[domain.fixed_dofs] == -1)


def test_boundary_and_external_force(make_plate):
    nodes, elements = make_plate(2, 1, 2.0, 1.0, ELASTIC)
    EBC, g, NBC, f = _plate_bc(6)
    EBC[[0, 3], 0] = -1
    EBC[0, 1] = -1
    g[3, 0] = 0.25
    EBC[[2, 5], 0] = -2
    NBC[4, 1] = -1
    f[4, 1] = 2.0
    NBC[0, 1] = -1  # load on a fixed DOF is dropped
    f[0, 1] = 5.0
    NBC[5, 1] = -2
    domain = Domain(nodes, elements, 2, EBC, g, NBC, f)

    gd = GlobalData.at_rest(
        domain.neqs,
        EBC_func=lambda t: np.array([0.01 * t, 0.02 * t]),
        FBC_func=lambda t: np.array([3.0 * t]),
    )
    domain.update_state_boundary(gd, time=2.0)
    assert domain.state[4] == pytest.approx(0.02)
    assert domain.state[10] == pytest.approx(0.04)
    assert domain.state[6] == pytest.approx(0.25)

    fext = domain.get_external_force(gd, time=2.0)
    assert fext.shape == (domain.neqs,)
    expected = np.zeros(domain.neqs)
    expected[domain.dof_to_eq[9]] = 2.0
    expected[domain.dof_to_eq[11]] = 6.0
    assert np.allclose(fext, expected)


def test_missing_time_function_raises(make_plate):
    nodes, elements = make_plate(1, 1, 1.0, 1.0, ELASTIC)
    EBC, g, NBC, f = _plate_bc(4)
    EBC[1, 0] = -2
    domain = Domain(nodes, elements, 2, EBC, g, NBC, f)
    gd = GlobalData.at_rest(domain.neqs)
    with pytest.raises(RuntimeError):
        domain.update_state_boundary(gd)


def test_table_shape_mismatch_raises(make_plate):
    nodes, elements = make_plate(1, 1, 1.0, 1.0, ELASTIC)
    EBC, g, NBC, f = _plate_bc(4)
    with pytest.raises(ValueError):
        Domain(nodes, elements, 2, EBC[:3], g, NBC, f)
    with pytest.raises(ValueError):
        GlobalData(np.zeros(3), np.zeros(8), np.zeros(8), np.zeros(8), 8)


def test_update_states_writes_free_dofs_only(make_plate):
    nodes, elements = make_plate(1, 1, 1.0, 1.0, ELASTIC)
    EBC, g, NBC, f = _plate_bc(4)
    EBC[0, :] = -1
    g[0, :] = [0.1, 0.2]
    domain = Domain(nodes, elements, 2, EBC, g, NBC, f)
    gd = GlobalData(np.arange(1.0, 7.0), np.zeros(6), np.zeros(6), np.zeros(6), 6)
    domain.update_states(gd)
    assert domain.state[:2].tolist() == [0.1, 0.2]
    assert domain.state[2:].tolist() == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]


def test_mass_matrix_symmetric_psd_and_total_mass(make_plate):
    nodes, elements = make_plate(2, 1, 2.0, 1.0, ELASTIC)
    EBC, g, NBC, f = _plate_bc(6)
    domain = Domain(nodes, elements, 2, EBC, g, NBC, f)
    gd = GlobalData.at_rest(domain.neqs)
    M, Mlumped = assemble_mass_matrix(gd, domain)

    assert M is gd.M
    assert np.allclose(M, M.T, atol=1e-14)
    assert np.linalg.eigvalsh(M).min() > -1e-12
    assert np.allclose(Mlumped, M.sum(axis=1))
    # rho * thickness * area, once per displacement component
    assert Mlumped[0::2].sum() == pytest.approx(2.0 * 0.5 * 2.0)
    assert Mlumped.sum() == pytest.approx(2.0 * 2.0 * 0.5 * 2.0)


def test_mass_matrix_assembled_twice_raises(make_plate):
    nodes, elements = make_plate(1, 1, 1.0, 1.0, ELASTIC)
    EBC, g, NBC, f = _plate_bc(4)
    domain = Domain(nodes, elements, 2, EBC, g, NBC, f)
    gd = GlobalData.at_rest(domain.neqs)
    assemble_mass_matrix(gd, domain)
    with pytest.raises(RuntimeError):
        assemble_mass_matrix(gd, domain)


def test_dense_and_sparse_assembly_agree(make_plate):
    rng = np.random.default_rng(3)
    nodes, elements = make_plate(3, 2, 3.0, 1.0, ELASTIC)
    n = nodes.shape[0]
    EBC, g, NBC, f = _plate_bc(n)
    EBC[0, :] = -1
    dense = Domain(nodes, elements, 2, EBC, g, NBC, f, sparse=False)
    nodes_s, elements_s = make_plate(3, 2, 3.0, 1.0, ELASTIC)
    sparse = Domain(nodes_s, elements_s, 2, EBC, g, NBC, f, sparse=True)

    u = rng.normal(scale=1e-3, size=dense.neqs)
    gd = GlobalData(u, u, u * 0, u * 0, dense.neqs)
    dense.update_states(gd)
    sparse.update_states(gd)

    f_d, K_d = assemble_stiff_and_force(gd, dense)
    f_s, K_s = assemble_stiff_and_force(gd, sparse)
    assert isinstance(K_d, np.ndarray)
    assert sp.issparse(K_s)
    assert np.allclose(f_d, f_s, rtol=1e-12, atol=1e-14)
    assert np.allclose(K_d, K_s.toarray(), rtol=1e-12, atol=1e-12)
    # linear material: fint = K u
    assert np.allclose(K_d @ u, f_d, rtol=1e-10, atol=1e-12)
    assert np.allclose(assemble_internal_force(gd, dense), f_d)

    M_d, _ = assemble_mass_matrix(GlobalData.at_rest(dense.neqs), dense)
    M_s, _ = assemble_mass_matrix(GlobalData.at_rest(sparse.neqs), sparse)
    assert np.allclose(M_d, M_s.toarray())


def test_sparse_backend_selected_by_size(make_plate):
    nodes, elements = make_plate(1, 1, 1.0, 1.0, ELASTIC)
    EBC, g, NBC, f = _plate_bc(4)
    assert Domain(nodes, elements, 2, EBC, g, NBC, f).sparse is False


def test_truss_stiffness_and_mass():
    prop = {"name": "Elasticity1D", "E": 10.0, "rho": 3.0, "A0": 2.0}
    c, s = np.cos(0.3), np.sin(0.3)
    nodes = np.array([[0.0, 0.0], [2.0 * c, 2.0 * s]])
    el = SmallStrainTruss(nodes, [0, 1], prop)

    _, Ke = el.get_stiff_and_force(np.zeros(4), np.zeros(4))
    e = np.array([-c, -s, c, s])
    assert np.allclose(Ke, 10.0 * 2.0 / 2.0 * np.outer(e, e))

    Me = el.get_mass_matrix()
    assert Me[0::2, 0::2].sum() == pytest.approx(3.0 * 2.0 * 2.0)

    # axial stretch of 1% along the bar
    u = 0.01 * np.array([0.0, 0.0, 2.0 * c, 2.0 * s])
    fe = el.get_internal_force(u, np.zeros(4))
    # E * A * strain along e
    assert np.allclose(fe, 10.0 * 2.0 * 0.01 * e)


def test_unknown_material_and_missing_keys_raise(make_plate):
    with pytest.raises(ValueError, match="Elastoplastic9000"):
        make_plate(1, 1, 1.0, 1.0, {"name": "Elastoplastic9000", "E": 1.0})
    with pytest.raises(ValueError, match="sigmaY"):
        make_plate(1, 1, 1.0, 1.0, {"name": "PlaneStressPlasticity", "E": 1.0, "nu": 0.3})
    with pytest.raises(ValueError):
        make_plate(1, 1, 1.0, 1.0, {"name": "Elasticity1D", "E": 1.0})


def test_mass_matrix_once_per_domain(make_plate):
    nodes, elements = make_plate(1, 1, 1.0, 1.0, ELASTIC)
    EBC, g, NBC, f = _plate_bc(4)
    domain = Domain(nodes, elements, 2, EBC, g, NBC, f)
    gd = GlobalData.at_rest(domain.neqs)
    assert not gd.mass_assembled and not domain.mass_assembled
    assemble_mass_matrix(gd, domain)
    assert gd.mass_assembled and domain.mass_assembled

    other = GlobalData.at_rest(domain.neqs)
    with pytest.raises(RuntimeError, match="Domain"):
        assemble_mass_matrix(other, domain)
    assert other.M is None
