import logging

import numpy as np
import pytest

from polyspring.forcefield import MechanicalParams
from polyspring.interaction import MIN_ZERO_LENGTH, PolynomialSprings, ZeroLengthState
from polyspring.matrix import BlockMatrixAccessor
from polyspring.state import MechanicalState


def _pair(p1, p2):
    a = MechanicalState.from_positions("a", [p1])
    b = MechanicalState.from_positions("b", [p2])
    return a, b


def _evaluate(ff, mparams):
    ff.state1.reset_force()
    ff.state2.reset_force()
    ff.evaluate_force(mparams)
    return ff.state1.force.copy(), ff.state2.force.copy()


def _scattered_state(name, n, seed):
    rng = np.random.default_rng(seed)
    return MechanicalState.from_positions(name, rng.uniform(-1.0, 1.0, size=(n, 3)))


def test_zero_length_captured_on_first_evaluation(mparams):
    a, b = _pair([0.0, 0.0, 0.0], [0.0, 0.0, 2.0])
    ff = PolynomialSprings(a, b)
    assert ff.zero_length_state == [ZeroLengthState.UNCAPTURED]

    f1, f2 = _evaluate(ff, mparams)
    assert ff.zero_length_state == [ZeroLengthState.CAPTURED]
    assert ff.zero_length[0] == pytest.approx(2.0)
    assert np.all(f1 == 0.0) and np.all(f2 == 0.0)

    b.position[0] = [0.0, 0.0, 3.0]
    f1, f2 = _evaluate(ff, mparams)
    # Captured once, not re-captured
    assert ff.zero_length[0] == pytest.approx(2.0)
    assert ff.strain[0] == pytest.approx(0.5)
    assert f1[0] == pytest.approx([0.0, 0.0, 50.0])
    assert f2[0] == pytest.approx([0.0, 0.0, -50.0])


@pytest.mark.parametrize(
    ("compressible", "expected_f1"),
    [(True, [0.0, 0.0, 0.0]), (False, [0.0, 0.0, -50.0])],
)
def test_compression_response(mparams, compressible, expected_f1):
    a, b = _pair([0.0, 0.0, 0.0], [0.0, 0.0, 1.0])
    ff = PolynomialSprings(a, b, compute_zero_length=False, zero_length=[2.0], compressible=compressible)

    f1, f2 = _evaluate(ff, mparams)

    assert ff.strain[0] == pytest.approx(0.5)
    assert f1[0] == pytest.approx(expected_f1)
    assert f2[0] == pytest.approx(-np.asarray(expected_f1))
    if compressible:
        assert ff.strain_sign[0] == 0.0
        assert np.all(ff.jacobian[0] == 0.0)
    else:
        assert ff.strain_sign[0] == -1.0


def test_forces_balance_on_every_spring(mparams):
    s1 = _scattered_state("s1", 6, seed=1)
    s2 = _scattered_state("s2", 6, seed=2)
    ff = PolynomialSprings(
        s1,
        s2,
        polynomial_stiffness=[40.0, 5.0, 2.0],
        polynomial_degree=[3],
        compute_zero_length=False,
        zero_length=[0.9],
    )

    f1, f2 = _evaluate(ff, mparams)

    assert np.abs(f1).max() > 0.0
    assert f1.sum(axis=0) + f2.sum(axis=0) == pytest.approx(np.zeros(3), abs=1e-10)
    for i in range(ff.n_springs()):
        assert f1[i] == pytest.approx(-f2[i])


@pytest.mark.parametrize("zero_length", [0.6, 1.9])
@pytest.mark.parametrize("axis", [0, 1, 2])
def test_jacobian_matches_force_derivative(mparams, central_difference, zero_length, axis):
    # 0.6 stretches the spring, 1.9 compresses it
    a, b = _pair([0.1, -0.2, 0.3], [0.7, 0.4, 1.1])
    ff = PolynomialSprings(
        a,
        b,
        polynomial_stiffness=[30.0, 12.0, 4.0],
        polynomial_degree=[3],
        compute_zero_length=False,
        zero_length=[zero_length],
    )
    _evaluate(ff, mparams)
    jac = ff.jacobian[0].copy()

    eps = 1e-6
    delta = np.zeros(3)
    delta[axis] = 1.0
    df1 = central_difference(lambda: _evaluate(ff, mparams)[0], b.position, 0, delta, eps=eps)
    df2 = central_difference(lambda: _evaluate(ff, mparams)[1], b.position, 0, delta, eps=eps)

    expected = eps * (jac @ delta)
    assert df1[0] == pytest.approx(expected, rel=1e-5, abs=1e-10)
    assert df2[0] == pytest.approx(-expected, rel=1e-5, abs=1e-10)


def test_per_spring_laws(mparams):
    state = MechanicalState.from_positions(
        "chain",
        [[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 2.5, 0.0]],
    )
    ff = PolynomialSprings(
        state,
        first_points=[0, 2],
        second_points=[1, 3],
        polynomial_stiffness=[10.0, 1.0, 2.0],
        polynomial_degree=[1, 2],
        compute_zero_length=False,
        zero_length=[1.0],
    )

    ff.evaluate_force(mparams)

    assert ff.strain == pytest.approx([1.0, 0.5])
    assert ff.force_value == pytest.approx([10.0, 1.0 * 0.5 + 2.0 * 0.25])


def test_missing_zero_length_uses_default(mparams, caplog):
    a, b = _pair([0.0, 0.0, 0.0], [0.0, 3.0, 0.0])
    with caplog.at_level(logging.INFO):
        ff = PolynomialSprings(a, b, compute_zero_length=False)
    assert "no zero_length" in caplog.text
    assert ff.zero_length == pytest.approx([1.0])

    f1, _ = _evaluate(ff, mparams)
    assert f1[0] == pytest.approx([0.0, 200.0, 0.0])


def test_non_positive_zero_length_is_rejected():
    a, b = _pair([0.0, 0.0, 0.0], [1.0, 0.0, 0.0])
    with pytest.raises(ValueError, match="zero_length"):
        PolynomialSprings(a, b, compute_zero_length=False, zero_length=[-1.0])


def test_coincident_capture_is_floored_and_stays_finite(mparams, caplog):
    a, b = _pair([1.0, 1.0, 1.0], [1.0, 1.0, 1.0])
    ff = PolynomialSprings(a, b)

    with caplog.at_level(logging.WARNING):
        f1, f2 = _evaluate(ff, mparams)

    assert "capturing its zero length" in caplog.text
    assert ff.zero_length[0] == MIN_ZERO_LENGTH
    assert np.all(np.isfinite(f1)) and np.all(np.isfinite(f2))
    assert np.all(np.isfinite(ff.jacobian))
    assert np.all(ff.direction[0] == 0.0)


def test_recompute_indices_keeps_captured_lengths(mparams):
    state = MechanicalState.from_positions(
        "chain", [[0.0, 0.0, 0.0], [0.0, 0.0, 1.0], [0.0, 0.0, 3.0]]
    )
    ff = PolynomialSprings(state, first_points=[0], second_points=[1], recompute_indices=True)
    ff.evaluate_force(mparams)
    assert ff.zero_length == pytest.approx([1.0])

    state.position[1] = [0.0, 0.0, 1.5]
    ff.first_points = [0, 1]
    ff.second_points = [1, 2]
    state.reset_force()
    ff.evaluate_force(mparams)

    assert ff.n_springs() == 2
    assert ff.zero_length == pytest.approx([1.0, 1.5])
    assert ff.strain == pytest.approx([0.5, 0.0])


def test_mismatched_point_lists_make_field_inert(mparams, caplog):
    s1 = _scattered_state("s1", 3, seed=3)
    s2 = _scattered_state("s2", 4, seed=4)
    with caplog.at_level(logging.ERROR):
        ff = PolynomialSprings(s1, s2, name="loose")
    assert "loose" in caplog.text

    ff.evaluate_force(mparams)
    assert ff.n_springs() == 0
    assert np.all(s1.force == 0.0) and np.all(s2.force == 0.0)


def _two_state_setup(mparams):
    s1 = _scattered_state("s1", 4, seed=5)
    s2 = _scattered_state("s2", 3, seed=6)
    ff = PolynomialSprings(
        s1,
        s2,
        first_points=[0, 2, 3],
        second_points=[1, 0, 2],
        polynomial_stiffness=[25.0, 6.0],
        polynomial_degree=[2],
        compute_zero_length=False,
        zero_length=[0.7],
    )
    ff.evaluate_force(mparams)
    return s1, s2, ff


def test_two_state_tangent_matches_dforce(mparams):
    s1, s2, ff = _two_state_setup(mparams)
    params = MechanicalParams(k_factor=0.5)

    accessor = BlockMatrixAccessor([s1, s2])
    ff.add_k_to_matrix(params, accessor)
    K = accessor.toarray()

    rng = np.random.default_rng(7)
    dx = {"s1": rng.normal(size=(4, 3)), "s2": rng.normal(size=(3, 3))}
    df = ff.evaluate_dforce(params, dx)

    stacked_dx = np.concatenate([dx["s1"].reshape(-1), dx["s2"].reshape(-1)])
    stacked_df = np.concatenate([df["s1"].reshape(-1), df["s2"].reshape(-1)])
    assert K @ stacked_dx == pytest.approx(stacked_df)
    assert K == pytest.approx(K.T)


def test_two_state_tangent_with_partial_accessor(mparams):
    s1, s2, ff = _two_state_setup(mparams)

    full = BlockMatrixAccessor([s1, s2])
    ff.add_k_to_matrix(mparams, full)
    K_full = full.toarray()

    only_first = BlockMatrixAccessor([s1])
    ff.add_k_to_matrix(mparams, only_first)
    # Only the state1 diagonal blocks are written
    assert only_first.toarray() == pytest.approx(K_full[:12, :12])

    neither = BlockMatrixAccessor([])
    ff.add_k_to_matrix(mparams, neither)
    assert neither.matrix.n_entries() == 0


def test_same_state_tangent_blocks(mparams):
    state = MechanicalState.from_positions(
        "chain",
        [[0.0, 0.0, 0.0], [0.3, 0.1, 0.0], [0.0, 1.2, 0.4], [0.5, 0.6, 0.9]],
    )
    ff = PolynomialSprings(
        state,
        first_points=[0, 1],
        second_points=[2, 3],
        compute_zero_length=False,
        zero_length=[0.8],
    )
    ff.evaluate_force(mparams)

    accessor = BlockMatrixAccessor([state])
    ff.add_k_to_matrix(mparams, accessor)
    K = accessor.toarray()

    J0 = ff.jacobian[0]
    assert K[0:3, 0:3] == pytest.approx(-J0)
    assert K[0:3, 6:9] == pytest.approx(J0)
    assert K[6:9, 0:3] == pytest.approx(J0)
    assert K[6:9, 6:9] == pytest.approx(-J0)
    assert K == pytest.approx(K.T)

    dx = np.random.default_rng(8).normal(size=(4, 3))
    df = ff.evaluate_dforce(mparams, {"chain": dx})["chain"]
    assert K @ dx.reshape(-1) == pytest.approx(df.reshape(-1))


def test_filtered_assembly_uses_first_endpoint(mparams):
    state = MechanicalState.from_positions(
        "chain",
        [[0.0, 0.0, 0.0], [0.3, 0.1, 0.0], [0.0, 1.2, 0.4], [0.5, 0.6, 0.9]],
    )
    ff = PolynomialSprings(
        state,
        first_points=[0, 1],
        second_points=[2, 3],
        compute_zero_length=False,
        zero_length=[0.8],
    )
    ff.evaluate_force(mparams)

    accessor = BlockMatrixAccessor([state])
    ff.add_sub_k_to_matrix(mparams, accessor, [1])
    K = accessor.toarray()

    # Spring 1 joins points 1 and 3; nothing from spring 0 is assembled
    assert np.all(K[0:3, :] == 0.0)
    assert np.all(K[6:9, :] == 0.0)
    assert K[3:6, 9:12] == pytest.approx(ff.jacobian[1])


def test_rayleigh_damping_scales_tangent():
    a, b = _pair([0.0, 0.0, 0.0], [0.0, 0.0, 1.5])
    ff = PolynomialSprings(a, b, compute_zero_length=False, zero_length=[1.0], rayleigh_stiffness=0.1)
    params = MechanicalParams(k_factor=2.0, b_factor=0.5)
    ff.evaluate_force(params)

    accessor = BlockMatrixAccessor([a, b])
    ff.add_k_to_matrix(params, accessor)
    K = accessor.toarray()
    assert K[0:3, 3:6] == pytest.approx(2.05 * ff.jacobian[0])


def test_zero_strain_tangent_is_axial_only(mparams):
    a, b = _pair([0.0, 0.0, 0.0], [1.2, 0.0, 1.6])
    ff = PolynomialSprings(a, b, polynomial_stiffness=[30.0, 12.0, 4.0], polynomial_degree=[3])

    # The capturing pass sees length == zero length with a well-defined direction
    _evaluate(ff, mparams)

    u = np.array([0.6, 0.0, 0.8])
    assert ff.zero_length[0] == pytest.approx(2.0)
    assert ff.strain[0] == 0.0
    assert ff.force_value[0] == 0.0
    assert ff.direction[0] == pytest.approx(u)
    # Fv = 0: no stiffness across the spring, F'(0)/L0 along it
    assert ff.jacobian[0] @ np.array([0.8, 0.0, -0.6]) == pytest.approx(np.zeros(3), abs=1e-12)
    assert ff.jacobian[0] @ np.array([0.0, 1.0, 0.0]) == pytest.approx(np.zeros(3), abs=1e-12)
    assert ff.jacobian[0] == pytest.approx(15.0 * np.outer(u, u))


def _chain(n_springs):
    positions = [[float(i), 0.0, 0.0] for i in range(n_springs)]
    positions += [[float(i), 0.0, 3.0] for i in range(n_springs)]
    return MechanicalState.from_positions("chain", positions)


@pytest.mark.parametrize(
    ("n_springs", "expected"),
    [(2, [1.0, 2.0]), (3, [1.0, 2.0, 1.0])],
)
def test_short_zero_length_list_falls_back_to_first(mparams, n_springs, expected):
    state = _chain(n_springs)
    ff = PolynomialSprings(
        state,
        first_points=list(range(n_springs)),
        second_points=list(range(n_springs, 2 * n_springs)),
        compute_zero_length=False,
        zero_length=[1.0, 2.0],
    )
    assert ff.zero_length == pytest.approx(expected)

    ff.evaluate_force(mparams)
    assert ff.strain == pytest.approx([abs(3.0 - z) / z for z in expected])


def test_growing_spring_set_with_short_zero_length_list(mparams):
    state = _chain(3)
    ff = PolynomialSprings(
        state,
        first_points=[0, 1],
        second_points=[3, 4],
        compute_zero_length=False,
        zero_length=[1.0, 2.0],
        recompute_indices=True,
    )
    ff.first_points = [0, 1, 2]
    ff.second_points = [3, 4, 5]
    ff.evaluate_force(mparams)

    assert ff.n_springs() == 3
    assert ff.zero_length == pytest.approx([1.0, 2.0, 1.0])
