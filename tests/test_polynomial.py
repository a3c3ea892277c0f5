import numpy as np
import pytest

from polyspring.polynomial import build_polynomial_table


@pytest.mark.parametrize("s", [0.0, 0.25, 0.5, 1.3, -0.7])
def test_cubic_value_and_derivative(s):
    table = build_polynomial_table([2.0, 3.0, 4.0], [3])
    assert table.value(0, s) == pytest.approx(2 * s + 3 * s**2 + 4 * s**3)
    assert table.derivative(0, s) == pytest.approx(2 + 6 * s + 12 * s**2)


def test_defaults_give_linear_law_of_100():
    table = build_polynomial_table(None, None)
    assert table.degrees == [1]
    assert table.stiffness.tolist() == [100.0]
    assert table.value(0, 0.5) == pytest.approx(50.0)
    assert table.derivative(0, 0.5) == pytest.approx(100.0)


def test_missing_degree_is_linear():
    table = build_polynomial_table([42.0], [])
    assert table.degrees == [1]
    assert table.value(0, 2.0) == pytest.approx(84.0)


def test_ragged_slots_follow_degree_groups():
    table = build_polynomial_table([1, 2, 3, 4, 5, 6], [1, 2, 3])
    assert table.slots == [[0], [1, 2], [3, 4, 5]]
    assert table.coefficients(1).tolist() == [2.0, 3.0]
    assert table.value(2, 1.0) == pytest.approx(4 + 5 + 6)
    assert table.value(1, 2.0) == pytest.approx(2 * 2 + 3 * 4)


def test_zero_strain_gives_zero_force_and_linear_slope():
    table = build_polynomial_table([7.0, -3.0, 11.0], [3])
    assert table.value(0, 0.0) == 0.0
    assert table.derivative(0, 0.0) == pytest.approx(7.0)


def test_coefficient_count_must_match_degrees():
    with pytest.raises(ValueError, match="need 3 coefficients"):
        build_polynomial_table([1.0, 2.0], [3])
    with pytest.raises(ValueError):
        build_polynomial_table([1.0, 2.0, 3.0], [1])


def test_degree_must_be_positive():
    with pytest.raises(ValueError, match=">= 1"):
        build_polynomial_table([1.0], [1, 0])


def test_law_selection_per_spring_or_shared():
    shared = build_polynomial_table([5.0], [1])
    assert shared.group_for_springs(5).tolist() == [0, 0, 0, 0, 0]

    per_spring = build_polynomial_table([1, 2, 3, 4, 5], [1, 1, 1, 1, 1])
    assert per_spring.group_for_springs(5).tolist() == [0, 1, 2, 3, 4]

    # Any count mismatch falls back to group 0
    two = build_polynomial_table([1, 2], [1, 1])
    assert np.all(two.group_for_springs(5) == 0)
    assert two.group_for_springs(0).size == 0
