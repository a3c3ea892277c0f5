"""Polynomial force/strain laws with heterogeneous degree per spring."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np


logger = logging.getLogger(__name__)

DEFAULT_STIFFNESS = 100.0
DEFAULT_DEGREE = 1


@dataclass
class PolynomialTable:
    """
    Ragged coefficient table built from two co-indexed flat inputs:

      stiffness: all coefficients, group after group
      degrees:   one degree per coefficient group

    slots[g][k] is the index into stiffness of the k-th coefficient of group g,
    i.e. the coefficient of strain^(k+1).
    """

    stiffness: np.ndarray  # shape (sum(degrees),)
    degrees: list[int]
    slots: list[list[int]]

    def n_groups(self) -> int:
        return len(self.degrees)

    def coefficients(self, group: int) -> np.ndarray:
        return self.stiffness[self.slots[group]]

    def value(self, group: int, strain: float) -> float:
        """
        F(s) = sum_k c[k] * s^(k+1), k = 0..degree-1
        (no constant term: zero strain gives zero force).
        """
        high_order_strain = 1.0
        result = 0.0
        for slot in self.slots[group]:
            high_order_strain *= strain
            result += float(self.stiffness[slot]) * high_order_strain
        return result

    def derivative(self, group: int, strain: float) -> float:
        """
        dF/ds = sum_k (k+1) * c[k] * s^k, k = 0..degree-1
        """
        high_order_strain = 1.0
        result = 0.0
        for k, slot in enumerate(self.slots[group]):
            result += (k + 1) * float(self.stiffness[slot]) * high_order_strain
            high_order_strain *= strain
        return result

    def group_for_springs(self, n_springs: int) -> np.ndarray:
        """
        Law selection for one force pass:
          - as many groups as springs: spring i uses group i
          - otherwise every spring shares group 0
        """
        if self.n_groups() == n_springs:
            return np.arange(n_springs, dtype=int)
        return np.zeros(n_springs, dtype=int)


def build_polynomial_table(
    stiffness: Sequence[float] | np.ndarray | None,
    degrees: Sequence[int] | None,
) -> PolynomialTable:
    if stiffness is None or len(stiffness) == 0:
        logger.info(
            'No polynomial stiffness is defined, assuming equal stiffness on each spring, k = %s',
            DEFAULT_STIFFNESS,
        )
        stiffness = [DEFAULT_STIFFNESS]

    if degrees is None or len(degrees) == 0:
        degrees = [DEFAULT_DEGREE]

    coeffs = np.asarray(stiffness, dtype=float).reshape(-1)
    degree_list = [int(d) for d in degrees]

    if any(d < 1 for d in degree_list):
        raise ValueError(f'Polynomial degrees must be >= 1, got {degree_list}.')

    total = int(sum(degree_list))
    if total != coeffs.size:
        raise ValueError(
            f'Polynomial degrees {degree_list} need {total} coefficients, '
            f'got {coeffs.size}.'
        )

    slots: list[list[int]] = []
    input_index = 0
    for degree in degree_list:
        slots.append(list(range(input_index, input_index + degree)))
        input_index += degree

    return PolynomialTable(stiffness=coeffs, degrees=degree_list, slots=slots)
