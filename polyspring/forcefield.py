from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import numpy as np

from polyspring.matrix import BlockMatrixAccessor
from polyspring.polynomial import PolynomialTable


@dataclass
class MechanicalParams:
    """
    Per-call integration factors. The tangent is scaled by
      k_factor + rayleigh_stiffness * b_factor
    so that Rayleigh stiffness damping lands in the same matrix.
    """

    k_factor: float = 1.0
    b_factor: float = 0.0
    # Mass factor of the host parameter set; springs carry no mass term
    m_factor: float = 0.0

    def k_factor_including_rayleigh_damping(self, rayleigh_stiffness: float) -> float:
        return float(self.k_factor) + float(rayleigh_stiffness) * float(self.b_factor)


class ForceField(Protocol):
    """
    What a host needs from a spring field. The cached tangent is only valid
    for the configuration of the last evaluate_force call.
    """

    name: str
    table: PolynomialTable
    strain: np.ndarray
    force_value: np.ndarray

    def init(self) -> None: ...

    def recompute_indices(self) -> None: ...

    def n_springs(self) -> int: ...

    def evaluate_force(self, mparams: MechanicalParams) -> None: ...

    def evaluate_dforce(self, mparams: MechanicalParams, dx: dict) -> dict: ...

    def add_k_to_matrix(self, mparams: MechanicalParams, matrix: BlockMatrixAccessor) -> None: ...

    def add_sub_k_to_matrix(
        self,
        mparams: MechanicalParams,
        matrix: BlockMatrixAccessor,
        sub_indices: Sequence[int],
    ) -> None: ...
