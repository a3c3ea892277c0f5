"""
Anchored polynomial springs: each selected point of one state is tied to a
reference position that is not simulated (its own rest position, or a point
of an external rest-shape state).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import numpy as np

from polyspring.forcefield import MechanicalParams
from polyspring.indices import SpringIndices, resolve_rest_shape_indices
from polyspring.matrix import BlockMatrixAccessor
from polyspring.polynomial import PolynomialTable, build_polynomial_table
from polyspring.state import DIM, MechanicalState


logger = logging.getLogger(__name__)

DEFAULT_INITIAL_LENGTH = 1.0


class PolynomialRestShapeSprings:
    def __init__(
        self,
        state: MechanicalState,
        *,
        name: str = 'rest_shape_springs',
        points: Sequence[int] | None = None,
        external_points: Sequence[int] | None = None,
        rest_state: MechanicalState | None = None,
        polynomial_stiffness: Sequence[float] | None = None,
        polynomial_degree: Sequence[int] | None = None,
        initial_length: Sequence[float] | float | None = None,
        smooth_shift: float = 0.0,
        smooth_scale: float = 1.0,
        recompute_indices: bool = False,
        rayleigh_stiffness: float = 0.0,
    ):
        self.name = name
        self.state = state
        self.rest_state = rest_state
        self.points = list(points) if points is not None else []
        self.external_points = list(external_points) if external_points is not None else []
        self.polynomial_stiffness = polynomial_stiffness
        self.polynomial_degree = polynomial_degree
        self.initial_length = initial_length
        self.smooth_shift = float(smooth_shift)
        self.smooth_scale = float(smooth_scale)
        self.recompute_indices_each_step = bool(recompute_indices)
        self.rayleigh_stiffness = float(rayleigh_stiffness)

        self.indices = SpringIndices.empty()
        self.table: PolynomialTable | None = None
        self.zero_length = np.array([DEFAULT_INITIAL_LENGTH], dtype=float)

        # Per-spring working state of the last force pass
        self.spring_vector = np.zeros((0, DIM), dtype=float)
        self.squared_norm = np.zeros(0, dtype=float)
        self.direction_length = np.zeros(0, dtype=float)
        self.direction = np.zeros((0, DIM), dtype=float)
        self.strain = np.zeros(0, dtype=float)
        self.force_value = np.zeros(0, dtype=float)
        self.jacobian = np.zeros((0, DIM), dtype=float)

        self.init()

    def init(self) -> None:
        if self.initial_length is None or np.size(self.initial_length) == 0:
            self.zero_length = np.array([DEFAULT_INITIAL_LENGTH], dtype=float)
        else:
            self.zero_length = np.asarray(self.initial_length, dtype=float).reshape(-1)
        if np.any(self.zero_length <= 0.0):
            raise ValueError(f'{self.name}: initial_length values must be > 0.')

        if self.rest_state is None:
            logger.info('[%s]: using the rest state %s', self.name, self.state.name)
        else:
            logger.info('[%s]: using the external state %s', self.name, self.rest_state.name)

        self.recompute_indices()
        self.table = build_polynomial_table(self.polynomial_stiffness, self.polynomial_degree)

    def recompute_indices(self) -> None:
        n_external = None if self.rest_state is None else self.rest_state.size()
        self.indices = resolve_rest_shape_indices(
            self.points,
            self.external_points,
            self.state.size(),
            n_external,
            owner=self.name,
        )
        self._resize_working_state(self.indices.size())

    def _resize_working_state(self, n: int) -> None:
        self.spring_vector = np.zeros((n, DIM), dtype=float)
        self.squared_norm = np.zeros(n, dtype=float)
        self.direction_length = np.zeros(n, dtype=float)
        self.direction = np.zeros((n, DIM), dtype=float)
        self.strain = np.zeros(n, dtype=float)
        self.force_value = np.zeros(n, dtype=float)
        self.jacobian = np.zeros((n, DIM), dtype=float)

    def n_springs(self) -> int:
        return self.indices.size()

    def reference_positions(self) -> np.ndarray:
        if self.rest_state is not None:
            return self.rest_state.position
        return self.state.rest_position

    def spring_zero_length(self, i: int) -> float:
        return float(self.zero_length[i] if i < self.zero_length.size else self.zero_length[0])

    def add_force(
        self,
        mparams: MechanicalParams,
        f: np.ndarray,
        x: np.ndarray,
        v: np.ndarray | None = None,
    ) -> None:
        """
        Accumulate spring forces into f (read-write) from current positions x
        (read-only). The reference positions are read from the rest provider.
        Velocities are unused.
        """
        if self.recompute_indices_each_step:
            self.recompute_indices()

        x0 = self.reference_positions()
        groups = self.table.group_for_springs(self.n_springs())

        for i in range(self.n_springs()):
            index = int(self.indices.first[i])
            ext_index = int(self.indices.second[i])

            dx = x[index] - x0[ext_index]
            sq = float(np.dot(dx, dx))
            self.spring_vector[i] = dx
            self.squared_norm[i] = sq

            # Strain uses the true length
            spring_length = math.sqrt(sq)
            self.strain[i] = spring_length / self.spring_zero_length(i)
            force_value = self.table.value(int(groups[i]), float(self.strain[i]))
            self.force_value[i] = force_value

            # Direction uses the regularized length: dx^2 + exp(shift - scale * dx^2)
            squared_denominator = sq + math.exp(self.smooth_shift - self.smooth_scale * sq)
            self.direction_length[i] = math.sqrt(squared_denominator)
            self.direction[i] = dx / self.direction_length[i]

            f[index] -= force_value * self.direction[i]

            self._compute_jacobian(int(groups[i]), i)

    def _compute_jacobian(self, group: int, i: int) -> None:
        # Only the point side is a degree of freedom: keep the diagonal.
        force_res = self.table.value(group, float(self.strain[i])) / self.direction_length[i]
        derivative_res = self.table.derivative(group, float(self.strain[i])) / self.spring_zero_length(i)
        exponential_derivative = 1.0 - self.smooth_scale * math.exp(
            self.smooth_shift - self.smooth_scale * float(self.squared_norm[i])
        )
        d = self.direction[i]
        self.jacobian[i] = (derivative_res - force_res) * exponential_derivative * d * d + force_res

    def add_dforce(
        self,
        mparams: MechanicalParams,
        df: np.ndarray,
        dx: np.ndarray,
    ) -> None:
        k_factor = mparams.k_factor_including_rayleigh_damping(self.rayleigh_stiffness)
        for i in range(self.n_springs()):
            index = int(self.indices.first[i])
            df[index] -= self.jacobian[i] * dx[index] * k_factor

    def add_k_to_matrix(self, mparams: MechanicalParams, matrix: BlockMatrixAccessor) -> None:
        self._add_k(mparams, matrix, None)

    def add_sub_k_to_matrix(
        self,
        mparams: MechanicalParams,
        matrix: BlockMatrixAccessor,
        sub_indices: Sequence[int],
    ) -> None:
        self._add_k(mparams, matrix, {int(s) for s in sub_indices})

    def _add_k(
        self,
        mparams: MechanicalParams,
        matrix: BlockMatrixAccessor,
        allowed: set[int] | None,
    ) -> None:
        mref = matrix.get_matrix(self.state)
        if mref is None:
            return
        k_fact = mparams.k_factor_including_rayleigh_damping(self.rayleigh_stiffness)

        for i in range(self.n_springs()):
            cur_index = int(self.indices.first[i])
            if allowed is not None and cur_index not in allowed:
                continue
            pos = mref.offset + DIM * cur_index
            mref.matrix.add_diagonal(pos, pos, -k_fact * self.jacobian[i])

    # Host-level entry points (read/write the owning state's arrays)

    def evaluate_force(self, mparams: MechanicalParams) -> None:
        self.add_force(mparams, self.state.force, self.state.position, self.state.velocity)

    def evaluate_dforce(self, mparams: MechanicalParams, dx: dict) -> dict:
        df = {self.state.name: np.zeros_like(self.state.position)}
        self.add_dforce(mparams, df[self.state.name], np.asarray(dx[self.state.name], dtype=float))
        return df
