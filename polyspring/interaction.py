"""
Polynomial springs between two simulated point sets (or two subsets of the
same one). Strain is measured against a per-spring zero length, which can be
captured from the first evaluated configuration.
"""

from __future__ import annotations

import enum
import logging
import math
from collections.abc import Sequence

import numpy as np

from polyspring.forcefield import MechanicalParams
from polyspring.indices import SpringIndices, resolve_indices
from polyspring.matrix import BlockMatrixAccessor
from polyspring.polynomial import PolynomialTable, build_polynomial_table
from polyspring.state import DIM, MechanicalState


logger = logging.getLogger(__name__)

DEFAULT_ZERO_LENGTH = 1.0
MIN_ZERO_LENGTH = 1e-12


class ZeroLengthState(enum.Enum):
    UNCAPTURED = 0
    CAPTURED = 1


class PolynomialSprings:
    def __init__(
        self,
        state1: MechanicalState,
        state2: MechanicalState | None = None,
        *,
        name: str = 'polynomial_springs',
        first_points: Sequence[int] | None = None,
        second_points: Sequence[int] | None = None,
        polynomial_stiffness: Sequence[float] | None = None,
        polynomial_degree: Sequence[int] | None = None,
        compute_zero_length: bool = True,
        zero_length: Sequence[float] | float | None = None,
        recompute_indices: bool = False,
        compressible: bool = False,
        rayleigh_stiffness: float = 0.0,
    ):
        self.name = name
        self.state1 = state1
        self.state2 = state1 if state2 is None else state2
        self.first_points = list(first_points) if first_points is not None else []
        self.second_points = list(second_points) if second_points is not None else []
        self.polynomial_stiffness = polynomial_stiffness
        self.polynomial_degree = polynomial_degree
        self.compute_zero_length = bool(compute_zero_length)
        self.zero_length_input = zero_length
        self.recompute_indices_each_step = bool(recompute_indices)
        self.compressible = bool(compressible)
        self.rayleigh_stiffness = float(rayleigh_stiffness)

        self.indices = SpringIndices.empty()
        self.table: PolynomialTable | None = None
        self._configured_zero_length = np.array([DEFAULT_ZERO_LENGTH], dtype=float)

        self.zero_length = np.zeros(0, dtype=float)
        self.zero_length_state: list[ZeroLengthState] = []

        # Per-spring working state of the last force pass
        self.spring_length = np.zeros(0, dtype=float)
        self.direction = np.zeros((0, DIM), dtype=float)
        self.strain = np.zeros(0, dtype=float)
        self.strain_sign = np.zeros(0, dtype=float)
        self.force_value = np.zeros(0, dtype=float)
        self.jacobian = np.zeros((0, DIM, DIM), dtype=float)

        self.init()

    def same_state(self) -> bool:
        return self.state1 is self.state2

    def init(self) -> None:
        if self.zero_length_input is not None and np.size(self.zero_length_input) > 0:
            self._configured_zero_length = np.asarray(self.zero_length_input, dtype=float).reshape(-1)
        elif not self.compute_zero_length:
            logger.info(
                '[%s]: no zero_length given, using %s for every spring',
                self.name,
                DEFAULT_ZERO_LENGTH,
            )
        if not self.compute_zero_length and np.any(self._configured_zero_length <= 0.0):
            raise ValueError(f'{self.name}: zero_length values must be > 0.')

        self.zero_length = np.zeros(0, dtype=float)
        self.zero_length_state = []
        self.recompute_indices()
        self.table = build_polynomial_table(self.polynomial_stiffness, self.polynomial_degree)

    def recompute_indices(self) -> None:
        self.indices = resolve_indices(
            self.first_points,
            self.second_points,
            self.state1.size(),
            self.state2.size(),
            owner=self.name,
        )
        self._resize_working_state(self.indices.size())

    def _configured_length(self, i: int) -> float:
        zl = self._configured_zero_length
        return float(zl[i] if i < zl.size else zl[0])

    def _resize_working_state(self, n: int) -> None:
        # Springs that already exist keep their zero length and capture state.
        n_old = self.zero_length.size
        keep = min(n_old, n)
        zero_length = np.zeros(n, dtype=float)
        zero_length[:keep] = self.zero_length[:keep]
        states = self.zero_length_state[:keep]
        for i in range(keep, n):
            if self.compute_zero_length:
                states.append(ZeroLengthState.UNCAPTURED)
            else:
                states.append(ZeroLengthState.CAPTURED)
                zero_length[i] = self._configured_length(i)
        self.zero_length = zero_length
        self.zero_length_state = states

        self.spring_length = np.zeros(n, dtype=float)
        self.direction = np.zeros((n, DIM), dtype=float)
        self.strain = np.zeros(n, dtype=float)
        self.strain_sign = np.zeros(n, dtype=float)
        self.force_value = np.zeros(n, dtype=float)
        self.jacobian = np.zeros((n, DIM, DIM), dtype=float)

    def n_springs(self) -> int:
        return self.indices.size()

    def _capture_zero_length(self, i: int, length: float) -> None:
        if length < MIN_ZERO_LENGTH:
            logger.warning(
                '[%s]: spring %d has length %.3g when capturing its zero length; using %.3g',
                self.name,
                i,
                length,
                MIN_ZERO_LENGTH,
            )
            length = MIN_ZERO_LENGTH
        self.zero_length[i] = length
        self.zero_length_state[i] = ZeroLengthState.CAPTURED

    def add_force(
        self,
        mparams: MechanicalParams,
        f1: np.ndarray,
        f2: np.ndarray,
        p1: np.ndarray,
        p2: np.ndarray,
        v1: np.ndarray | None = None,
        v2: np.ndarray | None = None,
    ) -> None:
        """
        Accumulate spring forces into f1/f2 (read-write) from positions p1/p2
        (read-only). With a single state, f1 and f2 may be the same array.
        A stretched spring pulls its endpoints together; a compressed one
        pushes them apart unless the spring is compressible (slack).
        """
        if self.recompute_indices_each_step:
            self.recompute_indices()

        compression_value = 0.0 if self.compressible else -1.0
        groups = self.table.group_for_springs(self.n_springs())

        for i in range(self.n_springs()):
            first_index = int(self.indices.first[i])
            second_index = int(self.indices.second[i])

            dx = p2[second_index] - p1[first_index]
            length = float(np.linalg.norm(dx))
            self.spring_length[i] = length
            if self.zero_length_state[i] is ZeroLengthState.UNCAPTURED:
                self._capture_zero_length(i, length)

            if length > 0.0:
                self.direction[i] = dx / length
            else:
                logger.debug('[%s]: spring %d has zero length, no direction', self.name, i)
                self.direction[i] = 0.0

            zero_length = float(self.zero_length[i])
            self.strain[i] = abs(length - zero_length) / zero_length
            force_value = self.table.value(int(groups[i]), float(self.strain[i]))
            self.force_value[i] = force_value
            self.strain_sign[i] = 1.0 if length - zero_length >= 0.0 else compression_value

            force = force_value * self.strain_sign[i] * self.direction[i]
            f1[first_index] += force
            f2[second_index] -= force

            self._compute_jacobian(int(groups[i]), i)

    def _compute_jacobian(self, group: int, i: int) -> None:
        """
        J = d(force on first endpoint)/d(second endpoint)
          = (F'v - Fv) * u u^T + Fv * I
        with Fv the signed force over the current length and F'v the signed
        strain derivative over the zero length.
        """
        sign = float(self.strain_sign[i])
        length = float(self.spring_length[i])
        if sign == 0.0 or length <= 0.0:
            force_res = 0.0
        else:
            force_res = sign * self.table.value(group, float(self.strain[i])) / length
        derivative_res = (
            abs(sign) * self.table.derivative(group, float(self.strain[i])) / float(self.zero_length[i])
        )

        u = self.direction[i]
        jacob = (derivative_res - force_res) * np.outer(u, u)
        jacob[np.diag_indices(DIM)] += force_res
        self.jacobian[i] = jacob

    def add_dforce(
        self,
        mparams: MechanicalParams,
        df1: np.ndarray,
        df2: np.ndarray,
        dx1: np.ndarray,
        dx2: np.ndarray,
    ) -> None:
        k_factor = mparams.k_factor_including_rayleigh_damping(self.rayleigh_stiffness)
        for i in range(self.n_springs()):
            first_index = int(self.indices.first[i])
            second_index = int(self.indices.second[i])
            force_delta = self.jacobian[i] @ (dx2[second_index] - dx1[first_index])

            df1[first_index] += force_delta * k_factor
            df2[second_index] -= force_delta * k_factor

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
        k_fact = mparams.k_factor_including_rayleigh_damping(self.rayleigh_stiffness)

        if self.same_state():
            mref = matrix.get_matrix(self.state1)
            if mref is None:
                return
            mat = mref.matrix
            offset = mref.offset
            for i in range(self.n_springs()):
                first_index = int(self.indices.first[i])
                second_index = int(self.indices.second[i])
                if allowed is not None and first_index not in allowed:
                    continue
                stiffness_deriv = self.jacobian[i] * k_fact
                a = offset + DIM * first_index
                b = offset + DIM * second_index
                mat.add_block(a, a, -stiffness_deriv)
                mat.add_block(a, b, stiffness_deriv)
                mat.add_block(b, a, stiffness_deriv)
                mat.add_block(b, b, -stiffness_deriv)
            return

        mref11 = matrix.get_matrix(self.state1)
        mref22 = matrix.get_matrix(self.state2)
        mref12 = matrix.get_interaction_matrix(self.state1, self.state2)
        mref21 = matrix.get_interaction_matrix(self.state2, self.state1)
        if mref11 is None and mref22 is None and mref12 is None and mref21 is None:
            return

        for i in range(self.n_springs()):
            first_index = int(self.indices.first[i])
            second_index = int(self.indices.second[i])
            if allowed is not None and first_index not in allowed:
                continue
            stiffness_deriv = self.jacobian[i] * k_fact
            if mref11 is not None:
                a = mref11.offset + DIM * first_index
                mref11.matrix.add_block(a, a, -stiffness_deriv)
            if mref12 is not None:
                mref12.matrix.add_block(
                    mref12.off_row + DIM * first_index,
                    mref12.off_col + DIM * second_index,
                    stiffness_deriv,
                )
            if mref21 is not None:
                mref21.matrix.add_block(
                    mref21.off_row + DIM * second_index,
                    mref21.off_col + DIM * first_index,
                    stiffness_deriv,
                )
            if mref22 is not None:
                b = mref22.offset + DIM * second_index
                mref22.matrix.add_block(b, b, -stiffness_deriv)

    # Host-level entry points (read/write the owning states' arrays)

    def evaluate_force(self, mparams: MechanicalParams) -> None:
        self.add_force(
            mparams,
            self.state1.force,
            self.state2.force,
            self.state1.position,
            self.state2.position,
            self.state1.velocity,
            self.state2.velocity,
        )

    def evaluate_dforce(self, mparams: MechanicalParams, dx: dict) -> dict:
        df = {
            self.state1.name: np.zeros_like(self.state1.position),
            self.state2.name: np.zeros_like(self.state2.position),
        }
        self.add_dforce(
            mparams,
            df[self.state1.name],
            df[self.state2.name],
            np.asarray(dx[self.state1.name], dtype=float),
            np.asarray(dx[self.state2.name], dtype=float),
        )
        return df
