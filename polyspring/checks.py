from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from polyspring.forcefield import ForceField, MechanicalParams
from polyspring.interaction import PolynomialSprings
from polyspring.matrix import BlockMatrixAccessor
from polyspring.rest_shape import PolynomialRestShapeSprings
from polyspring.state import DIM, MechanicalState


@dataclass
class JacobianCheck:
    name: str
    n_dofs: int
    max_abs_error: float
    max_rel_error: float
    diagonal_only: bool


def involved_states(ff: ForceField) -> list[MechanicalState]:
    if isinstance(ff, PolynomialRestShapeSprings):
        return [ff.state]
    if isinstance(ff, PolynomialSprings):
        return [ff.state1] if ff.same_state() else [ff.state1, ff.state2]
    raise TypeError(f'Unsupported force field type: {type(ff).__name__}')


def _forces(ff: ForceField, states: list[MechanicalState], mparams: MechanicalParams) -> np.ndarray:
    for s in states:
        s.force = np.zeros_like(s.position)
    ff.evaluate_force(mparams)
    return np.concatenate([s.force.reshape(-1) for s in states])


def check_jacobian(ff: ForceField, epsilon: float = 1e-6) -> JacobianCheck:
    """
    Compare the assembled tangent (unit stiffness factor) with central
    differences of the nodal forces.

    Anchored springs only carry the diagonal of their tangent, so only the
    diagonal entries are compared for them.

    Positions and nodal forces of the involved states are restored afterwards;
    the cached per-spring working state is left at the unperturbed configuration.
    """
    if epsilon <= 0.0:
        raise ValueError('epsilon must be > 0.')

    states = involved_states(ff)
    mparams = MechanicalParams(k_factor=1.0)
    saved_forces = [s.force for s in states]

    try:
        _forces(ff, states, mparams)
        accessor = BlockMatrixAccessor(states)
        ff.add_k_to_matrix(mparams, accessor)
        K = accessor.toarray()

        n = accessor.size
        fd = np.zeros((n, n), dtype=float)
        col = 0
        for s in states:
            for p in range(s.size()):
                for d in range(DIM):
                    x_orig = float(s.position[p, d])
                    s.position[p, d] = x_orig + epsilon
                    f_plus = _forces(ff, states, mparams)
                    s.position[p, d] = x_orig - epsilon
                    f_minus = _forces(ff, states, mparams)
                    s.position[p, d] = x_orig
                    fd[:, col] = (f_plus - f_minus) / (2.0 * epsilon)
                    col += 1

        # Leave the caches at the unperturbed configuration
        _forces(ff, states, mparams)
    finally:
        for s, f in zip(states, saved_forces):
            s.force = f

    diagonal_only = isinstance(ff, PolynomialRestShapeSprings)
    if diagonal_only:
        err = np.abs(np.diag(K) - np.diag(fd))
        scale = float(np.max(np.abs(np.diag(fd)))) if n else 0.0
    else:
        err = np.abs(K - fd)
        scale = float(np.max(np.abs(fd))) if n else 0.0

    max_abs = float(np.max(err)) if err.size else 0.0
    max_rel = max_abs / scale if scale > 0.0 else max_abs
    return JacobianCheck(
        name=ff.name,
        n_dofs=n,
        max_abs_error=max_abs,
        max_rel_error=max_rel,
        diagonal_only=diagonal_only,
    )
