from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

import numpy as np

from polyspring.forcefield import ForceField, MechanicalParams
from polyspring.interaction import PolynomialSprings
from polyspring.matrix import BlockMatrixAccessor
from polyspring.rest_shape import PolynomialRestShapeSprings
from polyspring.settings import opt_float_list, opt_int_list, req_float, req_str
from polyspring.state import MechanicalState


@dataclass
class Scene:
    states: dict[str, MechanicalState]
    forcefields: list[ForceField]
    mparams: MechanicalParams = field(default_factory=MechanicalParams)

    def state_list(self) -> list[MechanicalState]:
        return list(self.states.values())

    def forcefield(self, name: str) -> ForceField:
        for ff in self.forcefields:
            if ff.name == name:
                return ff
        raise KeyError(f"Unknown force field '{name}'.")

    def reset_forces(self) -> None:
        for s in self.states.values():
            s.reset_force()

    def evaluate_forces(self) -> dict[str, np.ndarray]:
        """One force pass over every field; also refreshes cached Jacobians."""
        self.reset_forces()
        for ff in self.forcefields:
            ff.evaluate_force(self.mparams)
        return {name: s.force.copy() for name, s in self.states.items()}

    def assemble_tangent(self, sub_indices: list[int] | None = None) -> BlockMatrixAccessor:
        accessor = BlockMatrixAccessor(self.state_list())
        for ff in self.forcefields:
            if sub_indices is None:
                ff.add_k_to_matrix(self.mparams, accessor)
            else:
                ff.add_sub_k_to_matrix(self.mparams, accessor, sub_indices)
        return accessor

    def apply_dforce(self, dx: dict[str, np.ndarray]) -> dict[str, np.ndarray]:
        df = {name: np.zeros_like(s.position) for name, s in self.states.items()}
        for ff in self.forcefields:
            for name, d in ff.evaluate_dforce(self.mparams, dx).items():
                df[name] += d
        return df


def _build_state(name: str, cfg: dict) -> MechanicalState:
    return MechanicalState.from_positions(
        name,
        cfg['positions'],
        rest_positions=cfg.get('rest_positions', None),
        velocities=cfg.get('velocities', None),
    )


def _build_rest_shape(ff_cfg: dict, states: dict[str, MechanicalState]) -> PolynomialRestShapeSprings:
    rest_name = ff_cfg.get('external_rest_shape', None)
    return PolynomialRestShapeSprings(
        states[req_str(ff_cfg, ['state'])],
        name=req_str(ff_cfg, ['name']),
        points=opt_int_list(ff_cfg, 'points'),
        external_points=opt_int_list(ff_cfg, 'external_points'),
        rest_state=None if rest_name is None else states[rest_name],
        polynomial_stiffness=opt_float_list(ff_cfg, 'polynomial_stiffness'),
        polynomial_degree=opt_int_list(ff_cfg, 'polynomial_degree'),
        initial_length=opt_float_list(ff_cfg, 'initial_length'),
        smooth_shift=float(ff_cfg.get('smooth_shift', 0.0)),
        smooth_scale=float(ff_cfg.get('smooth_scale', 1.0)),
        recompute_indices=bool(ff_cfg.get('recompute_indices', False)),
        rayleigh_stiffness=float(ff_cfg.get('rayleigh_stiffness', 0.0)),
    )


def _build_springs(ff_cfg: dict, states: dict[str, MechanicalState]) -> PolynomialSprings:
    state2_name = ff_cfg.get('state2', None)
    return PolynomialSprings(
        states[req_str(ff_cfg, ['state1'])],
        None if state2_name is None else states[state2_name],
        name=req_str(ff_cfg, ['name']),
        first_points=opt_int_list(ff_cfg, 'first_points'),
        second_points=opt_int_list(ff_cfg, 'second_points'),
        polynomial_stiffness=opt_float_list(ff_cfg, 'polynomial_stiffness'),
        polynomial_degree=opt_int_list(ff_cfg, 'polynomial_degree'),
        compute_zero_length=bool(ff_cfg.get('compute_zero_length', True)),
        zero_length=opt_float_list(ff_cfg, 'zero_length'),
        recompute_indices=bool(ff_cfg.get('recompute_indices', False)),
        compressible=bool(ff_cfg.get('compressible', False)),
        rayleigh_stiffness=float(ff_cfg.get('rayleigh_stiffness', 0.0)),
    )


FORCEFIELD_BUILDERS: dict[str, Callable[[dict, dict[str, MechanicalState]], ForceField]] = {
    'rest_shape': _build_rest_shape,
    'springs': _build_springs,
}


def get_forcefield_builder(kind: str) -> Callable[[dict, dict[str, MechanicalState]], ForceField]:
    key = kind.strip().lower()
    if key not in FORCEFIELD_BUILDERS:
        valid = ', '.join(FORCEFIELD_BUILDERS.keys())
        raise ValueError(f"Unknown force field type '{kind}'. Available: {valid}")
    return FORCEFIELD_BUILDERS[key]


def build_scene(config: dict) -> Scene:
    """Build states and force fields from a validated scene document."""
    states = {name: _build_state(name, cfg) for name, cfg in config['states'].items()}

    forcefields = []
    for ff_cfg in config['forcefields']:
        builder = get_forcefield_builder(req_str(ff_cfg, ['type']))
        forcefields.append(builder(ff_cfg, states))

    mp_cfg = config.get('mechanical_params', {})
    mparams = MechanicalParams(
        k_factor=req_float(config, ['mechanical_params', 'k_factor']) if mp_cfg else 1.0,
        b_factor=float(mp_cfg.get('b_factor', 0.0)),
        m_factor=float(mp_cfg.get('m_factor', 0.0)),
    )
    return Scene(states=states, forcefields=forcefields, mparams=mparams)
