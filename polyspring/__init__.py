"""Nonlinear polynomial springs with exact tangent stiffness for implicit solvers."""

from __future__ import annotations

from polyspring.forcefield import ForceField, MechanicalParams
from polyspring.interaction import PolynomialSprings, ZeroLengthState
from polyspring.matrix import BlockMatrixAccessor, InteractionMatrixRef, MatrixRef, TripletMatrix
from polyspring.polynomial import PolynomialTable, build_polynomial_table
from polyspring.rest_shape import PolynomialRestShapeSprings
from polyspring.scene import Scene, build_scene
from polyspring.state import MechanicalState


__all__ = [
    # Host collaborators
    'MechanicalState',
    'MechanicalParams',
    'BlockMatrixAccessor',
    'TripletMatrix',
    'MatrixRef',
    'InteractionMatrixRef',
    # Laws
    'PolynomialTable',
    'build_polynomial_table',
    # Force fields
    'ForceField',
    'PolynomialRestShapeSprings',
    'PolynomialSprings',
    'ZeroLengthState',
    # Scenes
    'Scene',
    'build_scene',
]
