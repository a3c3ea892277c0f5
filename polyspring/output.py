"""Output utilities for force-pass results."""

from __future__ import annotations

import csv
from pathlib import Path

import numpy as np
from scipy import sparse

from polyspring.forcefield import ForceField
from polyspring.interaction import PolynomialSprings
from polyspring.rest_shape import PolynomialRestShapeSprings
from polyspring.state import MechanicalState


def write_forces_csv(path: Path, states: list[MechanicalState]) -> None:
    """One row per point: state, index, position and accumulated force."""
    headers = ['state', 'index', 'x', 'y', 'z', 'fx', 'fy', 'fz']
    with path.open('w', newline='', encoding='utf-8') as f:
        w = csv.writer(f)
        w.writerow(headers)
        for s in states:
            for i in range(s.size()):
                row = [s.name, str(i)]
                row += [f'{s.position[i, d]:.9g}' for d in range(3)]
                row += [f'{s.force[i, d]:.9g}' for d in range(3)]
                w.writerow(row)


def spring_rows(ff: ForceField) -> tuple[list[str], list[list[str]]]:
    """
    Per-spring working state of the last force pass.

    Rest-shape fields report the diagonal tangent, interaction fields the
    diagonal of their 3x3 block plus the stretch/compression sign.
    """
    if isinstance(ff, PolynomialRestShapeSprings):
        headers = [
            'spring', 'point', 'reference', 'length', 'zero_length', 'strain', 'force',
            'jxx', 'jyy', 'jzz',
        ]
        rows = []
        for i in range(ff.n_springs()):
            rows.append(
                [
                    str(i),
                    str(int(ff.indices.first[i])),
                    str(int(ff.indices.second[i])),
                    f'{np.sqrt(ff.squared_norm[i]):.9g}',
                    f'{ff.spring_zero_length(i):.9g}',
                    f'{ff.strain[i]:.9g}',
                    f'{ff.force_value[i]:.9g}',
                ]
                + [f'{ff.jacobian[i, d]:.9g}' for d in range(3)]
            )
        return headers, rows

    if isinstance(ff, PolynomialSprings):
        headers = [
            'spring', 'first', 'second', 'length', 'zero_length', 'strain', 'sign', 'force',
            'jxx', 'jyy', 'jzz',
        ]
        rows = []
        for i in range(ff.n_springs()):
            rows.append(
                [
                    str(i),
                    str(int(ff.indices.first[i])),
                    str(int(ff.indices.second[i])),
                    f'{ff.spring_length[i]:.9g}',
                    f'{ff.zero_length[i]:.9g}',
                    f'{ff.strain[i]:.9g}',
                    f'{ff.strain_sign[i]:.0f}',
                    f'{ff.force_value[i]:.9g}',
                ]
                + [f'{ff.jacobian[i, d, d]:.9g}' for d in range(3)]
            )
        return headers, rows

    raise TypeError(f'Unsupported force field type: {type(ff).__name__}')


def write_springs_csv(path: Path, ff: ForceField) -> None:
    headers, rows = spring_rows(ff)
    with path.open('w', newline='', encoding='utf-8') as f:
        w = csv.writer(f)
        w.writerow(headers)
        w.writerows(rows)


def write_tangent_npz(path: Path, tangent: sparse.spmatrix) -> None:
    sparse.save_npz(path, sparse.csr_matrix(tangent))
