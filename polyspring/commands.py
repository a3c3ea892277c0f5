"""Evaluate, check and plot commands for scene files."""

from __future__ import annotations

from pathlib import Path

import numpy as np

from polyspring.checks import JacobianCheck, check_jacobian
from polyspring.config import (
    FORCES_CSV,
    LAWS_PNG,
    SPRING_FORCES_PNG,
    TANGENT_NPZ,
    springs_csv_name,
)
from polyspring.output import write_forces_csv, write_springs_csv, write_tangent_npz
from polyspring.plotting import plot_polynomial_laws, plot_spring_forces
from polyspring.scene import Scene, build_scene
from polyspring.settings import read_config, req_float, req_int, req_str, resolve_path


def _output_dir(config: dict, out_dir: Path | None) -> Path:
    path = out_dir if out_dir is not None else resolve_path(req_str(config, ['output_dir']))
    path.mkdir(parents=True, exist_ok=True)
    return path


def _describe_scene(scene: Scene, echo=print) -> None:
    echo('Scene:')
    for name, s in scene.states.items():
        echo(f'  state {name:12s} points={s.size()}')
    for ff in scene.forcefields:
        degrees = ff.table.degrees
        law = 'per-spring' if ff.table.n_groups() == ff.n_springs() else 'shared'
        echo(f'  field {ff.name:12s} springs={ff.n_springs()} groups={len(degrees)} law={law}')


def run_evaluate(config_path: Path, *, out_dir: Path | None = None, echo=print) -> Path:
    """
    One force pass + tangent assembly. Writes:
      forces.csv, springs_<field>.csv, tangent.npz, spring_forces.png
    """
    config = read_config(config_path)
    scene = build_scene(config)
    out = _output_dir(config, out_dir)

    _describe_scene(scene, echo=echo)

    scene.evaluate_forces()
    accessor = scene.assemble_tangent()
    tangent = accessor.tocsr()

    write_forces_csv(out / FORCES_CSV, scene.state_list())
    for ff in scene.forcefields:
        write_springs_csv(out / springs_csv_name(ff.name), ff)
    write_tangent_npz(out / TANGENT_NPZ, tangent)
    plot_spring_forces(scene.forcefields, out / SPRING_FORCES_PNG)

    for name, s in scene.states.items():
        fmax = float(np.max(np.linalg.norm(s.force, axis=1))) if s.size() else 0.0
        echo(f'  |f|max {name:12s} {fmax:.6g}')
    echo(f'  tangent: {tangent.shape[0]}x{tangent.shape[1]}, nnz={tangent.nnz}')
    echo(f'Results written to {out}/')
    return out


def run_check(config_path: Path, *, echo=print) -> tuple[list[JacobianCheck], bool]:
    """Returns the per-field results and whether all of them are within tolerance."""
    config = read_config(config_path)
    scene = build_scene(config)
    epsilon = req_float(config, ['check', 'epsilon'])
    tolerance = req_float(config, ['check', 'tolerance'])

    _describe_scene(scene, echo=echo)
    echo(f'=== Jacobian check (epsilon={epsilon:g}, tolerance={tolerance:g}) ===')

    # Capture lazily initialized zero lengths on the configured positions
    scene.evaluate_forces()

    results = []
    all_ok = True
    for ff in scene.forcefields:
        r = check_jacobian(ff, epsilon=epsilon)
        ok = r.max_rel_error <= tolerance
        all_ok = all_ok and ok
        status = 'ok' if ok else 'FAIL'
        mode = 'diagonal' if r.diagonal_only else 'full'
        echo(
            f'  {r.name:12s} dofs={r.n_dofs:4d} {mode:8s} '
            f'abs={r.max_abs_error:.3e} rel={r.max_rel_error:.3e} {status}'
        )
        results.append(r)
    return results, all_ok


def run_plot_laws(config_path: Path, *, out_dir: Path | None = None, echo=print) -> Path:
    config = read_config(config_path)
    scene = build_scene(config)
    out = _output_dir(config, out_dir)

    path = out / LAWS_PNG
    plot_polynomial_laws(
        scene.forcefields,
        path,
        strain_max=req_float(config, ['plotting', 'strain_max']),
        samples=req_int(config, ['plotting', 'samples']),
    )
    echo(f'Laws plot written to {path}')
    return path
