from __future__ import annotations

from pathlib import Path

import numpy as np
import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt

from polyspring.forcefield import ForceField


def law_curves(ff: ForceField, strain_max: float, samples: int) -> tuple[np.ndarray, list[tuple[int, np.ndarray, np.ndarray]]]:
    """F(s) and F'(s) for every polynomial group of a field over [0, strain_max]."""
    if strain_max <= 0.0:
        raise ValueError("strain_max must be > 0.")
    if samples < 2:
        raise ValueError("samples must be >= 2.")
    s = np.linspace(0.0, float(strain_max), int(samples))
    curves = []
    for g in range(ff.table.n_groups()):
        f = np.array([ff.table.value(g, float(x)) for x in s], dtype=float)
        df = np.array([ff.table.derivative(g, float(x)) for x in s], dtype=float)
        curves.append((g, f, df))
    return s, curves


def plot_polynomial_laws(
    forcefields: list[ForceField],
    out_path: Path,
    *,
    strain_max: float = 1.0,
    samples: int = 200,
) -> None:
    fig, (ax_f, ax_df) = plt.subplots(2, 1, figsize=(8, 8), sharex=True)

    for ff in forcefields:
        s, curves = law_curves(ff, strain_max, samples)
        for g, f, df in curves:
            label = f"{ff.name}[{g}] deg={ff.table.degrees[g]}"
            ax_f.plot(s, f, label=label)
            ax_df.plot(s, df, label=label)

    ax_f.set_ylabel("F(strain)")
    ax_f.set_title("Polynomial force laws")
    ax_f.grid(True, alpha=0.3)
    ax_f.legend(loc="best", fontsize=8)

    ax_df.set_xlabel("strain")
    ax_df.set_ylabel("dF/dstrain")
    ax_df.grid(True, alpha=0.3)

    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def plot_spring_forces(forcefields: list[ForceField], out_path: Path) -> None:
    """Force magnitude vs strain of every spring in the last force pass."""
    fig, ax = plt.subplots(figsize=(8, 5))

    for ff in forcefields:
        if ff.n_springs() == 0:
            continue
        ax.scatter(ff.strain, ff.force_value, s=12, label=ff.name)

    ax.set_xlabel("strain")
    ax.set_ylabel("force magnitude")
    ax.set_title("Spring forces (last pass)")
    ax.grid(True, alpha=0.3)
    handles, _ = ax.get_legend_handles_labels()
    if handles:
        ax.legend(loc="best", fontsize=8)

    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
