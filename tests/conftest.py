from pathlib import Path

import numpy as np
import pytest

from polyspring.forcefield import MechanicalParams


REPO_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def scene_path() -> Path:
    return REPO_ROOT / "config.json"


@pytest.fixture
def mparams() -> MechanicalParams:
    return MechanicalParams(k_factor=1.0)


@pytest.fixture
def central_difference():
    def _diff(evaluate, positions, point, direction, eps=1e-6):
        """(f(x + eps*dir) - f(x - eps*dir)) / 2 for one perturbed point."""
        direction = np.asarray(direction, dtype=float)
        x_orig = positions[point].copy()
        positions[point] = x_orig + eps * direction
        f_plus = evaluate()
        positions[point] = x_orig - eps * direction
        f_minus = evaluate()
        positions[point] = x_orig
        return (f_plus - f_minus) / 2.0

    return _diff
