from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


DIM = 3


def _as_points(values, n: int | None = None) -> np.ndarray:
    if values is None:
        return np.zeros((0 if n is None else n, DIM), dtype=float)
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return np.zeros((0, DIM), dtype=float)
    arr = arr.reshape(-1, DIM)
    return arr.copy()


@dataclass
class MechanicalState:
    """
    Point set owned by the simulation host.

    The force fields read position/rest_position/velocity and accumulate
    into force; they never resize or replace these arrays.
    """

    name: str
    position: np.ndarray  # shape (N, 3)
    rest_position: np.ndarray  # shape (N, 3)
    velocity: np.ndarray  # shape (N, 3)
    force: np.ndarray = field(default=None)  # shape (N, 3)

    def __post_init__(self) -> None:
        n = self.position.shape[0]
        for label in ('rest_position', 'velocity'):
            arr = getattr(self, label)
            if arr.shape != (n, DIM):
                raise ValueError(f'{self.name}.{label} must have shape {(n, DIM)}, got {arr.shape}.')
        if self.force is None:
            self.force = np.zeros((n, DIM), dtype=float)

    @classmethod
    def from_positions(
        cls,
        name: str,
        positions,
        rest_positions=None,
        velocities=None,
    ) -> MechanicalState:
        x = _as_points(positions)
        n = x.shape[0]
        x0 = x.copy() if rest_positions is None else _as_points(rest_positions)
        v = np.zeros((n, DIM), dtype=float) if velocities is None else _as_points(velocities)
        return cls(name=name, position=x, rest_position=x0, velocity=v)

    def size(self) -> int:
        return int(self.position.shape[0])

    def reset_force(self) -> None:
        self.force[:] = 0.0
