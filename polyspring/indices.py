from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np


logger = logging.getLogger(__name__)


@dataclass
class SpringIndices:
    """Spring i connects first[i] (primary endpoint) to second[i]."""

    first: np.ndarray  # shape (S,), int
    second: np.ndarray  # shape (S,), int

    def size(self) -> int:
        return int(self.first.size)

    @classmethod
    def empty(cls) -> SpringIndices:
        return cls(first=np.zeros(0, dtype=int), second=np.zeros(0, dtype=int))


def _explicit_or_all(points: Sequence[int] | None, n_points: int) -> np.ndarray:
    if points is not None and len(points) > 0:
        return np.asarray(points, dtype=int).reshape(-1).copy()
    return np.arange(int(n_points), dtype=int)


def resolve_indices(
    first_points: Sequence[int] | None,
    second_points: Sequence[int] | None,
    n_first: int,
    n_second: int,
    *,
    owner: str = '',
) -> SpringIndices:
    """
    Explicit index lists are used verbatim; an empty side means "all points
    of that set, in order". Sides of different length give an empty spring set.
    """
    first = _explicit_or_all(first_points, n_first)
    second = _explicit_or_all(second_points, n_second)

    if first.size != second.size:
        logger.error(
            '%s: the dimension of the source (%d) and the targeted points (%d) are different; '
            'no springs are created',
            owner or 'springs',
            first.size,
            second.size,
        )
        return SpringIndices.empty()

    _check_range(first, n_first, owner, 'first')
    _check_range(second, n_second, owner, 'second')
    return SpringIndices(first=first, second=second)


def resolve_rest_shape_indices(
    points: Sequence[int] | None,
    external_points: Sequence[int] | None,
    n_points: int,
    n_external: int | None,
    *,
    owner: str = '',
) -> SpringIndices:
    """
    Anchored springs: without an external rest-shape state every point is
    anchored to its own rest position, so the reference index is the point
    index itself. external_points only applies to an external state.
    """
    if n_external is None:
        if external_points is not None and len(external_points) > 0:
            raise ValueError(
                f'{owner or "springs"}: external_points needs an external rest shape state.'
            )
        first = _explicit_or_all(points, n_points)
        _check_range(first, n_points, owner, 'points')
        return SpringIndices(first=first, second=first.copy())

    return resolve_indices(points, external_points, n_points, n_external, owner=owner)


def _check_range(indices: np.ndarray, n_points: int, owner: str, side: str) -> None:
    if indices.size == 0:
        return
    lo = int(indices.min())
    hi = int(indices.max())
    if lo < 0 or hi >= n_points:
        raise ValueError(
            f'{owner or "springs"}: {side} indices must be in [0, {n_points}), got range [{lo}, {hi}].'
        )
